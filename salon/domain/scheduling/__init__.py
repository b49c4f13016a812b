"""Scheduling domain - Slot catalog, availability, conflict checks and booking"""
