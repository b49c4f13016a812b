"""Appointments domain - Status lifecycle and staff agenda"""
