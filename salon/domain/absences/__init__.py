"""Absences domain - Employee absence requests and approval"""
