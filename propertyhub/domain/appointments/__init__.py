"""Appointments domain - Visit booking, SMS confirmation and staff workflow"""
