"""Notifications domain - Admin control of mass SMS broadcasts"""
