"""Reservas API - table reservations service"""
