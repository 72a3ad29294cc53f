"""Outbound webhook notifications"""
