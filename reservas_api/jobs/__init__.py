"""Periodic maintenance jobs run by Celery beat"""
