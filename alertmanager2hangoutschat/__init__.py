"""Alertmanager webhook to Google Hangouts Chat relay."""

__version__ = "1.0.0"
SERVICE_NAME = "alertmanager2hangoutschat"
