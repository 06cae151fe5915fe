"""Shared helpers: logging, errors, dates and phone numbers."""
