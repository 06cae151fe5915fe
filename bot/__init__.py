"""Telegram admin surface for the reminder engine."""

from .admin_handlers import register_admin_handlers

__all__ = ["register_admin_handlers"]
