"""Outbound reminder delivery backends."""

from .base import Notifier, render_reminder_text
from .factory import get_notifier

__all__ = ["Notifier", "get_notifier", "render_reminder_text"]
