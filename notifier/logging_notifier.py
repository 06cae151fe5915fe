"""Dry-run notifier: logs the rendered reminder instead of sending it."""

import logging
import uuid

from models.reminder import ReminderMessage
from notifier.base import Notifier, render_reminder_text

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):
    """Development backend. Every send succeeds."""

    name = "log"

    async def send(self, phone: str, message: ReminderMessage) -> str:
        message_id = f"log-{uuid.uuid4().hex[:12]}"
        logger.info(f"[dry run] Reminder {message_id} to {phone}:\n{render_reminder_text(message)}")
        return message_id
