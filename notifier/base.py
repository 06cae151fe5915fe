"""
Base notifier.

Defines the interface every outbound messaging backend implements.
"""

from abc import ABC, abstractmethod

from models.reminder import ReminderMessage
from utils.datetime_utils import format_hhmm


class Notifier(ABC):
    """Outbound messaging backend used by the reminder cycle."""

    name = "base"

    @abstractmethod
    async def send(self, phone: str, message: ReminderMessage) -> str:
        """
        Deliver one reminder.

        Args:
            phone: Normalized destination number ("+393761024080")
            message: Structured reminder for one client

        Returns:
            Provider message id

        Raises:
            NotifierError: The provider refused or failed the send
        """

    async def close(self) -> None:
        """Release network resources, if any."""


def render_reminder_text(message: ReminderMessage) -> str:
    """
    Render the salon's reminder text.

    One appointment:
        Ciao Enea, ti ricordiamo il tuo appuntamento di domani alle 20:15 per Taglio. A presto! 💇‍♀️
    Several appointments are listed one per line.
    """
    when = "di domani" if message.is_tomorrow else f"del {message.appointment_date.strftime('%d/%m')}"
    entries = sorted(message.entries, key=lambda e: e.start_time)

    if len(entries) == 1:
        entry = entries[0]
        return (
            f"Ciao {message.client_name}, ti ricordiamo il tuo appuntamento {when} "
            f"alle {format_hhmm(entry.start_time)} per {entry.service_name}. A presto! 💇‍♀️"
        )

    lines = "\n".join(
        f"• {format_hhmm(entry.start_time)} - {entry.service_name}" for entry in entries
    )
    return (
        f"Ciao {message.client_name}, ti ricordiamo i tuoi appuntamenti {when}:\n"
        f"{lines}\n"
        f"A presto! 💇‍♀️"
    )
