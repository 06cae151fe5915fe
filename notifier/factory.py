"""Notifier factory: picks the backend named in the settings."""

from config import settings
from notifier.base import Notifier


def get_notifier(backend: str = None) -> Notifier:
    """
    Build the configured notifier.

    Args:
        backend: "log" or "whatsapp"; defaults to settings.notifier_backend

    Raises:
        ValueError: Unsupported backend
    """
    backend = backend or settings.notifier_backend

    if backend == "log":
        from .logging_notifier import LoggingNotifier

        return LoggingNotifier()
    elif backend == "whatsapp":
        from .whatsapp import WhatsAppNotifier

        return WhatsAppNotifier(
            api_url=settings.whatsapp_api_url,
            phone_number_id=settings.whatsapp_phone_number_id,
            access_token=settings.whatsapp_access_token,
            timeout=settings.notifier_timeout_seconds,
        )
    else:
        raise ValueError(f"Unsupported notifier backend: {backend}")
