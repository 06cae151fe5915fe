"""
Phone number normalization for outbound reminders.

Numbers are canonicalized to an E.164-like form ("+393761024080") so that
client records that share a phone can be grouped into one message.
Anything that does not match a recognized pattern is rejected rather than
guessed.
"""

import re
from typing import Iterable

from utils.exceptions import InvalidPhoneError

# Whitespace and the separators people type between digit groups
_SEPARATORS = re.compile(r"[\s\-\.\(\)]")

# '+', country code, then 9-14 subscriber digits; 15 digits at most
_INTERNATIONAL = re.compile(r"^\+[1-9]\d{9,14}$")

_DOMESTIC_LENGTH = 10


def normalize_phone(
    raw: str,
    default_country_code: str = "39",
    mobile_prefixes: Iterable[str] = ("3",),
) -> str:
    """
    Canonicalize a raw phone number.

    Args:
        raw: Phone number as entered by staff
        default_country_code: Country code (without '+') for domestic numbers
        mobile_prefixes: Leading digits identifying domestic mobile numbers

    Returns:
        Normalized number, e.g. "+393761024080"

    Raises:
        InvalidPhoneError: If the number matches no recognized pattern
    """
    if not raw or not isinstance(raw, str):
        raise InvalidPhoneError("Phone number is empty")

    cleaned = _SEPARATORS.sub("", raw)

    if cleaned.startswith("+"):
        if _INTERNATIONAL.match(cleaned):
            return cleaned
        raise InvalidPhoneError(f"Invalid international phone number: {raw!r}")

    if not cleaned.isdigit():
        raise InvalidPhoneError(f"Phone number contains invalid characters: {raw!r}")

    if len(cleaned) == _DOMESTIC_LENGTH and cleaned.startswith(tuple(mobile_prefixes)):
        return f"+{default_country_code}{cleaned}"

    if (
        cleaned.startswith(default_country_code)
        and len(cleaned) == len(default_country_code) + _DOMESTIC_LENGTH
    ):
        return f"+{cleaned}"

    raise InvalidPhoneError(f"Unrecognized phone number format: {raw!r}")


def format_phone_for_display(phone: str, default_country_code: str = "39") -> str:
    """
    Format a normalized number for staff-facing output.

    "+393761024080" becomes "+39 376 102 4080"; other numbers are returned as is.
    """
    prefix = f"+{default_country_code}"
    national = phone[len(prefix):]
    if phone.startswith(prefix) and len(national) == _DOMESTIC_LENGTH and national.isdigit():
        return f"{prefix} {national[:3]} {national[3:6]} {national[6:]}"
    return phone
