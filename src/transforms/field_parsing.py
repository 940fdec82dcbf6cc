"""Type-safe field parsing helpers for deal values.

This module centralizes primitive parsing so workbook rows, patch requests,
and CLI arguments produce consistent values and consistent failure reasons.
Parsers raise ``ValueError`` with a human-readable reason; callers decide
whether that reason becomes a rejected patch field or a lenient default.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable

_DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%d %b %Y", "%d %B %Y", "%Y/%m/%d")
_TRUE_VALUES = frozenset({"true", "yes", "y", "1"})
_FALSE_VALUES = frozenset({"false", "no", "n", "0"})
_CURRENCY_MARKERS = ("£", "GBP", "gbp", ",", " ")
_TAG_SEPARATORS = (";", "|")


def optional_text(value: object) -> str | None:
    """Return stripped text, or None for blank and missing values."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text if text else None


def parse_date(value: object) -> date | None:
    """Parse a calendar date from a cell or request value.

    Args:
        value: ``date``, ``datetime``, ISO text, or a day-first format such as
            ``15/03/2025`` or ``15 Mar 2025``.

    Returns:
        Parsed date, or None for blank input.

    Raises:
        ValueError: If the value is not a recognizable date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = optional_text(value)
    if text is None:
        return None
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for date_format in _DATE_FORMATS:
        try:
            return datetime.strptime(text, date_format).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid date format: '{text}'")


def parse_amount(value: object) -> Decimal | None:
    """Parse a money value, stripping currency symbols and thousands separators.

    Raises:
        ValueError: If the value is not numeric.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Invalid amount value")
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    else:
        text = str(value)
        for marker in _CURRENCY_MARKERS:
            text = text.replace(marker, "")
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation as error:
            raise ValueError(f"Invalid amount value: '{value}'") from error
    if not parsed.is_finite():
        raise ValueError(f"Invalid amount value: '{value}'")
    return parsed


def parse_non_negative_amount(value: object, label: str = "Amount") -> Decimal | None:
    """Parse a money value and reject negatives."""
    parsed = parse_amount(value)
    if parsed is not None and parsed < 0:
        raise ValueError(f"{label} cannot be negative")
    return parsed


def parse_probability(value: object) -> int:
    """Parse a win probability bounded to [0, 100].

    Raises:
        ValueError: If the value is not an integer or is out of range.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("Invalid probability value")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    else:
        text = str(value).replace("%", "").strip()
        try:
            parsed = int(text)
        except ValueError as error:
            raise ValueError("Invalid probability value") from error
    if not 0 <= parsed <= 100:
        raise ValueError("Probability must be between 0 and 100")
    return parsed


def parse_bool(value: object) -> bool:
    """Parse a boolean from several case-insensitive textual forms.

    Raises:
        ValueError: If the value is not a recognizable boolean.
    """
    if isinstance(value, bool):
        return value
    text = (optional_text(value) or "").lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: '{value}'")


def parse_tags(value: object) -> tuple[str, ...]:
    """Split tags from a list or a delimited string.

    Raises:
        ValueError: If the value is neither text nor a list of text.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        text = value
        for separator in _TAG_SEPARATORS:
            text = text.replace(separator, ",")
        return _clean_tags(text.split(","))
    if isinstance(value, (list, tuple)):
        if not all(isinstance(item, str) for item in value):
            raise ValueError("Tags must be a list of strings")
        return _clean_tags(value)
    raise ValueError("Tags must be a list or comma-separated string")


def display_value(value: object) -> str | None:
    """Render a field value for change reports."""
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, tuple):
        return ", ".join(str(item) for item in value)
    return str(value)


def _clean_tags(raw_tags: Iterable[str]) -> tuple[str, ...]:
    return tuple(tag.strip() for tag in raw_tags if tag.strip())
