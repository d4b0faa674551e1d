"""Shared input-coercion helpers used by the service layer.

parse_date_input:  ISO / DD.MM.YYYY strings → date, raising ValueError on bad input
parse_bool:        JSON-ish truthy values → bool
clean_tags:        free-form tag list → de-duplicated list of stripped strings
"""
from datetime import date, datetime

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Empty input returns None. Supports YYYY-MM-DD, full ISO datetimes
    (truncated to the date), DD.MM.YYYY and date objects.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.")
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc


def parse_bool(value, default=False):
    """Coerce a JSON boolean (or a string like "true"/"0") to bool.

    Raises ValueError for anything outside the true/false vocabulary.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_STRINGS:
            return True
        if token in _FALSE_STRINGS:
            return False
    raise ValueError(f"Cannot interpret {value!r} as a boolean")


def clean_tags(value):
    """Return tags stripped, without blanks or duplicates, first occurrence kept.

    Raises ValueError if ``value`` is not a list of strings.
    """
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValueError("tags must be a list of strings")
    seen = set()
    result = []
    for tag in value:
        if not isinstance(tag, str):
            raise ValueError("tags must be a list of strings")
        tag = tag.strip()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        result.append(tag)
    return result
