"""Whitelisting of caller-supplied ordering and pagination input.

Nothing a caller sends may reach an ordering clause directly: sort input is
resolved to one of the canonical identifiers below, and the repositories map
those identifiers to column references.
"""
from typing import Iterable, Optional

SORT_NAME = 'sortName'
SORT_DATE_CREATED = 'dateCreated'
SORT_COLUMNS = (SORT_NAME, SORT_DATE_CREATED)
DEFAULT_SORT_COLUMN = SORT_NAME

ASC = 'ASC'
DESC = 'DESC'
SORT_DIRECTIONS = (ASC, DESC)
DEFAULT_SORT_DIRECTION = ASC

DEFAULT_PAGE_SIZE = 50

# Largest value a signed 64-bit OFFSET, LIMIT or id column can hold
MAX_INT64 = 2 ** 63 - 1


def resolve(value: Optional[str], allowed: Iterable[str], default: str) -> str:
    """Return the allowed value matching *value* case-insensitively.

    The canonical spelling from *allowed* is returned, never *value* itself.
    Falls back to *default* when *value* is absent, not a string, or not in
    *allowed*.
    """
    if not isinstance(value, str):
        return default
    lowered = value.lower()
    for candidate in allowed:
        if candidate.lower() == lowered:
            return candidate
    return default


def resolve_sort(column: Optional[str], direction: Optional[str]):
    """Resolve a ``(column, direction)`` pair against the sort whitelist."""
    return (
        resolve(column, SORT_COLUMNS, DEFAULT_SORT_COLUMN),
        resolve(direction, SORT_DIRECTIONS, DEFAULT_SORT_DIRECTION),
    )


def is_ascii_digits(text: str) -> bool:
    """True for a non-empty run of ASCII 0-9 and nothing else."""
    return text.isascii() and text.isdigit()


def _parse_int(raw) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        text = raw.strip()
        digits = text[1:] if text.startswith('-') else text
        if not is_ascii_digits(digits):
            return None
        value = int(text)
    else:
        return None
    if abs(value) > MAX_INT64:
        return None
    return value


def parse_page(raw) -> int:
    """Zero-based page index; anything but a non-negative integer gives 0."""
    page = _parse_int(raw)
    if page is None or page < 0:
        return 0
    return page


def parse_limit(raw, default: int = DEFAULT_PAGE_SIZE,
                maximum: Optional[int] = None) -> int:
    """Page size; anything but a positive integer gives *default*.

    When *maximum* is set the result is capped to it.
    """
    limit = _parse_int(raw)
    if limit is None or limit <= 0:
        limit = default
    if maximum is not None and limit > maximum:
        limit = maximum
    return limit


def page_offset(page: int, limit: int) -> int:
    """Row offset of *page*, clamped to what storage accepts."""
    return min(page * limit, MAX_INT64)
