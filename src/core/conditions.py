# src/core/conditions.py
"""Predicate and date-range parsing for maintenance commands."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Tuple, Union

from src.utils.error_handling import DateRangeError, ParseError

ConditionValue = Union[str, int, float, bool, datetime]

OPERATORS = ('==', '!=', '<', '<=', '>', '>=', 'contains')
ORDERING_OPERATORS = frozenset({'<', '<=', '>', '>='})
OPERATOR_ALIASES = {
    'array-contains': 'contains',
    'array_contains': 'contains',
}

# Longest first so '<=' wins over '<' at the same position.
_SYMBOL_TOKENS = ('==', '!=', '<=', '>=', '<', '>')
_WORD_OPERATOR = re.compile(r'\s+(array-contains|array_contains|contains)\s+', re.IGNORECASE)

_NUMERIC = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')
_INTEGER = re.compile(r'^[+-]?\d+$')
_DATE_LIKE = re.compile(r'^\d{4}-\d{2}')
_BARE_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_YEAR_MONTH = re.compile(r'^\d{4}-\d{2}$')


@dataclass(frozen=True)
class Condition:
    """A single-field comparison predicate"""

    field: str
    operator: str
    value: ConditionValue

    def __post_init__(self) -> None:
        if not self.field:
            raise ParseError("Condition field name is empty")
        if self.operator not in OPERATORS:
            raise ParseError(
                f"Unsupported operator: {self.operator}. "
                f"Supported operators: {', '.join(OPERATORS)}"
            )
        if self.operator in ORDERING_OPERATORS and not _is_orderable(self.value):
            raise ParseError(
                f"Operator '{self.operator}' requires a numeric or timestamp value, "
                f"got {self.value!r}"
            )

    def describe(self) -> str:
        value = self.value.isoformat() if isinstance(self.value, datetime) else self.value
        return f"{self.field} {self.operator} {value!r}"


@dataclass(frozen=True)
class DateRange:
    """Inclusive timestamp range. `start`/`end` are the --from/--to bounds."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise DateRangeError(
                f"Invalid date range: {self.start.isoformat()} is after {self.end.isoformat()}"
            )

    def contains(self, value: Any) -> bool:
        if not isinstance(value, datetime):
            return False
        return self.start <= as_utc(value) <= self.end


def _is_orderable(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float, datetime))


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with store timestamps"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def looks_like_date(text: str) -> bool:
    """Shape test used for unflagged values: four digits, hyphen, two digits."""
    return bool(_DATE_LIKE.match(text))


def parse_timestamp(raw: str) -> datetime:
    """
    Parse a bare date, year-month, or ISO 8601 timestamp

    Args:
        raw: e.g. '2025-01-31', '2025-01', '2025-01-31T08:00:00Z'

    Returns:
        Timezone-aware datetime; naive input is taken as UTC

    Raises:
        ParseError: If the string is not a recognizable date
    """
    text = (raw or '').strip()
    if _YEAR_MONTH.match(text):
        text = f"{text}-01"
    if text[-1:] in ('Z', 'z'):
        text = text[:-1] + '+00:00'

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ParseError(f"Invalid date format: {raw}. Use YYYY-MM-DD or ISO format.") from e

    return as_utc(parsed)


def coerce_value(raw: str, temporal: bool = False) -> ConditionValue:
    """
    Turn a raw predicate value into a typed value

    This is the one place the coercion policy lives. With ``temporal`` set
    (dedicated date flags) the value must parse as a timestamp. Without it,
    values shaped like an ISO date are sniffed into timestamps, which means a
    hyphenated identifier such as '2024-05-ab12' stays a string only because
    it fails to parse. Numbers and true/false literals come next; anything
    else is returned as the original string. Quoted values are literal strings.
    """
    text = raw.strip()

    if len(text) >= 2 and text[0] == text[-1] and text[0] in ('"', "'"):
        return text[1:-1]

    if temporal:
        return parse_timestamp(text)

    if looks_like_date(text):
        try:
            return parse_timestamp(text)
        except ParseError:
            return text

    if _NUMERIC.match(text):
        return int(text) if _INTEGER.match(text) else float(text)

    if text.lower() == 'true':
        return True
    if text.lower() == 'false':
        return False

    return text


def normalize_operator(operator: str) -> str:
    op = (operator or '').strip()
    return OPERATOR_ALIASES.get(op.lower(), op.lower() if op.isalpha() else op)


def build_condition(field: str,
                    operator: str,
                    value: Any,
                    temporal: bool = False) -> Condition:
    """Build a Condition from discrete --field/--operator/--value arguments"""
    field = (field or '').strip()
    if not field:
        raise ParseError("A condition requires a field name")
    if isinstance(value, str):
        if not value.strip():
            raise ParseError(f"A condition on '{field}' requires a value")
        value = coerce_value(value, temporal=temporal)
    return Condition(field=field, operator=normalize_operator(operator), value=value)


def _locate_operator(text: str) -> Optional[Tuple[int, int, str]]:
    """Find the first operator occurrence; the longest token wins at a position."""
    word = _WORD_OPERATOR.search(text)
    best = (word.start(), word.end(), 'contains') if word else None

    for index in range(len(text)):
        if best is not None and index >= best[0]:
            break
        for token in _SYMBOL_TOKENS:
            if text.startswith(token, index):
                return index, index + len(token), token
    return best


def parse_condition(text: str) -> Condition:
    """
    Parse a combined condition string such as ``source==email``

    The string is split on the first operator occurrence only, so values may
    contain operator characters (``subject==a<b``). ``contains`` must be
    surrounded by whitespace (``tags contains vip``).

    Raises:
        ParseError: If no operator is found or either side is empty
    """
    text = (text or '').strip()
    if not text:
        raise ParseError("Empty condition")

    located = _locate_operator(text)
    if located is None:
        raise ParseError(
            f"Invalid condition format: {text}. "
            "Use field==value, field!=value, field<value, field contains value, etc."
        )

    start, end, operator = located
    field = text[:start].strip()
    raw_value = text[end:].strip()
    if not field or not raw_value:
        raise ParseError(f"Invalid condition format: {text}. Both field and value are required.")

    return build_condition(field, operator, raw_value)


def build_date_range(start_raw: str, end_raw: str) -> DateRange:
    """
    Build an inclusive DateRange from --from/--to strings

    A bare ``YYYY-MM-DD`` end date covers the whole day and a ``YYYY-MM`` end
    covers the whole month.

    Raises:
        ParseError: Missing or malformed dates
        DateRangeError: start after end
    """
    if not (start_raw or '').strip() or not (end_raw or '').strip():
        raise ParseError("Both --from and --to dates are required")

    start = parse_timestamp(start_raw)
    end = parse_timestamp(end_raw)

    end_text = end_raw.strip()
    if _BARE_DATE.match(end_text):
        end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
    elif _YEAR_MONTH.match(end_text):
        last_day = calendar.monthrange(end.year, end.month)[1]
        end = end.replace(day=last_day, hour=23, minute=59, second=59, microsecond=999999)

    return DateRange(start=start, end=end)
