"""Builders for the API's ``where`` filter expressions.

Filter expressions are small C#-like snippets evaluated server side, e.g.
``Status=="AUTHORISED" AND Date>=DateTime(2024,01,01)``. Values are embedded
as string literals, so anything that could end a literal or start a new
clause is rejected before a request is built.
"""

import re
from datetime import date, datetime
from typing import Any, Iterable, Optional

from ledgerlink.core.errors import ValidationError

_FORBIDDEN_LITERAL = re.compile(r'["\\\x00-\x1f\x7f]')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_FIELD_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_.]*$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def check_literal(value: str, label: str = "value") -> str:
    """Reject characters that would break out of a filter string literal.

    Raises:
        ValidationError: If ``value`` contains a quote, backslash or control
            character
    """
    if _FORBIDDEN_LITERAL.search(value):
        raise ValidationError([f"{label} contains characters not allowed in a filter: {value!r}"])
    return value


def check_header_value(value: str, label: str) -> str:
    """Reject CR, LF and other control characters in a header value."""
    if _CONTROL_CHARS.search(value):
        raise ValidationError([f"{label} contains control characters"])
    return value


def check_field(name: str) -> str:
    if not _FIELD_NAME.match(name):
        raise ValidationError([f"Invalid filter field name: {name!r}"])
    return name


def parse_date_literal(value: Any) -> date:
    """Accept a ``date`` or an exact ``YYYY-MM-DD`` string.

    Raises:
        ValidationError: For any other shape or an impossible date
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise ValidationError([f"Date must be in YYYY-MM-DD format: {value!r}"])
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError([f"Invalid date: {value!r}"])


def quote(value: str) -> str:
    return f'"{check_literal(value)}"'


def equals(field: str, value: str) -> str:
    """``Field=="value"``"""
    return f"{check_field(field)}=={quote(value)}"


def date_literal(value: Any) -> str:
    d = parse_date_literal(value)
    return f"DateTime({d.year},{d.month:02d},{d.day:02d})"


def date_between(field: str, start: Any = None, end: Any = None) -> Optional[str]:
    """Inclusive date range clause; None when both bounds are absent."""
    check_field(field)
    clauses = []
    if start is not None:
        clauses.append(f"{field}>={date_literal(start)}")
    if end is not None:
        clauses.append(f"{field}<={date_literal(end)}")
    return " AND ".join(clauses) or None


def combine(*clauses: Optional[str]) -> Optional[str]:
    """AND together the non-empty clauses."""
    present = [c for c in clauses if c]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return " AND ".join(f"({c})" if " OR " in c else c for c in present)


def any_of(field: str, values: Iterable[str]) -> Optional[str]:
    """``Field=="a" OR Field=="b"``"""
    clauses = [equals(field, v) for v in values]
    return " OR ".join(clauses) or None
