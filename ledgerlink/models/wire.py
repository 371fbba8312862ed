"""Wire codecs for the accounting API.

The API uses three date encodings:
- ``/Date(1539993600000+0000)/`` for calendar dates -> ``WireDate``
- ``/Date(1573755038314)/`` for audit timestamps -> ``WireDateTime``
- ``2019-10-31`` ISO calendar dates -> ``WireDate`` (unchanged both ways)

Monetary values are exact decimals (``Money``). JSON bodies are decoded with
``parse_float=Decimal`` and encoded by ``dumps`` so digits survive verbatim.

Enumerations derive from ``WireEnum`` and accept values added to the API after
this package was released.
"""

import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Iterator, Optional

from pydantic import BeforeValidator
from pydantic_core import core_schema

MS_DATE_PATTERN = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
# Identity API timestamps carry 7 fractional digits
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Serialization context flag: re-emit the original wire token for decoded dates
RAW_DATES = "raw_dates"


def parse_ms_epoch(token: str) -> Optional[int]:
    """Return the epoch milliseconds of a ``/Date(...)/`` token, or None."""
    match = MS_DATE_PATTERN.match(token.strip())
    if match is None:
        return None
    return int(match.group(1))


def _epoch_to_datetime(epoch_ms: int) -> datetime:
    # timedelta arithmetic floors correctly for negative epochs
    return _EPOCH + timedelta(milliseconds=epoch_ms)


def _wants_raw(info: Any) -> bool:
    context = getattr(info, "context", None)
    return bool(context) and bool(context.get(RAW_DATES))


# =============================================================================
# Dates
# =============================================================================


@dataclass(frozen=True, order=True)
class WireDate:
    """A calendar date.

    Decoded from either the millisecond-epoch token (the offset is ignored and
    the UTC calendar date is taken) or a plain ``YYYY-MM-DD`` string. Always
    encodes to ``YYYY-MM-DD`` unless raw passthrough is requested.
    """

    value: date
    raw: Optional[str] = field(default=None, compare=False, repr=False)

    @classmethod
    def decode(cls, token: str) -> "WireDate":
        """Decode a wire token.

        Raises:
            ValueError: If the token matches none of the accepted encodings
        """
        epoch_ms = parse_ms_epoch(token)
        if epoch_ms is not None:
            try:
                return cls(_epoch_to_datetime(epoch_ms).date(), raw=token)
            except OverflowError:
                raise ValueError(f"invalid epoch timestamp: {epoch_ms}")
        text = token.strip()
        if ISO_DATE_PATTERN.match(text[:10]) and (len(text) == 10 or text[10] == "T"):
            try:
                if len(text) == 10:
                    return cls(date.fromisoformat(text), raw=token)
                return cls(datetime.fromisoformat(text).date(), raw=token)
            except ValueError as e:
                raise ValueError(f"invalid date format '{token}': {e}")
        raise ValueError(f"invalid date format '{token}'")

    def encode(self) -> str:
        return self.value.isoformat()

    def __str__(self) -> str:
        return self.encode()

    @classmethod
    def _validate(cls, value: Any) -> "WireDate":
        if isinstance(value, cls):
            return value
        if isinstance(value, datetime):
            raise ValueError("expected a calendar date, got a datetime")
        if isinstance(value, date):
            return cls(value)
        if isinstance(value, str):
            return cls.decode(value)
        raise ValueError(f"cannot decode {type(value).__name__} as a date")

    def _serialize(self, info: Any) -> str:
        if self.raw is not None and _wants_raw(info):
            return self.raw
        return self.encode()

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                cls._serialize, info_arg=True, when_used="always"
            ),
        )


@dataclass(frozen=True, order=True)
class WireDateTime:
    """A UTC instant, used for read-only audit timestamps.

    Decoded from ``/Date(ms)/`` or ISO 8601; encodes to
    ``YYYY-MM-DDTHH:MM:SS.mmmZ``. Never sent in request bodies.
    """

    value: datetime
    raw: Optional[str] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.value.tzinfo is None:
            object.__setattr__(self, "value", self.value.replace(tzinfo=timezone.utc))
        else:
            object.__setattr__(self, "value", self.value.astimezone(timezone.utc))

    @classmethod
    def decode(cls, token: str) -> "WireDateTime":
        epoch_ms = parse_ms_epoch(token)
        if epoch_ms is not None:
            try:
                return cls(_epoch_to_datetime(epoch_ms), raw=token)
            except OverflowError:
                raise ValueError(f"invalid epoch timestamp: {epoch_ms}")
        text = _EXCESS_FRACTION.sub(r"\1", token.strip()).replace("Z", "+00:00")
        try:
            return cls(datetime.fromisoformat(text), raw=token)
        except ValueError as e:
            raise ValueError(f"invalid datetime format '{token}': {e}")

    def encode(self) -> str:
        millis = self.value.microsecond // 1000
        return self.value.strftime("%Y-%m-%dT%H:%M:%S") + f".{millis:03d}Z"

    def __str__(self) -> str:
        return self.encode()

    @classmethod
    def _validate(cls, value: Any) -> "WireDateTime":
        if isinstance(value, cls):
            return value
        if isinstance(value, datetime):
            return cls(value)
        if isinstance(value, str):
            return cls.decode(value)
        raise ValueError(f"cannot decode {type(value).__name__} as a datetime")

    def _serialize(self, info: Any) -> str:
        if self.raw is not None and _wants_raw(info):
            return self.raw
        return self.encode()

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                cls._serialize, info_arg=True, when_used="always"
            ),
        )


# =============================================================================
# Money
# =============================================================================


def to_money(value: Any) -> Decimal:
    """Coerce ``value`` to an exact Decimal.

    Accepts Decimal, int and numeric strings. Binary floats are rejected
    because they cannot represent most currency amounts exactly.

    Raises:
        ValueError: For floats, booleans, non-finite or non-numeric input
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError("money values must not be binary floats; use Decimal or str")
    if isinstance(value, int):
        value = Decimal(value)
    elif isinstance(value, str):
        try:
            value = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"invalid decimal amount '{value}'")
    if not isinstance(value, Decimal):
        raise ValueError(f"cannot use {type(value).__name__} as a money value")
    if not value.is_finite():
        raise ValueError("money values must be finite")
    return value


Money = Annotated[Decimal, BeforeValidator(to_money)]


# =============================================================================
# Enumerations
# =============================================================================


class WireEnum(str, Enum):
    """String enumeration that tolerates values it does not know.

    Unrecognized values become a pseudo-member named ``UNKNOWN`` whose value
    is the original string, so it re-encodes unchanged.
    """

    @classmethod
    def _missing_(cls, value: Any) -> Optional["WireEnum"]:
        if not isinstance(value, str):
            return None
        member = str.__new__(cls, value)
        member._name_ = "UNKNOWN"
        member._value_ = value
        return member

    @property
    def is_unknown(self) -> bool:
        return self._name_ == "UNKNOWN"

    @classmethod
    def _validate(cls, value: Any) -> "WireEnum":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(value)
        raise ValueError(f"{cls.__name__} expects a string, got {type(value).__name__}")

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda member: member.value, when_used="always"
            ),
        )


# =============================================================================
# JSON
# =============================================================================


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


def loads(text: str) -> Any:
    """Decode JSON with every non-integer number as an exact Decimal."""
    return json.loads(text, parse_float=Decimal, parse_constant=_reject_constant)


def _iter_encode(value: Any) -> Iterator[str]:
    if value is None:
        yield "null"
    elif value is True:
        yield "true"
    elif value is False:
        yield "false"
    elif isinstance(value, Enum):
        yield from _iter_encode(value.value)
    elif isinstance(value, str):
        yield json.dumps(value)
    elif isinstance(value, int):
        yield str(value)
    elif isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError("non-finite decimals cannot be encoded")
        yield str(value)
    elif isinstance(value, float):
        raise ValueError("binary floats are not encoded; use Decimal")
    elif isinstance(value, (WireDate, WireDateTime)):
        yield json.dumps(value.encode())
    elif isinstance(value, datetime):
        yield json.dumps(WireDateTime(value).encode())
    elif isinstance(value, date):
        yield json.dumps(value.isoformat())
    elif isinstance(value, uuid.UUID):
        yield json.dumps(str(value))
    elif isinstance(value, dict):
        yield "{"
        first = True
        for key, item in value.items():
            if not first:
                yield ","
            first = False
            yield json.dumps(str(key))
            yield ":"
            yield from _iter_encode(item)
        yield "}"
    elif isinstance(value, (list, tuple)):
        yield "["
        for index, item in enumerate(value):
            if index:
                yield ","
            yield from _iter_encode(item)
        yield "]"
    else:
        raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(value: Any) -> str:
    """Encode ``value`` as compact JSON, emitting Decimals digit for digit."""
    return "".join(_iter_encode(value))
