"""Base classes for accounting API wire models."""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, SerializationInfo, model_serializer
from pydantic.alias_generators import to_camel

from ledgerlink.models.wire import RAW_DATES, WireDateTime

T = TypeVar("T")

# Serialization context flag: the dump is a request body
REQUEST_BODY = "request_body"

# Words the API spells in capitals inside PascalCase keys
_UPPER_WORDS = {"id": "ID", "utc": "UTC", "cis": "CIS"}


def to_wire_name(name: str) -> str:
    """Map a snake_case field name to the API's PascalCase key.

    >>> to_wire_name("updated_date_utc")
    'UpdatedDateUTC'
    """
    return "".join(_UPPER_WORDS.get(part, part.capitalize()) for part in name.split("_"))


class WireModel(BaseModel):
    """Immutable record exchanged with the accounting API.

    Every field is optional because the API omits whatever it likes. Unknown
    keys are kept in ``model_extra`` and re-emitted unchanged.
    """

    model_config = ConfigDict(
        alias_generator=to_wire_name,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    @model_serializer(mode="wrap")
    def _serialize_wire(self, handler: Any, info: SerializationInfo) -> Any:
        data = handler(self)
        if not isinstance(data, dict):
            return data
        context = info.context or {}
        if context.get(REQUEST_BODY):
            # Audit timestamps are server-owned
            for name, field_info in type(self).model_fields.items():
                if isinstance(getattr(self, name, None), WireDateTime):
                    key = (field_info.alias or name) if info.by_alias else name
                    data.pop(key, None)
        return self._reshape_wire(data, info)

    def _reshape_wire(self, data: Dict[str, Any], info: SerializationInfo) -> Dict[str, Any]:
        """Hook for models whose Python shape differs from the wire shape."""
        return data

    @classmethod
    def from_wire(cls, data: Dict[str, Any]):
        """Build a record from a decoded response object."""
        return cls.model_validate(data)

    def to_wire(self, request: bool = False, raw_dates: bool = False) -> Dict[str, Any]:
        """Dump the record with API keys, dropping absent fields.

        Args:
            request: Shape the dump for a request body (omit read-only fields)
            raw_dates: Re-emit decoded dates in their original wire encoding

        Returns:
            Dict ready for ``ledgerlink.models.wire.dumps``
        """
        return self.model_dump(
            by_alias=True,
            exclude_none=True,
            context={REQUEST_BODY: request, RAW_DATES: raw_dates},
        )


class CamelModel(BaseModel):
    """Record whose wire keys are camelCase (pagination, identity API)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )


# =============================================================================
# Envelope parts
# =============================================================================


class Pagination(CamelModel):
    """Page metadata returned alongside paginated collections."""
    page: Optional[int] = None
    page_size: Optional[int] = None
    page_count: Optional[int] = None
    item_count: Optional[int] = None

    def has_more(self, current_page: Optional[int] = None) -> bool:
        """True when pages remain after ``current_page`` (defaults to ``page``)."""
        if current_page is None:
            current_page = self.page
        if current_page is None or self.page_count is None:
            return False
        return current_page < self.page_count

    @classmethod
    def single_page(cls, item_count: int) -> "Pagination":
        """Metadata for a response that holds every record at once."""
        return cls(page=1, page_size=item_count, page_count=1, item_count=item_count)


class ApiWarning(WireModel):
    """Non-fatal warning attached to a response."""
    message: Optional[str] = None


class ValidationItem(WireModel):
    """A single validation message attached to a record."""
    message: Optional[str] = None


class EntityCollection(BaseModel, Generic[T]):
    """One page of records plus its envelope metadata.

    ``pagination`` is always populated: when the server omits it (reference
    resources), the page is described as page 1 of 1.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: List[T]
    pagination: Pagination
    warnings: List[ApiWarning] = Field(default_factory=list)

    @classmethod
    def from_envelope(
        cls,
        data: Dict[str, Any],
        key: str,
        model: Type[WireModel],
    ) -> "EntityCollection":
        """Parse a ``{"<Resource>": [...], "pagination": {...}}`` envelope.

        Args:
            data: Decoded response body
            key: Name of the array holding the records
            model: Record model to validate each entry with

        Returns:
            EntityCollection with items in response order
        """
        raw_items = data.get(key) or []
        items = [model.from_wire(item) for item in raw_items]
        raw_pagination = data.get("pagination")
        if raw_pagination:
            pagination = Pagination.model_validate(raw_pagination)
        else:
            pagination = Pagination.single_page(len(items))
        warnings = [ApiWarning.model_validate(w) for w in data.get("Warnings") or []]
        return cls(items=items, pagination=pagination, warnings=warnings)
