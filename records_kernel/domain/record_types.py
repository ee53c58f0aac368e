"""
Record type catalogue (``records_kernel.domain.record_types``).

Responsibility
--------------
Pure value objects describing each tracked record type: its collection
name, tracking-ID prefix, required form fields and per-type lifecycle
policy flags.  The lifecycle engine is parameterized by these schemas
instead of carrying one copy of the state machine per record type.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The catalogue
itself is authored in YAML and built by ``records_config``; the kernel
only consumes the resulting ``RecordTypeRegistry``.

Invariants enforced
-------------------
* Prefixes and collection names are unique across a registry.
* A prefix is 1-3 uppercase letters.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from records_kernel.exceptions import UnknownRecordTypeError, ValidationError

PREFIX_PATTERN = re.compile(r"^[A-Z]{1,3}$")


def parse_amount(value: Any, field_name: str) -> Decimal:
    """Coerce a numeric form value ("1,500.00", 1500, Decimal) to Decimal.

    Raises:
        ValidationError: not a finite, non-negative number.
    """
    try:
        amount = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation as exc:
        raise ValidationError(
            f"{field_name} must be a number, got {value!r}", field_name
        ) from exc
    if not amount.is_finite() or amount < 0:
        raise ValidationError(
            f"{field_name} must be a non-negative number", field_name
        )
    return amount



@dataclass(frozen=True)
class RecordTypeSchema:
    """Definition of one record type.

    Contract: frozen.  ``required_fields`` are checked non-empty on create
    and on edit (after merge).  ``numeric_fields`` are coerced to Decimal.
    ``name_field`` / ``office_field`` / ``amount_field`` tell the read side
    which type-specific field plays the role of person, office and amount.
    """

    name: str
    collection: str
    prefix: str
    required_fields: tuple[str, ...] = ()
    optional_fields: tuple[str, ...] = ()
    numeric_fields: tuple[str, ...] = ()
    name_field: str = "fullName"
    office_field: str | None = None
    amount_field: str | None = None
    remarks_required_on_reject: bool = False
    remarks_required_on_time_out: bool = False
    admin_override: bool = False

    @property
    def known_fields(self) -> frozenset[str]:
        return frozenset(self.required_fields) | frozenset(self.optional_fields)

    @property
    def created_remarks(self) -> str:
        """Default remarks text for the seed history entry."""
        return f"{self.name} record created"


class RecordTypeRegistry:
    """Lookup of record type schemas by name, collection or prefix."""

    def __init__(self, schemas: Iterable[RecordTypeSchema]):
        self._by_name: dict[str, RecordTypeSchema] = {}
        self._by_collection: dict[str, RecordTypeSchema] = {}
        self._by_prefix: dict[str, RecordTypeSchema] = {}
        for schema in schemas:
            if not PREFIX_PATTERN.match(schema.prefix):
                raise ValueError(
                    f"Invalid tracking prefix {schema.prefix!r} for {schema.name}"
                )
            if schema.collection in self._by_collection:
                raise ValueError(f"Duplicate collection: {schema.collection}")
            if schema.prefix in self._by_prefix:
                raise ValueError(f"Duplicate prefix: {schema.prefix}")
            if schema.name in self._by_name:
                raise ValueError(f"Duplicate record type: {schema.name}")
            self._by_name[schema.name] = schema
            self._by_collection[schema.collection] = schema
            self._by_prefix[schema.prefix] = schema

    def __iter__(self) -> Iterator[RecordTypeSchema]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, key: str) -> bool:
        return key in self._by_name or key in self._by_collection

    def get(self, key: str) -> RecordTypeSchema:
        """Resolve a record type by its name or its collection name."""
        schema = self._by_name.get(key) or self._by_collection.get(key)
        if schema is None:
            raise UnknownRecordTypeError(key)
        return schema

    def by_prefix(self, prefix: str) -> RecordTypeSchema:
        schema = self._by_prefix.get(prefix)
        if schema is None:
            raise UnknownRecordTypeError(prefix)
        return schema

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._by_name)
