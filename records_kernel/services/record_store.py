"""
RecordStore -- document-style persistence adapter for tracked records.

Responsibility:
    Presents the records table as named collections of documents
    (``vouchers``, ``leaves``, ...) with add / list / get / merge-update /
    delete operations, plus ``append_history`` as the only way to grow a
    record's remarks history.  The lifecycle engine and the desk facade talk
    to persistence exclusively through this class.

Architecture position:
    Kernel > Services.  Owns the mapping between the camelCase document
    view and the ORM model (models/record.py).

Invariants enforced:
    - Insertion order: every added record takes the next value of the
      store-wide ``record_insertion`` sequence; lists are ordered by it.
    - Updates MERGE: keys absent from the partial document keep their value.
    - ``remarksHistory`` can only grow, and only through ``append_history``
      (or the ``history_entry`` argument of ``update_record``).
    - Every persisted mutation increments ``version`` exactly once.  A
      caller-supplied ``expected_version`` that does not match raises
      OptimisticLockError before anything is written.
    - A record of another type is invisible through a collection: looking
      up a Voucher id in ``leaves`` behaves like an absent id.

Failure modes:
    - RecordNotFoundError: update / delete / append on an absent id.
    - UnknownRecordTypeError: collection not in the catalogue.
    - ValidationError: malformed document values (bad status, read-only key,
      non-numeric amount); nothing is written.
    - OptimisticLockError: version mismatch, or a concurrent UPDATE won.
    - StoreError: any other SQLAlchemy failure (original chained).
    - ImmutabilityViolationError: attempt to rewrite a frozen column
      (raised by db/immutability.py at flush time).
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from records_kernel.domain.clock import Clock, SystemClock
from records_kernel.domain.dtos import HistoryEntry, RecordInfo
from records_kernel.domain.lifecycle import HistoryEntryKind, RecordStatus
from records_kernel.domain.record_types import (
    RecordTypeRegistry,
    RecordTypeSchema,
    parse_amount,
)
from records_kernel.exceptions import (
    OptimisticLockError,
    RecordNotFoundError,
    StoreError,
    ValidationError,
)
from records_kernel.logging_config import get_logger
from records_kernel.models.record import Record, RemarksHistoryEntry
from records_kernel.services.base import BaseService
from records_kernel.services.sequence_service import SequenceService
from records_kernel.utils.hashing import to_json_safe

logger = get_logger("services.record_store")

# Document keys stored in typed columns
_CORE_COLUMNS: dict[str, str] = {
    "trackingId": "tracking_id",
    "status": "status",
    "dateTimeIn": "date_time_in",
    "dateTimeOut": "date_time_out",
    "remarks": "remarks",
    "timeOutRemarks": "time_out_remarks",
    "receivedBy": "received_by",
    "updatedBy": "updated_by",
}

# Document keys that are derived or append-only
_READ_ONLY_KEYS = frozenset(
    {"id", "version", "createdAt", "updatedAt", "remarksHistory", "collection"}
)

_DATETIME_KEYS = frozenset({"dateTimeIn", "dateTimeOut"})


def _as_datetime(key: str, value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError(f"Invalid date/time for {key}: {value!r}", key) from exc
    raise ValidationError(f"Invalid date/time for {key}: {value!r}", key)


def _as_status(value: Any) -> RecordStatus:
    try:
        return RecordStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid status: {value!r}", "status") from exc


def _as_history_entry(entry: HistoryEntry | Mapping[str, Any]) -> HistoryEntry:
    if isinstance(entry, HistoryEntry):
        return entry
    try:
        kind = HistoryEntryKind(entry["status"])
        timestamp = _as_datetime("timestamp", entry["timestamp"])
        return HistoryEntry(
            remarks=str(entry.get("remarks") or ""),
            status=kind,
            timestamp=timestamp,
            updated_by=str(entry["updatedBy"]),
        )
    except KeyError as exc:
        raise ValidationError(
            f"History entry is missing {exc.args[0]}", "remarksHistory"
        ) from exc
    except ValueError as exc:
        raise ValidationError(
            f"Invalid history entry: {exc}", "remarksHistory"
        ) from exc


class RecordStore(BaseService[Record]):
    """
    Collection-oriented adapter over the ``records`` table.

    Contract:
        Flushes, never commits.  Returns RecordInfo DTOs (``*_record``
        methods) or plain document dicts (``*_document`` methods), never
        ORM instances.
    """

    def __init__(
        self,
        session: Session,
        registry: RecordTypeRegistry,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._registry = registry
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)

    @property
    def registry(self) -> RecordTypeRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _to_info(self, record: Record) -> RecordInfo:
        schema = self._registry.get(record.record_type)
        fields = dict(record.details or {})
        # Numeric fields are validated by parse_amount on write and stored as strings
        for name in schema.numeric_fields:
            value = fields.get(name)
            if value not in (None, ""):
                fields[name] = Decimal(str(value))
        return RecordInfo(
            id=record.id,
            record_type=record.record_type,
            collection=schema.collection,
            tracking_id=record.tracking_id,
            status=RecordStatus(record.status),
            date_time_in=record.date_time_in,
            date_time_out=record.date_time_out,
            remarks=record.remarks or "",
            time_out_remarks=record.time_out_remarks,
            received_by=record.received_by,
            fields=fields,
            history=tuple(
                HistoryEntry(
                    remarks=entry.remarks,
                    status=HistoryEntryKind(entry.kind),
                    timestamp=entry.timestamp,
                    updated_by=entry.updated_by,
                )
                for entry in record.history
            ),
            version=record.version,
            seq=record.seq,
            created_at=record.created_at,
            updated_at=record.updated_at,
            updated_by=record.updated_by,
        )

    def to_info(self, record: Record) -> RecordInfo:
        """Public conversion used by selectors that query the model directly."""
        return self._to_info(record)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _guard(
        self,
        operation: str,
        collection: str,
        record_id: UUID | str | None = None,
    ) -> Iterator[None]:
        try:
            yield
        except StaleDataError as exc:
            logger.warning(
                "store_concurrent_update",
                extra={"operation": operation, "collection": collection},
            )
            raise OptimisticLockError("Record", str(record_id)) from exc
        except SQLAlchemyError as exc:
            logger.error(
                "store_operation_failed",
                extra={
                    "operation": operation,
                    "collection": collection,
                    "error": str(exc),
                },
            )
            raise StoreError(operation, collection, str(exc)) from exc

    def _load(self, schema: RecordTypeSchema, record_id: UUID | str) -> Record | None:
        try:
            key = record_id if isinstance(record_id, UUID) else UUID(str(record_id))
        except ValueError:
            return None
        record = self.session.get(Record, key, populate_existing=True)
        if record is None or record.record_type != schema.name:
            return None
        return record

    def _require(self, schema: RecordTypeSchema, record_id: UUID | str) -> Record:
        record = self._load(schema, record_id)
        if record is None:
            raise RecordNotFoundError(str(record_id), schema.name)
        return record

    @staticmethod
    def _check_version(record: Record, expected_version: int | None) -> None:
        if expected_version is not None and record.version != expected_version:
            raise OptimisticLockError(
                "Record",
                str(record.id),
                expected_version=expected_version,
                actual_version=record.version,
            )

    def _append(self, record: Record, entry: HistoryEntry) -> None:
        record.history.append(
            RemarksHistoryEntry(
                position=len(record.history),
                kind=entry.status.value,
                remarks=entry.remarks,
                timestamp=entry.timestamp,
                updated_by=entry.updated_by,
            )
        )

    def _apply(self, record: Record, partial: Mapping[str, Any]) -> None:
        schema = self._registry.get(record.record_type)
        read_only = sorted(_READ_ONLY_KEYS & partial.keys())
        if read_only:
            raise ValidationError(
                f"Field {read_only[0]} cannot be updated directly", read_only[0]
            )
        # Parse everything before the first attribute is touched
        numeric = {
            key: parse_amount(value, key)
            for key, value in partial.items()
            if key in schema.numeric_fields and value not in (None, "")
        }
        details = dict(record.details or {})
        for key, value in partial.items():
            column = _CORE_COLUMNS.get(key)
            if column is None:
                details[key] = numeric.get(key, value)
                continue
            if key in _DATETIME_KEYS:
                value = _as_datetime(key, value)
            elif key == "status":
                value = _as_status(value).value
            setattr(record, column, value)
        # JSON columns only notice reassignment
        record.details = to_json_safe(details)

    def _touch(self, record: Record, actor_name: str | None) -> None:
        record.version = record.version + 1
        record.updated_at = self._clock.now()
        if actor_name:
            record.updated_by = actor_name

    # ------------------------------------------------------------------
    # Record (DTO) API
    # ------------------------------------------------------------------

    def add_record(self, collection: str, fields: Mapping[str, Any]) -> RecordInfo:
        """
        Insert a new record document.

        ``fields`` must carry ``trackingId``, ``dateTimeIn`` and
        ``receivedBy``; ``remarksHistory`` may seed the history.  Every other
        non-core key is stored as a type-specific field.
        """
        schema = self._registry.get(collection)
        document = dict(fields)
        history = [_as_history_entry(e) for e in document.pop("remarksHistory", [])]
        for key in ("trackingId", "dateTimeIn", "receivedBy"):
            if not document.get(key):
                raise ValidationError(f"Document is missing {key}", key)
        assigned = sorted(_READ_ONLY_KEYS & document.keys())
        if assigned:
            raise ValidationError(
                f"Field {assigned[0]} is assigned by the store", assigned[0]
            )

        now = self._clock.now()
        with self._guard("add", schema.collection):
            record = Record(
                record_type=schema.name,
                tracking_id=document.pop("trackingId"),
                seq=self._sequences.next_value(SequenceService.RECORD_INSERTION),
                status=RecordStatus.PENDING.value,
                remarks="",
                received_by=document["receivedBy"],
                created_by=document["receivedBy"],
                created_at=now,
                updated_at=now,
                version=1,
                details={},
            )
            self._apply(record, document)
            for entry in history:
                self._append(record, entry)
            self.session.add(record)
            self.session.flush()

        logger.debug(
            "document_added",
            extra={"collection": schema.collection, "record_id": str(record.id)},
        )
        return self._to_info(record)

    def list_records(self, collection: str) -> list[RecordInfo]:
        """All records of a collection in insertion order."""
        schema = self._registry.get(collection)
        with self._guard("list", schema.collection):
            records = self.session.execute(
                select(Record)
                .where(Record.record_type == schema.name)
                .order_by(Record.seq)
            ).scalars().all()
            return [self._to_info(record) for record in records]

    def get_record(self, collection: str, record_id: UUID | str) -> RecordInfo | None:
        schema = self._registry.get(collection)
        with self._guard("get", schema.collection, record_id):
            record = self._load(schema, record_id)
            return self._to_info(record) if record is not None else None

    def find_record(self, record_id: UUID | str) -> RecordInfo | None:
        """Look a record up by id regardless of its collection."""
        try:
            key = record_id if isinstance(record_id, UUID) else UUID(str(record_id))
        except ValueError:
            return None
        with self._guard("get", "*", record_id):
            record = self.session.get(Record, key, populate_existing=True)
            return self._to_info(record) if record is not None else None

    def update_record(
        self,
        collection: str,
        record_id: UUID | str,
        partial: Mapping[str, Any],
        *,
        history_entry: HistoryEntry | None = None,
        expected_version: int | None = None,
        actor_name: str | None = None,
    ) -> RecordInfo:
        """
        Merge ``partial`` into a record and optionally append one history entry.

        Both changes land in the same flush with a single version increment.
        """
        schema = self._registry.get(collection)
        with self._guard("update", schema.collection, record_id):
            record = self._require(schema, record_id)
            self._check_version(record, expected_version)
            self._apply(record, partial)
            if history_entry is not None:
                self._append(record, history_entry)
            self._touch(record, actor_name)
            self.session.flush()
        logger.debug(
            "document_updated",
            extra={
                "collection": schema.collection,
                "record_id": str(record.id),
                "version": record.version,
            },
        )
        return self._to_info(record)

    def append_history(
        self,
        collection: str,
        record_id: UUID | str,
        entry: HistoryEntry | Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> RecordInfo:
        """Append one entry to a record's remarks history."""
        schema = self._registry.get(collection)
        history_entry = _as_history_entry(entry)
        with self._guard("append_history", schema.collection, record_id):
            record = self._require(schema, record_id)
            self._check_version(record, expected_version)
            self._append(record, history_entry)
            self._touch(record, history_entry.updated_by)
            self.session.flush()
        return self._to_info(record)

    def delete_record(
        self,
        collection: str,
        record_id: UUID | str,
        *,
        expected_version: int | None = None,
    ) -> RecordInfo:
        """Delete a record together with its history; returns the removed record."""
        schema = self._registry.get(collection)
        with self._guard("delete", schema.collection, record_id):
            record = self._require(schema, record_id)
            self._check_version(record, expected_version)
            info = self._to_info(record)
            self.session.delete(record)
            self.session.flush()
        logger.debug(
            "document_deleted",
            extra={"collection": schema.collection, "record_id": str(info.id)},
        )
        return info

    # ------------------------------------------------------------------
    # Document API
    # ------------------------------------------------------------------

    def add_document(self, collection: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a document; returns it with its store-assigned ``id``."""
        return self.add_record(collection, fields).to_document()

    def list_documents(self, collection: str) -> list[dict[str, Any]]:
        return [info.to_document() for info in self.list_records(collection)]

    def get_document(
        self, collection: str, record_id: UUID | str
    ) -> dict[str, Any] | None:
        info = self.get_record(collection, record_id)
        return info.to_document() if info is not None else None

    def update_document(
        self,
        collection: str,
        record_id: UUID | str,
        partial_fields: Mapping[str, Any],
    ) -> None:
        """Merge ``partial_fields`` into the document; absent id raises."""
        self.update_record(collection, record_id, partial_fields)

    def delete_document(self, collection: str, record_id: UUID | str) -> None:
        self.delete_record(collection, record_id)
