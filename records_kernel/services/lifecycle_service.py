"""
RecordLifecycleService -- the one lifecycle engine for every record type.

Responsibility:
    Implements create / edit / reject / time-out / delete for all record
    types, parameterized by ``RecordTypeSchema`` (required fields, tracking
    prefix, remarks policy, admin override) and driven by the status table
    in ``domain/lifecycle.py``.  Every transition appends exactly one remarks
    history entry.

Architecture position:
    Kernel > Services.  Persists exclusively through RecordStore; allocates
    tracking IDs through TrackingIdService.

Invariants enforced:
    - Validation before mutation: required fields, remarks and time-out
      values are checked before anything is written, so a failed call
      leaves the record untouched.
    - History append-only: after N successful mutating calls a record has
      ``1 + N`` history entries and earlier entries are unchanged.
    - Edit preserves ``Rejected``; otherwise the record stays (or returns
      to) its current open status.
    - Time-out sets ``dateTimeOut`` exactly once; a ``Completed`` record can
      never be timed out again.
    - Time-out re-reads the record from the store before mutating it.
    - Only admins may correct ``dateTimeIn`` or use override transitions.

Failure modes:
    - ValidationError / MissingFieldError: bad input (nothing written).
    - RecordNotFoundError: id absent from the store (stale view).
    - RecordClosedError: action not available in the current status.
    - PermissionDeniedError: non-admin attempting an admin-only change.
    - OptimisticLockError: ``expected_version`` mismatch.
    - StoreError: persistence failure (operation not applied).

Audit relevance:
    Each mutation logs one structured event (``record_created``,
    ``record_edited``, ``record_rejected``, ``record_timed_out``,
    ``record_deleted``) bound to the record's tracking ID and actor.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from records_kernel.domain.clock import Clock
from records_kernel.domain.dtos import Actor, HistoryEntry, RecordInfo
from records_kernel.domain.lifecycle import (
    RECORD_WORKFLOW,
    LifecycleAction,
    RecordStatus,
    Transition,
)
from records_kernel.domain.record_types import (
    RecordTypeRegistry,
    RecordTypeSchema,
    parse_amount,
)
from records_kernel.exceptions import (
    MissingFieldError,
    PermissionDeniedError,
    RecordClosedError,
    RecordNotFoundError,
    ValidationError,
)
from records_kernel.logging_config import LogContext, get_logger
from records_kernel.models.record import Record
from records_kernel.services.base import BaseService
from records_kernel.services.record_store import RecordStore
from records_kernel.services.tracking_service import SCOPE_CUMULATIVE, TrackingIdService

logger = get_logger("services.lifecycle")

# Fields the engine owns; callers cannot set them through create/edit
_ENGINE_FIELDS = frozenset(
    {
        "id",
        "trackingId",
        "status",
        "dateTimeOut",
        "timeOutRemarks",
        "remarksHistory",
        "version",
        "createdAt",
        "updatedAt",
        "updatedBy",
    }
)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


class RecordLifecycleService(BaseService[Record]):
    """
    Generic record lifecycle engine.

    Contract:
        All public methods return RecordInfo DTOs.  ``record_type`` may be
        a type name or a collection name; when omitted, the record is
        located by id alone.

    Non-goals:
        - Does NOT commit.  The caller owns the transaction.
        - Does NOT convert errors into user messages (RecordsDesk does).
    """

    def __init__(
        self,
        session: Session,
        registry: RecordTypeRegistry,
        clock: Clock,
        *,
        timezone_name: str = "UTC",
        tracking_scope: str = SCOPE_CUMULATIVE,
    ):
        super().__init__(session)
        self._registry = registry
        self._clock = clock
        self._timezone = ZoneInfo(timezone_name)
        self._store = RecordStore(session, registry, clock)
        self._tracking = TrackingIdService(
            session, clock, timezone_name=timezone_name, scope=tracking_scope
        )
        self._workflow = RECORD_WORKFLOW

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def tracking(self) -> TrackingIdService:
        return self._tracking

    # ------------------------------------------------------------------
    # Validation helpers (no store access)
    # ------------------------------------------------------------------

    def _parse_moment(self, value: Any, field_name: str) -> datetime:
        if isinstance(value, datetime):
            moment = value
        elif isinstance(value, str) and value.strip():
            try:
                moment = datetime.fromisoformat(value.strip())
            except ValueError as exc:
                raise ValidationError(
                    f"Invalid date/time for {field_name}: {value!r}", field_name
                ) from exc
        else:
            raise ValidationError(f"{field_name} is required", field_name)
        # Naive input is wall-clock time at the office
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self._timezone)
        return moment

    def _normalize(
        self, schema: RecordTypeSchema, fields: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Strip strings, coerce numeric fields and parse dateTimeIn."""
        engine_owned = sorted(_ENGINE_FIELDS & fields.keys())
        if engine_owned:
            raise ValidationError(
                f"Field {engine_owned[0]} cannot be set directly", engine_owned[0]
            )
        normalized: dict[str, Any] = {}
        for key, value in fields.items():
            if isinstance(value, str):
                value = value.strip()
            if key in schema.numeric_fields and not _is_blank(value):
                value = parse_amount(value, key)
            if key == "dateTimeIn" and not _is_blank(value):
                value = self._parse_moment(value, key)
            normalized[key] = value
        return normalized

    @staticmethod
    def _check_required(schema: RecordTypeSchema, fields: Mapping[str, Any]) -> None:
        missing = tuple(
            name for name in schema.required_fields if _is_blank(fields.get(name))
        )
        if missing:
            raise MissingFieldError(schema.name, missing)

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def _schema(self, record_type: str | None) -> RecordTypeSchema | None:
        return self._registry.get(record_type) if record_type else None

    def _fetch(
        self, record_id: UUID | str, schema: RecordTypeSchema | None
    ) -> tuple[RecordTypeSchema, RecordInfo]:
        if schema is not None:
            info = self._store.get_record(schema.collection, record_id)
        else:
            info = self._store.find_record(record_id)
        if info is None:
            raise RecordNotFoundError(
                str(record_id), schema.name if schema is not None else None
            )
        return self._registry.get(info.record_type), info

    def _transition(
        self,
        schema: RecordTypeSchema,
        info: RecordInfo,
        action: LifecycleAction,
        actor: Actor,
    ) -> Transition:
        transition = self._workflow.find(
            info.status,
            action,
            is_admin=actor.is_admin,
            admin_override=schema.admin_override,
        )
        if transition is None:
            logger.warning(
                "transition_blocked",
                extra={
                    "action": action.value,
                    "status": info.status.value,
                    "actor_role": actor.role.value,
                },
            )
            raise RecordClosedError(str(info.id), info.status.value, action.value)
        return transition

    def _entry(self, transition: Transition, remarks: str, actor: Actor) -> HistoryEntry:
        return HistoryEntry(
            remarks=remarks,
            status=transition.history_kind,
            timestamp=self._clock.now(),
            updated_by=actor.name,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(
        self,
        record_type: str,
        fields: Mapping[str, Any],
        actor: Actor,
    ) -> RecordInfo:
        """
        File a new record.

        Postconditions:
            - status is Pending with a fresh tracking ID.
            - history holds exactly one ``Pending`` entry whose remarks are
              the supplied remarks or ``"<Type> record created"``.
        """
        schema = self._registry.get(record_type)
        normalized = self._normalize(schema, fields)
        self._check_required(schema, normalized)

        now = self._clock.now()
        remarks = normalized.pop("remarks", "") or ""
        date_time_in = normalized.pop("dateTimeIn", None) or now
        received_by = normalized.pop("receivedBy", None) or actor.name

        with LogContext.bind(actor=actor.name, record_type=schema.name):
            tracking_id = self._tracking.allocate(schema, at=now)
            document = dict(normalized)
            document.update(
                {
                    "trackingId": tracking_id,
                    "status": self._workflow.initial_state.value,
                    "dateTimeIn": date_time_in,
                    "remarks": remarks,
                    "receivedBy": received_by,
                    "remarksHistory": [
                        HistoryEntry(
                            remarks=remarks or schema.created_remarks,
                            status=self._workflow.initial_history_kind,
                            timestamp=now,
                            updated_by=actor.name,
                        )
                    ],
                }
            )
            info = self._store.add_record(schema.collection, document)
            logger.info(
                "record_created",
                extra={"record_id": str(info.id), "tracking_id": tracking_id},
            )
        return info

    def edit(
        self,
        record_id: UUID | str,
        fields: Mapping[str, Any],
        actor: Actor,
        *,
        record_type: str | None = None,
        expected_version: int | None = None,
    ) -> RecordInfo:
        """
        Merge corrected fields into a record and append an ``Edited`` entry.

        The entry's remarks are the new remarks text, or the current remarks
        when none is given.  ``Rejected`` stays ``Rejected``.
        """
        schema = self._schema(record_type)
        normalized = self._normalize(schema, fields) if schema is not None else None

        schema, info = self._fetch(record_id, schema)
        if normalized is None:
            normalized = self._normalize(schema, fields)

        if "dateTimeIn" in normalized and not actor.is_admin:
            if normalized["dateTimeIn"] != info.date_time_in:
                raise PermissionDeniedError(actor.name, "change Date/Time IN")
            del normalized["dateTimeIn"]

        self._check_required(schema, {**info.fields, **normalized})
        transition = self._transition(schema, info, LifecycleAction.EDIT, actor)

        new_remarks = normalized.pop("remarks", "") or ""
        partial = dict(normalized)
        partial["status"] = transition.to_state.value
        if new_remarks:
            partial["remarks"] = new_remarks

        with LogContext.bind_record(info, actor=actor.name):
            updated = self._store.update_record(
                schema.collection,
                info.id,
                partial,
                history_entry=self._entry(
                    transition, new_remarks or info.remarks, actor
                ),
                expected_version=expected_version,
                actor_name=actor.name,
            )
            logger.info(
                "record_edited",
                extra={
                    "fields_changed": sorted(partial),
                    "status": updated.status.value,
                },
            )
        return updated

    def reject(
        self,
        record_id: UUID | str,
        remarks: str,
        actor: Actor,
        *,
        record_type: str | None = None,
        expected_version: int | None = None,
    ) -> RecordInfo:
        """Reject a record with the given reason."""
        remarks = (remarks or "").strip()
        schema = self._schema(record_type)
        if schema is not None:
            self._check_reject_remarks(schema, remarks)

        schema, info = self._fetch(record_id, schema)
        self._check_reject_remarks(schema, remarks)
        transition = self._transition(schema, info, LifecycleAction.REJECT, actor)

        with LogContext.bind_record(info, actor=actor.name):
            updated = self._store.update_record(
                schema.collection,
                info.id,
                {"status": transition.to_state.value, "remarks": remarks},
                history_entry=self._entry(transition, remarks, actor),
                expected_version=expected_version,
                actor_name=actor.name,
            )
            logger.info("record_rejected", extra={"remarks": remarks})
        return updated

    @staticmethod
    def _check_reject_remarks(schema: RecordTypeSchema, remarks: str) -> None:
        if schema.remarks_required_on_reject and not remarks:
            raise ValidationError("Rejection remarks are required", "remarks")

    def time_out(
        self,
        record_id: UUID | str,
        date_time_out: datetime | str | None,
        remarks: str,
        actor: Actor,
        *,
        record_type: str | None = None,
        expected_version: int | None = None,
    ) -> RecordInfo:
        """
        Complete a record: stamp ``dateTimeOut`` and mark it ``Completed``.

        The record is re-read from the store first; a record deleted since
        the caller last listed it raises RecordNotFoundError.
        """
        if _is_blank(date_time_out):
            raise ValidationError("Date/Time OUT is required", "dateTimeOut")
        moment = self._parse_moment(date_time_out, "dateTimeOut")
        remarks = (remarks or "").strip()
        schema = self._schema(record_type)
        if schema is not None:
            self._check_time_out_remarks(schema, remarks)

        schema, info = self._fetch(record_id, schema)
        self._check_time_out_remarks(schema, remarks)
        transition = self._transition(schema, info, LifecycleAction.TIME_OUT, actor)

        partial: dict[str, Any] = {
            "status": transition.to_state.value,
            "dateTimeOut": moment,
            "timeOutRemarks": remarks or None,
        }
        if remarks:
            partial["remarks"] = remarks

        with LogContext.bind_record(info, actor=actor.name):
            updated = self._store.update_record(
                schema.collection,
                info.id,
                partial,
                history_entry=self._entry(transition, remarks, actor),
                expected_version=expected_version,
                actor_name=actor.name,
            )
            logger.info(
                "record_timed_out",
                extra={"date_time_out": moment},
            )
        return updated

    @staticmethod
    def _check_time_out_remarks(schema: RecordTypeSchema, remarks: str) -> None:
        if schema.remarks_required_on_time_out and not remarks:
            raise ValidationError("Time-out remarks are required", "remarks")

    def delete(
        self,
        record_id: UUID | str,
        actor: Actor,
        *,
        record_type: str | None = None,
        expected_version: int | None = None,
    ) -> RecordInfo:
        """
        Remove a record and its history.

        Closed (Rejected / Completed) records may only be deleted by admins.
        """
        schema, info = self._fetch(record_id, self._schema(record_type))
        if info.status != RecordStatus.PENDING and not actor.is_admin:
            raise PermissionDeniedError(actor.name, f"delete a {info.status.value} record")

        with LogContext.bind_record(info, actor=actor.name):
            removed = self._store.delete_record(
                schema.collection, info.id, expected_version=expected_version
            )
            logger.info("record_deleted")
        return removed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, record_type: str) -> list[RecordInfo]:
        """All records of a type in insertion order."""
        return self._store.list_records(self._registry.get(record_type).collection)

    def get_record(
        self, record_id: UUID | str, record_type: str | None = None
    ) -> RecordInfo:
        """Single record by id; raises RecordNotFoundError when absent."""
        return self._fetch(record_id, self._schema(record_type))[1]

    def available_actions(
        self, info: RecordInfo, actor: Actor
    ) -> tuple[LifecycleAction, ...]:
        """Lifecycle actions ``actor`` may take on ``info`` right now."""
        schema = self._registry.get(info.record_type)
        return self._workflow.actions_from(
            info.status, is_admin=actor.is_admin, admin_override=schema.admin_override
        )

    def preview_tracking_id(self, record_type: str) -> str:
        """Tracking ID the next ``create`` of this type would receive."""
        return self._tracking.preview(self._registry.get(record_type))
