"""
Data Transfer Objects for the records kernel.

Responsibility:
    Immutable value objects that cross the service boundary.  Services and
    selectors return these instead of ORM instances so that callers (the
    desk facade, the CLI, tests) never hold live session state.

Architecture position:
    Kernel > Domain -- pure value objects, no I/O.

Invariants enforced:
    - All DTOs are frozen dataclasses.
    - ``RecordInfo.history`` is a tuple in append order; earlier entries are
      never rewritten.
    - ``RecordInfo.to_document()`` yields the camelCase document view used by
      the store adapter and the command line.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from records_kernel.domain.lifecycle import HistoryEntryKind, RecordStatus


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation.

    ``name`` is the display name written to ``receivedBy`` and to history
    ``updatedBy``.
    """

    name: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class HistoryEntry:
    """One entry of a record's remarks history."""

    remarks: str
    status: HistoryEntryKind
    timestamp: datetime
    updated_by: str

    def to_document(self) -> dict[str, Any]:
        return {
            "remarks": self.remarks,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "updatedBy": self.updated_by,
        }


@dataclass(frozen=True)
class RecordInfo:
    """
    Immutable view of one tracked record.

    ``fields`` holds the type-specific form fields (``dvNo``, ``payee``,
    ``fullName``, ...) exactly as captured; numeric fields are Decimals.
    """

    id: UUID
    record_type: str
    collection: str
    tracking_id: str
    status: RecordStatus
    date_time_in: datetime
    date_time_out: datetime | None
    remarks: str
    time_out_remarks: str | None
    received_by: str
    fields: dict[str, Any]
    history: tuple[HistoryEntry, ...]
    version: int
    seq: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == RecordStatus.PENDING

    def get(self, name: str, default: Any = None) -> Any:
        """Type-specific field value, or ``default`` if absent."""
        return self.fields.get(name, default)

    def last_history(self, kind: HistoryEntryKind) -> HistoryEntry | None:
        """Most recent history entry with the given tag."""
        for entry in reversed(self.history):
            if entry.status == kind:
                return entry
        return None

    def to_document(self) -> dict[str, Any]:
        """Flat camelCase document view of the record."""
        document: dict[str, Any] = dict(self.fields)
        document.update(
            {
                "id": str(self.id),
                "trackingId": self.tracking_id,
                "status": self.status.value,
                "dateTimeIn": self.date_time_in,
                "dateTimeOut": self.date_time_out,
                "remarks": self.remarks,
                "timeOutRemarks": self.time_out_remarks,
                "receivedBy": self.received_by,
                "remarksHistory": [entry.to_document() for entry in self.history],
                "version": self.version,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
            }
        )
        return document


@dataclass(frozen=True)
class DashboardRow:
    """One row of the cross-type dashboard / receiving log."""

    record_id: UUID
    category: str
    tracking_id: str
    title: str
    office: str
    status: RecordStatus
    date_time_in: datetime
    date_time_out: datetime | None
    date_time_rejected: datetime | None
    amount: Decimal | None
    remarks: str
    received_by: str


@dataclass(frozen=True)
class ReportStats:
    total: int = 0
    pending: int = 0
    completed: int = 0
    rejected: int = 0


@dataclass(frozen=True)
class Report:
    """Records whose ``dateTimeIn`` falls inside a reporting period."""

    period: str
    start: datetime
    end: datetime
    category: str | None
    rows: tuple[DashboardRow, ...] = ()
    stats: ReportStats = field(default_factory=ReportStats)
