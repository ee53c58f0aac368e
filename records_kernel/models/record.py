"""
Module: records_kernel.models.record
Responsibility: ORM persistence for tracked records of every type and their
    append-only remarks history.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/lifecycle.py (status enums) only.  MUST NOT import from services/,
    selectors/, or outer layers.

Invariants enforced:
    - tracking_id is unique and never changes after insert (ORM listener in
      db/immutability.py).
    - record_type never changes after insert.
    - date_time_out, once set, never changes.
    - version is the optimistic concurrency counter.  The application sets the
      next value; SQLAlchemy adds ``WHERE version = <old>`` to every UPDATE
      and raises StaleDataError when another session got there first.
    - seq is a store-wide monotonic insertion sequence (list order).
    - remarks history rows are append-only: never updated, only deleted
      together with their parent record.

Failure modes:
    - IntegrityError on duplicate tracking_id (uq_record_tracking_id) or
      duplicate history position (uq_history_position).
    - StaleDataError on concurrent modification (mapped to
      OptimisticLockError by the store adapter).

Audit relevance:
    The remarks history is the audit trail of a record: one entry per
    lifecycle transition with who and when.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from records_kernel.db.base import Base, TrackedBase, UUIDString
from records_kernel.domain.lifecycle import HistoryEntryKind, RecordStatus


class Record(TrackedBase):
    """
    One tracked document (voucher, leave, letter, ...).

    Contract:
        Core lifecycle columns are typed; the type-specific form fields live
        in ``details`` (JSON) and are validated against the record type
        schema by the lifecycle service before they reach this model.

    Guarantees:
        - ``status`` is one of RecordStatus.
        - ``history`` is ordered by ``position`` (append order).
    """

    __tablename__ = "records"

    __table_args__ = (
        UniqueConstraint("tracking_id", name="uq_record_tracking_id"),
        UniqueConstraint("seq", name="uq_record_seq"),
        Index("idx_record_type_seq", "record_type", "seq"),
        Index("idx_record_status", "status"),
        Index("idx_record_date_time_in", "date_time_in"),
    )

    # Record type name (e.g. "Voucher"); collection is derived from the catalogue
    record_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        active_history=True,
    )

    tracking_id: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        active_history=True,
    )

    # Global insertion sequence
    seq: Mapped[int] = mapped_column(
        nullable=False,
    )

    status: Mapped[RecordStatus] = mapped_column(
        String(20),
        nullable=False,
        default=RecordStatus.PENDING,
    )

    date_time_in: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    date_time_out: Mapped[datetime | None] = mapped_column(
        nullable=True,
        active_history=True,
    )

    remarks: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    time_out_remarks: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    received_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Type-specific form fields
    details: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    history: Mapped[list["RemarksHistoryEntry"]] = relationship(
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="RemarksHistoryEntry.position",
        lazy="selectin",
    )

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    def __repr__(self) -> str:
        return f"<Record {self.tracking_id} ({self.record_type}): {self.status}>"


class RemarksHistoryEntry(Base):
    """
    One append-only entry of a record's remarks history.

    Contract:
        Written once when a lifecycle transition fires.  Any UPDATE raises
        ImmutabilityViolationError; DELETE is only allowed as part of
        deleting the parent record.
    """

    __tablename__ = "remarks_history"

    __table_args__ = (
        UniqueConstraint("record_id", "position", name="uq_history_position"),
        Index("idx_history_record", "record_id"),
    )

    record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("records.id", ondelete="CASCADE"),
        nullable=False,
    )

    # 0-based position within the record's history
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    kind: Mapped[HistoryEntryKind] = mapped_column(
        String(20),
        nullable=False,
    )

    remarks: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    timestamp: Mapped[datetime] = mapped_column(
        nullable=False,
    )

    updated_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    record: Mapped[Record] = relationship(back_populates="history")

    def __repr__(self) -> str:
        return f"<RemarksHistoryEntry {self.record_id}#{self.position}: {self.kind}>"
