"""
Pure domain layer.

This module contains value objects and rules with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (SystemClock aside)

All domain objects are immutable and deterministic.
"""

from records_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from records_kernel.domain.dtos import (
    Actor,
    DashboardRow,
    HistoryEntry,
    RecordInfo,
    Report,
    ReportStats,
    UserRole,
)
from records_kernel.domain.lifecycle import (
    RECORD_WORKFLOW,
    HistoryEntryKind,
    LifecycleAction,
    RecordStatus,
    RecordWorkflow,
    Transition,
)
from records_kernel.domain.record_types import RecordTypeRegistry, RecordTypeSchema
from records_kernel.domain.tracking_id import (
    TRACKING_ID_PATTERN,
    TrackingId,
    format_tracking_id,
    local_date,
    parse_tracking_id,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Actor",
    "UserRole",
    "HistoryEntry",
    "RecordInfo",
    "DashboardRow",
    "Report",
    "ReportStats",
    "RecordStatus",
    "HistoryEntryKind",
    "LifecycleAction",
    "Transition",
    "RecordWorkflow",
    "RECORD_WORKFLOW",
    "RecordTypeSchema",
    "RecordTypeRegistry",
    "TRACKING_ID_PATTERN",
    "TrackingId",
    "format_tracking_id",
    "parse_tracking_id",
    "local_date",
]
