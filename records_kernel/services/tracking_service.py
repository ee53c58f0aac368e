"""
TrackingIdService -- allocation of human-readable tracking IDs.

Responsibility:
    Turns (record type, creation instant) into the next
    ``(PREFIX) YYYY/MM/DD-NNN`` tracking ID.  The count comes from a locked
    counter row (SequenceService) so two clerks filing the same type at the
    same moment can never receive the same number.

Architecture position:
    Kernel > Services.  Uses SequenceService for allocation and
    domain/tracking_id.py for formatting.

Invariants enforced:
    - Scope ``daily``: one counter per (type, local date); the first record
      of a day is ``-001``.
    - Scope ``cumulative``: one counter per type; the count is the number of
      records of that type ever filed, plus one.
    - A counter that does not exist yet is seeded from the records already
      stored in its scope, so pre-existing data continues at ``n + 1``.

Failure modes:
    - ValueError for an unknown scope (rejected earlier by config validation).
"""

from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from records_kernel.domain.clock import Clock
from records_kernel.domain.record_types import RecordTypeSchema
from records_kernel.domain.tracking_id import (
    TRACKING_ID_PATTERN,
    format_tracking_id,
    local_date,
)
from records_kernel.logging_config import get_logger
from records_kernel.models.record import Record
from records_kernel.services.sequence_service import SequenceService

logger = get_logger("services.tracking")

SCOPE_DAILY = "daily"
SCOPE_CUMULATIVE = "cumulative"
SEQUENCE_SCOPES = (SCOPE_DAILY, SCOPE_CUMULATIVE)


class TrackingIdService:
    """
    Allocates tracking IDs for new records.

    Contract:
        ``allocate()`` consumes a number; ``preview()`` does not.  Both use
        the injected clock and the office timezone for the date part.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        timezone_name: str = "UTC",
        scope: str = SCOPE_CUMULATIVE,
    ):
        if scope not in SEQUENCE_SCOPES:
            raise ValueError(f"Unknown tracking sequence scope: {scope}")
        self._session = session
        self._clock = clock
        self._timezone_name = timezone_name
        self._scope = scope
        self._sequences = SequenceService(session)

    def sequence_name(self, schema: RecordTypeSchema, on: date) -> str:
        if self._scope == SCOPE_DAILY:
            return f"tracking:{schema.prefix}:{on.isoformat()}"
        return f"tracking:{schema.prefix}"

    def _existing_count(self, schema: RecordTypeSchema, on: date) -> int:
        if self._scope == SCOPE_CUMULATIVE:
            return self._session.execute(
                select(func.count(Record.id)).where(
                    Record.record_type == schema.name
                )
            ).scalar_one()

        # Highest suffix already issued for this prefix and date
        stem = format_tracking_id(schema.prefix, on, 1)[:-3]
        tracking_ids = self._session.execute(
            select(Record.tracking_id).where(Record.tracking_id.startswith(stem))
        ).scalars()
        highest = 0
        for tracking_id in tracking_ids:
            match = TRACKING_ID_PATTERN.match(tracking_id)
            if match is not None:
                highest = max(highest, int(match["count"]))
        return highest

    def _office_date(self, at: datetime | None) -> date:
        if at is None:
            return self._clock.today(self._timezone_name)
        return local_date(at, self._timezone_name)

    def allocate(self, schema: RecordTypeSchema, at: datetime | None = None) -> str:
        """
        Consume the next tracking number for ``schema``.

        Args:
            schema: Record type being filed.
            at: Creation instant; defaults to today in the office timezone.
        """
        on = self._office_date(at)
        count = self._sequences.next_value(
            self.sequence_name(schema, on),
            seed=lambda: self._existing_count(schema, on),
        )
        tracking_id = format_tracking_id(schema.prefix, on, count)
        logger.info(
            "tracking_id_allocated",
            extra={
                "record_type": schema.name,
                "tracking_id": tracking_id,
                "scope": self._scope,
            },
        )
        return tracking_id

    def preview(self, schema: RecordTypeSchema, at: datetime | None = None) -> str:
        """Tracking ID the next ``allocate()`` would return, without consuming it."""
        on = self._office_date(at)
        current = self._sequences.current_value(self.sequence_name(schema, on))
        if current is None:
            current = self._existing_count(schema, on)
        return format_tracking_id(schema.prefix, on, current + 1)
