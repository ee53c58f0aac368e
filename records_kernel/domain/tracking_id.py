"""
Tracking ID format (``records_kernel.domain.tracking_id``).

Responsibility
--------------
Pure formatting and parsing of human-readable tracking IDs of the form
``(PREFIX) YYYY/MM/DD-NNN``.  Allocation of the sequence number lives in
``services/tracking_service.py``; this module never touches the store.

Invariants enforced
-------------------
* The count is zero-padded to a MINIMUM of three digits (``-1000`` is
  valid once a day passes 999 records).
* The date part is the creation date in the office's local timezone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from records_kernel.exceptions import ValidationError

TRACKING_ID_PATTERN = re.compile(
    r"^\((?P<prefix>[A-Z]{1,3})\) "
    r"(?P<year>\d{4})/(?P<month>\d{2})/(?P<day>\d{2})"
    r"-(?P<count>\d{3,})$"
)


@dataclass(frozen=True)
class TrackingId:
    """Parsed tracking ID."""

    prefix: str
    on: date
    count: int

    def __str__(self) -> str:
        return format_tracking_id(self.prefix, self.on, self.count)


def format_tracking_id(prefix: str, on: date, count: int) -> str:
    """Render ``(prefix) YYYY/MM/DD-NNN``.

    Raises:
        ValueError: If ``count`` is not positive.
    """
    if count < 1:
        raise ValueError(f"Tracking count must be positive, got {count}")
    return f"({prefix}) {on.year:04d}/{on.month:02d}/{on.day:02d}-{count:03d}"


def parse_tracking_id(value: str) -> TrackingId:
    """Parse a tracking ID string.

    Raises:
        ValidationError: If ``value`` does not match the tracking ID format.
    """
    match = TRACKING_ID_PATTERN.match(value.strip()) if value else None
    if match is None:
        raise ValidationError(f"Malformed tracking ID: {value!r}", "trackingId")
    try:
        on = date(int(match["year"]), int(match["month"]), int(match["day"]))
    except ValueError as exc:
        raise ValidationError(
            f"Malformed tracking ID date: {value!r}", "trackingId"
        ) from exc
    return TrackingId(prefix=match["prefix"], on=on, count=int(match["count"]))


def local_date(moment: datetime, timezone_name: str) -> date:
    """Calendar date of ``moment`` in the named IANA timezone."""
    return moment.astimezone(ZoneInfo(timezone_name)).date()
