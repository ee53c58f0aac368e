"""
Module: records_kernel.selectors.record_selector
Responsibility: Cross-type read models over tracked records: the dashboard,
    free-text search, period reports (with CSV export), the receiving log
    and per-type monthly totals.
Architecture position: Kernel > Selectors.  Reads models/record.py; resolves
    per-type field roles (person, office, amount) from the record type
    registry.

Invariants enforced:
    - Read-only: no flush, add, delete or commit.
    - Periods are computed in the office timezone and filter on
      ``dateTimeIn``; weeks start on Sunday.
    - Monthly totals exclude Rejected records.

Failure modes:
    - ValueError for an unknown report period.
    - UnknownRecordTypeError for an unknown category.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from records_kernel.domain.dtos import DashboardRow, Report, ReportStats
from records_kernel.domain.lifecycle import HistoryEntryKind, RecordStatus
from records_kernel.domain.record_types import RecordTypeRegistry, RecordTypeSchema
from records_kernel.models.record import Record
from records_kernel.selectors.base import BaseSelector

REPORT_PERIODS = ("daily", "weekly", "monthly", "quarterly", "yearly")

CSV_HEADER = ("Tracking ID", "Category", "Date/Time IN", "Status", "Full Name")

# Fallback office fields, in order, when the type's own field is empty
_OFFICE_FALLBACKS = ("designationOffice", "designation", "officeAddress")


@dataclass(frozen=True)
class DashboardView:
    """All records across types plus how many sit in each status."""

    rows: tuple[DashboardRow, ...] = ()
    counts: dict[str, int] = field(default_factory=dict)


def _text(value) -> str:
    return "" if value is None else str(value).strip()


def _amount(value) -> Decimal | None:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _stats(rows: Iterable[DashboardRow]) -> ReportStats:
    rows = list(rows)
    return ReportStats(
        total=len(rows),
        pending=sum(1 for r in rows if r.status == RecordStatus.PENDING),
        completed=sum(1 for r in rows if r.status == RecordStatus.COMPLETED),
        rejected=sum(1 for r in rows if r.status == RecordStatus.REJECTED),
    )


class RecordSelector(BaseSelector[Record]):
    """Read models over the records table."""

    def __init__(
        self,
        session: Session,
        registry: RecordTypeRegistry,
        timezone_name: str = "UTC",
    ):
        super().__init__(session)
        self._registry = registry
        self._timezone = ZoneInfo(timezone_name)

    # ------------------------------------------------------------------
    # Row building
    # ------------------------------------------------------------------

    def _to_row(self, record: Record) -> DashboardRow:
        schema = self._registry.get(record.record_type)
        details = record.details or {}
        status = RecordStatus(record.status)

        office = _text(details.get(schema.office_field)) if schema.office_field else ""
        for fallback in _OFFICE_FALLBACKS:
            if office:
                break
            office = _text(details.get(fallback))

        rejected_at = None
        if status == RecordStatus.REJECTED:
            rejected_at = record.updated_at
            for entry in reversed(record.history):
                if entry.kind == HistoryEntryKind.REJECTED.value:
                    rejected_at = entry.timestamp
                    break

        return DashboardRow(
            record_id=record.id,
            category=schema.name,
            tracking_id=record.tracking_id,
            title=_text(details.get(schema.name_field)) or _text(details.get("fullName")),
            office=office,
            status=status,
            date_time_in=record.date_time_in,
            date_time_out=record.date_time_out,
            date_time_rejected=rejected_at,
            amount=_amount(details.get(schema.amount_field)) if schema.amount_field else None,
            remarks=record.remarks or "",
            received_by=record.received_by,
        )

    def _records(
        self,
        schemas: Sequence[RecordTypeSchema] | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Record]:
        stmt = select(Record).order_by(Record.seq)
        if schemas is not None:
            stmt = stmt.where(Record.record_type.in_([s.name for s in schemas]))
        if start is not None:
            stmt = stmt.where(Record.date_time_in >= start)
        if end is not None:
            stmt = stmt.where(Record.date_time_in < end)
        return list(self.session.execute(stmt).scalars())

    def _local_midnight(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self._timezone)

    # ------------------------------------------------------------------
    # Dashboard & search
    # ------------------------------------------------------------------

    def dashboard(self) -> DashboardView:
        """Every record of every configured type, in insertion order."""
        rows = tuple(
            self._to_row(record)
            for record in self._records(list(self._registry))
        )
        counts = {status.value: 0 for status in RecordStatus}
        for row in rows:
            counts[row.status.value] += 1
        return DashboardView(rows=rows, counts=counts)

    @staticmethod
    def search(rows: Iterable[DashboardRow], term: str) -> list[DashboardRow]:
        """Case-insensitive substring match over the visible row columns."""
        needle = (term or "").strip().lower()
        if not needle:
            return list(rows)
        matches = []
        for row in rows:
            haystack = (
                row.tracking_id,
                row.title,
                row.category,
                row.office,
                row.remarks,
                row.received_by,
            )
            if any(needle in value.lower() for value in haystack if value):
                matches.append(row)
        return matches

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def period_bounds(self, period: str, as_of: datetime) -> tuple[datetime, datetime]:
        """
        [start, end) of the reporting period containing ``as_of``.

        Raises:
            ValueError: If ``period`` is not one of REPORT_PERIODS.
        """
        if as_of.tzinfo is None:
            as_of = as_of.replace(tzinfo=self._timezone)
        day = as_of.astimezone(self._timezone).date()

        if period == "daily":
            first, last = day, day + timedelta(days=1)
        elif period == "weekly":
            # date.weekday(): Monday == 0, so Sunday is 6
            first = day - timedelta(days=(day.weekday() + 1) % 7)
            last = first + timedelta(days=7)
        elif period == "monthly":
            first = day.replace(day=1)
            last = date(day.year + day.month // 12, day.month % 12 + 1, 1)
        elif period == "quarterly":
            quarter_month = 3 * ((day.month - 1) // 3) + 1
            first = date(day.year, quarter_month, 1)
            next_month = quarter_month + 3
            last = date(day.year + (next_month > 12), (next_month - 1) % 12 + 1, 1)
        elif period == "yearly":
            first, last = date(day.year, 1, 1), date(day.year + 1, 1, 1)
        else:
            raise ValueError(f"Unknown report period: {period!r}")

        return self._local_midnight(first), self._local_midnight(last)

    def report(
        self,
        period: str,
        as_of: datetime,
        category: str | None = None,
    ) -> Report:
        """Records whose ``dateTimeIn`` falls in the period, with status counts."""
        start, end = self.period_bounds(period, as_of)
        schemas = [self._registry.get(category)] if category else list(self._registry)
        rows = tuple(
            self._to_row(record) for record in self._records(schemas, start, end)
        )
        return Report(
            period=period,
            start=start,
            end=end,
            category=schemas[0].name if category else None,
            rows=rows,
            stats=_stats(rows),
        )

    def report_to_csv(self, report: Report) -> str:
        """Render a report as CSV text with the standard header."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for row in report.rows:
            writer.writerow(
                (
                    row.tracking_id,
                    row.category,
                    row.date_time_in.astimezone(self._timezone).strftime("%Y-%m-%d %H:%M"),
                    row.status.value,
                    row.title,
                )
            )
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Receiving log & totals
    # ------------------------------------------------------------------

    def receiving_log(
        self,
        categories: Iterable[str] | None = None,
        record_ids: Iterable[UUID | str] | None = None,
    ) -> list[DashboardRow]:
        """Rows for the printable receiving log, newest ``dateTimeIn`` first."""
        schemas = (
            [self._registry.get(c) for c in categories]
            if categories is not None
            else list(self._registry)
        )
        rows = [self._to_row(record) for record in self._records(schemas)]
        if record_ids is not None:
            wanted = {str(record_id) for record_id in record_ids}
            rows = [row for row in rows if str(row.record_id) in wanted]
        rows.sort(key=lambda row: row.date_time_in, reverse=True)
        return rows

    def monthly_total(self, record_type: str, as_of: datetime) -> Decimal:
        """
        Sum of the type's amount field over this month's non-rejected records.

        Types without an amount field total to zero.
        """
        schema = self._registry.get(record_type)
        if schema.amount_field is None:
            return Decimal("0")
        start, end = self.period_bounds("monthly", as_of)
        total = Decimal("0")
        for record in self._records([schema], start, end):
            if record.status == RecordStatus.REJECTED.value:
                continue
            amount = _amount((record.details or {}).get(schema.amount_field))
            if amount is not None:
                total += amount
        return total
