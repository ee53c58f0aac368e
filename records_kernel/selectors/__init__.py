"""Selectors for the records kernel (read side)."""

from records_kernel.selectors.record_selector import (
    CSV_HEADER,
    REPORT_PERIODS,
    DashboardView,
    RecordSelector,
)

__all__ = [
    "CSV_HEADER",
    "REPORT_PERIODS",
    "DashboardView",
    "RecordSelector",
]
