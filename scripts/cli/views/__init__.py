"""CLI views: record listings and history, dashboard, reports, receiving log."""

from scripts.cli.views.records import show_history, show_records, show_result
from scripts.cli.views.reports import show_dashboard, show_receiving_log, show_report

__all__ = [
    "show_dashboard",
    "show_history",
    "show_receiving_log",
    "show_records",
    "show_report",
    "show_result",
]
