"""
records_services -- Package init and public API.

Responsibility:
    Interactive surface over the records kernel: the ``RecordsDesk`` facade,
    which runs each operation in its own transaction and turns kernel
    errors into clerk-facing results, and the ``RecordPoller`` that keeps
    listings fresh.

Architecture position:
    Services -- above records_kernel and records_config.

    Dependency direction:
        records_services/ -> records_kernel/  (allowed)
        records_services/ -> records_config/  (allowed)
        records_kernel/   -> records_services/ (FORBIDDEN)
"""

from records_services.desk import (
    NOT_FOUND_MESSAGE,
    STORE_ERROR_MESSAGE,
    DeskResult,
    RecordsDesk,
    user_message,
)
from records_services.poller import DEFAULT_POLL_INTERVAL_SECONDS, RecordPoller

__all__ = [
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DeskResult",
    "NOT_FOUND_MESSAGE",
    "RecordPoller",
    "RecordsDesk",
    "STORE_ERROR_MESSAGE",
    "user_message",
]
