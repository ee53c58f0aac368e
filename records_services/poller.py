"""
RecordPoller -- periodic refresh of record listings.

Contract:
    Calls ``fetch()`` every ``interval_seconds`` on a daemon thread and hands
    each result to ``on_refresh``.  ``poll_once()`` runs a single cycle on the
    caller's thread.

Architecture: records_services.  The fetch callable owns its own session
    (typically ``RecordsDesk.list_records``); the poller never touches the
    database directly.

Invariants enforced:
    - A failing fetch is logged and the loop keeps running.
    - ``stop()`` is honoured between cycles; an in-flight fetch completes.
"""

from __future__ import annotations

import threading
from typing import Any, Callable

from records_kernel.logging_config import get_logger

logger = get_logger("services.poller")

DEFAULT_POLL_INTERVAL_SECONDS = 30


class RecordPoller:
    """Background poller delivering fresh listings to a callback.

    Non-goals:
        - Does NOT diff results; every successful fetch is delivered.
        - Does NOT retry a failed fetch before the next interval.
    """

    def __init__(
        self,
        fetch: Callable[[], Any],
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        on_refresh: Callable[[Any], None] | None = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._fetch = fetch
        self._interval = interval_seconds
        self._on_refresh = on_refresh
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.last_result: Any = None
        self.failures = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def poll_once(self) -> bool:
        """Run one fetch/deliver cycle. Returns False if the fetch failed."""
        try:
            result = self._fetch()
        except Exception:
            self.failures += 1
            logger.exception("poll_failed", extra={"failures": self.failures})
            return False

        self.last_result = result
        if self._on_refresh is not None:
            try:
                self._on_refresh(result)
            except Exception:
                logger.exception("poll_callback_failed")
                return False
        logger.debug("poll_completed")
        return True

    def start(self) -> None:
        """Start polling on a daemon thread (no-op if already running)."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="records-poller",
            daemon=True,
        )
        self._thread.start()
        logger.info("poller_started", extra={"interval_seconds": self._interval})

    def stop(self, timeout: float = 5.0) -> None:
        """Signal stop and wait for the current cycle to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("poller_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(timeout=self._interval)
