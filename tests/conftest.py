"""
Pytest fixtures for the records office test suite.

Provides:
- An in-memory SQLite database per test (fresh schema, immutability
  listeners active)
- Kernel services wired with a deterministic clock
- The packaged records configuration
- Structured log capture

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  in-memory SQLite.  Tables are dropped and recreated for every test.
"""

import json
import logging
import os
from collections.abc import Generator
from decimal import Decimal
from io import StringIO
from typing import Any

import pytest
from sqlalchemy.orm import Session

from records_config import RecordsConfig, get_active_config
from records_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from records_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from records_kernel.domain.clock import DeterministicClock
from records_kernel.domain.dtos import Actor, UserRole
from records_kernel.domain.record_types import RecordTypeRegistry
from records_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from records_kernel.selectors.record_selector import RecordSelector
from records_kernel.services.designation_service import DesignationService
from records_kernel.services.lifecycle_service import RecordLifecycleService
from records_kernel.services.record_store import RecordStore
from records_kernel.services.user_service import UserService
from records_services.desk import RecordsDesk

DEFAULT_DATABASE_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture records_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, lifecycle):
            lifecycle.create(...)
            logs = captured_logs()
            assert any(r["message"] == "record_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("records_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    """Immutability listeners are registered once and remain active."""
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


@pytest.fixture(scope="function")
def db_engine():
    """Fresh database and schema for every test."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    drop_tables()
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the per-test engine (used by RecordsDesk)."""
    return get_session_factory()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Services flush, never commit; everything is rolled back at teardown.
    Do not mix with RecordsDesk in the same test: an in-memory database has
    a single shared connection.
    """
    sess = get_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


# =============================================================================
# Configuration fixtures
# =============================================================================


@pytest.fixture(scope="session")
def records_config() -> RecordsConfig:
    """The packaged configuration, without environment overrides."""
    return get_active_config(environ={})


@pytest.fixture(scope="session")
def registry(records_config) -> RecordTypeRegistry:
    return records_config.registry()


# =============================================================================
# Actors and clock
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing (2024-01-15 09:00 UTC)."""
    return DeterministicClock()


@pytest.fixture
def test_actor() -> Actor:
    """A front desk clerk."""
    return Actor(name="Test Clerk")


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(name="Records Admin", role=UserRole.ADMIN)


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def lifecycle(session, registry, records_config, deterministic_clock) -> RecordLifecycleService:
    return RecordLifecycleService(
        session,
        registry,
        deterministic_clock,
        timezone_name=records_config.timezone,
        tracking_scope=records_config.tracking_sequence,
    )


@pytest.fixture
def record_store(session, registry, deterministic_clock) -> RecordStore:
    return RecordStore(session, registry, deterministic_clock)


@pytest.fixture
def record_selector(session, registry, records_config) -> RecordSelector:
    return RecordSelector(session, registry, timezone_name=records_config.timezone)


@pytest.fixture
def designation_service(session) -> DesignationService:
    return DesignationService(session)


@pytest.fixture
def user_service(session, deterministic_clock) -> UserService:
    return UserService(session, deterministic_clock, session_ttl_minutes=60)


@pytest.fixture
def desk(session_factory, records_config, deterministic_clock) -> RecordsDesk:
    return RecordsDesk(session_factory, records_config, deterministic_clock)


# =============================================================================
# Record data builders
# =============================================================================


def make_voucher_fields(**overrides: Any) -> dict[str, Any]:
    """Complete Voucher form data."""
    fields: dict[str, Any] = {
        "dvNo": "DV-001",
        "payee": "Juan Dela Cruz",
        "particulars": "Office supplies",
        "designationOffice": "Admin",
        "amount": Decimal("1500.00"),
        "voucherType": "Cash Advance",
        "funds": "General Fund",
    }
    fields.update(overrides)
    return fields


def make_letter_fields(**overrides: Any) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "fullName": "Maria Santos",
        "designationOffice": "Manager",
        "particulars": "Request for records",
    }
    fields.update(overrides)
    return fields


def make_locator_fields(**overrides: Any) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "fullName": "Pedro Reyes",
        "designation": "Staff",
        "inclusiveDateStart": "2024-01-15",
        "inclusiveDateEnd": "2024-01-16",
        "purpose": "Site inspection",
        "placeOfAssignment": "Provincial Capitol",
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def voucher_fields() -> dict[str, Any]:
    return make_voucher_fields()


@pytest.fixture
def create_voucher(lifecycle, test_actor):
    """Factory creating a Voucher through the lifecycle engine."""

    def _create(actor: Actor | None = None, **overrides: Any):
        return lifecycle.create("Voucher", make_voucher_fields(**overrides), actor or test_actor)

    return _create
