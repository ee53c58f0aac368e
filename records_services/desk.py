"""
records_services.desk -- RecordsDesk, the front-desk facade.

Responsibility:
    Wires the kernel services for one unit of work and runs every desk
    operation in its own transaction.  Kernel exceptions never escape a
    mutating call: they are converted into a ``DeskResult`` carrying a
    clerk-facing message and the machine-readable error code.

Architecture position:
    Services -- sits above records_kernel and records_config.  This is the
    only place kernel services are constructed for interactive use (CLI,
    poller callbacks).

Invariants enforced:
    - One transaction per operation: a failed operation rolls back and
      leaves persisted state unchanged.
    - Nothing is retried.  A failed result is returned to the caller, who
      may refresh and try again.

Failure modes (as DeskResult messages):
    - ValidationError        -> the validation message.
    - RecordNotFoundError    -> "Record not found. It may have been deleted
                                or the data is out of sync."
    - StoreError             -> "Error performing operation".  Any
                                SQLAlchemyError, including one raised at
                                commit, is wrapped as a StoreError first.
    - other kernel errors    -> their message.

Usage:
    desk = RecordsDesk(get_session_factory(), get_active_config())
    result = desk.create("Voucher", {"dvNo": "DV-001", ...}, actor)
    if not result.ok:
        print(result.message)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from records_config.schema import RecordsConfig
from records_kernel.db.engine import session_scope
from records_kernel.domain.clock import Clock, SystemClock
from records_kernel.domain.dtos import Actor, DashboardRow, RecordInfo, Report
from records_kernel.exceptions import (
    RecordNotFoundError,
    RecordsKernelError,
    StoreError,
    ValidationError,
)
from records_kernel.logging_config import LogContext, get_logger
from records_kernel.selectors.record_selector import DashboardView, RecordSelector
from records_kernel.services.designation_service import DesignationService
from records_kernel.services.lifecycle_service import RecordLifecycleService
from records_kernel.services.user_service import SessionToken, UserInfo, UserService

logger = get_logger("services.desk")

T = TypeVar("T")

NOT_FOUND_MESSAGE = (
    "Record not found. It may have been deleted or the data is out of sync."
)
STORE_ERROR_MESSAGE = "Error performing operation"


@dataclass(frozen=True)
class DeskResult:
    """Outcome of a desk operation.

    ``record`` is set by record commands, ``value`` by everything else.
    ``code`` is the kernel error code on failure, ``None`` on success.
    """

    ok: bool
    message: str
    code: str | None = None
    record: RecordInfo | None = None
    value: Any = None

    @classmethod
    def success(
        cls, message: str, record: RecordInfo | None = None, value: Any = None
    ) -> DeskResult:
        return cls(ok=True, message=message, record=record, value=value)

    @classmethod
    def failure(cls, error: RecordsKernelError) -> DeskResult:
        return cls(ok=False, message=user_message(error), code=error.code)


def user_message(error: RecordsKernelError) -> str:
    """Clerk-facing text for a kernel error."""
    if isinstance(error, ValidationError):
        return str(error)
    if isinstance(error, RecordNotFoundError):
        return NOT_FOUND_MESSAGE
    if isinstance(error, StoreError):
        return STORE_ERROR_MESSAGE
    return str(error)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures (including at commit) as StoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "desk_store_failure",
            extra={"operation": operation, "error_type": type(exc).__name__},
        )
        raise StoreError(operation, "database", str(exc)) from exc


class _UnitOfWork:
    """Kernel services bound to one session."""

    def __init__(self, session: Session, config: RecordsConfig, clock: Clock):
        registry = config.registry()
        self.session = session
        self.lifecycle = RecordLifecycleService(
            session,
            registry,
            clock,
            timezone_name=config.timezone,
            tracking_scope=config.tracking_sequence,
        )
        self.selector = RecordSelector(session, registry, timezone_name=config.timezone)
        self.designations = DesignationService(session)
        self.users = UserService(
            session, clock, session_ttl_minutes=config.session_ttl_minutes
        )


class RecordsDesk:
    """Front-desk facade over the records kernel.

    Contract:
        Every public method opens its own ``session_scope`` and returns a
        DeskResult.  Read helpers that return plain values (``dashboard``,
        ``report`` ...) raise kernel errors instead, since there is nothing
        to roll back.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        config: RecordsConfig,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._clock = clock or SystemClock()
        self._registry = config.registry()

    @property
    def config(self) -> RecordsConfig:
        return self._config

    def _run(
        self,
        operation: str,
        work: Callable[[_UnitOfWork], DeskResult],
        actor: Actor | None = None,
    ) -> DeskResult:
        with LogContext.bind(actor=actor.name if actor is not None else None):
            try:
                with _store_errors(operation):
                    with session_scope(self._session_factory) as session:
                        return work(_UnitOfWork(session, self._config, self._clock))
            except RecordsKernelError as exc:
                logger.warning(
                    "desk_operation_failed",
                    extra={"operation": operation, "error_code": exc.code},
                )
                return DeskResult.failure(exc)

    def _read(self, work: Callable[[_UnitOfWork], T]) -> T:
        with _store_errors("read"):
            with session_scope(self._session_factory) as session:
                return work(_UnitOfWork(session, self._config, self._clock))

    def _label(self, record_type: str) -> str:
        return self._registry.get(record_type).name

    # ------------------------------------------------------------------
    # Record commands
    # ------------------------------------------------------------------

    def create(
        self, record_type: str, fields: Mapping[str, Any], actor: Actor
    ) -> DeskResult:
        def work(uow: _UnitOfWork) -> DeskResult:
            info = uow.lifecycle.create(record_type, fields, actor)
            return DeskResult.success(f"{info.record_type} added successfully", info)

        return self._run("create", work, actor)

    def edit(
        self,
        record_id: UUID | str,
        fields: Mapping[str, Any],
        actor: Actor,
        *,
        record_type: str | None = None,
        expected_version: int | None = None,
    ) -> DeskResult:
        def work(uow: _UnitOfWork) -> DeskResult:
            info = uow.lifecycle.edit(
                record_id,
                fields,
                actor,
                record_type=record_type,
                expected_version=expected_version,
            )
            return DeskResult.success(f"{info.record_type} updated successfully", info)

        return self._run("edit", work, actor)

    def reject(
        self,
        record_id: UUID | str,
        remarks: str,
        actor: Actor,
        *,
        record_type: str | None = None,
        expected_version: int | None = None,
    ) -> DeskResult:
        def work(uow: _UnitOfWork) -> DeskResult:
            info = uow.lifecycle.reject(
                record_id,
                remarks,
                actor,
                record_type=record_type,
                expected_version=expected_version,
            )
            return DeskResult.success(f"{info.record_type} rejected successfully", info)

        return self._run("reject", work, actor)

    def time_out(
        self,
        record_id: UUID | str,
        date_time_out: datetime | str | None,
        remarks: str,
        actor: Actor,
        *,
        record_type: str | None = None,
        expected_version: int | None = None,
    ) -> DeskResult:
        def work(uow: _UnitOfWork) -> DeskResult:
            info = uow.lifecycle.time_out(
                record_id,
                date_time_out,
                remarks,
                actor,
                record_type=record_type,
                expected_version=expected_version,
            )
            return DeskResult.success("Time out recorded successfully", info)

        return self._run("time_out", work, actor)

    def delete(
        self,
        record_id: UUID | str,
        actor: Actor,
        *,
        record_type: str | None = None,
        expected_version: int | None = None,
    ) -> DeskResult:
        def work(uow: _UnitOfWork) -> DeskResult:
            info = uow.lifecycle.delete(
                record_id,
                actor,
                record_type=record_type,
                expected_version=expected_version,
            )
            return DeskResult.success(f"{info.record_type} deleted successfully", info)

        return self._run("delete", work, actor)

    # ------------------------------------------------------------------
    # Record queries
    # ------------------------------------------------------------------

    def list_records(self, record_type: str) -> DeskResult:
        """All records of a type; a failed load yields an error result."""

        def work(uow: _UnitOfWork) -> DeskResult:
            records = uow.lifecycle.get(record_type)
            return DeskResult.success(
                f"Loaded {len(records)} {self._label(record_type)} records",
                value=records,
            )

        return self._run("list", work)

    def get_record(
        self, record_id: UUID | str, record_type: str | None = None
    ) -> DeskResult:
        def work(uow: _UnitOfWork) -> DeskResult:
            info = uow.lifecycle.get_record(record_id, record_type)
            return DeskResult.success(info.tracking_id, info)

        return self._run("get", work)

    def preview_tracking_id(self, record_type: str) -> str:
        return self._read(lambda uow: uow.lifecycle.preview_tracking_id(record_type))

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def dashboard(self, search: str | None = None) -> DashboardView:
        def work(uow: _UnitOfWork) -> DashboardView:
            view = uow.selector.dashboard()
            if search:
                rows = tuple(uow.selector.search(view.rows, search))
                return DashboardView(rows=rows, counts=view.counts)
            return view

        return self._read(work)

    def report(
        self, period: str, as_of: datetime | None = None, category: str | None = None
    ) -> Report:
        moment = as_of or self._clock.now()
        return self._read(lambda uow: uow.selector.report(period, moment, category))

    def report_csv(
        self, period: str, as_of: datetime | None = None, category: str | None = None
    ) -> str:
        moment = as_of or self._clock.now()

        def work(uow: _UnitOfWork) -> str:
            return uow.selector.report_to_csv(uow.selector.report(period, moment, category))

        return self._read(work)

    def receiving_log(
        self,
        categories: Iterable[str] | None = None,
        record_ids: Iterable[UUID | str] | None = None,
    ) -> list[DashboardRow]:
        return self._read(lambda uow: uow.selector.receiving_log(categories, record_ids))

    def monthly_total(self, record_type: str, as_of: datetime | None = None) -> Decimal:
        moment = as_of or self._clock.now()
        return self._read(lambda uow: uow.selector.monthly_total(record_type, moment))

    # ------------------------------------------------------------------
    # Designations
    # ------------------------------------------------------------------

    def designations(self) -> list[str]:
        return self._read(lambda uow: uow.designations.list())

    def add_designation(self, name: str) -> DeskResult:
        return self._run(
            "add_designation",
            lambda uow: DeskResult.success(
                "Designation added", value=uow.designations.add(name)
            ),
        )

    def rename_designation(self, old_name: str, new_name: str) -> DeskResult:
        return self._run(
            "rename_designation",
            lambda uow: DeskResult.success(
                "Designation renamed", value=uow.designations.rename(old_name, new_name)
            ),
        )

    def remove_designation(self, name: str) -> DeskResult:
        return self._run(
            "remove_designation",
            lambda uow: DeskResult.success(
                "Designation removed", value=uow.designations.remove(name)
            ),
        )

    def save_designations(self, names: Iterable[str]) -> DeskResult:
        names = list(names)
        return self._run(
            "save_designations",
            lambda uow: DeskResult.success(
                "Designations saved successfully",
                value=uow.designations.replace_all(names),
            ),
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def add_user(
        self,
        username: str,
        password: str,
        name: str | None = None,
        role: str = "user",
    ) -> DeskResult:
        def work(uow: _UnitOfWork) -> DeskResult:
            user = uow.users.add_user(username, password, name=name, role=role)
            return DeskResult.success(f"User {user.username} added", value=user)

        return self._run("add_user", work)

    def login(self, username: str, password: str) -> DeskResult:
        def work(uow: _UnitOfWork) -> DeskResult:
            token: SessionToken = uow.users.authenticate(username, password)
            return DeskResult.success(f"Welcome, {token.user.name}", value=token)

        return self._run("login", work)

    def resolve_actor(self, token: str) -> Actor:
        """Actor for a live session token; raises SessionExpiredError."""

        def work(uow: _UnitOfWork) -> Actor:
            user: UserInfo = uow.users.resolve(token)
            return user.as_actor()

        return self._read(work)

    def users(self) -> list[UserInfo]:
        return self._read(lambda uow: uow.users.list_users())

    def delete_user(self, user_id: UUID | str) -> DeskResult:
        def work(uow: _UnitOfWork) -> DeskResult:
            uow.users.delete_user(user_id)
            return DeskResult.success("User deleted")

        return self._run("delete_user", work)

    def logout(self, token: str) -> DeskResult:
        def work(uow: _UnitOfWork) -> DeskResult:
            uow.users.logout(token)
            return DeskResult.success("Logged out")

        return self._run("logout", work)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initialize(self, admin_password: str | None = None) -> DeskResult:
        """Seed default designations and, when given a password, the first admin."""

        def work(uow: _UnitOfWork) -> DeskResult:
            names = uow.designations.seed_defaults(self._config.default_designations)
            admin = None
            if admin_password:
                admin = uow.users.ensure_bootstrap_admin(
                    self._config.bootstrap_admin_username, admin_password
                )
            message = "Records office initialized"
            if admin is not None:
                message += f"; created admin user {admin.username}"
            return DeskResult.success(message, value=names)

        return self._run("initialize", work)
