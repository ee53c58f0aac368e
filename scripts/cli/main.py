#!/usr/bin/env python3
"""
Records office command line.

Thin argparse front end over ``RecordsDesk``.  Every command opens its own
transaction through the desk; failures are printed as the same clerk-facing
messages the desk returns and give exit status 1.

Usage:
    python -m scripts.cli.main init-db --admin-password secret
    python -m scripts.cli.main login admin secret
    python -m scripts.cli.main --token TOKEN create Voucher \\
        -f dvNo=DV-001 -f payee="Juan Cruz" -f amount=1500 ...
    python -m scripts.cli.main list Voucher
    python -m scripts.cli.main report monthly --csv

The acting clerk is resolved from ``--token`` (or RECORDS_SESSION_TOKEN);
without a token, ``--actor`` names a non-admin clerk.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Sequence
from typing import Any
from zoneinfo import ZoneInfo

from records_config import ConfigError, RecordsConfig, get_active_config
from records_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from records_kernel.db.immutability import register_immutability_listeners
from records_kernel.domain.clock import Clock, SystemClock
from records_kernel.domain.dtos import Actor
from records_kernel.exceptions import RecordsKernelError
from records_kernel.logging_config import configure_logging
from records_kernel.selectors.record_selector import REPORT_PERIODS
from records_services.desk import RecordsDesk, user_message
from scripts.cli import config as cli_config
from scripts.cli.util import fmt_local, parse_fields, parse_moment
from scripts.cli.views import (
    show_dashboard,
    show_history,
    show_receiving_log,
    show_records,
    show_report,
    show_result,
)


class _Context:
    """Per-invocation wiring shared by the command handlers."""

    def __init__(self, args: argparse.Namespace, config: RecordsConfig, clock: Clock):
        self.args = args
        self.config = config
        self.clock = clock
        self.tz = ZoneInfo(config.timezone)
        self.desk = RecordsDesk(get_session_factory(), config, clock)

    def actor(self) -> Actor:
        token = self.args.token or os.environ.get(cli_config.TOKEN_ENV)
        if token:
            return self.desk.resolve_actor(token)
        return Actor(name=self.args.actor)

    def fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = parse_fields(self.args.field)
        if self.args.remarks is not None:
            fields["remarks"] = self.args.remarks
        return fields


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_init_db(ctx: _Context) -> int:
    create_tables()
    return show_result(ctx.desk.initialize(ctx.args.admin_password))


def cmd_login(ctx: _Context) -> int:
    result = ctx.desk.login(ctx.args.username, ctx.args.password)
    print(result.message)
    if not result.ok:
        return 1
    print(f"  token:   {result.value.token}")
    print(f"  expires: {fmt_local(result.value.expires_at, ctx.tz)}")
    return 0


def cmd_create(ctx: _Context) -> int:
    return show_result(ctx.desk.create(ctx.args.record_type, ctx.fields(), ctx.actor()))


def cmd_edit(ctx: _Context) -> int:
    return show_result(
        ctx.desk.edit(
            ctx.args.record_id,
            ctx.fields(),
            ctx.actor(),
            record_type=ctx.args.type,
            expected_version=ctx.args.expected_version,
        )
    )


def cmd_reject(ctx: _Context) -> int:
    return show_result(
        ctx.desk.reject(
            ctx.args.record_id,
            ctx.args.remarks,
            ctx.actor(),
            record_type=ctx.args.type,
            expected_version=ctx.args.expected_version,
        )
    )


def cmd_time_out(ctx: _Context) -> int:
    moment = parse_moment(ctx.args.at, ctx.tz) or ctx.clock.now()
    return show_result(
        ctx.desk.time_out(
            ctx.args.record_id,
            moment,
            ctx.args.remarks,
            ctx.actor(),
            record_type=ctx.args.type,
            expected_version=ctx.args.expected_version,
        )
    )


def cmd_delete(ctx: _Context) -> int:
    return show_result(
        ctx.desk.delete(
            ctx.args.record_id,
            ctx.actor(),
            record_type=ctx.args.type,
            expected_version=ctx.args.expected_version,
        )
    )


def cmd_list(ctx: _Context) -> int:
    result = ctx.desk.list_records(ctx.args.record_type)
    if not result.ok:
        print(result.message)
        return 1
    if ctx.args.json:
        documents = [info.to_document() for info in result.value]
        print(json.dumps(documents, default=str, indent=2))
        return 0
    show_records(result.value, ctx.tz)
    print(result.message)
    return 0


def cmd_history(ctx: _Context) -> int:
    result = ctx.desk.get_record(ctx.args.record_id, ctx.args.type)
    if not result.ok:
        print(result.message)
        return 1
    show_history(result.record, ctx.tz)
    return 0


def cmd_dashboard(ctx: _Context) -> int:
    show_dashboard(ctx.desk.dashboard(search=ctx.args.search), ctx.tz)
    return 0


def cmd_report(ctx: _Context) -> int:
    as_of = parse_moment(ctx.args.as_of, ctx.tz)
    if ctx.args.csv:
        sys.stdout.write(ctx.desk.report_csv(ctx.args.period, as_of, ctx.args.category))
        return 0
    show_report(ctx.desk.report(ctx.args.period, as_of, ctx.args.category), ctx.tz)
    return 0


def cmd_receiving_log(ctx: _Context) -> int:
    show_receiving_log(ctx.desk.receiving_log(ctx.args.category, ctx.args.id), ctx.tz)
    return 0


def cmd_designations(ctx: _Context) -> int:
    action = ctx.args.action
    names = ctx.args.names
    if action == "list":
        for name in ctx.desk.designations():
            print(name)
        return 0
    if action == "add" and len(names) == 1:
        result = ctx.desk.add_designation(names[0])
    elif action == "rename" and len(names) == 2:
        result = ctx.desk.rename_designation(names[0], names[1])
    elif action == "remove" and len(names) == 1:
        result = ctx.desk.remove_designation(names[0])
    elif action == "set":
        result = ctx.desk.save_designations(names)
    else:
        print(f"Wrong number of names for designations {action}", file=sys.stderr)
        return 2
    print(result.message)
    if result.ok:
        for name in result.value:
            print(f"  {name}")
    return 0 if result.ok else 1


def cmd_add_user(ctx: _Context) -> int:
    result = ctx.desk.add_user(
        ctx.args.username, ctx.args.password, name=ctx.args.name, role=ctx.args.role
    )
    print(result.message)
    return 0 if result.ok else 1


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_target(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("record_id", help="Record id")
    parser.add_argument("--type", help="Record type name or collection")
    parser.add_argument("--expected-version", type=int, default=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="records",
        description="Records office tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to records.yaml (default: packaged)")
    parser.add_argument("--db-url", help="Database URL (overrides configuration)")
    parser.add_argument("--token", help=f"Session token (default: ${cli_config.TOKEN_ENV})")
    parser.add_argument(
        "--actor", default=cli_config.DEFAULT_ACTOR, help="Clerk name when no token is given"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log to stderr")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create tables and seed defaults")
    p.add_argument("--admin-password", help="Create the bootstrap admin with this password")
    p.set_defaults(handler=cmd_init_db)

    p = sub.add_parser("login", help="Open a session and print its token")
    p.add_argument("username")
    p.add_argument("password")
    p.set_defaults(handler=cmd_login)

    p = sub.add_parser("create", help="File a new record")
    p.add_argument("record_type")
    p.add_argument("--field", "-f", action="append", metavar="KEY=VALUE")
    p.add_argument("--remarks")
    p.set_defaults(handler=cmd_create)

    p = sub.add_parser("edit", help="Correct a record")
    _add_target(p)
    p.add_argument("--field", "-f", action="append", metavar="KEY=VALUE")
    p.add_argument("--remarks")
    p.set_defaults(handler=cmd_edit)

    p = sub.add_parser("reject", help="Reject a record")
    _add_target(p)
    p.add_argument("--remarks", default="")
    p.set_defaults(handler=cmd_reject)

    p = sub.add_parser("time-out", help="Complete a record")
    _add_target(p)
    p.add_argument("--at", help="Date/Time OUT, ISO format (default: now)")
    p.add_argument("--remarks", default="")
    p.set_defaults(handler=cmd_time_out)

    p = sub.add_parser("delete", help="Delete a record")
    _add_target(p)
    p.set_defaults(handler=cmd_delete)

    p = sub.add_parser("list", help="List records of a type")
    p.add_argument("record_type")
    p.add_argument("--json", action="store_true", help="Print documents as JSON")
    p.set_defaults(handler=cmd_list)

    p = sub.add_parser("history", help="Show a record's remarks history")
    p.add_argument("record_id")
    p.add_argument("--type")
    p.set_defaults(handler=cmd_history)

    p = sub.add_parser("dashboard", help="All records across types")
    p.add_argument("--search")
    p.set_defaults(handler=cmd_dashboard)

    p = sub.add_parser("report", help="Period report")
    p.add_argument("period", choices=REPORT_PERIODS)
    p.add_argument("--category")
    p.add_argument("--as-of", help="Reference date/time, ISO format (default: now)")
    p.add_argument("--csv", action="store_true")
    p.set_defaults(handler=cmd_report)

    p = sub.add_parser("receiving-log", help="Printable receiving log")
    p.add_argument("--category", action="append")
    p.add_argument("--id", action="append")
    p.set_defaults(handler=cmd_receiving_log)

    p = sub.add_parser("designations", help="Manage the designation list")
    p.add_argument("action", choices=("list", "add", "rename", "remove", "set"))
    p.add_argument("names", nargs="*")
    p.set_defaults(handler=cmd_designations)

    p = sub.add_parser("add-user", help="Register a user")
    p.add_argument("username")
    p.add_argument("password")
    p.add_argument("--name")
    p.add_argument("--role", choices=("user", "admin"), default="user")
    p.set_defaults(handler=cmd_add_user)

    return parser


def main(argv: Sequence[str] | None = None, clock: Clock | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=logging.INFO if args.verbose else logging.WARNING)

    try:
        config = get_active_config(args.config)
    except (ConfigError, FileNotFoundError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    init_engine_from_url(args.db_url or config.database_url)
    register_immutability_listeners()

    try:
        return args.handler(_Context(args, config, clock or SystemClock()))
    except argparse.ArgumentTypeError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except RecordsKernelError as exc:
        print(user_message(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
