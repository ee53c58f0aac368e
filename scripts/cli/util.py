"""CLI utilities: argument parsing helpers and display formatting."""

import argparse
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

DATE_FORMAT = "%Y-%m-%d %H:%M"


def fmt_amount(v) -> str:
    """Format amount for display (e.g. 1,234.50). Blank when absent."""
    if v is None:
        return ""
    d = Decimal(str(v))
    return f"{d:,.2f}"


def fmt_local(moment: datetime | None, tz: ZoneInfo) -> str:
    """Office-local wall clock time, or '-' when unset."""
    return moment.astimezone(tz).strftime(DATE_FORMAT) if moment is not None else "-"


def parse_fields(pairs) -> dict[str, str]:
    """Turn repeated ``--field key=value`` options into a dict."""
    fields: dict[str, str] = {}
    for pair in pairs or ():
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"Expected key=value, got {pair!r}")
        fields[key.strip()] = value
    return fields


def parse_moment(value: str | None, tz: ZoneInfo) -> datetime | None:
    """ISO date/time; naive values are office-local."""
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date/time: {value!r}") from exc
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=tz)
