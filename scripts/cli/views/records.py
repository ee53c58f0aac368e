"""CLI views: desk results, record listings, remarks history."""

from scripts.cli.util import fmt_local


def show_result(result) -> int:
    """Print a DeskResult; returns the exit status."""
    print(result.message)
    if result.ok and result.record is not None:
        print(f"  id:          {result.record.id}")
        print(f"  tracking id: {result.record.tracking_id}")
        print(f"  status:      {result.record.status.value}")
    return 0 if result.ok else 1


def show_records(records, tz):
    if not records:
        print("  No records yet.")
        return
    print(f"  {'Tracking ID':<24} {'Status':<10} {'Date/Time IN':<17} {'Date/Time OUT':<17} Id")
    print(f"  {'-'*24} {'-'*10} {'-'*17} {'-'*17} {'-'*36}")
    for info in records:
        print(
            f"  {info.tracking_id:<24} {info.status.value:<10} "
            f"{fmt_local(info.date_time_in, tz):<17} "
            f"{fmt_local(info.date_time_out, tz):<17} {info.id}"
        )


def show_history(info, tz):
    print(f"  {info.tracking_id} ({info.record_type}) - {info.status.value}")
    for entry in info.history:
        print(
            f"    {fmt_local(entry.timestamp, tz)}  {entry.status.value:<10} "
            f"{entry.updated_by:<20} {entry.remarks}"
        )
