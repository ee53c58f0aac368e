"""CLI views: dashboard, period report, receiving log."""

from scripts.cli.util import fmt_amount, fmt_local


def _show_rows(rows, tz):
    for row in rows:
        title = row.title if len(row.title) <= 30 else row.title[:27] + "..."
        print(
            f"  {row.tracking_id:<24} {row.category:<20} {row.status.value:<10} "
            f"{fmt_local(row.date_time_in, tz):<17} {title:<30} "
            f"{fmt_amount(row.amount):>14}"
        )


def show_dashboard(view, tz):
    if not view.rows:
        print("  No records found.")
    _show_rows(view.rows, tz)
    print("  " + "  ".join(f"{status}: {count}" for status, count in view.counts.items()))


def show_report(report, tz):
    W = 72
    heading = f"{report.period.upper()} REPORT"
    if report.category:
        heading += f" - {report.category}"
    print("=" * W)
    print(heading.center(W))
    print(f"{fmt_local(report.start, tz)} to {fmt_local(report.end, tz)}".center(W))
    print("=" * W)
    _show_rows(report.rows, tz)
    stats = report.stats
    print(
        f"  Total: {stats.total}  Pending: {stats.pending}  "
        f"Completed: {stats.completed}  Rejected: {stats.rejected}"
    )


def show_receiving_log(rows, tz):
    print("RECEIVING LOG")
    print(f"  {'Tracking ID':<24} {'Date/Time IN':<17} {'Name':<30} {'Office':<24} Received by")
    for row in rows:
        print(
            f"  {row.tracking_id:<24} {fmt_local(row.date_time_in, tz):<17} "
            f"{row.title:<30} {row.office:<24} {row.received_by}"
        )
