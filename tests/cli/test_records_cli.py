"""
End-to-end tests for the records command line (scripts/cli/main.py).

Each invocation runs against a SQLite file in tmp_path so state carries
across calls the way it does between real CLI runs.
"""

import re

import pytest

from records_kernel.db.engine import reset_engine
from records_kernel.domain.clock import DeterministicClock
from scripts.cli.main import main

ID_LINE = re.compile(r"^\s+id:\s+(\S+)$", re.MULTILINE)

VOUCHER_ARGS = [
    "-f", "dvNo=DV-001",
    "-f", "payee=Juan Dela Cruz",
    "-f", "particulars=Office supplies",
    "-f", "designationOffice=Admin",
    "-f", "amount=1500",
    "-f", "voucherType=Cash Advance",
    "-f", "funds=General Fund",
]


@pytest.fixture
def run_cli(tmp_path, capsys, monkeypatch):
    """Invoke ``main`` against a per-test database; returns (status, stdout)."""
    monkeypatch.delenv("RECORDS_DATABASE_URL", raising=False)
    monkeypatch.delenv("RECORDS_SESSION_TOKEN", raising=False)
    db_url = f"sqlite:///{tmp_path / 'records.db'}"
    clock = DeterministicClock()

    def _run(*argv: str) -> tuple[int, str]:
        status = main(["--db-url", db_url, *argv], clock=clock)
        return status, capsys.readouterr().out

    _run("init-db", "--admin-password", "secret")
    yield _run

    reset_engine()


def _created_id(output: str) -> str:
    return ID_LINE.search(output).group(1)


class TestRecordCommands:

    def test_create_and_list(self, run_cli):
        status, out = run_cli("create", "Voucher", *VOUCHER_ARGS)

        assert status == 0
        assert "Voucher added successfully" in out
        assert "(V) 2024/01/15-001" in out

        status, out = run_cli("list", "vouchers")
        assert status == 0
        assert "(V) 2024/01/15-001" in out
        assert "Loaded 1 Voucher records" in out

    def test_missing_field_exits_1(self, run_cli):
        status, out = run_cli("create", "Voucher", "-f", "dvNo=DV-002")

        assert status == 1
        assert "Please fill in all required fields for Voucher" in out

    def test_reject(self, run_cli):
        _, out = run_cli("create", "Voucher", *VOUCHER_ARGS)
        record_id = _created_id(out)

        status, out = run_cli("reject", record_id, "--remarks", "Missing receipt")

        assert status == 0
        assert "Voucher rejected successfully" in out
        assert "Rejected" in out

    def test_time_out_then_history(self, run_cli):
        _, out = run_cli("create", "Voucher", *VOUCHER_ARGS)
        record_id = _created_id(out)

        status, out = run_cli(
            "time-out", record_id, "--at", "2024-01-15T18:00", "--remarks", "Released"
        )
        assert status == 0
        assert "Completed" in out

        status, out = run_cli("history", record_id)
        assert status == 0
        assert "Released" in out

    def test_malformed_field_exits_2(self, run_cli):
        status, _ = run_cli("create", "Letter", "-f", "fullName")

        assert status == 2


class TestReportsAndAdmin:

    def test_report_csv(self, run_cli):
        run_cli("create", "Voucher", *VOUCHER_ARGS)

        status, out = run_cli("report", "daily", "--csv")

        assert status == 0
        lines = out.splitlines()
        assert lines[0] == "Tracking ID,Category,Date/Time IN,Status,Full Name"
        assert lines[1].startswith("(V) 2024/01/15-001,Voucher,")

    def test_designations_seeded(self, run_cli):
        status, out = run_cli("designations", "list")

        assert status == 0
        assert out.split() == ["Admin", "Manager", "Staff", "Officer"]

    def test_designation_add(self, run_cli):
        status, out = run_cli("designations", "add", "Clerk")

        assert status == 0
        assert "Clerk" in out

    def test_login(self, run_cli):
        status, out = run_cli("login", "admin", "secret")

        assert status == 0
        assert "token:" in out

    def test_bad_login(self, run_cli):
        status, out = run_cli("login", "admin", "wrong")

        assert status == 1
        assert "Invalid username or password" in out


def test_config_error_exits_2(tmp_path, capsys):
    status = main(["--config", str(tmp_path / "absent.yaml"), "dashboard"])

    assert status == 2
    assert "Configuration error" in capsys.readouterr().err
