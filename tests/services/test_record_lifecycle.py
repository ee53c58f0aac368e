"""
Tests for RecordLifecycleService.

Covers:
- Create: tracking ID assignment, seeded history, required fields
- Edit: merge, Rejected preserved, Date/Time IN protection
- Reject / time-out: remarks policy, status and history
- Terminal policy and admin override
- Delete and optimistic version checks
- History append-only property
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from records_kernel.domain.lifecycle import (
    HistoryEntryKind,
    LifecycleAction,
    RecordStatus,
)
from records_kernel.exceptions import (
    MissingFieldError,
    OptimisticLockError,
    PermissionDeniedError,
    RecordClosedError,
    RecordNotFoundError,
    UnknownRecordTypeError,
    ValidationError,
)
from records_kernel.services.lifecycle_service import RecordLifecycleService
from records_kernel.services.tracking_service import SCOPE_DAILY
from tests.conftest import make_letter_fields, make_locator_fields, make_voucher_fields

MANILA = ZoneInfo("Asia/Manila")


class TestCreate:

    def test_first_voucher_of_the_day(self, create_voucher, test_actor):
        info = create_voucher()

        assert info.tracking_id == "(V) 2024/01/15-001"
        assert info.status == RecordStatus.PENDING
        assert info.record_type == "Voucher"
        assert info.collection == "vouchers"
        assert info.received_by == test_actor.name
        assert info.get("dvNo") == "DV-001"
        assert info.get("amount") == Decimal("1500.00")
        assert info.version == 1

    def test_history_seeded_with_default_remarks(self, create_voucher, deterministic_clock):
        info = create_voucher()

        assert len(info.history) == 1
        entry = info.history[0]
        assert entry.status == HistoryEntryKind.CREATED
        assert entry.status.value == "Pending"
        assert entry.remarks == "Voucher record created"
        assert entry.updated_by == "Test Clerk"
        assert entry.timestamp == deterministic_clock.now()

    def test_history_seeded_with_given_remarks(self, create_voucher):
        info = create_voucher(remarks="  Received at window 2  ")

        assert info.remarks == "Received at window 2"
        assert info.history[0].remarks == "Received at window 2"

    def test_suffix_is_count_plus_one(self, create_voucher):
        ids = [create_voucher(dvNo=f"DV-00{i}").tracking_id for i in range(1, 4)]

        assert ids == [
            "(V) 2024/01/15-001",
            "(V) 2024/01/15-002",
            "(V) 2024/01/15-003",
        ]

    def test_types_are_numbered_independently(self, lifecycle, create_voucher, test_actor):
        create_voucher()
        create_voucher()
        letter = lifecycle.create("Letter", make_letter_fields(), test_actor)

        assert letter.tracking_id == "(L) 2024/01/15-001"

    def test_date_part_uses_office_timezone(self, lifecycle, deterministic_clock, test_actor):
        # 17:30 UTC is already the next morning in Manila
        deterministic_clock.set_time(datetime(2024, 1, 15, 17, 30, tzinfo=timezone.utc))

        info = lifecycle.create("Voucher", make_voucher_fields(), test_actor)

        assert info.tracking_id == "(V) 2024/01/16-001"

    def test_counter_continues_across_days(self, create_voucher, deterministic_clock):
        create_voucher()
        create_voucher()
        deterministic_clock.advance(24 * 3600)

        assert create_voucher().tracking_id == "(V) 2024/01/16-003"

    def test_daily_scope_restarts_next_day(
        self, session, registry, deterministic_clock, test_actor
    ):
        daily = RecordLifecycleService(
            session,
            registry,
            deterministic_clock,
            timezone_name="Asia/Manila",
            tracking_scope=SCOPE_DAILY,
        )
        daily.create("Voucher", make_voucher_fields(), test_actor)
        deterministic_clock.advance(24 * 3600)

        info = daily.create("Voucher", make_voucher_fields(), test_actor)

        assert info.tracking_id == "(V) 2024/01/16-001"

    def test_missing_required_fields(self, lifecycle, test_actor):
        fields = make_voucher_fields(payee="   ", funds=None)

        with pytest.raises(MissingFieldError) as exc_info:
            lifecycle.create("Voucher", fields, test_actor)

        assert exc_info.value.field_names == ("payee", "funds")
        assert "Please fill in all required fields" in str(exc_info.value)
        assert lifecycle.get("Voucher") == []

    def test_failed_create_does_not_consume_a_number(self, lifecycle, create_voucher, test_actor):
        with pytest.raises(MissingFieldError):
            lifecycle.create("Voucher", make_voucher_fields(dvNo=""), test_actor)

        assert create_voucher().tracking_id == "(V) 2024/01/15-001"

    def test_numeric_fields_coerced(self, create_voucher):
        info = create_voucher(amount="12,500.75")

        assert info.get("amount") == Decimal("12500.75")

    def test_bad_amount_rejected(self, create_voucher):
        with pytest.raises(ValidationError, match="amount"):
            create_voucher(amount="twelve")

    def test_engine_fields_cannot_be_supplied(self, create_voucher):
        with pytest.raises(ValidationError, match="status"):
            create_voucher(status="Completed")

    def test_unknown_type(self, lifecycle, test_actor):
        with pytest.raises(UnknownRecordTypeError):
            lifecycle.create("Memo", {"fullName": "X"}, test_actor)

    def test_naive_date_time_in_is_office_local(self, create_voucher):
        info = create_voucher(dateTimeIn="2024-01-15T08:30")

        assert info.date_time_in == datetime(2024, 1, 15, 8, 30, tzinfo=MANILA)

    def test_create_logs_event(self, create_voucher, captured_logs):
        info = create_voucher()

        created = [r for r in captured_logs() if r["message"] == "record_created"]
        assert len(created) == 1
        assert created[0]["tracking_id"] == info.tracking_id
        assert created[0]["actor"] == "Test Clerk"


class TestEdit:

    def test_merge_and_history(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        edited = lifecycle.edit(info.id, {"payee": "Ana Reyes"}, test_actor)

        assert edited.get("payee") == "Ana Reyes"
        assert edited.get("dvNo") == "DV-001"
        assert edited.status == RecordStatus.PENDING
        assert len(edited.history) == 2
        assert edited.history[-1].status == HistoryEntryKind.EDITED
        assert edited.version == 2

    def test_edit_remarks_default_to_current(self, lifecycle, create_voucher, test_actor):
        info = create_voucher(remarks="For signature")

        edited = lifecycle.edit(info.id, {"particulars": "Printer ink"}, test_actor)

        assert edited.history[-1].remarks == "For signature"
        assert edited.remarks == "For signature"

    def test_edit_with_new_remarks(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        edited = lifecycle.edit(info.id, {"remarks": "Corrected DV number"}, test_actor)

        assert edited.remarks == "Corrected DV number"
        assert edited.history[-1].remarks == "Corrected DV number"

    def test_reject_then_edit_stays_rejected(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()
        lifecycle.reject(info.id, "Missing receipt", test_actor)

        edited = lifecycle.edit(info.id, {"particulars": "Receipt attached"}, test_actor)

        assert edited.status == RecordStatus.REJECTED
        assert [e.status for e in edited.history] == [
            HistoryEntryKind.CREATED,
            HistoryEntryKind.REJECTED,
            HistoryEntryKind.EDITED,
        ]

    def test_clearing_required_field_rejected(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        with pytest.raises(MissingFieldError):
            lifecycle.edit(info.id, {"payee": ""}, test_actor)

        assert lifecycle.get_record(info.id).version == 1

    def test_absent_id(self, lifecycle, test_actor):
        with pytest.raises(RecordNotFoundError):
            lifecycle.edit(uuid4(), {"payee": "X"}, test_actor)

    def test_wrong_collection_is_not_found(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        with pytest.raises(RecordNotFoundError):
            lifecycle.edit(info.id, {"payee": "X"}, test_actor, record_type="leaves")

    def test_clerk_cannot_change_date_time_in(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        with pytest.raises(PermissionDeniedError):
            lifecycle.edit(info.id, {"dateTimeIn": "2024-01-10T08:00"}, test_actor)

    def test_unchanged_date_time_in_is_accepted(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        edited = lifecycle.edit(
            info.id, {"dateTimeIn": info.date_time_in, "payee": "Ana"}, test_actor
        )

        assert edited.date_time_in == info.date_time_in

    def test_admin_can_change_date_time_in(self, lifecycle, create_voucher, admin_actor):
        info = create_voucher()

        edited = lifecycle.edit(info.id, {"dateTimeIn": "2024-01-10T08:00"}, admin_actor)

        assert edited.date_time_in == datetime(2024, 1, 10, 8, 0, tzinfo=MANILA)
        assert edited.tracking_id == info.tracking_id


class TestReject:

    def test_reject_log_carries_record_identity(self, lifecycle, create_voucher, test_actor, captured_logs):
        info = create_voucher()

        lifecycle.reject(info.id, "Missing receipt", test_actor)

        rejected = [r for r in captured_logs() if r["message"] == "record_rejected"]
        assert rejected[0]["record_id"] == str(info.id)
        assert rejected[0]["tracking_id"] == info.tracking_id
        assert rejected[0]["record_type"] == "Voucher"
        assert rejected[0]["remarks"] == "Missing receipt"

    def test_voucher_rejected_with_reason(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        rejected = lifecycle.reject(info.id, "Missing receipt", test_actor)

        assert rejected.tracking_id == "(V) 2024/01/15-001"
        assert rejected.status == RecordStatus.REJECTED
        assert rejected.remarks == "Missing receipt"
        assert len(rejected.history) == 2
        assert rejected.history[1].status == HistoryEntryKind.REJECTED
        assert rejected.history[1].remarks == "Missing receipt"

    @pytest.mark.parametrize("remarks", ["", "   ", None])
    def test_empty_remarks_leave_record_unchanged(
        self, lifecycle, create_voucher, test_actor, remarks
    ):
        info = create_voucher()

        with pytest.raises(ValidationError, match="Rejection remarks are required"):
            lifecycle.reject(info.id, remarks, test_actor)

        after = lifecycle.get_record(info.id)
        assert after.status == RecordStatus.PENDING
        assert after.history == info.history
        assert after.version == info.version

    def test_absent_id(self, lifecycle, test_actor):
        with pytest.raises(RecordNotFoundError):
            lifecycle.reject(uuid4(), "Duplicate", test_actor)

    def test_clerk_cannot_reject_twice(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()
        lifecycle.reject(info.id, "Missing receipt", test_actor)

        with pytest.raises(RecordClosedError):
            lifecycle.reject(info.id, "Still missing", test_actor)


class TestTimeOut:

    def test_completes_record(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()
        moment = datetime(2024, 1, 15, 16, 0, tzinfo=MANILA)

        done = lifecycle.time_out(info.id, moment, "Released to payee", test_actor)

        assert done.status == RecordStatus.COMPLETED
        assert done.date_time_out == moment
        assert done.time_out_remarks == "Released to payee"
        assert done.remarks == "Released to payee"
        assert done.history[-1].status == HistoryEntryKind.COMPLETED
        assert done.to_document()["dateTimeOut"] == moment

    def test_string_time_is_office_local(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        done = lifecycle.time_out(info.id, "2024-01-15T16:00", "Released", test_actor)

        assert done.date_time_out == datetime(2024, 1, 15, 16, 0, tzinfo=MANILA)

    def test_missing_date_time_out(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        with pytest.raises(ValidationError, match="Date/Time OUT is required"):
            lifecycle.time_out(info.id, None, "Released", test_actor)

    def test_remarks_required_for_vouchers(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        with pytest.raises(ValidationError, match="Time-out remarks are required"):
            lifecycle.time_out(info.id, "2024-01-15T16:00", "", test_actor)

        assert lifecycle.get_record(info.id).status == RecordStatus.PENDING

    def test_remarks_optional_for_locator_slips(self, lifecycle, test_actor):
        info = lifecycle.create("Locator", make_locator_fields(), test_actor)

        done = lifecycle.time_out(info.id, "2024-01-15T16:00", "", test_actor)

        assert done.status == RecordStatus.COMPLETED
        assert done.time_out_remarks is None
        assert done.history[-1].remarks == ""

    def test_absent_id_leaves_others_unaffected(self, lifecycle, create_voucher, test_actor):
        kept = create_voucher()

        with pytest.raises(RecordNotFoundError):
            lifecycle.time_out(uuid4(), "2024-01-15T16:00", "Released", test_actor)

        assert lifecycle.get("Voucher") == [kept]

    def test_deleted_record_is_not_found(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()
        lifecycle.delete(info.id, test_actor)

        with pytest.raises(RecordNotFoundError):
            lifecycle.time_out(info.id, "2024-01-15T16:00", "Released", test_actor)

    def test_completed_never_times_out_again(
        self, lifecycle, test_actor, admin_actor
    ):
        info = lifecycle.create("Locator", make_locator_fields(), test_actor)
        lifecycle.time_out(info.id, "2024-01-15T16:00", "", test_actor)

        for actor in (test_actor, admin_actor):
            with pytest.raises(RecordClosedError):
                lifecycle.time_out(info.id, "2024-01-16T16:00", "", actor)


class TestTerminalPolicy:

    def test_clerk_cannot_edit_completed(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()
        lifecycle.time_out(info.id, "2024-01-15T16:00", "Released", test_actor)

        with pytest.raises(RecordClosedError):
            lifecycle.edit(info.id, {"payee": "X"}, test_actor)

    def test_admin_without_override_type_cannot_edit_completed(
        self, lifecycle, create_voucher, test_actor, admin_actor
    ):
        info = create_voucher()
        lifecycle.time_out(info.id, "2024-01-15T16:00", "Released", test_actor)

        with pytest.raises(RecordClosedError):
            lifecycle.edit(info.id, {"payee": "X"}, admin_actor)

    def test_admin_override_edits_completed_locator(
        self, lifecycle, test_actor, admin_actor
    ):
        info = lifecycle.create("Locator", make_locator_fields(), test_actor)
        lifecycle.time_out(info.id, "2024-01-15T16:00", "", test_actor)

        edited = lifecycle.edit(info.id, {"purpose": "Site visit"}, admin_actor)

        assert edited.status == RecordStatus.COMPLETED
        assert edited.get("purpose") == "Site visit"

    def test_admin_override_rejects_completed_locator(
        self, lifecycle, test_actor, admin_actor
    ):
        info = lifecycle.create("Locator", make_locator_fields(), test_actor)
        lifecycle.time_out(info.id, "2024-01-15T16:00", "", test_actor)

        rejected = lifecycle.reject(info.id, "Wrong slip", admin_actor)

        assert rejected.status == RecordStatus.REJECTED
        assert rejected.date_time_out is not None

    def test_available_actions(self, lifecycle, test_actor, admin_actor):
        locator = lifecycle.create("Locator", make_locator_fields(), test_actor)
        locator = lifecycle.reject(locator.id, "Unsigned", test_actor)

        assert lifecycle.available_actions(locator, test_actor) == (LifecycleAction.EDIT,)
        assert set(lifecycle.available_actions(locator, admin_actor)) == set(LifecycleAction)


class TestDelete:

    def test_clerk_deletes_pending(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        removed = lifecycle.delete(info.id, test_actor)

        assert removed.id == info.id
        with pytest.raises(RecordNotFoundError):
            lifecycle.get_record(info.id)

    def test_clerk_cannot_delete_rejected(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()
        lifecycle.reject(info.id, "Duplicate", test_actor)

        with pytest.raises(PermissionDeniedError):
            lifecycle.delete(info.id, test_actor)

    def test_admin_deletes_rejected(self, lifecycle, create_voucher, test_actor, admin_actor):
        info = create_voucher()
        lifecycle.reject(info.id, "Duplicate", test_actor)

        lifecycle.delete(info.id, admin_actor)

        assert lifecycle.get("Voucher") == []


class TestExpectedVersion:

    def test_matching_version(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()

        edited = lifecycle.edit(
            info.id, {"payee": "Ana"}, test_actor, expected_version=info.version
        )

        assert edited.version == info.version + 1

    def test_stale_version_rejected(self, lifecycle, create_voucher, test_actor):
        info = create_voucher()
        lifecycle.edit(info.id, {"payee": "Ana"}, test_actor)

        with pytest.raises(OptimisticLockError):
            lifecycle.reject(
                info.id, "Missing receipt", test_actor, expected_version=info.version
            )

        assert lifecycle.get_record(info.id).status == RecordStatus.PENDING


class TestQueries:

    def test_get_lists_in_insertion_order(self, lifecycle, create_voucher, test_actor):
        first = create_voucher(dvNo="DV-001")
        lifecycle.create("Letter", make_letter_fields(), test_actor)
        second = create_voucher(dvNo="DV-002")

        assert [r.id for r in lifecycle.get("Voucher")] == [first.id, second.id]
        assert [r.id for r in lifecycle.get("vouchers")] == [first.id, second.id]

    def test_get_record_by_id_string(self, lifecycle, create_voucher):
        info = create_voucher()

        assert lifecycle.get_record(str(info.id)) == info

    def test_malformed_id_is_not_found(self, lifecycle):
        with pytest.raises(RecordNotFoundError):
            lifecycle.get_record("not-a-uuid")

    def test_preview_does_not_consume(self, lifecycle, create_voucher):
        assert lifecycle.preview_tracking_id("Voucher") == "(V) 2024/01/15-001"
        assert lifecycle.preview_tracking_id("Voucher") == "(V) 2024/01/15-001"

        create_voucher()

        assert lifecycle.preview_tracking_id("Voucher") == "(V) 2024/01/15-002"


class TestHistoryAppendOnly:

    @settings(
        max_examples=20,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(
        steps=st.lists(
            st.sampled_from(["edit", "reject", "time_out"]), min_size=0, max_size=8
        )
    )
    def test_one_entry_per_mutation(self, lifecycle, test_actor, admin_actor, steps):
        # Locator slips allow admin override, so nearly every sequence is legal
        info = lifecycle.create("Locator", make_locator_fields(), test_actor)
        snapshots = [info.history]
        expected_kind = {
            "edit": HistoryEntryKind.EDITED,
            "reject": HistoryEntryKind.REJECTED,
            "time_out": HistoryEntryKind.COMPLETED,
        }

        for step in steps:
            if step == "edit":
                info = lifecycle.edit(info.id, {"purpose": f"rev {len(snapshots)}"}, admin_actor)
            elif step == "reject":
                info = lifecycle.reject(info.id, "Needs review", admin_actor)
            else:
                try:
                    info = lifecycle.time_out(info.id, "2024-01-15T18:00", "", admin_actor)
                except RecordClosedError:
                    # a completed slip cannot be timed out again
                    continue
            snapshots.append(info.history)
            assert info.history[-1].status == expected_kind[step]

        assert len(info.history) == len(snapshots)
        for earlier in snapshots:
            assert info.history[: len(earlier)] == earlier

    def test_timestamps_follow_clock(self, lifecycle, create_voucher, test_actor, deterministic_clock):
        info = create_voucher()
        deterministic_clock.advance(90)

        edited = lifecycle.edit(info.id, {"payee": "Ana"}, test_actor)

        assert edited.history[1].timestamp - edited.history[0].timestamp == timedelta(seconds=90)
