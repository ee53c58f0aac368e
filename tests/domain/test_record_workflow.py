"""
Tests for the record lifecycle state machine.

The table is pure data; these tests pin which actions each status offers
to clerks and to admins on override-enabled record types.
"""

import pytest

from records_kernel.domain.lifecycle import (
    RECORD_WORKFLOW,
    HistoryEntryKind,
    LifecycleAction,
    RecordStatus,
)

P = RecordStatus.PENDING
R = RecordStatus.REJECTED
C = RecordStatus.COMPLETED


class TestRecordWorkflow:

    def test_initial_state(self):
        assert RECORD_WORKFLOW.initial_state == P
        assert RECORD_WORKFLOW.initial_history_kind == HistoryEntryKind.CREATED
        assert HistoryEntryKind.CREATED.value == "Pending"

    def test_transitions_reference_known_states(self):
        for transition in RECORD_WORKFLOW.transitions:
            assert transition.from_state in RECORD_WORKFLOW.states
            assert transition.to_state in RECORD_WORKFLOW.states

    def test_edited_is_never_a_status(self):
        assert "Edited" not in {s.value for s in RecordStatus}

    @pytest.mark.parametrize(
        "status, action, to_state",
        [
            (P, LifecycleAction.EDIT, P),
            (R, LifecycleAction.EDIT, R),
            (P, LifecycleAction.REJECT, R),
            (P, LifecycleAction.TIME_OUT, C),
        ],
    )
    def test_clerk_transitions(self, status, action, to_state):
        transition = RECORD_WORKFLOW.find(status, action)
        assert transition is not None
        assert transition.to_state == to_state

    def test_clerk_actions_per_status(self):
        assert RECORD_WORKFLOW.actions_from(P) == (
            LifecycleAction.EDIT,
            LifecycleAction.REJECT,
            LifecycleAction.TIME_OUT,
        )
        assert RECORD_WORKFLOW.actions_from(R) == (LifecycleAction.EDIT,)
        assert RECORD_WORKFLOW.actions_from(C) == ()

    def test_admin_without_override_type_gets_clerk_actions(self):
        assert RECORD_WORKFLOW.actions_from(C, is_admin=True) == ()
        assert RECORD_WORKFLOW.find(R, LifecycleAction.TIME_OUT, is_admin=True) is None

    def test_override_requires_admin(self):
        assert RECORD_WORKFLOW.find(
            C, LifecycleAction.EDIT, is_admin=False, admin_override=True
        ) is None

    def test_admin_override_actions(self):
        actions = RECORD_WORKFLOW.actions_from(R, is_admin=True, admin_override=True)
        assert set(actions) == {
            LifecycleAction.EDIT,
            LifecycleAction.REJECT,
            LifecycleAction.TIME_OUT,
        }
        completed = RECORD_WORKFLOW.actions_from(C, is_admin=True, admin_override=True)
        assert set(completed) == {LifecycleAction.EDIT, LifecycleAction.REJECT}

    def test_completed_never_times_out_again(self):
        for is_admin in (False, True):
            for admin_override in (False, True):
                assert RECORD_WORKFLOW.find(
                    C,
                    LifecycleAction.TIME_OUT,
                    is_admin=is_admin,
                    admin_override=admin_override,
                ) is None
