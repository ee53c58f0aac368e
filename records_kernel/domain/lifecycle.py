"""
Record lifecycle state machine (``records_kernel.domain.lifecycle``).

Responsibility
--------------
Pure value objects for the status lifecycle every record type shares:
the status set, the history entry tags, and the table of allowed
transitions.  The lifecycle service consults ``RECORD_WORKFLOW`` instead
of hard-coding per-type status checks.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``RecordStatus`` (what a record IS) is distinct from ``HistoryEntryKind``
  (what HAPPENED).  ``Edited`` is a history tag, never a status.
* Transitions reference only states in ``RecordWorkflow.states``.
* A transition flagged ``requires_override`` is only available to an
  admin actor on a record type whose schema enables admin override.
* No transition sets a new time-out on a ``Completed`` record.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RecordStatus(str, Enum):
    """Current state of a record."""

    PENDING = "Pending"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


class HistoryEntryKind(str, Enum):
    """Tag of a remarks history entry.

    Creation is persisted as ``Pending`` so the stored history reads the
    same as the status it produced.
    """

    CREATED = "Pending"
    EDITED = "Edited"
    REJECTED = "Rejected"
    COMPLETED = "Completed"


class LifecycleAction(str, Enum):
    EDIT = "edit"
    REJECT = "reject"
    TIME_OUT = "time_out"


@dataclass(frozen=True)
class Transition:
    """A valid status transition.

    Contract: frozen.  ``history_kind`` is the tag appended to the remarks
    history when the transition fires.
    """

    from_state: RecordStatus
    to_state: RecordStatus
    action: LifecycleAction
    history_kind: HistoryEntryKind
    requires_override: bool = False


@dataclass(frozen=True)
class RecordWorkflow:
    """State machine definition for the record lifecycle."""

    name: str
    initial_state: RecordStatus
    initial_history_kind: HistoryEntryKind
    states: tuple[RecordStatus, ...]
    transitions: tuple[Transition, ...]

    def find(
        self,
        status: RecordStatus,
        action: LifecycleAction,
        *,
        is_admin: bool = False,
        admin_override: bool = False,
    ) -> Transition | None:
        """Return the transition for ``action`` from ``status``, or None.

        Override transitions are only returned when both ``is_admin`` and
        ``admin_override`` hold.
        """
        for transition in self.transitions:
            if transition.from_state != status or transition.action != action:
                continue
            if transition.requires_override and not (is_admin and admin_override):
                continue
            return transition
        return None

    def actions_from(
        self,
        status: RecordStatus,
        *,
        is_admin: bool = False,
        admin_override: bool = False,
    ) -> tuple[LifecycleAction, ...]:
        """Actions available from ``status`` for the given privileges."""
        return tuple(
            action
            for action in LifecycleAction
            if self.find(
                status, action, is_admin=is_admin, admin_override=admin_override
            )
            is not None
        )


_P = RecordStatus.PENDING
_C = RecordStatus.COMPLETED
_R = RecordStatus.REJECTED

RECORD_WORKFLOW = RecordWorkflow(
    name="record_lifecycle",
    initial_state=_P,
    initial_history_kind=HistoryEntryKind.CREATED,
    states=(_P, _C, _R),
    transitions=(
        # edit keeps Rejected, otherwise returns to Pending
        Transition(_P, _P, LifecycleAction.EDIT, HistoryEntryKind.EDITED),
        Transition(_R, _R, LifecycleAction.EDIT, HistoryEntryKind.EDITED),
        Transition(_C, _C, LifecycleAction.EDIT, HistoryEntryKind.EDITED,
                   requires_override=True),
        Transition(_P, _R, LifecycleAction.REJECT, HistoryEntryKind.REJECTED),
        Transition(_R, _R, LifecycleAction.REJECT, HistoryEntryKind.REJECTED,
                   requires_override=True),
        Transition(_C, _R, LifecycleAction.REJECT, HistoryEntryKind.REJECTED,
                   requires_override=True),
        Transition(_P, _C, LifecycleAction.TIME_OUT, HistoryEntryKind.COMPLETED),
        Transition(_R, _C, LifecycleAction.TIME_OUT, HistoryEntryKind.COMPLETED,
                   requires_override=True),
    ),
)
