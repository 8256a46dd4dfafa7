"""
Expense Workflow
Finite-state machine for the expense lifecycle.

    PENDING_APPROVAL     --approve-->            APPROVED
    PENDING_APPROVAL     --reject-->             REJECTED
    APPROVED             --request_withdrawal--> WITHDRAWAL_REQUESTED
                                                 (WITHDRAWAL_APPROVED if no other founder)
    WITHDRAWAL_REQUESTED --approve_withdrawal--> WITHDRAWAL_APPROVED
    WITHDRAWAL_REQUESTED --reject_withdrawal-->  WITHDRAWAL_REJECTED
    WITHDRAWAL_APPROVED  --confirm_receipt-->    RECEIVED

Quorum-gated transitions stay in (or move to) their pending status until
enough founders have signed off. REJECTED, WITHDRAWAL_REJECTED and RECEIVED
are terminal.

`next_status` is total over (status, action): it returns the new status or
raises InvalidStateError. It knows nothing about users or the database; the
expense service feeds it the quorum outcome.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple
import enum

from cofounder_expenses.models.expense import ExpenseStatus
from cofounder_expenses.utils.exceptions import InvalidStateError
from cofounder_expenses.utils.helpers import utcnow


class ExpenseAction(str, enum.Enum):
    """Everything a user can ask to do with an existing expense"""
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_WITHDRAWAL = "request_withdrawal"
    APPROVE_WITHDRAWAL = "approve_withdrawal"
    REJECT_WITHDRAWAL = "reject_withdrawal"
    CONFIRM_RECEIPT = "confirm_receipt"
    NUDGE = "nudge"
    UPDATE = "update"
    DELETE = "delete"
    VIEW = "view"


class ExpenseEventType(str, enum.Enum):
    """Post-commit lifecycle events"""
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWAL_REQUESTED = "withdrawal_requested"
    WITHDRAWAL_APPROVED = "withdrawal_approved"
    WITHDRAWAL_REJECTED = "withdrawal_rejected"
    RECEIVED = "received"
    NUDGED = "nudged"


@dataclass(frozen=True)
class ExpenseEvent:
    """Domain event handed to the notification dispatcher after commit"""
    type: ExpenseEventType
    expense_id: int
    actor_id: int
    occurred_at: datetime = field(default_factory=utcnow)
    recipient_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class Transition:
    """
    One row of the transition table.

    `target` is reached when the phase completes. Quorum-gated transitions
    fall back to `pending_target` while approvals are still missing.
    """
    source: ExpenseStatus
    action: ExpenseAction
    target: ExpenseStatus
    event: ExpenseEventType
    pending_target: Optional[ExpenseStatus] = None
    pending_event: Optional[ExpenseEventType] = None

    @property
    def requires_quorum(self) -> bool:
        return self.pending_target is not None


TRANSITIONS: Dict[Tuple[ExpenseStatus, ExpenseAction], Transition] = {
    (t.source, t.action): t
    for t in (
        Transition(
            ExpenseStatus.PENDING_APPROVAL, ExpenseAction.APPROVE,
            target=ExpenseStatus.APPROVED,
            event=ExpenseEventType.APPROVED,
            pending_target=ExpenseStatus.PENDING_APPROVAL,
        ),
        Transition(
            ExpenseStatus.PENDING_APPROVAL, ExpenseAction.REJECT,
            target=ExpenseStatus.REJECTED,
            event=ExpenseEventType.REJECTED,
        ),
        Transition(
            ExpenseStatus.APPROVED, ExpenseAction.REQUEST_WITHDRAWAL,
            target=ExpenseStatus.WITHDRAWAL_APPROVED,
            event=ExpenseEventType.WITHDRAWAL_APPROVED,
            pending_target=ExpenseStatus.WITHDRAWAL_REQUESTED,
            pending_event=ExpenseEventType.WITHDRAWAL_REQUESTED,
        ),
        Transition(
            ExpenseStatus.WITHDRAWAL_REQUESTED, ExpenseAction.APPROVE_WITHDRAWAL,
            target=ExpenseStatus.WITHDRAWAL_APPROVED,
            event=ExpenseEventType.WITHDRAWAL_APPROVED,
            pending_target=ExpenseStatus.WITHDRAWAL_REQUESTED,
        ),
        Transition(
            ExpenseStatus.WITHDRAWAL_REQUESTED, ExpenseAction.REJECT_WITHDRAWAL,
            target=ExpenseStatus.WITHDRAWAL_REJECTED,
            event=ExpenseEventType.WITHDRAWAL_REJECTED,
        ),
        Transition(
            ExpenseStatus.WITHDRAWAL_APPROVED, ExpenseAction.CONFIRM_RECEIPT,
            target=ExpenseStatus.RECEIVED,
            event=ExpenseEventType.RECEIVED,
        ),
    )
}

# Actions that never change status but are only legal in some states
STATUS_GUARDS: Dict[ExpenseAction, FrozenSet[ExpenseStatus]] = {
    ExpenseAction.NUDGE: frozenset({ExpenseStatus.PENDING_APPROVAL}),
    ExpenseAction.UPDATE: frozenset({ExpenseStatus.PENDING_APPROVAL, ExpenseStatus.APPROVED}),
    ExpenseAction.DELETE: frozenset({ExpenseStatus.PENDING_APPROVAL}),
    ExpenseAction.VIEW: frozenset(ExpenseStatus),
}

TERMINAL_STATUSES: FrozenSet[ExpenseStatus] = frozenset({
    ExpenseStatus.REJECTED,
    ExpenseStatus.WITHDRAWAL_REJECTED,
    ExpenseStatus.RECEIVED,
})

INVALID_STATE_MESSAGES: Dict[ExpenseAction, str] = {
    ExpenseAction.APPROVE: "Expense is not pending approval",
    ExpenseAction.REJECT: "Expense is not pending approval",
    ExpenseAction.REQUEST_WITHDRAWAL: "Only approved expenses can be withdrawn",
    ExpenseAction.APPROVE_WITHDRAWAL: "Expense is not in withdrawal requested status",
    ExpenseAction.REJECT_WITHDRAWAL: "Expense is not in withdrawal requested status",
    ExpenseAction.CONFIRM_RECEIPT: "Withdrawal must be approved before confirming receipt",
    ExpenseAction.NUDGE: "Can only send reminders for expenses pending approval",
    ExpenseAction.UPDATE: "Expense can no longer be edited",
    ExpenseAction.DELETE: "Only expenses pending approval can be deleted",
}


def _invalid(status: ExpenseStatus, action: ExpenseAction) -> InvalidStateError:
    message = INVALID_STATE_MESSAGES.get(action, f"Cannot {action.value} an expense in status {status.value}")
    return InvalidStateError(message)


def get_transition(status: ExpenseStatus, action: ExpenseAction) -> Transition:
    """Look up the transition for (status, action) or raise InvalidStateError"""
    transition = TRANSITIONS.get((status, action))
    if transition is None:
        raise _invalid(status, action)
    return transition


def ensure_allowed(status: ExpenseStatus, action: ExpenseAction) -> None:
    """Raise InvalidStateError unless `action` is legal while in `status`"""
    if action in STATUS_GUARDS:
        if status not in STATUS_GUARDS[action]:
            raise _invalid(status, action)
        return
    get_transition(status, action)


def next_status(
    status: ExpenseStatus,
    action: ExpenseAction,
    quorum_reached: bool = True
) -> Tuple[ExpenseStatus, Optional[ExpenseEventType]]:
    """
    Apply `action` to `status`.

    Args:
        status: Current expense status
        action: Requested lifecycle action
        quorum_reached: Whether enough distinct founders have signed off for
            the phase; ignored by transitions that are not quorum-gated

    Returns:
        Tuple of (new status, event to emit or None)

    Raises:
        InvalidStateError: If the action is not defined for the status
    """
    transition = get_transition(status, action)
    if transition.requires_quorum and not quorum_reached:
        return transition.pending_target, transition.pending_event
    return transition.target, transition.event


def initial_status(approvals_needed: int) -> ExpenseStatus:
    """Status for a newly submitted expense; nobody left to ask means approved"""
    if approvals_needed <= 0:
        return ExpenseStatus.APPROVED
    return ExpenseStatus.PENDING_APPROVAL


def available_actions(status: ExpenseStatus) -> List[ExpenseAction]:
    """Lifecycle actions defined from `status`, in table order"""
    return [action for (source, action) in TRANSITIONS if source == status]


def is_terminal(status: ExpenseStatus) -> bool:
    return status in TERMINAL_STATUSES
