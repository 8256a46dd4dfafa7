"""
Authorization Service
Decides whether an actor may perform an action on an expense.

Pure function over already-loaded objects: no queries, no side effects.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Type

from cofounder_expenses.models.expense import Expense
from cofounder_expenses.models.user import User
from cofounder_expenses.services.expense_workflow import ExpenseAction
from cofounder_expenses.utils.exceptions import (
    ExpenseWorkflowError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
)


# A rule returns a denial message, or None when the actor passes
Rule = Callable[[User, Expense], Optional[str]]


@dataclass(frozen=True)
class AuthorizationDecision:
    """Allowed, or Denied with the error kind and a human-readable reason"""
    allowed: bool
    error: Optional[Type[ExpenseWorkflowError]] = None
    reason: Optional[str] = None

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise self.error(self.reason)


ALLOWED = AuthorizationDecision(allowed=True)


def denied(error: Type[ExpenseWorkflowError], reason: Optional[str] = None) -> AuthorizationDecision:
    return AuthorizationDecision(allowed=False, error=error, reason=reason or error.default_message)


def founder_only(message: str) -> Rule:
    def rule(actor: User, expense: Expense) -> Optional[str]:
        return None if actor.is_founder else message
    return rule


def not_owner(message: str) -> Rule:
    def rule(actor: User, expense: Expense) -> Optional[str]:
        return message if expense.owner_id == actor.id else None
    return rule


def owner_only(message: str) -> Rule:
    def rule(actor: User, expense: Expense) -> Optional[str]:
        return None if expense.owner_id == actor.id else message
    return rule


def owner_or_founder(message: str) -> Rule:
    def rule(actor: User, expense: Expense) -> Optional[str]:
        return None if expense.owner_id == actor.id or actor.is_founder else message
    return rule


AUTHORIZATION_RULES: Dict[ExpenseAction, Tuple[Rule, ...]] = {
    ExpenseAction.APPROVE: (
        founder_only("Only founders can approve expenses"),
        not_owner("You cannot approve your own expense"),
    ),
    ExpenseAction.REJECT: (
        founder_only("Only founders can reject expenses"),
        not_owner("You cannot reject your own expense"),
    ),
    ExpenseAction.APPROVE_WITHDRAWAL: (
        founder_only("Only founders can approve withdrawals"),
        not_owner("You cannot approve your own withdrawal request"),
    ),
    ExpenseAction.REJECT_WITHDRAWAL: (
        founder_only("Only founders can reject withdrawals"),
        not_owner("You cannot reject your own withdrawal request"),
    ),
    ExpenseAction.REQUEST_WITHDRAWAL: (
        owner_only("Only the expense owner can request withdrawal"),
    ),
    ExpenseAction.CONFIRM_RECEIPT: (
        owner_only("Only the expense owner can confirm receipt"),
    ),
    ExpenseAction.NUDGE: (
        owner_only("Only the expense owner can send reminders"),
    ),
    ExpenseAction.UPDATE: (
        owner_only("Only the expense owner can edit this expense"),
    ),
    ExpenseAction.DELETE: (
        owner_only("Only the expense owner can delete this expense"),
    ),
    ExpenseAction.VIEW: (
        owner_or_founder("Only founders can view other members' expenses"),
    ),
}


def is_authenticated(actor: Optional[User]) -> bool:
    return actor is not None and bool(actor.is_active)


def authorize(actor: Optional[User], expense: Optional[Expense], action: ExpenseAction) -> AuthorizationDecision:
    """
    Check whether `actor` may perform `action` on `expense`

    Rules are applied in order: authentication, tenant, then the
    action-specific role/ownership rules. A missing expense and an expense
    from another company produce the same NotFound decision.
    """
    if not is_authenticated(actor):
        return denied(UnauthenticatedError)

    if expense is None or expense.owner.company_id != actor.company_id:
        return denied(NotFoundError)

    for rule in AUTHORIZATION_RULES[action]:
        message = rule(actor, expense)
        if message:
            return denied(ForbiddenError, message)

    return ALLOWED


def ensure_authenticated(actor: Optional[User]) -> User:
    if not is_authenticated(actor):
        raise UnauthenticatedError()
    return actor


def ensure_founder(actor: Optional[User], message: str) -> User:
    """Company-level check for founder-only operations outside the expense table"""
    ensure_authenticated(actor)
    if not actor.is_founder:
        raise ForbiddenError(message)
    return actor
