"""
Authorization Tests
The authorization gate over plain objects
"""

from types import SimpleNamespace

import pytest

from cofounder_expenses.services.authorization_service import authorize
from cofounder_expenses.services.expense_workflow import ExpenseAction
from cofounder_expenses.utils.exceptions import ForbiddenError, NotFoundError, UnauthenticatedError


def make_user(user_id, company_id=1, founder=False, active=True):
    return SimpleNamespace(id=user_id, company_id=company_id, is_founder=founder, is_active=active)


def make_expense(owner):
    return SimpleNamespace(id=10, owner_id=owner.id, owner=owner)


@pytest.fixture
def founder():
    return make_user(1, founder=True)


@pytest.fixture
def member():
    return make_user(2)


class TestAuthorize:

    def test_unauthenticated_comes_first(self, member):
        decision = authorize(None, make_expense(member), ExpenseAction.APPROVE)
        assert not decision.allowed
        assert decision.error is UnauthenticatedError

    def test_inactive_user_is_unauthenticated(self, member):
        ghost = make_user(3, founder=True, active=False)
        decision = authorize(ghost, make_expense(member), ExpenseAction.VIEW)
        assert decision.error is UnauthenticatedError

    def test_missing_expense_is_not_found(self, founder):
        assert authorize(founder, None, ExpenseAction.VIEW).error is NotFoundError

    def test_other_company_is_not_found_not_forbidden(self, member):
        outsider = make_user(9, company_id=2, founder=True)
        decision = authorize(outsider, make_expense(member), ExpenseAction.APPROVE)
        assert decision.error is NotFoundError
        assert decision.reason == "Expense not found"

    @pytest.mark.parametrize("action", [
        ExpenseAction.APPROVE,
        ExpenseAction.REJECT,
        ExpenseAction.APPROVE_WITHDRAWAL,
        ExpenseAction.REJECT_WITHDRAWAL,
    ])
    def test_decisions_need_a_founder(self, member, action):
        owner = make_user(4)
        decision = authorize(member, make_expense(owner), action)
        assert decision.error is ForbiddenError

    @pytest.mark.parametrize("action", [
        ExpenseAction.APPROVE,
        ExpenseAction.REJECT,
        ExpenseAction.APPROVE_WITHDRAWAL,
        ExpenseAction.REJECT_WITHDRAWAL,
    ])
    def test_founder_cannot_decide_own_expense(self, founder, action):
        decision = authorize(founder, make_expense(founder), action)
        assert decision.error is ForbiddenError
        assert "own" in decision.reason

    def test_founder_may_approve_member_expense(self, founder, member):
        assert authorize(founder, make_expense(member), ExpenseAction.APPROVE).allowed

    @pytest.mark.parametrize("action", [
        ExpenseAction.REQUEST_WITHDRAWAL,
        ExpenseAction.CONFIRM_RECEIPT,
        ExpenseAction.NUDGE,
        ExpenseAction.UPDATE,
        ExpenseAction.DELETE,
    ])
    def test_owner_only_actions(self, founder, member, action):
        expense = make_expense(member)
        assert authorize(member, expense, action).allowed
        # Being a founder does not help with someone else's expense
        assert authorize(founder, expense, action).error is ForbiddenError

    def test_view_owner_or_founder(self, founder, member):
        expense = make_expense(make_user(5))
        assert authorize(founder, expense, ExpenseAction.VIEW).allowed
        assert authorize(member, expense, ExpenseAction.VIEW).error is ForbiddenError

    def test_raise_if_denied(self, member):
        with pytest.raises(ForbiddenError) as exc_info:
            authorize(member, make_expense(make_user(6)), ExpenseAction.APPROVE).raise_if_denied()
        assert exc_info.value.message == "Only founders can approve expenses"
