"""
Expense Lifecycle Tests
Founder decisions, withdrawal and receipt through the expense service
"""

import threading
from unittest.mock import patch

import pytest

from cofounder_expenses.config.database import SessionLocal

from cofounder_expenses.models.approval import Approval
from cofounder_expenses.models.audit_log import AuditLog
from cofounder_expenses.models.expense import Expense, ExpenseStatus
from cofounder_expenses.models.user import User, UserRole
from cofounder_expenses.services.expense_service import expense_service
from cofounder_expenses.services.expense_workflow import ExpenseEventType
from cofounder_expenses.services.ledger_service import LedgerPhase, ledger_service
from cofounder_expenses.utils.exceptions import (
    ConcurrencyConflictError,
    DuplicateDecisionError,
    ExpenseWorkflowError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)

from factories import create_company, create_user, money, submit


def approvals(db, expense, phase=LedgerPhase.EXPENSE):
    return ledger_service.approver_count(db, expense.id, phase)


class TestThreeFounderScenario:
    """A submits $50; B and C must both sign off on each phase"""

    def test_full_lifecycle(self, db, team):
        a, b, c = team["A"], team["B"], team["C"]

        expense = submit(db, a, amount="50.00")
        assert expense.status == ExpenseStatus.PENDING_APPROVAL
        assert expense_service.approvals_needed(db, expense) == 2

        result = expense_service.approve(db, b, expense.id)
        assert result.expense.status == ExpenseStatus.PENDING_APPROVAL
        assert result.events == []
        assert approvals(db, expense) == 1

        result = expense_service.approve(db, c, expense.id)
        assert result.expense.status == ExpenseStatus.APPROVED
        assert result.expense.approved_at is not None
        assert [e.type for e in result.events] == [ExpenseEventType.APPROVED]
        assert approvals(db, expense) == 2

        result = expense_service.request_withdrawal(db, a, expense.id)
        assert result.expense.status == ExpenseStatus.WITHDRAWAL_REQUESTED
        assert result.approvals_needed == 2
        assert set(result.events[0].recipient_ids) == {b.id, c.id}

        result = expense_service.approve_withdrawal(db, b, expense.id)
        assert result.expense.status == ExpenseStatus.WITHDRAWAL_REQUESTED

        result = expense_service.approve_withdrawal(db, c, expense.id)
        assert result.expense.status == ExpenseStatus.WITHDRAWAL_APPROVED
        assert approvals(db, expense, LedgerPhase.WITHDRAWAL) == 2

        result = expense_service.confirm_receipt(db, a, expense.id)
        assert result.expense.status == ExpenseStatus.RECEIVED
        assert result.expense.received_at is not None
        assert result.expense.amount == money("50.00")

    def test_every_transition_is_audited(self, db, team):
        expense = submit(db, team["M"])
        expense_service.reject(db, team["A"], expense.id, "Duplicate")

        actions = [row.action for row in db.query(AuditLog).filter(
            AuditLog.entity_type == "expense",
            AuditLog.entity_id == expense.id
        ).order_by(AuditLog.id).all()]
        assert actions == ["submit", "reject"]

    def test_version_moves_with_every_decision(self, db, team):
        expense = submit(db, team["M"])
        assert expense.version == 1

        expense_service.approve(db, team["A"], expense.id)
        db.refresh(expense)
        assert expense.version == 2
        assert expense.status == ExpenseStatus.PENDING_APPROVAL


class TestSoloFounder:

    def test_solo_founder_expense_is_approved_at_submission(self, db):
        company = create_company(db)
        solo = create_user(db, company, "Solo Founder", UserRole.FOUNDER)

        expense = submit(db, solo, amount="20.00")

        assert expense.status == ExpenseStatus.APPROVED
        assert expense.approved_at is not None
        assert approvals(db, expense) == 0

    def test_solo_founder_withdrawal_approves_itself(self, db):
        company = create_company(db)
        solo = create_user(db, company, "Solo Founder", UserRole.FOUNDER)
        expense = submit(db, solo, amount="20.00")

        result = expense_service.request_withdrawal(db, solo, expense.id)

        assert result.expense.status == ExpenseStatus.WITHDRAWAL_APPROVED
        assert result.events[0].type == ExpenseEventType.WITHDRAWAL_APPROVED
        assert approvals(db, expense, LedgerPhase.WITHDRAWAL) == 0

    def test_withdrawal_auto_approves_after_other_founders_leave(self, db, team):
        expense = submit(db, team["A"])
        expense_service.approve(db, team["B"], expense.id)
        expense_service.approve(db, team["C"], expense.id)

        for key in ("B", "C"):
            team[key].role = UserRole.MEMBER
        db.commit()

        result = expense_service.request_withdrawal(db, team["A"], expense.id)
        assert result.expense.status == ExpenseStatus.WITHDRAWAL_APPROVED


class TestLedger:

    def test_duplicate_approval(self, db, team):
        expense = submit(db, team["A"])
        expense_service.approve(db, team["B"], expense.id)

        with pytest.raises(DuplicateDecisionError) as exc_info:
            expense_service.approve(db, team["B"], expense.id)

        assert exc_info.value.message == "You have already approved this expense"
        assert approvals(db, expense) == 1
        db.refresh(expense)
        assert expense.status == ExpenseStatus.PENDING_APPROVAL

    def test_unique_constraint_settles_concurrent_duplicates(self, db, team):
        expense = submit(db, team["A"])
        expense_service.approve(db, team["B"], expense.id)

        # Both requests passed the pre-check before either inserted
        with patch.object(ledger_service, "has_decided", return_value=False):
            with pytest.raises(DuplicateDecisionError):
                expense_service.approve(db, team["B"], expense.id)

        assert db.query(Approval).filter(Approval.expense_id == expense.id).count() == 1

    def test_single_approver_never_reaches_quorum(self, db, team):
        expense = submit(db, team["M"])
        expense_service.approve(db, team["A"], expense.id)
        for _ in range(3):
            with pytest.raises(DuplicateDecisionError):
                expense_service.approve(db, team["A"], expense.id)

        db.refresh(expense)
        assert expense.status == ExpenseStatus.PENDING_APPROVAL
        assert approvals(db, expense) == 1

    def test_withdrawal_ledger_is_separate(self, db, team):
        expense = submit(db, team["A"])
        expense_service.approve(db, team["B"], expense.id)
        expense_service.approve(db, team["C"], expense.id)
        expense_service.request_withdrawal(db, team["A"], expense.id)

        expense_service.approve_withdrawal(db, team["B"], expense.id)
        with pytest.raises(DuplicateDecisionError) as exc_info:
            expense_service.approve_withdrawal(db, team["B"], expense.id)
        assert exc_info.value.message == "You have already approved this withdrawal"

    def test_founder_joining_mid_phase_raises_quorum(self, db, company, team):
        expense = submit(db, team["M"])
        expense_service.approve(db, team["A"], expense.id)
        expense_service.approve(db, team["B"], expense.id)

        late = create_user(db, company, "Late Founder", UserRole.FOUNDER)
        result = expense_service.approve(db, team["C"], expense.id)
        assert result.expense.status == ExpenseStatus.PENDING_APPROVAL

        result = expense_service.approve(db, late, expense.id)
        assert result.expense.status == ExpenseStatus.APPROVED

    def test_demotion_mid_phase_can_complete_quorum(self, db, team):
        expense = submit(db, team["M"])
        expense_service.approve(db, team["A"], expense.id)

        team["C"].role = UserRole.MEMBER
        db.commit()
        assert expense_service.approvals_needed(db, expense) == 2

        result = expense_service.approve(db, team["B"], expense.id)
        assert result.expense.status == ExpenseStatus.APPROVED


class TestConcurrency:

    def test_stale_version_loses(self, db, team):
        expense = submit(db, team["M"])
        real_count = ledger_service.approver_count

        def racing_count(session, expense_id, phase):
            # Another founder's decision commits between our read and our write
            session.query(Expense).filter(Expense.id == expense_id).update(
                {"version": Expense.version + 1}, synchronize_session=False
            )
            return real_count(session, expense_id, phase)

        with patch.object(ledger_service, "approver_count", side_effect=racing_count):
            with pytest.raises(ConcurrencyConflictError):
                expense_service.approve(db, team["A"], expense.id)

        # Nothing from the losing attempt survives
        assert approvals(db, expense) == 0
        db.refresh(expense)
        assert expense.version == 1

    def test_compare_and_swap_rejects_old_version(self, db, team):
        expense = submit(db, team["M"])
        with pytest.raises(ConcurrencyConflictError):
            expense_service._compare_and_swap(db, expense.id, expense.version + 5, {"notes": "late"})
        db.rollback()

    def test_simultaneous_approvals_from_separate_sessions_both_count(self, db, team):
        expense_id = submit(db, team["A"]).id
        founder_ids = [team["B"].id, team["C"].id]
        start = threading.Barrier(len(founder_ids))
        outcomes = {}

        def approve_as(user_id):
            session = SessionLocal()
            try:
                actor = session.get(User, user_id)
                start.wait(timeout=10)
                expense_service.approve(session, actor, expense_id)
                outcomes[user_id] = "ok"
            except ExpenseWorkflowError as exc:
                outcomes[user_id] = exc.error_code
            finally:
                session.close()

        threads = [threading.Thread(target=approve_as, args=(user_id,)) for user_id in founder_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert outcomes == {team["B"].id: "ok", team["C"].id: "ok"}

        db.expire_all()
        expense = db.get(Expense, expense_id)
        assert approvals(db, expense) == 2
        assert expense.status == ExpenseStatus.APPROVED
        assert expense.version == 3


class TestRejection:

    def test_reason_is_trimmed(self, db, team):
        expense = submit(db, team["M"])
        result = expense_service.reject(db, team["A"], expense.id, "  Not a business expense \n")

        assert result.expense.status == ExpenseStatus.REJECTED
        assert result.expense.rejection_reason == "Not a business expense"
        assert result.expense.rejected_by_id == team["A"].id
        assert result.expense.rejected_at is not None

    @pytest.mark.parametrize("reason", [None, "", "   ", "\t\n"])
    def test_blank_reason_is_rejected(self, db, team, reason):
        expense = submit(db, team["M"])
        with pytest.raises(ValidationError) as exc_info:
            expense_service.reject(db, team["A"], expense.id, reason)
        assert exc_info.value.message == "Rejection reason is required"

        db.refresh(expense)
        assert expense.status == ExpenseStatus.PENDING_APPROVAL

    def test_reason_length_limit(self, db, team):
        expense = submit(db, team["M"])
        with pytest.raises(ValidationError):
            expense_service.reject(db, team["A"], expense.id, "x" * 501)

        result = expense_service.reject(db, team["A"], expense.id, "x" * 500)
        assert len(result.expense.rejection_reason) == 500

    def test_rejection_is_final_even_after_approvals(self, db, team):
        expense = submit(db, team["M"])
        expense_service.approve(db, team["A"], expense.id)
        expense_service.reject(db, team["B"], expense.id, "Over budget")

        with pytest.raises(InvalidStateError):
            expense_service.approve(db, team["C"], expense.id)

    def test_withdrawal_rejection_is_terminal(self, db, team):
        expense = submit(db, team["A"])
        expense_service.approve(db, team["B"], expense.id)
        expense_service.approve(db, team["C"], expense.id)
        expense_service.request_withdrawal(db, team["A"], expense.id)

        result = expense_service.reject_withdrawal(db, team["B"], expense.id, "  Pay next quarter ")
        assert result.expense.status == ExpenseStatus.WITHDRAWAL_REJECTED
        assert result.expense.rejection_reason == "Pay next quarter"

        with pytest.raises(InvalidStateError):
            expense_service.request_withdrawal(db, team["A"], expense.id)


class TestGate:

    @pytest.mark.parametrize("operation", ["approve", "reject", "approve_withdrawal", "reject_withdrawal"])
    def test_owner_can_never_decide_own_expense(self, db, team, operation):
        expense = submit(db, team["A"])
        expense_service.approve(db, team["B"], expense.id)
        expense_service.approve(db, team["C"], expense.id)
        expense_service.request_withdrawal(db, team["A"], expense.id)

        args = (db, team["A"], expense.id)
        if operation.startswith("reject"):
            args += ("reason",)
        with pytest.raises(ForbiddenError):
            getattr(expense_service, operation)(*args)

    def test_member_cannot_approve(self, db, team):
        expense = submit(db, team["A"])
        with pytest.raises(ForbiddenError):
            expense_service.approve(db, team["M"], expense.id)

    def test_other_company_sees_not_found(self, db, team, other_company_founder):
        expense = submit(db, team["M"])
        with pytest.raises(NotFoundError):
            expense_service.approve(db, other_company_founder, expense.id)

    def test_missing_expense(self, db, team):
        with pytest.raises(NotFoundError):
            expense_service.approve(db, team["A"], 9999)

    def test_anonymous(self, db, team):
        expense = submit(db, team["M"])
        with pytest.raises(UnauthenticatedError):
            expense_service.approve(db, None, expense.id)

    def test_authorization_before_state(self, db, team):
        expense = submit(db, team["M"])
        expense_service.reject(db, team["A"], expense.id, "No")

        # Wrong actor on a terminal expense is Forbidden, not InvalidState
        with pytest.raises(ForbiddenError):
            expense_service.approve(db, team["M"], expense.id)

    def test_only_owner_confirms_receipt(self, db, team):
        expense = submit(db, team["M"])
        with pytest.raises(ForbiddenError):
            expense_service.confirm_receipt(db, team["A"], expense.id)
        with pytest.raises(InvalidStateError):
            expense_service.confirm_receipt(db, team["M"], expense.id)
