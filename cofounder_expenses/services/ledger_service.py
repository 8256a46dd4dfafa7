"""
Ledger Service
Append-only Approval / WithdrawalApproval rows for an expense
"""

from typing import Set, Type, Union
import enum

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cofounder_expenses.models.approval import Approval, WithdrawalApproval
from cofounder_expenses.utils.exceptions import DuplicateDecisionError
from cofounder_expenses.utils.logger import setup_logger

logger = setup_logger()

LedgerRow = Union[Approval, WithdrawalApproval]


class LedgerPhase(str, enum.Enum):
    """Which ledger a decision is recorded in"""
    EXPENSE = "expense"
    WITHDRAWAL = "withdrawal"


LEDGER_MODELS = {
    LedgerPhase.EXPENSE: Approval,
    LedgerPhase.WITHDRAWAL: WithdrawalApproval,
}

DUPLICATE_MESSAGES = {
    LedgerPhase.EXPENSE: "You have already approved this expense",
    LedgerPhase.WITHDRAWAL: "You have already approved this withdrawal",
}


class LedgerService:
    """Service for recording and counting founder sign-offs"""

    def model_for(self, phase: LedgerPhase) -> Type[LedgerRow]:
        return LEDGER_MODELS[phase]

    def has_decided(self, db: Session, expense_id: int, user_id: int, phase: LedgerPhase) -> bool:
        model = self.model_for(phase)
        return db.query(model.id).filter(
            model.expense_id == expense_id,
            model.user_id == user_id
        ).first() is not None

    def record(self, db: Session, expense_id: int, user_id: int, phase: LedgerPhase) -> LedgerRow:
        """
        Insert a ledger row inside the caller's transaction

        The pre-check gives the common case a clean error; the unique
        constraint on (expense_id, user_id) settles concurrent inserts.

        Raises:
            DuplicateDecisionError: If the user already has a row in this ledger
        """
        if self.has_decided(db, expense_id, user_id, phase):
            raise DuplicateDecisionError(DUPLICATE_MESSAGES[phase])

        row = self.model_for(phase)(expense_id=expense_id, user_id=user_id)
        db.add(row)
        try:
            db.flush()
        except IntegrityError:
            logger.warning(
                f"Concurrent duplicate {phase.value} approval for expense {expense_id} by user {user_id}"
            )
            raise DuplicateDecisionError(DUPLICATE_MESSAGES[phase])
        return row

    def approver_count(self, db: Session, expense_id: int, phase: LedgerPhase) -> int:
        """Number of distinct users with a row in this ledger"""
        model = self.model_for(phase)
        return db.query(func.count(func.distinct(model.user_id))).filter(
            model.expense_id == expense_id
        ).scalar() or 0

    def approver_ids(self, db: Session, expense_id: int, phase: LedgerPhase) -> Set[int]:
        model = self.model_for(phase)
        rows = db.query(model.user_id).filter(model.expense_id == expense_id).all()
        return {user_id for (user_id,) in rows}


# Create singleton instance
ledger_service = LedgerService()
