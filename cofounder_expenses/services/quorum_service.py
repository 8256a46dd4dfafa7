"""
Quorum Service
How many distinct founders must sign off on a phase, read from the live roster
"""

from typing import List

from sqlalchemy.orm import Session

from cofounder_expenses.models.expense import Expense
from cofounder_expenses.models.user import User, UserRole
from cofounder_expenses.services.ledger_service import LedgerPhase, ledger_service


class QuorumService:
    """Service for quorum calculations"""

    def _other_founders_query(self, db: Session, company_id: int, exclude_user_id: int):
        return db.query(User).filter(
            User.company_id == company_id,
            User.role == UserRole.FOUNDER,
            User.is_active == True,  # noqa: E712
            User.id != exclude_user_id
        )

    def approvals_needed(self, db: Session, company_id: int, exclude_user_id: int) -> int:
        """
        Count the company's founders other than `exclude_user_id`

        Never cached: promotions and demotions between submission and a
        decision must be reflected. Zero means the phase auto-completes.

        Args:
            db: Database session
            company_id: Company of the expense owner
            exclude_user_id: The expense owner

        Returns:
            int: Required number of distinct approvers
        """
        return self._other_founders_query(db, company_id, exclude_user_id).count()

    def approvals_needed_for(self, db: Session, expense: Expense) -> int:
        return self.approvals_needed(db, expense.owner.company_id, expense.owner_id)

    def is_reached(self, approver_count: int, needed: int) -> bool:
        return approver_count >= needed

    def other_founders(self, db: Session, expense: Expense) -> List[User]:
        return self._other_founders_query(
            db, expense.owner.company_id, expense.owner_id
        ).order_by(User.id).all()

    def pending_approvers(self, db: Session, expense: Expense, phase: LedgerPhase) -> List[User]:
        """Founders (owner excluded) with no ledger row for `phase` yet"""
        decided = ledger_service.approver_ids(db, expense.id, phase)
        return [founder for founder in self.other_founders(db, expense) if founder.id not in decided]


# Create singleton instance
quorum_service = QuorumService()
