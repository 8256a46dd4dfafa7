"""
Approval Models
Append-only ledger rows: one per (expense, founder) in each phase
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from cofounder_expenses.config.database import Base
from cofounder_expenses.utils.helpers import utcnow


class Approval(Base):
    """A founder's approval of an expense"""
    __tablename__ = "approvals"
    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_approvals_expense_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    expense = relationship("Expense", back_populates="approvals")
    user = relationship("User")

    def __repr__(self):
        return f"<Approval expense={self.expense_id} user={self.user_id}>"


class WithdrawalApproval(Base):
    """A founder's countersignature on a withdrawal request"""
    __tablename__ = "withdrawal_approvals"
    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_withdrawal_approvals_expense_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    expense = relationship("Expense", back_populates="withdrawal_approvals")
    user = relationship("User")

    def __repr__(self):
        return f"<WithdrawalApproval expense={self.expense_id} user={self.user_id}>"
