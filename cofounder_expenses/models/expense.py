"""
Expense Model
Shared business expenses moving through the approval and withdrawal phases
"""

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship
import enum

from cofounder_expenses.config.database import Base
from cofounder_expenses.utils.helpers import utcnow


class ExpenseStatus(str, enum.Enum):
    """Expense status"""
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWAL_REQUESTED = "withdrawal_requested"
    WITHDRAWAL_APPROVED = "withdrawal_approved"
    WITHDRAWAL_REJECTED = "withdrawal_rejected"
    RECEIVED = "received"


class Expense(Base):
    """Expense model"""
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)

    # Owner (company is reached through the owner)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Expense details
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String(50), nullable=False)
    date = Column(Date, nullable=False)
    description = Column(String(200), nullable=False)
    notes = Column(Text, nullable=True)
    receipt_url = Column(String, nullable=True)

    # Status and workflow
    status = Column(Enum(ExpenseStatus), default=ExpenseStatus.PENDING_APPROVAL, nullable=False, index=True)
    version = Column(Integer, default=1, nullable=False)

    # Rejection (expense or withdrawal phase)
    rejected_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Reminders
    last_nudge_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    approved_at = Column(DateTime, nullable=True)
    withdrawal_requested_at = Column(DateTime, nullable=True)
    withdrawal_approved_at = Column(DateTime, nullable=True)
    received_at = Column(DateTime, nullable=True)

    # Relationships
    owner = relationship("User", back_populates="expenses", foreign_keys=[owner_id])
    rejected_by = relationship("User", foreign_keys=[rejected_by_id])
    approvals = relationship(
        "Approval",
        back_populates="expense",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Approval.created_at"
    )
    withdrawal_approvals = relationship(
        "WithdrawalApproval",
        back_populates="expense",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="WithdrawalApproval.created_at"
    )

    def __repr__(self):
        return f"<Expense {self.id} - {self.amount} - {self.status.value}>"

    @property
    def company_id(self) -> int:
        return self.owner.company_id
