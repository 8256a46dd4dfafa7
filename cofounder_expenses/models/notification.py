"""
Notification Model
In-app notifications written by the notification subscriber
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean, Enum
from sqlalchemy.orm import relationship
import enum

from cofounder_expenses.config.database import Base
from cofounder_expenses.utils.helpers import utcnow


class NotificationType(str, enum.Enum):
    """Notification types"""
    EXPENSE_SUBMITTED = "expense_submitted"
    EXPENSE_APPROVED = "expense_approved"
    EXPENSE_REJECTED = "expense_rejected"
    WITHDRAWAL_REQUESTED = "withdrawal_requested"
    WITHDRAWAL_APPROVED = "withdrawal_approved"
    WITHDRAWAL_REJECTED = "withdrawal_rejected"
    RECEIPT_CONFIRMED = "receipt_confirmed"
    APPROVAL_REMINDER = "approval_reminder"
    PROMOTED_TO_FOUNDER = "promoted_to_founder"


class Notification(Base):
    """Notification model"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)

    # Recipient
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Notification details
    type = Column(Enum(NotificationType), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)

    # Related expense (optional); kept as a plain id so deleting a pending
    # expense does not have to touch notifications
    expense_id = Column(Integer, nullable=True)

    # Status
    is_read = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    read_at = Column(DateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="notifications")

    def __repr__(self):
        return f"<Notification {self.type.value} - User {self.user_id}>"
