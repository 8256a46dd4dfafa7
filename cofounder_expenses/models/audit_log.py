"""
Audit Log Model
Tracks every committed expense transition and team change
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, JSON

from cofounder_expenses.config.database import Base
from cofounder_expenses.utils.helpers import utcnow


class AuditLog(Base):
    """Audit log model"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # User who performed the action
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

    # Action details
    action = Column(String, nullable=False)  # e.g., "approve", "change_role"
    entity_type = Column(String, nullable=False)  # "expense" or "user"
    entity_id = Column(Integer, nullable=True)

    # Details
    description = Column(Text, nullable=False)
    changes = Column(JSON, nullable=True)  # {"from": ..., "to": ...}

    # Timestamp
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<AuditLog {self.action} by User {self.user_id}>"
