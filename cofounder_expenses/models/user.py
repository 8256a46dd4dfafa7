"""
User Model
Company members; role decides who may decide on other people's expenses
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
import enum

from cofounder_expenses.config.database import Base
from cofounder_expenses.utils.helpers import utcnow


class UserRole(str, enum.Enum):
    """User roles"""
    FOUNDER = "founder"
    MEMBER = "member"


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    hashed_password = Column(String, nullable=False)

    role = Column(Enum(UserRole), default=UserRole.MEMBER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    # Bumped on logout and password change; tokens carrying an older value stop working
    token_version = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    company = relationship("Company", back_populates="users")
    expenses = relationship("Expense", back_populates="owner", foreign_keys="Expense.owner_id")
    notifications = relationship("Notification", back_populates="user")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    @property
    def is_founder(self) -> bool:
        return self.role == UserRole.FOUNDER

    @property
    def avatar_initials(self) -> str:
        parts = [p for p in (self.name or "").split() if p]
        if not parts:
            return "?"
        return "".join(p[0] for p in parts[:2]).upper()
