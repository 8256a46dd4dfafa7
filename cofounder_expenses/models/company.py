"""
Company Model
Tenant boundary: every user and, through them, every expense belongs to one company
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from cofounder_expenses.config.database import Base
from cofounder_expenses.utils.helpers import utcnow


class Company(Base):
    """Company model"""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    # None falls back to DEFAULT_NUDGE_COOLDOWN_HOURS, 0 disables the cooldown
    nudge_cooldown_hours = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    users = relationship("User", back_populates="company")
    categories = relationship("CompanyCategory", back_populates="company", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Company {self.name} ({self.currency})>"
