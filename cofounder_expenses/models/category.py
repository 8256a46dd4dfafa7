"""
Category Model
Per-company catalogue of expense categories
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from cofounder_expenses.config.database import Base
from cofounder_expenses.utils.helpers import utcnow


class CompanyCategory(Base):
    """An expense category offered to a company's members"""
    __tablename__ = "company_categories"
    __table_args__ = (
        UniqueConstraint("company_id", "value", name="uq_company_categories_company_value"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)

    # Stable key stored on expenses, e.g. LEGAL_FEES
    value = Column(String(50), nullable=False)
    label = Column(String(50), nullable=False)
    icon = Column(String(30), nullable=False, default="Tag")

    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    company = relationship("Company", back_populates="categories")

    def __repr__(self):
        return f"<CompanyCategory {self.value} company={self.company_id}>"
