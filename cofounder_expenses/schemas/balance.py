"""
Balance Schemas
"""

from pydantic import BaseModel, ConfigDict
from typing import List
from decimal import Decimal

from cofounder_expenses.schemas.expense import UserSummary


class UserBalanceResponse(BaseModel):
    user: UserSummary
    total: Decimal
    pending_total: Decimal
    expense_count: int
    percentage: float

    model_config = ConfigDict(from_attributes=True)


class BalanceReportResponse(BaseModel):
    """Per-member totals for one status preset"""
    preset: str
    team_total: Decimal
    pending_total: Decimal
    balances: List[UserBalanceResponse]

    model_config = ConfigDict(from_attributes=True)


class CategoryTotalResponse(BaseModel):
    category: str
    total: Decimal
    count: int

    model_config = ConfigDict(from_attributes=True)


class MonthTotalResponse(BaseModel):
    month: str
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class UserBreakdownResponse(BaseModel):
    """One member's spending by category and by month"""
    user: UserSummary
    preset: str
    total: Decimal
    expense_count: int
    by_category: List[CategoryTotalResponse]
    by_month: List[MonthTotalResponse]

    model_config = ConfigDict(from_attributes=True)
