"""
Dashboard Schemas
"""

from pydantic import BaseModel, ConfigDict
from typing import List
from decimal import Decimal

from cofounder_expenses.models.user import UserRole
from cofounder_expenses.schemas.expense import ExpenseResponse, UserSummary


class SpendingSummaryResponse(BaseModel):
    """Current month spending for the caller and the company"""
    month: str
    user_total: Decimal
    team_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class DashboardStatsResponse(BaseModel):
    user_total: Decimal
    team_total: Decimal
    pending_approval_count: int
    user_pending_count: int

    model_config = ConfigDict(from_attributes=True)


class PendingExpenseResponse(BaseModel):
    expense: ExpenseResponse
    approvals_needed: int
    pending_approvers: List[UserSummary]


class TrendPointResponse(BaseModel):
    month: str
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class CategoryShareResponse(BaseModel):
    category: str
    total: Decimal
    percentage: int

    model_config = ConfigDict(from_attributes=True)


class DashboardResponse(BaseModel):
    stats: DashboardStatsResponse
    pending_approvals: List[ExpenseResponse]
    user_pending_expenses: List[PendingExpenseResponse]
    monthly_trend: List[TrendPointResponse]
    category_breakdown: List[CategoryShareResponse]
    recent_activity: List[ExpenseResponse]
    user_role: UserRole
