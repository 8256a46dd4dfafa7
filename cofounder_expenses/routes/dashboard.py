"""
Dashboard Routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cofounder_expenses.config.database import get_db
from cofounder_expenses.models.user import User
from cofounder_expenses.routes.expense import to_response
from cofounder_expenses.schemas.dashboard import (
    CategoryShareResponse,
    DashboardResponse,
    DashboardStatsResponse,
    PendingExpenseResponse,
    TrendPointResponse,
)
from cofounder_expenses.schemas.expense import UserSummary
from cofounder_expenses.services.auth_service import auth_service
from cofounder_expenses.services.dashboard_service import dashboard_service

router = APIRouter()


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Landing page data

    Month-to-date totals, the expenses waiting on you, your own pending
    expenses with who still has to approve them, a six month trend, the
    top categories this month and recent activity.
    """
    dashboard = dashboard_service.get_dashboard(db, current_user)

    return DashboardResponse(
        stats=DashboardStatsResponse.model_validate(dashboard.stats),
        pending_approvals=[to_response(db, expense) for expense in dashboard.pending_approvals],
        user_pending_expenses=[
            PendingExpenseResponse(
                expense=to_response(db, item.expense, item.approvals_needed),
                approvals_needed=item.approvals_needed,
                pending_approvers=[UserSummary.model_validate(user) for user in item.pending_approvers],
            )
            for item in dashboard.user_pending_expenses
        ],
        monthly_trend=[TrendPointResponse.model_validate(point) for point in dashboard.monthly_trend],
        category_breakdown=[CategoryShareResponse.model_validate(share) for share in dashboard.category_breakdown],
        recent_activity=[to_response(db, expense) for expense in dashboard.recent_activity],
        user_role=dashboard.user_role,
    )
