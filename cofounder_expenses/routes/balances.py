"""
Balance Routes
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cofounder_expenses.config.database import get_db
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.balance import BalanceReportResponse, UserBreakdownResponse
from cofounder_expenses.services.auth_service import auth_service
from cofounder_expenses.services.balance_service import BREAKDOWN_PRESET, DEFAULT_PRESET, balance_service

router = APIRouter()


@router.get("", response_model=BalanceReportResponse)
async def get_balances(
    filter: str = Query(DEFAULT_PRESET),
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    What the company owes each member

    **Parameters:**
    - filter: owed (default), approved, pending, active or all
    """
    report = balance_service.get_balances(db, current_user, filter)
    return BalanceReportResponse.model_validate(report)


@router.get("/{user_id}", response_model=UserBreakdownResponse)
async def get_user_breakdown(
    user_id: int,
    filter: str = Query(BREAKDOWN_PRESET),
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    One member's spending by category and over the last twelve months

    **Parameters:**
    - user_id: Member of the caller's company
    - filter: all (default), owed, approved, pending or active
    """
    breakdown = balance_service.get_user_breakdown(db, current_user, user_id, filter)
    return UserBreakdownResponse.model_validate(breakdown)
