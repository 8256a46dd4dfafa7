"""
Team Routes
Company members and their roles
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from cofounder_expenses.config.database import get_db
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.user import MemberCreate, RoleUpdate, UserResponse
from cofounder_expenses.services.auth_service import auth_service
from cofounder_expenses.services.company_service import company_service

router = APIRouter()


@router.get("", response_model=List[UserResponse])
async def list_team(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Everyone in your company, founders first"""
    return company_service.list_members(db, current_user)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    payload: MemberCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return company_service.add_member(db, current_user, payload)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def change_role(
    user_id: int,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Promote a member to founder or demote a founder

    The last founder of a company cannot be demoted. Pending expenses pick
    up the new founder count on their next decision.
    """
    return company_service.change_role(db, current_user, user_id, payload.role)
