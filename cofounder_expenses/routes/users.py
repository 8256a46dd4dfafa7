"""
User Routes
The current user's own profile and password
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cofounder_expenses.config.database import get_db
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.auth import Token
from cofounder_expenses.schemas.user import PasswordChange, ProfileUpdate, UserResponse
from cofounder_expenses.services.auth_service import auth_service

router = APIRouter()


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Change your display name"""
    return auth_service.update_profile(db, current_user, payload)


@router.post("/me/change-password", response_model=Token)
async def change_password(
    payload: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Change your password

    Tokens issued before the change are revoked; the response carries new ones.
    """
    return auth_service.change_password(db, current_user, payload)
