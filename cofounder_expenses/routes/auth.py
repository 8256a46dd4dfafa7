"""
Authentication Routes
Signup, login and token management
"""

from fastapi import APIRouter, Depends, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from cofounder_expenses.config.database import get_db
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.auth import RefreshRequest, Token
from cofounder_expenses.schemas.user import SignupRequest, UserResponse
from cofounder_expenses.services.auth_service import auth_service
from cofounder_expenses.services.company_service import company_service
from cofounder_expenses.utils.exceptions import UnauthenticatedError
from cofounder_expenses.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


@router.post("/signup", response_model=Token, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: SignupRequest,
    db: Session = Depends(get_db)
):
    """
    Create a company and its first founder

    Returns tokens so the founder is logged in straight away.
    """
    founder = company_service.signup(db, payload)
    return auth_service.create_tokens(founder)


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Login endpoint

    OAuth2 compatible token login; the username field carries the e-mail.
    """
    user = auth_service.authenticate_user(db, form_data.username, form_data.password)

    if not user:
        logger.warning(f"Failed login for {form_data.username}")
        raise UnauthenticatedError("Incorrect email or password")

    return auth_service.create_tokens(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(auth_service.get_current_user)
):
    """Get current user information"""
    return current_user


@router.post("/refresh", response_model=Token)
async def refresh_token(
    payload: RefreshRequest,
    db: Session = Depends(get_db)
):
    """
    Refresh access token using refresh token
    """
    user = auth_service.user_from_token(db, payload.refresh_token, token_type="refresh")
    return auth_service.create_tokens(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Revoke every access and refresh token issued to you"""
    auth_service.logout(db, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
