"""
Company Settings Routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cofounder_expenses.config.database import get_db
from cofounder_expenses.models.company import Company
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.company import CompanySettingsResponse, CompanySettingsUpdate
from cofounder_expenses.services.auth_service import auth_service
from cofounder_expenses.services.company_service import company_service

router = APIRouter()


def to_response(company: Company) -> CompanySettingsResponse:
    return CompanySettingsResponse(
        id=company.id,
        name=company.name,
        currency=company.currency,
        nudge_cooldown_hours=company.nudge_cooldown_hours,
        effective_nudge_cooldown_hours=company_service.effective_nudge_cooldown_hours(company),
        created_at=company.created_at,
        updated_at=company.updated_at
    )


@router.get("", response_model=CompanySettingsResponse)
async def get_company_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return to_response(company_service.get_settings(db, current_user))


@router.patch("", response_model=CompanySettingsResponse)
async def update_company_settings(
    payload: CompanySettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Update company settings (founders only)

    **Parameters:**
    - currency: One of the supported ISO codes
    - nudge_cooldown_hours: 0 (off) to 168; null restores the default
    """
    return to_response(company_service.update_settings(db, current_user, payload))
