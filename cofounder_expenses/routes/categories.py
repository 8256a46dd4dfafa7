"""
Category Routes
The company's expense category catalogue
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from cofounder_expenses.config.database import get_db
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from cofounder_expenses.services.auth_service import auth_service
from cofounder_expenses.services.category_service import category_service

router = APIRouter()


@router.get("", response_model=List[CategoryResponse])
async def list_categories(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Active categories in display order, "Other" last"""
    return category_service.list_categories(db, current_user)


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Add a custom category (founders only)

    Re-adding a disabled category turns it back on and answers 200.
    """
    category, created = category_service.create_category(db, current_user, payload)
    if not created:
        response.status_code = status.HTTP_200_OK
    return category


@router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Rename, re-icon, reorder or disable a category (founders only)"""
    return category_service.update_category(db, current_user, category_id, payload)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    category_service.delete_category(db, current_user, category_id)
