"""
Notification Routes
User notification management endpoints
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cofounder_expenses.config.database import get_db
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.notification import NotificationListResponse, NotificationResponse
from cofounder_expenses.services.auth_service import auth_service
from cofounder_expenses.services.notification_service import notification_service
from cofounder_expenses.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def get_my_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Get current user's notifications

    **Parameters:**
    - unread_only: If True, only return unread notifications
    - page / limit: Pagination
    """
    notifications, total = notification_service.list_notifications(
        db, current_user, unread_only=unread_only, page=page, limit=limit
    )
    unread_count = notification_service.unread_count(db, current_user)

    logger.debug(f"User {current_user.id} fetched {len(notifications)} notifications (unread: {unread_count})")

    return NotificationListResponse(
        total=total,
        unread_count=unread_count,
        notifications=[NotificationResponse.model_validate(n) for n in notifications]
    )


@router.get("/unread-count")
async def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Lightweight endpoint for polling"""
    return {
        "success": True,
        "unread_count": notification_service.unread_count(db, current_user)
    }


@router.post("/mark-all-read")
async def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    updated = notification_service.mark_all_read(db, current_user)
    return {"success": True, "updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return notification_service.mark_read(db, current_user, notification_id)
