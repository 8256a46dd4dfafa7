"""
Expense Routes
Submission, founder decisions, withdrawal, receipt and reminders
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import math

from cofounder_expenses.config.database import get_db
from cofounder_expenses.models.expense import Expense, ExpenseStatus
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.expense import (
    BulkNudgeRequest,
    BulkNudgeResponse,
    ExpenseCreate,
    ExpenseListResponse,
    ExpenseResponse,
    ExpenseUpdate,
    NudgeResponse,
    RejectRequest,
    UserSummary,
)
from cofounder_expenses.schemas.dashboard import SpendingSummaryResponse
from cofounder_expenses.services.auth_service import auth_service
from cofounder_expenses.services.dashboard_service import dashboard_service
from cofounder_expenses.services.event_dispatcher import event_dispatcher
from cofounder_expenses.services.expense_service import TransitionResult, expense_service
from cofounder_expenses.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


def to_response(db: Session, expense: Expense, approvals_needed: Optional[int] = None) -> ExpenseResponse:
    """Serialize an expense with the live quorum for its current phase"""
    response = ExpenseResponse.model_validate(expense)
    if approvals_needed is None:
        approvals_needed = expense_service.approvals_needed(db, expense)
    response.approvals_needed = approvals_needed
    return response


def finish(db: Session, result: TransitionResult, background_tasks: BackgroundTasks) -> ExpenseResponse:
    """Schedule event delivery for after the response and serialize the expense"""
    if result.events:
        background_tasks.add_task(event_dispatcher.dispatch, result.events)
    return to_response(db, result.expense)


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def submit_expense(
    payload: ExpenseCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Submit a new expense

    Goes straight to APPROVED when the submitter is the only founder.
    """
    result = expense_service.submit_expense(db, current_user, payload)
    return finish(db, result, background_tasks)


@router.get("", response_model=ExpenseListResponse)
async def list_expenses(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[ExpenseStatus] = Query(None, alias="status"),
    category: Optional[str] = None,
    owner_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    List company expenses

    **Parameters:**
    - page / limit: Pagination (limit at most 100)
    - status, category, owner_id: Exact-match filters
    - start_date / end_date: Inclusive expense date range
    """
    expenses, total = expense_service.list_expenses(
        db, current_user,
        page=page,
        limit=limit,
        status=status_filter,
        category=category,
        owner_id=owner_id,
        start_date=start_date,
        end_date=end_date
    )

    return ExpenseListResponse(
        expenses=[to_response(db, expense) for expense in expenses],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0
    )


@router.get("/pending-decisions", response_model=List[ExpenseResponse])
async def pending_decisions(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Expenses still waiting on the current founder's sign-off"""
    expenses = expense_service.pending_decisions(db, current_user)
    return [to_response(db, expense) for expense in expenses]


@router.get("/summary", response_model=SpendingSummaryResponse)
async def spending_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Your spending and the company's for the current month, rejected expenses left out"""
    return SpendingSummaryResponse.model_validate(dashboard_service.summary(db, current_user))


@router.post("/nudge-bulk", response_model=BulkNudgeResponse)
async def nudge_bulk(
    payload: BulkNudgeRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Send reminders for several of your pending expenses"""
    result = expense_service.nudge_bulk(db, current_user, payload.expense_ids)
    background_tasks.add_task(event_dispatcher.dispatch, result.events)

    return BulkNudgeResponse(
        nudged_count=result.nudged_count,
        skipped_count=result.skipped_count,
        approvers_notified=result.approvers_notified,
        next_nudge_at=result.next_nudge_at
    )


@router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    expense = expense_service.get_expense(db, current_user, expense_id)
    return to_response(db, expense)


@router.patch("/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Edit your own expense before withdrawal has been requested"""
    expense = expense_service.update_expense(db, current_user, expense_id, payload)
    return to_response(db, expense)


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Delete your own expense while it is still pending approval"""
    expense_service.delete_expense(db, current_user, expense_id)


@router.post("/{expense_id}/approve", response_model=ExpenseResponse)
async def approve_expense(
    expense_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Approve another member's expense

    The expense becomes APPROVED once every other founder has approved.
    """
    result = expense_service.approve(db, current_user, expense_id)
    return finish(db, result, background_tasks)


@router.post("/{expense_id}/reject", response_model=ExpenseResponse)
async def reject_expense(
    expense_id: int,
    payload: RejectRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """A single founder's rejection is final"""
    result = expense_service.reject(db, current_user, expense_id, payload.reason)
    return finish(db, result, background_tasks)


@router.post("/{expense_id}/request-withdrawal", response_model=ExpenseResponse)
async def request_withdrawal(
    expense_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    result = expense_service.request_withdrawal(db, current_user, expense_id)
    return finish(db, result, background_tasks)


@router.post("/{expense_id}/approve-withdrawal", response_model=ExpenseResponse)
async def approve_withdrawal(
    expense_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    result = expense_service.approve_withdrawal(db, current_user, expense_id)
    return finish(db, result, background_tasks)


@router.post("/{expense_id}/reject-withdrawal", response_model=ExpenseResponse)
async def reject_withdrawal(
    expense_id: int,
    payload: RejectRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    result = expense_service.reject_withdrawal(db, current_user, expense_id, payload.reason)
    return finish(db, result, background_tasks)


@router.post("/{expense_id}/confirm-receipt", response_model=ExpenseResponse)
async def confirm_receipt(
    expense_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Owner confirms the reimbursement arrived"""
    result = expense_service.confirm_receipt(db, current_user, expense_id)
    return finish(db, result, background_tasks)


@router.post("/{expense_id}/nudge", response_model=NudgeResponse)
async def nudge_approvers(
    expense_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Remind founders who have not approved yet

    **Returns:**
    - pending_approvers: Founders who were reminded
    - next_nudge_at: Earliest time another reminder is allowed
    """
    result = expense_service.nudge(db, current_user, expense_id)
    background_tasks.add_task(event_dispatcher.dispatch, result.events)

    return NudgeResponse(
        nudged_count=len(result.pending_approvers),
        pending_approvers=[UserSummary.model_validate(user) for user in result.pending_approvers],
        next_nudge_at=result.next_nudge_at
    )
