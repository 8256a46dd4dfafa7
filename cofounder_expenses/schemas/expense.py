"""
Expense Schemas
Pydantic models for expense requests and responses - Pydantic V2
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime, date as DateType
from decimal import Decimal

from cofounder_expenses.models.expense import ExpenseStatus
from cofounder_expenses.services.validation_service import validation_service


def _check(result):
    is_valid, error = result
    if not is_valid:
        raise ValueError(error)


class ExpenseCreate(BaseModel):
    """Schema for submitting an expense"""
    amount: Decimal
    category: str = Field(..., min_length=1, max_length=50)
    date: DateType
    description: str = Field(..., max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    receipt_url: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        _check(validation_service.validate_amount(v))
        return v

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: DateType) -> DateType:
        _check(validation_service.validate_expense_date(v))
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Description is required")
        return v

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("receipt_url")
    @classmethod
    def validate_receipt_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        _check(validation_service.validate_receipt_url(v))
        return v or None


class ExpenseUpdate(BaseModel):
    """Partial update of an expense by its owner"""
    amount: Optional[Decimal] = None
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    date: Optional[DateType] = None
    description: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    receipt_url: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None:
            _check(validation_service.validate_amount(v))
        return v

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: Optional[DateType]) -> Optional[DateType]:
        if v is not None:
            _check(validation_service.validate_expense_date(v))
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Description is required")
        return v

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("receipt_url")
    @classmethod
    def validate_receipt_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        _check(validation_service.validate_receipt_url(v))
        return v or None


class RejectRequest(BaseModel):
    """Rejection payload; trimming and length rules live in the workflow"""
    reason: Optional[str] = None


class UserSummary(BaseModel):
    """Minimal user info embedded in expense responses"""
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class LedgerEntryResponse(BaseModel):
    """One approval or withdrawal approval"""
    user_id: int
    user: UserSummary
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExpenseResponse(BaseModel):
    """Expense with both ledgers"""
    id: int
    owner_id: int
    owner: UserSummary
    amount: Decimal
    category: str
    date: DateType
    description: str
    notes: Optional[str] = None
    receipt_url: Optional[str] = None
    status: ExpenseStatus

    rejected_by_id: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    last_nudge_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime
    approved_at: Optional[datetime] = None
    withdrawal_requested_at: Optional[datetime] = None
    withdrawal_approved_at: Optional[datetime] = None
    received_at: Optional[datetime] = None

    approvals: List[LedgerEntryResponse] = []
    withdrawal_approvals: List[LedgerEntryResponse] = []
    approvals_needed: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class ExpenseListResponse(BaseModel):
    """Paginated expense list"""
    expenses: List[ExpenseResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class NudgeResponse(BaseModel):
    """Result of a reminder"""
    success: bool = True
    nudged_count: int
    pending_approvers: List[UserSummary]
    next_nudge_at: Optional[datetime] = None


class BulkNudgeRequest(BaseModel):
    expense_ids: List[int] = Field(..., min_length=1)


class BulkNudgeResponse(BaseModel):
    success: bool = True
    nudged_count: int
    skipped_count: int
    approvers_notified: int
    next_nudge_at: Optional[datetime] = None
