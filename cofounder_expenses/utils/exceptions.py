"""
Domain Exceptions
Typed failures raised by the expense workflow and company services.

Routes never catch these; the handler registered in main.py renders them
with the status code and error code carried on the class.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import status


class ExpenseWorkflowError(Exception):
    """Base class for every recoverable business-rule failure"""

    error_code = "error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.error_code,
            "message": self.message,
        }


class UnauthenticatedError(ExpenseWorkflowError):
    error_code = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class NotFoundError(ExpenseWorkflowError):
    error_code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Expense not found"


class ForbiddenError(ExpenseWorkflowError):
    error_code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to perform this action"


class InvalidStateError(ExpenseWorkflowError):
    error_code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Expense is not in a state that allows this action"


class DuplicateDecisionError(ExpenseWorkflowError):
    error_code = "duplicate_decision"
    status_code = status.HTTP_409_CONFLICT
    default_message = "You have already approved this expense"


class ValidationError(ExpenseWorkflowError):
    error_code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Invalid request payload"


class RateLimitedError(ExpenseWorkflowError):
    error_code = "rate_limited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many reminders"

    def __init__(self, retry_after: datetime, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["retry_after"] = self.retry_after.isoformat()
        return data


class ConcurrencyConflictError(ExpenseWorkflowError):
    error_code = "concurrency_conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Expense was modified concurrently, please retry"
