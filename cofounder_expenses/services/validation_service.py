"""
Validation Service
Field rules shared by request schemas and the expense workflow
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from cofounder_expenses.config.settings import settings
from cofounder_expenses.utils.exceptions import ValidationError
from cofounder_expenses.utils.helpers import utcnow
from cofounder_expenses.utils.logger import setup_logger

logger = setup_logger()

MAX_EXPENSE_AMOUNT = Decimal("999999.99")
RECEIPT_URL_PREFIXES = ("/uploads/", "http://", "https://")


class ValidationService:
    """Service for validating expense and company payloads"""

    def validate_amount(self, amount: Decimal) -> Tuple[bool, Optional[str]]:
        """
        Validate an expense amount

        Args:
            amount: Claimed amount as a Decimal

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not amount.is_finite():
            return False, "Amount must be a number"
        if amount <= 0:
            return False, "Amount must be positive"
        if amount > MAX_EXPENSE_AMOUNT:
            return False, f"Amount cannot exceed {MAX_EXPENSE_AMOUNT:,}"
        if amount.as_tuple().exponent < -2:
            return False, "Amount cannot have more than 2 decimal places"
        return True, None

    def validate_expense_date(self, value: date, today: Optional[date] = None) -> Tuple[bool, Optional[str]]:
        """Expense dates may not be in the future or more than a year old"""
        today = today or utcnow().date()
        if value > today:
            return False, "Date cannot be in the future"
        try:
            one_year_ago = today.replace(year=today.year - 1)
        except ValueError:
            # Feb 29
            one_year_ago = today - timedelta(days=365)
        if value < one_year_ago:
            return False, "Date cannot be more than 1 year in the past"
        return True, None

    def validate_receipt_url(self, value: str) -> Tuple[bool, Optional[str]]:
        if value == "" or value.startswith(RECEIPT_URL_PREFIXES):
            return True, None
        return False, "Invalid receipt URL"

    def validate_currency(self, value: str) -> Tuple[bool, Optional[str]]:
        if value in settings.SUPPORTED_CURRENCIES:
            return True, None
        return False, "Currency must be a supported currency code"

    def validate_nudge_cooldown(self, hours: int) -> Tuple[bool, Optional[str]]:
        if hours < 0:
            return False, "Cooldown must be at least 0"
        if hours > settings.MAX_NUDGE_COOLDOWN_HOURS:
            return False, f"Cooldown must be at most {settings.MAX_NUDGE_COOLDOWN_HOURS} hours (1 week)"
        return True, None

    def clean_rejection_reason(self, reason: Optional[str]) -> str:
        """
        Trim a rejection reason and enforce its length

        Raises:
            ValidationError: If the reason is missing, blank or too long
        """
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ValidationError("Rejection reason is required")
        if len(cleaned) > settings.REJECTION_REASON_MAX_LENGTH:
            raise ValidationError(
                f"Rejection reason cannot exceed {settings.REJECTION_REASON_MAX_LENGTH} characters"
            )
        return cleaned


# Create singleton instance
validation_service = ValidationService()
