"""
Balance Service
How much the company owes each member, under a status preset
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from cofounder_expenses.models.expense import Expense, ExpenseStatus
from cofounder_expenses.models.user import User
from cofounder_expenses.services.authorization_service import ensure_authenticated
from cofounder_expenses.utils.exceptions import NotFoundError, ValidationError
from cofounder_expenses.utils.helpers import add_months, month_start, utcnow

STATUS_PRESETS: Dict[str, Tuple[ExpenseStatus, ...]] = {
    "owed": (ExpenseStatus.APPROVED, ExpenseStatus.WITHDRAWAL_REQUESTED, ExpenseStatus.WITHDRAWAL_APPROVED),
    "approved": (ExpenseStatus.APPROVED,),
    "pending": (ExpenseStatus.PENDING_APPROVAL,),
    "active": (
        ExpenseStatus.PENDING_APPROVAL, ExpenseStatus.APPROVED,
        ExpenseStatus.WITHDRAWAL_REQUESTED, ExpenseStatus.WITHDRAWAL_APPROVED,
    ),
    "all": (
        ExpenseStatus.PENDING_APPROVAL, ExpenseStatus.APPROVED, ExpenseStatus.WITHDRAWAL_REQUESTED,
        ExpenseStatus.WITHDRAWAL_APPROVED, ExpenseStatus.RECEIVED,
    ),
}

DEFAULT_PRESET = "owed"
BREAKDOWN_PRESET = "all"
BREAKDOWN_MONTHS = 12
ZERO = Decimal("0.00")


@dataclass
class UserBalance:
    user: User
    total: Decimal = ZERO
    pending_total: Decimal = ZERO
    expense_count: int = 0
    percentage: float = 0.0


@dataclass
class BalanceReport:
    preset: str
    team_total: Decimal
    pending_total: Decimal
    balances: List[UserBalance]


@dataclass
class CategoryTotal:
    category: str
    total: Decimal = ZERO
    count: int = 0


@dataclass
class MonthTotal:
    month: str
    total: Decimal = ZERO


@dataclass
class UserBreakdown:
    """One member's spending by category and by month"""
    user: User
    preset: str
    total: Decimal = ZERO
    expense_count: int = 0
    by_category: List[CategoryTotal] = field(default_factory=list)
    by_month: List[MonthTotal] = field(default_factory=list)


class BalanceService:
    """Service for per-member reimbursement totals"""

    def _statuses(self, actor: Optional[User], preset: str) -> Tuple[ExpenseStatus, ...]:
        ensure_authenticated(actor)
        if preset not in STATUS_PRESETS:
            raise ValidationError(f"Unknown balance filter '{preset}'")
        return STATUS_PRESETS[preset]

    def get_balances(self, db: Session, actor: Optional[User], preset: str = DEFAULT_PRESET) -> BalanceReport:
        """
        Per-user totals for the actor's company

        When the preset leaves out PENDING_APPROVAL, pending amounts are
        reported separately as `pending_total` and not counted.

        Args:
            db: Database session
            actor: Requesting user
            preset: One of STATUS_PRESETS

        Returns:
            BalanceReport sorted by total, largest first
        """
        statuses = self._statuses(actor, preset)
        includes_pending = ExpenseStatus.PENDING_APPROVAL in statuses
        query_statuses = set(statuses) | {ExpenseStatus.PENDING_APPROVAL}

        members = db.query(User).filter(User.company_id == actor.company_id).order_by(User.id).all()
        balances = {member.id: UserBalance(user=member) for member in members}

        rows = db.query(Expense.owner_id, Expense.amount, Expense.status).join(
            User, Expense.owner_id == User.id
        ).filter(
            User.company_id == actor.company_id,
            Expense.status.in_(query_statuses)
        ).all()

        for owner_id, amount, status in rows:
            balance = balances[owner_id]
            if status == ExpenseStatus.PENDING_APPROVAL and not includes_pending:
                balance.pending_total += amount
            else:
                balance.total += amount
                balance.expense_count += 1

        team_total = sum((b.total for b in balances.values()), ZERO)
        pending_total = sum((b.pending_total for b in balances.values()), ZERO)
        for balance in balances.values():
            if team_total > 0:
                balance.percentage = round(float(balance.total / team_total * 100), 2)

        ordered = sorted(balances.values(), key=lambda b: b.total, reverse=True)
        return BalanceReport(preset=preset, team_total=team_total, pending_total=pending_total, balances=ordered)

    def get_user_breakdown(
        self,
        db: Session,
        actor: Optional[User],
        user_id: int,
        preset: str = BREAKDOWN_PRESET,
        today: Optional[date] = None
    ) -> UserBreakdown:
        """
        Spending of one member of the actor's company

        Args:
            db: Database session
            actor: Requesting user
            user_id: Member to break down
            preset: One of STATUS_PRESETS
            today: Reference day for the monthly window, defaults to now

        Returns:
            UserBreakdown with categories by total, largest first, and the
            last BREAKDOWN_MONTHS months oldest first

        Raises:
            NotFoundError: If the member is missing or in another company
        """
        statuses = self._statuses(actor, preset)
        member = db.query(User).filter(
            User.id == user_id,
            User.company_id == actor.company_id
        ).first()
        if member is None:
            raise NotFoundError("User not found")

        rows = db.query(Expense.amount, Expense.category, Expense.date).filter(
            Expense.owner_id == member.id,
            Expense.status.in_(statuses)
        ).all()

        current = month_start(today or utcnow().date())
        months = [add_months(current, offset) for offset in range(1 - BREAKDOWN_MONTHS, 1)]
        by_month = {month: MonthTotal(month=month.strftime("%Y-%m")) for month in months}
        by_category: Dict[str, CategoryTotal] = {}

        breakdown = UserBreakdown(user=member, preset=preset)
        for amount, category, spent_on in rows:
            breakdown.total += amount
            breakdown.expense_count += 1

            entry = by_category.setdefault(category, CategoryTotal(category=category))
            entry.total += amount
            entry.count += 1

            bucket = by_month.get(month_start(spent_on))
            if bucket is not None:
                bucket.total += amount

        breakdown.by_category = sorted(by_category.values(), key=lambda c: (-c.total, c.category))
        breakdown.by_month = [by_month[month] for month in months]
        return breakdown


# Create singleton instance
balance_service = BalanceService()
