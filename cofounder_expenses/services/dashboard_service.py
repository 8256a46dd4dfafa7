"""
Dashboard Service
Month-to-date totals, the actor's open items and recent team activity
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from cofounder_expenses.models.expense import Expense, ExpenseStatus
from cofounder_expenses.models.user import User, UserRole
from cofounder_expenses.services.authorization_service import ensure_authenticated
from cofounder_expenses.services.expense_service import expense_service
from cofounder_expenses.services.ledger_service import LedgerPhase
from cofounder_expenses.services.quorum_service import quorum_service
from cofounder_expenses.utils.helpers import add_months, month_start, utcnow

ZERO = Decimal("0.00")
TREND_MONTHS = 6
LIST_SIZE = 5

# Rejected spending never leaves the company, so it is left out of the totals
UNSPENT_STATUSES = (ExpenseStatus.REJECTED,)


@dataclass
class SpendingSummary:
    month: str
    user_total: Decimal = ZERO
    team_total: Decimal = ZERO


@dataclass
class DashboardStats:
    user_total: Decimal = ZERO
    team_total: Decimal = ZERO
    pending_approval_count: int = 0
    user_pending_count: int = 0


@dataclass
class PendingExpense:
    """One of the actor's own expenses still collecting approvals"""
    expense: Expense
    approvals_needed: int
    pending_approvers: List[User] = field(default_factory=list)


@dataclass
class TrendPoint:
    month: str
    total: Decimal = ZERO


@dataclass
class CategoryShare:
    category: str
    total: Decimal = ZERO
    percentage: int = 0


@dataclass
class Dashboard:
    stats: DashboardStats
    pending_approvals: List[Expense]
    user_pending_expenses: List[PendingExpense]
    monthly_trend: List[TrendPoint]
    category_breakdown: List[CategoryShare]
    recent_activity: List[Expense]
    user_role: UserRole


class DashboardService:
    """Read-only aggregates for the landing page"""

    def _company_expenses(self, db: Session, actor: User):
        return db.query(Expense).join(User, Expense.owner_id == User.id).filter(
            User.company_id == actor.company_id
        )

    def _spent_between(self, db: Session, actor: User, start: date, end: date):
        """(owner_id, amount, category) rows dated in [start, end)"""
        return db.query(Expense.owner_id, Expense.amount, Expense.category).join(
            User, Expense.owner_id == User.id
        ).filter(
            User.company_id == actor.company_id,
            Expense.date >= start,
            Expense.date < end,
            ~Expense.status.in_(UNSPENT_STATUSES)
        ).all()

    def summary(self, db: Session, actor: Optional[User], today: Optional[date] = None) -> SpendingSummary:
        """
        The actor's and the company's spending for the current month

        Args:
            db: Database session
            actor: Requesting user
            today: Reference day, defaults to now

        Returns:
            SpendingSummary with the month as "YYYY-MM"
        """
        ensure_authenticated(actor)
        start = month_start(today or utcnow().date())
        rows = self._spent_between(db, actor, start, add_months(start, 1))

        result = SpendingSummary(month=start.strftime("%Y-%m"))
        for owner_id, amount, _ in rows:
            result.team_total += amount
            if owner_id == actor.id:
                result.user_total += amount
        return result

    def _monthly_trend(self, db: Session, actor: User, current: date) -> List[TrendPoint]:
        first = add_months(current, 1 - TREND_MONTHS)
        points: Dict[date, TrendPoint] = {}
        for offset in range(TREND_MONTHS):
            month = add_months(first, offset)
            points[month] = TrendPoint(month=month.strftime("%b"))

        rows = db.query(Expense.amount, Expense.date).join(User, Expense.owner_id == User.id).filter(
            User.company_id == actor.company_id,
            Expense.date >= first,
            Expense.date < add_months(current, 1),
            ~Expense.status.in_(UNSPENT_STATUSES)
        ).all()
        for amount, spent_on in rows:
            points[month_start(spent_on)].total += amount
        return list(points.values())

    def _category_breakdown(self, rows) -> List[CategoryShare]:
        totals: Dict[str, Decimal] = {}
        for _, amount, category in rows:
            totals[category] = totals.get(category, ZERO) + amount

        top = sorted(totals.items(), key=lambda item: (-item[1], item[0]))[:LIST_SIZE]
        shown = sum((total for _, total in top), ZERO)

        shares = []
        for category, total in top:
            percentage = 0
            if shown > 0:
                percentage = int((total / shown * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
            shares.append(CategoryShare(category=category, total=total, percentage=percentage))
        return shares

    def get_dashboard(self, db: Session, actor: Optional[User], today: Optional[date] = None) -> Dashboard:
        """
        Everything the landing page shows in one read

        Founders get the expenses waiting on their sign-off. Recent activity
        follows the expense visibility rules: founders see the whole company,
        members only their own expenses.
        """
        ensure_authenticated(actor)
        current = month_start(today or utcnow().date())
        month_rows = self._spent_between(db, actor, current, add_months(current, 1))

        waiting_on_actor = expense_service.pending_decisions(db, actor)

        own_pending = db.query(Expense).filter(
            Expense.owner_id == actor.id,
            Expense.status == ExpenseStatus.PENDING_APPROVAL
        ).order_by(Expense.created_at.desc(), Expense.id.desc()).all()

        stats = DashboardStats(
            pending_approval_count=len(waiting_on_actor),
            user_pending_count=len(own_pending),
        )
        for owner_id, amount, _ in month_rows:
            stats.team_total += amount
            if owner_id == actor.id:
                stats.user_total += amount

        user_pending = [
            PendingExpense(
                expense=expense,
                approvals_needed=quorum_service.approvals_needed_for(db, expense),
                pending_approvers=quorum_service.pending_approvers(db, expense, LedgerPhase.EXPENSE),
            )
            for expense in own_pending[:LIST_SIZE]
        ]

        recent = self._company_expenses(db, actor)
        if not actor.is_founder:
            recent = recent.filter(Expense.owner_id == actor.id)
        recent_activity = recent.order_by(Expense.created_at.desc(), Expense.id.desc()).limit(LIST_SIZE).all()

        return Dashboard(
            stats=stats,
            pending_approvals=waiting_on_actor[:LIST_SIZE],
            user_pending_expenses=user_pending,
            monthly_trend=self._monthly_trend(db, actor, current),
            category_breakdown=self._category_breakdown(month_rows),
            recent_activity=recent_activity,
            user_role=actor.role,
        )


# Create singleton instance
dashboard_service = DashboardService()
