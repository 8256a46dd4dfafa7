"""
Dashboard Tests
Month totals, open items, trend and category shares
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from cofounder_expenses.models.user import UserRole
from cofounder_expenses.services.dashboard_service import dashboard_service
from cofounder_expenses.services.expense_service import expense_service
from cofounder_expenses.utils.exceptions import UnauthenticatedError
from cofounder_expenses.utils.helpers import add_months, utcnow

from factories import auth_headers, money, submit


@pytest.fixture
def today():
    return utcnow().date()


@pytest.fixture
def activity(db, team, today):
    """This month: A 50 Software, M 30 Travel, M 20 Software, B 15 Food rejected"""
    spent_on = today.isoformat()
    own = submit(db, team["A"], amount="50.00", date=spent_on)
    travel = submit(db, team["M"], amount="30.00", category="Travel", date=spent_on)
    software = submit(db, team["M"], amount="20.00", date=spent_on)
    rejected = submit(db, team["B"], amount="15.00", category="Food", date=spent_on)
    expense_service.reject(db, team["A"], rejected.id, "Personal meal")
    return {"own": own, "travel": travel, "software": software, "rejected": rejected}


class TestSummary:

    def test_current_month_totals(self, db, team, activity, today):
        summary = dashboard_service.summary(db, team["M"], today=today)

        assert summary.month == today.strftime("%Y-%m")
        assert summary.user_total == money("50.00")
        assert summary.team_total == money("100.00")

    def test_previous_month_is_excluded(self, db, team, activity, today):
        summary = dashboard_service.summary(db, team["M"], today=add_months(today, 1))
        assert summary.team_total == Decimal("0")

    def test_summary_endpoint(self, client, team, activity):
        response = client.get("/api/expenses/summary", headers=auth_headers(team["A"]))
        assert response.status_code == 200
        assert Decimal(response.json()["user_total"]) == Decimal("50.00")

    def test_requires_authentication(self, db):
        with pytest.raises(UnauthenticatedError):
            dashboard_service.summary(db, None)


class TestDashboard:

    def test_founder_view(self, db, team, activity, today):
        dashboard = dashboard_service.get_dashboard(db, team["B"], today=today)

        assert dashboard.user_role == UserRole.FOUNDER
        # A's and both of M's expenses wait on B
        assert dashboard.stats.pending_approval_count == 3
        assert {e.id for e in dashboard.pending_approvals} == {
            activity["own"].id, activity["travel"].id, activity["software"].id
        }
        assert dashboard.stats.team_total == money("100.00")
        assert dashboard.stats.user_total == Decimal("0")
        assert len(dashboard.recent_activity) == 4

    def test_own_pending_lists_outstanding_approvers(self, db, team, activity, today):
        expense_service.approve(db, team["B"], activity["own"].id)

        dashboard = dashboard_service.get_dashboard(db, team["A"], today=today)

        assert dashboard.stats.user_pending_count == 1
        pending = dashboard.user_pending_expenses[0]
        assert pending.expense.id == activity["own"].id
        assert pending.approvals_needed == 2
        assert [u.id for u in pending.pending_approvers] == [team["C"].id]

    def test_member_sees_only_own_activity(self, db, team, activity, today):
        dashboard = dashboard_service.get_dashboard(db, team["M"], today=today)

        assert dashboard.stats.pending_approval_count == 0
        assert dashboard.pending_approvals == []
        assert dashboard.stats.user_pending_count == 2
        assert {e.owner_id for e in dashboard.recent_activity} == {team["M"].id}

    def test_trend_and_categories(self, db, team, activity, today):
        dashboard = dashboard_service.get_dashboard(db, team["A"], today=today)

        assert len(dashboard.monthly_trend) == 6
        assert dashboard.monthly_trend[-1].month == today.strftime("%b")
        assert dashboard.monthly_trend[-1].total == money("100.00")
        assert all(point.total == Decimal("0") for point in dashboard.monthly_trend[:-1])

        shares = [(s.category, s.total, s.percentage) for s in dashboard.category_breakdown]
        assert shares == [("Software", money("70.00"), 70), ("Travel", money("30.00"), 30)]

    def test_trend_covers_older_months(self, db, team, today):
        older = today - timedelta(days=45)
        submit(db, team["A"], amount="12.00", date=older.isoformat())

        trend = dashboard_service.get_dashboard(db, team["A"], today=today).monthly_trend
        assert sum((point.total for point in trend), Decimal("0")) == money("12.00")

    def test_dashboard_endpoint(self, client, team, activity):
        response = client.get("/api/dashboard", headers=auth_headers(team["A"]))
        assert response.status_code == 200
        data = response.json()

        assert data["user_role"] == "founder"
        assert data["stats"]["pending_approval_count"] == 2
        assert data["user_pending_expenses"][0]["approvals_needed"] == 2
        assert len(data["user_pending_expenses"][0]["pending_approvers"]) == 2
        assert len(data["monthly_trend"]) == 6
