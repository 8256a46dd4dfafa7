"""
Team and Company Tests
Members, roles and company settings
"""

import pytest

from cofounder_expenses.config.database import SessionLocal
from cofounder_expenses.models.notification import Notification, NotificationType
from cofounder_expenses.models.user import User, UserRole
from cofounder_expenses.services.company_service import company_service
from cofounder_expenses.services.expense_service import expense_service
from cofounder_expenses.models.expense import ExpenseStatus
from cofounder_expenses.utils.exceptions import ForbiddenError, NotFoundError

from factories import auth_headers, create_company, create_user, submit


class TestTeam:

    def test_list_team_founders_first(self, client, team):
        response = client.get("/api/team", headers=auth_headers(team["M"]))
        assert response.status_code == 200
        roles = [member["role"] for member in response.json()]
        assert roles == ["founder", "founder", "founder", "member"]

    def test_founder_adds_member(self, client, team):
        response = client.post("/api/team", json={
            "email": "new.hire@acme.com",
            "name": "New Hire",
            "password": "welcome123",
        }, headers=auth_headers(team["A"]))

        assert response.status_code == 201
        assert response.json()["role"] == "member"
        assert response.json()["company_id"] == team["A"].company_id

    def test_member_cannot_add(self, client, team):
        response = client.post("/api/team", json={
            "email": "sneaky@acme.com",
            "name": "Sneaky",
            "password": "welcome123",
        }, headers=auth_headers(team["M"]))
        assert response.status_code == 403


class TestRoles:

    def test_promotion_notifies_and_counts_immediately(self, client, db, team):
        expense = submit(db, team["A"])
        assert expense_service.approvals_needed(db, expense) == 2

        response = client.patch(
            f"/api/team/{team['M'].id}/role",
            json={"role": "founder"},
            headers=auth_headers(team["B"])
        )
        assert response.status_code == 200
        assert response.json()["role"] == "founder"

        db.expire_all()
        assert expense_service.approvals_needed(db, expense) == 3
        notification = db.query(Notification).filter(Notification.user_id == team["M"].id).one()
        assert notification.type == NotificationType.PROMOTED_TO_FOUNDER

    def test_last_founder_cannot_be_demoted(self, db):
        company = create_company(db)
        solo = create_user(db, company, "Solo", UserRole.FOUNDER)

        with pytest.raises(ForbiddenError) as exc_info:
            company_service.change_role(db, solo, solo.id, UserRole.MEMBER)
        assert exc_info.value.message == "Cannot demote the last founder"

        db.refresh(solo)
        assert solo.role == UserRole.FOUNDER

    def test_inactive_founders_do_not_count_towards_the_last_founder(self, db, company, team):
        a = team["A"]
        company_service.change_role(db, a, team["B"].id, UserRole.MEMBER)
        company_service.change_role(db, a, team["C"].id, UserRole.MEMBER)
        create_user(db, company, "Xavier Away", UserRole.FOUNDER, is_active=False)

        with pytest.raises(ForbiddenError) as exc_info:
            company_service.change_role(db, a, a.id, UserRole.MEMBER)
        assert exc_info.value.message == "Cannot demote the last founder"

        db.refresh(a)
        assert a.role == UserRole.FOUNDER

        # Members still need A's sign-off instead of approving automatically
        expense = submit(db, team["M"])
        assert expense.status == ExpenseStatus.PENDING_APPROVAL
        assert expense_service.approvals_needed(db, expense) == 1

    def test_demoted_founder_acting_from_a_stale_session_is_refused(self, db, team):
        other_session = SessionLocal()
        try:
            stale_a = other_session.get(User, team["A"].id)
            company_service.change_role(db, team["B"], team["A"].id, UserRole.MEMBER)

            with pytest.raises(ForbiddenError):
                company_service.change_role(other_session, stale_a, team["C"].id, UserRole.MEMBER)
        finally:
            other_session.close()

        db.refresh(team["C"])
        assert team["C"].role == UserRole.FOUNDER

    def test_demotion_with_other_founders(self, db, team):
        user = company_service.change_role(db, team["A"], team["C"].id, UserRole.MEMBER)
        assert user.role == UserRole.MEMBER

    def test_member_cannot_change_roles(self, db, team):
        with pytest.raises(ForbiddenError):
            company_service.change_role(db, team["M"], team["M"].id, UserRole.FOUNDER)

    def test_cross_tenant_target_is_not_found(self, db, team, other_company_founder):
        with pytest.raises(NotFoundError):
            company_service.change_role(db, team["A"], other_company_founder.id, UserRole.MEMBER)

    def test_new_founder_can_finish_pending_approval(self, db, team):
        expense = submit(db, team["A"])
        expense_service.approve(db, team["B"], expense.id)
        company_service.change_role(db, team["A"], team["C"].id, UserRole.MEMBER)

        # B alone is now the whole quorum, but the status only moves on a decision
        company_service.change_role(db, team["A"], team["M"].id, UserRole.FOUNDER)
        member = db.query(User).filter(User.id == team["M"].id).one()
        result = expense_service.approve(db, member, expense.id)
        assert result.expense.status == ExpenseStatus.APPROVED


class TestCompanySettings:

    def test_defaults(self, client, team):
        response = client.get("/api/company-settings", headers=auth_headers(team["M"]))
        data = response.json()
        assert data["currency"] == "USD"
        assert data["nudge_cooldown_hours"] is None
        assert data["effective_nudge_cooldown_hours"] == 24

    def test_founder_updates(self, client, team):
        response = client.patch(
            "/api/company-settings",
            json={"currency": "GBP", "nudge_cooldown_hours": 0, "name": "  Acme Ltd "},
            headers=auth_headers(team["A"])
        )
        assert response.status_code == 200
        data = response.json()
        assert data["currency"] == "GBP"
        assert data["name"] == "Acme Ltd"
        assert data["nudge_cooldown_hours"] == 0
        assert data["effective_nudge_cooldown_hours"] == 0

    def test_member_cannot_update(self, client, team):
        response = client.patch(
            "/api/company-settings",
            json={"currency": "GBP"},
            headers=auth_headers(team["M"])
        )
        assert response.status_code == 403

    @pytest.mark.parametrize("payload", [
        {"currency": "BTC"},
        {"nudge_cooldown_hours": -1},
        {"nudge_cooldown_hours": 169},
        {"name": "   "},
    ])
    def test_invalid_settings(self, client, team, payload):
        response = client.patch("/api/company-settings", json=payload, headers=auth_headers(team["A"]))
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
