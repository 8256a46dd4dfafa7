"""
Notification Tests
Event dispatch, in-app notifications and e-mail delivery
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cofounder_expenses.models.notification import Notification, NotificationType
from cofounder_expenses.services.email_service import EmailService
from cofounder_expenses.services.event_dispatcher import EventDispatcher
from cofounder_expenses.services.expense_service import expense_service
from cofounder_expenses.services.expense_workflow import ExpenseEvent, ExpenseEventType
from cofounder_expenses.services.notification_service import notification_service

from factories import auth_headers, expense_payload, submit


class TestEventDispatcher:

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_stop_others(self):
        dispatcher = EventDispatcher()
        broken = dispatcher.subscribe(AsyncMock(side_effect=RuntimeError("smtp down")))
        healthy = dispatcher.subscribe(AsyncMock())
        event = ExpenseEvent(ExpenseEventType.APPROVED, expense_id=1, actor_id=2)

        await dispatcher.dispatch([event])

        broken.assert_awaited_once_with(event)
        healthy.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_events_delivered_in_order(self):
        dispatcher = EventDispatcher()
        received = []

        async def record(event):
            received.append(event.expense_id)

        dispatcher.subscribe(record)
        await dispatcher.dispatch([
            ExpenseEvent(ExpenseEventType.NUDGED, expense_id=1, actor_id=9),
            ExpenseEvent(ExpenseEventType.NUDGED, expense_id=2, actor_id=9),
        ])
        assert received == [1, 2]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        dispatcher = EventDispatcher()
        subscriber = dispatcher.subscribe(AsyncMock())
        dispatcher.unsubscribe(subscriber)

        await dispatcher.dispatch([ExpenseEvent(ExpenseEventType.RECEIVED, expense_id=1, actor_id=1)])
        subscriber.assert_not_awaited()

    def test_failed_delivery_leaves_transition_committed(self, client, db, team):
        expense = submit(db, team["M"])

        with patch.object(notification_service, "prepare", side_effect=RuntimeError("boom")):
            response = client.post(
                f"/api/expenses/{expense.id}/reject",
                json={"reason": "No receipt"},
                headers=auth_headers(team["A"])
            )

        assert response.status_code == 200
        db.refresh(expense)
        assert expense.status.value == "rejected"


class TestInAppNotifications:

    @pytest.mark.asyncio
    async def test_rejection_notifies_owner(self, db, team):
        expense = submit(db, team["M"])
        result = expense_service.reject(db, team["A"], expense.id, "Missing receipt")

        await notification_service.handle_event(result.events[0])

        rows = db.query(Notification).filter(Notification.user_id == team["M"].id).all()
        assert len(rows) == 1
        assert rows[0].type == NotificationType.EXPENSE_REJECTED
        assert "Missing receipt" in rows[0].message
        assert rows[0].expense_id == expense.id

    @pytest.mark.asyncio
    async def test_actor_is_never_notified(self, db, team):
        expense = submit(db, team["A"])
        event = ExpenseEvent(ExpenseEventType.RECEIVED, expense_id=expense.id, actor_id=team["A"].id)

        await notification_service.handle_event(event)

        recipients = {n.user_id for n in db.query(Notification).all()}
        assert recipients == {team["B"].id, team["C"].id}

    @pytest.mark.asyncio
    async def test_missing_expense_is_skipped(self, db, team):
        event = ExpenseEvent(ExpenseEventType.APPROVED, expense_id=4242, actor_id=team["A"].id)
        await notification_service.handle_event(event)
        assert db.query(Notification).count() == 0

    def test_list_and_mark_read(self, client, db, team):
        expense = submit(db, team["M"])
        headers = auth_headers(team["M"])
        client.post(
            f"/api/expenses/{expense.id}/reject",
            json={"reason": "Duplicate"},
            headers=auth_headers(team["A"])
        )

        response = client.get("/api/notifications", headers=headers)
        data = response.json()
        assert data["total"] == 1
        assert data["unread_count"] == 1
        notification_id = data["notifications"][0]["id"]

        response = client.post(f"/api/notifications/{notification_id}/read", headers=headers)
        assert response.status_code == 200
        assert response.json()["is_read"] is True
        assert response.json()["read_at"] is not None

        response = client.get("/api/notifications", params={"unread_only": True}, headers=headers)
        assert response.json()["total"] == 0

    def test_cannot_read_someone_elses_notification(self, client, db, team):
        expense = submit(db, team["M"])
        client.post(
            f"/api/expenses/{expense.id}/reject",
            json={"reason": "Duplicate"},
            headers=auth_headers(team["A"])
        )
        notification = db.query(Notification).first()

        response = client.post(f"/api/notifications/{notification.id}/read", headers=auth_headers(team["B"]))
        assert response.status_code == 404

    def test_mark_all_read(self, client, db, team):
        for amount in ("15.00", "16.00"):
            client.post("/api/expenses", json=expense_payload(amount), headers=auth_headers(team["M"]))

        headers = auth_headers(team["A"])
        assert client.get("/api/notifications/unread-count", headers=headers).json()["unread_count"] == 2

        response = client.post("/api/notifications/mark-all-read", headers=headers)
        assert response.json()["updated"] == 2
        assert client.get("/api/notifications/unread-count", headers=headers).json()["unread_count"] == 0


class TestEmailNotifications:

    def make_service(self):
        service = EmailService()
        service.smtp_username = "mailer@example.com"
        service.smtp_password = "secret"
        service.from_email = "mailer@example.com"
        service.is_configured = True
        return service

    def test_sends_one_mail_per_recipient(self, db, team):
        expense = submit(db, team["M"])
        event = ExpenseEvent(ExpenseEventType.SUBMITTED, expense_id=expense.id, actor_id=team["M"].id)
        service = self.make_service()

        with patch("cofounder_expenses.services.email_service.smtplib.SMTP") as mock_smtp:
            server = MagicMock()
            mock_smtp.return_value.__enter__.return_value = server
            sent = service.deliver(event)

        assert sent == 3
        assert server.send_message.call_count == 3
        recipients = {call.args[0]["To"] for call in server.send_message.call_args_list}
        assert recipients == {team[k].email for k in ("A", "B", "C")}

    def test_smtp_failure_is_logged_not_raised(self, db, team):
        expense = submit(db, team["M"])
        event = ExpenseEvent(ExpenseEventType.SUBMITTED, expense_id=expense.id, actor_id=team["M"].id)
        service = self.make_service()

        with patch("cofounder_expenses.services.email_service.smtplib.SMTP", side_effect=OSError("refused")):
            assert service.deliver(event) == 0

    def test_unconfigured_service_skips(self, db, team):
        expense = submit(db, team["M"])
        service = EmailService()
        service.is_configured = False

        with patch("cofounder_expenses.services.email_service.smtplib.SMTP") as mock_smtp:
            sent = service.deliver(ExpenseEvent(ExpenseEventType.SUBMITTED, expense.id, team["M"].id))

        assert sent == 0
        mock_smtp.assert_not_called()

    def test_user_text_is_escaped_in_html(self, db, team):
        expense = submit(db, team["M"], category="<b>Travel</b>")
        result = expense_service.reject(db, team["A"], expense.id, "<script>alert('x')</script>")
        service = self.make_service()

        delivery = notification_service.prepare(db, result.events[0])
        html_content, text_content = service.render(delivery, "Mia <Member>")

        assert "<script>" not in html_content
        assert "&lt;script&gt;" in html_content
        assert "&lt;b&gt;Travel&lt;/b&gt;" in html_content
        assert "Mia &lt;Member&gt;" in html_content
        # The plain-text part is not HTML and keeps the original text
        assert "<script>alert('x')</script>" in text_content


class TestNotificationThreadpool:

    @pytest.mark.asyncio
    async def test_handler_runs_delivery_off_the_event_loop(self):
        event = ExpenseEvent(ExpenseEventType.APPROVED, expense_id=1, actor_id=1)

        with patch(
            "cofounder_expenses.services.notification_service.run_in_threadpool",
            new_callable=AsyncMock
        ) as mock_run:
            await notification_service.handle_event(event)

        mock_run.assert_awaited_once_with(notification_service.deliver, event)

    def test_deliver_returns_recipient_count(self, db, team):
        expense = submit(db, team["M"])
        event = ExpenseEvent(ExpenseEventType.SUBMITTED, expense_id=expense.id, actor_id=team["M"].id)

        assert notification_service.deliver(event) == 3
        assert db.query(Notification).count() == 3
