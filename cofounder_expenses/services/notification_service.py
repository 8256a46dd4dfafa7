"""
Notification Service
Turns expense events into in-app notifications and serves them back to users
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from cofounder_expenses.config.database import SessionLocal, atomic
from cofounder_expenses.models.expense import Expense
from cofounder_expenses.models.notification import Notification, NotificationType
from cofounder_expenses.models.user import User
from cofounder_expenses.services.expense_workflow import ExpenseEvent, ExpenseEventType
from cofounder_expenses.services.ledger_service import LedgerPhase
from cofounder_expenses.services.quorum_service import quorum_service
from cofounder_expenses.utils.exceptions import NotFoundError
from cofounder_expenses.utils.helpers import format_currency, utcnow
from cofounder_expenses.utils.logger import setup_logger

logger = setup_logger()


EVENT_NOTIFICATION_TYPES = {
    ExpenseEventType.SUBMITTED: NotificationType.EXPENSE_SUBMITTED,
    ExpenseEventType.APPROVED: NotificationType.EXPENSE_APPROVED,
    ExpenseEventType.REJECTED: NotificationType.EXPENSE_REJECTED,
    ExpenseEventType.WITHDRAWAL_REQUESTED: NotificationType.WITHDRAWAL_REQUESTED,
    ExpenseEventType.WITHDRAWAL_APPROVED: NotificationType.WITHDRAWAL_APPROVED,
    ExpenseEventType.WITHDRAWAL_REJECTED: NotificationType.WITHDRAWAL_REJECTED,
    ExpenseEventType.RECEIVED: NotificationType.RECEIPT_CONFIRMED,
    ExpenseEventType.NUDGED: NotificationType.APPROVAL_REMINDER,
}

# Events addressed to the expense owner; everything else goes to founders
OWNER_EVENTS = frozenset({
    ExpenseEventType.APPROVED,
    ExpenseEventType.REJECTED,
    ExpenseEventType.WITHDRAWAL_APPROVED,
    ExpenseEventType.WITHDRAWAL_REJECTED,
})


@dataclass
class Delivery:
    """What to tell whom about one event"""
    expense: Expense
    actor: Optional[User]
    recipients: List[User]
    type: NotificationType
    title: str
    message: str


def describe_event(event: ExpenseEvent, expense: Expense, actor: Optional[User]) -> Tuple[str, str]:
    """
    Title and message for an event

    Args:
        event: Committed expense event
        expense: The expense, as stored after the transition
        actor: User who caused the event

    Returns:
        Tuple of (title, message)
    """
    owner_name = expense.owner.name
    actor_name = actor.name if actor else "Someone"
    amount = format_currency(expense.amount, expense.owner.company.currency)
    subject = f"{amount} for {expense.description}"

    if event.type == ExpenseEventType.SUBMITTED:
        return "New expense to review", f"{owner_name} submitted {subject}."
    if event.type == ExpenseEventType.APPROVED:
        return "Expense approved", f"Your expense {subject} has been approved."
    if event.type == ExpenseEventType.REJECTED:
        return "Expense rejected", f"{actor_name} rejected your expense {subject}: {expense.rejection_reason}"
    if event.type == ExpenseEventType.WITHDRAWAL_REQUESTED:
        return "Withdrawal requested", f"{owner_name} requested withdrawal of {subject}."
    if event.type == ExpenseEventType.WITHDRAWAL_APPROVED:
        return "Withdrawal approved", f"Your withdrawal of {subject} has been approved."
    if event.type == ExpenseEventType.WITHDRAWAL_REJECTED:
        return "Withdrawal rejected", f"{actor_name} rejected your withdrawal of {subject}: {expense.rejection_reason}"
    if event.type == ExpenseEventType.RECEIVED:
        return "Reimbursement received", f"{owner_name} confirmed receipt of {subject}."
    return "Approval reminder", f"{owner_name} is waiting for your approval of {subject}."


class NotificationService:
    """Service for managing notifications"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def recipients_for(self, db: Session, event: ExpenseEvent, expense: Expense) -> List[User]:
        """Users to notify about `event`, never including the actor"""
        if event.type in OWNER_EVENTS:
            recipients = [expense.owner]
        elif event.recipient_ids:
            recipients = db.query(User).filter(
                User.id.in_(event.recipient_ids)
            ).order_by(User.id).all()
        elif event.type == ExpenseEventType.SUBMITTED:
            recipients = quorum_service.pending_approvers(db, expense, LedgerPhase.EXPENSE)
        elif event.type == ExpenseEventType.RECEIVED:
            recipients = quorum_service.other_founders(db, expense)
        else:
            recipients = []

        return [user for user in recipients if user.id != event.actor_id and user.is_active]

    def prepare(self, db: Session, event: ExpenseEvent) -> Optional[Delivery]:
        """Resolve recipients and text for an event, None if there is nothing to send"""
        expense = db.query(Expense).filter(Expense.id == event.expense_id).first()
        if expense is None:
            logger.warning(f"Expense {event.expense_id} vanished before {event.type.value} could be delivered")
            return None

        recipients = self.recipients_for(db, event, expense)
        if not recipients:
            return None

        actor = db.query(User).filter(User.id == event.actor_id).first()
        title, message = describe_event(event, expense, actor)
        return Delivery(
            expense=expense,
            actor=actor,
            recipients=recipients,
            type=EVENT_NOTIFICATION_TYPES[event.type],
            title=title,
            message=message,
        )

    def deliver(self, event: ExpenseEvent) -> int:
        """
        Persist one notification per recipient; returns how many were written

        Runs after the originating transaction committed, in its own session.
        """
        db = self.session_factory()
        try:
            with atomic(db):
                delivery = self.prepare(db, event)
                if delivery is None:
                    return 0
                for user in delivery.recipients:
                    db.add(Notification(
                        user_id=user.id,
                        type=delivery.type,
                        title=delivery.title,
                        message=delivery.message,
                        expense_id=event.expense_id
                    ))
            logger.info(
                f"Notified {len(delivery.recipients)} user(s) of {event.type.value} on expense {event.expense_id}"
            )
            return len(delivery.recipients)
        finally:
            db.close()

    async def handle_event(self, event: ExpenseEvent):
        """Dispatcher subscriber; the ORM is blocking so it runs in the threadpool"""
        await run_in_threadpool(self.deliver, event)

    def notify_promoted(self, db: Session, user: User, promoted_by: User):
        """Queue a notification for a member who just became a founder"""
        db.add(Notification(
            user_id=user.id,
            type=NotificationType.PROMOTED_TO_FOUNDER,
            title="You are now a founder",
            message=f"{promoted_by.name} made you a founder. You can now approve expenses.",
        ))

    def list_notifications(
        self,
        db: Session,
        user: User,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Notification], int]:
        query = db.query(Notification).filter(Notification.user_id == user.id)
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712

        total = query.count()
        notifications = query.order_by(
            Notification.created_at.desc(), Notification.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()
        return notifications, total

    def unread_count(self, db: Session, user: User) -> int:
        return db.query(Notification).filter(
            Notification.user_id == user.id,
            Notification.is_read == False  # noqa: E712
        ).count()

    def mark_read(self, db: Session, user: User, notification_id: int) -> Notification:
        """
        Mark one of the user's notifications as read

        Raises:
            NotFoundError: If the notification does not exist or belongs to someone else
        """
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user.id
        ).first()
        if notification is None:
            raise NotFoundError("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            db.commit()
            db.refresh(notification)
        return notification

    def mark_all_read(self, db: Session, user: User) -> int:
        updated = db.query(Notification).filter(
            Notification.user_id == user.id,
            Notification.is_read == False  # noqa: E712
        ).update({"is_read": True, "read_at": utcnow()}, synchronize_session=False)
        db.commit()
        logger.info(f"Marked {updated} notification(s) read for user {user.id}")
        return updated


# Create singleton instance
notification_service = NotificationService()
