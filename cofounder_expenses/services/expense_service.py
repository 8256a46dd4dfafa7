"""
Expense Service
The expense lifecycle: submission, founder decisions, withdrawal and receipt.

Every operation is one unit of work. The expense row is read (locked where
the database supports it), the workflow and quorum are evaluated, ledger rows
are inserted and the status is written with a compare-and-swap on
`Expense.version`. Any failure rolls the whole unit back. Events describing
what happened are returned to the caller for dispatch after commit.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from cofounder_expenses.config.database import atomic
from cofounder_expenses.config.settings import settings
from cofounder_expenses.models.approval import Approval, WithdrawalApproval
from cofounder_expenses.models.audit_log import AuditLog
from cofounder_expenses.models.company import Company
from cofounder_expenses.models.expense import Expense, ExpenseStatus
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.expense import ExpenseCreate, ExpenseUpdate
from cofounder_expenses.services import expense_workflow
from cofounder_expenses.services.authorization_service import authorize, ensure_authenticated
from cofounder_expenses.services.expense_workflow import ExpenseAction, ExpenseEvent, ExpenseEventType
from cofounder_expenses.services.ledger_service import LedgerPhase, ledger_service
from cofounder_expenses.services.quorum_service import quorum_service
from cofounder_expenses.services.validation_service import validation_service
from cofounder_expenses.utils.exceptions import (
    ConcurrencyConflictError,
    InvalidStateError,
    RateLimitedError,
    UnauthenticatedError,
    ValidationError,
)
from cofounder_expenses.utils.helpers import utcnow
from cofounder_expenses.utils.logger import setup_logger, log_audit

logger = setup_logger()

# Fields an owner may not blank out through a partial update
REQUIRED_FIELDS = ("amount", "category", "date", "description")


@dataclass
class TransitionResult:
    """Updated expense plus the events to dispatch once committed"""
    expense: Expense
    events: List[ExpenseEvent] = field(default_factory=list)
    approvals_needed: Optional[int] = None


@dataclass
class NudgeResult:
    expense: Expense
    pending_approvers: List[User]
    next_nudge_at: Optional[datetime]
    events: List[ExpenseEvent] = field(default_factory=list)


@dataclass
class BulkNudgeResult:
    nudged_count: int
    skipped_count: int
    approvers_notified: int
    next_nudge_at: Optional[datetime]
    events: List[ExpenseEvent] = field(default_factory=list)


def nudge_cooldown(company: Company) -> timedelta:
    """Company cooldown, falling back to the configured default when unset"""
    hours = company.nudge_cooldown_hours
    if hours is None:
        hours = settings.DEFAULT_NUDGE_COOLDOWN_HOURS
    return timedelta(hours=hours)


def _format_cooldown(cooldown: timedelta) -> str:
    hours = int(cooldown.total_seconds() // 3600)
    return "1 hour" if hours == 1 else f"{hours} hours"


class ExpenseService:
    """Service for expense-related business logic"""

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def _load(
        self,
        db: Session,
        actor: Optional[User],
        expense_id: int,
        action: ExpenseAction,
        lock: bool = False
    ) -> Expense:
        """Fetch an expense and run the authorization gate for `action`"""
        if actor is None:
            raise UnauthenticatedError()

        query = db.query(Expense).filter(Expense.id == expense_id)
        if lock:
            query = query.with_for_update()
        expense = query.first()

        authorize(actor, expense, action).raise_if_denied()
        return expense

    def _compare_and_swap(
        self,
        db: Session,
        expense_id: int,
        expected_version: int,
        values: Dict[str, Any]
    ) -> None:
        """
        Write `values` only if nobody else changed the expense since it was read

        Raises:
            ConcurrencyConflictError: If the stored version moved on
        """
        values = dict(values, version=expected_version + 1, updated_at=utcnow())
        updated = db.query(Expense).filter(
            Expense.id == expense_id,
            Expense.version == expected_version
        ).update(values, synchronize_session=False)

        if updated != 1:
            logger.warning(f"Version conflict on expense {expense_id} (expected v{expected_version})")
            raise ConcurrencyConflictError()

    def _audit(
        self,
        db: Session,
        actor: User,
        expense_id: int,
        action: str,
        from_status: Optional[ExpenseStatus],
        to_status: Optional[ExpenseStatus],
        description: str
    ) -> None:
        db.add(AuditLog(
            user_id=actor.id,
            company_id=actor.company_id,
            action=action,
            entity_type="expense",
            entity_id=expense_id,
            description=description,
            changes={
                "from": from_status.value if from_status else None,
                "to": to_status.value if to_status else None,
            }
        ))

    def _committed(self, db: Session, expense: Expense, actor: User, action: str, details: str) -> Expense:
        db.refresh(expense)
        log_audit(actor.id, action, details)
        return expense

    # ------------------------------------------------------------------
    # Submission and owner edits
    # ------------------------------------------------------------------

    def submit_expense(self, db: Session, actor: Optional[User], payload: ExpenseCreate) -> TransitionResult:
        """
        Create an expense owned by `actor`

        If nobody but the owner could ever approve it (solo founder), the
        approval phase completes immediately with an empty ledger.
        """
        ensure_authenticated(actor)

        with atomic(db):
            needed = quorum_service.approvals_needed(db, actor.company_id, actor.id)
            status = expense_workflow.initial_status(needed)
            now = utcnow()

            expense = Expense(
                owner_id=actor.id,
                amount=payload.amount,
                category=payload.category,
                date=payload.date,
                description=payload.description,
                notes=payload.notes,
                receipt_url=payload.receipt_url,
                status=status,
                version=1,
                approved_at=now if status == ExpenseStatus.APPROVED else None,
            )
            db.add(expense)
            db.flush()

            self._audit(db, actor, expense.id, "submit", None, status, f"Submitted expense of {payload.amount}")

        self._committed(db, expense, actor, "submit", f"expense={expense.id} status={status.value}")

        if status == ExpenseStatus.APPROVED:
            logger.info(f"Expense {expense.id} auto-approved: no other founder in company {actor.company_id}")
            events = [ExpenseEvent(ExpenseEventType.APPROVED, expense.id, actor.id)]
        else:
            logger.info(f"Expense {expense.id} submitted by user {actor.id}, {needed} approval(s) needed")
            events = [ExpenseEvent(ExpenseEventType.SUBMITTED, expense.id, actor.id)]

        return TransitionResult(expense, events, needed)

    def update_expense(
        self,
        db: Session,
        actor: Optional[User],
        expense_id: int,
        payload: ExpenseUpdate
    ) -> Expense:
        """Partial update by the owner while the expense is not under withdrawal"""
        changes = payload.model_dump(exclude_unset=True)
        for name in REQUIRED_FIELDS:
            if name in changes and changes[name] is None:
                raise ValidationError(f"{name.capitalize()} cannot be empty")

        with atomic(db):
            expense = self._load(db, actor, expense_id, ExpenseAction.UPDATE, lock=True)
            expense_workflow.ensure_allowed(expense.status, ExpenseAction.UPDATE)

            if changes:
                self._compare_and_swap(db, expense.id, expense.version, changes)
                self._audit(
                    db, actor, expense.id, "update", expense.status, expense.status,
                    f"Updated fields: {', '.join(sorted(changes))}"
                )

        return self._committed(db, expense, actor, "update", f"expense={expense_id} fields={sorted(changes)}")

    def delete_expense(self, db: Session, actor: Optional[User], expense_id: int) -> None:
        """Owner deletes an expense nobody has approved yet; ledger rows cascade"""
        with atomic(db):
            expense = self._load(db, actor, expense_id, ExpenseAction.DELETE, lock=True)
            expense_workflow.ensure_allowed(expense.status, ExpenseAction.DELETE)

            deleted = db.query(Expense).filter(
                Expense.id == expense.id,
                Expense.version == expense.version
            ).delete(synchronize_session=False)
            if deleted != 1:
                raise ConcurrencyConflictError()

            self._audit(db, actor, expense_id, "delete", ExpenseStatus.PENDING_APPROVAL, None, "Deleted expense")

        db.expunge(expense)
        log_audit(actor.id, "delete", f"expense={expense_id}")
        logger.info(f"Expense {expense_id} deleted by user {actor.id}")

    # ------------------------------------------------------------------
    # Founder decisions
    # ------------------------------------------------------------------

    def _record_decision(
        self,
        db: Session,
        actor: Optional[User],
        expense_id: int,
        action: ExpenseAction,
        phase: LedgerPhase,
        completed_field: str
    ) -> TransitionResult:
        with atomic(db):
            expense = self._load(db, actor, expense_id, action, lock=True)
            from_status = expense.status
            expense_workflow.ensure_allowed(from_status, action)
            version = expense.version

            ledger_service.record(db, expense.id, actor.id, phase)
            approver_count = ledger_service.approver_count(db, expense.id, phase)
            needed = quorum_service.approvals_needed_for(db, expense)

            new_status, event_type = expense_workflow.next_status(
                from_status, action, quorum_service.is_reached(approver_count, needed)
            )
            values = {"status": new_status}
            if new_status != from_status:
                values[completed_field] = utcnow()

            # The version bump serializes concurrent approvers even when the
            # status does not change, so no one counts a stale ledger.
            self._compare_and_swap(db, expense.id, version, values)
            self._audit(
                db, actor, expense.id, action.value, from_status, new_status,
                f"{approver_count}/{needed} {phase.value} approvals"
            )

        self._committed(db, expense, actor, action.value, f"expense={expense_id} status={new_status.value}")
        logger.info(
            f"User {actor.id} {action.value} on expense {expense_id}: "
            f"{approver_count}/{needed} approvals, status {new_status.value}"
        )

        events = [ExpenseEvent(event_type, expense.id, actor.id)] if event_type else []
        return TransitionResult(expense, events, needed)

    def _record_rejection(
        self,
        db: Session,
        actor: Optional[User],
        expense_id: int,
        action: ExpenseAction,
        reason: Optional[str]
    ) -> TransitionResult:
        with atomic(db):
            expense = self._load(db, actor, expense_id, action, lock=True)
            from_status = expense.status
            expense_workflow.ensure_allowed(from_status, action)
            cleaned = validation_service.clean_rejection_reason(reason)

            new_status, event_type = expense_workflow.next_status(from_status, action)
            self._compare_and_swap(db, expense.id, expense.version, {
                "status": new_status,
                "rejected_by_id": actor.id,
                "rejected_at": utcnow(),
                "rejection_reason": cleaned,
            })
            self._audit(db, actor, expense.id, action.value, from_status, new_status, f"Reason: {cleaned}")

        self._committed(db, expense, actor, action.value, f"expense={expense_id}")
        logger.info(f"Expense {expense_id} {new_status.value} by user {actor.id}")

        return TransitionResult(expense, [ExpenseEvent(event_type, expense.id, actor.id)])

    def approve(self, db: Session, actor: Optional[User], expense_id: int) -> TransitionResult:
        """Founder approval; completes the phase once quorum is reached"""
        return self._record_decision(
            db, actor, expense_id, ExpenseAction.APPROVE, LedgerPhase.EXPENSE, "approved_at"
        )

    def reject(self, db: Session, actor: Optional[User], expense_id: int, reason: Optional[str]) -> TransitionResult:
        return self._record_rejection(db, actor, expense_id, ExpenseAction.REJECT, reason)

    def approve_withdrawal(self, db: Session, actor: Optional[User], expense_id: int) -> TransitionResult:
        return self._record_decision(
            db, actor, expense_id, ExpenseAction.APPROVE_WITHDRAWAL, LedgerPhase.WITHDRAWAL, "withdrawal_approved_at"
        )

    def reject_withdrawal(
        self,
        db: Session,
        actor: Optional[User],
        expense_id: int,
        reason: Optional[str]
    ) -> TransitionResult:
        return self._record_rejection(db, actor, expense_id, ExpenseAction.REJECT_WITHDRAWAL, reason)

    # ------------------------------------------------------------------
    # Owner transitions
    # ------------------------------------------------------------------

    def request_withdrawal(self, db: Session, actor: Optional[User], expense_id: int) -> TransitionResult:
        """
        Owner asks for the money; quorum is recomputed for this phase

        Founders who joined since the expense was approved now have a say,
        and with no other founder the withdrawal approves itself.
        """
        with atomic(db):
            expense = self._load(db, actor, expense_id, ExpenseAction.REQUEST_WITHDRAWAL, lock=True)
            from_status = expense.status
            expense_workflow.ensure_allowed(from_status, ExpenseAction.REQUEST_WITHDRAWAL)

            needed = quorum_service.approvals_needed_for(db, expense)
            new_status, event_type = expense_workflow.next_status(
                from_status, ExpenseAction.REQUEST_WITHDRAWAL, quorum_service.is_reached(0, needed)
            )
            now = utcnow()
            values = {"status": new_status, "withdrawal_requested_at": now}
            if new_status == ExpenseStatus.WITHDRAWAL_APPROVED:
                values["withdrawal_approved_at"] = now

            recipients = tuple(u.id for u in quorum_service.pending_approvers(db, expense, LedgerPhase.WITHDRAWAL))

            self._compare_and_swap(db, expense.id, expense.version, values)
            self._audit(
                db, actor, expense.id, ExpenseAction.REQUEST_WITHDRAWAL.value, from_status, new_status,
                f"{needed} withdrawal approval(s) needed"
            )

        self._committed(db, expense, actor, "request_withdrawal", f"expense={expense_id} status={new_status.value}")
        logger.info(f"Withdrawal requested for expense {expense_id}: {needed} approval(s) needed")

        event = ExpenseEvent(event_type, expense.id, actor.id, recipient_ids=recipients)
        return TransitionResult(expense, [event], needed)

    def confirm_receipt(self, db: Session, actor: Optional[User], expense_id: int) -> TransitionResult:
        with atomic(db):
            expense = self._load(db, actor, expense_id, ExpenseAction.CONFIRM_RECEIPT, lock=True)
            from_status = expense.status
            new_status, event_type = expense_workflow.next_status(from_status, ExpenseAction.CONFIRM_RECEIPT)

            self._compare_and_swap(db, expense.id, expense.version, {
                "status": new_status,
                "received_at": utcnow(),
            })
            self._audit(db, actor, expense.id, "confirm_receipt", from_status, new_status, "Receipt confirmed")

        self._committed(db, expense, actor, "confirm_receipt", f"expense={expense_id}")
        logger.info(f"Expense {expense_id} marked received by user {actor.id}")

        return TransitionResult(expense, [ExpenseEvent(event_type, expense.id, actor.id)])

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    def nudge(self, db: Session, actor: Optional[User], expense_id: int) -> NudgeResult:
        """
        Remind founders who still owe a decision on a pending expense

        Raises:
            RateLimitedError: If the company cooldown has not elapsed since
                the last reminder; carries the earliest retry time
        """
        with atomic(db):
            expense = self._load(db, actor, expense_id, ExpenseAction.NUDGE, lock=True)
            expense_workflow.ensure_allowed(expense.status, ExpenseAction.NUDGE)

            now = utcnow()
            cooldown = nudge_cooldown(expense.owner.company)
            if cooldown and expense.last_nudge_at is not None:
                retry_after = expense.last_nudge_at + cooldown
                if now < retry_after:
                    raise RateLimitedError(
                        retry_after,
                        f"You can only send one reminder every {_format_cooldown(cooldown)}"
                    )

            pending = quorum_service.pending_approvers(db, expense, LedgerPhase.EXPENSE)
            if not pending:
                raise InvalidStateError("All approvers have already approved")

            self._compare_and_swap(db, expense.id, expense.version, {"last_nudge_at": now})
            self._audit(
                db, actor, expense.id, "nudge", expense.status, expense.status,
                f"Reminded {len(pending)} founder(s)"
            )
            pending_ids = tuple(u.id for u in pending)

        self._committed(db, expense, actor, "nudge", f"expense={expense_id} recipients={list(pending_ids)}")
        logger.info(f"User {actor.id} nudged {len(pending_ids)} founder(s) on expense {expense_id}")

        event = ExpenseEvent(ExpenseEventType.NUDGED, expense.id, actor.id, occurred_at=now, recipient_ids=pending_ids)
        return NudgeResult(
            expense=expense,
            pending_approvers=pending,
            next_nudge_at=now + cooldown if cooldown else None,
            events=[event],
        )

    def nudge_bulk(self, db: Session, actor: Optional[User], expense_ids: List[int]) -> BulkNudgeResult:
        """Remind founders about several of the actor's pending expenses at once"""
        ensure_authenticated(actor)

        with atomic(db):
            expenses = db.query(Expense).filter(
                Expense.id.in_(expense_ids),
                Expense.owner_id == actor.id,
                Expense.status == ExpenseStatus.PENDING_APPROVAL
            ).with_for_update().all()

            if not expenses:
                raise ValidationError("No valid expenses found to nudge")

            now = utcnow()
            cooldown = nudge_cooldown(actor.company)

            nudgeable: List[Expense] = []
            blocked_until: List[datetime] = []
            for expense in expenses:
                if cooldown and expense.last_nudge_at is not None and now < expense.last_nudge_at + cooldown:
                    blocked_until.append(expense.last_nudge_at + cooldown)
                else:
                    nudgeable.append(expense)

            if not nudgeable:
                raise RateLimitedError(
                    min(blocked_until),
                    f"All expenses are on cooldown. You can send reminders every {_format_cooldown(cooldown)}."
                )

            plan: List[Tuple[Expense, Tuple[int, ...]]] = []
            approvers = set()
            for expense in nudgeable:
                pending_ids = tuple(u.id for u in quorum_service.pending_approvers(db, expense, LedgerPhase.EXPENSE))
                if pending_ids:
                    plan.append((expense, pending_ids))
                    approvers.update(pending_ids)

            if not approvers:
                raise InvalidStateError("All approvers have already approved these expenses")

            for expense, pending_ids in plan:
                self._compare_and_swap(db, expense.id, expense.version, {"last_nudge_at": now})
                self._audit(
                    db, actor, expense.id, "nudge", expense.status, expense.status,
                    f"Reminded {len(pending_ids)} founder(s)"
                )

        log_audit(actor.id, "nudge_bulk", f"expenses={[e.id for e, _ in plan]}")
        logger.info(f"User {actor.id} bulk-nudged {len(plan)} expense(s), {len(approvers)} founder(s)")

        return BulkNudgeResult(
            nudged_count=len(plan),
            skipped_count=len(expenses) - len(plan),
            approvers_notified=len(approvers),
            next_nudge_at=now + cooldown if cooldown else None,
            events=[
                ExpenseEvent(ExpenseEventType.NUDGED, expense.id, actor.id, occurred_at=now, recipient_ids=pending_ids)
                for expense, pending_ids in plan
            ],
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_expense(self, db: Session, actor: Optional[User], expense_id: int) -> Expense:
        return self._load(db, actor, expense_id, ExpenseAction.VIEW)

    def approvals_needed(self, db: Session, expense: Expense) -> Optional[int]:
        """Live quorum for the phase the expense is in, None outside a voting phase"""
        if expense.status in (ExpenseStatus.PENDING_APPROVAL, ExpenseStatus.WITHDRAWAL_REQUESTED):
            return quorum_service.approvals_needed_for(db, expense)
        return None

    def list_expenses(
        self,
        db: Session,
        actor: Optional[User],
        page: int = 1,
        limit: int = 20,
        status: Optional[ExpenseStatus] = None,
        category: Optional[str] = None,
        owner_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Tuple[List[Expense], int]:
        """
        Company-scoped expense listing, newest first

        Founders see every member's expenses, members only their own.
        """
        ensure_authenticated(actor)

        query = db.query(Expense).join(User, Expense.owner_id == User.id).filter(
            User.company_id == actor.company_id
        )
        if not actor.is_founder:
            query = query.filter(Expense.owner_id == actor.id)
        if status:
            query = query.filter(Expense.status == status)
        if category:
            query = query.filter(Expense.category == category)
        if owner_id:
            query = query.filter(Expense.owner_id == owner_id)
        if start_date:
            query = query.filter(Expense.date >= start_date)
        if end_date:
            query = query.filter(Expense.date <= end_date)

        total = query.count()
        expenses = query.order_by(
            Expense.date.desc(), Expense.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return expenses, total

    def pending_decisions(self, db: Session, actor: Optional[User]) -> List[Expense]:
        """Expenses in the actor's company still waiting on the actor's sign-off"""
        ensure_authenticated(actor)
        if not actor.is_founder:
            return []

        approved = db.query(Approval.expense_id).filter(Approval.user_id == actor.id)
        withdrawal_approved = db.query(WithdrawalApproval.expense_id).filter(
            WithdrawalApproval.user_id == actor.id
        )

        return db.query(Expense).join(User, Expense.owner_id == User.id).filter(
            User.company_id == actor.company_id,
            Expense.owner_id != actor.id,
            or_(
                and_(
                    Expense.status == ExpenseStatus.PENDING_APPROVAL,
                    ~Expense.id.in_(approved)
                ),
                and_(
                    Expense.status == ExpenseStatus.WITHDRAWAL_REQUESTED,
                    ~Expense.id.in_(withdrawal_approved)
                ),
            )
        ).order_by(Expense.created_at).all()


# Create singleton instance
expense_service = ExpenseService()
