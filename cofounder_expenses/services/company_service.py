"""
Company Service
Signup, team membership, roles and company-wide settings
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from cofounder_expenses.config.database import atomic
from cofounder_expenses.config.settings import settings
from cofounder_expenses.models.audit_log import AuditLog
from cofounder_expenses.models.company import Company
from cofounder_expenses.models.user import User, UserRole
from cofounder_expenses.schemas.company import CompanySettingsUpdate
from cofounder_expenses.schemas.user import MemberCreate, SignupRequest
from cofounder_expenses.services.authorization_service import ensure_authenticated, ensure_founder
from cofounder_expenses.services.category_service import category_service
from cofounder_expenses.services.notification_service import notification_service
from cofounder_expenses.services.validation_service import validation_service
from cofounder_expenses.utils.exceptions import ForbiddenError, NotFoundError, ValidationError
from cofounder_expenses.utils.logger import setup_logger, log_audit
from cofounder_expenses.utils.security import get_password_hash

logger = setup_logger()


class CompanyService:
    """Service for company and team administration"""

    def _ensure_email_free(self, db: Session, email: str):
        if db.query(User.id).filter(User.email == email).first() is not None:
            raise ValidationError("Email already registered")

    def _audit(self, db: Session, actor: User, action: str, entity_type: str, entity_id: int,
               description: str, changes: Optional[dict] = None):
        db.add(AuditLog(
            user_id=actor.id,
            company_id=actor.company_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            changes=changes
        ))

    def signup(self, db: Session, payload: SignupRequest) -> User:
        """
        Create a company and its first founder

        Returns:
            User: The new founder
        """
        email = payload.email.lower()
        is_valid, error = validation_service.validate_currency(payload.currency)
        if not is_valid:
            raise ValidationError(error)

        with atomic(db):
            self._ensure_email_free(db, email)

            company = Company(name=payload.company_name.strip(), currency=payload.currency)
            db.add(company)
            db.flush()
            category_service.seed_defaults(db, company)

            founder = User(
                company_id=company.id,
                email=email,
                name=payload.name.strip(),
                hashed_password=get_password_hash(payload.password),
                role=UserRole.FOUNDER,
            )
            db.add(founder)
            db.flush()
            self._audit(db, founder, "signup", "company", company.id, f"Created company {company.name}")

        db.refresh(founder)
        log_audit(founder.id, "signup", f"company={company.id}")
        logger.info(f"Company {company.id} created by {email}")
        return founder

    def list_members(self, db: Session, actor: Optional[User]) -> List[User]:
        """Everyone in the actor's company, founders first"""
        ensure_authenticated(actor)
        members = db.query(User).filter(
            User.company_id == actor.company_id
        ).order_by(User.created_at, User.id).all()
        return sorted(members, key=lambda u: 0 if u.is_founder else 1)

    def add_member(self, db: Session, actor: Optional[User], payload: MemberCreate) -> User:
        """Founders add a user directly to their own company"""
        ensure_founder(actor, "Only founders can add team members")
        email = payload.email.lower()

        with atomic(db):
            self._ensure_email_free(db, email)
            member = User(
                company_id=actor.company_id,
                email=email,
                name=payload.name.strip(),
                hashed_password=get_password_hash(payload.password),
                role=payload.role,
            )
            db.add(member)
            db.flush()
            self._audit(
                db, actor, "add_member", "user", member.id,
                f"Added {email} as {payload.role.value}"
            )

        db.refresh(member)
        log_audit(actor.id, "add_member", f"user={member.id} role={member.role.value}")
        return member

    def change_role(self, db: Session, actor: Optional[User], target_user_id: int, role: UserRole) -> User:
        """
        Promote or demote a member of the actor's company

        Quorum is read live, so the change applies to every expense still
        waiting for approvals.

        Raises:
            ForbiddenError: If the actor is not a founder or the change would
                leave the company without founders
            NotFoundError: If the target is missing or in another company
        """
        ensure_founder(actor, "Only founders can change roles")

        with atomic(db):
            # Role changes in one company queue on its row, so two founders
            # demoting each other cannot both pass the count below
            db.query(Company).filter(Company.id == actor.company_id).with_for_update().one()
            if db.query(User.role).filter(User.id == actor.id).scalar() != UserRole.FOUNDER:
                raise ForbiddenError("Only founders can change roles")

            target = db.query(User).filter(
                User.id == target_user_id
            ).with_for_update().first()
            if target is None or target.company_id != actor.company_id:
                raise NotFoundError("User not found")

            previous = target.role
            if previous == UserRole.FOUNDER and role == UserRole.MEMBER and target.is_active:
                active_founders = db.query(User).filter(
                    User.company_id == actor.company_id,
                    User.role == UserRole.FOUNDER,
                    User.is_active == True  # noqa: E712
                ).count()
                if active_founders <= 1:
                    raise ForbiddenError("Cannot demote the last founder")

            target.role = role
            if previous == UserRole.MEMBER and role == UserRole.FOUNDER:
                notification_service.notify_promoted(db, target, actor)
            self._audit(
                db, actor, "change_role", "user", target.id,
                f"Changed role of {target.email}",
                {"from": previous.value, "to": role.value}
            )

        db.refresh(target)
        log_audit(actor.id, "change_role", f"user={target.id} {previous.value}->{role.value}")
        logger.info(f"User {target.id} role {previous.value} -> {role.value} by user {actor.id}")
        return target

    def effective_nudge_cooldown_hours(self, company: Company) -> int:
        if company.nudge_cooldown_hours is None:
            return settings.DEFAULT_NUDGE_COOLDOWN_HOURS
        return company.nudge_cooldown_hours

    def get_settings(self, db: Session, actor: Optional[User]) -> Company:
        ensure_authenticated(actor)
        return db.query(Company).filter(Company.id == actor.company_id).first()

    def update_settings(self, db: Session, actor: Optional[User], payload: CompanySettingsUpdate) -> Company:
        """Founders change the company name, currency or nudge cooldown"""
        ensure_founder(actor, "Only founders can update company settings")
        changes = payload.model_dump(exclude_unset=True)

        if changes.get("name") is not None:
            changes["name"] = changes["name"].strip()
            if not changes["name"]:
                raise ValidationError("Company name cannot be empty")
        elif "name" in changes:
            raise ValidationError("Company name cannot be empty")

        if "currency" in changes:
            is_valid, error = validation_service.validate_currency(changes["currency"] or "")
            if not is_valid:
                raise ValidationError(error)

        if changes.get("nudge_cooldown_hours") is not None:
            is_valid, error = validation_service.validate_nudge_cooldown(changes["nudge_cooldown_hours"])
            if not is_valid:
                raise ValidationError(error)

        with atomic(db):
            company = db.query(Company).filter(Company.id == actor.company_id).with_for_update().first()
            before = {key: getattr(company, key) for key in changes}
            for key, value in changes.items():
                setattr(company, key, value)
            self._audit(
                db, actor, "update_settings", "company", company.id,
                f"Updated settings: {', '.join(sorted(changes)) or 'nothing'}",
                {"from": before, "to": changes}
            )

        db.refresh(company)
        log_audit(actor.id, "update_settings", f"company={company.id} fields={sorted(changes)}")
        return company


# Create singleton instance
company_service = CompanyService()
