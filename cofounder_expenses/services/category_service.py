"""
Category Service
The company's expense category catalogue
"""

from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from cofounder_expenses.config.categories import DEFAULT_CATEGORIES, OTHER_VALUE, label_to_value
from cofounder_expenses.config.database import atomic
from cofounder_expenses.models.audit_log import AuditLog
from cofounder_expenses.models.category import CompanyCategory
from cofounder_expenses.models.company import Company
from cofounder_expenses.models.expense import Expense
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.category import CategoryCreate, CategoryUpdate
from cofounder_expenses.services.authorization_service import ensure_authenticated, ensure_founder
from cofounder_expenses.utils.exceptions import InvalidStateError, NotFoundError, ValidationError
from cofounder_expenses.utils.logger import setup_logger, log_audit

logger = setup_logger()


class CategoryService:
    """Service for per-company expense categories"""

    def seed_defaults(self, db: Session, company: Company):
        """Add the default catalogue inside the caller's transaction"""
        for index, category in enumerate(DEFAULT_CATEGORIES):
            db.add(CompanyCategory(
                company_id=company.id,
                value=category["value"],
                label=category["label"],
                icon=category["icon"],
                is_default=True,
                is_active=True,
                sort_order=index,
            ))

    def _get(self, db: Session, actor: User, category_id: int) -> CompanyCategory:
        category = db.query(CompanyCategory).filter(
            CompanyCategory.id == category_id,
            CompanyCategory.company_id == actor.company_id
        ).with_for_update().first()
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def _audit(self, db: Session, actor: User, action: str, category: CompanyCategory, description: str):
        db.add(AuditLog(
            user_id=actor.id,
            company_id=actor.company_id,
            action=action,
            entity_type="category",
            entity_id=category.id,
            description=description,
        ))

    def list_categories(self, db: Session, actor: Optional[User]) -> List[CompanyCategory]:
        """Active categories in display order; OTHER always comes last"""
        ensure_authenticated(actor)
        categories = db.query(CompanyCategory).filter(
            CompanyCategory.company_id == actor.company_id,
            CompanyCategory.is_active == True  # noqa: E712
        ).order_by(CompanyCategory.sort_order, CompanyCategory.created_at, CompanyCategory.id).all()
        return sorted(categories, key=lambda c: c.value == OTHER_VALUE)

    def create_category(
        self,
        db: Session,
        actor: Optional[User],
        payload: CategoryCreate
    ) -> Tuple[CompanyCategory, bool]:
        """
        Add a category, or bring back a disabled one with the same value

        Returns:
            (category, created) where created is False for a reactivation

        Raises:
            ValidationError: If an active category already uses the value
        """
        ensure_founder(actor, "Only founders can create categories")
        value = label_to_value(payload.value or payload.label)
        if not value:
            raise ValidationError("Category value must contain letters or digits")

        with atomic(db):
            existing = db.query(CompanyCategory).filter(
                CompanyCategory.company_id == actor.company_id,
                CompanyCategory.value == value
            ).with_for_update().first()

            if existing is not None:
                if existing.is_active:
                    raise ValidationError("Category already exists")
                existing.is_active = True
                existing.label = payload.label
                existing.icon = payload.icon
                category, created = existing, False
            else:
                # New categories slot in after the others and before OTHER
                highest = db.query(func.max(CompanyCategory.sort_order)).filter(
                    CompanyCategory.company_id == actor.company_id,
                    CompanyCategory.value != OTHER_VALUE
                ).scalar()
                sort_order = (highest if highest is not None else -1) + 1
                db.query(CompanyCategory).filter(
                    CompanyCategory.company_id == actor.company_id,
                    CompanyCategory.value == OTHER_VALUE,
                    CompanyCategory.sort_order <= sort_order
                ).update({"sort_order": sort_order + 1}, synchronize_session=False)

                category = CompanyCategory(
                    company_id=actor.company_id,
                    value=value,
                    label=payload.label,
                    icon=payload.icon,
                    is_default=False,
                    is_active=True,
                    sort_order=sort_order,
                )
                db.add(category)
                db.flush()
                created = True

            self._audit(
                db, actor, "create_category" if created else "reactivate_category", category,
                f"Category {value}"
            )

        db.refresh(category)
        log_audit(actor.id, "create_category", f"category={category.id} value={value} created={created}")
        return category, created

    def update_category(
        self,
        db: Session,
        actor: Optional[User],
        category_id: int,
        payload: CategoryUpdate
    ) -> CompanyCategory:
        ensure_founder(actor, "Only founders can update categories")
        changes = payload.model_dump(exclude_unset=True)
        for name in ("label", "icon", "is_active", "sort_order"):
            if name in changes and changes[name] is None:
                raise ValidationError(f"{name.replace('_', ' ').capitalize()} cannot be empty")

        with atomic(db):
            category = self._get(db, actor, category_id)
            if category.value == OTHER_VALUE and changes.get("is_active") is False:
                raise ValidationError('Cannot disable the "Other" category. It is required for custom entries.')

            for key, value in changes.items():
                setattr(category, key, value)
            self._audit(db, actor, "update_category", category, f"Updated fields: {', '.join(sorted(changes))}")

        db.refresh(category)
        log_audit(actor.id, "update_category", f"category={category.id} fields={sorted(changes)}")
        return category

    def delete_category(self, db: Session, actor: Optional[User], category_id: int) -> None:
        """
        Remove a custom category no expense uses

        Default categories can only be disabled.
        """
        ensure_founder(actor, "Only founders can delete categories")

        with atomic(db):
            category = self._get(db, actor, category_id)
            if category.value == OTHER_VALUE:
                raise ValidationError('Cannot delete the "Other" category. It is required for custom entries.')
            if category.is_default:
                raise ValidationError("Cannot delete default categories. You can disable them instead.")

            in_use = db.query(Expense).join(User, Expense.owner_id == User.id).filter(
                User.company_id == actor.company_id,
                Expense.category == category.value
            ).count()
            if in_use:
                raise InvalidStateError(f"Cannot delete category. {in_use} expense(s) use this category.")

            self._audit(db, actor, "delete_category", category, f"Deleted category {category.value}")
            db.delete(category)

        log_audit(actor.id, "delete_category", f"category={category_id}")
        logger.info(f"Category {category_id} deleted by user {actor.id}")


# Create singleton instance
category_service = CategoryService()
