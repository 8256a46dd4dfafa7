"""
Authentication Service
Resolves the acting user from a bearer token
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from cofounder_expenses.config.database import atomic, get_db
from cofounder_expenses.models.audit_log import AuditLog
from cofounder_expenses.models.user import User
from cofounder_expenses.schemas.user import PasswordChange, ProfileUpdate
from cofounder_expenses.services.authorization_service import ensure_authenticated
from cofounder_expenses.utils.exceptions import UnauthenticatedError, ValidationError
from cofounder_expenses.utils.helpers import utcnow
from cofounder_expenses.utils.security import (
    verify_password, get_password_hash, create_access_token, create_refresh_token, decode_token
)
from cofounder_expenses.utils.logger import setup_logger, log_audit

logger = setup_logger()

# auto_error is off so a missing header renders through the domain error envelope
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


class AuthService:
    """Authentication service"""

    def authenticate_user(self, db: Session, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password

        Args:
            db: Database session
            email: Login e-mail
            password: Password

        Returns:
            User: Authenticated user or None
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()

        if not user:
            return None

        if not verify_password(password, user.hashed_password):
            return None

        if not user.is_active:
            return None

        # Update last login
        user.last_login = utcnow()
        db.commit()

        logger.info(f"User authenticated: {user.email}")
        return user

    def create_tokens(self, user: User) -> dict:
        """
        Create access and refresh tokens for user

        Args:
            user: User object

        Returns:
            dict: Access and refresh tokens
        """
        access_token = create_access_token(
            data={
                "sub": str(user.id),
                "email": user.email,
                "role": user.role.value,
                "company_id": user.company_id,
                "ver": user.token_version
            }
        )

        refresh_token = create_refresh_token(
            data={"sub": str(user.id), "ver": user.token_version}
        )

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer"
        }

    def user_from_token(self, db: Session, token: Optional[str], token_type: str = "access") -> User:
        """
        Look up the active user a token was issued to

        Raises:
            UnauthenticatedError: On a missing, invalid or expired token, or
                if the user no longer exists or was deactivated
        """
        if not token:
            raise UnauthenticatedError()

        payload = decode_token(token)
        if payload is None or payload.get("type") != token_type:
            raise UnauthenticatedError("Could not validate credentials")

        user_id = payload.get("sub")
        if user_id is None:
            raise UnauthenticatedError("Could not validate credentials")

        user = db.query(User).filter(User.id == int(user_id)).first()
        if user is None or not user.is_active:
            raise UnauthenticatedError("Could not validate credentials")

        # Tokens issued before a logout or password change
        if payload.get("ver", 0) != user.token_version:
            raise UnauthenticatedError("Token has been revoked")

        return user

    def _audit(self, db: Session, user: User, action: str, description: str):
        db.add(AuditLog(
            user_id=user.id,
            company_id=user.company_id,
            action=action,
            entity_type="user",
            entity_id=user.id,
            description=description,
        ))

    def update_profile(self, db: Session, actor: Optional[User], payload: ProfileUpdate) -> User:
        """Rename the current user"""
        ensure_authenticated(actor)
        name = payload.name.strip()
        if not name:
            raise ValidationError("Name cannot be empty")

        with atomic(db):
            user = db.query(User).filter(User.id == actor.id).with_for_update().one()
            previous = user.name
            user.name = name
            self._audit(db, user, "update_profile", f"Renamed {previous} to {name}")

        db.refresh(user)
        log_audit(user.id, "update_profile", "name")
        return user

    def change_password(self, db: Session, actor: Optional[User], payload: PasswordChange) -> dict:
        """
        Replace the current user's password

        Every token issued before the change stops working.

        Returns:
            dict: Fresh access and refresh tokens

        Raises:
            ValidationError: If the current password is wrong or unchanged
        """
        ensure_authenticated(actor)
        if not verify_password(payload.current_password, actor.hashed_password):
            raise ValidationError("Current password is incorrect")
        if payload.current_password == payload.new_password:
            raise ValidationError("New password must differ from the current password")

        with atomic(db):
            user = db.query(User).filter(User.id == actor.id).with_for_update().one()
            user.hashed_password = get_password_hash(payload.new_password)
            user.token_version += 1
            self._audit(db, user, "change_password", "Changed password")

        db.refresh(user)
        log_audit(user.id, "change_password", f"token_version={user.token_version}")
        logger.info(f"Password changed for user {user.id}")
        return self.create_tokens(user)

    def logout(self, db: Session, actor: Optional[User]) -> None:
        """Revoke every token issued to the current user"""
        ensure_authenticated(actor)

        with atomic(db):
            user = db.query(User).filter(User.id == actor.id).with_for_update().one()
            user.token_version += 1
            self._audit(db, user, "logout", "Logged out")

        log_audit(actor.id, "logout", f"token_version={user.token_version}")

    async def get_current_user(
        self,
        token: Optional[str] = Depends(oauth2_scheme),
        db: Session = Depends(get_db)
    ) -> User:
        """
        Get current authenticated user from token

        Args:
            token: JWT token
            db: Database session

        Returns:
            User: Current user
        """
        return self.user_from_token(db, token)


# Create singleton instance
auth_service = AuthService()
