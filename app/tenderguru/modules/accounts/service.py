from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from app.tenderguru.audit import record_event
from app.tenderguru.constants import PASSWORD_RESET_TTL_SECONDS
from app.tenderguru.errors import AuthError, NotFoundError, ValidationError
from app.tenderguru.models import User
from app.tenderguru.modules.accounts.schemas import (
    Registration,
    UserAdminUpdate,
    UserSelfUpdate,
    normalize_email,
    validate_password,
)
from app.tenderguru.security import hash_reset_token, new_reset_token

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def count_users(s: "Session") -> int:
    return s.scalar(select(func.count(User.id))) or 0


def _ensure_unique(s: "Session", *, email: str | None = None, employee_id: str | None = None, exclude_id: int | None = None) -> None:
    if email is not None:
        q = select(User.id).where(User.email == email)
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        if s.scalar(q) is not None:
            raise ValidationError("A user with that email already exists.")
    if employee_id is not None:
        q = select(User.id).where(User.employee_id == employee_id)
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        if s.scalar(q) is not None:
            raise ValidationError("A user with that employee ID already exists.")


def register_user(s: "Session", reg: Registration, actor: User | None = None) -> User:
    _ensure_unique(s, email=reg.email, employee_id=reg.employee_id)
    user = User(
        name=reg.name,
        email=reg.email,
        employee_id=reg.employee_id,
        role=reg.role,
        department=reg.department,
        designation=reg.designation,
        phone_number=reg.phone_number,
        is_active=reg.is_active,
        otp_enabled=reg.otp_enabled,
        permissions=[],
    )
    user.set_password(reg.password)
    s.add(user)
    s.flush()

    record_event(
        s,
        actor=actor or user,
        action="user.register",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "role": user.role, "employee_id": user.employee_id, "department": user.department},
    )
    return user


def authenticate(s: "Session", email: str, password: Any) -> User:
    """
    Check credentials. Failed attempts are audited and committed before the AuthError is raised.
    """
    if not email or not isinstance(password, str) or not password:
        raise AuthError("Please provide email and password!")

    email = email.strip().lower()
    user = s.scalar(select(User).where(User.email == email))
    if not user or not user.check_password(password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        raise AuthError("Incorrect email or password")
    if not user.is_active:
        record_event(s, actor=user, action="auth.login_failed", entity_type="User", entity_id=str(user.id), reason="Inactive account")
        s.commit()
        raise AuthError("Your account has been deactivated")

    record_event(
        s,
        actor=user,
        action="auth.login",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"role": user.role, "employee_id": user.employee_id},
    )
    return user


def issue_password_reset(s: "Session", email: str) -> tuple[User, str]:
    """Store the hash of a fresh reset token and return (user, raw token)."""
    try:
        email = normalize_email(email)
    except ValidationError:
        raise NotFoundError("There is no user with that email address.") from None
    user = s.scalar(select(User).where(User.email == email))
    if not user:
        raise NotFoundError("There is no user with that email address.")

    raw, hashed = new_reset_token()
    user.password_reset_token = hashed
    user.password_reset_expires = datetime.utcnow() + timedelta(seconds=PASSWORD_RESET_TTL_SECONDS)
    record_event(s, actor=None, action="auth.password_reset_requested", entity_type="User", entity_id=str(user.id))
    return user, raw


def clear_password_reset(user: User) -> None:
    user.password_reset_token = None
    user.password_reset_expires = None


def reset_password(s: "Session", raw_token: str, new_password: str) -> User:
    hashed = hash_reset_token(raw_token)
    user = s.scalar(
        select(User).where(
            User.password_reset_token == hashed,
            User.password_reset_expires > datetime.utcnow(),
        )
    )
    if not user:
        raise ValidationError("Token is invalid or has expired")

    user.set_password(validate_password(new_password), changed_at=datetime.utcnow())
    clear_password_reset(user)
    record_event(s, actor=user, action="auth.password_reset", entity_type="User", entity_id=str(user.id))
    return user


def change_password(s: "Session", user: User, current_password: Any, new_password: Any) -> User:
    if not user.check_password(current_password):
        raise AuthError("Your current password is wrong.")
    user.set_password(validate_password(new_password), changed_at=datetime.utcnow())
    record_event(s, actor=user, action="auth.password_change", entity_type="User", entity_id=str(user.id))
    return user


def _apply_changes(s: "Session", user: User, changes: dict) -> list[str]:
    if "email" in changes:
        _ensure_unique(s, email=changes["email"], exclude_id=user.id)
    changed = []
    for attr, val in changes.items():
        if getattr(user, attr) != val:
            setattr(user, attr, val)
            changed.append(attr)
    return changed


def update_profile(s: "Session", user: User, update: UserSelfUpdate) -> User:
    changed = _apply_changes(s, user, update.changes)
    record_event(s, actor=user, action="user.update_self", entity_type="User", entity_id=str(user.id), metadata={"fields": changed})
    return user


def get_user_or_404(s: "Session", user_id: int) -> User:
    user = s.get(User, user_id)
    if not user:
        raise NotFoundError("No user found with that ID")
    return user


def admin_update_user(s: "Session", user_id: int, update: UserAdminUpdate, actor: User) -> User:
    user = get_user_or_404(s, user_id)
    changed = _apply_changes(s, user, update.changes)
    record_event(s, actor=actor, action="user.update", entity_type="User", entity_id=str(user.id), metadata={"fields": changed})
    return user


def delete_user(s: "Session", user_id: int, actor: User) -> None:
    user = get_user_or_404(s, user_id)
    if user.id == actor.id:
        raise AuthError("You cannot delete your own account", 403)

    record_event(
        s,
        actor=actor,
        action="user.delete",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "employee_id": user.employee_id},
    )
    s.delete(user)


def list_users(s: "Session") -> list[User]:
    return list(s.scalars(select(User).order_by(User.created_at.desc(), User.id.desc())))


def get_user_by_employee_id(s: "Session", employee_id: str) -> User:
    user = s.scalar(select(User).where(User.employee_id == employee_id))
    if not user:
        raise NotFoundError("No user found with that employee ID")
    return user
