from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from werkzeug.security import check_password_hash, generate_password_hash

from app.tenderguru.constants import ROLE_STAFF


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    role: Mapped[str] = mapped_column(String(32), nullable=False, default=ROLE_STAFF)
    permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    designation: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    otp_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def set_password(self, raw: str, *, changed_at: datetime | None = None) -> None:
        """
        Hash and store a new password.

        `changed_at` is left unset on first registration so tokens issued at signup stay valid;
        every later change stamps it so older tokens are rejected.
        """
        self.password_hash = generate_password_hash(raw)
        if changed_at is not None:
            self.password_changed_at = changed_at

    def check_password(self, raw: str) -> bool:
        if not isinstance(raw, str) or not raw:
            return False
        return check_password_hash(self.password_hash, raw)

    def changed_password_after(self, issued_at: int | float) -> bool:
        """True when the password changed after a token with this `iat` was signed."""
        if self.password_changed_at is None:
            return False
        # Stored as naive UTC; token iat is sub-second epoch time.
        changed = self.password_changed_at.replace(tzinfo=timezone.utc).timestamp()
        return changed > float(issued_at)

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "employeeId": self.employee_id,
            "department": self.department,
            "phoneNumber": self.phone_number,
            "designation": self.designation,
            "isActive": self.is_active,
            "otpEnabled": self.otp_enabled,
            "permissions": list(self.permissions or []),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def to_creator_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "employeeId": self.employee_id,
        }


class AuditEvent(Base):
    """
    Append-only audit trail event.
    """

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "auth.login"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "Committee"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.tenderguru.modules.committees.models import Committee  # noqa: E402,F401
