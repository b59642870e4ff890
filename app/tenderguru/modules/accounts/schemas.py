"""
Request shapes for the account routes.

Each update route has its own whitelist. Keys outside it are rejected here,
before any row is touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from app.tenderguru.constants import MIN_PASSWORD_LENGTH, ROLES, ROLE_STAFF
from app.tenderguru.errors import ValidationError
from app.tenderguru.utils import clean_str, parse_bool

# wire key -> User attribute
_PROFILE_FIELDS = {
    "name": "name",
    "email": "email",
    "department": "department",
    "phoneNumber": "phone_number",
    "designation": "designation",
    "otpEnabled": "otp_enabled",
}
_ADMIN_ONLY_FIELDS = {
    "role": "role",
    "isActive": "is_active",
    "permissions": "permissions",
}


def normalize_email(value: Any) -> str:
    email = (clean_str(value) or "").lower()
    if not email or "@" not in email:
        raise ValidationError("Please provide a valid email.")
    return email


def validate_password(value: Any) -> str:
    if not isinstance(value, str) or len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return value


def _normalize(attr: str, value: Any) -> Any:
    if attr == "name":
        name = clean_str(value)
        if not name:
            raise ValidationError("Name cannot be empty.")
        return name
    if attr == "email":
        return normalize_email(value)
    if attr in ("otp_enabled", "is_active"):
        return parse_bool(value, attr)
    if attr == "role":
        role = clean_str(value)
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(sorted(ROLES))}.")
        return role
    if attr == "permissions":
        if not isinstance(value, list) or not all(isinstance(p, str) and p.strip() for p in value):
            raise ValidationError("Permissions must be a list of non-empty strings.")
        return [p.strip() for p in value]
    return clean_str(value)


def _collect(payload: dict[str, Any], allowed: dict[str, str], forbidden_message: str, forbidden: set[str]) -> dict[str, Any]:
    present_forbidden = sorted(k for k in payload if k in forbidden)
    if present_forbidden:
        raise ValidationError(forbidden_message)
    unknown = sorted(k for k in payload if k not in allowed)
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(unknown)}.")
    return {allowed[k]: _normalize(allowed[k], v) for k, v in payload.items()}


@dataclass(frozen=True)
class UserSelfUpdate:
    """Fields a user may change on their own profile."""

    FORBIDDEN: ClassVar[set[str]] = {"password", "role", "permissions", "isActive"}

    changes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "UserSelfUpdate":
        return cls(
            changes=_collect(
                payload,
                _PROFILE_FIELDS,
                "This route is not for password, role, permissions, or status updates.",
                cls.FORBIDDEN,
            )
        )


@dataclass(frozen=True)
class UserAdminUpdate:
    """Fields an admin may change on any user. Credentials and employee IDs stay out."""

    FORBIDDEN: ClassVar[set[str]] = {"password", "employeeId"}

    changes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "UserAdminUpdate":
        return cls(
            changes=_collect(
                payload,
                {**_PROFILE_FIELDS, **_ADMIN_ONLY_FIELDS},
                "Passwords and employee IDs cannot be changed through this route.",
                cls.FORBIDDEN,
            )
        )


@dataclass(frozen=True)
class Registration:
    name: str
    email: str
    password: str
    employee_id: str
    role: str = ROLE_STAFF
    department: str | None = None
    designation: str | None = None
    phone_number: str | None = None
    is_active: bool = True
    otp_enabled: bool = False

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Registration":
        missing = [k for k in ("name", "email", "password", "employeeId") if not clean_str(payload.get(k))]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}.")
        return cls(
            name=_normalize("name", payload["name"]),
            email=normalize_email(payload["email"]),
            password=validate_password(payload["password"]),
            employee_id=clean_str(payload["employeeId"]) or "",
            role=_normalize("role", payload.get("role") or ROLE_STAFF),
            department=clean_str(payload.get("department")),
            designation=clean_str(payload.get("designation")),
            phone_number=clean_str(payload.get("phoneNumber")),
            is_active=parse_bool(payload["isActive"], "isActive") if "isActive" in payload else True,
            otp_enabled=parse_bool(payload["otpEnabled"], "otpEnabled") if "otpEnabled" in payload else False,
        )
