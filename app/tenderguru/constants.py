"""
Central constants for the Tender Guru service.
"""
from __future__ import annotations

ROLE_ADMIN = "admin"
ROLE_PROCUREMENT_OFFICER = "procurement_officer"
ROLE_COMMITTEE_MEMBER = "committee_member"
ROLE_STAFF = "staff"

ROLES = frozenset({ROLE_ADMIN, ROLE_PROCUREMENT_OFFICER, ROLE_COMMITTEE_MEMBER, ROLE_STAFF})

# Roles allowed to create, edit and delete committees
COMMITTEE_MANAGER_ROLES = (ROLE_ADMIN, ROLE_PROCUREMENT_OFFICER)

APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"
APPROVAL_REJECTED = "rejected"

APPROVAL_STATUSES = frozenset({APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_REJECTED})

MIN_PASSWORD_LENGTH = 8
PASSWORD_RESET_TTL_SECONDS = 10 * 60

JWT_COOKIE_NAME = "jwt"
JWT_ALGORITHM = "HS256"
