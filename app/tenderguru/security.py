from __future__ import annotations

import hashlib
import secrets
import time
from typing import Any

import jwt
from flask import Request

from app.tenderguru.constants import JWT_ALGORITHM, JWT_COOKIE_NAME


def sign_token(user_id: int, secret: str, expires_in: int) -> str:
    """
    Create a signed session token for a user. Contains:
      - id (int)
      - iat, exp (epoch seconds; iat keeps sub-second precision)
    """
    now = time.time()
    payload = {
        "id": int(user_id),
        "iat": now,
        "exp": int(now + expires_in),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, secret: str) -> dict[str, Any]:
    """
    Returns the decoded payload if valid, else raises jwt exceptions
    (ExpiredSignatureError, InvalidTokenError, ...).
    """
    return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], options={"require": ["id", "iat", "exp"]})


def token_from_request(req: Request) -> str | None:
    """Bearer header wins over the cookie."""
    auth = (req.headers.get("Authorization") or "").strip()
    if auth.startswith("Bearer"):
        parts = auth.split(" ", 1)
        token = parts[1].strip() if len(parts) == 2 else ""
        return token or None
    return req.cookies.get(JWT_COOKIE_NAME) or None


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256((raw or "").encode("utf-8")).hexdigest()


def new_reset_token() -> tuple[str, str]:
    """Return (raw, hashed). Only the hash is persisted."""
    raw = secrets.token_hex(32)
    return raw, hash_reset_token(raw)
