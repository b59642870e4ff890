from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

from flask import Request

from app.tenderguru.errors import ValidationError


def request_payload(req: Request) -> dict[str, Any]:
    """JSON body, or form fields for multipart/urlencoded requests."""
    if req.is_json:
        data = req.get_json(silent=True)
        if data is None:
            raise ValidationError("Request body is not valid JSON.")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")
        return data
    return req.form.to_dict(flat=True)


def parse_iso_date(value: Any, field: str) -> date | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        # Accept full ISO timestamps from JS clients ("2024-05-01T00:00:00.000Z").
        if "T" in s:
            return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
        return date.fromisoformat(s)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD).") from None


def is_true_flag(value: Any) -> bool:
    """Form posts send "true"; JSON clients may send a real boolean."""
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


def parse_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    raise ValidationError(f"{field} must be a boolean.")


def parse_json_value(raw: Any, field: str) -> Any:
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{field} JSON is invalid: {e.msg}") from None


def clean_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def success(data: dict[str, Any], **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"status": "success"}
    body.update(extra)
    body["data"] = data
    return body
