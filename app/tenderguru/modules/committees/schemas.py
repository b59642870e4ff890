"""
Request shapes for the committee routes.

Member lists arrive either as raw employee IDs or as objects carrying an
`employeeId`; both are normalized through `MemberRef` into a plain ID list
before any user lookup happens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from app.tenderguru.constants import APPROVAL_STATUSES
from app.tenderguru.errors import ValidationError
from app.tenderguru.utils import clean_str, is_true_flag, parse_iso_date, parse_json_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemberRef:
    employee_id: Any

    @classmethod
    def from_raw(cls, item: Any) -> "MemberRef":
        if isinstance(item, str):
            return cls(item)
        if isinstance(item, dict):
            return cls(item.get("employeeId") or "")
        return cls("")


def normalize_member_ids(raw: Any) -> list[str]:
    """
    Turn the `members` input into a list of employee IDs, one per entry, in input order.
    Raises ValidationError for malformed input; touches no storage.
    """
    if raw is None or raw == "" or raw == []:
        return []
    data = parse_json_value(raw, "members")
    if not isinstance(data, list):
        raise ValidationError("Members must be an array of employee IDs or member objects.")

    ids = [MemberRef.from_raw(m).employee_id for m in data]
    if not all(isinstance(i, str) and i.strip() for i in ids):
        raise ValidationError("All member IDs must be non-empty strings")

    return ids


def _required_text(payload: dict[str, Any], key: str) -> str:
    v = clean_str(payload.get(key))
    if not v:
        raise ValidationError(f"{key} is required.")
    return v


def _approval_status(value: Any) -> str:
    status = (clean_str(value) or "").lower()
    if status not in APPROVAL_STATUSES:
        raise ValidationError(f"approvalStatus must be one of: {', '.join(sorted(APPROVAL_STATUSES))}.")
    return status


@dataclass(frozen=True)
class CommitteeCreate:
    name: str
    purpose: str
    formation_date: date
    specification_submission_date: date | None
    review_date: date | None
    schedule: str | None
    member_ids: list[str]
    should_notify: bool

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CommitteeCreate":
        member_ids = normalize_member_ids(payload.get("members"))
        formation_date = parse_iso_date(payload.get("formationDate"), "formationDate")
        if formation_date is None:
            raise ValidationError("formationDate is required.")
        return cls(
            name=_required_text(payload, "name"),
            purpose=_required_text(payload, "purpose"),
            formation_date=formation_date,
            specification_submission_date=parse_iso_date(
                payload.get("specificationSubmissionDate"), "specificationSubmissionDate"
            ),
            review_date=parse_iso_date(payload.get("reviewDate"), "reviewDate"),
            schedule=clean_str(payload.get("schedule")),
            member_ids=member_ids,
            should_notify=is_true_flag(payload.get("shouldNotify")),
        )


@dataclass(frozen=True)
class CommitteeUpdate:
    """
    Partial update. `fields` holds only the keys the client sent (as model
    attribute names); `member_ids` is None unless members were sent.
    """

    fields: dict[str, Any] = field(default_factory=dict)
    member_ids: list[str] | None = None
    should_notify: bool = False

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CommitteeUpdate":
        if "formationLetter" in payload:
            logger.warning("formationLetter ignored on committee update; file replacement is not supported")

        fields: dict[str, Any] = {}
        if "name" in payload:
            fields["name"] = _required_text(payload, "name")
        if "purpose" in payload:
            fields["purpose"] = _required_text(payload, "purpose")
        if "formationDate" in payload:
            d = parse_iso_date(payload["formationDate"], "formationDate")
            if d is None:
                raise ValidationError("formationDate cannot be empty.")
            fields["formation_date"] = d
        if "specificationSubmissionDate" in payload:
            fields["specification_submission_date"] = parse_iso_date(
                payload["specificationSubmissionDate"], "specificationSubmissionDate"
            )
        if "reviewDate" in payload:
            fields["review_date"] = parse_iso_date(payload["reviewDate"], "reviewDate")
        if "schedule" in payload:
            fields["schedule"] = clean_str(payload["schedule"])
        if "approvalStatus" in payload:
            fields["approval_status"] = _approval_status(payload["approvalStatus"])

        should_notify = False
        if "shouldNotify" in payload:
            should_notify = is_true_flag(payload["shouldNotify"])
            fields["should_notify"] = should_notify

        member_ids = None
        if "members" in payload:
            # An empty list clears the roster.
            member_ids = normalize_member_ids(payload["members"])

        return cls(fields=fields, member_ids=member_ids, should_notify=should_notify)
