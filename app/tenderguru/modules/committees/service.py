from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, BinaryIO

from sqlalchemy import select
from werkzeug.utils import secure_filename

from app.tenderguru.audit import record_event
from app.tenderguru.errors import NotFoundError
from app.tenderguru.models import User
from app.tenderguru.modules.committees.models import Committee
from app.tenderguru.storage import StorageError

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from werkzeug.datastructures import FileStorage

    from app.tenderguru.modules.committees.schemas import CommitteeCreate, CommitteeUpdate
    from app.tenderguru.storage import Storage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormationLetter:
    """Descriptor of an uploaded file that is already in storage."""

    filename: str
    path: str
    original_name: str
    content_type: str
    size: int


def snapshot_member(user: User) -> dict:
    return {
        "name": user.name,
        "role": user.role,
        "email": user.email,
        "employeeId": user.employee_id,
        "department": user.department,
        "designation": user.designation,
    }


def resolve_members(s: "Session", employee_ids: list[str]) -> list[dict]:
    """
    Look up each employee ID and return fresh snapshot dicts in the given order.
    Raises NotFoundError naming the first ID with no matching user.
    """
    if not employee_ids:
        return []
    users = {u.employee_id: u for u in s.scalars(select(User).where(User.employee_id.in_(set(employee_ids))))}
    members = []
    for employee_id in employee_ids:
        user = users.get(employee_id)
        if user is None:
            raise NotFoundError(f"User with employee ID {employee_id} not found")
        members.append(snapshot_member(user))
    return members


def build_letter_storage_key(original_name: str) -> str:
    safe_name = secure_filename(original_name or "") or "formation-letter.bin"
    return f"committees/formation-letters/{uuid.uuid4().hex}-{safe_name}"


def store_formation_letter(storage: "Storage", upload: "FileStorage") -> FormationLetter:
    data = upload.read()
    key = build_letter_storage_key(upload.filename or "")
    content_type = (upload.mimetype or "application/octet-stream").strip()
    storage.put_bytes(key, data, content_type=content_type)
    return FormationLetter(
        filename=key.rsplit("/", 1)[-1],
        path=key,
        original_name=upload.filename or "",
        content_type=content_type,
        size=len(data),
    )


def discard_formation_letter(storage: "Storage", key: str | None) -> None:
    """Best-effort delete; failures are logged and swallowed."""
    if not key:
        return
    try:
        storage.delete(key)
    except Exception:
        logger.exception("Error deleting formation letter key=%s", key)


def create_committee(
    s: "Session",
    data: "CommitteeCreate",
    creator: User,
    *,
    members: list[dict],
    letter: FormationLetter | None = None,
) -> Committee:
    now = datetime.utcnow()
    committee = Committee(
        name=data.name,
        purpose=data.purpose,
        formation_date=data.formation_date,
        specification_submission_date=data.specification_submission_date,
        review_date=data.review_date,
        schedule=data.schedule,
        members=members,
        should_notify=data.should_notify,
        created_by_user_id=creator.id,
        created_by=creator,
        created_at=now,
        updated_at=now,
    )
    if letter is not None:
        committee.formation_letter_filename = letter.filename
        committee.formation_letter_path = letter.path
        committee.formation_letter_original_name = letter.original_name
        committee.formation_letter_content_type = letter.content_type
        committee.formation_letter_size = letter.size
    s.add(committee)
    s.flush()

    record_event(
        s,
        actor=creator,
        action="committee.create",
        entity_type="Committee",
        entity_id=str(committee.id),
        metadata={
            "name": committee.name,
            "members": [m["employeeId"] for m in members],
            "formation_letter": letter.original_name if letter else None,
        },
    )
    return committee


def list_committees(s: "Session") -> list[Committee]:
    return list(s.scalars(select(Committee).order_by(Committee.created_at.desc(), Committee.id.desc())))


def get_committee_or_404(s: "Session", committee_id: int) -> Committee:
    committee = s.get(Committee, committee_id)
    if not committee:
        raise NotFoundError("No committee found with that ID")
    return committee


def update_committee(s: "Session", committee: Committee, update: "CommitteeUpdate", user: User) -> Committee:
    fields = dict(update.fields)
    if update.member_ids is not None:
        fields["members"] = resolve_members(s, update.member_ids)

    changed = []
    for attr, val in fields.items():
        if getattr(committee, attr) != val:
            setattr(committee, attr, val)
            changed.append(attr)
    committee.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="committee.update",
        entity_type="Committee",
        entity_id=str(committee.id),
        metadata={"fields": changed},
    )
    return committee


def delete_committee(s: "Session", committee: Committee, user: User, storage: "Storage") -> None:
    discard_formation_letter(storage, committee.formation_letter_path)
    record_event(
        s,
        actor=user,
        action="committee.delete",
        entity_type="Committee",
        entity_id=str(committee.id),
        metadata={"name": committee.name},
    )
    s.delete(committee)


def open_formation_letter(committee: Committee, storage: "Storage") -> BinaryIO:
    if not committee.has_formation_letter:
        raise NotFoundError("No formation letter found")
    key = committee.formation_letter_path or ""
    if not storage.exists(key):
        raise NotFoundError("File not found on server")
    try:
        return storage.open(key)
    except StorageError:
        raise NotFoundError("File not found on server") from None
