from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request, send_file

from app.tenderguru.audit import record_event
from app.tenderguru.constants import COMMITTEE_MANAGER_ROLES
from app.tenderguru.db import db_session
from app.tenderguru.modules.committees.notifications import notify_committee_members
from app.tenderguru.modules.committees.schemas import CommitteeCreate, CommitteeUpdate
from app.tenderguru.modules.committees.service import (
    create_committee,
    delete_committee,
    discard_formation_letter,
    get_committee_or_404,
    list_committees,
    open_formation_letter,
    resolve_members,
    store_formation_letter,
    update_committee,
)
from app.tenderguru.rbac import require_auth, restrict_to
from app.tenderguru.storage import storage_from_config
from app.tenderguru.utils import request_payload, success

bp = Blueprint("committees", __name__)


def _committee_payload() -> dict:
    payload = request_payload(request)
    # Multipart clients may repeat `members` once per employee ID, or send one JSON array string.
    if not request.is_json:
        repeated = request.form.getlist("members")
        if len(repeated) > 1 or (repeated and repeated[0].strip() and not repeated[0].lstrip().startswith("[")):
            payload["members"] = repeated
    return payload


@bp.post("")
@require_auth
@restrict_to(*COMMITTEE_MANAGER_ROLES)
def create():
    s = db_session()
    u = g.current_user

    data = CommitteeCreate.from_payload(_committee_payload())
    members = resolve_members(s, data.member_ids)

    storage = storage_from_config(current_app.config)
    upload = request.files.get("formationLetter")
    letter = None
    try:
        if upload and upload.filename:
            letter = store_formation_letter(storage, upload)
        committee = create_committee(s, data, u, members=members, letter=letter)
        s.commit()
    except Exception:
        s.rollback()
        if letter is not None:
            discard_formation_letter(storage, letter.path)
        raise

    current_app.logger.info("Committee created: id=%s name=%r by=%s", committee.id, committee.name, u.id)
    if data.should_notify:
        notify_committee_members(committee)
    return jsonify(success({"committee": committee.to_dict()})), 201


@bp.get("")
@require_auth
def list_all():
    committees = list_committees(db_session())
    return jsonify(success({"committees": [c.to_dict() for c in committees]}, results=len(committees))), 200


@bp.get("/<int:committee_id>")
@require_auth
def detail(committee_id: int):
    committee = get_committee_or_404(db_session(), committee_id)
    return jsonify(success({"committee": committee.to_dict()})), 200


@bp.patch("/<int:committee_id>")
@require_auth
@restrict_to(*COMMITTEE_MANAGER_ROLES)
def update(committee_id: int):
    s = db_session()
    u = g.current_user

    committee = get_committee_or_404(s, committee_id)
    changes = CommitteeUpdate.from_payload(_committee_payload())
    update_committee(s, committee, changes, u)
    s.commit()

    current_app.logger.info("Committee updated: id=%s name=%r by=%s", committee.id, committee.name, u.id)
    if changes.should_notify:
        notify_committee_members(committee)
    return jsonify(success({"committee": committee.to_dict()})), 200


@bp.delete("/<int:committee_id>")
@require_auth
@restrict_to(*COMMITTEE_MANAGER_ROLES)
def delete(committee_id: int):
    s = db_session()
    u = g.current_user

    committee = get_committee_or_404(s, committee_id)
    delete_committee(s, committee, u, storage_from_config(current_app.config))
    s.commit()

    current_app.logger.info("Committee deleted: id=%s by=%s", committee_id, u.id)
    return "", 204


@bp.get("/<int:committee_id>/download")
@require_auth
def download_formation_letter(committee_id: int):
    s = db_session()
    committee = get_committee_or_404(s, committee_id)
    fobj = open_formation_letter(committee, storage_from_config(current_app.config))

    record_event(
        s,
        actor=g.current_user,
        action="committee.download",
        entity_type="Committee",
        entity_id=str(committee.id),
        metadata={"filename": committee.formation_letter_original_name},
    )
    s.commit()

    return send_file(
        fobj,
        mimetype=committee.formation_letter_content_type or "application/octet-stream",
        as_attachment=True,
        download_name=committee.formation_letter_original_name or committee.formation_letter_filename,
        max_age=0,
    )
