"""Unit tests for request parsing, tokens, storage and notification rendering (no app needed)."""
from datetime import date, datetime, timedelta

import pytest

from app.tenderguru.errors import ValidationError
from app.tenderguru.models import User
from app.tenderguru.modules.accounts.schemas import Registration, UserAdminUpdate, UserSelfUpdate
from app.tenderguru.modules.committees.notifications import CommitteeNotice, render_notice, send_committee_notifications
from app.tenderguru.modules.committees.schemas import CommitteeUpdate, normalize_member_ids
from app.tenderguru.security import decode_token, hash_reset_token, new_reset_token, sign_token
from app.tenderguru.storage import LocalStorage, StorageError


@pytest.mark.parametrize("raw", [None, "", []])
def test_normalize_member_ids_empty(raw):
    assert normalize_member_ids(raw) == []


def test_normalize_member_ids_json_string_and_objects():
    assert normalize_member_ids('["E-1", {"employeeId": "E-2"}, "E-1"]') == ["E-1", "E-2", "E-1"]


def test_normalize_member_ids_rejects_non_list():
    with pytest.raises(ValidationError):
        normalize_member_ids('{"employeeId": "E-1"}')
    with pytest.raises(ValidationError):
        normalize_member_ids("[not json")


def test_committee_update_only_carries_sent_keys():
    u = CommitteeUpdate.from_payload({"name": " Renamed ", "unknown": 1})
    assert u.fields == {"name": "Renamed"}
    assert u.member_ids is None
    assert u.should_notify is False

    u = CommitteeUpdate.from_payload({"members": [], "shouldNotify": "true", "reviewDate": ""})
    assert u.member_ids == []
    assert u.should_notify is True
    assert u.fields == {"should_notify": True, "review_date": None}


def test_committee_update_rejects_blank_required_fields():
    with pytest.raises(ValidationError):
        CommitteeUpdate.from_payload({"name": "   "})
    with pytest.raises(ValidationError):
        CommitteeUpdate.from_payload({"formationDate": ""})


def test_self_update_maps_wire_keys():
    u = UserSelfUpdate.from_payload({"phoneNumber": " 555 ", "otpEnabled": "true", "email": "Me@Example.com"})
    assert u.changes == {"phone_number": "555", "otp_enabled": True, "email": "me@example.com"}


def test_admin_update_rejects_employee_id():
    with pytest.raises(ValidationError):
        UserAdminUpdate.from_payload({"employeeId": "X-1"})
    assert UserAdminUpdate.from_payload({"permissions": [" tenders.view "]}).changes == {"permissions": ["tenders.view"]}


def test_registration_defaults():
    reg = Registration.from_payload({"name": "A", "email": "a@example.com", "password": "password123", "employeeId": " E-7 "})
    assert reg.employee_id == "E-7"
    assert reg.role == "staff"
    assert reg.is_active is True


def test_token_round_trip_and_tamper():
    token = sign_token(42, "secret", 60)
    payload = decode_token(token, "secret")
    assert payload["id"] == 42
    assert payload["exp"] > payload["iat"]

    import jwt

    with pytest.raises(jwt.InvalidSignatureError):
        decode_token(token, "other-secret")
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_token(sign_token(42, "secret", -10), "secret")


def test_reset_token_only_hash_is_kept():
    raw, hashed = new_reset_token()
    assert len(raw) == 64
    assert hashed == hash_reset_token(raw)
    assert hashed != raw


def test_changed_password_after():
    u = User(name="x", email="x@example.com", employee_id="X", permissions=[])
    u.set_password("password123")
    assert u.password_changed_at is None
    assert u.changed_password_after(0) is False

    changed = datetime.utcnow()
    u.set_password("password456", changed_at=changed)
    before = (changed - timedelta(seconds=1) - datetime(1970, 1, 1)).total_seconds()
    after = (changed + timedelta(seconds=1) - datetime(1970, 1, 1)).total_seconds()
    assert u.changed_password_after(before) is True
    assert u.changed_password_after(after) is False
    assert u.check_password("password456")
    assert not u.check_password("password123")


def test_local_storage(tmp_path):
    storage = LocalStorage(root=tmp_path)
    storage.put_bytes("a/b.txt", b"hello")
    assert storage.exists("a/b.txt")
    with storage.open("a/b.txt") as f:
        assert f.read() == b"hello"
    storage.delete("a/b.txt")
    assert not storage.exists("a/b.txt")

    with pytest.raises(StorageError):
        storage.open("a/b.txt")
    with pytest.raises(StorageError):
        storage.put_bytes("../escape.txt", b"x")


def _notice(recipients):
    return CommitteeNotice(
        committee_id=1,
        name="<b>Board</b>",
        purpose="Buy things",
        formation_date=date(2024, 5, 1),
        has_formation_letter=True,
        creator_name="Admin",
        recipients=recipients,
    )


def test_render_notice_escapes_html():
    subject, text, html = render_notice(_notice(()))
    assert subject == "You've been added to committee: <b>Board</b>"
    assert "Formation Date: 01 May 2024" in text
    assert "formation letter" in text
    assert "&lt;b&gt;Board&lt;/b&gt;" in html
    assert "<b>Board</b>" not in html


def test_send_committee_notifications_counts_failures(monkeypatch):
    from app.tenderguru.modules.committees import notifications

    def _send(config, to, subject, body, *, html=None):
        if to.startswith("bad"):
            raise RuntimeError("boom")

    monkeypatch.setattr(notifications, "send_email", _send)
    notice = _notice((("Good", "good@example.com"), ("Bad", "bad@example.com"), ("Also", "also@example.com")))
    assert send_committee_notifications({}, notice) == 2
    assert send_committee_notifications({}, _notice(())) == 0
