"""
Committee member notifications.

Mail goes out after the committee write has committed, on a background
thread with its own app context. Every failure stays on this side: it is
logged and never reaches the request that triggered it.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from threading import Thread
from typing import TYPE_CHECKING, Mapping

from flask import Flask, current_app
from markupsafe import escape

from app.tenderguru.mailer import send_email

if TYPE_CHECKING:
    from app.tenderguru.modules.committees.models import Committee

logger = logging.getLogger(__name__)

_MAX_SEND_WORKERS = 8


@dataclass(frozen=True)
class CommitteeNotice:
    """Plain copy of what the emails need, so no ORM object crosses into the sender thread."""

    committee_id: int
    name: str
    purpose: str
    formation_date: date | None
    has_formation_letter: bool
    creator_name: str
    recipients: tuple[tuple[str, str], ...]  # (name, email)

    @classmethod
    def from_committee(cls, committee: "Committee") -> "CommitteeNotice":
        return cls(
            committee_id=committee.id,
            name=committee.name,
            purpose=committee.purpose,
            formation_date=committee.formation_date,
            has_formation_letter=committee.has_formation_letter,
            creator_name=committee.created_by.name if committee.created_by else "Unknown",
            recipients=tuple((m.get("name") or "", m.get("email") or "") for m in (committee.members or [])),
        )


def render_notice(notice: CommitteeNotice) -> tuple[str, str, str]:
    """Return (subject, text body, html body)."""
    subject = f"You've been added to committee: {notice.name}"
    formed = notice.formation_date.strftime("%d %b %Y") if notice.formation_date else "TBD"
    letter_line = "A formation letter is attached to this committee." if notice.has_formation_letter else ""

    text = "\n".join(
        line
        for line in (
            "Committee Assignment",
            f"You have been added to the committee {notice.name}.",
            f"Purpose: {notice.purpose}",
            f"Formation Date: {formed}",
            letter_line,
            f"Created by: {notice.creator_name}",
        )
        if line
    )
    html = (
        "<h1>Committee Assignment</h1>"
        f"<p>You have been added to the committee <strong>{escape(notice.name)}</strong>.</p>"
        f"<p>Purpose: {escape(notice.purpose)}</p>"
        f"<p>Formation Date: {escape(formed)}</p>"
        + (f"<p>{letter_line}</p>" if letter_line else "")
        + f"<p>Created by: {escape(notice.creator_name)}</p>"
    )
    return subject, text, html


def send_committee_notifications(config: Mapping, notice: CommitteeNotice) -> int:
    """
    Email every member concurrently. Returns the number of successful sends; never raises.
    """
    if not notice.recipients:
        return 0
    subject, text, html = render_notice(notice)

    def _send_one(recipient: tuple[str, str]) -> bool:
        _, email = recipient
        try:
            send_email(config, email, subject, text, html=html)
            return True
        except Exception:
            logger.exception("Committee notification failed committee=%s to=%s", notice.committee_id, email)
            return False

    workers = min(_MAX_SEND_WORKERS, len(notice.recipients))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="committee-mail") as pool:
        sent = sum(1 for ok in pool.map(_send_one, notice.recipients) if ok)

    logger.info("Notifications sent for committee %s: %d/%d", notice.committee_id, sent, len(notice.recipients))
    return sent


class NotificationDispatcher:
    def __init__(self, app: Flask):
        self.app = app

    def _run(self, notice: CommitteeNotice) -> None:
        with self.app.app_context():
            try:
                send_committee_notifications(self.app.config, notice)
            except Exception:
                logger.exception("Committee notification task crashed committee=%s", notice.committee_id)

    def dispatch(self, notice: CommitteeNotice) -> Thread | None:
        """Start the send task. Runs inline (returning None) when NOTIFICATIONS_ASYNC is off."""
        if not self.app.config.get("NOTIFICATIONS_ASYNC", True):
            self._run(notice)
            return None
        t = Thread(target=self._run, args=(notice,), daemon=True, name=f"notify-committee-{notice.committee_id}")
        t.start()
        return t


def init_notifications(app: Flask) -> None:
    app.extensions["committee_notifier"] = NotificationDispatcher(app)


def notify_committee_members(committee: "Committee") -> Thread | None:
    """Call only after the committee write has been committed."""
    dispatcher: NotificationDispatcher = current_app.extensions["committee_notifier"]
    return dispatcher.dispatch(CommitteeNotice.from_committee(committee))
