from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Mapping

logger = logging.getLogger(__name__)


class MailError(RuntimeError):
    pass


def mail_configured(config: Mapping) -> bool:
    return bool((config.get("SMTP_SERVER") or "").strip())


def send_email(config: Mapping, to: str, subject: str, body: str, *, html: str | None = None) -> None:
    """
    Send one email using the SMTP settings in `config` (an app.config mapping).

    Raises MailError when SMTP is not configured or the transport fails.
    """
    smtp_server = (config.get("SMTP_SERVER") or "").strip()
    email_from = (config.get("EMAIL_FROM") or "").strip()
    if not smtp_server:
        raise MailError("SMTP server not configured (SMTP_SERVER environment variable missing)")
    if not email_from:
        raise MailError("Email from address not configured (EMAIL_FROM environment variable missing)")
    if not (to or "").strip():
        raise MailError("Recipient address is empty")

    if html:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(html, "html"))
    else:
        msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = email_from
    msg["To"] = to

    port = int(config.get("SMTP_PORT") or 587)
    username = (config.get("SMTP_USERNAME") or "").strip()
    password = config.get("SMTP_PASSWORD") or ""
    try:
        with smtplib.SMTP(smtp_server, port, timeout=30) as server:
            if config.get("SMTP_USE_TLS", True):
                server.starttls()
            if username and password:
                server.login(username, password)
            server.sendmail(email_from, [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise MailError(f"Failed to send email to {to}: {e}") from e
    logger.info("Email sent to=%s subject=%r", to, subject)
