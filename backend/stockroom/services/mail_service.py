# Overview: Outbound SMTP mail for emailed reports.

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid

from flask import current_app

from ..errors import AppError
from ..validation import ValidationError, is_valid_email


class MailError(AppError):
    """The SMTP server refused or could not be reached."""

    status_code = 502


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    mimetype: str = "application/octet-stream"


def send_email(
    to: str,
    subject: str,
    text: str,
    attachments: list[Attachment] | None = None,
) -> str:
    """
    Send a plain-text message with optional attachments.

    SMTP settings come from app config (SMTP_HOST, SMTP_PORT, SMTP_USER,
    SMTP_PASSWORD, SMTP_USE_TLS, MAIL_FROM). Returns the Message-ID.
    """
    to = (to or "").strip()
    if not is_valid_email(to):
        raise ValidationError("A valid email address is required")

    config = current_app.config

    msg = EmailMessage()
    msg["From"] = config["MAIL_FROM"]
    msg["To"] = to
    msg["Subject"] = subject
    msg["Message-ID"] = make_msgid(domain=config["MAIL_FROM"].rpartition("@")[2] or None)
    msg.set_content(text)

    for attachment in attachments or []:
        maintype, _, subtype = attachment.mimetype.partition("/")
        msg.add_attachment(
            attachment.content,
            maintype=maintype,
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )

    try:
        with smtplib.SMTP(config["SMTP_HOST"], config["SMTP_PORT"], timeout=30) as smtp:
            if config["SMTP_USE_TLS"]:
                smtp.starttls()
            if config["SMTP_USER"]:
                smtp.login(config["SMTP_USER"], config["SMTP_PASSWORD"] or "")
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        current_app.logger.exception("Failed to send mail to %s", to)
        raise MailError("Email could not be sent", details={"to": to}) from exc

    current_app.logger.info("Sent '%s' to %s (%d attachment(s))", subject, to, len(attachments or []))
    return msg["Message-ID"]
