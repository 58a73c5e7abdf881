"""
Outbound email for OTP codes and account notices.

`send` reports delivery with a bool and never raises; callers decide what a
failed delivery means for the request.
"""

from __future__ import annotations

import html
import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger("mailer")


class Mailer:
    def send(self, to_email: str, subject: str, body_html: str) -> bool:
        raise NotImplementedError


class LogMailer(Mailer):
    """Development mailer: records the send, delivers nothing."""

    def send(self, to_email: str, subject: str, body_html: str) -> bool:
        logger.info("Mock email to=%s subject=%s", to_email, subject)
        return False


class SmtpMailer(Mailer):
    def __init__(self) -> None:
        self.host = os.getenv("SMTP_HOST")
        self.port = int(os.getenv("SMTP_PORT", "587"))
        self.user = os.getenv("SMTP_USER")
        self.password = os.getenv("SMTP_PASSWORD")
        self.sender = os.getenv("SMTP_FROM", self.user or "krushi-mithra@localhost")
        self.starttls = os.getenv("SMTP_STARTTLS", "true").lower() in {"1", "true", "yes"}

    def send(self, to_email: str, subject: str, body_html: str) -> bool:
        if not self.host:
            return False
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to_email
        msg.set_content("Please view this message in an HTML capable email client.")
        msg.add_alternative(body_html, subtype="html")
        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                server.ehlo()
                if self.starttls:
                    server.starttls()
                    server.ehlo()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP send failed to=%s: %s", to_email, exc)
            return False
        return True


def build_mailer() -> Mailer:
    if os.getenv("SMTP_HOST"):
        return SmtpMailer()
    return LogMailer()


def render_otp_email(display_name: str, code: str, ttl_minutes: int) -> tuple[str, str]:
    subject = "Krushi Mithra - Email verification code"
    name = html.escape(display_name or "Farmer")
    body = (
        "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
        "<h2 style=\"color: #2e7d32;\">Krushi Mithra</h2>"
        f"<p>Namaskara {name},</p>"
        "<p>Use the code below to verify your email address:</p>"
        f"<p style=\"font-size: 28px; font-weight: bold; letter-spacing: 6px;\">{html.escape(code)}</p>"
        f"<p>This code expires in {ttl_minutes} minutes. Do not share it with anyone.</p>"
        "<p>If you did not request this, you can ignore this email.</p>"
        "</div>"
    )
    return subject, body
