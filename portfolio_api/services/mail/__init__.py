"""Outgoing account email: an SMTP sender plus the message bodies it carries."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from portfolio_api.utils.config import Settings, settings as default_settings


logger = logging.getLogger(__name__)


class Mailer(Protocol):
    def send(self, to_address: str, subject: str, body_html: str) -> bool:
        ...


class SmtpMailer:
    """Send HTML mail over SMTP; delivery problems come back as False."""

    def __init__(self, host: str = "", port: int = 0, username: str | None = None,
                 password: str | None = None, sender: str = "", use_tls: bool = True,
                 timeout: float = 10.0) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender
        self._use_tls = use_tls
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "SmtpMailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.smtp_sender,
            use_tls=settings.smtp_use_tls,
        )

    def _new_connection(self) -> smtplib.SMTP:
        return smtplib.SMTP(host=self._host, port=self._port, timeout=self._timeout)

    def send(self, to_address: str, subject: str, body_html: str) -> bool:
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(body_html, subtype="html")

        try:
            with self._new_connection() as conn:
                if self._use_tls:
                    conn.starttls()
                if self._username and self._password:
                    conn.login(self._username, self._password)
                conn.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send '{subject}' to {to_address}: {e}")
            return False
        return True


def verification_email(app_name: str, url: str) -> tuple[str, str]:
    body = f"""
     <p>Click on the link below to verify your email address:</p>
     <p><a href="{url}">Verify Email</a></p>
     <p>If you didn't request this email, you can safely ignore it.</p>
    """
    return f"{app_name} Email Verification", body


def password_reset_email(app_name: str, url: str) -> tuple[str, str]:
    body = f"""
     <p>Click on the link below to reset your password:</p>
     <p><a href="{url}">Reset Password</a></p>
     <p>If you didn't request this email, you can safely ignore it.</p>
    """
    return f"{app_name} Reset Password", body


def otp_email(app_name: str, otp: str) -> tuple[str, str]:
    body = f"""
     <p>Your One-Time Password (OTP) for two-step verification is: <strong>{otp}</strong></p>
     <p>Please enter this OTP within 5 minutes to complete the verification process.</p>
     <p>If you didn't request this OTP, you can safely ignore this message.</p>
    """
    return f"{app_name} Two-Step Verification", body
