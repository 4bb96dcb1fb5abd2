"""Transactional email delivery for account verification."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Protocol
from urllib.parse import quote

from app.core.config import EmailConfig
from app.core.logging import redact_email

LOGGER = logging.getLogger(__name__)


def _describe_duration(seconds: int) -> str:
    if seconds >= 3600 and seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    minutes = max(1, seconds // 60)
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the SMTP server."""


class EmailSender(Protocol):
    def send_verification_email(self, to: str, raw_token: str) -> None: ...


class SmtpEmailSender:
    """SMTP email sender; logs messages instead of sending when unconfigured."""

    def __init__(self, config: EmailConfig, *, link_ttl_seconds: int = 86400) -> None:
        self._config = config
        self._link_ttl_seconds = link_ttl_seconds

    @property
    def is_configured(self) -> bool:
        """Check if email sending is properly configured."""
        return bool(self._config.smtp_host and self._config.from_email)

    def verification_url(self, raw_token: str) -> str:
        return f"{self._config.app_base_url}/auth/verify-email?token={quote(raw_token)}"

    def send_verification_email(self, to: str, raw_token: str) -> None:
        """Send the verification link carrying the raw (unhashed) token."""
        url = self.verification_url(raw_token)
        expiry = f"This link expires in {_describe_duration(self._link_ttl_seconds)}."
        subject = f"Verify your email - {self._config.from_name}"
        text_body = (
            "Thank you for registering! Open the link below to verify your email "
            f"address:\n\n{url}\n\n{expiry}"
        )
        html_body = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: auto; padding: 20px;">
  <h2 style="color: #333;">Verify Your Email</h2>
  <p>Thank you for registering! Please click the button below to verify your email address:</p>
  <a href="{escape(url)}"
     style="display: inline-block; padding: 12px 24px; background-color: #4F46E5; color: white;
            text-decoration: none; border-radius: 6px; margin: 16px 0; font-weight: bold;">
    Verify Email
  </a>
  <p style="color: #666; font-size: 14px;">
    Or copy and paste this link into your browser:<br/>
    <a href="{escape(url)}">{escape(url)}</a>
  </p>
  <p style="color: #999; font-size: 12px;">{expiry}</p>
</div>
"""
        if not self.is_configured:
            LOGGER.info(
                "email_dev_mode", extra={"email": redact_email(to), "link": url}
            )
            return
        self._send(to, subject, html_body, text_body)

    def _send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self._config.from_name} <{self._config.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        context = ssl.create_default_context()
        try:
            if self._config.smtp_use_tls:
                with smtplib.SMTP(
                    self._config.smtp_host, self._config.smtp_port, timeout=30
                ) as server:
                    server.starttls(context=context)
                    self._login(server)
                    server.sendmail(self._config.from_email, to_email, msg.as_string())
            else:
                with smtplib.SMTP_SSL(
                    self._config.smtp_host,
                    self._config.smtp_port,
                    context=context,
                    timeout=30,
                ) as server:
                    self._login(server)
                    server.sendmail(self._config.from_email, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.error(
                "email_send_failed",
                extra={"email": redact_email(to_email)},
                exc_info=True,
            )
            raise EmailDeliveryError(f"Could not send email: {type(exc).__name__}") from exc

        LOGGER.info("email_sent", extra={"email": redact_email(to_email)})

    def _login(self, server: smtplib.SMTP) -> None:
        if self._config.smtp_user and self._config.smtp_password:
            server.login(self._config.smtp_user, self._config.smtp_password)
