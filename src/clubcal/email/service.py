"""
Email delivery with provider abstraction.

Supports SendGrid (default), SMTP and Resend. Provider is selected via
configuration. Providers never raise on delivery problems: they log and
return False so the reminder dispatcher can count the failure and retry
on its next run.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

from clubcal.config import ConfigurationError, Settings, get_settings

logger = structlog.get_logger()


class BaseEmailProvider(ABC):
    """Abstract base class for email delivery providers."""

    @abstractmethod
    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send an email. Returns True on success."""
        ...


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls
        self.timeout = timeout

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via SMTP."""
        import aiosmtplib

        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            tls_context = ssl.create_default_context() if self.use_tls else None
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=tls_context,
                timeout=self.timeout,
            )
            logger.info("email_sent", to=to_email, subject=subject, provider="smtp")
            return True
        except Exception:
            logger.exception("email_send_failed", to=to_email, provider="smtp")
            return False


class SendGridProvider(BaseEmailProvider):
    """Send emails via the SendGrid v3 mail API."""

    API_URL = "https://api.sendgrid.com/v3/mail/send"

    def __init__(self, api_key: str, from_address: str, from_name: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name
        self.timeout = timeout

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via SendGrid HTTP API. SendGrid answers 202 Accepted on success."""
        import httpx

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "personalizations": [{"to": [{"email": to_email}]}],
                        "from": {"email": self.from_address, "name": self.from_name},
                        "subject": subject,
                        "content": [
                            {"type": "text/plain", "value": text_body},
                            {"type": "text/html", "value": html_body},
                        ],
                    },
                    timeout=self.timeout,
                )
                response.raise_for_status()
                logger.info("email_sent", to=to_email, subject=subject, provider="sendgrid")
                return True
        except Exception:
            logger.exception("email_send_failed", to=to_email, provider="sendgrid")
            return False


class ResendProvider(BaseEmailProvider):
    """Send emails via Resend API."""

    def __init__(self, api_key: str, from_address: str, from_name: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name
        self.timeout = timeout

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via Resend HTTP API."""
        import httpx

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    "https://api.resend.com/emails",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": f"{self.from_name} <{self.from_address}>",
                        "to": [to_email],
                        "subject": subject,
                        "html": html_body,
                        "text": text_body,
                    },
                    timeout=self.timeout,
                )
                response.raise_for_status()
                logger.info("email_sent", to=to_email, subject=subject, provider="resend")
                return True
        except Exception:
            logger.exception("email_send_failed", to=to_email, provider="resend")
            return False


def missing_email_settings(settings: Settings) -> list[str]:
    """Names of settings the configured provider still needs."""
    missing = []
    provider_name = settings.email_provider.lower()
    if provider_name == "sendgrid" and not settings.sendgrid_api_key:
        missing.append("SENDGRID_API_KEY")
    elif provider_name == "resend" and not settings.resend_api_key:
        missing.append("RESEND_API_KEY")
    elif provider_name == "smtp" and not settings.smtp_host:
        missing.append("SMTP_HOST")
    if not settings.reminder_from_email:
        missing.append("REMINDER_FROM_EMAIL")
    return missing


def _create_provider(settings: Settings | None = None) -> BaseEmailProvider:
    """Create email provider based on configuration."""
    settings = settings or get_settings()
    missing = missing_email_settings(settings)
    if missing:
        msg = f"Missing {', '.join(missing)}"
        raise ConfigurationError(msg)

    provider_name = settings.email_provider.lower()
    if provider_name == "sendgrid":
        return SendGridProvider(
            api_key=settings.sendgrid_api_key,
            from_address=settings.reminder_from_email,
            from_name=settings.reminder_from_name,
            timeout=settings.adapter_timeout_seconds,
        )
    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.reminder_from_email,
            from_name=settings.reminder_from_name,
            use_tls=settings.smtp_use_tls,
            timeout=settings.adapter_timeout_seconds,
        )
    if provider_name == "resend":
        return ResendProvider(
            api_key=settings.resend_api_key,
            from_address=settings.reminder_from_email,
            from_name=settings.reminder_from_name,
            timeout=settings.adapter_timeout_seconds,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ConfigurationError(msg)


class EmailService:
    """High-level email sender used by the reminder dispatcher."""

    def __init__(self, provider: BaseEmailProvider | None = None, settings: Settings | None = None) -> None:
        self.provider = provider or _create_provider(settings)

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send an email. Returns True if the provider accepted it."""
        return await self.provider.send(to, subject, html_body, text_body)

