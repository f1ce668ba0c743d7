"""Transactional email (verification links)."""

import html
import logging
from abc import ABC, abstractmethod
from email.message import EmailMessage

import aiosmtplib
import httpx

from blindtest.config import settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailBackend(ABC):
    """Abstract base class for email backends."""

    @abstractmethod
    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        """Send an email.

        Returns:
            True if the message was handed off successfully. Backends log and
            return False on delivery failures instead of raising.
        """


class ConsoleEmailBackend(EmailBackend):
    """Writes emails to the log (development and tests)."""

    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        divider = "=" * 60
        logger.info(
            f"\n{divider}\nEMAIL (console backend - not sent)\n"
            f"To: {to}\nSubject: {subject}\n{divider}\n{text or html}\n{divider}"
        )
        return True


class SMTPEmailBackend(EmailBackend):
    """Delivers through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_address: str = "",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address

    def build_message(self, to: str, subject: str, html: str, text: str | None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text or "This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        message = self.build_message(to, subject, html, text)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {to} failed: {e}")
            return False
        logger.info(f"Email sent via SMTP to {to}")
        return True


class ResendEmailBackend(EmailBackend):
    """Delivers through the Resend HTTP API."""

    def __init__(self, api_key: str, from_address: str, timeout: float = 30.0):
        self.api_key = api_key
        self.from_address = from_address
        self.timeout = timeout

    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        payload = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Resend rejected email to {to}: {e.response.status_code} {e.response.text}")
                return False
            except httpx.HTTPError as e:
                logger.error(f"Resend request for {to} failed: {e}")
                return False
        logger.info(f"Email sent via Resend to {to}")
        return True


def get_email_backend() -> EmailBackend:
    """Get the configured email backend."""
    if settings.email_backend == "console":
        return ConsoleEmailBackend()
    if settings.email_backend == "smtp":
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.email_from,
        )
    if settings.email_backend == "resend":
        return ResendEmailBackend(api_key=settings.resend_api_key, from_address=settings.email_from)
    raise ValueError(f"Unknown email backend: {settings.email_backend}")


VERIFICATION_HTML = """\
<!DOCTYPE html>
<html>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2 style="color: #1a1a1a;">Confirm your email address</h2>
    <p>Hi {name}, please confirm the email address for your Blindtest account.
    This link expires in {minutes} minutes.</p>
    <p style="text-align: center; margin: 30px 0;">
        <a href="{url}" style="background: #2563eb; color: white; padding: 12px 30px; border-radius: 6px; text-decoration: none;">Verify email</a>
    </p>
    <p style="color: #666; font-size: 12px;">If the button doesn't work, open this link:<br>
    <a href="{url}" style="color: #2563eb; word-break: break-all;">{url}</a></p>
    <p style="color: #666; font-size: 12px;">If you didn't create an account, you can ignore this email.</p>
</body>
</html>
"""

VERIFICATION_TEXT = """\
Confirm your email address

Hi {name}, open the link below to confirm the email address for your
Blindtest account. It expires in {minutes} minutes.

{url}

If you didn't create an account, you can ignore this email.
"""


class EmailService:
    """High-level email service for sending application emails."""

    def __init__(self, backend: EmailBackend | None = None):
        self._backend = backend

    @property
    def backend(self) -> EmailBackend:
        """Lazy-load the backend."""
        if self._backend is None:
            self._backend = get_email_backend()
        return self._backend

    async def send_verification_email(
        self, to: str, verification_url: str, name: str | None = None
    ) -> bool:
        """Send an email address verification link."""
        context = {
            "name": name or "there",
            "minutes": settings.email_verification_expiration_minutes,
            "url": verification_url,
        }
        html_context = {
            **context,
            "name": html.escape(context["name"]),
            "url": html.escape(verification_url, quote=True),
        }
        return await self.backend.send(
            to=to,
            subject="Verify your email for Blindtest",
            html=VERIFICATION_HTML.format(**html_context),
            text=VERIFICATION_TEXT.format(**context),
        )


# Global email service instance
email_service = EmailService()
