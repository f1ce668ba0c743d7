"""Email service tests."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import httpx
import pytest

from blindtest.services.email import (
    ConsoleEmailBackend,
    EmailService,
    ResendEmailBackend,
    SMTPEmailBackend,
    get_email_backend,
)


def smtp_backend() -> SMTPEmailBackend:
    return SMTPEmailBackend(
        host="smtp.example.com",
        port=587,
        username="user",
        password="pass",
        from_address="noreply@example.com",
    )


class TestConsoleEmailBackend:
    @pytest.mark.asyncio
    async def test_send_logs_email(self, caplog):
        backend = ConsoleEmailBackend()

        with caplog.at_level(logging.INFO):
            result = await backend.send(
                to="test@example.com",
                subject="Test Subject",
                html="<p>Hello</p>",
                text="Hello",
            )

        assert result is True
        assert "test@example.com" in caplog.text
        assert "Test Subject" in caplog.text


class TestSMTPEmailBackend:
    def test_build_message_has_text_and_html_parts(self):
        message = smtp_backend().build_message(
            "test@example.com", "Subject", "<p>Hello</p>", "Hello"
        )

        assert message["From"] == "noreply@example.com"
        assert message["To"] == "test@example.com"
        types = [part.get_content_type() for part in message.iter_parts()]
        assert types == ["text/plain", "text/html"]

    @pytest.mark.asyncio
    async def test_send_success(self):
        with patch("blindtest.services.email.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            result = await smtp_backend().send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
                text="Hello",
            )

        assert result is True
        mock_send.assert_called_once()
        assert mock_send.call_args.kwargs["hostname"] == "smtp.example.com"
        assert mock_send.call_args.kwargs["start_tls"] is True

    @pytest.mark.asyncio
    async def test_send_failure(self):
        with patch(
            "blindtest.services.email.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=aiosmtplib.SMTPConnectError("Connection failed"),
        ):
            result = await smtp_backend().send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
            )

        assert result is False


class TestResendEmailBackend:
    @pytest.mark.asyncio
    async def test_send_success(self):
        backend = ResendEmailBackend(api_key="re_test_key", from_address="noreply@example.com")

        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response

            result = await backend.send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
                text="Hello",
            )

        assert result is True
        call_kwargs = mock_post.call_args.kwargs
        assert call_kwargs["json"]["to"] == ["test@example.com"]
        assert call_kwargs["headers"]["Authorization"] == "Bearer re_test_key"

    @pytest.mark.asyncio
    async def test_send_http_error(self):
        backend = ResendEmailBackend(api_key="re_test_key", from_address="noreply@example.com")

        mock_response = MagicMock()
        mock_response.status_code = 401
        mock_response.text = "Unauthorized"
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Unauthorized",
            request=MagicMock(),
            response=mock_response,
        )

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response
            result = await backend.send(to="test@example.com", subject="Test", html="<p>Hi</p>")

        assert result is False

    @pytest.mark.asyncio
    async def test_send_network_error(self):
        backend = ResendEmailBackend(api_key="re_test_key", from_address="noreply@example.com")

        with patch(
            "httpx.AsyncClient.post",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("Network error"),
        ):
            result = await backend.send(to="test@example.com", subject="Test", html="<p>Hi</p>")

        assert result is False


class TestGetEmailBackend:
    def test_console_backend(self):
        with patch("blindtest.services.email.settings") as mock_settings:
            mock_settings.email_backend = "console"
            assert isinstance(get_email_backend(), ConsoleEmailBackend)

    def test_smtp_backend(self):
        with patch("blindtest.services.email.settings") as mock_settings:
            mock_settings.email_backend = "smtp"
            mock_settings.smtp_host = "smtp.example.com"
            mock_settings.smtp_port = 587
            mock_settings.smtp_username = "user"
            mock_settings.smtp_password = "pass"
            mock_settings.smtp_use_tls = True
            mock_settings.email_from = "noreply@example.com"

            backend = get_email_backend()

        assert isinstance(backend, SMTPEmailBackend)
        assert backend.host == "smtp.example.com"

    def test_invalid_backend(self):
        with patch("blindtest.services.email.settings") as mock_settings:
            mock_settings.email_backend = "invalid"

            with pytest.raises(ValueError, match="Unknown email backend"):
                get_email_backend()


class TestEmailService:
    @pytest.mark.asyncio
    async def test_send_verification_email(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = True

        service = EmailService(backend=mock_backend)
        result = await service.send_verification_email(
            to="test@example.com",
            verification_url="http://localhost:3000/verify-email?token=abc123",
            name="Ada",
        )

        assert result is True
        call_kwargs = mock_backend.send.call_args.kwargs
        assert call_kwargs["to"] == "test@example.com"
        assert call_kwargs["subject"] == "Verify your email for Blindtest"
        assert "abc123" in call_kwargs["html"]
        assert "abc123" in call_kwargs["text"]
        assert "Hi Ada" in call_kwargs["text"]

    @pytest.mark.asyncio
    async def test_send_verification_email_escapes_html(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = True
        name = '<a href="https://evil.test">Click</a>'

        service = EmailService(backend=mock_backend)
        await service.send_verification_email(
            to="test@example.com",
            verification_url='http://localhost:3000/verify-email?token=abc&x="y"',
            name=name,
        )

        call_kwargs = mock_backend.send.call_args.kwargs
        assert name not in call_kwargs["html"]
        assert 'href="https://evil.test"' not in call_kwargs["html"]
        assert "Hi &lt;a href=&quot;https://evil.test&quot;&gt;Click&lt;/a&gt;" in call_kwargs["html"]
        assert 'href="http://localhost:3000/verify-email?token=abc&amp;x=&quot;y&quot;"' in call_kwargs["html"]
        assert f"Hi {name}" in call_kwargs["text"]

    @pytest.mark.asyncio
    async def test_send_verification_email_failure(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = False

        service = EmailService(backend=mock_backend)
        result = await service.send_verification_email(
            to="test@example.com",
            verification_url="http://localhost:3000/verify-email?token=abc123",
        )

        assert result is False

    def test_lazy_backend_loading(self):
        service = EmailService()

        with patch("blindtest.services.email.get_email_backend") as mock_get_backend:
            mock_get_backend.return_value = ConsoleEmailBackend()

            backend = service.backend
            assert isinstance(backend, ConsoleEmailBackend)
            assert service.backend is backend
            mock_get_backend.assert_called_once()
