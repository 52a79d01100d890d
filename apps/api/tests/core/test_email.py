"""
Unit tests for the Resend email helpers.
"""

from unittest.mock import AsyncMock, patch

import pytest

from app.core import email


class TestSendEmail:
    """Tests for send_email."""

    @pytest.mark.asyncio
    async def test_without_api_key_logs_and_succeeds(self):
        with (
            patch.object(email.resend, "api_key", None),
            patch.object(email.resend.Emails, "send") as send,
        ):
            assert await email.send_email("a@example.com", "Subject", "<p>hi</p>") is True

        send.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_through_resend(self):
        with (
            patch.object(email.resend, "api_key", "re_test"),
            patch.object(email.resend.Emails, "send", return_value={"id": "msg_1"}) as send,
        ):
            assert await email.send_email("a@example.com", "Subject", "<p>hi</p>") is True

        params = send.call_args.args[0]
        assert params["to"] == ["a@example.com"]
        assert params["subject"] == "Subject"

    @pytest.mark.asyncio
    async def test_provider_error_returns_false(self):
        with (
            patch.object(email.resend, "api_key", "re_test"),
            patch.object(email.resend.Emails, "send", side_effect=RuntimeError("quota")),
        ):
            assert await email.send_email("a@example.com", "Subject", "<p>hi</p>") is False


class TestTemplates:
    """Tests for the transactional templates."""

    @pytest.mark.asyncio
    async def test_otp_email_contains_code_and_escaped_name(self):
        with patch.object(email, "send_email", new_callable=AsyncMock, return_value=True) as send:
            await email.send_otp_email(
                to_email="a@example.com",
                username="<b>student</b>",
                code="123456",
                expires_in_minutes=10,
            )

        html = send.call_args.kwargs["html_content"]
        assert "123456" in html
        assert "10 minutes" in html
        assert "&lt;b&gt;student&lt;/b&gt;" in html
        assert "<b>student</b>" not in html

    @pytest.mark.asyncio
    async def test_password_changed_email(self):
        with patch.object(email, "send_email", new_callable=AsyncMock, return_value=True) as send:
            await email.send_password_changed_email(to_email="a@example.com", username="student1")

        kwargs = send.call_args.kwargs
        assert kwargs["to_email"] == "a@example.com"
        assert "password" in kwargs["subject"].lower()

    @pytest.mark.asyncio
    async def test_templates_embed_plain_css(self):
        with patch.object(email, "send_email", new_callable=AsyncMock, return_value=True) as send:
            await email.send_otp_email(
                to_email="a@example.com", username="student1", code="123456", expires_in_minutes=10
            )
            await email.send_password_changed_email(to_email="a@example.com", username="student1")

        for call in send.call_args_list:
            html = call.kwargs["html_content"]
            assert "body { font-family" in html
            assert "{{" not in html
            assert "}}" not in html
