"""
Email Service using Resend

Handles sending transactional emails for account verification and password
reset.
"""

import asyncio
import logging
from html import escape

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)

# Initialize Resend with API key
resend.api_key = settings.resend_api_key

_BASE_STYLE = """
            body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
            .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
            .header { color: #1a365d; margin-bottom: 24px; }
            .code { display: inline-block; font-size: 32px; letter-spacing: 8px; font-weight: bold; background-color: #f3f4f6; padding: 12px 24px; border-radius: 8px; margin: 16px 0; }
            .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent successfully
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_otp_email(
    to_email: str,
    username: str,
    code: str,
    expires_in_minutes: int,
) -> bool:
    """Send a one-time verification code."""
    safe_username = escape(username)

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Your Verification Code</h1>

            <p>Hello {safe_username},</p>

            <p>Use the code below to continue:</p>

            <div class="code">{code}</div>

            <p><strong>This code expires in {expires_in_minutes} minutes.</strong></p>

            <div class="footer">
                <p>If you didn't request this code, you can safely ignore this email.</p>
                <p>EduPortal</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject="Your EduPortal verification code",
        html_content=html_content,
    )


async def send_password_changed_email(to_email: str, username: str) -> bool:
    """Notify the account owner that their password was changed."""
    safe_username = escape(username)
    support_url = f"{settings.frontend_url}/support"

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Password Changed</h1>

            <p>Hello {safe_username},</p>

            <p>The password for your EduPortal account was just changed.</p>

            <p>If this wasn't you, please <a href="{support_url}">contact support</a> immediately.</p>

            <div class="footer">
                <p>EduPortal</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject="Your EduPortal password was changed",
        html_content=html_content,
    )
