"""
Email Service using Resend
Provides email functionality using MJML templates for responsive design
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    bank_transfer_instructions_template,
    booking_cancelled_template,
    booking_confirmed_template,
    session_reminder_template,
)

logger = logging.getLogger(__name__)


class EmailNotConfigured(Exception):
    """Raised when an email is sent without a Resend API key"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a dict-like result with 'html' and 'errors'
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        html = getattr(result, "html", None)
        return html if html is not None else str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


class Mailer:
    """
    Sends lifecycle emails through Resend.

    One instance is created per process (API app or worker) and handed to
    whoever needs it; tests swap in a subclass that records instead of sending.
    """

    def __init__(self, api_key: Optional[str] = RESEND_API_KEY, from_address: str = EMAIL_FROM_ADDRESS):
        self.api_key = api_key
        self.from_address = from_address

    async def send_email(
        self,
        to: Union[str, list[str]],
        subject: str,
        mjml_content: str,
    ) -> dict:
        """
        Send an email using Resend

        Args:
            to: Recipient email(s)
            subject: Email subject line
            mjml_content: MJML template content (will be compiled to HTML)

        Returns:
            Send response dict
        """
        if not self.api_key:
            logger.error("❌ No email service configured - RESEND_API_KEY missing")
            raise EmailNotConfigured("Email service not configured")

        html_content = compile_mjml_to_html(mjml_content)
        recipients = [to] if isinstance(to, str) else to

        try:
            logger.info(f"📧 Sending email via Resend to: {recipients}")
            resend.api_key = self.api_key
            response = resend.Emails.send(
                {
                    "from": self.from_address,
                    "to": recipients,
                    "subject": subject,
                    "html": html_content,
                }
            )
            logger.info(f"✅ Email sent successfully via Resend: {response}")
            return response
        except Exception as e:
            logger.error(f"❌ Email send error to {recipients}: {e}")
            raise Exception(f"Failed to send email: {str(e)}") from e

    # ============================================
    # Pre-built emails for booking events
    # ============================================

    async def send_booking_confirmed(self, to: str, recipient_name: str, notice: dict) -> dict:
        return await self.send_email(
            to=to,
            subject="Your counseling session is confirmed",
            mjml_content=booking_confirmed_template(recipient_name, notice),
        )

    async def send_booking_cancelled(self, to: str, recipient_name: str, notice: dict) -> dict:
        return await self.send_email(
            to=to,
            subject="Your booking has been cancelled",
            mjml_content=booking_cancelled_template(recipient_name, notice),
        )

    async def send_bank_transfer_instructions(
        self, to: str, notice: dict, bank: dict, deadline_display: str
    ) -> dict:
        return await self.send_email(
            to=to,
            subject="Bank transfer details for your booking",
            mjml_content=bank_transfer_instructions_template(notice, bank, deadline_display),
        )

    async def send_session_reminder(
        self, to: str, recipient_name: str, notice: dict, reminder_type: str
    ) -> dict:
        subject = (
            "Your session starts in one hour"
            if reminder_type == "1h"
            else "Reminder: your counseling session is tomorrow"
        )
        return await self.send_email(
            to=to,
            subject=subject,
            mjml_content=session_reminder_template(recipient_name, notice, reminder_type),
        )
