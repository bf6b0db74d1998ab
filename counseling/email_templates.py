"""
MJML Email Templates
Booking lifecycle emails, compiled to HTML by email_service
"""

from typing import Optional

from .config import FRONTEND_URL

# Calm indigo/slate color scheme
THEME = {
    "primary": "#6366f1",
    "primary_light": "#e0e7ff",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "warning": "#f59e0b",
    "info_bg": "#eff6ff",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="24px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              This email was sent automatically by the counseling booking service.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _booking_details(notice: dict) -> str:
    return f"""
    <mj-table padding="0 0 24px 0">
      <tr><td style="padding: 6px 0; color: {THEME['text_muted']};">Client</td><td>{notice['client_name']}</td></tr>
      <tr><td style="padding: 6px 0; color: {THEME['text_muted']};">Counselor</td><td>{notice['counselor_name']}</td></tr>
      <tr><td style="padding: 6px 0; color: {THEME['text_muted']};">Date &amp; time</td><td><strong>{notice['scheduled_at_display']}</strong></td></tr>
      <tr><td style="padding: 6px 0; color: {THEME['text_muted']};">Service</td><td>{notice['service_name']}</td></tr>
      <tr><td style="padding: 6px 0; color: {THEME['text_muted']};">Amount</td><td>¥{notice['amount']:,}</td></tr>
    </mj-table>
    """


def chat_url(booking_id: int) -> str:
    return f"{FRONTEND_URL}/chat/{booking_id}"


def booking_confirmed_template(recipient_name: str, notice: dict) -> str:
    content = f"""
    <mj-text>Hi {recipient_name},</mj-text>
    <mj-text>
      Payment has been confirmed and the session below is booked. The chat room
      for this booking is now open.
    </mj-text>
    {_booking_details(notice)}
    """
    return get_base_template(
        title="Your booking is confirmed",
        preview_text=f"Session on {notice['scheduled_at_display']}",
        content_sections=content,
        cta_url=chat_url(notice["booking_id"]),
        cta_label="Open chat room",
    )


def booking_cancelled_template(recipient_name: str, notice: dict) -> str:
    content = f"""
    <mj-text>Hi {recipient_name},</mj-text>
    <mj-text>
      The following booking has been cancelled. Previous chat messages remain
      available to read, but the session is closed.
    </mj-text>
    {_booking_details(notice)}
    """
    return get_base_template(
        title="Booking cancelled",
        preview_text=f"Booking on {notice['scheduled_at_display']} was cancelled",
        content_sections=content,
    )


def bank_transfer_instructions_template(notice: dict, bank: dict, deadline_display: str) -> str:
    content = f"""
    <mj-text>Hi {notice['client_name']},</mj-text>
    <mj-text>
      Thank you for your booking. Please transfer the amount below by
      <strong>{deadline_display}</strong>. Your booking is confirmed once the
      transfer has been checked.
    </mj-text>
    {_booking_details(notice)}
    <mj-text font-weight="600" color="{THEME['text_primary']}">Transfer to</mj-text>
    <mj-table padding="0 0 24px 0">
      <tr><td style="padding: 6px 0; color: {THEME['text_muted']};">Bank</td><td>{bank['bank_name']} ({bank['branch_name']})</td></tr>
      <tr><td style="padding: 6px 0; color: {THEME['text_muted']};">Account</td><td>{bank['account_type']} {bank['account_number']}</td></tr>
      <tr><td style="padding: 6px 0; color: {THEME['text_muted']};">Holder</td><td>{bank['account_holder']}</td></tr>
    </mj-table>
    """
    return get_base_template(
        title="Bank transfer details",
        preview_text=f"Please transfer by {deadline_display}",
        content_sections=content,
    )


def session_reminder_template(recipient_name: str, notice: dict, reminder_type: str) -> str:
    if reminder_type == "1h":
        lead = "Your session starts in one hour. The chat room is ready when you are."
    else:
        lead = "Your counseling session is tomorrow. Please set aside some quiet time."

    content = f"""
    <mj-text>Hi {recipient_name},</mj-text>
    <mj-text background-color="{THEME['info_bg']}" padding="16px">{lead}</mj-text>
    {_booking_details(notice)}
    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Changes or cancellations should be made at least two hours before the start time.
    </mj-text>
    """
    return get_base_template(
        title="Session reminder",
        preview_text=lead,
        content_sections=content,
        cta_url=chat_url(notice["booking_id"]),
        cta_label="Enter chat room",
    )
