"""Ticket emails sent through Resend."""

import logging

import resend

from felicity.core.config import EMAIL_FROM, RESEND_API_KEY
from felicity.services.tickets import render_qr_data_url

logger = logging.getLogger(__name__)


def render_ticket_email(payload: dict) -> str:
    qr = render_qr_data_url(payload["qrPayload"])
    participant = payload["participant"]
    event = payload["event"]
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; color: #333;">
        <h2>You're registered for {event["name"]}</h2>
        <p>Hi {participant["name"]},</p>
        <p>Your ticket is confirmed. Show this code at the entrance.</p>
        <p style="font-size: 24px; font-weight: bold; letter-spacing: 2px;">{payload["ticketId"]}</p>
        <img src="{qr}" alt="Ticket QR code" width="240" height="240" />
        <p><strong>Date:</strong> {event["date"]}</p>
    </body>
    </html>
    """


def send_ticket_email(payload: dict) -> dict | None:
    """Send the ticket email. Returns the Resend response, or None when sending is disabled."""
    to = payload["participant"].get("email")
    if not to:
        logger.warning("No email address for ticket %s", payload["ticketId"])
        return None
    if not RESEND_API_KEY:
        logger.info("RESEND_API_KEY not set; skipping ticket email for %s", payload["ticketId"])
        return None

    resend.api_key = RESEND_API_KEY
    response = resend.Emails.send(
        {
            "from": EMAIL_FROM,
            "to": [to],
            "subject": f"Your ticket for {payload['event']['name']}",
            "html": render_ticket_email(payload),
        }
    )
    logger.info("Ticket email for %s sent to %s", payload["ticketId"], to)
    return response
