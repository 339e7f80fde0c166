# Overview: Outbound customer notifications (store credit emails over SMTP).

from __future__ import annotations

import smtplib
from datetime import datetime
from email.message import EmailMessage

from flask import current_app

from ..validation import ExternalServiceError

STORE_CREDIT_SUBJECT = "Your Store Credit Discount Code"


def _smtp_configured() -> bool:
    config = current_app.config
    return bool(config.get("SMTP_USER") and config.get("SMTP_PASS"))


def build_store_credit_message(email: str, code: str, amount: str, expires_at: datetime | None) -> EmailMessage:
    expires_text = expires_at.strftime("%Y-%m-%d") if expires_at else "never"

    msg = EmailMessage()
    msg["Subject"] = STORE_CREDIT_SUBJECT
    msg["From"] = current_app.config.get("SMTP_FROM", "noreply@inventory.com")
    msg["To"] = email
    msg.set_content(
        "Thank you for your recent return. We've issued you a store credit.\n\n"
        f"Your discount code: {code}\n"
        f"Credit amount: ${amount}\n"
        f"Expires: {expires_text}\n\n"
        "Use this code at checkout to apply your store credit to your next purchase. "
        "Any unused balance stays on the code until it expires.\n"
    )
    msg.add_alternative(
        f"""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">Store Credit Available!</h2>
  <p>Thank you for your recent return. We've issued you a store credit.</p>
  <div style="background-color: #f5f5f5; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <h3 style="margin: 0; color: #555;">Your Discount Code</h3>
    <p style="font-size: 24px; font-weight: bold; color: #4CAF50; margin: 10px 0;">{code}</p>
    <p style="margin: 5px 0;"><strong>Credit Amount:</strong> ${amount}</p>
    <p style="margin: 5px 0;"><strong>Expires:</strong> {expires_text}</p>
  </div>
  <p>Use this code at checkout to apply your store credit to your next purchase.</p>
</div>
""",
        subtype="html",
    )
    return msg


def send_store_credit_email(email: str, code: str, amount: str, expires_at: datetime | None) -> bool:
    """
    Email a store credit code to the customer.

    Returns True when the message was handed to the SMTP server, False when
    SMTP is not configured (the send is skipped and logged).

    Raises:
        ExternalServiceError: the SMTP conversation failed
    """
    logger = current_app.logger

    if not _smtp_configured():
        logger.info("Email would be sent to %s with code %s (SMTP not configured)", email, code)
        return False

    msg = build_store_credit_message(email, code, amount, expires_at)
    config = current_app.config
    try:
        with smtplib.SMTP(config["SMTP_HOST"], config["SMTP_PORT"], timeout=10) as smtp:
            smtp.starttls()
            smtp.login(config["SMTP_USER"], config["SMTP_PASS"])
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise ExternalServiceError(f"Failed to send store credit email to {email}") from exc

    logger.info("Discount code email sent to %s", email)
    return True
