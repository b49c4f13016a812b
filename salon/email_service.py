"""
Email Service using Resend
Provides appointment emails using MJML templates for responsive design
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    appointment_booked_template,
    appointment_reminder_template,
    appointment_status_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(Exception):
    pass


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    if result.errors:
        logger.warning(f"MJML compilation warnings: {result.errors}")
    return result.html


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailNotConfiguredError("Email service not configured")

    recipients = [to] if isinstance(to, str) else to
    html_content = compile_mjml_to_html(mjml_content)

    logger.info(f"📧 Sending email via Resend to: {recipients}")
    response = resend.Emails.send(
        {
            "from": from_address or EMAIL_FROM_ADDRESS,
            "to": recipients,
            "subject": subject,
            "html": html_content,
        }
    )
    logger.info(f"✅ Email sent successfully via Resend: {response}")
    return response


async def send_appointment_booked_email(
    to: str,
    client_name: str,
    employee_name: str,
    scheduled_date: str,
    scheduled_time: str,
    services: list[str],
) -> dict:
    """Send booking receipt to the client"""
    mjml_content = appointment_booked_template(
        client_name=client_name,
        employee_name=employee_name,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        services=services,
    )
    return await send_email(
        to=to, subject=f"Reservación recibida - {scheduled_date}", mjml_content=mjml_content
    )


async def send_appointment_status_email(
    to: str,
    client_name: str,
    status: str,
    employee_name: str,
    scheduled_date: str,
    scheduled_time: str,
    services: list[str],
    reason: Optional[str] = None,
) -> dict:
    mjml_content = appointment_status_template(
        client_name=client_name,
        status=status,
        employee_name=employee_name,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        services=services,
        reason=reason,
    )
    return await send_email(
        to=to, subject=f"Tu cita del {scheduled_date}: {status}", mjml_content=mjml_content
    )


async def send_appointment_reminder_email(
    to: str,
    client_name: str,
    employee_name: str,
    scheduled_date: str,
    scheduled_time: str,
    services: list[str],
) -> dict:
    mjml_content = appointment_reminder_template(
        client_name=client_name,
        employee_name=employee_name,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        services=services,
    )
    return await send_email(
        to=to, subject=f"Recordatorio: tu cita del {scheduled_date}", mjml_content=mjml_content
    )
