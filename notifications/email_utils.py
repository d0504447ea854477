"""Email delivery of appointment reminders."""

import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.mail import EmailMultiAlternatives
from django.core.validators import validate_email
from django.template.loader import render_to_string

from appointments.records import AppointmentParseError, AppointmentRecord
from appointments.services.messages import format_long_date, format_time_12h
from appointments.services.windows import get_business_timezone
from common.choices import ReminderTier

logger = logging.getLogger(__name__)


@dataclass
class EmailSendResult:
    success: bool
    reason: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ReminderEmailTemplate:
    subject: str
    heading: str
    text_template: str


EMAIL_TEMPLATES = {
    ReminderTier.DAY_BEFORE: ReminderEmailTemplate(
        subject="Recordatorio: tu cita es mañana ({code})",
        heading="Tu cita es mañana",
        text_template="notifications/email/reminder_24h.txt",
    ),
    ReminderTier.SAME_DAY: ReminderEmailTemplate(
        subject="Recordatorio: tu cita es hoy ({code})",
        heading="Tu cita es hoy",
        text_template="notifications/email/reminder_12h.txt",
    ),
    ReminderTier.IMMINENT: ReminderEmailTemplate(
        subject="Tu cita es en 15 minutos ({code})",
        heading="Tu cita es en 15 minutos",
        text_template="notifications/email/reminder_15min.txt",
    ),
}
HTML_TEMPLATE = "notifications/email/reminder.html"


def _build_context(tier: ReminderTier, appointment: AppointmentRecord, heading: str) -> dict:
    try:
        date_display = format_long_date(appointment.scheduled_for(get_business_timezone()))
    except AppointmentParseError:
        date_display = appointment.appointment_date

    return {
        "tier": tier.value,
        "heading": heading,
        "appointment": appointment,
        "date_display": date_display,
        "time_display": format_time_12h(appointment.appointment_time),
        "is_confirmed": appointment.is_confirmed,
        "business_name": getattr(settings, "BUSINESS_NAME", ""),
        "business_address": getattr(settings, "BUSINESS_ADDRESS", ""),
    }


def send_reminder_email(tier, appointment: AppointmentRecord) -> EmailSendResult:
    """
    Send the ``tier`` reminder email for ``appointment``.

    Never raises: a missing/invalid address is reported as ``reason``, a backend
    failure as ``error``.
    """
    tier = ReminderTier(tier)
    recipient = appointment.client_email
    if not recipient:
        return EmailSendResult(success=False, reason="missing email")
    try:
        validate_email(recipient)
    except ValidationError:
        return EmailSendResult(success=False, reason=f"invalid email {recipient!r}")

    template = EMAIL_TEMPLATES[tier]
    context = _build_context(tier, appointment, template.heading)

    try:
        subject = template.subject.format(code=appointment.reservation_code)
        text_body = render_to_string(template.text_template, context)
        html_body = render_to_string(HTML_TEMPLATE, context)

        message = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=None,
            to=[recipient],
        )
        message.attach_alternative(html_body, "text/html")
        message.send(fail_silently=False)
    except Exception as exc:
        logger.warning("Reminder email %s to %s failed: %s", tier.value, recipient, exc)
        return EmailSendResult(success=False, error=str(exc))

    return EmailSendResult(success=True)
