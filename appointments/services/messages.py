"""Rendering of reminder texts for the chat channel."""

from datetime import date, datetime
from typing import Union

from django.conf import settings
from django.utils import dateformat, translation

from common.choices import ReminderTier

from .windows import EligibleReminder

LONG_DATE_FORMAT = r"l, j \d\e F \d\e Y"

CONFIRM_OR_RESCHEDULE = (
    "⚠️ *¿Deseas confirmar tu asistencia?*\n"
    "\n"
    "Responde con:\n"
    "• 1️⃣ *CONFIRMAR* - Para confirmar tu asistencia\n"
    "• 2️⃣ *REAGENDAR* - Si necesitas cambiar la fecha/hora"
)

CONFIRM_NOW = (
    "⚠️ *¡IMPORTANTE! Tu cita aún no está confirmada*\n"
    "\n"
    "Responde con:\n"
    "• 1️⃣ *CONFIRMAR* - Para confirmar tu asistencia ahora"
)

ALREADY_CONFIRMED = "✅ *Tu cita está confirmada*"

HEADERS = {
    ReminderTier.DAY_BEFORE: "🔔 *Recordatorio de Cita*",
    ReminderTier.SAME_DAY: "🔔 *Recordatorio de Cita*",
    ReminderTier.IMMINENT: "⏰ *¡Tu cita es en 15 minutos!*",
}

INTROS = {
    ReminderTier.DAY_BEFORE: "Te recordamos que tienes una cita programada para *mañana*:",
    ReminderTier.SAME_DAY: "Te recordamos que tienes una cita programada para *hoy*:",
    ReminderTier.IMMINENT: "Tu cita es en *15 minutos*:",
}


def format_time_12h(value):
    """
    Convert ``HH:MM`` to a 12-hour clock with AM/PM.

    ``"00:05"`` -> ``"12:05 AM"``, ``"13:30"`` -> ``"1:30 PM"``. Anything that does
    not look like a time is returned unchanged.
    """
    if not value or not isinstance(value, str):
        return value

    parts = value.strip().split(":")
    if len(parts) < 2:
        return value

    try:
        hour = int(parts[0])
    except ValueError:
        return value

    minutes = parts[1]
    if not 0 <= hour <= 23 or not (minutes.isdigit() and len(minutes) == 2):
        return value

    if hour == 0:
        return f"12:{minutes} AM"
    if hour < 12:
        return f"{hour}:{minutes} AM"
    if hour == 12:
        return f"12:{minutes} PM"
    return f"{hour - 12}:{minutes} PM"


def format_long_date(value: Union[date, datetime]) -> str:
    """Long localized date, e.g. ``sábado, 1 de junio de 2024``."""
    language = getattr(settings, "REMINDER_LANGUAGE", "es")
    with translation.override(language):
        return dateformat.format(value, LONG_DATE_FORMAT)


def confirmation_section(reminder: EligibleReminder) -> str:
    if reminder.appointment.is_confirmed:
        return ALREADY_CONFIRMED
    if reminder.tier == ReminderTier.IMMINENT:
        return CONFIRM_NOW
    return CONFIRM_OR_RESCHEDULE


def address_line(tier, address: str) -> str:
    if tier == ReminderTier.IMMINENT:
        return f"📍 *Dirección:* {address}"
    return f"📍 {address}"


def build_chat_message(reminder: EligibleReminder) -> str:
    appointment = reminder.appointment
    address = getattr(settings, "BUSINESS_ADDRESS", "")

    lines = [
        HEADERS[reminder.tier],
        "",
        f"Hola *{appointment.client_name}*,",
        "",
        INTROS[reminder.tier],
        "",
        f"📅 *Fecha:* {format_long_date(reminder.scheduled_for)}",
        f"⏰ *Hora:* {format_time_12h(appointment.appointment_time)}",
        f"👨‍⚕️ *Con:* {appointment.professional_name}",
        f"🩺 *Servicio:* {appointment.service_name}",
        f"🎟️ *Código:* {appointment.reservation_code}",
        "",
        confirmation_section(reminder),
        "",
        address_line(reminder.tier, address),
        "",
        "¡Te esperamos! 🌟",
    ]
    return "\n".join(lines)
