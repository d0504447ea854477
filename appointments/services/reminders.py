"""Service helpers for sending appointment reminders."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from django.db import transaction

from appointments.integrations import RepositoryError, SheetsAppointmentRepository
from appointments.models import SentReminder
from common.choices import ReminderTier
from notifications.chat_utils import really_send_chat_message
from notifications.email_utils import send_reminder_email

from .messages import build_chat_message
from .windows import EligibleReminder, get_window, select_eligible

logger = logging.getLogger(__name__)


@dataclass
class ReminderDispatchResult:
    """Represents the channels that were used to notify a client."""

    email_attempted: bool = False
    email_sent: bool = False
    email_error: Optional[str] = None
    chat_attempted: bool = False
    chat_sent: bool = False
    chat_error: Optional[str] = None

    @property
    def any_sent(self) -> bool:
        return self.email_sent or self.chat_sent


def _send_email(reminder: EligibleReminder, result: ReminderDispatchResult) -> None:
    appointment = reminder.appointment
    result.email_attempted = True
    try:
        outcome = send_reminder_email(reminder.tier, appointment)
    except Exception as exc:
        result.email_error = str(exc) or exc.__class__.__name__
        logger.error(
            "Error sending %s reminder email for %s: %s",
            reminder.tier.value,
            appointment.reservation_code,
            exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return

    if outcome.success:
        result.email_sent = True
        logger.info(
            "Sent %s reminder email for %s to %s",
            reminder.tier.value,
            appointment.reservation_code,
            appointment.client_email,
        )
    else:
        result.email_error = outcome.reason or outcome.error or "unknown error"
        logger.warning(
            "Could not send %s reminder email for %s: %s",
            reminder.tier.value,
            appointment.reservation_code,
            result.email_error,
        )


def _send_chat(reminder: EligibleReminder, result: ReminderDispatchResult) -> None:
    appointment = reminder.appointment
    result.chat_attempted = True
    try:
        really_send_chat_message(appointment.client_phone, build_chat_message(reminder))
    except Exception as exc:
        result.chat_error = str(exc) or exc.__class__.__name__
        logger.error(
            "Error sending %s chat reminder for %s: %s",
            reminder.tier.value,
            appointment.reservation_code,
            exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return

    result.chat_sent = True
    logger.info(
        "Sent %s chat reminder for %s to %s",
        reminder.tier.value,
        appointment.reservation_code,
        appointment.client_phone,
    )


def dispatch_reminder(
    reminder: EligibleReminder,
    *,
    email: bool = True,
    chat: bool = True,
) -> ReminderDispatchResult:
    """
    Deliver ``reminder`` over email and chat.

    Each channel is tried on its own; a failure (raised or reported) is recorded
    in the result and never stops the other channel or escapes this call.
    """

    result = ReminderDispatchResult()
    if email:
        _send_email(reminder, result)
    if chat:
        _send_chat(reminder, result)
    return result


def _delivered_channels(reminder: EligibleReminder) -> Optional[SentReminder]:
    return SentReminder.objects.filter(
        reservation_code=reminder.appointment.reservation_code,
        tier=reminder.tier,
        scheduled_for=reminder.scheduled_for,
    ).first()


def _record_delivery(reminder: EligibleReminder, result: ReminderDispatchResult) -> None:
    if not result.any_sent:
        return

    with transaction.atomic():
        entry, _ = SentReminder.objects.select_for_update().get_or_create(
            reservation_code=reminder.appointment.reservation_code,
            tier=reminder.tier,
            scheduled_for=reminder.scheduled_for,
        )
        entry.email_sent = entry.email_sent or result.email_sent
        entry.chat_sent = entry.chat_sent or result.chat_sent
        entry.save(update_fields=["email_sent", "chat_sent", "updated_at"])


def _new_summary(tier: ReminderTier) -> Dict[str, Any]:
    return {
        "tier": tier.value,
        "window": get_window(tier).describe(),
        "found": 0,
        "processed": 0,
        "skipped_already_sent": 0,
        "notifications": {
            "email": {"sent": 0, "failed": 0},
            "chat": {"sent": 0, "failed": 0},
        },
        "errors": [],
        "results": [],
    }


def run_reminder_poll(
    tier,
    *,
    now: Optional[datetime] = None,
    repository: Optional[SheetsAppointmentRepository] = None,
    dry_run: bool = False,
) -> Dict[str, Any]:
    """Find the appointments due a ``tier`` reminder and notify each of them once."""

    tier = ReminderTier(tier)
    summary = _new_summary(tier)
    repository = repository or SheetsAppointmentRepository()

    try:
        records = repository.fetch_all()
    except RepositoryError as exc:
        logger.error("Error fetching appointments for %s reminders: %s", tier.value, exc)
        summary["errors"].append({"reservation_code": None, "channel": "repository", "error": str(exc)})
        return summary

    eligible = select_eligible(tier, records, now)
    summary["found"] = len(eligible)

    for reminder in eligible:
        code = reminder.appointment.reservation_code

        if dry_run:
            summary["results"].append(
                {
                    "reservation_code": code,
                    "client_name": reminder.appointment.client_name,
                    "scheduled_for": reminder.scheduled_for.isoformat(),
                    "lead_time": reminder.rounded_lead_time,
                }
            )
            continue

        entry = _delivered_channels(reminder)
        if entry is not None and entry.is_complete:
            logger.info("Skipping %s: %s reminder already sent.", code, tier.value)
            summary["skipped_already_sent"] += 1
            continue

        result = dispatch_reminder(
            reminder,
            email=entry is None or not entry.email_sent,
            chat=entry is None or not entry.chat_sent,
        )
        _record_delivery(reminder, result)

        for channel in ("email", "chat"):
            if not getattr(result, f"{channel}_attempted"):
                continue
            if getattr(result, f"{channel}_sent"):
                summary["notifications"][channel]["sent"] += 1
            else:
                summary["notifications"][channel]["failed"] += 1
                summary["errors"].append(
                    {
                        "reservation_code": code,
                        "channel": channel,
                        "error": getattr(result, f"{channel}_error"),
                    }
                )

        summary["results"].append(
            {
                "reservation_code": code,
                "email_sent": result.email_sent or bool(entry and entry.email_sent),
                "chat_sent": result.chat_sent or bool(entry and entry.chat_sent),
            }
        )
        summary["processed"] += 1

    logger.info(
        "%s reminder poll finished: found=%s processed=%s skipped=%s email=%s chat=%s",
        tier.value,
        summary["found"],
        summary["processed"],
        summary["skipped_already_sent"],
        summary["notifications"]["email"],
        summary["notifications"]["chat"],
    )
    return summary


__all__ = [
    "ReminderDispatchResult",
    "dispatch_reminder",
    "run_reminder_poll",
]
