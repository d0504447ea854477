"""Celery tasks for the appointments app."""

from celery import shared_task

from appointments.services.reminders import run_reminder_poll
from common.choices import ReminderTier


@shared_task(name="appointments.tasks.send_24h_reminders_task")
def send_24h_reminders_task():
    """Reminder for appointments starting in about a day, while still unconfirmed."""
    return run_reminder_poll(ReminderTier.DAY_BEFORE)


@shared_task(name="appointments.tasks.send_12h_reminders_task")
def send_12h_reminders_task():
    return run_reminder_poll(ReminderTier.SAME_DAY)


@shared_task(name="appointments.tasks.send_15min_reminders_task")
def send_15min_reminders_task():
    return run_reminder_poll(ReminderTier.IMMINENT)


__all__ = [
    "send_24h_reminders_task",
    "send_12h_reminders_task",
    "send_15min_reminders_task",
]
