import os
from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "RecordaCitas.settings")

app = Celery("RecordaCitas")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Poll cadence per tier, in seconds. The 15min window is 10 minutes wide.
DEFAULT_POLL_INTERVALS = {"24h": 1800, "12h": 1800, "15min": 300}


def build_beat_schedule(environ=None):
    environ = os.environ if environ is None else environ
    intervals = {
        tier: int(environ.get(f"REMINDER_INTERVAL_{tier.upper()}", default))
        for tier, default in DEFAULT_POLL_INTERVALS.items()
    }
    return {
        "send-24h-reminders": {
            "task": "appointments.tasks.send_24h_reminders_task",
            "schedule": intervals["24h"],
        },
        "send-12h-reminders": {
            "task": "appointments.tasks.send_12h_reminders_task",
            "schedule": intervals["12h"],
        },
        "send-15min-reminders": {
            "task": "appointments.tasks.send_15min_reminders_task",
            "schedule": intervals["15min"],
        },
    }


app.conf.beat_schedule = build_beat_schedule()
