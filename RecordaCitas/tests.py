import os
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, override_settings

from RecordaCitas.celery import build_beat_schedule

REQUIRED_ENV = {
    "SECRET_KEY": "secret",
    "BUSINESS_ADDRESS": "Calle 10 # 20-30",
    "APPOINTMENTS_SHEET_ID": "sheet-123",
}


@override_settings(
    CHAT_PROVIDER="console",
    EMAIL_BACKEND="django.core.mail.backends.console.EmailBackend",
    GOOGLE_SERVICE_ACCOUNT_FILE=__file__,
)
class CheckEnvCommandTests(SimpleTestCase):
    def test_passes_when_required_variables_are_set(self):
        out = StringIO()
        with patch.dict(os.environ, REQUIRED_ENV, clear=True):
            call_command("check_env", stdout=out)

        self.assertIn("All required environment variables are set.", out.getvalue())

    def test_fails_when_sheet_id_is_missing(self):
        env = {key: value for key, value in REQUIRED_ENV.items() if key != "APPOINTMENTS_SHEET_ID"}
        out = StringIO()
        with patch.dict(os.environ, env, clear=True), self.assertRaises(CommandError):
            call_command("check_env", stdout=out)

        self.assertIn("APPOINTMENTS_SHEET_ID: missing", out.getvalue())

    @override_settings(CHAT_PROVIDER="whatsapp")
    def test_whatsapp_credentials_required_for_whatsapp_provider(self):
        out = StringIO()
        with patch.dict(os.environ, REQUIRED_ENV, clear=True), self.assertRaises(CommandError):
            call_command("check_env", stdout=out)

        self.assertIn("WHATSAPP_API_TOKEN: missing", out.getvalue())

    @override_settings(GOOGLE_SERVICE_ACCOUNT_FILE="/nonexistent/credentials.json")
    def test_missing_credentials_file_fails(self):
        out = StringIO()
        with patch.dict(os.environ, REQUIRED_ENV, clear=True), self.assertRaises(CommandError):
            call_command("check_env", stdout=out)

        self.assertIn("credentials file not found", out.getvalue())


class BeatScheduleTests(SimpleTestCase):
    def test_default_intervals(self):
        schedule = build_beat_schedule({})

        self.assertEqual(schedule["send-24h-reminders"]["schedule"], 1800)
        self.assertEqual(schedule["send-12h-reminders"]["schedule"], 1800)
        self.assertEqual(schedule["send-15min-reminders"]["schedule"], 300)
        self.assertEqual(
            schedule["send-15min-reminders"]["task"], "appointments.tasks.send_15min_reminders_task"
        )

    def test_intervals_from_environment(self):
        schedule = build_beat_schedule({"REMINDER_INTERVAL_15MIN": "120", "REMINDER_INTERVAL_24H": "3600"})

        self.assertEqual(schedule["send-15min-reminders"]["schedule"], 120)
        self.assertEqual(schedule["send-24h-reminders"]["schedule"], 3600)
        self.assertEqual(schedule["send-12h-reminders"]["schedule"], 1800)
