import os
from collections import defaultdict
from typing import Dict, Iterable, List

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = "Report presence of critical environment variables for external integrations."

    def handle(self, *args, **options):
        requirements = self._build_requirements()
        grouped: Dict[str, List[str]] = defaultdict(list)
        missing_required = False

        for requirement in requirements:
            group = requirement["group"]
            key = requirement["key"]
            note = requirement["note"]
            required_flag = self._is_required(requirement)
            value = os.environ.get(key)

            if required_flag and not value:
                missing_required = True
                grouped[group].append(self.style.ERROR(f"✗ {key}: missing ({note})"))
            elif value:
                grouped[group].append(self.style.SUCCESS(f"✓ {key}: set"))
            else:
                grouped[group].append(self.style.WARNING(f"• {key}: optional ({note})"))

        credentials_file = getattr(settings, "GOOGLE_SERVICE_ACCOUNT_FILE", "")
        if credentials_file and not os.path.exists(credentials_file):
            missing_required = True
            grouped["Google Sheets"].append(
                self.style.ERROR(f"✗ credentials file not found at {credentials_file}")
            )

        for group, lines in grouped.items():
            self.stdout.write("")
            self.stdout.write(self.style.MIGRATE_HEADING(group))
            for line in lines:
                self.stdout.write(f"  {line}")

        if missing_required:
            raise CommandError("Missing required environment variables. See messages above.")

        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS("All required environment variables are set."))

    def _build_requirements(self) -> Iterable[Dict[str, object]]:
        return [
            {"group": "Core", "key": "SECRET_KEY", "note": "Django crypto key", "required": True},
            {
                "group": "Core",
                "key": "BUSINESS_TIMEZONE",
                "note": "IANA timezone of the appointment times (default America/Bogota)",
                "required": False,
            },
            {
                "group": "Core",
                "key": "BUSINESS_ADDRESS",
                "note": "Address printed at the bottom of every reminder",
                "required": True,
            },
            {
                "group": "Core",
                "key": "BUSINESS_NAME",
                "note": "Business name used to sign reminder emails",
                "required": False,
            },
            {
                "group": "Database",
                "key": "DB_NAME",
                "note": "PostgreSQL database name; SQLite is used when unset",
                "required": False,
            },
            {
                "group": "Google Sheets",
                "key": "APPOINTMENTS_SHEET_ID",
                "note": "Spreadsheet id of the appointments book",
                "required": True,
            },
            {
                "group": "Google Sheets",
                "key": "APPOINTMENTS_SHEET_RANGE",
                "note": "Sheet/range holding the appointments (default CLIENTES)",
                "required": False,
            },
            {
                "group": "Google Sheets",
                "key": "GOOGLE_SERVICE_ACCOUNT_FILE",
                "note": "Path to the service account JSON key",
                "required": False,
            },
            {
                "group": "Chat",
                "key": "WHATSAPP_API_TOKEN",
                "note": "Access token for the WhatsApp Cloud API",
                "required": self._whatsapp_required,
            },
            {
                "group": "Chat",
                "key": "WHATSAPP_PHONE_NUMBER_ID",
                "note": "Sender phone number id in the WhatsApp Cloud API",
                "required": self._whatsapp_required,
            },
            {
                "group": "Chat",
                "key": "CHAT_DEFAULT_REGION",
                "note": "Region used to read phone numbers without a country code (default CO)",
                "required": False,
            },
            {
                "group": "Email",
                "key": "EMAIL_HOST",
                "note": "SMTP host for outgoing mail",
                "required": self._email_required,
            },
            {
                "group": "Email",
                "key": "EMAIL_PORT",
                "note": "SMTP port (465/587)",
                "required": self._email_required,
            },
            {
                "group": "Email",
                "key": "EMAIL_HOST_USER",
                "note": "SMTP username (from address)",
                "required": self._email_required,
            },
            {
                "group": "Email",
                "key": "EMAIL_HOST_PASSWORD",
                "note": "SMTP password or app password",
                "required": self._email_required,
            },
            {
                "group": "Email",
                "key": "DEFAULT_FROM_EMAIL",
                "note": "Default sender email",
                "required": False,
            },
            {
                "group": "Scheduling",
                "key": "REDIS_URL",
                "note": "Redis URL for the Celery broker",
                "required": False,
            },
        ]

    def _is_required(self, requirement: Dict[str, object]) -> bool:
        flag = requirement.get("required", False)
        if callable(flag):
            return bool(flag())
        return bool(flag)

    def _whatsapp_required(self) -> bool:
        return getattr(settings, "CHAT_PROVIDER", "console") != "console"

    def _email_required(self) -> bool:
        return settings.EMAIL_BACKEND == 'django.core.mail.backends.smtp.EmailBackend'
