from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_datetime

from appointments.services.reminders import run_reminder_poll
from common.choices import ReminderTier


class Command(BaseCommand):
    help = "Run one reminder poll for a tier (24h, 12h or 15min) and report the outcome."

    def add_arguments(self, parser):
        parser.add_argument("tier", choices=ReminderTier.values)
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the appointments due a reminder without sending anything.",
        )
        parser.add_argument(
            "--now",
            help="Evaluate the windows at this ISO datetime instead of the current time.",
        )

    def handle(self, *args, **options):
        now = None
        if options["now"]:
            now = parse_datetime(options["now"])
            if now is None:
                raise CommandError(f"Invalid --now value {options['now']!r}; expected ISO datetime.")

        summary = run_reminder_poll(options["tier"], now=now, dry_run=options["dry_run"])

        self.stdout.write(self.style.MIGRATE_HEADING(f"{summary['tier']} reminders, window {summary['window']}"))
        self.stdout.write(f"Found {summary['found']} appointments.")

        if options["dry_run"]:
            for item in summary["results"]:
                self.stdout.write(
                    f"  • {item['reservation_code']} {item['client_name']} at {item['scheduled_for']} "
                    f"(in {item['lead_time']})"
                )
        else:
            for item in summary["results"]:
                email = "✓" if item["email_sent"] else "✗"
                chat = "✓" if item["chat_sent"] else "✗"
                self.stdout.write(f"  • {item['reservation_code']}: email {email} chat {chat}")
            if summary["skipped_already_sent"]:
                self.stdout.write(f"Skipped {summary['skipped_already_sent']} already notified.")

        for error in summary["errors"]:
            self.stdout.write(
                self.style.ERROR(f"✗ {error['reservation_code'] or '-'} [{error['channel']}]: {error['error']}")
            )

        if not summary["errors"]:
            self.stdout.write(self.style.SUCCESS("Reminder poll finished."))
