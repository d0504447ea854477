from datetime import datetime, timedelta
from io import StringIO
from unittest.mock import Mock, patch
from zoneinfo import ZoneInfo

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase, override_settings
from googleapiclient.errors import HttpError

from appointments.integrations import RepositoryError, SheetsAppointmentRepository
from appointments.models import SentReminder
from appointments.records import AppointmentParseError, AppointmentRecord
from appointments.services.messages import (
    build_chat_message,
    format_long_date,
    format_time_12h,
)
from appointments.services.reminders import (
    ReminderDispatchResult,
    dispatch_reminder,
    run_reminder_poll,
)
from appointments.services.windows import EligibleReminder, select_eligible
from appointments.tasks import (
    send_12h_reminders_task,
    send_15min_reminders_task,
    send_24h_reminders_task,
)
from common.choices import AppointmentStatus, ReminderTier
from notifications.chat_utils import ChatDeliveryError
from notifications.email_utils import EmailSendResult

BOGOTA = ZoneInfo("America/Bogota")
NOW = datetime(2024, 6, 1, 9, 0, tzinfo=BOGOTA)


def make_record(at=None, **overrides):
    """Appointment record scheduled at ``at`` (aware datetime) unless date/time are overridden."""
    at = at or NOW + timedelta(hours=24)
    values = {
        "reservation_code": "RES-001",
        "client_name": "Ana Pérez",
        "client_phone": "3001234567",
        "client_email": "ana@example.com",
        "professional_name": "Dra. Gómez",
        "service_name": "Limpieza dental",
        "appointment_date": at.strftime("%Y-%m-%d"),
        "appointment_time": at.strftime("%H:%M:%S" if at.second else "%H:%M"),
        "status": AppointmentStatus.SCHEDULED,
        "raw_status": "AGENDADA",
        "row_number": 2,
    }
    values.update(overrides)
    return AppointmentRecord(**values)


def make_reminder(tier=ReminderTier.DAY_BEFORE, lead=timedelta(hours=24), **overrides):
    record = make_record(at=NOW + lead, **overrides)
    return EligibleReminder(
        appointment=record,
        tier=tier,
        scheduled_for=NOW + lead,
        lead_time=24.0,
    )


class FakeRepository:
    def __init__(self, records=None, error=None):
        self.records = records or []
        self.error = error
        self.calls = 0

    def fetch_all(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.records)


def sheet_service(values):
    service = Mock()
    service.spreadsheets.return_value.values.return_value.get.return_value.execute.return_value = {
        "values": values
    }
    return service


HEADER = [
    "FECHA_REGISTRO", "CODIGO_RESERVA", "NOMBRE", "TELEFONO", "EMAIL",
    "PROFESIONAL", "FECHA_CITA", "HORA_CITA", "SERVICIO", "ESTADO",
]


class AppointmentRecordTests(SimpleTestCase):
    def test_from_row_maps_positional_columns(self):
        row = [
            "2024-05-20 10:00", "RES-9", " Ana  Pérez ", "3001234567", "ana@example.com",
            "Dra. Gómez", "2024-06-02", "08:30", "Limpieza", "AGENDADA",
        ]

        record = AppointmentRecord.from_row(row, row_number=5)

        self.assertEqual(record.reservation_code, "RES-9")
        self.assertEqual(record.client_name, "Ana Pérez")
        self.assertEqual(record.professional_name, "Dra. Gómez")
        self.assertEqual(record.appointment_date, "2024-06-02")
        self.assertEqual(record.appointment_time, "08:30")
        self.assertEqual(record.service_name, "Limpieza")
        self.assertEqual(record.status, AppointmentStatus.SCHEDULED)
        self.assertEqual(record.row_number, 5)

    def test_short_row_is_padded_and_incomplete(self):
        record = AppointmentRecord.from_row(["2024-05-20", "RES-1", "Ana"])

        self.assertEqual(record.appointment_date, "")
        self.assertEqual(record.status, AppointmentStatus.UNRECOGNIZED)
        self.assertFalse(record.is_complete)

    def test_status_parsing_normalises_and_flags_unknown_values(self):
        self.assertEqual(AppointmentStatus.from_raw(" confirmada "), AppointmentStatus.CONFIRMED)
        self.assertEqual(AppointmentStatus.from_raw("CANCELADA"), AppointmentStatus.CANCELLED)
        self.assertEqual(AppointmentStatus.from_raw("EN ESPERA"), AppointmentStatus.UNRECOGNIZED)
        self.assertEqual(AppointmentStatus.from_raw(None), AppointmentStatus.UNRECOGNIZED)

    def test_scheduled_for_accepts_seconds_and_rejects_garbage(self):
        record = make_record(appointment_date="2024-06-02", appointment_time="08:30:00")
        self.assertEqual(record.scheduled_for(BOGOTA), datetime(2024, 6, 2, 8, 30, tzinfo=BOGOTA))

        broken = make_record(appointment_date="02/06/2024", appointment_time="8h30")
        with self.assertRaises(AppointmentParseError):
            broken.scheduled_for(BOGOTA)


@override_settings(BUSINESS_TIMEZONE="America/Bogota")
class WindowMatcherTests(SimpleTestCase):
    def _codes(self, tier, records, now=NOW):
        return [reminder.appointment.reservation_code for reminder in select_eligible(tier, records, now)]

    def test_window_boundaries_are_inclusive(self):
        cases = [
            (ReminderTier.DAY_BEFORE, timedelta(hours=23)),
            (ReminderTier.DAY_BEFORE, timedelta(hours=25)),
            (ReminderTier.SAME_DAY, timedelta(hours=11)),
            (ReminderTier.SAME_DAY, timedelta(hours=13)),
            (ReminderTier.IMMINENT, timedelta(minutes=10)),
            (ReminderTier.IMMINENT, timedelta(minutes=20)),
        ]
        for tier, lead in cases:
            with self.subTest(tier=tier, lead=lead):
                self.assertEqual(self._codes(tier, [make_record(at=NOW + lead)]), ["RES-001"])

    def test_day_before_excludes_just_outside_the_window(self):
        too_close = make_record(at=NOW + timedelta(hours=22, minutes=59, seconds=24), reservation_code="A")
        too_far = make_record(at=NOW + timedelta(hours=25, seconds=36), reservation_code="B")

        self.assertEqual(self._codes(ReminderTier.DAY_BEFORE, [too_close, too_far]), [])

    def test_same_day_excludes_just_outside_the_window(self):
        too_close = make_record(at=NOW + timedelta(hours=10, minutes=59, seconds=24), reservation_code="A")
        too_far = make_record(at=NOW + timedelta(hours=13, seconds=36), reservation_code="B")

        self.assertEqual(self._codes(ReminderTier.SAME_DAY, [too_close, too_far]), [])

    def test_imminent_excludes_just_outside_the_window(self):
        too_close = make_record(at=NOW + timedelta(minutes=9, seconds=59), reservation_code="A")
        too_far = make_record(at=NOW + timedelta(minutes=20, seconds=1), reservation_code="B")

        self.assertEqual(self._codes(ReminderTier.IMMINENT, [too_close, too_far]), [])

    def test_cancelled_is_excluded_from_same_day_and_imminent(self):
        for tier, lead in (
            (ReminderTier.SAME_DAY, timedelta(hours=12)),
            (ReminderTier.IMMINENT, timedelta(minutes=15)),
        ):
            with self.subTest(tier=tier):
                record = make_record(at=NOW + lead, status=AppointmentStatus.CANCELLED)
                self.assertEqual(self._codes(tier, [record]), [])

    def test_confirmed_is_excluded_from_day_before(self):
        record = make_record(at=NOW + timedelta(hours=24), status=AppointmentStatus.CONFIRMED)

        self.assertEqual(self._codes(ReminderTier.DAY_BEFORE, [record]), [])

    def test_rescheduled_gets_day_before_reminder(self):
        record = make_record(at=NOW + timedelta(hours=24), status=AppointmentStatus.RESCHEDULED)

        self.assertEqual(self._codes(ReminderTier.DAY_BEFORE, [record]), ["RES-001"])

    def test_unrecognized_status_follows_the_not_cancelled_rule(self):
        day = make_record(at=NOW + timedelta(hours=24), status=AppointmentStatus.UNRECOGNIZED)
        same_day = make_record(at=NOW + timedelta(hours=12), status=AppointmentStatus.UNRECOGNIZED)

        self.assertEqual(self._codes(ReminderTier.DAY_BEFORE, [day]), [])
        self.assertEqual(self._codes(ReminderTier.SAME_DAY, [same_day]), ["RES-001"])

    def test_missing_date_or_time_is_excluded_from_every_tier(self):
        records = [
            make_record(appointment_date="", reservation_code="NO-DATE"),
            make_record(appointment_time="", reservation_code="NO-TIME"),
        ]
        for tier in ReminderTier:
            with self.subTest(tier=tier):
                self.assertEqual(self._codes(tier, records), [])

    def test_invalid_row_is_logged_and_the_batch_continues(self):
        broken = make_record(appointment_date="mañana", reservation_code="BAD")
        good = make_record(at=NOW + timedelta(hours=24), reservation_code="GOOD")

        with self.assertLogs("appointments.services.windows", level="WARNING") as captured:
            codes = self._codes(ReminderTier.DAY_BEFORE, [broken, good])

        self.assertEqual(codes, ["GOOD"])
        self.assertTrue(any("BAD" in message and "mañana" in message for message in captured.output))

    def test_missing_reservation_code_is_skipped(self):
        record = make_record(at=NOW + timedelta(hours=24), reservation_code="")

        self.assertEqual(self._codes(ReminderTier.DAY_BEFORE, [record]), [])

    def test_past_appointments_are_never_eligible(self):
        record = make_record(at=NOW - timedelta(minutes=15))

        for tier in ReminderTier:
            with self.subTest(tier=tier):
                self.assertEqual(self._codes(tier, [record]), [])

    def test_scheduled_appointment_next_morning_is_due_day_before(self):
        scheduled = make_record(appointment_date="2024-06-02", appointment_time="08:30")
        cancelled = make_record(
            appointment_date="2024-06-02",
            appointment_time="08:30",
            status=AppointmentStatus.CANCELLED,
            raw_status="CANCELADA",
        )

        [reminder] = select_eligible(ReminderTier.DAY_BEFORE, [scheduled], NOW)
        self.assertAlmostEqual(reminder.lead_time, 23.5)
        self.assertEqual(reminder.rounded_lead_time, 24)
        self.assertEqual(select_eligible(ReminderTier.DAY_BEFORE, [cancelled], NOW), [])

    def test_confirmed_appointment_in_fifteen_minutes(self):
        record = make_record(
            appointment_date="2024-06-01",
            appointment_time="09:15",
            status=AppointmentStatus.CONFIRMED,
        )

        [reminder] = select_eligible(ReminderTier.IMMINENT, [record], NOW)

        self.assertEqual(reminder.lead_time, 15)
        self.assertEqual(reminder.rounded_lead_time, 15)
        self.assertEqual(reminder.tier, ReminderTier.IMMINENT)

    def test_naive_now_is_read_in_business_timezone(self):
        record = make_record(appointment_date="2024-06-01", appointment_time="21:00")

        [reminder] = select_eligible("12h", [record], datetime(2024, 6, 1, 9, 0))

        self.assertEqual(reminder.lead_time, 12)

    def test_now_in_another_timezone_is_converted(self):
        record = make_record(appointment_date="2024-06-01", appointment_time="21:00")
        utc_now = datetime(2024, 6, 1, 14, 0, tzinfo=ZoneInfo("UTC"))

        [reminder] = select_eligible(ReminderTier.SAME_DAY, [record], utc_now)

        self.assertEqual(reminder.lead_time, 12)

    def test_unknown_tier_is_rejected(self):
        with self.assertRaises(ValueError):
            select_eligible("6h", [], NOW)


@override_settings(BUSINESS_ADDRESS="Calle 10 # 20-30, Bogotá", REMINDER_LANGUAGE="es")
class MessageFormatterTests(SimpleTestCase):
    def test_format_time_12h(self):
        cases = {
            "00:05": "12:05 AM",
            "08:30": "8:30 AM",
            "11:59": "11:59 AM",
            "12:00": "12:00 PM",
            "13:30": "1:30 PM",
            "23:59": "11:59 PM",
            "09:15:00": "9:15 AM",
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                self.assertEqual(format_time_12h(value), expected)

    def test_format_time_12h_returns_malformed_input_unchanged(self):
        for value in ("abc", "ab:cd", "25:00", "", None, 830):
            with self.subTest(value=value):
                self.assertEqual(format_time_12h(value), value)

    def test_format_long_date_is_spanish(self):
        self.assertEqual(format_long_date(datetime(2024, 6, 1, 9, 0, tzinfo=BOGOTA)), "sábado, 1 de junio de 2024")

    def test_day_before_message_asks_to_confirm_or_reschedule(self):
        message = build_chat_message(make_reminder(ReminderTier.DAY_BEFORE))

        self.assertIn("*mañana*", message)
        self.assertIn("Ana Pérez", message)
        self.assertIn("Dra. Gómez", message)
        self.assertIn("Limpieza dental", message)
        self.assertIn("RES-001", message)
        self.assertIn("9:00 AM", message)
        self.assertIn("domingo, 2 de junio de 2024", message)
        self.assertIn("CONFIRMAR", message)
        self.assertIn("REAGENDAR", message)
        self.assertIn("📍 Calle 10 # 20-30, Bogotá", message)
        self.assertNotIn("Dirección", message)

    def test_same_day_message_for_confirmed_client_has_no_call_to_action(self):
        reminder = make_reminder(
            ReminderTier.SAME_DAY, lead=timedelta(hours=12), status=AppointmentStatus.CONFIRMED
        )

        message = build_chat_message(reminder)

        self.assertIn("*hoy*", message)
        self.assertIn("Tu cita está confirmada", message)
        self.assertNotIn("CONFIRMAR", message)

    def test_same_day_message_for_unconfirmed_client_offers_reschedule(self):
        message = build_chat_message(make_reminder(ReminderTier.SAME_DAY, lead=timedelta(hours=12)))

        self.assertIn("REAGENDAR", message)

    def test_imminent_message_variants(self):
        confirmed = build_chat_message(
            make_reminder(ReminderTier.IMMINENT, lead=timedelta(minutes=15), status=AppointmentStatus.CONFIRMED)
        )
        pending = build_chat_message(make_reminder(ReminderTier.IMMINENT, lead=timedelta(minutes=15)))

        self.assertIn("15 minutos", confirmed)
        self.assertIn("Tu cita está confirmada", confirmed)
        self.assertNotIn("CONFIRMAR", confirmed)

        self.assertIn("¡IMPORTANTE!", pending)
        self.assertIn("CONFIRMAR", pending)
        self.assertIn("📍 *Dirección:* Calle 10 # 20-30, Bogotá", pending)
        self.assertNotIn("REAGENDAR", pending)


@override_settings(APPOINTMENTS_SHEET_ID="sheet-123", APPOINTMENTS_SHEET_RANGE="CLIENTES")
class SheetsAppointmentRepositoryTests(SimpleTestCase):
    def test_fetch_all_skips_header_and_maps_rows(self):
        service = sheet_service([
            HEADER,
            ["", "RES-1", "Ana", "300", "ana@example.com", "Dra. Gómez", "2024-06-02", "08:30", "Limpieza", "AGENDADA"],
            ["", "RES-2", "Luis", "301", "", "Dr. Ruiz", "2024-06-02", "10:00", "Control", "CONFIRMADA"],
        ])

        records = SheetsAppointmentRepository(service=service).fetch_all()

        self.assertEqual([r.reservation_code for r in records], ["RES-1", "RES-2"])
        self.assertEqual(records[0].row_number, 2)
        self.assertEqual(records[1].status, AppointmentStatus.CONFIRMED)
        service.spreadsheets.return_value.values.return_value.get.assert_called_once_with(
            spreadsheetId="sheet-123", range="CLIENTES"
        )

    def test_fetch_all_returns_empty_for_header_only_sheet(self):
        self.assertEqual(SheetsAppointmentRepository(service=sheet_service([HEADER])).fetch_all(), [])
        self.assertEqual(SheetsAppointmentRepository(service=sheet_service([])).fetch_all(), [])

    def test_duplicate_reservation_codes_keep_first_row(self):
        service = sheet_service([
            HEADER,
            ["", "RES-1", "Ana", "", "", "", "2024-06-02", "08:30", "", "AGENDADA"],
            ["", "RES-1", "Ana bis", "", "", "", "2024-06-03", "08:30", "", "AGENDADA"],
        ])

        with self.assertLogs("appointments.integrations.sheets", level="WARNING"):
            records = SheetsAppointmentRepository(service=service).fetch_all()

        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].client_name, "Ana")

    def test_http_errors_are_wrapped(self):
        service = Mock()
        service.spreadsheets.return_value.values.return_value.get.return_value.execute.side_effect = HttpError(
            Mock(status=403, reason="Forbidden"), b"quota exceeded"
        )

        with self.assertRaises(RepositoryError):
            SheetsAppointmentRepository(service=service).fetch_all()

    @override_settings(APPOINTMENTS_SHEET_ID="")
    def test_missing_sheet_id_is_a_repository_error(self):
        with self.assertRaises(RepositoryError):
            SheetsAppointmentRepository(service=sheet_service([HEADER])).fetch_all()

    def test_missing_credentials_file_is_a_repository_error(self):
        repository = SheetsAppointmentRepository(credentials_file="/nonexistent/credentials.json")

        with self.assertRaises(RepositoryError):
            repository.fetch_all()


@patch("appointments.services.reminders.really_send_chat_message")
@patch("appointments.services.reminders.send_reminder_email")
class DispatchReminderTests(SimpleTestCase):
    def test_both_channels_succeed(self, mock_email, mock_chat):
        mock_email.return_value = EmailSendResult(success=True)
        reminder = make_reminder()

        result = dispatch_reminder(reminder)

        self.assertIsInstance(result, ReminderDispatchResult)
        self.assertTrue(result.email_sent)
        self.assertTrue(result.chat_sent)
        mock_email.assert_called_once_with(ReminderTier.DAY_BEFORE, reminder.appointment)
        self.assertEqual(mock_chat.call_args.args[0], "3001234567")
        self.assertIn("RES-001", mock_chat.call_args.args[1])

    def test_email_exception_does_not_block_chat(self, mock_email, mock_chat):
        mock_email.side_effect = Exception("smtp down")

        with self.assertLogs("appointments.services.reminders", level="ERROR"):
            result = dispatch_reminder(make_reminder())

        self.assertFalse(result.email_sent)
        self.assertEqual(result.email_error, "smtp down")
        self.assertTrue(result.chat_sent)

    def test_email_failure_result_is_recorded(self, mock_email, mock_chat):
        mock_email.return_value = EmailSendResult(success=False, reason="missing email")

        result = dispatch_reminder(make_reminder())

        self.assertFalse(result.email_sent)
        self.assertEqual(result.email_error, "missing email")
        self.assertTrue(result.chat_sent)

    def test_chat_failure_does_not_affect_email(self, mock_email, mock_chat):
        mock_email.return_value = EmailSendResult(success=True)
        mock_chat.side_effect = ChatDeliveryError("No phone number provided.")

        with self.assertLogs("appointments.services.reminders", level="ERROR"):
            result = dispatch_reminder(make_reminder())

        self.assertTrue(result.email_sent)
        self.assertFalse(result.chat_sent)
        self.assertEqual(result.chat_error, "No phone number provided.")

    def test_disabled_channels_are_not_attempted(self, mock_email, mock_chat):
        result = dispatch_reminder(make_reminder(), email=False)

        mock_email.assert_not_called()
        self.assertFalse(result.email_attempted)
        self.assertTrue(result.chat_attempted)


@override_settings(BUSINESS_TIMEZONE="America/Bogota")
@patch("appointments.services.reminders.really_send_chat_message")
@patch("appointments.services.reminders.send_reminder_email")
class ReminderPollTests(TestCase):
    def setUp(self):
        self.record = make_record(at=NOW + timedelta(hours=24))
        self.repository = FakeRepository([self.record])

    def test_poll_sends_and_records_ledger(self, mock_email, mock_chat):
        mock_email.return_value = EmailSendResult(success=True)

        with self.assertLogs("appointments.services.reminders", level="INFO") as captured:
            summary = run_reminder_poll(ReminderTier.DAY_BEFORE, now=NOW, repository=self.repository)

        self.assertEqual(summary["tier"], "24h")
        self.assertEqual(summary["found"], 1)
        self.assertEqual(summary["processed"], 1)
        self.assertEqual(summary["notifications"]["email"], {"sent": 1, "failed": 0})
        self.assertEqual(summary["notifications"]["chat"], {"sent": 1, "failed": 0})
        self.assertEqual(
            summary["results"], [{"reservation_code": "RES-001", "email_sent": True, "chat_sent": True}]
        )
        self.assertTrue(any("Sent 24h reminder email" in message for message in captured.output))

        entry = SentReminder.objects.get(reservation_code="RES-001", tier=ReminderTier.DAY_BEFORE)
        self.assertTrue(entry.email_sent)
        self.assertEqual(entry.scheduled_for, NOW + timedelta(hours=24))
        self.assertTrue(entry.chat_sent)

    def test_second_poll_does_not_notify_again(self, mock_email, mock_chat):
        mock_email.return_value = EmailSendResult(success=True)

        run_reminder_poll(ReminderTier.DAY_BEFORE, now=NOW, repository=self.repository)
        summary = run_reminder_poll(
            ReminderTier.DAY_BEFORE, now=NOW + timedelta(minutes=30), repository=self.repository
        )

        self.assertEqual(summary["found"], 1)
        self.assertEqual(summary["processed"], 0)
        self.assertEqual(summary["skipped_already_sent"], 1)
        self.assertEqual(mock_email.call_count, 1)
        self.assertEqual(mock_chat.call_count, 1)

    def test_ledger_is_per_tier(self, mock_email, mock_chat):
        mock_email.return_value = EmailSendResult(success=True)
        SentReminder.objects.create(
            reservation_code="RES-001",
            tier=ReminderTier.SAME_DAY,
            scheduled_for=NOW + timedelta(hours=24),
            email_sent=True,
            chat_sent=True,
        )

        summary = run_reminder_poll(ReminderTier.DAY_BEFORE, now=NOW, repository=self.repository)

        self.assertEqual(summary["processed"], 1)
        self.assertEqual(SentReminder.objects.count(), 2)

    def test_rescheduled_appointment_is_reminded_for_the_new_slot(self, mock_email, mock_chat):
        mock_email.return_value = EmailSendResult(success=True)
        run_reminder_poll(ReminderTier.DAY_BEFORE, now=NOW, repository=self.repository)

        moved = make_record(at=NOW + timedelta(days=7), status=AppointmentStatus.RESCHEDULED, raw_status="REAGENDADA")
        summary = run_reminder_poll(
            ReminderTier.DAY_BEFORE, now=NOW + timedelta(days=6), repository=FakeRepository([moved])
        )

        self.assertEqual(summary["found"], 1)
        self.assertEqual(summary["processed"], 1)
        self.assertEqual(summary["skipped_already_sent"], 0)
        self.assertEqual(mock_email.call_count, 2)
        self.assertEqual(mock_chat.call_count, 2)
        self.assertEqual(
            SentReminder.objects.filter(reservation_code="RES-001", tier=ReminderTier.DAY_BEFORE).count(), 2
        )

    def test_failed_channel_is_retried_alone(self, mock_email, mock_chat):
        mock_email.return_value = EmailSendResult(success=True)
        mock_chat.side_effect = [ChatDeliveryError("whatsapp down"), None]

        with self.assertLogs("appointments.services.reminders", level="ERROR"):
            first = run_reminder_poll(ReminderTier.DAY_BEFORE, now=NOW, repository=self.repository)
        second = run_reminder_poll(ReminderTier.DAY_BEFORE, now=NOW, repository=self.repository)

        self.assertEqual(first["notifications"]["chat"], {"sent": 0, "failed": 1})
        self.assertEqual(
            first["errors"], [{"reservation_code": "RES-001", "channel": "chat", "error": "whatsapp down"}]
        )
        self.assertEqual(mock_email.call_count, 1)
        self.assertEqual(mock_chat.call_count, 2)
        self.assertEqual(second["notifications"]["email"], {"sent": 0, "failed": 0})
        self.assertEqual(second["notifications"]["chat"], {"sent": 1, "failed": 0})
        self.assertEqual(
            second["results"], [{"reservation_code": "RES-001", "email_sent": True, "chat_sent": True}]
        )

        entry = SentReminder.objects.get(reservation_code="RES-001", tier=ReminderTier.DAY_BEFORE)
        self.assertTrue(entry.is_complete)

    def test_nothing_recorded_when_every_channel_fails(self, mock_email, mock_chat):
        mock_email.return_value = EmailSendResult(success=False, error="smtp down")
        mock_chat.side_effect = ChatDeliveryError("whatsapp down")

        with self.assertLogs("appointments.services.reminders", level="WARNING"):
            summary = run_reminder_poll(ReminderTier.DAY_BEFORE, now=NOW, repository=self.repository)

        self.assertEqual(len(summary["errors"]), 2)
        self.assertFalse(SentReminder.objects.exists())

    def test_repository_failure_yields_empty_poll(self, mock_email, mock_chat):
        repository = FakeRepository(error=RepositoryError("quota exceeded"))

        with self.assertLogs("appointments.services.reminders", level="ERROR"):
            summary = run_reminder_poll(ReminderTier.SAME_DAY, now=NOW, repository=repository)

        self.assertEqual(summary["found"], 0)
        self.assertEqual(summary["errors"][0]["channel"], "repository")
        mock_email.assert_not_called()
        mock_chat.assert_not_called()

    def test_dry_run_lists_without_sending(self, mock_email, mock_chat):
        summary = run_reminder_poll(ReminderTier.DAY_BEFORE, now=NOW, repository=self.repository, dry_run=True)

        self.assertEqual(summary["found"], 1)
        self.assertEqual(summary["results"][0]["reservation_code"], "RES-001")
        self.assertEqual(summary["results"][0]["lead_time"], 24)
        mock_email.assert_not_called()
        mock_chat.assert_not_called()
        self.assertFalse(SentReminder.objects.exists())


class ReminderTaskTests(SimpleTestCase):
    @patch("appointments.tasks.run_reminder_poll")
    def test_each_task_polls_its_tier(self, mock_poll):
        mock_poll.return_value = {"found": 0}

        for task, tier in (
            (send_24h_reminders_task, ReminderTier.DAY_BEFORE),
            (send_12h_reminders_task, ReminderTier.SAME_DAY),
            (send_15min_reminders_task, ReminderTier.IMMINENT),
        ):
            with self.subTest(tier=tier):
                self.assertEqual(task(), {"found": 0})
                mock_poll.assert_called_with(tier)


class SendRemindersCommandTests(TestCase):
    @patch("appointments.services.reminders.SheetsAppointmentRepository")
    def test_dry_run_prints_due_appointments(self, mock_repository_cls):
        mock_repository_cls.return_value = FakeRepository([make_record(at=NOW + timedelta(hours=24))])
        out = StringIO()

        call_command("send_reminders", "24h", "--dry-run", "--now", "2024-06-01T09:00:00-05:00", stdout=out)

        output = out.getvalue()
        self.assertIn("Found 1 appointments.", output)
        self.assertIn("RES-001", output)
        self.assertFalse(SentReminder.objects.exists())

    def test_invalid_now_is_rejected(self):
        with self.assertRaises(CommandError):
            call_command("send_reminders", "12h", "--now", "yesterday", stdout=StringIO())
