from datetime import datetime
from smtplib import SMTPException
from unittest.mock import Mock, patch
from zoneinfo import ZoneInfo

import requests
from django.core import mail
from django.test import SimpleTestCase, override_settings

from appointments.records import AppointmentRecord
from common.choices import AppointmentStatus, ReminderTier
from common.utils import InvalidPhoneNumberError, normalize_phone_number

from . import chat_utils
from .email_utils import EmailSendResult, send_reminder_email


def make_appointment(**overrides):
    values = {
        "reservation_code": "RES-100",
        "client_name": "Ana Pérez",
        "client_phone": "300 123 4567",
        "client_email": "ana@example.com",
        "professional_name": "Dra. Gómez",
        "service_name": "Limpieza dental",
        "appointment_date": "2024-06-02",
        "appointment_time": "09:00",
        "status": AppointmentStatus.SCHEDULED,
        "raw_status": "AGENDADA",
    }
    values.update(overrides)
    return AppointmentRecord(**values)


class PhoneNormalizationTests(SimpleTestCase):
    def test_local_numbers_get_the_region_country_code(self):
        self.assertEqual(normalize_phone_number("300 123 4567", "CO"), "573001234567")

    def test_national_trunk_prefix_is_dropped(self):
        self.assertEqual(normalize_phone_number("07400 123456", "GB"), "447400123456")

    def test_international_numbers_keep_their_country_code(self):
        self.assertEqual(normalize_phone_number("+34 612 34 56 78", "CO"), "34612345678")

    def test_number_already_prefixed_is_not_prefixed_twice(self):
        self.assertEqual(normalize_phone_number("573001234567", "CO"), "573001234567")

    def test_empty_values(self):
        self.assertEqual(normalize_phone_number("", "CO"), "")
        self.assertEqual(normalize_phone_number(None, "CO"), "")

    def test_unparsable_and_invalid_numbers_raise(self):
        with self.assertRaises(InvalidPhoneNumberError):
            normalize_phone_number("llamar a recepción", "CO")
        with self.assertRaises(InvalidPhoneNumberError):
            normalize_phone_number("12345", "CO")


class ChatUtilsTests(SimpleTestCase):
    def setUp(self) -> None:
        chat_utils.get_chat_provider.cache_clear()

    def tearDown(self) -> None:
        chat_utils.get_chat_provider.cache_clear()

    @override_settings(CHAT_PROVIDER="console", CHAT_DEFAULT_REGION="CO")
    def test_console_provider_writes_to_stdout(self):
        with patch("notifications.chat_utils.print") as mock_print:
            chat_utils.really_send_chat_message("300 123 4567", "Hola")

        mock_print.assert_called_once_with("Sending chat message to 573001234567:\nHola")

    @override_settings(
        CHAT_PROVIDER="whatsapp",
        WHATSAPP_API_TOKEN="token-123",
        WHATSAPP_PHONE_NUMBER_ID="1055",
        WHATSAPP_API_VERSION="v19.0",
        CHAT_DEFAULT_REGION="CO",
        CHAT_REQUEST_TIMEOUT=5,
    )
    @patch("notifications.chat_utils.requests.post")
    def test_whatsapp_provider_posts_text_message(self, mock_post):
        mock_post.return_value = Mock(raise_for_status=Mock())

        chat_utils.really_send_chat_message("+57 300 123 4567", "Recordatorio")

        mock_post.assert_called_once_with(
            "https://graph.facebook.com/v19.0/1055/messages",
            json={
                "messaging_product": "whatsapp",
                "to": "573001234567",
                "type": "text",
                "text": {"preview_url": False, "body": "Recordatorio"},
            },
            headers={"Authorization": "Bearer token-123"},
            timeout=5.0,
        )

    @override_settings(CHAT_PROVIDER="whatsapp", WHATSAPP_API_TOKEN="t", WHATSAPP_PHONE_NUMBER_ID="1")
    @patch("notifications.chat_utils.requests.post")
    def test_whatsapp_http_errors_raise_delivery_error(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("unreachable")

        with self.assertRaises(chat_utils.ChatDeliveryError):
            chat_utils.really_send_chat_message("3001234567", "Hola")

    @override_settings(CHAT_PROVIDER="whatsapp", WHATSAPP_API_TOKEN="", WHATSAPP_PHONE_NUMBER_ID="")
    def test_whatsapp_provider_requires_credentials(self):
        with self.assertRaises(chat_utils.ChatConfigurationError):
            chat_utils.really_send_chat_message("3001234567", "Hola")

    @override_settings(CHAT_PROVIDER="telegram")
    def test_unsupported_provider(self):
        with self.assertRaises(chat_utils.ChatConfigurationError):
            chat_utils.get_chat_provider()

    def test_missing_phone_number(self):
        with self.assertRaises(chat_utils.ChatDeliveryError):
            chat_utils.really_send_chat_message("", "Hola")

    @override_settings(CHAT_PROVIDER="console", CHAT_DEFAULT_REGION="CO")
    def test_invalid_phone_number_is_a_delivery_error(self):
        with patch("notifications.chat_utils.print") as mock_print:
            with self.assertRaises(chat_utils.ChatDeliveryError):
                chat_utils.really_send_chat_message("12345", "Hola")

        mock_print.assert_not_called()


@override_settings(
    EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend",
    BUSINESS_TIMEZONE="America/Bogota",
    BUSINESS_NAME="Clínica Sonrisas",
    BUSINESS_ADDRESS="Calle 10 # 20-30",
    REMINDER_LANGUAGE="es",
)
class ReminderEmailTests(SimpleTestCase):
    def test_day_before_email_is_rendered_and_sent(self):
        result = send_reminder_email(ReminderTier.DAY_BEFORE, make_appointment())

        self.assertEqual(result, EmailSendResult(success=True))
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ["ana@example.com"])
        self.assertIn("mañana", message.subject)
        self.assertIn("RES-100", message.subject)
        self.assertIn("domingo, 2 de junio de 2024", message.body)
        self.assertIn("9:00 AM", message.body)
        self.assertIn("REAGENDAR", message.body)
        self.assertIn("Calle 10 # 20-30", message.body)
        self.assertEqual(message.alternatives[0][1], "text/html")

    def test_confirmed_same_day_email_has_no_call_to_action(self):
        appointment = make_appointment(status=AppointmentStatus.CONFIRMED, raw_status="CONFIRMADA")

        send_reminder_email("12h", appointment)

        body = mail.outbox[0].body
        self.assertIn("Tu cita está confirmada.", body)
        self.assertNotIn("REAGENDAR", body)

    def test_imminent_email_for_unconfirmed_client_only_asks_to_confirm(self):
        send_reminder_email(ReminderTier.IMMINENT, make_appointment())

        message = mail.outbox[0]
        self.assertIn("15 minutos", message.subject)
        self.assertIn("CONFIRMAR", message.body)
        self.assertNotIn("REAGENDAR", message.body)

    def test_plain_text_body_is_not_html_escaped(self):
        send_reminder_email(ReminderTier.SAME_DAY, make_appointment(client_name="O'Brien & Co"))

        self.assertIn("Hola O'Brien & Co,", mail.outbox[0].body)

    def test_missing_email_is_reported_without_sending(self):
        result = send_reminder_email(ReminderTier.DAY_BEFORE, make_appointment(client_email=""))

        self.assertFalse(result.success)
        self.assertEqual(result.reason, "missing email")
        self.assertEqual(mail.outbox, [])

    def test_invalid_email_is_reported_without_sending(self):
        result = send_reminder_email(ReminderTier.DAY_BEFORE, make_appointment(client_email="ana-at-example"))

        self.assertFalse(result.success)
        self.assertIn("invalid email", result.reason)
        self.assertEqual(mail.outbox, [])

    @patch("notifications.email_utils.EmailMultiAlternatives.send")
    def test_backend_failure_is_returned_as_error(self, mock_send):
        mock_send.side_effect = SMTPException("connection refused")

        with self.assertLogs("notifications.email_utils", level="WARNING"):
            result = send_reminder_email(ReminderTier.DAY_BEFORE, make_appointment())

        self.assertFalse(result.success)
        self.assertEqual(result.error, "connection refused")

    def test_unparsable_date_falls_back_to_raw_value(self):
        send_reminder_email(ReminderTier.DAY_BEFORE, make_appointment(appointment_date="2 de junio"))

        self.assertIn("Fecha: 2 de junio", mail.outbox[0].body)
