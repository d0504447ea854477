"""Utility helpers for delivering chat (WhatsApp) messages."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict

import requests
from django.conf import settings

from common.utils import InvalidPhoneNumberError, normalize_phone_number

__all__ = [
    "ChatConfigurationError",
    "ChatDeliveryError",
    "BaseChatProvider",
    "ConsoleChatProvider",
    "WhatsAppCloudProvider",
    "get_chat_provider",
    "really_send_chat_message",
]

logger = logging.getLogger(__name__)

WHATSAPP_API_BASE_URL = "https://graph.facebook.com"


class ChatConfigurationError(RuntimeError):
    """Raised when the chat subsystem is misconfigured."""


class ChatDeliveryError(RuntimeError):
    """Raised when a chat message could not be delivered."""


class BaseChatProvider:
    """Base class for chat providers."""

    def send(self, phone_number: str, message: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class ConsoleChatProvider(BaseChatProvider):
    """A provider that simply prints messages to stdout."""

    def send(self, phone_number: str, message: str) -> None:
        print(f"Sending chat message to {phone_number}:\n{message}")


class WhatsAppCloudProvider(BaseChatProvider):
    """Adapter for the WhatsApp Business Cloud API."""

    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        api_version: str = "v19.0",
        timeout: float = 10,
    ) -> None:
        self._access_token = access_token
        self._url = f"{WHATSAPP_API_BASE_URL}/{api_version}/{phone_number_id}/messages"
        self._timeout = timeout

    def send(self, phone_number: str, message: str) -> None:
        payload: Dict[str, Any] = {
            "messaging_product": "whatsapp",
            "to": phone_number,
            "type": "text",
            "text": {"preview_url": False, "body": message},
        }
        headers = {"Authorization": f"Bearer {self._access_token}"}

        try:
            response = requests.post(self._url, json=payload, headers=headers, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.exception("WhatsApp message to %s failed", phone_number)
            raise ChatDeliveryError(f"WhatsApp API request failed: {exc}") from exc


@lru_cache(maxsize=1)
def get_chat_provider() -> BaseChatProvider:
    """Return an instance of the configured chat provider."""

    provider_name = getattr(settings, "CHAT_PROVIDER", "console")
    if not provider_name:
        provider_name = "console"

    normalized = provider_name.lower()

    if normalized == "console":
        return ConsoleChatProvider()

    if normalized == "whatsapp":
        access_token = getattr(settings, "WHATSAPP_API_TOKEN", None)
        phone_number_id = getattr(settings, "WHATSAPP_PHONE_NUMBER_ID", None)
        if not access_token or not phone_number_id:
            raise ChatConfigurationError(
                "WHATSAPP_API_TOKEN and WHATSAPP_PHONE_NUMBER_ID must be set when using the WhatsApp provider."
            )

        return WhatsAppCloudProvider(
            access_token=access_token,
            phone_number_id=phone_number_id,
            api_version=getattr(settings, "WHATSAPP_API_VERSION", "v19.0"),
            timeout=float(getattr(settings, "CHAT_REQUEST_TIMEOUT", 10)),
        )

    raise ChatConfigurationError(f"Unsupported chat provider '{provider_name}'.")


def really_send_chat_message(phone_number: str, message: str) -> None:
    """Dispatch a chat message through the configured provider."""

    try:
        recipient = normalize_phone_number(
            phone_number, getattr(settings, "CHAT_DEFAULT_REGION", "CO")
        )
    except InvalidPhoneNumberError as exc:
        raise ChatDeliveryError(str(exc)) from exc
    if not recipient:
        raise ChatDeliveryError("No phone number provided.")

    provider = get_chat_provider()
    provider.send(recipient, message)
