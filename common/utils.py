import re
import unicodedata

import phonenumbers


def normalize_text(text) -> str:
    """
    Clean a spreadsheet cell: unicode normalisation, collapse whitespace, strip.
    Non-string cells (numbers typed into the sheet) are converted with ``str``.
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)

    text = unicodedata.normalize("NFKC", text)
    text = re.sub(r"\s+", " ", text)

    return text.strip()


class InvalidPhoneNumberError(ValueError):
    """Raised when a phone number cannot be parsed or is not a valid number."""


def normalize_phone_number(phone_number, default_region: str = "CO") -> str:
    """
    Return the phone number in E.164 form without the leading ``+``.

    ``300 123 4567`` with region ``CO`` -> ``573001234567``. Numbers written with
    an international prefix keep their own country code. Empty input returns "".
    """
    raw = normalize_text(phone_number)
    if not raw:
        return ""

    try:
        parsed = phonenumbers.parse(raw, default_region or None)
    except phonenumbers.NumberParseException as exc:
        raise InvalidPhoneNumberError(f"Phone number {raw!r} could not be parsed.") from exc

    if not phonenumbers.is_valid_number(parsed):
        raise InvalidPhoneNumberError(f"Phone number {raw!r} is not valid.")

    normalized = phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    # WhatsApp expects the number without the leading '+'
    return normalized[1:]
