"""Phone number helpers for WhatsApp addressing."""

import re

WHATSAPP_JID_SUFFIXES = ("@s.whatsapp.net", "@c.us")


def normalize_phone(phone: str | None, default_country_code: str = "595") -> str:
    """Normalize a phone number to international digits.

    Examples (Paraguay, default country code 595):
        "+595 981 123-456"            -> "595981123456"
        "0981 123456"                 -> "595981123456"
        "595981123456@s.whatsapp.net" -> "595981123456"
    """
    if not phone:
        return ""
    raw = phone.strip()
    for suffix in WHATSAPP_JID_SUFFIXES:
        if raw.endswith(suffix):
            raw = raw[: -len(suffix)]
    # Multi-device JIDs carry a ":device" part
    raw = raw.split(":", 1)[0]

    digits = re.sub(r"\D", "", raw)
    if not digits:
        return ""
    if digits.startswith("00"):
        return digits[2:]
    if raw.startswith("+") or digits.startswith(default_country_code):
        return digits
    if digits.startswith("0"):
        digits = digits[1:]
    return f"{default_country_code}{digits}"


def whatsapp_link(phone: str) -> str:
    """Deep link that opens a chat with the number."""
    return f"https://wa.me/{re.sub(r'[^0-9]', '', phone)}"
