import re
from typing import Optional

import phonenumbers
from phonenumbers import NumberParseException
from phonenumbers.phonenumberutil import UNKNOWN_REGION

from globalsim.otp.constants import DEFAULT_COUNTRY

E164_RE = re.compile(r"^\+[1-9]\d{1,14}$")
_NON_DIALABLE_RE = re.compile(r"[^\d+]")


def format_phone_number(raw: str, default_country_code: Optional[str] = None) -> str:
    """
    Strip everything but digits and '+'. Numbers without a leading '+' get
    `default_country_code` (e.g. "+1") prepended when one is configured,
    otherwise they are returned as-is and fail is_valid_phone_number.
    """
    cleaned = _NON_DIALABLE_RE.sub("", raw or "")
    if not cleaned.startswith("+") and default_country_code:
        prefix = default_country_code if default_country_code.startswith("+") else f"+{default_country_code}"
        cleaned = prefix + cleaned
    return cleaned


def is_valid_phone_number(phone: str) -> bool:
    return bool(E164_RE.match(phone))


def country_from_phone(phone: str) -> str:
    """ISO region of an E.164 number, DEFAULT_COUNTRY when it cannot be told."""
    try:
        parsed = phonenumbers.parse(phone, None)
    except NumberParseException:
        return DEFAULT_COUNTRY
    region = phonenumbers.region_code_for_number(parsed)
    if not region or region == UNKNOWN_REGION:
        return DEFAULT_COUNTRY
    return region
