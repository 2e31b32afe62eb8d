from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat, PhoneNumberType

from messaging.errors import InvalidRequest

_TYPE_NAMES: Dict[int, str] = {
    PhoneNumberType.FIXED_LINE: "fixed_line",
    PhoneNumberType.MOBILE: "mobile",
    PhoneNumberType.FIXED_LINE_OR_MOBILE: "fixed_or_mobile",
    PhoneNumberType.TOLL_FREE: "toll_free",
    PhoneNumberType.PREMIUM_RATE: "premium_rate",
    PhoneNumberType.SHARED_COST: "shared_cost",
    PhoneNumberType.VOIP: "voip",
    PhoneNumberType.PERSONAL_NUMBER: "personal_number",
    PhoneNumberType.PAGER: "pager",
    PhoneNumberType.UAN: "uan",
    PhoneNumberType.VOICEMAIL: "voicemail",
}


@dataclass(frozen=True)
class PhoneInfo:
    valid: bool
    possible: bool
    e164: Optional[str] = None
    country: Optional[str] = None
    national: Optional[str] = None
    type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "possible": self.possible,
            "e164": self.e164,
            "country": self.country,
            "national": self.national,
            "type": self.type,
        }


def _parse(number: Any, default_country: str) -> Optional[phonenumbers.PhoneNumber]:
    if not isinstance(number, str) or not number.strip():
        return None
    try:
        return phonenumbers.parse(number.strip(), (default_country or "US").upper())
    except NumberParseException:
        return None


def normalize_e164(number: Any, default_country: str = "US") -> str:
    # Consent keys and outbound "to" numbers are always E.164.
    parsed = _parse(number, default_country)
    if parsed is None or not phonenumbers.is_valid_number(parsed):
        raise InvalidRequest(f"Invalid phone number: {number}")
    return phonenumbers.format_number(parsed, PhoneNumberFormat.E164)


def describe(number: Any, default_country: str = "US") -> PhoneInfo:
    parsed = _parse(number, default_country)
    if parsed is None:
        return PhoneInfo(valid=False, possible=False)
    return PhoneInfo(
        valid=phonenumbers.is_valid_number(parsed),
        possible=phonenumbers.is_possible_number(parsed),
        e164=phonenumbers.format_number(parsed, PhoneNumberFormat.E164),
        country=phonenumbers.region_code_for_number(parsed),
        national=phonenumbers.format_number(parsed, PhoneNumberFormat.NATIONAL),
        type=_TYPE_NAMES.get(phonenumbers.number_type(parsed)),
    )
