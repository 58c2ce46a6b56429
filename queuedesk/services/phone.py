"""
Regional phone number rules for customer intake
"""

from dataclasses import dataclass
import re
from typing import Dict

from queuedesk.core.errors import ValidationError


@dataclass(frozen=True)
class Region:
    country_code: str
    name: str
    local_length: int
    pattern: re.Pattern
    placeholder: str


# Supported GCC regions
REGIONS: Dict[str, Region] = {
    "966": Region("966", "Saudi Arabia", 9, re.compile(r"^5\d{8}$"), "5XXXXXXXX"),
    "971": Region("971", "United Arab Emirates", 8, re.compile(r"^\d{8}$"), "XXXXXXXX"),
    "965": Region("965", "Kuwait", 8, re.compile(r"^\d{8}$"), "XXXXXXXX"),
    "973": Region("973", "Bahrain", 8, re.compile(r"^\d{8}$"), "XXXXXXXX"),
    "968": Region("968", "Oman", 8, re.compile(r"^\d{8}$"), "XXXXXXXX"),
    "974": Region("974", "Qatar", 8, re.compile(r"^\d{8}$"), "XXXXXXXX"),
}

E164_PATTERN = re.compile(r"^\+\d{10,15}$")


def normalize_phone(country_code: str, local_number: str) -> str:
    """Validate a regional number and return it in E.164 form"""
    code = (country_code or "").strip().lstrip("+")
    local = re.sub(r"[\s-]", "", local_number or "")

    region = REGIONS.get(code)
    if region is None:
        raise ValidationError(f"Unsupported country code: {country_code}", field="country_code")

    if not region.pattern.match(local):
        if code == "966":
            message = "Phone number must start with 5 and be 9 digits"
        else:
            message = f"Phone number must be {region.local_length} digits"
        raise ValidationError(message, field="local_number")

    return f"+{code}{local}"


def format_e164(phone: str) -> str:
    """Best-effort E.164 formatting for outgoing messages

    A leading 0 is a Saudi national number.
    """
    digits = re.sub(r"\D", "", phone)
    if phone.startswith("+"):
        return f"+{digits}"
    if digits.startswith("0"):
        return f"+966{digits[1:]}"
    return f"+{digits}"
