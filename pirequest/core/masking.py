import re
from typing import Any, Dict

_NON_DIGIT_RE = re.compile(r"\D")
_PHONE_GROUPS_RE = re.compile(r"(\d{3})(\d{3})(\d{4})")
_EMAIL_RE = re.compile(r"(.{2}).*(@.*)")


def normalize_phone(phone: str) -> str:
    """Strip everything but digits and keep the last 10 ("+1 (555) 123-4567" -> "5551234567")."""
    return _NON_DIGIT_RE.sub("", phone or "")[-10:]


def mask_phone(phone: str) -> str:
    """Hide all but the last four digits: "5551234567" -> "***-***-4567"."""
    return _PHONE_GROUPS_RE.sub(r"***-***-\3", normalize_phone(phone))


def mask_ssn(ssn: str) -> str:
    digits = _NON_DIGIT_RE.sub("", ssn or "")
    return "***-**-" + digits[-4:]


def mask_email(email: str) -> str:
    # Keeps the first two characters of the local part and the domain
    return _EMAIL_RE.sub(r"\1***\2", email or "")


def mask_personal_info(info: Dict[str, Any]) -> Dict[str, Any]:
    masked = dict(info or {})
    if masked.get("ssn"):
        masked["ssn"] = mask_ssn(str(masked["ssn"]))
    if masked.get("email"):
        masked["email"] = mask_email(str(masked["email"]))
    return masked
