"""
Identity normalization and masking.

Maps the textual variants of one phone number or email address to a single
canonical form, so "+91 98765-43210" and "9876543210" land on the same key.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from verification_engine.errors import InvalidIdentity

_E164 = re.compile(r"^\+[1-9]\d{1,14}$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_SEPARATORS = re.compile(r"[\s\-().]")


class IdentityKind(str, Enum):
    PHONE = "phone"
    EMAIL = "email"


@dataclass(frozen=True)
class Identity:
    value: str
    kind: IdentityKind


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone_e164(phone: str, default_country_code: str = "+91") -> str:
    """Normalize a phone number to E.164.

    Separators are stripped, a leading ``00`` becomes ``+``, a bare
    10-digit national number gets *default_country_code*, and a number that
    already carries the country code without ``+`` gets the ``+`` back.
    """
    raw = _PHONE_SEPARATORS.sub("", phone or "")
    if raw.startswith("+"):
        return raw
    if raw.startswith("00"):
        return "+" + raw[2:]
    country_digits = default_country_code.lstrip("+")
    if raw.startswith(country_digits) and len(raw) == len(country_digits) + 10:
        return "+" + raw
    if len(raw) == 10:
        return default_country_code + raw
    return "+" + raw


class IdentityNormalizer:
    """Pure, deterministic mapping of raw phone/email input to an Identity."""

    def __init__(self, default_country_code: str = "+91") -> None:
        self._default_country_code = default_country_code

    def __call__(self, raw: str) -> Identity:
        text = (raw or "").strip()
        if not text:
            raise InvalidIdentity("Identity must not be empty")
        if "@" in text:
            email = normalize_email(text)
            if not _EMAIL.match(email):
                raise InvalidIdentity(f"Not a valid email address: {mask_identity(email)}")
            return Identity(email, IdentityKind.EMAIL)
        phone = normalize_phone_e164(text, self._default_country_code)
        if not _E164.match(phone):
            raise InvalidIdentity("Phone number must be in international format (+1234567890)")
        return Identity(phone, IdentityKind.PHONE)


# ── Masking ────────────────────────────────────────────────────────────────


def mask_phone(phone: str) -> str:
    """Hide every digit except the last four."""
    return re.sub(r"\d(?=\d{4})", "*", phone)


def mask_email(email: str) -> str:
    """Keep the first two characters of the local part and the domain.

    Local parts shorter than three characters are hidden entirely.
    """
    local, at, domain = email.rpartition("@")
    if len(local) < 3:
        return f"*{at}{domain}"
    return f"{local[:2]}***{at}{domain}"


def mask_identity(value: str) -> str:
    return mask_email(value) if "@" in value else mask_phone(value)
