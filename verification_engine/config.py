"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

# ── Flows ─────────────────────────────────────────────────────────────────
# One entry per purpose: (ttl in seconds, max verification attempts).

LOGIN_CODE_TTL_SECONDS: int = int(os.getenv("LOGIN_CODE_TTL_SECONDS", "300"))
LOGIN_CODE_MAX_ATTEMPTS: int = int(os.getenv("LOGIN_CODE_MAX_ATTEMPTS", "3"))

VERIFY_CODE_TTL_SECONDS: int = int(os.getenv("VERIFY_CODE_TTL_SECONDS", "900"))
VERIFY_CODE_MAX_ATTEMPTS: int = int(os.getenv("VERIFY_CODE_MAX_ATTEMPTS", "5"))

RESET_CODE_TTL_SECONDS: int = int(os.getenv("RESET_CODE_TTL_SECONDS", "900"))
RESET_CODE_MAX_ATTEMPTS: int = int(os.getenv("RESET_CODE_MAX_ATTEMPTS", "5"))

FLOWS: dict[str, tuple[int, int]] = {
    "login": (LOGIN_CODE_TTL_SECONDS, LOGIN_CODE_MAX_ATTEMPTS),
    "verify": (VERIFY_CODE_TTL_SECONDS, VERIFY_CODE_MAX_ATTEMPTS),
    "reset": (RESET_CODE_TTL_SECONDS, RESET_CODE_MAX_ATTEMPTS),
}

# ── Engine ────────────────────────────────────────────────────────────────

CODE_LENGTH: int = int(os.getenv("CODE_LENGTH", "6"))
STORE_SHARDS: int = int(os.getenv("STORE_SHARDS", "16"))

# How often the background sweeper drops expired records (seconds).
SWEEP_INTERVAL: float = float(os.getenv("SWEEP_INTERVAL", "60"))

# Prepended to 10-digit national phone numbers.
DEFAULT_COUNTRY_CODE: str = os.getenv("DEFAULT_COUNTRY_CODE", "+91")

_EXPOSE_CODES_OVERRIDE: str = os.getenv("EXPOSE_CODES", "auto")


def expose_codes() -> bool:
    """True when the debug accessor may reveal stored codes.

    Controlled by EXPOSE_CODES env var:
      • "auto" (default): only when ENVIRONMENT is "development"
      • "true": always
      • "false": never
    """
    if _EXPOSE_CODES_OVERRIDE.lower() == "false":
        return False
    if _EXPOSE_CODES_OVERRIDE.lower() == "true":
        return True
    return ENVIRONMENT == "development"


# ── SMTP ──────────────────────────────────────────────────────────────────

SMTP_HOST: str = os.getenv("SMTP_HOST", "")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM_EMAIL: str = os.getenv("SMTP_FROM_EMAIL", "noreply@verification.local")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Set to "false" to force console-only mode even when SMTP credentials are present.
_SMTP_ENABLED_OVERRIDE: str = os.getenv("SMTP_ENABLED", "auto")


def smtp_enabled() -> bool:
    """True when SMTP should actually send emails.

    Controlled by SMTP_ENABLED env var:
      • "auto" (default): send if credentials are configured
      • "true": always send (will fail if credentials are missing)
      • "false": never send, log to console instead
    """
    if _SMTP_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _SMTP_ENABLED_OVERRIDE.lower() == "true":
        return True
    return bool(SMTP_HOST and SMTP_USERNAME and SMTP_PASSWORD)


# ── SMS gateways ──────────────────────────────────────────────────────────

SMS_GATEWAY_URL: str = os.getenv("SMS_GATEWAY_URL", "")
SMS_GATEWAY_TOKEN: str = os.getenv("SMS_GATEWAY_TOKEN", "")
SMS_BACKUP_GATEWAY_URL: str = os.getenv("SMS_BACKUP_GATEWAY_URL", "")
SMS_BACKUP_GATEWAY_TOKEN: str = os.getenv("SMS_BACKUP_GATEWAY_TOKEN", "")
SMS_SENDER: str = os.getenv("SMS_SENDER", "VERIFY")
