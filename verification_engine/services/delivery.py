"""
Delivery adapters: hand a freshly issued code to the user.

In development (no SMTP / SMS gateway configured), codes are logged to the
console so you can see what *would* be sent without any provider.

Adapters signal failure by raising ``DeliveryError``; the engine rolls the
issuance back when that happens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

import httpx

from verification_engine import config
from verification_engine.errors import DeliveryError
from verification_engine.services.identity import mask_identity

logger = logging.getLogger(__name__)

_SUBJECTS = {
    "login": "Your sign-in code",
    "verify": "Verify your email address",
    "reset": "Reset your password",
}

_INTROS = {
    "login": "Use this code to sign in",
    "verify": "Use this code to verify your email address",
    "reset": "Use this code to reset your password",
}


@dataclass(frozen=True)
class DeliveryReceipt:
    provider: str
    destination: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class DeliveryAdapter(Protocol):
    async def send(self, destination: str, code: str, purpose: str) -> DeliveryReceipt:
        """Deliver *code* to *destination*; raise DeliveryError on failure."""
        ...


def build_message(code: str, purpose: str) -> str:
    """Plain-text body shared by SMS and the email text part."""
    intro = _INTROS.get(purpose, "Your verification code")
    return f"{intro}: {code}. Do not share it with anyone."


# ── Console (dev) ──────────────────────────────────────────────────────────


class ConsoleDelivery:
    """Logs the message instead of sending it."""

    name = "console"

    async def send(self, destination: str, code: str, purpose: str) -> DeliveryReceipt:
        logger.info(
            "📨 [DEV] Would send %s code to %s: %s",
            purpose,
            mask_identity(destination),
            build_message(code, purpose),
        )
        return DeliveryReceipt(provider=self.name, destination=destination)


# ── Email ──────────────────────────────────────────────────────────────────


def _build_html_body(code: str, purpose: str) -> str:
    intro = _INTROS.get(purpose, "Your verification code")
    return f"""
    <html>
    <body style="font-family:sans-serif;color:#333">
      <p>{intro}:</p>
      <p style="font-size:2em;font-weight:bold;letter-spacing:0.2em">{code}</p>
      <p style="margin-top:1em;font-size:0.9em;color:#888">
        If you didn't request this code, you can ignore this email.
      </p>
    </body>
    </html>
    """


class EmailDelivery:
    """Sends the code over SMTP with aiosmtplib."""

    name = "smtp"

    def __init__(
        self,
        *,
        hostname: str,
        port: int,
        username: str,
        password: str,
        from_email: str,
        start_tls: bool = True,
    ) -> None:
        self._hostname = hostname
        self._port = port
        self._username = username
        self._password = password
        self._from_email = from_email
        self._start_tls = start_tls

    async def send(self, destination: str, code: str, purpose: str) -> DeliveryReceipt:
        import aiosmtplib

        msg = MIMEMultipart("alternative")
        msg["Subject"] = _SUBJECTS.get(purpose, "Your verification code")
        msg["From"] = self._from_email
        msg["To"] = destination
        msg.attach(MIMEText(build_message(code, purpose), "plain"))
        msg.attach(MIMEText(_build_html_body(code, purpose), "html"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=self._hostname,
                port=self._port,
                username=self._username,
                password=self._password,
                start_tls=self._start_tls,
            )
        except aiosmtplib.SMTPException as exc:
            raise DeliveryError(f"SMTP delivery failed: {exc}") from exc
        logger.info("Email sent to %s (%s)", mask_identity(destination), purpose)
        return DeliveryReceipt(provider=self.name, destination=destination)


# ── SMS ────────────────────────────────────────────────────────────────────


class HttpSmsDelivery:
    """Posts the message to an HTTP SMS gateway."""

    def __init__(
        self,
        url: str,
        *,
        token: str | None = None,
        sender: str | None = None,
        name: str = "sms-http",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.name = name
        self._url = url
        self._token = token
        self._sender = sender
        self._timeout = timeout
        self._transport = transport

    async def send(self, destination: str, code: str, purpose: str) -> DeliveryReceipt:
        payload = {"to": destination, "message": build_message(code, purpose)}
        if self._sender:
            payload["sender"] = self._sender
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._url, json=payload, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise DeliveryError(f"{self.name} failed: {exc}") from exc
        logger.info("SMS sent to %s via %s", mask_identity(destination), self.name)
        return DeliveryReceipt(provider=self.name, destination=destination)


# ── Composition ────────────────────────────────────────────────────────────


class FallbackDelivery:
    """Tries each adapter in order until one succeeds."""

    name = "fallback"

    def __init__(self, adapters: list[DeliveryAdapter]) -> None:
        if not adapters:
            raise ValueError("FallbackDelivery needs at least one adapter")
        self._adapters = list(adapters)

    async def send(self, destination: str, code: str, purpose: str) -> DeliveryReceipt:
        errors: list[str] = []
        for adapter in self._adapters:
            try:
                return await adapter.send(destination, code, purpose)
            except DeliveryError as exc:
                logger.warning(
                    "Delivery via %s to %s failed, trying next: %s",
                    getattr(adapter, "name", type(adapter).__name__),
                    mask_identity(destination),
                    exc,
                )
                errors.append(str(exc))
        raise DeliveryError("All delivery providers failed: " + "; ".join(errors))


class ChannelRouter:
    """Sends to email addresses through *email* and to phone numbers through *sms*."""

    name = "router"

    def __init__(self, *, email: DeliveryAdapter, sms: DeliveryAdapter) -> None:
        self._email = email
        self._sms = sms

    async def send(self, destination: str, code: str, purpose: str) -> DeliveryReceipt:
        adapter = self._email if "@" in destination else self._sms
        return await adapter.send(destination, code, purpose)


def build_delivery() -> DeliveryAdapter:
    """Assemble the delivery chain from configuration."""
    console = ConsoleDelivery()

    if config.smtp_enabled():
        email: DeliveryAdapter = EmailDelivery(
            hostname=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USERNAME,
            password=config.SMTP_PASSWORD,
            from_email=config.SMTP_FROM_EMAIL,
            start_tls=config.SMTP_USE_TLS,
        )
    else:
        email = console

    gateways: list[DeliveryAdapter] = []
    if config.SMS_GATEWAY_URL:
        gateways.append(
            HttpSmsDelivery(
                config.SMS_GATEWAY_URL,
                token=config.SMS_GATEWAY_TOKEN or None,
                sender=config.SMS_SENDER,
                name="sms-primary",
            )
        )
    if config.SMS_BACKUP_GATEWAY_URL:
        gateways.append(
            HttpSmsDelivery(
                config.SMS_BACKUP_GATEWAY_URL,
                token=config.SMS_BACKUP_GATEWAY_TOKEN or None,
                sender=config.SMS_SENDER,
                name="sms-backup",
            )
        )
    if not gateways:
        sms: DeliveryAdapter = console
    elif len(gateways) == 1:
        sms = gateways[0]
    else:
        sms = FallbackDelivery(gateways)

    return ChannelRouter(email=email, sms=sms)
