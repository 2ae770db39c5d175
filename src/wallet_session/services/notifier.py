"""Out-of-band challenge delivery through Brevo."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from wallet_session.core.errors import ConfigurationError, DeliveryError
from wallet_session.core.settings import Settings, settings
from wallet_session.services.challenge import Channel

logger = logging.getLogger(__name__)


class ChallengeNotifier(Protocol):
    """Delivers a challenge to the identity the session was requested for."""

    async def send_challenge(self, destination: str, channel: Channel, challenge: int) -> None: ...


class BrevoNotifier:
    """Sends one-time codes by transactional email or SMS."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = config or settings
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        if not self._settings.brevo_api_key:
            raise ConfigurationError("BREVO_API_KEY is not set")
        return {
            "api-key": self._settings.brevo_api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _email_payload(self, email: str, otp: int) -> dict[str, Any]:
        return {
            "sender": {
                "email": self._settings.brevo_sender_email,
                "name": self._settings.brevo_sender_name,
            },
            "templateId": self._settings.brevo_email_template_id,
            "subject": self._settings.brevo_email_subject,
            "params": {"OTP": otp},
            "messageVersions": [{"to": [{"email": email}]}],
        }

    def _sms_payload(self, phone: str, otp: int) -> dict[str, Any]:
        return {
            "sender": self._settings.brevo_sms_sender,
            "type": "transactional",
            "recipient": phone.replace("+", ""),
            "tag": "logincode",
            "unicodeEnabled": True,
            "organisationPrefix": self._settings.brevo_sender_name,
            "content": f"Your login code is {otp}",
        }

    async def send_challenge(self, destination: str, channel: Channel, challenge: int) -> None:
        """Deliver ``challenge`` to ``destination``.

        Raises:
            DeliveryError: If Brevo does not accept the message.
            ConfigurationError: If the API key is missing.
        """
        if channel == "email":
            path, payload = "/v3/smtp/email", self._email_payload(destination, challenge)
        elif channel == "sms":
            path, payload = "/v3/transactionalSMS/sms", self._sms_payload(destination, challenge)
        else:
            raise DeliveryError(f"Unsupported channel: {channel}")

        headers = self._headers()
        try:
            async with httpx.AsyncClient(
                base_url=self._settings.brevo_base_url,
                timeout=httpx.Timeout(self._settings.notifier_timeout_seconds),
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Failed to send {channel}: {exc}") from exc

        if not response.is_success:
            raise DeliveryError(f"Failed to send {channel} ({response.status_code})")
        logger.info("Delivered %s challenge", channel)
