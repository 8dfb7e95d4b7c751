"""Outbound messaging through the WhatsApp Cloud API."""
from __future__ import annotations

from typing import Any

import requests
from flask import Flask

MAX_BUTTON_TITLE = 20
MEDIA_TYPES = {"image", "audio", "video", "document"}


class GatewayError(Exception):
    """Raised when the Cloud API rejects a request or cannot be reached."""


class CloudApiGateway:
    """Send text, media and button prompts to a contact.

    Every public ``send_*`` method reports success as a boolean; failures are
    logged through the application logger and never retried here.
    """

    def __init__(self, app: Flask) -> None:
        self._app = app
        self._base_url = app.config.get("WHATSAPP_API_BASE_URL", "").rstrip("/")
        self._access_token = app.config.get("WHATSAPP_ACCESS_TOKEN", "")
        self._timeout = float(app.config.get("WHATSAPP_TIMEOUT", 10))
        self._session = requests.Session()

    def send_text(self, phone_number_id: str | None, to: str, text: str) -> bool:
        payload = {"type": "text", "text": {"body": text}}
        return self._deliver(phone_number_id, to, payload)

    def send_media(
        self,
        phone_number_id: str | None,
        to: str,
        media_url: str,
        media_type: str = "image",
        caption: str | None = None,
    ) -> bool:
        if media_type not in MEDIA_TYPES:
            media_type = "document"
        media: dict[str, Any] = {"link": media_url}
        # Audio messages do not accept captions.
        if caption and media_type != "audio":
            media["caption"] = caption
        payload = {"type": media_type, media_type: media}
        return self._deliver(phone_number_id, to, payload)

    def send_choice_prompt(
        self,
        phone_number_id: str | None,
        to: str,
        text: str,
        choices: list[tuple[str, str]],
    ) -> bool:
        """Send up to three reply buttons given as ``(id, title)`` pairs."""

        buttons = [
            {"type": "reply", "reply": {"id": choice_id, "title": title[:MAX_BUTTON_TITLE]}}
            for choice_id, title in choices[:3]
        ]
        payload = {
            "type": "interactive",
            "interactive": {
                "type": "button",
                "body": {"text": text or "-"},
                "action": {"buttons": buttons},
            },
        }
        return self._deliver(phone_number_id, to, payload)

    def _deliver(self, phone_number_id: str | None, to: str, payload: dict[str, Any]) -> bool:
        try:
            self._post(phone_number_id, to, payload)
        except GatewayError as exc:
            self._app.logger.warning("WhatsApp send to %s failed: %s", to, exc)
            return False
        return True

    def _post(self, phone_number_id: str | None, to: str, payload: dict[str, Any]) -> None:
        if not phone_number_id:
            raise GatewayError("tenant has no WhatsApp phone number configured")
        if not self._access_token:
            raise GatewayError("WHATSAPP_ACCESS_TOKEN is not configured")

        body = {"messaging_product": "whatsapp", "to": to, **payload}
        try:
            response = self._session.post(
                f"{self._base_url}/{phone_number_id}/messages",
                json=body,
                headers={"Authorization": f"Bearer {self._access_token}"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(str(exc)) from exc

        if not response.ok:
            raise GatewayError(f"HTTP {response.status_code}: {response.text[:200]}")


def get_gateway(app: Flask) -> CloudApiGateway:
    """Return the messaging gateway tied to the Flask app."""
    if "messaging_gateway" not in app.extensions:
        app.extensions["messaging_gateway"] = CloudApiGateway(app)
    return app.extensions["messaging_gateway"]
