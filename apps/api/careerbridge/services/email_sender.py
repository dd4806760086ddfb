"""Transactional email delivery via the Resend REST API."""

from __future__ import annotations

import html as html_module
import logging
import re
from typing import Protocol

import httpx

from careerbridge.core.errors import IntegrationError
from careerbridge.services.http_service import DEFAULT_RETRY_STATUSES, request_with_retries

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_MAX_ATTEMPTS = 3
RESEND_RETRY_BASE_DELAY = 0.5
RESEND_RETRY_MAX_DELAY = 4.0
RESEND_TIMEOUT_SECONDS = 20.0


class EmailSender(Protocol):
    async def send(self, *, to: str, subject: str, html: str, text: str | None = None) -> str:
        """Deliver one email and return the provider message id."""


def html_to_text(content: str) -> str:
    """Plain-text alternative for inbox previews."""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", "", content, flags=re.DOTALL | re.I)
    text = re.sub(r"<br\s*/?>|</p>|</h[1-6]>", "\n", text, flags=re.I)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\s*\n\s*", "\n", text).strip()
    return html_module.unescape(text)


class ResendEmailSender:
    """Sends through Resend; one instance per process."""

    def __init__(self, api_key: str, from_email: str):
        self.api_key = api_key
        self.from_email = from_email

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, *, to: str, subject: str, html: str, text: str | None = None) -> str:
        if not self.is_configured():
            raise IntegrationError("Email provider not configured", code="EMAIL_NOT_CONFIGURED")

        payload: dict[str, object] = {
            "from": self.from_email,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text or html_to_text(html),
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=RESEND_TIMEOUT_SECONDS) as client:

                async def request_fn() -> httpx.Response:
                    return await client.post(RESEND_SEND_URL, json=payload, headers=headers)

                response = await request_with_retries(
                    request_fn,
                    max_attempts=RESEND_MAX_ATTEMPTS,
                    base_delay=RESEND_RETRY_BASE_DELAY,
                    max_delay=RESEND_RETRY_MAX_DELAY,
                    retry_statuses=DEFAULT_RETRY_STATUSES,
                )
        except httpx.TimeoutException as exc:
            raise IntegrationError("Email provider timed out", code="EMAIL_TIMEOUT") from exc
        except httpx.RequestError as exc:
            raise IntegrationError(f"Email provider unreachable: {exc}", code="EMAIL_FAILED") from exc

        if response.status_code >= 400:
            logger.warning("Resend rejected email: status=%s", response.status_code)
            raise IntegrationError(
                f"Resend error {response.status_code}: {response.text[:200]}",
                code="EMAIL_FAILED",
            )

        message_id = response.json().get("id", "")
        logger.info("Email sent via Resend: message_id=%s", message_id)
        return message_id
