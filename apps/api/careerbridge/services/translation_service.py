"""
Translation client (Google Cloud Translation v2 REST).

Message bodies are stored bilingually as {"en": ..., "ja": ...}. The source
language is detected from the script: any kana or CJK ideograph means
Japanese, otherwise English.
"""

from __future__ import annotations

import logging
import re

import httpx

from careerbridge.core.errors import IntegrationError
from careerbridge.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

GOOGLE_TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"
TRANSLATE_TIMEOUT_SECONDS = 10.0
TRANSLATE_MAX_ATTEMPTS = 2
CACHE_MAX_ENTRIES = 2048

JAPANESE_PATTERN = re.compile(r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")


def detect_language(text: str) -> str:
    """Return "ja" when the text contains Japanese script, else "en"."""
    return "ja" if JAPANESE_PATTERN.search(text) else "en"


class TranslationClient:
    """
    Thin async client with a per-process memo of completed translations.

    The cache only holds pure (text, source, target) -> translation results,
    so sharing it across requests is safe.
    """

    def __init__(self, api_key: str):
        self.api_key = api_key
        self._cache: dict[tuple[str, str, str], str] = {}

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def translate(self, text: str, target: str, source: str | None = None) -> str:
        source = source or detect_language(text)
        if source == target or not text.strip():
            return text

        key = (text, source, target)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if not self.is_configured():
            raise IntegrationError("Translation not configured", code="TRANSLATION_NOT_CONFIGURED")

        payload = {"q": text, "target": target, "source": source, "format": "text"}
        try:
            async with httpx.AsyncClient(timeout=TRANSLATE_TIMEOUT_SECONDS) as client:

                async def request_fn() -> httpx.Response:
                    return await client.post(
                        GOOGLE_TRANSLATE_URL, params={"key": self.api_key}, json=payload
                    )

                response = await request_with_retries(
                    request_fn, max_attempts=TRANSLATE_MAX_ATTEMPTS
                )
        except httpx.RequestError as exc:
            raise IntegrationError(f"Translation request failed: {exc}") from exc

        if response.status_code >= 400:
            raise IntegrationError(f"Translation error {response.status_code}")

        try:
            translated = response.json()["data"]["translations"][0]["translatedText"]
        except (KeyError, IndexError, ValueError) as exc:
            raise IntegrationError("Malformed translation response") from exc

        if len(self._cache) >= CACHE_MAX_ENTRIES:
            self._cache.clear()
        self._cache[key] = translated
        return translated

    async def create_multilingual_content(self, text: str) -> dict[str, str]:
        """Return {"en": ..., "ja": ...} with the original text on its own side."""
        source = detect_language(text)
        if source == "ja":
            return {"en": await self.translate(text, "en", "ja"), "ja": text}
        return {"en": text, "ja": await self.translate(text, "ja", "en")}
