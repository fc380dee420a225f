"""
Machine translation through the Google Cloud Translation REST API (v2).

Two operations are exposed:
  - translate(text, target, source="auto")       -> one string
  - translate_batch(texts, target, source="en")  -> strings aligned by position

Successful translations are cached forever (when a cache is supplied); only
cache misses are sent to the provider. Errors surface as
TranslationUnavailable (no API key) or TranslationFailed (request/payload
error) and are meant to be absorbed by the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Sequence

import httpx

from placefinder.cache import ResultCache
from placefinder.config import TranslationConfig, get_settings
from placefinder.errors import TranslationFailed, TranslationUnavailable

logger = logging.getLogger(__name__)

AUTO = "auto"


class Translator(Protocol):
    @property
    def available(self) -> bool: ...

    async def translate(self, text: str, target: str, source: str = AUTO) -> str: ...

    async def translate_batch(self, texts: Sequence[str], target: str, source: str = "en") -> list[str]: ...


class GoogleTranslator:
    def __init__(
        self,
        config: Optional[TranslationConfig] = None,
        cache: Optional[ResultCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or get_settings().translation
        self.cache = cache
        self._transport = transport

    @property
    def available(self) -> bool:
        return self.config.enabled

    async def translate(self, text: str, target: str, source: str = AUTO) -> str:
        source = source or AUTO
        return (await self.translate_batch([text], target, source))[0]

    async def translate_batch(self, texts: Sequence[str], target: str, source: str = "en") -> list[str]:
        if not self.available:
            raise TranslationUnavailable("Google Cloud Translation API key not configured")
        if not texts:
            return []

        source = source or AUTO
        results: list[Optional[str]] = [None] * len(texts)
        if self.cache is not None:
            for i, text in enumerate(texts):
                cached = await self.cache.get(self.cache.translation_key(source, target, text))
                if isinstance(cached, str):
                    results[i] = cached

        missing = [i for i, r in enumerate(results) if r is None]
        if missing:
            # Send each distinct text once
            distinct = list(dict.fromkeys(texts[i] for i in missing))
            translated = await self._request(distinct, target, source)
            by_text = dict(zip(distinct, translated))
            for i in missing:
                results[i] = by_text[texts[i]]
            if self.cache is not None:
                for text, value in by_text.items():
                    await self.cache.set(self.cache.translation_key(source, target, text), value, 0)
            logger.debug("Translated %d text(s) %s -> %s (%d from cache)",
                         len(distinct), source, target, len(texts) - len(missing))

        return [r if r is not None else texts[i] for i, r in enumerate(results)]

    async def _request(self, texts: list[str], target: str, source: str) -> list[str]:
        body: dict = {"q": texts, "target": target, "format": "text"}
        if source != AUTO:
            body["source"] = source

        attempts = max(1, self.config.max_retries)
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                async with httpx.AsyncClient(transport=self._transport, timeout=self.config.timeout) as client:
                    resp = await client.post(
                        self.config.api_url,
                        params={"key": self.config.api_key},
                        json=body,
                    )
                    resp.raise_for_status()
                    return self._parse(resp.json(), len(texts))

            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code != 429:
                    logger.error("Translation HTTP error: %s", e)
                    raise TranslationFailed(f"Failed to translate text: {e}") from e
                logger.warning("Translation provider rate limited (attempt %d/%d)", attempt + 1, attempts)

            except httpx.RequestError as e:
                last_error = e
                logger.warning("Translation request error (attempt %d/%d): %s", attempt + 1, attempts, e)

            except ValueError as e:
                raise TranslationFailed(f"Translation response is not JSON: {e}") from e

            if attempt + 1 < attempts:
                await asyncio.sleep(self.config.backoff_base * (2 ** attempt))

        raise TranslationFailed(f"Failed to translate text after {attempts} attempt(s): {last_error}")

    @staticmethod
    def _parse(payload: dict, expected: int) -> list[str]:
        try:
            translations = [t["translatedText"] for t in payload["data"]["translations"]]
        except (KeyError, TypeError) as e:
            raise TranslationFailed(f"Unexpected translation payload: {e}") from e
        if len(translations) != expected:
            raise TranslationFailed(
                f"Translation count mismatch: sent {expected}, got {len(translations)}"
            )
        return translations
