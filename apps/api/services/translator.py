"""Content translation through the public Google Translate endpoint."""

from __future__ import annotations

from typing import Any, Dict

import httpx

from config import settings


class TranslationError(RuntimeError):
    """Raised when the translation provider fails or returns an unusable payload."""


def parse_translation_payload(payload: Any) -> Dict[str, str]:
    """Extract text and source language from the ``translate_a/single`` array format."""
    try:
        segments = payload[0] or []
        translated = "".join(str(segment[0]) for segment in segments if segment and segment[0])
    except (TypeError, IndexError, KeyError) as exc:
        raise TranslationError("Unexpected translation payload") from exc

    detected = "unknown"
    if isinstance(payload, list) and len(payload) > 2 and isinstance(payload[2], str):
        detected = payload[2]
    return {"translated_text": translated, "detected_language": detected}


async def translate_text(text: str, target_lang: str) -> Dict[str, str]:
    params = {
        "client": "gtx",
        "sl": "auto",
        "tl": target_lang,
        "dt": "t",
        "q": text,
    }
    try:
        async with httpx.AsyncClient(timeout=settings.TRANSLATE_TIMEOUT_SECONDS) as client:
            response = await client.get(settings.TRANSLATE_API_URL, params=params)
            response.raise_for_status()
            payload = response.json()
    except httpx.HTTPError as exc:
        raise TranslationError(str(exc) or exc.__class__.__name__) from exc
    except ValueError as exc:
        raise TranslationError("Translation provider returned invalid JSON") from exc
    return parse_translation_payload(payload)
