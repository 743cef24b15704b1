"""Thin client for the hosted text-generation endpoint behind the study chatbot."""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from studyhub.config import settings
from studyhub.exceptions import ChatbotUnavailable, ValidationFailed

logger = logging.getLogger(__name__)

SYSTEM_PREAMBLE = (
    "You are a friendly study assistant for school students. "
    "Answer clearly and concisely, and explain the reasoning behind answers."
)


def _endpoint(model: str) -> str:
    return f"{settings.CHATBOT_BASE_URL.rstrip('/')}/models/{model}:generateContent"


def _extract_text(payload: dict) -> str:
    candidates = payload.get("candidates") or []
    for candidate in candidates:
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts).strip()
        if text:
            return text
    return ""


def ask(message: str, *, client: Optional[httpx.Client] = None) -> dict:
    question = (message or "").strip()
    if not question:
        raise ValidationFailed("message", "Please type a question")
    if not settings.CHATBOT_API_KEY:
        raise ChatbotUnavailable("not configured")

    model = settings.CHATBOT_MODEL
    body = {
        "systemInstruction": {"parts": [{"text": SYSTEM_PREAMBLE}]},
        "contents": [{"role": "user", "parts": [{"text": question}]}],
        "generationConfig": {
            "temperature": 0.7,
            "maxOutputTokens": settings.CHATBOT_MAX_OUTPUT_TOKENS,
        },
    }

    owns_client = client is None
    http = client or httpx.Client(timeout=settings.CHATBOT_TIMEOUT_SECONDS)
    try:
        response = http.post(
            _endpoint(model),
            params={"key": settings.CHATBOT_API_KEY},
            json=body,
        )
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as exc:
        logger.warning("Chatbot endpoint returned %s", exc.response.status_code)
        raise ChatbotUnavailable(f"upstream status {exc.response.status_code}") from exc
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Chatbot request failed: %s", exc)
        raise ChatbotUnavailable("upstream request failed") from exc
    finally:
        if owns_client:
            http.close()

    reply = _extract_text(payload)
    if not reply:
        raise ChatbotUnavailable("empty response")
    return {"reply": reply, "model": model}
