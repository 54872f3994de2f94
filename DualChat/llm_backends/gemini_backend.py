from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from ..core.models import ImagePart, ThinkingConfig
from .base import ErrorKind, GenerationResult, LLMBackend, error_message_from_body

logger = logging.getLogger("dualchat.backend.gemini")

DEFAULT_GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com"
API_VERSION = "v1beta"

INVALID_KEY_MARKERS = ("API key not valid", "API_KEY_INVALID", "permission-denied", "PERMISSION_DENIED")
QUOTA_MARKERS = ("Quota exceeded", "RESOURCE_EXHAUSTED")


def normalize_endpoint(endpoint: Optional[str]) -> str:
    """
    Base URL for a custom Gemini endpoint.

    Strips a trailing slash and a trailing API version segment, since the
    request path already carries /v1beta.
    """
    base = (endpoint or "").strip() or DEFAULT_GEMINI_ENDPOINT
    base = base.rstrip("/")
    for version in ("/v1beta", "/v1"):
        if base.endswith(version):
            base = base[: -len(version)]
            break
    return base


class GeminiBackend(LLMBackend):
    """
    Google Generative Language REST backend using HTTPX.

    Features:
    - Custom endpoint (proxies) with version de-duplication
    - Thinking budget / level, with thought parts returned separately
    - Inline image input
    """

    provider = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        endpoint: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = (api_key or "").strip() or None
        self.endpoint = normalize_endpoint(endpoint)
        super().__init__(self.endpoint, timeout=timeout, transport=transport)

    def _build_payload(
        self,
        prompt: str,
        system_instruction: Optional[str],
        image: Optional[ImagePart],
        thinking_config: Optional[ThinkingConfig],
    ) -> dict[str, Any]:
        parts: list[dict[str, Any]] = []
        if image is not None:
            parts.append({"inlineData": {"mimeType": image.mime_type, "data": image.data}})
        parts.append({"text": prompt})

        payload: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if thinking_config is not None:
            thinking: dict[str, Any] = {"includeThoughts": True}
            if thinking_config.budget is not None:
                thinking["thinkingBudget"] = thinking_config.budget
            if thinking_config.level is not None:
                thinking["thinkingLevel"] = thinking_config.level
            payload["generationConfig"] = {"thinkingConfig": thinking}
        return payload

    @staticmethod
    def _classify(status_code: int, message: str) -> ErrorKind:
        if status_code in (401, 403) or any(m in message for m in INVALID_KEY_MARKERS):
            return ErrorKind.INVALID_CREDENTIAL
        if status_code == 429 or any(m in message for m in QUOTA_MARKERS):
            return ErrorKind.QUOTA_EXCEEDED
        return ErrorKind.OTHER

    async def agenerate(
        self,
        prompt: str,
        model_id: str,
        system_instruction: Optional[str] = None,
        image: Optional[ImagePart] = None,
        thinking_config: Optional[ThinkingConfig] = None,
    ) -> GenerationResult:
        start_time = time.perf_counter()

        if not self.api_key:
            return self._error(
                ErrorKind.MISSING_CREDENTIAL,
                "Gemini API key is not configured.",
                start_time,
            )

        payload = self._build_payload(prompt, system_instruction, image, thinking_config)

        try:
            resp = await self._client.post(
                f"/{API_VERSION}/models/{model_id}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self.api_key},
            )
        except httpx.TimeoutException as e:
            logger.warning("Gemini request timed out: %s", e)
            return self._error(ErrorKind.OTHER, f"Request timed out: {e}", start_time)
        except httpx.RequestError as e:
            logger.warning("Gemini request failed: %s", e)
            return self._error(ErrorKind.OTHER, f"Error communicating with the AI: {e}", start_time)

        if resp.status_code != 200:
            message = error_message_from_body(resp)
            kind = self._classify(resp.status_code, message + " " + resp.text[:1000])
            logger.warning("Gemini API error (%s): %s", resp.status_code, message)
            return self._error(kind, message, start_time)

        try:
            data = resp.json()
        except ValueError:
            return self._error(ErrorKind.OTHER, "Invalid JSON in Gemini response.", start_time)

        text = ""
        thoughts = ""
        candidates = data.get("candidates") or []
        if candidates:
            for part in (candidates[0].get("content") or {}).get("parts") or []:
                if part.get("thought"):
                    thoughts += part.get("text", "")
                else:
                    text += part.get("text", "")
        else:
            logger.warning("Gemini returned no candidates: %s", data.get("promptFeedback"))

        return GenerationResult(
            text=text,
            thoughts=thoughts or None,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
