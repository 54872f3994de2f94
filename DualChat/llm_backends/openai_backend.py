from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from ..core.models import ImagePart, ThinkingConfig
from .base import ErrorKind, GenerationResult, LLMBackend, error_message_from_body

logger = logging.getLogger("dualchat.backend.openai")


class OpenAIBackend(LLMBackend):
    """
    Minimal OpenAI-compatible Chat Completions backend using HTTPX.

    Works with any server exposing /chat/completions. Thinking config is
    not supported and is ignored.
    """

    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = (api_key or "").strip() or None
        self.base_url = base_url.rstrip("/")
        super().__init__(self.base_url, timeout=timeout, transport=transport)

    @staticmethod
    def _build_messages(
        prompt: str,
        system_instruction: Optional[str],
        image: Optional[ImagePart],
    ) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})

        if image is not None and image.data:
            content: Any = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image.data_url}},
            ]
        else:
            content = prompt
        messages.append({"role": "user", "content": content})
        return messages

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
                "OpenAI API key is not configured.",
                start_time,
            )

        payload = {
            "model": model_id,
            "messages": self._build_messages(prompt, system_instruction, image),
        }

        try:
            resp = await self._client.post(
                "/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.TimeoutException as e:
            logger.warning("OpenAI request timed out: %s", e)
            return self._error(ErrorKind.OTHER, f"Request timed out: {e}", start_time)
        except httpx.RequestError as e:
            logger.warning("OpenAI request failed: %s", e)
            return self._error(ErrorKind.OTHER, f"Error communicating with the AI: {e}", start_time)

        if resp.status_code != 200:
            message = error_message_from_body(resp)
            if resp.status_code in (401, 403):
                kind = ErrorKind.INVALID_CREDENTIAL
            elif resp.status_code == 429:
                kind = ErrorKind.QUOTA_EXCEEDED
            else:
                kind = ErrorKind.OTHER
            logger.warning("OpenAI API error (%s): %s", resp.status_code, message)
            return self._error(kind, message, start_time)

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            content = None
        if not content:
            logger.warning("OpenAI response had no message content")
            return self._error(ErrorKind.OTHER, "Invalid response structure from the AI.", start_time)

        return GenerationResult(
            text=content,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
