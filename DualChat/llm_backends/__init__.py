"""
LLM Backend implementations for DualChat.

- GeminiBackend: Google Generative Language REST API
- OpenAIBackend: any OpenAI-compatible Chat Completions endpoint
- create_backend: pick the backend for the configured provider
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import httpx

from .base import ErrorKind, GenerationResult, LLMBackend
from .gemini_backend import GeminiBackend
from .openai_backend import OpenAIBackend

if TYPE_CHECKING:
    from ..config.settings import ChatSettings


def create_backend(
    settings: "ChatSettings",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> LLMBackend:
    """Backend for ``settings.provider``."""
    if settings.provider == "openai":
        return OpenAIBackend(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.request_timeout,
            transport=transport,
        )
    return GeminiBackend(
        api_key=settings.gemini_api_key,
        endpoint=settings.gemini_endpoint,
        timeout=settings.request_timeout,
        transport=transport,
    )


__all__ = [
    "ErrorKind",
    "GenerationResult",
    "LLMBackend",
    "GeminiBackend",
    "OpenAIBackend",
    "create_backend",
]
