from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

from ..core.models import ImagePart, ThinkingConfig


class ErrorKind(str, Enum):
    """Classified failure of a model call."""
    MISSING_CREDENTIAL = "missing-credential"
    INVALID_CREDENTIAL = "invalid-credential"
    QUOTA_EXCEEDED = "quota-exceeded"
    ABORTED = "aborted"
    OTHER = "other"


@dataclass
class GenerationResult:
    """
    Outcome of one model call.

    Backends never raise for provider or network failures: they return a
    result with ``error_kind`` set and leave retry decisions to the caller.
    """
    text: str
    duration_ms: float
    thoughts: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None


class LLMBackend(ABC):
    """
    Abstract interface for all model providers.

    One shared httpx.AsyncClient per backend; close it with aclose().
    """

    provider: str = "unknown"

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @abstractmethod
    async def agenerate(
        self,
        prompt: str,
        model_id: str,
        system_instruction: Optional[str] = None,
        image: Optional[ImagePart] = None,
        thinking_config: Optional[ThinkingConfig] = None,
    ) -> GenerationResult:
        ...

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _error(
        kind: ErrorKind,
        message: str,
        start_time: float,
    ) -> GenerationResult:
        return GenerationResult(
            text=message,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            error_kind=kind,
            error_message=message,
        )


def error_message_from_body(resp: httpx.Response) -> str:
    """Best-effort error text from a provider error response."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:500] or resp.reason_phrase or f"Request failed with status {resp.status_code}"
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return str(data)[:500]
