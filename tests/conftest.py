import asyncio
import json
from typing import Any, Optional, Union

import pytest

from DualChat.config.settings import ChatSettings
from DualChat.core.models import ImagePart, ThinkingConfig
from DualChat.llm_backends.base import ErrorKind, GenerationResult

HANG = object()


def reply(text: str, modifications: Optional[list[dict]] = None, complete: bool = False) -> str:
    """A model reply in the wire format: spoken text plus a fenced JSON block."""
    block = {"notepad_modifications": modifications or [], "discussion_complete": complete}
    return f"{text}\n\n```json\n{json.dumps(block)}\n```"


def failure(kind: ErrorKind = ErrorKind.OTHER, message: str = "upstream 500") -> GenerationResult:
    return GenerationResult(text=message, duration_ms=1.0, error_kind=kind, error_message=message)


class ScriptedBackend:
    """
    Fake model backend that plays back a queue of results.

    Queue entries:
    - str: a successful reply with that text
    - GenerationResult: returned as is
    - Exception instance: raised from agenerate
    - HANG: never returns (until cancelled)
    """

    def __init__(self, *script: Union[str, GenerationResult, Exception, object]):
        self.script = list(script)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def push(self, *entries) -> None:
        self.script.extend(entries)

    async def agenerate(
        self,
        prompt: str,
        model_id: str,
        system_instruction: Optional[str] = None,
        image: Optional[ImagePart] = None,
        thinking_config: Optional[ThinkingConfig] = None,
    ) -> GenerationResult:
        self.calls.append(
            {
                "prompt": prompt,
                "model_id": model_id,
                "system_instruction": system_instruction,
                "image": image,
                "thinking_config": thinking_config,
            }
        )
        if not self.script:
            raise AssertionError(f"Unexpected model call #{len(self.calls)}")
        entry = self.script.pop(0)
        if entry is HANG:
            await asyncio.Event().wait()
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, GenerationResult):
            return entry
        return GenerationResult(text=entry, duration_ms=5.0)

    async def wait_for_calls(self, count: int) -> None:
        while len(self.calls) < count:
            await asyncio.sleep(0)

    async def aclose(self) -> None:
        self.closed = True


class NoticeRecorder:
    """Diagnostic sink that keeps notifications in a list."""

    def __init__(self):
        self.notices: list[str] = []

    def notify(self, text: str) -> None:
        self.notices.append(text)


@pytest.fixture
def settings() -> ChatSettings:
    return ChatSettings(
        gemini_api_key="test-key",
        cognito_model="gemini-2.5-flash",
        muse_model="gemini-2.5-flash",
        fixed_turns=2,
        max_auto_retries=2,
        retry_delay_base_ms=0,
    )


@pytest.fixture
def ai_settings(settings: ChatSettings) -> ChatSettings:
    from DualChat.core.models import DiscussionMode

    return settings.with_overrides(discussion_mode=DiscussionMode.AI_DRIVEN)


@pytest.fixture
def notices() -> NoticeRecorder:
    return NoticeRecorder()
