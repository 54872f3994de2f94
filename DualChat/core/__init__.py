"""
DualChat core: the message model, the reply protocol and the notepad engine.
"""

from .models import (
    ApiKeyStatus,
    DiscussionMode,
    FailedStepState,
    ImagePart,
    Message,
    MessagePurpose,
    NotepadAction,
    ParsedAIResponse,
    Sender,
    StepId,
    StepKind,
    ThinkingConfig,
)
from .notepad import INITIAL_NOTEPAD_CONTENT, Notepad, apply_modifications
from .response_parser import parse_ai_response

__all__ = [
    "ApiKeyStatus",
    "DiscussionMode",
    "FailedStepState",
    "ImagePart",
    "Message",
    "MessagePurpose",
    "NotepadAction",
    "ParsedAIResponse",
    "Sender",
    "StepId",
    "StepKind",
    "ThinkingConfig",
    "INITIAL_NOTEPAD_CONTENT",
    "Notepad",
    "apply_modifications",
    "parse_ai_response",
]
