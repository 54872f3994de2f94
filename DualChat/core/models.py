"""
Core data model for DualChat.

Provides:
- Sender / MessagePurpose: who said something and why
- Message: immutable transcript record
- NotepadAction: closed tagged union of the six notepad edit actions
- ParsedAIResponse: decoded model reply (spoken text + notepad edits + stop signal)
- StepId / FailedStepState: structural identity of a model call and its
  frozen retry context
"""

from __future__ import annotations

import base64
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError


class Sender(str, Enum):
    """Author of a transcript message."""
    USER = "User"
    COGNITO = "Cognito"
    MUSE = "Muse"
    SYSTEM = "System"


class MessagePurpose(str, Enum):
    """Why a message exists in the transcript."""
    USER_INPUT = "user-input"
    SYSTEM_NOTIFICATION = "system-notification"
    COGNITO_TO_MUSE = "cognito-to-muse"
    MUSE_TO_COGNITO = "muse-to-cognito"
    FINAL_RESPONSE = "final-response"


class DiscussionMode(str, Enum):
    """How the discussion loop decides to stop."""
    FIXED_TURNS = "fixed"
    AI_DRIVEN = "ai-driven"


class ImagePart(BaseModel):
    """Inline image attached to a user query."""

    mime_type: str = Field(..., description="MIME type, e.g. image/png")
    data: str = Field(..., description="Base64-encoded image bytes")
    name: Optional[str] = Field(default=None, description="Original file name")

    model_config = {"frozen": True, "extra": "ignore"}

    MEDIA_TYPES: ClassVar[dict[str, str]] = {
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".gif": "image/gif",
        ".webp": "image/webp",
    }

    @classmethod
    def from_file(cls, image_path: str | Path) -> "ImagePart":
        """
        Load an image file as base64.

        Supports: PNG, JPEG, GIF, WebP
        """
        path = Path(image_path)
        if not path.exists():
            raise FileNotFoundError(f"Image not found: {image_path}")

        media_type = cls.MEDIA_TYPES.get(path.suffix.lower(), "image/png")
        img_b64 = base64.standard_b64encode(path.read_bytes()).decode("utf-8")
        return cls(mime_type=media_type, data=img_b64, name=path.name)

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class Message(BaseModel):
    """
    A single transcript entry.

    Frozen: the transcript is append-only. The welcome banner is the one
    entry that gets replaced (by a copy) when settings change.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Unique message id")
    text: str = Field(..., description="Message body")
    sender: Sender = Field(..., description="Who produced the message")
    purpose: MessagePurpose = Field(..., description="Role of the message in the flow")
    timestamp: datetime = Field(default_factory=datetime.now, description="Creation time")
    duration_ms: Optional[float] = Field(default=None, description="Generation time for AI messages")
    thoughts: Optional[str] = Field(default=None, description="Reasoning trace, if the model returned one")
    image: Optional[ImagePart] = Field(default=None, description="Attached image (user messages)")

    model_config = {"frozen": True, "extra": "ignore"}


# === Notepad actions (wire format) ===

class ReplaceAllAction(BaseModel):
    action: Literal["replace_all"] = "replace_all"
    content: str

    model_config = {"extra": "ignore"}


class AppendAction(BaseModel):
    action: Literal["append"] = "append"
    content: str

    model_config = {"extra": "ignore"}


class PrependAction(BaseModel):
    action: Literal["prepend"] = "prepend"
    content: str

    model_config = {"extra": "ignore"}


class ReplaceSectionAction(BaseModel):
    action: Literal["replace_section"] = "replace_section"
    header: str
    content: str

    model_config = {"extra": "ignore"}


class AppendToSectionAction(BaseModel):
    action: Literal["append_to_section"] = "append_to_section"
    header: str
    content: str

    model_config = {"extra": "ignore"}


class SearchAndReplaceAction(BaseModel):
    action: Literal["search_and_replace"] = "search_and_replace"
    find: str
    replacement: str
    all: Optional[bool] = None

    model_config = {"extra": "ignore"}


NotepadAction = Annotated[
    Union[
        ReplaceAllAction,
        AppendAction,
        PrependAction,
        ReplaceSectionAction,
        AppendToSectionAction,
        SearchAndReplaceAction,
    ],
    Field(discriminator="action"),
]

NOTEPAD_ACTION_KINDS = (
    "replace_all",
    "append",
    "prepend",
    "replace_section",
    "append_to_section",
    "search_and_replace",
)

_ACTION_ADAPTER: TypeAdapter = TypeAdapter(NotepadAction)


class InvalidAction(BaseModel):
    """A raw modification that did not validate as any known action."""

    index: int = Field(..., description="Position in the original batch (0-based)")
    reason: str = Field(..., description="Why validation failed")
    raw: Any = Field(default=None, description="The raw JSON value")

    model_config = {"frozen": True}


def parse_notepad_action(raw: Any, index: int = 0) -> NotepadAction | InvalidAction:
    """Validate one raw JSON modification. Never raises."""
    if not isinstance(raw, dict):
        return InvalidAction(index=index, reason="modification is not a JSON object", raw=raw)

    kind = raw.get("action")
    if kind not in NOTEPAD_ACTION_KINDS:
        return InvalidAction(index=index, reason=f"unknown action {kind!r}", raw=raw)

    try:
        return _ACTION_ADAPTER.validate_python(raw)
    except ValidationError as e:
        missing = ", ".join(".".join(str(p) for p in err["loc"][1:]) or kind for err in e.errors())
        return InvalidAction(index=index, reason=f"invalid fields for {kind!r}: {missing}", raw=raw)


class NotepadUpdate(BaseModel):
    """Notepad part of a parsed reply."""

    modifications: list[Union[NotepadAction, InvalidAction]] = Field(default_factory=list)
    error: Optional[str] = Field(default=None, description="Protocol decode error, if any")


class ParsedAIResponse(BaseModel):
    """Decoded model reply."""

    spoken_text: str
    notepad_update: Optional[NotepadUpdate] = None
    discussion_should_end: bool = False


# === Step identity and retry state ===

class StepKind(str, Enum):
    """Which phase of the flow a model call belongs to."""
    INITIAL_OPENING = "initial_opening"
    MUSE_TURN = "muse_turn"
    COGNITO_TURN = "cognito_turn"
    FINAL_SYNTHESIS = "final_synthesis"


class StepId(BaseModel):
    """Structural identity of a model call."""

    kind: StepKind
    turn: Optional[int] = None

    model_config = {"frozen": True}

    @classmethod
    def opening(cls) -> "StepId":
        return cls(kind=StepKind.INITIAL_OPENING)

    @classmethod
    def muse(cls, turn: int) -> "StepId":
        return cls(kind=StepKind.MUSE_TURN, turn=turn)

    @classmethod
    def cognito(cls, turn: int) -> "StepId":
        return cls(kind=StepKind.COGNITO_TURN, turn=turn)

    @classmethod
    def final(cls) -> "StepId":
        return cls(kind=StepKind.FINAL_SYNTHESIS)

    @property
    def label(self) -> str:
        """Human-readable identifier used in notifications."""
        if self.kind == StepKind.INITIAL_OPENING:
            return "cognito-initial-to-muse"
        if self.kind == StepKind.MUSE_TURN:
            return f"muse-reply-to-cognito-turn-{self.turn}"
        if self.kind == StepKind.COGNITO_TURN:
            return f"cognito-reply-to-muse-turn-{self.turn}"
        return "cognito-final-answer"


class ThinkingConfig(BaseModel):
    """Extended-reasoning settings for models that support them."""

    budget: Optional[int] = None
    level: Optional[Literal["LOW", "HIGH"]] = None

    model_config = {"frozen": True}


class FailedStepState(BaseModel):
    """
    Everything needed to redo a failed model call and resume the flow.

    Created when automatic retries are exhausted. Exactly one can exist:
    it is the single suspended point of the session.
    """

    step: StepId
    prompt: str
    model_name: str
    system_instruction: Optional[str] = None
    image: Optional[ImagePart] = None
    sender: Sender
    purpose: MessagePurpose
    thinking_config: Optional[ThinkingConfig] = None
    user_input_for_flow: str = ""
    image_for_flow: Optional[ImagePart] = None
    discussion_log_before_failure: list[str] = Field(default_factory=list)
    current_turn_index_for_resume: Optional[int] = None
    previous_ai_signaled_stop_for_resume: Optional[bool] = None


class ApiKeyStatus(BaseModel):
    """Credential side channel for the host UI banner."""

    is_missing: bool = False
    is_invalid: bool = False
    message: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return not (self.is_missing or self.is_invalid)
