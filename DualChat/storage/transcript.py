"""
DualChat Transcript - the append-only chat record.

Holds every user message, agent reply and system notification of a chat in
order. The discussion engine writes to it through two narrow interfaces:

- TranscriptSink.append(): agent and user messages
- DiagnosticSink.notify(): system notifications (progress, retries, failures)

Both are implemented by Transcript; tests can swap in their own recorders.
"""

from __future__ import annotations

import json
import logging
from typing import Callable, Iterable, Optional, Protocol

from ..agents.prompts import WELCOME_PREFIX
from ..core.models import ImagePart, Message, MessagePurpose, Sender

logger = logging.getLogger("dualchat.transcript")

MessageListener = Callable[[Message], None]


class TranscriptSink(Protocol):
    def append(self, message: Message) -> None: ...


class DiagnosticSink(Protocol):
    def notify(self, text: str) -> None: ...


class Transcript:
    """
    Ordered list of Messages with change listeners.

    Messages are immutable. The welcome banner is the only entry that is ever
    replaced, by refresh_welcome() when settings change.
    """

    def __init__(self, messages: Optional[Iterable[Message]] = None):
        self._messages: list[Message] = list(messages or [])
        self._listeners: list[MessageListener] = []

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def subscribe(self, listener: MessageListener) -> None:
        """Call ``listener`` for every message appended from now on."""
        self._listeners.append(listener)

    # ========== Writing ==========

    def append(self, message: Message) -> None:
        self._messages.append(message)
        for listener in self._listeners:
            listener(message)

    def add(
        self,
        text: str,
        sender: Sender,
        purpose: MessagePurpose,
        duration_ms: Optional[float] = None,
        thoughts: Optional[str] = None,
        image: Optional[ImagePart] = None,
    ) -> Message:
        message = Message(
            text=text,
            sender=sender,
            purpose=purpose,
            duration_ms=duration_ms,
            thoughts=thoughts,
            image=image,
        )
        self.append(message)
        return message

    def notify(self, text: str) -> None:
        """System notification."""
        logger.debug("notify: %s", text)
        self.add(text, Sender.SYSTEM, MessagePurpose.SYSTEM_NOTIFICATION)

    def clear(self) -> None:
        self._messages.clear()

    # ========== Welcome banner ==========

    def find_welcome(self) -> Optional[Message]:
        for message in self._messages:
            if message.sender == Sender.SYSTEM and message.text.startswith(WELCOME_PREFIX):
                return message
        return None

    def refresh_welcome(self, text: str) -> bool:
        """Swap the banner for a copy with new text. Returns False if there is none."""
        current = self.find_welcome()
        if current is None:
            return False
        index = self._messages.index(current)
        self._messages[index] = current.model_copy(update={"text": text})
        return True

    # ========== Serialization ==========

    def to_json(self) -> str:
        return json.dumps([m.model_dump(mode="json") for m in self._messages], indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "Transcript":
        """Parse a JSON array of messages. Blank input is an empty transcript."""
        if not text.strip():
            return cls()
        data = json.loads(text)
        if not isinstance(data, list):
            raise ValueError("Transcript JSON must be an array of messages")
        return cls(Message.model_validate(item) for item in data)
