from __future__ import annotations

import logging
import pathlib
from typing import Optional

from .transcript import Transcript

logger = logging.getLogger("dualchat.storage")

TRANSCRIPT_FILE = "transcript.json"
NOTEPAD_FILE = "notepad.md"


class StateStore:
    """
    Persists the chat between runs.

    Two files in ``state_dir``:
    - transcript.json: JSON array of messages (ISO timestamps)
    - notepad.md: the current notepad text

    A missing or empty file is a cold start, not an error.
    """

    def __init__(self, state_dir: pathlib.Path | str = None):
        if state_dir is None:
            state_dir = pathlib.Path.home() / ".dualchat"
        self.state_dir = pathlib.Path(state_dir)

    @property
    def transcript_path(self) -> pathlib.Path:
        return self.state_dir / TRANSCRIPT_FILE

    @property
    def notepad_path(self) -> pathlib.Path:
        return self.state_dir / NOTEPAD_FILE

    def load_transcript(self) -> Transcript:
        """Load the saved transcript, or an empty one."""
        if not self.transcript_path.exists():
            return Transcript()
        with open(self.transcript_path, "r", encoding="utf-8") as f:
            transcript = Transcript.from_json(f.read())
        logger.info("Loaded %d messages from %s", len(transcript), self.transcript_path)
        return transcript

    def load_notepad(self) -> Optional[str]:
        """Saved notepad text, or None on a cold start."""
        if not self.notepad_path.exists():
            return None
        content = self.notepad_path.read_text(encoding="utf-8")
        return content if content.strip() else None

    def save(self, transcript: Transcript, notepad_content: str) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        with open(self.transcript_path, "w", encoding="utf-8") as f:
            f.write(transcript.to_json())
        self.notepad_path.write_text(notepad_content, encoding="utf-8")

    def clear(self) -> None:
        """Delete both files."""
        for path in (self.transcript_path, self.notepad_path):
            if path.exists():
                path.unlink()
