"""
Notepad engine: the shared Markdown document Cognito and Muse edit.

Two layers:
- apply_modifications(): pure patch application over a line-oriented view
  of the document. Errors are collected per action, never raised.
- Notepad: versioned state with undo/redo. Every committed edit batch is one
  history entry; committing from a rewound position drops the redo tail.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from .models import (
    AppendAction,
    AppendToSectionAction,
    InvalidAction,
    NotepadAction,
    ParsedAIResponse,
    PrependAction,
    ReplaceAllAction,
    ReplaceSectionAction,
    SearchAndReplaceAction,
    Sender,
)

logger = logging.getLogger("dualchat.notepad")

INITIAL_NOTEPAD_CONTENT = (
    "This is the shared notepad.\n"
    "Cognito and Muse can edit and use it together during the discussion."
)

HEADING_PATTERN = re.compile(r"^(#+)\s")
BLANK_RUN_PATTERN = re.compile(r"\n{3,}")


@dataclass
class ApplyResult:
    new_content: str
    errors: list[str] = field(default_factory=list)


def _header_title(header: str) -> str:
    # Callers may pass "## Title" or " Title "; match on the bare title.
    return header.strip().lstrip("#").strip()


def _header_pattern(header: str) -> re.Pattern[str]:
    title = _header_title(header)
    return re.compile(rf"^(#+)\s*{re.escape(title)}\s*$", re.IGNORECASE)


def _find_section(lines: list[str], header: str) -> Optional[tuple[int, int]]:
    """
    Locate a Markdown section.

    Returns (heading_line_index, end_index) where end_index is the first
    following heading of the same or shallower depth, or len(lines).
    Deeper headings belong to the section.
    """
    pattern = _header_pattern(header)
    start = -1
    level = 0
    for i, line in enumerate(lines):
        match = pattern.match(line)
        if match:
            start = i
            level = len(match.group(1))
            break

    if start == -1:
        return None

    end = len(lines)
    for i in range(start + 1, len(lines)):
        match = HEADING_PATTERN.match(lines[i])
        if match and len(match.group(1)) <= level:
            end = i
            break
    return start, end


def _collapse_blank_runs(text: str) -> str:
    return BLANK_RUN_PATTERN.sub("\n\n", text)


def apply_modifications(
    current_content: str,
    modifications: Iterable[Union[NotepadAction, InvalidAction]],
) -> ApplyResult:
    """
    Apply notepad actions in order.

    A failed action (missing header, unknown tag) is recorded in
    ``errors`` and the batch continues with the next action.
    """
    content = current_content
    errors: list[str] = []

    for index, mod in enumerate(modifications):
        action_num = index + 1

        match mod:
            case ReplaceAllAction():
                content = mod.content

            case AppendAction():
                separator = "" if content.endswith("\n") else "\n"
                content = content + separator + mod.content

            case PrependAction():
                separator = "" if mod.content.endswith("\n") else "\n"
                content = mod.content + separator + content

            case ReplaceSectionAction():
                if not _header_title(mod.header):
                    errors.append(f'Action {action_num} ("replace_section") failed: empty header.')
                    continue
                lines = content.split("\n")
                section = _find_section(lines, mod.header)
                if section is None:
                    errors.append(
                        f'Action {action_num} ("replace_section") failed: header "{mod.header}" not found.'
                    )
                    continue
                start, end = section
                body = mod.content if mod.content.startswith("\n") else "\n" + mod.content
                content = _collapse_blank_runs("\n".join([*lines[: start + 1], body, *lines[end:]]))

            case AppendToSectionAction():
                if not _header_title(mod.header):
                    errors.append(f'Action {action_num} ("append_to_section") failed: empty header.')
                    continue
                lines = content.split("\n")
                section = _find_section(lines, mod.header)
                if section is None:
                    errors.append(
                        f'Action {action_num} ("append_to_section") failed: header "{mod.header}" not found.'
                    )
                    continue
                _, end = section
                before, after = lines[:end], lines[end:]
                addition = mod.content
                if before and before[-1].strip():
                    addition = "\n" + addition
                content = _collapse_blank_runs("\n".join([*before, addition, *after]))

            case SearchAndReplaceAction():
                if not mod.find:
                    errors.append(f'Action {action_num} ("search_and_replace") failed: empty search text.')
                    continue
                if mod.find not in content and not mod.all:
                    errors.append(
                        f'Action {action_num} ("search_and_replace") warning: text "{mod.find[:20]}..." not found.'
                    )
                pattern = re.compile(re.escape(mod.find))
                replacement = mod.replacement
                content = pattern.sub(lambda _m: replacement, content, count=0 if mod.all else 1)

            case InvalidAction():
                errors.append(f"Action {action_num} rejected: {mod.reason}.")

            case _:
                errors.append(f"Action {action_num} rejected: unsupported modification {mod!r}.")

    return ApplyResult(new_content=content, errors=errors)


@dataclass
class NotepadState:
    """Versioned notepad content. current_content == history[history_index]."""
    history: list[str]
    history_index: int = 0
    last_updated_by: Optional[Sender] = None

    @property
    def current_content(self) -> str:
        return self.history[self.history_index]


@dataclass
class NotepadFeedback:
    """Outcome of applying one model reply to the notepad."""
    changed: bool = False
    errors: list[str] = field(default_factory=list)
    parse_error: Optional[str] = None
    notifications: list[str] = field(default_factory=list)
    feedback_note: Optional[str] = None


class Notepad:
    """
    The shared notepad with undo/redo history.

    The orchestrator only calls the mutation API below; it never writes
    content directly.
    """

    def __init__(self, initial_content: str = INITIAL_NOTEPAD_CONTENT, saved_content: Optional[str] = None):
        self.initial_content = initial_content
        start = saved_content if saved_content is not None else initial_content
        self._state = NotepadState(history=[start])

    # === Read access ===

    @property
    def content(self) -> str:
        return self._state.current_content

    @property
    def previous_content(self) -> str:
        if self._state.history_index > 0:
            return self._state.history[self._state.history_index - 1]
        return self.initial_content

    @property
    def last_updated_by(self) -> Optional[Sender]:
        return self._state.last_updated_by

    @property
    def history(self) -> list[str]:
        return list(self._state.history)

    @property
    def history_index(self) -> int:
        return self._state.history_index

    @property
    def can_undo(self) -> bool:
        return self._state.history_index > 0

    @property
    def can_redo(self) -> bool:
        return self._state.history_index < len(self._state.history) - 1

    # === Mutation ===

    def commit(self, new_content: str, updated_by: Optional[Sender]) -> None:
        """Push a new history entry, dropping any redo tail."""
        state = self._state
        del state.history[state.history_index + 1:]
        state.history.append(new_content)
        state.history_index = len(state.history) - 1
        state.last_updated_by = updated_by

    def undo(self) -> bool:
        if not self.can_undo:
            return False
        self._state.history_index -= 1
        self._state.last_updated_by = None
        return True

    def redo(self) -> bool:
        if not self.can_redo:
            return False
        self._state.history_index += 1
        self._state.last_updated_by = None
        return True

    def update_manual(self, new_content: str) -> bool:
        """User edit. Only committed if the content actually changed."""
        if new_content == self.content:
            return False
        self.commit(new_content, Sender.USER)
        return True

    def clear(self) -> None:
        self.commit(self.initial_content, None)

    def apply_response(self, parsed: ParsedAIResponse, sender: Sender) -> NotepadFeedback:
        """
        Apply a decoded reply's notepad edits as one history entry.

        Returns the notifications for the transcript and the note that is fed
        back into the discussion log so the agents see their failed edits.
        """
        feedback = NotepadFeedback()
        update = parsed.notepad_update
        if update is None:
            return feedback

        if update.modifications:
            result = apply_modifications(self.content, update.modifications)
            if result.new_content != self.content:
                self.commit(result.new_content, sender)
                feedback.changed = True
            if result.errors:
                logger.info("%s notepad edits partly failed: %s", sender.value, result.errors)
                feedback.errors = result.errors
                feedback.notifications.append(
                    f"[System] Some of {sender.value}'s notepad modifications did not apply:\n- "
                    + "\n- ".join(result.errors)
                )
                feedback.feedback_note = f"[System Error] Notepad update failed: {'; '.join(result.errors)}"

        if update.error:
            feedback.parse_error = update.error
            feedback.notifications.append(
                f"[System] {sender.value} ran into a problem updating the notepad: {update.error}"
            )
            if feedback.feedback_note is None:
                feedback.feedback_note = f"[System Error] Notepad update parsing failed: {update.error}"

        return feedback
