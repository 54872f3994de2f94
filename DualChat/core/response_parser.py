"""
Response protocol decoder.

Every model reply is expected to end with a fenced JSON block:

    ```json
    {
      "notepad_modifications": [ { "action": "...", ... } ],
      "discussion_complete": false
    }
    ```

parse_ai_response() splits a raw reply into the spoken text, the notepad
modifications and the completion signal. Decode failures are reported on the
result, never raised.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from .models import NotepadUpdate, ParsedAIResponse, parse_notepad_action

logger = logging.getLogger("dualchat.protocol")

JSON_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.IGNORECASE | re.DOTALL)

MODIFICATIONS_KEY = "notepad_modifications"
COMPLETE_KEY = "discussion_complete"

PARSE_ERROR_MESSAGE = "Failed to parse AI JSON response."


def _read_control_object(parsed: Any) -> tuple[list[Any], bool]:
    """Pull the two protocol keys out of a decoded JSON value."""
    modifications: list[Any] = []
    should_end = False
    if isinstance(parsed, dict):
        if isinstance(parsed.get(MODIFICATIONS_KEY), list):
            modifications = parsed[MODIFICATIONS_KEY]
        if isinstance(parsed.get(COMPLETE_KEY), bool):
            should_end = parsed[COMPLETE_KEY]
    return modifications, should_end


def _trailing_json_object(text: str) -> Optional[tuple[int, dict]]:
    """
    Find the balanced {...} object that ends at the last closing brace.

    Opening braces are tried from the right; nested objects decode but stop
    short of the last brace, so the first hit is the outermost object.
    """
    close_idx = text.rfind("}")
    if close_idx == -1:
        return None
    end = close_idx + 1
    decoder = json.JSONDecoder()
    open_idx = text.rfind("{", 0, close_idx)
    while open_idx != -1:
        try:
            value, stop = decoder.raw_decode(text, open_idx)
        except json.JSONDecodeError:
            pass
        else:
            if stop == end and isinstance(value, dict):
                return open_idx, value
        open_idx = text.rfind("{", 0, open_idx)
    return None


def _mentions_protocol_key(text: str) -> bool:
    brace_idx = text.find("{")
    if brace_idx == -1:
        return False
    tail = text[brace_idx:]
    return f'"{MODIFICATIONS_KEY}"' in tail or f'"{COMPLETE_KEY}"' in tail


def _placeholder_text(action_count: int, should_end: bool, parse_error: Optional[str]) -> str:
    notepad_text = f"modified the notepad ({action_count} actions)" if action_count else ""
    end_text = "suggested ending the discussion" if should_end else ""

    if notepad_text and end_text:
        return f"(AI {notepad_text} and {end_text})"
    if notepad_text:
        return f"(AI {notepad_text})"
    if end_text:
        return f"(AI {end_text})"
    if not parse_error:
        return "(AI provided no additional text reply)"
    return ""


def parse_ai_response(response_text: str) -> ParsedAIResponse:
    """
    Decode a raw model reply.

    1. Use the last fenced code block (with or without a json tag).
    2. Without a fence, fall back to the balanced {...} object that ends at
       the last closing brace, but only if it carries a protocol key.
    3. On decode failure keep the original text and flag the error.
    """
    spoken_text = response_text
    raw_modifications: list[Any] = []
    should_end = False
    parse_error: Optional[str] = None

    matches = list(JSON_BLOCK_PATTERN.finditer(response_text))
    if matches:
        last_match = matches[-1]
        try:
            parsed = json.loads(last_match.group(1))
        except json.JSONDecodeError as e:
            logger.warning("JSON block in model reply failed to parse: %s", e)
            parse_error = PARSE_ERROR_MESSAGE
        else:
            raw_modifications, should_end = _read_control_object(parsed)
            spoken_text = (
                response_text[: last_match.start()] + response_text[last_match.end():]
            ).strip()
    else:
        found = _trailing_json_object(response_text)
        if found is not None and (MODIFICATIONS_KEY in found[1] or COMPLETE_KEY in found[1]):
            open_idx, parsed = found
            raw_modifications, should_end = _read_control_object(parsed)
            spoken_text = response_text[:open_idx].strip()
        elif _mentions_protocol_key(response_text[: found[0]] if found is not None else response_text):
            # A protocol object was started but never closed into valid JSON
            logger.warning("Unfenced JSON object in model reply failed to parse")
            parse_error = PARSE_ERROR_MESSAGE

    modifications = [parse_notepad_action(raw, index=i) for i, raw in enumerate(raw_modifications)]

    if not spoken_text.strip():
        placeholder = _placeholder_text(len(modifications), should_end, parse_error)
        if placeholder:
            spoken_text = placeholder

    notepad_update = None
    if modifications or parse_error:
        notepad_update = NotepadUpdate(modifications=modifications, error=parse_error)

    return ParsedAIResponse(
        spoken_text=spoken_text,
        notepad_update=notepad_update,
        discussion_should_end=should_end,
    )
