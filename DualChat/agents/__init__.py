"""
DualChat agent personas and prompt builders.
"""

from .prompts import (
    build_cognito_initial_prompt,
    build_discussion_turn_prompt,
    build_final_answer_prompt,
    default_system_prompt,
    welcome_message_text,
)

__all__ = [
    "build_cognito_initial_prompt",
    "build_discussion_turn_prompt",
    "build_final_answer_prompt",
    "default_system_prompt",
    "welcome_message_text",
]
