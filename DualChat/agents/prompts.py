"""
Prompt builder for the two agents.

Each prompt is assembled from:
I.   The user query (and an image note, if an image was attached)
II.  The discussion so far
III. A role-specific task
IV.  The shared notepad and the response format contract
V.   The stop-signal instructions (AI-driven mode only)

Agent personas (system instructions) live here as defaults and can be
overridden from dualchat_config.yaml.
"""

from __future__ import annotations

from typing import Optional

from ..core.models import DiscussionMode, ImagePart, Sender


DEFAULT_LANGUAGE = "English"

COGNITO_SYSTEM_PROMPT_HEADER = """You are Cognito, a highly logical, analytical, and precise AI assistant.
**Objective:** Collaborate with your partner, Muse, to produce the most accurate, comprehensive, and helpful response for the user.

**YOUR ROLE (Cognito):**
- **Logical Anchor:** Focus on facts, structure, consistency, and practical feasibility.
- **Directness:** Address the user's specific questions immediately and clearly.
- **Reasoning:** Provide step-by-step logical deductions.
- **Collaboration:** Engage with Muse. Defend your logic against Muse's skepticism, but incorporate Muse's creative insights if they add value.
- **Guidance:** If the discussion drifts, gently steer it back to the user's core query.

**CRITICAL RULES:**
1. **LANGUAGE:** You must **ALWAYS** speak and write in **{language}**.
2. **IDENTITY:** You are Cognito. Never speak for Muse.
3. **TONE:** Professional, objective, calm, and analytical.
4. **SIMPLE QUERIES:** If the user query is trivial, answer directly and signal completion via JSON."""

MUSE_SYSTEM_PROMPT_HEADER = """You are Muse, a creative, skeptical, and innovative AI assistant.
**Objective:** Collaborate with your partner, Cognito, to ensure the final response is not just correct, but insightful, complete, and creative.

**YOUR ROLE (Muse):**
- **The Challenger:** Question assumptions. Ask "Why?", "What if?", and "Is this enough?".
- **The Creative:** Propose lateral thinking, analogies, and out-of-the-box solutions.
- **Perspective:** Consider emotional context, edge cases, and future implications that logic might miss.
- **Collaboration:** Push Cognito to be better. Do not just disagree for the sake of it; disagree to improve the quality of the answer.

**CRITICAL RULES:**
1. **LANGUAGE:** You must **ALWAYS** speak and write in **{language}**.
2. **IDENTITY:** You are Muse. Never speak for Cognito.
3. **TONE:** Inquisitive, imaginative, slightly provocative but constructive.
4. **SIMPLE QUERIES:** If Cognito has answered perfectly, agree and signal completion via JSON."""

NOTEPAD_INSTRUCTION_PROMPT_PART = """
**SHARED NOTEPAD & RESPONSE FORMAT:**
You share a "Notepad" with your partner. You must output your conversational response first, followed by a JSON block to manage the notepad and discussion state.
- **Current Notepad Content:**
---
{notepad_content}
---

**INSTRUCTIONS:**
1. Write your conversational response to your partner or user in plain text.
2. At the very end, provide a single valid JSON object wrapped in a code block ```json ... ```.

**JSON SCHEMA:**
```json
{
  "notepad_modifications": [
    // Optional array of actions
    { "action": "replace_all", "content": "New full content" },
    { "action": "append", "content": "Text to add at bottom" },
    { "action": "prepend", "content": "Text to add at top" },
    { "action": "replace_section", "header": "Header Title", "content": "New content for section" },
    { "action": "append_to_section", "header": "Header Title", "content": "Text to append to section" },
    { "action": "search_and_replace", "find": "exact string", "replacement": "new string", "all": boolean }
  ],
  "discussion_complete": boolean // Set to true ONLY if the discussion is finished and ready for the user.
}
```

**Action Details:**
- `replace_section`: Replaces everything under a specific Markdown header until the next header of the same or higher level.
- `append_to_section`: Adds content to the end of a specific Markdown header section.
- `replace_all`: Use this for the Final Answer to set the notepad content.
"""

AI_DRIVEN_DISCUSSION_INSTRUCTION_PROMPT_PART = """
**ENDING THE DISCUSSION:**
If you believe the current topic has been sufficiently explored and ready for the Final Answer, set `"discussion_complete": true` in your JSON output. Both partners must agree to end the discussion.
"""

IMAGE_INSTRUCTION = "The user also provided an image. Consider it along with the text query."

WELCOME_PREFIX = "Dual AI Chat ready"

# Short role tags used when quoting the previous speaker
SPEAKER_TAGS = {
    Sender.COGNITO: "(Logic)",
    Sender.MUSE: "(Creative)",
}


def default_system_prompt(sender: Sender, language: str = DEFAULT_LANGUAGE) -> str:
    header = COGNITO_SYSTEM_PROMPT_HEADER if sender == Sender.COGNITO else MUSE_SYSTEM_PROMPT_HEADER
    return header.replace("{language}", language)


def image_instruction(image: Optional[ImagePart]) -> str:
    return IMAGE_INSTRUCTION if image is not None else ""


def common_instructions(notepad_content: str, discussion_mode: DiscussionMode) -> str:
    """Notepad contract, plus the stop-signal rules in AI-driven mode."""
    notepad_text = notepad_content if notepad_content.strip() else ""
    text = NOTEPAD_INSTRUCTION_PROMPT_PART.replace("{notepad_content}", notepad_text)
    if discussion_mode == DiscussionMode.AI_DRIVEN:
        text += AI_DRIVEN_DISCUSSION_INSTRUCTION_PROMPT_PART
    return text


def build_cognito_initial_prompt(
    user_query: str,
    image_note: str,
    notepad_content: str,
    discussion_mode: DiscussionMode,
    language: str = DEFAULT_LANGUAGE,
) -> str:
    return f"""### User Query
"{user_query}"
{image_note}

### Task (Cognito)
1. Analyze the user's query logically.
2. Provide your initial thoughts, factual breakdown, or solution.
3. Invite Muse to critique or expand on your points.
**Output Language:** {language}.

{common_instructions(notepad_content, discussion_mode)}"""


def build_discussion_turn_prompt(
    user_query: str,
    image_note: str,
    discussion_log: list[str],
    last_turn_text: str,
    notepad_content: str,
    discussion_mode: DiscussionMode,
    previous_ai_signaled_stop: bool,
    target_speaker: Sender,
    language: str = DEFAULT_LANGUAGE,
) -> str:
    """Prompt for one discussion turn, addressed to ``target_speaker``."""
    previous_speaker = Sender.COGNITO if target_speaker == Sender.MUSE else Sender.MUSE
    previous_tag = SPEAKER_TAGS[previous_speaker]
    history = "\n".join(discussion_log)

    prompt = f"""### User Query
"{user_query}"
{image_note}

### Discussion History
{history}

### Last Message from {previous_speaker.value} {previous_tag}
"{last_turn_text}"

### Task ({target_speaker.value})
Reply to {previous_speaker.value}. Continue the rigorous discussion.
- If you disagree, explain why constructively.
- If you agree, add value or nuance.
**Output Language:** {language}.
**Tone:** Constructive & Concise.

{common_instructions(notepad_content, discussion_mode)}"""

    if discussion_mode == DiscussionMode.AI_DRIVEN and previous_ai_signaled_stop:
        prompt += (
            f"\n**NOTE:** {previous_speaker.value} suggested ending the discussion "
            '(set discussion_complete: true). If you agree that the topic is fully exhausted, '
            'set "discussion_complete": true in your JSON. Otherwise, continue.'
        )
    return prompt


def build_final_answer_prompt(
    user_query: str,
    image_note: str,
    discussion_log: list[str],
    notepad_content: str,
    discussion_mode: DiscussionMode,
    language: str = DEFAULT_LANGUAGE,
) -> str:
    history = "\n".join(discussion_log)
    return f"""### User Query
"{user_query}"
{image_note}

### Full Discussion History
{history}

### Final Task (Cognito)
1. Synthesize the entire discussion into a **comprehensive Final Answer** for the user.
2. **IMPORTANT:** You MUST update the Notepad with this Final Answer using the "replace_all" action in your JSON. The notepad is the primary delivery method for the final answer.
3. Your spoken reply (outside JSON) should be very brief (e.g., "I have updated the notepad with the final answer.").
**Output Language:** {language}.

{common_instructions(notepad_content, discussion_mode)}"""


def welcome_message_text(
    cognito_model_name: str,
    muse_model_name: str,
    discussion_mode: DiscussionMode,
    fixed_turns: int,
) -> str:
    """Banner shown at the top of a fresh transcript: title, mode, models."""
    if discussion_mode == DiscussionMode.FIXED_TURNS:
        mode_info = f"Fixed turns ({fixed_turns})"
    else:
        mode_info = "AI-driven (auto)"
    return (
        f"{WELCOME_PREFIX}\n"
        f"Mode: {mode_info}\n"
        f"Cognito: {cognito_model_name or 'not set'}\n"
        f"Muse: {muse_model_name or 'not set'}"
    )
