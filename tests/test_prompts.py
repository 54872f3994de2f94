from DualChat.agents.prompts import (
    IMAGE_INSTRUCTION,
    build_cognito_initial_prompt,
    build_discussion_turn_prompt,
    build_final_answer_prompt,
    default_system_prompt,
    image_instruction,
    welcome_message_text,
)
from DualChat.core.models import DiscussionMode, ImagePart, Sender

LOG = ["Cognito: first", "Muse: second"]


def turn_prompt(mode, previous_stop, target=Sender.MUSE):
    return build_discussion_turn_prompt(
        "Why is the sky blue?",
        "",
        LOG,
        "second",
        "# Notes\n- scattering",
        mode,
        previous_stop,
        target,
    )


def test_welcome_banner_for_both_modes():
    fixed = welcome_message_text("Gemini 2.5 Pro", "Gemini 2.5 Flash", DiscussionMode.FIXED_TURNS, 3)
    auto = welcome_message_text("", "Gemini 2.5 Flash", DiscussionMode.AI_DRIVEN, 3)

    assert fixed == "Dual AI Chat ready\nMode: Fixed turns (3)\nCognito: Gemini 2.5 Pro\nMuse: Gemini 2.5 Flash"
    assert "Mode: AI-driven (auto)" in auto
    assert "Cognito: not set" in auto


def test_system_prompts_carry_language_and_persona():
    cognito = default_system_prompt(Sender.COGNITO, "Spanish")
    muse = default_system_prompt(Sender.MUSE)

    assert cognito.startswith("You are Cognito")
    assert "**Spanish**" in cognito
    assert muse.startswith("You are Muse")
    assert "**English**" in muse
    assert "{language}" not in muse


def test_image_note_only_with_image():
    assert image_instruction(None) == ""
    assert image_instruction(ImagePart(mime_type="image/png", data="AAAA")) == IMAGE_INSTRUCTION


def test_initial_prompt_embeds_query_and_notepad():
    prompt = build_cognito_initial_prompt("Why?", IMAGE_INSTRUCTION, "# Notes", DiscussionMode.FIXED_TURNS)

    assert prompt.startswith('### User Query\n"Why?"\n' + IMAGE_INSTRUCTION)
    assert "### Task (Cognito)" in prompt
    assert "---\n# Notes\n---" in prompt
    assert "**ENDING THE DISCUSSION:**" not in prompt


def test_blank_notepad_is_embedded_empty():
    prompt = build_cognito_initial_prompt("Why?", "", "   \n", DiscussionMode.FIXED_TURNS)

    assert "---\n\n---" in prompt


def test_discussion_prompt_addresses_target_speaker():
    prompt = turn_prompt(DiscussionMode.FIXED_TURNS, False)

    assert "### Discussion History\nCognito: first\nMuse: second" in prompt
    assert '### Last Message from Cognito (Logic)\n"second"' in prompt
    assert "### Task (Muse)" in prompt
    assert "Reply to Cognito." in prompt

    reverse = turn_prompt(DiscussionMode.FIXED_TURNS, False, target=Sender.COGNITO)
    assert "### Last Message from Muse (Creative)" in reverse
    assert "### Task (Cognito)" in reverse


def test_stop_note_only_in_ai_driven_mode_after_signal():
    assert "**NOTE:**" not in turn_prompt(DiscussionMode.FIXED_TURNS, True)
    assert "**NOTE:**" not in turn_prompt(DiscussionMode.AI_DRIVEN, False)

    prompt = turn_prompt(DiscussionMode.AI_DRIVEN, True)
    assert prompt.rstrip().endswith("Otherwise, continue.")
    assert "**NOTE:** Cognito suggested ending the discussion" in prompt
    assert "**ENDING THE DISCUSSION:**" in prompt


def test_final_prompt_asks_for_replace_all():
    prompt = build_final_answer_prompt("Why?", "", LOG, "# Notes", DiscussionMode.AI_DRIVEN, "Italian")

    assert "### Full Discussion History\nCognito: first\nMuse: second" in prompt
    assert "### Final Task (Cognito)" in prompt
    assert 'using the "replace_all" action' in prompt
    assert "**Output Language:** Italian." in prompt
