import asyncio

import pytest

from conftest import ScriptedBackend, failure, reply
from DualChat.core.models import StepId
from DualChat.core.notepad import Notepad
from DualChat.infrastructure.errors import StepFailedError
from DualChat.runtime.discussion_loop import DiscussionLoop, LoopOutcome
from DualChat.runtime.step_executor import FlowState, StepExecutor
from DualChat.storage.transcript import Transcript


def make_loop(backend, notices, notepad=None):
    flow = FlowState()
    transcript = Transcript()
    executor = StepExecutor(backend, transcript, notices, flow, max_auto_retries=2, retry_delay_base_ms=0)
    loop = DiscussionLoop(executor, notepad or Notepad(initial_content="pad"), notices, flow)
    return loop, flow, transcript


def run_loop(loop, settings, start_turn=0, previous_stop=False, skip_muse=False, log=None):
    return asyncio.run(
        loop.run(
            settings,
            start_turn=start_turn,
            initial_log=log if log is not None else ["Cognito: opening"],
            initial_last_text="opening",
            initial_previous_stop=previous_stop,
            skip_muse_in_first_turn=skip_muse,
            user_input="question",
        )
    )


def test_fixed_two_turns_runs_two_muse_turns_and_one_cognito_reply(settings, notices):
    backend = ScriptedBackend(reply("m0"), reply("c0"), reply("m1"))
    loop, flow, transcript = make_loop(backend, notices)

    result = run_loop(loop, settings)

    assert result.outcome == LoopOutcome.EXHAUSTED
    assert result.final_turn == 1
    assert result.log == ["Cognito: opening", "Muse: m0", "Cognito: c0", "Muse: m1"]
    assert [m.sender.value for m in transcript.messages] == ["Muse", "Cognito", "Muse"]
    assert flow.discussion_active is False
    assert flow.discussion_log == result.log


def test_fixed_one_turn_runs_a_single_muse_turn(settings, notices):
    backend = ScriptedBackend(reply("m0"))
    loop, _, _ = make_loop(backend, notices)

    result = run_loop(loop, settings.with_overrides(fixed_turns=1))

    assert result.outcome == LoopOutcome.EXHAUSTED
    assert result.final_turn == 0
    assert len(backend.calls) == 1


def test_prompts_carry_history_and_last_message(settings, notices):
    backend = ScriptedBackend(reply("m0"), reply("c0"), reply("m1"))
    loop, _, _ = make_loop(backend, notices)

    run_loop(loop, settings)

    muse_prompt = backend.calls[0]["prompt"]
    assert "### Last Message from Cognito" in muse_prompt
    assert '"opening"' in muse_prompt
    cognito_prompt = backend.calls[1]["prompt"]
    assert "Muse: m0" in cognito_prompt
    assert "### Task (Cognito)" in cognito_prompt


def test_progress_notices_name_the_model(settings, notices):
    backend = ScriptedBackend(reply("m0"), reply("c0"), reply("m1"))
    loop, _, _ = make_loop(backend, notices)

    run_loop(loop, settings)

    assert notices.notices[0] == "Muse is responding to Cognito (using Gemini 2.5 Flash)..."
    assert notices.notices[1] == "Cognito is responding to Muse (using Gemini 2.5 Flash)..."


def test_mutual_stop_converges_after_one_muse_turn(ai_settings, notices):
    backend = ScriptedBackend(reply("agreed", complete=True))
    loop, _, _ = make_loop(backend, notices)

    result = run_loop(loop, ai_settings, previous_stop=True)

    assert result.outcome == LoopOutcome.CONVERGED
    assert result.final_turn == 0
    assert len(backend.calls) == 1
    assert notices.notices[-1] == "Both AIs (Cognito and Muse) agreed to end the discussion."


def test_ai_driven_single_stop_does_not_end(ai_settings, notices):
    backend = ScriptedBackend(
        reply("m0", complete=True),
        reply("c0"),
        reply("m1"),
        reply("c1", complete=True),
        reply("m2", complete=True),
    )
    loop, _, _ = make_loop(backend, notices)

    result = run_loop(loop, ai_settings)

    assert result.outcome == LoopOutcome.CONVERGED
    assert result.final_turn == 2
    assert len(backend.calls) == 5
    assert "Muse suggested ending the discussion. Waiting for Cognito's response." in notices.notices
    assert "Cognito suggested ending the discussion. Waiting for Muse's response." in notices.notices
    assert notices.notices[-1] == "Both AIs (Cognito and Muse) agreed to end the discussion."


def test_stop_prompt_note_only_after_partner_signal(ai_settings, notices):
    backend = ScriptedBackend(reply("m0", complete=True), reply("c0", complete=True))
    loop, _, _ = make_loop(backend, notices)

    run_loop(loop, ai_settings)

    assert "**NOTE:**" not in backend.calls[0]["prompt"]
    assert "**NOTE:** Muse suggested ending the discussion" in backend.calls[1]["prompt"]


def test_fixed_mode_ignores_stop_signals(settings, notices):
    backend = ScriptedBackend(reply("m0", complete=True), reply("c0", complete=True), reply("m1", complete=True))
    loop, _, _ = make_loop(backend, notices)

    result = run_loop(loop, settings, previous_stop=True)

    assert result.outcome == LoopOutcome.EXHAUSTED
    assert len(backend.calls) == 3
    assert not any("agreed" in n for n in notices.notices)


def test_skip_muse_on_resumed_turn(settings, notices):
    backend = ScriptedBackend(reply("c1"), reply("m2"))
    loop, _, _ = make_loop(backend, notices)

    result = run_loop(loop, settings.with_overrides(fixed_turns=3), start_turn=1, skip_muse=True)

    assert result.final_turn == 2
    assert result.log[-2:] == ["Cognito: c1", "Muse: m2"]
    assert "### Task (Cognito)" in backend.calls[0]["prompt"]


def test_cancelled_token_stops_before_any_call(settings, notices):
    backend = ScriptedBackend()
    loop, flow, _ = make_loop(backend, notices)
    flow.cancel_token.cancel()

    result = run_loop(loop, settings)

    assert result.outcome == LoopOutcome.CANCELLED
    assert backend.calls == []


def test_notepad_edits_and_failures_feed_the_log(settings, notices):
    notepad = Notepad(initial_content="pad")
    backend = ScriptedBackend(
        reply("m0", [{"action": "append", "content": "muse idea"}]),
        reply("c0", [{"action": "replace_section", "header": "Nowhere", "content": "x"}]),
        reply("m1"),
    )
    loop, _, _ = make_loop(backend, notices, notepad=notepad)

    result = run_loop(loop, settings)

    assert notepad.content == "pad\nmuse idea"
    assert result.log[3] == (
        '(System Note: [System Error] Notepad update failed: '
        'Action 1 ("replace_section") failed: header "Nowhere" not found.)'
    )
    assert any(n.startswith("[System] Some of Cognito's notepad modifications") for n in notices.notices)


def test_step_failure_propagates_with_resume_context(settings, notices):
    backend = ScriptedBackend(reply("m0"), failure(), failure(), failure())
    loop, flow, _ = make_loop(backend, notices)

    with pytest.raises(StepFailedError):
        run_loop(loop, settings)

    failed = flow.failed_step
    assert failed.step == StepId.cognito(0)
    assert failed.discussion_log_before_failure == ["Cognito: opening", "Muse: m0"]
    assert failed.current_turn_index_for_resume == 0
    assert flow.discussion_active is False
