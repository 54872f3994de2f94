"""
Discussion loop: alternating Muse / Cognito turns until an exit condition.

Exit conditions:
- FixedTurns(N): after N Muse turns (Cognito gets N-1 replies here, plus
  the opening turn run by the orchestrator)
- AiDriven: both agents signal discussion_complete on consecutive turns
- the cancel token fires
Failures propagate as exceptions (StepFailedError, CredentialError).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..agents.prompts import build_discussion_turn_prompt, image_instruction
from ..config.settings import ChatSettings
from ..core.models import DiscussionMode, ImagePart, MessagePurpose, ParsedAIResponse, Sender, StepId
from ..core.notepad import Notepad
from ..storage.transcript import DiagnosticSink
from .step_executor import FlowContext, FlowState, StepExecutor

logger = logging.getLogger("dualchat.loop")


class LoopOutcome(str, Enum):
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass
class DiscussionRunState:
    """Mutable state of one pass through the loop."""
    turn_index: int
    log: list[str] = field(default_factory=list)
    last_speaker_text: str = ""
    previous_ai_signaled_stop: bool = False


@dataclass
class LoopResult:
    log: list[str]
    final_turn: int
    outcome: LoopOutcome


def consensus_message(first: Sender, second: Sender) -> str:
    return f"Both AIs ({first.value} and {second.value}) agreed to end the discussion."


def suggested_end_message(speaker: Sender, partner: Sender) -> str:
    return f"{speaker.value} suggested ending the discussion. Waiting for {partner.value}'s response."


def record_turn(
    notepad: Notepad,
    notifier: DiagnosticSink,
    parsed: ParsedAIResponse,
    sender: Sender,
    log: list[str],
) -> None:
    """Apply a reply's notepad edits and append it (plus any system note) to the log."""
    feedback = notepad.apply_response(parsed, sender)
    for notification in feedback.notifications:
        notifier.notify(notification)
    log.append(f"{sender.value}: {parsed.spoken_text}")
    if feedback.feedback_note:
        log.append(f"(System Note: {feedback.feedback_note})")


class DiscussionLoop:
    """Drives the back-and-forth between the two agents."""

    def __init__(
        self,
        executor: StepExecutor,
        notepad: Notepad,
        notifier: DiagnosticSink,
        flow: FlowState,
    ):
        self.executor = executor
        self.notepad = notepad
        self.notifier = notifier
        self.flow = flow

    async def _take_turn(
        self,
        settings: ChatSettings,
        state: DiscussionRunState,
        speaker: Sender,
        user_input: str,
        image: Optional[ImagePart],
    ) -> bool:
        """Run one agent's turn and fold it into ``state``. Returns the agent's stop signal."""
        partner = Sender.COGNITO if speaker == Sender.MUSE else Sender.MUSE
        model_config = settings.model_config_for(speaker)
        self.notifier.notify(
            f"{speaker.value} is responding to {partner.value} (using {model_config.model.name})..."
        )

        prompt = build_discussion_turn_prompt(
            user_input,
            image_instruction(image),
            state.log,
            state.last_speaker_text,
            self.notepad.content,
            settings.discussion_mode,
            state.previous_ai_signaled_stop,
            speaker,
            settings.language,
        )
        if speaker == Sender.MUSE:
            step, purpose = StepId.muse(state.turn_index), MessagePurpose.MUSE_TO_COGNITO
        else:
            step, purpose = StepId.cognito(state.turn_index), MessagePurpose.COGNITO_TO_MUSE

        parsed = await self.executor.execute(
            step,
            prompt,
            model_config,
            speaker,
            purpose,
            image=image,
            context=FlowContext(
                user_input=user_input,
                image=image,
                discussion_log=list(state.log),
                turn_index=state.turn_index,
                previous_ai_signaled_stop=state.previous_ai_signaled_stop,
            ),
        )
        record_turn(self.notepad, self.notifier, parsed, speaker, state.log)
        state.last_speaker_text = parsed.spoken_text
        return parsed.discussion_should_end

    def _check_agreement(
        self,
        settings: ChatSettings,
        state: DiscussionRunState,
        speaker: Sender,
        signaled: bool,
    ) -> bool:
        """AiDriven bookkeeping after a turn. Returns True on mutual agreement."""
        if settings.discussion_mode != DiscussionMode.AI_DRIVEN:
            state.previous_ai_signaled_stop = False
            return False

        partner = Sender.COGNITO if speaker == Sender.MUSE else Sender.MUSE
        if signaled and state.previous_ai_signaled_stop:
            self.notifier.notify(consensus_message(partner, speaker))
            return True
        if signaled:
            self.notifier.notify(suggested_end_message(speaker, partner))
        state.previous_ai_signaled_stop = signaled
        return False

    async def run(
        self,
        settings: ChatSettings,
        start_turn: int,
        initial_log: list[str],
        initial_last_text: str,
        initial_previous_stop: bool,
        skip_muse_in_first_turn: bool,
        user_input: str,
        image: Optional[ImagePart] = None,
    ) -> LoopResult:
        token = self.flow.cancel_token
        fixed = settings.discussion_mode == DiscussionMode.FIXED_TURNS
        max_turns = settings.fixed_turns
        state = DiscussionRunState(
            turn_index=start_turn,
            log=list(initial_log),
            last_speaker_text=initial_last_text,
            previous_ai_signaled_stop=initial_previous_stop,
        )

        self.flow.discussion_active = True
        self.flow.discussion_log = state.log
        try:
            turn = start_turn
            while True:
                state.turn_index = turn
                self.flow.current_turn = turn

                if token.cancelled:
                    return LoopResult(state.log, turn, LoopOutcome.CANCELLED)
                if fixed and turn >= max_turns:
                    return LoopResult(state.log, turn, LoopOutcome.EXHAUSTED)

                if not (skip_muse_in_first_turn and turn == start_turn):
                    signaled = await self._take_turn(settings, state, Sender.MUSE, user_input, image)
                    if self._check_agreement(settings, state, Sender.MUSE, signaled):
                        return LoopResult(state.log, turn, LoopOutcome.CONVERGED)

                if token.cancelled:
                    return LoopResult(state.log, turn, LoopOutcome.CANCELLED)
                if fixed and turn >= max_turns - 1:
                    return LoopResult(state.log, turn, LoopOutcome.EXHAUSTED)

                signaled = await self._take_turn(settings, state, Sender.COGNITO, user_input, image)
                if self._check_agreement(settings, state, Sender.COGNITO, signaled):
                    return LoopResult(state.log, turn, LoopOutcome.CONVERGED)

                turn += 1
        finally:
            self.flow.discussion_active = False
            logger.debug("Discussion loop ended at turn %d", state.turn_index)
