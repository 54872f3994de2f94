"""
Step executor: one model call with bounded automatic retry.

Every agent turn in a session goes through execute(). It owns:
- retry with linear backoff for transient failures
- classification of credential and cancellation failures
- the failed-step snapshot that makes a manual retry possible
- decoding the reply and appending it to the transcript
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config.settings import MAX_AUTO_RETRIES, RETRY_DELAY_BASE_MS, ModelConfig
from ..core.models import (
    ApiKeyStatus,
    FailedStepState,
    ImagePart,
    Message,
    MessagePurpose,
    ParsedAIResponse,
    Sender,
    StepId,
)
from ..core.response_parser import parse_ai_response
from ..infrastructure.errors import CredentialError, SessionCancelled, StepFailedError
from ..llm_backends.base import ErrorKind, LLMBackend
from ..storage.transcript import DiagnosticSink, TranscriptSink
from .cancellation import CancelToken

logger = logging.getLogger("dualchat.executor")

__all__ = ["FlowContext", "FlowState", "StepExecutor"]


@dataclass
class FlowState:
    """
    Session-level state shared by the executor, the loop and the orchestrator.

    ``failed_step`` is the single suspended point of the session: at most one
    exists, and a new failure overwrites it.
    """
    cancel_token: CancelToken = field(default_factory=CancelToken)
    failed_step: Optional[FailedStepState] = None
    discussion_active: bool = False
    current_turn: int = 0
    discussion_log: list[str] = field(default_factory=list)
    api_key_status: ApiKeyStatus = field(default_factory=ApiKeyStatus)


@dataclass
class FlowContext:
    """Where the flow stands when a step runs; captured into FailedStepState on exhaustion."""
    user_input: str = ""
    image: Optional[ImagePart] = None
    discussion_log: list[str] = field(default_factory=list)
    turn_index: Optional[int] = None
    previous_ai_signaled_stop: Optional[bool] = None


class StepExecutor:
    """Runs a single agent step against the configured backend."""

    def __init__(
        self,
        backend: LLMBackend,
        transcript: TranscriptSink,
        notifier: DiagnosticSink,
        flow: FlowState,
        max_auto_retries: int = MAX_AUTO_RETRIES,
        retry_delay_base_ms: int = RETRY_DELAY_BASE_MS,
    ):
        self.backend = backend
        self.transcript = transcript
        self.notifier = notifier
        self.flow = flow
        self.max_auto_retries = max_auto_retries
        self.retry_delay_base_ms = retry_delay_base_ms

    async def execute(
        self,
        step: StepId,
        prompt: str,
        model_config: ModelConfig,
        sender: Sender,
        purpose: MessagePurpose,
        image: Optional[ImagePart] = None,
        context: Optional[FlowContext] = None,
    ) -> ParsedAIResponse:
        """
        Call the model, retrying transient failures.

        Raises:
            SessionCancelled: the token fired (no retry, no state change)
            CredentialError: key missing or rejected (no retry)
            StepFailedError: retries exhausted; ``flow.failed_step`` is set
                and the failure has already been reported
        """
        token = self.flow.cancel_token
        model = model_config.model
        label = f"[{sender.value} - {step.label}]"
        total_attempts = self.max_auto_retries + 1
        last_error = ""

        for attempt in range(total_attempts):
            token.raise_if_cancelled()

            result = await token.run(
                self.backend.agenerate(
                    prompt,
                    model.api_name,
                    system_instruction=model_config.system_instruction,
                    image=image,
                    thinking_config=model_config.thinking_config,
                )
            )

            if result.ok:
                break

            if result.error_kind == ErrorKind.ABORTED or token.cancelled:
                raise SessionCancelled()

            if result.error_kind == ErrorKind.MISSING_CREDENTIAL:
                self.flow.api_key_status = ApiKeyStatus(is_missing=True, message=result.error_message)
                raise CredentialError(result.error_message or "API key missing", kind=result.error_kind.value)

            if result.error_kind == ErrorKind.INVALID_CREDENTIAL:
                self.flow.api_key_status = ApiKeyStatus(is_invalid=True, message=result.error_message)
                raise CredentialError(result.error_message or "API key invalid", kind=result.error_kind.value)

            last_error = result.error_message or "unknown error"
            logger.warning("%s attempt %d/%d failed: %s", label, attempt + 1, total_attempts, last_error)

            if attempt < self.max_auto_retries:
                retry_num = attempt + 1
                self.notifier.notify(
                    f"{label} call failed, retrying ({retry_num}/{self.max_auto_retries})... {last_error}"
                )
                await token.sleep(self.retry_delay_base_ms * retry_num / 1000)
        else:
            self._record_failure(step, prompt, model_config, sender, purpose, image, context)
            self.notifier.notify(
                f"{label} failed after {total_attempts} attempts: {last_error} You can retry manually."
            )
            raise StepFailedError(
                f"{step.label} failed after {total_attempts} attempts",
                step=step,
                handled=True,
                context={"last_error": last_error},
            )

        self.flow.api_key_status = ApiKeyStatus()
        token.raise_if_cancelled()

        parsed = parse_ai_response(result.text)
        self.transcript.append(
            Message(
                text=parsed.spoken_text,
                sender=sender,
                purpose=purpose,
                duration_ms=result.duration_ms,
                thoughts=result.thoughts,
            )
        )
        logger.info("%s completed in %.0fms", label, result.duration_ms)
        return parsed

    def _record_failure(
        self,
        step: StepId,
        prompt: str,
        model_config: ModelConfig,
        sender: Sender,
        purpose: MessagePurpose,
        image: Optional[ImagePart],
        context: Optional[FlowContext],
    ) -> None:
        context = context or FlowContext()
        self.flow.failed_step = FailedStepState(
            step=step,
            prompt=prompt,
            model_name=model_config.model.api_name,
            system_instruction=model_config.system_instruction,
            image=image,
            sender=sender,
            purpose=purpose,
            thinking_config=model_config.thinking_config,
            user_input_for_flow=context.user_input,
            image_for_flow=context.image,
            discussion_log_before_failure=list(context.discussion_log),
            current_turn_index_for_resume=context.turn_index,
            previous_ai_signaled_stop_for_resume=context.previous_ai_signaled_stop,
        )
        self.flow.discussion_active = False
