"""
SessionOrchestrator: one user query, end to end.

A session is Cognito's opening turn, the Cognito/Muse discussion loop, and
Cognito's final synthesis into the notepad. The orchestrator owns:
- the single-flight lock (one session at a time)
- cancellation (stop() fires the current CancelToken)
- manual retry of the suspended failed step, and resuming the flow from it
- the welcome banner and settings swaps between sessions
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..agents.prompts import (
    build_cognito_initial_prompt,
    build_final_answer_prompt,
    image_instruction,
    welcome_message_text,
)
from ..config.settings import ChatSettings, ModelConfig, load_settings
from ..core.models import (
    ApiKeyStatus,
    DiscussionMode,
    FailedStepState,
    ImagePart,
    MessagePurpose,
    ParsedAIResponse,
    Sender,
    StepId,
    StepKind,
)
from ..core.notepad import Notepad
from ..infrastructure.errors import CredentialError, SessionCancelled, StepFailedError
from ..llm_backends import create_backend
from ..llm_backends.base import LLMBackend
from ..runtime.cancellation import CancelToken
from ..runtime.discussion_loop import (
    DiscussionLoop,
    LoopOutcome,
    consensus_message,
    record_turn,
    suggested_end_message,
)
from ..runtime.step_executor import FlowContext, FlowState, StepExecutor
from ..storage.state_store import StateStore
from ..storage.transcript import DiagnosticSink, Transcript
from ..utils.timing import ProcessingTimer

logger = logging.getLogger("dualchat.session")

# Settings whose change requires a new backend client
BACKEND_FIELDS = (
    "provider",
    "gemini_api_key",
    "gemini_endpoint",
    "openai_api_key",
    "openai_base_url",
    "request_timeout",
)


class SessionOrchestrator:
    """
    Runs DualChat sessions against one transcript and one notepad.

    Responsibilities:
    - Start a session for a user query (optionally superseding a running one)
    - Drive opening turn, discussion loop and final synthesis
    - Retry a failed step on request and continue the flow from it
    - Report cancellation and unexpected errors to the transcript
    - Persist transcript and notepad after each run when a store is given
    """

    def __init__(
        self,
        settings: ChatSettings,
        backend: Optional[LLMBackend] = None,
        transcript: Optional[Transcript] = None,
        notepad: Optional[Notepad] = None,
        notifier: Optional[DiagnosticSink] = None,
        store: Optional[StateStore] = None,
    ):
        self.settings = settings
        self._owns_backend = backend is None
        self.backend = backend or create_backend(settings)
        self._backend_stale = False

        self.transcript = transcript if transcript is not None else Transcript()
        self.notepad = notepad if notepad is not None else Notepad()
        self.notifier = notifier if notifier is not None else self.transcript
        self.store = store

        self.flow = FlowState()
        self.executor = StepExecutor(
            self.backend,
            self.transcript,
            self.notifier,
            self.flow,
            max_auto_retries=settings.max_auto_retries,
            retry_delay_base_ms=settings.retry_delay_base_ms,
        )
        self.loop = DiscussionLoop(self.executor, self.notepad, self.notifier, self.flow)
        self.timer = ProcessingTimer()
        self.last_completed_turn_count = 0
        self._lock = asyncio.Lock()
        # Token of the newest start request, running or still waiting for the lock
        self._latest_request: Optional[CancelToken] = None

    # ========== Exposed state ==========

    @property
    def is_loading(self) -> bool:
        return self._lock.locked()

    @property
    def discussion_log(self) -> list[str]:
        return list(self.flow.discussion_log)

    @property
    def current_turn(self) -> int:
        return self.flow.current_turn

    @property
    def failed_step(self) -> Optional[FailedStepState]:
        return self.flow.failed_step

    @property
    def api_key_status(self) -> ApiKeyStatus:
        return self.flow.api_key_status

    @property
    def elapsed_seconds(self) -> float:
        return self.timer.elapsed_seconds

    # ========== Lifecycle ==========

    def initialize(self, clear: bool = True) -> None:
        """
        Prepare the transcript for a fresh run.

        With ``clear`` the transcript and notepad are wiped first. A missing
        credential is reported as a critical warning instead of the banner.
        """
        if clear:
            self.transcript.clear()
            self.notepad.clear()
            self.flow.failed_step = None
            self.flow.discussion_log = []
            self.last_completed_turn_count = 0

        problem = self.settings.credential_problem()
        if problem:
            self.flow.api_key_status = ApiKeyStatus(is_missing=True, message=problem)
            self.notifier.notify(
                f"Critical warning: {problem} Functionality is limited until this is fixed."
            )
            return

        self.flow.api_key_status = ApiKeyStatus()
        if clear or len(self.transcript) == 0:
            self.transcript.add(self._welcome_text(), Sender.SYSTEM, MessagePurpose.SYSTEM_NOTIFICATION)

    def apply_settings(self, settings: ChatSettings) -> None:
        """Swap settings. A new backend is built at the start of the next session."""
        if any(getattr(settings, name) != getattr(self.settings, name) for name in BACKEND_FIELDS):
            self._backend_stale = True
        self.settings = settings
        if self.flow.api_key_status.ok:
            self.transcript.refresh_welcome(self._welcome_text())

    def stop(self) -> bool:
        """
        Cancel the running session and any query waiting behind it.

        Returns False when nothing is running.
        """
        if not self.is_loading:
            return False
        logger.info("Stop requested")
        self.flow.cancel_token.cancel()
        if self._latest_request is not None:
            self._latest_request.cancel()
        return True

    def save_state(self) -> None:
        if self.store is None:
            return
        self.store.save(self.transcript, self.notepad.content)

    def undo_notepad(self) -> bool:
        """Step the notepad back one version and persist it. False at the oldest version."""
        if not self.notepad.undo():
            return False
        self.save_state()
        return True

    def redo_notepad(self) -> bool:
        if not self.notepad.redo():
            return False
        self.save_state()
        return True

    async def aclose(self) -> None:
        if self._owns_backend:
            await self.backend.aclose()

    def _welcome_text(self) -> str:
        return welcome_message_text(
            self.settings.model_for(Sender.COGNITO).name,
            self.settings.model_for(Sender.MUSE).name,
            self.settings.discussion_mode,
            self.settings.fixed_turns,
        )

    async def _begin(self, token: Optional[CancelToken] = None) -> None:
        """Per-run reset shared by new sessions and manual retries."""
        self.flow.cancel_token.cancel()
        self.flow.cancel_token = token or CancelToken()
        self.flow.api_key_status = ApiKeyStatus()
        self.flow.current_turn = 0

        if self._backend_stale:
            if self._owns_backend:
                await self.backend.aclose()
                self.backend = create_backend(self.settings)
                self.executor.backend = self.backend
            self._backend_stale = False
        self.executor.max_auto_retries = self.settings.max_auto_retries
        self.executor.retry_delay_base_ms = self.settings.retry_delay_base_ms

        self.timer.start()

    def _finish(self) -> None:
        self.timer.stop()
        self.flow.discussion_active = False
        self.save_state()

    # ========== New session ==========

    async def start_session(
        self,
        user_query: str,
        image: Optional[ImagePart] = None,
        supersede: bool = False,
    ) -> bool:
        """
        Run a full session for ``user_query``.

        Returns False when the query is empty, when another session is
        running and ``supersede`` is not set, or when a later superseding
        query replaced this one while it waited for the lock.
        """
        user_query = user_query.strip()
        if not user_query and image is None:
            return False
        if self.is_loading:
            if not supersede:
                logger.info("Session already running, new query rejected")
                return False
            self.stop()

        token = CancelToken()
        self._latest_request = token
        async with self._lock:
            if token.cancelled:
                logger.info("Query superseded before it started")
                return False
            await self._begin(token)
            self.flow.failed_step = None
            self.flow.discussion_log = []
            self.last_completed_turn_count = 0
            self.transcript.add(user_query, Sender.USER, MessagePurpose.USER_INPUT, image=image)
            try:
                await self._run_session(user_query, image)
            except SessionCancelled:
                self._report_cancelled("AI response stopped by user.")
            except CredentialError as e:
                logger.warning("Session ended on credential error: %s", e.message)
            except StepFailedError as e:
                if not e.handled:
                    self.notifier.notify(f"Error: {e.message}")
            except Exception as e:
                logger.exception("Session failed")
                self.notifier.notify(f"Error: {e}")
            finally:
                self._finish()
        return True

    async def _run_session(self, user_query: str, image: Optional[ImagePart]) -> None:
        settings = self.settings
        token = self.flow.cancel_token
        ai_driven = settings.discussion_mode == DiscussionMode.AI_DRIVEN

        cognito = settings.model_config_for(Sender.COGNITO)
        self.notifier.notify(
            f"{Sender.COGNITO.value} is preparing the first perspective for {Sender.MUSE.value} "
            f"(using {cognito.model.name})..."
        )
        prompt = build_cognito_initial_prompt(
            user_query,
            image_instruction(image),
            self.notepad.content,
            settings.discussion_mode,
            settings.language,
        )
        parsed = await self.executor.execute(
            StepId.opening(),
            prompt,
            cognito,
            Sender.COGNITO,
            MessagePurpose.COGNITO_TO_MUSE,
            image=image,
            context=FlowContext(user_input=user_query, image=image, turn_index=0, previous_ai_signaled_stop=False),
        )
        log: list[str] = []
        record_turn(self.notepad, self.notifier, parsed, Sender.COGNITO, log)
        self.flow.discussion_log = log

        previous_stop = ai_driven and parsed.discussion_should_end
        if previous_stop:
            self.notifier.notify(suggested_end_message(Sender.COGNITO, Sender.MUSE))
        token.raise_if_cancelled()

        log, final_turn = await self._run_loop(
            start_turn=0,
            log=log,
            last_text=parsed.spoken_text,
            previous_stop=previous_stop,
            skip_muse=False,
            user_input=user_query,
            image=image,
        )
        await self._final_synthesis(user_query, image, log, final_turn)

    async def _run_loop(
        self,
        start_turn: int,
        log: list[str],
        last_text: str,
        previous_stop: bool,
        skip_muse: bool,
        user_input: str,
        image: Optional[ImagePart],
    ) -> tuple[list[str], int]:
        result = await self.loop.run(
            self.settings,
            start_turn=start_turn,
            initial_log=log,
            initial_last_text=last_text,
            initial_previous_stop=previous_stop,
            skip_muse_in_first_turn=skip_muse,
            user_input=user_input,
            image=image,
        )
        if result.outcome == LoopOutcome.CANCELLED:
            raise SessionCancelled()
        logger.info("Discussion ended (%s) at turn %d", result.outcome.value, result.final_turn)
        return result.log, result.final_turn

    async def _final_synthesis(
        self,
        user_input: str,
        image: Optional[ImagePart],
        log: list[str],
        final_turn: int,
    ) -> None:
        settings = self.settings
        self.flow.cancel_token.raise_if_cancelled()
        self.flow.discussion_log = log

        cognito = settings.model_config_for(Sender.COGNITO)
        self.notifier.notify(
            f"{Sender.COGNITO.value} is synthesizing the discussion into the final answer "
            f"(using {cognito.model.name})..."
        )
        prompt = build_final_answer_prompt(
            user_input,
            image_instruction(image),
            log,
            self.notepad.content,
            settings.discussion_mode,
            settings.language,
        )
        parsed = await self.executor.execute(
            StepId.final(),
            prompt,
            cognito,
            Sender.COGNITO,
            MessagePurpose.FINAL_RESPONSE,
            image=image,
            context=FlowContext(user_input=user_input, image=image, discussion_log=list(log), turn_index=final_turn),
        )
        feedback = self.notepad.apply_response(parsed, Sender.COGNITO)
        for notification in feedback.notifications:
            self.notifier.notify(notification)
        self._record_completed(final_turn)

    def _record_completed(self, final_turn: int) -> None:
        if self.settings.discussion_mode == DiscussionMode.FIXED_TURNS:
            self.last_completed_turn_count = self.settings.fixed_turns
        else:
            self.last_completed_turn_count = final_turn + 1

    def _report_cancelled(self, text: str) -> None:
        if self.flow.failed_step is None:
            self.notifier.notify(text)

    # ========== Manual retry ==========

    async def retry_failed_step(self, failed: Optional[FailedStepState] = None) -> bool:
        """
        Re-run the suspended step and continue the session from it.

        Returns False when there is nothing to retry or a session is running.
        """
        failed = failed or self.flow.failed_step
        if failed is None or self.is_loading:
            return False

        async with self._lock:
            await self._begin()
            self.flow.failed_step = None
            label = f"[{failed.sender.value} - {failed.step.label}]"
            self.notifier.notify(f"{label} retrying manually...")
            try:
                await self._retry_and_resume(failed, label)
            except SessionCancelled:
                self._report_cancelled("Manual retry stopped by user.")
            except CredentialError as e:
                logger.warning("Manual retry ended on credential error: %s", e.message)
            except StepFailedError as e:
                if not e.handled:
                    self.notifier.notify(f"Error: {e.message}")
            except Exception as e:
                logger.exception("Manual retry failed")
                self.notifier.notify(f"Error: {e}")
            finally:
                self._finish()
        return True

    async def _retry_and_resume(self, failed: FailedStepState, label: str) -> None:
        model_config = ModelConfig(
            model=self.settings.model_for(failed.sender),
            system_instruction=failed.system_instruction,
            thinking_config=failed.thinking_config,
        )
        parsed = await self.executor.execute(
            failed.step,
            failed.prompt,
            model_config,
            failed.sender,
            failed.purpose,
            image=failed.image,
            context=FlowContext(
                user_input=failed.user_input_for_flow,
                image=failed.image_for_flow,
                discussion_log=list(failed.discussion_log_before_failure),
                turn_index=failed.current_turn_index_for_resume,
                previous_ai_signaled_stop=failed.previous_ai_signaled_stop_for_resume,
            ),
        )
        self.flow.cancel_token.raise_if_cancelled()

        log = list(failed.discussion_log_before_failure)
        record_turn(self.notepad, self.notifier, parsed, failed.sender, log)
        self.flow.discussion_log = log
        self.notifier.notify(f"{label} manual retry succeeded. The flow continues.")

        await self._resume(failed, parsed, log)

    async def _resume(self, failed: FailedStepState, parsed: ParsedAIResponse, log: list[str]) -> None:
        """Continue the flow after the retried step, by the step's kind."""
        ai_driven = self.settings.discussion_mode == DiscussionMode.AI_DRIVEN
        kind = failed.step.kind
        resume_turn = failed.current_turn_index_for_resume or 0
        signaled = ai_driven and parsed.discussion_should_end
        agreed = signaled and bool(failed.previous_ai_signaled_stop_for_resume)

        if kind == StepKind.FINAL_SYNTHESIS:
            self._record_completed(resume_turn)
            return

        if kind == StepKind.INITIAL_OPENING:
            start_turn, skip_muse = 0, False
            if signaled:
                self.notifier.notify(suggested_end_message(Sender.COGNITO, Sender.MUSE))
            agreed = False
        elif kind == StepKind.MUSE_TURN:
            start_turn, skip_muse = resume_turn, True
            if agreed:
                self.notifier.notify(consensus_message(Sender.COGNITO, Sender.MUSE))
            elif signaled:
                self.notifier.notify(suggested_end_message(Sender.MUSE, Sender.COGNITO))
        else:
            start_turn, skip_muse = resume_turn + 1, False
            if agreed:
                self.notifier.notify(consensus_message(Sender.MUSE, Sender.COGNITO))
            elif signaled:
                self.notifier.notify(suggested_end_message(Sender.COGNITO, Sender.MUSE))

        self.flow.current_turn = start_turn
        final_turn = start_turn
        if not agreed:
            log, final_turn = await self._run_loop(
                start_turn=start_turn,
                log=log,
                last_text=parsed.spoken_text,
                previous_stop=signaled,
                skip_muse=skip_muse,
                user_input=failed.user_input_for_flow,
                image=failed.image_for_flow,
            )
        await self._final_synthesis(failed.user_input_for_flow, failed.image_for_flow, log, final_turn)


async def run_dualchat(
    query: str,
    settings: Optional[ChatSettings] = None,
    image: Optional[ImagePart] = None,
) -> SessionOrchestrator:
    """
    Convenience function: run one session and return the finished orchestrator.

    The final answer is in ``orchestrator.notepad.content``; the full exchange
    is in ``orchestrator.transcript``.
    """
    orchestrator = SessionOrchestrator(settings or load_settings())
    orchestrator.initialize()
    try:
        await orchestrator.start_session(query, image=image)
    finally:
        await orchestrator.aclose()
    return orchestrator
