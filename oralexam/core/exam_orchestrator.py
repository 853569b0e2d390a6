"""
Exam Orchestrator - State machine for managing the exam lifecycle.

This is the central coordinator for an exam session. It owns the
session status, starts the timed run as a background task, hands the
response log to scoring and exposes a read-only snapshot plus the
start/abort/restart controls to the presentation layer.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

from oralexam.config.settings import get_settings
from oralexam.core.audio_processor import StreamingCaptureDevice
from oralexam.core.collaborators import CaptureDevice, PlanSource, Scorer, SpeechPlayer
from oralexam.core.countdown import SleepFunc
from oralexam.core.phase_sequencer import PhaseSequencer
from oralexam.core.response_collector import ResponseCollector
from oralexam.core.run_cursor import RunCursor
from oralexam.core.scoring_coordinator import ScoringCoordinator
from oralexam.core.section_kinds import get_handler
from oralexam.core.section_runner import SectionRunner
from oralexam.errors import ConfigurationError, PlanGenerationError, StateTransitionError
from oralexam.models.plan import ExamPlan
from oralexam.models.response import ScoringProgress
from oralexam.models.run import RunEvent, RunPhase, RunSnapshot, RunState
from oralexam.models.session import ExamSession, ExamStatus

logger = logging.getLogger(__name__)

StateChangeCallback = Callable[[str, ExamStatus, ExamStatus], Awaitable[None]]


class ExamOrchestrator:
    """
    Manages the exam lifecycle using a state machine pattern.

    States:
        IDLE → GENERATING → READY → IN_PROGRESS → SCORING → REVIEW
                   ↓                     ↓           ↓
                 IDLE                 ABORTED     ABORTED

    REVIEW and ABORTED return to IDLE through restart().

    The orchestrator coordinates between:
    - Content service (plan generation)
    - Section runner / phase sequencer (the timed run)
    - Scoring coordinator (scoring the response log)
    """

    VALID_TRANSITIONS: dict[ExamStatus, list[ExamStatus]] = {
        ExamStatus.IDLE: [ExamStatus.GENERATING, ExamStatus.READY],
        ExamStatus.GENERATING: [ExamStatus.READY, ExamStatus.IDLE],
        ExamStatus.READY: [ExamStatus.IN_PROGRESS, ExamStatus.IDLE],
        ExamStatus.IN_PROGRESS: [ExamStatus.SCORING, ExamStatus.ABORTED],
        ExamStatus.SCORING: [ExamStatus.REVIEW, ExamStatus.ABORTED],
        ExamStatus.REVIEW: [ExamStatus.IDLE],
        ExamStatus.ABORTED: [ExamStatus.IDLE],
    }

    def __init__(
        self,
        content_service: PlanSource | None = None,
        scorer: Scorer | None = None,
        player_factory: Callable[[], SpeechPlayer] | None = None,
        capture_factory: Callable[[], CaptureDevice] | None = None,
        settle_seconds: float | None = None,
        tick_seconds: float | None = None,
        rest_seconds: int | None = None,
        scoring_concurrency: int | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize the orchestrator with component dependencies.

        Timing and concurrency default to the application settings.

        Args:
            content_service: Produces exam plans
            scorer: Scores recorded responses
            player_factory: Creates the speech player of a new session
            capture_factory: Creates the capture device of a new session
            settle_seconds: Instruction display time
            tick_seconds: Length of one countdown tick
            rest_seconds: Rest interval between sections
            scoring_concurrency: Parallel scoring submissions
            sleep: Awaitable sleep used for every timed wait
        """
        settings = get_settings()
        self.content_service = content_service
        self.scorer = scorer
        self.player_factory = player_factory
        self.capture_factory = capture_factory or (
            lambda: StreamingCaptureDevice(settings.capture_mime_type)
        )
        self.settle_seconds = (
            settings.instruction_settle_seconds if settle_seconds is None else settle_seconds
        )
        self.tick_seconds = settings.tick_seconds if tick_seconds is None else tick_seconds
        self.rest_seconds = settings.rest_interval_seconds if rest_seconds is None else rest_seconds
        self.scoring_concurrency = scoring_concurrency or settings.scoring_concurrency
        self.empty_mime_type = settings.capture_mime_type
        self._sleep = sleep

        # Session storage (in-memory)
        self._sessions: dict[str, ExamSession] = {}
        self._players: dict[str, SpeechPlayer] = {}
        self._captures: dict[str, CaptureDevice] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._subscribers: dict[str, list[asyncio.Queue]] = {}

        # Event callbacks
        self._state_change_callbacks: list[StateChangeCallback] = []

    # =========================================================================
    # SESSION MANAGEMENT
    # =========================================================================

    def create_session(self) -> ExamSession:
        """Create a new exam session with its own player and capture device."""
        session = ExamSession()
        self._sessions[session.session_id] = session
        if self.player_factory is not None:
            self._players[session.session_id] = self.player_factory()
        self._captures[session.session_id] = self.capture_factory()

        logger.info(f"Created exam session: {session.session_id}")
        return session

    def get_session(self, session_id: str) -> ExamSession:
        """
        Get a session by ID.

        Raises:
            ValueError: If the session does not exist
        """
        session = self._sessions.get(session_id)
        if not session:
            raise ValueError(f"Session not found: {session_id}")
        return session

    def get_player(self, session_id: str) -> SpeechPlayer | None:
        self.get_session(session_id)
        return self._players.get(session_id)

    def get_capture_device(self, session_id: str) -> CaptureDevice:
        self.get_session(session_id)
        return self._captures[session_id]

    def is_running(self, session_id: str) -> bool:
        task = self._tasks.get(session_id)
        return task is not None and not task.done()

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    async def transition_state(
        self,
        session_id: str,
        new_status: ExamStatus,
        error_message: str | None = None,
    ) -> ExamSession:
        """
        Transition a session to a new status.

        Raises:
            StateTransitionError: If the transition is invalid
        """
        session = self.get_session(session_id)
        old_status = session.status

        valid_next = self.VALID_TRANSITIONS.get(old_status, [])
        if new_status not in valid_next:
            raise StateTransitionError(
                f"Invalid transition from {old_status.value} to {new_status.value}. "
                f"Valid transitions: {[s.value for s in valid_next]}"
            )

        session.status = new_status
        if new_status == ExamStatus.IN_PROGRESS:
            session.started_at = datetime.utcnow()
        elif new_status == ExamStatus.REVIEW:
            session.completed_at = datetime.utcnow()
        if error_message is not None:
            session.error_message = error_message

        for callback in self._state_change_callbacks:
            try:
                await callback(session_id, old_status, new_status)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

        self._publish(session)
        logger.info(f"Session {session_id}: {old_status.value} → {new_status.value}")
        return session

    # =========================================================================
    # PLAN
    # =========================================================================

    async def generate_plan(self, session_id: str) -> ExamPlan:
        """
        Generate a plan for an idle session.

        Raises:
            PlanGenerationError: If no plan could be produced; the session
                returns to IDLE and no run starts
        """
        if self.content_service is None:
            raise PlanGenerationError("No content service configured")

        await self.transition_state(session_id, ExamStatus.GENERATING)
        try:
            plan = await self.content_service.generate_plan()
        except PlanGenerationError as e:
            logger.error(f"Plan generation failed for {session_id}: {e}")
            await self.transition_state(session_id, ExamStatus.IDLE, error_message=str(e))
            raise
        except Exception as e:
            logger.error(f"Plan generation failed for {session_id}: {e}")
            await self.transition_state(session_id, ExamStatus.IDLE, error_message=str(e))
            raise PlanGenerationError(str(e)) from e

        return await self._attach_plan(session_id, plan)

    async def load_plan(self, session_id: str, plan: ExamPlan) -> ExamPlan:
        """Use an existing plan for an idle session."""
        session = self.get_session(session_id)
        if session.status != ExamStatus.IDLE:
            raise StateTransitionError(f"Cannot load a plan while {session.status.value}")
        return await self._attach_plan(session_id, plan)

    async def _attach_plan(self, session_id: str, plan: ExamPlan) -> ExamPlan:
        session = self.get_session(session_id)
        session.plan = plan
        session.reset_run()
        await self.transition_state(session_id, ExamStatus.READY)
        logger.info(f"Session {session_id}: plan {plan.plan_id} ready ({plan.total_items} items)")
        return plan

    # =========================================================================
    # CONTROLS
    # =========================================================================

    async def start(self, session_id: str) -> ExamSession:
        """
        Start the timed run in the background.

        Raises:
            StateTransitionError: If the session is not READY
        """
        session = self.get_session(session_id)
        if self.scorer is None or session_id not in self._players:
            raise ConfigurationError("Orchestrator is missing a scorer or speech player")

        await self.transition_state(session_id, ExamStatus.IN_PROGRESS)
        self._tasks[session_id] = asyncio.create_task(self._run(session))
        return session

    async def wait(self, session_id: str) -> ExamSession:
        """Wait for the run of a session (if any) to finish."""
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.wait({task})
        return self.get_session(session_id)

    async def abort(self, session_id: str) -> ExamSession:
        """
        Abort a running exam.

        Cancels the run wherever it is suspended, which releases the
        capture device, and discards every response not yet scored.
        """
        session = self.get_session(session_id)
        if session.status not in (ExamStatus.IN_PROGRESS, ExamStatus.SCORING):
            raise StateTransitionError(f"Cannot abort while {session.status.value}")

        task = self._tasks.pop(session_id, None)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

        if session.status not in (ExamStatus.IN_PROGRESS, ExamStatus.SCORING):
            # Run finished on its own before the cancellation landed
            return session

        session.responses = []
        session.section_scores = []
        await self.transition_state(session_id, ExamStatus.ABORTED)
        logger.info(f"Session {session_id} aborted")
        return session

    async def restart(self, session_id: str) -> ExamSession:
        """Return a finished, aborted or unstarted session to IDLE."""
        session = self.get_session(session_id)
        if self.is_running(session_id):
            raise StateTransitionError("Abort the running exam before restarting")

        await self.transition_state(session_id, ExamStatus.IDLE)
        session.plan = None
        session.reset_run()
        self._tasks.pop(session_id, None)
        self._publish(session)
        return session

    # =========================================================================
    # RUN
    # =========================================================================

    async def _run(self, session: ExamSession) -> None:
        """Run every section, then score the response log."""
        session_id = session.session_id
        plan = session.plan

        cursor = RunCursor(plan)
        cursor.subscribe(lambda state, event: self._on_run_event(session, state, event))
        session.run = cursor.state

        sequencer = PhaseSequencer(
            cursor,
            self._players[session_id],
            self._captures[session_id],
            diagnostics=session.diagnostics,
            settle_seconds=self.settle_seconds,
            tick_seconds=self.tick_seconds,
            sleep=self._sleep,
        )
        runner = SectionRunner(
            cursor,
            sequencer,
            ResponseCollector(plan),
            diagnostics=session.diagnostics,
            rest_seconds=self.rest_seconds,
            tick_seconds=self.tick_seconds,
            sleep=self._sleep,
            empty_mime_type=self.empty_mime_type,
        )

        try:
            session.responses = await runner.run()
            await self.transition_state(session_id, ExamStatus.SCORING)

            async def on_progress(progress: ScoringProgress) -> None:
                session.scoring_progress = progress
                self._publish(session)

            coordinator = ScoringCoordinator(
                self.scorer,
                diagnostics=session.diagnostics,
                max_concurrency=self.scoring_concurrency,
            )
            session.scoring_progress = ScoringProgress(total=len(session.responses))
            session.section_scores = await coordinator.score_all(
                session.responses, on_progress=on_progress
            )
            await self.transition_state(session_id, ExamStatus.REVIEW)
        except Exception as e:
            logger.error(f"Run failed for {session_id}: {e}")
            session.responses = []
            await self.transition_state(session_id, ExamStatus.ABORTED, error_message=str(e))

    def _on_run_event(self, session: ExamSession, state: RunState, event: RunEvent) -> None:
        session.run = state
        self._publish(session)

    # =========================================================================
    # PRESENTATION
    # =========================================================================

    def snapshot(self, session_id: str) -> RunSnapshot:
        """Read-only projection of a session for rendering."""
        return self._build_snapshot(self.get_session(session_id))

    def _build_snapshot(self, session: ExamSession) -> RunSnapshot:
        snapshot: dict[str, Any] = {
            "session_id": session.session_id,
            "status": session.status.value,
            "scoring_current": session.scoring_progress.current,
            "scoring_total": session.scoring_progress.total,
            "error_message": session.error_message,
        }

        plan, run = session.plan, session.run
        if plan is not None:
            snapshot["section_count"] = plan.section_count
        if plan is not None and run is not None:
            snapshot.update(
                phase=run.phase,
                remaining_seconds=run.remaining_seconds,
                completed_items=run.completed_items,
            )
            # During a rest the cursor still points at the finished section
            if not run.is_terminal and run.phase not in (RunPhase.IDLE, RunPhase.RESTING):
                section, item = plan.get_item(run.section_index, run.item_index)
                handler = get_handler(section.tag)
                snapshot.update(
                    section_tag=section.tag,
                    section_title=handler.title,
                    section_index=run.section_index,
                    item_index=run.item_index,
                    item_count=len(section.items),
                    sub_item_index=run.sub_item_index,
                    instruction=handler.instruction,
                    prompt=item.prompt,
                )
        return RunSnapshot(**snapshot)

    def subscribe(self, session_id: str) -> asyncio.Queue:
        """Queue receiving a snapshot after every change to the session."""
        self.get_session(session_id)
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(session_id, []).append(queue)
        return queue

    def unsubscribe(self, session_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(session_id, [])
        if queue in queues:
            queues.remove(queue)

    def _publish(self, session: ExamSession) -> None:
        queues = self._subscribers.get(session.session_id)
        if not queues:
            return
        snapshot = self._build_snapshot(session)
        for queue in queues:
            queue.put_nowait(snapshot)

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def on_state_change(self, callback: StateChangeCallback) -> None:
        """Register a callback for status changes."""
        self._state_change_callbacks.append(callback)

    async def shutdown(self) -> None:
        """Cancel every running exam."""
        for session_id in list(self._tasks):
            session = self._sessions[session_id]
            if session.status in (ExamStatus.IN_PROGRESS, ExamStatus.SCORING):
                await self.abort(session_id)
