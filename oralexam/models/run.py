"""
Run cursor models for OralExam Sim

RunState is only ever changed through RunState.advance(event), which
returns a new state. The orchestrator applies events one at a time, so
the cursor can't be raced by two phases.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from oralexam.errors import StateTransitionError
from oralexam.models.plan import ExamPlan, ItemPrompt, SectionKind


class RunPhase(str, Enum):
    """Phases of a run."""

    IDLE = "idle"  # Not started
    INSTRUCTION = "instruction"  # Item instructions displayed
    PLAYING = "playing"  # Reference audio playing
    PREPARING = "preparing"  # Preparation countdown
    RECORDING = "recording"  # Capture window open
    COMPLETED = "completed"  # Item captured
    RESTING = "resting"  # Rest interval between sections
    FINISHED = "finished"  # All sections done


class RunEventType(str, Enum):
    """Events accepted by RunState.advance."""

    ITEM_STARTED = "item_started"
    PHASE_ENTERED = "phase_entered"
    TICK = "tick"
    ITEM_COMPLETED = "item_completed"
    REST_STARTED = "rest_started"
    RUN_FINISHED = "run_finished"


class RunEvent(BaseModel):
    """A single change request for the run cursor."""

    model_config = ConfigDict(frozen=True)

    type: RunEventType
    section_index: int | None = None
    item_index: int | None = None
    sub_item_index: int = 0
    phase: RunPhase | None = None
    remaining_seconds: int | None = None

    @classmethod
    def item_started(cls, section_index: int, item_index: int, sub_item_index: int = 0) -> "RunEvent":
        return cls(
            type=RunEventType.ITEM_STARTED,
            section_index=section_index,
            item_index=item_index,
            sub_item_index=sub_item_index,
        )

    @classmethod
    def phase_entered(cls, phase: RunPhase, remaining_seconds: int | None = None) -> "RunEvent":
        return cls(type=RunEventType.PHASE_ENTERED, phase=phase, remaining_seconds=remaining_seconds)

    @classmethod
    def tick(cls, remaining_seconds: int) -> "RunEvent":
        return cls(type=RunEventType.TICK, remaining_seconds=remaining_seconds)

    @classmethod
    def item_completed(cls) -> "RunEvent":
        return cls(type=RunEventType.ITEM_COMPLETED)

    @classmethod
    def rest_started(cls, seconds: int) -> "RunEvent":
        return cls(type=RunEventType.REST_STARTED, remaining_seconds=seconds)

    @classmethod
    def run_finished(cls) -> "RunEvent":
        return cls(type=RunEventType.RUN_FINISHED)


# Phases reachable through PHASE_ENTERED. INSTRUCTION, COMPLETED, RESTING
# and FINISHED have dedicated events.
PHASE_TRANSITIONS: dict[RunPhase, set[RunPhase]] = {
    RunPhase.INSTRUCTION: {RunPhase.PLAYING, RunPhase.PREPARING, RunPhase.RECORDING},
    RunPhase.PLAYING: {RunPhase.PREPARING, RunPhase.RECORDING},
    RunPhase.PREPARING: {RunPhase.RECORDING},
}

TIMED_PHASES = {RunPhase.PREPARING, RunPhase.RECORDING, RunPhase.RESTING}


class RunState(BaseModel):
    """The orchestrator's cursor through an exam plan."""

    model_config = ConfigDict(frozen=True)

    item_counts: tuple[int, ...]
    section_index: int = 0
    item_index: int = 0
    sub_item_index: int = 0
    phase: RunPhase = RunPhase.IDLE
    remaining_seconds: int | None = None

    # Counters
    completed_items: int = 0
    rest_intervals: int = 0

    @classmethod
    def for_plan(cls, plan: ExamPlan) -> "RunState":
        """Initial state for a run over the given plan."""
        return cls(item_counts=plan.item_counts())

    @property
    def section_count(self) -> int:
        return len(self.item_counts)

    @property
    def is_terminal(self) -> bool:
        return self.section_index == self.section_count

    def advance(self, event: RunEvent) -> "RunState":
        """
        Apply one event and return the resulting state.

        Raises:
            StateTransitionError: If the event is not valid in this state
        """
        handlers = {
            RunEventType.ITEM_STARTED: self._on_item_started,
            RunEventType.PHASE_ENTERED: self._on_phase_entered,
            RunEventType.TICK: self._on_tick,
            RunEventType.ITEM_COMPLETED: self._on_item_completed,
            RunEventType.REST_STARTED: self._on_rest_started,
            RunEventType.RUN_FINISHED: self._on_run_finished,
        }
        return handlers[event.type](event)

    # =========================================================================
    # EVENT HANDLERS
    # =========================================================================

    def _expected_next_item(self) -> tuple[int, int]:
        if self.phase == RunPhase.IDLE:
            return 0, 0
        if self.phase == RunPhase.COMPLETED:
            return self.section_index, self.item_index + 1
        if self.phase == RunPhase.RESTING:
            return self.section_index + 1, 0
        raise StateTransitionError(f"Cannot start an item during {self.phase.value}")

    def _on_item_started(self, event: RunEvent) -> "RunState":
        expected = self._expected_next_item()
        requested = (event.section_index, event.item_index)
        if requested != expected:
            raise StateTransitionError(
                f"Item {requested} started out of order, expected {expected}"
            )
        section_index, item_index = expected
        if section_index >= self.section_count or item_index >= self.item_counts[section_index]:
            raise StateTransitionError(f"Item {requested} is outside the plan")
        return self.model_copy(update={
            "section_index": section_index,
            "item_index": item_index,
            "sub_item_index": event.sub_item_index,
            "phase": RunPhase.INSTRUCTION,
            "remaining_seconds": None,
        })

    def _on_phase_entered(self, event: RunEvent) -> "RunState":
        allowed = PHASE_TRANSITIONS.get(self.phase, set())
        if event.phase not in allowed:
            raise StateTransitionError(
                f"Invalid phase transition from {self.phase.value} to "
                f"{event.phase.value if event.phase else None}"
            )
        return self.model_copy(update={
            "phase": event.phase,
            "remaining_seconds": event.remaining_seconds,
        })

    def _on_tick(self, event: RunEvent) -> "RunState":
        if self.phase not in TIMED_PHASES:
            raise StateTransitionError(f"No countdown runs during {self.phase.value}")
        return self.model_copy(update={"remaining_seconds": event.remaining_seconds})

    def _on_item_completed(self, event: RunEvent) -> "RunState":
        if self.phase != RunPhase.RECORDING:
            raise StateTransitionError(f"Cannot complete an item during {self.phase.value}")
        return self.model_copy(update={
            "phase": RunPhase.COMPLETED,
            "remaining_seconds": None,
            "completed_items": self.completed_items + 1,
        })

    def _is_last_item_of_section(self) -> bool:
        return self.item_index == self.item_counts[self.section_index] - 1

    def _on_rest_started(self, event: RunEvent) -> "RunState":
        if self.phase != RunPhase.COMPLETED or not self._is_last_item_of_section():
            raise StateTransitionError("Rest intervals only follow the last item of a section")
        if self.section_index >= self.section_count - 1:
            raise StateTransitionError("No rest interval after the final section")
        return self.model_copy(update={
            "phase": RunPhase.RESTING,
            "remaining_seconds": event.remaining_seconds,
            "rest_intervals": self.rest_intervals + 1,
        })

    def _on_run_finished(self, event: RunEvent) -> "RunState":
        if (
            self.phase != RunPhase.COMPLETED
            or self.section_index != self.section_count - 1
            or not self._is_last_item_of_section()
        ):
            raise StateTransitionError("Run can only finish after the final item")
        return self.model_copy(update={
            "section_index": self.section_count,
            "item_index": 0,
            "sub_item_index": 0,
            "phase": RunPhase.FINISHED,
            "remaining_seconds": None,
        })


class RunSnapshot(BaseModel):
    """Read-only projection of a run for the presentation layer."""

    session_id: str
    status: str
    phase: RunPhase = RunPhase.IDLE
    remaining_seconds: int | None = None

    section_tag: SectionKind | None = None
    section_title: str | None = None
    section_index: int = 0
    section_count: int = 0
    item_index: int = 0
    item_count: int = 0
    sub_item_index: int = 0

    instruction: str | None = None
    prompt: ItemPrompt | None = None

    # Scoring progress (current/total)
    scoring_current: int = 0
    scoring_total: int = 0

    error_message: str | None = None
    completed_items: int = Field(default=0, ge=0)
