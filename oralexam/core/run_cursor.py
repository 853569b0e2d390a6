"""
Run Cursor - single entry point for changing a run's state.

Phases never touch RunState directly; they call advance(event). Each
event is applied synchronously (no await in between), so events are
serialized even though phases suspend and resume on the event loop.
"""

import logging
from typing import Callable

from oralexam.models.plan import ExamPlan
from oralexam.models.run import RunEvent, RunEventType, RunState

logger = logging.getLogger(__name__)

RunListener = Callable[[RunState, RunEvent], None]


class RunCursor:
    """Holds the current RunState and applies events to it in order."""

    def __init__(self, plan: ExamPlan):
        self.plan = plan
        self._state = RunState.for_plan(plan)
        self._history: list[RunEvent] = []
        self._listeners: list[RunListener] = []

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def history(self) -> list[RunEvent]:
        """Events applied so far, oldest first."""
        return list(self._history)

    def subscribe(self, listener: RunListener) -> None:
        """Register a synchronous listener called after every event."""
        self._listeners.append(listener)

    def advance(self, event: RunEvent) -> RunState:
        """
        Apply an event.

        Raises:
            StateTransitionError: If the event is invalid for the current state
        """
        self._state = self._state.advance(event)
        self._history.append(event)

        if event.type != RunEventType.TICK:
            logger.debug(
                f"Run cursor: {event.type.value} -> section {self._state.section_index}, "
                f"item {self._state.item_index}, phase {self._state.phase.value}"
            )

        for listener in self._listeners:
            listener(self._state, event)
        return self._state

    def count(self, event_type: RunEventType) -> int:
        """Number of applied events of the given type."""
        return sum(1 for event in self._history if event.type == event_type)
