"""
SectionRunner: walks the sections and items of an exam plan.

Responsibilities:
- Moves the cursor item by item and hands each item to the PhaseSequencer
- Inserts the mandatory rest interval between sections (never within one)
- Collects one response per item, substituting an empty capture when
  recording fails
- Signals run completion after the final item
"""

import asyncio
import logging

from oralexam.core.countdown import Countdown, SleepFunc
from oralexam.core.phase_sequencer import PhaseSequencer
from oralexam.core.response_collector import ResponseCollector
from oralexam.core.run_cursor import RunCursor
from oralexam.errors import CaptureError
from oralexam.models.plan import SectionSpec
from oralexam.models.response import AudioArtifact, ResponseRecord, RunDiagnostics
from oralexam.models.run import RunEvent

logger = logging.getLogger(__name__)

DEFAULT_REST_SECONDS = 10


class SectionRunner:
    """Runs every section of a plan in order, resting between sections."""

    def __init__(
        self,
        cursor: RunCursor,
        sequencer: PhaseSequencer,
        collector: ResponseCollector,
        diagnostics: RunDiagnostics | None = None,
        rest_seconds: int = DEFAULT_REST_SECONDS,
        tick_seconds: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
        empty_mime_type: str = "audio/webm",
    ) -> None:
        """Initialize section runner.

        Args:
            cursor: Run cursor shared with the sequencer
            sequencer: Runs the phases of a single item
            collector: Response log for this run
            diagnostics: Counters for recovered errors
            rest_seconds: Length of the rest interval between sections
            tick_seconds: Length of one countdown tick
            sleep: Awaitable sleep used for the rest countdown
            empty_mime_type: MIME type of synthesized empty captures
        """
        self.cursor = cursor
        self.sequencer = sequencer
        self.collector = collector
        self.diagnostics = diagnostics or sequencer.diagnostics
        self.rest_seconds = rest_seconds
        self.tick_seconds = tick_seconds
        self._sleep = sleep
        self.empty_mime_type = empty_mime_type

    @property
    def plan(self):
        return self.cursor.plan

    async def run(self) -> list[ResponseRecord]:
        """Run every section in order.

        Returns:
            The response log, one record per item in capture order
        """
        sections = self.plan.sections
        for section_index, section in enumerate(sections):
            if section_index > 0:
                await self._rest()
            await self.run_section(section_index, section)

        self.cursor.advance(RunEvent.run_finished())
        logger.info(
            f"Run finished: {len(self.collector)} responses, "
            f"{self.diagnostics.capture_failures} capture failures, "
            f"{self.diagnostics.playback_failures} playback failures"
        )
        return self.collector.records

    async def run_section(self, section_index: int, section: SectionSpec) -> None:
        """Run the items of one section.

        Args:
            section_index: Position of the section in the plan
            section: Section configuration
        """
        logger.info(
            f"Section {section_index + 1}/{self.plan.section_count}: "
            f"{section.tag.value} ({len(section.items)} items)"
        )

        for item_index, item in enumerate(section.items):
            self.cursor.advance(RunEvent.item_started(section_index, item_index, item.sub_index))

            try:
                artifact = await self.sequencer.run_item(section, item)
            except CaptureError as e:
                self.diagnostics.capture_failures += 1
                logger.error(
                    f"Capture failed for {section.tag.value} item {item_index}, "
                    f"using an empty response: {e}"
                )
                artifact = AudioArtifact.empty(self.empty_mime_type)
                self.sequencer.complete()

            self.collector.collect(self.cursor.state, artifact)

    async def _rest(self) -> None:
        """Mandatory rest interval; nothing is captured and it can't be skipped."""
        self.cursor.advance(RunEvent.rest_started(self.rest_seconds))
        self.diagnostics.rest_intervals += 1
        logger.info(f"Rest interval: {self.rest_seconds}s")

        async for remaining in Countdown(self.rest_seconds, self.tick_seconds, self._sleep):
            if remaining != self.rest_seconds:
                self.cursor.advance(RunEvent.tick(remaining))
