"""
Phase Sequencer - drives one item through its phases.

    INSTRUCTION → [PLAYING] → [PREPARING] → RECORDING → COMPLETED

PLAYING happens when the item has audio (or a preamble due for it),
PREPARING when the preparation time is above zero. Every wait is an
await, so cancelling the surrounding task aborts the item at any point;
the capture device is released on every way out of RECORDING.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping

from oralexam.core.collaborators import CaptureDevice, CaptureHandle, SpeechPlayer
from oralexam.core.countdown import Countdown, SleepFunc
from oralexam.core.run_cursor import RunCursor
from oralexam.core.section_kinds import SECTION_HANDLERS, SectionHandler
from oralexam.errors import CaptureError
from oralexam.models.plan import AudioPayload, ItemSpec, SectionKind, SectionSpec
from oralexam.models.response import AudioArtifact, RunDiagnostics
from oralexam.models.run import RunEvent, RunPhase

logger = logging.getLogger(__name__)


class PhaseSequencer:
    """
    Per-item phase state machine.

    The sequencer produces at most one artifact per item and reports
    completion exactly once, through complete().
    """

    def __init__(
        self,
        cursor: RunCursor,
        player: SpeechPlayer,
        capture_device: CaptureDevice,
        diagnostics: RunDiagnostics | None = None,
        handlers: Mapping[SectionKind, SectionHandler] = SECTION_HANDLERS,
        settle_seconds: float = 2.0,
        tick_seconds: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize the sequencer.

        Args:
            cursor: Run cursor all phase changes go through
            player: Text-to-speech playback collaborator
            capture_device: Microphone capture collaborator
            diagnostics: Counters for recovered errors
            handlers: Section handlers (preamble and duration rules)
            settle_seconds: Display time of the instruction phase
            tick_seconds: Length of one countdown tick
            sleep: Awaitable sleep used for every timed wait
        """
        self.cursor = cursor
        self.player = player
        self.capture_device = capture_device
        self.diagnostics = diagnostics or RunDiagnostics()
        self.handlers = handlers
        self.settle_seconds = settle_seconds
        self.tick_seconds = tick_seconds
        self._sleep = sleep

    # =========================================================================
    # ITEM FLOW
    # =========================================================================

    async def run_item(self, section: SectionSpec, item: ItemSpec) -> AudioArtifact:
        """
        Run an item from its instruction phase to completion.

        The cursor must already be on the item (INSTRUCTION phase).

        Returns:
            The captured audio

        Raises:
            CaptureError: If recording failed. The item is left in RECORDING
                and the caller decides how to complete it.
        """
        handler = self.handlers[section.tag]
        prep_seconds, record_seconds = handler.durations(section, item)

        if self.settle_seconds > 0:
            await self._sleep(self.settle_seconds)

        playlist = self._playlist(handler, item)
        if playlist:
            self.cursor.advance(RunEvent.phase_entered(RunPhase.PLAYING))
            for payload in playlist:
                await self._play(payload)

        if prep_seconds > 0:
            self.cursor.advance(RunEvent.phase_entered(RunPhase.PREPARING, prep_seconds))
            await self._count_down(prep_seconds)

        self.cursor.advance(RunEvent.phase_entered(RunPhase.RECORDING, record_seconds))
        artifact = await self._record(record_seconds)

        self.complete()
        return artifact

    def complete(self) -> None:
        """Mark the current item as completed."""
        self.cursor.advance(RunEvent.item_completed())

    # =========================================================================
    # PLAYBACK
    # =========================================================================

    def _playlist(self, handler: SectionHandler, item: ItemSpec) -> list[AudioPayload]:
        """Audio to play before preparation: preamble first, then item audio."""
        playlist = []
        preamble = handler.preamble(item)
        if preamble is not None:
            playlist.append(preamble)
        if item.audio is not None:
            playlist.append(item.audio)
        return playlist

    async def _play(self, payload: AudioPayload) -> None:
        """Play a payload; a failed playback counts as finished."""
        for _ in range(payload.repeat):
            try:
                await self.player.play_audio(payload.text, payload.voice)
            except Exception as e:
                self.diagnostics.playback_failures += 1
                logger.warning(f"Playback failed, continuing without audio: {e}")
                return

    # =========================================================================
    # TIMED PHASES
    # =========================================================================

    async def _count_down(self, seconds: int) -> None:
        async for remaining in Countdown(seconds, self.tick_seconds, self._sleep):
            if remaining != seconds:
                self.cursor.advance(RunEvent.tick(remaining))

    @asynccontextmanager
    async def _capture(self, record_seconds: int) -> AsyncIterator[CaptureHandle]:
        """Hold the capture device for exactly one recording phase."""
        try:
            handle = await self.capture_device.begin_capture(record_seconds)
        except Exception as e:
            raise CaptureError(f"Could not start capture: {e}") from e

        try:
            yield handle
        finally:
            await self._release(handle)

    async def _release(self, handle: CaptureHandle) -> None:
        try:
            await handle.release()
        except Exception as e:
            logger.error(f"Failed to release capture device: {e}")

    async def _record(self, record_seconds: int) -> AudioArtifact:
        async with self._capture(record_seconds) as handle:
            async for remaining in Countdown(record_seconds, self.tick_seconds, self._sleep):
                if remaining != record_seconds:
                    self.cursor.advance(RunEvent.tick(remaining))
                if handle.stopped:
                    break

            try:
                return await handle.stop()
            except CaptureError:
                raise
            except Exception as e:
                raise CaptureError(f"Capture failed: {e}") from e
