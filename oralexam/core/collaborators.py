"""
Interfaces of the external collaborators the exam core talks to.
"""

from typing import Protocol

from oralexam.models.plan import ExamPlan, SectionKind
from oralexam.models.response import AudioArtifact, ScoreRecord


class PlanSource(Protocol):
    async def generate_plan(self) -> ExamPlan:
        """Produce a plan or raise PlanGenerationError."""
        ...


class SpeechPlayer(Protocol):
    async def play_audio(self, text: str, voice: str | None = None) -> None:
        """Return once playback has finished; may raise PlaybackError."""
        ...


class CaptureHandle(Protocol):
    @property
    def stopped(self) -> bool:
        """True once the subject stopped early or the ceiling was reached."""
        ...

    async def stop(self) -> AudioArtifact:
        """Finalize the capture (idempotent) and return the audio."""
        ...

    async def release(self) -> None:
        """Give the device back. Safe to call more than once."""
        ...


class CaptureDevice(Protocol):
    async def begin_capture(self, max_duration_seconds: int) -> CaptureHandle:
        """
        Acquire the device and start recording.

        If setup fails the device must already be released when the
        error propagates.
        """
        ...


class Scorer(Protocol):
    async def score(
        self,
        artifact: AudioArtifact,
        reference_text: str,
        section_tag: SectionKind,
        context_text: str | None = None,
    ) -> ScoreRecord:
        """Score one response; may raise ScoringError."""
        ...
