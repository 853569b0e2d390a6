"""
Response and score models for OralExam Sim

Defines captured audio, the per-item response log, and the score
structures produced by the scoring collaborator.
"""

from pydantic import BaseModel, ConfigDict, Field

from oralexam.models.plan import SectionKind


class AudioArtifact(BaseModel):
    """Audio captured for one item."""

    model_config = ConfigDict(frozen=True)

    data: bytes = b""
    mime_type: str = "audio/webm"
    duration_seconds: float = Field(default=0.0, ge=0)

    # True when the artifact stands in for a failed capture
    synthesized: bool = False

    @classmethod
    def empty(cls, mime_type: str = "audio/webm") -> "AudioArtifact":
        """An empty artifact substituted for a failed capture."""
        return cls(data=b"", mime_type=mime_type, synthesized=True)

    @property
    def is_empty(self) -> bool:
        return len(self.data) == 0


class ResponseRecord(BaseModel):
    """One completed recording, attributed to its section and item."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(..., ge=0, description="Position in the response log")
    section_tag: SectionKind
    section_index: int = Field(..., ge=0)
    item_index: int = Field(..., ge=0)
    sub_item_index: int = Field(default=0, ge=0)

    artifact: AudioArtifact
    reference_text: str
    context_text: str | None = None
    max_score: float = Field(default=1.0, ge=0)


class ScoreRecord(BaseModel):
    """Scoring result for one response."""

    model_config = ConfigDict(frozen=True)

    section_tag: SectionKind
    item_index: int = Field(default=0, ge=0)
    sub_item_index: int = Field(default=0, ge=0)

    # Exam score on the item's own scale (e.g. 0.5, 1.0, 1.5)
    score: float = Field(..., ge=0)

    # Breakdown ratings (each 0-10)
    accuracy: float = Field(..., ge=0, le=10)
    pronunciation: float = Field(..., ge=0, le=10)
    fluency: float = Field(..., ge=0, le=10)

    feedback: str = ""
    transcription: str = ""


class SectionScoreSet(BaseModel):
    """Scores for one section, in arrival order."""

    section_tag: SectionKind
    items: list[ScoreRecord] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return sum(item.score for item in self.items)


class ScoringProgress(BaseModel):
    """Progress counter for the scoring pass."""

    current: int = 0
    total: int = 0

    def __str__(self) -> str:
        return f"{self.current}/{self.total}"


class RunDiagnostics(BaseModel):
    """Counters for errors recovered during a run."""

    playback_failures: int = 0
    capture_failures: int = 0
    scoring_failures: int = 0
    rest_intervals: int = 0
