"""
Exam session and status models for OralExam Sim
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from oralexam.models.plan import ExamPlan
from oralexam.models.response import (
    ResponseRecord,
    RunDiagnostics,
    ScoringProgress,
    SectionScoreSet,
)
from oralexam.models.run import RunState


class ExamStatus(str, Enum):
    """Exam session states."""

    # Pre-exam
    IDLE = "idle"  # No paper yet
    GENERATING = "generating"  # Content service producing the plan
    READY = "ready"  # Plan loaded, waiting for start

    # During exam
    IN_PROGRESS = "in_progress"  # Sections running
    SCORING = "scoring"  # Responses being scored

    # Post-exam
    REVIEW = "review"  # Scores available

    # Terminal
    ABORTED = "aborted"  # Run aborted, responses discarded


class ExamSession(BaseModel):
    """Complete exam session state."""

    # Identification
    session_id: str = Field(default_factory=lambda: str(uuid4()))

    # State
    status: ExamStatus = Field(default=ExamStatus.IDLE)

    # Timing
    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    # Plan and cursor
    plan: ExamPlan | None = None
    run: RunState | None = None

    # Response log (append-only during a run)
    responses: list[ResponseRecord] = Field(default_factory=list)

    # Scoring
    scoring_progress: ScoringProgress = Field(default_factory=ScoringProgress)
    section_scores: list[SectionScoreSet] = Field(default_factory=list)

    diagnostics: RunDiagnostics = Field(default_factory=RunDiagnostics)

    # Metadata
    error_message: str | None = None

    def reset_run(self) -> None:
        """Drop everything produced by a run, keeping the plan."""
        self.run = None
        self.responses = []
        self.scoring_progress = ScoringProgress()
        self.section_scores = []
        self.diagnostics = RunDiagnostics()
        self.started_at = None
        self.completed_at = None
        self.error_message = None

    def get_duration_seconds(self) -> float:
        """Get exam duration in seconds."""
        if not self.started_at:
            return 0.0
        end = self.completed_at or datetime.utcnow()
        return (end - self.started_at).total_seconds()
