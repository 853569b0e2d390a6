"""
Report models for OralExam Sim

Defines the structure of the review-state report card.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from oralexam.models.plan import SectionKind
from oralexam.models.response import RunDiagnostics


class ItemFeedback(BaseModel):
    """Score and feedback for a single item."""

    section_tag: SectionKind
    item_index: int
    sub_item_index: int = 0

    prompt_text: str = ""
    answer_key: str | None = None

    score: float
    max_score: float
    accuracy: float
    pronunciation: float
    fluency: float

    transcription: str = ""
    feedback: str = ""


class SectionSummary(BaseModel):
    """Subtotal for one section."""

    section_tag: SectionKind
    title: str

    score: float = 0.0
    max_score: float

    items_total: int
    items_scored: int
    items: list[ItemFeedback] = Field(default_factory=list)


class ExamReport(BaseModel):
    """Complete exam report."""

    session_id: str
    plan_id: str
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    duration_minutes: float = 0.0

    # Overall
    total_score: float
    max_score: float

    # Radar chart: average 0-10 ratings across scored items
    metric_averages: dict[str, float] = Field(default_factory=dict)

    sections: list[SectionSummary] = Field(default_factory=list)

    # Items with no score (scoring failed)
    unscored_items: int = 0
    diagnostics: RunDiagnostics = Field(default_factory=RunDiagnostics)

    @property
    def score_percentage(self) -> float:
        if self.max_score <= 0:
            return 0.0
        return self.total_score / self.max_score * 100
