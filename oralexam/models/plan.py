"""
Exam plan models for OralExam Sim

An ExamPlan is the ordered list of sections a run walks through. Every
duration is validated here so a plan that cannot be run is rejected at
construction time rather than halfway through an exam.
"""

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SectionKind(str, Enum):
    """Section kinds of the listening & speaking exam."""

    # Part II Speaking
    SPEAKING_A = "SpeakingA"  # Reading sentences
    SPEAKING_B = "SpeakingB"  # Reading a passage
    SPEAKING_C = "SpeakingC"  # Situational questions
    SPEAKING_D = "SpeakingD"  # Picture talk

    # Part III Listening & Speaking
    LISTENING_A = "ListeningA"  # Fast response
    LISTENING_B = "ListeningB"  # Listening passage with questions


class QuestionType(str, Enum):
    """Kind of a passage sub-question."""

    FACT = "fact"
    OPINION = "opinion"


class AudioPayload(BaseModel):
    """Text to be read aloud by the speech player."""

    model_config = ConfigDict(frozen=True)

    text: str
    voice: str | None = None
    repeat: int = Field(default=1, ge=1, description="Times the text is read")


class ItemPrompt(BaseModel):
    """What the subject sees (and sometimes hears) for one item."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    situation: str | None = None
    image_description: str | None = None
    image_url: str | None = None
    given_sentence: str | None = None

    # Passage sub-questions
    passage: str | None = None
    question: str | None = None
    answer_key: str | None = None
    question_type: QuestionType | None = None


class ItemSpec(BaseModel):
    """One schedulable unit that yields exactly one recorded response."""

    model_config = ConfigDict(frozen=True)

    prompt: ItemPrompt

    # Audio played before preparation. The preamble is shared by the items
    # of one group and is only played for sub_index 0.
    audio: AudioPayload | None = None
    preamble: AudioPayload | None = None
    sub_index: int = Field(default=0, ge=0)

    # Per-item overrides of the section durations (seconds)
    prep_seconds: int | None = Field(default=None, ge=0)
    record_seconds: int | None = Field(default=None, gt=0)

    max_score: float = Field(default=1.0, ge=0)


class SectionSpec(BaseModel):
    """An ordered group of items sharing a prompt style and rubric."""

    model_config = ConfigDict(frozen=True)

    tag: SectionKind
    items: list[ItemSpec] = Field(..., min_length=1)

    # Nominal durations; items may override them
    prep_seconds: int = Field(default=0, ge=0)
    record_seconds: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_recording_durations(self) -> "SectionSpec":
        for index, item in enumerate(self.items):
            if item.record_seconds is None and self.record_seconds is None:
                raise ValueError(
                    f"{self.tag.value} item {index} has no recording duration"
                )
        return self

    def prep_seconds_for(self, item: ItemSpec) -> int:
        """Preparation time for an item (override or section value)."""
        if item.prep_seconds is not None:
            return item.prep_seconds
        return self.prep_seconds

    def record_seconds_for(self, item: ItemSpec) -> int:
        """Recording ceiling for an item (override or section value)."""
        if item.record_seconds is not None:
            return item.record_seconds
        return self.record_seconds  # type: ignore[return-value]

    @property
    def max_score(self) -> float:
        return sum(item.max_score for item in self.items)


class ExamPlan(BaseModel):
    """Complete, validated exam plan."""

    model_config = ConfigDict(frozen=True)

    plan_id: str = Field(default_factory=lambda: str(uuid4()))
    sections: list[SectionSpec] = Field(..., min_length=1)

    @property
    def section_count(self) -> int:
        return len(self.sections)

    @property
    def total_items(self) -> int:
        return sum(len(section.items) for section in self.sections)

    @property
    def max_score(self) -> float:
        return sum(section.max_score for section in self.sections)

    def item_counts(self) -> tuple[int, ...]:
        """Number of items per section, in order."""
        return tuple(len(section.items) for section in self.sections)

    def get_item(self, section_index: int, item_index: int) -> tuple[SectionSpec, ItemSpec]:
        """Look up a section and one of its items by position."""
        section = self.sections[section_index]
        return section, section.items[item_index]

    def tags(self) -> list[SectionKind]:
        return [section.tag for section in self.sections]
