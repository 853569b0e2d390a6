"""
Exam paper models for OralExam Sim

The paper is the raw content returned by the generation model. Field
aliases match the camelCase JSON the model is asked to produce.
"""

from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from oralexam.models.plan import QuestionType


class PaperModel(BaseModel):
    """Base for paper sections: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReadingSentences(PaperModel):
    items: list[str] = Field(..., min_length=1)


class ReadingPassage(PaperModel):
    text: str


class Situation(PaperModel):
    situation: str


class SituationalQuestions(PaperModel):
    items: list[Situation] = Field(..., min_length=1)


class PictureTalk(PaperModel):
    image_description: str
    given_sentence: str
    image_url: str | None = None


class FastResponse(PaperModel):
    questions: list[str] = Field(..., min_length=1)


class PassageQuestion(PaperModel):
    question: str
    answer_key: str | None = None
    type: QuestionType = QuestionType.FACT
    prep_time: int = Field(default=30, ge=0)
    record_time: int = Field(default=30, gt=0)


class ListeningPassage(PaperModel):
    passage: str
    questions: list[PassageQuestion] = Field(..., min_length=1)


class ExamPaper(PaperModel):
    """Complete generated exam paper."""

    id: str = Field(default_factory=lambda: str(uuid4()))

    # Part II Speaking
    speaking_a: ReadingSentences
    speaking_b: ReadingPassage
    speaking_c: SituationalQuestions
    speaking_d: PictureTalk

    # Part III Listening & Speaking
    listening_a: FastResponse
    listening_b: ListeningPassage
