"""
Data models and schemas for OralExam Sim

Contains Pydantic models for:
- Exam plans and generated papers
- Run state and events
- Responses and scores
- Sessions
- Report data
"""

from oralexam.models.plan import (
    AudioPayload,
    ExamPlan,
    ItemPrompt,
    ItemSpec,
    QuestionType,
    SectionKind,
    SectionSpec,
)
from oralexam.models.paper import ExamPaper
from oralexam.models.run import RunEvent, RunEventType, RunPhase, RunSnapshot, RunState
from oralexam.models.response import (
    AudioArtifact,
    ResponseRecord,
    RunDiagnostics,
    ScoreRecord,
    ScoringProgress,
    SectionScoreSet,
)
from oralexam.models.session import ExamSession, ExamStatus
from oralexam.models.report import ExamReport, ItemFeedback, SectionSummary

__all__ = [
    # Plan
    "AudioPayload",
    "ExamPlan",
    "ItemPrompt",
    "ItemSpec",
    "QuestionType",
    "SectionKind",
    "SectionSpec",
    "ExamPaper",
    # Run
    "RunEvent",
    "RunEventType",
    "RunPhase",
    "RunSnapshot",
    "RunState",
    # Responses
    "AudioArtifact",
    "ResponseRecord",
    "RunDiagnostics",
    "ScoreRecord",
    "ScoringProgress",
    "SectionScoreSet",
    # Session
    "ExamSession",
    "ExamStatus",
    # Report
    "ExamReport",
    "ItemFeedback",
    "SectionSummary",
]
