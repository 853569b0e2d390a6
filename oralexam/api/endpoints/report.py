"""
Report API endpoints

Handles:
- Report retrieval (JSON)
- Markdown report download
"""

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from oralexam.api.dependencies import get_orchestrator, get_report_generator
from oralexam.errors import StateTransitionError
from oralexam.models.report import ExamReport

router = APIRouter()


class ReportSummaryResponse(BaseModel):
    """Condensed report response."""
    session_id: str
    total_score: float
    max_score: float
    score_percentage: float
    unscored_items: int


def _build_report(session_id: str) -> ExamReport:
    orchestrator = get_orchestrator()
    try:
        session = orchestrator.get_session(session_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Session not found")

    try:
        return get_report_generator().generate(session)
    except StateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{session_id}/report", response_model=ExamReport)
async def get_report(session_id: str) -> ExamReport:
    """Get the full report for a scored exam."""
    return _build_report(session_id)


@router.get("/{session_id}/report/summary", response_model=ReportSummaryResponse)
async def get_report_summary(session_id: str) -> ReportSummaryResponse:
    """Get the headline numbers of the report."""
    report = _build_report(session_id)
    return ReportSummaryResponse(
        session_id=report.session_id,
        total_score=report.total_score,
        max_score=report.max_score,
        score_percentage=report.score_percentage,
        unscored_items=report.unscored_items,
    )


@router.get("/{session_id}/report/markdown", response_class=PlainTextResponse)
async def download_report(session_id: str) -> PlainTextResponse:
    """Download the report as Markdown."""
    report = _build_report(session_id)
    filename = f"test-report-{report.generated_at.strftime('%Y-%m-%d')}.md"
    return PlainTextResponse(
        get_report_generator().to_markdown(report),
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
