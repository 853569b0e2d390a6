"""
Report Generator for OralExam Sim

Generates the review report with:
- Total score out of the plan maximum
- Average accuracy, pronunciation and fluency (radar metrics)
- Per-section subtotals and per-item feedback
- A downloadable Markdown rendition
"""

import logging
from datetime import datetime

from oralexam.core.section_kinds import get_handler
from oralexam.errors import StateTransitionError
from oralexam.models.plan import ExamPlan
from oralexam.models.report import ExamReport, ItemFeedback, SectionSummary
from oralexam.models.response import ScoreRecord
from oralexam.models.session import ExamSession, ExamStatus

logger = logging.getLogger(__name__)

METRICS = ("pronunciation", "fluency", "accuracy")


class ReportGenerator:
    """Builds reports from a session in review state."""

    def generate(self, session: ExamSession) -> ExamReport:
        """
        Generate the exam report.

        Args:
            session: Session whose scoring pass has finished

        Returns:
            Complete ExamReport

        Raises:
            StateTransitionError: If the session has no scores yet
        """
        if session.status != ExamStatus.REVIEW or session.plan is None:
            raise StateTransitionError(
                f"Report requires a session in review, not {session.status.value}"
            )

        plan = session.plan
        scores = [score for group in session.section_scores for score in group.items]
        sections = self._summarize_sections(plan, scores)

        report = ExamReport(
            session_id=session.session_id,
            plan_id=plan.plan_id,
            generated_at=datetime.utcnow(),
            duration_minutes=session.get_duration_seconds() / 60,
            total_score=sum(section.score for section in sections),
            max_score=plan.max_score,
            metric_averages=self._metric_averages(scores),
            sections=sections,
            unscored_items=plan.total_items - len(scores),
            diagnostics=session.diagnostics.model_copy(),
        )
        logger.info(
            f"Report for {session.session_id}: {report.total_score:.2f}/{report.max_score}"
        )
        return report

    def _metric_averages(self, scores: list[ScoreRecord]) -> dict[str, float]:
        if not scores:
            return {metric: 0.0 for metric in METRICS}
        return {
            metric: sum(getattr(score, metric) for score in scores) / len(scores)
            for metric in METRICS
        }

    def _summarize_sections(
        self,
        plan: ExamPlan,
        scores: list[ScoreRecord],
    ) -> list[SectionSummary]:
        """One summary per plan section, in plan order."""
        summaries = []
        for section in plan.sections:
            section_scores = [score for score in scores if score.section_tag == section.tag]
            items = []
            for score in section_scores:
                item = section.items[score.item_index]
                items.append(ItemFeedback(
                    section_tag=section.tag,
                    item_index=score.item_index,
                    sub_item_index=score.sub_item_index,
                    prompt_text=item.prompt.question or item.prompt.text,
                    answer_key=item.prompt.answer_key,
                    score=score.score,
                    max_score=item.max_score,
                    accuracy=score.accuracy,
                    pronunciation=score.pronunciation,
                    fluency=score.fluency,
                    transcription=score.transcription,
                    feedback=score.feedback,
                ))

            summaries.append(SectionSummary(
                section_tag=section.tag,
                title=get_handler(section.tag).title,
                score=sum(item.score for item in items),
                max_score=section.max_score,
                items_total=len(section.items),
                items_scored=len(items),
                items=items,
            ))
        return summaries

    # =========================================================================
    # MARKDOWN
    # =========================================================================

    def to_markdown(self, report: ExamReport) -> str:
        """Render the report as a Markdown document."""
        lines = [
            "# Shanghai Oral English Test Report",
            "",
            f"**Total Score:** {report.total_score:.2f} / {report.max_score:g}",
            f"**Date:** {report.generated_at.strftime('%Y-%m-%d %H:%M')}",
            "",
            "| Metric | Average (0-10) |",
            "|---|---|",
        ]
        for metric, value in report.metric_averages.items():
            lines.append(f"| {metric.capitalize()} | {value:.1f} |")
        lines.append("")

        if report.unscored_items:
            lines.append(f"_{report.unscored_items} item(s) could not be scored._")
            lines.append("")

        for section in report.sections:
            lines.append(f"## {section.title} ({section.score:.2f} / {section.max_score:g})")
            lines.append("")
            for item in section.items:
                lines.append(f"### Item {item.item_index + 1}")
                if item.prompt_text:
                    lines.append(f"> **Prompt:** {item.prompt_text}")
                if item.answer_key:
                    lines.append(f"> **Answer Key:** {item.answer_key}")
                lines.append("")
                lines.append(f"**Score:** {item.score:g} / {item.max_score:g}")
                lines.append(f'**Transcription:** "{item.transcription}"')
                lines.append(f"**Feedback:** {item.feedback}")
                lines.append("---")
                lines.append("")

        return "\n".join(lines)
