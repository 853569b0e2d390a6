"""
Response Collector - builds the response log of a run.

Each completed recording becomes one immutable ResponseRecord whose
reference and context text are resolved from the plan by the section's
handler.
"""

import logging
from typing import Mapping

from oralexam.core.section_kinds import SECTION_HANDLERS, SectionHandler, check_handlers
from oralexam.errors import StateTransitionError
from oralexam.models.plan import ExamPlan, SectionKind
from oralexam.models.response import AudioArtifact, ResponseRecord
from oralexam.models.run import RunPhase, RunState

logger = logging.getLogger(__name__)


def build_response_record(
    state: RunState,
    plan: ExamPlan,
    artifact: AudioArtifact,
    sequence: int = 0,
    handlers: Mapping[SectionKind, SectionHandler] = SECTION_HANDLERS,
) -> ResponseRecord:
    """
    Materialize the response record for the item under the cursor.

    Args:
        state: Run state positioned on the completed item
        plan: The plan being run
        artifact: Captured (or synthesized) audio
        sequence: Position of the record in the response log
        handlers: Section handlers used to resolve reference text

    Returns:
        ResponseRecord for the current item
    """
    if state.is_terminal:
        raise StateTransitionError("Run is finished, there is no current item")

    section, item = plan.get_item(state.section_index, state.item_index)
    reference_text, context_text = handlers[section.tag].resolve_reference(section, item)

    return ResponseRecord(
        sequence=sequence,
        section_tag=section.tag,
        section_index=state.section_index,
        item_index=state.item_index,
        sub_item_index=state.sub_item_index,
        artifact=artifact,
        reference_text=reference_text,
        context_text=context_text,
        max_score=item.max_score,
    )


class ResponseCollector:
    """
    Append-only log of response records for one run.

    Construction fails when the plan uses a section kind that has no
    handler, so a missing rule is never discovered mid-exam.
    """

    def __init__(
        self,
        plan: ExamPlan,
        handlers: Mapping[SectionKind, SectionHandler] = SECTION_HANDLERS,
    ):
        check_handlers(handlers, kinds=set(plan.tags()))
        self.plan = plan
        self.handlers = handlers
        self._records: list[ResponseRecord] = []

    @property
    def records(self) -> list[ResponseRecord]:
        """Snapshot of the log in capture order."""
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def collect(self, state: RunState, artifact: AudioArtifact) -> ResponseRecord:
        """
        Record the response for the item that just completed.

        Raises:
            StateTransitionError: If the cursor is not on a completed item
        """
        if state.phase != RunPhase.COMPLETED:
            raise StateTransitionError(
                f"Responses are collected on completion, not during {state.phase.value}"
            )

        record = build_response_record(
            state,
            self.plan,
            artifact,
            sequence=len(self._records),
            handlers=self.handlers,
        )
        self._records.append(record)

        logger.info(
            f"Collected response #{record.sequence}: {record.section_tag.value} "
            f"item {record.item_index}.{record.sub_item_index} "
            f"({len(artifact.data)} bytes{', synthesized' if artifact.synthesized else ''})"
        )
        return record
