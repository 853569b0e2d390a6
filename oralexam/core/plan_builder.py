"""
Converts a generated exam paper into an ExamPlan.

Section order follows the real exam: Part II Speaking A-D, then Part III
Listening A-B. Timing and item scores come from the section handlers,
except for the listening passage, whose questions carry their own.
"""

import logging

from pydantic import ValidationError

from oralexam.core.section_kinds import get_handler
from oralexam.errors import PlanGenerationError
from oralexam.models.paper import ExamPaper
from oralexam.models.plan import (
    AudioPayload,
    ExamPlan,
    ItemPrompt,
    ItemSpec,
    QuestionType,
    SectionKind,
    SectionSpec,
)

logger = logging.getLogger(__name__)

PASSAGE_REPEAT = 2
OPINION_MAX_SCORE = 1.5


def _section(kind: SectionKind, items: list[ItemSpec]) -> SectionSpec:
    handler = get_handler(kind)
    return SectionSpec(
        tag=kind,
        items=items,
        prep_seconds=handler.default_prep_seconds,
        record_seconds=handler.default_record_seconds,
    )


def _item_score(kind: SectionKind) -> float:
    return get_handler(kind).item_max_score


def build_exam_plan(
    paper: ExamPaper,
    prompt_voice: str | None = None,
    passage_voice: str | None = None,
) -> ExamPlan:
    """
    Build the plan for a generated paper.

    Args:
        paper: Generated exam content
        prompt_voice: Voice for prompts read aloud
        passage_voice: Voice for the listening passage

    Returns:
        Validated ExamPlan

    Raises:
        PlanGenerationError: If the paper yields an invalid plan
    """
    try:
        sections = [
            _section(SectionKind.SPEAKING_A, [
                ItemSpec(
                    prompt=ItemPrompt(text=sentence),
                    max_score=_item_score(SectionKind.SPEAKING_A),
                )
                for sentence in paper.speaking_a.items
            ]),
            _section(SectionKind.SPEAKING_B, [
                ItemSpec(
                    prompt=ItemPrompt(text=paper.speaking_b.text),
                    max_score=_item_score(SectionKind.SPEAKING_B),
                ),
            ]),
            _section(SectionKind.SPEAKING_C, [
                ItemSpec(
                    prompt=ItemPrompt(text=entry.situation, situation=entry.situation),
                    max_score=_item_score(SectionKind.SPEAKING_C),
                )
                for entry in paper.speaking_c.items
            ]),
            _section(SectionKind.SPEAKING_D, [
                ItemSpec(
                    prompt=ItemPrompt(
                        text=paper.speaking_d.given_sentence,
                        image_description=paper.speaking_d.image_description,
                        image_url=paper.speaking_d.image_url,
                        given_sentence=paper.speaking_d.given_sentence,
                    ),
                    max_score=_item_score(SectionKind.SPEAKING_D),
                ),
            ]),
            _section(SectionKind.LISTENING_A, [
                ItemSpec(
                    prompt=ItemPrompt(text=question),
                    audio=AudioPayload(text=question, voice=prompt_voice),
                    max_score=_item_score(SectionKind.LISTENING_A),
                )
                for question in paper.listening_a.questions
            ]),
            _listening_passage_section(paper, prompt_voice, passage_voice),
        ]
        plan = ExamPlan(plan_id=paper.id, sections=sections)
    except ValidationError as e:
        raise PlanGenerationError(f"Generated paper does not form a valid plan: {e}") from e

    logger.info(
        f"Built plan {plan.plan_id}: {plan.section_count} sections, "
        f"{plan.total_items} items, max score {plan.max_score}"
    )
    return plan


def _listening_passage_section(
    paper: ExamPaper,
    prompt_voice: str | None,
    passage_voice: str | None,
) -> SectionSpec:
    """One shared passage (read twice), then each question with its own timing."""
    listening = paper.listening_b
    preamble = AudioPayload(text=listening.passage, voice=passage_voice, repeat=PASSAGE_REPEAT)

    items = []
    for sub_index, question in enumerate(listening.questions):
        is_opinion = question.type == QuestionType.OPINION
        items.append(ItemSpec(
            prompt=ItemPrompt(
                text=question.question,
                passage=listening.passage,
                question=question.question,
                answer_key=question.answer_key,
                question_type=question.type,
            ),
            audio=AudioPayload(text=question.question, voice=prompt_voice),
            preamble=preamble,
            sub_index=sub_index,
            prep_seconds=question.prep_time,
            record_seconds=question.record_time,
            max_score=OPINION_MAX_SCORE if is_opinion else _item_score(SectionKind.LISTENING_B),
        ))

    return SectionSpec(tag=SectionKind.LISTENING_B, items=items)
