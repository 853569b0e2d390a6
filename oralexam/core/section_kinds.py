"""
Section kind handlers for OralExam Sim

Every SectionKind has exactly one SectionHandler holding the rules that
differ between sections:
- preamble rule: which shared audio (if any) plays before an item
- reference rule: what a response is judged against, plus context
- duration rule: preparation and recording seconds for an item

Adding a SectionKind without a handler fails at import time.
"""

from dataclasses import dataclass
from typing import Callable, Mapping

from oralexam.errors import ConfigurationError
from oralexam.models.plan import (
    AudioPayload,
    ItemSpec,
    QuestionType,
    SectionKind,
    SectionSpec,
)

PreambleRule = Callable[[ItemSpec], AudioPayload | None]
ReferenceRule = Callable[[SectionSpec, ItemSpec], tuple[str, str | None]]
DurationRule = Callable[[SectionSpec, ItemSpec], tuple[int, int]]


SITUATION_REFERENCE = (
    "Ask two appropriate questions based on the situation. "
    "At least one must be a special (Wh-) question."
)
FAST_RESPONSE_REFERENCE = "An accurate, reasonable and natural response to what was said."
PLACEHOLDER_REFERENCES: dict[QuestionType, str] = {
    QuestionType.FACT: "A factual answer based on the passage.",
    QuestionType.OPINION: "A relevant opinion on the passage with supporting reasons.",
}


@dataclass(frozen=True)
class SectionHandler:
    """Rules for one section kind."""

    kind: SectionKind
    title: str
    instruction: str
    preamble_rule: PreambleRule
    reference_rule: ReferenceRule
    duration_rule: DurationRule

    # Defaults used when building a plan from a generated paper
    default_prep_seconds: int = 0
    default_record_seconds: int = 30
    item_max_score: float = 1.0

    def preamble(self, item: ItemSpec) -> AudioPayload | None:
        return self.preamble_rule(item)

    def resolve_reference(self, section: SectionSpec, item: ItemSpec) -> tuple[str, str | None]:
        return self.reference_rule(section, item)

    def durations(self, section: SectionSpec, item: ItemSpec) -> tuple[int, int]:
        return self.duration_rule(section, item)


# =============================================================================
# PREAMBLE RULES
# =============================================================================

def preamble_on_first_sub_item(item: ItemSpec) -> AudioPayload | None:
    """Shared preamble plays once per group, before sub-item 0."""
    if item.preamble is not None and item.sub_index == 0:
        return item.preamble
    return None


# =============================================================================
# REFERENCE RULES
# =============================================================================

def reference_is_prompt_text(section: SectionSpec, item: ItemSpec) -> tuple[str, str | None]:
    """Reading items are judged against the text that was read."""
    return item.prompt.text, None


def reference_for_situation(section: SectionSpec, item: ItemSpec) -> tuple[str, str | None]:
    return SITUATION_REFERENCE, item.prompt.situation or item.prompt.text


def reference_for_picture(section: SectionSpec, item: ItemSpec) -> tuple[str, str | None]:
    given = item.prompt.given_sentence or ""
    reference = f"A coherent story that matches the pictures and begins with: {given}".strip()
    return reference, item.prompt.image_description


def reference_for_fast_response(section: SectionSpec, item: ItemSpec) -> tuple[str, str | None]:
    return FAST_RESPONSE_REFERENCE, item.prompt.text


def reference_for_passage_question(section: SectionSpec, item: ItemSpec) -> tuple[str, str | None]:
    """Answer key when supplied, otherwise a placeholder by question type."""
    prompt = item.prompt
    reference = prompt.answer_key
    if not reference or not reference.strip():
        reference = PLACEHOLDER_REFERENCES[prompt.question_type or QuestionType.FACT]

    context = f"Question: {prompt.question or prompt.text}"
    if prompt.passage:
        context += f"\nPassage: {prompt.passage}"
    return reference, context


# =============================================================================
# DURATION RULES
# =============================================================================

def section_durations(section: SectionSpec, item: ItemSpec) -> tuple[int, int]:
    """Item overrides first, then the section's nominal values."""
    return section.prep_seconds_for(item), section.record_seconds_for(item)


# =============================================================================
# REGISTRY
# =============================================================================

SECTION_HANDLERS: dict[SectionKind, SectionHandler] = {
    SectionKind.SPEAKING_A: SectionHandler(
        kind=SectionKind.SPEAKING_A,
        title="Part II Sec A: Reading Sentences",
        instruction="Read the sentence aloud after the preparation time.",
        preamble_rule=preamble_on_first_sub_item,
        reference_rule=reference_is_prompt_text,
        duration_rule=section_durations,
        default_prep_seconds=30,
        default_record_seconds=15,
        item_max_score=0.5,
    ),
    SectionKind.SPEAKING_B: SectionHandler(
        kind=SectionKind.SPEAKING_B,
        title="Part II Sec B: Reading Passage",
        instruction="Read the passage aloud after the preparation time.",
        preamble_rule=preamble_on_first_sub_item,
        reference_rule=reference_is_prompt_text,
        duration_rule=section_durations,
        default_prep_seconds=60,
        default_record_seconds=30,
        item_max_score=1.0,
    ),
    SectionKind.SPEAKING_C: SectionHandler(
        kind=SectionKind.SPEAKING_C,
        title="Part II Sec C: Situational Questions",
        instruction="Read the situation and ask two questions. At least one must be a Wh-question.",
        preamble_rule=preamble_on_first_sub_item,
        reference_rule=reference_for_situation,
        duration_rule=section_durations,
        default_prep_seconds=30,
        default_record_seconds=30,
        item_max_score=1.0,
    ),
    SectionKind.SPEAKING_D: SectionHandler(
        kind=SectionKind.SPEAKING_D,
        title="Part II Sec D: Picture Talk",
        instruction="Tell a story about the pictures, starting with the given sentence.",
        preamble_rule=preamble_on_first_sub_item,
        reference_rule=reference_for_picture,
        duration_rule=section_durations,
        default_prep_seconds=60,
        default_record_seconds=60,
        item_max_score=1.5,
    ),
    SectionKind.LISTENING_A: SectionHandler(
        kind=SectionKind.LISTENING_A,
        title="Part III Sec A: Fast Response",
        instruction="Listen and respond immediately.",
        preamble_rule=preamble_on_first_sub_item,
        reference_rule=reference_for_fast_response,
        duration_rule=section_durations,
        default_prep_seconds=0,
        default_record_seconds=5,
        item_max_score=0.5,
    ),
    SectionKind.LISTENING_B: SectionHandler(
        kind=SectionKind.LISTENING_B,
        title="Part III Sec B: Listening Passage",
        instruction="Listen to the passage, then answer the question.",
        preamble_rule=preamble_on_first_sub_item,
        reference_rule=reference_for_passage_question,
        duration_rule=section_durations,
        default_prep_seconds=30,
        default_record_seconds=30,
        item_max_score=1.0,
    ),
}


def check_handlers(
    handlers: Mapping[SectionKind, SectionHandler],
    kinds=None,
) -> None:
    """
    Ensure every kind has a handler registered under its own key.

    Args:
        handlers: Handler registry to check
        kinds: Kinds that must be covered (defaults to all SectionKinds)

    Raises:
        ConfigurationError: If a kind is missing or registered under the wrong key
    """
    required = list(SectionKind) if kinds is None else list(kinds)
    missing = [kind.value for kind in required if kind not in handlers]
    if missing:
        raise ConfigurationError(f"No section handler for: {', '.join(missing)}")
    for kind, handler in handlers.items():
        if handler.kind != kind:
            raise ConfigurationError(
                f"Handler for {handler.kind.value} registered under {kind.value}"
            )


def get_handler(kind: SectionKind) -> SectionHandler:
    """Get the handler for a section kind."""
    return SECTION_HANDLERS[kind]


check_handlers(SECTION_HANDLERS)
