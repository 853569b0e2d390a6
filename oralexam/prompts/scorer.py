"""
Scorer Prompt Templates

Contains the per-section rubrics and the prompt used to score a recorded
response. Every SectionKind has exactly one rubric.

Breakdown ratings (0-10):
- Accuracy
- Pronunciation
- Fluency
"""

from typing import Any

from oralexam.errors import ConfigurationError
from oralexam.models.plan import SectionKind


class ScorerPrompts:
    """
    Prompt templates for scoring spoken responses.

    Key principles:
    - Score strictly against the section rubric
    - Separate the exam score from the 0-10 breakdown ratings
    - Feedback in Simplified Chinese for the student
    """

    RUBRICS: dict[SectionKind, str] = {
        SectionKind.SPEAKING_A: """
Max Score: 0.5.
- 0.5: Fluent, clear pronunciation, correct stress/intonation, correct pausing.
- 0.25: Basic reading, some errors in pronunciation/intonation but understandable.
- 0.0: Serious errors, unintelligible, or no answer.
""",
        SectionKind.SPEAKING_B: """
Max Score: 1.0.
**IMPORTANT:** The student has a 30-second time limit. If the recording cuts off before the end of the text, **do NOT deduct points for the missing part**. Evaluate only the portion that was read.

- 1.0: Clear, accurate, natural intonation, logical pausing, fluent.
- 0.75: Mostly clear, minor errors, generally fluent.
- 0.5: Some unclear pronunciation/intonation, not fluent.
- 0.25: Inaccurate, many errors, hard to understand.
- 0.0: Unintelligible.
""",
        SectionKind.SPEAKING_C: """
Max Score: 1.0 (0.5 per question).
The audio contains TWO questions asked by the student based on the situation. Evaluate both.

For EACH of the two questions:
- 0.5: Appropriate question, complete structure, correct grammar.
- 0.25: Relevant but has minor errors.
- 0.0: Irrelevant, repetition, or asking two Yes/No questions (the second Yes/No question gets 0).

Final Score is the sum of both (e.g., 0.5 + 0.5 = 1.0).
Check if at least one question is a Special Question (Wh-question).
""",
        SectionKind.SPEAKING_D: """
Max Score: 1.5.
- 1.5: Coherent, complete story matching pictures, clear expression, fluent, correct grammar/vocab.
- 1.0: Mostly coherent, matches pictures, some grammar/vocab errors but meaning clear.
- 0.5: Unclear main idea, incoherent, disconnected from pictures, serious errors.
- 0.0: No answer or irrelevant.
""",
        SectionKind.LISTENING_A: """
Max Score: 0.5.
- 0.5: Accurate and reasonable response, correct phonetics/grammar.
- 0.25: Reasonably accurate, basic phonetics correct, minor errors.
- 0.0: Inaccurate, unreasonable, or no response.
""",
        SectionKind.LISTENING_B: """
If Factual Question (Q1): Max Score 1.0.
- 1.0: Clear, comprehensive, correct answer.
- 0.5: Partial answer, incomplete, minor errors.
- 0.0: Incorrect or irrelevant.

If Opinion Question (Q2): Max Score 1.5.
- 1.5: Coherent, fluent, relevant, correct language.
- 1.0: Basic coherence, relevant, able to talk.
- 0.5: Incoherent, off-topic, serious errors.
- 0.0: No answer.
""",
    }

    def __init__(self):
        missing = [kind.value for kind in SectionKind if kind not in self.RUBRICS]
        if missing:
            raise ConfigurationError(f"No scoring rubric for: {', '.join(missing)}")

    def rubric_for(self, section_tag: SectionKind) -> str:
        return self.RUBRICS[section_tag]

    def generate_scoring_prompt(
        self,
        section_tag: SectionKind,
        reference_text: str,
        context_text: str | None = None,
    ) -> str:
        """Generate the prompt sent alongside the recorded audio."""
        return f"""
Task: Evaluate the student's oral English performance for the Shanghai GaoKao.
Section Type: {section_tag.value}
Context/Prompt: "{context_text or 'N/A'}"
Reference Answer / Content: "{reference_text}"

Rubric:
{self.rubric_for(section_tag)}

Instructions:
1. Assign a 'score' strictly based on the rubric above (e.g., 0.5, 0.25, 0.0, 1.0, 1.5).
2. Also provide breakdown ratings (0-10 scale) for:
   - Accuracy: Relevance and correctness.
   - Pronunciation: Intonation, stress, clarity.
   - Fluency: Flow and speed.
3. Transcribe the audio.
4. Provide the 'feedback' text in **Simplified Chinese (简体中文)**.

Provide JSON output.
"""

    def score_schema(self) -> dict[str, Any]:
        """JSON response schema for a score."""
        return {
            "type": "OBJECT",
            "properties": {
                "score": {
                    "type": "NUMBER",
                    "description": "The exam score based on the rubric (e.g. 0.5, 1.0)",
                },
                "accuracy": {"type": "NUMBER", "description": "0-10 scale"},
                "pronunciation": {"type": "NUMBER", "description": "0-10 scale"},
                "fluency": {"type": "NUMBER", "description": "0-10 scale"},
                "feedback": {"type": "STRING", "description": "Feedback in Simplified Chinese"},
                "transcription": {"type": "STRING"},
            },
            "required": ["score", "accuracy", "pronunciation", "fluency", "feedback", "transcription"],
        }
