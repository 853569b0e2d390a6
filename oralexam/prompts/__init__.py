"""
AI prompt templates for OralExam Sim

Contains structured prompts for:
- Exam paper and illustration generation
- Response scoring (one rubric per section kind)
"""

from oralexam.prompts.generator import GeneratorPrompts
from oralexam.prompts.scorer import ScorerPrompts

__all__ = [
    "GeneratorPrompts",
    "ScorerPrompts",
]
