"""
Content service: produces an ExamPlan from generated exam content.
"""

import logging

from oralexam.config.settings import get_settings
from oralexam.core.gemini_client import GeminiClient
from oralexam.core.plan_builder import build_exam_plan
from oralexam.errors import PlanGenerationError
from oralexam.models.plan import ExamPlan

logger = logging.getLogger(__name__)


class ContentService:
    """Generates a paper, illustrates it and converts it into a plan."""

    def __init__(self, gemini: GeminiClient):
        self.gemini = gemini
        self.settings = get_settings()

    async def generate_plan(self) -> ExamPlan:
        """
        Generate a new exam plan.

        A missing illustration is not fatal; the picture-talk item runs on
        its description alone.

        Raises:
            PlanGenerationError: If no usable paper could be produced
        """
        logger.info("Generating exam paper")
        paper = await self.gemini.generate_paper()

        image_url = await self.gemini.generate_image(paper.speaking_d.image_description)
        if image_url:
            paper.speaking_d.image_url = image_url

        try:
            return build_exam_plan(
                paper,
                prompt_voice=self.settings.tts_voice,
                passage_voice=self.settings.passage_voice,
            )
        except PlanGenerationError:
            raise
        except Exception as e:
            raise PlanGenerationError(f"Could not build exam plan: {e}") from e
