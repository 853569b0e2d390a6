"""
Tests for ContentService: paper generation, illustration and plan building.
"""

import pytest

from oralexam.config.settings import get_settings
from oralexam.core.content_service import ContentService
from oralexam.errors import PlanGenerationError
from oralexam.models.paper import ExamPaper


class FakeGemini:
    def __init__(self, paper=None, image_url=None, paper_error=None):
        self.paper = paper
        self.image_url = image_url
        self.paper_error = paper_error
        self.image_requests: list[str] = []

    async def generate_paper(self):
        if self.paper_error is not None:
            raise self.paper_error
        return self.paper

    async def generate_image(self, description):
        self.image_requests.append(description)
        return self.image_url


@pytest.fixture
def paper(paper_json):
    return ExamPaper.model_validate(paper_json)


class TestContentService:

    async def test_plan_carries_image(self, paper):
        gemini = FakeGemini(paper, image_url="data:image/png;base64,AAAA")

        plan = await ContentService(gemini).generate_plan()

        picture = plan.sections[3].items[0].prompt
        assert picture.image_url == "data:image/png;base64,AAAA"
        assert gemini.image_requests == [paper.speaking_d.image_description]

    async def test_missing_image_is_not_fatal(self, paper):
        plan = await ContentService(FakeGemini(paper)).generate_plan()

        assert plan.sections[3].items[0].prompt.image_url is None
        assert plan.total_items == 12

    async def test_voices_from_settings(self, paper):
        settings = get_settings()

        plan = await ContentService(FakeGemini(paper)).generate_plan()

        passage = plan.sections[5].items[0]
        assert passage.preamble.voice == settings.passage_voice
        assert passage.audio.voice == settings.tts_voice

    async def test_generation_error_propagates(self):
        gemini = FakeGemini(paper_error=PlanGenerationError("quota exceeded"))

        with pytest.raises(PlanGenerationError):
            await ContentService(gemini).generate_plan()
