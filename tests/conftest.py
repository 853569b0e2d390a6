"""
Shared fixtures and fakes for the OralExam Sim test suite.

Every external collaborator (speaker, microphone, scorer, plan source)
has an in-memory fake here. Timed waits go through an injected sleep,
so no test ever really sleeps.
"""

import asyncio

import pytest

from oralexam.errors import PlanGenerationError, PlaybackError, ScoringError
from oralexam.models.plan import (
    AudioPayload,
    ExamPlan,
    ItemPrompt,
    ItemSpec,
    QuestionType,
    SectionKind,
    SectionSpec,
)
from oralexam.models.response import AudioArtifact, ScoreRecord


# ============================================================================
# PLAN FACTORIES
# ============================================================================

def make_section(
    tag: SectionKind = SectionKind.SPEAKING_A,
    items: int = 1,
    prep: int = 0,
    record: int = 5,
    max_score: float = 0.5,
    with_audio: bool = False,
) -> SectionSpec:
    """Section of simple items whose prompt text is '<tag> <index>'."""
    return SectionSpec(
        tag=tag,
        prep_seconds=prep,
        record_seconds=record,
        items=[
            ItemSpec(
                prompt=ItemPrompt(text=f"{tag.value} {index}"),
                audio=AudioPayload(text=f"{tag.value} {index}") if with_audio else None,
                max_score=max_score,
            )
            for index in range(items)
        ],
    )


def make_passage_section(
    passage: str = "The library opens at nine.",
    repeat: int = 2,
    answer_keys: tuple[str | None, str | None] = ("At nine.", None),
) -> SectionSpec:
    """Listening passage with a factual and an opinion question."""
    preamble = AudioPayload(text=passage, voice="Puck", repeat=repeat)
    questions = [
        ("When does the library open?", QuestionType.FACT, 30, 30, 1.0),
        ("What do you think of the opening hours?", QuestionType.OPINION, 60, 60, 1.5),
    ]
    return SectionSpec(
        tag=SectionKind.LISTENING_B,
        items=[
            ItemSpec(
                prompt=ItemPrompt(
                    text=question,
                    passage=passage,
                    question=question,
                    answer_key=answer_keys[index],
                    question_type=question_type,
                ),
                audio=AudioPayload(text=question),
                preamble=preamble,
                sub_index=index,
                prep_seconds=prep,
                record_seconds=record,
                max_score=max_score,
            )
            for index, (question, question_type, prep, record, max_score) in enumerate(questions)
        ],
    )


def make_plan(*sections: SectionSpec) -> ExamPlan:
    return ExamPlan(sections=list(sections))


@pytest.fixture
def two_section_plan() -> ExamPlan:
    """Section A: 2 items (prep 30, record 15). Section B: 1 item (prep 60, record 30)."""
    return make_plan(
        make_section(SectionKind.SPEAKING_A, items=2, prep=30, record=15, max_score=0.5),
        make_section(SectionKind.SPEAKING_B, items=1, prep=60, record=30, max_score=1.0),
    )


# ============================================================================
# FAKE COLLABORATORS
# ============================================================================

class RecordingSleep:
    """Sleep that records requested durations and only yields control."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


class GateSleep(RecordingSleep):
    """Sleep that parks forever once `should_block()` returns True."""

    def __init__(self):
        super().__init__()
        self.blocked = asyncio.Event()
        self.should_block = lambda: False

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.should_block():
            self.blocked.set()
            await asyncio.Future()
        await asyncio.sleep(0)


class FakePlayer:
    """Speech player that records what it was asked to play."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.played: list[tuple[str, str | None]] = []

    async def play_audio(self, text: str, voice: str | None = None) -> None:
        self.played.append((text, voice))
        if self.fail:
            raise PlaybackError("speaker unavailable")


class FakeCaptureHandle:
    def __init__(self, device: "FakeCaptureDevice", max_duration_seconds: int, fail_stop: bool):
        self.device = device
        self.max_duration_seconds = max_duration_seconds
        self.fail_stop = fail_stop
        self.released = False
        self.stop_calls = 0
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def request_stop(self) -> None:
        self._stopped = True

    async def stop(self) -> AudioArtifact:
        self.stop_calls += 1
        self._stopped = True
        if self.fail_stop:
            raise RuntimeError("microphone disconnected")
        return AudioArtifact(
            data=self.device.data,
            mime_type="audio/webm",
            duration_seconds=self.max_duration_seconds,
        )

    async def release(self) -> None:
        self.released = True
        if self.device.active is self:
            self.device.active = None


class FakeCaptureDevice:
    """
    Capture device that hands out FakeCaptureHandles.

    fail_begin_on / fail_stop_on hold 0-based capture numbers that fail
    when starting or when stopping.
    """

    def __init__(
        self,
        data: bytes = b"voice",
        fail_begin_on: tuple[int, ...] = (),
        fail_stop_on: tuple[int, ...] = (),
    ):
        self.data = data
        self.fail_begin_on = fail_begin_on
        self.fail_stop_on = fail_stop_on
        self.handles: list[FakeCaptureHandle] = []
        self.active: FakeCaptureHandle | None = None
        self.begin_calls = 0

    async def begin_capture(self, max_duration_seconds: int) -> FakeCaptureHandle:
        call = self.begin_calls
        self.begin_calls += 1
        if self.active is not None:
            raise AssertionError("capture device acquired twice")
        if call in self.fail_begin_on:
            raise RuntimeError("microphone unavailable")

        handle = FakeCaptureHandle(self, max_duration_seconds, fail_stop=call in self.fail_stop_on)
        self.handles.append(handle)
        self.active = handle
        return handle

    @property
    def all_released(self) -> bool:
        return self.active is None and all(handle.released for handle in self.handles)


class FakeScorer:
    """Scorer returning a fixed score; fail_on holds 0-based call numbers that fail."""

    def __init__(self, score: float = 0.5, fail_on: tuple[int, ...] = (), delays: dict[int, int] | None = None):
        self.score_value = score
        self.fail_on = fail_on
        self.delays = delays or {}
        self.calls: list[tuple[SectionKind, str, str | None]] = []

    async def score(
        self,
        artifact: AudioArtifact,
        reference_text: str,
        section_tag: SectionKind,
        context_text: str | None = None,
    ) -> ScoreRecord:
        call = len(self.calls)
        self.calls.append((section_tag, reference_text, context_text))
        for _ in range(self.delays.get(call, 0)):
            await asyncio.sleep(0)
        if call in self.fail_on:
            raise ScoringError("scoring service unavailable")
        return ScoreRecord(
            section_tag=section_tag,
            score=self.score_value,
            accuracy=8,
            pronunciation=7,
            fluency=6,
            feedback="发音清晰。",
            transcription=reference_text,
        )


class FakePlanSource:
    def __init__(self, plan: ExamPlan | None = None, error: Exception | None = None):
        self.plan = plan
        self.error = error
        self.calls = 0

    async def generate_plan(self) -> ExamPlan:
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.plan is None:
            raise PlanGenerationError("no plan configured")
        return self.plan


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture
def capture_device() -> FakeCaptureDevice:
    return FakeCaptureDevice()


@pytest.fixture
def scorer() -> FakeScorer:
    return FakeScorer()


@pytest.fixture
def paper_json() -> dict:
    """A generated paper as the generation model returns it."""
    return {
        "id": "paper-1",
        "speakingA": {
            "items": [
                "The weather is lovely today.",
                "Reading widely helps students understand the world beyond their classroom.",
            ],
        },
        "speakingB": {"text": "Many students in Shanghai start their day with a quick breakfast."},
        "speakingC": {
            "items": [
                {"situation": "Your friend has just come back from Japan. Ask two questions."},
                {"situation": "Your teacher is organising a trip. Ask two questions."},
            ],
        },
        "speakingD": {
            "imageDescription": "Xiao Wang forgets his umbrella, gets wet, and shares one the next day.",
            "givenSentence": "Last Sunday, Xiao Wang went to the park.",
        },
        "listeningA": {
            "questions": [
                "Could you help me with my homework?",
                "I've lost my keys again.",
                "What a beautiful painting!",
                "Shall we go swimming this afternoon?",
            ],
        },
        "listeningB": {
            "passage": "The school library will open earlier next term so students can study before class.",
            "questions": [
                {
                    "question": "When will the library open next term?",
                    "answerKey": "Earlier, before class.",
                    "type": "fact",
                    "prepTime": 30,
                    "recordTime": 30,
                },
                {
                    "question": "Do you think opening earlier is a good idea? Why?",
                    "answerKey": "An opinion with reasons.",
                    "type": "opinion",
                    "prepTime": 60,
                    "recordTime": 60,
                },
            ],
        },
    }
