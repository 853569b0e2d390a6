"""
Unit tests for oralexam.core.scoring_coordinator.
"""

import pytest

from conftest import FakeScorer
from oralexam.core.scoring_coordinator import ScoringCoordinator, group_scores
from oralexam.models.plan import SectionKind
from oralexam.models.response import AudioArtifact, ResponseRecord, RunDiagnostics, ScoreRecord


def make_record(sequence, tag=SectionKind.SPEAKING_A, item_index=0, max_score=0.5, sub_item_index=0):
    return ResponseRecord(
        sequence=sequence,
        section_tag=tag,
        section_index=0,
        item_index=item_index,
        sub_item_index=sub_item_index,
        artifact=AudioArtifact(data=b"voice"),
        reference_text=f"{tag.value} {item_index}",
        max_score=max_score,
    )


@pytest.fixture
def records():
    """A[0], A[1], B[0] in capture order."""
    return [
        make_record(0, SectionKind.SPEAKING_A, 0),
        make_record(1, SectionKind.SPEAKING_A, 1),
        make_record(2, SectionKind.SPEAKING_B, 0, max_score=1.0),
    ]


class TestScoreAll:

    async def test_scores_in_capture_order(self, records, scorer):
        coordinator = ScoringCoordinator(scorer)

        groups = await coordinator.score_all(records)

        assert [call[1] for call in scorer.calls] == ["SpeakingA 0", "SpeakingA 1", "SpeakingB 0"]
        assert [g.section_tag for g in groups] == [SectionKind.SPEAKING_A, SectionKind.SPEAKING_B]
        assert [s.item_index for s in groups[0].items] == [0, 1]

    async def test_progress_reported_per_submission(self, records, scorer):
        seen = []

        async def on_progress(progress):
            seen.append((progress.current, progress.total))

        await ScoringCoordinator(scorer).score_all(records, on_progress=on_progress)

        assert seen == [(1, 3), (2, 3), (3, 3)]

    async def test_failure_omits_item_and_continues(self, records):
        scorer = FakeScorer(fail_on=(1,))
        diagnostics = RunDiagnostics()
        seen = []

        async def on_progress(progress):
            seen.append(progress.current)

        groups = await ScoringCoordinator(scorer, diagnostics).score_all(records, on_progress)

        assert len(scorer.calls) == 3
        assert seen[-1] == 3
        assert diagnostics.scoring_failures == 1
        scored = [(s.section_tag, s.item_index) for g in groups for s in g.items]
        assert scored == [(SectionKind.SPEAKING_A, 0), (SectionKind.SPEAKING_B, 0)]

    async def test_all_failures_yield_no_groups(self, records):
        diagnostics = RunDiagnostics()
        groups = await ScoringCoordinator(FakeScorer(fail_on=(0, 1, 2)), diagnostics).score_all(records)

        assert groups == []
        assert diagnostics.scoring_failures == 3

    async def test_empty_log(self, scorer):
        assert await ScoringCoordinator(scorer).score_all([]) == []

    async def test_score_clamped_to_item_maximum(self, records):
        groups = await ScoringCoordinator(FakeScorer(score=2.0)).score_all(records)

        assert [s.score for g in groups for s in g.items] == [0.5, 0.5, 1.0]

    async def test_indices_attributed_from_record(self, scorer):
        record = make_record(0, SectionKind.LISTENING_B, item_index=1, max_score=1.5, sub_item_index=1)

        groups = await ScoringCoordinator(scorer).score_all([record])

        score = groups[0].items[0]
        assert (score.section_tag, score.item_index, score.sub_item_index) == (
            SectionKind.LISTENING_B, 1, 1,
        )

    async def test_context_text_passed_to_scorer(self, scorer):
        record = make_record(0, SectionKind.SPEAKING_C).model_copy(
            update={"context_text": "Your friend has come back from Japan."}
        )

        await ScoringCoordinator(scorer).score_all([record])

        assert scorer.calls[0][2] == "Your friend has come back from Japan."


class TestConcurrentScoring:

    async def test_results_keep_capture_order(self, records):
        # First submission finishes last
        scorer = FakeScorer(delays={0: 10})

        groups = await ScoringCoordinator(scorer, max_concurrency=3).score_all(records)

        scored = [(s.section_tag, s.item_index) for g in groups for s in g.items]
        assert scored == [
            (SectionKind.SPEAKING_A, 0),
            (SectionKind.SPEAKING_A, 1),
            (SectionKind.SPEAKING_B, 0),
        ]

    async def test_progress_still_reaches_total(self, records):
        seen = []

        async def on_progress(progress):
            seen.append(progress.current)

        await ScoringCoordinator(FakeScorer(delays={0: 10}), max_concurrency=2).score_all(
            records, on_progress
        )

        assert sorted(seen) == [1, 2, 3]

    def test_rejects_zero_concurrency(self, scorer):
        with pytest.raises(ValueError):
            ScoringCoordinator(scorer, max_concurrency=0)


class TestGroupScores:

    def _score(self, tag, item_index, score=0.5):
        return ScoreRecord(
            section_tag=tag, item_index=item_index, score=score,
            accuracy=5, pronunciation=5, fluency=5,
        )

    def test_groups_in_first_arrival_order(self):
        scores = [
            self._score(SectionKind.LISTENING_A, 0),
            self._score(SectionKind.SPEAKING_A, 0),
            self._score(SectionKind.LISTENING_A, 1),
        ]

        groups = group_scores(scores)

        assert [g.section_tag for g in groups] == [SectionKind.LISTENING_A, SectionKind.SPEAKING_A]
        assert [s.item_index for s in groups[0].items] == [0, 1]

    def test_regrouping_is_stable(self):
        scores = [self._score(SectionKind.SPEAKING_A, i) for i in range(3)]

        first = group_scores(scores)
        again = group_scores([s for g in first for s in g.items])

        assert first == again

    def test_section_total(self):
        groups = group_scores([
            self._score(SectionKind.SPEAKING_D, 0, 1.5),
            self._score(SectionKind.SPEAKING_D, 1, 1.0),
        ])

        assert groups[0].total == 2.5
