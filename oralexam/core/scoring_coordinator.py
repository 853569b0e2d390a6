"""
Scoring Coordinator - submits the response log for scoring.

Responses are scored in capture order, one at a time by default. A
failed submission is logged and counted, and the item is left out of
the results; the rest of the batch still runs.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable

from oralexam.core.collaborators import Scorer
from oralexam.models.response import (
    ResponseRecord,
    RunDiagnostics,
    ScoreRecord,
    ScoringProgress,
    SectionScoreSet,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ScoringProgress], Awaitable[None]]


def group_scores(scores: Iterable[ScoreRecord]) -> list[SectionScoreSet]:
    """
    Group scores by section tag.

    Sections appear in the order their first score arrived and scores
    keep their arrival order within a section.
    """
    groups: dict[str, SectionScoreSet] = {}
    for score in scores:
        group = groups.get(score.section_tag)
        if group is None:
            group = SectionScoreSet(section_tag=score.section_tag)
            groups[score.section_tag] = group
        group.items.append(score)
    return list(groups.values())


class ScoringCoordinator:
    """
    Scores a finished run's responses and aggregates the results.

    max_concurrency > 1 allows bounded parallel submissions; results are
    put back into capture order before grouping.
    """

    def __init__(
        self,
        scorer: Scorer,
        diagnostics: RunDiagnostics | None = None,
        max_concurrency: int = 1,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.scorer = scorer
        self.diagnostics = diagnostics or RunDiagnostics()
        self.max_concurrency = max_concurrency

    async def score_all(
        self,
        records: list[ResponseRecord],
        on_progress: ProgressCallback | None = None,
    ) -> list[SectionScoreSet]:
        """
        Score every record and group the results by section.

        Args:
            records: Response log in capture order
            on_progress: Awaited after each submission with current/total

        Returns:
            Section score sets, failed items omitted
        """
        progress = ScoringProgress(total=len(records))
        logger.info(f"Scoring {progress.total} responses")

        async def report(result: ScoreRecord | None) -> ScoreRecord | None:
            progress.current += 1
            logger.info(f"Scoring progress: {progress}")
            if on_progress:
                await on_progress(progress.model_copy())
            return result

        if self.max_concurrency == 1:
            results = []
            for record in records:
                results.append(await report(await self._score_one(record)))
        else:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def bounded(record: ResponseRecord) -> ScoreRecord | None:
                async with semaphore:
                    result = await self._score_one(record)
                return await report(result)

            # gather keeps input order
            results = await asyncio.gather(*(bounded(record) for record in records))

        scores = [result for result in results if result is not None]
        logger.info(
            f"Scoring complete: {len(scores)}/{progress.total} scored, "
            f"{self.diagnostics.scoring_failures} failed"
        )
        return group_scores(scores)

    async def _score_one(self, record: ResponseRecord) -> ScoreRecord | None:
        """Score a single record; returns None when scoring fails."""
        try:
            result = await self.scorer.score(
                record.artifact,
                record.reference_text,
                record.section_tag,
                record.context_text,
            )
        except Exception as e:
            self.diagnostics.scoring_failures += 1
            logger.error(
                f"Scoring failed for {record.section_tag.value} item "
                f"{record.item_index}.{record.sub_item_index}: {e}"
            )
            return None

        return result.model_copy(update={
            "section_tag": record.section_tag,
            "item_index": record.item_index,
            "sub_item_index": record.sub_item_index,
            "score": min(result.score, record.max_score),
        })
