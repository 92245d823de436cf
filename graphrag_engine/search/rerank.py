"""
Reranking of fused candidates.

Strategies:
- score: identity, fusion order is kept
- diversity: greedy max-min over the whole candidate list
- mmr: Maximal Marginal Relevance, stops after k selections

Both greedy laws seed the selection with the top fused candidate and
break ties in favour of the candidate that comes first in fusion order.
Ranks are renumbered 1..N to match the returned order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from graphrag_engine.search.models import FusedResult, RerankStrategy
from graphrag_engine.search.similarity import jaccard_similarity

logger = logging.getLogger(__name__)

SimilarityFn = Callable[[FusedResult, FusedResult], float]


def content_similarity(a: FusedResult, b: FusedResult) -> float:
    """Jaccard word similarity of two candidates' document contents."""
    return jaccard_similarity(a.document.page_content, b.document.page_content)


class Reranker:
    """Reorders fused candidates under a relevance/diversity trade-off.

    Usage:
        reranker = Reranker()
        ordered = reranker.rerank(candidates, RerankStrategy.MMR, k=5, mmr_lambda=0.7)
    """

    def __init__(self, similarity: SimilarityFn | None = None) -> None:
        """Initialize with a pairwise similarity function.

        Args:
            similarity: Symmetric similarity in [0, 1]; defaults to
                        Jaccard similarity over document words
        """
        self._similarity = similarity or content_similarity

    def rerank(
        self,
        candidates: list[FusedResult],
        strategy: RerankStrategy | str = RerankStrategy.SCORE,
        k: int = 10,
        mmr_lambda: float = 0.5,
    ) -> list[FusedResult]:
        """Reorder candidates already sorted by fused score.

        Args:
            candidates: Fusion output, fused score descending
            strategy: score / diversity / mmr
            k: Number of selections for MMR
            mmr_lambda: 1.0 is pure relevance, 0.0 pure dissimilarity

        Returns:
            Reordered candidates (MMR returns at most k)

        Raises:
            ValueError: If strategy is unknown
        """
        law = _parse_strategy(strategy)
        if law == RerankStrategy.DIVERSITY:
            ordered = self.by_diversity(candidates)
        elif law == RerankStrategy.MMR:
            ordered = self.by_mmr(candidates, k=k, mmr_lambda=mmr_lambda)
        else:
            ordered = list(candidates)

        for position, candidate in enumerate(ordered, start=1):
            candidate.rank = position

        logger.debug("Reranked %d candidates (%s)", len(ordered), law.value)
        return ordered

    def by_diversity(self, candidates: list[FusedResult]) -> list[FusedResult]:
        """Greedy max-min ordering.

        After the top candidate, each step takes the remaining candidate
        whose lowest similarity to the already selected ones is highest.
        """
        if len(candidates) <= 1:
            return list(candidates)

        selected = [candidates[0]]
        remaining = list(candidates[1:])
        # Lowest similarity of each remaining candidate to the selection
        min_sims = [self._similarity(c, candidates[0]) for c in remaining]

        while remaining:
            best_idx = 0
            for i in range(1, len(remaining)):
                if min_sims[i] > min_sims[best_idx]:
                    best_idx = i

            chosen = remaining.pop(best_idx)
            min_sims.pop(best_idx)
            selected.append(chosen)

            for i, candidate in enumerate(remaining):
                min_sims[i] = min(min_sims[i], self._similarity(candidate, chosen))

        return selected

    def by_mmr(
        self,
        candidates: list[FusedResult],
        k: int,
        mmr_lambda: float = 0.5,
    ) -> list[FusedResult]:
        """Maximal Marginal Relevance selection of up to k candidates.

        MMR = lambda * fused_score - (1 - lambda) * max_sim(candidate, selected)
        """
        if len(candidates) <= 1:
            return list(candidates)

        selected = [candidates[0]]
        remaining = list(candidates[1:])
        max_sims = [self._similarity(c, candidates[0]) for c in remaining]

        while len(selected) < k and remaining:
            best_idx = 0
            best_mmr = float("-inf")
            for i, candidate in enumerate(remaining):
                mmr = mmr_lambda * candidate.fused_score - (1 - mmr_lambda) * max_sims[i]
                if mmr > best_mmr:
                    best_mmr = mmr
                    best_idx = i

            chosen = remaining.pop(best_idx)
            max_sims.pop(best_idx)
            selected.append(chosen)

            for i, candidate in enumerate(remaining):
                max_sims[i] = max(max_sims[i], self._similarity(candidate, chosen))

        return selected


def rerank_with_custom_scorer(
    candidates: list[FusedResult],
    scorer: Callable[[FusedResult], float],
) -> list[FusedResult]:
    """Reorder by a caller-supplied score.

    Sorting is stable and descending. Each candidate's fused_score is
    replaced by its custom score and ranks are renumbered 1..N.
    """
    scored = [(scorer(candidate), candidate) for candidate in candidates]
    scored.sort(key=lambda item: item[0], reverse=True)

    reranked = []
    for position, (score, candidate) in enumerate(scored, start=1):
        candidate.fused_score = score
        candidate.rank = position
        reranked.append(candidate)
    return reranked


def _parse_strategy(strategy: RerankStrategy | str) -> RerankStrategy:
    try:
        return RerankStrategy(strategy)
    except ValueError:
        valid = ", ".join(s.value for s in RerankStrategy)
        raise ValueError(
            f"Invalid rerank strategy '{strategy}'. Valid options: {valid}"
        ) from None
