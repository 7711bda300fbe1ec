"""
Stage 1 (coarse) ranking: cheap weighted sum over the four pool features.

relevance·w_r + quality·w_q + diversity·w_d + recency·w_rec, sorted by
(score desc, id asc) and truncated to coarse_ranking.max_candidates.
"""

import logging
from typing import List

from ...models.candidate import RankingCandidate
from ...models.config import CoarseRankingConfig
from ...utils.scores import weighted_sum

logger = logging.getLogger(__name__)


def coarse_score(candidate: RankingCandidate, config: CoarseRankingConfig) -> float:
    weights = config.weight_factors
    features = candidate.features
    return weighted_sum([
        (features.relevance, weights.relevance),
        (features.quality, weights.quality),
        (features.diversity, weights.diversity),
        (features.recency, weights.recency),
    ])


def passes_min_score(candidate: RankingCandidate, min_score: float) -> bool:
    """Prior-score filter; a candidate without a prior score always passes."""
    return candidate.score is None or candidate.score >= min_score


def coarse_rank(
    candidates: List[RankingCandidate],
    config: CoarseRankingConfig,
) -> List[RankingCandidate]:
    """Return new records carrying coarse_score, best first, at most max_candidates."""
    kept = [c for c in candidates if passes_min_score(c, config.min_score)]
    dropped = len(candidates) - len(kept)
    if dropped:
        logger.debug("[coarse] dropped=%d below min_score=%s", dropped, config.min_score)

    scored = []
    for candidate in kept:
        value = coarse_score(candidate, config)
        scored.append(candidate.model_copy(update={"score": value, "coarse_score": value}))

    scored.sort(key=lambda c: (-c.coarse_score, c.id))
    return scored[: config.max_candidates]
