"""
Stage 2 (fine) ranking over the coarse survivors.

Final score = user_preference·w_u + business_value·w_b
            + technical_quality·w_t + market_trend·w_m
"""

import logging
from typing import List

from ...models.candidate import RankingCandidate, RankingContext
from ...models.config import FineRankingConfig
from ...utils.scores import weighted_sum
from .fine_features import fine_features

logger = logging.getLogger(__name__)


def fine_score(features, config: FineRankingConfig) -> float:
    weights = config.weight_factors
    return weighted_sum([
        (features.user_preference, weights.user_preference),
        (features.business_value, weights.business_value),
        (features.technical_quality, weights.technical_quality),
        (features.market_trend, weights.market_trend),
    ])


def fine_rank(
    candidates: List[RankingCandidate],
    config: FineRankingConfig,
    context: RankingContext,
) -> List[RankingCandidate]:
    """Score, drop below min_score, sort (score desc, id asc), keep max_results."""
    scored = []
    for candidate in candidates:
        features = candidate.features.model_copy(update=fine_features(candidate, context))
        value = fine_score(features, config)
        if value < config.min_score:
            continue
        scored.append(
            candidate.model_copy(update={"features": features, "score": value, "fine_score": value})
        )

    dropped = len(candidates) - len(scored)
    if dropped:
        logger.debug("[fine] dropped=%d below min_score=%s", dropped, config.min_score)

    scored.sort(key=lambda c: (-c.fine_score, c.id))
    return scored[: config.max_results]
