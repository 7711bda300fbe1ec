"""
Two-stage ranking: coarse filter/sort, then fine scoring of the survivors.

Pure with respect to its inputs: the config, context and candidate list are
never modified; every stage returns new RankingCandidate records.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from ...models.candidate import RankingCandidate, RankingContext
from ...models.config import TuningConfig
from .coarse import coarse_rank
from .fine import fine_rank

logger = logging.getLogger(__name__)


@dataclass
class RankingResult:
    # Coarse survivors, best coarse score first.
    coarse: List[RankingCandidate] = field(default_factory=list)
    # Fine output (the top-K), best fine score first.
    candidates: List[RankingCandidate] = field(default_factory=list)
    total_count: int = 0

    @property
    def top(self):
        return self.candidates[0] if self.candidates else None


def rank_candidates(
    candidates: List[RankingCandidate],
    config: TuningConfig,
    context: RankingContext,
) -> RankingResult:
    """
    Rank candidates with a resolved TuningConfig.

    Fine output is always a subset of the coarse survivors, which are a subset
    of the input; each stage is sorted by (score desc, id asc) and truncated.
    """
    coarse = coarse_rank(candidates, config.coarse_ranking)
    fine = fine_rank(coarse, config.fine_ranking, context)
    logger.debug(
        "[ranking] input=%d coarse=%d fine=%d",
        len(candidates), len(coarse), len(fine),
    )
    return RankingResult(coarse=coarse, candidates=fine, total_count=len(fine))
