"""
Two-stage ranking: coarse weighted sum, then fine scoring of the survivors.

Public API: rank_candidates, RankingResult.
- coarse: coarse_rank (stage 1).
- fine, fine_features: fine_rank and its four feature extractors (stage 2).
- core: main orchestration (rank_candidates).
"""

from .coarse import coarse_rank
from .core import RankingResult, rank_candidates
from .fine import fine_rank

__all__ = [
    "RankingResult",
    "coarse_rank",
    "fine_rank",
    "rank_candidates",
]
