"""
Pipeline orchestrator: candidate pool, config resolution, two-stage ranking,
then the exploration & fallback decision.

The main entry point is run_pipeline. It touches no shared state: breaker
checks, the last-known-good id and segment metrics are passed in by the
caller, and randomness comes from the injected random.Random.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..errors import PoolEmpty
from ..models.candidate import Candidate, RankingCandidate, RankingContext
from ..models.config import HierarchicalConfig
from ..models.metrics import SegmentMetrics
from ..models.policy import ExplorationPolicy
from .candidate_pool import CandidatePool, HardConstraints, get_candidate_pool
from .config_resolver import ResolvedConfig, resolve_config
from .exploration import (
    ExplorationDecision,
    ExplorationStrategy,
    decide,
    effective_epsilon,
    out_of_pool_defaults,
)
from .ranking import RankingResult, rank_candidates

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    resolved: ResolvedConfig
    pool: CandidatePool
    ranking: RankingResult
    decision: ExplorationDecision
    warnings: List[str] = field(default_factory=list)


def _with_top_k(resolved: ResolvedConfig, top_k: Optional[int]) -> ResolvedConfig:
    """Override fine max_results for one request without touching the stored layer."""
    if not top_k:
        return resolved
    fine = resolved.config.fine_ranking.model_copy(update={"max_results": top_k})
    config = resolved.config.model_copy(update={"fine_ranking": fine})
    return ResolvedConfig(config, list(resolved.inheritance_chain))


def run_pipeline(
    candidates: List[Candidate],
    hierarchy: HierarchicalConfig,
    context: RankingContext,
    policy: ExplorationPolicy,
    rng: random.Random,
    constraints: Optional[HardConstraints] = None,
    is_open: Optional[Callable[[str], bool]] = None,
    last_known_good: Optional[str] = None,
    segment: Optional[SegmentMetrics] = None,
    explore: bool = True,
    top_k: Optional[int] = None,
    strategy: Optional[ExplorationStrategy] = None,
) -> PipelineResult:
    """
    Rank one request end to end (without recording it).

    Raises PoolEmpty when breakers, constraints or score thresholds leave
    nothing to choose from, and ConfigInvalid when the resolved config is
    incomplete.
    """
    warnings: List[str] = []

    # 1) Pool: breaker exclusion, then hard constraints
    pool = get_candidate_pool(candidates, constraints, is_open)
    for candidate_id, reason in pool.excluded.items():
        warnings.append(f"excluded:{candidate_id}:{reason}")
    if not pool.candidates:
        raise PoolEmpty(
            "No candidate available after breaker and constraint filtering",
            {"excluded": pool.excluded},
        )

    # 2) Config
    resolved = _with_top_k(resolve_config(hierarchy, context), top_k)

    # 3) Coarse then fine
    ranking = rank_candidates(pool.candidates, resolved.config, context)
    if not ranking.candidates:
        raise PoolEmpty(
            "No candidate passed the ranking thresholds",
            {"pool_size": len(pool.candidates), "coarse_size": len(ranking.coarse)},
        )

    # 4) Exploration & fallback
    epsilon, forced_off = effective_epsilon(policy, segment, explore)
    if forced_off and forced_off != "disabled_by_request":
        warnings.append(f"exploration_off:{forced_off}")

    admitted = {c.id for c in pool.candidates}

    def is_blocked(candidate_id: str, provider: Optional[str]) -> bool:
        if candidate_id in pool.excluded:
            return True
        # Pool members already passed the breaker check for this request.
        if candidate_id in admitted:
            return False
        if is_open is None:
            return False
        if is_open(candidate_id):
            return True
        return bool(provider) and is_open(f"provider:{provider}")

    known = {c.id: RankingCandidate(id=c.id, type=c.type, metadata=dict(c.metadata)) for c in candidates}
    out_of_pool = out_of_pool_defaults(
        ranking,
        pool.candidates,
        last_known_good=last_known_good,
        safe_defaults=policy.safe_defaults,
        known=known,
        is_blocked=is_blocked,
    )
    decision = decide(ranking, policy, rng, epsilon=epsilon, strategy=strategy, out_of_pool=out_of_pool)

    logger.debug(
        "[pipeline] pool=%d coarse=%d fine=%d chosen=%s explored=%s chain=%s",
        len(pool.candidates), len(ranking.coarse), len(ranking.candidates),
        decision.chosen.id, decision.explored, resolved.inheritance_chain,
    )
    return PipelineResult(
        resolved=resolved,
        pool=pool,
        ranking=ranking,
        decision=decision,
        warnings=warnings,
    )
