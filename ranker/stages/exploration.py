"""
Exploration & fallback controller.

decide() picks the chosen candidate from the fine output with epsilon-greedy
exploration over ranks 2..K, and always builds the fallback chain:

    [chosen, next best fine candidate,
     up to N coarse survivors not in the fine top-K (best coarse score first),
     up to M out-of-pool safe defaults]

de-duplicated and in that order. Randomness comes only from the injected
random.Random, so a seeded generator reproduces a run exactly.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from ..errors import PoolEmpty
from ..models.candidate import RankingCandidate
from ..models.decision import Alternatives, CandidateSummary
from ..models.metrics import SegmentMetrics
from ..models.policy import EXPLORE_EPSILON_MAX, EXPLORE_EPSILON_MIN, ExplorationPolicy
from .ranking.core import RankingResult

logger = logging.getLogger(__name__)

# Adaptive epsilon thresholds on segment quality.
ADAPT_HIGH_QUALITY = 0.8
ADAPT_LOW_QUALITY = 0.6


class ExplorationStrategy(Protocol):
    """Distribution over the explorable ranks (2..K of the fine output)."""

    def pick(self, candidates: Sequence[RankingCandidate], rng: random.Random) -> RankingCandidate:
        ...


class UniformExploration:
    def pick(self, candidates: Sequence[RankingCandidate], rng: random.Random) -> RankingCandidate:
        return candidates[rng.randrange(len(candidates))]


class SoftmaxExploration:
    """Weight each explorable candidate by exp(fine_score / temperature)."""

    def __init__(self, temperature: float = 0.1):
        if temperature <= 0:
            raise ValueError("temperature must be positive")
        self.temperature = temperature

    def weights(self, candidates: Sequence[RankingCandidate]) -> List[float]:
        scores = [c.fine_score or 0.0 for c in candidates]
        top = max(scores)
        return [math.exp((s - top) / self.temperature) for s in scores]

    def pick(self, candidates: Sequence[RankingCandidate], rng: random.Random) -> RankingCandidate:
        return rng.choices(list(candidates), weights=self.weights(candidates), k=1)[0]


def strategy_for(policy: ExplorationPolicy) -> ExplorationStrategy:
    if policy.strategy == "softmax":
        return SoftmaxExploration(policy.temperature)
    return UniformExploration()


def adapt_epsilon(epsilon: float, segment: Optional[SegmentMetrics]) -> float:
    """Lower epsilon when the segment does well, raise it when it does poorly."""
    if segment is None or segment.quality_score is None:
        return epsilon
    if segment.quality_score > ADAPT_HIGH_QUALITY:
        return max(EXPLORE_EPSILON_MIN, epsilon * 0.9)
    if segment.quality_score < ADAPT_LOW_QUALITY:
        return min(EXPLORE_EPSILON_MAX, epsilon * 1.1)
    return epsilon


def should_force_off_explore(
    segment: Optional[SegmentMetrics],
    policy: ExplorationPolicy,
) -> Optional[str]:
    """Reason exploration must be switched off for this segment, or None."""
    if segment is None:
        return None
    if segment.quality_score is not None and segment.quality_score < policy.min_quality_floor:
        return "quality_below_floor"
    if segment.rejection_rate is not None and segment.rejection_rate > policy.max_rejection_rate:
        return "rejection_rate_high"
    return None


def effective_epsilon(
    policy: ExplorationPolicy,
    segment: Optional[SegmentMetrics] = None,
    explore_requested: bool = True,
) -> Tuple[float, Optional[str]]:
    """
    Epsilon to use for one request, plus the reason when it was forced to 0.

    Order: request opt-out, policy switch, segment health guard, then the
    clamped (and optionally adapted) policy epsilon.
    """
    if not explore_requested:
        return 0.0, "disabled_by_request"
    if not policy.enabled:
        return 0.0, "disabled_by_policy"
    reason = should_force_off_explore(segment, policy)
    if reason:
        return 0.0, reason
    epsilon = policy.effective_epsilon
    if policy.adaptive:
        epsilon = adapt_epsilon(epsilon, segment)
    return epsilon, None


def summarize(candidate: RankingCandidate, bucket: str) -> CandidateSummary:
    provider = candidate.metadata.get("provider")
    return CandidateSummary(
        id=candidate.id,
        type=candidate.type,
        provider=str(provider).lower() if provider else None,
        coarse_score=candidate.coarse_score,
        fine_score=candidate.fine_score,
        bucket=bucket,
    )


def out_of_pool_defaults(
    ranking: RankingResult,
    pool: Sequence[RankingCandidate],
    last_known_good: Optional[str] = None,
    safe_defaults: Iterable[str] = (),
    known: Optional[Mapping[str, RankingCandidate]] = None,
    is_blocked: Optional[Callable[[str, Optional[str]], bool]] = None,
) -> List[CandidateSummary]:
    """
    Ordered out-of-pool candidates: last-known-good, configured safe defaults,
    then pool members that did not survive coarse ranking.

    is_blocked(candidate_id, provider) filters out open-breaker candidates.
    The caller truncates; this returns every eligible entry once.
    """
    known = dict(known or {})
    for candidate in pool:
        known.setdefault(candidate.id, candidate)
    coarse_ids = {c.id for c in ranking.coarse}

    ordered_ids: List[str] = []
    if last_known_good:
        ordered_ids.append(last_known_good)
    ordered_ids.extend(safe_defaults)
    ordered_ids.extend(c.id for c in pool if c.id not in coarse_ids)

    summaries: List[CandidateSummary] = []
    seen = set()
    for candidate_id in ordered_ids:
        if candidate_id in seen:
            continue
        seen.add(candidate_id)
        candidate = known.get(candidate_id)
        summary = (
            summarize(candidate, "oop") if candidate is not None
            else CandidateSummary(id=candidate_id, bucket="oop")
        )
        if is_blocked is not None and is_blocked(summary.id, summary.provider):
            continue
        summaries.append(summary)
    return summaries


def build_fallback_chain(
    chosen: RankingCandidate,
    ranking: RankingResult,
    out_of_pool: Sequence[CandidateSummary] = (),
    max_coarse_extras: int = 2,
    max_out_of_pool: int = 2,
) -> Tuple[List[CandidateSummary], Alternatives]:
    """Return (fallback_chain, alternatives) for a chosen candidate."""
    top_ids = {c.id for c in ranking.candidates}

    next_best = next((c for c in ranking.candidates if c.id != chosen.id), None)
    fine_top2 = summarize(next_best, "fine") if next_best is not None else None

    coarse_extras = [
        summarize(c, "coarse") for c in ranking.coarse if c.id not in top_ids
    ][:max_coarse_extras]

    used = {chosen.id} | top_ids | {c.id for c in coarse_extras}
    oop = [s for s in out_of_pool if s.id not in used][:max_out_of_pool]

    chain = [summarize(chosen, "fine")]
    if fine_top2 is not None:
        chain.append(fine_top2)
    chain.extend(coarse_extras)
    chain.extend(oop)

    deduped, seen = [], set()
    for summary in chain:
        if summary.id not in seen:
            seen.add(summary.id)
            deduped.append(summary)

    alternatives = Alternatives(fine_top2=fine_top2, coarse_extras=coarse_extras, out_of_pool=oop)
    return deduped, alternatives


@dataclass
class ExplorationDecision:
    chosen: RankingCandidate
    explored: bool
    fallback_chain: List[CandidateSummary] = field(default_factory=list)
    alternatives: Alternatives = field(default_factory=Alternatives)
    epsilon: float = 0.0


def decide(
    ranking: RankingResult,
    policy: ExplorationPolicy,
    rng: random.Random,
    epsilon: Optional[float] = None,
    strategy: Optional[ExplorationStrategy] = None,
    out_of_pool: Sequence[CandidateSummary] = (),
) -> ExplorationDecision:
    """
    Choose a candidate from the fine output.

    With probability epsilon (policy.effective_epsilon when not given) pick one
    of ranks 2..K through the strategy; otherwise take rank 1. A single
    candidate is always exploited.
    """
    ranked = ranking.candidates
    if not ranked:
        raise PoolEmpty("No candidate left after ranking")

    if epsilon is None:
        epsilon = policy.effective_epsilon
    strategy = strategy or strategy_for(policy)

    explored = False
    chosen = ranked[0]
    if len(ranked) > 1 and rng.random() < epsilon:
        chosen = strategy.pick(ranked[1:], rng)
        explored = True

    chain, alternatives = build_fallback_chain(
        chosen,
        ranking,
        out_of_pool,
        max_coarse_extras=policy.max_coarse_extras,
        max_out_of_pool=policy.max_out_of_pool,
    )
    if explored:
        logger.info("[explore] chosen=%s epsilon=%.3f", chosen.id, epsilon)
    return ExplorationDecision(
        chosen=chosen,
        explored=explored,
        fallback_chain=chain,
        alternatives=alternatives,
        epsilon=epsilon,
    )
