"""
Candidate pool pre-selection.

Turns feature-store Candidates into RankingCandidates, excluding candidates
whose circuit breaker is open and candidates that fail the request's hard
constraints (JSON mode, cost, latency, provider allow/deny, language).
Missing metadata never excludes a candidate.

The public entry point is get_candidate_pool.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from ..models.candidate import Candidate, CandidateFeatures, RankingCandidate
from ..utils.scores import lookup_signal, safe_number, safe_unit

logger = logging.getLogger(__name__)

# Rough token estimate used to turn per-1k pricing into a per-call cost.
ESTIMATED_KTOKENS_PER_CALL = 2.0

COARSE_FEATURES = ("relevance", "quality", "diversity", "recency")


@dataclass(frozen=True)
class HardConstraints:
    max_cost_usd: Optional[float] = None
    max_latency_ms: Optional[float] = None
    require_json_mode: bool = False
    allow_providers: List[str] = field(default_factory=list)
    deny_providers: List[str] = field(default_factory=list)
    language: Optional[str] = None


@dataclass
class CandidatePool:
    """Eligible working records plus what was excluded and why."""

    candidates: List[RankingCandidate]
    excluded: dict = field(default_factory=dict)


def estimated_cost(candidate: Candidate) -> Optional[float]:
    metadata = candidate.metadata
    cost = safe_number(metadata.get("costPerUnit"), "costPerUnit", candidate.id)
    if cost is not None:
        return cost
    price = safe_number(metadata.get("pricePer1kTokens"), "pricePer1kTokens", candidate.id)
    if price:
        return price * ESTIMATED_KTOKENS_PER_CALL
    return None


def constraint_violation(candidate: Candidate, constraints: HardConstraints) -> Optional[str]:
    """Reason the candidate fails a hard constraint, or None when it passes."""
    metadata = candidate.metadata
    if constraints.require_json_mode and metadata.get("jsonModeSupport") is False:
        return "json_mode_unsupported"
    if constraints.max_cost_usd is not None:
        cost = estimated_cost(candidate)
        if cost is not None and cost > constraints.max_cost_usd:
            return "over_budget"
    if constraints.max_latency_ms is not None:
        latency = safe_number(metadata.get("expectedLatencyMs"), "expectedLatencyMs", candidate.id)
        if latency is not None and latency > constraints.max_latency_ms:
            return "too_slow"
    provider = candidate.provider
    if constraints.allow_providers and provider:
        if provider not in {p.lower() for p in constraints.allow_providers}:
            return "provider_not_allowed"
    if constraints.deny_providers and provider:
        if provider in {p.lower() for p in constraints.deny_providers}:
            return "provider_denied"
    if constraints.language:
        langs = metadata.get("langs")
        if isinstance(langs, list) and langs and constraints.language not in langs:
            return "language_unsupported"
    return None


def to_ranking_candidate(candidate: Candidate) -> RankingCandidate:
    """Build the working record; coarse features are sanitized into [0, 1]."""
    values = {
        name: safe_unit(
            lookup_signal(name, candidate.raw_features, candidate.metadata),
            default=0.0,
            name=name,
            candidate_id=candidate.id,
        )
        for name in COARSE_FEATURES
    }
    return RankingCandidate(
        id=candidate.id,
        type=candidate.type,
        score=candidate.score,
        metadata=dict(candidate.metadata),
        raw_features=dict(candidate.raw_features),
        features=CandidateFeatures(**values),
    )


def breaker_keys(candidate: Candidate) -> List[str]:
    """Breaker keys guarding a candidate: its id, plus its provider when known."""
    keys = [candidate.id]
    if candidate.provider:
        keys.append(f"provider:{candidate.provider}")
    return keys


def filter_open_breakers(
    candidates: Iterable[Candidate],
    is_open: Callable[[str], bool],
) -> tuple:
    """Split candidates into (available, excluded_ids) by breaker state."""
    available, excluded = [], []
    for candidate in candidates:
        if any(is_open(key) for key in breaker_keys(candidate)):
            excluded.append(candidate.id)
        else:
            available.append(candidate)
    return available, excluded


def get_candidate_pool(
    candidates: List[Candidate],
    constraints: Optional[HardConstraints] = None,
    is_open: Optional[Callable[[str], bool]] = None,
) -> CandidatePool:
    """
    Pre-select the pool: breaker exclusion first, then hard constraints.

    Duplicate ids keep their first occurrence.
    """
    excluded: dict = {}
    seen = set()
    unique: List[Candidate] = []
    for candidate in candidates:
        if candidate.id in seen:
            continue
        seen.add(candidate.id)
        unique.append(candidate)

    if is_open is not None:
        unique, open_ids = filter_open_breakers(unique, is_open)
        for candidate_id in open_ids:
            excluded[candidate_id] = "circuit_open"

    eligible: List[RankingCandidate] = []
    for candidate in unique:
        reason = constraint_violation(candidate, constraints) if constraints else None
        if reason:
            excluded[candidate.id] = reason
            continue
        eligible.append(to_ranking_candidate(candidate))

    if excluded:
        logger.info("[candidate_pool] excluded=%s eligible=%d", excluded, len(eligible))
    return CandidatePool(candidates=eligible, excluded=excluded)
