"""
Fine-stage feature extraction.

Each feature is the mean of three signals in [0, 1]. Signals are read from the
candidate's raw_features first, then its metadata; missing signals count as 0.
"""

from typing import Optional

from ...models.candidate import RankingCandidate, RankingContext, UserProfile
from ...utils.scores import lookup_signal, mean, safe_unit

# Neutral prior for anonymous requests.
NO_PROFILE_PREFERENCE = 0.5

BUSINESS_SIGNALS = ("conversionRate", "roi", "marketDemand")
TECHNICAL_SIGNALS = ("clarity", "stability", "compatibility")
TREND_SIGNALS = ("trendScore", "seasonality", "viralPotential")


def _signal(candidate: RankingCandidate, name: str) -> float:
    return safe_unit(
        lookup_signal(name, candidate.raw_features, candidate.metadata),
        default=0.0,
        name=name,
        candidate_id=candidate.id,
    )


def _signal_mean(candidate: RankingCandidate, names) -> float:
    return mean(_signal(candidate, name) for name in names)


def user_preference(candidate: RankingCandidate, profile: Optional[UserProfile]) -> float:
    if profile is None:
        return NO_PROFILE_PREFERENCE
    category = lookup_signal("category", candidate.raw_features, candidate.metadata)
    style = lookup_signal("style", candidate.raw_features, candidate.metadata)
    category_match = 1.0 if category is not None and category in profile.preferred_categories else 0.0
    style_match = 1.0 if style is not None and style in profile.preferred_styles else 0.0
    interaction = safe_unit(
        profile.interaction_history.get(candidate.id),
        default=0.0,
        name="interaction_history",
        candidate_id=candidate.id,
    )
    return mean([category_match, style_match, interaction])


def business_value(candidate: RankingCandidate) -> float:
    return _signal_mean(candidate, BUSINESS_SIGNALS)


def technical_quality(candidate: RankingCandidate) -> float:
    return _signal_mean(candidate, TECHNICAL_SIGNALS)


def market_trend(candidate: RankingCandidate) -> float:
    return _signal_mean(candidate, TREND_SIGNALS)


def fine_features(candidate: RankingCandidate, context: RankingContext) -> dict:
    """All four fine features for one candidate, keyed by CandidateFeatures field name."""
    return {
        "user_preference": user_preference(candidate, context.user_profile),
        "business_value": business_value(candidate),
        "technical_quality": technical_quality(candidate),
        "market_trend": market_trend(candidate),
    }
