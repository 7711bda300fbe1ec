"""
Candidate ranking engine — hierarchical config, two-stage ranking, exploration.

Single entry point for the ranker package:
- models/: Candidate, TuningConfig, HierarchicalConfig, Decision, FeedbackEvent, metrics
- stages/: candidate_pool, config_resolver, ranking (coarse + fine), exploration, orchestrator
- errors: RankingError taxonomy rendered by the server
"""

from .errors import (
    BadRequest,
    ConfigInvalid,
    DecisionNotFound,
    FeatureStoreUnavailable,
    PoolEmpty,
    RankingError,
    RankingTimeout,
    RequestInvalid,
)
from .models import (
    Candidate,
    ExplorationPolicy,
    HierarchicalConfig,
    RankingContext,
    TuningConfig,
    default_hierarchy,
)
from .stages import (
    HardConstraints,
    PipelineResult,
    RankingResult,
    decide,
    merge_layer,
    rank_candidates,
    resolve_config,
    run_pipeline,
)

STRATEGY_VERSION = "v1"

__all__ = [
    "BadRequest",
    "Candidate",
    "ConfigInvalid",
    "DecisionNotFound",
    "ExplorationPolicy",
    "FeatureStoreUnavailable",
    "HardConstraints",
    "HierarchicalConfig",
    "PipelineResult",
    "PoolEmpty",
    "RankingContext",
    "RankingError",
    "RankingResult",
    "RankingTimeout",
    "RequestInvalid",
    "STRATEGY_VERSION",
    "TuningConfig",
    "decide",
    "default_hierarchy",
    "merge_layer",
    "rank_candidates",
    "resolve_config",
    "run_pipeline",
]
