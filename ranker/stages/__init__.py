"""Pipeline stages: candidate pool, config resolution, two-stage ranking, exploration, orchestrator."""

from .candidate_pool import HardConstraints, get_candidate_pool
from .config_resolver import ResolvedConfig, merge_layer, resolve_config
from .exploration import decide
from .orchestrator import PipelineResult, run_pipeline
from .ranking import RankingResult, rank_candidates

__all__ = [
    "HardConstraints",
    "PipelineResult",
    "RankingResult",
    "ResolvedConfig",
    "decide",
    "get_candidate_pool",
    "merge_layer",
    "rank_candidates",
    "resolve_config",
    "run_pipeline",
]
