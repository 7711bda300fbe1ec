"""
Exploration policy — per-scenario settings for the exploration & fallback controller.

epsilon is the probability of exploring a non-top-ranked candidate.
strategy selects the distribution over ranks 2..K ("uniform" or "softmax").
"""

from typing import List, Literal, Optional

from pydantic import Field

from .common import WireModel

EXPLORE_EPSILON_MIN = 0.05
EXPLORE_EPSILON_MAX = 0.20
DEFAULT_EPSILON = 0.10

# Exploration is forced off when the segment looks unhealthy.
DEFAULT_MIN_QUALITY_FLOOR = 0.60
DEFAULT_MAX_REJECTION_RATE = 0.20


class ExplorationPolicy(WireModel):
    epsilon: float = Field(default=DEFAULT_EPSILON, ge=0.0, le=1.0)
    enabled: bool = True
    strategy: Literal["uniform", "softmax"] = "uniform"
    # Overrides fine max_results for the scenario when set.
    top_k: Optional[int] = Field(default=None, ge=1)
    # Softmax temperature; lower = closer to greedy among ranks 2..K.
    temperature: float = Field(default=0.1, gt=0.0)
    # Adapt epsilon to segment quality (x0.9 when good, x1.1 when poor).
    adaptive: bool = False
    min_quality_floor: float = DEFAULT_MIN_QUALITY_FLOOR
    max_rejection_rate: float = DEFAULT_MAX_REJECTION_RATE
    # Candidate ids offered as out-of-pool safe defaults in the fallback chain.
    safe_defaults: List[str] = Field(default_factory=list)
    max_coarse_extras: int = Field(default=2, ge=0)
    max_out_of_pool: int = Field(default=2, ge=0)

    @property
    def effective_epsilon(self) -> float:
        """Epsilon clamped to [0, EXPLORE_EPSILON_MAX]; 0 when exploration is disabled."""
        if not self.enabled:
            return 0.0
        return max(0.0, min(self.epsilon, EXPLORE_EPSILON_MAX))
