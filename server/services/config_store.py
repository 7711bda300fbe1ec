"""
Config store: tuning hierarchies and exploration settings per scenario.

Reads are lock-free snapshots; updates build a new HierarchicalConfig (or
ExplorationPolicy) and swap the reference under a lock, so a ranking call in
flight keeps using the layers it started with.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from ranker.models import ExplorationPolicy, HierarchicalConfig, TuningConfig, default_hierarchy

logger = logging.getLogger(__name__)


class ConfigStore:
    def __init__(
        self,
        default_policy: Optional[ExplorationPolicy] = None,
        hierarchies: Optional[Dict[str, HierarchicalConfig]] = None,
        default_top_k: Optional[int] = None,
    ):
        self._lock = threading.Lock()
        self._hierarchies: Dict[str, HierarchicalConfig] = dict(hierarchies or {})
        self._policies: Dict[str, ExplorationPolicy] = {}
        self._default_hierarchy = default_hierarchy()
        if default_top_k:
            layer = self._default_hierarchy.global_config
            fine = layer.fine_ranking.model_copy(update={"max_results": default_top_k})
            self._default_hierarchy = self._default_hierarchy.with_layer(
                layer.model_copy(update={"fine_ranking": fine})
            )
        self._default_policy = default_policy or ExplorationPolicy()

    @classmethod
    def from_json(
        cls,
        path: Union[Path, str],
        default_policy: Optional[ExplorationPolicy] = None,
        default_top_k: Optional[int] = None,
    ) -> "ConfigStore":
        """Load {scenario: HierarchicalConfig} from a JSON file."""
        path = Path(path)
        with open(path) as f:
            data = json.load(f)
        hierarchies = {
            scenario: HierarchicalConfig.model_validate(layers)
            for scenario, layers in data.items()
        }
        logger.info("[config_store] loaded tuning for %d scenarios from %s", len(hierarchies), path)
        return cls(default_policy=default_policy, hierarchies=hierarchies, default_top_k=default_top_k)

    def get_hierarchy(self, scenario: str) -> HierarchicalConfig:
        """Hierarchy for a scenario, or the default hierarchy when none is stored."""
        return self._hierarchies.get(scenario, self._default_hierarchy)

    def has_hierarchy(self, scenario: str) -> bool:
        return scenario in self._hierarchies

    def update_layer(self, scenario: str, config: TuningConfig) -> HierarchicalConfig:
        """Replace one layer; the previous hierarchy object is left untouched."""
        with self._lock:
            current = self._hierarchies.get(scenario, self._default_hierarchy)
            updated = current.with_layer(config)
            self._hierarchies[scenario] = updated
        logger.info("[config_store] scenario=%s layer=%s replaced", scenario, config.layer_key)
        return updated

    def get_policy(self, scenario: str) -> ExplorationPolicy:
        return self._policies.get(scenario, self._default_policy)

    def set_policy(self, scenario: str, policy: ExplorationPolicy) -> ExplorationPolicy:
        with self._lock:
            self._policies[scenario] = policy
        logger.info(
            "[config_store] scenario=%s exploration epsilon=%s strategy=%s",
            scenario, policy.epsilon, policy.strategy,
        )
        return policy

    def scenarios(self) -> list:
        return sorted(set(self._hierarchies) | set(self._policies))
