"""
Feature Store abstraction.

Supplies the candidate pool for a scenario as immutable Candidate snapshots,
fetched fresh on every ranking call. Implementations: in-memory (tests and
local runs), JSON file, HTTP service. Swap via FEATURE_STORE_SOURCE.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

import requests
from pydantic import ValidationError

from ranker.errors import FeatureStoreUnavailable, RankingTimeout
from ranker.models import Candidate

logger = logging.getLogger(__name__)


class FeatureStore(Protocol):
    """Protocol for candidate lookup. Implement for memory, JSON, or HTTP."""

    def get_candidates(
        self,
        scenario: str,
        timeout: Optional[float] = None,
    ) -> List[Candidate]:
        """
        Return the candidate pool for a scenario.
        Raises FeatureStoreUnavailable on I/O failure, RankingTimeout on deadline.
        """
        ...


def _parse_candidates(scenario: str, rows: List[dict]) -> List[Candidate]:
    try:
        return [Candidate.model_validate(row) for row in rows]
    except ValidationError as e:
        raise FeatureStoreUnavailable(
            f"Feature store returned malformed candidates for {scenario}",
            {"scenario": scenario, "errors": e.errors(include_url=False)},
        ) from e


class InMemoryFeatureStore:
    """
    Feature store held in process memory.
    Used for local testing and as the default when no source is configured.
    """

    def __init__(self, pools: Optional[Dict[str, List[Union[Candidate, dict]]]] = None):
        self._lock = threading.Lock()
        self._pools: Dict[str, List[Candidate]] = {}
        for scenario, rows in (pools or {}).items():
            self.set_pool(scenario, rows)

    def set_pool(self, scenario: str, rows: List[Union[Candidate, dict]]) -> None:
        pool = [r if isinstance(r, Candidate) else Candidate.model_validate(r) for r in rows]
        with self._lock:
            self._pools[scenario] = pool

    def scenarios(self) -> List[str]:
        with self._lock:
            return sorted(self._pools)

    def get_candidates(
        self,
        scenario: str,
        timeout: Optional[float] = None,
    ) -> List[Candidate]:
        with self._lock:
            pool = self._pools.get(scenario, [])
        return list(pool)


class JsonFeatureStore(InMemoryFeatureStore):
    """
    Feature store backed by a JSON file: {"<scenario>": [candidate, ...]}.
    Used when FEATURE_STORE_SOURCE=json; path comes from FEATURES_JSON_PATH.
    """

    def __init__(self, path: Union[Path, str]):
        self._path = Path(path)
        if not self._path.exists():
            raise FileNotFoundError(f"Features JSON not found: {self._path}")
        with open(self._path) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Features JSON must map scenario -> candidates: {self._path}")
        super().__init__(data)
        logger.info("[feature_store] loaded %d scenarios from %s", len(data), self._path)


class HttpFeatureStore:
    """
    Feature store behind an HTTP service.
    GET {base_url}/candidates?scenario=<s> -> [candidate, ...] or {"candidates": [...]}
    """

    def __init__(self, base_url: str, timeout: float = 2.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_candidates(
        self,
        scenario: str,
        timeout: Optional[float] = None,
    ) -> List[Candidate]:
        url = f"{self.base_url}/candidates"
        params = {"scenario": scenario}
        try:
            response = self._session.get(url, params=params, timeout=timeout or self.timeout)
            response.raise_for_status()
            rows = response.json()
        except requests.exceptions.Timeout as e:
            logger.warning("[feature_store] timeout scenario=%s url=%s", scenario, url)
            raise RankingTimeout(
                f"Feature store timed out for {scenario}", {"scenario": scenario}
            ) from e
        except requests.exceptions.RequestException as e:
            logger.warning("[feature_store] request failed scenario=%s: %s", scenario, e)
            raise FeatureStoreUnavailable(
                f"Feature store request failed for {scenario}: {e}", {"scenario": scenario}
            ) from e
        except ValueError as e:
            raise FeatureStoreUnavailable(
                f"Feature store returned invalid JSON for {scenario}", {"scenario": scenario}
            ) from e
        if isinstance(rows, dict):
            rows = rows.get("candidates", [])
        return _parse_candidates(scenario, rows)


def create_feature_store(config) -> FeatureStore:
    """Build the feature store selected by ServerConfig.feature_store_source."""
    source = config.feature_store_source
    if source == "json" and config.features_json_path:
        return JsonFeatureStore(config.features_json_path)
    if source == "http" and config.feature_store_url:
        return HttpFeatureStore(config.feature_store_url, timeout=config.feature_store_timeout_seconds)
    return InMemoryFeatureStore()
