"""
Decision recorder.

Every ranking outcome is stored under a fresh uuid4 id before the response is
returned, so feedback can never arrive for a decision that is not yet
readable. Retention is bounded: the oldest decisions are evicted first and
feedback for them fails with DecisionNotFound.

An optional JSON-lines file receives one line per recorded decision.
"""

import logging
import threading
import uuid
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from ranker import STRATEGY_VERSION
from ranker.errors import DecisionNotFound
from ranker.models import ChosenCandidate, Decision, DecisionStats
from ranker.stages.exploration import ExplorationDecision, summarize
from ranker.stages.ranking import RankingResult

logger = logging.getLogger(__name__)

STATS_WINDOW = timedelta(hours=24)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DecisionStore:
    def __init__(
        self,
        retention: int = 10000,
        log_path: Optional[Union[Path, str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if retention < 1:
            raise ValueError("retention must be >= 1")
        self.retention = retention
        self._log_path = Path(log_path) if log_path else None
        self._clock = clock or utc_now
        self._lock = threading.Lock()
        self._decisions: "OrderedDict[str, Decision]" = OrderedDict()
        self._by_request: Dict[Tuple[str, str], str] = {}
        self._fallback_used: set = set()

    def record(
        self,
        scenario: str,
        ranking: RankingResult,
        exploration: ExplorationDecision,
        inheritance_chain: List[str],
        segment_key: str,
        request_id: Optional[str] = None,
        strategy_version: Optional[str] = None,
    ) -> Decision:
        """Build and store the decision snapshot; returns it once it is readable."""
        chosen = exploration.chosen
        decision = Decision(
            id=uuid.uuid4().hex,
            scenario=scenario,
            request_id=request_id,
            chosen=ChosenCandidate(
                id=chosen.id,
                coarse_score=chosen.coarse_score,
                fine_score=chosen.fine_score,
            ),
            top_k=[summarize(c, "fine") for c in ranking.candidates],
            alternatives=exploration.alternatives,
            fallback_chain=list(exploration.fallback_chain),
            explored=exploration.explored,
            inheritance_chain=list(inheritance_chain),
            segment_key=segment_key,
            strategy_version=strategy_version or STRATEGY_VERSION,
            created_at=self._clock(),
        )
        with self._lock:
            self._decisions[decision.id] = decision
            if request_id:
                self._by_request[(scenario, request_id)] = decision.id
            self._evict()
            if self._log_path:
                self._append_log(decision)
        logger.debug("[decision] %s scenario=%s chosen=%s", decision.id, scenario, chosen.id)
        return decision

    def _evict(self) -> None:
        while len(self._decisions) > self.retention:
            old_id, old = self._decisions.popitem(last=False)
            self._fallback_used.discard(old_id)
            if old.request_id:
                self._by_request.pop((old.scenario, old.request_id), None)
            logger.debug("[decision] evicted %s", old_id)

    def _append_log(self, decision: Decision) -> None:
        with open(self._log_path, "a") as f:
            f.write(decision.model_dump_json(by_alias=True) + "\n")

    def get(self, decision_id: str) -> Decision:
        decision = self._decisions.get(decision_id)
        if decision is None:
            raise DecisionNotFound(
                f"Decision not found: {decision_id}", {"decision_id": decision_id}
            )
        return decision

    def find_by_request_id(self, scenario: str, request_id: str) -> Optional[Decision]:
        with self._lock:
            decision_id = self._by_request.get((scenario, request_id))
            return self._decisions.get(decision_id) if decision_id else None

    def mark_fallback(self, decision_id: str) -> bool:
        """Flag a decision as having used its fallback chain. False when it was already evicted."""
        with self._lock:
            if decision_id not in self._decisions:
                logger.debug("[decision] mark_fallback on evicted decision %s ignored", decision_id)
                return False
            self._fallback_used.add(decision_id)
            return True

    def used_fallback(self, decision_id: str) -> bool:
        return decision_id in self._fallback_used

    def __len__(self) -> int:
        return len(self._decisions)

    def __contains__(self, decision_id: str) -> bool:
        return decision_id in self._decisions

    def stats(self, now: Optional[datetime] = None) -> DecisionStats:
        """Totals over retained decisions; explore/fallback rates over the last 24h."""
        now = now or self._clock()
        with self._lock:
            decisions = list(self._decisions.values())
            fallback_ids = set(self._fallback_used)
        recent = [d for d in decisions if now - d.created_at <= STATS_WINDOW]
        explore_count = sum(1 for d in recent if d.explored)
        fallback_count = sum(1 for d in recent if d.id in fallback_ids)
        n = len(recent)
        return DecisionStats(
            total=len(decisions),
            last_24h=n,
            explore_count=explore_count,
            explore_rate=explore_count / n if n else 0.0,
            fallback_count=fallback_count,
            fallback_rate=fallback_count / n if n else 0.0,
        )
