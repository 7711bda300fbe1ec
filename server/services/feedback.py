"""
Feedback ingestor.

Feedback events reference a recorded decision by id. Each event:
1. is appended to that decision's event list,
2. forwards execution attempts to the circuit breakers (candidate and provider keys),
3. marks the decision as having used its fallback chain when the candidate
   finally used differs from the chosen one,
4. folds its numeric fields into the decision's segment metrics,
5. refreshes the segment's last-known-good candidate on accept/select.

All five steps run under the decision's lock, so events for one decision
are applied in receipt order.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ranker.errors import DecisionNotFound
from ranker.models import Decision, FeedbackAck, FeedbackEvent, FeedbackPayload

from .breaker_registry import BreakerRegistry
from .decision_store import DecisionStore
from .lkg_cache import LastKnownGoodCache
from .segment_metrics import SegmentMetricsAggregator

logger = logging.getLogger(__name__)

POSITIVE_EVENTS = ("accept", "select")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def final_candidate_id(decision: Decision, payload: FeedbackPayload) -> Optional[str]:
    """Candidate actually used: explicit chosen id, else the last successful attempt."""
    if payload.chosen_candidate_id:
        return payload.chosen_candidate_id
    for attempt in reversed(payload.candidates):
        if attempt.success:
            return attempt.id
    return None


class FeedbackIngestor:
    def __init__(
        self,
        decisions: DecisionStore,
        breakers: BreakerRegistry,
        segments: SegmentMetricsAggregator,
        lkg: Optional[LastKnownGoodCache] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.decisions = decisions
        self.breakers = breakers
        self.segments = segments
        self.lkg = lkg
        self._clock = clock or utc_now
        self._table_lock = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._events: Dict[str, List[FeedbackEvent]] = {}

    def _lock_for(self, decision_id: str) -> threading.Lock:
        with self._table_lock:
            lock = self._locks.get(decision_id)
            if lock is None:
                lock = self._locks[decision_id] = threading.Lock()
            return lock

    def ingest(self, decision_id: str, event_type: str, payload: Optional[FeedbackPayload] = None) -> FeedbackAck:
        """Apply one feedback event. Raises DecisionNotFound for unknown or evicted ids."""
        payload = payload or FeedbackPayload()
        try:
            decision = self.decisions.get(decision_id)
        except DecisionNotFound:
            logger.warning("[feedback] unknown decision %s event=%s", decision_id, event_type)
            raise

        event = FeedbackEvent(
            decision_id=decision_id,
            event_type=event_type,
            payload=payload,
            received_at=self._clock(),
        )
        with self._lock_for(decision_id):
            events = self._events.setdefault(decision_id, [])
            events.append(event)
            event_count = len(events)

            breaker_updates = self._apply_attempts(decision, payload)

            final_id = final_candidate_id(decision, payload)
            fallback_used = bool(final_id) and final_id != decision.chosen.id
            if fallback_used:
                self.decisions.mark_fallback(decision_id)

            self.segments.record(decision.segment_key, payload.metric_values(), at=event.received_at)

            if self.lkg is not None and event_type in POSITIVE_EVENTS:
                self.lkg.set(decision.scenario, decision.segment_key, final_id or decision.chosen.id)
        self._prune()

        logger.info(
            "[feedback] decision=%s event=%s segment=%s fallback=%s breakers=%s",
            decision_id, event_type, decision.segment_key, fallback_used, breaker_updates,
        )
        return FeedbackAck(
            decision_id=decision_id,
            event_type=event_type,
            accepted=True,
            segment_key=decision.segment_key,
            event_count=event_count,
            breaker_updates=breaker_updates,
            fallback_used=fallback_used or self.decisions.used_fallback(decision_id),
        )

    def _apply_attempts(self, decision: Decision, payload: FeedbackPayload) -> List[str]:
        updates = []
        for attempt in payload.candidates:
            keys = [attempt.id]
            summary = decision.find_candidate(attempt.id)
            if summary is not None and summary.provider:
                keys.append(f"provider:{summary.provider}")
            for key in keys:
                state = self.breakers.record_outcome(key, attempt.success, reason=attempt.error)
                updates.append(f"{key}:{state.state.value}")
        return updates

    def _prune(self) -> None:
        """Drop event lists whose decision has been evicted."""
        with self._table_lock:
            if len(self._events) <= self.decisions.retention:
                return
            stale = [d for d in self._events if d not in self.decisions]
            for decision_id in stale:
                self._events.pop(decision_id, None)
                self._locks.pop(decision_id, None)

    def events(self, decision_id: str) -> List[FeedbackEvent]:
        with self._lock_for(decision_id):
            return list(self._events.get(decision_id, []))
