"""
Circuit breaker registry keyed by candidate id (or "provider:<name>").

closed --(threshold failures within the window)--> open
open   --(cool-down elapsed, checked lazily on access)--> half_open
half_open admits one trial; other callers see it as open until the trial
          reports an outcome or trial_timeout elapses
half_open --success--> closed (counter reset)
half_open --failure--> open (cool-down restarts)

Each key has its own lock; the registry lock only guards the key table.
Transitions are data: callers read state, nothing here raises.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from ranker.models import BreakerState, CircuitBreakerState

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BreakerRegistry:
    def __init__(
        self,
        failure_threshold: int = 3,
        failure_window_seconds: float = 600.0,
        cooldown_seconds: float = 600.0,
        trial_timeout_seconds: float = 60.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.failure_threshold = failure_threshold
        self.failure_window = timedelta(seconds=failure_window_seconds)
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self.trial_timeout = timedelta(seconds=trial_timeout_seconds)
        self._clock = clock or utc_now
        self._table_lock = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._states: Dict[str, CircuitBreakerState] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._table_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _current(self, key: str, now: datetime) -> CircuitBreakerState:
        """Stored state with the lazy open -> half_open transition applied. Caller holds the key lock."""
        state = self._states.get(key)
        if state is None:
            return CircuitBreakerState(key=key)
        if (
            state.state == BreakerState.OPEN
            and state.opened_at is not None
            and now - state.opened_at >= self.cooldown
        ):
            state = state.model_copy(update={"state": BreakerState.HALF_OPEN})
            self._states[key] = state
            logger.info("[breaker] %s open -> half_open", key)
        return state

    def get(self, key: str) -> CircuitBreakerState:
        with self._lock_for(key):
            return self._current(key, self._clock())

    def is_open(self, key: str) -> bool:
        """
        True for OPEN, and for HALF_OPEN while its trial is in flight.

        The first caller to find a key half-open claims the trial and is
        told the key is closed.
        """
        if key not in self._states:
            return False
        with self._lock_for(key):
            now = self._clock()
            state = self._current(key, now)
            if state.state != BreakerState.HALF_OPEN:
                return state.state == BreakerState.OPEN
            started = state.trial_started_at
            if started is not None and now - started < self.trial_timeout:
                return True
            self._states[key] = state.model_copy(update={"trial_started_at": now})
        logger.info("[breaker] %s half_open trial admitted", key)
        return False

    def record_outcome(self, key: str, success: bool, reason: Optional[str] = None) -> CircuitBreakerState:
        """Apply one execution outcome and return the new state."""
        with self._lock_for(key):
            now = self._clock()
            state = self._current(key, now)
            previous = state.state
            if success:
                state = self._on_success(state)
            else:
                state = self._on_failure(state, now, reason)
            self._states[key] = state
        if state.state != previous:
            logger.info(
                "[breaker] %s %s -> %s failures=%d reason=%s",
                key, previous.value, state.state.value, state.consecutive_failures, reason,
            )
        return state

    def _on_success(self, state: CircuitBreakerState) -> CircuitBreakerState:
        if state.state == BreakerState.OPEN:
            # Still cooling down; only a half-open trial can close it.
            return state
        return state.model_copy(update={
            "state": BreakerState.CLOSED,
            "consecutive_failures": 0,
            "opened_at": None,
            "trial_started_at": None,
            "reason": None,
        })

    def _on_failure(self, state: CircuitBreakerState, now: datetime, reason: Optional[str]) -> CircuitBreakerState:
        if state.state == BreakerState.HALF_OPEN:
            return state.model_copy(update={
                "state": BreakerState.OPEN,
                "consecutive_failures": state.consecutive_failures + 1,
                "opened_at": now,
                "last_failure_at": now,
                "trial_started_at": None,
                "reason": reason or state.reason,
            })
        stale = state.last_failure_at is not None and now - state.last_failure_at > self.failure_window
        failures = 1 if stale else state.consecutive_failures + 1
        update = {
            "consecutive_failures": failures,
            "last_failure_at": now,
            "reason": reason or state.reason,
        }
        if state.state == BreakerState.CLOSED and failures >= self.failure_threshold:
            update["state"] = BreakerState.OPEN
            update["opened_at"] = now
        return state.model_copy(update=update)

    def reset(self, key: str) -> bool:
        """Force a key back to closed. Returns False when the key was never tracked."""
        with self._lock_for(key):
            existed = key in self._states
            self._states.pop(key, None)
        if existed:
            logger.info("[breaker] %s reset", key)
        return existed

    def reset_all(self) -> int:
        """Reset every tracked key; safe to call concurrently with ranking and repeatedly."""
        with self._table_lock:
            keys = list(self._states)
        cleared = sum(1 for key in keys if self.reset(key))
        logger.info("[breaker] cleared %d keys", cleared)
        return cleared

    def snapshot(self) -> List[CircuitBreakerState]:
        with self._table_lock:
            keys = sorted(self._states)
        now = self._clock()
        states = []
        for key in keys:
            with self._lock_for(key):
                if key in self._states:
                    states.append(self._current(key, now))
        return states

    def counts(self) -> Tuple[int, int, int]:
        """(closed, open, half_open) across tracked keys."""
        states = [s.state for s in self.snapshot()]
        return (
            states.count(BreakerState.CLOSED),
            states.count(BreakerState.OPEN),
            states.count(BreakerState.HALF_OPEN),
        )
