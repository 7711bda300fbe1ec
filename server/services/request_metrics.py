"""
Request metrics: per-scenario counters and latency percentiles.

Latencies are kept in a bounded deque per scenario; percentiles are computed
with numpy on read. check_alerts() flags fallback rate above 5% and p95
latency above 300 ms.
"""

import threading
from collections import defaultdict, deque
from typing import Dict, List, Optional

import numpy as np

FALLBACK_RATE_ALERT = 0.05
P95_LATENCY_ALERT_MS = 300.0
LATENCY_SAMPLES = 5000

COUNTERS = ("requests", "success", "errors", "fallback", "explored")


class RequestMetrics:
    def __init__(self, max_samples: int = LATENCY_SAMPLES):
        self._lock = threading.Lock()
        self._counters: Dict[str, Dict[str, int]] = defaultdict(lambda: dict.fromkeys(COUNTERS, 0))
        self._latencies: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_samples))

    def record_request(self, scenario: str, latency_ms: float, success: bool, explored: bool = False) -> None:
        with self._lock:
            counters = self._counters[scenario]
            counters["requests"] += 1
            counters["success" if success else "errors"] += 1
            if explored:
                counters["explored"] += 1
            self._latencies[scenario].append(latency_ms)

    def record_fallback(self, scenario: str) -> None:
        with self._lock:
            self._counters[scenario]["fallback"] += 1

    @staticmethod
    def _percentiles(samples) -> Dict[str, Optional[float]]:
        if not samples:
            return {"p50": None, "p95": None, "p99": None}
        p50, p95, p99 = np.percentile(np.asarray(samples, dtype=np.float64), [50, 95, 99])
        return {"p50": float(p50), "p95": float(p95), "p99": float(p99)}

    def scenario_summary(self, scenario: str) -> dict:
        with self._lock:
            counters = dict(self._counters.get(scenario) or dict.fromkeys(COUNTERS, 0))
            samples = list(self._latencies.get(scenario, ()))
        requests = counters["requests"]
        return {
            "scenario": scenario,
            **counters,
            "fallback_rate": counters["fallback"] / requests if requests else 0.0,
            "explore_rate": counters["explored"] / requests if requests else 0.0,
            "latency_ms": self._percentiles(samples),
        }

    def summary(self) -> dict:
        with self._lock:
            scenarios = sorted(self._counters)
        per_scenario = [self.scenario_summary(s) for s in scenarios]
        return {"scenarios": per_scenario, "alerts": self.check_alerts(per_scenario)}

    def check_alerts(self, per_scenario: Optional[List[dict]] = None) -> List[str]:
        if per_scenario is None:
            with self._lock:
                scenarios = sorted(self._counters)
            per_scenario = [self.scenario_summary(s) for s in scenarios]
        alerts = []
        for entry in per_scenario:
            if entry["fallback_rate"] > FALLBACK_RATE_ALERT:
                alerts.append(f"{entry['scenario']}: fallback rate {entry['fallback_rate']:.1%} > 5%")
            p95 = entry["latency_ms"]["p95"]
            if p95 is not None and p95 > P95_LATENCY_ALERT_MS:
                alerts.append(f"{entry['scenario']}: p95 latency {p95:.0f}ms > 300ms")
        return alerts
