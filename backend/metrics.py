from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List

LATENCY_WINDOW = 10
SERIES_KEEP = 300


@dataclass
class Metrics:
    queue_seconds: float = 0.0
    vehicles_served: int = 0
    discarded_decisions: int = 0
    decision_sources: Counter = field(default_factory=Counter)

    latency_window: Deque[float] = field(default_factory=lambda: deque(maxlen=LATENCY_WINDOW))

    # time series for plotting
    t_series: List[int] = field(default_factory=list)
    queue_series: List[int] = field(default_factory=list)
    wait_series: List[float] = field(default_factory=list)

    def record_step(self, t: int, total_queue: int, moved: int, dt: float):
        self.queue_seconds += total_queue * dt
        self.vehicles_served += moved

        self.t_series.append(t)
        self.queue_series.append(total_queue)
        self.wait_series.append(self.avg_wait_per_vehicle())
        if len(self.t_series) > SERIES_KEEP:
            del self.t_series[0], self.queue_series[0], self.wait_series[0]

    def record_decision(self, source: str, latency_ms: float):
        self.decision_sources[source] += 1
        self.latency_window.append(latency_ms)

    def record_discard(self):
        self.discarded_decisions += 1

    def avg_wait_per_vehicle(self) -> float:
        if self.vehicles_served <= 0:
            return 0.0
        return self.queue_seconds / self.vehicles_served

    def avg_latency_ms(self) -> float:
        if not self.latency_window:
            return 0.0
        return sum(self.latency_window) / len(self.latency_window)

    def snapshot(self) -> Dict:
        return {
            "vehicles_served": self.vehicles_served,
            "avg_wait": round(self.avg_wait_per_vehicle(), 3),
            "decision_latency_ms": round(self.avg_latency_ms(), 1),
            "decision_sources": dict(self.decision_sources),
            "discarded_decisions": self.discarded_decisions,
            "series": {
                "t": list(self.t_series),
                "queue": list(self.queue_series),
                "avg_wait": list(self.wait_series),
            },
        }
