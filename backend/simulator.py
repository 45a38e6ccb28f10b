# simulator.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from config import (
    TICK_MS,
    MIN_GREEN_MS,
    SAFETY_YELLOW_MS,
    SAFETY_ALL_RED_MS,
    PED_CLEARANCE_MS,
    CLEARANCE_MODE,
    SERVICE_RATE,
    MAX_ARRIVAL_RATE,
    INCIDENT_CAPACITY_MULT,
    ARRIVAL_WEIGHTS,
    DEFAULT_SCENARIO,
    DEFAULT_SEED,
)
from decision import (
    AXIS_DIRECTIONS,
    DIRECTIONS,
    DecisionPolicy,
    DecisionRequest,
    DecisionResult,
    axis_of,
    build_request,
    decide,
    fallback_decision,
)
from metrics import Metrics
from scenarios import Scenario, get_scenario

logger = logging.getLogger(__name__)

GREEN_PHASES = ("A", "B")
CLEARANCE_PHASES = ("YELLOW", "ALLRED", "PED")
CLEARANCE_MODES = ("yellow_allred", "pedestrian")


@dataclass
class LightState:
    phase: str = "A"            # "A" | "B" | "YELLOW" | "ALLRED" | "PED"
    active_dir: str = "A"       # axis that had (or has) the last green
    phase_end_at: int = MIN_GREEN_MS
    green_ms: int = MIN_GREEN_MS

    @property
    def in_clearance(self) -> bool:
        return self.phase in CLEARANCE_PHASES


def billboard_message(score: int, phase: str, active_dir: str, scenario_id: str, seconds_left: int) -> str:
    if phase in CLEARANCE_PHASES:
        return "Safety phase. Please wait."

    if scenario_id == "incident" and score > 85:
        base = "Incident ahead detected. Adjusting phases."
    elif score > 65:
        base = f"High traffic. Extending {active_dir} green."
    elif score < 30:
        base = "Low traffic. Faster switching."
    else:
        base = "Adaptive control active."

    if phase == active_dir:
        return f"{base} {seconds_left}s left."
    return base


class Intersection:
    """
    Single four-approach intersection driven by a fixed tick.

    Phases cycle green -> clearance -> green. A decision request is produced
    when a green ends; whoever serves it hands the result back through
    offer_decision() while clearance runs. If clearance ends first the local
    fallback is applied, so a next phase is always scheduled.
    """

    def __init__(
        self,
        scenario_id: str = DEFAULT_SCENARIO,
        seed: int = DEFAULT_SEED,
        clearance_mode: str = CLEARANCE_MODE,
        policy: Optional[DecisionPolicy] = None,
        local_decisions: bool = True,
        tick_ms: int = TICK_MS,
        now_ms: int = 0,
    ):
        if clearance_mode not in CLEARANCE_MODES:
            raise ValueError(f"unknown clearance mode {clearance_mode!r}")

        self.clearance_mode = clearance_mode
        self.policy = policy or DecisionPolicy.from_config()
        self.local_decisions = local_decisions
        self.tick_ms = tick_ms
        self.epoch = 0
        self._init_state(get_scenario(scenario_id), seed, now_ms)

    def _init_state(self, scenario: Scenario, seed: int, now_ms: int):
        self.scenario = scenario
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.t = 0
        self.index = 0
        self.metrics = Metrics()

        self.queues: Dict[str, int] = {d: 0 for d in DIRECTIONS}
        self.waits: Dict[str, float] = {d: 0.0 for d in DIRECTIONS}
        self.capacity_mult = {"A": 1.0, "B": 1.0}
        if scenario.id == "incident":
            self.capacity_mult["B"] = INCIDENT_CAPACITY_MULT

        # queue snapshot taken at the previous green end (outflow comparison)
        self.last_green_snapshot: Optional[Dict[str, int]] = None
        self.awaiting_decision = False
        self.pending: Optional[Tuple[DecisionResult, str]] = None

        self.light = LightState(phase="A", active_dir="A", phase_end_at=now_ms + MIN_GREEN_MS)
        self.last_reason = "initial"
        self.last_source = "initial"

    def reset(self, scenario_id: Optional[str] = None, seed: Optional[int] = None, now_ms: int = 0):
        """Replace all state; decisions requested before the reset are ignored."""
        scenario = get_scenario(scenario_id or self.scenario.id)
        self.epoch += 1
        self._init_state(scenario, self.seed if seed is None else seed, now_ms)

    @property
    def score(self) -> int:
        return self.scenario.score_at(self.index)

    def arrivals_step(self, dt: float):
        level = self.score / 100.0
        for d in DIRECTIONS:
            if self.rng.random() < MAX_ARRIVAL_RATE * level * ARRIVAL_WEIGHTS[d] * dt:
                self.queues[d] += 1

    def service_step(self, dt: float) -> int:
        if self.light.in_clearance:
            return 0

        moved = 0
        axis = self.light.phase
        p = SERVICE_RATE * self.capacity_mult[axis] * dt
        for d in AXIS_DIRECTIONS[axis]:
            if self.queues[d] > 0 and self.rng.random() < p:
                self.queues[d] -= 1
                moved += 1
        return moved

    def waits_step(self, dt: float):
        for d in DIRECTIONS:
            if not self.light.in_clearance and axis_of(d) == self.light.phase:
                self.waits[d] = 0.0
            else:
                self.waits[d] += dt

    def tick(self, now_ms: int) -> Optional[DecisionRequest]:
        """
        Advance one tick. Returns a DecisionRequest when a green phase ended
        on this tick, tagged implicitly with the current epoch.
        """
        dt = self.tick_ms / 1000.0
        self.t += 1
        self.index = (self.index + 1) % len(self.scenario.timeline)

        self.arrivals_step(dt)
        moved = self.service_step(dt)

        request = None
        if now_ms >= self.light.phase_end_at:
            request = self._advance(now_ms)

        self.waits_step(dt)
        self.metrics.record_step(t=self.t, total_queue=sum(self.queues.values()), moved=moved, dt=dt)

        if request is not None and self.local_decisions:
            self.offer_decision(decide(request, self.policy), self.epoch, source="local")
        return request

    def _advance(self, now_ms: int) -> Optional[DecisionRequest]:
        phase = self.light.phase

        if phase in GREEN_PHASES:
            request = build_request(
                self.queues,
                self.waits,
                self.last_green_snapshot,
                self.scenario.id,
                self.light.active_dir,
            )
            self.last_green_snapshot = dict(self.queues)
            self.awaiting_decision = True
            self.pending = None

            if self.clearance_mode == "pedestrian":
                self._enter("PED", now_ms + PED_CLEARANCE_MS)
            else:
                self._enter("YELLOW", now_ms + SAFETY_YELLOW_MS)
            return request

        if phase == "YELLOW":
            self._enter("ALLRED", now_ms + SAFETY_ALL_RED_MS)
        else:
            self._start_green(now_ms)
        return None

    def _enter(self, phase: str, end_at: int):
        self.light.phase = phase
        self.light.phase_end_at = end_at

    def _start_green(self, now_ms: int):
        if self.pending is not None:
            result, source = self.pending
        else:
            result = fallback_decision(self.queues, self.light.active_dir, self.policy)
            source = "fallback"
            self.metrics.record_decision(source, 0.0)
            logger.warning("no decision before clearance ended, applying local fallback")

        # remote answers are not trusted to respect the bounds
        green = self.policy.clamp(result.green_ms, self.policy.max_green_for(self.scenario.id))
        axis = result.next_dir if result.next_dir in GREEN_PHASES else self.light.active_dir

        self.light = LightState(phase=axis, active_dir=axis, phase_end_at=now_ms + green, green_ms=green)
        self.last_reason = result.reason
        self.last_source = source
        self.awaiting_decision = False
        self.pending = None

        logger.info("green %s for %d ms (reason=%s, source=%s)", axis, green, result.reason, source)

    def offer_decision(self, result: DecisionResult, epoch: int, source: str, latency_ms: float = 0.0) -> bool:
        if epoch != self.epoch or not self.awaiting_decision or self.pending is not None:
            self.metrics.record_discard()
            logger.info("discarding stale %s decision (epoch %d, current %d)", source, epoch, self.epoch)
            return False

        self.pending = (result, source)
        self.metrics.record_decision(source, latency_ms)
        return True

    def snapshot(self, now_ms: int) -> Dict:
        time_left = max(0, self.light.phase_end_at - now_ms)
        seconds_left = -(-time_left // 1000)
        score = self.score

        return {
            "epoch": self.epoch,
            "t": self.t,
            "scenario": self.scenario.id,
            "score": score,
            "phase": self.light.phase,
            "active_dir": self.light.active_dir,
            "in_clearance": self.light.in_clearance,
            "time_left_ms": time_left,
            "green_ms": self.light.green_ms,
            "awaiting_decision": self.awaiting_decision,
            "queues": dict(self.queues),
            "waits": {d: round(w, 1) for d, w in self.waits.items()},
            "reason": self.last_reason,
            "source": self.last_source,
            "message": billboard_message(
                score, self.light.phase, self.light.active_dir, self.scenario.id, seconds_left
            ),
            "metrics": self.metrics.snapshot(),
        }
