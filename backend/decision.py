from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import config

DIRECTIONS = ("N", "E", "S", "W")

AXIS_DIRECTIONS = {
    "A": ("N", "S"),
    "B": ("E", "W"),
}

TIE_POLICIES = ("favor_a", "alternate")


def axis_of(direction: str) -> str:
    return "A" if direction in AXIS_DIRECTIONS["A"] else "B"


def other_axis(axis: str) -> str:
    return "B" if axis == "A" else "A"


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def non_negative(value) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(v) or math.isinf(v):
        return 0.0
    return max(0.0, v)


def normalize_counts(raw: Optional[Mapping]) -> Dict[str, int]:
    """Missing, malformed or negative entries become 0."""
    raw = raw if isinstance(raw, Mapping) else {}
    return {d: int(non_negative(raw.get(d, 0))) for d in DIRECTIONS}


def normalize_waits(raw: Optional[Mapping]) -> Dict[str, float]:
    raw = raw if isinstance(raw, Mapping) else {}
    return {d: non_negative(raw.get(d, 0)) for d in DIRECTIONS}


def axis_total(counts: Mapping[str, float], axis: str) -> float:
    return sum(counts.get(d, 0) for d in AXIS_DIRECTIONS[axis])


@dataclass(frozen=True)
class DecisionPolicy:
    min_green_ms: int = config.MIN_GREEN_MS
    max_green_ms: int = config.MAX_GREEN_MS
    tmax_s: float = config.TMAX_S
    max_wait_green_ms: int = config.MAX_WAIT_GREEN_MS
    incident_cap_factor: float = config.INCIDENT_CAP_FACTOR
    base_extra_cap_ms: int = config.BASE_EXTRA_CAP_MS
    per_vehicle_ms: int = config.PER_VEHICLE_MS
    per_wait_s_ms: int = config.PER_WAIT_S_MS
    platoon_bonus_ms: int = config.PLATOON_BONUS_MS
    load_saturation: int = config.LOAD_SATURATION
    tie_policy: str = "favor_a"

    def __post_init__(self):
        if self.tie_policy not in TIE_POLICIES:
            raise ValueError(f"unknown tie policy {self.tie_policy!r}")
        if self.min_green_ms > self.max_green_ms:
            raise ValueError("min_green_ms must not exceed max_green_ms")

    @classmethod
    def from_config(cls) -> "DecisionPolicy":
        return cls(tie_policy=config.TIE_POLICY)

    def max_green_for(self, scenario_id: str) -> int:
        if scenario_id == "incident":
            return _round_half_up(self.max_green_ms * self.incident_cap_factor)
        return self.max_green_ms

    def clamp(self, green_ms: float, max_green: Optional[int] = None) -> int:
        hi = self.max_green_ms if max_green is None else max_green
        return max(self.min_green_ms, min(hi, _round_half_up(green_ms)))


@dataclass(frozen=True)
class DecisionRequest:
    counts: Dict[str, int]
    waits: Dict[str, float]
    scenario_id: str = "free"
    last_green_dir: str = "A"
    outflow_ns: bool = False
    outflow_ew: bool = False

    def outflow_for(self, axis: str) -> bool:
        return self.outflow_ns if axis == "A" else self.outflow_ew


@dataclass(frozen=True)
class DecisionResult:
    next_dir: str
    green_ms: int
    reason: str


def build_request(
    counts: Mapping[str, int],
    waits: Mapping[str, float],
    previous_counts: Optional[Mapping[str, int]],
    scenario_id: str,
    last_green_dir: str,
) -> DecisionRequest:
    """
    Outflow for an axis means its combined queue shrank compared with the
    snapshot taken at the previous green end. No previous snapshot, no outflow.
    """
    counts = normalize_counts(counts)
    outflow = {"A": False, "B": False}
    if previous_counts is not None:
        prev = normalize_counts(previous_counts)
        for axis in AXIS_DIRECTIONS:
            outflow[axis] = axis_total(counts, axis) < axis_total(prev, axis)

    return DecisionRequest(
        counts=counts,
        waits=normalize_waits(waits),
        scenario_id=scenario_id,
        last_green_dir=last_green_dir,
        outflow_ns=outflow["A"],
        outflow_ew=outflow["B"],
    )


def _break_tie(policy: DecisionPolicy, last_green_dir: str) -> str:
    if policy.tie_policy == "alternate":
        return other_axis(last_green_dir)
    return "A"


def decide(req: DecisionRequest, policy: Optional[DecisionPolicy] = None) -> DecisionResult:
    """
    Pick the next green axis and its duration.

    - Max-wait override: a direction waiting >= tmax forces its axis, fixed green.
    - Otherwise the axis with the higher fairness score wins,
      score = sum(count * (1 + wait / tmax)).
    - Incident: strictly larger NS queue wins, otherwise EW; cap raised.
    - Green scales with total queue and average wait, plus a platoon bonus
      when the chosen axis was draining, then clamped.
    """
    policy = policy or DecisionPolicy()
    counts = normalize_counts(req.counts)
    waits = normalize_waits(req.waits)

    # 1) Max-wait: first of the largest waits in N, E, S, W order
    starving = max(DIRECTIONS, key=lambda d: waits[d])
    if waits[starving] >= policy.tmax_s:
        green = policy.clamp(policy.max_wait_green_ms, policy.max_green_for(req.scenario_id))
        return DecisionResult(axis_of(starving), green, "max-wait")

    # 2) Weighted fairness
    def weight(d: str) -> float:
        return counts[d] * (1 + waits[d] / policy.tmax_s)

    prio_ns = sum(weight(d) for d in AXIS_DIRECTIONS["A"])
    prio_ew = sum(weight(d) for d in AXIS_DIRECTIONS["B"])

    if prio_ns > prio_ew:
        next_dir = "A"
    elif prio_ew > prio_ns:
        next_dir = "B"
    else:
        next_dir = _break_tie(policy, req.last_green_dir)

    # 3) Incident
    max_green = policy.max_green_for(req.scenario_id)
    if req.scenario_id == "incident":
        q_ns = axis_total(counts, "A")
        q_ew = axis_total(counts, "B")
        next_dir = "A" if q_ns > q_ew else "B"

    # 4) Base duration
    total = sum(counts.values())
    avg_wait = sum(waits.values()) / len(DIRECTIONS)
    green = policy.min_green_ms + min(
        policy.base_extra_cap_ms,
        total * policy.per_vehicle_ms + avg_wait * policy.per_wait_s_ms,
    )

    # 5) Platoon
    if req.outflow_for(next_dir):
        green += policy.platoon_bonus_ms

    # 6) Safety clamp
    return DecisionResult(next_dir, policy.clamp(green, max_green), "rule-pro")


def fallback_decision(
    counts: Mapping[str, int],
    last_green_dir: str = "A",
    policy: Optional[DecisionPolicy] = None,
) -> DecisionResult:
    """Load-only formula used when the decision service cannot be reached."""
    policy = policy or DecisionPolicy()
    counts = normalize_counts(counts)
    q_ns = axis_total(counts, "A")
    q_ew = axis_total(counts, "B")

    if q_ns > q_ew:
        next_dir = "A"
    elif q_ew > q_ns:
        next_dir = "B"
    else:
        next_dir = other_axis(last_green_dir)

    p = min(1.0, (q_ns + q_ew) / policy.load_saturation)
    green = policy.min_green_ms + p * (policy.max_green_ms - policy.min_green_ms)
    return DecisionResult(next_dir, policy.clamp(green), "local-fallback")
