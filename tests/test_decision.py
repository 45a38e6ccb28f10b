"""
Tests for the green-phase decision heuristic.

Covers:
- Worked examples (fairness, max-wait, all-zero)
- Duration bounds and the incident cap
- Tie policies
- Platoon bonus and outflow detection
- Input defaulting
- Load-only fallback
"""

import numpy as np
import pytest

from decision import (
    DecisionPolicy,
    DecisionRequest,
    DecisionResult,
    axis_of,
    build_request,
    decide,
    fallback_decision,
    normalize_counts,
)

ZERO = {"N": 0, "E": 0, "S": 0, "W": 0}


def make_request(counts=None, waits=None, scenario_id="free", last="A", outflow_ns=False, outflow_ew=False):
    return DecisionRequest(
        counts=dict(ZERO, **(counts or {})),
        waits=dict(ZERO, **(waits or {})),
        scenario_id=scenario_id,
        last_green_dir=last,
        outflow_ns=outflow_ns,
        outflow_ew=outflow_ew,
    )


class TestWorkedExamples:
    def test_fairness_example_picks_axis_a(self, example_request, policy):
        result = decide(example_request, policy)

        assert result.next_dir == "A"
        assert result.reason == "rule-pro"
        # 7000 + 14 * 800 + 12.5 * 120
        assert result.green_ms == 19700

    def test_max_wait_forces_axis(self, policy):
        result = decide(make_request(counts={"E": 30, "W": 30}, waits={"N": 95}), policy)
        assert result == DecisionResult("A", 15000, "max-wait")

    def test_max_wait_on_east_forces_b(self, policy):
        result = decide(make_request(counts={"N": 50}, waits={"E": 91}, scenario_id="incident"), policy)
        assert result.next_dir == "B"
        assert result.reason == "max-wait"

    def test_max_wait_threshold_is_inclusive(self, policy):
        assert decide(make_request(waits={"W": 90}), policy).reason == "max-wait"
        assert decide(make_request(waits={"W": 89.9}), policy).reason == "rule-pro"

    def test_max_wait_green_respects_bounds(self):
        policy = DecisionPolicy(min_green_ms=20000, max_green_ms=45000)
        result = decide(make_request(waits={"N": 95}), policy)
        assert result == DecisionResult("A", 20000, "max-wait")

        policy = DecisionPolicy(min_green_ms=5000, max_green_ms=10000)
        assert decide(make_request(waits={"E": 95}), policy).green_ms == 10000

    def test_largest_wait_wins_when_several_starve(self, policy):
        result = decide(make_request(waits={"N": 95, "E": 120}), policy)
        assert result.next_dir == "B"

    def test_all_zero_gives_min_green(self, policy):
        result = decide(make_request(), policy)
        assert result.green_ms == policy.min_green_ms


class TestBounds:
    def test_random_inputs_stay_in_bounds(self, policy):
        rng = np.random.default_rng(1234)
        for _ in range(300):
            scenario = rng.choice(["free", "congestion", "incident"])
            req = make_request(
                counts={d: int(rng.integers(0, 80)) for d in "NESW"},
                waits={d: float(rng.uniform(0, 120)) for d in "NESW"},
                scenario_id=str(scenario),
                last=str(rng.choice(["A", "B"])),
                outflow_ns=bool(rng.integers(0, 2)),
                outflow_ew=bool(rng.integers(0, 2)),
            )
            result = decide(req, policy)
            assert policy.min_green_ms <= result.green_ms <= policy.max_green_for(req.scenario_id)

    def test_heavy_load_is_capped(self, policy):
        counts = {d: 100 for d in "NESW"}
        assert decide(make_request(counts=counts), policy).green_ms == 45000

    def test_incident_raises_cap_by_fifteen_percent(self, policy):
        assert policy.max_green_for("incident") == 51750

        counts = {"N": 100, "S": 100, "E": 1, "W": 1}
        result = decide(make_request(counts=counts, scenario_id="incident", outflow_ns=True), policy)
        assert result.next_dir == "A"
        assert result.green_ms == 47500

    def test_platoon_bonus_never_exceeds_normal_cap(self, policy):
        counts = {d: 100 for d in "NESW"}
        result = decide(make_request(counts=counts, outflow_ns=True), policy)
        assert result.green_ms == 45000


class TestAxisChoice:
    def test_wait_weighting_can_outvote_queue(self, policy):
        # NS = 3, EW = 2 * (1 + 80/90) ~ 3.78
        req = make_request(counts={"N": 2, "S": 1, "E": 2}, waits={"E": 80})
        assert decide(req, policy).next_dir == "B"

    def test_incident_uses_raw_queue(self, policy):
        req = make_request(counts={"N": 2, "S": 1, "E": 2}, waits={"E": 80}, scenario_id="incident")
        assert decide(req, policy).next_dir == "A"

    def test_incident_with_equal_queues_goes_to_b(self, policy):
        req = make_request(counts={"N": 2, "E": 1, "W": 1}, waits={"N": 30})
        assert decide(req, policy).next_dir == "A"

        req = make_request(counts={"N": 2, "E": 1, "W": 1}, waits={"N": 30}, scenario_id="incident")
        assert decide(req, policy).next_dir == "B"

    def test_tie_favors_a_by_default(self, policy):
        assert decide(make_request(last="A"), policy).next_dir == "A"
        assert decide(make_request(last="B"), policy).next_dir == "A"

    def test_tie_alternates_under_alternate_policy(self):
        policy = DecisionPolicy(tie_policy="alternate")
        assert decide(make_request(last="A"), policy).next_dir == "B"
        assert decide(make_request(last="B"), policy).next_dir == "A"

    def test_unknown_tie_policy_rejected(self):
        with pytest.raises(ValueError):
            DecisionPolicy(tie_policy="coin-flip")

    def test_axis_of(self):
        assert [axis_of(d) for d in "NESW"] == ["A", "B", "A", "B"]


class TestPlatoon:
    def test_outflow_on_chosen_axis_adds_bonus(self, example_request, policy):
        req = make_request(
            counts=example_request.counts, waits=example_request.waits, outflow_ns=True
        )
        assert decide(req, policy).green_ms == 19700 + 2500

    def test_outflow_on_other_axis_ignored(self, example_request, policy):
        req = make_request(
            counts=example_request.counts, waits=example_request.waits, outflow_ew=True
        )
        assert decide(req, policy).green_ms == 19700

    def test_build_request_detects_outflow(self):
        req = build_request(
            counts={"N": 3, "S": 4, "E": 2, "W": 1},
            waits={},
            previous_counts={"N": 5, "S": 5, "E": 1, "W": 1},
            scenario_id="free",
            last_green_dir="A",
        )
        assert req.outflow_ns is True
        assert req.outflow_ew is False

    def test_build_request_without_previous_snapshot(self):
        req = build_request({"N": 1}, {"N": 2}, None, "free", "B")
        assert not req.outflow_ns and not req.outflow_ew
        assert req.waits == {"N": 2.0, "E": 0.0, "S": 0.0, "W": 0.0}
        assert req.last_green_dir == "B"


class TestInputs:
    def test_same_input_same_output(self, example_request, policy):
        assert decide(example_request, policy) == decide(example_request, policy)

    def test_missing_and_malformed_values_default_to_zero(self, policy):
        req = DecisionRequest(counts={"N": -4, "E": "x"}, waits={"S": None})
        assert normalize_counts(req.counts) == ZERO
        assert decide(req, policy).green_ms == policy.min_green_ms

    def test_non_mapping_snapshot(self):
        assert normalize_counts(None) == ZERO
        assert normalize_counts([1, 2, 3]) == ZERO


class TestFallback:
    def test_empty_intersection_alternates(self, policy):
        result = fallback_decision(ZERO, "A", policy)
        assert result == DecisionResult("B", 7000, "local-fallback")

    def test_scales_with_load(self, policy):
        result = fallback_decision({"N": 10}, "A", policy)
        assert result.next_dir == "A"
        assert result.green_ms == 16500

    def test_saturates_at_max(self, policy):
        result = fallback_decision({"E": 30, "W": 30}, "B", policy)
        assert result.next_dir == "B"
        assert result.green_ms == policy.max_green_ms
