"""
Shared fixtures for the intersection simulator tests.

The backend modules live flat under backend/ and are put on the path by the
pytest ``pythonpath`` setting in pyproject.toml.
"""

import pytest

from decision import DecisionPolicy, DecisionRequest
from simulator import Intersection


@pytest.fixture
def policy():
    return DecisionPolicy()


@pytest.fixture
def example_request():
    return DecisionRequest(
        counts={"N": 5, "E": 3, "S": 4, "W": 2},
        waits={"N": 10, "E": 20, "S": 5, "W": 15},
        scenario_id="free",
        last_green_dir="A",
    )


@pytest.fixture
def intersection(policy):
    return Intersection(scenario_id="free", seed=7, policy=policy, now_ms=0, tick_ms=100)


class FakeClock:
    def __init__(self, now_ms: int = 0):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int):
        self.now_ms += ms


@pytest.fixture
def clock():
    return FakeClock()
