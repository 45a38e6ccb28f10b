from dataclasses import dataclass
from typing import Dict, List

import numpy as np

from config import SCENARIO_LENGTH


class UnknownScenarioError(KeyError):
    pass


@dataclass(frozen=True)
class Scenario:
    id: str
    name: str
    description: str
    timeline: np.ndarray    # congestion score 0..100 per step

    def score_at(self, index: int) -> int:
        i = min(max(index, 0), len(self.timeline) - 1)
        return int(self.timeline[i])

    def summary(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "length": len(self.timeline),
        }


def _js_round(x: np.ndarray) -> np.ndarray:
    return np.floor(x + 0.5)


def _build(length: int = SCENARIO_LENGTH) -> Dict[str, Scenario]:
    i = np.arange(length)

    free = 10 + _js_round(15 * np.sin(i / 20)) + np.where(i % 7 == 0, 3, 0)
    congestion = 70 + _js_round(15 * np.sin(i / 15)) + np.where(i % 11 == 0, 5, 0)
    incident = np.where(
        i < 200,
        40 + _js_round(10 * np.sin(i / 18)),
        90 - _js_round(5 * np.cos(i / 8)),
    )

    def clip(a):
        return np.clip(a, 0, 100).astype(int)

    return {
        "free": Scenario("free", "Free Flow", "Low congestion, fast switching.", clip(free)),
        "congestion": Scenario(
            "congestion", "Congestion", "High congestion, longer green on main.", clip(congestion)
        ),
        "incident": Scenario(
            "incident", "Incident", "Sudden blockage, safety-first behavior.", clip(incident)
        ),
    }


SCENARIOS = _build()


def get_scenario(scenario_id: str) -> Scenario:
    try:
        return SCENARIOS[scenario_id]
    except KeyError:
        raise UnknownScenarioError(scenario_id) from None


def list_scenarios() -> List[Dict]:
    return [s.summary() for s in SCENARIOS.values()]
