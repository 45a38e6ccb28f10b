import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Set

from config import CLEARANCE_MODE, DEFAULT_SCENARIO, DEFAULT_SEED, TICK_MS
from client import DecisionClient
from decision import DecisionPolicy, DecisionRequest
from simulator import Intersection

logger = logging.getLogger(__name__)


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class SimulationRunner:
    """
    Owns the intersection and drives it from a single fixed-rate loop.

    Decisions are fetched in background tasks tagged with the intersection
    epoch; reset() and set_scenario() cancel them and bump the epoch so a
    late answer can never apply to the new state.
    """

    def __init__(
        self,
        scenario: str = DEFAULT_SCENARIO,
        seed: int = DEFAULT_SEED,
        client: Optional[DecisionClient] = None,
        clearance_mode: str = CLEARANCE_MODE,
        policy: Optional[DecisionPolicy] = None,
        clock: Callable[[], int] = monotonic_ms,
    ):
        self.policy = policy or DecisionPolicy.from_config()
        self.client = client or DecisionClient(policy=self.policy)
        self.clock = clock
        self.intersection = Intersection(
            scenario_id=scenario,
            seed=seed,
            clearance_mode=clearance_mode,
            policy=self.policy,
            local_decisions=False,
            now_ms=clock(),
        )
        self.running = False
        self.last_score = self.intersection.score
        self._loop_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def scenario(self) -> str:
        return self.intersection.scenario.id

    @property
    def seed(self) -> int:
        return self.intersection.seed

    def step(self) -> Dict:
        now = self.clock()
        request = self.intersection.tick(now)
        if request is not None:
            self._request_decision(request, self.intersection.epoch)
        self.last_score = self.intersection.score
        return self.intersection.snapshot(now)

    def snapshot(self) -> Dict:
        return self.intersection.snapshot(self.clock())

    def _request_decision(self, request: DecisionRequest, epoch: int):
        task = asyncio.get_running_loop().create_task(self._fetch(request, epoch))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _fetch(self, request: DecisionRequest, epoch: int):
        outcome = await self.client.decide(request)
        self.intersection.offer_decision(outcome.result, epoch, outcome.source, outcome.latency_ms)

    def _cancel_inflight(self):
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()

    def reset(self, seed: Optional[int] = None):
        self._cancel_inflight()
        self.intersection.reset(seed=seed, now_ms=self.clock())
        self.last_score = self.intersection.score

    def set_scenario(self, scenario: str):
        self._cancel_inflight()
        self.intersection.reset(scenario_id=scenario, now_ms=self.clock())
        self.last_score = self.intersection.score
        logger.info("scenario switched to %s", scenario)

    async def run(self):
        interval = TICK_MS / 1000.0
        while self.running:
            self.step()
            await asyncio.sleep(interval)

    def start(self):
        if self.running:
            return
        self.running = True
        self._loop_task = asyncio.get_running_loop().create_task(self.run())
        logger.info("simulation started (scenario=%s, remote=%s)", self.scenario, self.client.remote)

    async def stop(self):
        self.running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        self._cancel_inflight()

    async def aclose(self):
        await self.stop()
        await self.client.aclose()
