"""
Client for a remote decision service.

The caller must never stall the phase machine: every failure (non-2xx,
transport error, timeout, malformed body) resolves to the local load-only
fallback instead of raising.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import ValidationError

from config import DECISION_TIMEOUT_S, DECISION_URL
from decision import DecisionPolicy, DecisionRequest, DecisionResult, decide, fallback_decision
from schemas import DecisionRequestModel, DecisionResponseModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecisionOutcome:
    result: DecisionResult
    source: str             # "remote" | "local" | "fallback"
    latency_ms: float


class DecisionClient:
    def __init__(
        self,
        url: str = DECISION_URL,
        timeout_s: float = DECISION_TIMEOUT_S,
        policy: Optional[DecisionPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout_s = timeout_s
        self.policy = policy or DecisionPolicy.from_config()
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def remote(self) -> bool:
        return bool(self.url)

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)
        return self._http

    async def aclose(self):
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def decide(self, req: DecisionRequest) -> DecisionOutcome:
        started = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - started) * 1000.0

        if not self.remote:
            return DecisionOutcome(decide(req, self.policy), "local", elapsed())

        payload = DecisionRequestModel.from_domain(req).model_dump()
        try:
            resp = await asyncio.wait_for(
                self._client().post(self.url, json=payload),
                timeout=self.timeout_s,
            )
            resp.raise_for_status()
            result = DecisionResponseModel.model_validate(resp.json()).to_domain()
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, ValidationError, ValueError) as e:
            logger.warning("decision service failed (%s: %s), using local fallback", type(e).__name__, e)
            result = fallback_decision(req.counts, req.last_green_dir, self.policy)
            return DecisionOutcome(result, "fallback", elapsed())

        return DecisionOutcome(result, "remote", elapsed())
