from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from decision import DecisionRequest, DecisionResult, non_negative


class DirectionValues(BaseModel):
    N: float = 0
    E: float = 0
    S: float = 0
    W: float = 0

    @field_validator("N", "E", "S", "W", mode="before")
    @classmethod
    def _coerce(cls, v: Any) -> float:
        return non_negative(v)


class DecisionRequestModel(BaseModel):
    counts: DirectionValues = Field(default_factory=DirectionValues)
    waits: DirectionValues = Field(default_factory=DirectionValues)
    scenarioId: str = "free"
    lastGreenDir: Literal["A", "B"] = "A"   # "A" = NS, "B" = EW
    outflowNS: bool = False
    outflowEW: bool = False

    @field_validator("counts", "waits", mode="before")
    @classmethod
    def _mapping_or_empty(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, DirectionValues)) else {}

    @field_validator("lastGreenDir", mode="before")
    @classmethod
    def _axis_or_default(cls, v: Any) -> str:
        return v if v in ("A", "B") else "A"

    @field_validator("scenarioId", mode="before")
    @classmethod
    def _scenario_or_default(cls, v: Any) -> str:
        return v if isinstance(v, str) else "free"

    @field_validator("outflowNS", "outflowEW", mode="before")
    @classmethod
    def _flag_or_false(cls, v: Any) -> bool:
        return v if isinstance(v, bool) else False

    def to_domain(self) -> DecisionRequest:
        return DecisionRequest(
            counts={d: int(v) for d, v in self.counts.model_dump().items()},
            waits=self.waits.model_dump(),
            scenario_id=self.scenarioId,
            last_green_dir=self.lastGreenDir,
            outflow_ns=self.outflowNS,
            outflow_ew=self.outflowEW,
        )

    @classmethod
    def from_domain(cls, req: DecisionRequest) -> "DecisionRequestModel":
        return cls(
            counts=req.counts,
            waits=req.waits,
            scenarioId=req.scenario_id,
            lastGreenDir=req.last_green_dir,
            outflowNS=req.outflow_ns,
            outflowEW=req.outflow_ew,
        )


class DecisionResponseModel(BaseModel):
    nextDir: Literal["A", "B"]
    greenMs: int
    reason: str

    def to_domain(self) -> DecisionResult:
        return DecisionResult(next_dir=self.nextDir, green_ms=self.greenMs, reason=self.reason)

    @classmethod
    def from_domain(cls, result: DecisionResult) -> "DecisionResponseModel":
        return cls(nextDir=result.next_dir, greenMs=result.green_ms, reason=result.reason)


class TrafficScoreModel(BaseModel):
    score: int = Field(ge=0, le=100)


class ControlRequest(BaseModel):
    running: Optional[bool] = None
    scenario: Optional[str] = None
    seed: Optional[int] = None
