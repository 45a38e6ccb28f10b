import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from config import LOG_LEVEL
from decision import DecisionPolicy, decide
from runner import SimulationRunner
from scenarios import UnknownScenarioError, list_scenarios
from schemas import ControlRequest, DecisionRequestModel, DecisionResponseModel, TrafficScoreModel

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

policy = DecisionPolicy.from_config()
runner = SimulationRunner(policy=policy)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Intersection simulator API up (remote decisions: %s)", runner.client.remote)
    yield
    await runner.aclose()
    logger.info("Shutdown complete")


app = FastAPI(title="Smart Billboard Intersection API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/api/decision", response_model=DecisionResponseModel)
def decision(req: DecisionRequestModel):
    result = decide(req.to_domain(), policy)
    return DecisionResponseModel.from_domain(result)


@app.get("/api/traffic", response_model=TrafficScoreModel)
def traffic():
    return TrafficScoreModel(score=runner.last_score)


@app.get("/scenarios")
def scenarios():
    return list_scenarios()


@app.post("/control")
async def control(req: ControlRequest):
    try:
        if req.scenario is not None:
            runner.set_scenario(req.scenario)
    except UnknownScenarioError:
        raise HTTPException(status_code=404, detail=f"unknown scenario: {req.scenario}")

    if req.seed is not None:
        runner.reset(seed=req.seed)
    if req.running is True:
        runner.start()
    elif req.running is False:
        await runner.stop()

    return {
        "running": runner.running,
        "scenario": runner.scenario,
        "seed": runner.seed,
    }


@app.get("/state")
def state():
    return {"running": runner.running, **runner.snapshot()}


@app.post("/tick")
async def tick():
    if runner.running:
        return {"running": True, **runner.snapshot()}
    return {"running": False, **runner.step()}
