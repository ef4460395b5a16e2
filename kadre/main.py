"""FastAPI application: scheduled-job endpoints and coach-facing AI endpoints."""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from kadre import monitoring
from kadre.agents.assistant import run_assistant
from kadre.agents.synthesize import generate_daily_synthesis
from kadre.auth import SupabaseAuthMiddleware, require_cron_secret
from kadre.config import get_settings
from kadre.db import init_db, utcnow
from kadre.jobs import recompute_engagement_scores, run_daily_syntheses
from kadre.llm import LLMClient
from kadre.schemas import (
    AssistantIn,
    AssistantOut,
    CoachJobResult,
    EngagementReport,
    SynthesisOut,
    TriageResult,
)
from kadre.store import CoachStore
from kadre.triage import TriagePipeline, UpdateNotFound

monitoring.init_monitoring()

scheduler = AsyncIOScheduler()

app = FastAPI(title="Kadre Coach API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    SupabaseAuthMiddleware,
    exempt_paths={"/healthz"},
    exempt_prefixes={"/cron/", "/docs", "/openapi", "/redoc"},
)


def get_llm(request: Request) -> LLMClient:
    llm = getattr(request.app.state, "llm", None)
    if llm is None:
        llm = LLMClient.from_settings(get_settings())
        request.app.state.llm = llm
    return llm


def get_store() -> CoachStore:
    return CoachStore()


def schedule_jobs(scheduler: AsyncIOScheduler, llm: LLMClient) -> None:
    """Register the nightly jobs; coroutine functions run on the scheduler's loop."""
    if not scheduler.get_job("engagement-score"):
        scheduler.add_job(
            recompute_engagement_scores,
            "cron",
            hour=2,
            minute=0,
            id="engagement-score",
        )
    if not scheduler.get_job("daily-synthesis"):
        scheduler.add_job(
            run_daily_syntheses,
            "cron",
            args=[llm],
            hour=18,
            minute=0,
            id="daily-synthesis",
        )


@app.on_event("startup")
async def on_startup():
    await init_db()
    app.state.llm = LLMClient.from_settings(get_settings())
    if not scheduler.running:
        scheduler.start()
    schedule_jobs(scheduler, app.state.llm)


@app.on_event("shutdown")
async def on_shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)


@app.get("/healthz")
async def health_check():
    return {"status": "ok"}


@app.get("/cron/engagement-score", response_model=EngagementReport, dependencies=[Depends(require_cron_secret)])
async def engagement_score_cron(store: CoachStore = Depends(get_store)):
    """Recompute every client's engagement score from the trailing window."""
    return await recompute_engagement_scores(store)


@app.post("/cron/daily-synthesis", dependencies=[Depends(require_cron_secret)])
async def daily_synthesis_cron(
    llm: LLMClient = Depends(get_llm),
    store: CoachStore = Depends(get_store),
) -> dict:
    """Generate today's synthesis for every coach.

    Returns:
        dict: ``results`` with one entry per coach; failures are reported
        per coach and do not stop the run.
    """
    results: list[CoachJobResult] = await run_daily_syntheses(llm, store)
    return {"results": [result.model_dump(exclude_none=True) for result in results]}


@app.post("/ai/assistant", response_model=AssistantOut)
async def assistant(
    payload: AssistantIn,
    request: Request,
    llm: LLMClient = Depends(get_llm),
    store: CoachStore = Depends(get_store),
):
    """Answer a free-form question using the coach's data.

    Args:
        payload: The coach's message.
        request: FastAPI request carrying the authenticated coach id.

    Returns:
        AssistantOut: The model's final answer or the bounded fallback text.
    """
    message = (payload.message or "").strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")
    try:
        response = await run_assistant(
            llm,
            store,
            request.state.coach_id,
            message,
            max_iterations=get_settings().assistant_max_iterations,
        )
    except Exception as exc:
        monitoring.capture_exception(exc)
        raise HTTPException(status_code=500, detail="Failed to process your request") from exc
    return AssistantOut(response=response)


@app.post("/updates/{update_id}/triage", response_model=TriageResult)
async def triage_update(
    update_id: str,
    request: Request,
    llm: LLMClient = Depends(get_llm),
    store: CoachStore = Depends(get_store),
):
    """Classify an update, attribute it to a client and create its tasks."""
    try:
        return await TriagePipeline(llm, store).run(request.state.coach_id, update_id)
    except UpdateNotFound as exc:
        raise HTTPException(status_code=404, detail="Update not found") from exc


@app.post("/syntheses", response_model=SynthesisOut)
async def create_synthesis(
    request: Request,
    llm: LLMClient = Depends(get_llm),
    store: CoachStore = Depends(get_store),
):
    coach_id = request.state.coach_id
    today = utcnow().date()
    try:
        content = await generate_daily_synthesis(llm, store, coach_id, today=today)
    except Exception as exc:
        monitoring.capture_exception(exc)
        raise HTTPException(status_code=500, detail="Synthesis generation failed") from exc
    return SynthesisOut(coach_id=coach_id, synthesis_date=today, content=content)
