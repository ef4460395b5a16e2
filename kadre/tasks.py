import asyncio
import os

from celery import Celery

from kadre.config import get_settings
from kadre.jobs import recompute_engagement_scores, run_daily_syntheses
from kadre.llm import LLMClient


def _get_broker_url() -> str:
    return os.getenv("CELERY_BROKER_URL") or os.getenv("REDIS_URL", "redis://localhost:6379/0")


celery_app = Celery(
    "kadre",
    broker=_get_broker_url(),
    backend=os.getenv("CELERY_RESULT_BACKEND", _get_broker_url()),
)


@celery_app.task
def recompute_engagement_task() -> dict:
    report = asyncio.run(recompute_engagement_scores())
    return report.model_dump()


@celery_app.task
def daily_synthesis_task() -> list:
    llm = LLMClient.from_settings(get_settings())
    results = asyncio.run(run_daily_syntheses(llm))
    return [result.model_dump() for result in results]
