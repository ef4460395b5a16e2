import logging
from datetime import date
from typing import List, Optional

from kadre import monitoring
from kadre.agents.synthesize import generate_daily_synthesis
from kadre.config import get_settings
from kadre.db import Coach
from kadre.engagement import EngagementScorer
from kadre.llm import LLMClient
from kadre.schemas import CoachJobResult, EngagementReport
from kadre.store import CoachStore

logger = logging.getLogger(__name__)


async def recompute_engagement_scores(store: Optional[CoachStore] = None) -> EngagementReport:
    scorer = EngagementScorer(store or CoachStore(), get_settings().engagement_lookback_weeks)
    return await scorer.recompute_all()


async def run_daily_syntheses(
    llm: LLMClient,
    store: Optional[CoachStore] = None,
    today: Optional[date] = None,
) -> List[CoachJobResult]:
    store = store or CoachStore()
    coaches = await store.select(Coach, order_by=Coach.created_at)

    results: List[CoachJobResult] = []
    for coach in coaches:
        try:
            await generate_daily_synthesis(llm, store, coach.id, today=today)
        except Exception as exc:
            monitoring.capture_exception(exc)
            logger.warning("Synthesis failed for coach %s", coach.id)
            results.append(CoachJobResult(coach_id=coach.id, status="error", error=str(exc)))
            continue
        results.append(CoachJobResult(coach_id=coach.id, status="ok"))
    return results
