"""Engagement score (0-100) for each client from recent activity.

Three signals over a trailing window (4 weeks unless configured otherwise):

- check-in frequency: reflections the client submitted
- update frequency: inbound updates attributed to the client
- task completion: tasks due in the window that were completed

Each signal saturates at a soft cap and contributes up to its weight.
"""

import logging
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Optional

from kadre import monitoring
from kadre.db import Client, Reflection, Task, TelegramUpdate, utcnow
from kadre.schemas import ActivitySample, EngagementReport
from kadre.store import CoachStore

logger = logging.getLogger(__name__)

WEIGHTS = {
    "check_ins": 35,
    "updates": 35,
    "tasks": 30,
}

CHECK_IN_TARGET = 2
UPDATE_TARGET = 5
COMPLETED_TASK_TARGET = 4

DEFAULT_LOOKBACK_WEEKS = 4


def compute_engagement_score(
    reflection_count: int,
    update_count: int,
    tasks_completed: int,
    tasks_total: int,
) -> int:
    """Return an integer score in [0, 100].

    The score never decreases when any single count grows. Completed tasks are
    bounded by the number of tasks due, so a completion count larger than the
    total is treated as the total.
    """
    reflection_count = max(0, reflection_count)
    update_count = max(0, update_count)
    completed = max(0, min(tasks_completed, tasks_total))

    check_in_score = min(1.0, reflection_count / CHECK_IN_TARGET)
    update_score = min(1.0, update_count / UPDATE_TARGET)
    task_score = min(1.0, completed / COMPLETED_TASK_TARGET)

    points = (
        WEIGHTS["check_ins"] * check_in_score
        + WEIGHTS["updates"] * update_score
        + WEIGHTS["tasks"] * task_score
    )
    return int(round(min(100.0, max(0.0, points))))


def score_sample(sample: ActivitySample) -> int:
    return compute_engagement_score(
        sample.reflection_count,
        sample.update_count,
        sample.tasks_completed,
        sample.tasks_total,
    )


class EngagementScorer:
    """Recomputes ``clients.engagement_score`` for every client."""

    def __init__(self, store: CoachStore, lookback_weeks: int = DEFAULT_LOOKBACK_WEEKS) -> None:
        self.store = store
        self.lookback_weeks = lookback_weeks

    def window(self, today: Optional[date] = None) -> tuple[date, date]:
        today = today or utcnow().date()
        return today - timedelta(weeks=self.lookback_weeks), today

    async def collect_samples(self, today: Optional[date] = None) -> Dict[str, ActivitySample]:
        since, today = self.window(today)
        since_dt = datetime.combine(since, time.min, tzinfo=timezone.utc)

        reflections = await self.store.select(Reflection, Reflection.created_at >= since_dt)
        reflection_counts = Counter(r.client_id for r in reflections if r.client_id)

        updates = await self.store.select(
            TelegramUpdate,
            TelegramUpdate.created_at >= since_dt,
            TelegramUpdate.client_id.is_not(None),
        )
        update_counts = Counter(u.client_id for u in updates)

        tasks = await self.store.select(
            Task,
            Task.due_date >= since,
            Task.due_date <= today,
            Task.client_id.is_not(None),
        )
        tasks_total = Counter(t.client_id for t in tasks)
        tasks_completed = Counter(t.client_id for t in tasks if t.status == "completed")

        clients = await self.store.select(Client)
        return {
            client.id: ActivitySample(
                reflection_count=reflection_counts.get(client.id, 0),
                update_count=update_counts.get(client.id, 0),
                tasks_completed=tasks_completed.get(client.id, 0),
                tasks_total=tasks_total.get(client.id, 0),
            )
            for client in clients
        }

    async def recompute_all(self, today: Optional[date] = None) -> EngagementReport:
        samples = await self.collect_samples(today)

        updated = 0
        for client_id, sample in samples.items():
            score = score_sample(sample)
            try:
                rows = await self.store.update(
                    Client,
                    Client.id == client_id,
                    patch={"engagement_score": score},
                )
            except Exception as exc:
                monitoring.capture_exception(exc)
                logger.warning("Engagement score write failed for client %s", client_id)
                continue
            if rows:
                updated += 1

        report = EngagementReport(updated=updated, total=len(samples))
        logger.info("Engagement scores recomputed: %s/%s clients", report.updated, report.total)
        return report
