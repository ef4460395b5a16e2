"""Daily synthesis briefing for a coach."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from kadre.agents.prompts import SYNTHESIS_PROMPT
from kadre.db import Client, DailySynthesis, Reflection, Task, TelegramUpdate, utcnow
from kadre.llm import LLMClient
from kadre.schemas import PRIORITIES, ActionItem, ClientHighlight
from kadre.store import CoachStore

logger = logging.getLogger(__name__)

OPEN_TASK_STATUSES = ("pending", "in_progress")
SUMMARY_CHARS = 500
EMPTY_SYNTHESIS = "No synthesis generated."


def _format_updates(updates: Iterable[TelegramUpdate], companies: Dict[str, str]) -> str:
    lines = []
    for update in updates:
        company = companies.get(update.client_id, "Unknown") if update.client_id else "Untagged"
        text = update.voice_transcript or update.content
        lines.append(f"[{company}] ({update.classification or 'unclassified'}) {text}")
    return "\n\n".join(lines) or "No updates today."


def _format_check_ins(reflections: Iterable[Reflection], companies: Dict[str, str]) -> str:
    lines = [
        f"[{companies.get(r.client_id, 'Unknown')}] Energy: {r.energy_level}/10, "
        f"Accountability: {r.accountability_score}/10, Goal: {r.goal_progress}, Win: {r.win or 'N/A'}"
        for r in reflections
    ]
    return "\n".join(lines) or "No check-ins today."


def _format_tasks(tasks: Iterable[Task], companies: Dict[str, str]) -> str:
    lines = []
    for task in tasks:
        company = companies.get(task.client_id, "Unknown") if task.client_id else "General"
        lines.append(f"[{task.priority}] {task.title} ({company}) - {task.status}")
    return "\n".join(lines) or "No pending tasks."


def _action_item(task: Task) -> ActionItem:
    priority = task.priority if task.priority in PRIORITIES else "medium"
    return ActionItem(title=task.title, priority=priority)


def client_highlights(updates: Iterable[TelegramUpdate], companies: Dict[str, str]) -> List[ClientHighlight]:
    seen = set()
    highlights = []
    for update in updates:
        if not update.client_id or update.client_id in seen:
            continue
        seen.add(update.client_id)
        highlights.append(ClientHighlight(client_id=update.client_id, company=companies.get(update.client_id, "Unknown")))
    return highlights


async def generate_daily_synthesis(
    llm: LLMClient,
    store: CoachStore,
    coach_id: str,
    today: Optional[date] = None,
) -> str:
    """Build, store and return the coach's briefing for ``today``.

    The row is upserted on (coach_id, synthesis_date), so running twice on the
    same day overwrites the earlier briefing.
    """
    today = today or utcnow().date()
    day_start = datetime.combine(today, time.min, tzinfo=timezone.utc)
    day_end = day_start + timedelta(days=1)

    clients = await store.select(Client, Client.coach_id == coach_id)
    companies = {client.id: client.company_name for client in clients}

    updates = await store.select(
        TelegramUpdate,
        TelegramUpdate.coach_id == coach_id,
        TelegramUpdate.created_at >= day_start,
        TelegramUpdate.created_at < day_end,
        order_by=TelegramUpdate.created_at,
    )

    reflections: List[Reflection] = []
    if companies:
        reflections = await store.select(
            Reflection,
            Reflection.client_id.in_(list(companies)),
            Reflection.created_at >= day_start,
            Reflection.created_at < day_end,
            order_by=Reflection.created_at,
        )

    tasks = await store.select(
        Task,
        Task.coach_id == coach_id,
        Task.status.in_(OPEN_TASK_STATUSES),
        order_by=Task.created_at,
    )

    prompt = SYNTHESIS_PROMPT.format(
        updates=_format_updates(updates, companies),
        check_ins=_format_check_ins(reflections, companies),
        tasks=_format_tasks(tasks, companies),
    )
    content = await llm.complete(prompt, tier="reasoning", max_tokens=2000) or EMPTY_SYNTHESIS

    await store.upsert(
        DailySynthesis,
        {
            "coach_id": coach_id,
            "synthesis_date": today,
            "content": content,
            "summary": content[:SUMMARY_CHARS],
            "client_highlights": [h.model_dump() for h in client_highlights(updates, companies)],
            "action_items": [_action_item(task).model_dump() for task in tasks],
        },
        conflict_keys=("coach_id", "synthesis_date"),
    )
    logger.info(
        "Daily synthesis stored for coach %s on %s (%s updates, %s check-ins, %s tasks)",
        coach_id,
        today.isoformat(),
        len(updates),
        len(reflections),
        len(tasks),
    )
    return content
