"""Action-item extraction from free-text updates."""

import json
import logging
import re
from typing import Any, List, Optional

from kadre import monitoring
from kadre.agents.prompts import EXTRACT_ACTION_ITEMS_PROMPT
from kadre.db import Task
from kadre.llm import LLMClient
from kadre.schemas import PRIORITIES, ActionItem
from kadre.store import CoachStore

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_action_items(raw: str) -> List[ActionItem]:
    """Validate a model answer into action items; malformed input yields ``[]``."""
    text = (raw or "").strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        data: Any = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Action item response was not JSON: %.200s", text)
        return []
    if not isinstance(data, list):
        return []

    items = []
    for entry in data:
        if not isinstance(entry, dict) or not isinstance(entry.get("title"), str):
            continue
        priority = entry.get("priority")
        items.append(
            ActionItem(
                title=entry["title"],
                priority=priority if priority in PRIORITIES else "medium",
            )
        )
    return items


async def extract_action_items(llm: LLMClient, content: str) -> List[ActionItem]:
    try:
        text = await llm.complete(
            EXTRACT_ACTION_ITEMS_PROMPT.format(content=content),
            tier="fast",
            max_tokens=500,
        )
    except Exception as exc:
        monitoring.capture_exception(exc)
        return []
    return parse_action_items(text)


async def create_tasks_from_action_items(
    store: CoachStore,
    coach_id: str,
    client_id: Optional[str],
    action_items: List[ActionItem],
) -> List[Task]:
    if not action_items:
        return []
    tasks = [
        Task(
            coach_id=coach_id,
            client_id=client_id,
            title=item.title,
            priority=item.priority,
            status="pending",
        )
        for item in action_items
    ]
    return await store.insert(tasks)
