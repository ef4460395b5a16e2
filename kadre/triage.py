import asyncio
import logging
from typing import Optional

from kadre.agents.classify import classify
from kadre.agents.extract import create_tasks_from_action_items, extract_action_items
from kadre.agents.infer_client import infer_client
from kadre.db import TelegramUpdate
from kadre.llm import LLMClient
from kadre.monitoring import timed
from kadre.schemas import TriageResult
from kadre.store import CoachStore


class UpdateNotFound(LookupError):
    """Raised when an update does not exist or belongs to another coach."""


class TriagePipeline:
    """Enriches one inbound update in place: classify, attribute, extract tasks."""

    def __init__(self, llm: LLMClient, store: CoachStore, *, logger: Optional[logging.Logger] = None) -> None:
        self.llm = llm
        self.store = store
        self.logger = logger or logging.getLogger("triage")

    async def run(self, coach_id: str, update_id: str) -> TriageResult:
        update = await self.store.first(
            TelegramUpdate,
            TelegramUpdate.id == update_id,
            TelegramUpdate.coach_id == coach_id,
        )
        if not update:
            raise UpdateNotFound(f"Update {update_id} not found")

        text = update.voice_transcript or update.content
        fields = {"update_id": update_id, "coach_id": coach_id}

        with timed(self.logger, "classify_and_infer", **fields):
            classification, inferred_client_id = await asyncio.gather(
                classify(self.llm, text),
                infer_client(self.llm, self.store, coach_id, text),
            )
        client_id = update.client_id or inferred_client_id

        with timed(self.logger, "extract", **fields):
            action_items = await extract_action_items(self.llm, text)

        with timed(self.logger, "materialize", **fields):
            tasks = await create_tasks_from_action_items(self.store, coach_id, client_id, action_items)

        patch = {
            "classification": classification,
            "action_items": [item.model_dump() for item in action_items],
        }
        if not update.client_id and client_id:
            patch["client_id"] = client_id
        await self.store.update(TelegramUpdate, TelegramUpdate.id == update_id, patch=patch)

        return TriageResult(
            update_id=update_id,
            classification=classification,
            client_id=client_id,
            action_items=action_items,
            tasks_created=len(tasks),
        )
