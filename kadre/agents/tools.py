"""Read-only tools the assistant model can call.

Every tool is bound to one coach at construction time and filters each query
by that coach, so a conversation can never read another coach's data.
"""

import json
import logging
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from kadre import monitoring
from kadre.db import Client, Contact, DailySynthesis, Reflection, SessionNote, Task, TelegramUpdate, utcnow
from kadre.store import CoachStore

logger = logging.getLogger("agent.tools")


def tool(name: str, description: str, parameters: Optional[Dict[str, Any]] = None):
    """Mark a coroutine method as a model-callable tool with its JSON schema."""

    def decorator(func):
        func.__tool_schema__ = {
            "name": name,
            "description": description,
            "parameters": parameters or {"type": "object", "properties": {}, "required": []},
        }
        func.__tool_name__ = name
        return func

    return decorator


def _dump(value: Any) -> str:
    return json.dumps(value, default=str)


def _row(model: Any, *fields: str) -> Dict[str, Any]:
    return model.model_dump(include=set(fields)) if fields else model.model_dump()


_COMPANY_FILTER = {"type": "string", "description": "Filter by company name"}


class CoachTools:
    MAX_TASKS = 20
    MAX_UPDATES = 30
    MAX_REFLECTIONS = 50
    MAX_NOTES = 10

    def __init__(self, store: CoachStore, coach_id: str) -> None:
        self.store = store
        self.coach_id = coach_id

    @classmethod
    def registry(cls) -> Dict[str, Callable[..., Awaitable[str]]]:
        return {
            func.__tool_name__: func
            for func in vars(cls).values()
            if hasattr(func, "__tool_name__")
        }

    @classmethod
    def schemas(cls) -> List[Dict[str, Any]]:
        return [func.__tool_schema__ for func in cls.registry().values()]

    async def execute(self, name: str, arguments: Dict[str, Any]) -> str:
        """Run one tool; failures come back as text for the model to read."""
        func = self.registry().get(name)
        if not func:
            return f"Unknown tool: {name}"
        try:
            return await func(self, **(arguments or {}))
        except Exception as exc:
            monitoring.capture_exception(exc)
            logger.warning("Tool %s failed for coach %s: %s", name, self.coach_id, exc)
            return f"Error executing {name}: {exc}"

    async def _clients_matching(self, company_name: Optional[str]) -> List[Client]:
        where = [Client.coach_id == self.coach_id]
        if company_name:
            where.append(Client.company_name.ilike(f"%{company_name}%"))
        return await self.store.select(Client, *where, order_by=Client.company_name)

    @tool(
        name="list_companies",
        description="List all companies for the coach with their status and engagement scores",
    )
    async def list_companies(self) -> str:
        clients = await self._clients_matching(None)
        return _dump(
            [_row(c, "company_name", "status", "engagement_score", "industry", "email") for c in clients]
        )

    @tool(
        name="get_company_details",
        description="Get detailed info about a specific company including contacts and recent activity",
        parameters={
            "type": "object",
            "properties": {
                "company_name": {"type": "string", "description": "Name or partial name of the company"},
            },
            "required": ["company_name"],
        },
    )
    async def get_company_details(self, company_name: str) -> str:
        clients = await self._clients_matching(company_name)
        if not clients:
            return "Company not found"
        client = clients[0]
        contacts = await self.store.select(Contact, Contact.client_id == client.id)
        recent = await self.store.select(
            TelegramUpdate,
            TelegramUpdate.coach_id == self.coach_id,
            TelegramUpdate.client_id == client.id,
            order_by=TelegramUpdate.created_at.desc(),
            limit=5,
        )
        return _dump(
            {
                **_row(client),
                "contacts": [_row(c, "name", "email", "role") for c in contacts],
                "recent_updates": [_row(u, "content", "classification", "created_at") for u in recent],
            }
        )

    @tool(
        name="list_tasks",
        description="List tasks, optionally filtered by status or company",
        parameters={
            "type": "object",
            "properties": {
                "status": {"type": "string", "description": "Filter by status: pending, in_progress, completed"},
                "company_name": _COMPANY_FILTER,
            },
            "required": [],
        },
    )
    async def list_tasks(self, status: Optional[str] = None, company_name: Optional[str] = None) -> str:
        where = [Task.coach_id == self.coach_id]
        if status:
            where.append(Task.status == status)
        if company_name:
            client_ids = [c.id for c in await self._clients_matching(company_name)]
            if not client_ids:
                return _dump([])
            where.append(Task.client_id.in_(client_ids))
        tasks = await self.store.select(Task, *where, order_by=Task.due_date.asc(), limit=self.MAX_TASKS)
        return _dump(
            [_row(t, "title", "description", "status", "priority", "due_date", "client_id") for t in tasks]
        )

    @tool(
        name="list_updates",
        description="List recent updates, optionally filtered by company or date",
        parameters={
            "type": "object",
            "properties": {
                "company_name": _COMPANY_FILTER,
                "days": {"type": "number", "description": "Number of days back to look (default 7)"},
            },
            "required": [],
        },
    )
    async def list_updates(self, company_name: Optional[str] = None, days: Optional[float] = None) -> str:
        since = utcnow() - timedelta(days=float(days or 7))
        where = [TelegramUpdate.coach_id == self.coach_id, TelegramUpdate.created_at >= since]
        if company_name:
            client_ids = [c.id for c in await self._clients_matching(company_name)]
            if not client_ids:
                return _dump([])
            where.append(TelegramUpdate.client_id.in_(client_ids))
        updates = await self.store.select(
            TelegramUpdate,
            *where,
            order_by=TelegramUpdate.created_at.desc(),
            limit=self.MAX_UPDATES,
        )
        return _dump(
            [_row(u, "content", "classification", "message_type", "created_at", "client_id") for u in updates]
        )

    @tool(
        name="get_synthesis",
        description="Get the daily synthesis for a specific date",
        parameters={
            "type": "object",
            "properties": {
                "date": {"type": "string", "description": "Date in YYYY-MM-DD format (default today)"},
            },
            "required": [],
        },
    )
    async def get_synthesis(self, date: Optional[str] = None) -> str:
        target = _parse_day(date) if date else utcnow().date()
        if target is None:
            return f"Invalid date: {date}"
        synthesis = await self.store.first(
            DailySynthesis,
            DailySynthesis.coach_id == self.coach_id,
            DailySynthesis.synthesis_date == target,
        )
        if not synthesis:
            return "No synthesis found for this date"
        return _dump(_row(synthesis))

    @tool(
        name="list_reflections",
        description="List recent check-in reflections from clients",
        parameters={
            "type": "object",
            "properties": {
                "company_name": _COMPANY_FILTER,
                "limit": {"type": "number", "description": "Number of results (default 10)"},
            },
            "required": [],
        },
    )
    async def list_reflections(self, company_name: Optional[str] = None, limit: Optional[float] = None) -> str:
        clients = await self._clients_matching(company_name)
        if not clients:
            return _dump([])
        companies = {c.id: c.company_name for c in clients}
        limit = max(1, min(int(limit or 10), self.MAX_REFLECTIONS))
        reflections = await self.store.select(
            Reflection,
            Reflection.client_id.in_(list(companies)),
            order_by=Reflection.created_at.desc(),
            limit=limit,
        )
        return _dump([{**_row(r), "company_name": companies.get(r.client_id)} for r in reflections])

    @tool(
        name="search_notes",
        description="Search session notes by content",
        parameters={
            "type": "object",
            "properties": {"query": {"type": "string", "description": "Search term"}},
            "required": ["query"],
        },
    )
    async def search_notes(self, query: str) -> str:
        notes = await self.store.select(
            SessionNote,
            SessionNote.coach_id == self.coach_id,
            SessionNote.content.ilike(f"%{query}%"),
            limit=self.MAX_NOTES,
        )
        return _dump([_row(n, "title", "content", "session_date", "client_id") for n in notes])

    @tool(name="get_stats", description="Get overall coaching statistics")
    async def get_stats(self) -> str:
        clients = await self._clients_matching(None)
        tasks = await self.store.select(Task, Task.coach_id == self.coach_id)
        updates = await self.store.select(TelegramUpdate, TelegramUpdate.coach_id == self.coach_id)
        avg_engagement = round(sum(c.engagement_score for c in clients) / len(clients)) if clients else 0
        return _dump(
            {
                "total_companies": len(clients),
                "active_companies": sum(1 for c in clients if c.status == "active"),
                "at_risk_companies": sum(1 for c in clients if c.status == "at_risk"),
                "avg_engagement": avg_engagement,
                "total_tasks": len(tasks),
                "pending_tasks": sum(1 for t in tasks if t.status == "pending"),
                "total_updates": len(updates),
            }
        )


def _parse_day(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None
