from datetime import datetime, timezone

import pytest

from kadre.config import get_settings
from kadre.db import Client, Coach, DailySynthesis, Reflection, Task, TelegramUpdate
from kadre.llm import ModelTurn
from kadre.store import CoachStore

pytestmark = pytest.mark.asyncio

CRON_HEADERS = {"Authorization": "Bearer cron-secret"}


async def test_healthz_needs_no_auth(api):
    response = await api.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "cron-secret"}])
async def test_cron_rejects_missing_or_wrong_secret(api, headers):
    response = await api.get("/cron/engagement-score", headers=headers)

    assert response.status_code == 401


async def test_cron_without_configured_secret_is_server_error(api, monkeypatch):
    monkeypatch.delenv("CRON_SECRET")
    get_settings.cache_clear()

    response = await api.get("/cron/engagement-score", headers=CRON_HEADERS)

    assert response.status_code == 500


async def test_engagement_cron_reports_counts(api, seed):
    active, _ = await seed(
        Client(coach_id="coach-1", company_name="Acme Corp"),
        Client(coach_id="coach-1", company_name="Globex"),
    )
    await seed(Reflection(client_id=active.id), Reflection(client_id=active.id))

    response = await api.get("/cron/engagement-score", headers=CRON_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"updated": 2, "total": 2}
    scores = sorted(c.engagement_score for c in await CoachStore().select(Client))
    assert scores == [0, 35]


async def test_daily_synthesis_cron_reports_each_coach(api, seed):
    await seed(Coach(id="coach-ok", email="ok@example.com"), Coach(id="coach-broken", email="broken@example.com"))
    await seed(TelegramUpdate(coach_id="coach-broken", content="Trigger failure"))

    def responder(prompt):
        if "Trigger failure" in prompt:
            return RuntimeError("model overloaded")
        return "All quiet"

    api.llm.responder = responder

    response = await api.post("/cron/daily-synthesis", headers=CRON_HEADERS)

    assert response.status_code == 200
    results = {r["coach_id"]: r for r in response.json()["results"]}
    assert results["coach-ok"] == {"coach_id": "coach-ok", "status": "ok"}
    assert results["coach-broken"]["status"] == "error"
    assert "model overloaded" in results["coach-broken"]["error"]
    stored = await CoachStore().select(DailySynthesis)
    assert [(s.coach_id, s.content) for s in stored] == [("coach-ok", "All quiet")]


async def test_coach_routes_require_bearer_token(api):
    missing = await api.post("/ai/assistant", json={"message": "hi"})
    invalid = await api.post("/ai/assistant", json={"message": "hi"}, headers={"Authorization": "Bearer nope"})

    assert missing.status_code == 401
    assert invalid.status_code == 401


async def test_first_request_provisions_coach(api, auth_headers):
    api.llm.turns = [ModelTurn(text="Hello coach")]

    response = await api.post("/ai/assistant", json={"message": "hi"}, headers=auth_headers("coach-new", "new@example.com"))

    assert response.status_code == 200
    coach = await CoachStore().first(Coach, Coach.id == "coach-new")
    assert coach.email == "new@example.com"


@pytest.mark.parametrize("payload", [{}, {"message": ""}, {"message": "   "}])
async def test_assistant_requires_message(api, auth_headers, payload):
    response = await api.post("/ai/assistant", json=payload, headers=auth_headers("coach-1"))

    assert response.status_code == 400
    assert response.json()["detail"] == "Message is required"


async def test_assistant_answers_for_coach(api, auth_headers, seed):
    await seed(Client(coach_id="coach-1", company_name="Acme Corp"))
    api.llm.turns = [ModelTurn(text="You coach Acme Corp.")]

    response = await api.post("/ai/assistant", json={"message": "Who do I coach?"}, headers=auth_headers("coach-1"))

    assert response.status_code == 200
    assert response.json() == {"response": "You coach Acme Corp."}
    assert len(api.llm.conversations[0]["tools"]) == 8


async def test_assistant_failure_is_500(api, auth_headers):
    def explode(n):
        raise RuntimeError("backend down")

    api.llm.turns = explode

    response = await api.post("/ai/assistant", json={"message": "hi"}, headers=auth_headers("coach-1"))

    assert response.status_code == 500


async def test_triage_endpoint(api, auth_headers, seed):
    acme = await seed(Client(coach_id="coach-1", company_name="Acme Corp"))
    update = await seed(TelegramUpdate(coach_id="coach-1", content="#acmecorp shipped the beta"))

    def responder(prompt):
        if "coaching update classifier" in prompt:
            return "progress"
        return '[{"title": "Celebrate launch", "priority": "low"}]'

    api.llm.responder = responder

    response = await api.post(f"/updates/{update.id}/triage", headers=auth_headers("coach-1"))

    assert response.status_code == 200
    body = response.json()
    assert body["classification"] == "progress"
    assert body["client_id"] == acme.id
    assert body["action_items"] == [{"title": "Celebrate launch", "priority": "low"}]
    assert body["tasks_created"] == 1
    assert len(await CoachStore().select(Task)) == 1


async def test_triage_of_unknown_or_foreign_update_is_404(api, auth_headers, seed):
    foreign = await seed(TelegramUpdate(coach_id="coach-2", content="Not yours"))

    assert (await api.post(f"/updates/{foreign.id}/triage", headers=auth_headers("coach-1"))).status_code == 404
    assert (await api.post("/updates/missing/triage", headers=auth_headers("coach-1"))).status_code == 404


async def test_manual_synthesis(api, auth_headers):
    api.llm.responder = lambda prompt: "Today was calm."

    response = await api.post("/syntheses", headers=auth_headers("coach-1"))

    assert response.status_code == 200
    body = response.json()
    assert body["coach_id"] == "coach-1"
    assert body["content"] == "Today was calm."
    assert body["synthesis_date"] == datetime.now(timezone.utc).date().isoformat()
