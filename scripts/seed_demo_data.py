#!/usr/bin/env python
import asyncio
import random
from datetime import timedelta

from faker import Faker

from kadre.db import Client, Coach, Contact, Reflection, SessionNote, Task, TelegramUpdate, get_session, init_db, utcnow
from kadre.engagement import EngagementScorer
from kadre.store import CoachStore

FAKE_COACH_ID = "demo"


async def seed_client(fake: Faker) -> None:
    now = utcnow()
    async with get_session() as session:
        client = Client(
            coach_id=FAKE_COACH_ID,
            company_name=fake.company(),
            email=fake.company_email(),
            industry=random.choice(["fintech", "healthtech", "climate", "devtools", "marketplace"]),
            status=random.choice(["active", "active", "active", "at_risk"]),
        )
        session.add(client)
        await session.commit()
        await session.refresh(client)

        session.add(Contact(client_id=client.id, name=fake.name(), email=fake.email(), role="CEO"))

        for _ in range(random.randint(0, 6)):
            session.add(
                Reflection(
                    client_id=client.id,
                    energy_level=random.randint(3, 10),
                    accountability_score=random.randint(3, 10),
                    goal_progress=random.choice(["ahead", "on track", "behind"]),
                    win=fake.sentence(nb_words=6),
                    challenge=fake.sentence(nb_words=8),
                    created_at=now - timedelta(days=random.randint(0, 35)),
                )
            )

        for _ in range(random.randint(0, 10)):
            session.add(
                TelegramUpdate(
                    coach_id=FAKE_COACH_ID,
                    client_id=client.id,
                    content=fake.paragraph(nb_sentences=2),
                    classification=random.choice(["progress", "blocker", "communication", "insight", "admin"]),
                    created_at=now - timedelta(days=random.randint(0, 30), hours=random.randint(0, 23)),
                )
            )

        for _ in range(random.randint(1, 6)):
            session.add(
                Task(
                    coach_id=FAKE_COACH_ID,
                    client_id=client.id,
                    title=fake.bs().capitalize(),
                    priority=random.choice(["high", "medium", "low"]),
                    status=random.choice(["pending", "in_progress", "completed"]),
                    due_date=(now + timedelta(days=random.randint(-25, 10))).date(),
                )
            )

        session.add(
            SessionNote(
                coach_id=FAKE_COACH_ID,
                client_id=client.id,
                title="Monthly session",
                content=fake.paragraph(nb_sentences=4),
                session_date=(now - timedelta(days=random.randint(1, 30))).date(),
            )
        )
        await session.commit()


async def main(total: int = 8) -> None:
    await init_db()
    fake = Faker()
    async with get_session() as session:
        if not await session.get(Coach, FAKE_COACH_ID):
            session.add(Coach(id=FAKE_COACH_ID, email="demo@example.com", full_name="Demo Coach"))
            await session.commit()
    for _ in range(total):
        await seed_client(fake)
    # an untagged update for triage to attribute
    async with get_session() as session:
        session.add(TelegramUpdate(coach_id=FAKE_COACH_ID, content=fake.paragraph(nb_sentences=2)))
        await session.commit()
    report = await EngagementScorer(CoachStore()).recompute_all()
    print(f"Seeded {total} demo clients for coach '{FAKE_COACH_ID}' ({report.updated} scored).")


if __name__ == "__main__":
    asyncio.run(main())
