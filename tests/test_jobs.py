"""Tests for the periodic maintenance jobs"""

import asyncio
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select

from reservas_api.jobs.tasks import cleanup_webhook_logs_job, finalize_past_reservations_job, run_async
from reservas_api.models.reservation import Reservation
from reservas_api.models.webhook import WebhookLog


@pytest.mark.asyncio
async def test_finalize_past_reservations(session_factory, add_reservations):
    await add_reservations(date(2024, 1, 1), [1, 2], status="confirmada")
    await add_reservations(date(2024, 1, 1), [3], status="pendente")
    await add_reservations(date(2024, 1, 1), [4], status="cancelada")
    await add_reservations(date(2024, 1, 2), [1], status="pendente")

    finalized = await finalize_past_reservations_job(session_factory, today=date(2024, 1, 2))

    assert finalized == 3
    async with session_factory() as db:
        result = await db.execute(select(Reservation).order_by(Reservation.reservation_date))
        statuses = [(row.reservation_date.day, row.status) for row in result.scalars().all()]
    assert sorted(statuses) == [
        (1, "cancelada"),
        (1, "finalizada"),
        (1, "finalizada"),
        (1, "finalizada"),
        (2, "pendente"),
    ]


@pytest.mark.asyncio
async def test_finalized_tables_are_free(client, session_factory, add_reservations):
    await add_reservations(date(2024, 1, 1), [5])

    await finalize_past_reservations_job(session_factory, today=date(2024, 1, 2))

    response = await client.get("/disponibilidade", params={"data_reserva": "2024-01-01"})
    data = response.json()
    assert data["total_mesas_reservadas"] == 0
    assert 5 in data["mesas_disponiveis_lista"]


@pytest.mark.asyncio
async def test_cleanup_webhook_logs(session_factory):
    async with session_factory() as db:
        db.add_all(
            [
                WebhookLog(event="reserva_criada", success=True, created_at=datetime.utcnow() - timedelta(days=120)),
                WebhookLog(event="reserva_criada", success=False, created_at=datetime.utcnow() - timedelta(days=1)),
            ]
        )
        await db.commit()

    deleted = await cleanup_webhook_logs_job(session_factory, retention_days=90)

    assert deleted == 1
    async with session_factory() as db:
        remaining = (await db.execute(select(WebhookLog))).scalars().all()
    assert [log.success for log in remaining] == [False]


def test_tasks_share_one_event_loop():
    """Consecutive task runs in a worker reuse the loop their connections are bound to"""
    async def running_loop():
        return asyncio.get_running_loop()

    first = run_async(running_loop())
    second = run_async(running_loop())

    assert first is second
    assert not first.is_closed()
