"""Tests for webhook signing, delivery and configuration"""

import json

import httpx
import pytest
import structlog
from httpx import AsyncClient
from sqlalchemy import select
from structlog.testing import capture_logs

from reservas_api.core.errors import WebhookDeliveryFailure
from reservas_api.main import app
from reservas_api.models.webhook import WebhookConfig, WebhookLog
from reservas_api.webhooks import dispatcher as dispatcher_module
from reservas_api.webhooks.dispatcher import (
    WebhookConfigRepository,
    WebhookDispatcher,
    build_payload,
    get_webhook_dispatcher,
    notify_reservation_event,
    sign_payload,
)

ROW = {
    "id": "8c4d3a8e-0000-0000-0000-000000000001",
    "nome_cliente": "Maria",
    "telefone_cliente": "11999999999",
    "data_reserva": "2024-01-01",
    "horario_reserva": "19:00",
    "observacoes": "",
    "status": "pendente",
    "id_mesa": 1,
    "id_mesa_historico": None,
    "numero_reserva": 42,
}


def failing_transport(status_code=500):
    return httpx.MockTransport(lambda request: httpx.Response(status_code, text="erro"))


async def save_config(session_factory, **overrides):
    values = {
        "endpoint_url": "https://hooks.example.com/reservas",
        "enabled": True,
        "secret_key": "segredo",
        "events": ["reserva_criada", "reserva_atualizada", "reserva_cancelada"],
    }
    values.update(overrides)
    async with session_factory() as db:
        return await WebhookConfigRepository(db).save(**values)


async def delivery_logs(session_factory):
    async with session_factory() as db:
        result = await db.execute(select(WebhookLog).order_by(WebhookLog.created_at))
        return list(result.scalars().all())


def test_signature_matches_rfc4231_vector():
    signature = sign_payload("what do ya want for nothing?", "Jefe")

    assert signature == (
        "sha256=5bdcc146bf60754e6a042426089575c75a003f089d2739839dec58b964ec3843"
    )


def test_single_row_payload():
    cancelled = dict(ROW, status="cancelada", id_mesa=None, id_mesa_historico=7)

    payload = build_payload("reserva_cancelada", [cancelled], single=True, timestamp="2024-01-01T12:00:00.000Z")

    assert payload["event"] == "reserva_cancelada"
    assert payload["timestamp"] == "2024-01-01T12:00:00.000Z"
    data = payload["data"]
    assert data["source"] == "api"
    assert data["reserva"] == cancelled
    assert "reservas" not in data
    assert data["mesas"] == [7]
    assert data["total_mesas"] == 1
    assert data["cliente"] == {"nome": "Maria", "telefone": "11999999999"}


def test_group_payload():
    rows = [ROW, dict(ROW, id_mesa=2)]

    payload = build_payload("reserva_criada", rows)

    data = payload["data"]
    assert data["reservas"] == rows
    assert data["mesas"] == [1, 2]
    assert data["total_mesas"] == 2
    assert data["data_reserva"] == "2024-01-01"
    assert data["horario_reserva"] == "19:00"
    assert payload["timestamp"].endswith("Z")


def test_payload_needs_a_reservation():
    with pytest.raises(ValueError):
        build_payload("reserva_criada", [])


@pytest.mark.asyncio
async def test_dispatcher_signs_the_exact_body():
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(204)

    config = WebhookConfig(endpoint_url="https://hooks.example.com/r", secret_key="segredo")
    payload = build_payload("reserva_criada", [ROW])

    await WebhookDispatcher(transport=httpx.MockTransport(handler)).send(config, payload)

    request = captured[0]
    body = request.content.decode("utf-8")
    assert request.method == "POST"
    assert json.loads(body) == payload
    assert request.headers["content-type"] == "application/json"
    assert request.headers["user-agent"] == "Pizzaria-Webhook/1.0"
    assert request.headers["x-webhook-event"] == "reserva_criada"
    assert request.headers["x-webhook-timestamp"] == payload["timestamp"]
    assert request.headers["x-webhook-signature"] == sign_payload(body, "segredo")


@pytest.mark.asyncio
async def test_dispatcher_without_secret_sends_no_signature():
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200)

    config = WebhookConfig(endpoint_url="https://hooks.example.com/r", secret_key=None)

    await WebhookDispatcher(transport=httpx.MockTransport(handler)).send(
        config, build_payload("reserva_criada", [ROW])
    )

    assert "x-webhook-signature" not in captured[0].headers


@pytest.mark.asyncio
async def test_dispatcher_raises_on_error_status():
    config = WebhookConfig(endpoint_url="https://hooks.example.com/r")

    with pytest.raises(WebhookDeliveryFailure, match="HTTP 500"):
        await WebhookDispatcher(transport=failing_transport()).send(
            config, build_payload("reserva_criada", [ROW])
        )


@pytest.mark.asyncio
async def test_dispatcher_raises_on_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    config = WebhookConfig(endpoint_url="https://hooks.example.com/r")

    with pytest.raises(WebhookDeliveryFailure, match="ConnectError"):
        await WebhookDispatcher(transport=httpx.MockTransport(handler)).send(
            config, build_payload("reserva_criada", [ROW])
        )


@pytest.mark.asyncio
async def test_notify_without_config_is_a_no_op(session_factory, webhook_transport, webhook_requests):
    delivered = await notify_reservation_event(
        session_factory, "reserva_criada", [ROW], dispatcher=WebhookDispatcher(transport=webhook_transport)
    )

    assert delivered is False
    assert webhook_requests == []
    assert await delivery_logs(session_factory) == []


@pytest.mark.asyncio
async def test_notify_skips_unsubscribed_events(session_factory, webhook_transport, webhook_requests):
    await save_config(session_factory, events=["reserva_criada"])

    delivered = await notify_reservation_event(
        session_factory, "reserva_cancelada", [ROW], dispatcher=WebhookDispatcher(transport=webhook_transport)
    )

    assert delivered is False
    assert webhook_requests == []


@pytest.mark.asyncio
async def test_notify_skips_disabled_config(session_factory, webhook_transport, webhook_requests):
    await save_config(session_factory, enabled=False)

    delivered = await notify_reservation_event(
        session_factory, "reserva_criada", [ROW], dispatcher=WebhookDispatcher(transport=webhook_transport)
    )

    assert delivered is False
    assert webhook_requests == []


@pytest.mark.asyncio
async def test_notify_logs_success(session_factory, webhook_transport, webhook_requests):
    config = await save_config(session_factory)

    delivered = await notify_reservation_event(
        session_factory, "reserva_criada", [ROW], dispatcher=WebhookDispatcher(transport=webhook_transport)
    )

    assert delivered is True
    assert len(webhook_requests) == 1
    logs = await delivery_logs(session_factory)
    assert [(log.event, log.success, log.config_id) for log in logs] == [
        ("reserva_criada", True, config.id)
    ]


@pytest.mark.asyncio
async def test_notify_logs_failure_without_raising(session_factory):
    await save_config(session_factory)

    delivered = await notify_reservation_event(
        session_factory, "reserva_criada", [ROW], dispatcher=WebhookDispatcher(transport=failing_transport(503))
    )

    assert delivered is False
    logs = await delivery_logs(session_factory)
    assert len(logs) == 1
    assert logs[0].success is False
    assert "HTTP 503" in logs[0].error_message


class BrokenDispatcher(WebhookDispatcher):
    async def send(self, config, payload):
        raise RuntimeError("unexpected failure")


@pytest.mark.asyncio
async def test_notify_unexpected_send_error_returns_false(session_factory):
    await save_config(session_factory)

    delivered = await notify_reservation_event(
        session_factory, "reserva_criada", [ROW], dispatcher=BrokenDispatcher()
    )

    assert delivered is False
    assert await delivery_logs(session_factory) == []


@pytest.mark.asyncio
async def test_notify_database_error_returns_false(webhook_transport, webhook_requests):
    def broken_session_factory():
        raise RuntimeError("database unavailable")

    delivered = await notify_reservation_event(
        broken_session_factory, "reserva_criada", [ROW], dispatcher=WebhookDispatcher(transport=webhook_transport)
    )

    assert delivered is False
    assert webhook_requests == []


@pytest.mark.asyncio
async def test_notify_logs_with_structlog(session_factory, webhook_transport, monkeypatch):
    """Every logging path of a delivery emits the webhook event under its own key"""
    with capture_logs() as captured:
        monkeypatch.setattr(dispatcher_module, "logger", structlog.get_logger())
        await notify_reservation_event(
            session_factory, "reserva_criada", [ROW], dispatcher=WebhookDispatcher(transport=webhook_transport)
        )
        await save_config(session_factory, events=["reserva_cancelada"])
        await notify_reservation_event(
            session_factory, "reserva_criada", [ROW], dispatcher=WebhookDispatcher(transport=webhook_transport)
        )

    assert [(entry["event"], entry["webhook_event"]) for entry in captured] == [
        ("No active webhook configuration", "reserva_criada"),
        ("Event not subscribed by webhook", "reserva_criada"),
    ]


@pytest.mark.asyncio
async def test_config_endpoints(client: AsyncClient):
    missing = await client.get("/webhook/config")
    assert missing.status_code == 404

    saved = await client.put(
        "/webhook/config",
        json={
            "endpoint_url": "https://hooks.example.com/reservas",
            "enabled": True,
            "secret_key": "segredo",
            "events": ["reserva_criada", "reserva_cancelada"],
        },
    )
    assert saved.status_code == 200
    data = saved.json()
    assert data["has_secret"] is True
    assert "secret_key" not in data
    assert data["events"] == ["reserva_criada", "reserva_cancelada"]

    current = await client.get("/webhook/config")
    assert current.json()["id"] == data["id"]

    invalid = await client.put("/webhook/config", json={"endpoint_url": "ftp://x", "enabled": True})
    assert invalid.status_code == 400

    unknown_event = await client.put(
        "/webhook/config",
        json={"endpoint_url": "https://x.example.com", "events": ["reserva_apagada"]},
    )
    assert unknown_event.status_code == 400


@pytest.mark.asyncio
async def test_reservation_lifecycle_sends_webhooks(client: AsyncClient, webhook_requests):
    await client.put(
        "/webhook/config",
        json={
            "endpoint_url": "https://hooks.example.com/reservas",
            "enabled": True,
            "secret_key": "segredo",
            "events": ["reserva_criada", "reserva_atualizada", "reserva_cancelada"],
        },
    )

    created = await client.post(
        "/reservas",
        json={
            "nome_cliente": "Maria",
            "telefone_cliente": "11999999999",
            "data_reserva": "2024-01-01",
            "horario_reserva": "19:00",
            "mesas": [1, 2],
        },
    )
    assert created.status_code == 201
    await client.delete(f"/reservas/{created.json()['reservas'][0]['id']}")

    assert [r.headers["x-webhook-event"] for r in webhook_requests] == [
        "reserva_criada",
        "reserva_cancelada",
    ]
    created_body = json.loads(webhook_requests[0].content)
    assert created_body["data"]["total_mesas"] == 2
    assert created_body["data"]["mesas"] == [1, 2]
    assert len(created_body["data"]["reservas"]) == 2
    assert webhook_requests[0].headers["x-webhook-signature"] == sign_payload(
        webhook_requests[0].content.decode("utf-8"), "segredo"
    )

    cancelled_body = json.loads(webhook_requests[1].content)
    assert cancelled_body["data"]["reserva"]["status"] == "cancelada"
    assert cancelled_body["data"]["mesas"] == [1]

    logs = await client.get("/webhook/logs")
    assert [log["success"] for log in logs.json()] == [True, True]


@pytest.mark.asyncio
async def test_webhook_failure_does_not_fail_reservation(client: AsyncClient, session_factory):
    await save_config(session_factory)
    app.dependency_overrides[get_webhook_dispatcher] = lambda: WebhookDispatcher(
        transport=failing_transport()
    )

    response = await client.post(
        "/reservas",
        json={
            "nome_cliente": "Maria",
            "telefone_cliente": "11999999999",
            "data_reserva": "2024-01-01",
            "horario_reserva": "19:00",
            "mesas": [1],
        },
    )

    assert response.status_code == 201
    logs = await delivery_logs(session_factory)
    assert [log.success for log in logs] == [False]


@pytest.mark.asyncio
async def test_send_test_webhook(client: AsyncClient, webhook_requests):
    no_config = await client.post("/webhook/testar")
    assert no_config.status_code == 400

    await client.put(
        "/webhook/config",
        json={"endpoint_url": "https://hooks.example.com/reservas", "enabled": False},
    )

    response = await client.post("/webhook/testar")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert webhook_requests[0].headers["x-webhook-event"] == "test_webhook"
    assert "x-webhook-signature" not in webhook_requests[0].headers
