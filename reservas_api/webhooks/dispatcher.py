"""Outbound webhook delivery for reservation lifecycle events"""

import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import httpx
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from reservas_api.config import settings
from reservas_api.core.errors import WebhookDeliveryFailure
from reservas_api.models.webhook import TEST_EVENT, WebhookConfig, WebhookLog

logger = structlog.get_logger()


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def sign_payload(body: str, secret: str) -> str:
    """HMAC-SHA256 of the exact request body, formatted as ``sha256=<hex>``"""
    digest = hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def _table_of(reservation: dict) -> Optional[int]:
    if reservation.get("status") == "cancelada":
        return reservation.get("id_mesa_historico")
    return reservation.get("id_mesa")


def build_payload(
    event: str,
    reservations: List[dict],
    single: bool = False,
    timestamp: Optional[str] = None,
) -> dict:
    """
    Build the JSON document posted to the endpoint.

    ``reservations`` are serialized rows (API field names). A single-row
    event carries ``reserva``; a booking carries ``reservas`` plus the date,
    slot and notes shared by its rows.
    """
    if not reservations:
        raise ValueError("webhook payload needs at least one reservation")
    first = reservations[0]
    data = {"source": "api"}
    if single:
        data["reserva"] = first
    else:
        data["reservas"] = reservations
    data.update(
        {
            "cliente": {
                "nome": first.get("nome_cliente"),
                "telefone": first.get("telefone_cliente"),
            },
            "mesas": [_table_of(reservation) for reservation in reservations],
            "total_mesas": len(reservations),
        }
    )
    if not single:
        data.update(
            {
                "data_reserva": first.get("data_reserva"),
                "horario_reserva": first.get("horario_reserva"),
                "observacoes": first.get("observacoes"),
            }
        )
    return {"event": event, "timestamp": timestamp or utc_timestamp(), "data": data}


class WebhookConfigRepository:
    """Reads the webhook configuration and writes the delivery log"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active(self) -> Optional[WebhookConfig]:
        """First enabled configuration, if any"""
        result = await self.db.execute(
            select(WebhookConfig)
            .where(WebhookConfig.enabled == True)
            .order_by(WebhookConfig.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_current(self) -> Optional[WebhookConfig]:
        result = await self.db.execute(
            select(WebhookConfig).order_by(WebhookConfig.created_at).limit(1)
        )
        return result.scalar_one_or_none()

    async def save(self, endpoint_url: str, enabled: bool, secret_key: Optional[str], events: List[str]) -> WebhookConfig:
        """Update the single configuration row, creating it on first save"""
        config = await self.get_current()
        if config is None:
            config = WebhookConfig()
            self.db.add(config)
        config.endpoint_url = endpoint_url
        config.enabled = enabled
        config.secret_key = secret_key or None
        config.events = list(events)
        await self.db.commit()
        await self.db.refresh(config)
        return config

    async def log_attempt(self, config_id, event: str, success: bool, error_message: Optional[str] = None) -> None:
        self.db.add(
            WebhookLog(
                config_id=config_id,
                event=event,
                success=success,
                error_message=error_message,
            )
        )
        await self.db.commit()

    async def recent_logs(self, limit: int = 50) -> List[WebhookLog]:
        result = await self.db.execute(
            select(WebhookLog).order_by(WebhookLog.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def purge_logs(self, older_than_days: int) -> int:
        cutoff = datetime.utcnow() - timedelta(days=older_than_days)
        result = await self.db.execute(delete(WebhookLog).where(WebhookLog.created_at < cutoff))
        await self.db.commit()
        return result.rowcount or 0


class WebhookDispatcher:
    """Signs and posts payloads; one attempt per call, no retry"""

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.webhook_timeout_seconds
        self.user_agent = user_agent or settings.webhook_user_agent
        self.transport = transport

    def headers_for(self, payload: dict, body: str, secret: Optional[str]) -> dict:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "X-Webhook-Event": payload["event"],
            "X-Webhook-Timestamp": payload["timestamp"],
        }
        if secret:
            headers["X-Webhook-Signature"] = sign_payload(body, secret)
        return headers

    async def send(self, config: WebhookConfig, payload: dict) -> None:
        """POST the payload; raise WebhookDeliveryFailure on transport error or non-2xx"""
        body = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
        headers = self.headers_for(payload, body, config.secret_key)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    config.endpoint_url,
                    content=body.encode("utf-8"),
                    headers=headers,
                )
        except httpx.HTTPError as e:
            raise WebhookDeliveryFailure(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise WebhookDeliveryFailure(f"HTTP {response.status_code}: {response.text[:500]}")

        logger.info("Webhook sent", endpoint=config.endpoint_url, webhook_event=payload["event"])


def get_webhook_dispatcher() -> WebhookDispatcher:
    """FastAPI dependency"""
    return WebhookDispatcher()


async def notify_reservation_event(
    session_factory: async_sessionmaker,
    event: str,
    reservations: List[dict],
    single: bool = False,
    dispatcher: Optional[WebhookDispatcher] = None,
) -> bool:
    """
    Deliver a lifecycle event to the configured endpoint.

    Runs after the reservation change is committed, so failures are logged
    and recorded in webhook_logs but never raised. Returns whether a delivery
    succeeded.
    """
    dispatcher = dispatcher or WebhookDispatcher()
    try:
        async with session_factory() as db:
            repository = WebhookConfigRepository(db)
            config = await repository.get_active()
            if config is None:
                logger.info("No active webhook configuration", webhook_event=event)
                return False
            if not config.subscribes_to(event):
                logger.info("Event not subscribed by webhook", webhook_event=event)
                return False

            payload = build_payload(event, reservations, single=single)
            error_message = None
            try:
                await dispatcher.send(config, payload)
            except WebhookDeliveryFailure as e:
                error_message = str(e)
                logger.warning(
                    "Webhook delivery failed",
                    endpoint=config.endpoint_url,
                    webhook_event=event,
                    error=error_message,
                )

            await repository.log_attempt(config.id, event, error_message is None, error_message)
            return error_message is None
    except Exception as e:
        logger.error("Error processing webhook", webhook_event=event, error=str(e))
        return False


async def send_test_webhook(config: WebhookConfig, dispatcher: WebhookDispatcher) -> Tuple[bool, str]:
    """Post a sample event to the configured URL, ignoring the enabled flag and subscriptions"""
    sample = {
        "id": "test-id-123",
        "nome_cliente": "Cliente Teste",
        "telefone_cliente": "(11) 99999-9999",
        "data_reserva": datetime.utcnow().date().isoformat(),
        "horario_reserva": "19:00",
        "id_mesa": 15,
        "observacoes": "Teste de webhook",
        "status": "pendente",
    }
    payload = build_payload(TEST_EVENT, [sample], single=True)
    try:
        await dispatcher.send(config, payload)
    except WebhookDeliveryFailure as e:
        return False, f"Falha ao enviar webhook de teste: {e}"
    return True, "Webhook de teste enviado com sucesso."
