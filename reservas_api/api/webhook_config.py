"""Webhook configuration endpoints"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from reservas_api.api.auth import verify_api_key
from reservas_api.core.errors import NotFound, ValidationError
from reservas_api.database import get_db
from reservas_api.schemas.webhook import (
    WebhookConfigResponse,
    WebhookConfigUpdate,
    WebhookLogResponse,
    WebhookTestResponse,
)
from reservas_api.webhooks.dispatcher import (
    WebhookConfigRepository,
    WebhookDispatcher,
    get_webhook_dispatcher,
    send_test_webhook,
)

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.get("/config", response_model=WebhookConfigResponse)
async def get_webhook_config(db: AsyncSession = Depends(get_db)):
    """Current webhook configuration"""
    config = await WebhookConfigRepository(db).get_current()
    if config is None:
        raise NotFound("Nenhuma configuração de webhook cadastrada.")
    return WebhookConfigResponse.from_config(config)


@router.put("/config", response_model=WebhookConfigResponse)
async def save_webhook_config(
    config_data: WebhookConfigUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the webhook configuration"""
    if config_data.enabled and not config_data.endpoint_url:
        raise ValidationError("endpoint_url é obrigatório para ativar o webhook.")

    config = await WebhookConfigRepository(db).save(
        endpoint_url=config_data.endpoint_url,
        enabled=config_data.enabled,
        secret_key=config_data.secret_key,
        events=[event.value for event in config_data.events],
    )
    return WebhookConfigResponse.from_config(config)


@router.post("/testar", response_model=WebhookTestResponse)
async def test_webhook(
    db: AsyncSession = Depends(get_db),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
):
    """Send a sample event to the configured endpoint"""
    config = await WebhookConfigRepository(db).get_current()
    if config is None or not config.endpoint_url:
        raise ValidationError("URL do endpoint é obrigatória para teste.")

    success, message = await send_test_webhook(config, dispatcher)
    return WebhookTestResponse(success=success, message=message)


@router.get("/logs", response_model=List[WebhookLogResponse])
async def list_webhook_logs(
    limite: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Most recent delivery attempts"""
    return await WebhookConfigRepository(db).recent_logs(limite)
