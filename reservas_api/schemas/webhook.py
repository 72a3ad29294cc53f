"""Webhook configuration schemas"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, ConfigDict, field_validator

from reservas_api.models.webhook import WebhookEvent


class WebhookConfigUpdate(BaseModel):
    """Replace the webhook configuration"""
    endpoint_url: str
    enabled: bool = False
    secret_key: Optional[str] = None
    events: List[WebhookEvent] = [WebhookEvent.CREATED]

    @field_validator("endpoint_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        value = value.strip()
        if value and not value.startswith(("http://", "https://")):
            raise ValueError("endpoint_url deve começar com http:// ou https://")
        return value


class WebhookConfigResponse(BaseModel):
    """Webhook configuration; the secret itself is never echoed"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    endpoint_url: str
    enabled: bool
    events: List[str]
    has_secret: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_config(cls, config) -> "WebhookConfigResponse":
        response = cls.model_validate(config)
        response.has_secret = bool(config.secret_key)
        return response


class WebhookLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    config_id: Optional[UUID]
    event: str
    success: bool
    error_message: Optional[str]
    created_at: Optional[datetime]


class WebhookTestResponse(BaseModel):
    success: bool
    message: str
