"""Webhook configuration and delivery log models"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, JSON, Text, Uuid

from reservas_api.database import Base


class WebhookEvent(str, enum.Enum):
    """Reservation lifecycle events delivered to the webhook endpoint"""
    CREATED = "reserva_criada"
    UPDATED = "reserva_atualizada"
    CANCELLED = "reserva_cancelada"


# Sent by the manual "test" action only; never subscribed
TEST_EVENT = "test_webhook"


class WebhookConfig(Base):
    """Destination for reservation notifications; the first enabled row wins"""
    __tablename__ = "webhook_config"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    endpoint_url = Column(Text, nullable=False, default="")
    enabled = Column(Boolean, nullable=False, default=False)
    secret_key = Column(String(255))
    events = Column(JSON, nullable=False, default=lambda: [WebhookEvent.CREATED.value])

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def subscribes_to(self, event: str) -> bool:
        return event in (self.events or [])


class WebhookLog(Base):
    """Append-only record of each delivery attempt"""
    __tablename__ = "webhook_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    config_id = Column(Uuid(as_uuid=True))
    event = Column(String(50), nullable=False)
    success = Column(Boolean, nullable=False)
    error_message = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
