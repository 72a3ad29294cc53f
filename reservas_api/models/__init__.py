"""Database models"""

from reservas_api.models.reservation import Reservation, ReservationNumber, ReservationStatus
from reservas_api.models.webhook import WebhookConfig, WebhookLog, WebhookEvent

__all__ = [
    "Reservation",
    "ReservationNumber",
    "ReservationStatus",
    "WebhookConfig",
    "WebhookLog",
    "WebhookEvent",
]
