"""Pydantic schemas for request/response validation"""

from reservas_api.schemas.reservation import (
    ReservationCreate,
    ReservationUpdate,
    ReservationResponse,
    ReservationGroupResponse,
    ModifyTablesRequest,
    GroupStatusRequest,
    AvailabilityResponse,
    FloorPlanResponse,
)
from reservas_api.schemas.webhook import (
    WebhookConfigUpdate,
    WebhookConfigResponse,
    WebhookLogResponse,
    WebhookTestResponse,
)

__all__ = [
    "ReservationCreate",
    "ReservationUpdate",
    "ReservationResponse",
    "ReservationGroupResponse",
    "ModifyTablesRequest",
    "GroupStatusRequest",
    "AvailabilityResponse",
    "FloorPlanResponse",
    "WebhookConfigUpdate",
    "WebhookConfigResponse",
    "WebhookLogResponse",
    "WebhookTestResponse",
]
