"""Reservation management API endpoints"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reservas_api.api.auth import verify_api_key
from reservas_api.database import get_db, get_session_factory
from reservas_api.models.webhook import WebhookEvent
from reservas_api.schemas.reservation import (
    GroupStatusRequest,
    ModifyTablesRequest,
    ReservationCreate,
    ReservationCreatedResponse,
    ReservationEnvelope,
    ReservationGroupEnvelope,
    ReservationGroupResponse,
    ReservationListResponse,
    ReservationResponse,
    ReservationRowsEnvelope,
    ReservationUpdate,
)
from reservas_api.services.reservations import ReservationService
from reservas_api.webhooks.dispatcher import (
    WebhookDispatcher,
    get_webhook_dispatcher,
    notify_reservation_event,
)

router = APIRouter(dependencies=[Depends(verify_api_key)])


class WebhookScheduler:
    """Queues lifecycle notifications to run after the response is sent"""

    def __init__(
        self,
        background_tasks: BackgroundTasks,
        session_factory: async_sessionmaker = Depends(get_session_factory),
        dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
    ):
        self.background_tasks = background_tasks
        self.session_factory = session_factory
        self.dispatcher = dispatcher

    def schedule(self, event: WebhookEvent, rows, single: bool = False) -> None:
        # Serialize now: the request session is closed by the time the task runs
        serialized = [
            ReservationResponse.model_validate(row).model_dump(mode="json", by_alias=True)
            for row in rows
        ]
        if not serialized:
            return
        self.background_tasks.add_task(
            notify_reservation_event,
            self.session_factory,
            event.value,
            serialized,
            single,
            self.dispatcher,
        )


@router.get("", response_model=ReservationListResponse)
async def list_reservations(
    data_reserva: Optional[date] = None,
    cliente_nome: Optional[str] = None,
    cliente_telefone: Optional[str] = None,
    telefone_cliente: Optional[str] = None,
    mesa: Optional[int] = None,
    status: Optional[str] = None,
    numero_reserva: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    """List reservations grouped by reservation number"""
    groups = await ReservationService(db).list_groups(
        reservation_date=data_reserva,
        customer_name=cliente_nome,
        customer_phone=cliente_telefone or telefone_cliente,
        table_id=mesa,
        statuses=status,
        reservation_number=numero_reserva,
    )

    message = None
    if not groups:
        if numero_reserva is not None or cliente_telefone or telefone_cliente or cliente_nome:
            message = "Nenhuma reserva encontrada com os filtros fornecidos."
        else:
            message = (
                "Nenhuma reserva encontrada para a data e status atuais. Para verificar "
                "mesas livres, use o endpoint /disponibilidade?data_reserva=YYYY-MM-DD"
            )

    return ReservationListResponse(
        reservas=[ReservationGroupResponse.from_group(group) for group in groups],
        total=len(groups),
        message=message,
    )


@router.post("", response_model=ReservationCreatedResponse, status_code=201)
async def create_reservation(
    reservation_data: ReservationCreate,
    webhooks: WebhookScheduler = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Create one booking over one or more tables"""
    group = await ReservationService(db).create(reservation_data)

    webhooks.schedule(WebhookEvent.CREATED, group.rows)

    return ReservationCreatedResponse(
        message="Reservas criadas com sucesso",
        reserva=ReservationGroupResponse.from_group(group),
        reservas=[ReservationResponse.model_validate(row) for row in group.rows],
    )


@router.post("/modificar-mesas", response_model=ReservationGroupEnvelope)
async def modify_tables(
    request: ModifyTablesRequest,
    webhooks: WebhookScheduler = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Replace the table set of a booking identified by any of its rows"""
    group = await ReservationService(db).modify_tables(
        request.anchor_id,
        request.new_tables,
        request.reservation_fields,
    )

    webhooks.schedule(WebhookEvent.UPDATED, group.rows)

    return ReservationGroupEnvelope(
        message="Reserva modificada com sucesso",
        reserva=ReservationGroupResponse.from_group(group),
    )


@router.post("/atualizar-status", response_model=ReservationRowsEnvelope)
async def update_group_status(
    request: GroupStatusRequest,
    webhooks: WebhookScheduler = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Change the status of every row of a booking"""
    rows, event = await ReservationService(db).update_group_status(request.id, request.status)

    webhooks.schedule(event, rows)

    return ReservationRowsEnvelope(
        message="Grupo de reservas atualizado com sucesso",
        reservas=[ReservationResponse.model_validate(row) for row in rows],
    )


@router.put("/{reservation_id}", response_model=ReservationEnvelope)
async def update_reservation(
    reservation_id: UUID,
    reservation_data: ReservationUpdate,
    webhooks: WebhookScheduler = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Update one reservation row"""
    reservation, event = await ReservationService(db).update(reservation_id, reservation_data)

    webhooks.schedule(event, [reservation], single=True)

    return ReservationEnvelope(
        message="Reserva atualizada com sucesso",
        reserva=ReservationResponse.model_validate(reservation),
    )


@router.delete("/{reservation_id}", response_model=ReservationEnvelope)
async def cancel_reservation(
    reservation_id: UUID,
    webhooks: WebhookScheduler = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Cancel one reservation row, keeping it for history"""
    reservation = await ReservationService(db).cancel(reservation_id)

    webhooks.schedule(WebhookEvent.CANCELLED, [reservation], single=True)

    return ReservationEnvelope(
        message="Reserva cancelada com sucesso",
        reserva=ReservationResponse.model_validate(reservation),
    )
