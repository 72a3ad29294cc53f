"""Availability and floor plan endpoints"""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reservas_api.api.auth import verify_api_key
from reservas_api.database import get_db
from reservas_api.schemas.reservation import (
    AvailabilityResponse,
    FloorPlanResponse,
    FloorTable,
    TableReservationSummary,
)
from reservas_api.services.reservations import ReservationService

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.get("/disponibilidade", response_model=AvailabilityResponse)
async def check_availability(
    data_reserva: date,
    db: AsyncSession = Depends(get_db),
):
    """Free tables and remaining daily quota for a date"""
    availability = await ReservationService(db).availability(data_reserva)

    return AvailabilityResponse(
        data_consulta=availability.date,
        limite_mesas_por_dia=availability.limit,
        total_mesas_reservadas=availability.occupied_count,
        total_mesas_disponiveis=availability.remaining,
        mesas_disponiveis_lista=availability.free_tables,
        horarios_disponiveis=availability.time_slots,
        taxa_ocupacao=availability.occupancy_rate,
    )


@router.get("/mesas", response_model=FloorPlanResponse)
async def floor_plan(
    data_reserva: date,
    db: AsyncSession = Depends(get_db),
):
    """Every physical table with the active reservation holding it, if any"""
    service = ReservationService(db)
    tables, active = await service.floor_plan(data_reserva)

    mesas = []
    for table in tables:
        row = table["reserva"]
        mesas.append(
            FloorTable(
                id=table["id"],
                fileira=table["fileira"],
                capacidade=table["capacidade"],
                status=table["status"],
                reserva=TableReservationSummary(
                    id=row.id,
                    nome_cliente=row.customer_name,
                    horario_reserva=row.time_slot,
                    numero_reserva=row.reservation_number,
                    status=row.status,
                ) if row else None,
            )
        )

    return FloorPlanResponse(
        data_reserva=data_reserva,
        mesas=mesas,
        total_mesas_reservadas=len(active),
        limite_mesas_por_dia=service.limit,
        limite_atingido=len(active) >= service.limit,
    )
