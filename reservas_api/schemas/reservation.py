"""Reservation schemas

Wire field names follow the public API (Portuguese); attribute names follow
the ORM model so rows validate straight from attributes.
"""

from datetime import date, datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field

from reservas_api.models.reservation import ReservationStatus


class ReservationResponse(BaseModel):
    """One reservation row"""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    created_at: Optional[datetime] = None
    table_id: Optional[int] = Field(default=None, alias="id_mesa")
    historical_table_id: Optional[int] = Field(default=None, alias="id_mesa_historico")
    customer_name: str = Field(alias="nome_cliente")
    customer_phone: str = Field(alias="telefone_cliente")
    reservation_date: date = Field(alias="data_reserva")
    time_slot: str = Field(alias="horario_reserva")
    notes: str = Field(default="", alias="observacoes")
    status: ReservationStatus
    reservation_number: Optional[int] = Field(default=None, alias="numero_reserva")


class ReservationGroupResponse(BaseModel):
    """Rows sharing a reservation number presented as one booking"""
    model_config = ConfigDict(populate_by_name=True)

    anchor_id: UUID = Field(alias="id_ancora")
    created_at: Optional[datetime] = None
    customer_name: str = Field(alias="nome_cliente")
    customer_phone: str = Field(alias="telefone_cliente")
    reservation_date: date = Field(alias="data_reserva")
    time_slot: str = Field(alias="horario_reserva")
    notes: str = Field(default="", alias="observacoes")
    status: ReservationStatus
    reservation_number: Optional[int] = Field(default=None, alias="numero_reserva")
    tables: List[Optional[int]] = Field(alias="mesas")
    total_tables: int = Field(alias="total_mesas")

    @classmethod
    def from_group(cls, group) -> "ReservationGroupResponse":
        anchor = group.anchor
        return cls(
            anchor_id=anchor.id,
            created_at=anchor.created_at,
            customer_name=anchor.customer_name,
            customer_phone=anchor.customer_phone,
            reservation_date=anchor.reservation_date,
            time_slot=anchor.time_slot,
            notes=anchor.notes or "",
            status=anchor.status,
            reservation_number=anchor.reservation_number,
            tables=group.tables,
            total_tables=len(group.rows),
        )


class ReservationCreate(BaseModel):
    """Create a booking over one or more tables"""
    model_config = ConfigDict(populate_by_name=True)

    customer_name: str = Field(alias="nome_cliente")
    customer_phone: str = Field(alias="telefone_cliente")
    reservation_date: date = Field(alias="data_reserva")
    time_slot: str = Field(alias="horario_reserva")
    tables: List[int] = Field(alias="mesas")
    notes: Optional[str] = Field(default=None, alias="observacoes")
    status: Optional[ReservationStatus] = None


class ReservationUpdate(BaseModel):
    """Partial update of one row; id and created_at are ignored if sent"""
    model_config = ConfigDict(populate_by_name=True)

    table_id: Optional[int] = Field(default=None, alias="id_mesa")
    customer_name: Optional[str] = Field(default=None, alias="nome_cliente")
    customer_phone: Optional[str] = Field(default=None, alias="telefone_cliente")
    reservation_date: Optional[date] = Field(default=None, alias="data_reserva")
    time_slot: Optional[str] = Field(default=None, alias="horario_reserva")
    notes: Optional[str] = Field(default=None, alias="observacoes")
    status: Optional[ReservationStatus] = None


class GroupFields(BaseModel):
    """Fields applied to every row of a booking when its tables change"""
    model_config = ConfigDict(populate_by_name=True)

    customer_name: Optional[str] = Field(default=None, alias="nome_cliente")
    customer_phone: Optional[str] = Field(default=None, alias="telefone_cliente")
    reservation_date: Optional[date] = Field(default=None, alias="data_reserva")
    time_slot: Optional[str] = Field(default=None, alias="horario_reserva")
    notes: Optional[str] = Field(default=None, alias="observacoes")
    status: Optional[ReservationStatus] = None


class ModifyTablesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    anchor_id: UUID = Field(alias="id_ancora")
    new_tables: List[int] = Field(alias="novas_mesas")
    reservation_fields: GroupFields = Field(alias="dados_reserva")


class GroupStatusRequest(BaseModel):
    id: UUID
    status: ReservationStatus


class ReservationCreatedResponse(BaseModel):
    message: str
    reserva: ReservationGroupResponse
    reservas: List[ReservationResponse]


class ReservationGroupEnvelope(BaseModel):
    message: str
    reserva: ReservationGroupResponse


class ReservationEnvelope(BaseModel):
    message: str
    reserva: ReservationResponse


class ReservationRowsEnvelope(BaseModel):
    message: str
    reservas: List[ReservationResponse]


class ReservationListResponse(BaseModel):
    """Grouped listing"""
    reservas: List[ReservationGroupResponse]
    total: int
    message: Optional[str] = None


class AvailabilityResponse(BaseModel):
    """Availability for one date"""
    data_consulta: date
    limite_mesas_por_dia: int
    total_mesas_reservadas: int
    total_mesas_disponiveis: int
    mesas_disponiveis_lista: List[int]
    horarios_disponiveis: List[str]
    taxa_ocupacao: int


class TableReservationSummary(BaseModel):
    id: UUID
    nome_cliente: str
    horario_reserva: str
    numero_reserva: Optional[int] = None
    status: ReservationStatus


class FloorTable(BaseModel):
    id: int
    fileira: int
    capacidade: int
    status: str
    reserva: Optional[TableReservationSummary] = None


class FloorPlanResponse(BaseModel):
    data_reserva: date
    mesas: List[FloorTable]
    total_mesas_reservadas: int
    limite_mesas_por_dia: int
    limite_atingido: bool
