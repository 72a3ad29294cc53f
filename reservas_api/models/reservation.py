"""Reservation models"""

import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Date, DateTime, Text, Index, Uuid, text

from reservas_api.database import Base


class ReservationStatus(str, enum.Enum):
    """Lifecycle of a reservation row"""
    PENDING = "pendente"
    CONFIRMED = "confirmada"
    CANCELLED = "cancelada"
    COMPLETED = "finalizada"

    @classmethod
    def active(cls) -> frozenset:
        """Statuses counted against the daily limit and table conflicts"""
        return frozenset({cls.PENDING, cls.CONFIRMED})

    @property
    def is_active(self) -> bool:
        return self in ReservationStatus.active()


ACTIVE_STATUS_VALUES = tuple(sorted(status.value for status in ReservationStatus.active()))

_ACTIVE_PREDICATE = text(
    "status IN ({})".format(", ".join(f"'{value}'" for value in ACTIVE_STATUS_VALUES))
)


class Reservation(Base):
    """One table booked for one date; rows sharing a reservation number form one booking"""
    __tablename__ = "reservas"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Table assignment; cleared on cancellation, prior value kept in historical_table_id
    table_id = Column(Integer, nullable=True)
    historical_table_id = Column(Integer, nullable=True)

    # Customer information
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(30), nullable=False)

    # Reservation details
    reservation_date = Column(Date, nullable=False, index=True)
    time_slot = Column(String(5), nullable=False)
    notes = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING.value)
    reservation_number = Column(Integer, nullable=True, index=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        # One active booking per table per day
        Index(
            "uq_reservas_mesa_ativa",
            "reservation_date",
            "table_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
    )

    @property
    def status_enum(self) -> ReservationStatus:
        return ReservationStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status_enum.is_active

    @property
    def effective_table_id(self):
        """Live table, or the table held before cancellation"""
        if self.table_id is not None:
            return self.table_id
        return self.historical_table_id

    def cancel(self) -> None:
        """Soft-cancel: release the table but remember which one it was"""
        if self.table_id is not None:
            self.historical_table_id = self.table_id
        self.table_id = None
        self.status = ReservationStatus.CANCELLED.value


class ReservationNumber(Base):
    """Sequence backing the shared reservation number of a multi-table booking"""
    __tablename__ = "numeros_reserva"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, default=datetime.utcnow)
