"""
Reservation service.

Every mutation runs inside one ``atomic`` block: the capacity and conflict
checks, the reservation-number allocation and the row writes commit or roll
back together. The partial unique index on active (date, table) backs the
conflict check at the storage layer; a violation surfaces as TableConflict.
"""

from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from reservas_api.config import Settings, settings as default_settings
from reservas_api.core.errors import NotFound, TableConflict, ValidationError
from reservas_api.database import atomic
from reservas_api.models.reservation import (
    ACTIVE_STATUS_VALUES,
    Reservation,
    ReservationNumber,
    ReservationStatus,
)
from reservas_api.models.webhook import WebhookEvent
from reservas_api.schemas.reservation import GroupFields, ReservationCreate, ReservationUpdate
from reservas_api.services import rules
from reservas_api.services.rules import ReservationGroup

logger = structlog.get_logger()

CREATABLE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


class ReservationService:
    """Reservation operations over one database session"""

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings

    @property
    def limit(self) -> int:
        return self.settings.daily_table_limit

    # Queries

    async def get(self, reservation_id: UUID) -> Reservation:
        result = await self.db.execute(
            select(Reservation).where(Reservation.id == reservation_id)
        )
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFound("Reserva não encontrada.")
        return reservation

    async def _get_anchor(self, anchor_id: UUID) -> Reservation:
        try:
            return await self.get(anchor_id)
        except NotFound:
            raise NotFound("Reserva âncora não encontrada.")

    async def active_rows(self, day: date) -> List[Reservation]:
        """Rows counted against the limit on ``day``"""
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.reservation_date == day,
                Reservation.status.in_(ACTIVE_STATUS_VALUES),
            )
            .order_by(Reservation.table_id)
        )
        return list(result.scalars().all())

    async def group_rows(self, anchor: Reservation) -> List[Reservation]:
        """All rows sharing the anchor's reservation number"""
        if anchor.reservation_number is None:
            return [anchor]
        result = await self.db.execute(
            select(Reservation)
            .where(Reservation.reservation_number == anchor.reservation_number)
            .order_by(Reservation.created_at, Reservation.table_id)
        )
        return list(result.scalars().all())

    async def list_groups(
        self,
        reservation_date: Optional[date] = None,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        table_id: Optional[int] = None,
        statuses: Optional[str] = None,
        reservation_number: Optional[int] = None,
    ) -> List[ReservationGroup]:
        """Filtered rows grouped into bookings, ordered by time slot"""
        query = select(Reservation).order_by(
            Reservation.time_slot,
            Reservation.table_id,
            Reservation.historical_table_id,
        )

        if reservation_date:
            query = query.where(Reservation.reservation_date == reservation_date)
        if reservation_number is not None:
            query = query.where(Reservation.reservation_number == reservation_number)
        if customer_name:
            query = query.where(Reservation.customer_name.ilike(f"%{customer_name.strip()}%"))
        if customer_phone:
            digits = rules.digits_only(customer_phone)
            if digits:
                query = query.where(Reservation.customer_phone.like(f"%{digits}%"))
        if table_id is not None:
            query = query.where(Reservation.table_id == table_id)

        if statuses:
            query = query.where(Reservation.status.in_(parse_status_list(statuses)))
        elif reservation_number is None:
            query = query.where(Reservation.status.in_(ACTIVE_STATUS_VALUES))

        result = await self.db.execute(query)
        return rules.group_by_reservation_number(result.scalars().all())

    async def availability(self, day: date) -> rules.Availability:
        active = await self.active_rows(day)
        return rules.compute_availability(
            day,
            [row.table_id for row in active if row.table_id is not None],
            limit=self.limit,
            total_tables=self.settings.total_tables,
            time_slots=self.settings.time_slots_list,
        )

    async def floor_plan(self, day: date) -> Tuple[List[dict], List[Reservation]]:
        """Physical layout with the active reservation holding each table, if any"""
        active = await self.active_rows(day)
        by_table = {row.table_id: row for row in active if row.table_id is not None}
        tables = []
        for table in rules.floor_layout():
            row = by_table.get(table["id"])
            tables.append(dict(table, status="ocupada" if row else "disponivel", reserva=row))
        return tables, active

    # Mutations

    async def allocate_reservation_number(self) -> int:
        number = ReservationNumber()
        self.db.add(number)
        await self.db.flush()
        return number.id

    async def create(self, data: ReservationCreate) -> ReservationGroup:
        """Book every requested table under one fresh reservation number"""
        name, phone = rules.validate_customer(data.customer_name, data.customer_phone)
        slot = rules.validate_time_slot(data.time_slot, self.settings.time_slots_list)
        tables = rules.validate_tables(data.tables, self.settings.total_tables)
        status = data.status or ReservationStatus.PENDING
        if status not in CREATABLE_STATUSES:
            raise ValidationError("status inicial deve ser 'pendente' ou 'confirmada'.")

        async with atomic(self.db):
            active = await self.active_rows(data.reservation_date)
            rules.check_capacity(len(active), len(tables), self.limit)
            rules.check_conflicts((row.table_id for row in active), tables)

            number = await self.allocate_reservation_number()
            rows = [
                Reservation(
                    table_id=table,
                    customer_name=name,
                    customer_phone=phone,
                    reservation_date=data.reservation_date,
                    time_slot=slot,
                    notes=data.notes or "",
                    status=status.value,
                    reservation_number=number,
                )
                for table in tables
            ]
            self.db.add_all(rows)
            await self._flush(tables)

        logger.info(
            "Reservation created",
            reservation_number=number,
            reservation_date=str(data.reservation_date),
            tables=tables,
        )
        return ReservationGroup(anchor=rows[0], rows=rows)

    async def update(self, reservation_id: UUID, data: ReservationUpdate) -> Tuple[Reservation, WebhookEvent]:
        """
        Partial update of one row.

        Cancelling moves the table into the historical field. Moving an active
        row, or reactivating a cancelled one, re-runs the placement checks
        with the row itself excluded.
        """
        reservation = await self.get(reservation_id)
        fields = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
        target_status = ReservationStatus(fields.pop("status", reservation.status))
        table_id = fields.pop("table_id", None)
        self._validate_fields(fields, reservation)
        if table_id is not None:
            rules.validate_tables([table_id], self.settings.total_tables)

        was_cancelled = reservation.status_enum is ReservationStatus.CANCELLED

        async with atomic(self.db):
            if target_status is ReservationStatus.CANCELLED:
                self._apply(reservation, fields)
                if table_id is not None:
                    reservation.historical_table_id = table_id
                reservation.cancel()
            elif target_status.is_active:
                if table_id is None:
                    table_id = reservation.effective_table_id
                if table_id is None:
                    raise ValidationError("Informe id_mesa para reativar a reserva.")
                target_date = fields.get("reservation_date", reservation.reservation_date)
                moving = (
                    not reservation.is_active
                    or table_id != reservation.table_id
                    or target_date != reservation.reservation_date
                )
                if moving:
                    await self._check_placement(target_date, [table_id], exclude_ids={reservation.id})
                self._apply(reservation, fields)
                reservation.table_id = table_id
                reservation.status = target_status.value
            else:
                self._apply(reservation, fields)
                if table_id is not None:
                    reservation.table_id = table_id
                reservation.status = target_status.value
            await self._flush([reservation.table_id] if reservation.table_id else [])

        event = WebhookEvent.UPDATED
        if target_status is ReservationStatus.CANCELLED and not was_cancelled:
            event = WebhookEvent.CANCELLED
        logger.info("Reservation updated", reservation_id=str(reservation.id), status=reservation.status)
        return reservation, event

    async def cancel(self, reservation_id: UUID) -> Reservation:
        """Soft-cancel one active row"""
        result = await self.db.execute(
            select(Reservation).where(
                Reservation.id == reservation_id,
                Reservation.status.in_(ACTIVE_STATUS_VALUES),
            )
        )
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFound("Reserva não encontrada ou não está ativa.")

        async with atomic(self.db):
            reservation.cancel()

        logger.info(
            "Reservation cancelled",
            reservation_id=str(reservation.id),
            table=reservation.historical_table_id,
        )
        return reservation

    async def modify_tables(
        self,
        anchor_id: UUID,
        new_tables: Sequence[int],
        fields: GroupFields,
    ) -> ReservationGroup:
        """
        Reassign the tables of a booking.

        Tables leaving the booking are deleted, tables joining it are inserted
        under the same reservation number and kept tables get the field
        updates. Asking for the current set changes no row identities.
        """
        anchor = await self._get_anchor(anchor_id)
        new_tables = rules.validate_tables(new_tables, self.settings.total_tables)
        updates = fields.model_dump(exclude_unset=True, exclude_none=True)
        status = updates.pop("status", None)
        if status is not None and not status.is_active:
            raise ValidationError(
                "Use /reservas/atualizar-status para cancelar ou finalizar uma reserva."
            )
        self._validate_fields(updates, anchor)

        members = [row for row in await self.group_rows(anchor) if row.is_active]
        current = {row.table_id: row for row in members}
        to_add, to_remove, to_keep = rules.diff_tables(current, new_tables)

        target_date = updates.get("reservation_date", anchor.reservation_date)
        date_changed = target_date != anchor.reservation_date
        if status is None:
            status = members[0].status_enum if members else ReservationStatus.PENDING

        async with atomic(self.db):
            if to_add or date_changed:
                await self._check_placement(
                    target_date,
                    new_tables if date_changed else to_add,
                    exclude_ids={row.id for row in members},
                    requested=len(new_tables),
                )

            number = anchor.reservation_number
            if number is None:
                number = await self.allocate_reservation_number()
                anchor.reservation_number = number

            base = {
                "customer_name": anchor.customer_name,
                "customer_phone": anchor.customer_phone,
                "reservation_date": anchor.reservation_date,
                "time_slot": anchor.time_slot,
                "notes": anchor.notes or "",
            }
            base.update(updates)

            for table in to_remove:
                await self.db.delete(current[table])
            await self.db.flush()

            for table in to_keep:
                row = current[table]
                self._apply(row, updates)
                row.status = status.value

            self.db.add_all(
                Reservation(table_id=table, status=status.value, reservation_number=number, **base)
                for table in sorted(to_add)
            )
            await self._flush(new_tables)

        logger.info(
            "Reservation tables modified",
            reservation_number=number,
            added=sorted(to_add),
            removed=sorted(to_remove),
            kept=sorted(to_keep),
        )

        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.reservation_number == number,
                Reservation.status.in_(ACTIVE_STATUS_VALUES),
            )
            .order_by(Reservation.created_at, Reservation.table_id)
        )
        rows = list(result.scalars().all())
        return ReservationGroup(anchor=rows[0], rows=rows)

    async def update_group_status(
        self,
        anchor_id: UUID,
        status: ReservationStatus,
    ) -> Tuple[List[Reservation], WebhookEvent]:
        """
        Change the status of every row of a booking.

        Applies to the rows in the anchor's state: the active rows when the
        anchor is active, otherwise the rows sharing the anchor's status.
        """
        anchor = await self._get_anchor(anchor_id)
        rows = [
            row for row in await self.group_rows(anchor)
            if (row.is_active if anchor.is_active else row.status == anchor.status)
        ]

        async with atomic(self.db):
            if status is ReservationStatus.CANCELLED:
                for row in rows:
                    row.cancel()
            elif status.is_active:
                reactivating = [row for row in rows if not row.is_active]
                if reactivating:
                    tables = [row.effective_table_id for row in reactivating]
                    if None in tables:
                        raise ValidationError("Reserva sem mesa registrada não pode ser reativada.")
                    await self._check_placement(anchor.reservation_date, tables, exclude_ids=set())
                    for row in reactivating:
                        row.table_id = row.effective_table_id
                for row in rows:
                    row.status = status.value
            else:
                for row in rows:
                    row.status = status.value
            await self._flush([row.table_id for row in rows if row.table_id is not None])

        logger.info(
            "Reservation group status changed",
            reservation_number=anchor.reservation_number,
            status=status.value,
            rows=len(rows),
        )
        event = WebhookEvent.CANCELLED if status is ReservationStatus.CANCELLED else WebhookEvent.UPDATED
        return rows, event

    async def finalize_past(self, today: date) -> int:
        """Mark active reservations dated before ``today`` as completed"""
        async with atomic(self.db):
            result = await self.db.execute(
                update(Reservation)
                .where(
                    Reservation.reservation_date < today,
                    Reservation.status.in_(ACTIVE_STATUS_VALUES),
                )
                .values(status=ReservationStatus.COMPLETED.value)
            )
        return result.rowcount or 0

    # Helpers

    async def _check_placement(
        self,
        day: date,
        tables: Iterable[int],
        exclude_ids: set,
        requested: Optional[int] = None,
    ) -> None:
        tables = list(tables)
        others = [row for row in await self.active_rows(day) if row.id not in exclude_ids]
        rules.check_conflicts((row.table_id for row in others), tables)
        rules.check_capacity(len(others), len(tables) if requested is None else requested, self.limit)

    async def _flush(self, tables: Iterable[int]) -> None:
        try:
            await self.db.flush()
        except IntegrityError as exc:
            logger.warning("Active table uniqueness violated", error=str(exc.orig))
            raise TableConflict(tables)

    def _validate_fields(self, fields: dict, current: Reservation) -> None:
        if "customer_name" in fields or "customer_phone" in fields:
            fields["customer_name"], fields["customer_phone"] = rules.validate_customer(
                fields.get("customer_name", current.customer_name),
                fields.get("customer_phone", current.customer_phone),
            )
        if "time_slot" in fields:
            rules.validate_time_slot(fields["time_slot"], self.settings.time_slots_list)

    @staticmethod
    def _apply(reservation: Reservation, fields: dict) -> None:
        for field, value in fields.items():
            setattr(reservation, field, value)


def parse_status_list(raw: str) -> List[str]:
    """Comma separated status filter, validated against the enumeration"""
    values = [value.strip() for value in raw.split(",") if value.strip()]
    accepted = {status.value for status in ReservationStatus}
    unknown = [value for value in values if value not in accepted]
    if unknown:
        raise ValidationError(
            "Status inválido: {}".format(", ".join(unknown)),
            details={"aceitos": sorted(accepted)},
        )
    return values
