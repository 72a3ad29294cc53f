"""
Reservation consistency rules.

Pure functions with no database access: the daily capacity limit, table
conflict detection, the diff used when a booking's tables change, grouping of
rows into logical bookings, availability arithmetic and the floor layout.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from reservas_api.core.errors import CapacityExceeded, TableConflict, ValidationError
from reservas_api.models.reservation import ReservationStatus

# Floor layout: (first row, last row, tables per row)
FLOOR_SECTIONS = ((1, 6, 8), (7, 11, 10))
TABLE_CAPACITY = 4

MIN_PHONE_DIGITS = 8


def is_active(status) -> bool:
    """True for statuses that hold a table; unknown values are not active"""
    try:
        return ReservationStatus(status).is_active
    except ValueError:
        return False


def check_capacity(active_count: int, requested: int, limit: int) -> None:
    """Raise CapacityExceeded when adding ``requested`` rows would pass the daily limit"""
    if active_count + requested > limit:
        raise CapacityExceeded(limit=limit, active_count=active_count, requested=requested)


def can_reserve(active_count: int, requested: int, limit: int) -> bool:
    return active_count + requested <= limit


def check_conflicts(occupied: Iterable[int], requested: Iterable[int]) -> None:
    """Raise TableConflict naming every requested table already occupied"""
    clashing = set(occupied) & set(requested)
    if clashing:
        raise TableConflict(clashing)


def diff_tables(current: Iterable[int], new: Iterable[int]) -> Tuple[Set[int], Set[int], Set[int]]:
    """Split a table reassignment into (to_add, to_remove, to_keep)"""
    current_set = set(current)
    new_set = set(new)
    return new_set - current_set, current_set - new_set, current_set & new_set


def digits_only(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def validate_customer(name: Optional[str], phone: Optional[str]) -> Tuple[str, str]:
    """Normalize and validate the client identity of a booking"""
    name = (name or "").strip()
    phone = (phone or "").strip()
    if not name:
        raise ValidationError("Campo obrigatório: nome_cliente.")
    if len(digits_only(phone)) < MIN_PHONE_DIGITS:
        raise ValidationError(
            f"telefone_cliente deve conter ao menos {MIN_PHONE_DIGITS} dígitos."
        )
    return name, phone


def validate_time_slot(slot: Optional[str], slots: Sequence[str]) -> str:
    if slot not in slots:
        raise ValidationError(
            "horario_reserva inválido. Horários aceitos: {}".format(", ".join(slots))
        )
    return slot


def validate_tables(tables: Optional[Sequence[int]], total_tables: int) -> List[int]:
    """A non-empty list of distinct table numbers within the floor"""
    if not tables:
        raise ValidationError("Informe ao menos uma mesa.")
    if len(set(tables)) != len(tables):
        raise ValidationError("A lista de mesas contém números repetidos.")
    invalid = [table for table in tables if not 1 <= table <= total_tables]
    if invalid:
        raise ValidationError(
            "Mesas inexistentes: {}".format(", ".join(str(t) for t in invalid)),
            details={"mesas": invalid, "total_mesas": total_tables},
        )
    return list(tables)


@dataclass
class ReservationGroup:
    """Rows sharing one reservation number, presented as a single booking"""
    anchor: object
    rows: List[object] = field(default_factory=list)

    @property
    def anchor_id(self):
        return self.anchor.id

    @property
    def tables(self) -> List[Optional[int]]:
        return [row.effective_table_id for row in self.rows]


def group_by_reservation_number(rows: Iterable) -> List[ReservationGroup]:
    """
    Collapse rows that share a reservation number into one group.

    Groups keep first-seen order and the first row of each group is its
    anchor. Rows without a number predate grouping and stay on their own.
    """
    groups: List[ReservationGroup] = []
    by_number: Dict[int, ReservationGroup] = {}
    for row in rows:
        number = row.reservation_number
        if number is None:
            groups.append(ReservationGroup(anchor=row, rows=[row]))
            continue
        group = by_number.get(number)
        if group is None:
            group = ReservationGroup(anchor=row)
            by_number[number] = group
            groups.append(group)
        group.rows.append(row)
    return groups


@dataclass
class Availability:
    date: date
    limit: int
    occupied_count: int
    free_tables: List[int]
    time_slots: List[str]

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.occupied_count)

    @property
    def occupancy_rate(self) -> int:
        """Occupied share of the daily limit, in whole percent"""
        if self.limit <= 0:
            return 100
        return round(self.occupied_count * 100 / self.limit)

    def can_reserve(self, requested: int) -> bool:
        return can_reserve(self.occupied_count, requested, self.limit)


def compute_availability(
    day: date,
    occupied_tables: Sequence[int],
    limit: int,
    total_tables: int,
    time_slots: Sequence[str],
) -> Availability:
    """
    Availability for a date.

    The daily limit is a policy cap and the free list covers the physical
    floor, so ``len(free_tables) == total_tables - len(set(occupied_tables))``
    regardless of the limit.
    """
    occupied = set(occupied_tables)
    free = [table for table in range(1, total_tables + 1) if table not in occupied]
    return Availability(
        date=day,
        limit=limit,
        occupied_count=len(occupied_tables),
        free_tables=free,
        time_slots=list(time_slots),
    )


def floor_layout() -> List[dict]:
    """Physical tables numbered row by row: rows 1-6 hold 8 tables, rows 7-11 hold 10"""
    layout = []
    table_id = 1
    for first_row, last_row, per_row in FLOOR_SECTIONS:
        for row in range(first_row, last_row + 1):
            for _ in range(per_row):
                layout.append({"id": table_id, "fileira": row, "capacidade": TABLE_CAPACITY})
                table_id += 1
    return layout
