#!/usr/bin/env python3
"""
Seed script to create demo reservations and a disabled webhook configuration
"""

import asyncio
from datetime import date, timedelta


async def seed_demo_data():
    """Seed demo data for development"""
    from sqlalchemy import select

    from reservas_api.database import SessionLocal, engine, Base
    from reservas_api.models.reservation import Reservation
    from reservas_api.schemas.reservation import ReservationCreate
    from reservas_api.services.reservations import ReservationService
    from reservas_api.webhooks.dispatcher import WebhookConfigRepository

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo data already exists
        result = await db.execute(
            select(Reservation).where(Reservation.customer_name == "Maria Demo").limit(1)
        )
        if result.scalar_one_or_none():
            print("Demo data already exists. Skipping...")
            return

        print("Creating webhook configuration...")
        await WebhookConfigRepository(db).save(
            endpoint_url="http://localhost:9000/webhook",
            enabled=False,
            secret_key="demo-secret",
            events=["reserva_criada", "reserva_atualizada", "reserva_cancelada"],
        )

        tomorrow = date.today() + timedelta(days=1)
        bookings = [
            ("Maria Demo", "(11) 99999-0001", "19:00", [1, 2, 3], "Aniversário"),
            ("João Demo", "(11) 99999-0002", "18:30", [10], None),
            ("Ana Demo", "(11) 99999-0003", "20:00", [49, 50], "Perto da janela"),
        ]

        service = ReservationService(db)
        for name, phone, slot, tables, notes in bookings:
            group = await service.create(
                ReservationCreate(
                    customer_name=name,
                    customer_phone=phone,
                    reservation_date=tomorrow,
                    time_slot=slot,
                    tables=tables,
                    notes=notes,
                )
            )
            print(f"Created reservation #{group.anchor.reservation_number} for {name}: tables {tables}")

    print("\n" + "=" * 50)
    print("Demo data created successfully!")
    print("=" * 50)
    print(f"\nReservations date: {tomorrow.isoformat()}")
    print("Webhook: http://localhost:9000/webhook (disabled)")
    print("=" * 50)


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
