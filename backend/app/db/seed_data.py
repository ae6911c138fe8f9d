"""
Database Seed Data Module

Baseline users and catalog records for a fresh back office. Rows that already
exist (matched by email or name) are left untouched, so the seed can be run
repeatedly.

Run with: python -m app.db.seed_data
"""
import asyncio
import os
from typing import Dict, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import session_scope, init_db
from app.core.security import get_password_hash
from app.models.catalog import Rate, ServiceType, POI
from app.models.user import User, UserRole
from app.models.vehicle import Vehicle, VehicleType, MaintenanceStatus, generate_type_code

DEFAULT_PASSWORD = os.environ.get("SEED_PASSWORD", "ChangeMe123!")


# ==================== Sample Data Constants ====================

SAMPLE_USERS = [
    {"email": "superadmin@backoffice.example.com", "first_name": "Super", "last_name": "Admin", "role": UserRole.SUPERADMIN},
    {"email": "admin@backoffice.example.com", "first_name": "Office", "last_name": "Admin", "role": UserRole.ADMIN},
]

SAMPLE_RATES = [
    {"name": "Económica", "color": "#4caf50"},
    {"name": "Ejecutiva", "color": "#2196f3"},
    {"name": "Premium", "color": "#9c27b0"},
]

SAMPLE_SERVICE_TYPES = [
    {"name": "Aeropuerto", "description": "Airport pick-ups and drop-offs"},
    {"name": "Hotel", "description": "Hotel transfers"},
    {"name": "Punto de interés", "description": "Tourist sites and venues"},
]

SAMPLE_POIS = [
    {"name": "Aeropuerto Internacional de Querétaro", "service_type": "Aeropuerto"},
    {"name": "Aeropuerto Internacional de la Ciudad de México", "service_type": "Aeropuerto"},
    {"name": "Centro Histórico de Querétaro", "service_type": "Punto de interés"},
    {"name": "San Miguel de Allende", "service_type": "Punto de interés"},
]

SAMPLE_VEHICLE_TYPES = [
    {"name": "Sedan", "default_capacity": 4, "trunk_capacity": 2, "sort_order": 0},
    {"name": "SUV", "default_capacity": 6, "trunk_capacity": 4, "sort_order": 1},
    {"name": "Van", "default_capacity": 12, "trunk_capacity": 10, "sort_order": 2},
]

SAMPLE_VEHICLES = [
    {
        "name": "Suburban 01",
        "brand": "Chevrolet",
        "model": "Suburban",
        "year": 2023,
        "license_plate": "QRO-001-A",
        "capacity": 6,
        "vehicle_type": "SUV",
        "rate": "Ejecutiva",
    },
]


async def _existing_names(db: AsyncSession, model) -> Dict[str, object]:
    result = await db.execute(select(model).where(model.exists == True))  # noqa: E712
    return {record.name.lower(): record for record in result.scalars().all()}


# ==================== Seed Functions ====================

async def seed_users(db: AsyncSession) -> List[User]:
    """Create the administrative accounts"""
    users = []
    for data in SAMPLE_USERS:
        result = await db.execute(select(User).where(User.email == data["email"]))
        if result.scalar_one_or_none():
            continue
        user = User(
            email=data["email"],
            first_name=data["first_name"],
            last_name=data["last_name"],
            hashed_password=get_password_hash(DEFAULT_PASSWORD),
            role=data["role"],
            is_active=True,
        )
        db.add(user)
        users.append(user)

    await db.flush()
    print(f"Created {len(users)} users")
    return users


async def seed_named(db: AsyncSession, model, rows: List[dict]) -> Dict[str, object]:
    """Create rows of a name-keyed catalog; returns every record by lowercase name"""
    existing = await _existing_names(db, model)
    created = 0
    for data in rows:
        if data["name"].lower() in existing:
            continue
        record = model(**data)
        db.add(record)
        existing[data["name"].lower()] = record
        created += 1

    await db.flush()
    print(f"Created {created} {model.__tablename__}")
    return existing


async def seed_pois(db: AsyncSession, service_types: Dict[str, ServiceType]) -> None:
    existing = await _existing_names(db, POI)
    created = 0
    for data in SAMPLE_POIS:
        if data["name"].lower() in existing:
            continue
        db.add(POI(name=data["name"], service_type=service_types[data["service_type"].lower()]))
        created += 1

    await db.flush()
    print(f"Created {created} pois")


async def seed_vehicle_types(db: AsyncSession) -> Dict[str, VehicleType]:
    rows = [{**data, "code": generate_type_code(data["name"])} for data in SAMPLE_VEHICLE_TYPES]
    return await seed_named(db, VehicleType, rows)


async def seed_vehicles(db: AsyncSession, vehicle_types: Dict[str, VehicleType], rates: Dict[str, Rate]) -> None:
    created = 0
    for data in SAMPLE_VEHICLES:
        result = await db.execute(
            select(func.count(Vehicle.id)).where(
                Vehicle.license_plate == data["license_plate"],
                Vehicle.exists == True  # noqa: E712
            )
        )
        if result.scalar():
            continue
        values = {k: v for k, v in data.items() if k not in ("vehicle_type", "rate")}
        db.add(Vehicle(
            **values,
            vehicle_type=vehicle_types[data["vehicle_type"].lower()],
            rate=rates[data["rate"].lower()],
            maintenance_status=MaintenanceStatus.OPERATIONAL.value,
        ))
        created += 1

    await db.flush()
    print(f"Created {created} vehicles")


# ==================== Main Seed Function ====================

async def seed_all():
    """Seed baseline data"""
    print("=" * 50)
    print("Starting database seeding...")
    print("=" * 50)

    await init_db()

    async with session_scope() as db:
        await seed_users(db)
        rates = await seed_named(db, Rate, SAMPLE_RATES)
        service_types = await seed_named(db, ServiceType, SAMPLE_SERVICE_TYPES)
        await seed_pois(db, service_types)
        vehicle_types = await seed_vehicle_types(db)
        await seed_vehicles(db, vehicle_types, rates)

    print("=" * 50)
    print("Database seeding completed successfully!")
    print("=" * 50)


def main():
    asyncio.run(seed_all())


if __name__ == "__main__":
    main()
