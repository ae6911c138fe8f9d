"""
Unit Tests for the baseline seed
"""
from sqlalchemy import select, func

from app.db import seed_data
from app.models.catalog import Rate, POI, ServiceType
from app.models.user import User, UserRole
from app.models.vehicle import Vehicle, VehicleType


async def run_seed(db_session):
    await seed_data.seed_users(db_session)
    rates = await seed_data.seed_named(db_session, Rate, seed_data.SAMPLE_RATES)
    service_types = await seed_data.seed_named(db_session, ServiceType, seed_data.SAMPLE_SERVICE_TYPES)
    await seed_data.seed_pois(db_session, service_types)
    vehicle_types = await seed_data.seed_vehicle_types(db_session)
    await seed_data.seed_vehicles(db_session, vehicle_types, rates)
    await db_session.commit()


async def count(db_session, model) -> int:
    return (await db_session.execute(select(func.count(model.id)))).scalar()


class TestSeed:

    async def test_creates_baseline(self, db_session):
        await run_seed(db_session)

        roles = (await db_session.execute(select(User.role))).scalars().all()
        assert sorted(role.value for role in roles) == ["admin", "superadmin"]
        assert await count(db_session, Rate) == len(seed_data.SAMPLE_RATES)
        assert await count(db_session, POI) == len(seed_data.SAMPLE_POIS)

        codes = (await db_session.execute(select(VehicleType.code))).scalars().all()
        assert sorted(codes) == ["sedan", "suv", "van"]

        vehicle = (await db_session.execute(select(Vehicle))).scalar_one()
        assert vehicle.vehicle_type.code == "suv"
        assert vehicle.rate.name == "Ejecutiva"

    async def test_is_idempotent(self, db_session):
        await run_seed(db_session)
        await run_seed(db_session)

        assert await count(db_session, User) == len(seed_data.SAMPLE_USERS)
        assert await count(db_session, ServiceType) == len(seed_data.SAMPLE_SERVICE_TYPES)
        assert await count(db_session, Vehicle) == len(seed_data.SAMPLE_VEHICLES)

    async def test_keeps_existing_records(self, db_session, make_user):
        await make_user(UserRole.EMPLOYEE, email="admin@backoffice.example.com")
        db_session.add(Rate(name="premium", color="#fff"))
        await db_session.commit()

        await run_seed(db_session)

        user = (await db_session.execute(
            select(User).where(User.email == "admin@backoffice.example.com")
        )).scalar_one()
        assert user.role == UserRole.EMPLOYEE
        assert await count(db_session, Rate) == len(seed_data.SAMPLE_RATES)
