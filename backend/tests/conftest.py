"""
Travel Back Office - Test Configuration and Fixtures
"""
import os
from types import SimpleNamespace
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from faker import Faker

# Set testing environment
os.environ['TESTING'] = 'true'
os.environ['ENVIRONMENT'] = 'test'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///:memory:'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['REDIS_URL'] = ''
os.environ['S3_PREFIX'] = 'test/'
os.environ['S3_BUCKET_NAME'] = 'test-bucket'
os.environ['LOG_FILE'] = ''

from app.main import app
from app.core.config import settings
from app.core.database import Base, get_db
from app.core.security import get_password_hash, create_access_token
from app.models.catalog import Rate, ServiceType, POI
from app.models.user import User, UserRole
from app.models.vehicle import VehicleType, Vehicle
from app.services.image_service import experience_image_service, vehicle_image_service
from app.services.storage_service import StorageService

fake = Faker()

TEST_DATABASE_URL = 'sqlite+aiosqlite://'
TEST_PASSWORD = 'testpassword123'


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session shared by the test and the app under test"""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Users ====================

def token_for(user: User) -> str:
    return create_access_token({
        'sub': str(user.id),
        'email': user.email,
        'role': user.role.value
    })


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    """Factory: persist a user with the given role"""
    async def _make_user(role: UserRole = UserRole.CLIENT, password: str = TEST_PASSWORD, **fields) -> User:
        user = User(
            email=fields.pop('email', None) or fake.unique.email(),
            first_name=fields.pop('first_name', None) or fake.first_name(),
            last_name=fields.pop('last_name', None) or fake.last_name(),
            hashed_password=get_password_hash(password),
            role=role,
            is_active=fields.pop('is_active', True),
            **fields
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def headers_for() -> Callable:
    """Bearer headers for any user"""
    def _headers_for(user: User) -> dict:
        return {'Authorization': f'Bearer {token_for(user)}'}

    return _headers_for


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN, email='admin@example.com')


@pytest.fixture
async def client_user(make_user) -> User:
    return await make_user(UserRole.CLIENT, email='client@example.com')


@pytest.fixture
async def employee_user(make_user) -> User:
    return await make_user(UserRole.EMPLOYEE, email='employee@example.com')


@pytest.fixture
async def manager_user(make_user) -> User:
    return await make_user(UserRole.DEPARTMENT_MANAGER, email='manager@example.com', department_id='dept-1')


@pytest.fixture
def admin_headers(admin_user: User, headers_for) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def client_headers(client_user: User, headers_for) -> dict:
    return headers_for(client_user)


@pytest.fixture
def employee_headers(employee_user: User, headers_for) -> dict:
    return headers_for(employee_user)


@pytest.fixture
def manager_headers(manager_user: User, headers_for) -> dict:
    return headers_for(manager_user)


# ==================== Catalog ====================

@pytest.fixture
async def catalog(db_session: AsyncSession) -> SimpleNamespace:
    """Minimal catalog: a rate, a service type, two POIs, a vehicle type and a vehicle"""
    rate = Rate(name='Ejecutiva', color='#2196f3')
    service_type = ServiceType(name='Aeropuerto')
    airport = POI(name='Aeropuerto de Querétaro', service_type=service_type)
    downtown = POI(name='Centro Histórico', service_type=service_type)
    vehicle_type = VehicleType(name='Van', code='van', default_capacity=12)
    vehicle = Vehicle(
        name='Van 01',
        brand='Toyota',
        model='Hiace',
        year=2022,
        license_plate='QRO-100-A',
        capacity=12,
        vehicle_type=vehicle_type,
        rate=rate,
    )
    db_session.add_all([rate, service_type, airport, downtown, vehicle_type, vehicle])
    await db_session.commit()

    return SimpleNamespace(
        rate_id=rate.id,
        service_type_id=service_type.id,
        airport_id=airport.id,
        downtown_id=downtown.id,
        vehicle_type_id=vehicle_type.id,
        vehicle_id=vehicle.id,
    )


# ==================== Storage ====================

@pytest.fixture
def mock_storage(monkeypatch) -> MagicMock:
    """S3 stand-in shared by both image services"""
    storage = MagicMock()
    storage.build_key.side_effect = StorageService.build_key

    async def upload_file(content, s3_key, content_type, metadata=None, max_retries=3):
        return {
            's3_key': s3_key,
            'bucket': settings.effective_bucket_name,
            'region': settings.AWS_REGION,
            'size_bytes': len(content),
            'etag': 'etag',
        }

    async def delete_file(s3_key, strategy=None):
        return {'strategy': strategy or 'move', 'location': StorageService.deleted_key_for(s3_key)}

    async def get_presigned_url(s3_key, expiration=None):
        return f'https://{settings.effective_bucket_name}.s3.amazonaws.com/{s3_key}?signature=test'

    storage.upload_file = AsyncMock(side_effect=upload_file)
    storage.delete_file = AsyncMock(side_effect=delete_file)
    storage.get_presigned_url = AsyncMock(side_effect=get_presigned_url)

    monkeypatch.setattr(experience_image_service, 'storage', storage)
    monkeypatch.setattr(vehicle_image_service, 'storage', storage)
    return storage
