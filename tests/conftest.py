"""Shared pytest fixtures for unit, engine and API tests."""

import os
import uuid
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient

from ambulance_billing import models  # noqa: F401
from ambulance_billing.config import settings
from ambulance_billing.core.security import create_access_token, get_password_hash
from ambulance_billing.database import Base, build_engine, build_session_factory, get_db
from ambulance_billing.main import app
from ambulance_billing.models import Ambulance, AmbulanceOperatorAssignment, Region, User, UserRole
from ambulance_billing.schemas.auth import Principal

PASSWORD = "Secret123!"
_password_hash = None


def _hashed_password() -> str:
    global _password_hash
    if _password_hash is None:
        _password_hash = get_password_hash(PASSWORD)
    return _password_hash


def bill_fields(**overrides) -> dict:
    """Valid bill fields; override any of them per test."""
    fields = {
        "title": "Diesel refill",
        "vendor": "Highway Fuels",
        "amount": Decimal("1500.50"),
        "currency": "INR",
        "invoice_number": "INV-001",
        "invoice_date": date(2026, 10, 1),
        "description": "Full tank before night shift",
    }
    fields.update(overrides)
    return fields


def payment_fields(**overrides) -> dict:
    fields = {
        "reference_no": "UTR123456",
        "payment_date": date(2026, 10, 10),
        "amount_paid": Decimal("1500.50"),
        "payment_mode": "NEFT",
        "notes": None,
    }
    fields.update(overrides)
    return fields


def auth_headers(user_id: str, role: UserRole) -> dict:
    token = create_access_token(user_id, role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def engine(tmp_path):
    """Fresh schema per test: a temporary SQLite file, or TEST_DATABASE_URL when set."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}"
    test_engine = build_engine(url)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def unique_suffix() -> str:
    """Unique suffix for test data to avoid collisions."""
    return str(uuid.uuid4())[:8]


@pytest.fixture
async def world(session_factory):
    """
    One region with two ambulances and a user per role.

    AMB-1 is assigned to ``operator``; AMB-2 has no operators.
    ``other_operator`` is an operator with no assignments.
    """
    async with session_factory() as session:
        region = Region(name="North Zone", city="Pune", state="Maharashtra")
        session.add(region)
        await session.flush()

        ambulance = Ambulance(name="Alpha", code="AMB-1", region_id=region.id)
        spare = Ambulance(name="Bravo", code="AMB-2", region_id=region.id)
        session.add_all([ambulance, spare])

        users = {}
        for key, role in (
            ("admin", UserRole.ADMIN),
            ("operator", UserRole.OPERATOR),
            ("other_operator", UserRole.OPERATOR),
            ("level1", UserRole.LEVEL1),
            ("level2", UserRole.LEVEL2),
            ("accounts", UserRole.ACCOUNTS),
        ):
            users[key] = User(
                name=key.replace("_", " ").title(),
                email=f"{key}@example.com",
                hashed_password=_hashed_password(),
                role=role,
                is_active=True,
            )
        session.add_all(users.values())
        await session.flush()

        session.add(AmbulanceOperatorAssignment(ambulance_id=ambulance.id, operator_id=users["operator"].id))
        await session.commit()

        principals = {key: Principal.model_validate(user) for key, user in users.items()}
        headers = {key: auth_headers(user.id, user.role) for key, user in users.items()}
        return SimpleNamespace(
            region=region,
            ambulance=ambulance,
            spare=spare,
            users=users,
            principals=principals,
            headers=headers,
            **principals,
        )


@pytest.fixture
def api_base() -> str:
    """Base URL for API requests."""
    return f"http://test{settings.API_V1_PREFIX}"


@pytest.fixture
async def async_client(session_factory):
    """Async HTTP client bound to the app with get_db pointed at the test database."""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    client = AsyncClient(transport=transport, base_url="http://test", timeout=30.0)
    yield client
    await client.aclose()
    app.dependency_overrides.clear()
