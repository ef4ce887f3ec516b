"""
Test fixtures and configuration for pytest.
"""

import asyncio
import os
import sys
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Deterministic settings before anything reads get_settings()
os.environ.setdefault("APP_MODE", "dev")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-band-catalog-tests-0123456789")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret-for-band-catalog-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_band_catalog.db")

from db.database import Base, enable_sqlite_foreign_keys
from models.band import Band
from models.country import Country
from models.event import Event, EventType
from models.user import User
from services.password_hashing import PasswordHasher
from services.versioned_store import VersionedStore


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory bound to a fresh file-backed SQLite database.

    Race tests open one session per competing writer from this factory.
    """
    import models  # noqa: F401  (register tables)

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="session")
def password_hasher() -> PasswordHasher:
    return PasswordHasher()


# ============== Test Data Fixtures ==============


@pytest_asyncio.fixture
async def sample_country(db_session: AsyncSession) -> Country:
    """Create a sample country for tests."""
    country = Country(name="United Kingdom", code="GBR", alpha2_code="GB", region="Europe")
    db_session.add(country)
    await db_session.commit()
    await db_session.refresh(country)
    return country


@pytest_asyncio.fixture
async def sample_band(db_session: AsyncSession, sample_country: Country) -> Band:
    """Create a live band at version 1."""
    band = Band(
        name="The Beatles",
        genre="Rock",
        year_formed=1960,
        active=False,
        website="https://www.thebeatles.com",
        country_id=sample_country.id,
    )
    db_session.add(band)
    await db_session.commit()
    await db_session.refresh(band)
    return band


@pytest_asyncio.fixture
async def other_band(db_session: AsyncSession) -> Band:
    band = Band(name="The Rolling Stones", genre="Rock", year_formed=1962)
    db_session.add(band)
    await db_session.commit()
    await db_session.refresh(band)
    return band


@pytest_asyncio.fixture
async def sample_event(db_session: AsyncSession, sample_band: Band) -> Event:
    """Create a live event at version 1."""
    from datetime import datetime, timezone

    event = Event(
        title="Live at Shea Stadium",
        description="Concert in New York",
        date=datetime(1965, 8, 15, 20, 0, tzinfo=timezone.utc),
        event_type=EventType.CONCERT,
        venue="Shea Stadium",
        city="New York",
        band_id=sample_band.id,
    )
    db_session.add(event)
    await db_session.commit()
    await db_session.refresh(event)
    return event


@pytest_asyncio.fixture
async def sample_user(db_session: AsyncSession, password_hasher: PasswordHasher) -> User:
    """Create a registered user without an active session (password: 'correct-horse')."""
    user = User(
        username="alice",
        email="alice@example.com",
        password_hash=password_hasher.hash("correct-horse"),
        first_name="Alice",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


# ============== Client Fixtures ==============


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Test client for the error-mapping seam, with catalog and auth routes attached."""
    from fastapi import APIRouter, Depends

    from api.dependencies import get_band_service, get_current_user, get_current_user_optional
    from db.database import get_db
    from main import create_app
    from services.catalog import CatalogService

    app = create_app()
    routes = APIRouter(prefix="/api")

    @routes.patch("/bands/{band_id}")
    async def patch_band(
        band_id: int,
        payload: dict,
        service: CatalogService = Depends(get_band_service),
    ):
        band = await service.update(band_id, payload)
        return {"id": band.id, "name": band.name, "version": band.version}

    @routes.delete("/bands/{band_id}")
    async def delete_band(band_id: int, service: CatalogService = Depends(get_band_service)):
        result = await service.remove(band_id)
        return {"id": result.entity_id, "already_deleted": result.already_deleted}

    @routes.get("/me")
    async def me(claims: dict = Depends(get_current_user)):
        return {"id": claims["sub"], "username": claims["username"]}

    @routes.get("/whoami")
    async def whoami(claims: Optional[dict] = Depends(get_current_user_optional)):
        return {"id": claims["sub"] if claims else None}

    app.include_router(routes)

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============== Concurrency Fixtures ==============


class ReadGate:
    """Lets waiters through only once every party has arrived."""

    def __init__(self, parties: int):
        self.parties = parties
        self.arrived = 0
        self.opened = asyncio.Event()

    async def arrive(self) -> None:
        self.arrived += 1
        if self.arrived >= self.parties:
            self.opened.set()
        await asyncio.wait_for(self.opened.wait(), timeout=5)


class GatedStore(VersionedStore):
    """Store whose first read blocks until every competing store has read."""

    def __init__(self, db, model, gate: ReadGate):
        super().__init__(db, model)
        self.gate = gate
        self._first_read = True

    async def find(self, entity_id, include_deleted=False):
        record = await super().find(entity_id, include_deleted=include_deleted)
        if self._first_read:
            self._first_read = False
            await self.gate.arrive()
        return record


@pytest.fixture
def gated_store():
    """
    Factory for stores that race in lockstep: two writers built from it both
    finish their initial read before either attempts its conditional write.
    """
    gate = ReadGate(parties=2)

    def make(db, model) -> GatedStore:
        return GatedStore(db, model, gate)

    return make
