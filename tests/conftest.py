from __future__ import annotations

import asyncio
import os
from types import SimpleNamespace

# Settings are read at import time; the app engine is never used by tests.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from stationsportal.core.auth import Caller
from stationsportal.core.security import create_access_token
from stationsportal.database import Base, get_db
from stationsportal.main import app
from stationsportal.models.annual_cycle import AnnualCycleItem
from stationsportal.models.organization import OrganizationalUnit, Station, UserStation
from stationsportal.models.user import User
from stationsportal.utils.password import hash_password


@pytest.fixture
def session_factory(tmp_path):
    # NullPool: every session opens its connection on the running loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    asyncio.run(engine.dispose())


@pytest.fixture
def run(session_factory):
    """run(fn, *args) awaits fn(db, *args) inside a fresh session."""
    def _run(fn, *args, **kwargs):
        async def _inner():
            async with session_factory() as db:
                return await fn(db, *args, **kwargs)
        return asyncio.run(_inner())
    return _run


@pytest.fixture
def seed(run):
    async def _seed(db):
        unit = OrganizationalUnit(name="VO Norr")
        db.add(unit)
        await db.flush()

        kiruna = Station(name="Kiruna", org_unit_id=unit.id)
        abisko = Station(name="Abisko", org_unit_id=unit.id)
        db.add_all([kiruna, abisko])
        await db.flush()

        admin = User(email="admin@example.com", full_name="Ada Admin",
                     hashed_password=hash_password("admin-pass"), role="admin")
        chief = User(email="chief@example.com", full_name="Vera Chief",
                     hashed_password=hash_password("chief-pass"), role="vo_chief", org_unit_id=unit.id)
        manager = User(email="manager@example.com", full_name="Sam Manager",
                       hashed_password=hash_password("manager-pass"), role="station_manager", org_unit_id=unit.id)
        loner = User(email="loner@example.com", full_name="Lo Ner",
                     hashed_password=hash_password("loner-pass"), role="assistant_manager", org_unit_id=unit.id)
        db.add_all([admin, chief, manager, loner])
        await db.flush()

        # Kiruna is linked first, so it is the manager's default station
        db.add(UserStation(user_id=manager.id, station_id=kiruna.id))
        await db.flush()
        db.add(UserStation(user_id=manager.id, station_id=abisko.id))

        items = [
            AnnualCycleItem(title="Lönekartläggning", month=9, category="hr"),
            AnnualCycleItem(title="Budgetuppföljning", month=3, category="finance"),
            AnnualCycleItem(title="Skyddsrond", month=1, category="environment"),
            AnnualCycleItem(title="Medarbetarsamtal", month=3, category="hr"),
            AnnualCycleItem(title="Löpande", month=None, category="other"),
        ]
        db.add_all(items)
        await db.commit()

        return SimpleNamespace(
            unit_id=unit.id,
            kiruna_id=kiruna.id,
            abisko_id=abisko.id,
            admin_id=admin.id,
            chief_id=chief.id,
            manager_id=manager.id,
            loner_id=loner.id,
            item_ids={item.title: item.id for item in items},
        )

    return run(_seed)


@pytest.fixture
def callers(seed):
    return SimpleNamespace(
        admin=Caller(user_id=seed.admin_id, role="admin"),
        chief=Caller(user_id=seed.chief_id, role="vo_chief", org_unit_id=seed.unit_id),
        manager=Caller(user_id=seed.manager_id, role="station_manager", org_unit_id=seed.unit_id),
        loner=Caller(user_id=seed.loner_id, role="assistant_manager", org_unit_id=seed.unit_id),
    )


@pytest.fixture
def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def drop_table(run):
    """drop_table(name) removes a table so the next query on it fails in the store."""
    def _drop(name: str):
        async def _inner(db):
            await db.execute(text(f"DROP TABLE {name}"))
            await db.commit()
        run(_inner)
    return _drop
