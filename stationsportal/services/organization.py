import logging
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from stationsportal.models.organization import OrganizationalUnit, Station, UserStation
from stationsportal.models.user import User
from stationsportal.core.exceptions import StorageError, ValidationError, NotFoundError
from stationsportal.utils.password import hash_password
from stationsportal.utils.upsert import storage_message

logger = logging.getLogger(__name__)

ROLES = ("admin", "vo_chief", "station_manager", "assistant_manager")


async def station_ids_for(db: AsyncSession, user_id: int) -> List[int]:
    """Station memberships of a user, earliest link first."""
    result = await db.execute(
        select(UserStation.station_id)
        .where(UserStation.user_id == user_id)
        .order_by(UserStation.id)
    )
    return list(result.scalars().all())


async def has_station(db: AsyncSession, user_id: int, station_id: int) -> bool:
    result = await db.execute(
        select(UserStation.id)
        .where(UserStation.user_id == user_id)
        .where(UserStation.station_id == station_id)
    )
    return result.scalar_one_or_none() is not None


async def list_stations(db: AsyncSession):
    """All stations by name, each paired with its organizational unit (or None)."""
    try:
        result = await db.execute(
            select(Station, OrganizationalUnit)
            .outerjoin(OrganizationalUnit, OrganizationalUnit.id == Station.org_unit_id)
            .order_by(Station.name)
        )
    except SQLAlchemyError as e:
        logger.error("Error fetching stations: %s", storage_message(e))
        raise StorageError(storage_message(e))
    return result.all()


async def create_station(db: AsyncSession, name: str, org_unit_id: int, address: Optional[str] = None) -> Station:
    unit = await db.get(OrganizationalUnit, org_unit_id)
    if unit is None:
        raise NotFoundError("Organizational unit not found")

    station = Station(name=name, org_unit_id=org_unit_id, address=address)
    db.add(station)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error creating station: %s", storage_message(e))
        raise StorageError(storage_message(e))
    await db.refresh(station)
    return station


async def list_users(db: AsyncSession) -> List[User]:
    result = await db.execute(select(User).order_by(User.full_name))
    return list(result.scalars().all())


async def create_user(
    db: AsyncSession,
    email: str,
    full_name: str,
    password: str,
    role: str,
    org_unit_id: Optional[int] = None,
    station_ids: Optional[List[int]] = None,
) -> User:
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {role}", field="role")

    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none():
        raise ValidationError("Email already registered", field="email")

    user = User(
        email=email,
        full_name=full_name,
        hashed_password=hash_password(password),
        role=role,
        org_unit_id=org_unit_id,
    )
    db.add(user)
    try:
        await db.flush()
        for station_id in station_ids or []:
            db.add(UserStation(user_id=user.id, station_id=station_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error creating user %s: %s", email, storage_message(e))
        raise StorageError(storage_message(e))
    await db.refresh(user)
    logger.info("Created user %s with role %s", user.id, role)
    return user
