from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from stationsportal.database import get_db
from stationsportal.core.auth import Caller, get_current_admin
from stationsportal.schemas.organization import (
    StationCreate, StationResponse, StationListResponse, StationEnvelope, OrgUnitSummary
)
from stationsportal.schemas.user import UserCreate, UserListResponse, UserEnvelope
from stationsportal.services import organization


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stations", response_model=StationListResponse)
async def admin_list_stations(db: AsyncSession = Depends(get_db)):
    """
    Stations with their organizational unit. Served with service
    credentials; no per-user check.
    """
    rows = await organization.list_stations(db)
    stations = []
    for station, unit in rows:
        item = StationResponse.model_validate(station)
        item.org_unit = OrgUnitSummary.model_validate(unit) if unit else None
        stations.append(item)
    return StationListResponse(stations=stations)


@router.post("/stations", response_model=StationEnvelope, status_code=status.HTTP_201_CREATED)
async def admin_create_station(
    station_in: StationCreate,
    db: AsyncSession = Depends(get_db),
    admin: Caller = Depends(get_current_admin)
):
    station = await organization.create_station(db, station_in.name, station_in.org_unit_id, station_in.address)
    return StationEnvelope(station=station)


@router.get("/users", response_model=UserListResponse)
async def admin_list_users(
    db: AsyncSession = Depends(get_db),
    admin: Caller = Depends(get_current_admin)
):
    return UserListResponse(users=await organization.list_users(db))


@router.post("/users", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def admin_create_user(
    user_in: UserCreate,
    db: AsyncSession = Depends(get_db),
    admin: Caller = Depends(get_current_admin)
):
    user = await organization.create_user(
        db,
        email=user_in.email,
        full_name=user_in.full_name,
        password=user_in.password,
        role=user_in.role,
        org_unit_id=user_in.org_unit_id,
        station_ids=user_in.station_ids,
    )
    return UserEnvelope(user=user)
