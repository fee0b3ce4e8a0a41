import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Union
from sqlalchemy import select, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from stationsportal.core.auth import Caller
from stationsportal.core.exceptions import StorageError, ValidationError
from stationsportal.models.annual_cycle import AnnualCycleItem, AnnualTaskCompletion
from stationsportal.services.organization import station_ids_for
from stationsportal.utils.upsert import dialect_insert, storage_message

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_STATUS = "completed"


def derive_tertial(month: int) -> int:
    """Third-of-year bucket: months 1-4 give 1, 5-8 give 2, anything else 3."""
    if month <= 4:
        return 1
    if month <= 8:
        return 2
    return 3


@dataclass(frozen=True)
class StationTarget:
    station_id: int


@dataclass(frozen=True)
class UserTarget:
    user_id: int


CompletionTarget = Union[StationTarget, UserTarget]


async def list_items(db: AsyncSession, month: Optional[int] = None) -> List[AnnualCycleItem]:
    query = select(AnnualCycleItem)
    if month is not None:
        query = query.where(AnnualCycleItem.month == month)
    query = query.order_by(AnnualCycleItem.month.asc().nulls_last(), AnnualCycleItem.id)

    try:
        result = await db.execute(query)
    except SQLAlchemyError as e:
        logger.error("Error fetching annual cycle items: %s", storage_message(e))
        raise StorageError(storage_message(e))
    return list(result.scalars().all())


async def resolve_target(
    db: AsyncSession,
    caller: Caller,
    station_id: Optional[int] = None
) -> CompletionTarget:
    # explicit station > caller's first station > the caller personally
    if station_id:
        return StationTarget(station_id)

    stations = await station_ids_for(db, caller.user_id)
    if stations:
        return StationTarget(stations[0])
    return UserTarget(caller.user_id)


async def record_completion(
    db: AsyncSession,
    caller: Caller,
    item_id: Optional[int],
    year: Optional[int],
    status: Optional[str] = None,
    station_id: Optional[int] = None,
) -> AnnualTaskCompletion:
    if not item_id:
        raise ValidationError("Missing required fields: itemId", field="itemId")
    if not year:
        raise ValidationError("Missing required fields: year", field="year")

    try:
        target = await resolve_target(db, caller, station_id)

        values = {
            "item_id": item_id,
            "station_id": None,
            "user_id": None,
            "year": year,
            "status": status or DEFAULT_COMPLETION_STATUS,
            "completed_by": caller.user_id,
            "completed_at": datetime.now(timezone.utc),
        }
        if isinstance(target, StationTarget):
            values["station_id"] = target.station_id
            conflict_key = [AnnualTaskCompletion.item_id, AnnualTaskCompletion.station_id, AnnualTaskCompletion.year]
        else:
            values["user_id"] = target.user_id
            conflict_key = [AnnualTaskCompletion.item_id, AnnualTaskCompletion.user_id, AnnualTaskCompletion.year]

        stmt = dialect_insert(db, AnnualTaskCompletion).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_key,
            set_={
                "status": stmt.excluded.status,
                "completed_by": stmt.excluded.completed_by,
                "completed_at": stmt.excluded.completed_at,
            },
        )
        stmt = stmt.returning(AnnualTaskCompletion).execution_options(populate_existing=True)

        result = await db.execute(stmt)
        completion = result.scalar_one()
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error saving completion for item %s: %s", item_id, storage_message(e))
        raise StorageError(storage_message(e))

    logger.info(
        "Item %s marked %s for %s (year %s) by user %s",
        item_id, completion.status, target, year, caller.user_id
    )
    return completion


async def caller_completions(
    db: AsyncSession,
    caller: Caller,
    year: int,
    item_ids: Optional[List[int]] = None
) -> List[AnnualTaskCompletion]:
    """Completed rows for ``year`` on one of the caller's stations or for the caller personally."""
    stations = await station_ids_for(db, caller.user_id)

    query = (
        select(AnnualTaskCompletion)
        .where(AnnualTaskCompletion.year == year)
        .where(AnnualTaskCompletion.status == DEFAULT_COMPLETION_STATUS)
    )
    if item_ids is not None:
        query = query.where(AnnualTaskCompletion.item_id.in_(item_ids))
    if stations:
        query = query.where(
            or_(
                AnnualTaskCompletion.station_id.in_(stations),
                AnnualTaskCompletion.user_id == caller.user_id,
            )
        )
    else:
        query = query.where(AnnualTaskCompletion.user_id == caller.user_id)

    result = await db.execute(query)
    return list(result.scalars().all())


async def cycle_overview(
    db: AsyncSession,
    caller: Caller,
    year: int
) -> List[Tuple[AnnualCycleItem, List[AnnualTaskCompletion]]]:
    """
    Every item paired with the caller's relevant completions for ``year``.
    Items are still returned, without completion state, when the
    completion lookup fails.
    """
    # completions first; a rollback expires whatever is already loaded
    try:
        completions = await caller_completions(db, caller, year)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error fetching completions: %s", storage_message(e))
        completions = []

    items = await list_items(db)

    by_item: Dict[int, List[AnnualTaskCompletion]] = {}
    for completion in completions:
        by_item.setdefault(completion.item_id, []).append(completion)

    return [(item, by_item.get(item.id, [])) for item in items]
