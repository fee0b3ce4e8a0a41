from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from stationsportal.database import get_db
from stationsportal.core.auth import Caller, get_caller
from stationsportal.schemas.annual_cycle import (
    AnnualCycleItemResponse, ItemListResponse, CompletionCreate, CompletionResult,
    CycleItemStatus, CycleOverviewResponse, CompletionResponse
)
from stationsportal.services import annual_cycle

router = APIRouter(tags=["annual-cycle"])


@router.get("/items", response_model=ItemListResponse)
async def get_items(
    month: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    items = await annual_cycle.list_items(db, month)
    return ItemListResponse(items=items)


@router.post("/completions", response_model=CompletionResult)
async def complete_item(
    completion_in: CompletionCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    completion = await annual_cycle.record_completion(
        db,
        caller,
        item_id=completion_in.item_id,
        year=completion_in.year,
        status=completion_in.status,
        station_id=completion_in.station_id,
    )
    return CompletionResult(success=True, completion=completion)


@router.get("/annual-cycle", response_model=CycleOverviewResponse)
async def get_annual_cycle(
    year: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    if year is None:
        year = datetime.now(timezone.utc).year

    overview = await annual_cycle.cycle_overview(db, caller, year)
    items = []
    for item, completions in overview:
        base = AnnualCycleItemResponse.model_validate(item).model_dump(exclude={"tertial"})
        items.append(
            CycleItemStatus(
                **base,
                is_completed=bool(completions),
                completion_details=[CompletionResponse.model_validate(c) for c in completions]
            )
        )
    return CycleOverviewResponse(year=year, items=items)
