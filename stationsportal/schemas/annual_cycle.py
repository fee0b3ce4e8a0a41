from pydantic import BaseModel, Field, computed_field
from datetime import datetime
from typing import List, Optional
from stationsportal.services.annual_cycle import derive_tertial

class AnnualCycleItemResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    month: Optional[int]
    category: str
    action_link: Optional[str]
    is_recurring: Optional[bool]
    year: Optional[int]

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def tertial(self) -> Optional[int]:
        if self.month is None:
            return None
        return derive_tertial(self.month)

class ItemListResponse(BaseModel):
    items: List[AnnualCycleItemResponse]

class CompletionCreate(BaseModel):
    # itemId/year are checked by the tracker so a missing value answers 400
    item_id: Optional[int] = Field(None, alias="itemId")
    station_id: Optional[int] = Field(None, alias="stationId")
    year: Optional[int] = None
    status: Optional[str] = None

    model_config = {"populate_by_name": True}

class CompletionResponse(BaseModel):
    id: int
    item_id: int
    station_id: Optional[int]
    user_id: Optional[int]
    year: int
    status: str
    completed_by: int
    completed_at: datetime

    model_config = {"from_attributes": True}

class CompletionResult(BaseModel):
    success: bool
    completion: CompletionResponse

class CycleItemStatus(AnnualCycleItemResponse):
    is_completed: bool
    completion_details: List[CompletionResponse]

class CycleOverviewResponse(BaseModel):
    year: int
    items: List[CycleItemStatus]
