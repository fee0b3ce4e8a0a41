from pydantic import BaseModel, Field
from typing import List, Optional

class OrgUnitSummary(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}

class StationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    org_unit_id: int
    address: Optional[str] = None

class StationResponse(BaseModel):
    id: int
    name: str
    org_unit_id: int
    address: Optional[str]
    org_unit: Optional[OrgUnitSummary] = None

    model_config = {"from_attributes": True}

class StationListResponse(BaseModel):
    stations: List[StationResponse]

class StationEnvelope(BaseModel):
    station: StationResponse

class StationSummary(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}
