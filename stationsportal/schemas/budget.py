from pydantic import BaseModel, Field
from decimal import Decimal
from typing import List, Optional

class BudgetSave(BaseModel):
    cycle_id: Optional[int] = None
    total_budget: Optional[Decimal] = None

class BudgetResponse(BaseModel):
    id: int
    cycle_id: int
    org_unit_id: int
    total_budget: Decimal
    created_by: Optional[int]

    model_config = {"from_attributes": True}

class AllocationIn(BaseModel):
    station_id: int
    allocated_amount: Decimal = Field(Decimal(0), ge=0)
    notes: Optional[str] = None

class AllocationSave(BaseModel):
    vo_cycle_budget_id: Optional[int] = None
    allocations: List[AllocationIn] = []

class AllocationResponse(BaseModel):
    id: int
    station_id: int
    station_name: str
    allocated_amount: Decimal
    notes: Optional[str]

class BudgetOverviewResponse(BaseModel):
    budget: Optional[BudgetResponse]
    allocations: List[AllocationResponse]
    allocated_budget: Decimal
    remaining_budget: Decimal

class BudgetEnvelope(BaseModel):
    budget: BudgetResponse

class AllocationSaveResponse(BaseModel):
    allocations: List[AllocationResponse]
    total_allocated: Decimal

class DistributionEmployee(BaseModel):
    id: int
    name: str
    current_salary: Decimal
    average_rating: Decimal
    review_id: Optional[int]
    existing_proposed: Optional[Decimal]
    existing_final: Optional[Decimal]
    proposed_increase: Decimal
    new_salary: Decimal
    final_increase: Decimal

class DistributionResponse(BaseModel):
    station_id: int
    cycle_id: int
    station_budget: Decimal
    total_rating: Decimal
    per_rating_unit: Decimal
    employees: List[DistributionEmployee]
    total_proposed: Decimal
    total_final: Decimal

class IncreaseIn(BaseModel):
    review_id: int
    final_increase: Decimal = Field(..., ge=0)
    proposed_increase: Optional[Decimal] = Field(None, ge=0)

class DistributionSave(BaseModel):
    allocations: List[IncreaseIn]

class DistributionSaveResponse(BaseModel):
    success: bool
    updated: int
