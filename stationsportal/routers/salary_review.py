from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from stationsportal.database import get_db
from stationsportal.core.auth import Caller, get_caller
from stationsportal.schemas.salary_review import (
    CycleCreate, CycleListResponse, CycleEnvelope,
    EmployeeCreate, EmployeeListResponse, EmployeeEnvelope,
    OpenReviewResponse, ReviewDetailResponse,
    CriteriaSubmission, CriteriaListResponse, CriteriaSaveResponse,
    SkillfulSubmission, ReviewResponse, ReviewUpdate, ReviewEnvelope,
    PreparationIn, PreparationEnvelope, ProgressResponse,
)
from stationsportal.schemas.budget import (
    BudgetSave, BudgetEnvelope, BudgetOverviewResponse,
    AllocationSave, AllocationSaveResponse, AllocationResponse,
    DistributionResponse, DistributionSave, DistributionSaveResponse,
)
from stationsportal.services import salary_review, budget as budget_service

router = APIRouter(prefix="/salary-review", tags=["salary-review"])


def _allocation_response(allocation, station) -> AllocationResponse:
    return AllocationResponse(
        id=allocation.id,
        station_id=allocation.station_id,
        station_name=station.name,
        allocated_amount=allocation.allocated_amount,
        notes=allocation.notes,
    )


# Cycles
@router.get("/cycles", response_model=CycleListResponse)
async def list_cycles(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    return CycleListResponse(cycles=await salary_review.list_cycles(db))


@router.post("/cycles", response_model=CycleEnvelope, status_code=status.HTTP_201_CREATED)
async def create_cycle(
    cycle_in: CycleCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    cycle = await salary_review.create_cycle(db, caller, **cycle_in.model_dump())
    return CycleEnvelope(cycle=cycle)


# Employees
@router.get("/employees", response_model=EmployeeListResponse)
async def list_employees(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    return EmployeeListResponse(employees=await salary_review.list_employees(db))


@router.post("/employees", response_model=EmployeeEnvelope, status_code=status.HTTP_201_CREATED)
async def create_employee(
    employee_in: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    employee = await salary_review.create_employee(db, caller, **employee_in.model_dump())
    return EmployeeEnvelope(employee=employee)


@router.post("/employees/{employee_id}/review", response_model=OpenReviewResponse)
async def open_employee_review(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    review = await salary_review.open_review(db, caller, employee_id)
    if review is None:
        return OpenReviewResponse(review=None, message="No active salary review cycle")
    return OpenReviewResponse(review=review)


# Reviews
@router.get("/reviews/{review_id}", response_model=ReviewDetailResponse)
async def get_review(
    review_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    return ReviewDetailResponse(**await salary_review.review_details(db, review_id))


@router.put("/reviews/{review_id}", response_model=ReviewEnvelope)
async def update_review(
    review_id: int,
    review_in: ReviewUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    review = await salary_review.update_review(db, caller, review_id, **review_in.model_dump(exclude_unset=True))
    return ReviewEnvelope(review=review)


@router.get("/reviews/{review_id}/meeting-preparation", response_model=PreparationEnvelope)
async def get_meeting_preparation(
    review_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    return PreparationEnvelope(preparation=await salary_review.get_meeting_preparation(db, caller, review_id))


@router.put("/reviews/{review_id}/meeting-preparation", response_model=PreparationEnvelope)
async def save_meeting_preparation(
    review_id: int,
    preparation_in: PreparationIn,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    preparation = await salary_review.save_meeting_preparation(
        db, caller, review_id, preparation_in.model_dump(exclude_unset=True)
    )
    return PreparationEnvelope(preparation=preparation)


@router.get("/reviews/{review_id}/criteria", response_model=CriteriaListResponse)
async def get_criteria(
    review_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    return CriteriaListResponse(assessments=await salary_review.list_criteria_assessments(db, review_id))


@router.put("/reviews/{review_id}/criteria", response_model=CriteriaSaveResponse)
async def save_criteria(
    review_id: int,
    submission: CriteriaSubmission,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    result = await salary_review.save_criteria_assessments(
        db, review_id, [a.model_dump() for a in submission.assessments]
    )
    return CriteriaSaveResponse(success=True, **result)


@router.put("/reviews/{review_id}/particularly-skilled", response_model=ReviewResponse)
async def save_particularly_skilled(
    review_id: int,
    submission: SkillfulSubmission,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    return await salary_review.save_particularly_skillful(
        db, review_id, [a.model_dump() for a in submission.assessments]
    )


# Budgets
@router.get("/vo-budgets", response_model=BudgetOverviewResponse)
async def get_vo_budget(
    cycle_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    overview = await budget_service.get_budget(db, caller, cycle_id)
    return BudgetOverviewResponse(
        budget=overview["budget"],
        allocations=[_allocation_response(a, s) for a, s in overview["allocations"]],
        allocated_budget=overview["allocated_budget"],
        remaining_budget=overview["remaining_budget"],
    )


@router.post("/vo-budgets", response_model=BudgetEnvelope)
async def save_vo_budget(
    budget_in: BudgetSave,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    budget = await budget_service.save_budget(db, caller, budget_in.cycle_id, budget_in.total_budget)
    return BudgetEnvelope(budget=budget)


@router.post("/station-allocations", response_model=AllocationSaveResponse)
async def save_station_allocations(
    allocation_in: AllocationSave,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    saved, total = await budget_service.save_allocations(
        db, caller, allocation_in.vo_cycle_budget_id, [a.model_dump() for a in allocation_in.allocations]
    )
    return AllocationSaveResponse(
        allocations=[_allocation_response(a, s) for a, s in saved],
        total_allocated=total,
    )


# Distribution and progress
@router.get("/salary-distribution", response_model=DistributionResponse)
async def get_salary_distribution(
    station_id: Optional[int] = None,
    cycle_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    return DistributionResponse(**await budget_service.salary_distribution(db, caller, station_id, cycle_id))


@router.post("/salary-distribution", response_model=DistributionSaveResponse)
async def save_salary_distribution(
    distribution_in: DistributionSave,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    updated = await budget_service.save_distribution(
        db, caller, [a.model_dump() for a in distribution_in.allocations]
    )
    return DistributionSaveResponse(success=True, updated=updated)


@router.get("/vo-progress", response_model=ProgressResponse)
async def get_vo_progress(
    cycle_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    return ProgressResponse(**await salary_review.vo_progress(db, caller, cycle_id))
