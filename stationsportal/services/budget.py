import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from stationsportal.core.auth import Caller
from stationsportal.core.exceptions import AuthorizationError, NotFoundError, StorageError, ValidationError
from stationsportal.models.budget import VoCycleBudget, StationBudgetAllocation
from stationsportal.models.organization import Station
from stationsportal.models.salary_review import Employee, SalaryReview, SalaryCriteriaAssessment
from stationsportal.services.organization import has_station
from stationsportal.services.salary_review import RATING_VALUES, REVIEW_ADMIN_ROLES, resolve_cycle_id
from stationsportal.utils.upsert import dialect_insert, storage_message

logger = logging.getLogger(__name__)


async def _allocations(db: AsyncSession, budget_id: int):
    result = await db.execute(
        select(StationBudgetAllocation, Station)
        .join(Station, Station.id == StationBudgetAllocation.station_id)
        .where(StationBudgetAllocation.budget_id == budget_id)
        .order_by(Station.name)
    )
    return result.all()


async def get_budget(db: AsyncSession, caller: Caller, cycle_id: Optional[int] = None) -> Dict:
    """Budget of the caller's organizational unit with its station allocations and totals."""
    if not caller.org_unit_id:
        raise NotFoundError("No VO found for user")

    cycle_id = await resolve_cycle_id(db, cycle_id)

    try:
        result = await db.execute(
            select(VoCycleBudget)
            .where(VoCycleBudget.cycle_id == cycle_id)
            .where(VoCycleBudget.org_unit_id == caller.org_unit_id)
        )
        budget = result.scalar_one_or_none()
        allocations = await _allocations(db, budget.id) if budget else []
    except SQLAlchemyError as e:
        logger.error("Error fetching budget: %s", storage_message(e))
        raise StorageError(storage_message(e))

    allocated = sum((Decimal(a.allocated_amount or 0) for a, _ in allocations), Decimal(0))
    remaining = Decimal(budget.total_budget) - allocated if budget else Decimal(0)
    return {
        "budget": budget,
        "allocations": allocations,
        "allocated_budget": allocated,
        "remaining_budget": remaining,
    }


async def _stored_amounts(db: AsyncSession, budget_id: int) -> Dict[int, Decimal]:
    result = await db.execute(
        select(StationBudgetAllocation.station_id, StationBudgetAllocation.allocated_amount)
        .where(StationBudgetAllocation.budget_id == budget_id)
    )
    return {station_id: Decimal(amount or 0) for station_id, amount in result.all()}


async def save_budget(db: AsyncSession, caller: Caller, cycle_id: Optional[int], total_budget: Optional[Decimal]) -> VoCycleBudget:
    if not cycle_id or total_budget is None:
        raise ValidationError("Missing required fields: cycle_id, total_budget")
    if total_budget < 0:
        raise ValidationError("Budget cannot be negative", field="total_budget")
    if not caller.org_unit_id:
        raise AuthorizationError("No VO found for user")

    existing = await db.execute(
        select(VoCycleBudget.id)
        .where(VoCycleBudget.cycle_id == cycle_id)
        .where(VoCycleBudget.org_unit_id == caller.org_unit_id)
    )
    existing_id = existing.scalar_one_or_none()
    if existing_id is not None:
        allocated = sum((await _stored_amounts(db, existing_id)).values(), Decimal(0))
        if Decimal(total_budget) < allocated:
            raise ValidationError(
                f"Budget {total_budget} is below the {allocated} already allocated to stations",
                field="total_budget",
            )

    stmt = dialect_insert(db, VoCycleBudget).values(
        cycle_id=cycle_id,
        org_unit_id=caller.org_unit_id,
        total_budget=total_budget,
        created_by=caller.user_id,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[VoCycleBudget.cycle_id, VoCycleBudget.org_unit_id],
        set_={"total_budget": stmt.excluded.total_budget, "created_by": stmt.excluded.created_by},
    )
    stmt = stmt.returning(VoCycleBudget).execution_options(populate_existing=True)
    try:
        result = await db.execute(stmt)
        budget = result.scalar_one()
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error creating/updating budget: %s", storage_message(e))
        raise StorageError(storage_message(e))
    return budget


async def save_allocations(db: AsyncSession, caller: Caller, budget_id: Optional[int], allocations: List[Dict]):
    """
    Upsert station shares of a unit budget. Only the unit's VO chief may
    allocate. Submitted shares plus the stored shares of stations not in
    the request may not exceed the total.
    """
    if not budget_id:
        raise ValidationError("Missing required fields: vo_cycle_budget_id, allocations")

    budget = await db.get(VoCycleBudget, budget_id)
    if budget is None:
        raise NotFoundError("Budget not found")
    if caller.role != "vo_chief" or caller.org_unit_id != budget.org_unit_id:
        raise AuthorizationError("Access denied")

    submitted = {a["station_id"] for a in allocations}
    stored = await _stored_amounts(db, budget_id)
    untouched = sum((amount for station_id, amount in stored.items() if station_id not in submitted), Decimal(0))
    total_allocated = untouched + sum((Decimal(a.get("allocated_amount") or 0) for a in allocations), Decimal(0))
    if total_allocated > Decimal(budget.total_budget):
        raise ValidationError(
            f"Total allocation {total_allocated} exceeds budget {budget.total_budget}",
            field="allocations",
        )

    try:
        for alloc in allocations:
            stmt = dialect_insert(db, StationBudgetAllocation).values(
                budget_id=budget_id,
                station_id=alloc["station_id"],
                allocated_amount=Decimal(alloc.get("allocated_amount") or 0),
                notes=alloc.get("notes") or None,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[StationBudgetAllocation.budget_id, StationBudgetAllocation.station_id],
                set_={"allocated_amount": stmt.excluded.allocated_amount, "notes": stmt.excluded.notes},
            )
            await db.execute(stmt)
        await db.commit()
        saved = await _allocations(db, budget_id)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error saving allocations for budget %s: %s", budget_id, storage_message(e))
        raise StorageError(storage_message(e))

    return saved, total_allocated


def _whole(amount: Decimal) -> Decimal:
    return amount.quantize(Decimal(1), rounding=ROUND_HALF_UP)


async def salary_distribution(
    db: AsyncSession,
    caller: Caller,
    station_id: Optional[int],
    cycle_id: Optional[int] = None
) -> Dict:
    """
    Split the station's allocated budget over its employees in proportion
    to each employee's average criteria rating in the cycle.
    """
    if not station_id:
        raise ValidationError("station_id required", field="station_id")
    if caller.role not in REVIEW_ADMIN_ROLES and not await has_station(db, caller.user_id, station_id):
        raise AuthorizationError("You do not have access to this station")
    cycle_id = await resolve_cycle_id(db, cycle_id)

    try:
        allocated = (await db.execute(
            select(StationBudgetAllocation.allocated_amount)
            .join(VoCycleBudget, VoCycleBudget.id == StationBudgetAllocation.budget_id)
            .where(StationBudgetAllocation.station_id == station_id)
            .where(VoCycleBudget.cycle_id == cycle_id)
        )).scalar_one_or_none()
        employees = (await db.execute(
            select(Employee)
            .where(Employee.station_id == station_id)
            .order_by(Employee.last_name, Employee.first_name)
        )).scalars().all()
        reviews = {
            r.employee_id: r for r in (await db.execute(
                select(SalaryReview)
                .where(SalaryReview.cycle_id == cycle_id)
                .where(SalaryReview.employee_id.in_([e.id for e in employees]))
            )).scalars().all()
        }
        ratings: Dict[int, List[int]] = {}
        rows = await db.execute(
            select(SalaryCriteriaAssessment.salary_review_id, SalaryCriteriaAssessment.rating)
            .where(SalaryCriteriaAssessment.salary_review_id.in_([r.id for r in reviews.values()]))
        )
        for review_id, rating in rows.all():
            if rating in RATING_VALUES:
                ratings.setdefault(review_id, []).append(RATING_VALUES[rating])
    except SQLAlchemyError as e:
        logger.error("Error fetching distribution data: %s", storage_message(e))
        raise StorageError(storage_message(e))

    station_budget = Decimal(allocated or 0)
    entries = []
    for employee in employees:
        review = reviews.get(employee.id)
        values = ratings.get(review.id, []) if review else []
        average = Decimal(sum(values)) / len(values) if values else Decimal(0)
        entries.append((employee, review, average.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)))

    total_rating = sum((average for _, _, average in entries), Decimal(0))
    per_rating_unit = station_budget / total_rating if total_rating else Decimal(0)

    distribution = []
    for employee, review, average in entries:
        current_salary = Decimal(employee.current_salary or 0)
        proposed = _whole(average * per_rating_unit)
        existing_final = review.final_increase if review else None
        distribution.append({
            "id": employee.id,
            "name": f"{employee.first_name} {employee.last_name}",
            "current_salary": current_salary,
            "average_rating": average,
            "review_id": review.id if review else None,
            "existing_proposed": review.proposed_increase if review else None,
            "existing_final": existing_final,
            "proposed_increase": proposed,
            "new_salary": _whole(current_salary + proposed),
            "final_increase": Decimal(existing_final) if existing_final is not None else proposed,
        })

    return {
        "station_id": station_id,
        "cycle_id": cycle_id,
        "station_budget": station_budget,
        "total_rating": total_rating,
        "per_rating_unit": _whole(per_rating_unit),
        "employees": distribution,
        "total_proposed": sum((d["proposed_increase"] for d in distribution), Decimal(0)),
        "total_final": sum((d["final_increase"] for d in distribution), Decimal(0)),
    }


async def save_distribution(db: AsyncSession, caller: Caller, allocations: List[Dict]) -> int:
    """Store manual increase adjustments; proposed defaults to the final figure."""
    reviews = []
    for alloc in allocations:
        review = await db.get(SalaryReview, alloc["review_id"])
        if review is None:
            raise NotFoundError(f"Review {alloc['review_id']} not found")
        if review.manager_id != caller.user_id and caller.role not in REVIEW_ADMIN_ROLES:
            raise AuthorizationError("You cannot update this review")
        reviews.append((review, alloc))

    for review, alloc in reviews:
        review.final_increase = alloc["final_increase"]
        proposed = alloc.get("proposed_increase")
        review.proposed_increase = proposed if proposed is not None else alloc["final_increase"]
        db.add(review)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error saving salary distribution: %s", storage_message(e))
        raise StorageError(storage_message(e))
    return len(reviews)
