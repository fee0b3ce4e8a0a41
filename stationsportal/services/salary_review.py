import logging
from typing import Dict, List, Optional
from datetime import datetime, timezone
from sqlalchemy import select, delete, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from stationsportal.core.auth import Caller
from stationsportal.core.exceptions import AuthorizationError, NotFoundError, StorageError, ValidationError
from stationsportal.models.salary_review import (
    SalaryReviewCycle, Employee, SalaryReview,
    SalaryCriteriaAssessment, ParticularlySkillfulAssessment, SalaryMeetingPreparation,
)
from stationsportal.models.organization import Station
from stationsportal.services.organization import has_station
from stationsportal.utils.upsert import dialect_insert, storage_message

logger = logging.getLogger(__name__)

RATING_VALUES = {
    "needs_development": 1,
    "good": 2,
    "very_good": 3,
    "excellent": 4,
}
HIGH_RATINGS = ("very_good", "excellent")
EVIDENCE_MIN_LENGTH = 10
EMPLOYEE_CATEGORIES = ("VUB", "SSK", "AMB")
CYCLE_STATUSES = ("planning", "active", "completed")
REVIEW_STATUSES = ("not_started", "in_progress", "completed")
REVIEW_FIELDS = (
    "status", "is_particularly_skilled", "proposed_salary", "final_salary", "meeting_date", "meeting_notes",
)
PREPARATION_FIELDS = (
    "previous_agreements", "goals_achieved", "contribution_summary", "salary_statistics",
    "development_needs", "strengths_summary", "ai_generated_summary",
)
REVIEW_ADMIN_ROLES = ("admin", "vo_chief")


def validate_criteria_assessment(rating: Optional[str], evidence: Optional[str]) -> None:
    """
    High ratings must be backed by concrete examples: for very_good and
    excellent, evidence of at least EVIDENCE_MIN_LENGTH characters.
    """
    if rating not in RATING_VALUES:
        raise ValidationError("A rating must be chosen", field="rating")
    if rating in HIGH_RATINGS and (not evidence or len(evidence) < EVIDENCE_MIN_LENGTH):
        raise ValidationError(
            f"Ratings 'very_good' and 'excellent' require concrete examples "
            f"(at least {EVIDENCE_MIN_LENGTH} characters)",
            field="evidence",
        )


def validate_particularly_skillful(is_met: bool, evidence: Optional[str]) -> None:
    if is_met and (not evidence or len(evidence) < EVIDENCE_MIN_LENGTH):
        raise ValidationError(
            f"A met criterion requires concrete examples (at least {EVIDENCE_MIN_LENGTH} characters)",
            field="evidence",
        )


async def active_cycle(db: AsyncSession) -> Optional[SalaryReviewCycle]:
    result = await db.execute(
        select(SalaryReviewCycle)
        .where(SalaryReviewCycle.status == "active")
        .order_by(SalaryReviewCycle.year.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_or_create_review(
    db: AsyncSession,
    employee_id: int,
    cycle_id: int,
    manager_id: int
) -> SalaryReview:
    # single INSERT .. ON CONFLICT DO NOTHING keeps concurrent openers on one row
    stmt = dialect_insert(db, SalaryReview).values(
        cycle_id=cycle_id,
        employee_id=employee_id,
        manager_id=manager_id,
        status="in_progress",
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=[SalaryReview.employee_id, SalaryReview.cycle_id])
    try:
        await db.execute(stmt)
        await db.commit()
        result = await db.execute(
            select(SalaryReview)
            .where(SalaryReview.employee_id == employee_id)
            .where(SalaryReview.cycle_id == cycle_id)
        )
        review = result.scalar_one()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error opening review for employee %s: %s", employee_id, storage_message(e))
        raise StorageError(storage_message(e))
    return review


async def open_review(db: AsyncSession, caller: Caller, employee_id: int) -> Optional[SalaryReview]:
    """
    Review of ``employee_id`` in the active cycle, created on first access.
    None when no cycle is active.
    """
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")

    cycle = await active_cycle(db)
    if cycle is None:
        logger.info("No active salary review cycle; review for employee %s not opened", employee_id)
        return None
    return await get_or_create_review(db, employee_id, cycle.id, caller.user_id)


async def get_review(db: AsyncSession, review_id: int) -> SalaryReview:
    review = await db.get(SalaryReview, review_id)
    if review is None:
        raise NotFoundError("Review not found")
    return review


async def review_details(db: AsyncSession, review_id: int) -> Dict:
    review = await get_review(db, review_id)
    criteria = await list_criteria_assessments(db, review_id)
    skillful = await db.execute(
        select(ParticularlySkillfulAssessment)
        .where(ParticularlySkillfulAssessment.salary_review_id == review_id)
        .order_by(ParticularlySkillfulAssessment.criterion_key)
    )
    return {
        "review": review,
        "employee": await db.get(Employee, review.employee_id),
        "cycle": await db.get(SalaryReviewCycle, review.cycle_id),
        "salary_criteria_assessments": criteria,
        "particularly_skilled_assessments": list(skillful.scalars().all()),
        "meeting_preparation": await _preparation(db, review_id),
    }


async def list_criteria_assessments(db: AsyncSession, review_id: int) -> List[SalaryCriteriaAssessment]:
    result = await db.execute(
        select(SalaryCriteriaAssessment)
        .where(SalaryCriteriaAssessment.salary_review_id == review_id)
        .order_by(SalaryCriteriaAssessment.sub_criterion_key)
    )
    return list(result.scalars().all())


async def save_criteria_assessments(db: AsyncSession, review_id: int, assessments: List[Dict]) -> Dict:
    """Replace the review's criteria assessments; returns count and average rating."""
    await get_review(db, review_id)

    for assessment in assessments:
        if not assessment.get("sub_criterion_key") or not assessment.get("rating"):
            raise ValidationError("Missing required fields: sub_criterion_key, rating")
        validate_criteria_assessment(assessment["rating"], assessment.get("evidence"))

    try:
        await db.execute(
            delete(SalaryCriteriaAssessment)
            .where(SalaryCriteriaAssessment.salary_review_id == review_id)
        )
        for assessment in assessments:
            db.add(SalaryCriteriaAssessment(
                salary_review_id=review_id,
                criterion_key=assessment.get("criterion_key"),
                sub_criterion_key=assessment["sub_criterion_key"],
                rating=assessment["rating"],
                evidence=assessment.get("evidence") or None,
                notes=assessment.get("notes") or None,
            ))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error saving assessments for review %s: %s", review_id, storage_message(e))
        raise StorageError(f"Failed to save assessments: {storage_message(e)}")

    average = None
    if assessments:
        average = sum(RATING_VALUES[a["rating"]] for a in assessments) / len(assessments)
    return {"assessed_count": len(assessments), "average_rating": average}


async def save_particularly_skillful(db: AsyncSession, review_id: int, assessments: List[Dict]) -> SalaryReview:
    review = await get_review(db, review_id)

    for assessment in assessments:
        if not assessment.get("criterion_key"):
            raise ValidationError("Missing required field: criterion_key", field="criterion_key")
        validate_particularly_skillful(bool(assessment.get("is_met")), assessment.get("evidence"))

    try:
        await db.execute(
            delete(ParticularlySkillfulAssessment)
            .where(ParticularlySkillfulAssessment.salary_review_id == review_id)
        )
        for assessment in assessments:
            db.add(ParticularlySkillfulAssessment(
                salary_review_id=review_id,
                criterion_key=assessment["criterion_key"],
                is_met=bool(assessment.get("is_met")),
                evidence=assessment.get("evidence") or None,
                notes=assessment.get("notes") or None,
            ))
        review.is_particularly_skilled = bool(assessments) and all(a.get("is_met") for a in assessments)
        db.add(review)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error saving skill assessments for review %s: %s", review_id, storage_message(e))
        raise StorageError(storage_message(e))
    await db.refresh(review)
    return review


async def list_cycles(db: AsyncSession) -> List[SalaryReviewCycle]:
    try:
        result = await db.execute(select(SalaryReviewCycle).order_by(SalaryReviewCycle.year.desc()))
    except SQLAlchemyError as e:
        logger.error("Error fetching cycles: %s", storage_message(e))
        raise StorageError(storage_message(e))
    return list(result.scalars().all())


async def create_cycle(db: AsyncSession, caller: Caller, **fields) -> SalaryReviewCycle:
    if caller.role not in ("admin", "vo_chief"):
        raise AuthorizationError("Only admins and VO chiefs can create cycles")
    if not fields.get("year"):
        raise ValidationError("Year is required", field="year")
    status = fields.get("status") or "planning"
    if status not in CYCLE_STATUSES:
        raise ValidationError(f"Invalid status: {status}", field="status")

    cycle = SalaryReviewCycle(
        year=fields["year"],
        description=fields.get("description"),
        status=status,
        start_date=fields.get("start_date"),
        end_date=fields.get("end_date"),
        created_by=caller.user_id,
    )
    db.add(cycle)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error creating cycle: %s", storage_message(e))
        raise StorageError(storage_message(e))
    await db.refresh(cycle)
    return cycle


async def list_employees(db: AsyncSession) -> List[Employee]:
    try:
        result = await db.execute(select(Employee).order_by(Employee.last_name, Employee.first_name))
    except SQLAlchemyError as e:
        logger.error("Error fetching employees: %s", storage_message(e))
        raise StorageError(storage_message(e))
    return list(result.scalars().all())


async def create_employee(db: AsyncSession, caller: Caller, **fields) -> Employee:
    if not all(fields.get(k) for k in ("first_name", "last_name", "category", "station_id")):
        raise ValidationError("Missing required fields: first_name, last_name, category, station_id")
    if fields["category"] not in EMPLOYEE_CATEGORIES:
        raise ValidationError("Invalid category. Must be VUB, SSK, or AMB", field="category")
    if not await has_station(db, caller.user_id, fields["station_id"]):
        raise AuthorizationError("You do not have access to this station")

    employee = Employee(
        employee_number=fields.get("employee_number"),
        first_name=fields["first_name"],
        last_name=fields["last_name"],
        email=fields.get("email") or None,
        category=fields["category"],
        station_id=fields["station_id"],
        manager_id=caller.user_id,
        employment_date=fields.get("employment_date"),
        current_salary=fields.get("current_salary"),
    )
    db.add(employee)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error creating employee: %s", storage_message(e))
        raise StorageError(storage_message(e))
    await db.refresh(employee)
    return employee


async def update_review(db: AsyncSession, caller: Caller, review_id: int, **fields) -> SalaryReview:
    """
    Apply the given review fields. Only keys present in ``fields`` change;
    moving to ``completed`` stamps completed_at.
    """
    review = await get_review(db, review_id)
    if review.manager_id != caller.user_id and caller.role not in REVIEW_ADMIN_ROLES:
        raise AuthorizationError("You cannot update this review")

    status = fields.get("status")
    if "status" in fields and status not in REVIEW_STATUSES:
        raise ValidationError(f"Invalid status: {status}", field="status")

    for key in REVIEW_FIELDS:
        if key in fields:
            setattr(review, key, fields[key])
    if status == "completed":
        review.completed_at = datetime.now(timezone.utc)

    db.add(review)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error updating review %s: %s", review_id, storage_message(e))
        raise StorageError(storage_message(e))
    await db.refresh(review)
    return review


async def _owned_review(db: AsyncSession, caller: Caller, review_id: int) -> SalaryReview:
    review = await get_review(db, review_id)
    if review.manager_id != caller.user_id:
        raise AuthorizationError("Forbidden - you do not own this review")
    return review


async def _preparation(db: AsyncSession, review_id: int) -> Optional[SalaryMeetingPreparation]:
    result = await db.execute(
        select(SalaryMeetingPreparation)
        .where(SalaryMeetingPreparation.salary_review_id == review_id)
    )
    return result.scalar_one_or_none()


async def get_meeting_preparation(db: AsyncSession, caller: Caller, review_id: int) -> Optional[SalaryMeetingPreparation]:
    await _owned_review(db, caller, review_id)
    try:
        return await _preparation(db, review_id)
    except SQLAlchemyError as e:
        logger.error("Error fetching meeting preparation: %s", storage_message(e))
        raise StorageError(storage_message(e))


async def save_meeting_preparation(
    db: AsyncSession,
    caller: Caller,
    review_id: int,
    fields: Dict
) -> SalaryMeetingPreparation:
    """Upsert the review's single preparation row; an unstarted review moves to in_progress."""
    await _owned_review(db, caller, review_id)

    values = {key: fields[key] for key in PREPARATION_FIELDS if key in fields}
    stmt = dialect_insert(db, SalaryMeetingPreparation).values(salary_review_id=review_id, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[SalaryMeetingPreparation.salary_review_id],
        set_={**{key: getattr(stmt.excluded, key) for key in values}, "updated_at": func.now()},
    )
    stmt = stmt.returning(SalaryMeetingPreparation).execution_options(populate_existing=True)
    try:
        result = await db.execute(stmt)
        preparation = result.scalar_one()
        await db.execute(
            update(SalaryReview)
            .where(SalaryReview.id == review_id)
            .where(SalaryReview.status == "not_started")
            .values(status="in_progress")
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error saving meeting preparation for review %s: %s", review_id, storage_message(e))
        raise StorageError(storage_message(e))
    return preparation


async def resolve_cycle_id(db: AsyncSession, cycle_id: Optional[int] = None) -> int:
    if cycle_id:
        return cycle_id
    cycle = await active_cycle(db)
    if cycle is None:
        raise NotFoundError("No active cycle")
    return cycle.id


async def vo_progress(db: AsyncSession, caller: Caller, cycle_id: Optional[int] = None) -> Dict:
    """Per-station counts of employees, assessed reviews and completed reviews in the caller's unit."""
    if not caller.org_unit_id:
        raise NotFoundError("No VO found for user")
    cycle_id = await resolve_cycle_id(db, cycle_id)

    try:
        stations = (await db.execute(
            select(Station).where(Station.org_unit_id == caller.org_unit_id).order_by(Station.name)
        )).scalars().all()

        progress = []
        for station in stations:
            employee_count = (await db.execute(
                select(func.count(Employee.id)).where(Employee.station_id == station.id)
            )).scalar_one()
            assessed_count = (await db.execute(
                select(func.count(func.distinct(SalaryReview.id)))
                .join(Employee, Employee.id == SalaryReview.employee_id)
                .join(SalaryCriteriaAssessment, SalaryCriteriaAssessment.salary_review_id == SalaryReview.id)
                .where(Employee.station_id == station.id)
                .where(SalaryReview.cycle_id == cycle_id)
            )).scalar_one()
            completed_count = (await db.execute(
                select(func.count(SalaryReview.id))
                .join(Employee, Employee.id == SalaryReview.employee_id)
                .where(Employee.station_id == station.id)
                .where(SalaryReview.cycle_id == cycle_id)
                .where(SalaryReview.status == "completed")
            )).scalar_one()
            progress.append({
                "station_id": station.id,
                "station_name": station.name,
                "employee_count": employee_count,
                "assessed_count": assessed_count,
                "completed_count": completed_count,
            })
    except SQLAlchemyError as e:
        logger.error("Error fetching progress: %s", storage_message(e))
        raise StorageError(storage_message(e))

    return {
        "cycle_id": cycle_id,
        "total_employees": sum(s["employee_count"] for s in progress),
        "employees_assessed": sum(s["assessed_count"] for s in progress),
        "employees_completed": sum(s["completed_count"] for s in progress),
        "stations": progress,
    }
