from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from stationsportal.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from stationsportal.models.salary_review import SalaryReview
from stationsportal.services import budget as budget_service
from stationsportal.services.salary_review import (
    create_cycle,
    create_employee,
    get_meeting_preparation,
    get_or_create_review,
    get_review,
    list_criteria_assessments,
    open_review,
    save_criteria_assessments,
    save_meeting_preparation,
    save_particularly_skillful,
    update_review,
    validate_criteria_assessment,
    validate_particularly_skillful,
    vo_progress,
)


@pytest.fixture
def cycle(run, callers):
    return run(create_cycle, callers.admin, year=2026, status="active")


@pytest.fixture
def employee(run, seed, callers):
    return run(
        create_employee, callers.manager,
        first_name="Elin", last_name="Lindqvist", category="AMB", station_id=seed.kiruna_id,
    )


@pytest.mark.parametrize(
    "rating,evidence",
    [
        ("needs_development", None),
        ("good", ""),
        ("very_good", "Led the winter drill"),
        ("excellent", "Mentored three new colleagues"),
    ],
)
def test_valid_assessments(rating, evidence):
    validate_criteria_assessment(rating, evidence)


@pytest.mark.parametrize("rating", ["very_good", "excellent"])
@pytest.mark.parametrize("evidence", [None, "", "too short"])
def test_high_rating_without_evidence_is_rejected(rating, evidence):
    with pytest.raises(ValidationError) as excinfo:
        validate_criteria_assessment(rating, evidence)
    assert excinfo.value.field == "evidence"


def test_unknown_rating_is_rejected():
    with pytest.raises(ValidationError) as excinfo:
        validate_criteria_assessment("outstanding", "Plenty of concrete examples")
    assert excinfo.value.field == "rating"


def test_evidence_boundary_is_ten_characters():
    validate_criteria_assessment("excellent", "x" * 10)
    with pytest.raises(ValidationError):
        validate_criteria_assessment("excellent", "x" * 9)


def test_particularly_skillful_rule():
    validate_particularly_skillful(False, None)
    validate_particularly_skillful(True, "Handles every trauma call calmly")
    with pytest.raises(ValidationError):
        validate_particularly_skillful(True, "short")


def test_get_or_create_review_is_idempotent(run, seed, cycle, employee):
    first = run(get_or_create_review, employee.id, cycle.id, seed.manager_id)
    second = run(get_or_create_review, employee.id, cycle.id, seed.chief_id)

    assert first.id == second.id
    assert second.status == "in_progress"
    # the first opener stays the reviewing manager
    assert second.manager_id == seed.manager_id

    async def count(db):
        return (await db.execute(select(func.count(SalaryReview.id)))).scalar_one()

    assert run(count) == 1


def test_open_review_without_active_cycle(run, callers, employee):
    run(create_cycle, callers.admin, year=2027)
    assert run(open_review, callers.manager, employee.id) is None


def test_open_review_unknown_employee(run, callers, cycle):
    with pytest.raises(NotFoundError):
        run(open_review, callers.manager, 9999)


def test_open_review_uses_active_cycle(run, seed, callers, cycle, employee):
    review = run(open_review, callers.manager, employee.id)
    assert review.cycle_id == cycle.id
    assert review.employee_id == employee.id
    assert review.manager_id == seed.manager_id


def test_criteria_average_and_replace(run, callers, cycle, employee):
    review = run(open_review, callers.manager, employee.id)
    result = run(save_criteria_assessments, review.id, [
        {"criterion_key": "care", "sub_criterion_key": "care.1", "rating": "good"},
        {"criterion_key": "care", "sub_criterion_key": "care.2", "rating": "excellent",
         "evidence": "Praised by patients in two written reviews"},
    ])
    assert result == {"assessed_count": 2, "average_rating": 3.0}

    run(save_criteria_assessments, review.id, [
        {"criterion_key": "care", "sub_criterion_key": "care.1", "rating": "needs_development"},
    ])
    saved = run(list_criteria_assessments, review.id)
    assert [(a.sub_criterion_key, a.rating) for a in saved] == [("care.1", "needs_development")]


def test_criteria_rejected_batch_leaves_existing_rows(run, callers, cycle, employee):
    review = run(open_review, callers.manager, employee.id)
    run(save_criteria_assessments, review.id, [
        {"sub_criterion_key": "care.1", "rating": "good"},
    ])
    with pytest.raises(ValidationError):
        run(save_criteria_assessments, review.id, [
            {"sub_criterion_key": "care.1", "rating": "excellent", "evidence": "ok"},
        ])
    assert len(run(list_criteria_assessments, review.id)) == 1


def test_particularly_skilled_requires_all_met(run, callers, cycle, employee):
    review = run(open_review, callers.manager, employee.id)
    evidence = "Covers for colleagues and trains students"

    updated = run(save_particularly_skillful, review.id, [
        {"criterion_key": "a", "is_met": True, "evidence": evidence},
        {"criterion_key": "b", "is_met": False},
    ])
    assert updated.is_particularly_skilled is False

    updated = run(save_particularly_skillful, review.id, [
        {"criterion_key": "a", "is_met": True, "evidence": evidence},
        {"criterion_key": "b", "is_met": True, "evidence": evidence},
    ])
    assert updated.is_particularly_skilled is True


def test_create_cycle_requires_chief_or_admin(run, callers):
    with pytest.raises(AuthorizationError):
        run(create_cycle, callers.manager, year=2026)
    with pytest.raises(ValidationError):
        run(create_cycle, callers.chief, year=None)


def test_create_employee_checks_station_and_category(run, seed, callers):
    with pytest.raises(AuthorizationError):
        run(create_employee, callers.loner,
            first_name="A", last_name="B", category="SSK", station_id=seed.kiruna_id)
    with pytest.raises(ValidationError) as excinfo:
        run(create_employee, callers.manager,
            first_name="A", last_name="B", category="DOC", station_id=seed.kiruna_id)
    assert excinfo.value.field == "category"


def test_budget_upsert_keeps_one_row(run, callers, cycle):
    first = run(budget_service.save_budget, callers.chief, cycle.id, Decimal("100000"))
    second = run(budget_service.save_budget, callers.chief, cycle.id, Decimal("120000"))
    assert first.id == second.id
    assert Decimal(second.total_budget) == Decimal("120000")


def test_negative_budget_is_rejected(run, callers, cycle):
    with pytest.raises(ValidationError):
        run(budget_service.save_budget, callers.chief, cycle.id, Decimal("-1"))


def test_allocations_cannot_exceed_budget(run, seed, callers, cycle):
    budget = run(budget_service.save_budget, callers.chief, cycle.id, Decimal("1000"))
    with pytest.raises(ValidationError):
        run(budget_service.save_allocations, callers.chief, budget.id, [
            {"station_id": seed.kiruna_id, "allocated_amount": Decimal("600")},
            {"station_id": seed.abisko_id, "allocated_amount": Decimal("500")},
        ])


def test_allocations_only_by_unit_chief(run, seed, callers, cycle):
    budget = run(budget_service.save_budget, callers.chief, cycle.id, Decimal("1000"))
    with pytest.raises(AuthorizationError):
        run(budget_service.save_allocations, callers.manager, budget.id, [
            {"station_id": seed.kiruna_id, "allocated_amount": Decimal("100")},
        ])


def test_budget_overview_remaining(run, seed, callers, cycle):
    budget = run(budget_service.save_budget, callers.chief, cycle.id, Decimal("1000"))
    run(budget_service.save_allocations, callers.chief, budget.id, [
        {"station_id": seed.kiruna_id, "allocated_amount": Decimal("300")},
    ])
    saved, total = run(budget_service.save_allocations, callers.chief, budget.id, [
        {"station_id": seed.kiruna_id, "allocated_amount": Decimal("400")},
        {"station_id": seed.abisko_id, "allocated_amount": Decimal("100")},
    ])
    assert total == Decimal("500")
    assert len(saved) == 2

    overview = run(budget_service.get_budget, callers.chief)
    assert overview["allocated_budget"] == Decimal("500")
    assert overview["remaining_budget"] == Decimal("500")


def test_allocations_count_stored_shares_of_other_stations(run, seed, callers, cycle):
    budget = run(budget_service.save_budget, callers.chief, cycle.id, Decimal("100"))
    run(budget_service.save_allocations, callers.chief, budget.id, [
        {"station_id": seed.kiruna_id, "allocated_amount": Decimal("100")},
    ])

    with pytest.raises(ValidationError) as excinfo:
        run(budget_service.save_allocations, callers.chief, budget.id, [
            {"station_id": seed.abisko_id, "allocated_amount": Decimal("100")},
        ])
    assert excinfo.value.field == "allocations"

    # resubmitting Kiruna replaces its stored share
    _, total = run(budget_service.save_allocations, callers.chief, budget.id, [
        {"station_id": seed.kiruna_id, "allocated_amount": Decimal("40")},
        {"station_id": seed.abisko_id, "allocated_amount": Decimal("60")},
    ])
    assert total == Decimal("100")


def test_budget_cannot_drop_below_allocated(run, seed, callers, cycle):
    budget = run(budget_service.save_budget, callers.chief, cycle.id, Decimal("100"))
    run(budget_service.save_allocations, callers.chief, budget.id, [
        {"station_id": seed.kiruna_id, "allocated_amount": Decimal("80")},
    ])

    with pytest.raises(ValidationError) as excinfo:
        run(budget_service.save_budget, callers.chief, cycle.id, Decimal("50"))
    assert excinfo.value.field == "total_budget"

    lowered = run(budget_service.save_budget, callers.chief, cycle.id, Decimal("80"))
    assert Decimal(lowered.total_budget) == Decimal("80")


def test_update_review_stamps_completion(run, seed, callers, cycle, employee):
    review = run(open_review, callers.manager, employee.id)

    updated = run(update_review, callers.manager, review.id,
                  status="completed", final_salary=Decimal("34000"), meeting_notes="Samtal hållet")
    assert updated.status == "completed"
    assert updated.completed_at is not None
    assert Decimal(updated.final_salary) == Decimal("34000")
    assert updated.meeting_notes == "Samtal hållet"

    with pytest.raises(ValidationError) as excinfo:
        run(update_review, callers.manager, review.id, status="archived")
    assert excinfo.value.field == "status"
    with pytest.raises(AuthorizationError):
        run(update_review, callers.loner, review.id, meeting_notes="Inte min")


def test_meeting_preparation_is_one_row_per_review(run, callers, cycle, employee):
    review = run(open_review, callers.manager, employee.id)
    run(update_review, callers.manager, review.id, status="not_started")
    assert run(get_meeting_preparation, callers.manager, review.id) is None

    first = run(save_meeting_preparation, callers.manager, review.id, {"goals_achieved": "Alla mål nådda"})
    second = run(save_meeting_preparation, callers.manager, review.id, {"development_needs": "Ledarskap"})
    assert first.id == second.id
    # keys left out of a save keep their stored text
    assert second.goals_achieved == "Alla mål nådda"
    assert second.development_needs == "Ledarskap"
    assert run(get_review, review.id).status == "in_progress"


def test_meeting_preparation_is_owner_only(run, callers, cycle, employee):
    review = run(open_review, callers.manager, employee.id)
    with pytest.raises(AuthorizationError):
        run(get_meeting_preparation, callers.chief, review.id)
    with pytest.raises(AuthorizationError):
        run(save_meeting_preparation, callers.chief, review.id, {"goals_achieved": "x"})


@pytest.fixture
def rated_station(run, seed, callers, cycle):
    """Kiruna with a 3000 allocation, one employee rated 4.0 and one rated 2.0."""
    budget = run(budget_service.save_budget, callers.chief, cycle.id, Decimal("5000"))
    run(budget_service.save_allocations, callers.chief, budget.id, [
        {"station_id": seed.kiruna_id, "allocated_amount": Decimal("3000")},
    ])
    reviews = {}
    for last_name, salary, rating in [("Andersson", "30000", "excellent"), ("Berg", "32000", "good")]:
        employee = run(create_employee, callers.manager, first_name="Kim", last_name=last_name,
                       category="AMB", station_id=seed.kiruna_id, current_salary=Decimal(salary))
        review = run(open_review, callers.manager, employee.id)
        run(save_criteria_assessments, review.id, [
            {"sub_criterion_key": "care.1", "rating": rating, "evidence": "Tydliga exempel från året"},
        ])
        reviews[last_name] = review.id
    return reviews


def test_salary_distribution_follows_ratings(run, seed, callers, rated_station):
    result = run(budget_service.salary_distribution, callers.manager, seed.kiruna_id)
    assert result["station_budget"] == Decimal("3000")
    assert result["total_rating"] == Decimal("6")
    assert result["per_rating_unit"] == Decimal("500")

    andersson, berg = result["employees"]
    assert andersson["proposed_increase"] == Decimal("2000")
    assert andersson["new_salary"] == Decimal("32000")
    assert berg["proposed_increase"] == Decimal("1000")
    assert result["total_proposed"] == Decimal("3000")

    updated = run(budget_service.save_distribution, callers.manager, [
        {"review_id": rated_station["Berg"], "final_increase": Decimal("1200")},
    ])
    assert updated == 1

    berg = run(budget_service.salary_distribution, callers.manager, seed.kiruna_id)["employees"][1]
    assert berg["final_increase"] == Decimal("1200")
    assert berg["existing_proposed"] == Decimal("1200")


def test_salary_distribution_access(run, seed, callers, rated_station):
    with pytest.raises(ValidationError):
        run(budget_service.salary_distribution, callers.manager, None)
    with pytest.raises(AuthorizationError):
        run(budget_service.salary_distribution, callers.loner, seed.kiruna_id)
    with pytest.raises(AuthorizationError):
        run(budget_service.save_distribution, callers.loner, [
            {"review_id": rated_station["Berg"], "final_increase": Decimal("1")},
        ])
    with pytest.raises(NotFoundError):
        run(budget_service.save_distribution, callers.manager, [
            {"review_id": 9999, "final_increase": Decimal("1")},
        ])


def test_vo_progress_counts(run, seed, callers, rated_station):
    run(update_review, callers.manager, rated_station["Berg"], status="completed")

    progress = run(vo_progress, callers.chief)
    assert progress["total_employees"] == 2
    assert progress["employees_assessed"] == 2
    assert progress["employees_completed"] == 1
    assert [(s["station_name"], s["employee_count"]) for s in progress["stations"]] == [
        ("Abisko", 0), ("Kiruna", 2),
    ]

    with pytest.raises(NotFoundError):
        run(vo_progress, callers.admin)
