from __future__ import annotations

from datetime import date

import pytest

from stationsportal.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from stationsportal.models.task import Task
from stationsportal.services.annual_cycle import record_completion
from stationsportal.services.tasks import (
    AnnualTask,
    add_comment,
    create_task,
    delete_task,
    distribute_task,
    distribution_status,
    get_annual_task,
    get_task,
    is_task_active_in_month,
    list_comments,
    list_tasks,
    months_for_task,
    next_deadline,
    task_deadline,
    update_task,
    update_task_status,
)


def test_months_for_task():
    assert months_for_task(Task(is_recurring_monthly=True)) == list(range(1, 13))
    assert months_for_task(Task(start_month=3, end_month=5)) == [3, 4, 5]
    assert months_for_task(Task(start_month=7)) == [7]
    assert months_for_task(Task()) == []


def test_is_task_active_in_month():
    task = Task(start_month=3, end_month=5)
    assert is_task_active_in_month(task, 4)
    assert not is_task_active_in_month(task, 6)
    assert is_task_active_in_month(Task(is_recurring_monthly=True), 11)


def test_task_deadline_is_clamped_to_month_length():
    assert task_deadline(Task(year=2026, deadline_day=31), 2) == date(2026, 2, 28)
    assert task_deadline(Task(year=2024, deadline_day=31), 2) == date(2024, 2, 29)
    assert task_deadline(Task(year=2026), 4) == date(2026, 4, 25)


def test_station_task_requires_membership(run, seed, callers):
    task = run(create_task, callers.manager, title="Städa garaget", category="Operations",
               owner_type="station", station_id=seed.abisko_id, year=2026, start_month=4)
    assert task.status == "not_started"
    assert task.org_unit_id == seed.unit_id

    with pytest.raises(AuthorizationError):
        run(create_task, callers.loner, title="Städa garaget", category="Operations",
            owner_type="station", station_id=seed.abisko_id, year=2026)


def test_vo_task_only_for_own_unit(run, seed, callers):
    run(create_task, callers.chief, title="Budgetmöte", category="Finance",
        owner_type="vo", org_unit_id=seed.unit_id, year=2026)
    with pytest.raises(AuthorizationError):
        run(create_task, callers.chief, title="Budgetmöte", category="Finance",
            owner_type="vo", org_unit_id=seed.unit_id + 100, year=2026)
    with pytest.raises(AuthorizationError):
        run(create_task, callers.manager, title="Budgetmöte", category="Finance",
            owner_type="vo", org_unit_id=seed.unit_id, year=2026)


@pytest.mark.parametrize(
    "fields,field",
    [
        ({"title": "x", "category": "HR", "owner_type": "team"}, "owner_type"),
        ({"title": "x", "category": "Fun", "owner_type": "personal"}, "category"),
        ({"title": "x", "category": "HR", "owner_type": "station"}, "station_id"),
        ({"category": "HR", "owner_type": "personal"}, None),
    ],
)
def test_create_task_validation(run, callers, fields, field):
    with pytest.raises(ValidationError) as excinfo:
        run(create_task, callers.admin, **fields)
    assert excinfo.value.field == field


def test_list_tasks_month_filter(run, seed, callers):
    run(create_task, callers.manager, title="Vår", category="Safety",
        owner_type="station", station_id=seed.kiruna_id, year=2026, start_month=3, end_month=5)
    run(create_task, callers.manager, title="Månadsrapport", category="Operations",
        owner_type="station", station_id=seed.kiruna_id, year=2026, is_recurring_monthly=True)
    run(create_task, callers.manager, title="Höst", category="Safety",
        owner_type="station", station_id=seed.kiruna_id, year=2026, start_month=10)

    titles = {t.title for t in run(list_tasks, callers.manager, 2026, month=4)}
    assert titles == {"Vår", "Månadsrapport"}


def test_status_transitions_track_completion(run, seed, callers):
    task = run(create_task, callers.chief, title="Lönesamtal", category="HR",
               owner_type="personal", year=2026)

    done = run(update_task_status, callers.manager, task.id, "done")
    assert done.completed_by == seed.manager_id
    assert done.completed_at is not None

    reopened = run(update_task_status, callers.manager, task.id, "in_progress", "Väntar på underlag")
    assert reopened.completed_at is None
    assert reopened.completed_by is None
    assert reopened.notes == "Väntar på underlag"

    with pytest.raises(ValidationError):
        run(update_task_status, callers.manager, task.id, "archived")


def test_comments(run, seed, callers):
    task = run(create_task, callers.chief, title="Lönesamtal", category="HR",
               owner_type="personal", year=2026)

    comment, author = run(add_comment, callers.manager, task.id, "  Första  ")
    assert comment.content == "Första"
    assert author.id == seed.manager_id
    run(add_comment, callers.chief, task.id, "Andra")

    rows = run(list_comments, task.id)
    assert [c.content for c, _ in rows] == ["Första", "Andra"]
    assert [u.full_name for _, u in rows] == ["Sam Manager", "Vera Chief"]

    with pytest.raises(ValidationError):
        run(add_comment, callers.manager, task.id, "   ")
    with pytest.raises(NotFoundError):
        run(add_comment, callers.manager, 9999, "Hej")


def test_next_deadline():
    task = Task(year=2026, start_month=3, end_month=5, deadline_day=31)
    assert next_deadline(task, 4) == date(2026, 4, 30)
    # outside its months the task points at its first month
    assert next_deadline(task, 9) == date(2026, 3, 31)
    assert next_deadline(Task(year=2026)) is None


@pytest.fixture
def vo_task(run, seed, callers):
    return run(create_task, callers.chief, title="Brandövning", category="Safety",
               owner_type="vo", org_unit_id=seed.unit_id, year=2026, start_month=6,
               annual_cycle_item_id=seed.item_ids["Skyddsrond"])


def test_update_task_fields_and_vo_review(run, seed, callers, vo_task):
    with pytest.raises(AuthorizationError):
        run(update_task, callers.manager, vo_task.id, title="Ny titel")

    updated = run(update_task, callers.chief, vo_task.id, title="Brandövning Kiruna",
                  status="done", vo_reviewed=True, vo_comment="Bra genomfört")
    assert updated.title == "Brandövning Kiruna"
    assert updated.completed_by == seed.chief_id
    assert updated.vo_reviewed is True
    assert updated.vo_reviewed_by == seed.chief_id
    assert updated.vo_reviewed_at is not None

    cleared = run(update_task, callers.chief, vo_task.id, vo_reviewed=False)
    assert cleared.vo_reviewed_at is None
    assert cleared.vo_comment == "Bra genomfört"

    with pytest.raises(ValidationError):
        run(update_task, callers.chief, vo_task.id, category="Fun")


def test_station_staff_cannot_review(run, seed, callers):
    task = run(create_task, callers.manager, title="Städa garaget", category="Operations",
               owner_type="station", station_id=seed.kiruna_id, year=2026)
    edited = run(update_task, callers.manager, task.id, notes="Klart på fredag")
    assert edited.notes == "Klart på fredag"
    with pytest.raises(AuthorizationError):
        run(update_task, callers.manager, task.id, vo_reviewed=True)


def test_delete_task_removes_comments(run, seed, callers):
    task = run(create_task, callers.manager, title="Städa garaget", category="Operations",
               owner_type="station", station_id=seed.kiruna_id, year=2026)
    run(add_comment, callers.manager, task.id, "Påbörjat")

    with pytest.raises(AuthorizationError):
        run(delete_task, callers.loner, task.id)

    run(delete_task, callers.manager, task.id)
    with pytest.raises(NotFoundError):
        run(get_task, task.id)
    assert run(list_comments, task.id) == []


def test_distribute_vo_task(run, seed, callers, vo_task):
    created, skipped = run(distribute_task, callers.chief, vo_task.id, [{"station_id": seed.kiruna_id}])
    assert skipped == 0
    assert created[0].owner_type == "station"
    assert created[0].parent_task_id == vo_task.id
    assert created[0].annual_cycle_item_id == seed.item_ids["Skyddsrond"]

    created, skipped = run(distribute_task, callers.chief, vo_task.id, [
        {"station_id": seed.kiruna_id}, {"station_id": seed.abisko_id, "assigned_to": seed.manager_id},
    ])
    assert [t.station_id for t in created] == [seed.abisko_id]
    assert skipped == 1

    with pytest.raises(ValidationError):
        run(distribute_task, callers.chief, vo_task.id, [{"station_id": seed.abisko_id}])

    run(update_task_status, callers.manager, created[0].id, "done")
    overview = run(distribution_status, vo_task.id)
    assert overview["not_distributed"] == []
    assert overview["stats"] == {
        "total": 2, "completed": 1, "in_progress": 0, "not_started": 1, "percentage": 50,
    }


def test_distribute_rules(run, seed, callers, vo_task):
    with pytest.raises(AuthorizationError):
        run(distribute_task, callers.manager, vo_task.id, [{"station_id": seed.kiruna_id}])
    with pytest.raises(ValidationError) as excinfo:
        run(distribute_task, callers.chief, vo_task.id, [])
    assert excinfo.value.field == "targets"
    with pytest.raises(ValidationError):
        run(distribute_task, callers.chief, vo_task.id, [{"station_id": 9999}])

    station_task = run(create_task, callers.manager, title="Städa garaget", category="Operations",
                       owner_type="station", station_id=seed.kiruna_id, year=2026)
    with pytest.raises(ValidationError) as excinfo:
        run(distribute_task, callers.chief, station_task.id, [{"station_id": seed.abisko_id}])
    assert excinfo.value.field == "owner_type"


def test_annual_items_appear_as_tasks(run, seed, callers):
    run(record_completion, callers.manager, item_id=seed.item_ids["Budgetuppföljning"], year=2026)

    listed = run(list_tasks, callers.manager, 2026, month=3)
    annual = {t.title: t for t in listed if isinstance(t, AnnualTask)}
    assert set(annual) == {"Budgetuppföljning", "Medarbetarsamtal"}
    assert annual["Budgetuppföljning"].status == "completed"
    assert annual["Medarbetarsamtal"].status == "todo"
    assert annual["Medarbetarsamtal"].id == f"annual-{seed.item_ids['Medarbetarsamtal']}"

    done = run(list_tasks, callers.manager, 2026, month=3, status="completed")
    assert [t.title for t in done] == ["Budgetuppföljning"]
    assert run(list_tasks, callers.manager, 2026, month=3, owner_type="station") == []


def test_real_task_replaces_annual_item(run, seed, callers):
    run(create_task, callers.manager, title="Samtal med personalen", category="HR",
        owner_type="station", station_id=seed.kiruna_id, year=2026, start_month=3,
        annual_cycle_item_id=seed.item_ids["Medarbetarsamtal"])

    titles = [t.title for t in run(list_tasks, callers.manager, 2026, month=3)]
    assert titles == ["Budgetuppföljning", "Samtal med personalen"]

    with pytest.raises(NotFoundError):
        run(create_task, callers.manager, title="x", category="HR", owner_type="station",
            station_id=seed.kiruna_id, year=2026, annual_cycle_item_id=9999)


def test_get_annual_task(run, seed, callers):
    item_id = seed.item_ids["Skyddsrond"]
    task = run(get_annual_task, callers.manager, item_id, 2026)
    assert task.owner_type == "station"
    assert task.station_id == seed.kiruna_id
    assert task.start_month == 1

    assert run(get_annual_task, callers.chief, item_id, 2026).owner_type == "annual_cycle"
    with pytest.raises(NotFoundError):
        run(get_annual_task, callers.manager, 9999, 2026)
