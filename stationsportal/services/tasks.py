import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Union
from sqlalchemy import select, or_, update, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from stationsportal.core.auth import Caller
from stationsportal.core.exceptions import AuthorizationError, NotFoundError, StorageError, ValidationError
from stationsportal.models.annual_cycle import AnnualCycleItem, AnnualTaskCompletion
from stationsportal.models.organization import Station
from stationsportal.models.task import Task, TaskComment
from stationsportal.models.user import User
from stationsportal.services.annual_cycle import caller_completions, list_items
from stationsportal.services.organization import station_ids_for, has_station
from stationsportal.utils.upsert import storage_message

logger = logging.getLogger(__name__)

TASK_CATEGORIES = ("HR", "Finance", "Safety", "Operations")
TASK_STATUSES = ("not_started", "in_progress", "done", "reported")
OWNER_TYPES = ("vo", "station", "personal")
STATION_ROLES = ("station_manager", "assistant_manager")
REVIEWER_ROLES = ("vo_chief", "admin")
DEFAULT_DEADLINE_DAY = 25
EDITABLE_FIELDS = (
    "title", "description", "category", "start_month", "end_month",
    "is_recurring_monthly", "deadline_day", "assigned_to", "notes",
)
ANNUAL_OWNER_TYPE = "annual_cycle"
ANNUAL_TASK_PREFIX = "annual-"


@dataclass
class AnnualTask:
    """An annual-cycle item shown in the task list; it has no row in ``tasks``."""
    id: str
    original_id: int
    annual_cycle_item_id: int
    title: str
    description: Optional[str]
    category: str
    year: int
    start_month: Optional[int]
    end_month: Optional[int]
    action_link: Optional[str]
    status: str = "todo"
    owner_type: str = ANNUAL_OWNER_TYPE
    station_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[int] = None
    is_recurring_monthly: bool = False
    deadline_day: int = DEFAULT_DEADLINE_DAY
    is_annual_cycle: bool = True

    @classmethod
    def from_item(
        cls,
        item: AnnualCycleItem,
        year: int,
        completion: Optional[AnnualTaskCompletion] = None,
        station_id: Optional[int] = None,
    ) -> "AnnualTask":
        return cls(
            id=f"{ANNUAL_TASK_PREFIX}{item.id}",
            original_id=item.id,
            annual_cycle_item_id=item.id,
            title=item.title,
            description=item.description,
            category=item.category,
            year=year,
            start_month=item.month,
            end_month=item.month,
            action_link=item.action_link,
            status="completed" if completion else "todo",
            owner_type="station" if station_id else ANNUAL_OWNER_TYPE,
            station_id=station_id,
            completed_at=completion.completed_at if completion else None,
            completed_by=completion.completed_by if completion else None,
        )


AnyTask = Union[Task, AnnualTask]


def months_for_task(task: AnyTask) -> List[int]:
    if task.is_recurring_monthly:
        return list(range(1, 13))
    if task.start_month and task.end_month:
        return list(range(task.start_month, task.end_month + 1))
    if task.start_month:
        return [task.start_month]
    return []


def is_task_active_in_month(task: AnyTask, month: int) -> bool:
    if task.is_recurring_monthly:
        return True
    if not task.start_month:
        return False
    end = task.end_month or task.start_month
    return task.start_month <= month <= end


def task_deadline(task: AnyTask, month: int) -> date:
    """Deadline in ``month``; deadline_day is clamped to the month's length."""
    last_day = calendar.monthrange(task.year, month)[1]
    return date(task.year, month, min(task.deadline_day or DEFAULT_DEADLINE_DAY, last_day))


def next_deadline(task: AnyTask, month: Optional[int] = None) -> Optional[date]:
    """Deadline in ``month`` if the task runs then, otherwise in its first month."""
    if month and is_task_active_in_month(task, month):
        return task_deadline(task, month)
    months = months_for_task(task)
    return task_deadline(task, months[0]) if months else None


def _sort_key(task: AnyTask):
    return (task.start_month is None, task.start_month or 0, task.title)


async def _annual_tasks(
    db: AsyncSession,
    caller: Caller,
    year: int,
    regular: List[Task],
    month: Optional[int],
    status: Optional[str],
    category: Optional[str],
) -> List[AnnualTask]:
    items = [i for i in await list_items(db, month) if not category or i.category == category]
    if not items:
        return []

    completions = await caller_completions(db, caller, year, [i.id for i in items])
    by_item = {c.item_id: c for c in completions}

    annual = []
    for item in items:
        # a real task made from the item (or a legacy copy of it) replaces the item
        if any(
            t.annual_cycle_item_id == item.id or (t.title == item.title and t.start_month == item.month)
            for t in regular
        ):
            continue
        completion = by_item.get(item.id)
        if status == "completed" and completion is None:
            continue
        if status and status != "completed" and completion is not None:
            continue
        annual.append(AnnualTask.from_item(item, year, completion))
    return annual


async def list_tasks(
    db: AsyncSession,
    caller: Caller,
    year: int,
    month: Optional[int] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    owner_type: Optional[str] = None,
    station_id: Optional[int] = None,
) -> List[AnyTask]:
    """
    Tasks visible to the caller for ``year``, merged with the annual-cycle
    items that no real task covers yet.
    """
    query = select(Task).where(Task.year == year)

    # month filter keeps recurring tasks and tasks spanning the month
    if month:
        query = query.where(or_(Task.start_month <= month, Task.is_recurring_monthly.is_(True)))
        query = query.where(
            or_(Task.end_month >= month, Task.end_month.is_(None), Task.is_recurring_monthly.is_(True))
        )
    if status:
        query = query.where(Task.status == status)
    if category:
        query = query.where(Task.category == category)
    if owner_type:
        query = query.where(Task.owner_type == owner_type)
    if station_id:
        query = query.where(Task.station_id == station_id)

    if caller.role in STATION_ROLES:
        stations = await station_ids_for(db, caller.user_id)
        if stations:
            query = query.where(or_(Task.station_id.in_(stations), Task.org_unit_id == caller.org_unit_id))
        elif caller.org_unit_id:
            query = query.where(Task.org_unit_id == caller.org_unit_id)
    elif caller.role == "vo_chief" and caller.org_unit_id:
        query = query.where(or_(Task.org_unit_id == caller.org_unit_id, Task.created_by == caller.user_id))

    query = query.order_by(Task.start_month.asc().nulls_last(), Task.title)
    try:
        result = await db.execute(query)
        regular = list(result.scalars().all())
        annual = []
        if owner_type in (None, ANNUAL_OWNER_TYPE):
            annual = await _annual_tasks(db, caller, year, regular, month, status, category)
    except SQLAlchemyError as e:
        logger.error("Error fetching tasks: %s", storage_message(e))
        raise StorageError(storage_message(e))
    return sorted(regular + annual, key=_sort_key)


async def get_annual_task(db: AsyncSession, caller: Caller, item_id: int, year: int) -> AnnualTask:
    """Single annual-cycle item in task form; station staff see it as their first station's task."""
    item = await db.get(AnnualCycleItem, item_id)
    if item is None:
        raise NotFoundError("Task not found")

    completions = await caller_completions(db, caller, year, [item_id])
    station_id = None
    if caller.role in STATION_ROLES:
        stations = await station_ids_for(db, caller.user_id)
        station_id = stations[0] if stations else None
    return AnnualTask.from_item(item, year, completions[0] if completions else None, station_id)


async def create_task(db: AsyncSession, caller: Caller, **fields) -> Task:
    title = fields.get("title")
    category = fields.get("category")
    owner_type = fields.get("owner_type")
    if not title or not category or not owner_type:
        raise ValidationError("Missing required fields: title, category, owner_type")
    if owner_type not in OWNER_TYPES:
        raise ValidationError(f"Invalid owner_type: {owner_type}", field="owner_type")
    if category not in TASK_CATEGORIES:
        raise ValidationError(f"Invalid category: {category}", field="category")

    org_unit_id = fields.get("org_unit_id")
    station_id = fields.get("station_id")

    if owner_type == "station":
        if not station_id:
            raise ValidationError("Station tasks require station_id", field="station_id")
        if caller.role in STATION_ROLES and not await has_station(db, caller.user_id, station_id):
            raise AuthorizationError("You do not have access to this station")
    elif owner_type == "vo":
        if caller.role not in REVIEWER_ROLES:
            raise AuthorizationError("Only VO chiefs can create VO tasks")
        if caller.role == "vo_chief" and org_unit_id != caller.org_unit_id:
            raise AuthorizationError("You can only create tasks for your own VO")
    elif caller.role not in REVIEWER_ROLES:
        raise AuthorizationError("Only VO chiefs can create personal tasks")

    item_id = fields.get("annual_cycle_item_id")
    if item_id and await db.get(AnnualCycleItem, item_id) is None:
        raise NotFoundError("Annual cycle item not found")

    task = Task(
        title=title,
        description=fields.get("description"),
        category=category,
        owner_type=owner_type,
        org_unit_id=org_unit_id or caller.org_unit_id,
        station_id=station_id,
        created_by=caller.user_id,
        year=fields.get("year") or datetime.now(timezone.utc).year,
        start_month=fields.get("start_month"),
        end_month=fields.get("end_month"),
        is_recurring_monthly=bool(fields.get("is_recurring_monthly")),
        deadline_day=fields.get("deadline_day") or DEFAULT_DEADLINE_DAY,
        assigned_to=fields.get("assigned_to"),
        annual_cycle_item_id=item_id,
        status="not_started",
    )
    db.add(task)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error creating task: %s", storage_message(e))
        raise StorageError(storage_message(e))
    await db.refresh(task)
    return task


async def get_task(db: AsyncSession, task_id: int) -> Task:
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


async def _ensure_can_edit(db: AsyncSession, caller: Caller, task: Task) -> None:
    if caller.role == "admin" or caller.user_id in (task.created_by, task.assigned_to):
        return
    if caller.role == "vo_chief" and caller.org_unit_id and task.org_unit_id == caller.org_unit_id:
        return
    if caller.role in STATION_ROLES and task.station_id and await has_station(db, caller.user_id, task.station_id):
        return
    raise AuthorizationError("You do not have access to this task")


def _set_status(task: Task, status: str, caller: Caller) -> None:
    if status == "done":
        if task.status != "done":
            task.completed_at = datetime.now(timezone.utc)
            task.completed_by = caller.user_id
    elif status in ("not_started", "in_progress"):
        task.completed_at = None
        task.completed_by = None
    task.status = status


async def _commit_task(db: AsyncSession, task: Task) -> Task:
    db.add(task)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error updating task %s: %s", task.id, storage_message(e))
        raise StorageError(storage_message(e))
    await db.refresh(task)
    return task


async def update_task_status(
    db: AsyncSession,
    caller: Caller,
    task_id: int,
    status: str,
    notes: Optional[str] = None
) -> Task:
    if status not in TASK_STATUSES:
        raise ValidationError(f"Invalid status: {status}", field="status")

    task = await get_task(db, task_id)
    _set_status(task, status, caller)
    if notes is not None:
        task.notes = notes
    return await _commit_task(db, task)


async def update_task(db: AsyncSession, caller: Caller, task_id: int, **fields) -> Task:
    """
    Partial update: only keys present in ``fields`` change. The VO review
    flag and comment are reserved for VO chiefs and admins.
    """
    task = await get_task(db, task_id)
    await _ensure_can_edit(db, caller, task)

    if "status" in fields and fields["status"] not in TASK_STATUSES:
        raise ValidationError(f"Invalid status: {fields['status']}", field="status")
    if "category" in fields and fields["category"] not in TASK_CATEGORIES:
        raise ValidationError(f"Invalid category: {fields['category']}", field="category")
    if ("vo_reviewed" in fields or "vo_comment" in fields) and caller.role not in REVIEWER_ROLES:
        raise AuthorizationError("Only VO chiefs can review tasks")

    for key in EDITABLE_FIELDS:
        if key in fields:
            setattr(task, key, fields[key])
    if fields.get("status"):
        _set_status(task, fields["status"], caller)

    if "vo_reviewed" in fields:
        task.vo_reviewed = bool(fields["vo_reviewed"])
        task.vo_reviewed_at = datetime.now(timezone.utc) if task.vo_reviewed else None
        task.vo_reviewed_by = caller.user_id if task.vo_reviewed else None
    if "vo_comment" in fields:
        task.vo_comment = fields["vo_comment"]

    return await _commit_task(db, task)


async def delete_task(db: AsyncSession, caller: Caller, task_id: int) -> None:
    task = await get_task(db, task_id)
    await _ensure_can_edit(db, caller, task)

    try:
        await db.execute(delete(TaskComment).where(TaskComment.task_id == task_id))
        # distributed copies stay, detached from the deleted parent
        await db.execute(update(Task).where(Task.parent_task_id == task_id).values(parent_task_id=None))
        await db.delete(task)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error deleting task %s: %s", task_id, storage_message(e))
        raise StorageError(storage_message(e))
    logger.info("Task %s deleted by user %s", task_id, caller.user_id)


async def distribute_task(db: AsyncSession, caller: Caller, task_id: int, targets: List[Dict]):
    """
    Copy a VO task to stations of the same unit as station tasks.
    Stations that already hold a copy are skipped. Returns (created, skipped).
    """
    if caller.role not in REVIEWER_ROLES:
        raise AuthorizationError("Only VO chiefs can distribute tasks")

    parent = await get_task(db, task_id)
    if parent.owner_type != "vo":
        raise ValidationError("Only VO tasks can be distributed", field="owner_type")
    if caller.role == "vo_chief" and parent.org_unit_id != caller.org_unit_id:
        raise AuthorizationError("You can only distribute tasks in your own VO")
    if not targets:
        raise ValidationError("No distribution targets provided", field="targets")

    station_ids = [t["station_id"] for t in targets]
    stations = (await db.execute(select(Station).where(Station.id.in_(station_ids)))).scalars().all()
    if len(stations) != len(set(station_ids)):
        raise ValidationError("Some stations not found", field="targets")
    if any(s.org_unit_id != parent.org_unit_id for s in stations):
        raise ValidationError("All stations must belong to the same VO as the task", field="targets")

    existing = await db.execute(
        select(Task.station_id)
        .where(Task.parent_task_id == task_id)
        .where(Task.station_id.in_(station_ids))
    )
    already = set(existing.scalars().all())
    new_targets = [t for t in targets if t["station_id"] not in already]
    if not new_targets:
        raise ValidationError("All selected stations already have this task distributed", field="targets")

    created = [
        Task(
            title=parent.title,
            description=parent.description,
            category=parent.category,
            owner_type="station",
            org_unit_id=parent.org_unit_id,
            station_id=target["station_id"],
            created_by=caller.user_id,
            year=parent.year,
            start_month=parent.start_month,
            end_month=parent.end_month,
            is_recurring_monthly=parent.is_recurring_monthly,
            deadline_day=parent.deadline_day,
            assigned_to=target.get("assigned_to"),
            annual_cycle_item_id=parent.annual_cycle_item_id,
            parent_task_id=task_id,
            status="not_started",
        )
        for target in new_targets
    ]
    db.add_all(created)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error creating station tasks for %s: %s", task_id, storage_message(e))
        raise StorageError(storage_message(e))
    for task in created:
        await db.refresh(task)

    logger.info("Task %s distributed to %d stations", task_id, len(created))
    return created, len(targets) - len(new_targets)


async def distribution_status(db: AsyncSession, task_id: int) -> Dict:
    parent = await get_task(db, task_id)
    try:
        children = (await db.execute(
            select(Task).where(Task.parent_task_id == task_id).order_by(Task.created_at, Task.id)
        )).scalars().all()
        unit_stations = (await db.execute(
            select(Station).where(Station.org_unit_id == parent.org_unit_id).order_by(Station.name)
        )).scalars().all()
    except SQLAlchemyError as e:
        logger.error("Error fetching distribution of task %s: %s", task_id, storage_message(e))
        raise StorageError(storage_message(e))

    distributed = {t.station_id for t in children}
    total = len(children)
    completed = sum(1 for t in children if t.status in ("done", "reported"))
    in_progress = sum(1 for t in children if t.status == "in_progress")
    return {
        "parent_task": parent,
        "child_tasks": list(children),
        "not_distributed": [s for s in unit_stations if s.id not in distributed],
        "stats": {
            "total": total,
            "completed": completed,
            "in_progress": in_progress,
            "not_started": total - completed - in_progress,
            "percentage": round(completed * 100 / total) if total else 0,
        },
    }


async def list_comments(db: AsyncSession, task_id: int):
    """Comments oldest first, each paired with its author."""
    try:
        result = await db.execute(
            select(TaskComment, User)
            .join(User, User.id == TaskComment.user_id)
            .where(TaskComment.task_id == task_id)
            .order_by(TaskComment.created_at, TaskComment.id)
        )
    except SQLAlchemyError as e:
        logger.error("Error fetching comments: %s", storage_message(e))
        raise StorageError(storage_message(e))
    return result.all()


async def add_comment(db: AsyncSession, caller: Caller, task_id: int, content: Optional[str]):
    if not content or not content.strip():
        raise ValidationError("Content is required", field="content")

    await get_task(db, task_id)

    comment = TaskComment(task_id=task_id, user_id=caller.user_id, content=content.strip())
    db.add(comment)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error creating comment: %s", storage_message(e))
        raise StorageError(storage_message(e))
    await db.refresh(comment)

    author = await db.get(User, caller.user_id)
    return comment, author
