from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from stationsportal.database import get_db
from stationsportal.core.auth import Caller, get_caller
from stationsportal.core.exceptions import NotFoundError
from stationsportal.schemas.task import (
    TaskCreate, TaskUpdate, TaskUpdateStatus, TaskResponse, TaskListResponse, TaskEnvelope,
    DistributeRequest, DistributionResult, DistributionStatus,
    CommentCreate, CommentResponse, CommentListResponse, CommentEnvelope
)
from stationsportal.schemas.user import UserSummary
from stationsportal.services import tasks

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _current_year() -> int:
    return datetime.now(timezone.utc).year


def _task_response(task, month: Optional[int] = None) -> TaskResponse:
    resp = TaskResponse.model_validate(task)
    resp.months = tasks.months_for_task(task)
    resp.deadline = tasks.next_deadline(task, month)
    return resp


def _comment_response(comment, author) -> CommentResponse:
    resp = CommentResponse.model_validate(comment)
    resp.user = UserSummary.model_validate(author) if author else None
    return resp


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    year: Optional[int] = None,
    month: Optional[int] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    owner_type: Optional[str] = None,
    station_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    task_list = await tasks.list_tasks(
        db,
        caller,
        year=year or _current_year(),
        month=month,
        status=status,
        category=category,
        owner_type=owner_type,
        station_id=station_id,
    )
    return TaskListResponse(tasks=[_task_response(t, month) for t in task_list])


@router.post("", response_model=TaskEnvelope, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    task = await tasks.create_task(db, caller, **task_in.model_dump())
    return TaskEnvelope(task=_task_response(task))


@router.get("/{task_id}", response_model=TaskEnvelope)
async def get_task(
    task_id: str,
    year: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    """Real task by numeric id, or an annual-cycle item as ``annual-<item id>``."""
    if task_id.startswith(tasks.ANNUAL_TASK_PREFIX):
        item_id = task_id[len(tasks.ANNUAL_TASK_PREFIX):]
        if not item_id.isdigit():
            raise NotFoundError("Task not found")
        task = await tasks.get_annual_task(db, caller, int(item_id), year or _current_year())
    elif task_id.isdigit():
        task = await tasks.get_task(db, int(task_id))
    else:
        raise NotFoundError("Task not found")
    return TaskEnvelope(task=_task_response(task))


@router.put("/{task_id}", response_model=TaskEnvelope)
async def update_task(
    task_id: int,
    task_in: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    task = await tasks.update_task(db, caller, task_id, **task_in.model_dump(exclude_unset=True))
    return TaskEnvelope(task=_task_response(task))


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    await tasks.delete_task(db, caller, task_id)
    return {"success": True}


@router.patch("/{task_id}/status", response_model=TaskEnvelope)
async def update_task_status(
    task_id: int,
    status_in: TaskUpdateStatus,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    task = await tasks.update_task_status(db, caller, task_id, status_in.status, status_in.notes)
    return TaskEnvelope(task=_task_response(task))


@router.post("/{task_id}/distribute", response_model=DistributionResult, status_code=status.HTTP_201_CREATED)
async def distribute_task(
    task_id: int,
    distribute_in: DistributeRequest,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    created, skipped = await tasks.distribute_task(
        db, caller, task_id, [t.model_dump() for t in distribute_in.targets]
    )
    return DistributionResult(
        created=[_task_response(t) for t in created],
        skipped=skipped,
        message=f"Fördelade till {len(created)} stationer",
    )


@router.get("/{task_id}/distribute", response_model=DistributionStatus)
async def get_distribution(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    overview = await tasks.distribution_status(db, task_id)
    return DistributionStatus(
        parent_task=_task_response(overview["parent_task"]),
        child_tasks=[_task_response(t) for t in overview["child_tasks"]],
        not_distributed=overview["not_distributed"],
        stats=overview["stats"],
    )


@router.get("/{task_id}/comments", response_model=CommentListResponse)
async def get_comments(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    rows = await tasks.list_comments(db, task_id)
    return CommentListResponse(comments=[_comment_response(c, u) for c, u in rows])


@router.post("/{task_id}/comments", response_model=CommentEnvelope, status_code=status.HTTP_201_CREATED)
async def add_comment(
    task_id: int,
    comment_in: CommentCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller)
):
    comment, author = await tasks.add_comment(db, caller, task_id, comment_in.content)
    return CommentEnvelope(comment=_comment_response(comment, author))
