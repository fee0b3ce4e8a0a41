from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List, Union
from .user import UserSummary
from .organization import StationSummary

class TaskCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None     # HR, Finance, Safety, Operations
    owner_type: Optional[str] = None   # vo, station, personal
    org_unit_id: Optional[int] = None
    station_id: Optional[int] = None
    year: Optional[int] = None
    start_month: Optional[int] = Field(None, ge=1, le=12)
    end_month: Optional[int] = Field(None, ge=1, le=12)
    is_recurring_monthly: bool = False
    deadline_day: Optional[int] = Field(None, ge=1, le=31)
    assigned_to: Optional[int] = None
    annual_cycle_item_id: Optional[int] = None

class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    start_month: Optional[int] = Field(None, ge=1, le=12)
    end_month: Optional[int] = Field(None, ge=1, le=12)
    is_recurring_monthly: Optional[bool] = None
    deadline_day: Optional[int] = Field(None, ge=1, le=31)
    status: Optional[str] = None
    assigned_to: Optional[int] = None
    notes: Optional[str] = None
    vo_reviewed: Optional[bool] = None
    vo_comment: Optional[str] = None

class TaskUpdateStatus(BaseModel):
    status: str  # not_started, in_progress, done, reported
    notes: Optional[str] = None

class TaskResponse(BaseModel):
    # "annual-<item id>" for annual-cycle items shown as tasks
    id: Union[int, str]
    title: str
    description: Optional[str] = None
    category: str
    owner_type: str
    org_unit_id: Optional[int] = None
    station_id: Optional[int] = None
    created_by: Optional[int] = None
    assigned_to: Optional[int] = None
    year: int
    start_month: Optional[int] = None
    end_month: Optional[int] = None
    is_recurring_monthly: bool = False
    deadline_day: int
    status: str
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[int] = None
    created_at: Optional[datetime] = None
    parent_task_id: Optional[int] = None
    annual_cycle_item_id: Optional[int] = None
    vo_reviewed: Optional[bool] = None
    vo_reviewed_at: Optional[datetime] = None
    vo_reviewed_by: Optional[int] = None
    vo_comment: Optional[str] = None
    is_annual_cycle: bool = False
    original_id: Optional[int] = None
    action_link: Optional[str] = None
    months: List[int] = []
    deadline: Optional[date] = None

    model_config = {"from_attributes": True}

class TaskListResponse(BaseModel):
    tasks: List[TaskResponse]

class TaskEnvelope(BaseModel):
    task: TaskResponse

class DistributionTarget(BaseModel):
    station_id: int
    assigned_to: Optional[int] = None

class DistributeRequest(BaseModel):
    targets: List[DistributionTarget] = []

class DistributionResult(BaseModel):
    created: List[TaskResponse]
    skipped: int
    message: str

class DistributionStats(BaseModel):
    total: int
    completed: int
    in_progress: int
    not_started: int
    percentage: int

class DistributionStatus(BaseModel):
    parent_task: TaskResponse
    child_tasks: List[TaskResponse]
    not_distributed: List[StationSummary]
    stats: DistributionStats

class CommentCreate(BaseModel):
    content: Optional[str] = None

class CommentResponse(BaseModel):
    id: int
    task_id: int
    user_id: int
    content: str
    created_at: datetime
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}

class CommentListResponse(BaseModel):
    comments: List[CommentResponse]

class CommentEnvelope(BaseModel):
    comment: CommentResponse
