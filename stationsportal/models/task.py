from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, func
from stationsportal.database import Base

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False)    # HR, Finance, Safety, Operations
    owner_type = Column(String, nullable=False)  # vo, station, personal
    org_unit_id = Column(Integer, ForeignKey("org_units.id"), nullable=True)
    station_id = Column(Integer, ForeignKey("stations.id"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)

    year = Column(Integer, nullable=False)
    start_month = Column(Integer, nullable=True)
    end_month = Column(Integer, nullable=True)
    is_recurring_monthly = Column(Boolean, default=False)
    deadline_day = Column(Integer, default=25)

    status = Column(String, default="not_started")  # not_started, in_progress, done, reported
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    annual_cycle_item_id = Column(Integer, ForeignKey("annual_cycle_items.id"), nullable=True)
    parent_task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True)

    vo_reviewed = Column(Boolean, default=False)
    vo_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    vo_reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    vo_comment = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

class TaskComment(Base):
    __tablename__ = "task_comments"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
