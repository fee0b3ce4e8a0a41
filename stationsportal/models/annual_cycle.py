from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey,
    UniqueConstraint, CheckConstraint, func,
)
from stationsportal.database import Base

class AnnualCycleItem(Base):
    __tablename__ = "annual_cycle_items"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    month = Column(Integer, nullable=True)  # 1-12, NULL = not month-bound
    category = Column(String, nullable=False, default="other")  # hr, finance, environment, other
    action_link = Column(String, nullable=True)
    is_recurring = Column(Boolean, default=True)
    year = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class AnnualTaskCompletion(Base):
    __tablename__ = "annual_task_completions"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("annual_cycle_items.id"), nullable=False)
    station_id = Column(Integer, ForeignKey("stations.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    year = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="completed")
    completed_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("item_id", "station_id", "year", name="uq_completion_item_station_year"),
        UniqueConstraint("item_id", "user_id", "year", name="uq_completion_item_user_year"),
        CheckConstraint(
            "(station_id IS NOT NULL AND user_id IS NULL) OR (station_id IS NULL AND user_id IS NOT NULL)",
            name="ck_completion_single_target",
        ),
    )
