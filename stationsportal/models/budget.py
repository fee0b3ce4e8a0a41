from sqlalchemy import Column, Integer, Text, Numeric, DateTime, ForeignKey, UniqueConstraint, func
from stationsportal.database import Base

class VoCycleBudget(Base):
    __tablename__ = "vo_cycle_budgets"

    id = Column(Integer, primary_key=True, index=True)
    cycle_id = Column(Integer, ForeignKey("salary_review_cycles.id"), nullable=False)
    org_unit_id = Column(Integer, ForeignKey("org_units.id"), nullable=False)
    total_budget = Column(Numeric(14, 2), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("cycle_id", "org_unit_id", name="uq_budget_cycle_unit"),)

class StationBudgetAllocation(Base):
    __tablename__ = "station_budget_allocations"

    id = Column(Integer, primary_key=True, index=True)
    budget_id = Column(Integer, ForeignKey("vo_cycle_budgets.id"), nullable=False)
    station_id = Column(Integer, ForeignKey("stations.id"), nullable=False)
    allocated_amount = Column(Numeric(14, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    __table_args__ = (UniqueConstraint("budget_id", "station_id", name="uq_allocation_budget_station"),)
