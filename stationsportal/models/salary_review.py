from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime, Numeric, ForeignKey,
    UniqueConstraint, func,
)
from stationsportal.database import Base

class SalaryReviewCycle(Base):
    __tablename__ = "salary_review_cycles"

    id = Column(Integer, primary_key=True, index=True)
    year = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="planning")  # planning, active, completed
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    employee_number = Column(String, nullable=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    category = Column(String, nullable=False)  # VUB, SSK, AMB
    station_id = Column(Integer, ForeignKey("stations.id"), nullable=False)
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    employment_date = Column(Date, nullable=True)
    current_salary = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class SalaryReview(Base):
    __tablename__ = "salary_reviews"

    id = Column(Integer, primary_key=True, index=True)
    cycle_id = Column(Integer, ForeignKey("salary_review_cycles.id"), nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String, nullable=False, default="not_started")  # not_started, in_progress, completed
    is_particularly_skilled = Column(Boolean, nullable=True)
    proposed_salary = Column(Numeric(12, 2), nullable=True)
    final_salary = Column(Numeric(12, 2), nullable=True)
    proposed_increase = Column(Numeric(12, 2), nullable=True)
    final_increase = Column(Numeric(12, 2), nullable=True)
    meeting_date = Column(Date, nullable=True)
    meeting_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "cycle_id", name="uq_review_employee_cycle"),
    )

class SalaryCriteriaAssessment(Base):
    __tablename__ = "salary_criteria_assessments"

    id = Column(Integer, primary_key=True, index=True)
    salary_review_id = Column(Integer, ForeignKey("salary_reviews.id"), nullable=False)
    criterion_key = Column(String, nullable=True)
    sub_criterion_key = Column(String, nullable=False)
    rating = Column(String, nullable=False)  # needs_development, good, very_good, excellent
    evidence = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class ParticularlySkillfulAssessment(Base):
    __tablename__ = "particularly_skillful_assessments"

    id = Column(Integer, primary_key=True, index=True)
    salary_review_id = Column(Integer, ForeignKey("salary_reviews.id"), nullable=False)
    criterion_key = Column(String, nullable=False)
    is_met = Column(Boolean, nullable=False, default=False)
    evidence = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class SalaryMeetingPreparation(Base):
    __tablename__ = "salary_meeting_preparations"

    id = Column(Integer, primary_key=True, index=True)
    salary_review_id = Column(Integer, ForeignKey("salary_reviews.id"), nullable=False, unique=True)
    previous_agreements = Column(Text, nullable=True)
    goals_achieved = Column(Text, nullable=True)
    contribution_summary = Column(Text, nullable=True)
    salary_statistics = Column(Text, nullable=True)
    development_needs = Column(Text, nullable=True)
    strengths_summary = Column(Text, nullable=True)
    ai_generated_summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
