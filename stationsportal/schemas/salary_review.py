from pydantic import BaseModel, EmailStr, Field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

class CycleCreate(BaseModel):
    year: Optional[int] = None
    description: Optional[str] = None
    status: Optional[str] = None  # planning, active, completed
    start_date: Optional[date] = None
    end_date: Optional[date] = None

class CycleResponse(BaseModel):
    id: int
    year: int
    description: Optional[str]
    status: str
    start_date: Optional[date]
    end_date: Optional[date]
    created_by: Optional[int]

    model_config = {"from_attributes": True}

class CycleListResponse(BaseModel):
    cycles: List[CycleResponse]

class CycleEnvelope(BaseModel):
    cycle: CycleResponse

class EmployeeCreate(BaseModel):
    employee_number: Optional[str] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    category: Optional[str] = None  # VUB, SSK, AMB
    station_id: Optional[int] = None
    employment_date: Optional[date] = None
    current_salary: Optional[Decimal] = Field(None, ge=0)

class EmployeeResponse(BaseModel):
    id: int
    employee_number: Optional[str]
    first_name: str
    last_name: str
    email: Optional[str]
    category: str
    station_id: int
    manager_id: int
    employment_date: Optional[date]
    current_salary: Optional[Decimal]

    model_config = {"from_attributes": True}

class EmployeeListResponse(BaseModel):
    employees: List[EmployeeResponse]

class EmployeeEnvelope(BaseModel):
    employee: EmployeeResponse

class ReviewResponse(BaseModel):
    id: int
    cycle_id: int
    employee_id: int
    manager_id: int
    status: str
    is_particularly_skilled: Optional[bool]
    proposed_salary: Optional[Decimal]
    final_salary: Optional[Decimal]
    proposed_increase: Optional[Decimal] = None
    final_increase: Optional[Decimal] = None
    meeting_date: Optional[date]
    meeting_notes: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime]

    model_config = {"from_attributes": True}

class OpenReviewResponse(BaseModel):
    review: Optional[ReviewResponse]
    message: Optional[str] = None

class CriteriaAssessmentIn(BaseModel):
    criterion_key: Optional[str] = None
    sub_criterion_key: Optional[str] = None
    rating: Optional[str] = None  # needs_development, good, very_good, excellent
    evidence: Optional[str] = None
    notes: Optional[str] = None

class CriteriaAssessmentResponse(BaseModel):
    id: int
    salary_review_id: int
    criterion_key: Optional[str]
    sub_criterion_key: str
    rating: str
    evidence: Optional[str]
    notes: Optional[str]

    model_config = {"from_attributes": True}

class CriteriaSubmission(BaseModel):
    assessments: List[CriteriaAssessmentIn]

class CriteriaListResponse(BaseModel):
    assessments: List[CriteriaAssessmentResponse]

class CriteriaSaveResponse(BaseModel):
    success: bool
    assessed_count: int
    average_rating: Optional[float]

class SkillfulAssessmentIn(BaseModel):
    criterion_key: Optional[str] = None
    is_met: bool = False
    evidence: Optional[str] = None
    notes: Optional[str] = None

class SkillfulAssessmentResponse(BaseModel):
    id: int
    salary_review_id: int
    criterion_key: str
    is_met: bool
    evidence: Optional[str]
    notes: Optional[str]

    model_config = {"from_attributes": True}

class SkillfulSubmission(BaseModel):
    assessments: List[SkillfulAssessmentIn]

class ReviewUpdate(BaseModel):
    status: Optional[str] = None  # not_started, in_progress, completed
    is_particularly_skilled: Optional[bool] = None
    proposed_salary: Optional[Decimal] = Field(None, ge=0)
    final_salary: Optional[Decimal] = Field(None, ge=0)
    meeting_date: Optional[date] = None
    meeting_notes: Optional[str] = None

class ReviewEnvelope(BaseModel):
    review: ReviewResponse

class PreparationIn(BaseModel):
    previous_agreements: Optional[str] = None
    goals_achieved: Optional[str] = None
    contribution_summary: Optional[str] = None
    salary_statistics: Optional[str] = None
    development_needs: Optional[str] = None
    strengths_summary: Optional[str] = None
    ai_generated_summary: Optional[str] = None

class PreparationResponse(PreparationIn):
    id: int
    salary_review_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

class PreparationEnvelope(BaseModel):
    preparation: Optional[PreparationResponse]

class StationProgress(BaseModel):
    station_id: int
    station_name: str
    employee_count: int
    assessed_count: int
    completed_count: int

class ProgressResponse(BaseModel):
    cycle_id: int
    total_employees: int
    employees_assessed: int
    employees_completed: int
    stations: List[StationProgress]

class ReviewDetailResponse(BaseModel):
    review: ReviewResponse
    employee: Optional[EmployeeResponse]
    cycle: Optional[CycleResponse]
    salary_criteria_assessments: List[CriteriaAssessmentResponse]
    particularly_skilled_assessments: List[SkillfulAssessmentResponse]
    meeting_preparation: Optional[PreparationResponse] = None
