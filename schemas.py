from datetime import date, datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional, Dict, Any

from enums import (
    CHOICE_QUESTION_TYPES, ApplicationStatus, EmploymentType, JobStatus, QuestionType, SenderRole,
    UserRole, WorkMode,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Account registration
class UserCreate(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    name: str = Field(..., min_length=1)
    role: UserRole


class UserOut(ORMModel):
    id: int
    email: str
    name: Optional[str] = None
    role: UserRole


# Candidate profile; every field optional so PUT can be partial
class CandidateProfileIn(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    total_experience: Optional[float] = Field(None, ge=0)
    current_role: Optional[str] = None
    expected_role: Optional[str] = None
    current_ctc: Optional[float] = Field(None, ge=0)
    expected_ctc: Optional[float] = Field(None, ge=0)
    notice_period: Optional[int] = Field(None, ge=0)
    job_type: Optional[EmploymentType] = None
    work_type: Optional[WorkMode] = None
    skills: Optional[List[str]] = None
    preferred_locations: Optional[List[str]] = None
    education: Optional[List[Dict[str, Any]]] = None
    work_history: Optional[List[Dict[str, Any]]] = None
    summary: Optional[str] = None


class CandidateProfileOut(ORMModel):
    id: int
    user_id: int
    full_name: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    total_experience: Optional[float] = None
    current_role: Optional[str] = None
    expected_role: Optional[str] = None
    current_ctc: Optional[float] = None
    expected_ctc: Optional[float] = None
    notice_period: Optional[int] = None
    job_type: Optional[str] = None
    work_type: Optional[str] = None
    skills: List[str] = []
    preferred_locations: List[str] = []
    education: List[Dict[str, Any]] = []
    work_history: List[Dict[str, Any]] = []
    summary: Optional[str] = None
    resume_filename: Optional[str] = None
    profile_completeness: int = 0
    missing_fields: List[str] = []

    @field_validator("skills", "preferred_locations", "education", "work_history", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []


class ResumeParseOut(BaseModel):
    parsed: Dict[str, Any]
    profile_completeness: int


# Job postings
class JobIn(BaseModel):
    title: str = Field(..., min_length=1)
    company_name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    skills: List[str] = []
    locations: List[str] = []
    experience_min: Optional[float] = Field(None, ge=0)
    experience_max: Optional[float] = Field(None, ge=0)
    salary_min: Optional[float] = Field(None, ge=0)
    salary_max: Optional[float] = Field(None, ge=0)
    currency: str = "USD"
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    work_mode: WorkMode = WorkMode.ONSITE
    deadline: Optional[datetime] = None
    status: JobStatus = JobStatus.DRAFT
    non_negotiable_criteria: List[str] = []

    @field_validator("deadline")
    @classmethod
    def deadline_as_utc(cls, v):
        # Stored naive, in UTC
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @model_validator(mode="after")
    def check_ranges(self):
        if self.experience_min is not None and self.experience_max is not None \
                and self.experience_min > self.experience_max:
            raise ValueError("experience_min must not exceed experience_max")
        if self.salary_min is not None and self.salary_max is not None \
                and self.salary_min > self.salary_max:
            raise ValueError("salary_min must not exceed salary_max")
        return self


class JobStatusUpdate(BaseModel):
    status: JobStatus


# Per-job application questions
class QuestionIn(BaseModel):
    question: str = Field(..., min_length=1)
    type: QuestionType
    options: List[str] = []
    is_mandatory: bool = False

    @model_validator(mode="after")
    def check_options(self):
        self.options = [o.strip() for o in self.options if o and o.strip()]
        if self.type in CHOICE_QUESTION_TYPES and not self.options:
            raise ValueError("Options are required for this question type")
        return self


class QuestionOut(ORMModel):
    id: int
    job_id: int
    question: str
    type: str
    options: List[str] = []
    is_mandatory: bool = False
    order: int

    @field_validator("options", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []


class JobOut(ORMModel):
    id: int
    title: str
    company_name: str
    description: str
    skills: List[str] = []
    locations: List[str] = []
    experience_min: Optional[float] = None
    experience_max: Optional[float] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    currency: Optional[str] = None
    employment_type: Optional[str] = None
    work_mode: Optional[str] = None
    deadline: Optional[datetime] = None
    status: str
    non_negotiable_criteria: List[str] = []
    created_at: Optional[datetime] = None
    application_count: int = 0
    custom_questions: List[QuestionOut] = []

    @field_validator("skills", "locations", "non_negotiable_criteria", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class JobSearchOut(BaseModel):
    jobs: List[JobOut]
    pagination: Pagination


# Recommendations: {"jobs": [{"jobId", "score", "job"}], "totalJobs"}
class RecommendedJob(BaseModel):
    job_id: int = Field(serialization_alias="jobId")
    score: int = Field(ge=0, le=100)
    job: JobOut


class RecommendedJobsOut(BaseModel):
    jobs: List[RecommendedJob]
    total_jobs: int = Field(serialization_alias="totalJobs")


# Saved jobs
class SaveJobIn(BaseModel):
    job_id: int


class SavedJobOut(JobOut):
    saved_at: datetime


# Applications
class ApplicationIn(BaseModel):
    job_id: int
    cover_letter: Optional[str] = None
    answers: Optional[Dict[str, Any]] = None


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus


class ApplicationOut(ORMModel):
    id: int
    job_id: int
    candidate_id: int
    status: str
    cover_letter: Optional[str] = None
    answers: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    job_title: Optional[str] = None


class RecruiterApplicationOut(ApplicationOut):
    candidate_name: Optional[str] = None
    candidate_info: Optional[Dict[str, Any]] = None
    match_score: int = 0


# Chat co-pilot
class ChatRequest(BaseModel):
    candidate_id: int
    job_id: int
    message: str = Field(..., min_length=1)
    sender_role: SenderRole
    non_negotiable_criteria: Optional[List[str]] = None


class ChatMetadata(BaseModel):
    intervention_needed: bool = Field(serialization_alias="interventionNeeded")
    conversation_complete: bool = Field(serialization_alias="conversationComplete")
    confidence: str
    timestamp: str
    error: Optional[str] = None


class ChatResponse(BaseModel):
    message: str
    metadata: ChatMetadata


class ChatMessageOut(ORMModel):
    id: int
    job_id: int
    candidate_id: int
    sender_role: str
    content: str
    message_metadata: Optional[Dict[str, Any]] = None
    intervention_needed: bool = False
    resolved: bool = False
    created_at: Optional[datetime] = None
