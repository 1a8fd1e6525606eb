from datetime import datetime, timezone
from sqlalchemy import (
    Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text,
    TypeDecorator, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
import json

from enums import ApplicationStatus, JobStatus

Base = declarative_base()


def utcnow() -> datetime:
    # Naive UTC; SQLite drops tzinfo anyway
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JSONType(TypeDecorator):
    """Custom JSON type that works reliably with SQLite."""
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        """Convert Python object to JSON string for storage."""
        if value is None:
            return None
        return json.dumps(value)

    def process_result_value(self, value, dialect):
        """Convert JSON string back to Python object."""
        if value is None:
            return None
        return json.loads(value)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))
    role = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    candidate = relationship("Candidate", back_populates="user", uselist=False)
    recruiter = relationship("Recruiter", back_populates="user", uselist=False)


class Candidate(Base):
    __tablename__ = "candidates"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    full_name = Column(String(255))
    phone = Column(String(50))
    date_of_birth = Column(Date)
    total_experience = Column(Float)
    current_role = Column(String(255))
    expected_role = Column(String(255))
    current_ctc = Column(Float)
    expected_ctc = Column(Float)
    notice_period = Column(Integer)  # days
    job_type = Column(String(20))
    work_type = Column(String(20))
    skills = Column(JSONType)
    preferred_locations = Column(JSONType)
    education = Column(JSONType)
    work_history = Column(JSONType)
    summary = Column(Text)
    resume_filename = Column(String(512))
    resume_text = Column(Text)
    resume_parsed_data = Column(JSONType)
    profile_completeness = Column(Integer, default=0)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="candidate")


class Recruiter(Base):
    __tablename__ = "recruiters"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    company_name = Column(String(255))
    designation = Column(String(255))

    user = relationship("User", back_populates="recruiter")
    jobs = relationship("Job", back_populates="recruiter")


class Job(Base):
    __tablename__ = "jobs"
    id = Column(Integer, primary_key=True)
    recruiter_id = Column(Integer, ForeignKey("recruiters.id"), nullable=False)
    title = Column(String(255), nullable=False)
    company_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    skills = Column(JSONType)
    locations = Column(JSONType)
    experience_min = Column(Float)
    experience_max = Column(Float)
    salary_min = Column(Float)
    salary_max = Column(Float)
    currency = Column(String(10), default="USD")
    employment_type = Column(String(20))
    work_mode = Column(String(20))
    deadline = Column(DateTime)
    status = Column(String(20), default=JobStatus.DRAFT.value, nullable=False)
    non_negotiable_criteria = Column(JSONType)
    embedding = Column(JSONType)
    created_at = Column(DateTime, default=utcnow)

    recruiter = relationship("Recruiter", back_populates="jobs")
    applications = relationship("Application", back_populates="job")
    custom_questions = relationship(
        "CustomQuestion", back_populates="job", order_by="CustomQuestion.order"
    )


class CustomQuestion(Base):
    __tablename__ = "custom_questions"
    id = Column(Integer, primary_key=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    type = Column(String(20), nullable=False)
    options = Column(JSONType)
    is_mandatory = Column(Boolean, default=False, nullable=False)
    order = Column(Integer, default=0, nullable=False)

    job = relationship("Job", back_populates="custom_questions")


class SavedJob(Base):
    __tablename__ = "saved_jobs"
    __table_args__ = (UniqueConstraint("candidate_id", "job_id"),)
    id = Column(Integer, primary_key=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    job = relationship("Job")


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (UniqueConstraint("job_id", "candidate_id"),)
    id = Column(Integer, primary_key=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False)
    cover_letter = Column(Text)
    answers = Column(JSONType)
    status = Column(String(20), default=ApplicationStatus.APPLIED.value, nullable=False)
    candidate_info = Column(JSONType)  # snapshot at apply time
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    job = relationship("Job", back_populates="applications")
    candidate = relationship("Candidate")


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    id = Column(Integer, primary_key=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False, index=True)
    sender_role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    message_metadata = Column(JSONType)
    intervention_needed = Column(Boolean, default=False, nullable=False)
    resolved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    job = relationship("Job")
