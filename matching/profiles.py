"""
Plain inputs for the matching functions.

ORM rows are converted here once, so the scorer, ranker and completeness
estimator never see SQLAlchemy objects or JSON-encoded columns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from enums import WorkMode

# Location entries that mark a job as workable from anywhere
REMOTE_SENTINELS = ("remote", "hybrid")


def clean_list(values: Optional[Iterable]) -> List[str]:
    """Drop blanks and case-insensitive duplicates, keep first spelling and order."""
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    seen = set()
    for v in values or []:
        if v is None:
            continue
        s = str(v).strip()
        key = s.lower()
        if not s or key in seen:
            continue
        seen.add(key)
        out.append(s)
    return out


@dataclass
class CandidateProfile:
    skills: List[str] = field(default_factory=list)
    total_experience_years: Optional[float] = None
    expected_compensation: Optional[float] = None
    preferred_locations: List[str] = field(default_factory=list)
    preferred_employment_type: Optional[str] = None
    candidate_id: Optional[int] = None

    def __post_init__(self) -> None:
        self.skills = clean_list(self.skills)
        self.preferred_locations = clean_list(self.preferred_locations)

    @classmethod
    def from_record(cls, candidate) -> "CandidateProfile":
        return cls(
            skills=candidate.skills,
            total_experience_years=candidate.total_experience,
            expected_compensation=candidate.expected_ctc,
            preferred_locations=candidate.preferred_locations,
            preferred_employment_type=candidate.job_type,
            candidate_id=candidate.id,
        )


@dataclass
class JobPosting:
    job_id: Optional[int] = None
    required_skills: List[str] = field(default_factory=list)
    experience_min: Optional[float] = None
    experience_max: Optional[float] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    locations: List[str] = field(default_factory=list)
    employment_type: Optional[str] = None
    work_mode: Optional[str] = None
    status: Optional[str] = None

    def __post_init__(self) -> None:
        self.required_skills = clean_list(self.required_skills)
        self.locations = clean_list(self.locations)

    @property
    def remote_friendly(self) -> bool:
        if self.work_mode in (WorkMode.REMOTE.value, WorkMode.HYBRID.value):
            return True
        return any(loc.lower() in REMOTE_SENTINELS for loc in self.locations)

    @classmethod
    def from_record(cls, job) -> "JobPosting":
        return cls(
            job_id=job.id,
            required_skills=job.skills,
            experience_min=job.experience_min,
            experience_max=job.experience_max,
            salary_min=job.salary_min,
            salary_max=job.salary_max,
            locations=job.locations,
            employment_type=job.employment_type,
            work_mode=job.work_mode,
            status=job.status,
        )


@dataclass(frozen=True)
class MatchResult:
    job_id: Optional[int]
    score: int
