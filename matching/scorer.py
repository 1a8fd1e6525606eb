from typing import Dict, List, Optional
import math

from .profiles import CandidateProfile, JobPosting

# Points per dimension; a perfect match on all of them sums to 100
W_SKILLS, W_EXPERIENCE, W_SALARY, W_LOCATION, W_EMPLOYMENT = 40, 25, 20, 15, 5
REMOTE_CONSOLATION = 10

# (low factor, high factor, points) from tightest to loosest band
EXPERIENCE_BANDS = ((1.0, 1.0, 25), (0.8, 1.2, 15), (0.6, 1.5, 5))
SALARY_BANDS = ((1.0, 1.0, 20), (0.8, 1.2, 15), (0.6, 1.5, 8))


def _overlaps(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return a in b or b in a


def matched_skills(candidate_skills: List[str], job_skills: List[str]) -> List[str]:
    return [s for s in candidate_skills if any(_overlaps(s, j) for j in job_skills)]


def skill_points(candidate_skills: List[str], job_skills: List[str]) -> float:
    if not candidate_skills or not job_skills:
        return 0.0
    hits = len(matched_skills(candidate_skills, job_skills))
    return hits / max(len(candidate_skills), len(job_skills)) * W_SKILLS


def band_points(value: Optional[float], low: Optional[float], high: Optional[float], bands) -> float:
    """Points for the tightest band around [low, high] that contains value; 0 if any is missing."""
    if value is None or low is None or high is None:
        return 0.0
    for lo_f, hi_f, pts in bands:
        if low * lo_f <= value <= high * hi_f:
            return float(pts)
    return 0.0


def location_points(candidate_locations: List[str], job: JobPosting) -> float:
    if not candidate_locations or not job.locations:
        return 0.0
    if any(_overlaps(c, j) for c in candidate_locations for j in job.locations):
        return float(W_LOCATION)
    if job.remote_friendly:
        return float(REMOTE_CONSOLATION)
    return 0.0


def employment_points(candidate: CandidateProfile, job: JobPosting) -> float:
    pref = candidate.preferred_employment_type
    if pref and pref == job.employment_type:
        return float(W_EMPLOYMENT)
    return 0.0


def score_components(candidate: CandidateProfile, job: JobPosting) -> Dict[str, float]:
    return {
        "skills": skill_points(candidate.skills, job.required_skills),
        "experience": band_points(candidate.total_experience_years, job.experience_min, job.experience_max, EXPERIENCE_BANDS),
        "salary": band_points(candidate.expected_compensation, job.salary_min, job.salary_max, SALARY_BANDS),
        "location": location_points(candidate.preferred_locations, job),
        "employment_type": employment_points(candidate, job),
    }


def score(candidate: CandidateProfile, job: JobPosting) -> int:
    """Match score in [0, 100]."""
    total = sum(score_components(candidate, job).values())
    total = max(0.0, min(100.0, total))
    # Half-up, so 12.5 -> 13
    return int(math.floor(total + 0.5))
