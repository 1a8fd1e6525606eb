from typing import Any, List
import math

# Profile attributes counted towards completeness. Works on ORM rows or
# any object exposing the same attribute names.
CHECKLIST = [
    "full_name",
    "phone",
    "date_of_birth",
    "total_experience",
    "current_role",
    "expected_role",
    "skills",
    "preferred_locations",
    "current_ctc",
    "expected_ctc",
    "notice_period",
    "job_type",
    "work_type",
    "resume_filename",
]


def _filled(value: Any) -> bool:
    # Numbers count whenever present, so 0 years of experience is filled
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def missing_fields(candidate) -> List[str]:
    return [name for name in CHECKLIST if not _filled(getattr(candidate, name, None))]


def completeness(candidate) -> int:
    """Percentage of the profile checklist that is filled in, 0-100."""
    filled = len(CHECKLIST) - len(missing_fields(candidate))
    pct = math.floor(filled / len(CHECKLIST) * 100 + 0.5)
    return max(0, min(100, int(pct)))
