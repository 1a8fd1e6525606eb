from typing import Iterable, List

from .profiles import CandidateProfile, JobPosting, MatchResult
from .scorer import score

DEFAULT_MIN_SCORE = 20
DEFAULT_LIMIT = 10


def rank(
    candidate: CandidateProfile,
    jobs: Iterable[JobPosting],
    min_score: int = DEFAULT_MIN_SCORE,
    limit: int = DEFAULT_LIMIT,
) -> List[MatchResult]:
    """
    Score every job for the candidate and return the best ones.

    Jobs must already be filtered to ACTIVE postings with a future or absent
    deadline. Results scoring at or below ``min_score`` are dropped; ties keep
    their input order.
    """
    results = [MatchResult(job_id=j.job_id, score=score(candidate, j)) for j in jobs]
    kept = [r for r in results if r.score > min_score]
    kept.sort(key=lambda r: r.score, reverse=True)
    return kept[: max(0, limit)]
