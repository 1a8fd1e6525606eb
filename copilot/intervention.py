"""
Keyword rules for the chat co-pilot.

Every check is a case-insensitive substring test against the latest message
only.
"""

from typing import Iterable, Optional, Tuple

from enums import WorkMode

SALARY_TERMS = ("salary", "compensation", "pay")
NEGOTIATION_TERMS = ("negotiate", "higher", "more")
BENEFIT_TERMS = ("benefits", "insurance", "401k", "stock")
VISA_TERMS = ("visa", "sponsorship", "work authorization")
COMPLAINT_TERMS = ("complaint", "unhappy", "issue", "problem")
DISQUALIFY_TERMS = ("don't have", "no experience", "not qualified")

APPLIED_TERMS = ("applied", "submitted")
LINK_TERMS = ("apply here", "application link")
ACK_TERMS = ("thank", "ok", "will do")
DECLINE_TERMS = ("not interested", "decline", "no thank")


def _mentions(text: str, terms: Iterable[str]) -> bool:
    return any(t in text for t in terms)


def needs_intervention(message: str, non_negotiable_criteria: Optional[Iterable[str]] = None) -> bool:
    """True when a human recruiter should take over the conversation."""
    text = (message or "").lower()
    # Blank criteria do not count, so a list of empty strings never arms the disqualifier rule
    criteria = [c for c in (non_negotiable_criteria or []) if c and str(c).strip()]

    if _mentions(text, SALARY_TERMS) and _mentions(text, NEGOTIATION_TERMS):
        return True
    if _mentions(text, BENEFIT_TERMS):
        return True
    if _mentions(text, VISA_TERMS):
        return True
    if _mentions(text, COMPLAINT_TERMS):
        return True
    if criteria and _mentions(text, DISQUALIFY_TERMS):
        return True
    return False


def is_conversation_complete(last_message: str, last_ai_reply: str) -> bool:
    """True once the candidate has applied, declined, or acknowledged an application link."""
    msg = (last_message or "").lower()
    reply = (last_ai_reply or "").lower()

    if _mentions(msg, APPLIED_TERMS):
        return True
    if _mentions(reply, LINK_TERMS) and _mentions(msg, ACK_TERMS):
        return True
    if _mentions(msg, DECLINE_TERMS):
        return True
    return False

    """Formatted salary window, or None unless both bounds are set. 0 is a bound."""
def salary_range(job) -> Optional[str]:
    """"$min - $max", or None unless both bounds are set. 0 is a bound."""
    if job.salary_min is not None and job.salary_max is not None:
        return f"${job.salary_min:,.0f} - ${job.salary_max:,.0f}"
    return None


def _experience_range(job) -> str:
    lo = f"{job.experience_min:g}" if job.experience_min is not None else "0"
    if job.experience_max is None:
        return f"{lo}+"
    return f"{lo}-{job.experience_max:g}"


def fallback_reply(message: str, job) -> Tuple[str, bool]:
    """Canned reply used when the LLM is unavailable. Returns (text, intervention_needed)."""
    text = (message or "").lower()

    if "salary" in text or "pay" in text:
        salary = salary_range(job) or "competitive and based on experience"
        return f"The salary range for this position is {salary}. Is this within your expectations?", True

    if "experience" in text or "years" in text:
        return (
            f"We're looking for candidates with {_experience_range(job)} years of relevant experience. "
            "Could you tell me more about your background?",
            False,
        )

    if "remote" in text or "location" in text:
        if job.work_mode == WorkMode.REMOTE.value:
            return "This is a remote position, so you can work from anywhere. Does that work for you?", False
        places = ", ".join(job.locations or []) or "our office"
        return f"This position is based in {places}. Are you located nearby or willing to relocate?", False

    if "apply" in text or "application" in text:
        return (
            "Great! I'd be happy to help you apply. Let me connect you with our recruitment team "
            "who will guide you through the next steps.",
            True,
        )

    return (
        "Thank you for your interest in this position. Our recruitment team will review your "
        "profile and get back to you soon.",
        True,
    )
