"""
Test cases for the chat co-pilot keyword rules
"""
from types import SimpleNamespace

import pytest

from copilot.intervention import fallback_reply, is_conversation_complete, needs_intervention, salary_range
from copilot.prompts import build_conversation_context


class TestNeedsIntervention:

    @pytest.mark.parametrize("message", [
        "Can we negotiate a higher salary?",
        "Is the compensation open to more discussion?",
        "What benefits and insurance do you offer?",
        "Do you provide visa sponsorship?",
        "I have a complaint about the last recruiter",
        "There is an issue with my application",
    ])
    def test_escalates(self, message):
        assert needs_intervention(message, []) is True

    @pytest.mark.parametrize("message", [
        "I love this role, when do I start?",
        "What is the salary?",
        "Can you tell me more about the team?",
        "",
    ])
    def test_does_not_escalate(self, message):
        assert needs_intervention(message, []) is False

    def test_disqualifier_needs_criteria(self):
        message = "I don't have a degree"
        assert needs_intervention(message, []) is False
        assert needs_intervention(message, None) is False
        assert needs_intervention(message, ["  "]) is False
        assert needs_intervention(message, [""]) is False
        assert needs_intervention(message, ["Bachelor's degree"]) is True

    def test_case_insensitive(self):
        assert needs_intervention("VISA?", []) is True


class TestConversationComplete:

    def test_candidate_applied(self):
        assert is_conversation_complete("I have applied already", "") is True
        assert is_conversation_complete("Submitted it!", "anything") is True

    def test_acknowledged_application_link(self):
        reply = "Great, here is the application link for the role."
        assert is_conversation_complete("Thanks!", reply) is True
        assert is_conversation_complete("OK", "You can apply here: https://jobs.example") is True
        assert is_conversation_complete("Thanks!", "Let's talk tomorrow.") is False

    def test_declined(self):
        assert is_conversation_complete("I'm not interested, sorry", "") is True
        assert is_conversation_complete("No thank you", "") is True

    def test_open_conversation(self):
        assert is_conversation_complete("What's the tech stack?", "We use Python.") is False


def job(**overrides):
    fields = dict(
        salary_min=80000, salary_max=120000,
        experience_min=3, experience_max=7,
        work_mode="ONSITE", locations=["Berlin", "Munich"],
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestFallbackReply:

    def test_salary_question_is_flagged(self):
        reply, flagged = fallback_reply("What does it pay?", job())
        assert "$80,000 - $120,000" in reply
        assert flagged is True

    def test_salary_without_range(self):
        reply, _ = fallback_reply("salary?", job(salary_min=None))
        assert "competitive" in reply

    def test_experience_question(self):
        reply, flagged = fallback_reply("How many years do I need?", job())
        assert "3-7 years" in reply
        assert flagged is False

    def test_location_question(self):
        reply, flagged = fallback_reply("Where is the location?", job())
        assert "Berlin, Munich" in reply
        assert flagged is False
        reply, _ = fallback_reply("Is it remote?", job(work_mode="REMOTE"))
        assert "remote position" in reply

    def test_apply_and_default_are_flagged(self):
        assert fallback_reply("How do I apply?", job())[1] is True
        assert fallback_reply("Hello there", job())[1] is True

    def test_zero_salary_bound_is_a_range(self):
        reply, _ = fallback_reply("What is the pay?", job(salary_min=0, salary_max=50000))
        assert "$0 - $50,000" in reply


class TestSalaryRange:

    def test_both_bounds(self):
        assert salary_range(job()) == "$80,000 - $120,000"
        assert salary_range(job(salary_min=0)) == "$0 - $120,000"

    def test_missing_bound(self):
        assert salary_range(job(salary_max=None)) is None


class TestConversationContext:

    def _candidate(self):
        return SimpleNamespace(
            full_name="Jane Doe", user=None, skills=["React"],
            preferred_locations=["Remote"], total_experience=4,
        )

    def _job(self, **overrides):
        return job(title="Frontend Engineer", company_name="Acme", employment_type="FULL_TIME", **overrides)

    def test_job_and_history(self):
        history = [SimpleNamespace(sender_role=r, content=f"m{i}") for i, r in
                   enumerate(["CANDIDATE", "BOT"] * 4)]
        context = build_conversation_context(history, self._job(), self._candidate(), ["Degree"])
        assert "Frontend Engineer" in context
        assert "$80,000 - $120,000" in context
        assert "Berlin, Munich" in context
        assert "Degree" in context
        assert "m2" not in context
        assert "Candidate: m4" in context and "AI: m7" in context

    def test_remote_and_zero_salary(self):
        context = build_conversation_context(
            [], self._job(work_mode="REMOTE", salary_min=0, salary_max=40000), self._candidate(), []
        )
        assert "Location: Remote" in context
        assert "$0 - $40,000" in context
        assert "(no previous messages)" in context
