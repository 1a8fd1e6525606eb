from enums import WorkMode
from .intervention import salary_range


COPILOT_SYSTEM_PROMPT = """You are an AI recruitment assistant. You help recruiters engage with candidates
professionally and efficiently move them through the recruitment process."""


COPILOT_USER_TEMPLATE = """CONTEXT:
{context}

RECENT MESSAGE:
{speaker}: "{message}"

NON-NEGOTIABLE CRITERIA:
{criteria}

Your task is to respond to the {audience} as the AI assistant.

GUIDELINES:
1. Be professional, friendly, and concise
2. Keep responses focused on recruitment and the specific job
3. Ask relevant questions to gather missing information
4. Move the conversation forward toward application or next steps
5. If the candidate asks about salary range, provide the range from the job details if available
6. If the candidate asks about location, clarify remote/hybrid/office options
7. If the candidate seems unqualified or doesn't meet criteria, politely explain and suggest alternatives
8. If the candidate meets criteria, guide them toward application

Respond with a natural, conversational message only."""


CONTEXT_TEMPLATE = """JOB DETAILS:
- Title: {title}
- Company: {company}
- Location: {location}
- Type: {employment_type}
- Experience Required: {experience}
- Salary: {salary}

CANDIDATE PROFILE:
- Name: {name}
- Skills: {skills}
- Preferred locations: {locations}
- Experience: {candidate_experience}

NON-NEGOTIABLE CRITERIA:
{criteria}

RECENT CONVERSATION:
{history}"""


RESUME_SYSTEM_PROMPT = """You are an expert resume parser that extracts structured information from resume text.
Output ONLY valid JSON. Use null for anything the resume does not state."""


RESUME_USER_TEMPLATE = """Extract the following fields from the resume below:

{{
  "fullName": "Full name of the candidate",
  "email": "Email address",
  "phone": "Phone number",
  "skills": ["technical and soft skills"],
  "experience": [
    {{"title": "Job title", "company": "Company name", "duration": "e.g. '2 years'", "description": "Brief description"}}
  ],
  "education": [
    {{"degree": "Degree name", "institution": "Institution name", "year": "Graduation year"}}
  ],
  "totalExperience": <total years of experience as a number>,
  "currentRole": "Current or most recent job title",
  "currentCTC": <current salary as a number>,
  "expectedCTC": <expected salary as a number>,
  "preferredLocations": ["preferred work locations"],
  "summary": "Professional summary"
}}

RESUME:
{resume}"""

SPEAKER_LABELS = {"CANDIDATE": "Candidate", "RECRUITER": "Recruiter", "BOT": "AI"}


def build_conversation_context(history, job, candidate, criteria) -> str:
    """Prompt context: job, candidate and the last five messages."""
    if job.work_mode == WorkMode.REMOTE.value:
        location = "Remote"
    else:
        location = ", ".join(job.locations or []) or "Not specified"

    salary = salary_range(job) or "Competitive"

    recent = history[-5:] if history else []
    lines = [f"{SPEAKER_LABELS.get(m.sender_role, 'AI')}: {m.content}" for m in recent]

    return CONTEXT_TEMPLATE.format(
        title=job.title,
        company=job.company_name,
        location=location,
        employment_type=job.employment_type or "Not specified",
        experience=f"{job.experience_min or 0:g}-{job.experience_max:g} years" if job.experience_max is not None else "Not specified",
        salary=salary,
        name=candidate.full_name or (candidate.user.name if candidate.user else "") or "Not specified",
        skills=", ".join(candidate.skills or []) or "Not specified",
        locations=", ".join(candidate.preferred_locations or []) or "Not specified",
        candidate_experience=f"{candidate.total_experience:g} years" if candidate.total_experience is not None else "Not specified",
        criteria="\n".join(criteria) or "None specified",
        history="\n".join(lines) or "(no previous messages)",
    )
