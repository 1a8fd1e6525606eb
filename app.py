from __future__ import annotations
import logging
import math
from contextlib import asynccontextmanager
from enum import Enum
from typing import Dict, Iterable, List, Optional

from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import Text, cast, create_engine, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

import config
from enums import CHOICE_QUESTION_TYPES, JobStatus, QuestionType, SenderRole, UserRole
from models import (
    Application, Base, Candidate, ChatMessage, CustomQuestion, Job, Recruiter, SavedJob, User,
    utcnow,
)
from schemas import (
    ApplicationIn, ApplicationOut, ApplicationStatusUpdate, CandidateProfileIn,
    CandidateProfileOut, ChatMessageOut, ChatMetadata, ChatRequest, ChatResponse,
    JobIn, JobOut, JobSearchOut, JobStatusUpdate, Pagination, QuestionIn, QuestionOut, RecommendedJob,
    RecommendedJobsOut, RecruiterApplicationOut, ResumeParseOut, SavedJobOut,
    SaveJobIn, UserCreate, UserOut,
)
from matching.profiles import CandidateProfile, JobPosting, clean_list
from matching.scorer import score
from matching.ranker import rank
from matching.completeness import completeness, missing_fields
from matching.embedder import embed, cosine, job_text
from copilot.intervention import needs_intervention, is_conversation_complete, fallback_reply
from copilot.llm_groq import CopilotUnavailable, generate_reply
from copilot.prompts import build_conversation_context
from parsers.resume import ResumeParser, UnsupportedResume, SUPPORTED_EXTENSIONS

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

engine = None
SessionLocal = sessionmaker(autoflush=False, autocommit=False, future=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the engine and tables on startup, dispose on shutdown."""
    global engine

    if config.DATABASE_URL.startswith("sqlite"):
        config.BASE_DIR.mkdir(parents=True, exist_ok=True)
    logger.info(f"Database URL: {config.DATABASE_URL}")
    engine = create_engine(config.DATABASE_URL, future=True)
    SessionLocal.configure(bind=engine)
    Base.metadata.create_all(engine)

    yield
    engine.dispose()
    logger.info("Application shutting down.")


app = FastAPI(title="Job Board Matcher", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_db():
    """One session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# -------------------------------------------------------------------
# Identity (callers pass X-User-Id; nothing verifies it)
# -------------------------------------------------------------------
def current_user(x_user_id: Optional[int] = Header(None), db: Session = Depends(get_db)) -> User:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = db.get(User, x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def current_candidate(user: User = Depends(current_user)) -> Candidate:
    if user.role != UserRole.CANDIDATE.value:
        raise HTTPException(status_code=403, detail="Forbidden")
    if not user.candidate:
        raise HTTPException(status_code=404, detail="Candidate profile not found")
    return user.candidate


def current_recruiter(user: User = Depends(current_user)) -> Recruiter:
    if user.role != UserRole.RECRUITER.value:
        raise HTTPException(status_code=403, detail="Forbidden")
    if not user.recruiter:
        raise HTTPException(status_code=404, detail="Recruiter profile not found")
    return user.recruiter


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------
def _plain(value):
    return value.value if isinstance(value, Enum) else value


def _safe_embed(text: str) -> List[float] | None:
    try:
        return embed(text)
    except Exception as e:
        logger.warning(f"Embedding failed: {e}")
        return None


def _application_counts(db: Session, job_ids: Iterable[int]) -> Dict[int, int]:
    job_ids = list(job_ids)
    if not job_ids:
        return {}
    rows = (
        db.query(Application.job_id, func.count(Application.id))
        .filter(Application.job_id.in_(job_ids))
        .group_by(Application.job_id)
        .all()
    )
    return dict(rows)


def _job_out(job: Job, counts: Optional[Dict[int, int]] = None) -> JobOut:
    out = JobOut.model_validate(job)
    out.application_count = (counts or {}).get(job.id, 0)
    return out


def _profile_out(candidate: Candidate) -> CandidateProfileOut:
    out = CandidateProfileOut.model_validate(candidate)
    out.missing_fields = missing_fields(candidate)
    return out


def _eligible_jobs(db: Session):
    """ACTIVE postings whose deadline is absent or still ahead."""
    return db.query(Job).filter(
        Job.status == JobStatus.ACTIVE.value,
        or_(Job.deadline.is_(None), Job.deadline >= utcnow()),
    )


def _get_job(db: Session, job_id: int) -> Job:
    job = db.get(Job, job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found.")
    return job


def _owned_job(db: Session, recruiter: Recruiter, job_id: int) -> Job:
    job = _get_job(db, job_id)
    if job.recruiter_id != recruiter.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return job


# Parsed resume keys -> candidate columns
RESUME_FIELD_MAP = {
    "fullName": "full_name",
    "phone": "phone",
    "skills": "skills",
    "totalExperience": "total_experience",
    "currentRole": "current_role",
    "currentCTC": "current_ctc",
    "expectedCTC": "expected_ctc",
    "preferredLocations": "preferred_locations",
    "summary": "summary",
    "experience": "work_history",
    "education": "education",
}
NUMERIC_RESUME_FIELDS = {"total_experience", "current_ctc", "expected_ctc"}
LIST_RESUME_FIELDS = {"skills", "preferred_locations"}


def _apply_parsed_resume(candidate: Candidate, parsed: dict) -> None:
    """Copy non-empty parsed values onto the profile; empty ones keep what is stored."""
    for key, column in RESUME_FIELD_MAP.items():
        value = parsed.get(key)
        if value in (None, "", []):
            continue
        if column in NUMERIC_RESUME_FIELDS:
            try:
                value = float(value)
            except (TypeError, ValueError):
                continue
            if value < 0:
                continue
        elif column in LIST_RESUME_FIELDS:
            value = clean_list(value if isinstance(value, list) else [value])
        elif column in ("work_history", "education"):
            if not isinstance(value, list):
                continue
            value = [v for v in value if isinstance(v, dict)]
        else:
            value = str(value).strip()
        setattr(candidate, column, value)


def _answer_errors(questions: List[CustomQuestion], answers: Optional[dict]) -> List[str]:
    """Problems with an application's answers, keyed by question id."""
    answers = answers or {}
    by_id = {str(q.id): q for q in questions}
    errors = [f"Unknown question {key}" for key in answers if key not in by_id]

    for key, q in by_id.items():
        value = answers.get(key)
        if value is None or value == "" or value == []:
            if q.is_mandatory:
                errors.append(f"Question {key} is required")
            continue
        options = q.options or []
        if q.type == QuestionType.CHECKBOX.value:
            picked = value if isinstance(value, list) else [value]
            if any(p not in options for p in picked):
                errors.append(f"Question {key} has an answer outside its options")
        elif q.type in (t.value for t in CHOICE_QUESTION_TYPES):
            if value not in options:
                errors.append(f"Question {key} has an answer outside its options")
        elif q.type == QuestionType.YES_NO.value:
            if not isinstance(value, bool) and str(value).lower() not in ("yes", "no"):
                errors.append(f"Question {key} must be answered yes or no")
    return errors


# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/users", response_model=UserOut, status_code=201)
def register_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Create an account and its empty candidate or recruiter profile."""
    email = payload.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(email=email, name=payload.name.strip(), role=payload.role.value)
    if payload.role == UserRole.CANDIDATE:
        user.candidate = Candidate(full_name=user.name, skills=[], preferred_locations=[])
        user.candidate.profile_completeness = completeness(user.candidate)
    elif payload.role == UserRole.RECRUITER:
        user.recruiter = Recruiter()
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")
    db.refresh(user)
    logger.info(f"Registered {user.role.lower()} user_id={user.id}")
    return user


# ---- candidate ------------------------------------------------------
@app.get("/candidate/profile", response_model=CandidateProfileOut)
def get_profile(candidate: Candidate = Depends(current_candidate)):
    return _profile_out(candidate)


@app.put("/candidate/profile", response_model=CandidateProfileOut)
def update_profile(
    payload: CandidateProfileIn,
    candidate: Candidate = Depends(current_candidate),
    db: Session = Depends(get_db),
):
    for key, value in payload.model_dump(exclude_unset=True).items():
        if key in ("skills", "preferred_locations"):
            value = clean_list(value)
        setattr(candidate, key, _plain(value))
    candidate.profile_completeness = completeness(candidate)
    db.commit()
    db.refresh(candidate)
    return _profile_out(candidate)


@app.post("/candidate/resume", response_model=ResumeParseOut)
def upload_resume(
    resume: UploadFile = File(...),
    candidate: Candidate = Depends(current_candidate),
    db: Session = Depends(get_db),
):
    """Parse an uploaded resume and merge what it finds into the profile."""
    filename = resume.filename or ""
    if not filename.lower().endswith(SUPPORTED_EXTENSIONS):
        raise HTTPException(status_code=400, detail="Invalid file type. Only PDF, DOCX and TXT files are allowed.")

    data = resume.file.read(config.MAX_RESUME_BYTES + 1)
    if len(data) > config.MAX_RESUME_BYTES:
        raise HTTPException(status_code=400, detail="File size exceeds the upload limit.")

    try:
        parsed = ResumeParser().parse(filename, data)
    except UnsupportedResume as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception:
        logger.exception(f"Resume parsing failed for candidate_id={candidate.id}")
        raise HTTPException(status_code=500, detail="Failed to parse resume")

    text = parsed.pop("text", "")
    _apply_parsed_resume(candidate, parsed)
    candidate.resume_filename = parsed.get("fileName")
    candidate.resume_text = text
    candidate.resume_parsed_data = parsed
    candidate.profile_completeness = completeness(candidate)
    db.commit()

    return ResumeParseOut(parsed=parsed, profile_completeness=candidate.profile_completeness)


@app.get("/candidate/recommended-jobs", response_model=RecommendedJobsOut)
def recommended_jobs(candidate: Candidate = Depends(current_candidate), db: Session = Depends(get_db)):
    """Best-matching open jobs for the candidate."""
    jobs = (
        _eligible_jobs(db)
        .order_by(Job.created_at.desc(), Job.id.desc())
        .limit(config.RECOMMENDATION_POOL_SIZE)
        .all()
    )
    results = rank(
        CandidateProfile.from_record(candidate),
        [JobPosting.from_record(j) for j in jobs],
        min_score=config.RECOMMENDATION_MIN_SCORE,
        limit=config.RECOMMENDATION_LIMIT,
    )
    by_id = {j.id: j for j in jobs}
    counts = _application_counts(db, [r.job_id for r in results])
    recommended = [
        RecommendedJob(job_id=r.job_id, score=r.score, job=_job_out(by_id[r.job_id], counts))
        for r in results
    ]
    return RecommendedJobsOut(jobs=recommended, total_jobs=len(recommended))


@app.get("/candidate/saved-jobs", response_model=List[SavedJobOut])
def saved_jobs(candidate: Candidate = Depends(current_candidate), db: Session = Depends(get_db)):
    saved = (
        db.query(SavedJob)
        .filter(SavedJob.candidate_id == candidate.id)
        .order_by(SavedJob.created_at.desc(), SavedJob.id.desc())
        .all()
    )
    counts = _application_counts(db, [s.job_id for s in saved])
    return [
        SavedJobOut(**_job_out(s.job, counts).model_dump(), saved_at=s.created_at)
        for s in saved
    ]


@app.post("/jobs/save")
def save_job(
    payload: SaveJobIn,
    candidate: Candidate = Depends(current_candidate),
    db: Session = Depends(get_db),
):
    _get_job(db, payload.job_id)
    existing = (
        db.query(SavedJob)
        .filter(SavedJob.candidate_id == candidate.id, SavedJob.job_id == payload.job_id)
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="Job already saved")

    saved = SavedJob(candidate_id=candidate.id, job_id=payload.job_id)
    db.add(saved)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Job already saved")
    return {"message": "Job saved successfully", "saved_job_id": saved.id}


@app.delete("/jobs/save/{job_id}")
def unsave_job(job_id: int, candidate: Candidate = Depends(current_candidate), db: Session = Depends(get_db)):
    saved = (
        db.query(SavedJob)
        .filter(SavedJob.candidate_id == candidate.id, SavedJob.job_id == job_id)
        .first()
    )
    if not saved:
        raise HTTPException(status_code=404, detail="Saved job not found")
    db.delete(saved)
    db.commit()
    return {"message": "Job removed from saved jobs"}


@app.get("/candidate/applications", response_model=List[ApplicationOut])
def my_applications(candidate: Candidate = Depends(current_candidate), db: Session = Depends(get_db)):
    apps = (
        db.query(Application)
        .filter(Application.candidate_id == candidate.id)
        .order_by(Application.created_at.desc(), Application.id.desc())
        .all()
    )
    out = []
    for a in apps:
        item = ApplicationOut.model_validate(a)
        item.job_title = a.job.title
        out.append(item)
    return out


@app.post("/candidate/applications", response_model=ApplicationOut, status_code=201)
def apply_to_job(
    payload: ApplicationIn,
    candidate: Candidate = Depends(current_candidate),
    db: Session = Depends(get_db),
):
    job = _get_job(db, payload.job_id)
    if job.status != JobStatus.ACTIVE.value:
        raise HTTPException(status_code=400, detail="Job is not accepting applications")

    existing = (
        db.query(Application)
        .filter(Application.job_id == job.id, Application.candidate_id == candidate.id)
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="You have already applied to this job")

    errors = _answer_errors(job.custom_questions, payload.answers)
    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))

    snapshot = {
        "full_name": candidate.full_name,
        "email": candidate.user.email,
        "phone": candidate.phone,
        "current_role": candidate.current_role,
        "total_experience": candidate.total_experience,
        "current_ctc": candidate.current_ctc,
        "expected_ctc": candidate.expected_ctc,
        "skills": candidate.skills or [],
        "preferred_locations": candidate.preferred_locations or [],
        "profile_completeness": candidate.profile_completeness,
    }
    application = Application(
        job_id=job.id,
        candidate_id=candidate.id,
        cover_letter=payload.cover_letter,
        answers=payload.answers,
        candidate_info=snapshot,
    )
    db.add(application)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="You have already applied to this job")
    db.refresh(application)

    out = ApplicationOut.model_validate(application)
    out.job_title = job.title
    return out


# ---- jobs -----------------------------------------------------------
@app.get("/jobs/search", response_model=JobSearchOut)
def search_jobs(
    query: str = "",
    location: str = "",
    job_type: Optional[str] = None,
    work_mode: Optional[str] = None,
    experience_min: Optional[float] = None,
    salary_min: Optional[float] = None,
    sort_by: str = Query("relevance", pattern="^(relevance|date|salary_high|salary_low)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    q = db.query(Job).filter(Job.status == JobStatus.ACTIVE.value)

    query = query.strip()
    if query:
        pattern = f"%{query}%"
        q = q.filter(or_(
            Job.title.ilike(pattern),
            Job.description.ilike(pattern),
            Job.company_name.ilike(pattern),
            cast(Job.skills, Text).ilike(pattern),
        ))
    if location.strip():
        q = q.filter(cast(Job.locations, Text).ilike(f"%{location.strip()}%"))
    if job_type and job_type != "all":
        q = q.filter(Job.employment_type == job_type)
    if work_mode and work_mode != "all":
        q = q.filter(Job.work_mode == work_mode)
    if experience_min is not None:
        q = q.filter(Job.experience_min >= experience_min)
    if salary_min is not None:
        q = q.filter(or_(Job.salary_min >= salary_min, Job.salary_max >= salary_min))

    total = q.count()
    offset = (page - 1) * limit
    newest_first = (Job.created_at.desc(), Job.id.desc())

    query_vec = _safe_embed(query) if (sort_by == "relevance" and query) else None
    if query_vec is not None:
        # Semantic ordering happens in Python; jobs without an embedding go last
        jobs = q.order_by(*newest_first).all()
        jobs.sort(
            key=lambda j: cosine(query_vec, j.embedding) if j.embedding else float("-inf"),
            reverse=True,
        )
        jobs = jobs[offset: offset + limit]
    else:
        if sort_by == "salary_high":
            order = (Job.salary_max.desc().nulls_last(), *newest_first)
        elif sort_by == "salary_low":
            order = (Job.salary_min.asc().nulls_last(), *newest_first)
        else:
            order = newest_first
        jobs = q.order_by(*order).offset(offset).limit(limit).all()

    counts = _application_counts(db, [j.id for j in jobs])
    return JobSearchOut(
        jobs=[_job_out(j, counts) for j in jobs],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@app.get("/jobs/{job_id}", response_model=JobOut)
def get_job(job_id: int, db: Session = Depends(get_db)):
    job = _get_job(db, job_id)
    return _job_out(job, _application_counts(db, [job.id]))


@app.get("/jobs/{job_id}/questions", response_model=List[QuestionOut])
def list_questions(job_id: int, db: Session = Depends(get_db)):
    return _get_job(db, job_id).custom_questions


@app.post("/jobs/{job_id}/questions", response_model=QuestionOut, status_code=201)
def add_question(
    job_id: int,
    payload: QuestionIn,
    recruiter: Recruiter = Depends(current_recruiter),
    db: Session = Depends(get_db),
):
    """Append an application question; order continues from the job's last question."""
    job = _owned_job(db, recruiter, job_id)
    last = db.query(func.max(CustomQuestion.order)).filter(CustomQuestion.job_id == job.id).scalar()
    question = CustomQuestion(
        job_id=job.id,
        question=payload.question.strip(),
        type=payload.type.value,
        options=payload.options or None,
        is_mandatory=payload.is_mandatory,
        order=0 if last is None else last + 1,
    )
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


# ---- recruiter ------------------------------------------------------
@app.post("/recruiter/jobs", response_model=JobOut, status_code=201)
def create_job(
    payload: JobIn,
    recruiter: Recruiter = Depends(current_recruiter),
    db: Session = Depends(get_db),
):
    """Create a job posting; its text is embedded for search relevance."""
    skills = clean_list(payload.skills)
    job = Job(
        recruiter_id=recruiter.id,
        title=payload.title.strip(),
        company_name=payload.company_name.strip(),
        description=payload.description,
        skills=skills,
        locations=clean_list(payload.locations),
        experience_min=payload.experience_min,
        experience_max=payload.experience_max,
        salary_min=payload.salary_min,
        salary_max=payload.salary_max,
        currency=payload.currency,
        employment_type=payload.employment_type.value,
        work_mode=payload.work_mode.value,
        deadline=payload.deadline,
        status=payload.status.value,
        non_negotiable_criteria=clean_list(payload.non_negotiable_criteria),
        embedding=_safe_embed(job_text(payload.title, payload.description, skills)),
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(f"Created job_id={job.id} for recruiter_id={recruiter.id}")
    return _job_out(job)


@app.get("/recruiter/jobs", response_model=List[JobOut])
def list_recruiter_jobs(recruiter: Recruiter = Depends(current_recruiter), db: Session = Depends(get_db)):
    jobs = (
        db.query(Job)
        .filter(Job.recruiter_id == recruiter.id)
        .order_by(Job.created_at.desc(), Job.id.desc())
        .all()
    )
    counts = _application_counts(db, [j.id for j in jobs])
    return [_job_out(j, counts) for j in jobs]


@app.patch("/recruiter/jobs/{job_id}/status", response_model=JobOut)
def update_job_status(
    job_id: int,
    payload: JobStatusUpdate,
    recruiter: Recruiter = Depends(current_recruiter),
    db: Session = Depends(get_db),
):
    job = _owned_job(db, recruiter, job_id)
    job.status = payload.status.value
    db.commit()
    db.refresh(job)
    return _job_out(job, _application_counts(db, [job.id]))


@app.get("/recruiter/applications", response_model=List[RecruiterApplicationOut])
def recruiter_applications(
    job_id: Optional[int] = None,
    recruiter: Recruiter = Depends(current_recruiter),
    db: Session = Depends(get_db),
):
    """Applications to the recruiter's jobs, best match first."""
    q = db.query(Application).join(Job).filter(Job.recruiter_id == recruiter.id)
    if job_id is not None:
        q = q.filter(Application.job_id == job_id)
    apps = q.order_by(Application.created_at.desc(), Application.id.desc()).all()

    out = []
    for a in apps:
        item = RecruiterApplicationOut.model_validate(a)
        item.job_title = a.job.title
        item.candidate_name = a.candidate.full_name or a.candidate.user.name
        item.match_score = score(CandidateProfile.from_record(a.candidate), JobPosting.from_record(a.job))
        out.append(item)
    out.sort(key=lambda x: x.match_score, reverse=True)
    return out


@app.patch("/recruiter/applications/{application_id}", response_model=RecruiterApplicationOut)
def update_application_status(
    application_id: int,
    payload: ApplicationStatusUpdate,
    recruiter: Recruiter = Depends(current_recruiter),
    db: Session = Depends(get_db),
):
    application = db.get(Application, application_id)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    if application.job.recruiter_id != recruiter.id:
        raise HTTPException(status_code=403, detail="Forbidden")

    application.status = payload.status.value
    db.commit()
    db.refresh(application)

    item = RecruiterApplicationOut.model_validate(application)
    item.job_title = application.job.title
    item.candidate_name = application.candidate.full_name or application.candidate.user.name
    item.match_score = score(
        CandidateProfile.from_record(application.candidate), JobPosting.from_record(application.job)
    )
    return item


# ---- chat co-pilot --------------------------------------------------
def _conversation(db: Session, job_id: int, candidate_id: int) -> List[ChatMessage]:
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.job_id == job_id, ChatMessage.candidate_id == candidate_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .all()
    )


@app.post("/chat/ai-response", response_model=ChatResponse)
def chat_ai_response(
    payload: ChatRequest,
    recruiter: Recruiter = Depends(current_recruiter),
    db: Session = Depends(get_db),
):
    """Store the incoming message, draft the co-pilot reply and flag it for a human if needed."""
    job = _owned_job(db, recruiter, payload.job_id)
    candidate = db.get(Candidate, payload.candidate_id)
    if not candidate:
        raise HTTPException(status_code=404, detail="Candidate not found")

    criteria = payload.non_negotiable_criteria
    if criteria is None:
        criteria = job.non_negotiable_criteria or []
    criteria = clean_list(criteria)

    history = _conversation(db, job.id, candidate.id)
    db.add(ChatMessage(
        job_id=job.id,
        candidate_id=candidate.id,
        sender_role=payload.sender_role.value,
        content=payload.message,
    ))

    error = None
    try:
        context = build_conversation_context(history, job, candidate, criteria)
        reply, confidence = generate_reply(context, payload.message, payload.sender_role.value, criteria)
        intervention = needs_intervention(payload.message, criteria)
        complete = is_conversation_complete(payload.message, reply)
    except CopilotUnavailable as e:
        logger.warning(f"Co-pilot unavailable for job_id={job.id}, using fallback reply: {e}")
        reply, flagged = fallback_reply(payload.message, job)
        intervention = flagged or needs_intervention(payload.message, criteria)
        complete = False
        confidence = "low"
        error = "AI service unavailable"
    except Exception:
        db.rollback()
        logger.exception(f"Co-pilot reply failed for job_id={job.id} candidate_id={candidate.id}")
        raise HTTPException(status_code=500, detail="Failed to generate AI response")

    metadata = ChatMetadata(
        intervention_needed=intervention,
        conversation_complete=complete,
        confidence=confidence,
        timestamp=utcnow().isoformat(),
        error=error,
    )
    db.add(ChatMessage(
        job_id=job.id,
        candidate_id=candidate.id,
        sender_role=SenderRole.BOT.value,
        content=reply,
        message_metadata=metadata.model_dump(by_alias=True, exclude_none=True),
        intervention_needed=intervention,
    ))
    db.commit()
    if intervention:
        logger.info(f"Intervention needed: job_id={job.id} candidate_id={candidate.id}")

    return ChatResponse(message=reply, metadata=metadata)


@app.get("/chat/history", response_model=List[ChatMessageOut])
def chat_history(
    job_id: int,
    candidate_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    job = _get_job(db, job_id)
    is_owner = user.recruiter is not None and job.recruiter_id == user.recruiter.id
    is_self = user.candidate is not None and user.candidate.id == candidate_id
    if not (is_owner or is_self):
        raise HTTPException(status_code=403, detail="Forbidden")
    return _conversation(db, job_id, candidate_id)


@app.get("/recruiter/action-queue", response_model=List[ChatMessageOut])
def action_queue(recruiter: Recruiter = Depends(current_recruiter), db: Session = Depends(get_db)):
    """Co-pilot replies flagged for a human that nobody has handled yet."""
    return (
        db.query(ChatMessage)
        .join(Job)
        .filter(
            Job.recruiter_id == recruiter.id,
            ChatMessage.intervention_needed.is_(True),
            ChatMessage.resolved.is_(False),
        )
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .all()
    )


@app.post("/recruiter/action-queue/{message_id}/resolve", response_model=ChatMessageOut)
def resolve_action(
    message_id: int,
    recruiter: Recruiter = Depends(current_recruiter),
    db: Session = Depends(get_db),
):
    message = db.get(ChatMessage, message_id)
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    if message.job.recruiter_id != recruiter.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    message.resolved = True
    db.commit()
    db.refresh(message)
    return message
