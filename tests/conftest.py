"""
Pytest configuration for the job board tests.

The API runs against an in-memory SQLite database, the embedding model is
replaced by a tiny bag-of-words vector and the Groq key is cleared so the
co-pilot takes its fallback path unless a test patches it.
"""
import re

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app as app_module
import config
from models import Base

VOCAB = ["python", "react", "engineer", "data", "java", "design"]


def fake_embed(text):
    words = re.findall(r"[a-z]+", (text or "").lower())
    return [float(words.count(w)) for w in VOCAB]


@pytest.fixture(autouse=True)
def offline(monkeypatch):
    """No network: stub embeddings, no LLM key"""
    monkeypatch.setattr(app_module, "embed", fake_embed)
    monkeypatch.setattr(config, "GROQ_API_KEY", "")


@pytest.fixture
def db_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def client(db_session_factory):
    def override_get_db():
        db = db_session_factory()
        try:
            yield db
        finally:
            db.close()

    app_module.app.dependency_overrides[app_module.get_db] = override_get_db
    yield TestClient(app_module.app)
    app_module.app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Create a user and return the identity header for it"""
    def _register(email, name, role):
        resp = client.post("/users", json={"email": email, "name": name, "role": role})
        assert resp.status_code == 201, resp.text
        return {"X-User-Id": str(resp.json()["id"])}
    return _register


@pytest.fixture
def candidate_headers(register):
    return register("jane@example.com", "Jane Doe", "CANDIDATE")


@pytest.fixture
def recruiter_headers(register):
    return register("hr@acme.io", "Rita Recruiter", "RECRUITER")


@pytest.fixture
def make_job(client, recruiter_headers):
    """Post a job as the default recruiter; keyword arguments override the defaults"""
    def _make_job(**overrides):
        payload = {
            "title": "Frontend Engineer",
            "company_name": "Acme",
            "description": "Build the web app",
            "skills": ["React", "TypeScript"],
            "locations": ["Remote"],
            "experience_min": 3,
            "experience_max": 7,
            "salary_min": 80000,
            "salary_max": 120000,
            "employment_type": "FULL_TIME",
            "work_mode": "REMOTE",
            "status": "ACTIVE",
        }
        payload.update(overrides)
        resp = client.post("/recruiter/jobs", json=payload, headers=recruiter_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _make_job


@pytest.fixture
def matching_profile(client, candidate_headers):
    """Candidate profile that scores 80 against the default job"""
    resp = client.put(
        "/candidate/profile",
        json={
            "skills": ["React", "Node.js"],
            "total_experience": 4,
            "expected_ctc": 95000,
            "preferred_locations": ["Remote"],
        },
        headers=candidate_headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()
