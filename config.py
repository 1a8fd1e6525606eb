"""
Configuration for the job board service.
Loads settings from environment variables / .env file.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# ── Storage ─────────────────────────────────────────────────────
IS_HF = os.environ.get("SPACE_ID") is not None
BASE_DIR = Path("/tmp/data" if IS_HF else os.getenv("BASE_DIR", "data"))

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'jobboard.db'}")
# Hosted Postgres URLs still use the legacy scheme
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# ── Groq (chat co-pilot + resume extraction) ───────────────────
GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
GROQ_API_URL = os.getenv("GROQ_API_URL", "https://api.groq.com/openai/v1/chat/completions")
MODEL_NAME = os.getenv("MODEL_NAME", "llama-3.3-70b-versatile")
LLM_TIMEOUT = int(os.getenv("LLM_TIMEOUT", "60"))

# ── Embeddings (search relevance) ──────────────────────────────
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "paraphrase-MiniLM-L6-v2")
TRANSFORMERS_CACHE = os.getenv("TRANSFORMERS_CACHE", "/tmp/hf_cache")

# ── Recommendations ────────────────────────────────────────────
# Jobs scoring at or below the threshold are not recommended
RECOMMENDATION_MIN_SCORE = int(os.getenv("RECOMMENDATION_MIN_SCORE", "20"))
RECOMMENDATION_LIMIT = int(os.getenv("RECOMMENDATION_LIMIT", "10"))
# Newest eligible jobs loaded before scoring
RECOMMENDATION_POOL_SIZE = int(os.getenv("RECOMMENDATION_POOL_SIZE", "50"))

# ── Resume uploads ─────────────────────────────────────────────
MAX_RESUME_BYTES = int(os.getenv("MAX_RESUME_BYTES", str(5 * 1024 * 1024)))
DEFAULT_PHONE_REGION = os.getenv("DEFAULT_PHONE_REGION", "US")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
