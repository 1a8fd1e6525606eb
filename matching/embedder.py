from sentence_transformers import SentenceTransformer
import numpy as np

import config

_model = None


def get_model():
    global _model
    if _model is None:
        _model = SentenceTransformer(config.EMBEDDING_MODEL, cache_folder=config.TRANSFORMERS_CACHE)
    return _model


def embed(text: str):
    model = get_model()
    emb = model.encode(text, normalize_embeddings=True)
    return emb.tolist()


def cosine(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    va, vb = np.asarray(a, dtype=float), np.asarray(b, dtype=float)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    return float(np.dot(va, vb) / denom) if denom else 0.0


def job_text(title: str, description: str, skills=None) -> str:
    """Text embedded for a job posting."""
    parts = [title or "", ", ".join(skills or []), description or ""]
    return ". ".join(p.strip() for p in parts if p and p.strip())
