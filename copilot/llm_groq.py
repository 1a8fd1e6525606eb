import json
import logging
import re
from typing import Dict, List, Optional, Tuple

import requests

import config
from .prompts import (
    COPILOT_SYSTEM_PROMPT, COPILOT_USER_TEMPLATE,
    RESUME_SYSTEM_PROMPT, RESUME_USER_TEMPLATE,
)

logger = logging.getLogger(__name__)

# Resume text beyond this is dropped before it is sent to the model
MAX_RESUME_CHARS = 12000


class CopilotUnavailable(RuntimeError):
    """The LLM could not produce a usable answer."""


def chat_completion(
    messages: List[Dict[str, str]],
    temperature: float = 0.4,
    max_tokens: Optional[int] = None,
    json_mode: bool = False,
) -> Tuple[str, Optional[str]]:
    """Call Groq chat completions. Returns (content, finish_reason)."""
    if not config.GROQ_API_KEY:
        raise CopilotUnavailable("GROQ_API_KEY is not configured")

    headers = {
        "Authorization": f"Bearer {config.GROQ_API_KEY}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": config.MODEL_NAME,
        "messages": messages,
        "temperature": temperature,
    }
    if max_tokens:
        payload["max_tokens"] = max_tokens
    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    try:
        response = requests.post(config.GROQ_API_URL, headers=headers, json=payload, timeout=config.LLM_TIMEOUT)
        response.raise_for_status()
        data = response.json()
        choice = data["choices"][0]
        content = choice["message"]["content"]
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
        logger.warning(f"Groq API error: {e}")
        raise CopilotUnavailable(str(e)) from e

    if not content or not str(content).strip():
        raise CopilotUnavailable("Groq returned an empty message")
    return str(content).strip(), choice.get("finish_reason")


def generate_reply(context: str, message: str, sender_role: str, criteria: List[str]) -> Tuple[str, str]:
    """Co-pilot reply to the latest chat message. Returns (reply, confidence)."""
    is_recruiter = sender_role == "RECRUITER"
    user_prompt = COPILOT_USER_TEMPLATE.format(
        context=context,
        speaker="Recruiter" if is_recruiter else "Candidate",
        message=message,
        criteria=", ".join(criteria) or "None specified",
        audience="recruiter's message" if is_recruiter else "candidate's message",
    )
    reply, finish_reason = chat_completion(
        [
            {"role": "system", "content": COPILOT_SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ],
        temperature=0.7,
        max_tokens=500,
    )
    confidence = "high" if finish_reason == "stop" else "medium"
    return reply, confidence


def _extract_json(text: str) -> dict:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    # Models sometimes wrap the object in prose or code fences
    m = re.search(r"\{[\s\S]*\}", text)
    if m:
        try:
            return json.loads(m.group(0))
        except json.JSONDecodeError:
            pass
    raise CopilotUnavailable("LLM response was not valid JSON")


def extract_resume_fields(resume_text: str) -> dict:
    """Structured resume fields from the LLM, keyed as in RESUME_USER_TEMPLATE."""
    raw, _ = chat_completion(
        [
            {"role": "system", "content": RESUME_SYSTEM_PROMPT},
            {"role": "user", "content": RESUME_USER_TEMPLATE.format(resume=resume_text[:MAX_RESUME_CHARS])},
        ],
        temperature=0.1,
        json_mode=True,
    )
    parsed = _extract_json(raw)
    if not isinstance(parsed, dict):
        raise CopilotUnavailable("LLM response was not a JSON object")
    return parsed
