import io
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import docx
import phonenumbers

import config
from copilot.llm_groq import CopilotUnavailable, extract_resume_fields
from .pdf import pdf_to_text

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".pdf", ".docx", ".txt")

SKILLS_DB = {
    "programming_languages": [
        "python", "java", "javascript", "typescript", "c++", "c#", "ruby", "php",
        "swift", "kotlin", "go", "rust", "scala", "sql", "bash",
    ],
    "frameworks": [
        "react", "angular", "vue", "django", "flask", "fastapi", "spring", "express",
        "node.js", "next.js", "rails", "flutter", "tensorflow", "pytorch", "scikit-learn",
    ],
    "cloud_devops": [
        "aws", "azure", "gcp", "docker", "kubernetes", "jenkins", "terraform",
        "ansible", "github actions",
    ],
    "databases": [
        "mysql", "postgresql", "mongodb", "redis", "elasticsearch", "dynamodb", "sqlite",
    ],
    "tools_technologies": [
        "git", "jira", "agile", "scrum", "rest api", "graphql", "microservices",
        "machine learning", "deep learning", "nlp", "data analysis", "spark",
        "tableau", "power bi", "excel",
    ],
}

HEADER_LINE = re.compile(r"resume|curriculum|vitae|email|phone|address|linkedin|github|@", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-().]{8,}\d")
YEARS_PATTERNS = [
    r"(?:total\s+)?experience\s*[:\-]?\s*(\d+(?:\.\d+)?)\+?\s*(?:years?|yrs?)",
    r"(\d+(?:\.\d+)?)\+?\s*(?:years?|yrs?)\s+(?:of\s+)?(?:total\s+)?experience",
]


class UnsupportedResume(ValueError):
    """Upload is not a file type the parser can read."""


class ResumeParser:
    """Resume text extraction plus LLM-assisted field extraction with a regex fallback."""

    def __init__(self, use_llm: bool = True, phone_region: Optional[str] = None):
        self.use_llm = use_llm
        self.phone_region = phone_region or config.DEFAULT_PHONE_REGION
        self.all_skills = [s for skills in SKILLS_DB.values() for s in skills]
        self.skills_pattern = re.compile(
            r"(?<![\w+#.])(" + "|".join(re.escape(s) for s in self.all_skills) + r")(?![\w+#])",
            re.IGNORECASE,
        )

    # ── text extraction ────────────────────────────────────────
    def read_docx(self, data: bytes) -> str:
        document = docx.Document(io.BytesIO(data))
        lines = [p.text for p in document.paragraphs]
        for table in document.tables:
            for row in table.rows:
                lines.append(" ".join(cell.text for cell in row.cells))
        return "\n".join(lines)

    def read_txt(self, data: bytes) -> str:
        for encoding in ("utf-8", "latin-1", "cp1252"):
            try:
                return data.decode(encoding)
            except UnicodeDecodeError:
                continue
        raise UnsupportedResume("Unable to decode file with supported encodings")

    def extract_text(self, filename: str, data: bytes) -> str:
        extension = Path(filename or "").suffix.lower()
        if extension == ".pdf":
            return pdf_to_text(data)
        if extension == ".docx":
            return self.read_docx(data)
        if extension == ".txt":
            return self.read_txt(data)
        raise UnsupportedResume(f"Unsupported file format: {extension or 'unknown'}")

    # ── heuristic fields ───────────────────────────────────────
    def extract_name(self, text: str) -> Optional[str]:
        for line in text.strip().split("\n")[:10]:
            line = line.strip()
            if not line or len(line) > 60 or HEADER_LINE.search(line):
                continue
            words = line.split()
            if 2 <= len(words) <= 4 and all(w[0].isupper() and w.replace(".", "").isalpha() for w in words):
                return line
        return None

    def extract_emails(self, text: str) -> List[str]:
        return list(dict.fromkeys(EMAIL_PATTERN.findall(text)))

    def extract_phones(self, text: str) -> List[str]:
        phones = []
        try:
            for match in phonenumbers.PhoneNumberMatcher(text, self.phone_region):
                phones.append(phonenumbers.format_number(match.number, phonenumbers.PhoneNumberFormat.E164))
        except Exception as e:
            logger.warning(f"Phone number extraction error: {e}")

        if not phones:
            for raw in PHONE_PATTERN.findall(text):
                digits = re.sub(r"[^\d+]", "", raw)
                if len(digits.lstrip("+")) >= 10:
                    phones.append(digits)
        return list(dict.fromkeys(phones))

    def extract_skills(self, text: str) -> List[str]:
        found = [m.group(1).lower() for m in self.skills_pattern.finditer(text)]
        return list(dict.fromkeys(found))

    def extract_total_years(self, text: str) -> Optional[float]:
        for pattern in YEARS_PATTERNS:
            match = re.search(pattern, text, re.IGNORECASE)
            if match:
                years = float(match.group(1))
                if 0 < years < 50:
                    return years
        return None

    def heuristic_fields(self, text: str) -> Dict:
        emails = self.extract_emails(text)
        phones = self.extract_phones(text)
        return {
            "fullName": self.extract_name(text),
            "email": emails[0] if emails else None,
            "phone": phones[0] if phones else None,
            "skills": self.extract_skills(text),
            "totalExperience": self.extract_total_years(text),
        }

    # ── merge ──────────────────────────────────────────────────
    @staticmethod
    def years_from_history(history) -> Optional[float]:
        """Sum the leading number of each work-history duration ('2 years' -> 2)."""
        total, seen = 0, False
        for entry in history or []:
            duration = entry.get("duration") if isinstance(entry, dict) else None
            m = re.search(r"(\d+)", str(duration or ""))
            if m:
                total += int(m.group(1))
                seen = True
        return float(total) if seen else None

    def parse_text(self, text: str) -> Dict:
        if not text or not text.strip():
            raise UnsupportedResume("No text could be extracted from the file")

        fields = self.heuristic_fields(text)
        source = "heuristic"
        if self.use_llm:
            try:
                llm_fields = extract_resume_fields(text)
                for key, value in llm_fields.items():
                    if value not in (None, "", []):
                        fields[key] = value
                source = "llm"
            except CopilotUnavailable as e:
                logger.warning(f"LLM resume extraction unavailable, using heuristics: {e}")

        if not fields.get("totalExperience"):
            fields["totalExperience"] = self.years_from_history(fields.get("experience"))

        fields["source"] = source
        fields["parsedAt"] = datetime.now(timezone.utc).isoformat()
        return fields

    def parse(self, filename: str, data: bytes) -> Dict:
        text = self.extract_text(filename, data)
        result = self.parse_text(text)
        result["fileName"] = Path(filename).name
        result["text"] = text
        return result
