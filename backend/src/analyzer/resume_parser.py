# Resume parsing
# Extracts raw text from PDF/DOCX/TXT uploads and pulls out the header,
# summary and work experience with regex heuristics.

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from docx import Document as DocxDocument
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from core.errors import ValidationError

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TXT_MIME = "text/plain"

FILE_TYPES = {PDF_MIME: "pdf", DOCX_MIME: "docx", TXT_MIME: "txt"}

MAX_SUMMARY_CHARS = 1000
MAX_NAME_CHARS = 100
MAX_NAME_WORDS = 5


@dataclass
class ResumeHeader:
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    git: Optional[str] = None
    linkedin: Optional[str] = None
    website: Optional[str] = None


@dataclass
class ResumeSection:
    start: str
    position: str
    company: str
    description: str
    display_order: int
    end: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "position": self.position,
            "company": self.company,
            "description": self.description,
            "displayOrder": self.display_order,
        }


@dataclass
class ParsedResume:
    header: ResumeHeader
    summary: str
    sections: List[ResumeSection] = field(default_factory=list)
    raw_content: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header": vars(self.header).copy(),
            "summary": self.summary,
            "sections": [s.to_dict() for s in self.sections],
            "rawContent": self.raw_content,
        }

    @classmethod
    def from_llm(cls, data: Mapping[str, Any], raw_content: str) -> "ParsedResume":
        """Build from the JSON returned by ``LLMClient.parse_resume``."""
        header = data.get("header") or {}
        sections = []
        for order, entry in enumerate(data.get("sections") or []):
            if not entry.get("position") or not entry.get("company"):
                continue
            sections.append(
                ResumeSection(
                    start=str(entry.get("start") or ""),
                    end=entry.get("end") or None,
                    position=str(entry["position"]),
                    company=str(entry["company"]),
                    description=str(entry.get("description") or ""),
                    display_order=len(sections),
                )
            )
        return cls(
            header=ResumeHeader(
                name=str(header.get("name") or ""),
                email=str(header.get("email") or ""),
                phone=header.get("phone") or None,
                git=header.get("git") or None,
                linkedin=header.get("linkedin") or None,
                website=header.get("website") or None,
            ),
            summary=str(data.get("summary") or "")[:MAX_SUMMARY_CHARS],
            sections=sections,
            raw_content=raw_content,
        )


# ---------------------------------------------------------------------------
# Text extraction
# ---------------------------------------------------------------------------


def file_type_for(mime_type: str) -> str:
    try:
        return FILE_TYPES[mime_type]
    except KeyError:
        raise ValidationError(f"Unsupported file type: {mime_type}") from None


def extract_text(data: bytes, mime_type: str) -> str:
    kind = file_type_for(mime_type)
    if kind == "pdf":
        try:
            reader = PdfReader(io.BytesIO(data))
            return "\n".join(page.extract_text() or "" for page in reader.pages)
        except PdfReadError as exc:
            logger.error("PDF parsing error: %s", exc)
            raise ValidationError("Failed to parse PDF file. Please ensure it's a valid PDF document.") from exc
    if kind == "docx":
        document = DocxDocument(io.BytesIO(data))
        return "\n".join(paragraph.text for paragraph in document.paragraphs)
    return data.decode("utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

EMAIL_RE = re.compile(r"([a-zA-Z0-9._-]+@[a-zA-Z0-9._-]+\.[a-zA-Z0-9_-]+)")
PHONE_RE = re.compile(r"(\+?1?\s*\(?[0-9]{3}\)?[\s.-]?[0-9]{3}[\s.-]?[0-9]{4})")
GITHUB_RE = re.compile(r"(https?://)?(www\.)?github\.com/[\w-]+", re.I)
LINKEDIN_RE = re.compile(r"(https?://)?(www\.)?linkedin\.com/in/[\w-]+", re.I)
WEBSITE_RE = re.compile(r"(https?://)?(www\.)?[\w-]+\.[\w.-]+", re.I)
URL_RE = re.compile(r"https?://\S+|www\.\S+", re.I)
JOB_WORDS_RE = re.compile(
    r"\b(engineer|developer|manager|director|analyst|designer|specialist|consultant"
    r"|architect|lead|senior|junior|front|back|end|full|stack)\b",
    re.I,
)


def _with_scheme(url: Optional[str]) -> Optional[str]:
    if url and not url.startswith("http"):
        return f"https://{url}"
    return url


def _name_from_line(line: str) -> str:
    cleaned = URL_RE.sub("", line.strip())
    cleaned = EMAIL_RE.sub("", cleaned)
    cleaned = cleaned.split("|")[0].strip()
    match = re.match(r"^(.+?)\s*[-–—]\s*(.+)$", cleaned)
    if match and JOB_WORDS_RE.search(match.group(2)):
        cleaned = match.group(1)
    return cleaned.strip()


def _looks_like_name(line: str) -> bool:
    candidate = _name_from_line(line)
    if not 2 <= len(candidate) <= MAX_NAME_CHARS:
        return False
    if re.fullmatch(r"[A-Z\s]{20,}", candidate):
        return False
    if re.search(r"resume|cv|curriculum", candidate, re.I):
        return False
    if "@" in candidate or re.search(r"https?://", candidate, re.I):
        return False
    if re.fullmatch(r"[\d\s\-()]+", candidate) or not re.search(r"[a-zA-Z]", candidate):
        return False
    return 1 <= len(candidate.split()) <= MAX_NAME_WORDS


def extract_header(text: str) -> ResumeHeader:
    lines = [line for line in text.split("\n") if line.strip()]

    email_match = EMAIL_RE.search(text)
    email = email_match.group(1) if email_match else ""
    phone_match = PHONE_RE.search(text)
    git_match = GITHUB_RE.search(text)
    linkedin_match = LINKEDIN_RE.search(text)

    email_domain = email.split("@")[1] if "@" in email else ""
    website = None
    for match in WEBSITE_RE.finditer(EMAIL_RE.sub(" ", text)):
        url = match.group(0)
        if "github.com" in url or "linkedin.com" in url:
            continue
        if email_domain and email_domain in url:
            continue
        if len(url) > 5:
            website = url
            break

    name = ""
    if email_match:
        before_email = text[: email_match.start()]
        candidates = [line for line in before_email.split("\n") if _looks_like_name(line)]
        if candidates:
            name = _name_from_line(candidates[0])
    if not name:
        for line in lines[:5]:
            if _looks_like_name(line):
                name = _name_from_line(line)
                break
    if not name and lines:
        extracted = _name_from_line(lines[0])
        if (
            2 <= len(extracted) <= MAX_NAME_CHARS
            and 1 <= len(extracted.split()) <= MAX_NAME_WORDS
            and not re.fullmatch(r"[A-Z\s]{20,}", extracted)
        ):
            name = extracted

    name = " ".join(name[:MAX_NAME_CHARS].split()[:MAX_NAME_WORDS])
    return ResumeHeader(
        name=name,
        email=email,
        phone=phone_match.group(1).strip() if phone_match else None,
        git=_with_scheme(git_match.group(0)) if git_match else None,
        linkedin=_with_scheme(linkedin_match.group(0)) if linkedin_match else None,
        website=website,
    )


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

SUMMARY_HEADER_RE = re.compile(r"(?:summary|profile|about|objective|professional summary)[\s:]*\n", re.I)
EXPERIENCE_RE = re.compile(
    r"\b(?:work\s+experience|employment|work\s+history|professional\s+experience)\b|(?:^|\n)\s*experience\b",
    re.I,
)
SUMMARY_END_RE = re.compile(r"\b(?:work\s+experience|employment|education|skills|work\s+history)\b", re.I)


def _clean_summary(text: str) -> str:
    text = URL_RE.sub("", text)
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    return re.sub(r"\s+", " ", " ".join(lines)).strip()


def extract_summary(text: str) -> str:
    header = SUMMARY_HEADER_RE.search(text)
    if header:
        start = header.end()
        end_match = SUMMARY_END_RE.search(text, start)
        end = end_match.start() if end_match else start + 500
        return _clean_summary(text[start:end])[:MAX_SUMMARY_CHARS]

    experience = EXPERIENCE_RE.search(text)
    if not experience:
        return ""

    # No explicit heading: take the prose between the contact line and the
    # experience section.
    start = 0
    urls = list(URL_RE.finditer(text[: experience.start()]))
    if urls:
        start = urls[-1].end()
    pipes = [m for m in re.finditer(r"\s*\|\s*", text) if m.start() < experience.start()]
    if pipes and pipes[-1].start() > start:
        start = pipes[-1].end()

    candidate = text[start : experience.start()]
    candidate = re.sub(r"\s*\|\s*", " ", URL_RE.sub("", candidate))
    candidate = re.sub(r"\s+", " ", candidate).strip()
    if len(candidate) < 50:
        return ""
    return candidate[:MAX_SUMMARY_CHARS]


# ---------------------------------------------------------------------------
# Work experience
# ---------------------------------------------------------------------------

MONTHS = {
    "jan": 1, "january": 1, "feb": 2, "february": 2, "mar": 3, "march": 3,
    "apr": 4, "april": 4, "may": 5, "jun": 6, "june": 6, "jul": 7, "july": 7,
    "aug": 8, "august": 8, "sep": 9, "sept": 9, "september": 9, "oct": 10,
    "october": 10, "nov": 11, "november": 11, "dec": 12, "december": 12,
}

SECTION_END_RE = re.compile(r"\b(?:education|skills|projects|certifications|awards)\b", re.I)
DATE_RANGE_RE = re.compile(
    r"(\w+\s+\d{4}|\d{4})\s*[-–—]\s*(present|current|\w+\s+\d{4}|\d{4})", re.I
)
SINGLE_DATE_RE = re.compile(r"(?:^|\s)(\d{4})(?:\s*-\s*)?$")
COMPANY_HINT_RE = re.compile(r"\b(inc|llc|corp|ltd|co|technologies|tech|systems)\b", re.I)
BULLET_RE = re.compile(r"[●•·]")
CURRENT = ("present", "current")


def normalize_date(value: str) -> str:
    """``2023`` / ``Jan 2023`` / ``01/2023`` -> ``YYYY-MM``."""
    value = value.strip()
    if re.fullmatch(r"\d{4}", value):
        return f"{value}-01"
    month_year = re.search(r"(\w+)\s+(\d{4})", value)
    if month_year:
        month = MONTHS.get(month_year.group(1).lower(), 1)
        return f"{month_year.group(2)}-{month:02d}"
    numeric = re.search(r"(\d{1,2})/(\d{4})", value)
    if numeric:
        return f"{numeric.group(2)}-{int(numeric.group(1)):02d}"
    return value


def _split_position_company(line: str) -> Dict[str, str]:
    line = re.sub(r"^>\s*", "", line).strip()
    line = re.sub(
        r"\s+-\s+\w+\s+\d{4}\s*[–—]\s*(?:present|current|\w+\s+\d{4}|\d{4}).*$", "", line, flags=re.I
    )
    line = re.sub(r"\s+-\s+\d{4}\s*[–—]\s*(?:present|current|\d{4}).*$", "", line, flags=re.I)
    line = re.sub(r"\s*\|\s*[^|]+$", "", line).strip()

    match = re.match(r"(.+?)\s*[–—]\s*(.+)", line)
    if match:
        return {"company": match.group(1).strip(), "position": match.group(2).strip()}
    for pattern in (r"(.+?)\s+at\s+(.+)", r"(.+?)\s*\|\s*(.+)", r"(.+?),\s*(.+)"):
        match = re.match(pattern, line, re.I)
        if match:
            return {"position": match.group(1).strip(), "company": match.group(2).strip()}
    match = re.match(r"(.+?)\s*-\s*(.+)", line)
    if match:
        first, second = match.group(1).strip(), match.group(2).strip()
        if COMPANY_HINT_RE.search(first):
            return {"company": first, "position": second}
        return {"position": first, "company": second}
    if COMPANY_HINT_RE.search(line):
        return {"company": line}
    return {"position": line}


def _apply_dates(entry: Dict[str, Any], date_match: re.Match) -> None:
    entry["start"] = normalize_date(date_match.group(1))
    end = date_match.group(2)
    entry["end"] = None if end.lower() in CURRENT else normalize_date(end)


def _bullets(text: str) -> List[str]:
    return [part.strip() for part in BULLET_RE.split(text) if part.strip()]


def extract_sections(text: str) -> List[ResumeSection]:
    experience = EXPERIENCE_RE.search(text)
    if not experience:
        return []

    start = experience.start()
    end_match = SECTION_END_RE.search(text, start)
    block = text[start : end_match.start() if end_match else len(text)]

    if "\n" in block:
        lines = [line.strip() for line in block.split("\n") if line.strip()]
    else:
        lines = [part.strip() for part in re.split(r">\s+", block) if part.strip()]
        lines = [
            line if i == 0 and EXPERIENCE_RE.search(line) else (line if line.startswith(">") else f"> {line}")
            for i, line in enumerate(lines)
        ]

    sections: List[ResumeSection] = []
    current: Optional[Dict[str, Any]] = None
    description: List[str] = []

    def flush() -> None:
        if current and current.get("position") and current.get("company"):
            sections.append(
                ResumeSection(
                    start=current.get("start") or "",
                    end=current.get("end"),
                    position=current["position"],
                    company=current["company"],
                    description="\n".join(description).strip(),
                    display_order=len(sections),
                )
            )

    for line in lines:
        if EXPERIENCE_RE.fullmatch(line) or EXPERIENCE_RE.match(line):
            continue

        is_entry = line.startswith(">")
        date_match = DATE_RANGE_RE.search(line)
        single_date = SINGLE_DATE_RE.search(line)

        if is_entry or date_match or single_date:
            flush()
            current, description = {}, []
            if is_entry:
                header, bullets = line, ""
                bullet = BULLET_RE.search(line)
                if bullet:
                    header, bullets = line[: bullet.start()].strip(), line[bullet.start():]
                if date_match:
                    _apply_dates(current, date_match)
                current.update(_split_position_company(header))
                description.extend(_bullets(bullets))
            else:
                if date_match:
                    _apply_dates(current, date_match)
                    before = line[: date_match.start()].strip()
                else:
                    current["start"] = normalize_date(single_date.group(1))
                    before = line[: single_date.start()].strip()
                if before:
                    current.update(_split_position_company(before))
        elif current is not None and not current.get("position") and not current.get("company"):
            current.update(_split_position_company(line))
        elif current is not None:
            if BULLET_RE.search(line):
                description.extend(_bullets(line))
            else:
                cleaned = re.sub(r"^[•·\-*●]\s*", "", line)
                if cleaned:
                    description.append(cleaned)

    flush()
    return sections


def parse_resume_text(text: str) -> ParsedResume:
    return ParsedResume(
        header=extract_header(text),
        summary=extract_summary(text),
        sections=extract_sections(text),
        raw_content=text,
    )


def parse_resume_file(data: bytes, mime_type: str) -> ParsedResume:
    """Extract text from an upload and parse it with the regex heuristics."""
    return parse_resume_text(extract_text(data, mime_type))
