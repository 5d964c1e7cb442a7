"""Resume uploads: storage, parsing and the sections extracted from them."""

from __future__ import annotations

import base64
import logging
import os
from typing import Any, Callable, Dict, List, Optional

from supabase import Client

from analyzer.llm import LLMClient, LLMError, InvalidAPIKeyError
from analyzer.resume_parser import (
    FILE_TYPES,
    ParsedResume,
    extract_text,
    file_type_for,
    parse_resume_text,
)
from core.errors import (
    AppError,
    ConfigurationError,
    DecryptionError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)

from .database import SupabaseService
from .user_service import UserService

logger = logging.getLogger(__name__)

RESUMES_TABLE = "resumes"
SECTIONS_TABLE = "resume_sections"
MAX_FILE_SIZE = 5 * 1024 * 1024
LIST_COLUMNS = "id, title, file_name, file_type, is_active, created_at, updated_at"

MIME_FOR_FILE_TYPE = {kind: mime for mime, kind in FILE_TYPES.items()}


class ResumeServiceError(AppError):
    """Raised when resume persistence fails."""


def _data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def _decode_data_url(file_url: Optional[str]) -> bytes:
    if not file_url:
        raise ValidationError("Resume has no file to reprocess")
    _, _, payload = file_url.partition(",")
    if not payload:
        raise ValidationError("Invalid file URL format")
    return base64.b64decode(payload)


def _resume_columns(parsed: ParsedResume) -> Dict[str, Any]:
    header = parsed.header
    return {
        "name": header.name or None,
        "email": header.email or None,
        "phone": header.phone or None,
        "git": header.git or None,
        "linkedin": header.linkedin or None,
        "website": header.website or None,
        "summary": parsed.summary or None,
    }


def _section_rows(resume_id: str, parsed: ParsedResume) -> List[Dict[str, Any]]:
    return [
        {
            "resume_id": resume_id,
            "start_date": section.start,
            "end_date": section.end,
            "position": section.position,
            "company": section.company,
            "description": section.description,
            "display_order": section.display_order,
        }
        for section in parsed.sections
    ]


class ResumeService(SupabaseService):
    """Stores uploaded resumes and keeps their parsed sections in sync."""

    error_class = ResumeServiceError

    def __init__(
        self,
        client: Optional[Client] = None,
        user_service: Optional[UserService] = None,
        llm_client_factory: Callable[[str], LLMClient] = lambda key: LLMClient(api_key=key),
    ) -> None:
        super().__init__(client)
        self.users = user_service or UserService(client=self.client)
        self._llm_client_factory = llm_client_factory

    # Parsing

    def _optional_key(self, user_id: str) -> Optional[str]:
        try:
            return self.users.get_openai_key(user_id)
        except ConfigurationError:
            return None
        except DecryptionError:
            logger.warning("Stored OpenAI key for %s could not be decrypted; using regex parser", user_id)
            return None

    def _parse_with_llm(self, api_key: str, text: str) -> ParsedResume:
        try:
            data = self._llm_client_factory(api_key).parse_resume(text)
        except (InvalidAPIKeyError, LLMError) as exc:
            raise UpstreamError(str(exc), details={"provider": "openai"}) from exc
        return ParsedResume.from_llm(data, raw_content=text)

    def parse(self, user_id: str, data: bytes, mime_type: str, *, use_llm: bool = True) -> ParsedResume:
        """Parse an upload without storing it.

        Uses the model when the user has a usable key, otherwise the regex
        heuristics.
        """
        text = extract_text(data, mime_type)
        api_key = self._optional_key(user_id) if use_llm else None
        if api_key:
            parsed = self._parse_with_llm(api_key, text)
        else:
            parsed = parse_resume_text(text)
        logger.info(
            "Parsed resume using %s parser - found %d sections",
            "LLM" if api_key else "regex",
            len(parsed.sections),
        )
        return parsed

    # CRUD

    def upload(
        self,
        user_id: str,
        file_name: str,
        mime_type: str,
        data: bytes,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store a new resume, making it the user's only active one."""
        file_type = file_type_for(mime_type)
        if len(data) > MAX_FILE_SIZE:
            raise ValidationError("File too large. Maximum size is 5MB.")

        self.users.ensure_user(user_id, email, name)
        parsed = self.parse(user_id, data, mime_type)

        row = {
            "user_id": user_id,
            "title": os.path.splitext(file_name)[0] or file_name,
            "raw_content": parsed.raw_content,
            "file_name": file_name,
            "file_type": file_type,
            "file_url": _data_url(data, mime_type),
            "is_active": True,
            **_resume_columns(parsed),
        }
        try:
            self.client.table(RESUMES_TABLE).update({"is_active": False}).eq("user_id", user_id).execute()
            created = self._first(self.client.table(RESUMES_TABLE).insert(row).execute())
            if not created:
                raise ResumeServiceError("Failed to store resume")
            sections = _section_rows(created["id"], parsed)
            if sections:
                self.client.table(SECTIONS_TABLE).insert(sections).execute()
        except AppError:
            raise
        except Exception as exc:
            raise ResumeServiceError(f"Failed to store resume: {exc}") from exc
        return self.get(user_id, created["id"])

    def list(self, user_id: str) -> List[Dict[str, Any]]:
        try:
            response = (
                self.client.table(RESUMES_TABLE)
                .select(LIST_COLUMNS)
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as exc:
            raise ResumeServiceError(f"Failed to list resumes: {exc}") from exc
        return self._rows(response)

    def _load(self, user_id: str, resume_id: str) -> Dict[str, Any]:
        try:
            response = (
                self.client.table(RESUMES_TABLE)
                .select("*")
                .eq("id", resume_id)
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise ResumeServiceError(f"Failed to load resume {resume_id}: {exc}") from exc
        row = self._first(response)
        if not row:
            raise NotFoundError("Resume not found")
        return row

    def get(self, user_id: str, resume_id: str) -> Dict[str, Any]:
        """Resume row with its sections in display order."""
        resume = self._load(user_id, resume_id)
        try:
            response = (
                self.client.table(SECTIONS_TABLE)
                .select("*")
                .eq("resume_id", resume_id)
                .order("display_order")
                .execute()
            )
        except Exception as exc:
            raise ResumeServiceError(f"Failed to load sections for {resume_id}: {exc}") from exc
        resume["sections"] = self._rows(response)
        return resume

    def reprocess(self, user_id: str, resume_id: str) -> Dict[str, Any]:
        """Re-parse the stored file with the model and replace the sections."""
        resume = self._load(user_id, resume_id)
        api_key = self.users.get_openai_key(user_id)
        data = _decode_data_url(resume.get("file_url"))
        mime_type = MIME_FOR_FILE_TYPE.get(resume.get("file_type") or "txt", "text/plain")
        parsed = self._parse_with_llm(api_key, extract_text(data, mime_type))

        try:
            self.client.table(SECTIONS_TABLE).delete().eq("resume_id", resume_id).execute()
            self.client.table(RESUMES_TABLE).update(_resume_columns(parsed)).eq("id", resume_id).eq(
                "user_id", user_id
            ).execute()
            sections = _section_rows(resume_id, parsed)
            if sections:
                self.client.table(SECTIONS_TABLE).insert(sections).execute()
        except Exception as exc:
            raise ResumeServiceError(f"Failed to update resume {resume_id}: {exc}") from exc
        logger.info("Reprocessed resume %s with %d sections", resume_id, len(parsed.sections))
        return self.get(user_id, resume_id)

    def delete(self, user_id: str, resume_id: str) -> None:
        self._load(user_id, resume_id)
        try:
            self.client.table(SECTIONS_TABLE).delete().eq("resume_id", resume_id).execute()
            self.client.table(RESUMES_TABLE).delete().eq("id", resume_id).eq("user_id", user_id).execute()
        except Exception as exc:
            raise ResumeServiceError(f"Failed to delete resume {resume_id}: {exc}") from exc

    def get_active(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table(RESUMES_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .eq("is_active", True)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise ResumeServiceError(f"Failed to load active resume: {exc}") from exc
        return self._first(response)

    def active_resume_text(self, user_id: str) -> str:
        """Raw text of the active resume, used for gap analysis."""
        resume = self.get_active(user_id)
        if not resume or not resume.get("raw_content"):
            raise NotFoundError("No resume found. Please upload your resume first.")
        return resume["raw_content"]
