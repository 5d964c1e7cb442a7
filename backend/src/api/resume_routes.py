"""Resume upload and parsing routes backed by Supabase resume storage."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, Field

from api.dependencies import AuthContext, ErrorResponse, get_auth_context
from core.errors import ValidationError
from services.resume_service import ResumeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resume", tags=["Resume"])

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Resume not found"}}
UPLOAD_ERRORS = {422: {"model": ErrorResponse, "description": "Unsupported or unreadable file"}}


def get_resume_service() -> ResumeService:
    return ResumeService()


class ReprocessRequest(BaseModel):
    resume_id: str = Field(..., min_length=1, alias="resumeId")

    model_config = {"populate_by_name": True}


async def _read_upload(file: UploadFile) -> bytes:
    if not file.filename:
        raise ValidationError("No file provided")
    return await file.read()


@router.post("/upload", responses=UPLOAD_ERRORS)
async def upload_resume(
    file: UploadFile = File(...),
    auth: AuthContext = Depends(get_auth_context),
    service: ResumeService = Depends(get_resume_service),
) -> Dict[str, Any]:
    data = await _read_upload(file)
    resume = await asyncio.to_thread(
        service.upload,
        auth.user_id,
        file.filename,
        file.content_type or "",
        data,
        email=auth.email,
        name=auth.name,
    )
    logger.info("Uploaded resume %s for %s", resume.get("id"), auth.user_id)
    return {"success": True, "resume": resume, "message": "Resume uploaded and parsed successfully"}


@router.post("/parse", responses=UPLOAD_ERRORS)
async def parse_resume(
    file: UploadFile = File(...),
    auth: AuthContext = Depends(get_auth_context),
    service: ResumeService = Depends(get_resume_service),
) -> Dict[str, Any]:
    """Parse an upload without storing it."""
    data = await _read_upload(file)
    parsed = await asyncio.to_thread(service.parse, auth.user_id, data, file.content_type or "")
    return {"success": True, "parsed": parsed.to_dict()}


@router.post("/reprocess", responses=NOT_FOUND)
def reprocess_resume(
    request: ReprocessRequest,
    auth: AuthContext = Depends(get_auth_context),
    service: ResumeService = Depends(get_resume_service),
) -> Dict[str, Any]:
    resume = service.reprocess(auth.user_id, request.resume_id)
    return {"success": True, "resume": resume, "message": "Resume reprocessed successfully"}


@router.get("")
def list_resumes(
    auth: AuthContext = Depends(get_auth_context),
    service: ResumeService = Depends(get_resume_service),
) -> Dict[str, Any]:
    return {"resumes": service.list(auth.user_id)}


@router.get("/{resume_id}", responses=NOT_FOUND)
def get_resume(
    resume_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: ResumeService = Depends(get_resume_service),
) -> Dict[str, Any]:
    return {"resume": service.get(auth.user_id, resume_id)}


@router.delete("/{resume_id}", responses=NOT_FOUND)
def delete_resume(
    resume_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: ResumeService = Depends(get_resume_service),
) -> Dict[str, Any]:
    service.delete(auth.user_id, resume_id)
    return {"success": True, "message": "Resume deleted successfully"}
