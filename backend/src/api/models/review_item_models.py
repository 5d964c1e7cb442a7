from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ContributionType(str, Enum):
    COMMIT = "commit"
    PR = "pr"
    ISSUE = "issue"
    RELEASE = "release"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    ARCHIVED = "archived"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ReviewItemCreate(_CamelModel):
    type: ContributionType
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    date: datetime
    repository: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    github_id: Optional[str] = Field(None, alias="githubId")
    github_type: str = Field(..., min_length=1, alias="githubType")


class ReviewItemUpdate(_CamelModel):
    relevance: Optional[int] = Field(None, ge=1, le=5)
    resume_section_id: Optional[str] = Field(None, alias="resumeSectionId")
    tech_tags: Optional[List[str]] = Field(None, alias="techTags")
    custom_description: Optional[str] = Field(None, alias="customDescription")


class BulkReviewUpdate(_CamelModel):
    ids: List[str] = Field(..., alias="ids")
    relevance: Optional[int] = Field(None, ge=1, le=5)
    resume_section_id: Optional[str] = Field(None, alias="resumeSectionId")
    tech_tags: Optional[List[str]] = Field(None, alias="techTags")
    review_status: Optional[ReviewStatus] = Field(None, alias="reviewStatus")


class ReviewStats(BaseModel):
    pending: int = 0
    reviewed: int = 0
    archived: int = 0
    total: int = 0
