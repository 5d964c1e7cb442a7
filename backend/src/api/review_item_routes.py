"""Brag and achievement routes.

Both resources share one router layout, built by ``build_router``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Type

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import AuthContext, ErrorResponse, get_auth_context
from api.models.review_item_models import (
    BulkReviewUpdate,
    ContributionType,
    ReviewItemCreate,
    ReviewItemUpdate,
    ReviewStats,
    ReviewStatus,
)
from services.github_service import GitHubService
from services.review_items_service import AchievementService, BragService, ReviewItemService

logger = logging.getLogger(__name__)

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Not found or access denied"}}


def build_router(
    service_class: Type[ReviewItemService],
    service_factory: Optional[Callable[[], ReviewItemService]] = None,
) -> APIRouter:
    """CRUD, review workflow and bulk routes for one review-item table."""
    resource = service_class.table_name
    key = service_class.label.lower()
    router = APIRouter(prefix=f"/api/{resource}", tags=[service_class.label + "s"])

    def get_service() -> ReviewItemService:
        return service_factory() if service_factory else service_class()

    @router.get("")
    def list_items(
        review_status: Optional[ReviewStatus] = Query(None, alias="reviewStatus"),
        item_type: Optional[ContributionType] = Query(None, alias="type"),
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
        auth: AuthContext = Depends(get_auth_context),
        service: ReviewItemService = Depends(get_service),
    ) -> Dict[str, Any]:
        result = service.list(
            auth.user_id,
            review_status=review_status,
            item_type=item_type.value if item_type else None,
            limit=limit,
            offset=offset,
        )
        return {resource: result["items"], "total": result["total"], "limit": limit, "offset": offset}

    @router.post("", status_code=status.HTTP_201_CREATED)
    def create_item(
        request: ReviewItemCreate,
        auth: AuthContext = Depends(get_auth_context),
        service: ReviewItemService = Depends(get_service),
    ) -> Dict[str, Any]:
        return {"success": True, key: service.create(auth.user_id, request)}

    @router.get("/stats", response_model=ReviewStats)
    def item_stats(
        auth: AuthContext = Depends(get_auth_context),
        service: ReviewItemService = Depends(get_service),
    ) -> ReviewStats:
        return service.stats(auth.user_id)

    @router.patch("/bulk", responses=NOT_FOUND)
    def bulk_update(
        request: BulkReviewUpdate,
        auth: AuthContext = Depends(get_auth_context),
        service: ReviewItemService = Depends(get_service),
    ) -> Dict[str, Any]:
        result = service.bulk_update(auth.user_id, request)
        return {"success": True, **result}

    @router.post("/sync", responses={404: {"model": ErrorResponse, "description": "Never scanned"}})
    def sync_items(
        auth: AuthContext = Depends(get_auth_context),
        service: ReviewItemService = Depends(get_service),
    ) -> Dict[str, Any]:
        github = GitHubService(client=service.client)
        snapshot = github.get_contributions(auth.user_id).snapshot
        return {"success": True, **service.sync_from_contributions(auth.user_id, snapshot)}

    @router.get("/{item_id}", responses=NOT_FOUND)
    def get_item(
        item_id: str,
        auth: AuthContext = Depends(get_auth_context),
        service: ReviewItemService = Depends(get_service),
    ) -> Dict[str, Any]:
        return {key: service.get(auth.user_id, item_id)}

    @router.patch("/{item_id}", responses=NOT_FOUND)
    def update_item(
        item_id: str,
        request: ReviewItemUpdate,
        auth: AuthContext = Depends(get_auth_context),
        service: ReviewItemService = Depends(get_service),
    ) -> Dict[str, Any]:
        return {"success": True, key: service.update_review(auth.user_id, item_id, request)}

    @router.delete("/{item_id}", responses=NOT_FOUND)
    def delete_item(
        item_id: str,
        auth: AuthContext = Depends(get_auth_context),
        service: ReviewItemService = Depends(get_service),
    ) -> Dict[str, Any]:
        service.delete(auth.user_id, item_id)
        return {"success": True}

    @router.post("/{item_id}/archive", responses=NOT_FOUND)
    def archive_item(
        item_id: str,
        auth: AuthContext = Depends(get_auth_context),
        service: ReviewItemService = Depends(get_service),
    ) -> Dict[str, Any]:
        return {"success": True, key: service.archive(auth.user_id, item_id)}

    @router.post(
        "/{item_id}/unarchive",
        responses={**NOT_FOUND, 409: {"model": ErrorResponse, "description": "Not archived"}},
    )
    def unarchive_item(
        item_id: str,
        auth: AuthContext = Depends(get_auth_context),
        service: ReviewItemService = Depends(get_service),
    ) -> Dict[str, Any]:
        return {"success": True, key: service.unarchive(auth.user_id, item_id)}

    router.get_service = get_service
    return router


brags_router = build_router(BragService)
achievements_router = build_router(AchievementService)
