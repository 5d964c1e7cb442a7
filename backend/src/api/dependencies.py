from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config.settings import get_settings
from core.errors import AppError
from services.rate_limit import RateLimiter, RateLimiters, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    access_token: str
    email: Optional[str] = None
    name: Optional[str] = None


class ErrorResponse(BaseModel):
    code: str
    message: str


def _raise_auth_error(message: str, status_code: int = status.HTTP_401_UNAUTHORIZED) -> None:
    raise HTTPException(
        status_code=status_code,
        detail={"code": "unauthorized", "message": message},
    )


async def _fetch_user(access_token: str) -> Dict[str, Any]:
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"code": "configuration_error", "message": "Supabase credentials missing"},
        )

    headers = {
        "Authorization": f"Bearer {access_token}",
        "apikey": settings.supabase_key,
        "Content-Type": "application/json",
    }
    async with httpx.AsyncClient(timeout=10) as client:
        response = await client.get(f"{settings.supabase_url}/auth/v1/user", headers=headers)

    if response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        _raise_auth_error("Invalid or expired access token")
    if response.status_code >= 400:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": "upstream_error", "message": "Failed to validate access token"},
        )

    payload = response.json()
    user_id = payload.get("id")
    if not user_id:
        _raise_auth_error("Access token missing user id")
    return payload


async def get_user_profile(access_token: str) -> Dict[str, Any]:
    return await _fetch_user(access_token)


async def get_auth_context(authorization: Optional[str] = Header(default=None)) -> AuthContext:
    if not authorization:
        _raise_auth_error("Authorization header missing")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        _raise_auth_error("Authorization header must be Bearer token")

    access_token = parts[1].strip()
    if not access_token:
        _raise_auth_error("Access token missing")

    user = await get_user_profile(access_token)
    metadata = user.get("user_metadata") or {}
    return AuthContext(
        user_id=user["id"],
        access_token=access_token,
        email=user.get("email"),
        name=metadata.get("full_name") or metadata.get("name"),
    )


# Rate limiting


def get_rate_limiters(request: Request) -> RateLimiters:
    limiters = getattr(request.app.state, "rate_limiters", None)
    if limiters is None:
        settings = get_settings()
        limiters = RateLimiters.create(
            api_per_minute=settings.api_rate_limit_per_minute,
            analysis_per_minute=settings.analysis_rate_limit_per_minute,
        )
        request.app.state.rate_limiters = limiters
    return limiters


def _enforce(limiter: RateLimiter, auth: AuthContext) -> RateLimitResult:
    return limiter.enforce(auth.email or auth.user_id)


def api_rate_limit(
    auth: AuthContext = Depends(get_auth_context),
    limiters: RateLimiters = Depends(get_rate_limiters),
) -> RateLimitResult:
    return _enforce(limiters.api, auth)


def analysis_rate_limit(
    auth: AuthContext = Depends(get_auth_context),
    limiters: RateLimiters = Depends(get_rate_limiters),
) -> RateLimitResult:
    return _enforce(limiters.analysis, auth)


def auth_rate_limit(
    auth: AuthContext = Depends(get_auth_context),
    limiters: RateLimiters = Depends(get_rate_limiters),
) -> RateLimitResult:
    """Guards endpoints that accept provider credentials."""
    return _enforce(limiters.auth, auth)


# Error translation


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})
