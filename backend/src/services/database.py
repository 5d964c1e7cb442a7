from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

from supabase import Client, create_client

from config.settings import Settings, get_settings
from core.errors import AppError, ConfigurationError

logger = logging.getLogger(__name__)


def get_supabase_client(settings: Optional[Settings] = None) -> Client:
    """Create a Supabase client from the configured URL and key."""
    settings = settings or get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        raise ConfigurationError("Supabase credentials not configured.")
    return create_client(settings.supabase_url, settings.supabase_key)


class SupabaseService:
    """Shared plumbing for services backed by a single Supabase client."""

    error_class: Type[AppError] = AppError

    def __init__(self, client: Optional[Client] = None) -> None:
        if client is not None:
            self.client = client
            return
        try:
            self.client = get_supabase_client()
        except ConfigurationError:
            raise
        except Exception as exc:
            raise self.error_class(f"Failed to initialize Supabase client: {exc}") from exc

    @staticmethod
    def _rows(response: Any) -> List[Dict[str, Any]]:
        data = getattr(response, "data", None)
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return list(data)

    @classmethod
    def _first(cls, response: Any) -> Optional[Dict[str, Any]]:
        rows = cls._rows(response)
        return rows[0] if rows else None
