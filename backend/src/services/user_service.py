"""User rows and the encrypted per-user credentials stored on them."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from supabase import Client

from core.errors import AppError, ConfigurationError, NotFoundError

from .database import SupabaseService
from .encryption import EncryptionService

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
CAREER_FIELDS = ("seniority", "focus", "years_of_experience")


class UserServiceError(AppError):
    """Raised when user persistence fails."""


class UserService(SupabaseService):
    error_class = UserServiceError

    def __init__(
        self,
        client: Optional[Client] = None,
        encryption_service: Optional[EncryptionService] = None,
    ) -> None:
        super().__init__(client)
        self._encryption = encryption_service or EncryptionService()

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.client.table(USERS_TABLE).select("*").eq("id", user_id).limit(1).execute()
        except Exception as exc:
            raise UserServiceError(f"Failed to load user {user_id}: {exc}") from exc
        return self._first(response)

    def require_user(self, user_id: str) -> Dict[str, Any]:
        user = self.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def _save(self, user_id: str, values: Dict[str, Any], *, email: Optional[str], name: Optional[str]) -> None:
        """Update the user row, creating it first for users seen for the first time."""
        try:
            if self.get_user(user_id):
                self.client.table(USERS_TABLE).update(values).eq("id", user_id).execute()
                return
            logger.info("Creating user record for %s", user_id)
            self.client.table(USERS_TABLE).insert(
                {
                    "id": user_id,
                    "email": email,
                    "name": name,
                    "subscription_tier": "basic",
                    "subscription_status": "active",
                    **values,
                }
            ).execute()
        except UserServiceError:
            raise
        except Exception as exc:
            raise UserServiceError(f"Failed to save user {user_id}: {exc}") from exc

    def ensure_user(self, user_id: str, email: Optional[str], name: Optional[str] = None) -> Dict[str, Any]:
        user = self.get_user(user_id)
        if user:
            return user
        self._save(user_id, {}, email=email, name=name)
        return self.require_user(user_id)

    # GitHub

    def save_github_credentials(
        self,
        user_id: str,
        token: str,
        username: Optional[str],
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> None:
        self._save(
            user_id,
            {"github_pat": self._encryption.encrypt_token(token), "github_username": username},
            email=email,
            name=name,
        )

    def get_github_token(self, user_id: str) -> str:
        user = self.get_user(user_id)
        encrypted = (user or {}).get("github_pat")
        if not encrypted:
            raise ConfigurationError("GitHub token not found. Please connect your GitHub account first.")
        return self._encryption.decrypt_token(encrypted)

    # OpenAI

    def save_openai_key(
        self,
        user_id: str,
        api_key: str,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> None:
        self._save(user_id, {"openai_api_key": self._encryption.encrypt_token(api_key)}, email=email, name=name)

    def has_openai_key(self, user_id: str) -> bool:
        user = self.get_user(user_id)
        return bool((user or {}).get("openai_api_key"))

    def get_openai_key(self, user_id: str) -> str:
        """Decrypted OpenAI key.

        Raises:
            ConfigurationError: no key has been saved
            DecryptionError: the stored key no longer decrypts
        """
        user = self.get_user(user_id)
        encrypted = (user or {}).get("openai_api_key")
        if not encrypted:
            raise ConfigurationError("OpenAI API key not configured. Please add your API key in settings.")
        return self._encryption.decrypt_token(encrypted)

    def delete_openai_key(self, user_id: str) -> None:
        try:
            self.client.table(USERS_TABLE).update({"openai_api_key": None}).eq("id", user_id).execute()
        except Exception as exc:
            raise UserServiceError(f"Failed to delete OpenAI key for {user_id}: {exc}") from exc

    # Career profile

    def update_career_profile(self, user_id: str, **fields: Any) -> Dict[str, Any]:
        values = {k: v for k, v in fields.items() if k in CAREER_FIELDS and v is not None}
        if not values:
            return self.require_user(user_id)
        try:
            response = self.client.table(USERS_TABLE).update(values).eq("id", user_id).execute()
        except Exception as exc:
            raise UserServiceError(f"Failed to update profile for {user_id}: {exc}") from exc
        row = self._first(response)
        if not row:
            raise NotFoundError("User not found")
        return row
