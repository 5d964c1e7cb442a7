"""Direct LLM features: contribution analysis, summaries and resume comparison."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional

from analyzer.llm import LLMClient, LLMError, InvalidAPIKeyError, estimate_tokens
from analyzer.llm.client import SUMMARY_TONES
from analyzer.models import ContributionSnapshot
from core.errors import UpstreamError, ValidationError

from .user_service import UserService

logger = logging.getLogger(__name__)

DEFAULT_TONE = "hybrid"


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)


class LLMService:
    """Runs one model call per request with the user's own OpenAI key."""

    def __init__(
        self,
        user_service: Optional[UserService] = None,
        llm_client_factory: Callable[[str], LLMClient] = lambda key: LLMClient(api_key=key),
    ) -> None:
        self.users = user_service or UserService()
        self._llm_client_factory = llm_client_factory

    def _client(self, user_id: str) -> LLMClient:
        return self._llm_client_factory(self.users.get_openai_key(user_id))

    def _call(self, action: str, func: Callable[..., Dict[str, Any]], *args: Any) -> Dict[str, Any]:
        try:
            return func(*args)
        except (InvalidAPIKeyError, LLMError) as exc:
            logger.error("%s failed: %s", action, exc)
            raise UpstreamError(str(exc), details={"provider": "openai"}) from exc

    def analyze(self, user_id: str, contributions: ContributionSnapshot) -> Dict[str, Any]:
        client = self._client(user_id)
        analysis = self._call("Contribution analysis", client.analyze_contributions, contributions)
        analysis["estimated_tokens"] = estimate_tokens(_dumps(contributions.to_dict()) + _dumps(analysis))
        return analysis

    def summarize(
        self,
        user_id: str,
        contributions: ContributionSnapshot,
        current_summary: Optional[str] = None,
        tone: str = DEFAULT_TONE,
    ) -> Dict[str, Any]:
        tone = tone or DEFAULT_TONE
        if tone not in SUMMARY_TONES:
            raise ValidationError(f"Invalid tone. Must be one of: {', '.join(SUMMARY_TONES)}")
        client = self._client(user_id)
        summary = self._call("Summary generation", client.generate_summary, contributions, current_summary, tone)
        summary["estimated_tokens"] = estimate_tokens(_dumps(contributions.to_dict()) + _dumps(summary))
        return summary

    def compare(self, user_id: str, existing_resume: str, contributions: ContributionSnapshot) -> Dict[str, Any]:
        if not existing_resume or not existing_resume.strip():
            raise ValidationError("Existing resume content is required")
        client = self._client(user_id)
        comparison = self._call("Resume comparison", client.compare_resume, existing_resume, contributions)
        comparison["estimated_tokens"] = estimate_tokens(
            existing_resume + _dumps(contributions.to_dict()) + _dumps(comparison)
        )
        return comparison

    def save_key(
        self,
        user_id: str,
        api_key: str,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> None:
        """Check the key against the provider, then store it encrypted."""
        api_key = (api_key or "").strip()
        if not api_key:
            raise ValidationError("OpenAI API key is required")
        try:
            self._llm_client_factory(api_key).verify_api_key()
        except InvalidAPIKeyError as exc:
            raise ValidationError(str(exc)) from exc
        except LLMError as exc:
            raise UpstreamError(str(exc), details={"provider": "openai"}) from exc
        self.users.save_openai_key(user_id, api_key, email=email, name=name)
        logger.info("Saved OpenAI key for %s", user_id)
