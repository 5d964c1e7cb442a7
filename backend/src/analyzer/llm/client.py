# LLM Client Module
# Handles integration with OpenAI API for contribution and resume analysis

import json
import logging
import math
from typing import Optional, Dict, List, Any

import openai
from openai import OpenAI
import tiktoken

from ..models import ContributionSnapshot


logger = logging.getLogger(__name__)

TOKENS_PER_CHAR = 0.25
MAX_REPOS_IN_PROMPT = 5
MAX_RECENT_COMMITS = 10
MAX_DESCRIPTION_LENGTH = 200
MAX_COMPARE_COMMITS = 5

SUMMARY_TONES = {
    "technical": "Focus on technical expertise, technologies, and hands-on contributions",
    "leadership": "Emphasize leadership, mentorship, and strategic impact",
    "hybrid": "Balance technical skills with leadership and collaboration",
}


class LLMError(Exception):
    """Raised when LLM operations fail."""
    pass


class InvalidAPIKeyError(Exception):
    """Raised when API key is invalid or missing."""
    pass


def estimate_tokens(text: str) -> int:
    """Rough token estimate: about four characters per token."""
    return math.ceil(len(text or "") * TOKENS_PER_CHAR)


def _classify_error(exc: Exception, action: str) -> Exception:
    """Map an OpenAI SDK exception onto InvalidAPIKeyError / LLMError."""
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return InvalidAPIKeyError("Invalid API key. Please verify your OpenAI API key is correct.")
    if isinstance(exc, openai.RateLimitError):
        return LLMError(f"Rate limit exceeded. Please check your API quota and try again: {exc}")
    if isinstance(exc, openai.APITimeoutError):
        return LLMError(f"Request timed out. Please check your internet connection and try again: {exc}")
    if isinstance(exc, openai.APIConnectionError):
        return LLMError(f"Connection error. Please check your internet connection and try again: {exc}")
    if isinstance(exc, openai.APIError):
        return LLMError(f"API error: {exc}")
    return LLMError(f"{action} failed: {exc}")


class LLMClient:
    """
    Client for interacting with OpenAI's API.

    Each method builds one prompt, makes one chat completion request and
    returns the parsed JSON object the model was asked for.
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    DEFAULT_TEMPERATURE = 0.7
    DEFAULT_MAX_TOKENS = 4000

    def __init__(
        self,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ):
        """
        Initialize the LLM client.

        Args:
            api_key: OpenAI API key. If None, client operates in mock mode.
            temperature: Sampling temperature (0.0-2.0). Default 0.7.
            max_tokens: Maximum tokens in response. Default 4000.
            model: Chat model name. Defaults to DEFAULT_MODEL.
        """
        self.api_key = api_key
        self.client = None
        self.model = model or self.DEFAULT_MODEL
        self.logger = logging.getLogger(__name__)

        self.temperature = temperature if temperature is not None else self.DEFAULT_TEMPERATURE
        self.max_tokens = max_tokens if max_tokens is not None else self.DEFAULT_MAX_TOKENS

        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("Temperature must be between 0.0 and 2.0")
        if self.max_tokens <= 0:
            raise ValueError("Max tokens must be positive")

        if api_key:
            try:
                self.client = OpenAI(api_key=api_key)
                self.logger.info(
                    f"LLM client initialized (model: {self.model}, "
                    f"temperature: {self.temperature}, max_tokens: {self.max_tokens})"
                )
            except Exception as e:
                self.logger.error(f"Failed to initialize OpenAI client: {e}")
                raise LLMError(f"Failed to initialize LLM client: {str(e)}")
        else:
            self.logger.warning("LLM client initialized without API key (mock mode)")

    def is_configured(self) -> bool:
        return self.api_key is not None and self.client is not None

    def verify_api_key(self) -> bool:
        """
        Verify that the API key is valid by making a test request.

        Returns:
            bool: True if API key is valid

        Raises:
            InvalidAPIKeyError: If API key is missing or invalid
            LLMError: If verification fails due to other reasons
        """
        if not self.api_key:
            raise InvalidAPIKeyError("No API key provided")

        if not self.client:
            raise InvalidAPIKeyError("LLM client not initialized")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "test"}],
                max_tokens=5,
            )
        except openai.OpenAIError as e:
            self.logger.error(f"Verification error: {e}")
            raise _classify_error(e, "Verification")

        if response and response.choices:
            self.logger.info("API key verified successfully")
            return True
        raise LLMError("Unexpected response from API")

    def count_tokens(self, text: str) -> int:
        """
        Count tokens with the model's tokenizer, falling back to the
        character estimate for models tiktoken does not know.
        """
        try:
            encoding = tiktoken.encoding_for_model(self.model)
            return len(encoding.encode(text))
        except Exception as e:
            self.logger.warning(f"Failed to count tokens: {e}. Using character estimate.")
            return estimate_tokens(text)

    def _make_llm_call(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> str:
        """
        Make a call to the LLM API using configured defaults.

        Raises:
            InvalidAPIKeyError: If the provider rejects the key
            LLMError: If API call fails
        """
        if not self.is_configured():
            raise LLMError("LLM client is not configured with an API key")

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            self.logger.error(f"LLM call failed: {e}")
            raise _classify_error(e, "LLM call")

        if response and response.choices and response.choices[0].message.content:
            return response.choices[0].message.content.strip()
        raise LLMError("Empty response from API")

    def _json_call(self, system: str, prompt: str, temperature: Optional[float] = None) -> Dict[str, Any]:
        content = self._make_llm_call(
            [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            json_mode=True,
        )
        try:
            result = json.loads(content)
        except json.JSONDecodeError as e:
            raise LLMError(f"Model returned invalid JSON: {e.msg}")
        if not isinstance(result, dict):
            raise LLMError("Model returned JSON that is not an object")
        return result

    # ------------------------------------------------------------------
    # Contribution analysis
    # ------------------------------------------------------------------

    def consolidated_analysis(self, system_prompt: str, user_prompt: str) -> str:
        """
        Run the single consolidated analysis request.

        Returns the raw reply; the caller extracts the JSON block.
        """
        self.logger.info(f"Consolidated analysis prompt: ~{self.count_tokens(user_prompt)} tokens")
        return self._make_llm_call(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            json_mode=True,
        )

    def analyze_contributions(self, contributions: ContributionSnapshot) -> Dict[str, Any]:
        """Extract resume-worthy achievements, skills and projects."""
        repos = "\n".join(
            f"- {r.name}: {(r.description or '')[:MAX_DESCRIPTION_LENGTH] or 'No description'}"
            for r in contributions.repositories[:MAX_REPOS_IN_PROMPT]
        )
        commits = "\n".join(f"- {c.message}" for c in contributions.commits[:MAX_RECENT_COMMITS])
        prompt = f"""Analyze the following GitHub contributions and extract resume-worthy achievements, skills, and project highlights.

Repositories: {len(contributions.repositories)}
Commits: {len(contributions.commits)}
Pull Requests: {len(contributions.pull_requests)}
Issues: {len(contributions.issues)}

Top repositories:
{repos}

Recent commits:
{commits}

Extract:
1. Key achievements (quantifiable when possible)
2. Technical skills demonstrated
3. Notable projects with descriptions and highlights

Return as JSON with this structure:
{{
  "achievements": ["achievement 1", "achievement 2"],
  "skills": ["skill1", "skill2"],
  "projects": [
    {{
      "name": "project name",
      "description": "brief description",
      "highlights": ["highlight 1", "highlight 2"]
    }}
  ]
}}"""
        result = self._json_call(
            "You are a professional resume writer and career coach. "
            "Extract meaningful, quantifiable achievements from technical contributions.",
            prompt,
        )
        return {
            "achievements": list(result.get("achievements") or []),
            "skills": list(result.get("skills") or []),
            "projects": list(result.get("projects") or []),
        }

    def generate_summary(
        self,
        contributions: ContributionSnapshot,
        current_summary: Optional[str] = None,
        tone: str = "hybrid",
    ) -> Dict[str, Any]:
        """Write a resume summary plus two alternatives in the given tone."""
        if tone not in SUMMARY_TONES:
            raise ValueError(f"Unsupported tone: {tone}")
        skills = ", ".join(list(contributions.languages)[:MAX_RECENT_COMMITS])
        prompt = f"""Generate a professional resume summary based on the following:

Current Summary: {current_summary or "None provided"}

GitHub Activity:
- {len(contributions.repositories)} repositories
- {len(contributions.commits)} commits
- {len(contributions.pull_requests)} pull requests
- {len(contributions.issues)} issues resolved

Top Skills: {skills}

Tone: {tone} - {SUMMARY_TONES[tone]}

Generate:
1. One primary summary (2-3 sentences, ~50 words)
2. Two alternative versions

Return as JSON:
{{
  "summary": "primary summary",
  "alternatives": ["alternative 1", "alternative 2"]
}}"""
        result = self._json_call(
            "You are a professional resume writer. "
            "Create compelling, concise summaries that highlight achievements and skills.",
            prompt,
            temperature=0.8,
        )
        return {
            "summary": str(result.get("summary") or ""),
            "alternatives": list(result.get("alternatives") or []),
        }

    def compare_resume(self, existing_resume: str, contributions: ContributionSnapshot) -> Dict[str, Any]:
        """Find gaps between a resume and recent GitHub work."""
        commits = "; ".join(c.message for c in contributions.commits[:MAX_COMPARE_COMMITS])
        prompt = f"""Compare this existing resume with recent GitHub contributions to identify gaps and improvements.

EXISTING RESUME:
{existing_resume}

GITHUB CONTRIBUTIONS:
- Repositories: {len(contributions.repositories)}
- Recent commits: {commits}
- Pull requests: {len(contributions.pull_requests)}
- Issues: {len(contributions.issues)}

Analyze and identify:
1. Missing achievements from GitHub that should be added
2. Outdated sections that need updating
3. Specific suggestions for improvement

Return as JSON:
{{
  "missingAchievements": ["achievement 1", "achievement 2"],
  "outdatedSections": ["section 1", "section 2"],
  "suggestions": ["suggestion 1", "suggestion 2"]
}}"""
        result = self._json_call(
            "You are a resume optimization expert. "
            "Identify gaps between resumes and actual work to improve accuracy and impact.",
            prompt,
        )
        return {
            "missingAchievements": list(result.get("missingAchievements") or []),
            "outdatedSections": list(result.get("outdatedSections") or []),
            "suggestions": list(result.get("suggestions") or []),
        }

    # ------------------------------------------------------------------
    # Resume parsing
    # ------------------------------------------------------------------

    def parse_resume(self, text: str) -> Dict[str, Any]:
        """
        Extract header, summary and work experience from resume text.

        Returns a dict shaped like ``resume_parser.ParsedResume.to_dict()``
        without ``rawContent``.
        """
        prompt = f"""Extract the structured content of this resume.

RESUME:
{text}

Dates must use YYYY-MM. Use null for "end" when the position is current.
Keep the work experience in the order it appears.

Return as JSON:
{{
  "header": {{
    "name": "Full Name",
    "email": "email@example.com",
    "phone": null,
    "git": null,
    "linkedin": null,
    "website": null
  }},
  "summary": "Professional summary",
  "sections": [
    {{
      "start": "2021-01",
      "end": null,
      "position": "Job title",
      "company": "Company",
      "description": "Responsibilities and achievements"
    }}
  ]
}}"""
        result = self._json_call(
            "You are a precise resume parser. Copy facts from the resume; never invent them.",
            prompt,
            temperature=0.0,
        )
        sections = [s for s in result.get("sections") or [] if isinstance(s, dict)]
        for order, section in enumerate(sections):
            section["displayOrder"] = order
        return {
            "header": dict(result.get("header") or {}),
            "summary": str(result.get("summary") or ""),
            "sections": sections,
        }
