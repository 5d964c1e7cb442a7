# LLM integration module
# Handles external LLM service integration - OpenAI

from .client import LLMClient, LLMError, InvalidAPIKeyError, estimate_tokens

__all__ = ["LLMClient", "LLMError", "InvalidAPIKeyError", "estimate_tokens"]
