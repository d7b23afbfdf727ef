"""AI provider clients."""

from .client import AIClient, AIRequest, AIRequestError, parse_json_response

__all__ = ["AIClient", "AIRequest", "AIRequestError", "parse_json_response"]
