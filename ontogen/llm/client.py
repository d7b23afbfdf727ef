"""HTTP client for the AI providers used by the domain layer."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..config import AIConfig

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class AIRequestError(RuntimeError):
    """Raised for any failure talking to an AI provider."""


@dataclass
class AIRequest:
    """A single completion request, already routed to a provider endpoint."""

    provider: str
    url: str
    headers: Dict[str, str]
    payload: Dict[str, Any]
    timeout: float


class AIClient:
    """Sends single-turn prompts to the configured provider and returns the reply text.

    ``transport`` replaces the HTTP round trip; it receives the routed
    :class:`AIRequest` and returns the decoded JSON response body.
    """

    def __init__(
        self,
        config: AIConfig,
        env: Optional[Mapping[str, str]] = None,
        transport: Optional[Callable[[AIRequest], Dict[str, Any]]] = None,
    ) -> None:
        self.config = config
        self.env = os.environ if env is None else env
        self._transport = transport or _http_transport

    @property
    def api_key(self) -> Optional[str]:
        return self.env.get(self.config.api_key_env) or None

    def has_credentials(self) -> bool:
        return self.api_key is not None

    def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        api_key = self.api_key
        if not api_key:
            raise AIRequestError(
                f"API key environment variable '{self.config.api_key_env}' is not set"
            )
        request = self._build_request(prompt, api_key, max_tokens or self.config.max_tokens_per_request)
        body = self._transport(request)
        if request.provider == "anthropic":
            return _anthropic_content(body)
        return _openai_content(body)

    def _build_request(self, prompt: str, api_key: str, max_tokens: int) -> AIRequest:
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {"Content-Type": "application/json"}
        provider = self.config.provider
        if provider == "anthropic":
            headers["x-api-key"] = api_key
            headers["anthropic-version"] = ANTHROPIC_VERSION
            url = ANTHROPIC_URL
            if self.config.base_url:
                url = f"{self.config.base_url.rstrip('/')}/v1/messages"
        else:
            headers["Authorization"] = f"Bearer {api_key}"
            if self.config.base_url:
                url = f"{self.config.base_url.rstrip('/')}/chat/completions"
            else:
                url = OPENAI_URL
            provider = "openai" if provider == "openai" else "custom"
        return AIRequest(
            provider=provider,
            url=url,
            headers=headers,
            payload=payload,
            timeout=self.config.request_timeout,
        )


def parse_json_response(text: str) -> Optional[Any]:
    """Strip a fenced code block around ``text`` and decode it; None when it is not JSON."""
    cleaned = _FENCE_RE.sub("", text.strip()).strip()
    if not cleaned:
        return None
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return None


def _http_transport(request: AIRequest) -> Dict[str, Any]:
    data = json.dumps(request.payload).encode("utf-8")
    http_request = Request(request.url, data=data, headers=request.headers, method="POST")
    try:
        with urlopen(http_request, timeout=request.timeout) as response:  # type: ignore[arg-type]
            raw = response.read()
    except HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
        message = detail.strip() or exc.reason
        raise AIRequestError(
            f"{request.provider} API request failed with status {exc.code}: {message}"
        ) from exc
    except URLError as exc:
        raise AIRequestError(f"{request.provider} API request failed: {exc.reason}") from exc
    except OSError as exc:
        raise AIRequestError(f"{request.provider} API request failed: {exc}") from exc

    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise AIRequestError(f"{request.provider} API returned invalid JSON") from exc
    if not isinstance(payload, dict):
        raise AIRequestError(f"{request.provider} API returned an unexpected payload")
    return payload


def _anthropic_content(payload: Dict[str, Any]) -> str:
    content = payload.get("content")
    if isinstance(content, list) and content:
        first = content[0]
        if isinstance(first, dict) and isinstance(first.get("text"), str):
            return first["text"]
    return ""


def _openai_content(payload: Dict[str, Any]) -> str:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    message = first.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    text = first.get("text")
    return text if isinstance(text, str) else ""


__all__ = [
    "AIClient",
    "AIRequest",
    "AIRequestError",
    "parse_json_response",
]
