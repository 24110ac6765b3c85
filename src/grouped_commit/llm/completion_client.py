"""
Client for the text-completion service.

This client wraps HTTP requests to a messages-style completion API. A
request carries a model identifier, system instructions, one user message
and a token budget. Every call is a single blocking round trip: there is
no retry and no caching.

Failures are classified so callers can decide how to fall back:

* :class:`TransportError` - no response, network failure, or a response
  that is not usable at the transport level.
* :class:`ServiceError` - the service answered with an error envelope
  ``{"error": {"type": ..., "message": ...}}``.
* :class:`ExtractionError` - a well-formed response whose payload could
  not be turned into plain text.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from grouped_commit.config.loader import Settings


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


API_VERSION = "2023-06-01"

# Last-resort scan for a "text" field in a payload that did not match the
# expected structure.
_TEXT_FIELD_RE = re.compile(r'"text"\s*:\s*"((?:[^"\\]|\\.)*)"')

_GUIDANCE: Dict[str, str] = {
    "authentication_error": "Check your API key (ANTHROPIC_API_KEY).",
    "permission_error": "Check that your API key has access to the configured model.",
    "rate_limit_error": "Rate limit reached; retry later.",
    "overloaded_error": "The service is overloaded; retry later.",
    "api_error": "The service reported an internal error; retry later.",
    "invalid_request_error": "The request was rejected; try simplifying your input.",
    "not_found_error": "Check the configured model name and API URL.",
}


class LLMError(Exception):
    """Base class for completion service failures."""

    pass


class TransportError(LLMError):
    """Raised when the service could not be reached or answered unusably."""

    pass


class ServiceError(LLMError):
    """Raised when the service returns an error envelope."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message

    @property
    def guidance(self) -> str:
        return _GUIDANCE.get(self.kind, "Retry later or run with --debug for details.")


class ExtractionError(LLMError):
    """Raised when no plain text could be extracted from a response."""

    pass


def extract_text(data: Any, raw: str = "") -> str:
    """Extract plain text from a completion payload.

    Three strategies are tried in order: every ``content`` block of type
    ``text``, then the first content element's ``text``, then a pattern
    scan of the raw body.

    Raises
    ------
    ExtractionError
        If none of the strategies yields non-empty text.
    """
    content = data.get("content") if isinstance(data, dict) else None

    if isinstance(content, list):
        texts = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        text = "".join(t for t in texts if isinstance(t, str)).strip()
        if text:
            return text
        logger.debug("Structured extraction failed, trying first content element")
        if content and isinstance(content[0], dict):
            first = content[0].get("text")
            if isinstance(first, str) and first.strip():
                return first.strip()

    logger.debug("Falling back to pattern scan of the raw response")
    match = _TEXT_FIELD_RE.search(raw or "")
    if match:
        try:
            text = json.loads(f'"{match.group(1)}"')
        except json.JSONDecodeError:
            text = match.group(1)
        if text.strip():
            return text.strip()
    raise ExtractionError("Failed to extract content from the service response")


@dataclass
class CompletionClient:
    """Client for the completion service.

    Parameters
    ----------
    api_key : str
        Key sent in the ``x-api-key`` header.
    model : str
        Model identifier.
    api_url : str
        Full URL of the messages endpoint.
    max_tokens : int, optional
        Default token budget, overridable per call.
    request_timeout : float, optional
        Timeout in seconds for HTTP requests. Defaults to 60 seconds.
    """

    api_key: str
    model: str
    api_url: str
    max_tokens: int = 300
    request_timeout: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionClient":
        return cls(
            api_key=settings.api_key or "",
            model=settings.model,
            api_url=settings.api_url,
            max_tokens=settings.max_tokens,
            request_timeout=settings.request_timeout,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": API_VERSION,
            "content-type": "application/json",
        }

    def complete(
        self,
        prompt: str,
        system_instructions: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send one request and return the extracted text.

        Raises
        ------
        TransportError, ServiceError, ExtractionError
            See the module docstring.
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "system": system_instructions,
            "messages": [{"role": "user", "content": prompt}],
        }
        logger.debug("Sending request to %s with payload: %s", self.api_url, payload)
        try:
            response = requests.post(
                self.api_url,
                headers=self._headers(),
                json=payload,
                timeout=self.request_timeout,
            )
        except requests.RequestException as exc:
            logger.error("Failed to reach the completion service: %s", exc)
            raise TransportError(str(exc)) from exc

        raw = response.text or ""
        logger.debug("Response status %s: %s", response.status_code, raw)
        if not raw.strip():
            raise TransportError(f"Empty response from service (status {response.status_code})")

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = None

        if isinstance(data, dict) and "error" in data:
            error = data["error"]
            if isinstance(error, dict):
                kind = str(error.get("type") or "unknown_error")
                message = str(error.get("message") or kind)
            else:
                kind, message = "unknown_error", str(error)
            logger.error("Service error %s: %s", kind, message)
            raise ServiceError(kind, message)

        if response.status_code != 200:
            raise TransportError(f"Service returned status {response.status_code}: {raw[:200]}")

        if data is None:
            try:
                return extract_text(None, raw)
            except ExtractionError as exc:
                raise TransportError("Malformed response from service (not JSON)") from exc
        return extract_text(data, raw)
