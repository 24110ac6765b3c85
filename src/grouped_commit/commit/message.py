"""
Commit message construction and validation.

:class:`MessageComposer` produces a :class:`CommitMessage` for one group,
either from an AI suggestion or, when the service is disabled or fails,
from the deterministic template ``[emoji ]type[(scope)]: description``.

All messages follow the format::

    [emoji ]type[(scope)]: summary       (at most 72 characters)

    Body explaining motivation and impact.

    Co-authored-by: Trailer Lines <optional@example.com>
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from grouped_commit.config.loader import Settings
from grouped_commit.grouping.group_model import COMMIT_EMOJIS, normalize_type
from grouped_commit.llm import prompts
from grouped_commit.llm.completion_client import CompletionClient, ExtractionError, LLMError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


SUMMARY_LIMIT = prompts.SUMMARY_LIMIT

# An existing "[emoji ]type[(scope)][!]:" prefix at the start of a summary.
_ANY_PREFIX_RE = re.compile(
    r"^(?:[^\w\s\[]+\s*)?\[?([A-Za-z]+)\]?(?:\([^)]*\))?!?:\s*",
)

# Lines the service sometimes puts before the actual message.
_PREAMBLE_MARKERS = (
    "here is",
    "here's",
    "commit message:",
    "suggested commit",
    "sure",
)


@dataclass
class CommitMessage:
    """A commit message split into its parts.

    The rendered form always has exactly one blank line between summary
    and body, and between body and trailers.
    """

    summary: str
    body: str = ""
    trailers: List[str] = field(default_factory=list)

    def render(self) -> str:
        parts = [self.summary.strip()]
        if self.body.strip():
            parts.append(self.body.strip())
        if self.trailers:
            parts.append("\n".join(self.trailers))
        return "\n\n".join(parts)

    def with_trailers(self, trailers: Iterable[str]) -> "CommitMessage":
        merged = list(self.trailers)
        for trailer in trailers:
            if trailer.strip() and trailer.strip() not in merged:
                merged.append(trailer.strip())
        return CommitMessage(summary=self.summary, body=self.body, trailers=merged)

    @classmethod
    def from_text(cls, text: str) -> "CommitMessage":
        """Split free text into summary and body.

        Blank lines between summary and body are collapsed so the rendered
        message has exactly one.
        """
        lines = text.strip().splitlines()
        if not lines:
            raise ValueError("Empty commit message")
        summary = lines[0].strip()
        body = "\n".join(lines[1:]).strip()
        return cls(summary=summary, body=body)


@dataclass
class ValidationResult:
    """Outcome of :func:`validate_message`. Both checks are advisory."""

    summary_length: int
    too_long: bool
    missing_blank_line: bool

    @property
    def ok(self) -> bool:
        return not self.too_long and not self.missing_blank_line


def validate_message(text: str) -> ValidationResult:
    """Check the summary length and the blank line after the summary."""
    lines = text.splitlines()
    summary = lines[0] if lines else ""
    has_body = any(line.strip() for line in lines[1:])
    missing_blank = has_body and bool(lines[1].strip())
    if len(summary) > SUMMARY_LIMIT:
        logger.warning("Summary line is %d characters (limit %d)", len(summary), SUMMARY_LIMIT)
    return ValidationResult(
        summary_length=len(summary),
        too_long=len(summary) > SUMMARY_LIMIT,
        missing_blank_line=missing_blank,
    )


def build_prefix(commit_type: str, scope: Optional[str], emoji_enabled: bool) -> str:
    """Return ``[emoji ]type[(scope)]:``."""
    formatted = f"{commit_type}({scope})" if scope else commit_type
    emoji = COMMIT_EMOJIS.get(commit_type, "") if emoji_enabled else ""
    return f"{emoji} {formatted}:" if emoji else f"{formatted}:"


def max_description_length(prefix: str) -> int:
    """Characters left for the description after ``prefix`` and one space."""
    return SUMMARY_LIMIT - len(prefix) - 1


class MessageComposer:
    """Compose commit messages for commit groups.

    Parameters
    ----------
    settings : Settings
        Run configuration; supplies trailers and the diff truncation limit.
    client : CompletionClient, optional
        Completion client. Without one, only template messages are made.
    """

    def __init__(self, settings: Settings, client: Optional[CompletionClient] = None) -> None:
        self.settings = settings
        self.client = client
        self.last_error: Optional[LLMError] = None

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------
    def template(
        self,
        commit_type: str,
        scope: Optional[str],
        description: str,
        emoji_enabled: bool,
    ) -> CommitMessage:
        prefix = build_prefix(commit_type, scope, emoji_enabled)
        description = description.strip() or "update files"
        return CommitMessage(summary=f"{prefix} {description}")

    # ------------------------------------------------------------------
    # AI suggestions
    # ------------------------------------------------------------------
    def _extract_message(self, raw_response: str) -> str:
        """Drop preamble and code fences around the suggested message."""
        lines = [line for line in raw_response.strip().splitlines() if not line.strip().startswith("```")]
        for i, line in enumerate(lines):
            stripped = line.strip()
            if not stripped:
                continue
            match = _ANY_PREFIX_RE.match(stripped)
            if match and normalize_type(match.group(1)) is not None:
                return "\n".join(lines[i:]).strip()
        # No conventional summary found; skip obvious preamble lines.
        for i, line in enumerate(lines):
            lower = line.strip().lower()
            if not lower or any(lower.startswith(marker) for marker in _PREAMBLE_MARKERS):
                continue
            return "\n".join(lines[i:]).strip()
        raise ValueError("Empty response")

    def _normalize(self, text: str, prefix: str) -> CommitMessage:
        """Make the summary start with ``prefix`` exactly."""
        message = CommitMessage.from_text(text)
        summary = message.summary.strip().strip('"').strip()
        if summary.startswith(prefix):
            rest = summary[len(prefix):].strip()
        else:
            match = _ANY_PREFIX_RE.match(summary)
            if match and normalize_type(match.group(1)) is not None:
                rest = summary[match.end():].strip()
            else:
                rest = summary
        message.summary = f"{prefix} {rest}"
        return message

    def compose(
        self,
        commit_type: str,
        scope: Optional[str],
        description: str,
        diff_context: str,
        emoji_enabled: bool,
        ai_available: bool,
    ) -> CommitMessage:
        """Return the message for one group, trailers included.

        Falls back to :meth:`template` when AI is unavailable or the
        request fails; the failure is kept in :attr:`last_error`.
        """
        self.last_error = None
        message: Optional[CommitMessage] = None
        if ai_available and self.client is not None:
            prefix = build_prefix(commit_type, scope, emoji_enabled)
            prompt, system = prompts.build_message_prompt(
                prefix,
                description,
                diff_context,
                max_description_length(prefix),
                self.settings.max_diff_chars,
            )
            try:
                raw = self.client.complete(prompt, system)
                message = self._normalize(self._extract_message(raw), prefix)
            except LLMError as exc:
                logger.warning("AI message generation failed: %s; using template", exc)
                self.last_error = exc
            except ValueError as exc:
                logger.warning("AI returned an unusable message (%s); using template", exc)
                self.last_error = ExtractionError(f"unusable commit message: {exc}")
        if message is None:
            message = self.template(commit_type, scope, description, emoji_enabled)
        return message.with_trailers(self.settings.trailers)

    def adjust(
        self,
        message: CommitMessage,
        instruction: str,
        commit_type: str,
        scope: Optional[str],
        emoji_enabled: bool,
    ) -> CommitMessage:
        """Ask the service to rewrite ``message`` following ``instruction``.

        Raises
        ------
        LLMError
            If the request fails; the caller keeps the current message.
        ValueError
            If the service returned nothing usable.
        """
        if self.client is None:
            raise LLMError("AI is not available for adjustments")
        prefix = build_prefix(commit_type, scope, emoji_enabled)
        current = CommitMessage(summary=message.summary, body=message.body).render()
        prompt, system = prompts.build_adjust_prompt(
            current, instruction, prefix, max_description_length(prefix)
        )
        raw = self.client.complete(prompt, system)
        adjusted = self._normalize(self._extract_message(raw), prefix)
        return adjusted.with_trailers(message.trailers)
