"""
Language model integration for grouped_commit.

This package contains the :class:`CompletionClient` for talking to the
completion service, its error taxonomy, and the prompt builders in
:mod:`grouped_commit.llm.prompts`.
"""

from .completion_client import (  # noqa: F401
    CompletionClient,
    ExtractionError,
    LLMError,
    ServiceError,
    TransportError,
)
