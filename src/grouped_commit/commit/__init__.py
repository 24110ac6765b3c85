"""
Commit creation for grouped_commit.

:mod:`grouped_commit.commit.message` builds and validates commit
messages; :mod:`grouped_commit.commit.orchestrator` runs the grouped
workflow that stages and commits each group in turn.
"""

from .message import CommitMessage, MessageComposer, validate_message  # noqa: F401
from .orchestrator import (  # noqa: F401
    CommitOrchestrator,
    Decision,
    PreconditionError,
    WorkflowResult,
    WorkflowState,
)
