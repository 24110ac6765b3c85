"""
Version control helpers for grouped_commit.

:class:`GitClient` wraps the git subprocess interface,
:class:`ChangeCollector` captures the committable change set, and
:class:`StagingEngine` rebuilds the index for one commit group at a time.
"""

from .git_client import FileChange, GitClient, GitError  # noqa: F401
from .change_collector import ChangeCollector, ChangeSet, NoChangesError  # noqa: F401
from .staging import StagingEngine  # noqa: F401
