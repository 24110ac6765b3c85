"""
Enumerate the committable changes of a working tree.

The :class:`ChangeCollector` is read-only: it never stages or unstages
anything. It reports staged, unstaged and untracked paths once each, with
renames collapsed onto their new path, and leaves out anything matching
the repository's ignore rules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List

from grouped_commit.vcs.git_client import FileChange, GitClient


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class NoChangesError(Exception):
    """Raised when the working tree has nothing to commit."""

    pass


@dataclass
class ChangeSet:
    """Committable paths captured at one point in time.

    Attributes
    ----------
    paths : List[str]
        Ordered, de-duplicated repository-relative paths.
    renames : Dict[str, str]
        Mapping of new path to original path for detected renames.
    changes : Dict[str, FileChange]
        The status entry behind each path.
    excluded_count : int
        Number of paths left out because they match ignore rules.
    """

    paths: List[str]
    renames: Dict[str, str] = field(default_factory=dict)
    changes: Dict[str, FileChange] = field(default_factory=dict)
    excluded_count: int = 0

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)

    def __contains__(self, path: object) -> bool:
        return path in self.changes

    @property
    def untracked(self) -> List[str]:
        return [path for path in self.paths if self.changes[path].is_untracked]


class ChangeCollector:
    """Collect the :class:`ChangeSet` of a repository."""

    def __init__(self, git: GitClient) -> None:
        self.git = git

    def collect(self) -> ChangeSet:
        """Return the current :class:`ChangeSet`.

        Raises
        ------
        NoChangesError
            If no committable path remains after filtering.
        """
        changes: Dict[str, FileChange] = {}
        renames: Dict[str, str] = {}
        for entry in self.git.status():
            if entry.index_status == "!" or entry.path in changes:
                continue
            changes[entry.path] = entry
            if entry.is_rename:
                renames[entry.path] = entry.orig_path  # type: ignore[assignment]

        # The old side of a rename can still be listed on its own (" D old"
        # when only part of the rename is staged); keep the new path only.
        for orig in renames.values():
            changes.pop(orig, None)

        ignored = set(self.git.ignored(list(changes)))
        if ignored:
            logger.info("Excluding %d ignored path(s) from the change set", len(ignored))
        paths = [path for path in changes if path not in ignored]
        if not paths:
            raise NoChangesError("No committable changes found in the working tree.")

        change_set = ChangeSet(
            paths=paths,
            renames={new: old for new, old in renames.items() if new not in ignored},
            changes={path: changes[path] for path in paths},
            excluded_count=len(ignored),
        )
        logger.debug(
            "Collected %d path(s), %d rename(s), %d excluded",
            len(change_set),
            len(change_set.renames),
            change_set.excluded_count,
        )
        return change_set
