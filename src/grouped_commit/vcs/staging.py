"""
Stage exactly the files of one commit group.

:meth:`StagingEngine.stage_only` starts from an empty index (relative to
``HEAD``) every time, so its result never depends on what was staged
before the call. Renames stage both sides so Git keeps detecting the
rename, deletions are staged as removals, and paths that exist neither
on disk nor in history are skipped with a warning.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from grouped_commit.vcs.git_client import GitClient


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class StagingEngine:
    """Reset the index and re-stage a given set of files.

    Parameters
    ----------
    git : GitClient
        Client for the repository whose index is mutated.
    renames : Dict[str, str], optional
        Mapping of new path to original path, as captured by the
        :class:`~grouped_commit.vcs.change_collector.ChangeCollector`.
    """

    def __init__(self, git: GitClient, renames: Optional[Dict[str, str]] = None) -> None:
        self.git = git
        self.renames = dict(renames or {})
        self.skipped_paths: List[str] = []

    def unstage_all(self) -> None:
        self.git.reset_index()

    def stage_only(self, files: Iterable[str]) -> bool:
        """Make the index contain exactly ``files``.

        Returns
        -------
        bool
            True if something is staged afterwards, False if the group has
            nothing left to commit.
        """
        files = list(dict.fromkeys(files))
        self.skipped_paths = []
        self.unstage_all()

        to_add: List[str] = []
        to_remove: List[str] = []
        for path in files:
            abs_path = self.git.repo_root / path
            orig = self.renames.get(path)
            if orig is not None:
                # Stage both sides of the rename in one go.
                if abs_path.exists():
                    to_add.append(path)
                if not (self.git.repo_root / orig).exists() and self.git.is_tracked(orig):
                    to_remove.append(orig)
                elif (self.git.repo_root / orig).exists():
                    to_add.append(orig)
                continue
            if abs_path.exists():
                to_add.append(path)
            elif self.git.is_tracked(path):
                to_remove.append(path)
            else:
                logger.warning("Skipping '%s': not in the working tree or in history", path)
                self.skipped_paths.append(path)

        if to_add:
            self.git.add(to_add, all_changes=True)
        if to_remove:
            self.git.remove_cached(to_remove)

        if not self.git.has_staged_changes():
            logger.warning("Nothing staged for files: %s", ", ".join(files))
            return False
        logger.debug("Staged %d path(s): %s", len(files), ", ".join(files))
        return True
