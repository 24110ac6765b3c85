"""
Git client implementation for grouped_commit.

This module wraps every Git operation the grouped workflow needs: status
and diff queries, index mutation, patch application, commits, ignore
checks, and repository-state probes. All subprocess calls go through
:meth:`GitClient._run` so that unit tests can mock a single seam.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass
class FileChange:
    """A single entry of ``git status``.

    ``index_status`` and ``worktree_status`` are the two porcelain status
    letters. ``orig_path`` is set for renames and copies.
    """

    path: str
    index_status: str
    worktree_status: str
    orig_path: Optional[str] = None

    @property
    def is_untracked(self) -> bool:
        return self.index_status == "?" and self.worktree_status == "?"

    @property
    def is_rename(self) -> bool:
        return self.orig_path is not None and "R" in (self.index_status, self.worktree_status)


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


# Marker files Git leaves in .git while a multi-step operation is running.
_IN_PROGRESS_MARKERS: Dict[str, str] = {
    "MERGE_HEAD": "merge",
    "rebase-merge": "rebase",
    "rebase-apply": "rebase",
    "CHERRY_PICK_HEAD": "cherry-pick",
    "REVERT_HEAD": "revert",
}


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Find the root of the Git repository starting from ``start``.

        Walk upwards until a ``.git`` entry is found or the filesystem
        root is reached.
        """
        current = start.resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                return None
            current = current.parent

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------
    def _run(
        self,
        args: List[str],
        check: bool = True,
        input_text: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If the command exits with a non-zero status when ``check`` is True
            or the ``git`` executable cannot be started.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                input=input_text,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            logger.error("Failed to start git: %s", exc)
            raise GitError(f"Failed to run git: {exc}") from exc

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError(result.stderr.strip() or result.stdout.strip())
        return result

    # ------------------------------------------------------------------
    # Repository state probes
    # ------------------------------------------------------------------
    def git_dir(self) -> Path:
        result = self._run(["rev-parse", "--git-dir"])
        path = Path(result.stdout.strip())
        return path if path.is_absolute() else self.repo_root / path

    def has_head(self) -> bool:
        """Return True if the repository has at least one commit."""
        result = self._run(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
        return result.returncode == 0

    def operation_in_progress(self) -> Optional[str]:
        """Return the name of a merge/rebase/cherry-pick/revert in progress."""
        git_dir = self.git_dir()
        for marker, name in _IN_PROGRESS_MARKERS.items():
            if (git_dir / marker).exists():
                return name
        return None

    # ------------------------------------------------------------------
    # Status and diff queries
    # ------------------------------------------------------------------
    def status(self, paths: Optional[Iterable[str]] = None) -> List[FileChange]:
        """Return the porcelain status, with rename detection.

        Untracked directories are expanded to individual files. Ignored
        files are never reported by ``git status``.
        """
        args = ["status", "--porcelain=v1", "-z", "--untracked-files=all", "--renames"]
        if paths is not None:
            args += ["--"] + list(paths)
        result = self._run(args)
        return parse_porcelain_z(result.stdout)

    def status_short(self) -> str:
        return self._run(["status", "--short"]).stdout

    def diff(self, cached: bool = False, stat: bool = False, against_head: bool = False) -> str:
        """Return a diff of the working tree or the index.

        ``against_head`` compares the working tree with ``HEAD`` so both
        staged and unstaged edits appear in one patch.
        """
        args = ["diff", "--no-color", "-M"]
        if cached:
            args.append("--cached")
        elif against_head:
            args.append("HEAD")
        if stat:
            args.append("--stat")
        return self._run(args).stdout

    def staged_patch(self) -> str:
        """Return the full binary-safe patch of what is currently staged."""
        return self._run(["diff", "--cached", "--binary", "--no-color"]).stdout

    def has_staged_changes(self) -> bool:
        result = self._run(["diff", "--cached", "--quiet"], check=False)
        if result.returncode not in (0, 1):
            raise GitError(result.stderr.strip() or "git diff --cached failed")
        return result.returncode == 1

    def is_tracked(self, path: str) -> bool:
        """Return True if ``path`` is known to HEAD or to the index."""
        result = self._run(["ls-files", "--error-unmatch", "--", path], check=False)
        if result.returncode == 0:
            return True
        if self.has_head():
            result = self._run(["cat-file", "-e", f"HEAD:{path}"], check=False)
            return result.returncode == 0
        return False

    def ignored(self, paths: Iterable[str]) -> List[str]:
        """Return the subset of ``paths`` matching the ignore rules."""
        paths = list(paths)
        if not paths:
            return []
        result = self._run(
            ["check-ignore", "--no-index", "--stdin", "-z"],
            check=False,
            input_text="\0".join(paths) + "\0",
        )
        # 0: some paths ignored, 1: none ignored, anything else is an error
        if result.returncode not in (0, 1):
            raise GitError(result.stderr.strip() or "git check-ignore failed")
        return [name for name in result.stdout.split("\0") if name]

    # ------------------------------------------------------------------
    # Index mutation
    # ------------------------------------------------------------------
    def add(self, paths: List[str], all_changes: bool = False) -> None:
        args = ["add"]
        if all_changes:
            args.append("-A")
        self._run(args + ["--"] + paths)

    def remove_cached(self, paths: List[str]) -> None:
        self._run(["rm", "--cached", "-q", "--ignore-unmatch", "--"] + paths)

    def reset_index(self) -> None:
        """Unstage everything without touching the working tree."""
        if self.has_head():
            self._run(["reset", "-q", "HEAD"])
        else:
            self._run(["rm", "-r", "--cached", "-q", "--ignore-unmatch", "--", "."])

    def apply_cached(self, patch: str, check_only: bool = False, reverse: bool = False) -> bool:
        """Apply ``patch`` to the index. Returns False if it does not apply."""
        args = ["apply", "--cached", "--whitespace=nowarn"]
        if reverse:
            args.append("--reverse")
        if check_only:
            args.append("--check")
        result = self._run(args, check=False, input_text=patch)
        if result.returncode != 0:
            logger.debug("git apply failed: %s", result.stderr.strip())
        return result.returncode == 0

    # ------------------------------------------------------------------
    # Committing
    # ------------------------------------------------------------------
    def commit(self, message: str) -> str:
        """Create a commit from the index and return its short SHA.

        The message is written to a temporary file and passed with ``-F``
        so multi-line messages survive unchanged.
        """
        with tempfile.NamedTemporaryFile(
            mode="w", delete=False, suffix=".txt", encoding="utf-8"
        ) as tmp:
            tmp.write(message)
            if not message.endswith("\n"):
                tmp.write("\n")
            tmp_path = tmp.name
        try:
            self._run(["commit", "-q", "-F", tmp_path])
        finally:
            os.unlink(tmp_path)
        return self._run(["rev-parse", "--short", "HEAD"]).stdout.strip()


def parse_porcelain_z(output: str) -> List[FileChange]:
    """Parse ``git status --porcelain=v1 -z`` output.

    Each record is ``XY path``; renames and copies are followed by an extra
    NUL-terminated field holding the original path.
    """
    changes: List[FileChange] = []
    records = output.split("\0")
    i = 0
    while i < len(records):
        record = records[i]
        i += 1
        if len(record) < 4:
            continue
        x, y, path = record[0], record[1], record[3:]
        orig_path = None
        if x in {"R", "C"} or y in {"R", "C"}:
            if i < len(records):
                orig_path = records[i] or None
            i += 1
        changes.append(FileChange(path=path, index_status=x, worktree_status=y, orig_path=orig_path))
    return changes
