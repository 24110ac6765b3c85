"""
Data models for commit grouping.

A :class:`Group` is one proposed atomic commit as parsed from the
completion service's answer: a Conventional Commit type, an optional
scope, a one-line description, and the files that belong to it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional


# Commit types accepted in grouped mode, with their meaning.
COMMIT_TYPES: Dict[str, str] = {
    "feat": "new functionality or enhancement",
    "fix": "bug fixes or error corrections",
    "docs": "documentation changes only",
    "test": "adding or modifying tests",
    "refactor": "code improvements without changing functionality",
    "chore": "routine tasks, maintenance, dependencies",
    "ci": "changes to CI configuration files and scripts",
}

TYPE_ALIASES: Dict[str, str] = {
    "feature": "feat",
    "features": "feat",
    "bug": "fix",
    "bugfix": "fix",
    "hotfix": "fix",
    "doc": "docs",
    "documentation": "docs",
    "tests": "test",
    "testing": "test",
    "refactoring": "refactor",
    "build": "chore",
    "deps": "chore",
    "maintenance": "chore",
    "style": "chore",
}

COMMIT_EMOJIS: Dict[str, str] = {
    "feat": "✨",
    "fix": "\U0001f41b",
    "docs": "\U0001f4da",
    "test": "\U0001f9ea",
    "refactor": "♻️",
    "chore": "\U0001f527",
    "ci": "\U0001f477",
}

FALLBACK_TYPE = "chore"
SCOPE_MAX_LENGTH = 20
_SCOPE_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def normalize_type(raw: str) -> Optional[str]:
    """Map a commit type as written by the service onto :data:`COMMIT_TYPES`.

    Returns ``None`` when the value cannot be recognised.
    """
    value = re.sub(r"\s+", "", raw or "").lower()
    if value in COMMIT_TYPES:
        return value
    return TYPE_ALIASES.get(value)


def is_valid_scope(scope: str) -> bool:
    return len(scope) <= SCOPE_MAX_LENGTH and bool(_SCOPE_RE.match(scope))


@dataclass
class Group:
    """Representation of one proposed commit.

    Attributes
    ----------
    index : int
        1-based position; groups are committed in ascending order.
    type : str
        Normalised Conventional Commit type.
    files : List[str]
        Repository-relative paths, in the order the service listed them.
    scope : str, optional
        Short scope token, or ``None``.
    description : str
        One-line rationale, used as the fallback summary.
    """

    index: int
    type: str
    files: List[str] = field(default_factory=list)
    scope: Optional[str] = None
    description: str = ""

    @property
    def formatted_type(self) -> str:
        """``type`` or ``type(scope)``."""
        return f"{self.type}({self.scope})" if self.scope else self.type
