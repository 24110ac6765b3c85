"""
Parse the completion service's grouping answer into :class:`Group` objects.

The service is an untrusted producer, so the parser is strict: the
answer must start with ``GROUP 1:``, headers must be numbered 1..n in
order, and anything ambiguous raises :class:`ParseError` instead of
being guessed at. The expected shape is::

    GROUP 1: feat
    Scope: auth
    Description: add token refresh
    Files:
    - src/auth.ts
    - src/auth.test.ts

Within a group only the commit type and scope are normalised. Files
outside the captured change set are dropped with a warning, and a group
left without files is dropped entirely.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Optional

from grouped_commit.grouping.group_model import (
    FALLBACK_TYPE,
    Group,
    is_valid_scope,
    normalize_type,
)


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


_LEADING_HEADER_RE = re.compile(r"\AGROUP 1:")
_HEADER_RE = re.compile(r"^GROUP (\d+):[ \t]*(.*)$", re.MULTILINE)
_HEADER_TYPE_RE = re.compile(r"^([A-Za-z]+)(?:\(([^)]*)\))?:?$")
_SCOPE_RE = re.compile(r"^[ \t]*Scope:[ \t]*(.*)$", re.MULTILINE)
_DESCRIPTION_RE = re.compile(r"^[ \t]*Description:[ \t]*(.*)$", re.MULTILINE)
_FILE_RE = re.compile(r"^[ \t]*- (.+)$", re.MULTILINE)

EXCERPT_LENGTH = 300


class ParseError(Exception):
    """Raised when a grouping answer does not have the required structure."""

    def __init__(self, message: str, response: str = "") -> None:
        super().__init__(message)
        self.response = response

    @property
    def excerpt(self) -> str:
        text = self.response.strip()
        if len(text) > EXCERPT_LENGTH:
            return text[:EXCERPT_LENGTH] + "..."
        return text


@dataclass
class CoverageReport:
    """How the parsed groups cover the captured change set.

    Attributes
    ----------
    unassigned : List[str]
        Changed files no group mentions.
    overlapping : Dict[str, List[int]]
        Files listed by more than one group, with the group indexes.
    """

    unassigned: List[str] = field(default_factory=list)
    overlapping: Dict[str, List[int]] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.unassigned and not self.overlapping


class GroupParser:
    """Strict parser for ``GROUP n:`` answers.

    Parameters
    ----------
    change_set : Collection[str], optional
        Paths captured before the service was asked. When given, listed
        files outside this set are dropped.
    unknown_type_policy : str
        ``"chore"`` maps unrecognised types to chore with a warning,
        ``"reject"`` raises :class:`ParseError` instead.
    """

    def __init__(
        self,
        change_set: Optional[Collection[str]] = None,
        unknown_type_policy: str = "chore",
    ) -> None:
        self.change_set = change_set
        self.unknown_type_policy = unknown_type_policy
        self.warnings: List[str] = []

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def parse(self, response_text: str) -> List[Group]:
        """Parse ``response_text`` into groups ordered by index.

        Raises
        ------
        ParseError
            If the text does not start with ``GROUP 1:``, has no headers,
            or numbers its headers out of sequence.
        """
        self.warnings = []
        text = (response_text or "").replace("\r\n", "\n").strip()
        if not _LEADING_HEADER_RE.match(text):
            raise ParseError("Response does not start with 'GROUP 1:'", response_text or "")

        headers = list(_HEADER_RE.finditer(text))
        if not headers:
            raise ParseError("Response contains no 'GROUP <n>:' headers", response_text)
        numbers = [int(match.group(1)) for match in headers]
        if numbers != list(range(1, len(headers) + 1)):
            raise ParseError(
                f"Group headers are not numbered 1..{len(headers)} in order: {numbers}",
                response_text,
            )

        groups: List[Group] = []
        for position, match in enumerate(headers):
            end = headers[position + 1].start() if position + 1 < len(headers) else len(text)
            span = text[match.end():end]
            group = self._parse_group(numbers[position], match.group(2), span, response_text)
            if group is not None:
                groups.append(group)
        logger.debug("Parsed %d of %d group(s)", len(groups), len(headers))
        return groups

    def _parse_group(self, index: int, header: str, span: str, response_text: str) -> Optional[Group]:
        header = header.strip()
        header_match = _HEADER_TYPE_RE.match(re.sub(r"\s+", "", header))
        raw_type = header_match.group(1) if header_match else header
        header_scope = header_match.group(2) if header_match else None

        commit_type = normalize_type(raw_type)
        if commit_type is None:
            if self.unknown_type_policy == "reject":
                raise ParseError(f"Group {index} has unknown commit type '{header}'", response_text)
            self._warn(f"Group {index}: unknown commit type '{header}', using '{FALLBACK_TYPE}'")
            commit_type = FALLBACK_TYPE

        scope_match = _SCOPE_RE.search(span)
        raw_scope = scope_match.group(1).strip() if scope_match else (header_scope or "").strip()
        scope: Optional[str] = None
        if raw_scope and raw_scope.upper() != "NONE":
            if is_valid_scope(raw_scope):
                scope = raw_scope
            else:
                self._warn(f"Group {index}: ignoring invalid scope '{raw_scope}'")

        description_match = _DESCRIPTION_RE.search(span)
        description = description_match.group(1).strip() if description_match else ""

        files: List[str] = []
        for file_match in _FILE_RE.finditer(span):
            path = file_match.group(1).strip()
            if not path or path in files:
                continue
            if self.change_set is not None and path not in self.change_set:
                self._warn(f"Group {index}: '{path}' is not among the changed files; ignoring it")
                continue
            files.append(path)

        if not files:
            self._warn(f"Group {index} lists no usable files; dropping it")
            return None
        return Group(index=index, type=commit_type, files=files, scope=scope, description=description)

    def coverage(self, groups: List[Group]) -> CoverageReport:
        """Compare the groups' files against the captured change set."""
        owners: Dict[str, List[int]] = {}
        for group in groups:
            for path in group.files:
                owners.setdefault(path, []).append(group.index)
        overlapping = {path: idx for path, idx in owners.items() if len(idx) > 1}
        for path, idx in overlapping.items():
            self._warn(
                f"'{path}' is listed in groups {', '.join(map(str, idx))}; "
                f"only the first group to stage it will commit its changes"
            )
        unassigned = [path for path in (self.change_set or []) if path not in owners]
        if unassigned:
            logger.info("%d changed file(s) excluded from grouping", len(unassigned))
        return CoverageReport(unassigned=unassigned, overlapping=overlapping)
