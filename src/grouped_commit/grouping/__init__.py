"""
Grouping logic for grouped_commit.

:mod:`grouped_commit.grouping.group_model` defines the :class:`Group`
entity and commit-type normalisation; :mod:`grouped_commit.grouping.group_parser`
turns the completion service's answer into groups.
"""

from .group_model import COMMIT_TYPES, Group, normalize_type  # noqa: F401
from .group_parser import CoverageReport, GroupParser, ParseError  # noqa: F401
