"""
Prompt texts sent to the completion service.

Each builder returns a ``(prompt, system_instructions)`` pair. The
grouping prompt pins down the exact response format that
:class:`~grouped_commit.grouping.group_parser.GroupParser` accepts.
"""

from __future__ import annotations

from textwrap import dedent
from typing import Iterable, List, Tuple

from grouped_commit.grouping.group_model import COMMIT_TYPES


SUMMARY_LIMIT = 72

TRUNCATION_MARKER = "\n... [diff truncated] ..."


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def _type_lines() -> str:
    return "\n".join(f"- {name}: {desc}" for name, desc in COMMIT_TYPES.items())


GROUPING_SYSTEM = dedent(
    """
    You are a git commit organizer. You split uncommitted changes into
    small, logically atomic commits.

    Respond ONLY in the format below. The first line of your response MUST be
    "GROUP 1: <type>". Do not write anything before it and do not use
    markdown code fences.

    GROUP 1: <type>
    Scope: <short scope or NONE>
    Description: <one line explaining what this commit does>
    Files:
    - <path>
    - <path>

    GROUP 2: <type>
    ...

    Rules:
    - <type> is one of:
    {types}
    - Scope is at most 20 characters of letters, digits, '-' or '_', or NONE.
    - Every listed path must be copied exactly from the list of changed files.
    - Every changed file belongs to exactly one group.
    - Keep tests with the code they test unless they are unrelated.
    - Order groups so that each commit builds on the previous ones.
    """
).strip()


def build_grouping_prompt(
    paths: Iterable[str],
    status: str,
    stat: str,
    diff: str,
    untracked: Iterable[str],
    max_chars: int,
) -> Tuple[str, str]:
    """Return the prompt asking the service to partition the changes."""
    paths = list(paths)
    untracked = list(untracked)
    parts: List[str] = [
        "Split the following uncommitted changes into atomic commits.",
        "",
        "CHANGED FILES:",
        "\n".join(f"- {p}" for p in paths),
        "",
        "GIT STATUS:",
        status.strip() or "(empty)",
        "",
        "DIFF SUMMARY:",
        stat.strip() or "(empty)",
    ]
    if untracked:
        parts += ["", "NEW UNTRACKED FILES (no diff shown):", "\n".join(f"- {p}" for p in untracked)]
    parts += ["", "DIFF:", truncate(diff.strip(), max_chars) or "(empty)"]
    parts += ["", "Respond with the groups now, starting with GROUP 1:"]
    system = GROUPING_SYSTEM.replace("{types}", _type_lines())
    return "\n".join(parts), system


MESSAGE_SYSTEM = dedent(
    """
    You are a git commit message assistant. Write a commit message following
    the conventional commit format.

    Format the message in two parts:
    1. FIRST LINE: a summary that starts exactly with "{prefix}" followed by a
       description of at most {limit} characters. The whole first line must
       not exceed {total} characters. This is a hard limit.
    2. BODY: separated from the summary by one blank line, explaining the
       motivation and the impact of the change in plain, direct language.

    Write in imperative mood ("add", not "added"). Output only the commit
    message: no preamble, no quotes, no code fences.
    """
).strip()


def build_message_prompt(
    prefix: str,
    description: str,
    diff_context: str,
    max_description: int,
    max_chars: int,
) -> Tuple[str, str]:
    """Return the prompt asking for one commit message."""
    system = MESSAGE_SYSTEM.format(prefix=prefix, limit=max_description, total=SUMMARY_LIMIT)
    prompt = dedent(
        f"""
        Here is the staged diff for one commit. Intended change: {description or "(not given)"}

        {{diff}}

        Write the commit message now, starting with "{prefix}".
        """
    ).strip()
    prompt = prompt.replace("{diff}", truncate(diff_context.strip(), max_chars) or "(no diff available)")
    return prompt, system


def build_adjust_prompt(
    current_message: str,
    instruction: str,
    prefix: str,
    max_description: int,
) -> Tuple[str, str]:
    """Return the prompt asking to rewrite a message per operator feedback."""
    system = MESSAGE_SYSTEM.format(prefix=prefix, limit=max_description, total=SUMMARY_LIMIT)
    prompt = dedent(
        f"""
        Given the current commit message:
        \"\"\"
        {{message}}
        \"\"\"

        Adjust it according to this instruction: "{instruction}"

        Keep the first line starting with "{prefix}" and within {SUMMARY_LIMIT} characters.
        """
    ).strip()
    return prompt.replace("{message}", current_message.strip()), system
