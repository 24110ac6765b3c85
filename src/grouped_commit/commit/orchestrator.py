"""
The grouped-commit workflow.

:class:`CommitOrchestrator` asks the completion service to split the
working tree's changes into groups and then commits them one by one.
The workflow is an explicit state machine::

    COLLECTING_GROUPS -> CONFIRMING_GROUP_COUNT
        -> per group: STAGING -> COMPOSING -> AWAITING_DECISION
               -> COMMITTING | SKIPPING | ADJUSTING | ABORTING_ALL
        -> RESTORING -> DONE

Every step is a method returning the next step, so the same logic runs
under the click prompts of the CLI and under a scripted operator in
tests. The index is the only shared mutable resource. Whatever was
staged before the run is captured before the first mutation and
re-applied in ``RESTORING``, which also runs when the loop is left by an
exception or an interrupt.
"""

from __future__ import annotations

import enum
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Set

from grouped_commit.commit.message import CommitMessage, MessageComposer, validate_message
from grouped_commit.config.loader import Settings
from grouped_commit.grouping.group_model import Group
from grouped_commit.grouping.group_parser import CoverageReport, GroupParser, ParseError
from grouped_commit.llm import prompts
from grouped_commit.llm.completion_client import CompletionClient, LLMError, ServiceError
from grouped_commit.vcs.change_collector import ChangeCollector, ChangeSet
from grouped_commit.vcs.git_client import GitClient, GitError
from grouped_commit.vcs.staging import StagingEngine


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


RESTORE_PATCH_NAME = "grouped_commit_staged.patch"

_PATCH_HEADER_RE = re.compile(r"^diff --git a/(.+?) b/(.+)$", re.MULTILINE)


class PreconditionError(Exception):
    """Raised when the workflow must not start (nothing has been mutated)."""

    pass


class Step(enum.Enum):
    COLLECTING_GROUPS = "collecting_groups"
    CONFIRMING_GROUP_COUNT = "confirming_group_count"
    STAGING = "staging"
    COMPOSING = "composing"
    AWAITING_DECISION = "awaiting_decision"
    COMMITTING = "committing"
    SKIPPING = "skipping"
    ADJUSTING = "adjusting"
    ABORTING_ALL = "aborting_all"
    RESTORING = "restoring"
    DONE = "done"


class Decision(str, enum.Enum):
    """Operator choices at ``AWAITING_DECISION``; values are the prompt keys."""

    CONFIRM = "y"
    ADJUST = "a"
    SKIP = "s"
    ABORT = "q"


DECISION_LABELS: Dict[str, str] = {
    Decision.CONFIRM.value: "commit as shown",
    Decision.ADJUST.value: "adjust the message",
    Decision.SKIP.value: "skip this group",
    Decision.ABORT.value: "abort all remaining groups",
}


class Operator(Protocol):
    """What the workflow needs from whoever drives it."""

    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def show_groups(self, groups: List[Group], coverage: CoverageReport, excluded_count: int) -> None: ...

    def show_message(
        self, group: Group, message: str, position: int, total: int, diff: str = ""
    ) -> None: ...

    def confirm(self, question: str, default: bool) -> bool: ...

    def choose(self, question: str, choices: Dict[str, str], default: str) -> str: ...

    def ask(self, question: str, default: str = "") -> str: ...


@dataclass
class CommitRecord:
    group_index: int
    sha: str
    summary: str
    files: List[str]


@dataclass
class WorkflowState:
    """Per-run state, owned by the orchestrator."""

    total_groups: int = 0
    current_index: int = 0
    commits_created: int = 0
    saved_index_snapshot: str = ""
    change_set: Optional[ChangeSet] = None
    groups: List[Group] = field(default_factory=list)
    coverage: CoverageReport = field(default_factory=CoverageReport)
    message: Optional[CommitMessage] = None
    staged_diff: str = ""
    commits: List[CommitRecord] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    index_mutated: bool = False
    restored: bool = False
    aborted: bool = False

    @property
    def current_group(self) -> Group:
        return self.groups[self.current_index]


@dataclass
class WorkflowResult:
    """Outcome reported by ``DONE``."""

    commits: List[CommitRecord]
    skipped: List[int]
    unassigned: List[str]
    aborted: bool
    total_groups: int
    dry_run: bool = False

    @property
    def commits_created(self) -> int:
        return len(self.commits)


class CommitOrchestrator:
    """Drive the grouped-commit workflow.

    Parameters
    ----------
    settings : Settings
        Immutable run configuration.
    git : GitClient
        Client of the repository being committed to.
    client : CompletionClient
        Completion service client; grouping cannot run without it.
    operator : Operator
        Source of every decision and sink of every message.
    """

    def __init__(
        self,
        settings: Settings,
        git: GitClient,
        client: CompletionClient,
        operator: Operator,
        composer: Optional[MessageComposer] = None,
    ) -> None:
        self.settings = settings
        self.git = git
        self.client = client
        self.operator = operator
        self.composer = composer or MessageComposer(settings, client)
        self.collector = ChangeCollector(git)
        self.staging = StagingEngine(git)
        self.state = WorkflowState()
        self._handlers: Dict[Step, Callable[[], Step]] = {
            Step.COLLECTING_GROUPS: self._collecting_groups,
            Step.CONFIRMING_GROUP_COUNT: self._confirming_group_count,
            Step.STAGING: self._staging,
            Step.COMPOSING: self._composing,
            Step.AWAITING_DECISION: self._awaiting_decision,
            Step.COMMITTING: self._committing,
            Step.SKIPPING: self._skipping,
            Step.ADJUSTING: self._adjusting,
            Step.ABORTING_ALL: self._aborting_all,
            Step.RESTORING: self._restoring,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def preflight(self) -> None:
        """Refuse to start while a merge, rebase or similar is unfinished.

        Raises
        ------
        PreconditionError
            If such an operation is in progress and the operator declines
            to continue.
        """
        operation = self.git.operation_in_progress()
        if operation is None:
            return
        self.operator.warning(f"A {operation} is in progress in this repository.")
        if self.settings.assume_yes or not self.operator.confirm(
            f"Continue creating commits during the {operation}?", default=False
        ):
            raise PreconditionError(f"Aborted: {operation} in progress")

    def run(self) -> WorkflowResult:
        """Run the workflow to ``DONE`` and report what was committed.

        Raises
        ------
        NoChangesError
            If the working tree has nothing to commit.
        LLMError
            If the grouping request fails.
        ParseError
            If the grouping answer is malformed.
        """
        self.state = WorkflowState()
        step = Step.COLLECTING_GROUPS
        with self._restore_on_exit():
            while step is not Step.DONE:
                logger.debug("Workflow step: %s", step.value)
                step = self._handlers[step]()
        return WorkflowResult(
            commits=list(self.state.commits),
            skipped=list(self.state.skipped),
            unassigned=list(self.state.coverage.unassigned),
            aborted=self.state.aborted,
            total_groups=self.state.total_groups,
            dry_run=self.settings.dry_run,
        )

    @contextmanager
    def _restore_on_exit(self) -> Iterator[None]:
        try:
            yield
        finally:
            if self.state.index_mutated and not self.state.restored:
                logger.info("Workflow interrupted; restoring the original index")
                self._restore(discard_staged=True)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    def _diff_context(self) -> Dict[str, str]:
        if self.git.has_head():
            return {
                "stat": self.git.diff(against_head=True, stat=True),
                "diff": self.git.diff(against_head=True),
            }
        return {
            "stat": self.git.diff(cached=True, stat=True) + self.git.diff(stat=True),
            "diff": self.git.diff(cached=True) + self.git.diff(),
        }

    def _collecting_groups(self) -> Step:
        change_set = self.collector.collect()
        self.state.change_set = change_set
        self.staging.renames = dict(change_set.renames)
        # Captured before anything touches the index.
        self.state.saved_index_snapshot = self.git.staged_patch()

        self.operator.info(f"Found {len(change_set)} changed file(s).")
        if change_set.excluded_count:
            self.operator.info(f"{change_set.excluded_count} path(s) excluded by ignore rules.")

        context = self._diff_context()
        prompt, system = prompts.build_grouping_prompt(
            change_set.paths,
            self.git.status_short(),
            context["stat"],
            context["diff"],
            change_set.untracked,
            self.settings.max_diff_chars,
        )
        self.operator.info("Asking the completion service to group the changes...")
        response = self.client.complete(prompt, system, max_tokens=self.settings.group_max_tokens)

        parser = GroupParser(change_set, self.settings.unknown_type_policy)
        groups = parser.parse(response)
        if not groups:
            raise ParseError("No group lists any of the changed files", response)
        if [g.index for g in groups] != list(range(1, len(groups) + 1)):
            # Dropped groups leave gaps; number the remaining ones 1..n.
            logger.debug("Renumbering %d remaining group(s)", len(groups))
            groups = [replace(group, index=position) for position, group in enumerate(groups, 1)]
        coverage = parser.coverage(groups)
        for warning in parser.warnings:
            self.operator.warning(warning)

        self.state.groups = groups
        self.state.total_groups = len(groups)
        self.state.coverage = coverage
        self.operator.show_groups(groups, coverage, change_set.excluded_count)

        if self.settings.dry_run:
            self.operator.info("Dry run: no changes were staged or committed.")
            return Step.DONE
        if len(groups) > 1:
            return Step.CONFIRMING_GROUP_COUNT
        return Step.STAGING

    def _confirming_group_count(self) -> Step:
        total = self.state.total_groups
        if self.settings.assume_yes or self.operator.confirm(
            f"Create {total} commits from these groups?", default=True
        ):
            return Step.STAGING
        self.operator.warning("Grouping declined; nothing was committed.")
        self.state.aborted = True
        return Step.DONE

    # ------------------------------------------------------------------
    # Per-group steps
    # ------------------------------------------------------------------
    def _next_group(self) -> Step:
        self.state.message = None
        self.state.staged_diff = ""
        self.state.current_index += 1
        if self.state.current_index < self.state.total_groups:
            return Step.STAGING
        return Step.RESTORING

    def _staging(self) -> Step:
        group = self.state.current_group
        self.state.index_mutated = True
        try:
            staged = self.staging.stage_only(group.files)
        except GitError as exc:
            self.operator.error(f"Group {group.index}: staging failed: {exc}")
            return Step.SKIPPING
        for path in self.staging.skipped_paths:
            self.operator.warning(f"Group {group.index}: '{path}' no longer exists; skipped.")
        if not staged:
            self.operator.warning(f"Group {group.index}: nothing to stage; skipping.")
            return Step.SKIPPING
        return Step.COMPOSING

    def _composing(self) -> Step:
        group = self.state.current_group
        try:
            diff_context = self.git.diff(cached=True)
        except GitError as exc:
            logger.warning("Could not read staged diff: %s", exc)
            diff_context = ""
        self.state.staged_diff = diff_context
        if self.settings.ai_messages:
            self.operator.info(f"Generating commit message for group {group.index}...")
        self.state.message = self.composer.compose(
            group.type,
            group.scope,
            group.description,
            diff_context,
            self.settings.use_emoji,
            self.settings.ai_messages,
        )
        if self.composer.last_error is not None:
            self._report_service_error(self.composer.last_error)
            self.operator.warning("Using the template message instead.")
        return Step.AWAITING_DECISION

    def _awaiting_decision(self) -> Step:
        group = self.state.current_group
        message = self.state.message
        if message is None:
            return Step.COMPOSING
        self.operator.show_message(
            group,
            message.render(),
            group.index,
            self.state.total_groups,
            self.state.staged_diff,
        )
        if self.settings.assume_yes:
            return Step.COMMITTING
        choice = self.operator.choose("Choose action", DECISION_LABELS, Decision.CONFIRM.value)
        return {
            Decision.CONFIRM.value: Step.COMMITTING,
            Decision.ADJUST.value: Step.ADJUSTING,
            Decision.SKIP.value: Step.SKIPPING,
            Decision.ABORT.value: Step.ABORTING_ALL,
        }.get(choice.strip().lower(), Step.AWAITING_DECISION)

    def _adjusting(self) -> Step:
        group = self.state.current_group
        message = self.state.message
        if message is None:
            return Step.COMPOSING
        if not self.settings.ai_messages:
            description = self.operator.ask("Describe the change", default=group.description).strip()
            if description:
                reason = self.operator.ask("Reason for the change (optional)").strip()
                if reason:
                    description = f"{description} ({reason})"
                self.state.message = self.composer.template(
                    group.type, group.scope, description, self.settings.use_emoji
                ).with_trailers(message.trailers)
            return Step.AWAITING_DECISION

        instruction = self.operator.ask(
            "What would you like to adjust (e.g. 'make the reason clearer')?"
        ).strip()
        if not instruction:
            return Step.AWAITING_DECISION
        try:
            self.state.message = self.composer.adjust(
                message, instruction, group.type, group.scope, self.settings.use_emoji
            )
            self.operator.success("Message adjusted.")
        except LLMError as exc:
            self._report_service_error(exc)
            self.operator.warning("Keeping the previous message; try a simpler instruction.")
        except ValueError as exc:
            self.operator.warning(f"The adjusted message was unusable ({exc}); keeping the previous one.")
        return Step.AWAITING_DECISION

    def _committing(self) -> Step:
        group = self.state.current_group
        message = self.state.message
        if message is None:
            return Step.COMPOSING
        text = message.render()
        validation = validate_message(text)
        if validation.too_long and not self.settings.assume_yes:
            if not self.operator.confirm(
                f"Summary is {validation.summary_length} characters "
                f"(limit {prompts.SUMMARY_LIMIT}). Use it anyway?",
                default=False,
            ):
                return Step.AWAITING_DECISION
        try:
            sha = self.git.commit(text)
        except GitError as exc:
            self.operator.error(f"Group {group.index}: commit failed: {exc}")
            return Step.SKIPPING
        self.state.commits_created += 1
        self.state.commits.append(
            CommitRecord(group_index=group.index, sha=sha, summary=message.summary, files=list(group.files))
        )
        self.operator.success(f"Committed group {group.index} as {sha}.")
        return self._next_group()

    def _skipping(self) -> Step:
        group = self.state.current_group
        self.state.skipped.append(group.index)
        self.operator.info(f"Group {group.index} left uncommitted.")
        return self._next_group()

    def _aborting_all(self) -> Step:
        remaining = self.state.total_groups - self.state.current_index
        self.operator.warning(f"Aborting; {remaining} group(s) left unprocessed.")
        self.state.aborted = True
        return Step.RESTORING

    # ------------------------------------------------------------------
    # Restoration
    # ------------------------------------------------------------------
    def _restoring(self) -> Step:
        self._restore(discard_staged=self.state.aborted)
        return Step.DONE

    def _committed_paths(self) -> Set[str]:
        return {path for record in self.state.commits for path in record.files}

    def _restore(self, discard_staged: bool = False) -> None:
        """Re-apply the pre-run staged patch on top of the current index.

        With ``discard_staged`` the group left staged by an abort or an
        interrupt is unstaged first, so only the pre-run state remains.
        Best effort: failures are reported and never raised.
        """
        self.state.restored = True
        patch = self.state.saved_index_snapshot
        try:
            if discard_staged:
                self.git.reset_index()
            if not patch.strip():
                return
            if self.git.apply_cached(patch, check_only=True):
                self.git.apply_cached(patch)
                self.operator.info("Re-applied previously staged changes to the index.")
                return
            if self.git.apply_cached(patch, check_only=True, reverse=True):
                logger.debug("Previously staged changes are already in the index or HEAD")
                return
            snapshot_paths = {match.group(2) for match in _PATCH_HEADER_RE.finditer(patch)}
            if snapshot_paths and snapshot_paths <= self._committed_paths():
                logger.debug("Previously staged changes were committed in this run")
                return
            backup = self.git.git_dir() / RESTORE_PATCH_NAME
            backup.write_text(patch, encoding="utf-8")
            self.operator.warning(
                f"Could not re-apply previously staged changes; saved them to {backup}. "
                f"Restore with: git apply --cached {backup}"
            )
        except (GitError, OSError) as exc:
            logger.warning("Restoring the original index failed: %s", exc)
            self.operator.warning(f"Could not restore previously staged changes: {exc}")

    def _report_service_error(self, exc: LLMError) -> None:
        if isinstance(exc, ServiceError):
            self.operator.warning(f"Completion service error ({exc.kind}): {exc.message}")
            self.operator.info(exc.guidance)
        else:
            self.operator.warning(f"AI unavailable: {exc}")
