"""
Command line interface for the grouped_commit tool.

This module defines the ``main`` function which is used as the entry
point when executing the ``gcommit`` command. It handles repository
detection, configuration loading and preflight checks, then hands the
run to :class:`~grouped_commit.commit.orchestrator.CommitOrchestrator`
with a :class:`ClickOperator` answering its prompts.

Exit code 0 means the workflow completed, even if no commit was made.
Exit code 1 covers every failure and every abort.
"""

from __future__ import annotations

import logging
import signal
from pathlib import Path
from typing import Dict, List, Optional

import click

from grouped_commit import __version__
from grouped_commit.commit.orchestrator import (
    CommitOrchestrator,
    PreconditionError,
    WorkflowResult,
)
from grouped_commit.config.loader import ConfigError, Settings, load_config, require_api_key
from grouped_commit.grouping.group_model import Group
from grouped_commit.grouping.group_parser import CoverageReport, ParseError
from grouped_commit.llm.completion_client import CompletionClient, LLMError, ServiceError
from grouped_commit.vcs.change_collector import NoChangesError
from grouped_commit.vcs.git_client import GitClient, GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_FAILURE = 1


# ---------------------------------------------------------------------------
# Console helpers
# ---------------------------------------------------------------------------

def print_step(step_num: int, total_steps: int, message: str):
    """Print a step indicator."""
    click.echo(f"\n{'='*60}")
    click.echo(f"Step {step_num}/{total_steps}: {message}")
    click.echo(f"{'='*60}")


def print_info(message: str, indent: int = 0):
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}")


def print_success(message: str, indent: int = 0):
    prefix = "  " * indent
    click.echo(click.style(f"{prefix}✓ {message}", fg="green"))


def print_warning(message: str, indent: int = 0):
    prefix = "  " * indent
    click.echo(click.style(f"{prefix}⚠ {message}", fg="yellow"))


def print_error(message: str, indent: int = 0):
    prefix = "  " * indent
    click.echo(click.style(f"{prefix}✗ {message}", fg="red"), err=True)


def print_summary_box(title: str, items: List[str]):
    """Print a formatted summary box."""
    max_width = max(len(title), max(len(item) for item in items) if items else 0)
    box_width = min(max_width + 4, 72)

    click.echo(f"\n┌{'─' * box_width}┐")
    click.echo(f"│ {title.ljust(box_width - 2)}│")
    click.echo(f"├{'─' * box_width}┤")
    for item in items:
        click.echo(f"│ {item[:box_width - 2].ljust(box_width - 2)}│")
    click.echo(f"└{'─' * box_width}┘")


DIFF_PREVIEW_LINES = 80


def show_diff_preview(diff: str, max_lines: int = DIFF_PREVIEW_LINES):
    """Print the staged diff of a group, colouring added and removed lines."""
    click.echo("\n🔍 Changes to be committed:")
    lines = diff.rstrip("\n").splitlines()
    for line in lines[:max_lines]:
        if line.startswith("+") and not line.startswith("+++"):
            click.echo(click.style(f"   {line}", fg="green"))
        elif line.startswith("-") and not line.startswith("---"):
            click.echo(click.style(f"   {line}", fg="red"))
        else:
            click.echo(f"   {line}")
    if len(lines) > max_lines:
        click.echo(f"   ... ({len(lines) - max_lines} more lines)")


class ClickOperator:
    """Interactive operator backed by click prompts.

    Every prompt has a default taken on empty input: group count
    confirmation defaults to yes, the per-group action to ``y`` (commit),
    and overriding an overlong summary to no.
    """

    def info(self, message: str) -> None:
        print_info(message, indent=1)

    def success(self, message: str) -> None:
        print_success(message, indent=1)

    def warning(self, message: str) -> None:
        print_warning(message, indent=1)

    def error(self, message: str) -> None:
        print_error(message, indent=1)

    def show_groups(self, groups: List[Group], coverage: CoverageReport, excluded_count: int) -> None:
        click.echo(f"\n📋 Proposed {len(groups)} commit group{'s' if len(groups) != 1 else ''}:")
        for group in groups:
            label = click.style(group.formatted_type, fg="cyan", bold=True)
            click.echo(f"\n  {group.index}. {label} - {group.description or '(no description)'}")
            for path in group.files:
                click.echo(f"     • {path}")
        if coverage.overlapping:
            click.echo("")
            for path, indexes in coverage.overlapping.items():
                print_warning(
                    f"'{path}' appears in groups {', '.join(map(str, indexes))}",
                    indent=1,
                )
        if coverage.unassigned:
            click.echo("")
            print_warning(
                f"{len(coverage.unassigned)} changed file(s) excluded from grouping; "
                f"commit them separately:",
                indent=1,
            )
            for path in coverage.unassigned:
                click.echo(f"     • {path}")
        if excluded_count:
            print_info(f"{excluded_count} ignored path(s) were not considered.", indent=1)

    def show_message(
        self, group: Group, message: str, position: int, total: int, diff: str = ""
    ) -> None:
        click.echo(f"\n{'─'*60}")
        click.echo(f"📦 Commit Group {position}/{total}: {group.formatted_type}")
        click.echo(f"{'─'*60}")
        click.echo(f"\n📄 Files ({len(group.files)}):")
        for path in group.files:
            click.echo(f"   • {path}")
        if diff.strip():
            show_diff_preview(diff)
        click.echo("\n💬 Proposed commit message:")
        click.echo("   ┌" + "─" * 74 + "┐")
        for line in message.splitlines() or [""]:
            display_line = line if len(line) <= 72 else line[:71] + "…"
            click.echo(f"   │ {display_line.ljust(72)} │")
        click.echo("   └" + "─" * 74 + "┘")

    def confirm(self, question: str, default: bool) -> bool:
        return click.confirm(f"   {question}", default=default)

    def choose(self, question: str, choices: Dict[str, str], default: str) -> str:
        click.echo("   " + " | ".join(f"{key} = {label}" for key, label in choices.items()))
        return click.prompt(
            f"   {question}",
            type=click.Choice(list(choices), case_sensitive=False),
            default=default,
            show_choices=True,
            show_default=True,
        ).strip().lower()

    def ask(self, question: str, default: str = "") -> str:
        return click.prompt(f"   {question}", default=default, show_default=bool(default))


def print_result(result: WorkflowResult) -> None:
    if result.dry_run:
        return
    items = [f"✓ Commits created: {result.commits_created} of {result.total_groups}"]
    for record in result.commits:
        items.append(f"  {record.sha} {record.summary}")
    if result.skipped:
        items.append(f"⚠ Skipped groups: {', '.join(map(str, result.skipped))}")
    if result.unassigned:
        items.append(f"⚠ Files left for a separate commit: {len(result.unassigned)}")
    if result.aborted:
        items.append("✗ Workflow aborted")
    print_summary_box("Summary", items)


def _raise_on_sigterm(signum, frame):  # pragma: no cover - signal delivery
    raise SystemExit(EXIT_FAILURE)


@click.command()
@click.option("--skip-ai", "skip_ai", is_flag=True, default=None,
              help="Use template commit messages instead of AI suggestions (grouping still uses the service).")
@click.option("--emoji/--no-emoji", "use_emoji", default=None,
              help="Prefix commit summaries with an emoji for their type.")
@click.option("--yes", "-y", "assume_yes", is_flag=True, default=None,
              help="Accept the grouping and every generated message without prompting.")
@click.option("--dry-run", "dry_run", is_flag=True, default=None,
              help="Show the proposed groups without staging or committing anything.")
@click.option("--debug", "-d", "debug", is_flag=True, default=None,
              help="Show detailed git and API information.")
@click.option("--verbose", "-v", "verbose", is_flag=True, default=None,
              help="Enable verbose (debug) logging.")
@click.version_option(version=__version__, prog_name="gcommit")
def main(
    skip_ai: Optional[bool],
    use_emoji: Optional[bool],
    assume_yes: Optional[bool],
    dry_run: Optional[bool],
    debug: Optional[bool],
    verbose: Optional[bool],
) -> None:
    """Split uncommitted changes into atomic commits with AI grouping.

    The completion service proposes groups of related files; each group
    is then staged, described and committed after your confirmation.
    """
    logging.basicConfig(
        level=logging.DEBUG if (debug or verbose) else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
        force=True,
    )

    click.echo("\n" + "="*60)
    click.echo("🤖 Grouped Commit Assistant".center(60))
    click.echo("="*60)

    previous_handler = signal.signal(signal.SIGTERM, _raise_on_sigterm)
    try:
        total_steps = 4

        # Step 1: Detect repository
        print_step(1, total_steps, "Detecting Repository")
        repo_root = GitClient.find_repo_root(Path.cwd())
        if repo_root is None:
            print_error("Current directory is not inside a Git repository.")
            raise click.exceptions.Exit(EXIT_FAILURE)
        print_success(f"Found Git repository at: {repo_root}")

        # Step 2: Load configuration
        print_step(2, total_steps, "Loading Configuration")
        try:
            settings: Settings = load_config(
                skip_ai=skip_ai,
                use_emoji=use_emoji,
                assume_yes=assume_yes,
                dry_run=dry_run,
                debug=debug,
                verbose=verbose,
            )
            require_api_key(settings)
        except ConfigError as exc:
            print_error(f"Configuration error: {exc}")
            raise click.exceptions.Exit(EXIT_FAILURE)
        if settings.debug:
            logging.getLogger().setLevel(logging.DEBUG)
            print_warning("Debug mode is ON. Will show detailed git and API information.")
        if settings.skip_ai:
            print_warning("Skipping AI message suggestions; template messages will be used.")
        print_info(f"Model: {settings.model}", indent=1)

        git = GitClient(repo_root)
        client = CompletionClient.from_settings(settings)
        orchestrator = CommitOrchestrator(settings, git, client, ClickOperator())

        # Step 3: Preflight
        print_step(3, total_steps, "Checking Repository State")
        try:
            orchestrator.preflight()
        except PreconditionError as exc:
            print_error(str(exc))
            raise click.exceptions.Exit(EXIT_FAILURE)
        print_success("Repository is ready")

        # Step 4: Group and commit
        print_step(4, total_steps, "Grouping and Committing")
        try:
            result = orchestrator.run()
        except NoChangesError as exc:
            print_warning(str(exc))
            raise click.exceptions.Exit(EXIT_FAILURE)
        except ServiceError as exc:
            print_error(f"Completion service error ({exc.kind}): {exc.message}")
            print_info(exc.guidance, indent=1)
            print_info("Grouped mode needs the completion service; nothing was changed.", indent=1)
            raise click.exceptions.Exit(EXIT_FAILURE)
        except LLMError as exc:
            print_error(f"AI unavailable: {exc}")
            print_info("Grouped mode needs the completion service; nothing was changed.", indent=1)
            raise click.exceptions.Exit(EXIT_FAILURE)
        except ParseError as exc:
            print_error(f"Could not parse the grouping response: {exc}")
            if exc.excerpt:
                click.echo("\n   Response excerpt:")
                for line in exc.excerpt.splitlines():
                    click.echo(f"   | {line}")
            print_info("Your working tree is unchanged. Retry, or commit in single-commit mode.", indent=1)
            raise click.exceptions.Exit(EXIT_FAILURE)
        except GitError as exc:
            print_error(f"Git error: {exc}")
            raise click.exceptions.Exit(EXIT_FAILURE)

        print_result(result)
        if result.aborted:
            raise click.exceptions.Exit(EXIT_FAILURE)
        if not result.dry_run:
            click.echo(f"\n🎉 Done: {result.commits_created} commit{'s' if result.commits_created != 1 else ''} created.\n")
        raise click.exceptions.Exit(EXIT_SUCCESS)

    except click.exceptions.Exit:
        raise
    except click.exceptions.Abort:
        print_error("Interrupted.")
        raise click.exceptions.Exit(EXIT_FAILURE)
    except Exception as exc:
        logging.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        raise click.exceptions.Exit(EXIT_FAILURE)
    finally:
        signal.signal(signal.SIGTERM, previous_handler)
