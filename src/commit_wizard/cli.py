"""
Command line interface for commit_wizard.

This module defines the ``main`` function used as the entry point of
the ``commit-wizard`` command. It finds the repository, loads the
configuration, runs the review state machine (analysis, generation,
validation and the interactive review menu) and finally commits the
accepted message. Every failure class maps to its own exit code.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tempfile
import time
from pathlib import Path
from typing import List, Optional

import click

from commit_wizard import __version__
from commit_wizard.analysis.change_filter import EmptySelection, NoChanges, summarize_exclusions
from commit_wizard.config.loader import ConfigError, load_config
from commit_wizard.config.settings import PipelineConfig, build_pipeline_config
from commit_wizard.llm.provider import ExternalProviderError, create_client
from commit_wizard.message.commit_message import CommitMessage, ValidationError
from commit_wizard.review.orchestrator import (
    ReviewAction,
    ReviewDecision,
    ReviewOrchestrator,
    ReviewOutcome,
    ReviewState,
)
from commit_wizard.vcs.git_client import GitClient, GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_USAGE = 2
EXIT_NO_REPO = 3
EXIT_NO_CHANGES = 4
EXIT_CONFIG_ERROR = 5
EXIT_VCS_FAILURE = 6
EXIT_PROVIDER_FAILURE = 7
EXIT_CANCELLED = 8
EXIT_VALIDATION_FAILURE = 9
EXIT_NOTHING_TO_ANALYZE = 10

TOTAL_STEPS = 4
BOX_WIDTH = 72


# ---------------------------------------------------------------------------
# Progress and status display utilities
# ---------------------------------------------------------------------------

class ProgressIndicator:
    """Simple progress indicator for user feedback."""

    def __init__(self, message: str, show_spinner: bool = True):
        self.message = message
        self.show_spinner = show_spinner
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        if self.show_spinner:
            click.echo(f"⠋ {self.message}...", nl=False)
        else:
            click.echo(f"→ {self.message}...")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.time() - self.start_time
        mark = "✗" if exc_type is not None else "✓"
        if self.show_spinner:
            click.echo(f"\r{mark} {self.message} (took {elapsed:.1f}s)")
        else:
            click.echo(f"  {mark} Done ({elapsed:.1f}s)")
        return False


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
    click.echo(f"{prefix}✓ {message}")


def print_warning(message: str, indent: int = 0):
    prefix = "  " * indent
    click.echo(f"{prefix}⚠ {message}")


def print_error(message: str, indent: int = 0):
    prefix = "  " * indent
    click.echo(f"{prefix}✗ {message}", err=True)


def print_message_box(message: CommitMessage):
    """Print a commit message inside a box."""
    inner = BOX_WIDTH - 4
    click.echo("   ┌" + "─" * (inner + 2) + "┐")
    for line in message.render().splitlines():
        display_line = line[:inner]
        click.echo(f"   │ {display_line.ljust(inner)} │")
    click.echo("   └" + "─" * (inner + 2) + "┘")


def configure_logging(verbose: bool) -> None:
    """Configure the root logger and, with ``--verbose``, show package logs.

    Package modules attach a null handler and disable propagation so
    that they stay silent as a library; verbose runs turn propagation
    back on.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )
    if not verbose:
        return
    for name, candidate in list(logging.root.manager.loggerDict.items()):
        if name.startswith("commit_wizard") and isinstance(candidate, logging.Logger):
            candidate.propagate = True


# ---------------------------------------------------------------------------
# Review helpers
# ---------------------------------------------------------------------------

def resolve_editor(config: PipelineConfig) -> Optional[str]:
    """Return the editor command from the configuration, ``$VISUAL`` or ``$EDITOR``."""
    return config.editor or os.environ.get("VISUAL") or os.environ.get("EDITOR")


def edit_in_editor(text: str, editor: str) -> Optional[str]:
    """Open ``text`` in ``editor`` and return the edited content.

    Returns ``None`` if the editor fails.
    """
    with tempfile.NamedTemporaryFile(
        mode="w+", delete=False, suffix=".txt", encoding="utf-8"
    ) as tmp:
        tmp.write(text)
        tmp_path = tmp.name
    try:
        subprocess.run(shlex.split(editor) + [tmp_path], check=True)
        with open(tmp_path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, subprocess.CalledProcessError) as exc:
        print_error(f"Editor failed: {exc}")
        return None
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)


def read_message_lines() -> str:
    """Read a message from the terminal until a line with a single period."""
    click.echo("   Enter your commit message below.")
    click.echo("   End with a line containing only a period (.)")
    click.echo("")
    lines: List[str] = []
    while True:
        line = click.prompt("   ", default="", show_default=False)
        if line.strip() == ".":
            break
        lines.append(line)
    return "\n".join(lines)


def make_reviewer(config: PipelineConfig):
    """Build the interactive reviewer used by the review state machine."""

    def review(message: CommitMessage, edit_error: Optional[ValidationError]) -> ReviewDecision:
        if edit_error is not None:
            print_error(f"Edited message is invalid ({edit_error.rule}): {edit_error.detail}")
            print_info("Keeping the previous message", indent=1)
        click.echo("\n💬 Proposed commit message:")
        print_message_box(message)
        for repair in message.repairs:
            print_info(f"Repaired: {repair}", indent=1)
        click.echo("")
        choice = click.prompt(
            "   Choose action (A = Accept | E = Edit | R = Regenerate | C = Cancel)",
            type=click.Choice(["A", "E", "R", "C"], case_sensitive=False),
            default="A",
            show_choices=False,
            show_default=True,
        ).strip().lower()

        if choice == "a":
            return ReviewDecision(ReviewAction.ACCEPT)
        if choice == "c":
            return ReviewDecision(ReviewAction.CANCEL)
        if choice == "r":
            return ReviewDecision(ReviewAction.REGENERATE)

        editor = resolve_editor(config)
        edited: Optional[str] = None
        if editor:
            print_info("Opening editor...")
            edited = edit_in_editor(message.render(), editor)
        if edited is None:
            click.echo("\n   💡 No usable editor; set $EDITOR to edit in your editor.")
            edited = read_message_lines()
        return ReviewDecision(ReviewAction.EDIT, text=edited)

    return review


class ProgressModelClient:
    """Show a progress indicator around each model call."""

    def __init__(self, client) -> None:
        self.client = client

    def generate(self, prompt: str, model: Optional[str] = None, system: Optional[str] = None) -> str:
        with ProgressIndicator(f"Generating commit message with {model}"):
            return self.client.generate(prompt, model=model, system=system)


def report_state(state: ReviewState, outcome: ReviewOutcome) -> None:
    """Print what the analysis found when the run reaches a new state."""
    if state is ReviewState.CLASSIFYING and outcome.filter_result is not None:
        result = outcome.filter_result
        print_success(
            f"Analyzing {len(result.kept)} file{'s' if len(result.kept) != 1 else ''}"
            f" ({result.total_diff_lines} diff lines)"
        )
        for file in result.kept[:5]:
            print_info(f"{file.status.value} {file.path}", indent=1)
        if len(result.kept) > 5:
            print_info(f"... and {len(result.kept) - 5} more", indent=1)
        for path, reason in summarize_exclusions(result.excluded):
            print_warning(f"Skipped {path}: {reason}", indent=1)
        if result.truncated:
            print_warning("Diff truncated to fit the line budget", indent=1)
    elif state is ReviewState.AWAITING_MODEL and outcome.attempts == 0 and outcome.score is not None:
        classification = outcome.classification
        print_info(f"Complexity: {outcome.score.describe()}")
        if classification is not None:
            patterns = ", ".join(classification.signature_names) or "none"
            print_info(f"Suggested type: {classification.primary_type}; patterns: {patterns}")
    elif state is ReviewState.AWAITING_MODEL and outcome.attempts > 0:
        print_warning("Regenerating commit message")


def exit_for_outcome(outcome: ReviewOutcome) -> int:
    """Report an aborted run and return its exit code."""
    error = outcome.error
    if isinstance(error, NoChanges):
        print_warning("No changes detected to commit.")
        return EXIT_NO_CHANGES
    if isinstance(error, EmptySelection):
        print_error("Every changed file was excluded from the analysis:")
        for path, reason in summarize_exclusions(error.excluded):
            print_info(f"{path}: {reason}", indent=1)
        return EXIT_NOTHING_TO_ANALYZE
    if isinstance(error, ExternalProviderError):
        print_error(f"Model provider error: {error}")
        print_info("Check the provider settings and that the server is reachable", indent=1)
        return EXIT_PROVIDER_FAILURE
    if isinstance(error, ValidationError):
        print_error(
            f"No valid commit message after {outcome.attempts} attempt(s): {error.rule}: {error.detail}"
        )
        return EXIT_VALIDATION_FAILURE
    print_warning("Cancelled; nothing was committed.")
    return EXIT_CANCELLED


@click.command()
@click.option(
    "--path", "path", type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None, help="Repository directory (defaults to the current directory).",
)
@click.option("--max-size", type=click.IntRange(min=1), default=None, help="Skip files larger than this many KB.")
@click.option("--max-files", type=click.IntRange(min=1), default=None, help="Analyze at most this many files.")
@click.option("--max-lines", type=click.IntRange(min=1), default=None, help="Diff line budget for the analysis.")
@click.option("--model", default=None, help="Use this model for every complexity tier.")
@click.option("--yes", "yes", is_flag=True, help="Accept the first valid message without prompting.")
@click.option("--dry-run", is_flag=True, help="Print the message instead of committing.")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="commit-wizard")
def main(
    path: Optional[Path],
    max_size: Optional[int],
    max_files: Optional[int],
    max_lines: Optional[int],
    model: Optional[str],
    yes: bool,
    dry_run: bool,
    verbose: bool,
) -> None:
    """🧙 Conventional Commits messages for your Git changes.

    Analyzes the staged changes (or the unstaged ones when nothing is
    staged), asks a language model for a message, validates it and lets
    you review it before committing.
    """
    configure_logging(verbose)

    click.echo("\n" + "="*60)
    click.echo("🧙 Commit Wizard".center(60))
    click.echo("="*60)

    ctx = click.get_current_context(silent=True)

    try:
        # Step 1: Detect repository
        print_step(1, TOTAL_STEPS, "Detecting Repository")
        start = path or Path.cwd()
        repo_root = GitClient.find_repo_root(start)
        if repo_root is None:
            print_error(f"No Git repository found at {start} or its parent directories.")
            raise click.exceptions.Exit(EXIT_NO_REPO)
        print_success(f"Found Git repository at: {repo_root}")

        # Step 2: Load configuration
        print_step(2, TOTAL_STEPS, "Loading Configuration")
        try:
            with ProgressIndicator("Reading configuration"):
                data = load_config()
                config = build_pipeline_config(
                    data,
                    max_file_size_kb=max_size,
                    max_file_count=max_files,
                    max_total_diff_lines=max_lines,
                    model=model,
                )
            client = create_client(config)
        except ConfigError as exc:
            print_error(f"Configuration error: {exc}")
            raise click.exceptions.Exit(EXIT_CONFIG_ERROR)
        except ExternalProviderError as exc:
            print_error(f"Model provider error: {exc}")
            raise click.exceptions.Exit(EXIT_PROVIDER_FAILURE)
        print_success("Configuration loaded successfully")
        print_info(f"Provider: {config.provider.name}", indent=1)
        if config.models.override:
            print_info(f"Model: {config.models.override}", indent=1)
        else:
            print_info(f"Models: {config.models.fast} (fast), {config.models.thinking} (thinking)", indent=1)

        # Step 3: Analyze and generate
        print_step(3, TOTAL_STEPS, "Analyzing Changes and Generating Message")
        git = GitClient(repo_root)
        orchestrator = ReviewOrchestrator(
            config,
            git,
            ProgressModelClient(client),
            reviewer=None if yes else make_reviewer(config),
            on_state=report_state,
        )
        try:
            outcome = orchestrator.run()
        except GitError as exc:
            print_error(f"VCS error: {exc}")
            raise click.exceptions.Exit(EXIT_VCS_FAILURE)

        if outcome.state is not ReviewState.READY or outcome.message is None:
            raise click.exceptions.Exit(exit_for_outcome(outcome))
        message = outcome.message

        # Step 4: Commit
        print_step(4, TOTAL_STEPS, "Commit")
        if dry_run:
            print_info("Dry run: not committing")
            click.echo("")
            click.echo(message.render(), nl=False)
            raise click.exceptions.Exit(EXIT_SUCCESS)
        try:
            with ProgressIndicator("Creating commit"):
                git.commit(message.render())
        except GitError as exc:
            print_error(f"Failed to commit changes: {exc}")
            raise click.exceptions.Exit(EXIT_VCS_FAILURE)
        print_success(f"Committed: {message.header}")
        click.echo("\n🎉 All done!\n")
        raise click.exceptions.Exit(EXIT_SUCCESS)

    except click.exceptions.Exit:
        raise
    except Exception as exc:
        logging.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        ctx.exit(EXIT_GENERIC_ERROR)
