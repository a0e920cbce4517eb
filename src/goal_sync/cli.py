"""
Command-line interface for goal-sync.

This module provides the Typer-based CLI for validating goal documents
and reconciling them with tracking issues on GitHub or Gitea.
"""

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .exceptions import GoalSyncError
from .gitea_client import GiteaClient
from .github_client import GitHubClient
from .goal_parser import GoalParser, find_milestone_dirs
from .goal_writer import GoalWriter
from .models import ReconcileAction, ReconcileReport, SyncConfig, SyncMode
from .progress import write_progress
from .provider import IssueProvider
from .sync import GoalSync

DEFAULT_REPOSITORY = "rust-lang/rust-project-goals"

# Create Typer app
app = typer.Typer(
    name="goal-sync",
    help="Keep project goal documents in sync with their tracking issues",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()
error_console = Console(stderr=True)


class ProviderChoice(str, Enum):
    """Issue provider options."""

    GITHUB = "github"
    GITEA = "gitea"


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


RepositoryOption = Annotated[
    str,
    typer.Option(
        "-R",
        "--repository",
        help="Repository holding the tracking issues (owner/repo)",
        envvar="GOAL_SYNC_REPOSITORY",
    ),
]
ProviderOption = Annotated[
    ProviderChoice,
    typer.Option("-p", "--provider", help="Issue provider (github or gitea)"),
]
GiteaUrlOption = Annotated[
    str | None,
    typer.Option(
        "--gitea-url",
        help="Gitea server URL (e.g., https://gitea.example.com)",
        envvar="GITEA_URL",
    ),
]
GiteaTokenOption = Annotated[
    str | None,
    typer.Option(
        "--gitea-token",
        help="Gitea API token (or set GITEA_TOKEN env var)",
        envvar="GITEA_TOKEN",
    ),
]
TimeoutOption = Annotated[
    int,
    typer.Option("--timeout", help="API timeout in seconds", min=10, max=300),
]
MilestoneOption = Annotated[
    str | None,
    typer.Option("-m", "--milestone", help="Only goals in this milestone period (e.g. 2025h1)"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("-v", "--verbose", help="Enable verbose output"),
]
LogLevelOption = Annotated[
    LogLevel,
    typer.Option("--log-level", help="Set log level"),
]


def _create_provider(
    provider_choice: ProviderChoice,
    gitea_url: str | None,
    gitea_token: str | None,
    timeout: int,
) -> IssueProvider:
    """Create the appropriate issue provider based on choice."""
    if provider_choice == ProviderChoice.GITEA:
        if not gitea_url:
            raise typer.BadParameter(
                "--gitea-url is required when using Gitea provider"
            )
        token = gitea_token or os.environ.get("GITEA_TOKEN", "")
        if not token:
            raise typer.BadParameter(
                "--gitea-token is required when using Gitea provider "
                "(or set GITEA_TOKEN environment variable)"
            )
        return GiteaClient(base_url=gitea_url, token=token, timeout=timeout)
    return GitHubClient(timeout=timeout)


def setup_logging(level: LogLevel, verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    log_level = getattr(logging, level.value.upper())

    if verbose:
        log_level = logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"goal-sync version {__version__}")
        raise typer.Exit


def _print_error(error: GoalSyncError) -> None:
    error_console.print(f"[red]Error:[/red] {error.message}")
    if error.hint:
        error_console.print(f"[dim]Hint: {error.hint}[/dim]")


async def _run_issues(
    syncer: GoalSync,
    root: Path,
    milestone: str | None,
) -> ReconcileReport:
    try:
        return await syncer.sync(root, milestone)
    finally:
        await syncer.provider.close()


@app.command()
def issues(
    root: Annotated[
        Path,
        typer.Argument(help="Directory containing milestone directories (e.g. src)"),
    ],
    repository: RepositoryOption = DEFAULT_REPOSITORY,
    commit: Annotated[
        bool,
        typer.Option(
            "--commit",
            help="Actually create, update and close issues (default is a dry run)",
        ),
    ] = False,
    sleep: Annotated[
        int,
        typer.Option(
            "--sleep",
            help="Milliseconds to pause after each change to avoid rate limiting",
            min=0,
        ),
    ] = 500,
    milestone: MilestoneOption = None,
    tracking_label: Annotated[
        str,
        typer.Option("--tracking-label", help="Label marking goal tracking issues"),
    ] = "C-tracking-issue",
    site_url: Annotated[
        str,
        typer.Option("--site-url", help="Base URL of the rendered goal pages"),
    ] = "https://rust-lang.github.io/rust-project-goals",
    backup: Annotated[
        bool,
        typer.Option("--backup", help="Keep a .bak copy of each rewritten goal document"),
    ] = False,
    timeout: TimeoutOption = 60,
    provider: ProviderOption = ProviderChoice.GITHUB,
    gitea_url: GiteaUrlOption = None,
    gitea_token: GiteaTokenOption = None,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = LogLevel.INFO,
    _version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """
    Create, update and close tracking issues for goal documents.

    Without --commit nothing is changed; the report shows what would
    happen. If a run fails part-way, rerun the command to resume.

    Examples:

        goal-sync issues src

        goal-sync issues src --milestone 2025h1 --commit

        goal-sync issues src -R owner/repo --commit --sleep 1000
    """
    setup_logging(log_level, verbose)

    mode = SyncMode.COMMIT if commit else SyncMode.DRY_RUN
    if not commit:
        console.print("[yellow]Dry run mode - pass --commit to change issues[/yellow]")

    console.print(f"Syncing [bold]{root}[/bold] -> [bold]{repository}[/bold]")

    try:
        config = SyncConfig(
            repository=repository,
            mode=mode,
            pace=sleep / 1000,
            tracking_label=tracking_label,
            site_url=site_url,
            timeout=timeout,
        )
        issue_provider = _create_provider(provider, gitea_url, gitea_token, timeout)
        syncer = GoalSync(config, provider=issue_provider, writer=GoalWriter(backup=backup))
        report = asyncio.run(_run_issues(syncer, root, milestone))
    except GoalSyncError as e:
        _print_error(e)
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        error_console.print("\n[yellow]Interrupted - rerun the command to resume[/yellow]")
        raise typer.Exit(130) from None

    _display_report(report)


@app.command()
def check(
    root: Annotated[
        Path,
        typer.Argument(help="Directory containing milestone directories"),
    ] = Path("src"),
    verbose: VerboseOption = False,
) -> None:
    """
    Check that every goal document is well-formed.

    Loads all milestone directories without contacting any issue
    tracker. Intended for CI.
    """
    setup_logging(LogLevel.WARNING, verbose)

    parser = GoalParser()
    try:
        directories = find_milestone_dirs(root)
        counts = {period: len(parser.goals_in_dir(path)) for period, path in directories.items()}
    except GoalSyncError as e:
        _print_error(e)
        raise typer.Exit(1) from None

    if not counts:
        console.print(f"[yellow]No milestone directories found under {root}[/yellow]")
        return

    for period, count in counts.items():
        console.print(f"[green]✓[/green] {period}: {count} goals")
    console.print(f"\n[green]All {sum(counts.values())} goal documents are well-formed[/green]")


@app.command()
def show(
    root: Annotated[
        Path,
        typer.Argument(help="Directory containing milestone directories"),
    ] = Path("src"),
    milestone: MilestoneOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Display the goals found under a directory.

    Useful for debugging and verifying document format.
    """
    setup_logging(LogLevel.WARNING, verbose)

    try:
        goals = GoalParser().load(root)
    except GoalSyncError as e:
        _print_error(e)
        raise typer.Exit(1) from None

    if milestone is not None:
        goals = [g for g in goals if g.milestone_period == milestone]

    if not goals:
        console.print("[yellow]No goals found[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Goals: {root}")
    table.add_column("Identity", style="dim")
    table.add_column("Title")
    table.add_column("Owners")
    table.add_column("Status", justify="center")
    table.add_column("Issue #", justify="right")

    for goal in goals:
        title = goal.title
        if len(title) > 50:
            title = title[:47] + "..."
        ref = goal.tracking_reference
        table.add_row(
            goal.identity,
            title,
            ", ".join(goal.owners),
            goal.status.value,
            str(ref) if ref else "-",
        )

    console.print(table)

    tracked = sum(1 for g in goals if g.tracking_reference is not None)
    console.print(f"\nTotal: {len(goals)} goals")
    console.print(f"  With tracking issue: {tracked}")
    console.print(f"  Without tracking issue: {len(goals) - tracked}")


@app.command()
def progress(
    root: Annotated[
        Path,
        typer.Argument(help="Directory containing milestone directories"),
    ],
    output: Annotated[
        Path,
        typer.Option("-o", "--output", help="Directory for <milestone>.json files"),
    ] = Path("book/html/api"),
    repository: RepositoryOption = DEFAULT_REPOSITORY,
    milestone: MilestoneOption = None,
    tracking_label: Annotated[
        str,
        typer.Option("--tracking-label", help="Label marking goal tracking issues"),
    ] = "C-tracking-issue",
    timeout: TimeoutOption = 60,
    provider: ProviderOption = ProviderChoice.GITHUB,
    gitea_url: GiteaUrlOption = None,
    gitea_token: GiteaTokenOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Export tracking issue progress as JSON, one file per milestone.

    Read-only: no issue is changed.
    """
    setup_logging(LogLevel.INFO, verbose)

    async def _run(syncer: GoalSync):
        try:
            return await syncer.progress(root, milestone)
        finally:
            await syncer.provider.close()

    try:
        config = SyncConfig(
            repository=repository,
            tracking_label=tracking_label,
            timeout=timeout,
        )
        issue_provider = _create_provider(provider, gitea_url, gitea_token, timeout)
        milestones = asyncio.run(_run(GoalSync(config, provider=issue_provider)))
        written = write_progress(milestones, output)
    except GoalSyncError as e:
        _print_error(e)
        raise typer.Exit(1) from None

    for path in written:
        console.print(f"[green]✓[/green] Wrote {path}")


@app.command()
def doctor(
    provider: ProviderOption = ProviderChoice.GITHUB,
    gitea_url: GiteaUrlOption = None,
    gitea_token: GiteaTokenOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Check environment and provider status.

    Verifies that the provider (GitHub CLI or Gitea server) is accessible
    and authenticated.
    """
    setup_logging(LogLevel.INFO, verbose)

    provider_name = provider.value.title()

    async def _check(issue_provider: IssueProvider) -> None:
        try:
            await issue_provider.check_connection()
        finally:
            await issue_provider.close()

    with console.status(f"Checking {provider_name} connection..."):
        try:
            issue_provider = _create_provider(provider, gitea_url, gitea_token, 30)
            asyncio.run(_check(issue_provider))
        except GoalSyncError as e:
            error_console.print(f"[red]✗[/red] {e.message}")
            if e.hint:
                error_console.print(f"  [dim]Hint: {e.hint}[/dim]")
            raise typer.Exit(1) from None

    if provider == ProviderChoice.GITHUB:
        console.print("[green]✓[/green] GitHub CLI (gh) is installed")
        console.print("[green]✓[/green] GitHub CLI is authenticated")
    else:
        console.print(f"[green]✓[/green] Connected to Gitea at {gitea_url}")
        console.print("[green]✓[/green] Gitea authentication valid")
    console.print(f"\n[green]All {provider_name} checks passed![/green]")


ACTION_STYLES = {
    ReconcileAction.CREATED: "green",
    ReconcileAction.UPDATED: "yellow",
    ReconcileAction.CLOSED: "magenta",
    ReconcileAction.UP_TO_DATE: "dim",
    ReconcileAction.SKIPPED: "dim",
    ReconcileAction.FAILED: "red",
}


def _display_report(report: ReconcileReport) -> None:
    """Display the per-goal report and a summary panel."""
    for entry in report.entries:
        style = ACTION_STYLES[entry.action]
        console.print(f"[{style}]{entry.describe()}[/{style}]", highlight=False)

    action_word = "Would apply" if report.dry_run else "Applied"

    summary = Table.grid(padding=(0, 2))
    summary.add_column(style="bold")
    summary.add_column()

    summary.add_row("Goals:", str(report.total_goals))
    summary.add_row("Tracking issues:", str(report.total_issues))
    summary.add_row("Created:", f"[green]{report.created}[/green]")
    summary.add_row("Updated:", f"[yellow]{report.updated}[/yellow]")
    summary.add_row("Closed:", f"[magenta]{report.closed}[/magenta]")
    summary.add_row("Up to date:", str(report.up_to_date))
    summary.add_row("Skipped:", str(report.skipped))

    if report.errors:
        summary.add_row("Errors:", f"[red]{len(report.errors)}[/red]")

    panel = Panel(
        summary,
        title=f"{action_word} Changes",
        border_style="green" if not report.errors else "yellow",
    )
    console.print(panel)

    for warning in report.warnings:
        error_console.print(f"[yellow]Warning:[/yellow] {warning}")

    # Partial completion is recoverable, so the exit status stays 0
    if report.errors:
        error_console.print("\n[red]Errors:[/red]")
        for error in report.errors[:10]:
            error_console.print(f"  - {error}")
        if len(report.errors) > 10:
            error_console.print(f"  ... and {len(report.errors) - 10} more")
        error_console.print("[yellow]Rerun the command to resume[/yellow]")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
