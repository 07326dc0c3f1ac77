"""Command-line interface for releaselog."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from releaselog.cache import CommitMetadataCache, ResponseCache
from releaselog.extraction import GitRepositoryReader
from releaselog.github import GitHubClient
from releaselog.log import configure_logging
from releaselog.models import AuthorRegistry, ChangelogConfig, OutputType, Settings
from releaselog.models.config import DEFAULT_CONFIG_FILE
from releaselog.output import save_reports, update_version_text, write_markdown, write_version_tag_text
from releaselog.output.markdown import VERSION_TAG_FILENAME
from releaselog.resolution import ChangelogEngine, ExclusionRules

app = typer.Typer(
    name="releaselog",
    help="Generate release changelogs from git history and GitHub issues/pull requests",
    add_completion=False,
)
console = Console()

DATE_FORMAT = "%d %B %Y"
DEFAULT_OUTPUT_DIR = Path("changelog")


def _response_cache_dir(settings: Settings) -> Path:
    return settings.cache_dir / "api.github.com"


def _load_config(config_file: Path) -> ChangelogConfig:
    if config_file.exists():
        return ChangelogConfig.load(config_file)
    console.print(f"[yellow]Config file not found, using command line options only:[/yellow] {config_file}")
    return ChangelogConfig()


@app.command()
def generate(
    config_file: Path = typer.Option(DEFAULT_CONFIG_FILE, "--config", "-c", help="JSON config file"),
    repo_path: Optional[Path] = typer.Option(None, "--repo", "-r", help="Path to Git repository"),
    owner: Optional[str] = typer.Option(None, "--owner", help="GitHub repository owner"),
    name: Optional[str] = typer.Option(None, "--name", help="GitHub repository name"),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Branch the release is made from"),
    prior: Optional[str] = typer.Option(None, "--prior", help="Tag of the previous release"),
    current: Optional[str] = typer.Option(None, "--current", help="Ref of the release being described"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    version_label: Optional[str] = typer.Option(None, "--version-label", help="Version shown in version-tag.txt"),
    best_effort: bool = typer.Option(False, "--best-effort", help="Keep going on remote failures"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Do not read or write any cache"),
    reports: bool = typer.Option(True, "--reports/--no-reports", help="Write diagnostic JSON reports"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Generate a changelog for a version range."""
    settings = Settings()
    configure_logging("DEBUG" if verbose else settings.log_level)

    reader = None
    try:
        config = _load_config(config_file)
        overrides = {
            "repo_path": repo_path,
            "github_repo_owner": owner,
            "github_repo_name": name,
            "branch": branch,
            "tag_version_prior": prior,
            "ref_version_current": current,
            "output_path": output,
        }
        config = config.model_copy(update={key: value for key, value in overrides.items() if value is not None})

        missing = config.missing_fields()
        if missing:
            console.print(f"[bold red]Error:[/bold red] missing configuration: {', '.join(missing)}")
            raise typer.Exit(1)

        current_ref = config.ref_version_current or config.branch
        output_dir = config.output_path or DEFAULT_OUTPUT_DIR
        output_types = config.output_types or [OutputType.MARKDOWN]

        console.print(f"[bold green]Repository:[/bold green] {config.repo_path}")
        console.print(
            f"[bold blue]Range:[/bold blue] {config.tag_version_prior}..{current_ref} "
            f"on {config.github_repo_owner}/{config.github_repo_name}@{config.branch}"
        )

        reader = GitRepositoryReader(config.repo_path)
        response_cache = None if no_cache else ResponseCache(_response_cache_dir(settings))
        commit_cache = None if no_cache else CommitMetadataCache(settings.cache_dir / "git", reader.identity)
        client = GitHubClient.from_settings(
            config.github_repo_owner,
            config.github_repo_name,
            settings,
            cache=response_cache,
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Starting...", total=None)

            engine = ChangelogEngine(
                reader,
                client,
                branch=config.branch,
                rules=ExclusionRules.from_config(config),
                commit_cache=commit_cache,
                authors=AuthorRegistry.load(config.authors_file),
                fail_fast=settings.fail_fast and not best_effort,
                max_references=settings.max_references,
                deadline_seconds=settings.deadline_seconds,
                progress=lambda phase: progress.update(task, description=f"{phase}..."),
            )
            changes = engine.discover_changes(config.tag_version_prior, current_ref)
            progress.update(task, completed=True)

        release_date = reader.commit_time(reader.resolve_ref(current_ref, config.branch)).strftime(DATE_FORMAT)

        written = []
        if OutputType.MARKDOWN in output_types:
            written.append(write_markdown(changes, output_dir, config.include_dependency_changes))
        if OutputType.VERSION_TXT in output_types:
            written.append(write_version_tag_text(changes, output_dir, version_label or current_ref, release_date))
        if reports:
            written.extend(save_reports(engine, output_dir))

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Item", style="cyan")
        table.add_column("Count", justify="right", style="yellow")
        table.add_row("Commits", str(len(engine.commits)))
        table.add_row("Issues/PRs", str(len(engine.issues)))
        table.add_row("Relevant issues/PRs", str(len(engine.relevant_issues())))
        table.add_row("Changes", str(len(changes)))
        table.add_row("Resolution passes", str(engine.stats.passes))
        table.add_row("GitHub requests", str(client.requests_sent))
        if engine.stats.remote_failures:
            table.add_row("Remote failures (ignored)", str(engine.stats.remote_failures))
        if engine.stats.dropped_references:
            table.add_row("Dropped references", str(engine.stats.dropped_references))
        console.print(table)

        for path in written:
            console.print(f"[bold green]✓[/bold green] Wrote {path}")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)
    finally:
        if reader is not None:
            reader.close()


@app.command(name="update-version-text")
def update_version_text_command(
    tag_file: Path = typer.Option(
        DEFAULT_OUTPUT_DIR / VERSION_TAG_FILENAME, "--tag-file", "-t", help="Generated version-tag.txt"
    ),
    input_file: Path = typer.Option(Path("VERSION.txt"), "--input", "-i", help="Current VERSION.txt"),
    output: Path = typer.Option(DEFAULT_OUTPUT_DIR / "VERSION.txt", "--output", "-o", help="VERSION.txt to write"),
) -> None:
    """Prepend the release's version-tag.txt to VERSION.txt."""
    for required in (tag_file, input_file):
        if not required.exists():
            console.print(f"[bold red]Error:[/bold red] file not found: {required}")
            raise typer.Exit(1)

    try:
        path = update_version_text(tag_file, input_file, output)
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    console.print(f"[bold green]✓[/bold green] Wrote {path}")


@app.command(name="cache-stats")
def cache_stats() -> None:
    """Show response cache statistics."""
    settings = Settings()
    cache_dir = _response_cache_dir(settings)

    if not cache_dir.exists():
        console.print(f"[yellow]Cache directory does not exist:[/yellow] {cache_dir}")
        return

    cache = ResponseCache(cache_dir)
    stats = cache.get_stats()
    total_size = sum(f.stat().st_size for f in cache_dir.rglob("*.json"))

    console.print("\n[bold]Cache Statistics[/bold]")
    console.print(f"[cyan]Location:[/cyan] {cache_dir}")
    console.print(f"[cyan]Cached Responses:[/cyan] {stats['cached_responses']}")
    console.print(f"[cyan]Total Size:[/cyan] {total_size / 1024 / 1024:.2f} MB")


@app.command(name="cache-clear")
def cache_clear(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
) -> None:
    """Clear the response cache."""
    settings = Settings()
    cache_dir = _response_cache_dir(settings)

    if not cache_dir.exists():
        console.print(f"[yellow]Cache directory does not exist:[/yellow] {cache_dir}")
        return

    try:
        cache = ResponseCache(cache_dir)
        stats = cache.get_stats()
        console.print(f"\n[bold]Cache to be cleared:[/bold] {cache_dir} ({stats['cached_responses']} responses)")

        if not force:
            if not typer.confirm("\nAre you sure you want to clear the cache?"):
                console.print("[yellow]Cancelled[/yellow]")
                return

        cache.clear()
        console.print("\n[bold green]✓[/bold green] Cache cleared")
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from releaselog import __version__

    console.print(f"[bold]releaselog[/bold] version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
