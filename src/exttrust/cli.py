"""CLI entry point for exttrust."""

import asyncio
import json
import logging
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv()

import httpx
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from exttrust import config
from exttrust.analyzers.pipeline import TrustPipeline
from exttrust.analyzers.scorer import evaluate_extension, evaluate_repo
from exttrust.models.schemas import (
    Decision,
    EvaluationResult,
    ExtensionMetadata,
    Policy,
    RepoFetchError,
    RepoMetadata,
)
from exttrust.policy import load_extension_policy, load_policy, load_repo_policy

app = typer.Typer(help="Extension and repository trust evaluation tool.")

console = Console()

DECISION_COLORS = {
    Decision.ALLOW: "green",
    Decision.REVIEW: "yellow",
    Decision.BLOCK: "red",
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _decision_text(decision: Decision | None) -> str:
    if decision is None:
        return "-"
    color = DECISION_COLORS[decision]
    return f"[{color}]{decision.value}[/{color}]"


def _print_breakdown(result: EvaluationResult, title: str) -> None:
    """Print the triggered rules with their points."""
    table = Table(title=title, show_header=True)
    table.add_column("Rule", style="bold")
    table.add_column("Category", style="dim")
    table.add_column("Points", justify="right")

    for item in result.triggered_with_points:
        table.add_row(item.rule, item.category, f"{item.points:g}")

    console.print(table)
    console.print(f"[bold]Score:[/bold] {result.score:g}  [bold]Decision:[/bold] {_decision_text(result.decision)}")


@app.command()
def check(
    extensions: list[str] = typer.Argument(..., help="Extension IDs (publisher.extension)"),
    policy_path: Path | None = typer.Option(None, "--policy", "-p", help="Extension policy JSON"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
) -> None:
    """Fetch extensions from the Marketplace and score their trust."""
    asyncio.run(_check(extensions, policy_path, output))


async def _check(extensions: list[str], policy_path: Path | None, output: Path | None) -> None:
    """Async implementation of check."""
    policy = load_extension_policy(policy_path)
    if policy is None:
        console.print("[yellow]No usable extension policy; trust scoring disabled[/yellow]")

    async with httpx.AsyncClient(timeout=config.get_http_timeout()) as client:
        pipeline = TrustPipeline(
            extension_policy=policy,
            client=client,
            github_token=config.get_github_token(),
            max_extensions=config.get_max_extensions(),
            batch_size=config.get_batch_size(),
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(f"Checking {len(extensions)} extensions...", total=None)
            batch = await pipeline.fetch_extensions(extensions)

    if not batch.ok:
        console.print(f"[red]{escape(batch.error)}[/red]")
        raise typer.Exit(1)

    table = Table(title="Extension Trust", show_header=True)
    table.add_column("Extension", style="cyan")
    table.add_column("Version")
    table.add_column("Updated")
    table.add_column("Installs", justify="right")
    table.add_column("Rating", justify="right")
    table.add_column("Verified")
    table.add_column("Public Repo")
    table.add_column("Score", justify="right")
    table.add_column("Decision")

    for record in batch.results:
        if not record.ok:
            table.add_row(record.extension_id, f"[red]{escape(record.error)}[/red]", "", "", "", "", "", "", "")
            continue
        installs = f"{int(record.install_count):,}" if record.install_count.isdigit() else "-"
        table.add_row(
            record.extension_id,
            record.current_version or "-",
            record.last_version_update_date or "-",
            installs,
            record.rating or "-",
            "Yes" if record.publisher_verified else "No",
            "[green]Yes[/green]" if record.has_public_repo else "[red]No[/red]",
            f"{record.risk_score:g}" if record.risk_score is not None else "-",
            _decision_text(record.risk_decision),
        )

    console.print(table)

    flagged = [r for r in batch.results if r.triggered_rules]
    if flagged:
        console.print()
        console.print("[bold yellow]Triggered rules:[/bold yellow]")
        for record in flagged:
            console.print(f"  [cyan]{record.extension_id}[/cyan]: {', '.join(record.triggered_rules)}")

    if output:
        data = {"results": [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in batch.results]}
        output.write_text(json.dumps(data, indent=2))
        console.print(f"\n[green]Saved to {output}[/green]")


@app.command()
def repo(
    url: str = typer.Argument(..., help="GitHub repository URL"),
    policy_path: Path | None = typer.Option(None, "--policy", "-p", help="Repository policy JSON"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
) -> None:
    """Fetch GitHub repository data and score its trust."""
    asyncio.run(_repo(url, policy_path, output))


async def _repo(url: str, policy_path: Path | None, output: Path | None) -> None:
    """Async implementation of repo."""
    policy = load_repo_policy(policy_path)

    async with httpx.AsyncClient(timeout=config.get_http_timeout()) as client:
        pipeline = TrustPipeline(repo_policy=policy, client=client, github_token=config.get_github_token())

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Fetching GitHub data...", total=None)
            report = await pipeline.analyze_repo(url)

    if isinstance(report, RepoFetchError):
        console.print(f"[red]{escape(report.message)}[/red]")
        raise typer.Exit(1)

    data = report.repo
    console.print()
    console.print(f"[bold cyan]{data.owner}/{data.repo}[/bold cyan]")
    if data.description:
        console.print(f"[dim]{data.description}[/dim]")
    console.print()

    def show(value: int | None) -> str:
        return f"{value:,}" if value is not None else "-"

    stats_table = Table(title="Repository Stats", show_header=False, box=None)
    stats_table.add_column("Metric", style="bold")
    stats_table.add_column("Value", justify="right")

    stats_table.add_row("Stars", show(data.stars))
    stats_table.add_row("Forks", show(data.forks))
    stats_table.add_row("Open Issues", show(data.open_issues))
    stats_table.add_row("Open PRs", show(data.open_pull_requests))
    stats_table.add_row("Contributors", show(data.contributor_count))
    stats_table.add_row("Age (days)", show(data.age_days))
    stats_table.add_row("Days Since Push", show(data.days_since_push))
    stats_table.add_row("Language", data.language or "-")

    console.print(stats_table)
    console.print()

    if report.repo_trust is not None:
        _print_breakdown(report.repo_trust, "Repository Trust")
    else:
        console.print("[yellow]No usable repository policy; trust scoring disabled[/yellow]")

    if output:
        output.write_text(json.dumps(report.model_dump(mode="json", by_alias=True), indent=2))
        console.print(f"\n[green]Saved to {output}[/green]")


@app.command()
def evaluate(
    metadata_file: Path = typer.Argument(..., help="Metadata JSON file"),
    policy_path: Path | None = typer.Option(None, "--policy", "-p", help="Policy JSON"),
    repo_mode: bool = typer.Option(False, "--repo", help="Treat metadata as repository metadata"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
) -> None:
    """Score a metadata JSON document offline."""
    try:
        document = json.loads(metadata_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not read {metadata_file}: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if policy_path:
        policy = load_policy(policy_path)
    else:
        policy = load_repo_policy() if repo_mode else load_extension_policy()
    if policy is None:
        console.print("[red]No usable policy (needs weights, rules and thresholds)[/red]")
        raise typer.Exit(1)

    try:
        result = _evaluate_document(document, policy, repo_mode)
    except ValidationError as e:
        console.print(f"[red]Invalid metadata: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    console.print(Panel(f"{result.score:g} points", title="Trust Score", expand=False))
    _print_breakdown(result, "Triggered Rules")

    if output:
        output.write_text(json.dumps(result.to_dict(), indent=2))
        console.print(f"\n[green]Saved to {output}[/green]")


def _evaluate_document(document: dict, policy: Policy, repo_mode: bool) -> EvaluationResult:
    if repo_mode:
        return evaluate_repo(RepoMetadata.model_validate(document), policy)
    return evaluate_extension(ExtensionMetadata.model_validate(document), policy)


@app.command()
def version() -> None:
    """Show version information."""
    from exttrust import __version__

    console.print(f"exttrust v{__version__}")


if __name__ == "__main__":
    app()
