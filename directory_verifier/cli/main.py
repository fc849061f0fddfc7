"""Command-line interface for the directory verifier using Typer and Rich."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from directory_verifier import __version__
from directory_verifier.checks.browser_install import ensure_chromium, is_chromium_installed
from directory_verifier.config.logging import configure_logging, get_logger
from directory_verifier.config.settings import settings
from directory_verifier.data_management.database import Database
from directory_verifier.data_management.resource_store import ResourceStore
from directory_verifier.data_management.schemas import ReviewCandidate
from directory_verifier.data_management.verification_run_store import VerificationRunStore
from directory_verifier.errors import (
    PersistenceError,
    ResourceNotFoundError,
    StoreUnavailableError,
)
from directory_verifier.pipeline.reports import group_ip_blocks
from directory_verifier.pipeline.verification_pipeline import (
    BatchSummary,
    VerificationPipeline,
)
from directory_verifier.review.review_gateway import ReviewGateway
from directory_verifier.utils.logging import configure_structured_logging
from directory_verifier.verification.verification_agent import VerificationAgent

# Initialize CLI app
app = typer.Typer(
    help="Directory Verifier CLI - data-quality verification for the resource directory",
    add_completion=False,
)

# Rich console for summaries; logs go to stderr
console = Console()

logger = get_logger("cli")

_state: dict[str, Optional[str]] = {"database_url": None}


@app.callback()
def main(
    database_url: Optional[str] = typer.Option(
        None,
        "--database-url",
        help="SQLAlchemy async URL (defaults to DATABASE_URL)",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Directory Verifier command-line interface."""
    _state["database_url"] = database_url
    if log_level:
        configure_logging(level=log_level)
        configure_structured_logging(level=log_level)


def _database() -> Database:
    return Database(_state["database_url"] or settings.database_url)


def build_agent() -> VerificationAgent:
    """Verification agent with the standard check set."""
    return VerificationAgent()


async def _connect(database: Database) -> None:
    """Connect or exit 1: nothing is read when the store is unreachable."""
    try:
        await database.connect()
    except StoreUnavailableError as e:
        console.print(f"[red]✗[/red] Data store unavailable: {e}")
        logger.error("Data store unavailable", error=str(e))
        raise typer.Exit(1)


def _print_summary(summary: BatchSummary) -> None:
    title = "Verification Summary (dry run)" if summary.dry_run else "Verification Summary"
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan", width=24)
    table.add_column("Count", style="green", justify="right")

    table.add_row("Resources selected", str(summary.selected))
    table.add_row("Verified", str(summary.verified))
    table.add_row("Flagged for review", str(summary.flagged))
    table.add_row("Skipped (nothing to check)", str(summary.skipped))
    table.add_row("Errors", str(summary.errors))
    table.add_row("Persistence failures", str(summary.persistence_failures))
    table.add_row("IP blocks detected", str(len(summary.ip_blocks)))
    table.add_row("Duration", f"{summary.duration_seconds:.1f}s")
    console.print(table)

    if summary.ip_blocks:
        blocks = Table(title="Bot protection / IP blocks", header_style="bold yellow")
        blocks.add_column("Resource", style="cyan")
        blocks.add_column("URL")
        blocks.add_column("Status", justify="right")
        for entry in summary.ip_blocks:
            blocks.add_row(entry.name, entry.url or "-", str(entry.status_code or "-"))
        console.print(blocks)

    failed = [o for o in summary.outcomes if o.error]
    if failed:
        errors = Table(title="Per-resource failures", header_style="bold red")
        errors.add_column("Resource", style="cyan")
        errors.add_column("Error")
        for outcome in failed:
            errors.add_row(outcome.name, outcome.error or "")
        console.print(errors)


@app.command("verify-batch")
def verify_batch(
    limit: int = typer.Option(
        settings.batch_limit, "--limit", min=1, help="Maximum resources to verify"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Run every check and decision but write nothing"
    ),
) -> None:
    """
    Verify due resources one at a time.

    Exits 0 once the batch completes, even when individual resources
    failed; exits 1 only when the data store cannot be reached.
    """
    logger.info("Batch verification invoked", limit=limit, dry_run=dry_run)

    async def _run() -> BatchSummary:
        database = _database()
        await _connect(database)
        try:
            pipeline = VerificationPipeline(database, agent=build_agent())
            return await pipeline.run_batch(limit=limit, dry_run=dry_run)
        finally:
            await database.close()

    try:
        summary = asyncio.run(_run())
    except StoreUnavailableError as e:
        console.print(f"[red]✗[/red] Data store unavailable: {e}")
        raise typer.Exit(1)

    _print_summary(summary)


@app.command("verify-resource")
def verify_resource(
    resource_id: str = typer.Argument(..., help="Resource to verify"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Evaluate without writing"),
) -> None:
    """Run a triggered verification for one resource."""

    async def _run():
        database = _database()
        await _connect(database)
        try:
            pipeline = VerificationPipeline(database, agent=build_agent())
            return await pipeline.verify_one(resource_id, dry_run=dry_run)
        finally:
            await database.close()

    try:
        result = asyncio.run(_run())
    except ResourceNotFoundError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    except PersistenceError as e:
        console.print(f"[red]✗[/red] Could not save verification: {e}")
        raise typer.Exit(1)

    run = result.run
    table = Table(title=f"Checks for {result.resource.name}", header_style="bold magenta")
    table.add_column("Check", style="cyan")
    table.add_column("Result")
    table.add_column("Detail")
    for name, check in run.checks_performed.items():
        mark = "[green]✓ pass[/green]" if check.passed else "[red]✗ fail[/red]"
        table.add_row(name, mark, check.error or "")
    console.print(table)

    score = "n/a" if run.overall_score is None else f"{run.overall_score:.2f}"
    console.print(f"[bold]Decision:[/bold] {run.decision.value} (score {score})")
    console.print(f"[bold]Reason:[/bold] {run.decision_reason}")
    if result.persisted:
        console.print(
            f"[dim]Status {result.resource.verification_status.value}, "
            f"next check {result.resource.next_verification_at:%Y-%m-%d}[/dim]"
        )
    else:
        console.print("[dim]Dry run: nothing written[/dim]")


def _print_candidate(candidate: ReviewCandidate) -> None:
    r = candidate.resource
    missing = "[red]missing[/red]"

    lines = [
        f"[bold]ID:[/bold] {r.id}",
        f"[bold]Name:[/bold] {r.name}",
        f"[bold]Category:[/bold] {r.primary_category or 'Not set'}",
        f"[bold]Website:[/bold] {r.website or missing}",
        "",
        f"[bold]Address:[/bold] {r.address or 'Not set'}",
        f"[bold]City, State, Zip:[/bold] {r.city or '?'}, {r.state or '?'} {r.zip or '?'}",
        f"[bold]Phone:[/bold] {r.phone or missing}",
        f"[bold]Email:[/bold] {r.email or missing}",
        "",
    ]
    if r.hours:
        lines.append("[bold]Hours:[/bold]")
        lines.extend(f"  {day:<15}: {text}" for day, text in r.hours.items())
    else:
        lines.append(f"[bold]Hours:[/bold] {missing}")
    if r.services_offered:
        lines.append("[bold]Services:[/bold]")
        lines.extend(f"  • {service}" for service in r.services_offered)
    else:
        lines.append(f"[bold]Services:[/bold] {missing}")
    lines.append(f"[bold]Eligibility:[/bold] {r.eligibility_requirements or 'Not set'}")
    lines += [
        "",
        f"[bold]Priority:[/bold] {candidate.priority} - {candidate.priority_reason}",
        f"[bold]Verification source:[/bold] {r.verification_source or missing}",
        f"[bold]Last verified:[/bold] "
        f"{r.last_verified_at.strftime('%Y-%m-%d') if r.last_verified_at else 'Never'}",
        f"[bold]Last automated result:[/bold] {candidate.last_decision_reason or 'No runs yet'}",
        f"[bold]Needs confirmation:[/bold] {', '.join(candidate.checks_needed) or 'nothing'}",
    ]
    console.print(Panel("\n".join(lines), title="Resource to verify", border_style="cyan"))

    if r.website:
        hint = f"Open {r.website} and confirm address, phone, email, hours, services"
    else:
        hint = f'Search for "{r.name} {r.city or ""} contact"'
    console.print(f"\n[bold]Next:[/bold] {hint}")
    console.print(
        "Submit corrections with a verification_source (URL or search query). "
        "One resource at a time."
    )


@app.command("next-review")
def next_review() -> None:
    """Show the single most urgent resource for human review."""

    async def _run() -> Optional[ReviewCandidate]:
        database = _database()
        await _connect(database)
        try:
            return await ReviewGateway(database).next_candidate()
        finally:
            await database.close()

    candidate = asyncio.run(_run())
    if candidate is None:
        console.print("[green]✓[/green] No resources in the review queue")
        return
    _print_candidate(candidate)


@app.command("queue-status")
def queue_status() -> None:
    """Show review queue metrics."""

    async def _run():
        database = _database()
        await _connect(database)
        try:
            return await ReviewGateway(database).queue_status()
        finally:
            await database.close()

    status = asyncio.run(_run())

    def _pct(n: int) -> str:
        return f"{n / status.total_active * 100:.1f}%" if status.total_active else "-"

    table = Table(title="Verification Queue Status", header_style="bold magenta")
    table.add_column("Metric", style="cyan", width=28)
    table.add_column("Count", justify="right")
    table.add_column("Share", justify="right", style="dim")
    table.add_row("Total active resources", str(status.total_active), "")
    table.add_row("With email", str(status.with_email), _pct(status.with_email))
    table.add_row("With verification source", str(status.with_source), _pct(status.with_source))
    table.add_row("Missing email", str(status.missing_email), _pct(status.missing_email))
    table.add_row("No verification source", str(status.missing_source), _pct(status.missing_source))
    table.add_row("No contact info at all", str(status.no_contact), _pct(status.no_contact))
    table.add_row("Awaiting review", str(status.awaiting_review), _pct(status.awaiting_review))
    console.print(table)


@app.command("ip-blocks")
def ip_blocks(
    days: int = typer.Option(30, "--days", min=1, help="Look-back window in days"),
) -> None:
    """Report URLs that refused the checker with 403, grouped by URL."""

    async def _run():
        database = _database()
        await _connect(database)
        try:
            since = datetime.now(timezone.utc) - timedelta(days=days)
            return await VerificationRunStore(database).ip_block_runs(since)
        finally:
            await database.close()

    runs = asyncio.run(_run())
    groups = group_ip_blocks(runs)
    if not groups:
        console.print(f"[green]✓[/green] No IP blocking detected in the last {days} days")
        return

    table = Table(
        title=f"IP blocking report (last {days} days, {len(runs)} runs)",
        header_style="bold yellow",
    )
    table.add_column("URL", style="cyan")
    table.add_column("Resources", justify="right")
    table.add_column("Incidents", justify="right")
    table.add_column("Latest", style="dim")
    table.add_column("Error")
    for group in groups:
        latest = group.last_detected_at.strftime("%Y-%m-%d %H:%M") if group.last_detected_at else "-"
        table.add_row(
            group.url or "-",
            str(len(group.resource_ids)),
            str(group.incidents),
            latest,
            group.last_error or "",
        )
    console.print(table)


@app.command("init-db")
def init_db() -> None:
    """Create the database tables if they do not exist."""

    async def _run() -> None:
        database = _database()
        await _connect(database)
        await database.close()

    asyncio.run(_run())
    console.print("[green]✓[/green] Database initialised")


@app.command("force-reverify")
def force_reverify(
    include_no_website: bool = typer.Option(
        False, "--all", help="Also include resources without a website"
    ),
) -> None:
    """Make every active resource with a website due for verification now."""

    async def _run() -> int:
        database = _database()
        await _connect(database)
        try:
            return await ResourceStore(database).mark_due(website_only=not include_no_website)
        finally:
            await database.close()

    count = asyncio.run(_run())
    logger.info("Forced re-verification", count=count)
    console.print(f"[green]✓[/green] Marked {count} resources due for verification")
    console.print("[dim]Run verify-batch to check them[/dim]")


@app.command("install-browser")
def install_browser(
    with_deps: bool = typer.Option(False, "--with-deps", help="Also install OS dependencies"),
    force: bool = typer.Option(False, "--force", help="Reinstall even if present"),
) -> None:
    """Install the Chromium build used by the URL reachability check."""
    if not force and is_chromium_installed():
        console.print("[green]✓[/green] Chromium is already installed")
        return

    console.print("Installing Chromium for Playwright...")
    code = ensure_chromium(with_deps=with_deps, force=True)
    if code != 0:
        console.print(f"[red]✗[/red] playwright install exited with {code}")
        raise typer.Exit(code)
    console.print("[green]✓[/green] Chromium installed")


@app.command()
def version() -> None:
    """Display version information."""
    console.print("[bold]Directory Verifier[/bold]")
    console.print(f"Version: {__version__}")
    console.print(f"Agent version: {settings.agent_version}")


if __name__ == "__main__":
    app()
