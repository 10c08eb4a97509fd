#!/usr/bin/env python3
"""
Algebrix - algebra practice with synced problem batches.
CLI interface for syncing batches, practicing problems, and tracking progress.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from config import Config
from core.app import AppServices
from core.dto import Problem, SyncDisposition
from core.sync_reconciler import InvalidBatchError
from remote.batch_source import RemoteBatchSource
from storage import BACKENDS, create_store

console = Console()

DISPOSITION_STYLES = {
    SyncDisposition.IMPORTED_NEW: "green",
    SyncDisposition.REPLACED_EXISTING: "yellow",
    SyncDisposition.SKIPPED_EXISTING: "dim",
}


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else Config.LOG_LEVEL,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _services(ctx: click.Context, sync_url: Optional[str] = None) -> AppServices:
    """Build (once per invocation) the services over the configured store."""
    obj = ctx.find_root().obj
    if "services" not in obj:
        if obj["backend"] != "memory" and obj["db_path"] is None:
            Config.ensure_dirs()
        store = create_store(obj["backend"], obj["db_path"])
        ctx.find_root().call_on_close(store.close)
        obj["services"] = AppServices.build(store, source=RemoteBatchSource(sync_url))
    return obj["services"]


def _format_answer(answer) -> str:
    if isinstance(answer, list):
        return ", ".join(str(a) for a in answer)
    return str(answer)


def _print_problem(problem: Problem):
    console.print(f"\n[bold cyan]{escape(problem.direction or 'Solve')}[/bold cyan]")
    console.print(f"  {escape(problem.equation)}")
    console.print(
        f"[dim]{problem.id} · {problem.problem_type.value} · {problem.difficulty.value}[/dim]\n"
    )


def _print_solution(problem: Problem):
    console.print("\n[bold]Solution[/bold]")
    for i, step in enumerate(problem.solution_steps, 1):
        console.print(f"  {i}. {escape(step.explanation)}")
        console.print(f"     {escape(step.math_expression)}")
    console.print(f"  Answer: [bold]{escape(_format_answer(problem.answer))}[/bold]\n")


@click.group()
@click.version_option(version="0.1.0", prog_name="Algebrix")
@click.option('--store', 'backend', type=click.Choice(BACKENDS), default=None,
              help='Storage backend (defaults to ALGEBRIX_STORE or sqlite)')
@click.option('--db', 'db_path', type=click.Path(dir_okay=False), default=None,
              help='SQLite database file (defaults to ALGEBRIX_DB_PATH)')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
@click.pass_context
def cli(ctx, backend, db_path, verbose):
    """Algebrix - daily algebra practice from synced problem batches."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["backend"] = backend or Config.STORE_BACKEND
    ctx.obj["db_path"] = db_path


@cli.command()
@click.pass_context
def init(ctx):
    """Create the local database."""
    try:
        services = _services(ctx)
        console.print("\n[bold green]✨ Algebrix initialized[/bold green]\n")
        if ctx.obj["backend"] == "sqlite":
            console.print(f"Database: {services.store.db_path}")
        console.print("Next steps:")
        console.print("  • algebrix sync - Download the latest batch")
        console.print("  • algebrix practice - Start practicing\n")
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()


@cli.command()
@click.option('--url', help='Batch or manifest URL (defaults to ALGEBRIX_SYNC_URL)')
@click.option('--force', '-f', is_flag=True, help='Sync even if the last sync is recent')
@click.pass_context
def sync(ctx, url, force):
    """Download the latest batch and reconcile it with local problems."""
    try:
        services = _services(ctx, sync_url=url)
        if not force and not services.sync.should_sync():
            last = services.sync.get_last_sync_time()
            console.print(f"\n[dim]Up to date (last sync {last:%Y-%m-%d %H:%M} UTC). "
                          f"Use --force to sync anyway.[/dim]\n")
            return

        result = services.sync.sync_problems()
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()

    if not result.success:
        console.print(f"\n[bold red]Sync failed:[/bold red] {escape(str(result.error))}")
        console.print("[dim]Local problems are unchanged.[/dim]\n")
        raise click.Abort()

    style = DISPOSITION_STYLES.get(result.disposition, "white")
    console.print(f"\n[{style}]{result.disposition.value}[/{style}] batch {escape(result.batch_id)}\n")


@cli.command(name='import')
@click.argument('batch_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_batch(ctx, batch_file):
    """Import a batch document from a JSON file."""
    try:
        payload = json.loads(Path(batch_file).read_text(encoding="utf-8"))
        services = _services(ctx)
        disposition = services.reconciler.reconcile(payload)
    except (InvalidBatchError, json.JSONDecodeError) as e:
        console.print(f"\n[bold red]Invalid batch:[/bold red] {escape(str(e))}\n")
        raise click.Abort()
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()

    style = DISPOSITION_STYLES.get(disposition, "white")
    console.print(f"\n[{style}]{disposition.value}[/{style}] batch {escape(str(payload.get('id')))}\n")


@cli.command()
@click.pass_context
def batches(ctx):
    """List stored batches, most recently imported first."""
    try:
        services = _services(ctx)
        all_batches = services.batches.get_all_batches()
        current = services.progress.get_user_progress()
        current_id = current.current_batch_id if current else None

        if not all_batches:
            console.print("\n[yellow]No batches stored. Run 'algebrix sync' first.[/yellow]\n")
            return

        table = Table(title="\n📚 Problem Batches")
        table.add_column("Id", style="cyan", no_wrap=True)
        table.add_column("Generated", style="magenta")
        table.add_column("Imported", style="white")
        table.add_column("Done", style="green", justify="right")
        table.add_column("", style="bold")

        for batch in all_batches:
            total = services.batches.count_problems(batch.id)
            done = services.batches.count_completed_problems(batch.id)
            table.add_row(
                batch.id,
                f"{batch.generation_date:%Y-%m-%d}",
                f"{batch.imported_at:%Y-%m-%d %H:%M}",
                f"{done}/{total}",
                "◀ current" if batch.id == current_id else "",
            )

        console.print(table)
        console.print(f"\nTotal: {len(all_batches)} batches\n")

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()


@cli.command()
@click.option('--batch', '-b', 'batch_id', help='Batch id (defaults to the current batch)')
@click.option('--unsolved', '-u', is_flag=True, help='Only unsolved problems')
@click.pass_context
def problems(ctx, batch_id, unsolved):
    """List the problems of a batch in order."""
    try:
        services = _services(ctx)
        if batch_id is None:
            batch = services.selection.get_current_batch() or services.batches.get_latest_batch()
            if batch is None:
                console.print("\n[yellow]No batches stored.[/yellow]\n")
                return
            batch_id = batch.id

        if unsolved:
            rows = services.batches.get_unsolved_problems(batch_id)
        else:
            rows = services.batches.get_problems_by_batch(batch_id)

        table = Table(title=f"\n🧮 Problems in {batch_id}")
        table.add_column("Id", style="cyan", no_wrap=True)
        table.add_column("Type", style="magenta")
        table.add_column("Difficulty")
        table.add_column("Equation", style="white")
        table.add_column("Status", style="green")

        for problem in rows:
            status = f"answered: {problem.user_answer}" if problem.is_completed else ""
            table.add_row(
                problem.id,
                problem.problem_type.value,
                problem.difficulty.value,
                escape(problem.equation),
                escape(status),
            )

        console.print(table)
        console.print(f"\nTotal: {len(rows)} problems\n")

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()


@cli.command(name='select-batch')
@click.argument('batch_id')
@click.pass_context
def select_batch(ctx, batch_id):
    """Make a stored batch the current one."""
    try:
        batch = _services(ctx).selection.select_batch(batch_id)
        console.print(f"\nCurrent batch: [cyan]{escape(batch.id)}[/cyan]\n")
    except LookupError as e:
        console.print(f"\n[red]{escape(str(e))}[/red]\n")
        raise click.Abort()
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()


@cli.command(name='next')
@click.pass_context
def next_problem(ctx):
    """Show the next unsolved problem."""
    try:
        problem = _services(ctx).selection.get_next_problem()
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()

    if problem is None:
        console.print("\n[yellow]No more problems available![/yellow]\n")
        return
    _print_problem(problem)


@cli.command()
@click.argument('problem_id')
@click.argument('user_answer')
@click.pass_context
def answer(ctx, problem_id, user_answer):
    """Submit an answer for a problem."""
    try:
        services = _services(ctx)
        problem = services.batches.get_problem_by_id(problem_id)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()

    if problem is None:
        console.print(f"\n[red]Problem '{escape(problem_id)}' not found.[/red]\n")
        raise click.Abort()
    if problem.is_completed:
        console.print(f"\n[yellow]Problem {escape(problem_id)} was already answered "
                      f"({escape(str(problem.user_answer))}); not recorded again.[/yellow]\n")
        return

    try:
        is_correct = services.checker(user_answer, problem.answer)
        progress = services.submission.submit_answer(problem_id, user_answer, is_correct)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()

    if is_correct:
        console.print("\n[bold green]✓ Correct![/bold green]")
    else:
        console.print(f"\n[bold red]✗ Incorrect.[/bold red] Expected: {escape(_format_answer(problem.answer))}")
    console.print(f"[dim]{progress.problems_correct}/{progress.problems_attempted} correct so far[/dim]\n")


@cli.command()
@click.option('--sync/--no-sync', 'do_sync', default=True, help='Sync first if a sync is due')
@click.pass_context
def practice(ctx, do_sync):
    """Practice problems interactively."""
    try:
        session = _services(ctx).session()
        if not do_sync:
            session.sync = None
        problem = session.start()
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()

    if session.last_sync is not None and not session.last_sync.success:
        console.print(f"[yellow]⚠️  Sync failed, using local problems: "
                      f"{escape(str(session.last_sync.error))}[/yellow]")

    while problem is not None:
        _print_problem(problem)
        reply = click.prompt("Answer ('?' solution, 'n' next, 'q' quit)", default="", show_default=False)
        reply = reply.strip()

        if reply == "q":
            break
        if reply == "n":
            if session.has_recorded(problem.id):
                problem = session.load_next()
            else:
                console.print("[dim]Answer this one first.[/dim]")
            continue
        if reply == "?":
            _print_solution(problem)
            session.show_solution()
            continue
        if not reply:
            continue

        outcome = session.answer(reply)
        if outcome.is_correct:
            console.print("[bold green]✓ Correct![/bold green]")
            problem = session.load_next()
        else:
            console.print("[bold red]✗ Not quite.[/bold red] Try again, or '?' for the solution.")
        if outcome.progress is not None:
            console.print(f"[dim]{outcome.progress.problems_correct}/"
                          f"{outcome.progress.problems_attempted} correct so far[/dim]")

    if problem is None:
        console.print("\n[yellow]No more problems available![/yellow]\n")


@cli.command()
@click.pass_context
def progress(ctx):
    """View your learning progress."""
    try:
        services = _services(ctx)
        record = services.progress.get_user_progress()
        stats = services.accuracy.get_topic_accuracy_stats()
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()

    console.print("\n[bold cyan]Overall Stats[/bold cyan]")
    if record is None:
        console.print("  No progress data available")
    else:
        console.print(f"  Problems attempted: {record.problems_attempted}")
        console.print(f"  Problems correct:   {record.problems_correct}")
        console.print(f"  Accuracy:           {round(record.accuracy * 100)}%")

    if not stats:
        console.print("\n[dim]No attempts yet[/dim]\n")
        return

    table = Table(title="\nAccuracy by Topic")
    table.add_column("Topic", style="cyan")
    table.add_column("Correct", style="green", justify="right")
    table.add_column("Incorrect", style="red", justify="right")
    table.add_column("Attempted", justify="right")
    for stat in stats:
        table.add_row(stat.problem_type, str(stat.correct), str(stat.incorrect), str(stat.attempted))
    console.print(table)
    console.print()


@cli.command()
@click.confirmation_option(prompt='Reset counters and mark every problem unsolved?')
@click.pass_context
def reset(ctx):
    """Reset progress counters and problem state."""
    try:
        _services(ctx).progress.reset_user_progress()
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()
    console.print("\n[green]Progress reset.[/green]\n")


@cli.command(name='delete-batch')
@click.argument('batch_id', required=False)
@click.option('--all', 'delete_all', is_flag=True, help='Delete every batch')
@click.pass_context
def delete_batch(ctx, batch_id, delete_all):
    """Delete a batch and its problems."""
    if not batch_id and not delete_all:
        raise click.UsageError("Give a BATCH_ID or --all")

    if delete_all:
        click.confirm("Delete every batch and problem?", abort=True)

    try:
        services = _services(ctx)
        if delete_all:
            services.batches.delete_all_batches()
        else:
            deleted = services.batches.delete_batch(batch_id)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}\n")
        raise click.Abort()

    if delete_all:
        console.print("\n[green]All batches deleted.[/green]\n")
    elif deleted:
        console.print(f"\n[green]Deleted batch {escape(batch_id)}.[/green]\n")
    else:
        console.print(f"\n[yellow]Batch '{escape(batch_id)}' not found.[/yellow]\n")


if __name__ == '__main__':
    cli()
