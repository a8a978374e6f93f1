"""Access log commands for the serve-markdown CLI."""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from serve_markdown.dependencies import (
    get_access_log_repository,
    get_settings,
    get_site_settings_repository,
)

console = Console()


@click.command()
def stats():
    """Show total, today's and per-bot access counts."""
    timezone = get_settings().default_timezone
    summary = get_access_log_repository().stats(timezone=timezone)

    console.print(f"\n[bold]Total requests:[/bold] {summary.total}")
    console.print(f"[bold]Today ({timezone}):[/bold] {summary.today}\n")

    if not summary.bots:
        console.print("[yellow]No Markdown requests logged yet[/yellow]")
        return

    table = Table(title="Requests by client")
    table.add_column("Client")
    table.add_column("Requests", justify="right")
    for bot in summary.bots:
        table.add_row(bot.bot_name, str(bot.count))
    console.print(table)


@click.command()
@click.option("--page", "-p", default=1, show_default=True, type=click.IntRange(min=1))
@click.option("--per-page", default=30, show_default=True, type=click.IntRange(min=1, max=200))
@click.option("--bot", "-b", default="", help="Only show rows for this client label.")
def log(page: int, per_page: int, bot: str):
    """List logged Markdown requests, newest first."""
    result = get_access_log_repository().query(per_page=per_page, page=page, bot=bot.strip())

    if not result.rows:
        console.print("[yellow]No entries found[/yellow]")
        return

    table = Table(title=f"Markdown requests (page {result.page} of {result.pages})")
    table.add_column("Time (UTC)")
    table.add_column("Item", justify="right")
    table.add_column("URL")
    table.add_column("Client")
    table.add_column("Method")
    table.add_column("IP")
    for row in result.rows:
        table.add_row(
            row.created_at,
            str(row.item_id),
            escape(row.url),
            row.bot_name,
            row.method,
            row.ip_address or "-",
        )
    console.print(table)
    console.print(f"{result.total} entries")


@click.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
def clear(yes: bool):
    """Delete every access log entry."""
    if not yes and not click.confirm("Delete all access log entries?"):
        console.print("[yellow]Aborted[/yellow]")
        return

    deleted = get_access_log_repository().clear_all()
    console.print(f"[green]Deleted {deleted} entries[/green]")


@click.command()
def sweep():
    """Apply retention and size caps from the site settings now."""
    policy = get_site_settings_repository().current().log_policy()
    repository = get_access_log_repository()

    expired = repository.retention_sweep(policy.retention_days)
    evicted = repository.size_sweep(
        max_entries=policy.max_entries,
        max_size_mb=policy.max_size_mb,
    )

    console.print(f"Retention ({policy.retention_days} days): removed {expired}")
    console.print(
        f"Size caps ({policy.max_entries} rows, {policy.max_size_mb} MB): removed {evicted}"
    )
    console.print(f"[green]{repository.count()} entries remain[/green]")
