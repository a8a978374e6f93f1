"""Maintenance commands for the serve-markdown CLI."""

import click
from rich.console import Console

from serve_markdown.dependencies import get_database, get_site_settings_repository

console = Console()


@click.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
def uninstall(yes: bool):
    """Drop the access log table and delete the site settings file."""
    if not yes and not click.confirm("Drop the access log and delete saved settings?"):
        console.print("[yellow]Aborted[/yellow]")
        return

    database = get_database()
    database.drop_access_log()
    console.print(f"[green]Dropped access log table in {database.path}[/green]")

    settings_repository = get_site_settings_repository()
    if settings_repository.delete():
        console.print(f"[green]Deleted {settings_repository.path}[/green]")
    else:
        console.print("No saved site settings to delete")
