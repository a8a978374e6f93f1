"""Content commands for the serve-markdown CLI."""

import click
from rich.console import Console

from serve_markdown.dependencies import (
    get_content_repository,
    get_markdown_pipeline,
    get_site_settings_repository,
)
from serve_markdown.services.markup_transformer import html_to_markdown

console = Console(stderr=True)


@click.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--title", "-t", default="", help="Heading placed above the converted body.")
def convert(source, title: str):
    """Convert an HTML file (or - for stdin) to Markdown."""
    markdown = html_to_markdown(source.read(), title)
    if not markdown:
        console.print("[yellow]Nothing to convert[/yellow]")
        return
    click.echo(markdown, nl=False)


@click.command()
@click.argument("path")
def render(path: str):
    """Print the Markdown document served for a content PATH."""
    content = get_content_repository()
    pipeline = get_markdown_pipeline()

    item_id = content.resolve_path(path)
    item = content.get(item_id) if item_id is not None else None
    if item is None:
        console.print(f"[red]No content at: {path}[/red]")
        raise SystemExit(1)

    settings = get_site_settings_repository().current()
    reason = pipeline.check_eligibility(item, settings)
    if reason is not None:
        console.print(f"[yellow]Not served as Markdown ({reason})[/yellow]")
        raise SystemExit(1)

    click.echo(pipeline.render_document(item, settings), nl=False)
