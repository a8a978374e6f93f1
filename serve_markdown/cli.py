"""Admin CLI for the Markdown gateway."""

import click

from serve_markdown.commands import access_log, content, maintenance
from serve_markdown.logging_config import configure_cli_logging


@click.group()
@click.version_option(version="0.1.0")
@click.option("--log-level", default="WARNING", show_default=True, help="Console log level.")
def main(log_level: str):
    """serve-markdown - inspect and maintain the Markdown access log."""
    configure_cli_logging(log_level)


# Access log commands
main.add_command(access_log.stats)
main.add_command(access_log.log)
main.add_command(access_log.clear)
main.add_command(access_log.sweep)

# Content commands
main.add_command(content.convert)
main.add_command(content.render)

# Maintenance commands
main.add_command(maintenance.uninstall)


if __name__ == "__main__":
    main()
