"""Main CLI entry point for flowdrive.

Defines the CLI group and registers all subcommands.

Commands:
    serve   - Run the credential admin server
    status  - Show authorization status of a credentials node
    config  - Configuration commands
        show - Display current configuration (secrets masked)
        path - Show config file path

Usage:
    flowdrive -h, --help      Show help message
    flowdrive -v, --version   Show version
    flowdrive serve           Start the admin server
    flowdrive status NODE_ID  Query a running server
    flowdrive config show     Display configuration
    flowdrive config path     Show config file path
"""

import sys

import click

from flowdrive import __version__

from .commands.config import config
from .commands.serve import serve
from .commands.status import status


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  flowdrive config path                 Where the config file lives
  flowdrive serve                       Start the admin server
  open http://127.0.0.1:1880/google-credentials/auth?clientId=...&id=NODE&callback=...

Environment:
  FLOWDRIVE_CONFIG        Override the config file location
  FLOWDRIVE_CORS_ORIGINS  Comma-separated origins allowed to call the API
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """flowdrive: Google Drive credentials for flow runtimes."""
    if version:
        click.echo(f"flowdrive {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(serve)
cli.add_command(status)
cli.add_command(config)


def main() -> None:
    """CLI entry point."""
    cli()
