"""Config commands for flowdrive CLI."""

import json

import click

from flowdrive.utils.config import get_config_path, load_config


@click.group()
def config() -> None:
    """Configuration management commands."""


@config.command("path")
def config_path() -> None:
    """Show config file path."""
    path = get_config_path()
    click.echo(str(path))
    if not path.exists():
        click.echo("(file does not exist; defaults are used)", err=True)


@config.command("show")
def config_show() -> None:
    """Display current configuration. Secrets are masked."""
    try:
        loaded_config = load_config()
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(loaded_config.model_dump(mode="json"), indent=2))
