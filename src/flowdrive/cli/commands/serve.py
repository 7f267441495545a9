"""Serve command for flowdrive CLI.

Runs the credential admin server.
"""

import sys
from pathlib import Path

import click
import uvicorn

from flowdrive import __version__
from flowdrive.api.security import ADMIN_TOKEN_ENV, generate_token, resolve_admin_token
from flowdrive.api.server import create_api_app
from flowdrive.runtime.bootstrap import build_runtime
from flowdrive.telemetry.system.system_logger import configure_system_logger
from flowdrive.utils.config import get_config_path, load_config


@click.command()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: OS config dir or $FLOWDRIVE_CONFIG)",
)
@click.option("--host", default=None, help="Override bind address from config")
@click.option("--port", type=int, default=None, help="Override bind port from config")
def serve(config_file: Path | None, host: str | None, port: int | None) -> None:
    """Run the credential admin server.

    Restores persisted tokens for every configured node, refreshes expired
    ones and serves the OAuth handshake and status routes.
    """
    try:
        loaded_config = load_config(config_file)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)

    configure_system_logger(loaded_config.logging.log_level, loaded_config.logging.log_dir)
    runtime = build_runtime(loaded_config)
    admin_token = resolve_admin_token(loaded_config)
    generated_token = admin_token is None
    if generated_token:
        admin_token = generate_token()
    app = create_api_app(runtime, admin_token=admin_token)

    bind_host = host or loaded_config.api.host
    bind_port = port or loaded_config.api.port

    click.echo(f"flowdrive v{__version__}", err=True)
    click.echo(f"Config: {config_file or get_config_path()}", err=True)
    click.echo(f"Settings: {loaded_config.runtime.settings_path}", err=True)
    click.echo(f"Credential nodes: {len(loaded_config.nodes)}", err=True)
    if generated_token:
        click.echo(f"Admin token (export as {ADMIN_TOKEN_ENV} for CLI commands): {admin_token}", err=True)
    click.echo("-" * 50, err=True)

    uvicorn.run(app, host=bind_host, port=bind_port, log_level=loaded_config.logging.log_level.lower())
