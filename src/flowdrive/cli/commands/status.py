"""Status command for flowdrive CLI.

Queries a running server for a credentials node's authorization state.
"""

import json
from datetime import datetime, timezone

import click

from flowdrive.cli.api_client import api_request
from flowdrive.utils.config import load_config


def _format_timestamp(value: int | None) -> str:
    if not value:
        return "-"
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat(timespec="seconds")


@click.command()
@click.argument("node_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON response")
def status(node_id: str, as_json: bool) -> None:
    """Show authorization status of NODE_ID."""
    try:
        loaded_config = load_config()
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    result = api_request("GET", f"/google-credentials/{node_id}/status", config=loaded_config)
    if as_json or not isinstance(result, dict):
        click.echo(json.dumps(result, indent=2))
        return

    authorized = result.get("has_access_token") and result.get("has_refresh_token")
    click.echo(f"Node: {node_id}")
    click.echo(f"Authorized: {'yes' if authorized else 'no'}")
    click.echo(f"Access token: {'present' if result.get('has_access_token') else 'missing'}")
    click.echo(f"Refresh token: {'present' if result.get('has_refresh_token') else 'missing'}")
    click.echo(f"Access token expires: {_format_timestamp(result.get('expiry_date'))}")
    click.echo(f"Refresh token expires: {_format_timestamp(result.get('refresh_token_expiry_date'))}")
