"""Config path resolution."""

from __future__ import annotations

__all__ = ["CONFIG_FILENAME", "get_config_path", "load_config"]

import os
from pathlib import Path

import click

from flowdrive.config import AppConfig

CONFIG_FILENAME = "flowdrive_config.json"


def get_config_path() -> Path:
    """Return the config file path.

    FLOWDRIVE_CONFIG overrides the OS-appropriate default from click.get_app_dir.
    """
    override = os.environ.get("FLOWDRIVE_CONFIG")
    if override:
        return Path(override)
    return Path(click.get_app_dir("flowdrive")) / CONFIG_FILENAME


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from path, or defaults if the default file is absent.

    An explicitly given path must exist.
    """
    if config_path is not None:
        return AppConfig.load_from_files(config_path)

    path = get_config_path()
    if not path.exists():
        return AppConfig()
    return AppConfig.load_from_files(path)
