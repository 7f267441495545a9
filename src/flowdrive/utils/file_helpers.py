"""File helpers shared by config loading and settings storage."""

from __future__ import annotations

__all__ = [
    "atomic_write_json",
    "load_validated_json",
    "require_file_exists",
]

import json
import os
import tempfile
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def require_file_exists(path: Path, *, file_type: str) -> None:
    """Raise FileNotFoundError with a readable message if path is missing.

    Args:
        path: File to check.
        file_type: Human-readable file kind for the message.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    if not path.exists():
        raise FileNotFoundError(f"{file_type.capitalize()} file not found: {path}")


def load_validated_json(
    path: Path,
    model: type[ModelT],
    *,
    file_type: str,
    recovery_hint: str,
    encoding: str = "utf-8",
) -> ModelT:
    """Load a JSON file and validate it against a pydantic model.

    Args:
        path: File to read.
        model: Pydantic model class.
        file_type: Human-readable file kind for error messages.
        recovery_hint: Appended to error messages.
        encoding: File encoding.

    Returns:
        Validated model instance.

    Raises:
        ValueError: If the file is not valid JSON or fails validation.
    """
    try:
        with open(path, encoding=encoding) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_type} file {path}: {e}. {recovery_hint}") from e

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid {file_type} file {path}:\n{e}\n{recovery_hint}") from e


def atomic_write_json(path: Path, data: Any, *, mode: int = 0o600) -> None:
    """Write JSON to path atomically (temp file + rename).

    Readers never observe a half-written file. The file is created with
    the given permissions before content is written.

    Args:
        path: Destination file.
        data: JSON-serializable data.
        mode: File permissions.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        os.fchmod(fd, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=4)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
