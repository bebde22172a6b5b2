"""
Input checks run by the command line before anything is downloaded or
written. Every failure raises ``ValidationError`` with a message meant
for the user.
"""

import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..constants import (
    FORBIDDEN_SYSTEM_PATHS, LATEST_VERSION, MAX_PORT, MAX_SERVER_NAME_LENGTH,
    MIN_PORT, RESERVED_PATH_NAMES, VERSION_SPEC_PATTERN,
)
from ..exceptions import ValidationError
from ..models import ServerKind


def _text(value: Any, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} cannot be empty")
    return value.strip()


def _inside(path: Path, root: str) -> bool:
    text = str(path)
    return text == root or text.startswith(root + "/")


class ServerValidator:
    """Checks for the fields of a managed server."""

    @staticmethod
    def validate_name(name: Any) -> str:
        """A server name doubles as its default directory name."""
        name = _text(name, "Server name")
        if len(name) > MAX_SERVER_NAME_LENGTH:
            raise ValidationError("Server name too long")
        if name.endswith("."):
            raise ValidationError("Server name cannot end with a period")
        if name.upper() in RESERVED_PATH_NAMES:
            raise ValidationError(f"'{name}' is a reserved name")
        return name

    @staticmethod
    def validate_version(version: Any) -> str:
        """``N.N``, ``N.N.N`` or ``latest`` in any case."""
        version = _text(version, "Version")
        if version.lower() == LATEST_VERSION:
            return LATEST_VERSION
        if re.match(VERSION_SPEC_PATTERN, version) is None:
            raise ValidationError("Invalid version number")
        return version

    @staticmethod
    def validate_port(port: Any) -> int:
        if isinstance(port, str) and port.strip().isdigit():
            port = int(port)
        if isinstance(port, bool) or not isinstance(port, int):
            raise ValidationError("Server port must be a whole number")
        if not MIN_PORT <= port <= MAX_PORT:
            raise ValidationError(f"Server port must be between {MIN_PORT} and {MAX_PORT}")
        return port

    @staticmethod
    def validate_server_directory(directory: Union[str, Path]) -> Path:
        try:
            path = Path(directory).expanduser().resolve()
        except (TypeError, OSError, RuntimeError) as e:
            raise ValidationError(f"Invalid directory path: {e}") from e

        if any(_inside(path, root) for root in FORBIDDEN_SYSTEM_PATHS):
            raise ValidationError("Cannot install to system directories")
        return path


def validate_create_input(
    name: str,
    server_type: str,
    version: str,
    port: Union[int, str],
    directory: Optional[Union[str, Path]] = None,
) -> Dict[str, Any]:
    """
    Validate the arguments of ``ezserver create``.

    The directory defaults to ``./<name>``. Raises ``ValidationError`` for
    bad input and ``DownloadError`` (UNSUPPORTED_KIND) for an unknown type.
    """
    name = ServerValidator.validate_name(name)
    if directory is None:
        directory = Path.cwd() / name
    return {
        "name": name,
        "kind": ServerKind.parse(server_type),
        "version": ServerValidator.validate_version(version),
        "port": ServerValidator.validate_port(port),
        "directory": ServerValidator.validate_server_directory(directory),
    }
