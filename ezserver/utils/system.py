"""
System utilities for cross-platform support.

Java discovery is left to the caller; this module only turns a Java home
directory into the executable to launch.
"""

import logging
import platform
from pathlib import Path
from typing import Union

from ..exceptions import JavaError

logger = logging.getLogger(__name__)


class SystemInfo:
    """Provides information about the current system."""

    @staticmethod
    def get_platform() -> str:
        """Get the current platform (linux, darwin, windows)."""
        return platform.system().lower()

    @staticmethod
    def is_windows() -> bool:
        return SystemInfo.get_platform() == "windows"


def java_executable(java_home: Union[str, Path]) -> Path:
    """Path of the java binary inside a Java home."""
    name = "java.exe" if SystemInfo.is_windows() else "java"
    return Path(java_home) / "bin" / name


def validate_java_home(java_home: Union[str, Path]) -> Path:
    """
    Check that a Java home contains a java binary.

    Raises:
        JavaError: If the directory or its bin/java is missing
    """
    executable = java_executable(java_home)
    if not executable.is_file():
        raise JavaError(f"No Java executable found in {java_home}")
    logger.debug(f"Using Java at {executable}")
    return executable
