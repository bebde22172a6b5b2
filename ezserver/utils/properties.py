"""Reading and editing ``server.properties`` files."""

import logging
from pathlib import Path
from typing import Dict, Union

logger = logging.getLogger(__name__)


def read_properties(path: Union[str, Path]) -> Dict[str, str]:
    """Parse ``key=value`` lines, skipping blanks and ``#`` comments."""
    properties: Dict[str, str] = {}
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:
                continue
            key, value = stripped.split("=", 1)
            properties[key.strip()] = value
    return properties


def set_property(path: Union[str, Path], key: str, value: str) -> None:
    """
    Set one key, leaving every other line exactly as it was.

    Only the first line defining ``key`` is rewritten. The key is appended
    when the file does not define it, and the file is created if missing.
    """
    path = Path(path)
    lines = []
    if path.exists():
        with open(path, "r", encoding="utf-8", newline="") as f:
            lines = f.read().splitlines(keepends=True)

    for index, line in enumerate(lines):
        if line.split("=", 1)[0].strip() == key and "=" in line and not line.lstrip().startswith("#"):
            ending = line[len(line.rstrip("\r\n")):]
            lines[index] = f"{key}={value}{ending}"
            break
    else:
        if lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
        lines.append(f"{key}={value}\n")

    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write("".join(lines))
    logger.debug(f"Set {key}={value} in {path}")
