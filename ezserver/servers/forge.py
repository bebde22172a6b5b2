"""
Forge Minecraft server implementation.

Forge ships an installer rather than a server jar. The installer is run
with ``--installServer`` and leaves ``run.sh``/``run.bat`` scripts behind,
which are pointed at the selected Java before the first boot.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, Union

from ..constants import FORGE_UNIX_SCRIPT, FORGE_WINDOWS_SCRIPT
from ..models import DownloadTarget, ServerKind
from ..utils.base_api import ProgressCallback
from ..utils.system import java_executable
from .base import BaseServer

logger = logging.getLogger(__name__)


def point_run_scripts(
    directory: Union[str, Path],
    java_home: Union[str, Path],
    previous_java_home: Optional[Union[str, Path]] = None,
) -> List[Path]:
    """
    Make the Forge run scripts in ``directory`` launch ``java_home``'s java.

    The command at the start of a line is replaced: the bare ``java`` the
    installer writes, or the executable of ``previous_java_home`` from an
    earlier patch. The new path is quoted so it may contain spaces.

    Returns:
        The scripts that were rewritten
    """
    commands = [r"java\b"]
    if previous_java_home:
        old = re.escape(str(java_executable(previous_java_home)))
        commands[:0] = [f'"{old}"', old]
    pattern = re.compile(rf"^(\s*)(?:{'|'.join(commands)})", re.MULTILINE)
    quoted = f'"{java_executable(java_home)}"'

    patched = []
    for name in (FORGE_WINDOWS_SCRIPT, FORGE_UNIX_SCRIPT):
        script = Path(directory) / name
        if not script.exists():
            continue
        with open(script, "r", encoding="utf-8", newline="") as f:
            content = f.read()
        with open(script, "w", encoding="utf-8", newline="") as f:
            f.write(pattern.sub(lambda m: m.group(1) + quoted, content))
        logger.debug(f"Pointed {script.name} at {quoted}")
        patched.append(script)
    return patched


class ForgeServer(BaseServer):
    """Minecraft Forge server implementation."""

    @property
    def kind(self) -> ServerKind:
        return ServerKind.FORGE

    async def resolve_target(self) -> DownloadTarget:
        self.require_java("create a forge server")
        return await super().resolve_target()

    async def obtain_server_jar(
        self, target: DownloadTarget, progress: Optional[ProgressCallback] = None
    ) -> Path:
        """Download the Forge installer and install the server with it."""
        logger.info(f"Downloading Forge installer {target.label}...")
        installer = await self.downloader.fetch_target(target, progress)

        logger.info("Installing Forge server...")
        await self.build_runner.build(installer, self.directory, self.java_home, ["--installServer"])
        logger.info("Successfully installed Forge server")

        point_run_scripts(self.directory, self.java_home)
        return installer
