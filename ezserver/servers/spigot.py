"""
Spigot Minecraft server implementation.

This module provides the SpigotServer class, which either downloads a
prebuilt jar from a mirror or compiles Spigot with BuildTools.
"""

import logging
import shutil
from pathlib import Path
from typing import Any, Optional

from ..constants import BUILD_DIRECTORY_NAME
from ..exceptions import ServerInstallationError
from ..models import DownloadTarget, ServerKind
from ..utils.base_api import ProgressCallback
from .base import BaseServer

logger = logging.getLogger(__name__)


class SpigotServer(BaseServer):
    """Spigot Minecraft server implementation."""

    def __init__(self, *args: Any, use_build: bool = False, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.use_build = use_build

    @property
    def kind(self) -> ServerKind:
        return ServerKind.SPIGOT

    @property
    def build_directory(self) -> Path:
        """Get the build directory for Spigot compilation."""
        return self.directory / BUILD_DIRECTORY_NAME

    async def resolve_target(self) -> DownloadTarget:
        if not self.use_build:
            return await super().resolve_target()
        self.require_java("create a spigot server with BuildTools")
        return await self.resolver.resolve(self.kind, self.version, self.directory, use_build=True)

    async def obtain_server_jar(
        self, target: DownloadTarget, progress: Optional[ProgressCallback] = None
    ) -> Path:
        """Download or compile the Spigot server jar."""
        if not self.use_build:
            return await super().obtain_server_jar(target, progress)

        self.build_directory.mkdir(parents=True, exist_ok=True)
        buildtools = await self.downloader.fetch_target(target, progress)

        logger.info(f"Compiling Spigot {self.version}... This may take several minutes.")
        await self.build_runner.build(
            buildtools, self.build_directory, self.java_home, ["--rev", self.version]
        )
        logger.info("BuildTools finished.")

        compiled = self.find_compiled_jar()
        shutil.move(str(compiled), str(self.server_jar_path))
        logger.debug(f"Moved {compiled.name} to {self.server_jar_path}")

        shutil.rmtree(self.build_directory)
        logger.info("BuildTools folder deleted.")
        return self.server_jar_path

    def find_compiled_jar(self) -> Path:
        """Locate the jar BuildTools produced."""
        for candidate in sorted(self.build_directory.iterdir()):
            if candidate.name.startswith("spigot-") and candidate.name.endswith(".jar"):
                return candidate
        raise ServerInstallationError("Spigot JAR not found.")
