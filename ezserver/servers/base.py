"""
Base server classes for Minecraft server provisioning.

This module provides the abstract base class that drives a provisioning
run: resolve the version, prepare the directory, obtain the server jar,
download plugins, run the first boot and register the server. Nothing is
written to the directory until the version has resolved.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

from ..config.registry import Registry
from ..constants import (
    DEFAULT_PORT, FIRST_BOOT_STOP_DELAY_SECONDS, PORT_PROPERTY, SERVER_JAR_NAME,
)
from ..exceptions import (
    ConfigError, ConfigErrorCode, EZServerError, ServerInstallationError, ValidationError,
)
from ..models import (
    DownloadTarget, ManagedServer, PluginSource, ProcessOutcome, ProvisionResult, ServerKind, UniquenessCheck,
)
from ..process.build import BuildRunner
from ..process.supervisor import ProcessSupervisor
from ..utils.api import VersionResolver
from ..utils.base_api import ProgressCallback
from ..utils.download import Downloader
from ..utils.plugins import PluginResolver, download_plugins
from ..utils.properties import set_property

logger = logging.getLogger(__name__)


class BaseServer(ABC):
    """Abstract base class for Minecraft servers."""

    def __init__(
        self,
        name: str,
        version: str,
        directory: Union[str, Path],
        java_home: Optional[Union[str, Path]] = None,
        port: int = DEFAULT_PORT,
        resolver: Optional[VersionResolver] = None,
        downloader: Optional[Downloader] = None,
        build_runner: Optional[BuildRunner] = None,
        stop_delay: float = FIRST_BOOT_STOP_DELAY_SECONDS,
    ) -> None:
        if not isinstance(version, str) or not version.strip():
            raise ValidationError("Version must be a non-empty string")

        self.name = name
        self.version = version.strip()
        self.directory = Path(directory)
        self.java_home = str(java_home) if java_home else ""
        self.port = port
        self.stop_delay = stop_delay
        self.build_runner = build_runner or BuildRunner()

        self._resolver = resolver
        self._downloader = downloader
        self._owns_clients = resolver is None or downloader is None

    async def __aenter__(self) -> 'BaseServer':
        """Async context manager entry."""
        if self._resolver is None:
            self._resolver = VersionResolver()
        if self._downloader is None:
            self._downloader = Downloader()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._owns_clients:
            if self._resolver:
                await self._resolver.aclose()
            if self._downloader:
                await self._downloader.aclose()

    @property
    @abstractmethod
    def kind(self) -> ServerKind:
        """Return the server kind."""
        pass

    @property
    def resolver(self) -> VersionResolver:
        if self._resolver is None:
            raise ServerInstallationError("API client not initialized - server must be used as async context manager")
        return self._resolver

    @property
    def downloader(self) -> Downloader:
        if self._downloader is None:
            raise ServerInstallationError("Download manager not initialized")
        return self._downloader

    @property
    def server_jar_path(self) -> Path:
        """Get path to the server jar file."""
        return self.directory / SERVER_JAR_NAME

    def require_java(self, purpose: str) -> str:
        if not self.java_home:
            raise ValidationError(f"To {purpose}, you need java.")
        return self.java_home

    def to_managed(self) -> ManagedServer:
        """Registry record describing this server."""
        return ManagedServer(
            name=self.name,
            path=str(self.directory),
            java=self.java_home,
            kind=self.kind,
        )

    def prepare_directory(self) -> None:
        """Create the server directory with an accepted EULA and the port."""
        self.directory.mkdir(parents=True, exist_ok=True)
        (self.directory / "eula.txt").write_text("eula=true\n", encoding="utf-8")
        set_property(self.directory / "server.properties", PORT_PROPERTY, str(self.port))

    async def resolve_target(self) -> DownloadTarget:
        """Turn the requested version into the artifact to download."""
        return await self.resolver.resolve(self.kind, self.version, self.directory)

    async def obtain_server_jar(
        self, target: DownloadTarget, progress: Optional[ProgressCallback] = None
    ) -> Path:
        """Download the resolved server jar."""
        logger.info(f"Downloading {self.kind.value} server {self.version}...")
        return await self.downloader.fetch_target(target, progress)

    async def download_plugins(self, plugins: Sequence[PluginSource]) -> None:
        await download_plugins(
            self.directory, self.kind, plugins, PluginResolver(self.resolver), self.downloader
        )

    def create_supervisor(self, first_boot: bool = True, **kwargs: Any) -> ProcessSupervisor:
        """Supervisor that launches this server."""
        return ProcessSupervisor.for_server(
            self.kind,
            self.directory,
            self.require_java("run the server"),
            first_boot=first_boot,
            stop_delay=self.stop_delay,
            **kwargs,
        )

    async def run_first_boot(self) -> ProcessOutcome:
        """Start the server once and stop it as soon as it is ready."""
        logger.info("Running server jar for first start...")
        outcome = await self.create_supervisor(first_boot=True).run()
        if outcome.succeeded:
            logger.info("Server stopped.")
        else:
            logger.warning(f"First start of the server {outcome.describe()}")
        return outcome

    async def install(
        self,
        registry: Optional[Registry] = None,
        progress: Optional[ProgressCallback] = None,
        first_boot: bool = True,
        plugins: Sequence[PluginSource] = (),
    ) -> ProvisionResult:
        """
        Provision the server.

        Args:
            registry: Registry to add the server to, None to skip registration
            progress: Download progress callback for the server jar
            first_boot: Run the first-boot check when Java is available
            plugins: Plugins to download (Spigot and Paper only)

        Returns:
            The record, the first boot outcome and whether it was registered

        Raises:
            DownloadError, ConfigError, ValidationError: propagated untouched
            ServerInstallationError: for any other failure of a step
        """
        result = ProvisionResult(self.to_managed())
        if registry is not None:
            self._check_registry(registry, result.server)

        logger.info(f"Creating {self.kind.value} {self.version} server {self.name} in {self.directory}")
        target = await self._run_step("Version resolution", self.resolve_target)
        await self._run_step("Directory preparation", self.prepare_directory)
        await self._run_step("Server jar download", partial(self.obtain_server_jar, target, progress))
        if plugins:
            await self._run_step("Plugin download", partial(self.download_plugins, plugins))

        if not first_boot:
            logger.warning("Skipping first start of the server.")
        elif not self.java_home:
            logger.warning("You need Java to run the server. Install it and run the server jar.")
        else:
            result.first_boot = await self.run_first_boot()

        if registry is not None:
            if result.first_boot is None or result.first_boot.succeeded:
                registry.add(result.server)
                result.registered = True
                logger.info("Server added to config.")
            else:
                logger.warning("Server was not added to the config because its first start failed.")

        logger.info("Server created successfully.")
        return result

    @staticmethod
    async def _run_step(step_name: str, step_func: Callable[[], Any]) -> Any:
        try:
            logger.debug(f"Starting step: {step_name}")
            step_result = step_func()
            if asyncio.iscoroutine(step_result):
                step_result = await step_result
            logger.debug(f"Completed step: {step_name}")
            return step_result
        except EZServerError:
            raise
        except Exception as e:
            error_msg = f"Installation failed at step '{step_name}': {e}"
            logger.error(error_msg)
            raise ServerInstallationError(error_msg, cause=e) from e

    @staticmethod
    def _check_registry(registry: Registry, server: ManagedServer) -> None:
        check = registry.check_uniqueness(server)
        if check is UniquenessCheck.NAME_CONFLICT:
            raise ConfigError("Server with the same name already exists.", ConfigErrorCode.SERVER_EXISTS)
        if check is UniquenessCheck.PATH_CONFLICT:
            raise ConfigError("Server with the same path already exists.", ConfigErrorCode.SERVER_EXISTS)
