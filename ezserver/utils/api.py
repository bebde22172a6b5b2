"""
API utilities for resolving Minecraft server versions to downloads.

Each server kind has an adapter that turns a version spec (an exact
version or ``"latest"``) into a ``DownloadTarget``. Where an upstream
list is involved, "latest" always means the last element of the list as
the upstream orders it.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import httpx
from packaging import version as pkg_version

from ..constants import (
    BUILD_DIRECTORY_NAME, BUILDTOOLS_JAR_NAME, DEFAULT_JAVA_VERSION,
    DEFAULT_TIMEOUT_SECONDS, FORGE_MAVEN_URL, FORGE_PROMOTIONS_URL,
    JAVA_VERSION_THRESHOLDS, LATEST_VERSION, MOJANG_MANIFEST_URL,
    PAPER_API_URL, SERVER_JAR_NAME, SPIGOT_BUILDTOOLS_URL, SPIGOT_MIRROR_URL,
)
from ..exceptions import DownloadError, DownloadErrorCode
from ..models import DownloadTarget, ServerKind
from .base_api import BaseHTTPClient, BaseVersionAPI, json_object, version_not_found

logger = logging.getLogger(__name__)


class MojangAPI(BaseVersionAPI):
    """Vanilla server jars from the Mojang version manifest.

    The manifest is fetched once per adapter.
    """

    kind = ServerKind.VANILLA

    def __init__(self, client: BaseHTTPClient) -> None:
        super().__init__(client, MOJANG_MANIFEST_URL)
        self._manifest: Optional[Dict[str, Any]] = None

    async def get_manifest(self) -> Dict[str, Any]:
        if self._manifest is None:
            self._manifest = json_object(await self.get_json(self.base_url), self.base_url)
        return self._manifest

    async def get_latest_release(self) -> str:
        manifest = await self.get_manifest()
        return manifest["latest"]["release"]

    async def get_version_metadata(self, version_spec: str) -> Dict[str, Any]:
        """Fetch the per-version metadata document for a version spec."""
        manifest = await self.get_manifest()
        wanted = manifest.get("latest", {}).get("release") if version_spec == LATEST_VERSION else version_spec
        entry = next(
            (v for v in manifest.get("versions", []) if v.get("id") == wanted),
            None,
        )
        logger.debug(f"Using manifest version data: {entry}")
        if not entry or not entry.get("url"):
            raise version_not_found("[manifest] Version not found.")
        return json_object(await self.get_json(entry["url"]), entry["url"])

    async def resolve(self, version_spec: str, directory: Path, **options: Any) -> DownloadTarget:
        metadata = await self.get_version_metadata(version_spec)
        try:
            url = metadata["downloads"]["server"]["url"]
        except (KeyError, TypeError):
            raise version_not_found(f"No server download for vanilla {version_spec}") from None
        logger.debug(f"Using version data: {url}")
        return DownloadTarget(url, directory / SERVER_JAR_NAME, f"vanilla-{metadata.get('id', version_spec)}.jar")


class PaperAPI(BaseVersionAPI):
    """API client for Paper server."""

    kind = ServerKind.PAPER

    def __init__(self, client: BaseHTTPClient) -> None:
        super().__init__(client, PAPER_API_URL)

    async def get_available_versions(self) -> List[str]:
        """Get available Paper versions, oldest first."""
        data = json_object(await self.get_json(self.base_url), self.base_url)
        return list(data.get("versions", []))

    async def get_latest_version(self) -> str:
        versions = await self.get_available_versions()
        if not versions:
            raise version_not_found("No Paper versions found.")
        return versions[-1]

    async def get_builds(self, version: str) -> List[int]:
        """Get available builds for a Paper version, as the API orders them."""
        url = self.build_url(f"versions/{version}")
        data = json_object(await self.get_json(url), url)
        return list(data.get("builds", []))

    def get_download_url(self, version: str, build: int) -> str:
        """Get Paper download URL for specific version and build."""
        return self.build_url(
            f"versions/{version}/builds/{build}/downloads/paper-{version}-{build}.jar"
        )

    async def resolve(self, version_spec: str, directory: Path, **options: Any) -> DownloadTarget:
        if version_spec == LATEST_VERSION:
            selected = await self.get_latest_version()
            logger.debug(f"Latest Paper version: {selected}")
        else:
            selected = version_spec

        builds = await self.get_builds(selected)
        if not builds:
            raise DownloadError("No builds found for Paper.", DownloadErrorCode.NO_BUILDS)
        build = builds[-1]
        logger.debug(f"Using Paper build: {build}")
        return DownloadTarget(
            self.get_download_url(selected, build),
            directory / SERVER_JAR_NAME,
            f"paper-{selected}-{build}.jar",
        )


class ForgeAPI(BaseVersionAPI):
    """
    Forge installers from the promotions feed.

    The newest Minecraft line is taken to be the last key of the feed.
    That holds only while the feed stays sorted oldest to newest, which
    its format does not promise.
    """

    kind = ServerKind.FORGE

    def __init__(self, client: BaseHTTPClient) -> None:
        super().__init__(client, FORGE_PROMOTIONS_URL)

    async def get_promotions(self) -> Dict[str, str]:
        data = json_object(await self.get_json(self.base_url), self.base_url)
        return dict(data.get("promos", {}))

    async def get_minecraft_versions(self) -> List[str]:
        """Minecraft lines with a promoted Forge build, in feed order."""
        versions: List[str] = []
        for key in await self.get_promotions():
            line = key.split("-")[0]
            if line not in versions:
                versions.append(line)
        return versions

    def get_installer_url(self, forge_version: str) -> str:
        return f"{FORGE_MAVEN_URL}/{forge_version}/forge-{forge_version}-installer.jar"

    async def resolve(self, version_spec: str, directory: Path, **options: Any) -> DownloadTarget:
        promos = await self.get_promotions()
        if not promos:
            raise version_not_found("No Forge versions found.")

        if version_spec == LATEST_VERSION:
            newest_key = list(promos)[-1]
            minecraft_version = newest_key.split("-")[0]
            logger.debug(f"Latest Forge line: {minecraft_version}")
        else:
            minecraft_version = version_spec

        build = promos.get(f"{minecraft_version}-latest")
        if not build:
            raise version_not_found("Version not found for Forge.")

        forge_version = f"{minecraft_version}-{build}"
        logger.debug(f"Selected Forge version: {forge_version}")
        file_name = f"forge-{forge_version}-installer.jar"
        return DownloadTarget(self.get_installer_url(forge_version), directory / file_name, file_name)


class SpigotAPI(BaseVersionAPI):
    """Spigot jars, either prebuilt from a mirror or built with BuildTools."""

    kind = ServerKind.SPIGOT

    def __init__(self, client: BaseHTTPClient) -> None:
        super().__init__(client, SPIGOT_MIRROR_URL)

    async def resolve(
        self,
        version_spec: str,
        directory: Path,
        use_build: bool = False,
        **options: Any,
    ) -> DownloadTarget:
        if use_build:
            return DownloadTarget(
                SPIGOT_BUILDTOOLS_URL,
                directory / BUILD_DIRECTORY_NAME / BUILDTOOLS_JAR_NAME,
                BUILDTOOLS_JAR_NAME,
            )
        if version_spec == LATEST_VERSION:
            raise version_not_found(
                "The Spigot mirror needs an exact version; use BuildTools for latest."
            )
        return DownloadTarget(
            self.base_url.format(version=version_spec),
            directory / SERVER_JAR_NAME,
            f"spigot-{version_spec}.jar",
        )


class VersionResolver(BaseHTTPClient):
    """Maps a (server kind, version spec) pair to a download target."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(timeout, transport)
        self.mojang = MojangAPI(self)
        self.paper = PaperAPI(self)
        self.forge = ForgeAPI(self)
        self._apis: Dict[ServerKind, BaseVersionAPI] = {
            ServerKind.VANILLA: self.mojang,
            ServerKind.PAPER: self.paper,
            ServerKind.FORGE: self.forge,
            ServerKind.SPIGOT: SpigotAPI(self),
        }

    def _api_for(self, kind: ServerKind) -> BaseVersionAPI:
        api = self._apis.get(kind)
        if api is None:
            raise DownloadError("Unsupported server type.", DownloadErrorCode.UNSUPPORTED_KIND)
        return api

    async def resolve(
        self,
        kind: ServerKind,
        version_spec: str,
        directory: Path,
        use_build: bool = False,
    ) -> DownloadTarget:
        """
        Resolve a version spec for a server kind.

        Args:
            kind: Server kind
            version_spec: Exact version or "latest"
            directory: Server directory the artifact belongs to
            use_build: Spigot only, resolve BuildTools instead of a prebuilt jar

        Returns:
            The artifact to download

        Raises:
            DownloadError: VERSION_NOT_FOUND, NO_BUILDS or UNSUPPORTED_KIND
            APIError: If an upstream API cannot be reached or parsed
        """
        logger.debug(f"Getting version for type {kind.value} and version {version_spec}")
        api = self._api_for(kind)
        return await api.resolve(version_spec, Path(directory), use_build=use_build)

    async def latest_version(self, kind: ServerKind) -> str:
        """Latest release known upstream for vanilla and Paper."""
        if kind is ServerKind.VANILLA:
            return await self.mojang.get_latest_release()
        if kind is ServerKind.PAPER:
            return await self.paper.get_latest_version()
        raise DownloadError("Unsupported server type.", DownloadErrorCode.UNSUPPORTED_KIND)

    async def available_versions(self, kind: ServerKind) -> List[str]:
        """Known versions of a kind, oldest first."""
        if kind is ServerKind.VANILLA:
            manifest = await self.mojang.get_manifest()
            releases = [v["id"] for v in manifest.get("versions", []) if v.get("type") == "release"]
            # The manifest lists the newest release first
            return releases[::-1]
        if kind is ServerKind.PAPER:
            return await self.paper.get_available_versions()
        if kind is ServerKind.FORGE:
            return await self.forge.get_minecraft_versions()
        raise DownloadError("Unsupported server type.", DownloadErrorCode.UNSUPPORTED_KIND)

    async def java_version(self, minecraft_version: str) -> int:
        """Major Java version a Minecraft version needs."""
        try:
            metadata = await self.mojang.get_version_metadata(minecraft_version)
        except DownloadError:
            metadata = {}
        major = metadata.get("javaVersion", {}).get("majorVersion")
        if major:
            return int(major)
        return fallback_java_version(minecraft_version)

    async def java_versions(self, minecraft_versions: Sequence[str]) -> Dict[str, int]:
        """Java requirement of each version, metadata fetched concurrently."""
        await self.mojang.get_manifest()
        majors = await asyncio.gather(*(self.java_version(v) for v in minecraft_versions))
        return dict(zip(minecraft_versions, majors))


def fallback_java_version(minecraft_version: str) -> int:
    """Java version guess for versions without javaVersion metadata."""
    try:
        parsed = pkg_version.parse(minecraft_version)
    except pkg_version.InvalidVersion:
        return DEFAULT_JAVA_VERSION
    for threshold, java in JAVA_VERSION_THRESHOLDS:
        if parsed >= pkg_version.parse(threshold):
            return java
    return DEFAULT_JAVA_VERSION
