"""
Plugin downloads for Bukkit-compatible servers.

Plugins come from Spiget (by SpigotMC resource id) or from the latest
GitHub release of a repository (by asset name pattern). All plugins of a
server are fetched concurrently into its ``plugins`` directory.
"""

import fnmatch
import logging
from pathlib import Path
from typing import Iterable, List

from ..constants import GITHUB_API_URL, PLUGIN_CAPABLE_KINDS, PLUGINS_DIRECTORY_NAME, SPIGET_API_URL
from ..exceptions import ValidationError
from ..models import DownloadTarget, PluginSource, ServerKind
from .base_api import BaseHTTPClient, json_object, version_not_found
from .download import Downloader

logger = logging.getLogger(__name__)


def has_plugin_support(kind: ServerKind) -> bool:
    """Whether servers of this kind load Bukkit plugins."""
    return kind.value in PLUGIN_CAPABLE_KINDS


class PluginResolver:
    """Turns plugin sources into download targets."""

    def __init__(self, client: BaseHTTPClient) -> None:
        self.client = client

    async def resolve(self, source: PluginSource, plugins_dir: Path) -> DownloadTarget:
        destination = plugins_dir / source.file_name
        if source.spiget_id is not None:
            url = f"{SPIGET_API_URL}/resources/{source.spiget_id}/download"
            return DownloadTarget(url, destination, source.file_name)
        if source.github_repo:
            return DownloadTarget(await self._github_asset_url(source), destination, source.file_name)
        raise ValidationError(f"Plugin {source.name} has no download source")

    async def _github_asset_url(self, source: PluginSource) -> str:
        url = f"{GITHUB_API_URL}/repos/{source.github_repo}/releases/latest"
        release = json_object(await self.client.get_json_async(url), url)
        for asset in release.get("assets", []):
            if fnmatch.fnmatch(asset.get("name", ""), source.asset_pattern):
                logger.debug(f"Using asset {asset['name']} for plugin {source.name}")
                return asset["browser_download_url"]
        raise version_not_found(
            f"No asset matching {source.asset_pattern} in {source.github_repo} latest release"
        )


async def download_plugins(
    server_dir: Path,
    kind: ServerKind,
    sources: Iterable[PluginSource],
    resolver: PluginResolver,
    downloader: Downloader,
) -> List[Path]:
    """
    Download plugins for a server.

    Args:
        server_dir: Server directory; plugins land in its plugins folder
        kind: Server kind, must support plugins
        sources: Plugins to download
        resolver: Resolver for plugin download URLs
        downloader: Downloader used for the fetches

    Returns:
        Paths of the downloaded plugin jars
    """
    if not has_plugin_support(kind):
        raise ValidationError(f"Plugins are not supported for a {kind.value} server.")

    plugins_dir = Path(server_dir) / PLUGINS_DIRECTORY_NAME
    plugins_dir.mkdir(parents=True, exist_ok=True)

    targets = [await resolver.resolve(source, plugins_dir) for source in sources]
    logger.info(f"Downloading {len(targets)} plugin(s)...")
    return await downloader.fetch_all(targets)


def parse_plugin_source(text: str) -> PluginSource:
    """
    Parse a plugin source written as ``NAME=spiget:ID`` or
    ``NAME=github:OWNER/REPO[:PATTERN]``.
    """
    name, sep, source = text.partition("=")
    name = name.strip()
    if not sep or not name:
        raise ValidationError(f"Invalid plugin '{text}', expected NAME=SOURCE")

    provider, _, location = source.partition(":")
    provider = provider.strip().lower()
    if provider == "spiget":
        if not location.strip().isdigit():
            raise ValidationError(f"Invalid Spiget resource id for plugin {name}: {location!r}")
        return PluginSource(name, spiget_id=int(location))
    if provider == "github":
        repo, _, pattern = location.partition(":")
        if repo.count("/") != 1 or not all(repo.split("/")):
            raise ValidationError(f"Invalid GitHub repository for plugin {name}: {repo!r}")
        return PluginSource(name, github_repo=repo, asset_pattern=pattern or "*.jar")
    raise ValidationError(f"Unknown plugin source '{provider}' for plugin {name}")
