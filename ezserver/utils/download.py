"""
Streaming file downloads with progress tracking.

A 404 from the upstream is reported as ``VERSION_NOT_FOUND`` because every
artifact URL here is derived from a version; any other HTTP or transport
failure is raised as the original ``httpx`` exception. Failures while
writing the destination file surface as ``OSError``.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

import httpx

from ..constants import DOWNLOAD_CHUNK_SIZE, DOWNLOAD_TIMEOUT_SECONDS
from ..exceptions import DownloadError, DownloadErrorCode
from ..models import DownloadTarget
from .base_api import BaseHTTPClient, ProgressCallback

logger = logging.getLogger(__name__)


class Downloader(BaseHTTPClient):
    """Fetches artifacts to disk."""

    def __init__(
        self,
        timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the downloader.

        Args:
            timeout: Download timeout in seconds
            chunk_size: Size of chunks to read at once
            transport: Optional httpx transport, mainly for tests
        """
        super().__init__(timeout, transport)
        self.chunk_size = chunk_size

    async def fetch(
        self,
        url: str,
        destination: Union[str, Path],
        display_name: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """
        Download ``url`` to ``destination``.

        Args:
            url: URL to download from
            destination: Local file path to save to; its parent must exist
            display_name: Name used in log messages
            progress: Optional callback receiving (downloaded, total) bytes.
                When the server sends no content-length, total grows with
                every chunk so it never falls behind downloaded.

        Returns:
            The destination path

        Raises:
            DownloadError: DESTINATION_NOT_FOUND before any request is made,
                VERSION_NOT_FOUND if the server answers 404
        """
        destination = Path(destination)
        if not destination.parent.is_dir():
            raise DownloadError(
                "Destination directory does not exist.",
                DownloadErrorCode.DESTINATION_NOT_FOUND,
            )

        name = display_name or url.rstrip("/").rsplit("/", 1)[-1] or "unknown"
        logger.debug(f"Downloading file from {url} to {destination}")

        async with self.async_client.stream("GET", url) as response:
            if response.status_code == 404:
                raise DownloadError(
                    "Version not found",
                    DownloadErrorCode.VERSION_NOT_FOUND,
                )
            response.raise_for_status()

            content_length = response.headers.get("content-length")
            total = int(content_length) if content_length else 0
            logger.debug(f"Total length: {content_length or 'unknown'} bytes")
            logger.info(f"Downloading {name}...")

            downloaded = 0
            with open(destination, "wb") as file:
                async for chunk in response.aiter_bytes(chunk_size=self.chunk_size):
                    file.write(chunk)
                    downloaded += len(chunk)
                    if not content_length:
                        total += len(chunk)
                    if progress:
                        progress(downloaded, total)

        logger.info(f"Downloaded {name} ({downloaded} bytes)")
        return destination

    async def fetch_target(
        self,
        target: DownloadTarget,
        progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """Download a resolved target."""
        return await self.fetch(target.url, target.destination, target.label, progress)

    async def fetch_all(self, targets: Iterable[DownloadTarget]) -> List[Path]:
        """Download several targets concurrently and wait for all of them."""
        return list(await asyncio.gather(*(self.fetch_target(t) for t in targets)))
