"""
HTTP plumbing shared by the version resolver, the plugin resolver and
the downloader.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import httpx

from ..constants import DEFAULT_TIMEOUT_SECONDS, USER_AGENT
from ..exceptions import APIError, DownloadError, DownloadErrorCode
from ..models import DownloadTarget, ServerKind

logger = logging.getLogger(__name__)


class ProgressCallback(Protocol):
    """Receives bytes written so far and the expected total (0 if unknown)."""

    def __call__(self, downloaded: int, total: int) -> None: ...


class BaseHTTPClient:
    """Lazily created ``httpx.AsyncClient`` with the ezserver user agent."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self._transport = transport
        self._async_client: Optional[httpx.AsyncClient] = None

    @property
    def async_client(self) -> httpx.AsyncClient:
        if self._async_client is None:
            self._async_client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            )
        return self._async_client

    async def get_json_async(self, url: str, **kwargs: Any) -> Any:
        """
        GET ``url`` and decode the body as JSON.

        A 404 raises ``DownloadError`` with VERSION_NOT_FOUND. Transport
        errors, other error statuses and bad JSON raise ``APIError``.
        """
        try:
            response = await self.async_client.get(url, **kwargs)
            if response.status_code == 404:
                raise DownloadError(
                    f"Version not found ({url} returned 404)",
                    DownloadErrorCode.VERSION_NOT_FOUND,
                )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"HTTP request failed for {url}: {e}")
            raise APIError(f"Failed to fetch data from {url}", cause=e) from e
        except ValueError as e:
            logger.error(f"Invalid JSON response from {url}: {e}")
            raise APIError(f"Invalid JSON response from {url}", cause=e) from e

    async def aclose(self) -> None:
        if self._async_client:
            await self._async_client.aclose()
            self._async_client = None

    async def __aenter__(self) -> 'BaseHTTPClient':
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


class BaseVersionAPI(ABC):
    """Base class for the per-kind upstream adapters."""

    kind: ServerKind

    def __init__(self, client: BaseHTTPClient, base_url: str) -> None:
        """
        Initialize the version API adapter.

        Args:
            client: HTTP client shared by every adapter of a resolver
            base_url: Base URL for the API
        """
        self.client = client
        self.base_url = base_url.rstrip('/')

    async def get_json(self, url: str) -> Any:
        return await self.client.get_json_async(url)

    def build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    @abstractmethod
    async def resolve(
        self,
        version_spec: str,
        directory: Path,
        **options: Any,
    ) -> DownloadTarget:
        """Resolve a version spec to the artifact to download."""
        pass


def version_not_found(message: str) -> DownloadError:
    return DownloadError(message, DownloadErrorCode.VERSION_NOT_FOUND)


def json_object(data: Any, url: str) -> Dict[str, Any]:
    """Ensure an upstream document is a JSON object."""
    if not isinstance(data, dict):
        raise APIError(f"Unexpected response shape from {url}")
    return data
