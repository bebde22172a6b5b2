"""
JSON-file-backed registry of the servers managed by ezserver.

The file holds ``{"servers": [...]}`` and is rewritten in full after every
mutation. Only one process is expected to write it; there is no locking
and no recovery from a partial write, so a failed save leaves memory and
disk out of sync.
"""

import json
import logging
from pathlib import Path
from typing import Iterator, List, Optional, Union

from ..exceptions import ConfigError, ConfigErrorCode, DownloadError
from ..models import ManagedServer, UniquenessCheck

logger = logging.getLogger(__name__)


class Registry:
    """Persistent set of managed servers with unique names and paths."""

    def __init__(self, path: Union[str, Path]) -> None:
        """
        Open the registry file, creating an empty one if it does not exist.

        Args:
            path: Location of the JSON registry file

        Raises:
            ConfigError: LOAD_ERROR if the file cannot be read or parsed,
                SAVE_ERROR if an empty file cannot be created
        """
        self.path = Path(path)
        self._servers: List[ManagedServer] = []

        if not self.path.exists():
            logger.debug(f"Registry file {self.path} not found, creating one")
            self.save()
        self.load()

    def load(self) -> None:
        """Replace the in-memory records with the content of the file."""
        logger.debug(f"Loading registry from {self.path}")
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            servers = [ManagedServer.from_dict(entry) for entry in data["servers"]]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise ConfigError(
                "Config file not found or cannot be read",
                ConfigErrorCode.LOAD_ERROR,
                cause=e,
            ) from e
        except DownloadError as e:
            # unknown "type" value
            raise ConfigError(
                f"Config file contains an invalid server entry: {e}",
                ConfigErrorCode.LOAD_ERROR,
                cause=e,
            ) from e
        self._servers = servers

    def save(self) -> None:
        """Rewrite the whole registry file."""
        logger.debug(f"Saving registry to {self.path}")
        payload = {"servers": [server.to_dict() for server in self._servers]}
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            raise ConfigError(
                "Error occurred while saving config file",
                ConfigErrorCode.SAVE_ERROR,
                cause=e,
            ) from e

    @property
    def servers(self) -> List[ManagedServer]:
        """Copy of the current records, in file order."""
        return list(self._servers)

    def __iter__(self) -> Iterator[ManagedServer]:
        return iter(self.servers)

    def __len__(self) -> int:
        return len(self._servers)

    def check_uniqueness(
        self,
        server: ManagedServer,
        ignore: Optional[ManagedServer] = None,
    ) -> UniquenessCheck:
        """
        Check a candidate record against the registry.

        Args:
            server: Candidate record
            ignore: Existing record to leave out of the comparison (used
                when editing that record)

        Returns:
            NAME_CONFLICT or PATH_CONFLICT for the first clash found, else OK
        """
        others = [s for s in self._servers if s is not ignore]
        if any(s.name == server.name for s in others):
            return UniquenessCheck.NAME_CONFLICT
        if any(s.path == server.path for s in others):
            return UniquenessCheck.PATH_CONFLICT
        return UniquenessCheck.OK

    def _raise_on_conflict(self, check: UniquenessCheck) -> None:
        if check is UniquenessCheck.NAME_CONFLICT:
            raise ConfigError(
                "Server with the same name already exists",
                ConfigErrorCode.SERVER_EXISTS,
            )
        if check is UniquenessCheck.PATH_CONFLICT:
            raise ConfigError(
                "Server with the same path already exists",
                ConfigErrorCode.SERVER_EXISTS,
            )

    def add(self, server: ManagedServer) -> None:
        """Add a record and persist the registry."""
        logger.debug(f"Adding server {server}")
        self._raise_on_conflict(self.check_uniqueness(server))
        self._servers.append(server)
        self.save()

    def remove(self, name: str) -> ManagedServer:
        """Remove the record called ``name`` and persist the registry."""
        logger.debug(f"Removing server {name}")
        server = self._require(name)
        self._servers = [s for s in self._servers if s is not server]
        self.save()
        return server

    def edit(self, old: ManagedServer, new: ManagedServer) -> None:
        """
        Replace the record ``old`` by ``new`` in place.

        Raises:
            ConfigError: SERVER_NOT_FOUND if ``old`` is not registered,
                SERVER_EXISTS if ``new`` clashes with another record
        """
        logger.debug(f"Editing server {old.name}: {new}")
        current = self._require(old.name)
        self._raise_on_conflict(self.check_uniqueness(new, ignore=current))
        self._servers = [new if s is current else s for s in self._servers]
        self.save()

    def get(
        self,
        name: Optional[str] = None,
        path: Optional[str] = None,
    ) -> Optional[ManagedServer]:
        """Look a record up by name, or by path when no name is given."""
        if name:
            return next((s for s in self._servers if s.name == name), None)
        if path:
            return next((s for s in self._servers if s.path == path), None)
        return None

    def _require(self, name: str) -> ManagedServer:
        server = next((s for s in self._servers if s.name == name), None)
        if server is None:
            raise ConfigError(
                f"Server '{name}' not found",
                ConfigErrorCode.SERVER_NOT_FOUND,
            )
        return server
