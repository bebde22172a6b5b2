"""
Data model shared by the resolver, the supervisor and the registry.

The registry file stores servers as ``{"name", "path", "java", "type"}``
objects; ``ManagedServer.to_dict``/``from_dict`` own that mapping.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import DownloadError, DownloadErrorCode


class ServerKind(str, Enum):
    """Minecraft server distribution families."""

    VANILLA = "vanilla"
    SPIGOT = "spigot"
    PAPER = "paper"
    FORGE = "forge"
    FABRIC = "fabric"

    @classmethod
    def parse(cls, value: str) -> "ServerKind":
        """Parse a server kind name, case-insensitively."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise DownloadError(
                f"Unsupported server type: {value}",
                DownloadErrorCode.UNSUPPORTED_KIND,
            ) from None


@dataclass(frozen=True)
class DownloadTarget:
    """A concrete artifact to fetch and where to put it."""

    url: str
    destination: Path
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        """Name shown next to the progress bar."""
        if self.display_name:
            return self.display_name
        return self.url.rstrip("/").rsplit("/", 1)[-1] or "unknown"


@dataclass
class ManagedServer:
    """A server installation known to the registry."""

    name: str
    path: str
    java: str
    kind: ServerKind

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "path": self.path,
            "java": self.java,
            "type": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManagedServer":
        return cls(
            name=str(data["name"]),
            path=str(data["path"]),
            java=str(data.get("java") or ""),
            kind=ServerKind.parse(data["type"]),
        )


class UniquenessCheck(Enum):
    """Result of checking a server against the registry."""

    OK = 0
    NAME_CONFLICT = 1
    PATH_CONFLICT = 2


class LineKind(Enum):
    """Classification of a single line of server output."""

    READY = "ready"
    STALLED = "stalled"
    UNCLASSIFIED = "unclassified"


class StallReason(Enum):
    """Known upstream hangs that a keystroke on stdin releases."""

    CHUNK_IO = "chunk_io"
    THREAD_POOL = "thread_pool"


@dataclass(frozen=True)
class LineEvent:
    """A classified line of server output."""

    line: str
    kind: LineKind
    reason: Optional[StallReason] = None

    @property
    def is_ready(self) -> bool:
        return self.kind is LineKind.READY

    @property
    def is_stall(self) -> bool:
        return self.kind is LineKind.STALLED


class SupervisorState(Enum):
    """Lifecycle states of a supervised server process."""

    IDLE = "idle"
    SPAWNING = "spawning"
    RUNNING = "running"
    STOP_REQUESTED = "stop_requested"
    STALLED = "stalled"
    EXITED = "exited"


@dataclass(frozen=True)
class ProcessOutcome:
    """
    Terminal state of a supervised subprocess.

    Either the process ran and closed with ``exit_code``, or it could not
    be spawned at all and ``error`` holds the reason.
    """

    exit_code: Optional[int] = None
    error: Optional[BaseException] = field(default=None, compare=False)

    @classmethod
    def completed(cls, exit_code: int) -> "ProcessOutcome":
        return cls(exit_code=exit_code)

    @classmethod
    def failed(cls, error: BaseException) -> "ProcessOutcome":
        return cls(error=error)

    @property
    def failed_to_spawn(self) -> bool:
        return self.error is not None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.exit_code == 0

    def describe(self) -> str:
        if self.error is not None:
            return f"failed to start ({self.error})"
        return f"exited with code {self.exit_code}"


@dataclass
class ProvisionResult:
    """What a provisioning run produced."""

    server: ManagedServer
    first_boot: Optional[ProcessOutcome] = None
    registered: bool = False


@dataclass(frozen=True)
class PluginSource:
    """
    Where to download a plugin from.

    Either ``spiget_id`` (a SpigotMC resource id) or ``github_repo`` with an
    ``asset_pattern`` (an fnmatch pattern over the latest release's assets)
    must be set.
    """

    name: str
    spiget_id: Optional[int] = None
    github_repo: Optional[str] = None
    asset_pattern: str = "*.jar"

    @property
    def file_name(self) -> str:
        return f"{self.name}.jar"
