import asyncio
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from ezserver.config.registry import Registry
from ezserver.constants import STOP_COMMAND
from ezserver.models import ManagedServer, ServerKind


class FakeStdin:
    """Collects what the supervisor writes to the server console."""

    def __init__(self, on_write: Optional[Callable[[bytes], None]] = None) -> None:
        self.writes: List[bytes] = []
        self.closed = False
        self._on_write = on_write

    def write(self, data: bytes) -> None:
        self.writes.append(data)
        if self._on_write:
            self._on_write(data)

    async def drain(self) -> None:
        pass

    def is_closing(self) -> bool:
        return self.closed


class FakeStdout:
    def __init__(self, lines: List[str], hold_open: Optional[asyncio.Event] = None) -> None:
        self._lines = [f"{line}\n".encode() for line in lines]
        self._hold_open = hold_open

    async def readline(self) -> bytes:
        if self._lines:
            return self._lines.pop(0)
        if self._hold_open is not None:
            await self._hold_open.wait()
        return b""


class FakeProcess:
    """
    Stand-in for an asyncio subprocess.

    With ``exit_on_stop`` the output stays open after the scripted lines
    until ``stop`` arrives on stdin, like a real server does.
    """

    def __init__(self, lines: List[str], exit_code: int = 0, exit_on_stop: bool = False) -> None:
        self.stopped = asyncio.Event()
        self.stdin = FakeStdin(self._on_write)
        self.stdout = FakeStdout(lines, self.stopped if exit_on_stop else None)
        self.exit_code = exit_code
        self.spawn_args: tuple = ()
        self.spawn_kwargs: Dict[str, object] = {}

    def _on_write(self, data: bytes) -> None:
        if data == STOP_COMMAND.encode():
            self.stopped.set()

    async def wait(self) -> int:
        return self.exit_code


def process_factory(process: FakeProcess):
    async def spawn(*args, **kwargs):
        process.spawn_args = args
        process.spawn_kwargs = kwargs
        return process

    return spawn


def json_transport(routes: Dict[str, object], calls: Optional[List[str]] = None) -> httpx.MockTransport:
    """
    Mock transport answering JSON documents by URL.

    Unknown URLs answer 404; a ``bytes`` route answers a binary body.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        if url not in routes:
            return httpx.Response(404)
        body = routes[url]
        if isinstance(body, bytes):
            return httpx.Response(200, content=body)
        return httpx.Response(200, json=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def registry(tmp_path):
    return Registry(tmp_path / "ezserver.json")


@pytest.fixture
def make_server(tmp_path):
    def make(name: str = "survival", kind: ServerKind = ServerKind.PAPER, java: str = "/opt/java") -> ManagedServer:
        return ManagedServer(name=name, path=str(tmp_path / name), java=java, kind=kind)

    return make
