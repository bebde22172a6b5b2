"""
Supervision of a running Minecraft server process.

The supervisor spawns the server, classifies every console line and
reacts to it:

* the first ready line schedules ``stop`` on stdin after a delay, so a
  first boot proves the server both starts and shuts down cleanly;
* every stall line gets one newline on stdin, which releases a known
  upstream hang waiting for console input.

Supervision never raises for a failed server. A process that cannot be
spawned ends as ``ProcessOutcome.failed`` and a process that closes ends
as ``ProcessOutcome.completed`` with whatever exit code it returned. There
is no timeout; a server that never exits blocks the caller.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Union

from ..constants import (
    FIRST_BOOT_STOP_DELAY_SECONDS, FORGE_UNIX_SCRIPT, FORGE_WINDOWS_SCRIPT,
    SERVER_JAR_NAME, STOP_COMMAND, UNBLOCK_KEYSTROKE,
)
from ..models import LineEvent, ProcessOutcome, ServerKind, SupervisorState
from ..utils.system import SystemInfo, java_executable
from .classifier import LineClassifier

logger = logging.getLogger(__name__)

ProcessFactory = Callable[..., Awaitable[Any]]


def launch_command(kind: ServerKind, directory: Path, java_home: Union[str, Path]) -> List[str]:
    """Command line that starts a server of the given kind."""
    if kind is ServerKind.FORGE:
        if SystemInfo.is_windows():
            return ["cmd", "/c", FORGE_WINDOWS_SCRIPT]
        return ["sh", FORGE_UNIX_SCRIPT]
    return [str(java_executable(java_home)), "-jar", SERVER_JAR_NAME, "nogui"]


async def _open_console_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


class ProcessSupervisor:
    """Runs one server process from spawn to exit."""

    def __init__(
        self,
        directory: Union[str, Path],
        command: Sequence[str],
        first_boot: bool = True,
        stop_delay: float = FIRST_BOOT_STOP_DELAY_SECONDS,
        forward_stdin: bool = False,
        classifier: Optional[LineClassifier] = None,
        spawn: Optional[ProcessFactory] = None,
        input_reader: Optional[asyncio.StreamReader] = None,
    ) -> None:
        """
        Prepare a supervised run.

        Args:
            directory: Working directory of the server
            command: Command line to spawn
            first_boot: Stop the server once it reports ready
            stop_delay: Seconds between the ready line and the stop command
            forward_stdin: Copy this process's console input to the server
            classifier: Line classifier, defaults to the built-in patterns
            spawn: Process factory with the asyncio.create_subprocess_exec
                signature
            input_reader: Source of forwarded input, defaults to sys.stdin
        """
        self.directory = Path(directory)
        self.command = list(command)
        self.first_boot = first_boot
        self.stop_delay = stop_delay
        self.forward_stdin = forward_stdin
        self._classifier = classifier or LineClassifier()
        self._spawn = spawn or asyncio.create_subprocess_exec
        self._input_reader = input_reader

        self._state = SupervisorState.IDLE
        self._process: Any = None
        self._stop_task: Optional[asyncio.Task] = None
        self._outcome: Optional[ProcessOutcome] = None

    @classmethod
    def for_server(
        cls,
        kind: ServerKind,
        directory: Union[str, Path],
        java_home: Union[str, Path],
        first_boot: bool = True,
        **kwargs: Any,
    ) -> "ProcessSupervisor":
        """Supervisor with the launch command of a server kind."""
        # Forge's run script may prompt, and a normal run is operated by hand
        kwargs.setdefault("forward_stdin", kind is ServerKind.FORGE or not first_boot)
        return cls(
            directory,
            launch_command(kind, Path(directory), java_home),
            first_boot=first_boot,
            **kwargs,
        )

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def outcome(self) -> Optional[ProcessOutcome]:
        """Terminal outcome, once the process has exited."""
        return self._outcome

    async def run(self) -> ProcessOutcome:
        """Supervise the process until it exits."""
        async for _ in self.events():
            pass
        return self._outcome

    async def events(self) -> AsyncIterator[LineEvent]:
        """
        Spawn the process and yield its classified console lines.

        The stream ends when the process closes its output; ``outcome`` is
        set at that point. A supervisor runs once, a second call raises
        ``RuntimeError``.
        """
        if self._state is not SupervisorState.IDLE:
            raise RuntimeError("This supervisor has already been started")

        self._state = SupervisorState.SPAWNING
        logger.debug(f"Starting {' '.join(self.command)} in {self.directory}")
        try:
            self._process = await self._spawn(
                *self.command,
                cwd=str(self.directory),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            logger.error(f"Server failed to start: {e}")
            self._finish(ProcessOutcome.failed(e))
            return

        self._state = SupervisorState.RUNNING
        logger.debug("Server started.")
        forwarder = asyncio.ensure_future(self._forward_input()) if self.forward_stdin else None

        try:
            while True:
                raw = await self._process.stdout.readline()
                if not raw:
                    break
                event = self._classifier.classify(raw.decode(errors="replace").rstrip("\r\n"))
                logger.debug(event.line)
                await self._react(event)
                yield event
            exit_code = await self._process.wait()
        finally:
            for task in (self._stop_task, forwarder):
                if task is not None and not task.done():
                    task.cancel()

        logger.info(f"Server exited with code {exit_code}")
        self._finish(ProcessOutcome.completed(exit_code))

    async def send(self, text: str) -> None:
        """Write text to the server's console input."""
        stdin = getattr(self._process, "stdin", None)
        if stdin is None or stdin.is_closing():
            logger.debug(f"Server input is closed, dropping {text!r}")
            return
        try:
            stdin.write(text.encode())
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.warning(f"Could not write to server input: {e}")

    async def _react(self, event: LineEvent) -> None:
        if event.is_ready:
            if self.first_boot and self._stop_task is None:
                logger.info(f"Server started. Sending stop command in {self.stop_delay:g} seconds.")
                self._state = SupervisorState.STOP_REQUESTED
                self._stop_task = asyncio.ensure_future(self._delayed_stop())
        elif event.is_stall:
            logger.warning(f"Server stalled ({event.reason.value}), sending a keystroke")
            if self._state is SupervisorState.RUNNING:
                self._state = SupervisorState.STALLED
            await self.send(UNBLOCK_KEYSTROKE)
        elif self._state is SupervisorState.STALLED:
            self._state = SupervisorState.RUNNING

    async def _delayed_stop(self) -> None:
        await asyncio.sleep(self.stop_delay)
        logger.debug("Sending stop command")
        await self.send(STOP_COMMAND)

    async def _forward_input(self) -> None:
        reader = self._input_reader
        if reader is None:
            try:
                reader = await _open_console_reader()
            except (OSError, ValueError, NotImplementedError) as e:
                logger.warning(f"Console input cannot be forwarded to the server: {e}")
                return
        while True:
            line = await reader.readline()
            if not line:
                break
            await self.send(line.decode(errors="replace"))

    def _finish(self, outcome: ProcessOutcome) -> None:
        self._outcome = outcome
        self._state = SupervisorState.EXITED
