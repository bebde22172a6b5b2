"""
Source builds and installers run as Java subprocesses.

Spigot's BuildTools and the Forge installer are both ``java -jar`` runs
whose combined output is streamed to the log. There is no timeout: a
build that hangs blocks its caller.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from ..exceptions import BuildError
from ..models import ProcessOutcome
from ..utils.system import java_executable

logger = logging.getLogger(__name__)

LineObserver = Callable[[str], None]


class BuildRunner:
    """Runs ``java -jar <artifact> <args>`` to completion."""

    async def build(
        self,
        artifact: Union[str, Path],
        work_dir: Union[str, Path],
        java_home: Union[str, Path],
        args: Sequence[str] = (),
        observer: Optional[LineObserver] = None,
    ) -> ProcessOutcome:
        """
        Run a build and wait for it.

        Args:
            artifact: Jar to execute
            work_dir: Working directory of the build
            java_home: Java home whose bin/java runs the jar
            args: Extra arguments after the jar
            observer: Called with every output line, e.g. to drive a spinner

        Returns:
            The completed outcome, always with exit code 0

        Raises:
            BuildError: If the process cannot start or exits non-zero
        """
        command = [str(java_executable(java_home)), "-jar", str(artifact), *args]
        logger.debug(f"Running {' '.join(command)} in {work_dir}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(work_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            logger.error(f"Build failed to start: {e}")
            raise BuildError(
                f"Failed to start {Path(artifact).name}",
                outcome=ProcessOutcome.failed(e),
                cause=e,
            ) from e

        logger.debug(f"{Path(artifact).name} started.")
        while True:
            raw = await process.stdout.readline()
            if not raw:
                break
            line = raw.decode(errors="replace").rstrip()
            logger.debug(line)
            if observer:
                observer(line)

        exit_code = await process.wait()
        logger.debug(f"{Path(artifact).name} exited with code {exit_code}")
        outcome = ProcessOutcome.completed(exit_code)
        if not outcome.succeeded:
            raise BuildError(f"{Path(artifact).name} failed with exit code {exit_code}", outcome=outcome)
        return outcome
