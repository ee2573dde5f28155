"""Child process execution with bounded timeouts."""

import asyncio
import os
import shlex
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from shipctl.core.exceptions import CommandError, CommandTimeoutError
from shipctl.core.logging import get_logger

logger = get_logger(__name__)

# Shell convention for "command not found"
COMMAND_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Result of a finished child process."""

    command: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Best available diagnostic text."""
        return (self.stderr or self.stdout).strip()


class CommandRunner:
    """Runs external commands as supervised child processes.

    Each call is awaited to completion. A child that outlives its timeout
    is killed and reaped before CommandTimeoutError is raised, so nothing
    keeps running in the background.
    """

    def __init__(self, default_timeout: float = 300.0):
        self.default_timeout = default_timeout

    async def run(
        self,
        command: str | list[str],
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        check: bool = False,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            command: Argument list, or a shell-style string split with shlex
            cwd: Working directory
            env: Extra environment variables layered over os.environ
            timeout: Ceiling in seconds (default_timeout when None)
            check: Raise CommandError on non-zero exit

        Returns:
            CommandResult
        """
        args = shlex.split(command) if isinstance(command, str) else list(command)
        limit = timeout if timeout is not None else self.default_timeout
        child_env = {**os.environ, **env} if env else None

        logger.debug(f"$ {' '.join(args)}")
        started = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(cwd) if cwd else None,
                env=child_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise CommandError(
                f"Command not found: {args[0]}",
                command=args,
                returncode=COMMAND_NOT_FOUND,
            )

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise CommandTimeoutError(
                f"{' '.join(args[:3])} timed out after {limit:g}s",
                command=args,
                timeout_seconds=limit,
            )

        result = CommandResult(
            command=args,
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            duration=time.monotonic() - started,
        )

        if check and not result.ok:
            raise CommandError(
                result.output or f"Process exited with code {result.returncode}",
                command=args,
                returncode=result.returncode,
                stderr=result.stderr,
            )

        return result
