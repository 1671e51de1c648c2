"""Asynchronous git subprocess execution."""

import asyncio
import os
from typing import List, Optional

from loguru import logger

from ..utils.security import sanitize_for_logging
from .exceptions import GitCommandError


class GitCommandRunner:
    """Runs git commands as subprocesses with a timeout.

    Cancelling the awaiting task kills the running process before the
    cancellation propagates.
    """

    def __init__(self, executable: str = 'git', timeout: int = 3600):
        """Initialize git command runner.

        Args:
            executable: Git executable name or path
            timeout: Per-command timeout in seconds
        """
        self.executable = executable
        self.timeout = timeout
        self.logger = logger.bind(component='GitCommandRunner')

    def format_command(self, args: List[str]) -> str:
        """Printable, credential-redacted command line."""
        return sanitize_for_logging(' '.join([self.executable, *args]))

    async def run(self, args: List[str], cwd: Optional[str] = None) -> str:
        """Run a git command.

        Args:
            args: Arguments after the git executable
            cwd: Working directory

        Returns:
            Command stdout

        Raises:
            GitCommandError: On non-zero exit, timeout or spawn failure
        """
        display = self.format_command(args)
        self.logger.debug(f'Executing git command: {display}')

        env = dict(os.environ)
        # Never block on an interactive credential prompt
        env['GIT_TERMINAL_PROMPT'] = '0'

        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
            )
        except OSError as e:
            raise GitCommandError(display, stderr=str(e))

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            self.logger.error(f'Git command timed out after {self.timeout} seconds')
            raise GitCommandError(
                display, stderr=f'timed out after {self.timeout} seconds'
            )
        except asyncio.CancelledError:
            await self._kill(process)
            self.logger.warning(f'Git command cancelled: {display}')
            raise

        stdout_text = stdout.decode(errors='replace') if stdout else ''
        stderr_text = sanitize_for_logging(
            stderr.decode(errors='replace') if stderr else ''
        )

        self.logger.debug(f'Git command return code: {process.returncode}')
        if stderr_text:
            self.logger.debug(f'Git stderr: {stderr_text.strip()}')

        if process.returncode != 0:
            raise GitCommandError(display, process.returncode, stderr_text)

        return stdout_text

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
