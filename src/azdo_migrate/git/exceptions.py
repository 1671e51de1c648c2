"""Git command exceptions."""

from typing import Optional


class GitCommandError(Exception):
    """A git subprocess failed, timed out or could not be started.

    ``command`` and ``stderr`` are already credential-redacted.
    """

    def __init__(
        self, command: str, returncode: Optional[int] = None, stderr: str = ''
    ):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr.strip()
        if returncode is None:
            message = f'{command}: {self.stderr or "failed"}'
        else:
            message = f'{command} exited with code {returncode}'
            if self.stderr:
                message = f'{message}: {self.stderr}'
        super().__init__(message)
