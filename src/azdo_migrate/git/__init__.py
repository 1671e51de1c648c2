"""Git operations for repository migration."""

from .exceptions import GitCommandError
from .mirror import GitMirrorRunner
from .runner import GitCommandRunner

__all__ = ['GitCommandError', 'GitMirrorRunner', 'GitCommandRunner']
