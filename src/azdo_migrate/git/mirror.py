"""Mirror clone/push of complete Git ref namespaces."""

import os
from typing import List, Optional

from loguru import logger

from ..config.config import GitConfig
from ..migration.interfaces import RefMirrorRunner
from ..models.migration import RefStats
from .exceptions import GitCommandError
from .runner import GitCommandRunner


def directory_size(path: str) -> int:
    """Get total size of directory in bytes.

    Args:
        path: Directory path

    Returns:
        Size in bytes
    """
    total_size = 0
    for dirpath, dirnames, filenames in os.walk(path):
        for filename in filenames:
            filepath = os.path.join(dirpath, filename)
            if not os.path.islink(filepath):
                total_size += os.path.getsize(filepath)
    return total_size


class GitMirrorRunner(RefMirrorRunner):
    """Replicates repositories with ``git clone --mirror`` / ``git push --mirror``.

    A mirror push makes the remote ref set identical to the local one,
    deleting remote branches and tags that the source no longer has.
    """

    def __init__(self, config: Optional[GitConfig] = None):
        """Initialize mirror runner.

        Args:
            config: Git configuration
        """
        self.config = config or GitConfig()
        self.runner = GitCommandRunner(self.config.executable, self.config.timeout)
        self.logger = logger.bind(component='GitMirrorRunner')

    @staticmethod
    def clone_args(source_url: str, local_path: str) -> List[str]:
        return ['clone', '--mirror', source_url, local_path]

    @staticmethod
    def push_args(local_path: str, dest_url: str, force: bool) -> List[str]:
        args = ['-C', local_path, 'push', '--mirror']
        if force:
            args.append('--force')
        args.append(dest_url)
        return args

    def describe_clone(self, source_url: str, local_path: str) -> str:
        return self.runner.format_command(self.clone_args(source_url, local_path))

    def describe_push(self, local_path: str, dest_url: str, force: bool) -> str:
        return self.runner.format_command(self.push_args(local_path, dest_url, force))

    async def mirror_clone(self, source_url: str, local_path: str) -> None:
        """Mirror-clone a remote repository.

        Args:
            source_url: Remote URL, credentials included
            local_path: Target directory; must not exist yet
        """
        self.logger.info(f'Cloning mirror into {local_path}')
        await self.runner.run(self.clone_args(source_url, local_path))

    async def mirror_push(self, local_path: str, dest_url: str, force: bool) -> None:
        """Mirror-push a local mirror to a remote.

        Args:
            local_path: Local mirror directory
            dest_url: Remote URL, credentials included
            force: Overwrite diverging remote refs
        """
        self.logger.info(
            f'Pushing mirror from {local_path}{" with --force" if force else ""}'
        )
        await self.runner.run(self.push_args(local_path, dest_url, force))

    async def _ref_names(self, local_path: str, prefix: str) -> List[str]:
        output = await self.runner.run(
            ['-C', local_path, 'for-each-ref', '--format=%(refname)', prefix]
        )
        names = []
        for line in output.splitlines():
            line = line.strip()
            if line.startswith(prefix + '/'):
                names.append(line[len(prefix) + 1 :])
        return names

    async def collect_ref_stats(self, local_path: str) -> RefStats:
        """Collect branch names, tag names and on-disk size of a mirror.

        Args:
            local_path: Local mirror directory

        Returns:
            Ref statistics
        """
        branches = await self._ref_names(local_path, 'refs/heads')
        tags = await self._ref_names(local_path, 'refs/tags')
        size = directory_size(local_path)

        self.logger.debug(
            f'{local_path}: {len(branches)} branches, {len(tags)} tags, {size} bytes'
        )
        return RefStats(branches=branches, tags=tags, size_bytes=size)

    async def check_available(self) -> bool:
        """Check if the git executable can be run.

        Returns:
            True if git is available, False otherwise
        """
        try:
            await self.runner.run(['--version'])
            return True
        except GitCommandError as e:
            self.logger.warning(f'Git is not available: {e}')
            return False
