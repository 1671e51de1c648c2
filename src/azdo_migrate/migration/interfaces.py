"""Capabilities consumed by the migration engine."""

from abc import ABC, abstractmethod
from typing import List

from ..models.migration import RefStats
from ..models.repository import RepositoryDescriptor, Scope
from ..utils.security import sanitize_for_logging


class CatalogClient(ABC):
    """Repository catalog of a Git hosting platform.

    Implementations raise ``AzureDevOpsAPIError`` (or a subclass) on failure.
    """

    @abstractmethod
    async def list_repositories_async(self, scope: Scope) -> List[RepositoryDescriptor]:
        """List every repository of ``scope``."""

    @abstractmethod
    async def create_repository_async(
        self, scope: Scope, name: str
    ) -> RepositoryDescriptor:
        """Create an empty repository named ``name`` in ``scope``."""

    @abstractmethod
    def git_url(self, scope: Scope, name: str, authenticated: bool = False) -> str:
        """Git remote URL; with ``authenticated`` the URL embeds credentials."""

    @abstractmethod
    def web_url(self, scope: Scope, name: str) -> str:
        """Browser URL of a repository."""

    async def close_async(self) -> None:
        """Release network resources."""


class RefMirrorRunner(ABC):
    """Mirror clone/push of complete ref namespaces.

    Implementations raise ``GitCommandError`` on failure and must abort the
    running operation promptly when the awaiting task is cancelled.
    """

    @abstractmethod
    async def mirror_clone(self, source_url: str, local_path: str) -> None:
        """Mirror-clone ``source_url`` into ``local_path``."""

    @abstractmethod
    async def mirror_push(self, local_path: str, dest_url: str, force: bool) -> None:
        """Make the refs at ``dest_url`` match the mirror at ``local_path``."""

    @abstractmethod
    async def collect_ref_stats(self, local_path: str) -> RefStats:
        """Branch names, tag names and size of the mirror at ``local_path``."""

    def describe_clone(self, source_url: str, local_path: str) -> str:
        """Command line a real clone would run, credentials redacted."""
        return sanitize_for_logging(
            f'git clone --mirror {source_url} {local_path}'
        )

    def describe_push(self, local_path: str, dest_url: str, force: bool) -> str:
        """Command line a real push would run, credentials redacted."""
        force_flag = ' --force' if force else ''
        return sanitize_for_logging(
            f'git -C {local_path} push --mirror{force_flag} {dest_url}'
        )
