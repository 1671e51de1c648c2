"""Migration engine - main entry point for migration operations."""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from loguru import logger

from ..api.exceptions import AzureDevOpsAPIError
from ..config.config import Config
from ..models.migration import (
    BatchResult,
    BuildInfo,
    MigrationOutcome,
    MigrationRequest,
    PolicySet,
)
from ..models.repository import RepositoryDescriptor, Scope
from .aggregator import aggregate
from .errors import CatalogFetchError, MigrationTimeoutError
from .interfaces import CatalogClient, RefMirrorRunner
from .orchestrator import MigrationOrchestrator
from .selection import Candidate, RepoListEntry, select_candidates


def policy_from_config(config: Config) -> PolicySet:
    """Build the run-wide policy from the migration configuration."""
    return PolicySet(
        dry_run=config.migration.dry_run,
        force_push=config.migration.force_push,
        trace=config.migration.trace,
    )


class MigrationEngine:
    """Coordinates catalog lookups, selection, orchestration and aggregation."""

    def __init__(
        self,
        config: Config,
        source_client: CatalogClient,
        destination_client: CatalogClient,
        runner: RefMirrorRunner,
        policy: Optional[PolicySet] = None,
        build_info: Optional[BuildInfo] = None,
    ):
        """Initialize migration engine.

        Args:
            config: Migration configuration; a destination is required
            source_client: Catalog client of the source organization
            destination_client: Catalog client of the destination organization
            runner: Mirror clone/push runner
            policy: Run-wide policy; derived from ``config`` when not given
            build_info: Program metadata stamped on the batch result

        Raises:
            ValueError: If the configuration has no destination
        """
        self.config = config
        self.source_client = source_client
        self.destination_client = destination_client
        self.runner = runner
        self.policy = policy or policy_from_config(config)
        self.build_info = build_info or BuildInfo()

        self.source_scope = config.source.scope
        self.destination_scope = config.require_destination().scope

        self.pre_errors: List[MigrationOutcome] = []
        self.orchestrator: Optional[MigrationOrchestrator] = None
        self.logger = logger.bind(component='MigrationEngine')

    async def fetch_catalog(
        self, client: CatalogClient, scope: Scope
    ) -> List[RepositoryDescriptor]:
        """List the repositories of a scope.

        Raises:
            CatalogFetchError: If the catalog cannot be listed
        """
        try:
            repositories = await client.list_repositories_async(scope)
        except AzureDevOpsAPIError as e:
            raise CatalogFetchError(
                f'Failed to list repositories of {scope}: '
                f'{e.describe(self.policy.trace)}',
                status_code=e.status_code,
            ) from e

        self.logger.info(f'Found {len(repositories)} repositories in {scope}')
        return repositories

    async def run(
        self,
        name_filter: Optional[str] = None,
        names: Optional[Sequence[RepoListEntry]] = None,
        name_map: Optional[Dict[str, str]] = None,
    ) -> BatchResult:
        """Select and migrate repositories under the overall deadline.

        Args:
            name_filter: Regular expression on source repository names
            names: Explicit repository list; takes precedence over the filter
            name_map: Source-to-destination renames

        Returns:
            Batch result

        Raises:
            CatalogFetchError: If a catalog cannot be listed
            SelectionError: If the filter is malformed
            MigrationTimeoutError: If the deadline is exceeded
        """
        started_at = datetime.now()
        return await self._with_deadline(
            self._select_and_migrate(started_at, name_filter, names, name_map)
        )

    async def migrate_selected(
        self,
        candidates: Sequence[Candidate],
        not_found: Sequence[MigrationOutcome] = (),
        started_at: Optional[datetime] = None,
    ) -> BatchResult:
        """Migrate an already selected list of candidates under the deadline.

        Args:
            candidates: Selected source repositories in order
            not_found: Selection errors reported ahead of the outcomes
            started_at: Run start time; defaults to now

        Returns:
            Batch result
        """
        started_at = started_at or datetime.now()
        return await self._with_deadline(
            self._migrate(started_at, list(candidates), list(not_found))
        )

    def plan_requests(
        self, candidates: Sequence[Candidate], existing: Sequence[str]
    ) -> List[MigrationRequest]:
        """Turn candidates into requests, snapshotting destination existence.

        Args:
            candidates: Selected source repositories
            existing: Destination repository names before any change

        Returns:
            Requests in candidate order
        """
        snapshot = frozenset(existing)
        return [
            MigrationRequest(
                source=candidate.source,
                destination_name=candidate.destination_name,
                existed_at_start=candidate.destination_name in snapshot,
            )
            for candidate in candidates
        ]

    async def _with_deadline(self, coro) -> BatchResult:
        timeout = self.config.migration.timeout
        self.pre_errors = []
        self.orchestrator = None
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError:
            partial = list(self.pre_errors)
            if self.orchestrator is not None:
                partial.extend(self.orchestrator.outcomes)
            self.logger.error(f'Migration timed out after {timeout} seconds')
            raise MigrationTimeoutError(
                f'Migration timed out after {timeout} seconds', outcomes=partial
            )

    async def _select_and_migrate(
        self,
        started_at: datetime,
        name_filter: Optional[str],
        names: Optional[Sequence[RepoListEntry]],
        name_map: Optional[Dict[str, str]],
    ) -> BatchResult:
        catalog = await self.fetch_catalog(self.source_client, self.source_scope)
        selection = select_candidates(catalog, name_filter, names, name_map)
        self.logger.info(
            f'Selected {len(selection.candidates)} repositories'
            + (f', {len(selection.not_found)} not found' if selection.not_found else '')
        )
        return await self._migrate(
            started_at, selection.candidates, selection.not_found
        )

    async def _migrate(
        self,
        started_at: datetime,
        candidates: List[Candidate],
        not_found: List[MigrationOutcome],
    ) -> BatchResult:
        self.pre_errors = list(not_found)
        if not candidates:
            self.logger.warning('No repositories to migrate')
            return aggregate(
                self.pre_errors,
                [],
                started_at,
                datetime.now(),
                build_info=self.build_info,
            )

        destination = await self.fetch_catalog(
            self.destination_client, self.destination_scope
        )
        existing = [repo.name for repo in destination]
        requests = self.plan_requests(candidates, existing)

        self.orchestrator = MigrationOrchestrator(
            self.source_client,
            self.destination_client,
            self.runner,
            self.source_scope,
            self.destination_scope,
            self.policy,
            dst_exists=set(existing),
            workspace_dir=self.config.git.temp_dir,
        )
        outcomes = await self.orchestrator.run(requests)

        return aggregate(
            self.pre_errors,
            outcomes,
            started_at,
            datetime.now(),
            build_info=self.build_info,
        )
