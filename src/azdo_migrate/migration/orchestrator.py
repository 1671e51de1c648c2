"""Migration orchestrator driving each repository through clone, create and push."""

import os
import re
import shutil
import tempfile
from typing import List, Optional, Set

from loguru import logger

from ..api.exceptions import AzureDevOpsAPIError
from ..git.exceptions import GitCommandError
from ..models.migration import (
    MigrationOutcome,
    MigrationRequest,
    OutcomeResult,
    PolicySet,
    RefStats,
)
from ..models.repository import Scope
from ..utils.security import redact_url, sanitize_for_logging
from .errors import (
    DestinationCreateError,
    ErrorKind,
    MigrationError,
    PushError,
    SourceCloneError,
)
from .interfaces import CatalogClient, RefMirrorRunner

RESULT_BY_KIND = {
    ErrorKind.SOURCE_CLONE: OutcomeResult.ERROR_SOURCE_NOT_FOUND,
    ErrorKind.DESTINATION_CREATE: OutcomeResult.ERROR_DESTINATION_CREATION,
    ErrorKind.PUSH: OutcomeResult.ERROR_PUSH,
}

_UNSAFE_PATH_CHARS = re.compile(r'[^A-Za-z0-9._-]')


def mirror_dir_name(name: str) -> str:
    """Deterministic workspace directory name for a repository."""
    safe = _UNSAFE_PATH_CHARS.sub('_', name).lstrip('.') or '_'
    return f'{safe}.git'


class MigrationOrchestrator:
    """Migrates repositories one after another.

    The orchestrator owns the destination existence set: names are added as
    repositories get created, so later requests for the same destination do
    not create it again. Force is decided from each request's
    ``existed_at_start`` snapshot, never from the live set.
    """

    def __init__(
        self,
        source_client: CatalogClient,
        destination_client: CatalogClient,
        runner: RefMirrorRunner,
        source_scope: Scope,
        destination_scope: Scope,
        policy: PolicySet,
        dst_exists: Set[str],
        workspace_dir: Optional[str] = None,
    ):
        """Initialize migration orchestrator.

        Args:
            source_client: Catalog client of the source organization
            destination_client: Catalog client of the destination organization
            runner: Mirror clone/push runner
            source_scope: Source organization/project
            destination_scope: Destination organization/project
            policy: Run-wide policy
            dst_exists: Names present at the destination; mutated in place
            workspace_dir: Parent directory of the temporary workspace
        """
        self.source_client = source_client
        self.destination_client = destination_client
        self.runner = runner
        self.source_scope = source_scope
        self.destination_scope = destination_scope
        self.policy = policy
        self.dst_exists = dst_exists
        self.workspace_dir = workspace_dir
        self.outcomes: List[MigrationOutcome] = []
        self.logger = logger.bind(component='MigrationOrchestrator')

    async def run(self, requests: List[MigrationRequest]) -> List[MigrationOutcome]:
        """Migrate every request in order.

        Per-repository failures become outcomes. Cancellation propagates,
        leaves the remaining requests unstarted and still removes the
        workspace; outcomes produced so far stay in ``self.outcomes``.

        Args:
            requests: Requests in selection order

        Returns:
            One outcome per request, in request order
        """
        self.outcomes = []
        total = len(requests)
        mode = 'dry run' if self.policy.dry_run else 'migration'
        self.logger.info(
            f'Starting {mode} of {total} repositories '
            f'from {self.source_scope} to {self.destination_scope}'
        )

        with tempfile.TemporaryDirectory(
            prefix='azdo-migrate-', dir=self.workspace_dir
        ) as workspace:
            self.logger.debug(f'Workspace: {workspace}')
            for index, request in enumerate(requests, start=1):
                label = request.name
                if request.is_renamed:
                    label = f'{label} -> {request.destination_name}'
                self.logger.info(f'[{index}/{total}] {label}')
                outcome = await self.migrate_repository(request, workspace)
                self.outcomes.append(outcome)
                self._log_outcome(outcome)

        return list(self.outcomes)

    async def migrate_repository(
        self, request: MigrationRequest, workspace: str
    ) -> MigrationOutcome:
        """Run the state machine for a single repository.

        Args:
            request: Repository to migrate
            workspace: Batch workspace directory

        Returns:
            Terminal outcome
        """
        name = request.destination_name
        outcome = dict(
            repo_name=request.name,
            destination_name=name,
            source_web_url=request.source.web_url
            or self.source_client.web_url(self.source_scope, request.name),
            dest_web_url=self.destination_client.web_url(self.destination_scope, name),
            dest_clone_url=redact_url(
                self.destination_client.git_url(self.destination_scope, name)
            ),
        )

        if request.existed_at_start and not self.policy.force_push:
            self.logger.info(
                f'{name} already exists at destination; use --force-push to overwrite'
            )
            result = (
                OutcomeResult.DRY_RUN
                if self.policy.dry_run
                else OutcomeResult.SKIPPED_PRESENT
            )
            return MigrationOutcome(result=result, **outcome)

        force = request.existed_at_start and self.policy.force_push
        local_path = os.path.join(workspace, mirror_dir_name(name))
        source_url = self.source_client.git_url(
            self.source_scope, request.name, authenticated=True
        )
        dest_url = self.destination_client.git_url(
            self.destination_scope, name, authenticated=True
        )

        if self.policy.dry_run:
            return MigrationOutcome(
                result=OutcomeResult.DRY_RUN,
                planned_actions=self._plan(name, source_url, dest_url, local_path, force),
                **outcome,
            )

        stats: Optional[RefStats] = None
        try:
            await self._clone(source_url, local_path)
            stats = await self._collect_stats(local_path)

            if name not in self.dst_exists and not request.existed_at_start:
                await self._create(name)

            if name not in self.dst_exists:
                return MigrationOutcome(
                    result=OutcomeResult.SKIPPED_MISSING_DESTINATION,
                    ref_stats=stats,
                    **outcome,
                )

            await self._push(local_path, dest_url, force)
        except MigrationError as e:
            return MigrationOutcome(
                result=RESULT_BY_KIND[e.kind],
                ref_stats=stats,
                error_detail=sanitize_for_logging(str(e)),
                **outcome,
            )
        finally:
            shutil.rmtree(local_path, ignore_errors=True)

        return MigrationOutcome(result=OutcomeResult.OK, ref_stats=stats, **outcome)

    def _plan(
        self, name: str, source_url: str, dest_url: str, local_path: str, force: bool
    ) -> List[str]:
        planned = [self.runner.describe_clone(source_url, local_path)]
        if name not in self.dst_exists:
            planned.append(f'create repository {name} in {self.destination_scope}')
        planned.append(self.runner.describe_push(local_path, dest_url, force))

        for action in planned:
            self.logger.info(f'[dry-run] {action}')
        return planned

    async def _clone(self, source_url: str, local_path: str) -> None:
        if os.path.exists(local_path):
            # a name listed twice reuses the same directory
            shutil.rmtree(local_path)
        try:
            await self.runner.mirror_clone(source_url, local_path)
        except (GitCommandError, OSError) as e:
            raise SourceCloneError(f'mirror clone failed: {e}') from e

    async def _collect_stats(self, local_path: str) -> Optional[RefStats]:
        try:
            return await self.runner.collect_ref_stats(local_path)
        except (GitCommandError, OSError) as e:
            self.logger.warning(f'Could not collect ref statistics: {e}')
            return None

    async def _create(self, name: str) -> None:
        try:
            await self.destination_client.create_repository_async(
                self.destination_scope, name
            )
        except AzureDevOpsAPIError as e:
            raise DestinationCreateError(
                f'create repository failed: {e.describe(self.policy.trace)}'
            ) from e
        self.dst_exists.add(name)
        self.logger.info(f'Created {name} in {self.destination_scope}')

    async def _push(self, local_path: str, dest_url: str, force: bool) -> None:
        try:
            await self.runner.mirror_push(local_path, dest_url, force)
        except (GitCommandError, OSError) as e:
            raise PushError(f'mirror push failed: {e}') from e

    def _log_outcome(self, outcome: MigrationOutcome) -> None:
        message = f'{outcome.repo_name}: {outcome.result.value}'
        if outcome.error_detail:
            message = f'{message} ({outcome.error_detail})'

        if outcome.result.is_error:
            self.logger.error(message)
        elif outcome.result.is_skipped:
            self.logger.warning(message)
        else:
            self.logger.info(message)
