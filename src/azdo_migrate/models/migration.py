"""Migration request, outcome and batch result models."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .repository import RepositoryDescriptor


class OutcomeResult(str, Enum):
    """Terminal result of a single repository migration."""

    OK = 'OK'
    DRY_RUN = 'DRY-RUN'
    SKIPPED_PRESENT = 'SKIPPED: repo already present'
    SKIPPED_MISSING_DESTINATION = 'SKIPPED: missing destination'
    ERROR_SOURCE_NOT_FOUND = 'ERROR: source not found'
    ERROR_DESTINATION_CREATION = 'ERROR: destination creation'
    ERROR_PUSH = 'ERROR: push'

    @property
    def is_error(self) -> bool:
        return self.value.startswith('ERROR')

    @property
    def is_skipped(self) -> bool:
        return self.value.startswith('SKIPPED')


class PolicySet(BaseModel):
    """Run-wide policy switches applied to every request of a batch."""

    model_config = ConfigDict(frozen=True)

    dry_run: bool = Field(default=False, description='Plan only, execute nothing')
    force_push: bool = Field(
        default=False, description='Overwrite repositories that existed at start'
    )
    trace: bool = Field(default=False, description='Detailed diagnostics')


class MigrationRequest(BaseModel):
    """One repository to drive through the migration state machine."""

    model_config = ConfigDict(frozen=True)

    source: RepositoryDescriptor = Field(..., description='Source repository')
    destination_name: str = Field(..., description='Destination repository name')
    existed_at_start: bool = Field(
        ..., description='Destination existed before this run started'
    )

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def is_renamed(self) -> bool:
        return self.destination_name != self.source.name


class RefStats(BaseModel):
    """Refs and on-disk size of a local mirror clone."""

    model_config = ConfigDict(frozen=True)

    branches: List[str] = Field(default_factory=list, description='Branch names')
    tags: List[str] = Field(default_factory=list, description='Tag names')
    size_bytes: int = Field(default=0, description='Mirror size on disk in bytes')

    @computed_field
    @property
    def branch_count(self) -> int:
        return len(self.branches)

    @computed_field
    @property
    def tag_count(self) -> int:
        return len(self.tags)


class MigrationOutcome(BaseModel):
    """Terminal record for one repository; never revised after creation."""

    model_config = ConfigDict(frozen=True)

    repo_name: str = Field(..., description='Source repository name')
    destination_name: Optional[str] = Field(
        default=None, description='Destination repository name'
    )
    result: OutcomeResult = Field(..., description='Terminal result')
    source_web_url: str = Field(default='', description='Source web URL')
    dest_web_url: str = Field(default='', description='Destination web URL')
    dest_clone_url: str = Field(
        default='', description='Destination clone URL, credentials redacted'
    )
    ref_stats: Optional[RefStats] = Field(
        default=None, description='Refs collected after a real clone'
    )
    error_detail: Optional[str] = Field(default=None, description='Error detail')
    planned_actions: List[str] = Field(
        default_factory=list, description='Dry-run command previews'
    )


class BuildInfo(BaseModel):
    """Program version metadata stamped on reports."""

    model_config = ConfigDict(frozen=True)

    program: str = Field(default='azdo-migrate', description='Program name')
    version: str = Field(default='dev', description='Program version')
    commit: str = Field(default='none', description='Source commit')
    build_date: str = Field(default='', description='Build date')


class BatchResult(BaseModel):
    """Result of one migration invocation."""

    model_config = ConfigDict(frozen=True)

    started_at: datetime = Field(..., description='Run start time')
    ended_at: datetime = Field(..., description='Run end time')
    hostname: str = Field(default='', description='Host that ran the migration')
    build_info: BuildInfo = Field(
        default_factory=BuildInfo, description='Program metadata'
    )
    outcomes: List[MigrationOutcome] = Field(
        default_factory=list, description='Per-repository outcomes, in order'
    )

    @field_validator('ended_at')
    @classmethod
    def validate_ended_at(cls, v, info):
        """End time cannot precede start time."""
        started_at = info.data.get('started_at')
        if started_at is not None and v < started_at:
            raise ValueError('ended_at must not precede started_at')
        return v

    @computed_field
    @property
    def duration_minutes(self) -> float:
        return (self.ended_at - self.started_at).total_seconds() / 60

    def counts(self) -> Dict[str, int]:
        """Number of outcomes per result value, in enum order."""
        counts = {result.value: 0 for result in OutcomeResult}
        for outcome in self.outcomes:
            counts[outcome.result.value] += 1
        return {k: v for k, v in counts.items() if v}

    @property
    def has_errors(self) -> bool:
        return any(outcome.result.is_error for outcome in self.outcomes)
