"""Data models for repository migration."""

from .repository import RepositoryDescriptor, Scope
from .migration import (
    BatchResult,
    BuildInfo,
    MigrationOutcome,
    MigrationRequest,
    OutcomeResult,
    PolicySet,
    RefStats,
)

__all__ = [
    'RepositoryDescriptor',
    'Scope',
    'BatchResult',
    'BuildInfo',
    'MigrationOutcome',
    'MigrationRequest',
    'OutcomeResult',
    'PolicySet',
    'RefStats',
]
