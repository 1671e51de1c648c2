"""Migration engine: selection, orchestration and aggregation."""

from .errors import (
    CatalogFetchError,
    DestinationCreateError,
    ErrorKind,
    MigrationError,
    MigrationTimeoutError,
    PushError,
    SelectionError,
    SourceCloneError,
)
from .interfaces import CatalogClient, RefMirrorRunner
from .selection import (
    Candidate,
    RepoListEntry,
    SelectionResult,
    parse_index_selection,
    parse_repo_list,
    select_candidates,
)
from .aggregator import aggregate, current_hostname
from .orchestrator import MigrationOrchestrator
from .engine import MigrationEngine, policy_from_config

__all__ = [
    'CatalogFetchError',
    'DestinationCreateError',
    'ErrorKind',
    'MigrationError',
    'MigrationTimeoutError',
    'PushError',
    'SelectionError',
    'SourceCloneError',
    'CatalogClient',
    'RefMirrorRunner',
    'Candidate',
    'RepoListEntry',
    'SelectionResult',
    'parse_index_selection',
    'parse_repo_list',
    'select_candidates',
    'aggregate',
    'current_hostname',
    'MigrationOrchestrator',
    'MigrationEngine',
    'policy_from_config',
]
