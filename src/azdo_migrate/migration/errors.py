"""Migration error taxonomy.

Run-level errors (selection, catalog fetch, timeout) abort a run before or
during repository work. Repository-level errors are recorded in that
repository's outcome and never leave the orchestrator.
"""

from enum import Enum
from typing import List, Optional


class ErrorKind(str, Enum):
    """Classification of migration failures."""

    INVALID_FILTER = 'invalid_filter'
    INVALID_SELECTION = 'invalid_selection'
    CATALOG_FETCH = 'catalog_fetch'
    TIMEOUT = 'timeout'
    SOURCE_CLONE = 'source_clone'
    DESTINATION_CREATE = 'destination_create'
    PUSH = 'push'


class MigrationError(Exception):
    """Base exception for migration failures."""

    kind: ErrorKind

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class SelectionError(MigrationError):
    """The repository selection could not be computed (fatal)."""

    kind = ErrorKind.INVALID_FILTER


class CatalogFetchError(MigrationError):
    """Listing the source or destination catalog failed (fatal)."""

    kind = ErrorKind.CATALOG_FETCH

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MigrationTimeoutError(MigrationError):
    """The run exceeded its overall deadline (fatal).

    ``outcomes`` holds the repositories completed before the deadline.
    """

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, outcomes: Optional[List] = None):
        super().__init__(message)
        self.outcomes = list(outcomes or [])


class SourceCloneError(MigrationError):
    """Mirror clone of the source repository failed."""

    kind = ErrorKind.SOURCE_CLONE


class DestinationCreateError(MigrationError):
    """Creating the destination repository failed."""

    kind = ErrorKind.DESTINATION_CREATE


class PushError(MigrationError):
    """Mirror push to the destination failed."""

    kind = ErrorKind.PUSH
