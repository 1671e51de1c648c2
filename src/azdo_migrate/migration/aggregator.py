"""Batch result assembly."""

import socket
from datetime import datetime
from typing import Optional, Sequence

from ..models.migration import BatchResult, BuildInfo, MigrationOutcome


def current_hostname() -> str:
    """Name of the machine running the migration, empty when unknown."""
    try:
        return socket.gethostname()
    except OSError:
        return ''


def aggregate(
    pre_errors: Sequence[MigrationOutcome],
    outcomes: Sequence[MigrationOutcome],
    started_at: datetime,
    ended_at: datetime,
    hostname: Optional[str] = None,
    build_info: Optional[BuildInfo] = None,
) -> BatchResult:
    """Combine selection errors and orchestrator outcomes into a batch result.

    Args:
        pre_errors: Outcomes for names that never reached the orchestrator
        outcomes: Orchestrator outcomes in selection order
        started_at: Run start time
        ended_at: Run end time
        hostname: Host name; looked up when not given
        build_info: Program metadata

    Returns:
        Batch result with selection errors first
    """
    return BatchResult(
        started_at=started_at,
        ended_at=ended_at,
        hostname=current_hostname() if hostname is None else hostname,
        build_info=build_info or BuildInfo(),
        outcomes=[*pre_errors, *outcomes],
    )
