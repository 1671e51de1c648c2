"""Repository selection against a source catalog."""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..models.migration import MigrationOutcome, OutcomeResult
from ..models.repository import RepositoryDescriptor
from .errors import ErrorKind, SelectionError

RENAME_SEPARATOR = '->'


@dataclass(frozen=True)
class RepoListEntry:
    """One line of a repository list file."""

    source_name: str
    destination_name: Optional[str] = None


@dataclass(frozen=True)
class Candidate:
    """A source repository selected for migration."""

    source: RepositoryDescriptor
    destination_name: str


@dataclass
class SelectionResult:
    """Candidates in selection order plus names missing from the source."""

    candidates: List[Candidate] = field(default_factory=list)
    not_found: List[MigrationOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.candidates) + len(self.not_found)


def parse_repo_list(text: str) -> List[RepoListEntry]:
    """Parse a repository list.

    One name per line; blank lines and ``#`` comments are ignored. A line
    ``source -> destination`` migrates ``source`` under a new name.

    Raises:
        SelectionError: If a rename line has an empty side
    """
    entries = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        if RENAME_SEPARATOR in line:
            source, _, destination = line.partition(RENAME_SEPARATOR)
            source, destination = source.strip(), destination.strip()
            if not source or not destination:
                raise SelectionError(
                    f'Invalid rename on line {lineno}: {line!r}',
                    ErrorKind.INVALID_SELECTION,
                )
            entries.append(RepoListEntry(source, destination))
        else:
            entries.append(RepoListEntry(line))
    return entries


def compile_filter(pattern: str) -> 're.Pattern[str]':
    """Compile a repository name filter.

    Raises:
        SelectionError: If the pattern is not a valid regular expression
    """
    try:
        return re.compile(pattern)
    except re.error as e:
        raise SelectionError(f'Invalid filter regex {pattern!r}: {e}')


def select_candidates(
    catalog: Sequence[RepositoryDescriptor],
    name_filter: Optional[str] = None,
    names: Optional[Sequence[RepoListEntry]] = None,
    name_map: Optional[Dict[str, str]] = None,
) -> SelectionResult:
    """Reconcile a source catalog against an explicit list or a filter.

    An explicit list takes precedence over the filter. Listed names are
    looked up by exact match and keep list order, duplicates included; names
    missing from the catalog become ``ERROR: source not found`` outcomes.
    The filter is matched with ``re.search`` (unanchored) and keeps catalog
    order. Without either, the whole catalog is selected; an empty explicit
    list selects nothing.

    Args:
        catalog: Source repositories
        name_filter: Regular expression on repository names
        names: Explicit repository list
        name_map: Source-to-destination renames applied to every candidate

    Returns:
        Selection result

    Raises:
        SelectionError: If the filter is malformed
    """
    name_map = dict(name_map or {})
    result = SelectionResult()

    def destination_for(source_name: str, explicit: Optional[str] = None) -> str:
        return explicit or name_map.get(source_name, source_name)

    if names is not None:
        by_name = {repo.name: repo for repo in catalog}
        for entry in names:
            repo = by_name.get(entry.source_name)
            if repo is None:
                result.not_found.append(
                    MigrationOutcome(
                        repo_name=entry.source_name,
                        destination_name=destination_for(
                            entry.source_name, entry.destination_name
                        ),
                        result=OutcomeResult.ERROR_SOURCE_NOT_FOUND,
                        error_detail='repository not found in source catalog',
                    )
                )
                continue
            result.candidates.append(
                Candidate(repo, destination_for(repo.name, entry.destination_name))
            )
        return result

    if name_filter:
        pattern = compile_filter(name_filter)
        selected = [repo for repo in catalog if pattern.search(repo.name)]
    else:
        selected = list(catalog)

    result.candidates.extend(
        Candidate(repo, destination_for(repo.name)) for repo in selected
    )
    return result


def parse_index_selection(selection: str, count: int) -> List[int]:
    """Convert ``1,3-5`` into sorted, unique, zero-based indices.

    Args:
        selection: Comma separated 1-based indices and ranges
        count: Number of selectable items

    Raises:
        SelectionError: On malformed or out-of-range elements
    """
    indices = set()
    for element in selection.split(','):
        element = element.strip()
        if not element:
            continue

        if '-' in element:
            first, _, last = element.partition('-')
            try:
                a, b = int(first.strip()), int(last.strip())
            except ValueError:
                raise SelectionError(
                    f'Invalid range: {element}', ErrorKind.INVALID_SELECTION
                )
            if a < 1 or b < 1 or a > b or b > count:
                raise SelectionError(
                    f'Invalid range: {element}', ErrorKind.INVALID_SELECTION
                )
            indices.update(range(a - 1, b))
        else:
            try:
                n = int(element)
            except ValueError:
                raise SelectionError(
                    f'Invalid index: {element}', ErrorKind.INVALID_SELECTION
                )
            if n < 1 or n > count:
                raise SelectionError(
                    f'Invalid index: {element}', ErrorKind.INVALID_SELECTION
                )
            indices.add(n - 1)

    return sorted(indices)
