"""Tests for repository selection."""

import pytest

from azdo_migrate.migration.errors import ErrorKind, SelectionError
from azdo_migrate.migration.selection import (
    RepoListEntry,
    parse_index_selection,
    parse_repo_list,
    select_candidates,
)
from azdo_migrate.models.migration import OutcomeResult
from azdo_migrate.models.repository import RepositoryDescriptor


def repo(name):
    return RepositoryDescriptor(
        name=name,
        clone_url=f'https://dev.azure.com/src/P/_git/{name}',
        web_url=f'https://dev.azure.com/src/P/_git/{name}',
    )


CATALOG = [repo('alpha'), repo('beta'), repo('team-api'), repo('team-web')]


class TestParseRepoList:
    """Test repository list parsing."""

    def test_comments_and_blank_lines_are_ignored(self):
        text = '# migrate these\nalpha\n\n   beta  \n  # later\n'

        entries = parse_repo_list(text)

        assert entries == [RepoListEntry('alpha'), RepoListEntry('beta')]

    def test_rename_lines(self):
        entries = parse_repo_list('alpha -> alpha-archive\nbeta')

        assert entries == [
            RepoListEntry('alpha', 'alpha-archive'),
            RepoListEntry('beta'),
        ]

    def test_rename_needs_both_names(self):
        with pytest.raises(SelectionError) as exc_info:
            parse_repo_list('alpha ->')

        assert exc_info.value.kind == ErrorKind.INVALID_SELECTION


class TestSelectCandidates:
    """Test reconciliation of the catalog with a filter or list."""

    def test_no_filter_selects_everything(self):
        result = select_candidates(CATALOG)

        assert [c.source.name for c in result.candidates] == [
            'alpha',
            'beta',
            'team-api',
            'team-web',
        ]
        assert result.not_found == []

    def test_filter_is_unanchored(self):
        result = select_candidates(CATALOG, name_filter='api|web')

        assert [c.source.name for c in result.candidates] == ['team-api', 'team-web']

    def test_anchored_filter(self):
        result = select_candidates(CATALOG, name_filter='^team-api$')

        assert [c.source.name for c in result.candidates] == ['team-api']

    def test_invalid_filter(self):
        with pytest.raises(SelectionError) as exc_info:
            select_candidates(CATALOG, name_filter='team-[')

        assert exc_info.value.kind == ErrorKind.INVALID_FILTER

    def test_list_keeps_list_order_and_reports_missing(self):
        names = [RepoListEntry('team-web'), RepoListEntry('ghost'), RepoListEntry('alpha')]

        result = select_candidates(CATALOG, names=names)

        assert [c.source.name for c in result.candidates] == ['team-web', 'alpha']
        assert len(result.not_found) == 1
        missing = result.not_found[0]
        assert missing.repo_name == 'ghost'
        assert missing.result == OutcomeResult.ERROR_SOURCE_NOT_FOUND
        assert result.total == 3

    def test_list_takes_precedence_over_filter(self):
        result = select_candidates(
            CATALOG, name_filter='^team-', names=[RepoListEntry('alpha')]
        )

        assert [c.source.name for c in result.candidates] == ['alpha']

    def test_duplicates_are_preserved(self):
        names = [RepoListEntry('beta'), RepoListEntry('beta')]

        result = select_candidates(CATALOG, names=names)

        assert [c.source.name for c in result.candidates] == ['beta', 'beta']

    def test_empty_list_selects_nothing(self):
        result = select_candidates(CATALOG, names=[])

        assert result.candidates == []
        assert result.not_found == []

    def test_lookup_is_exact(self):
        result = select_candidates(CATALOG, names=[RepoListEntry('Alpha')])

        assert result.candidates == []
        assert result.not_found[0].repo_name == 'Alpha'

    def test_destination_names(self):
        names = [RepoListEntry('alpha', 'alpha-old'), RepoListEntry('beta')]

        result = select_candidates(CATALOG, names=names, name_map={'beta': 'beta2'})

        assert [c.destination_name for c in result.candidates] == ['alpha-old', 'beta2']

    def test_name_map_applies_to_filter_mode(self):
        result = select_candidates(
            CATALOG, name_filter='^alpha$', name_map={'alpha': 'omega'}
        )

        assert result.candidates[0].destination_name == 'omega'

    def test_empty_catalog(self):
        result = select_candidates([], names=[RepoListEntry('alpha')])

        assert result.candidates == []
        assert [o.repo_name for o in result.not_found] == ['alpha']


class TestParseIndexSelection:
    """Test the interactive index selection syntax."""

    def test_indices_and_ranges(self):
        assert parse_index_selection('1,3-5', 6) == [0, 2, 3, 4]

    def test_sorted_and_unique(self):
        assert parse_index_selection(' 4, 2 ,2-3 ', 5) == [1, 2, 3]

    @pytest.mark.parametrize('text', ['0', '7', 'x', '3-1', '2-9', '1-a'])
    def test_invalid_selection(self, text):
        with pytest.raises(SelectionError):
            parse_index_selection(text, 6)
