"""Tests for CLI interface."""

import os
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner
from loguru import logger

from azdo_migrate.cli.main import cli, normalize_legacy_args
from azdo_migrate.migration.aggregator import aggregate
from azdo_migrate.migration.errors import CatalogFetchError, MigrationTimeoutError
from azdo_migrate.models.migration import MigrationOutcome, OutcomeResult
from azdo_migrate.models.repository import RepositoryDescriptor, Scope

from fakes import FakeCatalog, FakeRunner

ENV_NAMES = [
    'AZDO_URL',
    'SRC_ORG',
    'SRC_PROJECT',
    'SRC_PAT',
    'DST_ORG',
    'DST_PROJECT',
    'DST_PAT',
    'MIGRATION_TIMEOUT',
    'GIT_TEMP_DIR',
    'GIT_TIMEOUT',
    'LOG_LEVEL',
    'LOG_FILE',
]

SCOPES = ['--src-org', 'src-org', '--src-project', 'Src', '--dst-org', 'dst-org', '--dst-project', 'Dst']


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    """Isolated environment with both tokens set and no config file."""
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv('SRC_PAT', 'src-pat')
    monkeypatch.setenv('DST_PAT', 'dst-pat')
    yield monkeypatch
    # sinks added during invoke point at CliRunner's closed streams
    logger.remove()


def ok_batch():
    outcome = MigrationOutcome(
        repo_name='api',
        destination_name='api',
        result=OutcomeResult.OK,
        dest_web_url='https://dev.azure.com/dst-org/Dst/_git/api',
    )
    now = datetime.now()
    return aggregate([], [outcome], now, now, hostname='host')


class TestLegacyArgs:
    """Test normalisation of legacy command lines."""

    def test_short_flags_are_rewritten(self):
        args = normalize_legacy_args(
            ['migrate', '-so', 'a', '-sp=b', '-do', 'c', '-dp', 'd', '-rl', 'l.txt', '-fp']
        )

        assert args == [
            'migrate',
            '--src-org',
            'a',
            '--src-project=b',
            '--dst-org',
            'c',
            '--dst-project',
            'd',
            '--repo-list',
            'l.txt',
            '--force-push',
        ]

    def test_migrate_is_implied(self):
        assert normalize_legacy_args(['-v', '-so', 'a', '--dry-run']) == [
            '-v',
            'migrate',
            '--src-org',
            'a',
            '--dry-run',
        ]
        assert normalize_legacy_args(['-c', 'cfg.yaml', '-f', 'x']) == [
            '-c',
            'cfg.yaml',
            'migrate',
            '-f',
            'x',
        ]

    def test_commands_and_help_untouched(self):
        assert normalize_legacy_args(['wizard', '-so', 'a']) == [
            'wizard',
            '--src-org',
            'a',
        ]
        assert normalize_legacy_args(['--help']) == ['--help']
        assert normalize_legacy_args([]) == []


class TestCLI:
    """Test CLI commands."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_cli_help(self):
        """Test CLI help command."""
        result = self.runner.invoke(cli, ['--help'])

        assert result.exit_code == 0
        assert 'Azure DevOps Migration Tool' in result.output
        assert 'init' in result.output
        assert 'list-repos' in result.output
        assert 'migrate' in result.output
        assert 'wizard' in result.output

    def test_cli_version(self):
        """Test CLI version command."""
        result = self.runner.invoke(cli, ['--version'])

        assert result.exit_code == 0
        assert '0.1.0' in result.output

    def test_init_command(self, tmp_path):
        """Test init command."""
        config_path = os.path.join(tmp_path, 'test_config.yaml')

        result = self.runner.invoke(cli, ['init', '--output', config_path])

        assert result.exit_code == 0
        assert 'Configuration template created' in result.output
        with open(config_path, 'r') as f:
            content = f.read()
        assert 'source:' in content
        assert 'destination:' in content
        assert 'migration:' in content

    def test_init_command_default_output(self):
        """Test init command with default output."""
        result = self.runner.invoke(cli, ['init'])

        assert result.exit_code == 0
        assert os.path.exists('azdo-migrate.yaml')

    def test_migrate_without_source(self):
        result = self.runner.invoke(cli, ['migrate', '--dst-org', 'd', '--dst-project', 'D'])

        assert result.exit_code == 2
        assert 'Missing required configuration' in result.output

    def test_migrate_without_destination(self):
        result = self.runner.invoke(
            cli, ['migrate', '--src-org', 'src-org', '--src-project', 'Src']
        )

        assert result.exit_code == 2
        assert 'Destination not configured' in result.output

    def test_migrate_without_token(self, env):
        env.delenv('SRC_PAT')

        result = self.runner.invoke(cli, ['migrate', *SCOPES])

        assert result.exit_code == 2
        assert 'SRC_PAT' in result.output

    @patch('azdo_migrate.cli.main._run_migration', new_callable=AsyncMock)
    def test_migrate_command_success(self, mock_run_migration, tmp_path):
        """Test successful migrate command."""
        mock_run_migration.return_value = ok_batch()

        result = self.runner.invoke(
            cli,
            [
                'migrate',
                *SCOPES,
                '--filter',
                '^api$',
                '--dry-run',
                '--report-format',
                'json,html',
                '--report-path',
                str(tmp_path),
            ],
        )

        assert result.exit_code == 0, result.output
        assert 'dry-run mode' in result.output
        config, policy, name_filter, names = mock_run_migration.call_args.args
        assert config.source.scope == Scope(organization='src-org', project='Src')
        assert config.destination.token == 'dst-pat'
        assert policy.dry_run is True
        assert policy.force_push is False
        assert name_filter == '^api$'
        assert names is None
        reports = sorted(p for p in os.listdir(tmp_path) if p.startswith('migration_report_'))
        assert [os.path.splitext(p)[1] for p in reports] == ['.html', '.json']

    @patch('azdo_migrate.cli.main._run_migration', new_callable=AsyncMock)
    def test_migrate_reads_repo_list(self, mock_run_migration, tmp_path):
        repo_list = tmp_path / 'repos.txt'
        repo_list.write_text('# wanted\napi\nweb -> web-archive\n')
        mock_run_migration.return_value = ok_batch()

        result = self.runner.invoke(
            cli,
            normalize_legacy_args(['-rl', str(repo_list), '-fp', *SCOPES]),
        )

        assert result.exit_code == 0, result.output
        _, policy, _, names = mock_run_migration.call_args.args
        assert policy.force_push is True
        assert [(n.source_name, n.destination_name) for n in names] == [
            ('api', None),
            ('web', 'web-archive'),
        ]

    @patch('azdo_migrate.cli.main._run_migration', new_callable=AsyncMock)
    def test_migrate_repo_list_without_names(self, mock_run_migration, tmp_path):
        repo_list = tmp_path / 'repos.txt'
        repo_list.write_text('# nothing yet\n\n')
        mock_run_migration.return_value = ok_batch()

        result = self.runner.invoke(
            cli, ['migrate', *SCOPES, '--repo-list', str(repo_list)]
        )

        assert result.exit_code == 0, result.output
        _, _, _, names = mock_run_migration.call_args.args
        assert names == []

    @patch('azdo_migrate.cli.main._run_migration', new_callable=AsyncMock)
    def test_migrate_with_config_file(self, mock_run_migration, tmp_path):
        config_path = tmp_path / 'custom.yaml'
        config_path.write_text(
            'source:\n  organization: file-org\n  project: Src\n'
            'destination:\n  organization: dst-org\n  project: Dst\n'
            'migration:\n  filter: from-file\n  timeout: 60\n'
        )
        mock_run_migration.return_value = ok_batch()

        result = self.runner.invoke(
            cli, ['--config', str(config_path), 'migrate', '--timeout', '120']
        )

        assert result.exit_code == 0, result.output
        config, _, name_filter, _ = mock_run_migration.call_args.args
        assert config.source.organization == 'file-org'
        assert config.source.token == 'src-pat'
        assert config.migration.timeout == 120
        assert name_filter == 'from-file'

    @patch('azdo_migrate.cli.main._run_migration', new_callable=AsyncMock)
    def test_migrate_fatal_error(self, mock_run_migration):
        mock_run_migration.side_effect = CatalogFetchError(
            'Failed to list repositories of src-org/Src', status_code=401
        )

        result = self.runner.invoke(cli, ['migrate', *SCOPES])

        assert result.exit_code == 1
        assert 'Migration failed' in result.output

    @patch('azdo_migrate.cli.main._run_migration', new_callable=AsyncMock)
    def test_migrate_timeout_reports_partial(self, mock_run_migration):
        mock_run_migration.side_effect = MigrationTimeoutError(
            'Migration timed out after 5 seconds', outcomes=ok_batch().outcomes
        )

        result = self.runner.invoke(cli, ['migrate', *SCOPES])

        assert result.exit_code == 1
        assert 'timed out' in result.output
        assert 'Migration Summary' in result.output

    def test_invalid_report_format(self):
        result = self.runner.invoke(cli, ['migrate', *SCOPES, '--report-format', 'pdf'])

        assert result.exit_code == 1
        assert 'Invalid configuration' in result.output

    @patch('azdo_migrate.cli.main.AzureDevOpsClientFactory.create_client')
    def test_list_repos(self, mock_create_client):
        client = MagicMock()
        client.__enter__.return_value = client
        client.list_repositories.return_value = [
            RepositoryDescriptor(name='api', clone_url='c1', web_url='w1'),
            RepositoryDescriptor(name='web', clone_url='c2', web_url='w2'),
        ]
        mock_create_client.return_value = client

        result = self.runner.invoke(
            cli, ['list-repos', '--src-org', 'src-org', '--src-project', 'Src']
        )

        assert result.exit_code == 0, result.output
        assert 'api' in result.output
        assert 'web' in result.output
        client.list_repositories.assert_called_once_with(
            Scope(organization='src-org', project='Src')
        )

    def test_wizard(self):
        source_scope = Scope(organization='src-org', project='Src')
        destination_scope = Scope(organization='dst-org', project='Dst')
        source = FakeCatalog({source_scope: ['b', 'a', 'c']}, token='src-pat')
        destination = FakeCatalog({destination_scope: ['c']}, token='dst-pat')
        runner = FakeRunner()

        with patch(
            'azdo_migrate.cli.main._create_clients', return_value=(source, destination)
        ), patch('azdo_migrate.cli.main.GitMirrorRunner', return_value=runner):
            result = self.runner.invoke(cli, ['wizard', *SCOPES], input='2-3\ny\ny\n')

        assert result.exit_code == 0, result.output
        assert runner.clones == ['b', 'c']
        assert runner.pushes == [('b', False), ('c', True)]
        assert destination.created == ['b']
        assert source.closed
        assert destination.closed

    def test_wizard_aborted(self):
        source_scope = Scope(organization='src-org', project='Src')
        source = FakeCatalog({source_scope: ['a']}, token='src-pat')
        destination = FakeCatalog({}, token='dst-pat')
        runner = FakeRunner()

        with patch(
            'azdo_migrate.cli.main._create_clients', return_value=(source, destination)
        ), patch('azdo_migrate.cli.main.GitMirrorRunner', return_value=runner):
            result = self.runner.invoke(cli, ['wizard', *SCOPES], input='\nn\n')

        assert result.exit_code == 0, result.output
        assert 'Aborted' in result.output
        assert runner.clones == []
        assert source.closed
        assert destination.closed

    def test_wizard_catalog_failure_closes_clients(self):
        source = FakeCatalog({}, token='src-pat')
        source.fail_list = True
        destination = FakeCatalog({}, token='dst-pat')

        with patch(
            'azdo_migrate.cli.main._create_clients', return_value=(source, destination)
        ), patch('azdo_migrate.cli.main.GitMirrorRunner', return_value=FakeRunner()):
            result = self.runner.invoke(cli, ['wizard', *SCOPES])

        assert result.exit_code == 1
        assert 'Migration failed' in result.output
        assert source.closed
        assert destination.closed
