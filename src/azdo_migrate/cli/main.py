"""Main CLI entry point for Azure DevOps Migration Tool."""

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .. import __version__
from ..api.client import AzureDevOpsClientFactory
from ..api.exceptions import AzureDevOpsAPIError
from ..config.config import Config
from ..git.mirror import GitMirrorRunner
from ..migration.aggregator import aggregate
from ..migration.engine import MigrationEngine, policy_from_config
from ..migration.errors import MigrationError, MigrationTimeoutError, SelectionError
from ..migration.selection import (
    Candidate,
    RepoListEntry,
    parse_index_selection,
    parse_repo_list,
)
from ..models.migration import BatchResult, BuildInfo, PolicySet
from ..report.renderer import print_summary, save_reports
from ..utils.logging import setup_logging

console = Console()

PROGRAM = 'azdo-migrate'

COMMANDS = ('init', 'list-repos', 'migrate', 'wizard')

DEFAULT_CONFIG_PATHS = ['azdo-migrate.yaml', 'azdo-migrate.yml', 'config.yaml']

# Single-dash multi-letter flags accepted by earlier releases
LEGACY_FLAGS = {
    '-so': '--src-org',
    '-sp': '--src-project',
    '-do': '--dst-org',
    '-dp': '--dst-project',
    '-rl': '--repo-list',
    '-fp': '--force-push',
}


def normalize_legacy_args(args: Sequence[str]) -> List[str]:
    """Rewrite legacy flags to their long forms.

    When no subcommand is given but migration options are, ``migrate`` is
    inserted after the group options.

    Args:
        args: Command line arguments without the program name

    Returns:
        Arguments click can parse
    """
    normalized = []
    for arg in args:
        flag, sep, value = arg.partition('=')
        if flag in LEGACY_FLAGS:
            normalized.append(LEGACY_FLAGS[flag] + sep + value)
        else:
            normalized.append(arg)

    i = 0
    while i < len(normalized):
        arg = normalized[i]
        if arg in ('-c', '--config'):
            i += 2
        elif arg.startswith('--config=') or arg in ('-v', '--verbose'):
            i += 1
        else:
            break

    rest = normalized[i:]
    if not rest or rest[0] in COMMANDS or rest[0] in ('--help', '-h', '--version'):
        return normalized
    return normalized[:i] + ['migrate'] + rest


def source_options(f):
    """Options selecting the source scope."""
    f = click.option(
        '--src-project', help='Source project (env: SRC_PROJECT)'
    )(f)
    f = click.option(
        '--src-org', help='Source organization (env: SRC_ORG)'
    )(f)
    return f


def destination_options(f):
    """Options selecting the destination scope."""
    f = click.option(
        '--dst-project', help='Destination project (env: DST_PROJECT)'
    )(f)
    f = click.option(
        '--dst-org', help='Destination organization (env: DST_ORG)'
    )(f)
    return f


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.version_option(version=__version__, prog_name=PROGRAM)
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True, dir_okay=False),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """Azure DevOps Migration Tool - Mirror Git repositories between organizations and projects."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Replaced once the configuration is loaded
    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@click.option(
    '--output',
    '-o',
    default='azdo-migrate.yaml',
    help='Output configuration file path',
)
def init(output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]Azure DevOps Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)
    except OSError as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)

    console.print(f'[green]✓[/green] Configuration template created at: {output}')
    console.print(
        f'[yellow]Please edit {output} and export SRC_PAT / DST_PAT[/yellow]'
    )


@cli.command('list-repos')
@source_options
@click.pass_context
def list_repos(
    ctx: click.Context, src_org: Optional[str], src_project: Optional[str]
) -> None:
    """List the repositories of the source project."""
    config = _load_config(
        ctx, {'source': {'organization': src_org, 'project': src_project}}
    )
    _require(config.require_source_token)
    _setup_logging_with_config(ctx, config)

    try:
        with AzureDevOpsClientFactory.create_client(config.source) as client:
            repositories = client.list_repositories(config.source.scope)
    except AzureDevOpsAPIError as e:
        console.print(f'[red]✗[/red] Failed to list repositories: {e.describe()}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    table = Table(title=f'Repositories in {config.source.scope}')
    table.add_column('#', style='dim', justify='right')
    table.add_column('Name', style='cyan')
    table.add_column('Clone URL', style='blue')
    table.add_column('Web URL', style='blue')
    for index, repo in enumerate(repositories, start=1):
        table.add_row(str(index), repo.name, repo.clone_url, repo.web_url)
    console.print(table)


@cli.command()
@source_options
@destination_options
@click.option(
    '--filter', '-f', 'name_filter', help='Regular expression on repository names'
)
@click.option(
    '--repo-list',
    type=click.Path(exists=True, dir_okay=False),
    help='File with one repository per line ("src -> dst" renames)',
)
@click.option('--dry-run', is_flag=True, help='Show the plan without making changes')
@click.option(
    '--force-push', is_flag=True, help='Overwrite repositories that already exist'
)
@click.option('--trace', '-t', is_flag=True, help='Detailed diagnostics')
@click.option(
    '--report-format',
    multiple=True,
    help='Report format: json, html (repeatable or comma separated)',
)
@click.option(
    '--report-path',
    type=click.Path(exists=True, file_okay=False),
    help='Directory for report files (default: temp dir)',
)
@click.option('--timeout', type=int, help='Overall deadline in seconds')
@click.pass_context
def migrate(
    ctx: click.Context,
    src_org: Optional[str],
    src_project: Optional[str],
    dst_org: Optional[str],
    dst_project: Optional[str],
    name_filter: Optional[str],
    repo_list: Optional[str],
    dry_run: bool,
    force_push: bool,
    trace: bool,
    report_format: Tuple[str, ...],
    report_path: Optional[str],
    timeout: Optional[int],
) -> None:
    """Mirror repositories from the source to the destination project."""
    overrides = _scope_overrides(src_org, src_project, dst_org, dst_project)
    overrides.update(
        migration={
            'filter': name_filter,
            'repo_list': repo_list,
            'dry_run': dry_run or None,
            'force_push': force_push or None,
            'trace': trace or None,
            'timeout': timeout,
        },
        report={
            'formats': _split_formats(report_format) or None,
            'path': report_path,
        },
    )
    config = _load_config(ctx, overrides)
    _require(config.require_source_token)
    _require(config.require_destination)
    _setup_logging_with_config(ctx, config)

    policy = policy_from_config(config)
    _print_banner(config, policy)

    started_at = datetime.now()
    try:
        names = _read_repo_list(config.migration.repo_list)
        batch = asyncio.run(
            _run_migration(config, policy, config.migration.filter, names)
        )
    except MigrationTimeoutError as e:
        console.print(f'[red]✗[/red] {e}')
        partial = aggregate(
            e.outcomes, [], started_at, datetime.now(), build_info=_build_info()
        )
        _finish(config, partial)
        sys.exit(1)
    except (MigrationError, AzureDevOpsAPIError, OSError, ValueError) as e:
        console.print(f'[red]✗[/red] Migration failed: {_describe(e, policy)}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    _finish(config, batch)


@cli.command()
@source_options
@destination_options
@click.option('--dry-run', is_flag=True, help='Show the plan without making changes')
@click.option(
    '--force-push', is_flag=True, help='Overwrite repositories that already exist'
)
@click.option('--trace', '-t', is_flag=True, help='Detailed diagnostics')
@click.pass_context
def wizard(
    ctx: click.Context,
    src_org: Optional[str],
    src_project: Optional[str],
    dst_org: Optional[str],
    dst_project: Optional[str],
    dry_run: bool,
    force_push: bool,
    trace: bool,
) -> None:
    """Interactively pick the repositories to migrate."""
    overrides = _scope_overrides(src_org, src_project, dst_org, dst_project)
    overrides['migration'] = {
        'dry_run': dry_run or None,
        'force_push': force_push or None,
        'trace': trace or None,
    }
    config = _load_config(ctx, overrides)
    _require(config.require_source_token)
    _require(config.require_destination)
    _setup_logging_with_config(ctx, config)

    policy = policy_from_config(config)
    source_client, destination_client = _create_clients(config, policy)
    started_at = datetime.now()
    try:
        engine = MigrationEngine(
            config,
            source_client,
            destination_client,
            GitMirrorRunner(config.git),
            policy=policy,
            build_info=_build_info(),
        )
        catalog = sorted(
            asyncio.run(engine.fetch_catalog(source_client, engine.source_scope)),
            key=lambda repo: repo.name,
        )
        if not catalog:
            console.print(f'[yellow]No repositories in {engine.source_scope}[/yellow]')
            return

        selected = _prompt_selection(catalog)
        destination = asyncio.run(
            engine.fetch_catalog(destination_client, engine.destination_scope)
        )
        existing = {repo.name for repo in destination}
        present = [repo.name for repo in selected if repo.name in existing]

        if present and not policy.force_push:
            console.print(
                f'[yellow]{len(present)} selected repositories already exist at '
                f'the destination: {", ".join(present)}[/yellow]'
            )
            if Confirm.ask('Overwrite them with a forced mirror push?', default=False):
                policy = policy.model_copy(update={'force_push': True})
                engine.policy = policy

        _print_plan(selected, existing, policy)
        if not Confirm.ask('Proceed?', default=False):
            console.print('[yellow]Aborted[/yellow]')
            return

        started_at = datetime.now()
        candidates = [Candidate(repo, repo.name) for repo in selected]
        batch = asyncio.run(engine.migrate_selected(candidates, started_at=started_at))
    except MigrationTimeoutError as e:
        console.print(f'[red]✗[/red] {e}')
        partial = aggregate(
            e.outcomes, [], started_at, datetime.now(), build_info=_build_info()
        )
        _finish(config, partial)
        sys.exit(1)
    except (MigrationError, AzureDevOpsAPIError, OSError) as e:
        console.print(f'[red]✗[/red] Migration failed: {_describe(e, policy)}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)
    finally:
        asyncio.run(_close_clients(source_client, destination_client))

    _finish(config, batch)


def _scope_overrides(
    src_org: Optional[str],
    src_project: Optional[str],
    dst_org: Optional[str],
    dst_project: Optional[str],
) -> Dict[str, Any]:
    return {
        'source': {'organization': src_org, 'project': src_project},
        'destination': {'organization': dst_org, 'project': dst_project},
    }


def _split_formats(values: Sequence[str]) -> List[str]:
    formats = []
    for value in values:
        formats.extend(f.strip().lower() for f in value.split(',') if f.strip())
    return formats


def _default_config_path() -> Optional[str]:
    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).is_file():
            return path
    return None


def _load_config(ctx: click.Context, overrides: Dict[str, Any]) -> Config:
    """Merge environment, configuration file and command line options.

    Raises:
        click.UsageError: If required values are missing
    """
    layers = [Config.env_data()]
    config_path = ctx.obj.get('config_path') or _default_config_path()
    try:
        if config_path:
            layers.append(Config.read_file(config_path))
        layers.append(overrides)
        return Config.from_layers(*layers)
    except ValidationError as e:
        missing = [
            '.'.join(str(part) for part in error['loc'])
            for error in e.errors()
            if error['type'] == 'missing'
        ]
        if missing:
            raise click.UsageError(
                f'Missing required configuration: {", ".join(missing)} '
                '(use --src-org/--src-project or SRC_ORG/SRC_PROJECT)'
            )
        console.print(f'[red]✗[/red] Invalid configuration: {e}')
        sys.exit(1)
    except (OSError, ValueError) as e:
        console.print(f'[red]✗[/red] Invalid configuration: {e}')
        sys.exit(1)


def _require(check) -> None:
    try:
        check()
    except ValueError as e:
        raise click.UsageError(str(e))


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False) or config.migration.trace

    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


def _build_info() -> BuildInfo:
    return BuildInfo(program=PROGRAM, version=__version__)


def _create_clients(config: Config, policy: PolicySet):
    source_client = AzureDevOpsClientFactory.create_client(config.source, policy.trace)
    destination_client = AzureDevOpsClientFactory.create_client(
        config.require_destination(), policy.trace
    )
    return source_client, destination_client


def _read_repo_list(path: Optional[str]) -> Optional[List[RepoListEntry]]:
    if not path:
        return None
    return parse_repo_list(Path(path).read_text(encoding='utf-8'))


def _describe(error: Exception, policy: PolicySet) -> str:
    if isinstance(error, AzureDevOpsAPIError):
        return error.describe(policy.trace)
    return str(error)


async def _run_migration(
    config: Config,
    policy: PolicySet,
    name_filter: Optional[str],
    names: Optional[List[RepoListEntry]],
) -> BatchResult:
    """Build the clients and runner, then run the engine."""
    source_client, destination_client = _create_clients(config, policy)
    runner = GitMirrorRunner(config.git)
    try:
        if not policy.dry_run and not await runner.check_available():
            raise MigrationError(
                f'git executable not available: {config.git.executable}'
            )

        engine = MigrationEngine(
            config,
            source_client,
            destination_client,
            runner,
            policy=policy,
            build_info=_build_info(),
        )
        return await engine.run(name_filter=name_filter, names=names)
    finally:
        await _close_clients(source_client, destination_client)


async def _close_clients(*clients) -> None:
    for client in clients:
        await client.close_async()


def _prompt_selection(catalog) -> list:
    """Ask for ``1,3-5`` style indices until the answer is valid."""
    table = Table(title='Source repositories')
    table.add_column('#', style='dim', justify='right')
    table.add_column('Name', style='cyan')
    for index, repo in enumerate(catalog, start=1):
        table.add_row(str(index), repo.name)
    console.print(table)

    while True:
        answer = Prompt.ask(
            'Repositories to migrate (e.g. 1,3-5; Enter for all)', default=''
        )
        if not answer.strip():
            return list(catalog)
        try:
            indices = parse_index_selection(answer, len(catalog))
        except SelectionError as e:
            console.print(f'[red]{e}[/red]')
            continue
        if indices:
            return [catalog[i] for i in indices]


def _print_plan(selected, existing, policy: PolicySet) -> None:
    table = Table(title='Planned actions' + (' (dry run)' if policy.dry_run else ''))
    table.add_column('Repository', style='cyan')
    table.add_column('Action')
    for repo in selected:
        if repo.name not in existing:
            action = 'create and mirror push'
        elif policy.force_push:
            action = '[yellow]overwrite with forced mirror push[/yellow]'
        else:
            action = '[dim]skip (already present)[/dim]'
        table.add_row(repo.name, action)
    console.print(table)


def _print_banner(config: Config, policy: PolicySet) -> None:
    destination = config.require_destination()
    console.print(
        Panel.fit(
            '[bold blue]Azure DevOps Migration Tool[/bold blue]\n'
            f'{config.source.scope} -> {destination.scope}',
            border_style='blue',
        )
    )
    if policy.dry_run:
        console.print(
            '[yellow]Running in dry-run mode - no changes will be made[/yellow]'
        )
    if policy.force_push:
        console.print('[yellow]Force push enabled for existing repositories[/yellow]')


def _finish(config: Config, batch: BatchResult) -> None:
    """Print the summary and write the requested reports."""
    print_summary(batch, console)
    if config.report.formats:
        for path in save_reports(batch, config.report.formats, config.report.path):
            console.print(f'Report saved to: {path}')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli(args=normalize_legacy_args(sys.argv[1:]), prog_name=PROGRAM)
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
