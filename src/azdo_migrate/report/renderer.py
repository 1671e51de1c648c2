"""Migration report rendering: JSON and HTML files, console summary."""

import html
import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger
from rich.console import Console
from rich.table import Table

from ..config.config import SUPPORTED_REPORT_FORMATS
from ..models.migration import BatchResult, OutcomeResult

TIME_FORMAT = '%Y-%m-%d %H:%M:%S'

RESULT_STYLES = {
    OutcomeResult.OK: 'green',
    OutcomeResult.DRY_RUN: 'cyan',
}


def report_filename(fmt: str, timestamp: Optional[datetime] = None) -> str:
    """File name ``migration_report_YYYYMMDD_HHMMSS.<fmt>``."""
    timestamp = timestamp or datetime.now()
    return f'migration_report_{timestamp.strftime("%Y%m%d_%H%M%S")}.{fmt}'


def render_json(batch: BatchResult) -> str:
    """Serialize a batch result, derived fields included."""
    return json.dumps(batch.model_dump(mode='json'), indent=2)


def render_html(batch: BatchResult) -> str:
    """Render a batch result as a standalone HTML page.

    Args:
        batch: Batch result

    Returns:
        HTML document
    """
    esc = html.escape
    build = batch.build_info
    rows = []
    for outcome in batch.outcomes:
        stats = outcome.ref_stats
        rows.append(
            '<tr>'
            f'<td>{esc(outcome.repo_name)}</td>'
            f'<td>{esc(outcome.result.value)}</td>'
            f'<td>{_link(outcome.source_web_url)}</td>'
            f'<td>{stats.branch_count if stats else ""}</td>'
            f'<td>{stats.tag_count if stats else ""}</td>'
            f'<td>{stats.size_bytes if stats else ""}</td>'
            f'<td>{_link(outcome.dest_web_url)}</td>'
            '</tr>'
        )

    return '\n'.join(
        [
            '<!DOCTYPE html>',
            '<html><head><meta charset="utf-8"><title>Migration Report</title></head>',
            '<body>',
            '<h1>Migration Report</h1>',
            f'<p>Start: {batch.started_at.strftime(TIME_FORMAT)}</p>',
            f'<p>End: {batch.ended_at.strftime(TIME_FORMAT)}</p>',
            f'<p>Duration (minutes): {batch.duration_minutes:.2f}</p>',
            f'<p>Hostname: {esc(batch.hostname)}</p>',
            f'<p>Program: {esc(build.program)} {esc(build.version)} '
            f'(commit {esc(build.commit)}{", built " + esc(build.build_date) if build.build_date else ""})</p>',
            '<table border="1">',
            '<tr><th>Repository</th><th>Result</th><th>Source URL</th>'
            '<th>Branches</th><th>Tags</th><th>Size (bytes)</th>'
            '<th>Destination URL</th></tr>',
            *rows,
            '</table>',
            '</body></html>',
        ]
    )


def _link(url: str) -> str:
    if not url:
        return ''
    escaped = html.escape(url, quote=True)
    return f"<a href='{escaped}'>{escaped}</a>"


RENDERERS = {'json': render_json, 'html': render_html}


def save_reports(
    batch: BatchResult,
    formats: Sequence[str],
    directory: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> List[str]:
    """Write one report file per format.

    Args:
        batch: Batch result
        formats: Report formats (``json``, ``html``)
        directory: Target directory; defaults to the system temp directory
        timestamp: Time used in the file names; defaults to now

    Returns:
        Paths of the written files

    Raises:
        ValueError: If a format is not supported
    """
    unsupported = [fmt for fmt in formats if fmt not in SUPPORTED_REPORT_FORMATS]
    if unsupported:
        raise ValueError(f'Unsupported report format(s): {", ".join(unsupported)}')

    directory = directory or tempfile.gettempdir()
    timestamp = timestamp or datetime.now()
    paths = []
    for fmt in formats:
        path = os.path.join(directory, report_filename(fmt, timestamp))
        Path(path).write_text(RENDERERS[fmt](batch), encoding='utf-8')
        logger.bind(component='Report').info(f'Report ({fmt}) saved to {path}')
        paths.append(path)
    return paths


def print_summary(batch: BatchResult, console: Console) -> None:
    """Print the per-repository table and result counts."""
    table = Table(title='Migration Summary')
    table.add_column('Repository', style='cyan')
    table.add_column('Result')
    table.add_column('Destination URL', style='blue')

    for outcome in batch.outcomes:
        result = outcome.result
        if result.is_error:
            style = 'red'
        elif result.is_skipped:
            style = 'yellow'
        else:
            style = RESULT_STYLES.get(result, 'white')
        name = outcome.repo_name
        if outcome.destination_name and outcome.destination_name != name:
            name = f'{name} -> {outcome.destination_name}'
        table.add_row(name, f'[{style}]{result.value}[/{style}]', outcome.dest_web_url)

    console.print(table)

    for value, count in batch.counts().items():
        console.print(f'  {value}: {count}')
    console.print(
        f'\n[blue]Duration:[/blue] {batch.duration_minutes:.2f} minutes '
        f'on {batch.hostname or "unknown host"}'
    )
