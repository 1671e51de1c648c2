"""Tests for report rendering."""

import json
import os
from datetime import datetime

import pytest
from rich.console import Console

from azdo_migrate.migration.aggregator import aggregate, current_hostname
from azdo_migrate.models.migration import (
    BatchResult,
    BuildInfo,
    MigrationOutcome,
    OutcomeResult,
    RefStats,
)
from azdo_migrate.report.renderer import (
    print_summary,
    render_html,
    render_json,
    report_filename,
    save_reports,
)

STARTED = datetime(2024, 5, 1, 10, 0, 0)
ENDED = datetime(2024, 5, 1, 10, 3, 0)


def make_batch():
    ok = MigrationOutcome(
        repo_name='api',
        destination_name='api',
        result=OutcomeResult.OK,
        source_web_url='https://dev.azure.com/src/P/_git/api',
        dest_web_url='https://dev.azure.com/dst/Q/_git/api',
        dest_clone_url='https://dev.azure.com/dst/Q/_git/api',
        ref_stats=RefStats(branches=['main', 'dev'], tags=['v1'], size_bytes=2048),
    )
    missing = MigrationOutcome(
        repo_name='<ghost>',
        result=OutcomeResult.ERROR_SOURCE_NOT_FOUND,
        error_detail='repository not found in source catalog',
    )
    return aggregate(
        [missing],
        [ok],
        STARTED,
        ENDED,
        hostname='build-agent-1',
        build_info=BuildInfo(version='1.0.0', commit='abc123'),
    )


class TestAggregate:
    """Test batch assembly."""

    def test_errors_come_first(self):
        batch = make_batch()

        assert [o.repo_name for o in batch.outcomes] == ['<ghost>', 'api']
        assert batch.hostname == 'build-agent-1'
        assert batch.duration_minutes == pytest.approx(3.0)
        assert batch.has_errors

    def test_hostname_lookup(self):
        batch = aggregate([], [], STARTED, ENDED)

        assert batch.hostname == current_hostname()
        assert batch.outcomes == []

    def test_end_before_start_rejected(self):
        with pytest.raises(ValueError):
            BatchResult(started_at=ENDED, ended_at=STARTED)


class TestRenderers:
    """Test JSON and HTML output."""

    def test_render_json(self):
        data = json.loads(render_json(make_batch()))

        assert data['hostname'] == 'build-agent-1'
        assert data['duration_minutes'] == pytest.approx(3.0)
        assert data['build_info']['commit'] == 'abc123'
        assert data['outcomes'][0]['result'] == 'ERROR: source not found'
        stats = data['outcomes'][1]['ref_stats']
        assert stats['branch_count'] == 2
        assert stats['tag_count'] == 1
        assert stats['size_bytes'] == 2048

    def test_render_html(self):
        page = render_html(make_batch())

        assert '<h1>Migration Report</h1>' in page
        assert '2024-05-01 10:00:00' in page
        assert 'build-agent-1' in page
        assert '<th>Branches</th>' in page
        assert '&lt;ghost&gt;' in page
        assert '<ghost>' not in page
        assert "<a href='https://dev.azure.com/dst/Q/_git/api'>" in page
        assert '<td>2048</td>' in page

    def test_report_filename(self):
        name = report_filename('html', datetime(2024, 5, 1, 9, 8, 7))

        assert name == 'migration_report_20240501_090807.html'

    def test_save_reports(self, tmp_path):
        paths = save_reports(
            make_batch(),
            ['json', 'html'],
            str(tmp_path),
            timestamp=datetime(2024, 5, 1, 9, 8, 7),
        )

        assert [os.path.basename(p) for p in paths] == [
            'migration_report_20240501_090807.json',
            'migration_report_20240501_090807.html',
        ]
        assert json.loads(open(paths[0]).read())['hostname'] == 'build-agent-1'

    def test_save_reports_rejects_unknown_format(self, tmp_path):
        with pytest.raises(ValueError):
            save_reports(make_batch(), ['pdf'], str(tmp_path))

        assert os.listdir(tmp_path) == []

    def test_print_summary(self):
        console = Console(record=True, width=200)

        print_summary(make_batch(), console)

        text = console.export_text()
        assert 'Migration Summary' in text
        assert 'ERROR: source not found' in text
        assert 'OK: 1' in text
        assert 'build-agent-1' in text
