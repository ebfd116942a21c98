from __future__ import annotations

import json

import pytest

from nextnative.conversion.batch import BatchConverter
from nextnative.conversion.models import Method
from nextnative.conversion.pipeline import PipelineOrchestrator
from nextnative.conversion.progress import PROGRESS_FILENAME, SUMMARY_FILENAME, ProgressManager
from nextnative.conversion.project import load_project
from nextnative.logging.event_logger import EventLogger


def _batch(source, output, fake_clock, event_logger=None) -> BatchConverter:
  progress = ProgressManager(source, output, checkpoint_interval=1, clock=fake_clock)
  return BatchConverter(PipelineOrchestrator(), progress, source, output, concurrency=2, event_logger=event_logger)


@pytest.mark.asyncio
async def test_run_given_offline_project_when_converted_then_failures_are_isolated_and_summary_written(
  next_project,
  tmp_path,
  fake_clock
) -> None:
  # Given
  output = tmp_path / 'native'
  event_logger = EventLogger(tmp_path / 'logs')
  context = load_project(next_project)
  batch = _batch(next_project, output, fake_clock, event_logger)

  # When
  report = await batch.run(context)

  # Then
  assert context.files == ['app/profile/page.tsx', 'components/Broken.tsx', 'lib/format.ts']
  assert report.failed == ['components/Broken.tsx']
  assert report.copied == ['lib/format.ts']
  assert (output / 'lib' / 'format.ts').read_text(encoding='utf-8') == (next_project / 'lib' / 'format.ts').read_text(encoding='utf-8')
  assert 'SafeAreaView' in (output / 'app' / 'profile' / 'page.tsx').read_text(encoding='utf-8')
  assert report.counts_by_role == {'screens': 1, 'layouts': 0, 'components': 1}
  assert {result.filename: result.method for result in report.results} == {
    'app/profile/page.tsx': Method.PATTERN,
    'components/Broken.tsx': Method.FALLBACK
  }

  summary = json.loads((output / SUMMARY_FILENAME).read_text(encoding='utf-8'))
  assert summary['statistics']['failed'] == 1
  assert summary['statistics']['successful'] == 2
  assert (output / PROGRESS_FILENAME).exists()
  assert event_logger.recent(category='batch')[-1]['message'] == 'completed'


@pytest.mark.asyncio
async def test_run_given_previous_run_when_resumed_then_completed_files_are_not_converted_again(
  next_project,
  tmp_path,
  fake_clock
) -> None:
  # Given
  output = tmp_path / 'native'
  context = load_project(next_project)
  await _batch(next_project, output, fake_clock).run(context)

  # When
  report = await _batch(next_project, output, fake_clock).run(context, resume=True)

  # Then
  assert [result.filename for result in report.results] == ['components/Broken.tsx']
  assert report.copied == []
  assert report.failed == ['components/Broken.tsx']


@pytest.mark.asyncio
async def test_run_given_stop_requested_when_run_then_no_file_starts_and_nothing_is_finalized(
  next_project,
  tmp_path,
  fake_clock
) -> None:
  # Given
  output = tmp_path / 'native'
  batch = _batch(next_project, output, fake_clock)
  batch.stop()

  # When
  report = await batch.run(load_project(next_project))

  # Then
  assert batch.stopped and report.stopped
  assert report.results == [] and report.copied == []
  assert report.summary is None
  assert not (output / SUMMARY_FILENAME).exists()
  assert report.to_dict()['summary'] is None
