from __future__ import annotations

import json

from nextnative.conversion.progress import PROGRESS_FILENAME, SUMMARY_FILENAME, PersistenceError, ProgressManager


def _manager(tmp_path, fake_clock, interval: int = 10) -> ProgressManager:
  return ProgressManager(tmp_path / 'src', tmp_path / 'out', checkpoint_interval=interval, clock=fake_clock)


def test_update_given_mixed_outcomes_when_recorded_then_remaining_and_completed_never_overlap(tmp_path, fake_clock) -> None:
  # Given
  manager = _manager(tmp_path, fake_clock)
  record = manager.load()
  manager.start(record, ['a.tsx', 'b.tsx', 'c.tsx'])

  # When
  manager.update(record, 'a.tsx')
  manager.update(record, 'b.tsx', failed=True, error='boom', error_type='fallback')

  # Then
  assert record.completed_files() == ['a.tsx']
  assert record.remaining == ['c.tsx']
  assert not set(record.remaining) & set(record.completed_files())
  assert record.failed[0].error_type == 'fallback'


def test_update_given_earlier_failure_when_file_later_succeeds_then_failure_entry_is_cleared(tmp_path, fake_clock) -> None:
  # Given
  manager = _manager(tmp_path, fake_clock)
  record = manager.load()
  manager.start(record, ['a.tsx'])
  manager.update(record, 'a.tsx', failed=True, error='timeout', error_type='backend')

  # When
  manager.update(record, 'a.tsx')

  # Then
  assert record.failed == []
  assert record.completed_files() == ['a.tsx']


def test_update_given_checkpoint_interval_when_reached_then_record_is_persisted_in_camel_case(tmp_path, fake_clock) -> None:
  # Given
  manager = _manager(tmp_path, fake_clock, interval=2)
  record = manager.load()
  manager.start(record, ['a.tsx', 'b.tsx', 'c.tsx'])

  # When
  manager.update(record, 'a.tsx')
  persisted_early = manager.progress_file.exists()
  manager.update(record, 'b.tsx')

  # Then
  assert not persisted_early
  data = json.loads((tmp_path / 'out' / PROGRESS_FILENAME).read_text(encoding='utf-8'))
  assert [entry['file'] for entry in data['completed']] == ['a.tsx', 'b.tsx']
  assert data['remaining'] == ['c.tsx']
  assert data['metadata']['lastUpdate'] == 1000000
  assert data['startTime'] == 1000000


def test_load_given_saved_record_when_resuming_then_completed_files_are_skipped(tmp_path, fake_clock) -> None:
  # Given
  manager = _manager(tmp_path, fake_clock)
  record = manager.load()
  manager.start(record, ['a.tsx', 'b.tsx'])
  manager.update(record, 'a.tsx')
  manager.save(record)

  # When
  resumed = _manager(tmp_path, fake_clock).load(resume=True)
  remaining = manager.start(resumed, ['a.tsx', 'b.tsx'])

  # Then
  assert remaining == ['b.tsx']


def test_load_given_saved_record_when_not_resuming_then_it_is_discarded(tmp_path, fake_clock) -> None:
  # Given
  manager = _manager(tmp_path, fake_clock)
  record = manager.load()
  manager.update(record, 'a.tsx')
  manager.save(record)

  # When
  fresh = manager.load(resume=False)

  # Then
  assert fresh.completed == []
  assert not manager.progress_file.exists()


def test_load_given_malformed_file_when_loaded_then_fresh_record_is_returned(tmp_path, fake_clock) -> None:
  # Given
  manager = _manager(tmp_path, fake_clock)
  manager.progress_file.parent.mkdir(parents=True)
  manager.progress_file.write_text('{"completed": [', encoding='utf-8')

  # When
  record = manager.load(resume=True)

  # Then
  assert record.completed == [] and record.failed == []


def test_finalize_given_no_failures_when_finalized_then_record_is_cleared_and_summary_written(tmp_path, fake_clock) -> None:
  # Given
  manager = _manager(tmp_path, fake_clock)
  record = manager.load()
  manager.start(record, ['a.tsx', 'b.tsx'])
  manager.update(record, 'a.tsx')
  manager.update(record, 'b.tsx')
  fake_clock.now += 90

  # When
  summary = manager.finalize(record, {'screens': 1, 'components': 1})

  # Then
  assert not manager.progress_file.exists()
  data = json.loads((tmp_path / 'out' / SUMMARY_FILENAME).read_text(encoding='utf-8'))
  assert data['statistics'] == {'totalFiles': 2, 'successful': 2, 'failed': 0, 'successRate': 100}
  assert data['files'] == {'screens': 1, 'layouts': 0, 'components': 1}
  assert data['conversion']['duration'] == '2 minutes'
  assert data['performance'] == {'avgTimePerFile': 45000, 'filesPerMinute': 1}
  assert summary.statistics.success_rate == 100


def test_finalize_given_failures_when_finalized_then_record_is_kept_for_resume(tmp_path, fake_clock) -> None:
  # Given
  manager = _manager(tmp_path, fake_clock)
  record = manager.load()
  manager.start(record, ['a.tsx', 'b.tsx', 'c.tsx'])
  manager.update(record, 'a.tsx')
  manager.update(record, 'b.tsx')
  manager.update(record, 'c.tsx', failed=True, error='no backend', error_type='fallback')

  # When
  summary = manager.finalize(record)

  # Then
  assert manager.progress_file.exists()
  assert summary.statistics.success_rate == 67
  assert summary.errors[0].file == 'c.tsx'


def test_save_given_unwritable_location_when_saved_then_false_is_returned(tmp_path, fake_clock, monkeypatch) -> None:
  # Given
  manager = _manager(tmp_path, fake_clock)
  record = manager.load()

  def refuse(path, content):
    raise PersistenceError(f'could not write {path}: read-only file system')

  monkeypatch.setattr(ProgressManager, '_write', staticmethod(refuse))

  # When
  saved = manager.save(record)

  # Then
  assert saved is False


def test_update_given_file_failing_again_on_resume_when_finalized_then_it_is_counted_once(tmp_path, fake_clock) -> None:
  # Given
  manager = _manager(tmp_path, fake_clock)
  record = manager.load()
  manager.start(record, ['a.tsx', 'b.tsx'])
  manager.update(record, 'a.tsx')
  manager.update(record, 'b.tsx', failed=True, error='no backend', error_type='fallback')
  manager.save(record)
  resumed_manager = _manager(tmp_path, fake_clock)
  resumed = resumed_manager.load(resume=True)
  resumed_manager.start(resumed, ['a.tsx', 'b.tsx'])

  # When
  resumed_manager.update(resumed, 'b.tsx', failed=True, error='quota exhausted', error_type='backend')
  summary = resumed_manager.finalize(resumed)

  # Then
  assert [entry.file for entry in resumed.failed] == ['b.tsx']
  assert resumed.failed[0].error_type == 'backend'
  assert summary.statistics.total_files == 2
  assert summary.statistics.failed == 1
  assert summary.statistics.success_rate == 50
