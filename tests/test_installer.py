from __future__ import annotations

import subprocess

import pytest

from nextnative.conversion.installer import NpmInstaller
from nextnative.logging.event_logger import EventLogger


@pytest.mark.asyncio
async def test_install_given_no_package_manager_when_installing_then_failure_is_reported(tmp_path, monkeypatch) -> None:
  # Given
  monkeypatch.setattr('nextnative.conversion.installer.shutil.which', lambda name: None)
  installer = NpmInstaller()

  # When
  result = await installer.install(tmp_path, ['react-native-svg'])

  # Then
  assert not result.success
  assert result.error == 'neither npm nor yarn is available on host'


@pytest.mark.asyncio
async def test_install_given_npm_failure_when_installing_then_yarn_is_tried(tmp_path, monkeypatch) -> None:
  # Given
  monkeypatch.setattr('nextnative.conversion.installer.shutil.which', lambda name: f'/usr/bin/{name}')
  commands = []

  def fake_run(command, cwd, capture_output, text):
    commands.append(command)
    returncode = 1 if command[0].endswith('npm') else 0
    return subprocess.CompletedProcess(command, returncode, stdout='', stderr='ERESOLVE unable to resolve dependency tree')

  monkeypatch.setattr('nextnative.conversion.installer.subprocess.run', fake_run)

  # When
  result = await NpmInstaller().install(tmp_path, ['@react-navigation/native'])

  # Then
  assert result.success and result.tool == 'yarn'
  assert commands == [
    ['/usr/bin/npm', 'install', '@react-navigation/native'],
    ['/usr/bin/yarn', 'add', '@react-navigation/native']
  ]


@pytest.mark.asyncio
async def test_install_given_no_packages_when_installing_then_nothing_runs(tmp_path, monkeypatch) -> None:
  # Given
  monkeypatch.setattr('nextnative.conversion.installer.subprocess.run', lambda *args, **kwargs: pytest.fail('should not run'))

  # When
  result = await NpmInstaller().install(tmp_path, [])

  # Then
  assert result.success and result.packages == []


def test_event_logger_given_events_and_a_corrupt_line_when_read_then_valid_entries_are_filtered(tmp_path) -> None:
  # Given
  event_logger = EventLogger(tmp_path / 'logs')
  event_logger.log_event('batch', 'completed', {'failed': 0})
  with event_logger.log_file.open('a', encoding='utf-8') as handle:
    handle.write('not json\n')
  event_logger.log_error('backend down', {'status': 503})

  # When
  batch_events = event_logger.recent(category='batch')
  all_events = event_logger.recent()

  # Then
  assert [event['message'] for event in batch_events] == ['completed']
  assert batch_events[0]['payload'] == {'failed': 0}
  assert [event['category'] for event in all_events] == ['batch', 'error']
  assert event_logger.recent(limit=1)[0]['payload'] == {'status': 503}
