from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from nextnative.config import settings
from nextnative.quality.validator import round_half_up

logger = logging.getLogger(__name__)

PROGRESS_FILENAME = '.nextnative-progress.json'
SUMMARY_FILENAME = 'conversion-summary.json'
RECORD_VERSION = '1.0.0'


class PersistenceError(OSError):
  """A progress checkpoint could not be written."""


class _Document(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CompletedEntry(_Document):
  file: str
  timestamp: int


class FailedEntry(_Document):
  file: str
  error: str = 'Unknown error'
  error_type: str = 'unknown'
  timestamp: int


class RecordMetadata(_Document):
  version: str = RECORD_VERSION
  last_update: int = 0


class Statistics(_Document):
  total_files: int = 0
  successful: int = 0
  failed: int = 0
  success_rate: int = 0


class ProgressRecord(_Document):
  start_time: int
  project_path: str
  output_path: str
  completed: List[CompletedEntry] = Field(default_factory=list)
  failed: List[FailedEntry] = Field(default_factory=list)
  remaining: List[str] = Field(default_factory=list)
  metadata: RecordMetadata = Field(default_factory=RecordMetadata)
  end_time: Optional[int] = None
  duration: Optional[int] = None
  statistics: Optional[Statistics] = None

  def completed_files(self) -> List[str]:
    return [entry.file for entry in self.completed]


class ConversionInfo(_Document):
  start_time: str
  end_time: str
  duration: str
  version: str = RECORD_VERSION


class FileCounts(_Document):
  screens: int = 0
  layouts: int = 0
  components: int = 0


class Performance(_Document):
  avg_time_per_file: int = 0
  files_per_minute: int = 0


class ConversionSummary(_Document):
  conversion: ConversionInfo
  statistics: Statistics
  files: FileCounts
  errors: List[FailedEntry] = Field(default_factory=list)
  performance: Performance = Field(default_factory=Performance)


def _iso(milliseconds: int) -> str:
  return time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(milliseconds / 1000)) + f'.{milliseconds % 1000:03d}Z'


class ProgressManager:
  """Durable, resumable record of which files a batch run has finished.

  Single writer only. A checkpoint is written every ``checkpoint_interval``
  completions; write failures are logged and never stop the batch.
  """

  def __init__(
    self,
    project_path: Path,
    output_path: Path,
    checkpoint_interval: Optional[int] = None,
    clock: Callable[[], float] = time.time
  ) -> None:
    self.project_path = Path(project_path)
    self.output_path = Path(output_path)
    self.progress_file = self.output_path / PROGRESS_FILENAME
    self.summary_file = self.output_path / SUMMARY_FILENAME
    self.checkpoint_interval = max(1, checkpoint_interval or settings.checkpoint_interval)
    self._clock = clock
    self._checkpointed = 0

  def _now(self) -> int:
    return int(self._clock() * 1000)

  def new_record(self) -> ProgressRecord:
    now = self._now()
    return ProgressRecord(
      start_time=now,
      project_path=str(self.project_path),
      output_path=str(self.output_path),
      metadata=RecordMetadata(last_update=now)
    )

  def load(self, resume: bool = False) -> ProgressRecord:
    if not self.progress_file.exists():
      return self.new_record()
    try:
      record = ProgressRecord.model_validate_json(self.progress_file.read_text(encoding='utf-8'))
    except (OSError, ValueError, ValidationError) as error:
      logger.warning('Could not load previous progress from %s, starting fresh: %s', self.progress_file, error)
      return self.new_record()
    if not resume:
      self.clear()
      return self.new_record()
    logger.info('Resuming previous conversion (%s files completed)', len(record.completed))
    self._checkpointed = len(record.completed)
    return record

  def start(self, record: ProgressRecord, files: Iterable[str]) -> List[str]:
    done = set(record.completed_files())
    record.remaining = [file for file in files if file not in done]
    if done:
      logger.info('Skipping %s already completed files; %s remaining', len(done), len(record.remaining))
    return list(record.remaining)

  def update(
    self,
    record: ProgressRecord,
    file: str,
    failed: bool = False,
    error: Optional[str] = None,
    error_type: Optional[str] = None
  ) -> None:
    now = self._now()
    record.failed = [entry for entry in record.failed if entry.file != file]
    if failed:
      record.failed.append(
        FailedEntry(file=file, error=error or 'Unknown error', error_type=error_type or 'unknown', timestamp=now)
      )
    elif file not in record.completed_files():
      record.completed.append(CompletedEntry(file=file, timestamp=now))
    record.remaining = [remaining for remaining in record.remaining if remaining != file]

    if len(record.completed) - self._checkpointed >= self.checkpoint_interval:
      if self.save(record):
        logger.info('Progress saved (%s files completed)', len(record.completed))
      self._checkpointed = len(record.completed)

  def save(self, record: ProgressRecord) -> bool:
    record.metadata.last_update = self._now()
    try:
      self._write(self.progress_file, record.model_dump_json(by_alias=True, indent=2))
    except PersistenceError as error:
      logger.warning('Could not save progress: %s', error)
      return False
    return True

  def clear(self) -> None:
    try:
      self.progress_file.unlink(missing_ok=True)
    except OSError as error:
      logger.warning('Could not remove %s: %s', self.progress_file, error)

  def finalize(self, record: ProgressRecord, counts_by_role: Optional[Mapping[str, int]] = None) -> ConversionSummary:
    """Writes the final record and the summary; the record is removed only when nothing failed."""
    record.end_time = self._now()
    record.duration = record.end_time - record.start_time
    total = len(record.completed) + len(record.failed)
    record.statistics = Statistics(
      total_files=total,
      successful=len(record.completed),
      failed=len(record.failed),
      success_rate=round_half_up(len(record.completed), total)
    )
    self.save(record)

    summary = self.summarize(record, counts_by_role or {})
    try:
      self._write(self.summary_file, summary.model_dump_json(by_alias=True, indent=2))
    except PersistenceError as error:
      logger.warning('Could not write %s: %s', self.summary_file.name, error)

    if not record.failed:
      self.clear()
    else:
      logger.info('%s file(s) failed; keeping %s for a resumed run', len(record.failed), self.progress_file.name)
    return summary

  def summarize(self, record: ProgressRecord, counts_by_role: Mapping[str, int]) -> ConversionSummary:
    duration = record.duration or 0
    minutes = (duration + 30000) // 60000
    total = len(record.completed) + len(record.failed)
    return ConversionSummary(
      conversion=ConversionInfo(
        start_time=_iso(record.start_time),
        end_time=_iso(record.end_time or record.start_time),
        duration=f'{minutes} minutes'
      ),
      statistics=record.statistics or Statistics(),
      files=FileCounts(
        screens=counts_by_role.get('screens', 0),
        layouts=counts_by_role.get('layouts', 0),
        components=counts_by_role.get('components', 0)
      ),
      errors=list(record.failed),
      performance=Performance(
        avg_time_per_file=round(duration / total) if duration > 0 and total else 0,
        files_per_minute=round(total / minutes) if minutes > 0 else 0
      )
    )

  @staticmethod
  def _write(path: Path, content: str) -> None:
    try:
      path.parent.mkdir(parents=True, exist_ok=True)
      temporary = path.with_name(path.name + '.tmp')
      temporary.write_text(content, encoding='utf-8')
      temporary.replace(path)
    except OSError as error:
      raise PersistenceError(f'could not write {path}: {error}') from error
