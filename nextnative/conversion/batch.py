from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from nextnative.conversion.models import (
  ConversionContext,
  ConversionResult,
  DependencySet,
  Method,
  Role,
  SourceArtifact,
  merge_dependencies
)
from nextnative.conversion.pipeline import PipelineOrchestrator
from nextnative.conversion.progress import ConversionSummary, ProgressManager, ProgressRecord
from nextnative.conversion.project import is_ui_source

logger = logging.getLogger(__name__)

ROLE_KEYS = {
  Role.SCREEN: 'screens',
  Role.LAYOUT: 'layouts',
  Role.COMPONENT: 'components'
}


@dataclass
class BatchReport:
  results: List[ConversionResult] = field(default_factory=list)
  copied: List[str] = field(default_factory=list)
  failed: List[str] = field(default_factory=list)
  dependencies: DependencySet = field(default_factory=dict)
  counts_by_role: Dict[str, int] = field(default_factory=lambda: {key: 0 for key in ROLE_KEYS.values()})
  summary: Optional[ConversionSummary] = None
  stopped: bool = False

  def to_dict(self) -> Dict[str, Any]:
    return {
      'converted': [result.to_dict() for result in self.results],
      'copied': list(self.copied),
      'failed': list(self.failed),
      'dependencies': dict(sorted(self.dependencies.items())),
      'counts_by_role': dict(self.counts_by_role),
      'summary': self.summary.model_dump(by_alias=True) if self.summary else None,
      'stopped': self.stopped
    }


class BatchConverter:
  """Feeds project files through the orchestrator and keeps the progress record current.

  A failure on one file never stops the others. ``stop`` lets in-flight files
  finish and starts no new ones; the run then relies on the last checkpoint.
  """

  def __init__(
    self,
    orchestrator: PipelineOrchestrator,
    progress: ProgressManager,
    source_root: Path,
    output_root: Path,
    concurrency: int = 1,
    event_logger=None
  ) -> None:
    self.orchestrator = orchestrator
    self.progress = progress
    self.source_root = Path(source_root)
    self.output_root = Path(output_root)
    self.concurrency = max(1, concurrency)
    self._event_logger = event_logger
    self._stopped = False

  @property
  def stopped(self) -> bool:
    return self._stopped

  def stop(self) -> None:
    if not self._stopped:
      logger.info('Stop requested; in-flight files will finish')
    self._stopped = True

  async def run(self, context: ConversionContext, resume: bool = False) -> BatchReport:
    record = self.progress.load(resume)
    remaining = self.progress.start(record, context.files)
    report = BatchReport()
    semaphore = asyncio.Semaphore(self.concurrency)
    logger.info('Converting %s file(s) with concurrency %s', len(remaining), self.concurrency)
    await asyncio.gather(*(self._process(file, context, record, report, semaphore) for file in remaining))

    if self._stopped:
      report.stopped = True
      logger.info('Batch stopped with %s file(s) remaining', len(record.remaining))
      return report
    report.summary = self.progress.finalize(record, report.counts_by_role)
    if self._event_logger:
      self._event_logger.log_event('batch', 'completed', {
        'converted': len(report.results),
        'copied': len(report.copied),
        'failed': len(report.failed)
      })
    return report

  async def _process(
    self,
    file: str,
    context: ConversionContext,
    record: ProgressRecord,
    report: BatchReport,
    semaphore: asyncio.Semaphore
  ) -> None:
    async with semaphore:
      if self._stopped:
        return
      try:
        text = (self.source_root / file).read_text(encoding='utf-8')
      except (OSError, UnicodeDecodeError) as error:
        self._fail(record, report, file, str(error), 'read-error')
        return

      if not is_ui_source(file, text):
        if self._write(record, report, file, text):
          report.copied.append(file)
          self.progress.update(record, file)
        return

      artifact = SourceArtifact.from_text(text, file, context.roles.get(file))
      result = await self.orchestrator.convert(artifact, context)
      if not self._write(record, report, file, result.code):
        return
      report.results.append(result)
      report.dependencies = merge_dependencies(report.dependencies, result.dependencies)
      report.counts_by_role[ROLE_KEYS[artifact.role]] += 1
      if result.method is Method.FALLBACK:
        self._fail(record, report, file, '; '.join(result.notes) or 'fallback used', 'fallback')
      else:
        self.progress.update(record, file)

  def _write(self, record: ProgressRecord, report: BatchReport, file: str, content: str) -> bool:
    target = self.output_root / file
    try:
      target.parent.mkdir(parents=True, exist_ok=True)
      target.write_text(content, encoding='utf-8')
    except OSError as error:
      self._fail(record, report, file, str(error), 'write-error')
      return False
    return True

  def _fail(self, record: ProgressRecord, report: BatchReport, file: str, error: str, error_type: str) -> None:
    logger.warning('%s failed (%s): %s', file, error_type, error)
    report.failed.append(file)
    self.progress.update(record, file, failed=True, error=error, error_type=error_type)
    if self._event_logger:
      self._event_logger.log_event('batch', 'file_failed', {'file': file, 'error': error, 'error_type': error_type})
