from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from nextnative.ai.clients import GeminiClient
from nextnative.ai.errors import BackendError
from nextnative.ai.prompts import build_improvement_prompt, build_patch_prompt
from nextnative.ai.retry import RetryPolicy, Sleep
from nextnative.config import settings
from nextnative.conversion.markup import find_forbidden_tags, unwrapped_text
from nextnative.conversion.models import ConversionContext, QualityIssue, QualityReport, RepairAttempt, SourceArtifact
from nextnative.conversion.rules import TransformUsage
from nextnative.conversion.transform import PatternTransformEngine
from nextnative.conversion.ui_kit import UI_KIT_IMPORT_RE, has_unconverted_usage
from nextnative.quality.validator import REACT_IMPORT_RE, TYPED_MARKER_RE, QualityValidator

logger = logging.getLogger(__name__)

MIN_LENGTH_RATIO = 0.7
MAX_TOP_LEVEL_ATTEMPTS = 5

CURATED_ADVISORIES = ('legacy-storage', 'accessibility', 'safe-area', 'ui-kit')
LOCAL_FIX_CATEGORIES = frozenset({'missing-react-import', 'missing-native-import', 'legacy-storage'})

LEGACY_STORAGE_RE = re.compile(r'\b(?:localStorage|sessionStorage)\b')
ACCESSIBILITY_RE = re.compile(r'\baccessibility(?:Label|Role|Hint)\b')


class PatchRejected(Exception):
  """A candidate patch failed its acceptance predicate."""

  def __init__(self, category: str, reason: str) -> None:
    super().__init__(f'{category}: {reason}')
    self.category = category
    self.reason = reason


# Predicates return a rejection reason, or None when the candidate is acceptable.
Predicate = Callable[[str, str], Optional[str]]


def _keeps_length(original: str, candidate: str) -> Optional[str]:
  if len(candidate) < MIN_LENGTH_RATIO * len(original):
    return f'patch shrank the file to {len(candidate)} of {len(original)} characters'
  return None


def _has_react_import(original: str, candidate: str) -> Optional[str]:
  return None if REACT_IMPORT_RE.search(candidate) else 'React import still missing'


def _has_native_import(original: str, candidate: str) -> Optional[str]:
  return None if 'react-native' in candidate else 'react-native import still missing'


def _no_forbidden_tags(original: str, candidate: str) -> Optional[str]:
  shrunk = _keeps_length(original, candidate)
  if shrunk:
    return shrunk
  remaining = find_forbidden_tags(candidate)
  return f'HTML elements remain: {", ".join(remaining)}' if remaining else None


def _text_wrapped(original: str, candidate: str) -> Optional[str]:
  shrunk = _keeps_length(original, candidate)
  if shrunk:
    return shrunk
  return 'unwrapped text remains' if unwrapped_text(candidate) else None


def _has_type_markers(original: str, candidate: str) -> Optional[str]:
  return None if TYPED_MARKER_RE.search(candidate) else 'no interface or type marker found'


def _kit_converted(original: str, candidate: str) -> Optional[str]:
  if UI_KIT_IMPORT_RE.search(candidate):
    return 'components/ui imports remain'
  return 'shadcn/ui usage remains' if has_unconverted_usage(candidate) else None


def _storage_migrated(original: str, candidate: str) -> Optional[str]:
  if LEGACY_STORAGE_RE.search(candidate):
    return 'localStorage/sessionStorage calls remain'
  return None if 'AsyncStorage' in candidate else 'AsyncStorage is not used'


def _has_accessibility(original: str, candidate: str) -> Optional[str]:
  return None if ACCESSIBILITY_RE.search(candidate) else 'no accessibility props added'


def _has_safe_area(original: str, candidate: str) -> Optional[str]:
  return None if 'SafeAreaView' in candidate else 'SafeAreaView is missing'


PATCH_PREDICATES: Dict[str, Predicate] = {
  'missing-react-import': _has_react_import,
  'missing-native-import': _has_native_import,
  'forbidden-tags': _no_forbidden_tags,
  'text-wrapping': _text_wrapped,
  'typed-markers': _has_type_markers,
  'ui-kit-unconverted': _kit_converted,
  'ui-kit': _kit_converted,
  'legacy-storage': _storage_migrated,
  'accessibility': _has_accessibility,
  'safe-area': _has_safe_area
}


@dataclass
class CallPacing:
  """Backend calls made for one artifact; every call after the first waits the repair delay."""
  calls: int = 0


@dataclass
class PatchOutcome:
  code: str
  report: QualityReport
  accepted: List[str] = field(default_factory=list)
  rejected: List[PatchRejected] = field(default_factory=list)
  tokens: int = 0


@dataclass
class ImprovementResult:
  code: str
  report: QualityReport
  initial_score: int
  attempts: List[RepairAttempt] = field(default_factory=list)
  tokens: int = 0


def good_enough(report: QualityReport) -> bool:
  return report.score == 100 or (report.score >= 90 and not report.blocking_issues)


class AutoRepairEngine:
  """Applies one narrowly scoped patch per defect and keeps only patches that pass their predicate.

  Import and storage defects are first tried with a local rewrite; everything
  else goes to the generation backend. A patch is also rejected when it lowers
  the quality score. ``improve`` wraps this in the top-level regeneration loop.
  """

  def __init__(
    self,
    client: Optional[GeminiClient] = None,
    validator: Optional[QualityValidator] = None,
    policy: Optional[RetryPolicy] = None,
    engine: Optional[PatternTransformEngine] = None,
    sleep: Sleep = asyncio.sleep,
    event_logger=None
  ) -> None:
    self.client = client
    self.validator = validator or QualityValidator()
    self.policy = policy or RetryPolicy.fixed(settings.repair_attempts, settings.repair_delay_seconds)
    self.engine = engine or PatternTransformEngine()
    self._sleep = sleep
    self._event_logger = event_logger

  async def repair(
    self,
    code: str,
    filename: str,
    issues: Sequence[QualityIssue],
    suggestions: Sequence[QualityIssue] = (),
    context: Optional[ConversionContext] = None
  ) -> str:
    outcome = await self.apply_patches(code, filename, issues, suggestions, context)
    return outcome.code

  async def apply_patches(
    self,
    code: str,
    filename: str,
    issues: Sequence[QualityIssue],
    suggestions: Sequence[QualityIssue] = (),
    context: Optional[ConversionContext] = None,
    pacing: Optional[CallPacing] = None
  ) -> PatchOutcome:
    pacing = pacing or CallPacing()
    dependencies = context.native_dependencies if context else None
    outcome = PatchOutcome(code=code, report=self.validator.validate(code, filename, dependencies))
    hints: Dict[str, List[str]] = {}
    for suggestion in suggestions:
      hints.setdefault(suggestion.category, []).append(suggestion.message)

    for issue in self._targets(issues, suggestions):
      candidate = self._local_fix(issue, outcome.code)
      if candidate is not None and self._try_accept(issue, candidate, filename, dependencies, outcome, local=True):
        continue
      if self.client is None:
        self._reject(outcome, PatchRejected(issue.category, 'no generation backend configured'), filename)
        continue
      try:
        candidate = await self._generate(
          build_patch_prompt(outcome.code, filename, issue, hints.get(issue.category, [])),
          f'patch:{issue.category}:{filename}',
          outcome,
          pacing
        )
      except BackendError as error:
        self._reject(outcome, PatchRejected(issue.category, f'backend error: {error}'), filename)
        continue
      self._try_accept(issue, candidate, filename, dependencies, outcome)
    return outcome

  async def improve(
    self,
    code: str,
    artifact: SourceArtifact,
    context: Optional[ConversionContext] = None
  ) -> ImprovementResult:
    """Patch, re-score and regenerate until the bar is met or the attempts run out.

    The best attempt wins, earliest on a tie. The first attempt only accepts
    score-preserving patches, so the result never scores below ``code``.
    """
    pacing = CallPacing()
    dependencies = context.native_dependencies if context else None
    report = self.validator.validate(code, artifact.filename, dependencies)
    result = ImprovementResult(code=code, report=report, initial_score=report.score)
    if good_enough(report):
      return result

    current = code
    max_attempts = min(self.policy.max_attempts, MAX_TOP_LEVEL_ATTEMPTS)
    for index in range(1, max_attempts + 1):
      regenerated = False
      if index > 1:
        if self.client is None:
          break
        tracker = PatchOutcome(code=current, report=report)
        try:
          current = await self._generate(
            build_improvement_prompt(current, artifact, report, context),
            f'improve:{artifact.filename}:{index}',
            tracker,
            pacing
          )
        except BackendError as error:
          logger.warning('Regeneration %s for %s failed: %s', index, artifact.filename, error)
          break
        result.tokens += tracker.tokens
        regenerated = True
        report = self.validator.validate(current, artifact.filename, dependencies)

      patched = await self.apply_patches(current, artifact.filename, report.blocking_issues, report.advisories, context, pacing)
      result.tokens += patched.tokens
      current, report = patched.code, patched.report
      result.attempts.append(
        RepairAttempt(
          index=index,
          code=current,
          report=report,
          accepted_patches=list(patched.accepted),
          rejected_patches=[str(rejection) for rejection in patched.rejected],
          regenerated=regenerated
        )
      )
      logger.info('Repair attempt %s for %s scored %s%%', index, artifact.filename, report.score)
      if good_enough(report):
        break

    best = max(result.attempts, key=lambda attempt: attempt.report.score)
    if best.report.score >= result.initial_score:
      result.code, result.report = best.code, best.report
    return result

  def _targets(self, issues: Sequence[QualityIssue], suggestions: Sequence[QualityIssue]) -> List[QualityIssue]:
    targets: List[QualityIssue] = []
    seen = set()
    curated = [suggestion for suggestion in suggestions if suggestion.category in CURATED_ADVISORIES]
    for issue in list(issues) + curated:
      if issue.category in seen:
        continue
      seen.add(issue.category)
      targets.append(issue)
    return targets

  def _local_fix(self, issue: QualityIssue, code: str) -> Optional[str]:
    if issue.category not in LOCAL_FIX_CATEGORIES:
      return None
    usage = TransformUsage()
    rewritten = self.engine.rewrite_platform_apis(code, usage)
    rewritten = self.engine.synthesize_imports(rewritten, usage)
    return rewritten if rewritten != code else None

  def _try_accept(
    self,
    issue: QualityIssue,
    candidate: str,
    filename: str,
    dependencies,
    outcome: PatchOutcome,
    local: bool = False
  ) -> bool:
    try:
      report = self._check(issue, outcome, candidate, filename, dependencies)
    except PatchRejected as rejection:
      if local:
        logger.debug('Local fix for %s in %s rejected: %s', issue.category, filename, rejection.reason)
      else:
        self._reject(outcome, rejection, filename)
      return False
    outcome.code, outcome.report = candidate, report
    outcome.accepted.append(issue.category)
    logger.debug('Accepted %s patch for %s (score %s%%)', issue.category, filename, report.score)
    return True

  def _check(self, issue: QualityIssue, outcome: PatchOutcome, candidate: str, filename: str, dependencies) -> QualityReport:
    if not candidate.strip():
      raise PatchRejected(issue.category, 'empty patch')
    predicate = PATCH_PREDICATES.get(issue.category, _keeps_length)
    reason = predicate(outcome.code, candidate)
    if reason:
      raise PatchRejected(issue.category, reason)
    report = self.validator.validate(candidate, filename, dependencies)
    if report.score < outcome.report.score:
      raise PatchRejected(issue.category, f'score dropped from {outcome.report.score}% to {report.score}%')
    return report

  async def _generate(self, prompt: str, label: str, outcome: PatchOutcome, pacing: CallPacing) -> str:
    assert self.client is not None
    if pacing.calls:
      await self._sleep(self.policy.delay(1))
    pacing.calls += 1
    response = await self.client.generate_code(prompt, label=label)
    outcome.tokens += response.tokens
    return response.text

  def _reject(self, outcome: PatchOutcome, rejection: PatchRejected, filename: str) -> None:
    outcome.rejected.append(rejection)
    logger.info('Rejected %s patch for %s: %s', rejection.category, filename, rejection.reason)
    if self._event_logger:
      self._event_logger.log_event(
        'repair',
        'patch_rejected',
        {'file': filename, 'category': rejection.category, 'reason': rejection.reason}
      )
