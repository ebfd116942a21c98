from __future__ import annotations

import asyncio
import logging
import re
from typing import List, Optional, Sequence

from nextnative.ai.clients import GeminiClient
from nextnative.ai.errors import BackendError
from nextnative.ai.prompts import build_conversion_prompt
from nextnative.conversion.imports import REACT_IMPORT_LINE_RE, ensure_named_import, imports_module, insert_import
from nextnative.conversion.models import (
  ConversionContext,
  ConversionResult,
  DependencySet,
  Method,
  SourceArtifact,
  merge_dependencies
)
from nextnative.conversion.rules import LIBRARY_VERSIONS, NAVIGATION, SAFE_AREA, dependencies_for_code
from nextnative.conversion.stubs import build_stub
from nextnative.conversion.templates import TemplateLibrary
from nextnative.conversion.transform import PatternTransformEngine, self_check
from nextnative.quality.repair import AutoRepairEngine
from nextnative.quality.validator import QualityValidator

logger = logging.getLogger(__name__)

BASE_NATIVE_IMPORT = "import { View, Text, StyleSheet, ScrollView } from 'react-native';"
FALLBACK_DEPENDENCIES: DependencySet = {
  NAVIGATION: LIBRARY_VERSIONS[NAVIGATION],
  SAFE_AREA: LIBRARY_VERSIONS[SAFE_AREA]
}

DECLARED_COMPONENT_RE = re.compile(r'^(?:export\s+)?(?:function|const|class)\s+([A-Z]\w*)', re.M)


def ensure_structure(code: str, artifact: SourceArtifact) -> str:
  """Adds the React import, a react-native import and a default export when generated code lacks them."""
  if not REACT_IMPORT_LINE_RE.search(code) and not imports_module(code, 'react'):
    code = "import React from 'react';\n" + code.lstrip('\n')
  if not imports_module(code, 'react-native'):
    code = insert_import(code, BASE_NATIVE_IMPORT)
  if 'SafeAreaView' in code and not imports_module(code, SAFE_AREA):
    code = ensure_named_import(code, SAFE_AREA, 'SafeAreaView')
  if 'export default' not in code:
    declared = DECLARED_COMPONENT_RE.findall(code)
    name = artifact.name if artifact.name in declared else (declared[0] if declared else None)
    if name:
      code = code.rstrip() + f'\n\nexport default {name};\n'
  return code


class PipelineOrchestrator:
  """Runs pattern transform, template match and generation in cost order.

  ``convert`` never raises: every failure degrades to the deterministic stub
  for the artifact's role. Only task cancellation propagates.
  """

  def __init__(
    self,
    engine: Optional[PatternTransformEngine] = None,
    templates: Optional[TemplateLibrary] = None,
    client: Optional[GeminiClient] = None,
    repair: Optional[AutoRepairEngine] = None,
    validator: Optional[QualityValidator] = None,
    event_logger=None
  ) -> None:
    self.engine = engine or PatternTransformEngine()
    self.templates = templates or TemplateLibrary()
    self.client = client
    self.validator = validator or QualityValidator()
    self.repair = repair or AutoRepairEngine(
      client=client,
      validator=self.validator,
      engine=self.engine,
      event_logger=event_logger
    )
    self._event_logger = event_logger

  async def convert(self, artifact: SourceArtifact, context: Optional[ConversionContext] = None) -> ConversionResult:
    try:
      result = self.try_pattern(artifact, context)
      if result is None:
        result = self.try_template(artifact, context)
      if result is None:
        if self.client is None:
          result = self.fallback(artifact, 'no generation backend configured')
        else:
          result = await self.generate(artifact, context)
    except asyncio.CancelledError:
      raise
    except Exception as error:
      logger.exception('Conversion of %s failed unexpectedly', artifact.filename)
      result = self.fallback(artifact, f'unexpected error: {error}')
    logger.info(
      'Converted %s via %s (score %s%%, tokens %s)',
      artifact.filename,
      result.method.value,
      result.quality_score,
      result.tokens_used
    )
    return result

  def try_pattern(self, artifact: SourceArtifact, context: Optional[ConversionContext] = None) -> Optional[ConversionResult]:
    output = self.engine.transform(artifact)
    if not output.passed:
      self._escalate(artifact, 'pattern', output.failures)
      return None
    return self._finish(
      ConversionResult(
        code=output.code,
        method=Method.PATTERN,
        filename=artifact.filename,
        dependencies=dict(output.dependencies),
        notes=list(output.notes)
      ),
      context
    )

  def try_template(self, artifact: SourceArtifact, context: Optional[ConversionContext] = None) -> Optional[ConversionResult]:
    match = self.templates.match(artifact)
    if match is None:
      self._escalate(artifact, 'template', ['no template matched'])
      return None
    failures = self_check(match.code)
    if failures:
      self._escalate(artifact, 'template', failures)
      return None
    return self._finish(
      ConversionResult(
        code=match.code,
        method=Method.TEMPLATE,
        filename=artifact.filename,
        dependencies=dict(match.dependencies),
        notes=[f'rendered from the {match.template} template']
      ),
      context
    )

  async def generate(self, artifact: SourceArtifact, context: Optional[ConversionContext] = None) -> ConversionResult:
    assert self.client is not None
    try:
      response = await self.client.generate_code(
        build_conversion_prompt(artifact, context),
        label=f'convert:{artifact.filename}'
      )
    except BackendError as error:
      logger.warning('Generation failed for %s: %s', artifact.filename, error)
      return self.fallback(artifact, str(error))

    code = ensure_structure(response.text, artifact)
    improvement = await self.repair.improve(code, artifact, context)
    notes: List[str] = []
    if improvement.attempts:
      notes.append(f'{len(improvement.attempts)} repair attempt(s), score {improvement.initial_score}% -> {improvement.report.score}%')
    return self._finish(
      ConversionResult(
        code=improvement.code,
        method=Method.REPAIRED if improvement.code != code else Method.GENERATED,
        filename=artifact.filename,
        tokens_used=response.tokens + improvement.tokens,
        dependencies=dependencies_for_code(improvement.code),
        attempts=list(improvement.attempts),
        notes=notes
      ),
      context
    )

  def fallback(self, artifact: SourceArtifact, reason: str) -> ConversionResult:
    code = build_stub(artifact)
    if self._event_logger:
      self._event_logger.log_event('pipeline', 'fallback', {'file': artifact.filename, 'reason': reason})
    logger.warning('Using %s fallback for %s: %s', artifact.role.value, artifact.filename, reason)
    result = ConversionResult(
      code=code,
      method=Method.FALLBACK,
      filename=artifact.filename,
      dependencies=merge_dependencies(FALLBACK_DEPENDENCIES, dependencies_for_code(code)),
      notes=[f'fallback: {reason}']
    )
    result.apply_report(self.validator.validate(code, artifact.filename))
    return result

  def _finish(self, result: ConversionResult, context: Optional[ConversionContext]) -> ConversionResult:
    declared = merge_dependencies(context.native_dependencies if context else None, result.dependencies)
    result.apply_report(self.validator.validate(result.code, result.filename, declared))
    return result

  def _escalate(self, artifact: SourceArtifact, phase: str, reasons: Sequence[str]) -> None:
    logger.debug('%s phase rejected %s: %s', phase, artifact.filename, '; '.join(reasons))
    if self._event_logger:
      self._event_logger.log_event('pipeline', 'escalated', {
        'file': artifact.filename,
        'phase': phase,
        'reasons': list(reasons)
      })
