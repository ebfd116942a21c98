"""Build and runtime error signatures mapped to fixes.

Each line of an error transcript is matched against ``SIGNATURES`` in order;
the first signature that matches claims the line. A signature fixes its error
in one of three ways: a local substitution on the code, a package install
delegated to a ``DependencyInstaller``, or a generation call.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Pattern, Sequence, Tuple

from nextnative.ai.clients import GeminiClient
from nextnative.ai.errors import BackendError
from nextnative.ai.prompts import build_error_fix_prompt
from nextnative.conversion.imports import REACT_IMPORT_LINE_RE, ensure_named_import, imports_module, insert_import
from nextnative.conversion.installer import DependencyInstaller
from nextnative.conversion.rules import (
  LIBRARY_VERSIONS,
  NAVIGATION,
  NAVIGATION_PEERS,
  ClassNameRule,
  TransformUsage,
  matching_close
)
from nextnative.conversion.transform import PatternTransformEngine

logger = logging.getLogger(__name__)


class FixType(Enum):
  SUBSTITUTION = 'substitution'
  INSTALL = 'install'
  GENERATE = 'generate'


Substitution = Callable[[str, Tuple[str, ...], PatternTransformEngine], str]


@dataclass(frozen=True)
class ErrorSignature:
  name: str
  category: str
  pattern: Pattern[str]
  fix_type: FixType
  description: str
  substitution: Optional[Substitution] = None
  packages: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DetectedError:
  signature: ErrorSignature
  line: str
  groups: Tuple[str, ...] = ()

  def to_dict(self) -> Dict[str, object]:
    return {
      'name': self.signature.name,
      'category': self.signature.category,
      'description': self.signature.description,
      'line': self.line
    }


@dataclass
class AppliedFix:
  name: str
  category: str
  fix_type: FixType
  success: bool
  error: Optional[str] = None

  def to_dict(self) -> Dict[str, object]:
    return {
      'name': self.name,
      'category': self.category,
      'fix_type': self.fix_type.value,
      'success': self.success,
      'error': self.error
    }


@dataclass
class ResolutionReport:
  original_code: str
  fixed_code: str
  errors: List[DetectedError] = field(default_factory=list)
  applied_fixes: List[AppliedFix] = field(default_factory=list)
  tokens_used: int = 0

  @property
  def has_errors(self) -> bool:
    return bool(self.errors)

  @property
  def has_unresolved_errors(self) -> bool:
    return any(not fix.success for fix in self.applied_fixes)

  def to_dict(self) -> Dict[str, object]:
    return {
      'has_errors': self.has_errors,
      'has_unresolved_errors': self.has_unresolved_errors,
      'changed': self.fixed_code != self.original_code,
      'errors': [error.to_dict() for error in self.errors],
      'applied_fixes': [fix.to_dict() for fix in self.applied_fixes],
      'tokens_used': self.tokens_used
    }


@dataclass(frozen=True)
class BuildError:
  type: str
  message: str
  line: int


# ---------------------------------------------------------------------------
# substitutions

IMPORT_FIXES = {
  'react': "import React from 'react';",
  'react-native': "import { View, Text, StyleSheet, TouchableOpacity, TextInput, ScrollView, FlatList } from 'react-native';"
}

CORE_CONSTRUCTS = (
  'StyleSheet', 'View', 'Text', 'TouchableOpacity', 'ScrollView', 'Image', 'TextInput', 'FlatList', 'Pressable'
)


def _add_react_import(code: str, groups: Tuple[str, ...], engine: PatternTransformEngine) -> str:
  if REACT_IMPORT_LINE_RE.search(code):
    return code
  return "import React from 'react';\n" + code


def _add_module_import(code: str, groups: Tuple[str, ...], engine: PatternTransformEngine) -> str:
  module = groups[0]
  if imports_module(code, module):
    return code
  if module == 'react':
    return _add_react_import(code, groups, engine)
  return insert_import(code, IMPORT_FIXES[module])


def _add_core_import(code: str, groups: Tuple[str, ...], engine: PatternTransformEngine) -> str:
  name = next(group for group in groups if group)
  return ensure_named_import(code, 'react-native', name)


def _wrap_text(code: str, groups: Tuple[str, ...], engine: PatternTransformEngine) -> str:
  wrapped = engine.wrap_bare_text(code, TransformUsage())
  if wrapped == code:
    raise ValueError('no bare text found to wrap')
  return ensure_named_import(wrapped, 'react-native', 'Text')


def _wrap_adjacent(code: str, groups: Tuple[str, ...], engine: PatternTransformEngine) -> str:
  for match in reversed(list(re.finditer(r'\breturn\s*\(', code))):
    opening = match.end() - 1
    closing = matching_close(code, opening, '(', ')')
    if closing is None:
      continue
    inner = code[opening + 1:closing - 1]
    stripped = inner.strip()
    if not stripped.startswith('<') or stripped.startswith('<>'):
      continue
    indented = '\n'.join(('  ' + line) if line.strip() else line for line in inner.strip('\n').splitlines())
    return code[:opening + 1] + '\n<>\n' + indented + '\n</>\n' + code[closing - 1:]
  raise ValueError('no multi-element return block found')


def _class_names_to_styles(code: str, groups: Tuple[str, ...], engine: PatternTransformEngine) -> str:
  usage = TransformUsage()
  converted = ClassNameRule().apply(code, usage)
  converted = engine.append_stylesheet(converted, usage)
  if 'StyleSheet.create' in converted:
    converted = ensure_named_import(converted, 'react-native', 'StyleSheet')
  return converted


def _click_to_press(code: str, groups: Tuple[str, ...], engine: PatternTransformEngine) -> str:
  return engine.rewrite_events(code, TransformUsage())


NAVIGATION_PACKAGES = (NAVIGATION, '@react-navigation/bottom-tabs') + tuple(NAVIGATION_PEERS)
KNOWN_NATIVE_PACKAGES = tuple(sorted(
  (package for package in LIBRARY_VERSIONS if not package.startswith('@react-navigation/')),
  key=len,
  reverse=True
))


def _resolve_pattern(modules: Sequence[str]) -> Pattern[str]:
  alternatives = '|'.join(re.escape(module) for module in modules)
  return re.compile(r'''Unable to resolve (?:module )?["'](''' + alternatives + r''')(?:/[^"']*)?["']''')


SIGNATURES: Tuple[ErrorSignature, ...] = (
  ErrorSignature(
    'install-navigation',
    'missing-dependency',
    _resolve_pattern(('@react-navigation/native', '@react-navigation/stack', '@react-navigation/native-stack', '@react-navigation/bottom-tabs')),
    FixType.INSTALL,
    'Missing React Navigation dependencies',
    packages=NAVIGATION_PACKAGES
  ),
  ErrorSignature(
    'install-package',
    'missing-dependency',
    _resolve_pattern(KNOWN_NATIVE_PACKAGES),
    FixType.INSTALL,
    'Known native package is not installed'
  ),
  ErrorSignature(
    'known-import',
    'missing-import',
    re.compile(r'''(?:Unable to resolve (?:module )?|Can't resolve )["'](''' + '|'.join(re.escape(module) for module in IMPORT_FIXES) + r''')["']'''),
    FixType.SUBSTITUTION,
    'Missing import for a known module',
    substitution=_add_module_import
  ),
  ErrorSignature(
    'unresolved-import',
    'missing-import',
    re.compile(r'''Unable to resolve (?:module )?"([^"]+)" from "([^"]+)"|Module not found: (?:Error: )?Can't resolve '([^']+)\''''),
    FixType.GENERATE,
    'Missing or incorrect import'
  ),
  ErrorSignature(
    'wrap-text',
    'component-misuse',
    re.compile(r'Text strings must be rendered within a <Text> component'),
    FixType.SUBSTITUTION,
    'Text not wrapped in Text component',
    substitution=_wrap_text
  ),
  ErrorSignature(
    'react-import',
    'component-misuse',
    re.compile(r'''Cannot read propert(?:y|ies) (?:'createElement' of undefined|of undefined \(reading 'createElement'\))|React is not defined|Can't find variable: React\b'''),
    FixType.SUBSTITUTION,
    'Missing React import',
    substitution=_add_react_import
  ),
  ErrorSignature(
    'core-import',
    'component-misuse',
    re.compile(
      r'''\b(''' + '|'.join(CORE_CONSTRUCTS) + r''') is not defined|Can't find variable: (''' + '|'.join(CORE_CONSTRUCTS) + r''')\b'''
    ),
    FixType.SUBSTITUTION,
    'Missing React Native construct import',
    substitution=_add_core_import
  ),
  ErrorSignature(
    'adjacent-jsx',
    'markup-nesting',
    re.compile(r'Adjacent JSX elements must be wrapped in an enclosing tag'),
    FixType.SUBSTITUTION,
    'JSX elements need wrapping',
    substitution=_wrap_adjacent
  ),
  ErrorSignature(
    'jsx-syntax',
    'markup-nesting',
    re.compile(r'''Unexpected token '?<'?'''),
    FixType.GENERATE,
    'JSX syntax error'
  ),
  ErrorSignature(
    'class-name',
    'style-prop',
    re.compile(r'Invalid prop `?className`? of type `?string`? supplied to'),
    FixType.SUBSTITUTION,
    'className used instead of style prop',
    substitution=_class_names_to_styles
  ),
  ErrorSignature(
    'style-type',
    'style-prop',
    re.compile(r'Failed prop type.*style.*expected.*object'),
    FixType.GENERATE,
    'Invalid style prop format'
  ),
  ErrorSignature(
    'click-handler',
    'event-handler',
    re.compile(r'onClick is not a function'),
    FixType.SUBSTITUTION,
    'onClick used instead of onPress',
    substitution=_click_to_press
  ),
  ErrorSignature(
    'press-handler',
    'event-handler',
    re.compile(r'onPress is not a function'),
    FixType.GENERATE,
    'Invalid event handler'
  )
)


def detect_errors(error_text: str, signatures: Sequence[ErrorSignature] = SIGNATURES) -> List[DetectedError]:
  """Matches each transcript line against the first signature that claims it, deduplicated."""
  detected: List[DetectedError] = []
  seen = set()
  for raw_line in error_text.splitlines():
    line = raw_line.strip()
    if not line:
      continue
    for signature in signatures:
      match = signature.pattern.search(line)
      if not match:
        continue
      groups = tuple(group or '' for group in match.groups())
      key = (signature.name, groups)
      if key not in seen:
        seen.add(key)
        detected.append(DetectedError(signature, line, groups))
      break
  order = {signature.name: index for index, signature in enumerate(signatures)}
  return sorted(detected, key=lambda error: order[error.signature.name])


def parse_runtime_errors(build_output: str) -> List[BuildError]:
  errors: List[BuildError] = []
  for number, line in enumerate(build_output.splitlines(), start=1):
    if 'Unable to resolve module' in line:
      errors.append(BuildError('module-resolution', line.strip(), number))
    if 'Text strings must be rendered within a <Text> component' in line:
      errors.append(BuildError('text-wrapping', line.strip(), number))
    if 'Invalid prop' in line and 'style' in line:
      errors.append(BuildError('style', line.strip(), number))
  return errors


class ErrorPatternResolver:
  """Applies the fix for every detected error in signature order and records each outcome."""

  def __init__(
    self,
    client: Optional[GeminiClient] = None,
    installer: Optional[DependencyInstaller] = None,
    engine: Optional[PatternTransformEngine] = None,
    signatures: Sequence[ErrorSignature] = SIGNATURES,
    event_logger=None
  ) -> None:
    self.client = client
    self.installer = installer
    self.engine = engine or PatternTransformEngine()
    self.signatures = tuple(signatures)
    self._event_logger = event_logger

  async def resolve(
    self,
    error_text: str,
    code: str,
    filename: str,
    project_path: Optional[Path] = None
  ) -> ResolutionReport:
    report = ResolutionReport(original_code=code, fixed_code=code, errors=detect_errors(error_text, self.signatures))
    installed = set()
    for error in report.errors:
      signature = error.signature
      if signature.fix_type is FixType.INSTALL:
        packages = signature.packages or error.groups[:1]
        if set(packages) <= installed:
          continue
        fix = await self._install(signature, packages, project_path)
        if fix.success:
          installed.update(packages)
      elif signature.fix_type is FixType.SUBSTITUTION:
        fix = self._substitute(error, report)
      else:
        fix = await self._generate(error, report, filename)
      report.applied_fixes.append(fix)
      self._record(fix, filename, error)
    if report.has_errors:
      logger.info(
        'Resolved %s of %s error(s) in %s',
        sum(1 for fix in report.applied_fixes if fix.success),
        len(report.errors),
        filename
      )
    return report

  def _substitute(self, error: DetectedError, report: ResolutionReport) -> AppliedFix:
    signature = error.signature
    assert signature.substitution is not None
    try:
      report.fixed_code = signature.substitution(report.fixed_code, error.groups, self.engine)
    except (KeyError, ValueError, StopIteration) as exc:
      return AppliedFix(signature.name, signature.category, signature.fix_type, False, str(exc))
    return AppliedFix(signature.name, signature.category, signature.fix_type, True)

  async def _install(
    self,
    signature: ErrorSignature,
    packages: Sequence[str],
    project_path: Optional[Path]
  ) -> AppliedFix:
    if self.installer is None or project_path is None:
      return AppliedFix(signature.name, signature.category, signature.fix_type, False, 'no installer or project path configured')
    result = await self.installer.install(Path(project_path), list(packages))
    return AppliedFix(signature.name, signature.category, signature.fix_type, result.success, result.error)

  async def _generate(self, error: DetectedError, report: ResolutionReport, filename: str) -> AppliedFix:
    signature = error.signature
    if self.client is None:
      return AppliedFix(signature.name, signature.category, signature.fix_type, False, 'no generation backend configured')
    try:
      response = await self.client.generate_code(
        build_error_fix_prompt(report.fixed_code, filename, [error.line]),
        label=f'resolve:{signature.name}:{filename}'
      )
    except BackendError as exc:
      return AppliedFix(signature.name, signature.category, signature.fix_type, False, str(exc))
    report.fixed_code = response.text
    report.tokens_used += response.tokens
    return AppliedFix(signature.name, signature.category, signature.fix_type, True)

  def _record(self, fix: AppliedFix, filename: str, error: DetectedError) -> None:
    if fix.success:
      logger.debug('Applied %s fix to %s', fix.name, filename)
    else:
      logger.warning('Fix %s failed for %s: %s', fix.name, filename, fix.error)
    if self._event_logger:
      self._event_logger.log_event('resolver', 'fix_applied' if fix.success else 'fix_failed', {
        'file': filename,
        'line': error.line,
        **fix.to_dict()
      })
