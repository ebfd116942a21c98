from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, List, Mapping, Optional, Tuple


class Role(Enum):
  SCREEN = 'screen'
  LAYOUT = 'layout'
  COMPONENT = 'component'


class Method(Enum):
  PATTERN = 'pattern'
  TEMPLATE = 'template'
  GENERATED = 'generated'
  REPAIRED = 'repaired'
  FALLBACK = 'fallback'


NAME_ALIASES = {
  'page': 'HomeScreen',
  'index': 'MainScreen'
}

TYPED_SUFFIXES = ('.tsx', '.ts')

DependencySet = Dict[str, str]


def _posix(filename: str) -> PurePosixPath:
  return PurePosixPath(filename.replace('\\', '/'))


def file_stem(filename: str) -> str:
  name = _posix(filename).name
  return name.split('.')[0] if name else ''


def infer_role(filename: str) -> Role:
  path = _posix(filename)
  stem = file_stem(filename)
  lowered = stem.lower()
  directories = [part.lower() for part in path.parts[:-1]]
  if lowered in {'layout', '_app', '_document'} or 'layout' in lowered:
    return Role.LAYOUT
  if lowered == 'page' or lowered.endswith('screen') or 'pages' in directories or 'screens' in directories:
    return Role.SCREEN
  return Role.COMPONENT


def component_name(filename: str) -> str:
  stem = file_stem(filename)
  alias = NAME_ALIASES.get(stem.lower())
  if alias:
    return alias
  parts = [part for part in re.split(r'[^A-Za-z0-9]+', stem) if part]
  name = ''.join(part[:1].upper() + part[1:] for part in parts)
  if not name:
    return 'Component'
  if name[0].isdigit():
    name = f'Component{name}'
  return name


def is_typed_filename(filename: str) -> bool:
  return filename.lower().endswith(TYPED_SUFFIXES)


def merge_dependencies(*dependency_sets: Optional[Mapping[str, str]]) -> DependencySet:
  """Union of dependency sets; later sets win per package."""
  merged: DependencySet = {}
  for dependencies in dependency_sets:
    if dependencies:
      merged.update(dependencies)
  return merged


@dataclass(frozen=True)
class SourceArtifact:
  text: str
  filename: str
  role: Role

  @classmethod
  def from_text(cls, text: str, filename: str, role: Optional[Role] = None) -> 'SourceArtifact':
    return cls(text=text, filename=filename, role=role or infer_role(filename))

  @property
  def name(self) -> str:
    return component_name(self.filename)


@dataclass(frozen=True)
class QualityIssue:
  category: str
  message: str
  severity: str = 'blocking'  # blocking, advisory

  def to_dict(self) -> Dict[str, str]:
    return {'category': self.category, 'message': self.message, 'severity': self.severity}


@dataclass(frozen=True)
class QualityReport:
  score: int
  blocking_issues: Tuple[QualityIssue, ...] = ()
  advisories: Tuple[QualityIssue, ...] = ()

  @property
  def is_production_ready(self) -> bool:
    return not self.blocking_issues and self.score >= 80

  def summary(self) -> Dict[str, Any]:
    return {
      'score': self.score,
      'is_production_ready': self.is_production_ready,
      'blocking_issues': [issue.to_dict() for issue in self.blocking_issues],
      'advisories': [issue.to_dict() for issue in self.advisories]
    }


@dataclass
class RepairAttempt:
  index: int
  code: str
  report: QualityReport
  accepted_patches: List[str] = field(default_factory=list)
  rejected_patches: List[str] = field(default_factory=list)
  regenerated: bool = False


@dataclass
class ConversionContext:
  """Read-only project facts supplied by the project loader."""

  project_path: Optional[str] = None
  dependencies: Dict[str, str] = field(default_factory=dict)
  files: List[str] = field(default_factory=list)
  roles: Dict[str, Role] = field(default_factory=dict)
  routes: List[str] = field(default_factory=list)
  imports: Dict[str, List[str]] = field(default_factory=dict)
  native_dependencies: Dict[str, str] = field(default_factory=dict)

  def related_files(self, filename: str, limit: int = 5) -> List[str]:
    return list(self.imports.get(filename, []))[:limit]


@dataclass
class ConversionResult:
  code: str
  method: Method
  filename: str = ''
  tokens_used: int = 0
  quality_score: int = 0
  blocking_issues: List[QualityIssue] = field(default_factory=list)
  advisories: List[QualityIssue] = field(default_factory=list)
  is_production_ready: bool = False
  dependencies: DependencySet = field(default_factory=dict)
  attempts: List[RepairAttempt] = field(default_factory=list)
  notes: List[str] = field(default_factory=list)

  def apply_report(self, report: QualityReport) -> None:
    self.quality_score = report.score
    self.blocking_issues = list(report.blocking_issues)
    self.advisories = list(report.advisories)
    self.is_production_ready = report.is_production_ready

  def to_dict(self) -> Dict[str, Any]:
    return {
      'filename': self.filename,
      'method': self.method.value,
      'tokens_used': self.tokens_used,
      'quality_score': self.quality_score,
      'is_production_ready': self.is_production_ready,
      'blocking_issues': [issue.to_dict() for issue in self.blocking_issues],
      'advisories': [issue.to_dict() for issue in self.advisories],
      'dependencies': dict(self.dependencies),
      'attempts': len(self.attempts),
      'notes': list(self.notes)
    }
