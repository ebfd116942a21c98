from __future__ import annotations

import json
import logging
import os
import re
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence

from nextnative.config import Settings, settings as default_settings
from nextnative.conversion.models import ConversionContext, DependencySet, infer_role, merge_dependencies
from nextnative.conversion.rules import LIBRARY_VERSIONS, NAVIGATION, NAVIGATION_PEERS, dependencies_for_modules

logger = logging.getLogger(__name__)

UI_SUFFIXES = ('.tsx', '.jsx')
RESOLVE_SUFFIXES = ('.tsx', '.ts', '.jsx', '.js')
JSX_RE = re.compile(r'\breturn\s*\(?\s*<[A-Za-z>]|=>\s*\(?\s*<[A-Za-z>]')
IMPORT_PATTERNS = (
  re.compile(r'''import\s+[^'"`;]*?from\s+['"`]([^'"`]+)['"`]'''),
  re.compile(r'''import\(\s*['"`]([^'"`]+)['"`]\s*\)'''),
  re.compile(r'''require\(\s*['"`]([^'"`]+)['"`]\s*\)''')
)

NAVIGATION_STACK = {NAVIGATION: LIBRARY_VERSIONS[NAVIGATION], **NAVIGATION_PEERS}

# web package -> native packages that replace it
WEB_DEPENDENCY_MAP: Dict[str, DependencySet] = {
  'next': NAVIGATION_STACK,
  'react-router-dom': NAVIGATION_STACK,
  'framer-motion': dependencies_for_modules(['react-native-reanimated', 'react-native-gesture-handler']),
  'lucide-react': dependencies_for_modules(['@expo/vector-icons']),
  'react-icons': dependencies_for_modules(['@expo/vector-icons']),
  'js-cookie': dependencies_for_modules(['@react-native-async-storage/async-storage']),
  'react-hot-toast': dependencies_for_modules(['react-native-toast-message']),
  'sonner': dependencies_for_modules(['react-native-toast-message']),
  'recharts': dependencies_for_modules(['react-native-svg']),
  'chart.js': dependencies_for_modules(['react-native-svg']),
  '@radix-ui/react-slider': dependencies_for_modules(['@react-native-community/slider']),
  '@radix-ui/react-select': dependencies_for_modules(['@react-native-picker/picker'])
}

# platform-neutral packages carried over unchanged
PORTABLE_DEPENDENCIES = frozenset({
  '@reduxjs/toolkit', '@tanstack/react-query', 'axios', 'clsx', 'date-fns', 'dayjs', 'immer', 'jotai',
  'lodash', 'react-hook-form', 'react-redux', 'redux', 'swr', 'uuid', 'zod', 'zustand'
})


def is_ui_source(filename: str, text: str) -> bool:
  """UI files are converted; everything else is copied through."""
  if filename.lower().endswith(UI_SUFFIXES):
    return True
  return filename.lower().endswith('.js') and JSX_RE.search(text) is not None


def _matches(name: str, patterns: Sequence[str]) -> bool:
  return any(fnmatch(name, pattern) for pattern in patterns)


def discover_files(root: Path, include: Sequence[str], exclude: Sequence[str]) -> List[str]:
  """Relative POSIX paths of every included file, skipping excluded directories."""
  files: List[str] = []
  root = Path(root)
  for directory, subdirectories, filenames in os.walk(root):
    subdirectories[:] = sorted(name for name in subdirectories if not _matches(name, exclude) and not name.startswith('.'))
    for filename in filenames:
      if not _matches(filename, include) or _matches(filename, exclude):
        continue
      relative = (Path(directory) / filename).relative_to(root).as_posix()
      if _matches(relative, exclude):
        continue
      files.append(relative)
  return sorted(files)


def read_manifest(root: Path) -> Dict[str, str]:
  manifest = Path(root) / 'package.json'
  if not manifest.exists():
    return {}
  try:
    data = json.loads(manifest.read_text(encoding='utf-8'))
  except (OSError, json.JSONDecodeError) as error:
    logger.warning('Could not read %s: %s', manifest, error)
    return {}
  dependencies: Dict[str, str] = {}
  for section in ('dependencies', 'devDependencies'):
    values = data.get(section) or {}
    if isinstance(values, dict):
      dependencies.update({str(name): str(version) for name, version in values.items()})
  return dependencies


def map_native_dependencies(dependencies: Dict[str, str]) -> DependencySet:
  mapped: List[DependencySet] = []
  for name, version in sorted(dependencies.items()):
    replacement = WEB_DEPENDENCY_MAP.get(name)
    if replacement:
      mapped.append(replacement)
    elif name in PORTABLE_DEPENDENCIES:
      mapped.append({name: version})
  return merge_dependencies(*mapped)


def extract_imports(text: str) -> List[str]:
  found: List[str] = []
  for pattern in IMPORT_PATTERNS:
    found.extend(pattern.findall(text))
  return found


def resolve_local_import(source: str, specifier: str, files: Iterable[str]) -> Optional[str]:
  """Maps a relative or ``@/`` import onto a discovered project file."""
  known = set(files)
  if specifier.startswith('@/'):
    base_candidates = [PurePosixPath(specifier[2:]), PurePosixPath('src') / specifier[2:]]
  elif specifier.startswith('.'):
    base_candidates = [PurePosixPath(os.path.normpath(str(PurePosixPath(source).parent / specifier)).replace('\\', '/'))]
  else:
    return None
  for base in base_candidates:
    stem = base.as_posix()
    candidates = [stem] + [stem + suffix for suffix in RESOLVE_SUFFIXES] + [f'{stem}/index{suffix}' for suffix in RESOLVE_SUFFIXES]
    for candidate in candidates:
      if candidate in known:
        return candidate
  return None


def route_for(filename: str) -> Optional[str]:
  """App-router ``page`` files and pages-router files become routes; dynamic segments become ``:param``."""
  path = PurePosixPath(filename)
  parts = list(path.parts)
  if parts and parts[0] == 'src':
    parts = parts[1:]
  if not parts:
    return None
  stem = path.name.split('.')[0]
  if parts[0] == 'app' and stem == 'page':
    segments = parts[1:-1]
  elif parts[0] == 'pages' and not stem.startswith('_') and 'api' not in parts[1:2]:
    segments = parts[1:-1] + ([] if stem == 'index' else [stem])
  else:
    return None
  route = []
  for segment in segments:
    if segment.startswith('(') and segment.endswith(')'):
      continue
    if segment.startswith('[') and segment.endswith(']'):
      segment = ':' + segment.strip('[]').lstrip('.')
    route.append(segment)
  return '/' + '/'.join(route)


def load_project(root: Path, config: Optional[Settings] = None) -> ConversionContext:
  config = config or default_settings
  root = Path(root)
  files = discover_files(root, config.include_patterns, config.exclude_patterns)
  dependencies = read_manifest(root)
  imports: Dict[str, List[str]] = {}
  for file in files:
    try:
      text = (root / file).read_text(encoding='utf-8', errors='ignore')
    except OSError as error:
      logger.warning('Could not read %s: %s', file, error)
      continue
    related = [resolve_local_import(file, specifier, files) for specifier in extract_imports(text)]
    imports[file] = [path for path in related if path]
  routes = sorted({route for route in (route_for(file) for file in files) if route})
  context = ConversionContext(
    project_path=str(root),
    dependencies=dependencies,
    files=files,
    roles={file: infer_role(file) for file in files},
    routes=routes,
    imports=imports,
    native_dependencies=map_native_dependencies(dependencies)
  )
  logger.info('Loaded %s: %s files, %s routes, %s dependencies', root, len(files), len(routes), len(dependencies))
  return context
