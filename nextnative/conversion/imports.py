from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple

from nextnative.conversion.rules import (
  CONSTRUCT_IMPORTS,
  REACT_HOOKS,
  SYNTHESIZED_MODULES,
  WEB_ONLY_MODULE_RE
)


IMPORT_STATEMENT_RE = re.compile(
  r'''^[ \t]*import\s+(?:(?P<clause>[^'";]*?)\s+from\s+)?(?P<quote>['"])(?P<module>[^'"]+)(?P=quote)[ \t]*;?[ \t]*(?:\n|$)''',
  re.M
)

_CONSTRUCT_PATTERNS = {name: entry.pattern(name) for name, entry in CONSTRUCT_IMPORTS.items()}
_HOOK_PATTERNS = {hook: re.compile(r'(?<![\w$.])' + hook + r'\s*[(<]') for hook in REACT_HOOKS}


@dataclass(frozen=True)
class ImportStatement:
  text: str
  module: str
  clause: str = ''

  @property
  def type_only(self) -> bool:
    return self.clause.startswith('type ')

  @property
  def web_only(self) -> bool:
    return bool(WEB_ONLY_MODULE_RE.match(self.module))

  @property
  def owned(self) -> bool:
    """Owned statements are dropped and regenerated by synthesis."""
    if self.web_only:
      return True
    return self.module in SYNTHESIZED_MODULES and not self.type_only

  def local_names(self) -> Set[str]:
    names: Set[str] = set()
    clause = self.clause[5:] if self.type_only else self.clause
    braces = re.search(r'\{([^}]*)\}', clause)
    if braces:
      for item in braces.group(1).split(','):
        item = item.strip()
        if item.startswith('type '):
          item = item[5:]
        if item:
          names.add(item.split(' as ')[-1].strip())
      clause = clause.replace(braces.group(0), '')
    namespace = re.search(r'\*\s+as\s+(\w+)', clause)
    if namespace:
      names.add(namespace.group(1))
      clause = clause.replace(namespace.group(0), '')
    default = clause.strip().strip(',').strip()
    if default:
      names.add(default)
    return names


def split_imports(code: str) -> Tuple[str, List[ImportStatement]]:
  statements = [
    ImportStatement(match.group(0).rstrip('\n'), match.group('module'), (match.group('clause') or '').strip())
    for match in IMPORT_STATEMENT_RE.finditer(code)
  ]
  body = IMPORT_STATEMENT_RE.sub('', code)
  return body.lstrip('\n'), statements


def imported_modules(code: str) -> List[str]:
  return [match.group('module') for match in IMPORT_STATEMENT_RE.finditer(code)]


def used_constructs(body: str, exclude: Iterable[str] = ()) -> Set[str]:
  excluded = set(exclude)
  used = {name for name, pattern in _CONSTRUCT_PATTERNS.items() if name not in excluded and pattern.search(body)}
  used.update(hook for hook, pattern in _HOOK_PATTERNS.items() if hook not in excluded and pattern.search(body))
  return used


def synthesize_import_block(body: str, exclude: Iterable[str] = ()) -> Tuple[str, List[str]]:
  """Deterministic import block for every construct ``body`` references.

  ``react`` comes first, then ``react-native``, then remaining modules sorted by
  name. Returns the block and the modules it imports.
  """
  used = used_constructs(body, exclude)
  hooks = sorted(hook for hook in REACT_HOOKS if hook in used)
  react_line = 'import React from \'react\';'
  if hooks:
    react_line = f"import React, {{ {', '.join(hooks)} }} from 'react';"
  lines = [react_line]

  grouped: Dict[str, Dict[str, List[str]]] = {}
  for name in sorted(used):
    entry = CONSTRUCT_IMPORTS.get(name)
    if entry is None:
      continue
    kinds = grouped.setdefault(entry.module, {'default': [], 'named': [], 'namespace': []})
    kinds[entry.kind].append(name)

  modules = sorted(grouped, key=lambda module: (module != 'react-native', module))
  for module in modules:
    kinds = grouped[module]
    for namespace in kinds['namespace']:
      lines.append(f"import * as {namespace} from '{module}';")
    parts = []
    if kinds['default']:
      parts.append(kinds['default'][0])
    if kinds['named']:
      parts.append('{ ' + ', '.join(kinds['named']) + ' }')
    if parts:
      lines.append(f"import {', '.join(parts)} from '{module}';")
  return '\n'.join(lines), ['react'] + modules


REACT_IMPORT_LINE_RE = re.compile(r'''^import\s+React\b[^\n]*\n''', re.M)


def imports_module(code: str, module: str) -> bool:
  return any(statement_module == module for statement_module in imported_modules(code))


def insert_import(code: str, line: str) -> str:
  """Places ``line`` after the React import, or at the top when there is none."""
  react = REACT_IMPORT_LINE_RE.search(code)
  if react:
    return code[:react.end()] + line + '\n' + code[react.end():]
  return line + '\n' + code


def ensure_named_import(code: str, module: str, name: str) -> str:
  pattern = re.compile(r'''import\s*\{([^}]*)\}\s*from\s*(['"])''' + re.escape(module) + r'''\2;?''')
  match = pattern.search(code)
  if match:
    names = [part.strip() for part in match.group(1).split(',') if part.strip()]
    if name in names:
      return code
    names.append(name)
    replacement = f"import {{ {', '.join(names)} }} from '{module}';"
    return code[:match.start()] + replacement + code[match.end():]
  return insert_import(code, f"import {{ {name} }} from '{module}';")
