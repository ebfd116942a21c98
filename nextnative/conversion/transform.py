from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from nextnative.conversion.imports import split_imports, synthesize_import_block, used_constructs
from nextnative.conversion.markup import (
  find_forbidden_tags,
  is_text_violation,
  jsx_extent,
  nesting_errors,
  root_tag,
  text_segments,
  visible_text
)
from nextnative.conversion.models import Role, SourceArtifact, merge_dependencies
from nextnative.conversion.rules import (
  API_RULES,
  EVENT_RULES,
  FRAMEWORK_STRIP_RULES,
  HTML_ELEMENT_RULES,
  NAVIGATION,
  STYLE_RULES,
  TransformRule,
  TransformUsage,
  dependencies_for_code,
  matching_close
)
from nextnative.conversion.ui_kit import CONVERTIBLE_KIT_NAMES, UI_KIT_RULES, detect_kit_imports, kit_dependencies

logger = logging.getLogger(__name__)


DEFAULT_STYLES: Dict[str, str] = {
  'avatar': 'width: 48, height: 48, borderRadius: 24, overflow: \'hidden\', backgroundColor: \'#e5e7eb\'',
  'badge': 'alignSelf: \'flex-start\', paddingHorizontal: 8, paddingVertical: 2, borderRadius: 999, backgroundColor: \'#f3f4f6\', fontSize: 12',
  'button': 'backgroundColor: \'#2563eb\', paddingVertical: 12, paddingHorizontal: 16, borderRadius: 8, alignItems: \'center\'',
  'buttonText': 'color: \'#ffffff\', fontSize: 16, fontWeight: \'600\'',
  'card': 'backgroundColor: \'#ffffff\', borderRadius: 12, padding: 16, marginBottom: 12, borderWidth: 1, borderColor: \'#e5e7eb\'',
  'cardContent': 'paddingTop: 8',
  'cardDescription': 'fontSize: 14, color: \'#6b7280\'',
  'cardFooter': 'flexDirection: \'row\', justifyContent: \'flex-end\', paddingTop: 12',
  'cardHeader': 'marginBottom: 8',
  'cardTitle': 'fontSize: 18, fontWeight: \'600\'',
  'container': 'flex: 1, backgroundColor: \'#ffffff\'',
  'content': 'padding: 16',
  'dialogContent': 'margin: 24, padding: 16, borderRadius: 12, backgroundColor: \'#ffffff\'',
  'input': 'borderWidth: 1, borderColor: \'#d1d5db\', borderRadius: 8, padding: 12, fontSize: 16, marginBottom: 12',
  'label': 'fontSize: 14, fontWeight: \'500\', marginBottom: 4',
  'progress': 'height: 8, borderRadius: 4, backgroundColor: \'#e5e7eb\'',
  'separator': 'height: 1, backgroundColor: \'#e5e7eb\', marginVertical: 8',
  'skeleton': 'height: 16, borderRadius: 4, backgroundColor: \'#e5e7eb\'',
  'text': 'fontSize: 16, color: \'#111827\'',
  'title': 'fontSize: 24, fontWeight: \'bold\', marginBottom: 12'
}

NATIVE_ROOTS = frozenset({
  'View', 'ScrollView', 'SafeAreaView', 'SafeAreaProvider', 'KeyboardAvoidingView', 'FlatList',
  'SectionList', 'Pressable', 'TouchableOpacity', 'Modal', 'NavigationContainer'
})
SCROLL_ROOTS = frozenset({'ScrollView', 'FlatList', 'SectionList'})

NATIVE_IMPORT_RE = re.compile(r'''from\s+['"]react-native['"]''')
EXPORT_RE = re.compile(r'\bexport\b')
DEFAULT_FUNCTION_RE = re.compile(r'export\s+default\s+(?:async\s+)?function\s*\w*\s*(?:<[^>(]*>)?\s*(?=\()')
DEFAULT_ARROW_RE = re.compile(r'export\s+default\s+(?:async\s+)?(?=\()')
DEFAULT_NAME_RE = re.compile(r'export\s+default\s+(?:React\.memo\(|memo\()?([A-Z]\w*)')
RETURN_JSX_RE = re.compile(r'\breturn\s*\(?\s*(?=<)')
NAVIGATION_REFERENCE_RE = re.compile(r'(?<![\w$.])navigation\.')
NAVIGATION_BINDING_RE = re.compile(r'(?:const|let|var)\s+navigation\b|[{,(]\s*navigation\s*[,}:)=]')
STYLE_REFERENCE_RE = re.compile(r'(?<![\w$.])styles\.(\w+)')
STYLESHEET_RE = re.compile(r'\bStyleSheet\.create\s*\(|(?:const|let|var)\s+styles\s*=')


def self_check(code: str, extra_forbidden: Sequence[str] = ()) -> List[str]:
  """Cheap structural gate; returns the reasons the artifact is not usable."""
  failures: List[str] = []
  if not NATIVE_IMPORT_RE.search(code):
    failures.append('missing react-native import')
  forbidden = find_forbidden_tags(code, extra_forbidden)
  if forbidden:
    failures.append('forbidden tags remain: ' + ', '.join(forbidden))
  if not EXPORT_RE.search(code):
    failures.append('no export found')
  failures.extend(nesting_errors(code))
  return failures


def _function_body_after(code: str, parameters_start: int) -> Optional[int]:
  parameters_end = matching_close(code, parameters_start, '(', ')')
  if parameters_end is None:
    return None
  match = re.compile(r'\s*(?::\s*[^{=]+)?\s*(=>\s*)?\{').match(code, parameters_end)
  return match.end() if match else None


def find_component_body(code: str) -> Optional[int]:
  """Index just inside the opening brace of the default-exported component."""
  match = DEFAULT_FUNCTION_RE.search(code) or DEFAULT_ARROW_RE.search(code)
  if match:
    return _function_body_after(code, match.end())
  named = DEFAULT_NAME_RE.search(code)
  if not named:
    return None
  name = re.escape(named.group(1))
  declaration = re.search(r'function\s+' + name + r'\s*(?:<[^>(]*>)?\s*(?=\()', code)
  if declaration:
    return _function_body_after(code, declaration.end())
  arrow = re.search(r'(?:const|let)\s+' + name + r'\b[^=]*=\s*(?:React\.memo\(|memo\()?(?:async\s*)?(?=\()', code)
  if arrow:
    return _function_body_after(code, arrow.end())
  return None


def find_return_jsx(code: str) -> Optional[Tuple[int, int]]:
  """Span of the markup returned by the component's last top-level return."""
  body = find_component_body(code)
  search_from = body or 0
  candidates: List[Tuple[int, Tuple[int, int]]] = []
  for match in RETURN_JSX_RE.finditer(code, search_from):
    extent = jsx_extent(code, match.end())
    if extent is None:
      continue
    depth = 0
    if body is not None:
      between = code[body:match.start()]
      depth = between.count('{') - between.count('}')
    candidates.append((depth, extent))
  if not candidates:
    return None
  top_level = [extent for depth, extent in candidates if depth <= 0]
  return (top_level or [extent for _, extent in candidates])[-1]


def _line_indent(code: str, index: int) -> str:
  line_start = code.rfind('\n', 0, index) + 1
  prefix = code[line_start:index]
  return prefix if not prefix.strip() else re.match(r'[ \t]*', prefix).group(0)


def _nest(opening: str, closing: str, block: str, indent: str) -> str:
  """Wraps an absolutely indented block; the result starts at ``indent``'s column."""
  body = '\n'.join('  ' + line if line.strip() else line for line in block.split('\n'))
  return f'{opening}\n{body}\n{indent}{closing}'


@dataclass
class TransformOutput:
  code: str
  used_constructs: List[str] = field(default_factory=list)
  used_libraries: List[str] = field(default_factory=list)
  dependencies: Dict[str, str] = field(default_factory=dict)
  passed: bool = False
  failures: List[str] = field(default_factory=list)
  notes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RuleTable:
  """Immutable, ordered rule tiers."""

  elements: Tuple[TransformRule, ...]
  events: Tuple[TransformRule, ...]
  styles: Tuple[TransformRule, ...]
  apis: Tuple[TransformRule, ...]
  framework: Tuple[TransformRule, ...] = ()
  kit: Tuple[TransformRule, ...] = ()

  @classmethod
  def default(cls) -> 'RuleTable':
    return cls(
      elements=_most_specific_first(HTML_ELEMENT_RULES),
      events=EVENT_RULES,
      styles=STYLE_RULES,
      apis=API_RULES,
      framework=FRAMEWORK_STRIP_RULES,
      kit=_most_specific_first(UI_KIT_RULES)
    )


def _most_specific_first(rules: Iterable[TransformRule]) -> Tuple[TransformRule, ...]:
  return tuple(sorted(
    rules,
    key=lambda rule: (getattr(rule, 'priority', 0), len(getattr(rule, 'source', ''))),
    reverse=True
  ))


DEFAULT_RULES = RuleTable.default()


class PatternTransformEngine:
  """Applies the ordered rewrite tiers to one artifact. Never raises."""

  def __init__(self, rules: Optional[RuleTable] = None) -> None:
    self.rules = rules or DEFAULT_RULES

  def transform(self, artifact: SourceArtifact) -> TransformOutput:
    usage = TransformUsage()
    kit_names = detect_kit_imports(artifact.text)
    try:
      code = self.rewrite_elements(artifact.text, usage, kit_names)
      code = self.rewrite_events(code, usage)
      code = self.rewrite_styles(code, usage)
      code = self.rewrite_platform_apis(code, usage)
      # Imports are synthesized over the wrapped body so shell constructs are covered.
      code = self.wrap_edges(code, artifact.role, usage)
      code = self.synthesize_imports(code, usage)
    except Exception as error:
      logger.exception('Pattern transform failed for %s: %s', artifact.filename, error)
      return TransformOutput(code=artifact.text, failures=[f'transform error: {error}'])

    unconvertible = [name for name in kit_names if name not in CONVERTIBLE_KIT_NAMES]
    failures = self_check(code, unconvertible)
    dependencies = merge_dependencies(usage.libraries, kit_dependencies(kit_names), dependencies_for_code(code))
    if failures:
      logger.debug('Pattern transform self-check failed for %s: %s', artifact.filename, '; '.join(failures))
    return TransformOutput(
      code=code,
      used_constructs=sorted(usage.constructs),
      used_libraries=sorted(dependencies),
      dependencies=dependencies,
      passed=not failures,
      failures=failures,
      notes=list(usage.notes)
    )

  # tier (a)
  def rewrite_elements(self, code: str, usage: TransformUsage, kit_names: Sequence[str] = ()) -> str:
    for rule in self.rules.kit:
      if getattr(rule, 'source', None) in kit_names:
        code = rule.apply(code, usage)
    for rule in self.rules.elements:
      code = rule.apply(code, usage)
    return self.wrap_bare_text(code, usage)

  def wrap_bare_text(self, code: str, usage: TransformUsage) -> str:
    replacements = []
    for segment in text_segments(code):
      if not is_text_violation(segment):
        continue
      _, balanced = visible_text(segment.text)
      if not balanced:
        continue
      raw = segment.text
      leading = raw[:len(raw) - len(raw.lstrip())]
      trailing = raw[len(raw.rstrip()):]
      replacements.append((segment.start, segment.end, f'{leading}<Text>{raw.strip()}</Text>{trailing}'))
    for start, end, text in reversed(replacements):
      code = code[:start] + text + code[end:]
    if replacements:
      usage.use('Text')
    return code

  # tier (b)
  def rewrite_events(self, code: str, usage: TransformUsage) -> str:
    for rule in self.rules.events:
      code = rule.apply(code, usage)
    return code

  # tier (c)
  def rewrite_styles(self, code: str, usage: TransformUsage) -> str:
    for rule in self.rules.styles:
      code = rule.apply(code, usage)
    return code

  # tier (d)
  def rewrite_platform_apis(self, code: str, usage: TransformUsage) -> str:
    for rule in self.rules.framework:
      code = rule.apply(code, usage)
    for rule in self.rules.apis:
      code = rule.apply(code, usage)
    return self._bind_navigation(code, usage)

  def _bind_navigation(self, code: str, usage: TransformUsage) -> str:
    if not NAVIGATION_REFERENCE_RE.search(code) or NAVIGATION_BINDING_RE.search(code):
      return code
    body = find_component_body(code)
    if body is None:
      usage.note('navigation is referenced but no component body was found to bind it')
      return code
    usage.use('useNavigation')
    usage.require(NAVIGATION)
    return code[:body] + '\n  const navigation = useNavigation();' + code[body:]

  # tier (e)
  def synthesize_imports(self, code: str, usage: TransformUsage) -> str:
    body, statements = split_imports(code)
    preserved = [statement for statement in statements if not statement.owned]
    for statement in statements:
      if statement.web_only:
        usage.note(f'removed web-only import {statement.module}')
    excluded = set()
    for statement in preserved:
      excluded.update(statement.local_names())
    block, _ = synthesize_import_block(body, excluded)
    usage.use(*used_constructs(body, excluded))
    header = block
    if preserved:
      header += '\n' + '\n'.join(statement.text for statement in preserved)
    return f'{header}\n\n{body.strip()}\n'

  # tier (f)
  def wrap_edges(self, code: str, role: Role, usage: TransformUsage) -> str:
    span = find_return_jsx(code)
    if span is not None:
      start, end = span
      jsx = code[start:end]
      wrapped = self._wrap_jsx(jsx, role, _line_indent(code, start), usage)
      code = code[:start] + wrapped + code[end:]
    return self.append_stylesheet(code, usage)

  def _wrap_jsx(self, jsx: str, role: Role, indent: str, usage: TransformUsage) -> str:
    root = root_tag(jsx)
    block = indent + jsx
    if role is Role.SCREEN:
      if 'SafeAreaView' in jsx:
        return jsx
      if root not in SCROLL_ROOTS:
        block = indent + _nest(
          f'<ScrollView contentContainerStyle={{{usage.style("content")}}}>',
          '</ScrollView>',
          block,
          indent
        )
        usage.use('ScrollView')
      usage.use('SafeAreaView')
      return _nest(f'<SafeAreaView style={{{usage.style("container")}}}>', '</SafeAreaView>', block, indent)
    if root in NATIVE_ROOTS:
      return jsx
    usage.use('View')
    return _nest(f'<View style={{{usage.style("container")}}}>', '</View>', block, indent)

  def append_stylesheet(self, code: str, usage: TransformUsage) -> str:
    if STYLESHEET_RE.search(code):
      return code
    names = set(usage.styles) | set(STYLE_REFERENCE_RE.findall(code))
    if not names:
      return code
    entries = []
    for name in sorted(names):
      properties = DEFAULT_STYLES.get(name)
      entries.append(f'  {name}: {{ {properties} }},' if properties else f'  {name}: {{}},')
    usage.use('StyleSheet')
    return code.rstrip() + '\n\nconst styles = StyleSheet.create({\n' + '\n'.join(entries) + '\n});\n'
