from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Pattern, Set, Tuple, Union

from nextnative.conversion.markup import TAG_ATTRS


ASYNC_STORAGE = '@react-native-async-storage/async-storage'
NAVIGATION = '@react-navigation/native'
SAFE_AREA = 'react-native-safe-area-context'

LIBRARY_VERSIONS = {
  ASYNC_STORAGE: '^1.21.0',
  NAVIGATION: '^6.1.9',
  '@react-navigation/native-stack': '^6.9.17',
  'react-native-screens': '^3.27.0',
  SAFE_AREA: '^4.7.4',
  'expo-clipboard': '~5.0.1',
  'expo-location': '~16.5.2',
  'expo-image': '^1.10.0',
  'expo-linear-gradient': '~12.7.2',
  'expo-notifications': '~0.27.6',
  'expo-file-system': '~16.0.6',
  '@expo/vector-icons': '^14.0.0',
  'react-native-svg': '^14.1.0',
  'react-native-toast-message': '^2.1.6',
  'react-native-gesture-handler': '^2.14.0',
  'react-native-reanimated': '~3.6.2',
  '@react-native-picker/picker': '^2.6.1',
  '@react-native-community/slider': '^4.4.2'
}

# Navigation needs its native peers installed alongside it.
NAVIGATION_PEERS = {
  '@react-navigation/native-stack': LIBRARY_VERSIONS['@react-navigation/native-stack'],
  'react-native-screens': LIBRARY_VERSIONS['react-native-screens'],
  SAFE_AREA: LIBRARY_VERSIONS[SAFE_AREA]
}

ATTR_VALUE = (
  r'(?:"[^"]*"'
  r"|'[^']*'"
  r'|\{(?:[^{}]|\{(?:[^{}]|\{[^{}]*\})*\})*\})'
)

INLINE_STYLE_RE = re.compile(r'(style=\{\{)(.*?)(\}\})', re.S)
IMPORT_FROM_RE = re.compile(r'''from\s+['"]([^'"]+)['"]''')


@dataclass
class TransformUsage:
  """Everything a single transform run referenced or required."""

  constructs: Set[str] = field(default_factory=set)
  libraries: Dict[str, str] = field(default_factory=dict)
  styles: Set[str] = field(default_factory=set)
  notes: List[str] = field(default_factory=list)

  def use(self, *constructs: str) -> None:
    self.constructs.update(constructs)

  def require(self, library: Optional[str]) -> None:
    if not library:
      return
    self.libraries[library] = LIBRARY_VERSIONS.get(library, 'latest')
    if library == NAVIGATION:
      self.libraries.update(NAVIGATION_PEERS)

  def style(self, name: str) -> str:
    self.styles.add(name)
    return f'styles.{name}'

  def note(self, message: str) -> None:
    if message not in self.notes:
      self.notes.append(message)


class TransformRule(ABC):
  """One textual rewrite. Rules must be idempotent on their own output."""

  name: str = ''

  @abstractmethod
  def apply(self, code: str, usage: TransformUsage) -> str:
    raise NotImplementedError


PropRewrite = Callable[[str, TransformUsage], str]


# ---------------------------------------------------------------------------
# attribute helpers


ATTR_TOKEN_RE = re.compile(
  r'\s*(?:(?P<spread>\{\s*\.\.\.(?:[^{}]|\{[^{}]*\})*\})'
  r'|(?P<name>[A-Za-z_$][\w:.$-]*)(?:\s*=\s*(?P<value>' + ATTR_VALUE + r'))?)'
)


@dataclass(frozen=True)
class AttrSpan:
  name: str
  value: Optional[str]
  start: int
  name_start: int
  end: int


def attr_spans(attrs: str) -> List[AttrSpan]:
  """Top-level attributes of a tag; values are never searched for nested attributes."""
  spans: List[AttrSpan] = []
  pos = 0
  while pos < len(attrs):
    match = ATTR_TOKEN_RE.match(attrs, pos)
    if not match or match.end() == pos:
      break
    if match.group('name'):
      spans.append(AttrSpan(match.group('name'), match.group('value'), pos, match.start('name'), match.end()))
    pos = match.end()
  return spans


def _find_attr(attrs: str, name: str) -> Optional[AttrSpan]:
  for span in attr_spans(attrs):
    if span.name == name:
      return span
  return None


def has_attr(attrs: str, name: str) -> bool:
  return _find_attr(attrs, name) is not None


def get_attr(attrs: str, name: str) -> Optional[str]:
  span = _find_attr(attrs, name)
  if span is None:
    return None
  return span.value or ''


def remove_attr(attrs: str, *names: str) -> str:
  for span in reversed(attr_spans(attrs)):
    if span.name in names:
      attrs = attrs[:span.start] + attrs[span.end:]
  return attrs


def rename_attr(attrs: str, old: str, new: str) -> str:
  span = _find_attr(attrs, old)
  if span is None:
    return attrs
  return attrs[:span.name_start] + new + attrs[span.name_start + len(old):]


def add_attr(attrs: str, text: str) -> str:
  return f'{attrs.rstrip()} {text}' if attrs.strip() else f' {text}'


def attr_expression(value: str) -> str:
  """JS expression for a raw attribute value: quoted strings stay quoted, braces unwrap."""
  if value.startswith('{') and value.endswith('}'):
    return value[1:-1].strip()
  return "'" + value[1:-1].replace("'", "\\'") + "'"


def has_style(attrs: str) -> bool:
  return has_attr(attrs, 'style') or has_attr(attrs, 'className')


def pascal_case(value: str) -> str:
  parts = [part for part in re.split(r'[^A-Za-z0-9]+', value) if part]
  return ''.join(part[:1].upper() + part[1:] for part in parts)


def camel_case(value: str) -> str:
  name = pascal_case(value)
  if not name:
    return ''
  name = name[:1].lower() + name[1:]
  return f's{name}' if name[0].isdigit() else name


def route_to_screen(path: str) -> str:
  clean = path.split('?')[0].split('#')[0]
  segments = [
    segment for segment in clean.strip('/').split('/')
    if segment and not segment.startswith('[') and not segment.startswith('(')
  ]
  if not segments:
    return 'Home'
  return ''.join(pascal_case(segment) for segment in segments)


def common_props(attrs: str, usage: TransformUsage) -> str:
  attrs = rename_attr(attrs, 'aria-label', 'accessibilityLabel')
  attrs = rename_attr(attrs, 'role', 'accessibilityRole')
  aria = [span.name for span in attr_spans(attrs) if span.name.startswith('aria-')]
  return remove_attr(attrs, 'id', 'htmlFor', 'tabIndex', 'dangerouslySetInnerHTML', *aria)


# ---------------------------------------------------------------------------
# element-specific prop rewrites


def touchable_props(attrs: str, usage: TransformUsage, role: str = 'button') -> str:
  attrs = remove_attr(attrs, 'type')
  if not has_attr(attrs, 'activeOpacity'):
    attrs = add_attr(attrs, 'activeOpacity={0.7}')
  if not has_attr(attrs, 'accessibilityRole'):
    attrs = add_attr(attrs, f'accessibilityRole="{role}"')
  return attrs


def link_props(attrs: str, usage: TransformUsage) -> str:
  href = get_attr(attrs, 'href')
  attrs = remove_attr(attrs, 'href', 'target', 'rel', 'passHref', 'legacyBehavior', 'prefetch', 'scroll')
  if href is not None and not has_attr(attrs, 'onClick') and not has_attr(attrs, 'onPress'):
    handler = _href_handler(href, usage)
    if handler:
      attrs = add_attr(attrs, f'onPress={{() => {handler}}}')
  return touchable_props(attrs, usage, role='link')


def _href_handler(href: str, usage: TransformUsage) -> Optional[str]:
  if href.startswith('{'):
    usage.use('useNavigation')
    usage.require(NAVIGATION)
    return f'navigation.navigate({attr_expression(href)})'
  target = href[1:-1]
  if not target or target.startswith('#'):
    return None
  if re.match(r'^(?:https?:|mailto:|tel:)', target):
    usage.use('Linking')
    return f"Linking.openURL('{target}')"
  usage.use('useNavigation')
  usage.require(NAVIGATION)
  return f"navigation.navigate('{route_to_screen(target)}')"


def image_props(attrs: str, usage: TransformUsage) -> str:
  src = get_attr(attrs, 'src')
  if src is not None:
    attrs = remove_attr(attrs, 'src')
    attrs = add_attr(attrs, f'source={{{{ uri: {attr_expression(src)} }}}}')
  attrs = rename_attr(attrs, 'alt', 'accessibilityLabel')
  width = get_attr(attrs, 'width')
  height = get_attr(attrs, 'height')
  attrs = remove_attr(attrs, 'width', 'height', 'fill', 'priority', 'placeholder', 'sizes', 'quality', 'loading', 'decoding')
  if (width or height) and not has_style(attrs):
    dimensions = []
    if width:
      dimensions.append(f'width: {_dimension(width)}')
    if height:
      dimensions.append(f'height: {_dimension(height)}')
    attrs = add_attr(attrs, 'style={{ ' + ', '.join(dimensions) + ' }}')
  if not has_attr(attrs, 'resizeMode'):
    attrs = add_attr(attrs, 'resizeMode="cover"')
  return attrs


def _dimension(value: str) -> str:
  expression = attr_expression(value)
  number = re.fullmatch(r"'(\d+)(?:px)?'", expression)
  return number.group(1) if number else expression


KEYBOARD_TYPES = {
  'email': 'keyboardType="email-address" autoCapitalize="none"',
  'number': 'keyboardType="numeric"',
  'tel': 'keyboardType="phone-pad"',
  'url': 'keyboardType="url" autoCapitalize="none"',
  'password': 'secureTextEntry',
  'search': 'returnKeyType="search"'
}


def text_input_props(attrs: str, usage: TransformUsage) -> str:
  input_type = get_attr(attrs, 'type')
  attrs = remove_attr(attrs, 'type', 'name', 'required', 'autoComplete', 'min', 'max', 'step')
  if input_type:
    extra = KEYBOARD_TYPES.get(input_type.strip('"\'{}'))
    if extra and extra.split('=')[0] not in attrs:
      attrs = add_attr(attrs, extra)
  disabled = get_attr(attrs, 'disabled')
  if disabled is not None:
    attrs = remove_attr(attrs, 'disabled')
    attrs = add_attr(attrs, 'editable={false}' if not disabled else f'editable={{!({attr_expression(disabled)})}}')
  if not has_style(attrs):
    attrs = add_attr(attrs, f'style={{{usage.style("input")}}}')
  return attrs


def textarea_props(attrs: str, usage: TransformUsage) -> str:
  attrs = rename_attr(attrs, 'rows', 'numberOfLines')
  attrs = text_input_props(attrs, usage)
  if not has_attr(attrs, 'multiline'):
    attrs = add_attr(attrs, 'multiline')
  return attrs


def heading_props(attrs: str, usage: TransformUsage) -> str:
  if not has_style(attrs):
    attrs = add_attr(attrs, f'style={{{usage.style("title")}}}')
  if not has_attr(attrs, 'accessibilityRole'):
    attrs = add_attr(attrs, 'accessibilityRole="header"')
  return attrs


def scroll_props(attrs: str, usage: TransformUsage) -> str:
  if not has_attr(attrs, 'contentContainerStyle'):
    attrs = add_attr(attrs, f'contentContainerStyle={{{usage.style("content")}}}')
  return attrs


def separator_props(attrs: str, usage: TransformUsage) -> str:
  if not has_style(attrs):
    attrs = add_attr(attrs, f'style={{{usage.style("separator")}}}')
  return attrs


def picker_props(attrs: str, usage: TransformUsage) -> str:
  attrs = rename_attr(attrs, 'value', 'selectedValue')
  handler = get_attr(attrs, 'onChange')
  if handler is not None:
    attrs = remove_attr(attrs, 'onChange')
    attrs = add_attr(attrs, 'onValueChange=' + strip_event_target(handler))
  return remove_attr(attrs, 'name', 'required')


def strip_event_target(handler: str) -> str:
  return re.sub(r'\b(\w+)\.target\.(?:value|checked)\b', r'\1', handler)


# ---------------------------------------------------------------------------
# rule implementations


@dataclass(frozen=True)
class ElementRule(TransformRule):
  """Rewrites every opening, closing and self-closing ``source`` tag to ``target``."""

  source: str
  target: str
  prop_rewrite: Optional[PropRewrite] = None
  library: Optional[str] = None
  priority: int = 0

  @property
  def name(self) -> str:  # type: ignore[override]
    return f'element:{self.source}'

  def apply(self, code: str, usage: TransformUsage) -> str:
    opening = re.compile(r'(?<![\w$.])<' + re.escape(self.source) + r'(?=[\s/>])(' + TAG_ATTRS + r')>')
    closing = re.compile(r'</' + re.escape(self.source) + r'\s*>')

    def _open(match: re.Match) -> str:
      attrs = match.group(1)
      self_closing = attrs.rstrip().endswith('/')
      if self_closing:
        attrs = attrs.rstrip()[:-1]
      attrs = common_props(attrs, usage)
      if self.prop_rewrite:
        attrs = self.prop_rewrite(attrs, usage)
      return f'<{self.target}{attrs.rstrip() if self_closing else attrs}{" />" if self_closing else ">"}'

    code, count = opening.subn(_open, code)
    if count:
      usage.use(self.target.split('.')[0])
      usage.require(self.library)
      code = closing.sub(f'</{self.target}>', code)
    return code


@dataclass(frozen=True)
class ChildTextRule(TransformRule):
  """Rewrites ``<source ...>plain text</source>`` as one unit."""

  source: str
  build: Callable[[str, str, TransformUsage], str]
  constructs: Tuple[str, ...] = ()
  library: Optional[str] = None
  priority: int = 2

  @property
  def name(self) -> str:  # type: ignore[override]
    return f'text-child:{self.source}'

  def apply(self, code: str, usage: TransformUsage) -> str:
    pattern = re.compile(
      r'(?<![\w$.])<' + re.escape(self.source) + r'(?=[\s>])(' + TAG_ATTRS + r')>([^<>{}]*)</' + re.escape(self.source) + r'\s*>'
    )

    def _replace(match: re.Match) -> str:
      attrs = match.group(1)
      text = match.group(2).strip()
      if attrs.rstrip().endswith('/') or not text:
        return match.group(0)
      return self.build(common_props(attrs, usage), text, usage)

    code, count = pattern.subn(_replace, code)
    if count:
      usage.use(*self.constructs)
      usage.require(self.library)
    return code


@dataclass(frozen=True)
class RemoveTagRule(TransformRule):
  source: str
  priority: int = 0

  @property
  def name(self) -> str:  # type: ignore[override]
    return f'remove:{self.source}'

  def apply(self, code: str, usage: TransformUsage) -> str:
    pattern = re.compile(r'(?<![\w$.])<' + re.escape(self.source) + r'(?=[\s/>])' + TAG_ATTRS + r'>(?:\s*</' + re.escape(self.source) + r'\s*>)?')
    code, count = pattern.subn('', code)
    if count:
      usage.note(f'removed {count} <{self.source}> tag(s) with no native counterpart')
    return code


@dataclass(frozen=True)
class EventRule(TransformRule):
  """Renames one event prop; optionally rewrites the handler expression."""

  source: str
  target: str
  unwrap_event: bool = False

  @property
  def name(self) -> str:  # type: ignore[override]
    return f'event:{self.source}'

  def apply(self, code: str, usage: TransformUsage) -> str:
    pattern = re.compile(r'(?<=\s)' + re.escape(self.source) + r'(\s*=\s*)(' + ATTR_VALUE + r')')

    def _replace(match: re.Match) -> str:
      handler = match.group(2)
      if self.unwrap_event:
        handler = strip_event_target(handler)
      return f'{self.target}{match.group(1)}{handler}'

    return pattern.sub(_replace, code)


@dataclass(frozen=True)
class StyleRule(TransformRule):
  """Substitution confined to the inside of ``style={{ ... }}`` expressions."""

  rule_name: str
  pattern: Pattern[str]
  replacement: Union[str, Callable[[re.Match], str]]

  @property
  def name(self) -> str:  # type: ignore[override]
    return f'style:{self.rule_name}'

  def apply(self, code: str, usage: TransformUsage) -> str:
    def _scoped(match: re.Match) -> str:
      return match.group(1) + self.pattern.sub(self.replacement, match.group(2)) + match.group(3)

    return INLINE_STYLE_RE.sub(_scoped, code)


@dataclass(frozen=True)
class DisplayFlexRule(TransformRule):
  name: str = 'style:display-flex'

  def apply(self, code: str, usage: TransformUsage) -> str:
    flex = re.compile(r'''display\s*:\s*['"]flex['"]\s*,?\s*''')

    def _scoped(match: re.Match) -> str:
      content = match.group(2)
      if not flex.search(content):
        return match.group(0)
      if 'flexDirection' in content:
        content = flex.sub('', content)
      else:
        content = flex.sub("flexDirection: 'row', ", content, count=1)
        content = flex.sub('', content)
        content = re.sub(r",\s*(\s)$", r'\1', content)
      return match.group(1) + content + match.group(3)

    return INLINE_STYLE_RE.sub(_scoped, code)


@dataclass(frozen=True)
class ClassNameRule(TransformRule):
  """Turns ``className`` into references into the generated stylesheet."""

  name: str = 'style:class-name'

  def apply(self, code: str, usage: TransformUsage) -> str:
    pattern = re.compile(r'(?<![\w$.])<([A-Za-z][\w.]*)(?=[\s/>])(' + TAG_ATTRS + r')>')

    def _replace(match: re.Match) -> str:
      attrs = match.group(2)
      value = get_attr(attrs, 'className')
      if value is None:
        return match.group(0)
      attrs = remove_attr(attrs, 'className')
      reference = self._style_reference(value, usage)
      if reference is None:
        usage.note('dynamic className expression removed; restyle manually')
        return f'<{match.group(1)}{attrs}>'
      existing = get_attr(attrs, 'style')
      if existing:
        attrs = remove_attr(attrs, 'style')
        reference = f'[{reference}, {attr_expression(existing)}]'
      self_closing = attrs.rstrip().endswith('/')
      if self_closing:
        attrs = attrs.rstrip()[:-1].rstrip()
      attrs = add_attr(attrs, f'style={{{reference}}}')
      return f'<{match.group(1)}{attrs}{" />" if self_closing else ">"}'

    return pattern.sub(_replace, code)

  @staticmethod
  def _style_reference(value: str, usage: TransformUsage) -> Optional[str]:
    if value.startswith('{'):
      expression = attr_expression(value)
      if re.fullmatch(r'styles(?:\.\w+|\[[^\]]+\])', expression):
        member = re.fullmatch(r'styles\.(\w+)', expression)
        if member:
          usage.style(member.group(1))
        return expression
      literal = re.fullmatch(r'''(['"`])([^'"`${}]*)\1''', expression)
      if not literal:
        return None
      value = f'"{literal.group(2)}"'
    names = []
    for class_name in value[1:-1].split():
      style_name = camel_case(class_name)
      if style_name and style_name not in names:
        names.append(style_name)
    if not names:
      return None
    references = [usage.style(name) for name in names]
    return references[0] if len(references) == 1 else '[' + ', '.join(references) + ']'


@dataclass(frozen=True)
class ApiRule(TransformRule):
  """Swaps a web platform call prefix for its native equivalent."""

  rule_name: str
  pattern: Pattern[str]
  replacement: Union[str, Callable[[re.Match], str]]
  constructs: Tuple[str, ...] = ()
  library: Optional[str] = None

  @property
  def name(self) -> str:  # type: ignore[override]
    return f'api:{self.rule_name}'

  def apply(self, code: str, usage: TransformUsage) -> str:
    code, count = self.pattern.subn(self.replacement, code)
    if count:
      usage.use(*self.constructs)
      usage.require(self.library)
    return code


@dataclass(frozen=True)
class StripRule(TransformRule):
  """Removes a framework-only declaration; braces after the match are removed balanced."""

  rule_name: str
  pattern: Pattern[str]
  note_text: str
  balanced: bool = False

  @property
  def name(self) -> str:  # type: ignore[override]
    return f'strip:{self.rule_name}'

  def apply(self, code: str, usage: TransformUsage) -> str:
    removed = False
    while True:
      match = self.pattern.search(code)
      if not match:
        break
      end = match.end()
      if self.balanced:
        closing = _balanced_end(code, end)
        if closing is None:
          break
        end = closing
        trailing = re.match(r'[ \t]*;?[ \t]*\n?', code[end:])
        end += trailing.end() if trailing else 0
      code = code[:match.start()] + code[end:]
      removed = True
    if removed:
      usage.note(self.note_text)
    return code


def matching_close(code: str, opening: int, open_char: str = '{', close_char: str = '}') -> Optional[int]:
  """Index just past the bracket closing the one at ``opening``."""
  depth = 0
  for index in range(opening, len(code)):
    char = code[index]
    if char == open_char:
      depth += 1
    elif char == close_char:
      depth -= 1
      if depth == 0:
        return index + 1
  return None


def _balanced_end(code: str, start: int) -> Optional[int]:
  index = start
  if code[start:].lstrip().startswith('('):
    parameters_end = matching_close(code, code.index('(', start), '(', ')')
    if parameters_end is None:
      return None
    index = parameters_end
  opening = code.find('{', index)
  if opening == -1:
    return None
  return matching_close(code, opening)


def _body_opening(code: str, start: int) -> Optional[int]:
  """First ``{`` after ``start`` outside a ``<...>`` return type annotation."""
  depth = 0
  for index in range(start, len(code)):
    char = code[index]
    if char == '<':
      depth += 1
    elif char == '>' and depth:
      depth -= 1
    elif char == '{' and depth == 0:
      return index
  return None


DATA_LOADER_RE = re.compile(r'export\s+async\s+function\s+(getServerSideProps|getStaticProps)\s*(?=\()')
DEFAULT_COMPONENT_RE = re.compile(r'export\s+default\s+(?:async\s+)?function\s+\w+\s*(?=\()')
PARAMETER_TYPE_RE = re.compile(r'\s*:\s*[A-Za-z_$][\w.$]*(?:<[^()]*>)?\s*$')
LOADER_NAMES = {'getServerSideProps': 'loadServerSideProps', 'getStaticProps': 'loadStaticProps'}

LOADED_PROPS_HOOK = '''function useLoadedProps() {
  const [loadedProps, setLoadedProps] = useState(null);
  useEffect(() => {
    let active = true;
    __LOADER__()
      .then((result) => {
        if (active && result && result.props) {
          setLoadedProps(result.props);
        }
      })
      .catch((error) => console.warn('__LOADER__ failed', error));
    return () => {
      active = false;
    };
  }, []);
  return loadedProps;
}'''


@dataclass(frozen=True)
class DataFetchingRule(TransformRule):
  """Moves ``getServerSideProps``/``getStaticProps`` onto the device.

  The export becomes a plain async loader, ``useLoadedProps`` runs it in a
  ``useEffect``, and the page reads its former props from that hook.
  """

  @property
  def name(self) -> str:  # type: ignore[override]
    return 'framework:data-loader'

  def apply(self, code: str, usage: TransformUsage) -> str:
    match = DATA_LOADER_RE.search(code)
    if not match or 'function useLoadedProps(' in code:
      return code
    parameters_open = code.index('(', match.end() - 1)
    parameters_close = matching_close(code, parameters_open, '(', ')')
    if parameters_close is None:
      return code
    body_open = _body_opening(code, parameters_close)
    body_close = matching_close(code, body_open) if body_open is not None else None
    if body_close is None:
      return code

    loader = LOADER_NAMES[match.group(1)]
    parameters = PARAMETER_TYPE_RE.sub('', code[parameters_open + 1:parameters_close - 1]).strip()
    if parameters and '=' not in parameters:
      parameters += ' = {}'
    replacement = f'async function {loader}({parameters}) {code[body_open:body_close]}\n\n'
    replacement += LOADED_PROPS_HOOK.replace('__LOADER__', loader)
    code = code[:match.start()] + replacement + code[body_close:]
    code = self._read_loaded_props(code, usage)
    usage.use('useState', 'useEffect')
    usage.note(f'{match.group(1)} now runs on the device through useLoadedProps; review any server-only code it uses')
    return code

  @staticmethod
  def _read_loaded_props(code: str, usage: TransformUsage) -> str:
    component = DEFAULT_COMPONENT_RE.search(code)
    if not component:
      usage.note('no default export found to read the loaded props')
      return code
    parameters_open = component.end()
    parameters_close = matching_close(code, parameters_open, '(', ')')
    if parameters_close is None:
      return code
    parameters = code[parameters_open + 1:parameters_close - 1].strip()
    if parameters.startswith('{'):
      binding = parameters[:matching_close(parameters, 0) or len(parameters)]
    else:
      binding = PARAMETER_TYPE_RE.sub('', parameters).strip()
    body_open = _body_opening(code, parameters_close)
    if not binding or body_open is None:
      return code
    statement = f'\n  const {binding} = useLoadedProps() || {{}};'
    return code[:parameters_open] + '()' + code[parameters_close:body_open + 1] + statement + code[body_open + 1:]


# ---------------------------------------------------------------------------
# tables


def _button_text(attrs: str, text: str, usage: TransformUsage) -> str:
  attrs = touchable_props(attrs, usage)
  return f'<TouchableOpacity{attrs}><Text>{text}</Text></TouchableOpacity>'


def _picker_item(attrs: str, text: str, usage: TransformUsage) -> str:
  attrs = attrs.rstrip()
  if not has_attr(attrs, 'label'):
    attrs = add_attr(attrs, 'label="' + text.replace('"', '&quot;') + '"')
  return f'<Picker.Item{attrs} />'


def _touchable(attrs: str, usage: TransformUsage) -> str:
  return touchable_props(attrs, usage)


def _svg_rule(source: str, target: str) -> ElementRule:
  return ElementRule(source, target, library='react-native-svg')


HTML_ELEMENT_RULES: Tuple[TransformRule, ...] = (
  ChildTextRule('option', _picker_item, constructs=('Picker',), library='@react-native-picker/picker'),
  ChildTextRule('button', _button_text, constructs=('TouchableOpacity', 'Text')),
  ElementRule('button', 'TouchableOpacity', _touchable),
  ElementRule('a', 'TouchableOpacity', link_props),
  ElementRule('Link', 'TouchableOpacity', link_props),
  ElementRule('img', 'Image', image_props),
  ElementRule('Image', 'Image', image_props),
  ElementRule('input', 'TextInput', text_input_props),
  ElementRule('textarea', 'TextInput', textarea_props),
  ElementRule('select', 'Picker', picker_props, library='@react-native-picker/picker'),
  ElementRule('main', 'ScrollView', scroll_props),
  ElementRule('h1', 'Text', heading_props),
  ElementRule('h2', 'Text', heading_props),
  ElementRule('h3', 'Text', heading_props),
  ElementRule('h4', 'Text', heading_props),
  ElementRule('h5', 'Text', heading_props),
  ElementRule('h6', 'Text', heading_props),
  ElementRule('hr', 'View', separator_props),
  RemoveTagRule('br'),
  ElementRule('p', 'Text'),
  ElementRule('span', 'Text'),
  ElementRule('label', 'Text'),
  ElementRule('strong', 'Text'),
  ElementRule('small', 'Text'),
  ElementRule('em', 'Text'),
  ElementRule('b', 'Text'),
  ElementRule('div', 'View'),
  ElementRule('section', 'View'),
  ElementRule('article', 'View'),
  ElementRule('header', 'View'),
  ElementRule('footer', 'View'),
  ElementRule('nav', 'View'),
  ElementRule('aside', 'View'),
  ElementRule('form', 'View'),
  ElementRule('ul', 'View'),
  ElementRule('ol', 'View'),
  ElementRule('li', 'View'),
  ElementRule('body', 'View'),
  ElementRule('html', 'View'),
  _svg_rule('svg', 'Svg'),
  _svg_rule('path', 'Path'),
  _svg_rule('circle', 'Circle'),
  _svg_rule('rect', 'Rect'),
  _svg_rule('line', 'Line'),
  _svg_rule('polyline', 'Polyline'),
  _svg_rule('polygon', 'Polygon'),
  _svg_rule('g', 'G')
)


EVENT_RULES: Tuple[TransformRule, ...] = (
  EventRule('onClick', 'onPress'),
  EventRule('onChange', 'onChangeText', unwrap_event=True),
  EventRule('onSubmit', 'onPress'),
  EventRule('onMouseEnter', 'onPressIn'),
  EventRule('onMouseLeave', 'onPressOut'),
  EventRule('onDoubleClick', 'onLongPress'),
  EventRule('onKeyDown', 'onKeyPress')
)


def _camel_key(match: re.Match) -> str:
  parts = match.group(3).split('-')
  return match.group(1) + parts[0] + ''.join(part.capitalize() for part in parts[1:]) + match.group(4)


def _font_weight(match: re.Match) -> str:
  return f"fontWeight: '{match.group(1)}'"


STYLE_RULES: Tuple[TransformRule, ...] = (
  StyleRule('kebab-keys', re.compile(r'''(^\s*|[{,]\s*)(['"]?)([a-z]+(?:-[a-z]+)+)\2(\s*:)'''), _camel_key),
  StyleRule('px-units', re.compile(r'''(['"])(-?\d+(?:\.\d+)?)px\1'''), r'\2'),
  StyleRule('viewport-units', re.compile(r'''(['"])(\d+(?:\.\d+)?)v[hw]\1'''), r"'\2%'"),
  StyleRule(
    'web-only-keys',
    re.compile(r'''\b(?:cursor|transition|userSelect|boxShadow|outline|whiteSpace)\s*:\s*(?:'[^']*'|"[^"]*"|[\w.]+)\s*,?\s*'''),
    ''
  ),
  StyleRule('font-weight', re.compile(r'fontWeight\s*:\s*(\d{3})\b'), _font_weight),
  DisplayFlexRule(),
  # className merges with inline styles, so it runs after they are rewritten
  ClassNameRule()
)


def _navigate_literal(match: re.Match) -> str:
  method = 'navigate' if match.group(1) == 'push' else 'replace'
  return f"navigation.{method}('{route_to_screen(match.group(3))}'"


def _location_assignment(match: re.Match) -> str:
  target = match.group(1).strip()
  literal = re.fullmatch(r'''(['"])(/[^'"]*)\1''', target)
  if literal:
    return f"navigation.navigate('{route_to_screen(literal.group(2))}')"
  return f'navigation.navigate({target})'


API_RULES: Tuple[TransformRule, ...] = (
  ApiRule(
    'web-storage',
    re.compile(r'\b(?:window\.)?(?:localStorage|sessionStorage)\.(setItem|getItem|removeItem|clear)\('),
    r'AsyncStorage.\1(',
    ('AsyncStorage',),
    ASYNC_STORAGE
  ),
  ApiRule('use-router', re.compile(r'\bconst\s+router\s*=\s*useRouter\(\)'), 'const navigation = useNavigation()', ('useNavigation',), NAVIGATION),
  ApiRule('router-literal', re.compile(r'''\brouter\.(push|replace)\(\s*(['"])(/[^'"]*)\2'''), _navigate_literal, ('useNavigation',), NAVIGATION),
  ApiRule('router-push', re.compile(r'\brouter\.push\('), 'navigation.navigate(', ('useNavigation',), NAVIGATION),
  ApiRule('router-replace', re.compile(r'\brouter\.replace\('), 'navigation.replace(', ('useNavigation',), NAVIGATION),
  ApiRule('router-back', re.compile(r'\brouter\.back\(\)'), 'navigation.goBack()', ('useNavigation',), NAVIGATION),
  ApiRule('window-location', re.compile(r'\bwindow\.location\.href\s*=\s*([^;\n]+)'), _location_assignment, ('useNavigation',), NAVIGATION),
  ApiRule('use-pathname', re.compile(r'\busePathname\(\)'), 'useRoute().name', ('useRoute',), NAVIGATION),
  ApiRule('use-search-params', re.compile(r'\buseSearchParams\(\)'), 'useRoute().params', ('useRoute',), NAVIGATION),
  ApiRule('alert', re.compile(r'(?<![\w.$])(?:window\.)?alert\('), 'Alert.alert(', ('Alert',)),
  ApiRule('window-open', re.compile(r'\bwindow\.open\('), 'Linking.openURL(', ('Linking',)),
  ApiRule('clipboard-write', re.compile(r'\bnavigator\.clipboard\.writeText\('), 'Clipboard.setStringAsync(', ('Clipboard',), 'expo-clipboard'),
  ApiRule('clipboard-read', re.compile(r'\bnavigator\.clipboard\.readText\('), 'Clipboard.getStringAsync(', ('Clipboard',), 'expo-clipboard'),
  ApiRule(
    'geolocation',
    re.compile(r'\bnavigator\.geolocation\.getCurrentPosition\('),
    'Location.getCurrentPositionAsync(',
    ('Location',),
    'expo-location'
  )
)


FRAMEWORK_STRIP_RULES: Tuple[TransformRule, ...] = (
  DataFetchingRule(),
  StripRule('use-client', re.compile(r'''^\s*['"]use (?:client|server)['"];?[ \t]*\n?'''), 'removed server/client directive'),
  StripRule(
    'metadata',
    re.compile(r'export\s+const\s+metadata(?:\s*:\s*[\w.]+)?\s*=\s*(?=\{)'),
    'removed page metadata export',
    balanced=True
  ),
  StripRule(
    'data-fetching',
    re.compile(r'export\s+(?:async\s+)?function\s+(?:getServerSideProps|getStaticProps|getStaticPaths|generateStaticParams|generateMetadata)\b'),
    'removed server data fetching; load data in a useEffect instead',
    balanced=True
  ),
  StripRule(
    'route-config',
    re.compile(r'''export\s+const\s+(?:dynamic|revalidate|runtime|fetchCache)\s*=\s*[^;\n]+;?[ \t]*\n?'''),
    'removed route segment config'
  ),
  StripRule('head', re.compile(r'<Head>.*?</Head>\s*', re.S), 'removed document head block')
)


# ---------------------------------------------------------------------------
# import catalogue


@dataclass(frozen=True)
class ConstructImport:
  module: str
  kind: str = 'named'  # named, default, namespace
  usage: str = 'tag'  # tag, member, call

  def pattern(self, name: str) -> Pattern[str]:
    if self.usage == 'tag':
      return re.compile(r'<' + re.escape(name) + r'(?=[\s/>.])')
    if self.usage == 'member':
      return re.compile(r'(?<![\w$.])' + re.escape(name) + r'\.')
    return re.compile(r'(?<![\w$.])' + re.escape(name) + r'\(')


def _native(usage: str = 'tag') -> ConstructImport:
  return ConstructImport('react-native', 'named', usage)


CONSTRUCT_IMPORTS: Dict[str, ConstructImport] = {
  'ActivityIndicator': _native(),
  'FlatList': _native(),
  'Image': _native(),
  'ImageBackground': _native(),
  'KeyboardAvoidingView': _native(),
  'Modal': _native(),
  'Pressable': _native(),
  'RefreshControl': _native(),
  'ScrollView': _native(),
  'SectionList': _native(),
  'StatusBar': _native(),
  'Switch': _native(),
  'Text': _native(),
  'TextInput': _native(),
  'TouchableHighlight': _native(),
  'TouchableOpacity': _native(),
  'TouchableWithoutFeedback': _native(),
  'View': _native(),
  'Alert': _native('member'),
  'Animated': _native('member'),
  'Dimensions': _native('member'),
  'Keyboard': _native('member'),
  'Linking': _native('member'),
  'Platform': _native('member'),
  'StyleSheet': _native('member'),
  'useColorScheme': _native('call'),
  'useWindowDimensions': _native('call'),
  'SafeAreaView': ConstructImport(SAFE_AREA),
  'SafeAreaProvider': ConstructImport(SAFE_AREA),
  'NavigationContainer': ConstructImport(NAVIGATION),
  'useNavigation': ConstructImport(NAVIGATION, usage='call'),
  'useRoute': ConstructImport(NAVIGATION, usage='call'),
  'useFocusEffect': ConstructImport(NAVIGATION, usage='call'),
  'AsyncStorage': ConstructImport(ASYNC_STORAGE, 'default', 'member'),
  'Clipboard': ConstructImport('expo-clipboard', 'namespace', 'member'),
  'Location': ConstructImport('expo-location', 'namespace', 'member'),
  'LinearGradient': ConstructImport('expo-linear-gradient'),
  'Ionicons': ConstructImport('@expo/vector-icons'),
  'Picker': ConstructImport('@react-native-picker/picker'),
  'Toast': ConstructImport('react-native-toast-message', 'default', 'member'),
  'Svg': ConstructImport('react-native-svg', 'default'),
  'Circle': ConstructImport('react-native-svg'),
  'G': ConstructImport('react-native-svg'),
  'Line': ConstructImport('react-native-svg'),
  'Path': ConstructImport('react-native-svg'),
  'Polygon': ConstructImport('react-native-svg'),
  'Polyline': ConstructImport('react-native-svg'),
  'Rect': ConstructImport('react-native-svg')
}

REACT_HOOKS = (
  'createContext', 'forwardRef', 'useCallback', 'useContext', 'useEffect',
  'useLayoutEffect', 'useMemo', 'useReducer', 'useRef', 'useState'
)

SYNTHESIZED_MODULES = frozenset({'react'} | {entry.module for entry in CONSTRUCT_IMPORTS.values()})

WEB_ONLY_MODULE_RE = re.compile(
  r'^(?:next(?:/.*)?|react-dom(?:/.*)?|@/components/ui/.*|(?:\.\.?/)+(?:\w+/)*components/ui/.*|.*\.(?:css|scss|sass|less))$'
)


def dependencies_for_modules(modules: Iterable[str]) -> Dict[str, str]:
  dependencies: Dict[str, str] = {}
  for module in modules:
    version = LIBRARY_VERSIONS.get(module)
    if version is None:
      continue
    dependencies[module] = version
    if module == NAVIGATION:
      dependencies.update(NAVIGATION_PEERS)
  return dependencies


def dependencies_for_code(code: str) -> Dict[str, str]:
  """Native dependencies implied by the import statements of ``code``."""
  return dependencies_for_modules(IMPORT_FROM_RE.findall(code))
