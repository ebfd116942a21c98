"""Text-level JSX scanning shared by the transform engine and the validator.

Nothing here parses JavaScript. Tags are found with a regular expression that
tolerates braces, arrow functions and quoted strings inside attributes, and a
``<`` directly preceded by an identifier is treated as a type argument rather
than markup. Commented-out markup is still scanned.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

# Attribute text: plain characters, quoted strings, or brace expressions nested three deep.
TAG_ATTRS = (
  r'(?:[^<>{}"\']'
  r'|\{(?:[^{}]|\{(?:[^{}]|\{[^{}]*\})*\})*\}'
  r'|"[^"]*"'
  r"|'[^']*')*"
)

TAG_RE = re.compile(
  r'<(?P<fragment>/?)>'
  r'|</(?P<closing>[A-Za-z][\w.:-]*)\s*>'
  r'|(?<![\w$.])<(?P<name>[A-Za-z][\w.:-]*)(?=[\s/>])(?P<attrs>' + TAG_ATTRS + r')>'
)

HTML_TAGS = (
  'a', 'article', 'aside', 'b', 'body', 'br', 'button', 'div', 'em', 'footer', 'form',
  'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'header', 'hr', 'html', 'img', 'input', 'label',
  'li', 'main', 'nav', 'ol', 'option', 'p', 'section', 'select', 'small', 'span',
  'strong', 'textarea', 'ul'
)

FORBIDDEN_TAG_RE = re.compile(r'(?<![\w$.])<(' + '|'.join(sorted(HTML_TAGS, key=len, reverse=True)) + r')(?=[\s/>])')

TEXT_CONSTRUCTS = frozenset({'Text', 'Animated.Text', 'TextInput', 'Picker.Item'})

NATIVE_CONTAINERS = frozenset({
  'View', 'ScrollView', 'SafeAreaView', 'KeyboardAvoidingView', 'TouchableOpacity',
  'TouchableWithoutFeedback', 'TouchableHighlight', 'Pressable', 'Modal', 'Animated.View'
})


@dataclass(frozen=True)
class Tag:
  start: int
  end: int
  name: str
  closing: bool
  self_closing: bool
  attrs: str = ''


@dataclass(frozen=True)
class TextSegment:
  start: int
  end: int
  text: str
  parent: str


def iter_tags(code: str, pos: int = 0) -> Iterator[Tag]:
  for match in TAG_RE.finditer(code, pos):
    if match.group('closing'):
      yield Tag(match.start(), match.end(), match.group('closing'), True, False)
    elif match.group('name'):
      attrs = match.group('attrs') or ''
      yield Tag(
        start=match.start(),
        end=match.end(),
        name=match.group('name'),
        closing=False,
        self_closing=attrs.rstrip().endswith('/'),
        attrs=attrs
      )
    else:
      yield Tag(match.start(), match.end(), '', bool(match.group('fragment')), False)


def nesting_errors(code: str) -> List[str]:
  stack: List[str] = []
  for tag in iter_tags(code):
    if tag.self_closing:
      continue
    if not tag.closing:
      stack.append(tag.name)
      continue
    if not stack:
      return [f'unexpected closing tag </{tag.name}>']
    if stack[-1] != tag.name:
      return [f'closing tag </{tag.name}> does not match <{stack[-1]}>']
    stack.pop()
  if stack:
    return [f'unclosed tag <{stack[-1]}>']
  return []


def find_forbidden_tags(code: str, extra: Sequence[str] = ()) -> List[str]:
  found = {match.group(1) for match in FORBIDDEN_TAG_RE.finditer(code)}
  for name in extra:
    if re.search(r'(?<![\w$.])<' + re.escape(name) + r'(?=[\s/>])', code):
      found.add(name)
  return sorted(found)


def text_segments(code: str) -> Iterator[TextSegment]:
  """Yields the raw text between tags while inside at least one open element."""
  stack: List[str] = []
  last_end: Optional[int] = None
  for tag in iter_tags(code):
    if stack and last_end is not None and tag.start > last_end:
      yield TextSegment(last_end, tag.start, code[last_end:tag.start], stack[-1])
    if tag.closing:
      if tag.name in stack:
        while stack and stack.pop() != tag.name:
          pass
    elif not tag.self_closing:
      stack.append(tag.name)
    last_end = tag.end


def visible_text(segment: str) -> Tuple[str, bool]:
  """Returns the characters outside ``{...}`` and whether the braces balanced."""
  depth = 0
  balanced = True
  collected: List[str] = []
  for char in segment:
    if char == '{':
      depth += 1
    elif char == '}':
      if depth:
        depth -= 1
      else:
        # expression opened in an earlier segment
        collected = []
        balanced = False
    elif depth == 0:
      collected.append(char)
  if depth:
    balanced = False
  return ''.join(collected).strip(), balanced


def has_visible_text(segment: str) -> bool:
  text, _ = visible_text(segment)
  return bool(re.search(r'[A-Za-z0-9]', text))


def is_text_violation(segment: TextSegment) -> bool:
  if segment.parent in TEXT_CONSTRUCTS or not has_visible_text(segment.text):
    return False
  return segment.parent in NATIVE_CONTAINERS or segment.parent[:1].islower()


def unwrapped_text(code: str) -> List[TextSegment]:
  return [segment for segment in text_segments(code) if is_text_violation(segment)]


def jsx_extent(code: str, start: int) -> Optional[Tuple[int, int]]:
  """Span of the balanced element that opens at ``start``."""
  depth = 0
  for tag in iter_tags(code, start):
    if depth == 0 and tag.start != start:
      return None
    if tag.self_closing:
      if depth == 0:
        return start, tag.end
      continue
    depth += -1 if tag.closing else 1
    if depth == 0:
      return start, tag.end
  return None


def root_tag(jsx: str) -> Optional[str]:
  for tag in iter_tags(jsx):
    return tag.name
  return None
