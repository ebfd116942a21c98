"""Heuristic quality rubric for converted React Native artifacts.

Every check is a text pattern, not a structural analysis. Markup inside
comments is still seen, so commented-out ``<div>`` fails the element check,
and tags assembled at runtime (``React.createElement(tag)``) are never seen.
The broad web-CSS pattern also flags the bare words ``grid`` and ``float``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Pattern, Tuple

from nextnative.conversion.markup import find_forbidden_tags, unwrapped_text
from nextnative.conversion.models import QualityIssue, QualityReport, Role, infer_role, is_typed_filename
from nextnative.conversion.ui_kit import KIT_COMPONENTS, UI_KIT_IMPORT_RE, detect_kit_imports, has_unconverted_usage

BLOCKING = 'blocking'
ADVISORY = 'advisory'

REACT_IMPORT_RE = re.compile(r'''import\s+React\b|from\s+['"]react['"]''')
NATIVE_IMPORT_RE = re.compile(r'react-native|expo')
TYPED_MARKER_RE = re.compile(
  r'\binterface\s+\w+|\btype\s+\w+\s*=|React\.FC\b|React\.ReactNode\b|:\s*(?:string|number|boolean)\b'
)
INLINE_NUMERIC_STYLE_RE = re.compile(r'style=\{\{[^}]+fontSize:\s*\d+[^}]*\}\}')
WEB_CSS_RE = re.compile(r'\b(?:grid|float|position:\s*fixed)\b')
WEB_FLEX_RE = re.compile(r'''display:\s*['"]?flex''')


@dataclass(frozen=True)
class PlatformApi:
  category: str
  pattern: Pattern[str]
  suggestion: str


PLATFORM_APIS: Tuple[PlatformApi, ...] = (
  PlatformApi(
    'legacy-storage',
    re.compile(r'\blocalStorage\b'),
    'localStorage detected: use AsyncStorage from @react-native-async-storage/async-storage'
  ),
  PlatformApi(
    'legacy-storage',
    re.compile(r'\bsessionStorage\b'),
    'sessionStorage detected: use AsyncStorage with expiration logic'
  ),
  PlatformApi(
    'navigation',
    re.compile(r'\bwindow\.location\b'),
    'window.location detected: use React Navigation (navigation.navigate)'
  ),
  PlatformApi(
    'navigation',
    re.compile(r'\bwindow\.history\b'),
    'window.history detected: use the React Navigation history stack'
  ),
  PlatformApi(
    'platform-api',
    re.compile(r'\bnavigator\.'),
    'navigator API detected: check for an Expo equivalent (Location, Camera, etc.)'
  ),
  PlatformApi(
    'platform-api',
    re.compile(r'\bnavigator\.geolocation\b'),
    'Geolocation detected: use expo-location'
  ),
  PlatformApi(
    'platform-api',
    re.compile(r'\bnavigator\.clipboard\b'),
    'Clipboard API detected: use expo-clipboard'
  ),
  PlatformApi(
    'platform-api',
    re.compile(r'\bnew\s+Notification\b'),
    'Web Notifications detected: use expo-notifications'
  ),
  PlatformApi(
    'platform-api',
    re.compile(r'\bFileReader\b'),
    'FileReader detected: use expo-file-system'
  ),
  PlatformApi(
    'platform-api',
    re.compile(r'\bIntersectionObserver\b'),
    'IntersectionObserver detected: use onLayout/onScroll events'
  ),
  PlatformApi(
    'platform-api',
    re.compile(r'\bdocument\.'),
    'document API detected: use React Native refs or remove DOM-specific code'
  )
)

ADVISORY_GROUPS: Dict[str, str] = {
  'missing-react-import': 'imports',
  'missing-dependency': 'imports',
  'missing-native-import': 'imports',
  'legacy-storage': 'imports',
  'ui-kit': 'components',
  'ui-kit-unconverted': 'components',
  'forbidden-tags': 'components',
  'text-wrapping': 'components',
  'touchable': 'components',
  'image-tag': 'components',
  'accessibility': 'components',
  'stylesheet': 'styling',
  'inline-styles': 'styling',
  'web-flexbox': 'styling',
  'web-css': 'styling',
  'safe-area': 'styling',
  'navigation': 'navigation'
}


@dataclass(frozen=True)
class CheckOutcome:
  category: str
  passed: bool
  message: str


def round_half_up(numerator: int, denominator: int) -> int:
  """``round(100 * numerator / denominator)`` with halves rounded up, in integers."""
  if denominator <= 0:
    return 0
  return (200 * numerator + denominator) // (2 * denominator)


class QualityValidator:
  """Scores an artifact 0-100 from five critical and four style checks."""

  def validate(self, code: str, filename: str, dependencies: Optional[Mapping[str, str]] = None) -> QualityReport:
    scored = self._critical_checks(code, filename) + self._style_checks(code)
    passed = sum(1 for outcome in scored if outcome.passed)
    score = round_half_up(passed, len(scored))

    blocking: List[QualityIssue] = [
      QualityIssue(outcome.category, outcome.message, BLOCKING)
      for outcome in scored[:5] if not outcome.passed
    ]
    advisories: List[QualityIssue] = []
    advisories.extend(self._platform_api_advisories(code))
    kit_blocking, kit_advisories = self._ui_kit_checks(code)
    blocking.extend(kit_blocking)
    advisories.extend(kit_advisories)
    advisories.extend(
      QualityIssue(outcome.category, outcome.message, ADVISORY)
      for outcome in scored[5:] if not outcome.passed
    )
    advisories.extend(self._best_practice_advisories(code, filename))
    advisories.extend(self._dependency_advisories(code, dependencies))
    return QualityReport(score=score, blocking_issues=tuple(blocking), advisories=tuple(advisories))

  def _critical_checks(self, code: str, filename: str) -> List[CheckOutcome]:
    forbidden = find_forbidden_tags(code)
    unwrapped = unwrapped_text(code)
    typed_ok = not is_typed_filename(filename) or bool(TYPED_MARKER_RE.search(code))
    return [
      CheckOutcome('missing-react-import', bool(REACT_IMPORT_RE.search(code)), 'Missing React import'),
      CheckOutcome('missing-native-import', bool(NATIVE_IMPORT_RE.search(code)), 'Missing React Native imports'),
      CheckOutcome(
        'forbidden-tags',
        not forbidden,
        'Contains HTML elements instead of React Native components: ' + ', '.join(forbidden)
      ),
      CheckOutcome(
        'text-wrapping',
        not unwrapped,
        'Text content not wrapped in <Text> components' + (f' (inside <{unwrapped[0].parent}>)' if unwrapped else '')
      ),
      CheckOutcome('typed-markers', typed_ok, 'TypeScript interfaces or types are missing')
    ]

  def _style_checks(self, code: str) -> List[CheckOutcome]:
    return [
      CheckOutcome(
        'stylesheet',
        'StyleSheet.create' in code or 'style={{' in code,
        'Use StyleSheet.create for styles'
      ),
      CheckOutcome(
        'inline-styles',
        not INLINE_NUMERIC_STYLE_RE.search(code),
        'Complex inline styles detected; extract them into the StyleSheet'
      ),
      CheckOutcome(
        'web-flexbox',
        not WEB_FLEX_RE.search(code) or 'flexDirection' in code,
        'Web CSS flexbox detected; set flexDirection explicitly'
      ),
      CheckOutcome('web-css', not WEB_CSS_RE.search(code), 'Web-specific CSS layout properties detected')
    ]

  def _platform_api_advisories(self, code: str) -> List[QualityIssue]:
    return [
      QualityIssue(api.category, api.suggestion, ADVISORY)
      for api in PLATFORM_APIS if api.pattern.search(code)
    ]

  def _ui_kit_checks(self, code: str) -> Tuple[List[QualityIssue], List[QualityIssue]]:
    blocking: List[QualityIssue] = []
    advisories: List[QualityIssue] = []
    names = detect_kit_imports(code)
    if UI_KIT_IMPORT_RE.search(code):
      advisories.append(QualityIssue('ui-kit', 'shadcn/ui imports detected: convert them to React Native components', ADVISORY))
    for name in names:
      component = KIT_COMPONENTS.get(name)
      if component:
        advisories.append(QualityIssue('ui-kit', f'shadcn {name} detected: {component.suggestion}', ADVISORY))
    if has_unconverted_usage(code):
      blocking.append(QualityIssue('ui-kit-unconverted', 'shadcn/ui components found but not converted to React Native', BLOCKING))
    return blocking, advisories

  def _best_practice_advisories(self, code: str, filename: str) -> List[QualityIssue]:
    advisories: List[QualityIssue] = []
    if 'TouchableOpacity' not in code and 'Pressable' not in code:
      advisories.append(QualityIssue('touchable', 'Add touchable components for mobile interaction', ADVISORY))
    if infer_role(filename) is Role.SCREEN and 'SafeAreaView' not in code:
      advisories.append(QualityIssue('safe-area', 'Wrap screen components in SafeAreaView', ADVISORY))
    if '<img' in code and '<Image' not in code:
      advisories.append(QualityIssue('image-tag', 'HTML img tags detected: use the React Native Image', ADVISORY))
    if 'accessibilityLabel' not in code and 'accessibilityRole' not in code:
      advisories.append(QualityIssue('accessibility', 'Add accessibility props (accessibilityLabel, accessibilityRole)', ADVISORY))
    return advisories

  def _dependency_advisories(self, code: str, dependencies: Optional[Mapping[str, str]]) -> List[QualityIssue]:
    if not dependencies:
      return []
    advisories = []
    for module in sorted(set(re.findall(r'''from\s+['"]((?:@[\w.-]+/)?[\w.-]+)''', code))):
      if module in {'react', 'react-native'} or module.startswith('.'):
        continue
      if module not in dependencies:
        advisories.append(QualityIssue('missing-dependency', f'{module} is imported but not declared in package.json', ADVISORY))
    return advisories


_validator = QualityValidator()


def validate(code: str, filename: str, dependencies: Optional[Mapping[str, str]] = None) -> QualityReport:
  return _validator.validate(code, filename, dependencies)


def group_advisories(advisories: Iterable[QualityIssue]) -> Dict[str, List[QualityIssue]]:
  groups: Dict[str, List[QualityIssue]] = {'imports': [], 'components': [], 'styling': [], 'navigation': [], 'other': []}
  for issue in advisories:
    groups[ADVISORY_GROUPS.get(issue.category, 'other')].append(issue)
  return groups
