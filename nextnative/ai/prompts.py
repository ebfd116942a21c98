from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from nextnative.conversion.models import ConversionContext, QualityIssue, QualityReport, Role, SourceArtifact
from nextnative.conversion.ui_kit import detect_kit_imports

ROLE_INSTRUCTIONS = {
  Role.SCREEN: """ROLE: SCREEN
This is a Next.js page that becomes a React Native screen.
- Wrap the whole screen in SafeAreaView (react-native-safe-area-context) and a ScrollView.
- Type navigation and route props; dynamic segments like [id] become route.params.id.
- Replace getServerSideProps/getStaticProps with data loading in useEffect.
- Remove every next/head element and metadata export.
- Show loading indicators for async work and use FlatList for long lists.
- Keep touch targets at least 44pt.""",
  Role.LAYOUT: """ROLE: LAYOUT
This is a layout that owns navigation structure.
- Wrap children in SafeAreaProvider and NavigationContainer.
- Choose stack, tab or drawer navigation from the routes below.
- Configure the StatusBar and keep any context/theme providers.""",
  Role.COMPONENT: """ROLE: COMPONENT
This is a reusable component.
- Keep the props interface and adapt web-only props for mobile.
- Use TouchableOpacity or Pressable with onPress for interaction.
- Use StyleSheet.create for styles and add accessibility roles and labels.
- Use React.memo for expensive renders and stable keys for lists."""
}

CONVERSION_RULES = """CONVERSION RULES
- Output ONE complete React Native (Expo) TypeScript file and nothing else.
- Import React and every React Native construct you use.
- Never emit HTML elements: div/section -> View, p/span/h1-h6/label -> Text, button/a -> TouchableOpacity,
  img -> Image, input/textarea -> TextInput, ul/li -> View or FlatList.
- Every visible string must be inside <Text>.
- onClick -> onPress, onChange -> onChangeText.
- className and CSS become StyleSheet.create styles; no px units, no grid, no float, no position: fixed.
- localStorage/sessionStorage -> AsyncStorage (@react-native-async-storage/async-storage).
- next/router, next/navigation and window.location -> @react-navigation/native.
- shadcn/ui components -> React Native equivalents; never import from components/ui.
- Return the code inside a single ```tsx fenced block."""


def _context_insights(artifact: SourceArtifact, context: Optional[ConversionContext]) -> List[str]:
  insights: List[str] = []
  kit_names = detect_kit_imports(artifact.text)
  if kit_names:
    insights.append(f'shadcn/ui components detected: {", ".join(kit_names)}; convert them to native equivalents')
  dependencies = context.dependencies if context else {}
  if '@tanstack/react-query' in dependencies:
    insights.append('React Query is used; keep query hooks and tune caching for mobile')
  if 'framer-motion' in dependencies:
    insights.append('framer-motion is used; port animations to react-native-reanimated')
  if 'tailwindcss' in dependencies:
    insights.append('Tailwind classes are used; translate them into StyleSheet entries')
  text = artifact.text
  if 'router.' in text:
    insights.append('Next.js router calls must become React Navigation calls')
  if 'useEffect' in text:
    insights.append('useEffect present; keep effects and cleanups mobile-safe')
  if '<form' in text or '<input' in text:
    insights.append('Forms present; use keyboard-aware layouts and TextInput keyboard types')
  return insights


def build_conversion_prompt(artifact: SourceArtifact, context: Optional[ConversionContext] = None) -> str:
  insights = _context_insights(artifact, context)
  insight_section = '\n'.join(f'- {insight}' for insight in insights) or '- (no additional context)'
  related = context.related_files(artifact.filename) if context else []
  related_section = '\n'.join(f'- {path}' for path in related) or '- (none)'
  routes = ', '.join(context.routes[:20]) if context and context.routes else '(unknown)'
  native = context.native_dependencies if context else {}
  native_section = '\n'.join(f'- {name}@{version}' for name, version in sorted(native.items())) or '- (none)'
  return f"""You are an expert React Native engineer converting a Next.js file to Expo.

{ROLE_INSTRUCTIONS[artifact.role]}

{CONVERSION_RULES}

PROJECT CONTEXT
- File: {artifact.filename}
- Component name: {artifact.name}
- Known routes: {routes}
Related files:
{related_section}
Native dependencies available:
{native_section}
Insights:
{insight_section}

SOURCE
```tsx
{artifact.text}
```
"""


def build_enhanced_retry_prompt(prompt: str, attempt: int) -> str:
  return f"""{prompt}

CRITICAL (attempt {attempt}): the previous response was too short or contained no code. Provide:
1. The complete React Native component file
2. Every import it needs
3. The full component implementation and a default export
4. Styles defined with StyleSheet.create
Return only the code in a ```tsx fenced block."""


PATCH_INSTRUCTIONS = {
  'missing-react-import': 'Add `import React from \'react\';` at the top. Change nothing else.',
  'missing-native-import': 'Add the missing `react-native` import for every construct used. Change nothing else.',
  'forbidden-tags': 'Replace every remaining HTML element with its React Native equivalent (View, Text, TouchableOpacity, Image, TextInput). Keep all logic.',
  'text-wrapping': 'Wrap every bare string that sits inside View/TouchableOpacity/ScrollView in <Text>. Keep all logic.',
  'typed-markers': 'Add a TypeScript props interface (`interface NameProps { ... }`) and type the component props with it.',
  'ui-kit-unconverted': 'Replace every shadcn/ui component and components/ui import with React Native equivalents.',
  'legacy-storage': 'Replace localStorage/sessionStorage with AsyncStorage from @react-native-async-storage/async-storage, awaiting the calls.',
  'accessibility': 'Add accessibilityRole and accessibilityLabel props to interactive and image elements.',
  'safe-area': 'Wrap the returned screen in SafeAreaView from react-native-safe-area-context.',
  'ui-kit': 'Convert the shadcn/ui components listed below to React Native components.'
}


def build_patch_prompt(code: str, filename: str, issue: QualityIssue, suggestions: Sequence[str] = ()) -> str:
  """Asks for one defect to be fixed and nothing else."""
  instruction = PATCH_INSTRUCTIONS.get(issue.category, 'Fix the defect described below. Change nothing else.')
  hints = '\n'.join(f'- {hint}' for hint in suggestions[:3])
  hint_section = f'\nHINTS\n{hints}\n' if hints else ''
  return f"""You are fixing exactly one defect in a React Native file. Do not refactor or restyle anything else.

DEFECT ({issue.category}): {issue.message}
INSTRUCTION: {instruction}
{hint_section}
FILE: {filename}
```tsx
{code}
```

Return the COMPLETE corrected file in a single ```tsx fenced block."""


def build_improvement_prompt(code: str, artifact: SourceArtifact, report: QualityReport, context: Optional[ConversionContext] = None) -> str:
  issues = '\n'.join(f'- {issue.message}' for issue in report.blocking_issues) or '- (none)'
  suggestions = '\n'.join(f'- {issue.message}' for issue in list(report.advisories)[:5]) or '- (none)'
  dependencies = ', '.join(sorted(context.native_dependencies)) if context and context.native_dependencies else '(none)'
  return f"""You are an expert React Native developer. Improve this code to reach 100% quality.

CURRENT CODE:
```tsx
{code}
```

CURRENT QUALITY SCORE: {report.score}%

CRITICAL ISSUES TO FIX:
{issues}

KEY SUGGESTIONS TO IMPLEMENT:
{suggestions}

REQUIREMENTS FOR 100% QUALITY:
1. All React Native imports present
2. No HTML elements (use View, Text, etc.)
3. TypeScript interfaces for .tsx files
4. All text wrapped in <Text> components
5. Accessibility props on interactive elements
6. SafeAreaView for screen components
7. StyleSheet.create for styling
8. Error handling and loading states
9. Touch targets of at least 44pt
10. React Navigation for all navigation

FILE: {artifact.filename} ({artifact.role.value})
NATIVE DEPENDENCIES: {dependencies}

Return the COMPLETE improved file in a single ```tsx fenced block."""


def build_error_fix_prompt(code: str, filename: str, errors: Iterable[str]) -> str:
  listed = '\n'.join(f'- {error}' for error in errors)
  return f"""The following React Native file fails to build or run.

ERRORS
{listed}

FILE: {filename}
```tsx
{code}
```

Fix only what these errors require: add missing imports, wrap raw text in <Text>, repair JSX nesting or
handler props. Return the COMPLETE corrected file in a single ```tsx fenced block."""
