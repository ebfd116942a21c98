from __future__ import annotations

from nextnative.conversion.models import Role, SourceArtifact
from nextnative.conversion.rules import ASYNC_STORAGE, NAVIGATION, DataFetchingRule, TransformUsage
from nextnative.conversion.transform import PatternTransformEngine, self_check

MIXED_MARKUP = '''export default function Panel() {
  return (
    <div className="panel card">
      <label>Name</label>
      <button onClick={() => save()}>Save</button>
      <p>Plain copy</p>
    </div>
  );
}
'''


def _markup_tiers(engine: PatternTransformEngine, code: str) -> str:
  usage = TransformUsage()
  code = engine.rewrite_elements(code, usage)
  code = engine.rewrite_events(code, usage)
  return engine.rewrite_styles(code, usage)


def test_markup_tiers_given_their_own_output_when_reapplied_then_code_is_unchanged() -> None:
  # Given
  engine = PatternTransformEngine()
  once = _markup_tiers(engine, MIXED_MARKUP)

  # When
  twice = _markup_tiers(engine, once)

  # Then
  assert twice == once
  assert once.count('onPress=') == 1
  assert 'onClick' not in once
  assert 'className' not in once


def test_transform_given_legacy_storage_call_when_transformed_then_async_storage_and_import_are_added() -> None:
  # Given
  artifact = SourceArtifact.from_text(
    '''export default function Prefs() {
  localStorage.setItem('theme', 'dark');
  return <View><Text>Saved</Text></View>;
}
''',
    'components/Prefs.jsx'
  )

  # When
  output = PatternTransformEngine().transform(artifact)

  # Then
  assert "AsyncStorage.setItem('theme', 'dark')" in output.code
  assert 'localStorage' not in output.code
  assert "import AsyncStorage from '@react-native-async-storage/async-storage';" in output.code
  assert ASYNC_STORAGE in output.dependencies


def test_transform_given_next_router_when_transformed_then_react_navigation_replaces_it() -> None:
  # Given
  artifact = SourceArtifact.from_text(
    """'use client';
import { useRouter } from 'next/navigation';

export default function Nav() {
  const router = useRouter();
  return <button onClick={() => router.push('/settings')}>Go</button>;
}
""",
    'components/Nav.jsx'
  )

  # When
  output = PatternTransformEngine().transform(artifact)

  # Then
  assert output.passed, output.failures
  assert 'use client' not in output.code
  assert 'next/navigation' not in output.code
  assert "navigation.navigate('Settings')" in output.code
  assert "from '@react-navigation/native';" in output.code
  assert NAVIGATION in output.dependencies
  assert any('next/navigation' in note for note in output.notes)


def test_transform_given_profile_page_when_transformed_then_screen_shell_and_native_constructs_are_used(profile_page) -> None:
  # Given
  artifact = SourceArtifact.from_text(profile_page, 'app/profile/page.tsx')

  # When
  output = PatternTransformEngine().transform(artifact)

  # Then
  assert artifact.role is Role.SCREEN
  assert output.passed, output.failures
  assert output.code.index('<SafeAreaView') < output.code.index('<ScrollView') < output.code.index('<View')
  assert '<Text>Display name</Text>' in output.code
  assert 'onPress={() => console.log(theme)}' in output.code
  assert "AsyncStorage.getItem('theme')" in output.code
  assert "import AsyncStorage from '@react-native-async-storage/async-storage';" in output.code
  assert "import { SafeAreaView } from 'react-native-safe-area-context';" in output.code
  assert 'StyleSheet.create' in output.code


def test_self_check_given_leftover_html_when_checked_then_failures_are_reported() -> None:
  # Given
  code = "import { View } from 'react-native';\nexport default () => <div><View /></div>;\n"

  # When
  failures = self_check(code)

  # Then
  assert any('forbidden tags remain: div' in failure for failure in failures)


def test_transform_given_unconvertible_input_when_transformed_then_it_does_not_pass(garbage) -> None:
  # Given
  artifact = SourceArtifact.from_text(garbage, 'components/Broken.tsx')

  # When
  output = PatternTransformEngine().transform(artifact)

  # Then
  assert not output.passed
  assert output.failures


def test_transform_given_server_side_props_when_transformed_then_page_loads_them_in_an_effect() -> None:
  # Given
  artifact = SourceArtifact.from_text(
    '''export default function Post({ post }) {
  return (
    <div>
      <h1>{post.title}</h1>
    </div>
  );
}

export async function getServerSideProps({ params }) {
  const response = await fetch(`https://api.example.com/posts/${params.id}`);
  const post = await response.json();
  return { props: { post } };
}
''',
    'pages/post.jsx'
  )

  # When
  output = PatternTransformEngine().transform(artifact)

  # Then
  assert output.passed, output.failures
  assert 'getServerSideProps' not in output.code
  assert 'async function loadServerSideProps({ params } = {}) {' in output.code
  assert 'return { props: { post } };' in output.code
  assert 'export default function Post() {\n  const { post } = useLoadedProps() || {};' in output.code
  assert "import React, { useEffect, useState } from 'react';" in output.code
  assert any('useLoadedProps' in note for note in output.notes)


def test_data_fetching_rule_given_typed_static_props_when_applied_twice_then_types_are_dropped_and_output_is_stable() -> None:
  # Given
  code = '''export default function Home({ title }: { title: string }) {
  return <Text>{title}</Text>;
}

export async function getStaticProps(): Promise<{ props: { title: string } }> {
  return { props: { title: 'Hello' } };
}
'''
  rule = DataFetchingRule()

  # When
  once = rule.apply(code, TransformUsage())
  twice = rule.apply(once, TransformUsage())

  # Then
  assert twice == once
  assert "async function loadStaticProps() {\n  return { props: { title: 'Hello' } };\n}" in once
  assert 'Promise<' not in once
  assert 'export default function Home() {\n  const { title } = useLoadedProps() || {};' in once
  assert 'loadStaticProps()\n      .then(' in once
