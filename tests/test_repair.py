from __future__ import annotations

import pytest

from nextnative.ai.retry import RetryPolicy
from nextnative.conversion.models import SourceArtifact
from nextnative.quality.repair import MAX_TOP_LEVEL_ATTEMPTS, AutoRepairEngine, CallPacing, good_enough
from nextnative.quality.validator import QualityValidator

STORAGE_COMPONENT = '''import React from 'react';
import { View, Text } from 'react-native';

export default function Prefs() {
  const value = localStorage.getItem('theme');
  return (
    <View>
      <Text>{value}</Text>
    </View>
  );
}
'''


def _engine(client, fake_sleep, attempts: int = 10) -> AutoRepairEngine:
  return AutoRepairEngine(client=client, policy=RetryPolicy.fixed(attempts, 0.0), sleep=fake_sleep)


@pytest.mark.asyncio
async def test_apply_patches_given_patch_that_keeps_html_when_checked_then_it_is_rejected(
  card_with_html,
  client_factory,
  fake_sleep
) -> None:
  # Given
  candidate = card_with_html.replace('<div>Hello</div>', '<span>Hello</span>')
  engine = _engine(client_factory(default=candidate), fake_sleep)
  report = QualityValidator().validate(card_with_html, 'components/Card.jsx')

  # When
  outcome = await engine.apply_patches(card_with_html, 'components/Card.jsx', report.blocking_issues)

  # Then
  assert outcome.code == card_with_html
  assert outcome.accepted == []
  rejected = {rejection.category: rejection.reason for rejection in outcome.rejected}
  assert rejected['forbidden-tags'] == 'HTML elements remain: span'
  assert 'text-wrapping' in rejected


@pytest.mark.asyncio
async def test_apply_patches_given_correct_patch_when_checked_then_it_is_accepted(
  card_with_html,
  card_fixed,
  client_factory,
  fake_sleep
) -> None:
  # Given
  client = client_factory(default=card_fixed)
  engine = _engine(client, fake_sleep)
  report = QualityValidator().validate(card_with_html, 'components/Card.jsx')

  # When
  outcome = await engine.apply_patches(card_with_html, 'components/Card.jsx', report.blocking_issues)

  # Then
  assert outcome.code == card_fixed
  assert outcome.accepted == ['forbidden-tags', 'text-wrapping']
  assert outcome.report.score > report.score
  assert outcome.tokens == 20
  assert len(client.prompts) == 2
  assert 'DEFECT (forbidden-tags)' in client.prompts[0]


@pytest.mark.asyncio
async def test_apply_patches_given_legacy_storage_and_no_backend_when_patched_then_local_rewrite_is_used(fake_sleep) -> None:
  # Given
  engine = _engine(None, fake_sleep)
  report = QualityValidator().validate(STORAGE_COMPONENT, 'components/Prefs.jsx')

  # When
  outcome = await engine.apply_patches(STORAGE_COMPONENT, 'components/Prefs.jsx', report.blocking_issues, report.advisories)

  # Then
  assert 'legacy-storage' in outcome.accepted
  assert "AsyncStorage.getItem('theme')" in outcome.code
  assert "import AsyncStorage from '@react-native-async-storage/async-storage';" in outcome.code
  rejected = {rejection.category: rejection.reason for rejection in outcome.rejected}
  assert rejected['accessibility'] == 'no generation backend configured'


@pytest.mark.asyncio
async def test_improve_given_backend_returning_junk_when_improved_then_score_never_drops_and_attempts_are_bounded(
  card_with_html,
  client_factory,
  fake_sleep,
  sleeps
) -> None:
  # Given
  client = client_factory(default='<div>broken</div>')
  engine = _engine(client, fake_sleep, attempts=10)
  artifact = SourceArtifact.from_text('', 'components/Card.jsx')

  # When
  result = await engine.improve(card_with_html, artifact)

  # Then
  assert len(result.attempts) == MAX_TOP_LEVEL_ATTEMPTS
  assert [attempt.index for attempt in result.attempts] == [1, 2, 3, 4, 5]
  assert all(attempt.regenerated for attempt in result.attempts[1:])
  assert result.report.score >= result.initial_score
  assert result.code == card_with_html
  assert result.tokens == 10 * len(client.prompts)
  assert len(sleeps) == len(client.prompts) - 1


@pytest.mark.asyncio
async def test_improve_given_good_enough_code_when_improved_then_nothing_is_attempted(client_factory, fake_sleep) -> None:
  # Given
  code = '''import React from 'react';
import { View, Text, StyleSheet } from 'react-native';

export default function Badge() {
  return (
    <View style={styles.badge} accessibilityLabel="badge">
      <Text>New</Text>
    </View>
  );
}

const styles = StyleSheet.create({ badge: { padding: 4 } });
'''
  client = client_factory(default=code)
  engine = _engine(client, fake_sleep)

  # When
  result = await engine.improve(code, SourceArtifact.from_text('', 'components/Badge.jsx'))

  # Then
  assert good_enough(result.report)
  assert result.attempts == []
  assert client.prompts == []


@pytest.mark.asyncio
async def test_improve_given_single_attempt_policy_when_improved_then_no_regeneration_happens(card_with_html, client_factory, fake_sleep) -> None:
  # Given
  client = client_factory(default='<div>broken</div>')
  engine = _engine(client, fake_sleep, attempts=1)

  # When
  result = await engine.improve(card_with_html, SourceArtifact.from_text('', 'components/Card.jsx'))

  # Then
  assert len(result.attempts) == 1
  assert not result.attempts[0].regenerated
  assert not any(label.startswith('improve:') for label in client.labels)


@pytest.mark.asyncio
async def test_apply_patches_given_shared_engine_when_two_artifacts_are_patched_then_each_paces_its_own_calls(
  card_with_html,
  card_fixed,
  client_factory,
  fake_sleep,
  sleeps
) -> None:
  # Given
  client = client_factory(default=card_fixed)
  engine = _engine(client, fake_sleep)
  first = QualityValidator().validate(card_with_html, 'components/Card.jsx')
  second = QualityValidator().validate(card_with_html, 'components/Tile.jsx')

  # When
  await engine.apply_patches(card_with_html, 'components/Card.jsx', first.blocking_issues)
  await engine.apply_patches(card_with_html, 'components/Tile.jsx', second.blocking_issues)

  # Then
  assert len(client.prompts) == 4
  assert len(sleeps) == 2


@pytest.mark.asyncio
async def test_apply_patches_given_pacing_with_earlier_call_when_patched_then_first_call_waits(
  card_with_html,
  card_fixed,
  client_factory,
  fake_sleep,
  sleeps
) -> None:
  # Given
  engine = _engine(client_factory(default=card_fixed), fake_sleep)
  report = QualityValidator().validate(card_with_html, 'components/Card.jsx')
  pacing = CallPacing(calls=1)

  # When
  await engine.apply_patches(card_with_html, 'components/Card.jsx', report.blocking_issues, pacing=pacing)

  # Then
  assert pacing.calls == 3
  assert len(sleeps) == 2
