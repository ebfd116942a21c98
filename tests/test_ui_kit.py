from __future__ import annotations

import pytest

from nextnative.ai.retry import RetryPolicy
from nextnative.conversion.models import SourceArtifact
from nextnative.conversion.transform import PatternTransformEngine
from nextnative.conversion.ui_kit import detect_kit_imports, has_unconverted_usage
from nextnative.quality.repair import AutoRepairEngine
from nextnative.quality.validator import QualityValidator

SIGNUP_CARD = '''import { Button } from '@/components/ui/button';
import { Card, CardHeader, CardTitle, CardContent } from '@/components/ui/card';
import { Input } from '@/components/ui/input';

export default function SignupCard() {
  return (
    <Card>
      <CardHeader>
        <CardTitle>Join</CardTitle>
      </CardHeader>
      <CardContent>
        <Input placeholder="Email" />
        <Button onClick={() => submit()}>Sign up</Button>
      </CardContent>
    </Card>
  );
}
'''

KIT_LEFT_IN_PLACE = '''import React from 'react';
import { View, Text } from 'react-native';
import { Button } from '@/components/ui/button';

export default function Save() {
  return (
    <View accessibilityLabel="save">
      <Button onPress={save}><Text>Save</Text></Button>
    </View>
  );
}
'''

KIT_CONVERTED = '''import React from 'react';
import { View, Text, TouchableOpacity } from 'react-native';

export default function Save() {
  return (
    <View accessibilityLabel="save">
      <TouchableOpacity onPress={save}><Text>Save</Text></TouchableOpacity>
    </View>
  );
}
'''


def test_detect_kit_imports_given_kit_module_imports_when_detected_then_names_keep_import_order() -> None:
  assert detect_kit_imports(SIGNUP_CARD) == ['Button', 'Card', 'CardHeader', 'CardTitle', 'CardContent', 'Input']


def test_transform_given_kit_button_card_and_input_when_transformed_then_native_components_replace_them() -> None:
  # Given
  artifact = SourceArtifact.from_text(SIGNUP_CARD, 'components/SignupCard.tsx')

  # When
  output = PatternTransformEngine().transform(artifact)

  # Then
  assert output.passed, output.failures
  assert 'components/ui' not in output.code
  assert '<TouchableOpacity' in output.code
  assert '<TextInput' in output.code
  assert 'Sign up</Text>' in output.code
  assert 'onClick' not in output.code
  assert not has_unconverted_usage(output.code)
  report = QualityValidator().validate(output.code, artifact.filename)
  assert 'ui-kit-unconverted' not in [issue.category for issue in report.blocking_issues]


def test_validate_given_kit_import_left_in_place_when_scored_then_unconverted_usage_blocks() -> None:
  # When
  report = QualityValidator().validate(KIT_LEFT_IN_PLACE, 'components/Save.jsx')

  # Then
  assert 'ui-kit-unconverted' in [issue.category for issue in report.blocking_issues]
  assert any(issue.category == 'ui-kit' for issue in report.advisories)
  assert not report.is_production_ready


@pytest.mark.asyncio
async def test_apply_patches_given_patch_keeping_kit_import_when_checked_then_it_is_rejected(client_factory, fake_sleep) -> None:
  # Given
  candidate = KIT_LEFT_IN_PLACE.replace('<Button onPress={save}>', '<Button onPress={save} accessibilityRole="button">')
  engine = AutoRepairEngine(client=client_factory(default=candidate), policy=RetryPolicy.fixed(3, 0.0), sleep=fake_sleep)
  report = QualityValidator().validate(KIT_LEFT_IN_PLACE, 'components/Save.jsx')

  # When
  outcome = await engine.apply_patches(KIT_LEFT_IN_PLACE, 'components/Save.jsx', report.blocking_issues)

  # Then
  rejected = {rejection.category: rejection.reason for rejection in outcome.rejected}
  assert rejected['ui-kit-unconverted'] == 'components/ui imports remain'
  assert outcome.code == KIT_LEFT_IN_PLACE


@pytest.mark.asyncio
async def test_apply_patches_given_native_replacement_when_checked_then_kit_patch_is_accepted(client_factory, fake_sleep) -> None:
  # Given
  engine = AutoRepairEngine(client=client_factory(default=KIT_CONVERTED), policy=RetryPolicy.fixed(3, 0.0), sleep=fake_sleep)
  report = QualityValidator().validate(KIT_LEFT_IN_PLACE, 'components/Save.jsx')

  # When
  outcome = await engine.apply_patches(KIT_LEFT_IN_PLACE, 'components/Save.jsx', report.blocking_issues)

  # Then
  assert 'ui-kit-unconverted' in outcome.accepted
  assert outcome.code == KIT_CONVERTED
  assert outcome.report.blocking_issues == ()
