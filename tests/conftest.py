from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from nextnative.ai.clients import GenerationResponse
from nextnative.ai.errors import BackendError
from nextnative.conversion.installer import InstallResult

PROFILE_PAGE = '''export default function ProfilePage() {
  const theme: string | null = localStorage.getItem('theme');
  return (
    <div className="profile">
      <label>Display name</label>
      <button onClick={() => console.log(theme)}>Save</button>
    </div>
  );
}
'''

CARD_WITH_HTML = '''import React from 'react';
import { View } from 'react-native';

export default function Card() {
  return (
    <View>
      <div>Hello</div>
    </View>
  );
}
'''

CARD_FIXED = '''import React from 'react';
import { View, Text } from 'react-native';

export default function Card() {
  return (
    <View accessibilityLabel="card">
      <Text>Hello</Text>
    </View>
  );
}
'''

GARBAGE = '%%% this is not <<<div code at all ]]]'


class FakeClient:
  """Stands in for GeminiClient; replays queued answers, then repeats ``default``."""

  def __init__(self, responses: Sequence[object] = (), default: Optional[object] = None, tokens: int = 10) -> None:
    self.responses = list(responses)
    self.default = default
    self.tokens = tokens
    self.prompts: List[str] = []
    self.labels: List[str] = []

  async def generate_code(self, prompt: str, label: str = '') -> GenerationResponse:
    self.prompts.append(prompt)
    self.labels.append(label)
    item = self.responses.pop(0) if self.responses else self.default
    if item is None:
      raise BackendError('no scripted response left')
    if isinstance(item, Exception):
      raise item
    return GenerationResponse(text=str(item), tokens=self.tokens)


class FakeInstaller:
  def __init__(self, success: bool = True) -> None:
    self.success = success
    self.calls: List[List[str]] = []

  async def install(self, project_path: Path, packages: Sequence[str]) -> InstallResult:
    self.calls.append(list(packages))
    if self.success:
      return InstallResult(success=True, packages=list(packages), tool='npm')
    return InstallResult(success=False, packages=list(packages), error='npm: network unreachable')


class FakeClock:
  def __init__(self, start: float = 1000.0) -> None:
    self.now = start

  def __call__(self) -> float:
    return self.now


@pytest.fixture
def sleeps() -> List[float]:
  return []


@pytest.fixture
def fake_sleep(sleeps):
  async def _sleep(seconds: float) -> None:
    sleeps.append(seconds)
  return _sleep


@pytest.fixture
def fake_clock() -> FakeClock:
  return FakeClock()


@pytest.fixture
def next_project(tmp_path: Path) -> Path:
  root = tmp_path / 'web'
  files = {
    'package.json': '{"dependencies": {"next": "14.1.0", "react": "18.2.0", "zod": "^3.22.0"}}',
    'app/profile/page.tsx': PROFILE_PAGE,
    'lib/format.ts': 'export const upper = (value: string) => value.toUpperCase();\n',
    'components/Broken.tsx': GARBAGE,
    'components/Broken.test.tsx': 'test("x", () => {});\n',
    'node_modules/pkg/index.js': 'module.exports = {};\n',
    'next.config.js': 'module.exports = {};\n'
  }
  for name, content in files.items():
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
  return root


@pytest.fixture
def profile_page() -> str:
  return PROFILE_PAGE


@pytest.fixture
def card_with_html() -> str:
  return CARD_WITH_HTML


@pytest.fixture
def card_fixed() -> str:
  return CARD_FIXED


@pytest.fixture
def garbage() -> str:
  return GARBAGE


@pytest.fixture
def client_factory():
  return FakeClient


@pytest.fixture
def installer_factory():
  return FakeInstaller
