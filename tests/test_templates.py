from __future__ import annotations

import pytest

from nextnative.conversion.models import Role, SourceArtifact
from nextnative.conversion.rules import NAVIGATION
from nextnative.conversion.stubs import build_stub
from nextnative.conversion.templates import TemplateLibrary
from nextnative.conversion.transform import self_check

LOGIN_FORM = '''export default function Login() {
  return (
    <form>
      <input type="email" />
      <input type="password" />
    </form>
  );
}
'''


def test_match_given_password_form_when_matched_then_login_template_renders_native_screen() -> None:
  # Given
  artifact = SourceArtifact.from_text(LOGIN_FORM, 'components/Gate.jsx')

  # When
  match = TemplateLibrary().match(artifact)

  # Then
  assert match is not None
  assert match.template == 'login'
  assert match.component == 'Gate'
  assert self_check(match.code) == []
  assert NAVIGATION in match.dependencies


def test_match_given_typed_route_file_when_rendered_then_props_interface_is_declared() -> None:
  # Given
  artifact = SourceArtifact.from_text('', 'app/settings/page.tsx')

  # When
  match = TemplateLibrary().match(artifact)

  # Then
  assert match.template == 'settings'
  assert 'interface HomeScreenProps {\n  title?: string;\n}' in match.code
  assert "HomeScreen({ title = 'Settings' }: HomeScreenProps)" in match.code
  assert self_check(match.code) == []


def test_match_given_unrelated_component_when_matched_then_none_is_returned() -> None:
  # When
  match = TemplateLibrary().match(SourceArtifact.from_text('export const Badge = () => <span>New</span>;', 'components/Badge.tsx'))

  # Then
  assert match is None


def test_get_given_catalogue_when_listed_then_every_template_is_reachable_by_name() -> None:
  # Given
  library = TemplateLibrary()

  # When / Then
  assert library.names() == ['login', 'profile', 'settings', 'list']
  assert all(library.get(name).name == name for name in library.names())
  assert library.get('checkout') is None


@pytest.mark.parametrize('filename, role', [
  ('app/page.tsx', Role.SCREEN),
  ('app/layout.tsx', Role.LAYOUT),
  ('components/Card.jsx', Role.COMPONENT)
])
def test_build_stub_given_each_role_when_built_then_stub_passes_self_check(filename, role) -> None:
  # Given
  artifact = SourceArtifact.from_text('', filename)

  # When
  stub = build_stub(artifact)

  # Then
  assert artifact.role is role
  assert self_check(stub) == []
  assert stub == build_stub(artifact)


def test_build_stub_given_typed_screen_when_built_then_props_are_typed() -> None:
  # When
  stub = build_stub(SourceArtifact.from_text('', 'app/page.tsx'))

  # Then
  assert 'interface HomeScreenProps {' in stub
  assert "export default function HomeScreen({ title = 'Home Screen', onContinue }: HomeScreenProps)" in stub
