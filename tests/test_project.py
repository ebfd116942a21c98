from __future__ import annotations

import pytest

from nextnative.conversion.models import Role
from nextnative.conversion.project import (
  NAVIGATION_STACK,
  extract_imports,
  is_ui_source,
  load_project,
  map_native_dependencies,
  resolve_local_import,
  route_for
)
from nextnative.conversion.rules import NAVIGATION


def test_load_project_given_next_app_when_loaded_then_tooling_and_tests_are_skipped(next_project) -> None:
  # When
  context = load_project(next_project)

  # Then
  assert context.files == ['app/profile/page.tsx', 'components/Broken.tsx', 'lib/format.ts']
  assert context.roles['app/profile/page.tsx'] is Role.SCREEN
  assert context.roles['components/Broken.tsx'] is Role.COMPONENT
  assert context.routes == ['/profile']
  assert context.dependencies['next'] == '14.1.0'
  assert NAVIGATION in context.native_dependencies
  assert context.native_dependencies['zod'] == '^3.22.0'
  assert 'next' not in context.native_dependencies


@pytest.mark.parametrize('filename, expected', [
  ('app/page.tsx', '/'),
  ('app/profile/page.tsx', '/profile'),
  ('app/(shop)/items/[id]/page.tsx', '/items/:id'),
  ('src/app/blog/[...slug]/page.tsx', '/blog/:slug'),
  ('pages/index.tsx', '/'),
  ('pages/blog/[slug].tsx', '/blog/:slug'),
  ('pages/_app.tsx', None),
  ('pages/api/users.ts', None),
  ('app/profile/layout.tsx', None),
  ('components/Card.tsx', None)
])
def test_route_for_given_router_file_when_mapped_then_route_pattern_is_returned(filename, expected) -> None:
  assert route_for(filename) == expected


def test_resolve_local_import_given_alias_and_relative_specifiers_when_resolved_then_project_files_are_found() -> None:
  # Given
  files = ['components/Card.tsx', 'lib/format.ts', 'src/hooks/index.ts', 'app/profile/page.tsx']

  # When / Then
  assert resolve_local_import('app/profile/page.tsx', '@/components/Card', files) == 'components/Card.tsx'
  assert resolve_local_import('app/profile/page.tsx', '../../lib/format', files) == 'lib/format.ts'
  assert resolve_local_import('app/profile/page.tsx', '@/hooks', files) == 'src/hooks/index.ts'
  assert resolve_local_import('app/profile/page.tsx', 'react', files) is None
  assert resolve_local_import('app/profile/page.tsx', './missing', files) is None


def test_extract_imports_given_mixed_forms_when_extracted_then_all_specifiers_are_found() -> None:
  # Given
  text = "import Card from '@/components/Card';\nconst Chart = import('./Chart');\nconst fs = require('fs');\n"

  # When
  specifiers = extract_imports(text)

  # Then
  assert specifiers == ['@/components/Card', './Chart', 'fs']


def test_map_native_dependencies_given_web_manifest_when_mapped_then_web_only_packages_are_replaced() -> None:
  # Given
  manifest = {'next': '14.1.0', 'zod': '^3.22.0', 'tailwindcss': '^3.4.0', 'lucide-react': '^0.300.0'}

  # When
  native = map_native_dependencies(manifest)

  # Then
  assert set(NAVIGATION_STACK) <= set(native)
  assert native['zod'] == '^3.22.0'
  assert '@expo/vector-icons' in native
  assert 'tailwindcss' not in native and 'next' not in native


def test_is_ui_source_given_files_when_classified_then_only_jsx_bearing_files_convert() -> None:
  assert is_ui_source('components/Card.tsx', '')
  assert is_ui_source('components/Card.js', 'export default () => <div />;')
  assert not is_ui_source('lib/format.js', 'export const upper = (value) => value.toUpperCase();')
  assert not is_ui_source('lib/format.ts', 'export const x = 1;')
