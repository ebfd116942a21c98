from __future__ import annotations

import re
from typing import Dict

from nextnative.conversion.imports import synthesize_import_block
from nextnative.conversion.models import Role, SourceArtifact, is_typed_filename

SCREEN_STUB = '''export default function __NAME__(__PROPS__) {
  return (
    <SafeAreaView style={styles.container}>
      <ScrollView contentContainerStyle={styles.content}>
        <Text style={styles.title} accessibilityRole="header">{title}</Text>
        <Text style={styles.text}>This screen is being converted.</Text>
        <TouchableOpacity
          style={styles.button}
          onPress={onContinue}
          activeOpacity={0.7}
          accessibilityRole="button"
        >
          <Text style={styles.buttonText}>Continue</Text>
        </TouchableOpacity>
      </ScrollView>
    </SafeAreaView>
  );
}'''

LAYOUT_STUB = '''export default function __NAME__(__PROPS__) {
  return (
    <SafeAreaProvider>
      <NavigationContainer>
        <View style={styles.container} accessibilityLabel={title}>
          {children}
        </View>
      </NavigationContainer>
    </SafeAreaProvider>
  );
}'''

COMPONENT_STUB = '''export default function __NAME__(__PROPS__) {
  return (
    <View style={styles.container} accessibilityLabel={title}>
      <Text style={styles.text}>{title}</Text>
    </View>
  );
}'''

STUB_STYLES = '''const styles = StyleSheet.create({
  container: { flex: 1, backgroundColor: '#ffffff' },
  content: { padding: 16 },
  title: { fontSize: 24, fontWeight: 'bold', marginBottom: 12 },
  text: { fontSize: 16, color: '#111827' },
  button: { backgroundColor: '#2563eb', paddingVertical: 12, borderRadius: 8, alignItems: 'center', marginTop: 16 },
  buttonText: { color: '#ffffff', fontSize: 16, fontWeight: '600' },
});'''

STUB_BODIES: Dict[Role, str] = {
  Role.SCREEN: SCREEN_STUB,
  Role.LAYOUT: LAYOUT_STUB,
  Role.COMPONENT: COMPONENT_STUB
}

STUB_PROPS: Dict[Role, Dict[str, str]] = {
  Role.SCREEN: {'title': 'string', 'onContinue': '() => void'},
  Role.LAYOUT: {'title': 'string', 'children': 'React.ReactNode'},
  Role.COMPONENT: {'title': 'string'}
}


def display_title(name: str) -> str:
  return re.sub(r'(?<=[a-z0-9])(?=[A-Z])', ' ', name)


def build_stub(artifact: SourceArtifact) -> str:
  """Deterministic placeholder for ``artifact``'s role; always passes the self-check."""
  name = artifact.name
  props = STUB_PROPS[artifact.role]
  parts = [f"title = '{display_title(name)}'" if prop == 'title' else prop for prop in props]
  signature = '{ ' + ', '.join(parts) + ' }'
  declarations = ''
  if is_typed_filename(artifact.filename):
    signature += f': {name}Props'
    fields = '\n'.join(f'  {prop}?: {annotation};' for prop, annotation in props.items())
    declarations = f'interface {name}Props {{\n{fields}\n}}\n\n'
  body = STUB_BODIES[artifact.role].replace('__NAME__', name).replace('__PROPS__', signature)
  source = f'{declarations}{body}\n\n{STUB_STYLES}\n'
  imports, _ = synthesize_import_block(source)
  return f'{imports}\n\n{source}'
