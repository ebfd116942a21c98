"""Catalogue of complete reference screens matched by filename and content."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple

from nextnative.conversion.imports import synthesize_import_block
from nextnative.conversion.models import DependencySet, SourceArtifact, component_name, is_typed_filename
from nextnative.conversion.rules import dependencies_for_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Template:
  name: str
  filename_pattern: Pattern[str]
  content_pattern: Pattern[str]
  props: Tuple[Tuple[str, str], ...]
  body: str
  styles: str

  def matches(self, artifact: SourceArtifact) -> bool:
    path = artifact.filename.replace('\\', '/').lower()
    return bool(self.filename_pattern.search(path) or self.content_pattern.search(artifact.text))


@dataclass
class TemplateMatch:
  template: str
  code: str
  component: str
  dependencies: DependencySet = field(default_factory=dict)


LOGIN_BODY = '''export default function __NAME__(__PROPS__) {
  const navigation = useNavigation();
  const [email, setEmail] = useState('');
  const [password, setPassword] = useState('');
  const [loading, setLoading] = useState(false);

  const handleLogin = async () => {
    if (!email || !password) {
      Alert.alert('Missing details', 'Enter your email and password.');
      return;
    }
    setLoading(true);
    try {
      await AsyncStorage.setItem('lastEmail', email);
      if (onSuccess) {
        onSuccess();
      } else {
        navigation.navigate('Home');
      }
    } finally {
      setLoading(false);
    }
  };

  return (
    <SafeAreaView style={styles.container}>
      <KeyboardAvoidingView behavior={Platform.OS === 'ios' ? 'padding' : undefined} style={styles.content}>
        <Text style={styles.title} accessibilityRole="header">Sign in</Text>
        <TextInput
          style={styles.input}
          value={email}
          onChangeText={setEmail}
          placeholder="Email"
          keyboardType="email-address"
          autoCapitalize="none"
          accessibilityLabel="Email"
        />
        <TextInput
          style={styles.input}
          value={password}
          onChangeText={setPassword}
          placeholder="Password"
          secureTextEntry
          accessibilityLabel="Password"
        />
        <TouchableOpacity
          style={styles.button}
          onPress={handleLogin}
          disabled={loading}
          activeOpacity={0.7}
          accessibilityRole="button"
        >
          {loading ? <ActivityIndicator color="#ffffff" /> : <Text style={styles.buttonText}>Sign in</Text>}
        </TouchableOpacity>
      </KeyboardAvoidingView>
    </SafeAreaView>
  );
}'''

LOGIN_STYLES = '''const styles = StyleSheet.create({
  container: { flex: 1, backgroundColor: '#ffffff' },
  content: { flex: 1, justifyContent: 'center', padding: 24 },
  title: { fontSize: 28, fontWeight: 'bold', marginBottom: 24, textAlign: 'center' },
  input: { borderWidth: 1, borderColor: '#d1d5db', borderRadius: 8, padding: 12, fontSize: 16, marginBottom: 12 },
  button: { backgroundColor: '#2563eb', paddingVertical: 14, borderRadius: 8, alignItems: 'center', marginTop: 8 },
  buttonText: { color: '#ffffff', fontSize: 16, fontWeight: '600' },
});'''

PROFILE_BODY = '''export default function __NAME__(__PROPS__) {
  const navigation = useNavigation();
  const [profile, setProfile] = useState(null);

  useEffect(() => {
    AsyncStorage.getItem(userId ? `profile:${userId}` : 'profile').then((stored) => {
      if (stored) {
        setProfile(JSON.parse(stored));
      }
    });
  }, [userId]);

  return (
    <SafeAreaView style={styles.container}>
      <ScrollView contentContainerStyle={styles.content}>
        <View style={styles.header}>
          <View style={styles.avatar}>
            <Text style={styles.avatarText}>{profile?.name ? profile.name.charAt(0) : '?'}</Text>
          </View>
          <Text style={styles.title} accessibilityRole="header">{profile?.name ?? 'Your profile'}</Text>
          <Text style={styles.subtitle}>{profile?.email ?? 'No email on file'}</Text>
        </View>
        <TouchableOpacity
          style={styles.button}
          onPress={() => navigation.navigate('EditProfile')}
          activeOpacity={0.7}
          accessibilityRole="button"
        >
          <Text style={styles.buttonText}>Edit profile</Text>
        </TouchableOpacity>
      </ScrollView>
    </SafeAreaView>
  );
}'''

PROFILE_STYLES = '''const styles = StyleSheet.create({
  container: { flex: 1, backgroundColor: '#ffffff' },
  content: { padding: 24 },
  header: { alignItems: 'center', marginBottom: 24 },
  avatar: { width: 96, height: 96, borderRadius: 48, backgroundColor: '#e5e7eb', alignItems: 'center', justifyContent: 'center', marginBottom: 12 },
  avatarText: { fontSize: 36, fontWeight: 'bold', color: '#374151' },
  title: { fontSize: 24, fontWeight: 'bold' },
  subtitle: { fontSize: 16, color: '#6b7280', marginTop: 4 },
  button: { backgroundColor: '#2563eb', paddingVertical: 14, borderRadius: 8, alignItems: 'center' },
  buttonText: { color: '#ffffff', fontSize: 16, fontWeight: '600' },
});'''

SETTINGS_BODY = '''export default function __NAME__(__PROPS__) {
  const [preferences, setPreferences] = useState({ notifications: true, darkMode: false });

  useEffect(() => {
    AsyncStorage.getItem('settings').then((stored) => {
      if (stored) {
        setPreferences(JSON.parse(stored));
      }
    });
  }, []);

  const toggle = (key) => (value) => {
    const next = { ...preferences, [key]: value };
    setPreferences(next);
    AsyncStorage.setItem('settings', JSON.stringify(next));
  };

  return (
    <SafeAreaView style={styles.container}>
      <ScrollView contentContainerStyle={styles.content}>
        <Text style={styles.title} accessibilityRole="header">{title}</Text>
        <View style={styles.row}>
          <Text style={styles.label}>Notifications</Text>
          <Switch
            value={preferences.notifications}
            onValueChange={toggle('notifications')}
            accessibilityLabel="Notifications"
          />
        </View>
        <View style={styles.row}>
          <Text style={styles.label}>Dark mode</Text>
          <Switch
            value={preferences.darkMode}
            onValueChange={toggle('darkMode')}
            accessibilityLabel="Dark mode"
          />
        </View>
        <TouchableOpacity
          style={styles.button}
          onPress={() => AsyncStorage.removeItem('settings')}
          activeOpacity={0.7}
          accessibilityRole="button"
        >
          <Text style={styles.buttonText}>Reset</Text>
        </TouchableOpacity>
      </ScrollView>
    </SafeAreaView>
  );
}'''

SETTINGS_STYLES = '''const styles = StyleSheet.create({
  container: { flex: 1, backgroundColor: '#ffffff' },
  content: { padding: 16 },
  title: { fontSize: 24, fontWeight: 'bold', marginBottom: 16 },
  row: { flexDirection: 'row', alignItems: 'center', justifyContent: 'space-between', paddingVertical: 12, borderBottomWidth: 1, borderBottomColor: '#e5e7eb' },
  label: { fontSize: 16 },
  button: { marginTop: 24, paddingVertical: 12, borderRadius: 8, alignItems: 'center', borderWidth: 1, borderColor: '#dc2626' },
  buttonText: { color: '#dc2626', fontSize: 16, fontWeight: '600' },
});'''

LIST_BODY = '''export default function __NAME__(__PROPS__) {
  const navigation = useNavigation();
  const [refreshing, setRefreshing] = useState(false);

  const onRefresh = useCallback(() => {
    setRefreshing(true);
    setTimeout(() => setRefreshing(false), 500);
  }, []);

  return (
    <SafeAreaView style={styles.container}>
      <FlatList
        data={items}
        keyExtractor={(item, index) => String(item.id ?? index)}
        renderItem={({ item }) => (
          <TouchableOpacity
            style={styles.row}
            onPress={() => navigation.navigate('Details', { id: item.id })}
            activeOpacity={0.7}
            accessibilityRole="button"
          >
            <Text style={styles.rowTitle}>{item.title ?? String(item)}</Text>
          </TouchableOpacity>
        )}
        ListEmptyComponent={<Text style={styles.empty}>Nothing here yet</Text>}
        refreshControl={<RefreshControl refreshing={refreshing} onRefresh={onRefresh} />}
        contentContainerStyle={styles.content}
      />
    </SafeAreaView>
  );
}'''

LIST_STYLES = '''const styles = StyleSheet.create({
  container: { flex: 1, backgroundColor: '#ffffff' },
  content: { padding: 16 },
  row: { paddingVertical: 14, borderBottomWidth: 1, borderBottomColor: '#e5e7eb' },
  rowTitle: { fontSize: 16 },
  empty: { textAlign: 'center', color: '#6b7280', marginTop: 32 },
});'''


TEMPLATES: Tuple[Template, ...] = (
  Template(
    'login',
    re.compile(r'(?:^|/)(?:login|signin|sign-in|sign_in|auth)(?:/|\.|$)'),
    re.compile(r'''type=["']password["']'''),
    (('onSuccess', '() => void'),),
    LOGIN_BODY,
    LOGIN_STYLES
  ),
  Template(
    'profile',
    re.compile(r'(?:^|/)(?:profile|account|me)(?:/|\.|$)'),
    re.compile(r'\b(?:user|profile)\.(?:avatar|avatarUrl|bio)\b'),
    (('userId', 'string'),),
    PROFILE_BODY,
    PROFILE_STYLES
  ),
  Template(
    'settings',
    re.compile(r'(?:^|/)(?:settings|preferences)(?:/|\.|$)'),
    re.compile(r'''type=["']checkbox["'][\s\S]*\b(?:notifications|preferences)\b|\b(?:notifications|preferences)\b[\s\S]*type=["']checkbox["']''', re.I),
    (('title', 'string'),),
    SETTINGS_BODY,
    SETTINGS_STYLES
  ),
  Template(
    'list',
    re.compile(r'(?:^|/)(?:list|items|feed)(?:/|\.|$)'),
    re.compile(r'<ul\b[\s\S]*?\.map\('),
    (('items', 'Array<{ id?: string | number; title?: string }>'),),
    LIST_BODY,
    LIST_STYLES
  )
)

PROP_DEFAULTS = {
  'title': "'Settings'",
  'items': '[]'
}


class TemplateLibrary:
  """Zero-cost reference artifacts; a miss returns ``None``."""

  def __init__(self, templates: Tuple[Template, ...] = TEMPLATES) -> None:
    self.templates = templates

  def names(self) -> List[str]:
    return [template.name for template in self.templates]

  def match(self, artifact: SourceArtifact) -> Optional[TemplateMatch]:
    for template in self.templates:
      if template.matches(artifact):
        logger.debug('Template %s matched %s', template.name, artifact.filename)
        return self.render(template, artifact)
    return None

  def get(self, name: str) -> Optional[Template]:
    for template in self.templates:
      if template.name == name:
        return template
    return None

  def render(self, template: Template, artifact: SourceArtifact) -> TemplateMatch:
    name = component_name(artifact.filename)
    typed = is_typed_filename(artifact.filename)
    body = template.body.replace('__NAME__', name).replace('__PROPS__', self._signature(template, name, typed))
    declarations = self._declarations(template, name) if typed else ''
    source = f'{declarations}{body}\n\n{template.styles}\n'
    imports, _ = synthesize_import_block(source)
    code = f'{imports}\n\n{source}'
    return TemplateMatch(template=template.name, code=code, component=name, dependencies=dependencies_for_code(code))

  @staticmethod
  def _signature(template: Template, name: str, typed: bool) -> str:
    parts = []
    for prop, _ in template.props:
      default = PROP_DEFAULTS.get(prop)
      parts.append(f'{prop} = {default}' if default else prop)
    destructured = '{ ' + ', '.join(parts) + ' }'
    return f'{destructured}: {name}Props' if typed else destructured

  @staticmethod
  def _declarations(template: Template, name: str) -> str:
    lines = [f'  {prop}?: {annotation};' for prop, annotation in template.props]
    return f'interface {name}Props {{\n' + '\n'.join(lines) + '\n}\n\n'