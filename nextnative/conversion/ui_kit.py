"""shadcn/ui component catalogue: detection, native targets and rewrite rules."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from nextnative.conversion.rules import (
  ChildTextRule,
  ElementRule,
  TransformRule,
  TransformUsage,
  add_attr,
  attr_expression,
  get_attr,
  has_attr,
  has_style,
  remove_attr,
  rename_attr,
  strip_event_target,
  text_input_props,
  textarea_props,
  image_props,
  touchable_props
)


UI_KIT_IMPORT_RE = re.compile(
  r'''import\s*\{([^}]*)\}\s*from\s*['"](?:@/|(?:\.\.?/)+(?:\w+/)*)components/ui/([\w-]+)['"]'''
)

# Kit tags whose presence means the artifact was not converted.
UNCONVERTED_TAG_RE = re.compile(r'(?<![\w$.])<(Button|Input|Card|Dialog|Select|Checkbox)(?=[\s/>])')


@dataclass(frozen=True)
class KitComponent:
  name: str
  target: str
  suggestion: str
  library: Optional[str] = None
  version: Optional[str] = None


KIT_COMPONENTS: Dict[str, KitComponent] = {
  component.name: component for component in (
    KitComponent('Button', 'TouchableOpacity', 'Replace Button with TouchableOpacity wrapping a Text label'),
    KitComponent('Input', 'TextInput', 'Replace Input with TextInput and onChangeText'),
    KitComponent('Textarea', 'TextInput', 'Replace Textarea with a multiline TextInput'),
    KitComponent('Label', 'Text', 'Replace Label with Text'),
    KitComponent('Card', 'View', 'Replace Card with a View using card styles'),
    KitComponent('CardHeader', 'View', 'Replace CardHeader with a View'),
    KitComponent('CardTitle', 'Text', 'Replace CardTitle with Text using title styles'),
    KitComponent('CardDescription', 'Text', 'Replace CardDescription with Text'),
    KitComponent('CardContent', 'View', 'Replace CardContent with a View'),
    KitComponent('CardFooter', 'View', 'Replace CardFooter with a View'),
    KitComponent('Badge', 'Text', 'Replace Badge with a styled Text'),
    KitComponent('Separator', 'View', 'Replace Separator with a one-pixel View'),
    KitComponent('Switch', 'Switch', 'Use the react-native Switch with value/onValueChange'),
    KitComponent('Checkbox', 'Switch', 'Replace Checkbox with Switch or a Pressable checkbox'),
    KitComponent('Dialog', 'Modal', 'Replace Dialog with Modal using visible/onRequestClose'),
    KitComponent('DialogContent', 'View', 'Replace DialogContent with a View'),
    KitComponent('DialogHeader', 'View', 'Replace DialogHeader with a View'),
    KitComponent('DialogTitle', 'Text', 'Replace DialogTitle with Text'),
    KitComponent('DialogDescription', 'Text', 'Replace DialogDescription with Text'),
    KitComponent('DialogFooter', 'View', 'Replace DialogFooter with a View'),
    KitComponent('Avatar', 'View', 'Replace Avatar with a rounded View'),
    KitComponent('AvatarImage', 'Image', 'Replace AvatarImage with Image'),
    KitComponent('AvatarFallback', 'Text', 'Replace AvatarFallback with Text'),
    KitComponent('Skeleton', 'View', 'Replace Skeleton with a placeholder View'),
    KitComponent('Progress', 'View', 'Replace Progress with a View-based bar'),
    KitComponent('ScrollArea', 'ScrollView', 'Replace ScrollArea with ScrollView'),
    KitComponent('Sheet', 'Modal', 'Use a bottom sheet built on Modal', 'react-native-gesture-handler', '^2.14.0'),
    KitComponent('Select', 'Picker', 'Use @react-native-picker/picker', '@react-native-picker/picker', '^2.6.1'),
    KitComponent('Slider', 'Slider', 'Use @react-native-community/slider', '@react-native-community/slider', '^4.4.2'),
    KitComponent('Toast', 'Toast', 'Use react-native-toast-message', 'react-native-toast-message', '^2.1.6'),
    KitComponent('Tabs', 'View', 'Use a tab navigator or segmented control')
  )
}


def detect_kit_imports(code: str) -> List[str]:
  """Component names imported from the kit, in import order."""
  names: List[str] = []
  for match in UI_KIT_IMPORT_RE.finditer(code):
    for raw in match.group(1).split(','):
      name = raw.strip().split(' as ')[0].strip()
      if name and name not in names:
        names.append(name)
  return names


def has_unconverted_usage(code: str) -> bool:
  if UI_KIT_IMPORT_RE.search(code):
    return True
  if not UNCONVERTED_TAG_RE.search(code):
    return False
  return 'TouchableOpacity' not in code and 'TextInput' not in code


def kit_dependencies(names: List[str]) -> Dict[str, str]:
  dependencies: Dict[str, str] = {}
  for name in names:
    component = KIT_COMPONENTS.get(name)
    if component and component.library:
      dependencies[component.library] = component.version or 'latest'
  return dependencies


# ---------------------------------------------------------------------------
# prop rewrites


def _styled(style_name: str):
  def _rewrite(attrs: str, usage: TransformUsage) -> str:
    attrs = remove_attr(attrs, 'variant', 'size', 'asChild')
    if not has_style(attrs):
      attrs = add_attr(attrs, f'style={{{usage.style(style_name)}}}')
    return attrs
  return _rewrite


def _button_props(attrs: str, usage: TransformUsage) -> str:
  attrs = _styled('button')(attrs, usage)
  return touchable_props(attrs, usage)


def _button_with_label(attrs: str, text: str, usage: TransformUsage) -> str:
  attrs = _button_props(attrs, usage)
  return f'<TouchableOpacity{attrs}><Text style={{{usage.style("buttonText")}}}>{text}</Text></TouchableOpacity>'


def _input_props(attrs: str, usage: TransformUsage) -> str:
  return text_input_props(remove_attr(attrs, 'variant'), usage)


def _toggle_props(attrs: str, usage: TransformUsage) -> str:
  attrs = rename_attr(attrs, 'checked', 'value')
  handler = get_attr(attrs, 'onCheckedChange')
  if handler is not None:
    attrs = remove_attr(attrs, 'onCheckedChange')
    attrs = add_attr(attrs, 'onValueChange=' + strip_event_target(handler))
  return remove_attr(attrs, 'id', 'name')


def _dialog_props(attrs: str, usage: TransformUsage) -> str:
  attrs = rename_attr(attrs, 'open', 'visible')
  handler = get_attr(attrs, 'onOpenChange')
  if handler is not None:
    attrs = remove_attr(attrs, 'onOpenChange')
    attrs = add_attr(attrs, f'onRequestClose={{() => ({attr_expression(handler)})(false)}}')
  if not has_attr(attrs, 'animationType'):
    attrs = add_attr(attrs, 'animationType="slide"')
  if not has_attr(attrs, 'transparent'):
    attrs = add_attr(attrs, 'transparent')
  return attrs


def _plain(attrs: str, usage: TransformUsage) -> str:
  return remove_attr(attrs, 'variant', 'size', 'asChild', 'orientation', 'decorative')


def _kit_rule(source: str, target: str, prop_rewrite, library: Optional[str] = None) -> ElementRule:
  return ElementRule(source, target, prop_rewrite, library=library, priority=1)


UI_KIT_RULES: Tuple[TransformRule, ...] = (
  ChildTextRule('Button', _button_with_label, constructs=('TouchableOpacity', 'Text'), priority=3),
  _kit_rule('Button', 'TouchableOpacity', _button_props),
  _kit_rule('Input', 'TextInput', _input_props),
  _kit_rule('Textarea', 'TextInput', textarea_props),
  _kit_rule('Label', 'Text', _styled('label')),
  _kit_rule('Card', 'View', _styled('card')),
  _kit_rule('CardHeader', 'View', _styled('cardHeader')),
  _kit_rule('CardTitle', 'Text', _styled('cardTitle')),
  _kit_rule('CardDescription', 'Text', _styled('cardDescription')),
  _kit_rule('CardContent', 'View', _styled('cardContent')),
  _kit_rule('CardFooter', 'View', _styled('cardFooter')),
  _kit_rule('Badge', 'Text', _styled('badge')),
  _kit_rule('Separator', 'View', _styled('separator')),
  _kit_rule('Switch', 'Switch', _toggle_props),
  _kit_rule('Checkbox', 'Switch', _toggle_props),
  _kit_rule('Dialog', 'Modal', _dialog_props),
  _kit_rule('DialogTrigger', 'View', _plain),
  _kit_rule('DialogContent', 'View', _styled('dialogContent')),
  _kit_rule('DialogHeader', 'View', _plain),
  _kit_rule('DialogTitle', 'Text', _styled('title')),
  _kit_rule('DialogDescription', 'Text', _styled('text')),
  _kit_rule('DialogFooter', 'View', _plain),
  _kit_rule('Avatar', 'View', _styled('avatar')),
  _kit_rule('AvatarImage', 'Image', image_props),
  _kit_rule('AvatarFallback', 'Text', _plain),
  _kit_rule('Skeleton', 'View', _styled('skeleton')),
  _kit_rule('Progress', 'View', _styled('progress')),
  _kit_rule('ScrollArea', 'ScrollView', _plain)
)

CONVERTIBLE_KIT_NAMES = frozenset(rule.source for rule in UI_KIT_RULES if isinstance(rule, (ElementRule, ChildTextRule)))
