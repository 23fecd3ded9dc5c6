"""
ABOUTME: Ghost-toggle rendering for diff and preview views
ABOUTME: Keeps disabled toggle sections but tags them so callers can grey them out
"""

from typing import Dict, List, Optional

from adf_model import (
    EXPAND,
    HEADING,
    PARAGRAPH,
    Node,
    TraversalGuard,
    VariableDefinition,
    with_attrs,
    with_content,
)

from .common import GHOST_DISABLED_ATTR, GHOST_TOGGLE_NAME_ATTR, TOGGLE_NAME_PATTERN
from .variables import substitute

ENABLED_ICON = '✓'
DISABLED_ICON = '\U0001F532'


def toggle_name_of(node: Node) -> Optional[str]:
    """Return the toggle name carried in an expand node's title, if any"""
    if node.kind != EXPAND or not node.attrs:
        return None
    title = node.attrs.get('title')
    if not isinstance(title, str):
        return None
    match = TOGGLE_NAME_PATTERN.search(title)
    return match.group(1).strip() if match else None


def _mark_toggle_blocks(node: Node, toggle_states: Dict[str, bool], depth: int,
                        guard: TraversalGuard) -> Optional[Node]:
    if not guard.enter(node, depth):
        return None
    try:
        current = node
        name = toggle_name_of(node)
        if name is not None:
            attrs = dict(node.attrs or {})
            attrs[GHOST_DISABLED_ATTR] = toggle_states.get(name) is not True
            attrs[GHOST_TOGGLE_NAME_ATTR] = name
            current = with_attrs(node, attrs)

        if current.content is None:
            return current
        content = []
        for child in current.content:
            marked = _mark_toggle_blocks(child, toggle_states, depth + 1, guard)
            if marked is not None:
                content.append(marked)
        return with_content(current, content)
    finally:
        guard.leave(node)


def render_with_ghosts(node: Node, values: Optional[Dict[str, str]],
                       toggle_states: Optional[Dict[str, bool]],
                       definitions: Optional[List[VariableDefinition]] = None) -> Node:
    """
    Render content with every toggle section kept visible.

    Applies variable substitution, then tags each expand node whose title
    carries {{toggle:NAME}} with `disabled` (bool) and `toggle_name`.
    Unlike filter_by_toggles, nothing is removed.
    """
    rendered = substitute(node, values, definitions)
    marked = _mark_toggle_blocks(rendered, toggle_states or {}, 0, TraversalGuard())
    return marked if marked is not None else rendered


def extract_text_with_toggle_markers(node: Node, toggle_states: Optional[Dict[str, bool]]) -> str:
    """
    Convert content to plain text with visible toggle banners for text diffs.

    Output example:
        Regular paragraph text here.

        ✓ [ENABLED TOGGLE: premium]
        Content inside enabled toggle.
        ✓ [END ENABLED TOGGLE]
    """
    states = toggle_states or {}
    guard = TraversalGuard()
    parts: List[str] = []

    def inline_text(container: Node) -> str:
        pieces = []
        for child in container.content or []:
            if child.is_text:
                pieces.append(child.text or '')
            elif child.kind == 'hardBreak':
                pieces.append('\n')
        return ''.join(pieces)

    def walk_children(current: Node, depth: int):
        for child in current.content or []:
            walk(child, depth + 1)

    def walk(current: Node, depth: int):
        if not guard.enter(current, depth):
            return
        try:
            if current.kind == PARAGRAPH:
                text = inline_text(current)
                if text.strip():
                    parts.append(text + '\n')
                return

            if current.kind == HEADING:
                text = ''.join(c.text or '' for c in current.content or [])
                if text.strip():
                    level = (current.attrs or {}).get('level') or 1
                    parts.append('\n' + '#' * int(level) + ' ' + text + '\n\n')
                return

            if current.kind == EXPAND:
                name = toggle_name_of(current)
                if name is None:
                    name = (current.attrs or {}).get('title') or 'unknown'
                    disabled = states.get(name) is not True
                else:
                    disabled = bool((current.attrs or {}).get(GHOST_DISABLED_ATTR)) or states.get(name) is not True
                if disabled:
                    parts.append(f"\n{DISABLED_ICON} [DISABLED TOGGLE: {name}]\n")
                else:
                    parts.append(f"\n{ENABLED_ICON} [ENABLED TOGGLE: {name}]\n")
                walk_children(current, depth)
                if disabled:
                    parts.append(f"{DISABLED_ICON} [END DISABLED TOGGLE]\n\n")
                else:
                    parts.append(f"{ENABLED_ICON} [END ENABLED TOGGLE]\n\n")
                return

            if current.kind == 'panel':
                parts.append('\n[PANEL]\n')
                walk_children(current, depth)
                parts.append('[END PANEL]\n\n')
                return

            if current.kind in ('bulletList', 'orderedList'):
                parts.append('\n')
                for idx, item in enumerate(current.content or []):
                    parts.append('• ' if current.kind == 'bulletList' else f"{idx + 1}. ")
                    walk(item, depth + 1)
                parts.append('\n')
                return

            walk_children(current, depth)
        finally:
            guard.leave(current)

    walk(node, 0)
    return ''.join(parts).strip()
