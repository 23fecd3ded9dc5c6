"""
ABOUTME: Toggle-based conditional content filtering
ABOUTME: Isolates {{toggle:name}} markers into their own text nodes, then filters with a stack
"""

from typing import Dict, List, Optional

from adf_model import DOC, Node, TraversalGuard, text_node, with_content

from .common import (
    TOGGLE_CLOSE_PATTERN,
    TOGGLE_MARKER_SPLIT_PATTERN,
    TOGGLE_OPEN_PATTERN,
)


def split_text_by_toggle_markers(node: Node) -> List[Node]:
    """
    Split a text node so each toggle marker occupies its own node.

    Example:
        'before {{toggle:foo}}inside' ->
        ['before ', '{{toggle:foo}}', 'inside']

    Marks are copied onto every fragment. A node without markers is
    returned as-is in a one-element list.
    """
    if not node.is_text or not node.text:
        return [node]
    if TOGGLE_MARKER_SPLIT_PATTERN.search(node.text) is None:
        return [node]
    parts = [part for part in TOGGLE_MARKER_SPLIT_PATTERN.split(node.text) if part != '']
    return [text_node(part, node.marks) for part in parts]


def _filter(node: Node, toggle_states: Dict[str, bool], depth: int,
            guard: TraversalGuard) -> Optional[Node]:
    if node.content is None:
        return node
    if not guard.enter(node, depth):
        return None
    try:
        # Phase 1: isolate markers, recurse into containers first
        expanded: List[Node] = []
        for child in node.content:
            if child.is_text:
                expanded.extend(split_text_by_toggle_markers(child))
            elif child.content is not None:
                processed = _filter(child, toggle_states, depth + 1, guard)
                if processed is not None:
                    expanded.append(processed)
            else:
                expanded.append(child)

        # Phase 2: walk with a stack of (name, enabled)
        filtered: List[Node] = []
        stack = []
        for child in expanded:
            if child.is_text and child.text:
                open_match = TOGGLE_OPEN_PATTERN.match(child.text)
                if open_match:
                    name = open_match.group(1).strip()
                    stack.append((name, toggle_states.get(name) is True))
                    continue
                if TOGGLE_CLOSE_PATTERN.match(child.text):
                    if stack:
                        stack.pop()
                    continue

            if all(enabled for _, enabled in stack):
                filtered.append(child)
    finally:
        guard.leave(node)

    if not filtered and node.kind != DOC:
        return None
    return with_content(node, filtered)


def filter_by_toggles(node: Node, toggle_states: Optional[Dict[str, bool]]) -> Optional[Node]:
    """
    Remove content enclosed by disabled toggles.

    Content nested inside any disabled toggle is dropped even if an inner
    toggle is enabled. Unmatched close markers are ignored. A non-root
    container left empty returns None; the doc root is always kept.
    """
    return _filter(node, toggle_states or {}, 0, TraversalGuard())
