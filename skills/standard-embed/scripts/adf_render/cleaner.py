"""
ABOUTME: Strips attributes the host renderer rejects and prunes empty subtrees
"""

from typing import Any, Dict, Optional

from adf_model import Node, TraversalGuard, TEXT, with_content

from .common import KEEP_EVEN_IF_EMPTY

PANEL_NULLABLE_ATTRS = ('panelIconId', 'panelIcon', 'panelIconText', 'panelColor')
CELL_NULLABLE_ATTRS = ('background', 'colwidth')
TABLE_UNSUPPORTED_ATTRS = ('width', '__autoSize', 'isNumberColumnEnabled', 'layout')


def _clean_attrs(kind: str, attrs: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = dict(attrs)
    cleaned.pop('localId', None)

    if kind == 'panel':
        for key in PANEL_NULLABLE_ATTRS:
            if key in cleaned and cleaned[key] is None:
                del cleaned[key]

    if kind in ('tableCell', 'tableHeader'):
        for key in CELL_NULLABLE_ATTRS:
            if key in cleaned and cleaned[key] is None:
                del cleaned[key]

    if kind == 'table':
        if 'displayMode' in cleaned and cleaned['displayMode'] is None:
            del cleaned['displayMode']
        for key in TABLE_UNSUPPORTED_ATTRS:
            cleaned.pop(key, None)

    return cleaned


def _clean(node: Node, depth: int, guard: TraversalGuard) -> Optional[Node]:
    if not guard.enter(node, depth):
        return None
    try:
        attrs = _clean_attrs(node.kind, node.attrs) if node.attrs is not None else None
        content = None
        if node.content is not None:
            content = []
            for child in node.content:
                cleaned = _clean(child, depth + 1, guard)
                if cleaned is not None:
                    content.append(cleaned)
        return Node(
            kind=node.kind,
            attrs=attrs,
            marks=node.copy_marks(),
            text=node.text,
            content=content,
        )
    finally:
        guard.leave(node)


def clean(node: Node) -> Node:
    """
    Remove attributes not supported by the rendering host.

    Handles:
    - localId removal on every node
    - Null panel icon/colour attributes
    - Null table cell background/colwidth
    - Unsupported table layout attributes

    Returns a new tree; the input is not modified.
    """
    cleaned = _clean(node, 0, TraversalGuard())
    return cleaned if cleaned is not None else with_content(node, [])


def _prune(node: Node, depth: int, guard: TraversalGuard) -> Optional[Node]:
    if node.kind == TEXT and (not node.text or node.text.strip() == ''):
        return None

    if node.content is None:
        return node

    if not guard.enter(node, depth):
        return None
    try:
        pruned = []
        for child in node.content:
            kept = _prune(child, depth + 1, guard)
            if kept is not None:
                pruned.append(kept)
    finally:
        guard.leave(node)

    if not pruned and node.kind not in KEEP_EVEN_IF_EMPTY:
        return None
    return with_content(node, pruned)


def prune_empty(node: Node) -> Optional[Node]:
    """
    Remove blank text nodes and containers left empty after filtering.

    Returns None when the node itself should disappear from its parent.
    """
    return _prune(node, 0, TraversalGuard())
