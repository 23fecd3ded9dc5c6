#!/usr/bin/env python3
"""
ABOUTME: Typed document tree (ADF) shared by every rendering stage
ABOUTME: Decodes JSON payloads into Node/Mark objects and encodes them back
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

# ============================================================
# Constants
# ============================================================

# Recursion cap for all tree walks; deeper branches are truncated silently
MAX_DEPTH = 100

DOC = 'doc'
PARAGRAPH = 'paragraph'
HEADING = 'heading'
TEXT = 'text'
EXPAND = 'expand'

# ============================================================
# Data Classes
# ============================================================

@dataclass
class Mark:
    """Inline formatting on a text node (strong, code, subsup, textColor...)"""
    kind: str
    attrs: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'type': self.kind}
        if self.attrs is not None:
            data['attrs'] = dict(self.attrs)
        return data


@dataclass
class Node:
    """
    One element of the document tree.

    Text nodes carry `text` (and optionally `marks`); container nodes carry
    `content`. Inline objects such as hardBreak carry neither.
    """
    kind: str
    attrs: Optional[Dict[str, Any]] = None
    marks: Optional[List[Mark]] = None
    text: Optional[str] = None
    content: Optional[List['Node']] = None

    @property
    def is_text(self) -> bool:
        return self.kind == TEXT

    @property
    def is_container(self) -> bool:
        return self.content is not None

    def has_mark(self, kind: str) -> bool:
        return any(mark.kind == kind for mark in self.marks or [])

    def copy_marks(self) -> Optional[List[Mark]]:
        """Shallow copy of marks, or None when the node has none"""
        if not self.marks:
            return None
        return list(self.marks)


@dataclass
class Occurrence:
    """Per-name occurrence metadata used by smart case upgrading"""
    index: int
    is_at_sentence_start: bool = False


@dataclass
class VariableDefinition:
    name: str
    occurrences: List[Occurrence] = field(default_factory=list)
    description: str = ''
    required: bool = False


@dataclass
class CustomInsertion:
    """Custom paragraph placed after paragraph ordinal `position`"""
    position: int
    text: str


@dataclass
class InternalNote:
    """Footnote attached to original paragraph ordinal `position`"""
    position: int
    content: str


# ============================================================
# Traversal Safety
# ============================================================

class TraversalGuard:
    """
    Depth limit plus cycle detection for one tree walk.

    A guard instance is created per top-level call and passed down the
    recursion. Nodes are tracked by identity only while they are on the
    current path, so the same node may legitimately appear in two branches.
    """

    def __init__(self, max_depth: int = MAX_DEPTH):
        self.max_depth = max_depth
        self._active = set()

    def enter(self, node: Any, depth: int) -> bool:
        if depth > self.max_depth:
            return False
        key = id(node)
        if key in self._active:
            return False
        self._active.add(key)
        return True

    def leave(self, node: Any):
        self._active.discard(id(node))


# ============================================================
# Construction Helpers
# ============================================================

def text_node(text: str, marks: Optional[List[Mark]] = None) -> Node:
    return Node(kind=TEXT, text=text, marks=list(marks) if marks else None)


def paragraph(*children: Node) -> Node:
    return Node(kind=PARAGRAPH, content=list(children))


def doc(*children: Node) -> Node:
    return Node(kind=DOC, attrs=None, content=list(children))


def with_content(node: Node, content: List[Node]) -> Node:
    """Return a copy of a container node with new content"""
    return Node(
        kind=node.kind,
        attrs=dict(node.attrs) if node.attrs is not None else None,
        marks=node.copy_marks(),
        text=node.text,
        content=content,
    )


def with_attrs(node: Node, attrs: Optional[Dict[str, Any]]) -> Node:
    return Node(
        kind=node.kind,
        attrs=attrs,
        marks=node.copy_marks(),
        text=node.text,
        content=node.content,
    )


# ============================================================
# Decode / Encode
# ============================================================

def _decode_mark(payload: Any) -> Optional[Mark]:
    if not isinstance(payload, dict) or not isinstance(payload.get('type'), str):
        return None
    attrs = payload.get('attrs')
    return Mark(kind=payload['type'], attrs=dict(attrs) if isinstance(attrs, dict) else None)


def _decode(payload: Any, depth: int, guard: TraversalGuard) -> Optional[Node]:
    if not isinstance(payload, dict) or not isinstance(payload.get('type'), str):
        return None
    if not guard.enter(payload, depth):
        return None
    try:
        attrs = payload.get('attrs')
        marks = None
        if isinstance(payload.get('marks'), list):
            marks = [m for m in (_decode_mark(p) for p in payload['marks']) if m is not None]
        text = payload.get('text')
        content = None
        if isinstance(payload.get('content'), list):
            content = []
            for child in payload['content']:
                decoded = _decode(child, depth + 1, guard)
                if decoded is not None:
                    content.append(decoded)
        return Node(
            kind=payload['type'],
            attrs=dict(attrs) if isinstance(attrs, dict) else None,
            marks=marks,
            text=text if isinstance(text, str) else None,
            content=content,
        )
    finally:
        guard.leave(payload)


def decode_node(payload: Union[str, bytes, Dict[str, Any]]) -> Node:
    """
    Normalize a stored or received tree into a Node.

    Stored Source content may be a JSON string or an already-parsed object.
    Unknown shapes inside the tree (non-dict children, marks without a type)
    are dropped here so that later stages never re-check shape.

    Raises:
        ValueError: If the payload is not a JSON object with a string `type`
    """
    if isinstance(payload, (str, bytes)):
        payload = json.loads(payload)
    node = _decode(payload, 0, TraversalGuard())
    if node is None:
        raise ValueError("Document payload must be an object with a string 'type'")
    return node


def encode_node(node: Node) -> Dict[str, Any]:
    """Convert a Node back to its JSON-compatible dictionary form"""
    data: Dict[str, Any] = {'type': node.kind}
    if node.attrs is not None:
        data['attrs'] = dict(node.attrs)
    if node.marks:
        data['marks'] = [mark.to_dict() for mark in node.marks]
    if node.text is not None:
        data['text'] = node.text
    if node.content is not None:
        data['content'] = [encode_node(child) for child in node.content]
    return data


def decode_definitions(payload: Optional[List[Dict[str, Any]]]) -> List[VariableDefinition]:
    """
    Decode stored variable definitions.

    Accepts both `isAtSentenceStart` (stored form) and `is_at_sentence_start`.
    """
    definitions = []
    for entry in payload or []:
        if not isinstance(entry, dict) or not entry.get('name'):
            continue
        occurrences = []
        for occ in entry.get('occurrences') or []:
            if not isinstance(occ, dict) or not isinstance(occ.get('index'), int):
                continue
            flag = occ.get('is_at_sentence_start', occ.get('isAtSentenceStart', False))
            occurrences.append(Occurrence(index=occ['index'], is_at_sentence_start=bool(flag)))
        definitions.append(VariableDefinition(
            name=entry['name'],
            occurrences=occurrences,
            description=entry.get('description', '') or '',
            required=bool(entry.get('required', False)),
        ))
    return definitions


def encode_definitions(definitions: List[VariableDefinition]) -> List[Dict[str, Any]]:
    return [
        {
            'name': d.name,
            'description': d.description,
            'required': d.required,
            'occurrences': [
                {'index': o.index, 'isAtSentenceStart': o.is_at_sentence_start}
                for o in d.occurrences
            ],
        }
        for d in definitions
    ]


def decode_insertions(payload: Optional[List[Dict[str, Any]]]) -> List[CustomInsertion]:
    return [
        CustomInsertion(position=int(item['position']), text=str(item.get('text', '')))
        for item in payload or []
        if isinstance(item, dict) and item.get('position') is not None
    ]


def decode_notes(payload: Optional[List[Dict[str, Any]]]) -> List[InternalNote]:
    return [
        InternalNote(position=int(item['position']), content=str(item.get('content', '')))
        for item in payload or []
        if isinstance(item, dict) and item.get('position') is not None
    ]


def decode_variable_values(payload: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """
    Normalize a variable value map to strings.

    None means unset and is dropped; numbers and booleans become their
    string form, so 0 is a value, not an unset variable.
    """
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError(f"Variable values must be an object, got {type(payload).__name__}")
    return {str(name): str(value) for name, value in payload.items() if value is not None}


def decode_toggle_states(payload: Optional[Dict[str, Any]]) -> Dict[str, bool]:
    """Normalize a toggle state map; only a literal true enables a toggle"""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError(f"Toggle states must be an object, got {type(payload).__name__}")
    return {str(name): value is True for name, value in payload.items()}
