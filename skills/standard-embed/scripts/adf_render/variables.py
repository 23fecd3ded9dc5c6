"""
ABOUTME: Variable substitution in ADF content with smart case matching
ABOUTME: Unset variables stay visible as code-marked {{name}} placeholders
"""

from typing import Dict, List, Optional

from adf_model import (
    PARAGRAPH,
    Mark,
    Node,
    TraversalGuard,
    VariableDefinition,
    text_node,
    with_content,
)

from .common import VARIABLE_PATTERN
from .sentences import should_capitalize_as_proper_noun


def maybe_upgrade_case(value: str, at_sentence_start: bool) -> str:
    """
    Capitalize the first character of a value at a sentence start, or when
    the value is a proper noun (a month, place, person or organisation).

    Only upgrades: a value whose first character is already uppercase, or is
    not a cased letter, is returned unchanged.

    Examples:
        ("acme", True) -> "Acme"
        ("acme", False) -> "acme"
        ("may", False) -> "May"
        ("ACME", True) -> "ACME"
        ("3 days", True) -> "3 days"
    """
    if not value:
        return value
    first = value[0]
    if not first.islower() or first.upper() == first:
        return value
    if at_sentence_start or should_capitalize_as_proper_noun(value):
        return first.upper() + value[1:]
    return value


class _OccurrenceCursor:
    """Per-name occurrence counters for one substitution pass"""

    def __init__(self, definitions: Optional[List[VariableDefinition]]):
        self.lookup: Dict[str, Dict[int, bool]] = {}
        for definition in definitions or []:
            flags = {occ.index: occ.is_at_sentence_start for occ in definition.occurrences}
            self.lookup[definition.name] = flags
        self.counters: Dict[str, int] = {}

    def tracks(self, name: str) -> bool:
        return name in self.lookup

    def consume(self, name: str) -> bool:
        """Advance the counter for `name`; return the sentence-start flag of the consumed slot"""
        index = self.counters.get(name, 0)
        self.counters[name] = index + 1
        return self.lookup[name].get(index, False)


def _unset_marks(node: Node) -> List[Mark]:
    marks = list(node.marks or [])
    if not node.has_mark('code'):
        marks.append(Mark('code'))
    return marks


def _substitute_text(node: Node, values: Dict[str, str], cursor: _OccurrenceCursor) -> List[Node]:
    text = node.text
    parts: List[Node] = []
    last_index = 0
    found = False

    # finditer builds a fresh scan for this string only
    for match in VARIABLE_PATTERN.finditer(text):
        found = True
        if match.start() > last_index:
            parts.append(text_node(text[last_index:match.start()], node.marks))

        name = match.group(1).strip()
        value = values.get(name) or ''
        if cursor.tracks(name):
            at_start = cursor.consume(name)
            value = maybe_upgrade_case(value, at_start)

        if value:
            parts.append(text_node(value, node.marks))
        else:
            parts.append(text_node(match.group(0), _unset_marks(node)))

        last_index = match.end()

    if not found:
        return [node]

    if last_index < len(text):
        parts.append(text_node(text[last_index:], node.marks))
    return parts


def _substitute(node: Node, values: Dict[str, str], cursor: _OccurrenceCursor,
                depth: int, guard: TraversalGuard) -> List[Node]:
    if node.is_text and node.text:
        return _substitute_text(node, values, cursor)
    if node.content is None:
        return [node]
    if not guard.enter(node, depth):
        return []
    try:
        content: List[Node] = []
        for child in node.content:
            content.extend(_substitute(child, values, cursor, depth + 1, guard))
    finally:
        guard.leave(node)
    return [with_content(node, content)]


def substitute(node: Node, values: Optional[Dict[str, str]],
               definitions: Optional[List[VariableDefinition]] = None) -> Node:
    """
    Replace {{name}} placeholders with variable values.

    Smart case matching: when `definitions` carry occurrence metadata for a
    name, each occurrence of that name (set or unset) consumes the next
    occurrence slot in document order, and a value landing on a slot flagged
    as a sentence start is upgraded to sentence case.

    A text node containing placeholders is split into several text nodes,
    each keeping the original marks. Unset values keep the literal
    placeholder text and gain a code mark.
    """
    cursor = _OccurrenceCursor(definitions)
    result = _substitute(node, values or {}, cursor, 0, TraversalGuard())
    if len(result) == 1:
        return result[0]
    # A bare text root that splits is wrapped in a paragraph
    return Node(kind=PARAGRAPH, content=result)
