"""
ABOUTME: Inserts custom paragraphs and internal-note footnotes into ADF content
ABOUTME: Positions are depth-first paragraph ordinals shared across the whole tree
"""

from typing import Dict, List, Optional

from adf_model import (
    EXPAND,
    PARAGRAPH,
    CustomInsertion,
    InternalNote,
    Mark,
    Node,
    TraversalGuard,
    paragraph,
    text_node,
    with_content,
)

from .common import NOTE_COLOR, NOTE_SEPARATOR, NOTES_TITLE


class ParagraphCursor:
    """Depth-first paragraph counter threaded through one traversal"""

    def __init__(self):
        self.value = 0

    def advance(self) -> int:
        consumed = self.value
        self.value += 1
        return consumed


# ============================================================
# Custom Paragraphs
# ============================================================

def _insert_custom(node: Node, by_position: Dict[int, List[CustomInsertion]],
                   cursor: ParagraphCursor, depth: int, guard: TraversalGuard) -> Optional[Node]:
    if node.content is None:
        return node
    if not guard.enter(node, depth):
        return None
    try:
        content: List[Node] = []
        for child in node.content:
            # Children first, so ordinals follow depth-first document order
            processed = _insert_custom(child, by_position, cursor, depth + 1, guard)
            if processed is None:
                continue
            content.append(processed)

            # Insert into this content list, i.e. at the paragraph's own nesting level
            if processed.kind == PARAGRAPH:
                ordinal = cursor.advance()
                for insertion in by_position.get(ordinal, []):
                    content.append(paragraph(text_node(insertion.text)))
    finally:
        guard.leave(node)
    return with_content(node, content)


def insert_custom(node: Node, insertions: Optional[List[CustomInsertion]]) -> Node:
    """
    Insert custom paragraphs after the paragraphs they reference.

    Every insertion whose position equals a paragraph's ordinal is emitted
    as a new paragraph directly after it, in the same content list.
    Inserted paragraphs are not counted.
    """
    if node.content is None or not insertions:
        return node
    by_position: Dict[int, List[CustomInsertion]] = {}
    for insertion in insertions:
        by_position.setdefault(insertion.position, []).append(insertion)
    result = _insert_custom(node, by_position, ParagraphCursor(), 0, TraversalGuard())
    return result if result is not None else node


# ============================================================
# Internal Notes
# ============================================================

def _inline_note_marker(number: int) -> Node:
    return text_node(str(number), [
        Mark('subsup', {'type': 'sup'}),
        Mark('textColor', {'color': NOTE_COLOR}),
        Mark('strong'),
    ])


def _footnote_paragraph(number: int, note: InternalNote) -> Node:
    return paragraph(
        text_node(str(number), [Mark('subsup', {'type': 'sup'}), Mark('strong')]),
        text_node(NOTE_SEPARATOR),
        text_node(note.content),
    )


def _insert_markers(node: Node, numbers_at: Dict[int, List[int]], cursor: ParagraphCursor,
                    depth: int, guard: TraversalGuard) -> Optional[Node]:
    if not guard.enter(node, depth):
        return None
    try:
        content = None
        if node.content is not None:
            content = []
            for child in node.content:
                processed = _insert_markers(child, numbers_at, cursor, depth + 1, guard)
                if processed is not None:
                    content.append(processed)
    finally:
        guard.leave(node)

    if node.kind == PARAGRAPH:
        ordinal = cursor.advance()
        numbers = numbers_at.get(ordinal)
        if numbers:
            content = list(content or [])
            content.extend(_inline_note_marker(number) for number in numbers)

    if content is None:
        return node
    return with_content(node, content)


def adjusted_note_position(note: InternalNote, prior_insertions: List[CustomInsertion]) -> int:
    """
    Map an original paragraph ordinal onto content that already has custom paragraphs.

    A custom paragraph at position p sits after original paragraph p, so it
    shifts every original paragraph after p. A note on paragraph p itself
    stays on that paragraph, never on the custom paragraph that follows it.
    """
    shift = sum(1 for insertion in prior_insertions if insertion.position < note.position)
    return note.position + shift


def insert_notes(node: Node, notes: Optional[List[InternalNote]],
                 prior_insertions: Optional[List[CustomInsertion]] = None) -> Node:
    """
    Insert footnote-style internal note markers.

    Notes are numbered 1..n by original position. Each note's superscript
    number is appended to its target paragraph; the target is the note's
    original ordinal shifted by the custom insertions strictly before it.
    A custom paragraph added after the target itself does not move the marker.
    A collapsible expand listing "{number} | {text}" is appended to the root.
    """
    if node.content is None or not notes:
        return node

    sorted_notes = sorted(notes, key=lambda n: n.position)
    prior = list(prior_insertions or [])
    numbers_at: Dict[int, List[int]] = {}
    for number, note in enumerate(sorted_notes, start=1):
        numbers_at.setdefault(adjusted_note_position(note, prior), []).append(number)

    processed = _insert_markers(node, numbers_at, ParagraphCursor(), 0, TraversalGuard())
    if processed is None:
        return node

    footnotes = [_footnote_paragraph(number, note) for number, note in enumerate(sorted_notes, start=1)]
    expand = Node(kind=EXPAND, attrs={'title': NOTES_TITLE}, content=footnotes)
    return with_content(processed, list(processed.content or []) + [expand])
