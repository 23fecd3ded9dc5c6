"""
ABOUTME: Detects variables, toggles and variable occurrences in Source content
ABOUTME: Also extracts plain text and paragraph listings for position pickers
"""

from typing import Dict, List, Optional

from adf_model import (
    HEADING,
    PARAGRAPH,
    Node,
    Occurrence,
    TraversalGuard,
    VariableDefinition,
)

from .common import TOGGLE_NAME_PATTERN, VARIABLE_PATTERN
from .sentences import is_at_sentence_start_nlp, is_at_sentence_start_regex, sentence_starts

LAST_SENTENCE_PREVIEW = 60


def extract_text(node: Node) -> str:
    """
    Concatenate all text in a tree.

    Depth-limited and cycle-safe: truncated branches contribute nothing.
    """
    guard = TraversalGuard()

    def walk(current: Node, depth: int) -> str:
        if not guard.enter(current, depth):
            return ''
        try:
            text = current.text or ''
            for child in current.content or []:
                text += walk(child, depth + 1)
            return text
        finally:
            guard.leave(current)

    return walk(node, 0)


def is_at_sentence_start(preceding_text: str, full_text: Optional[str] = None,
                         position: Optional[int] = None,
                         boundaries: Optional[List[int]] = None) -> bool:
    """
    Check whether text following `preceding_text` starts a sentence.

    With the full paragraph text and the position, sentence boundaries come
    from the spaCy segmenter, so "Dr." or "e.g." does not end a sentence.
    Without them only the preceding punctuation is inspected.
    """
    if full_text is not None and position is not None:
        return is_at_sentence_start_nlp(full_text, position, boundaries)
    return is_at_sentence_start_regex(preceding_text)


def _text_nodes(node: Node, depth: int, guard: TraversalGuard) -> List[Node]:
    if node.is_text:
        return [node]
    if not guard.enter(node, depth):
        return []
    try:
        found = []
        for child in node.content or []:
            found.extend(_text_nodes(child, depth + 1, guard))
        return found
    finally:
        guard.leave(node)


def detect_variable_occurrences(node: Node) -> List[Dict]:
    """
    List every variable occurrence in substitution order.

    Returns:
        [{'name': str, 'index': int, 'is_at_sentence_start': bool}, ...]
        where `index` counts occurrences of that name from 0.

    Text is scanned node by node (the same units the substitutor scans),
    with sentence boundaries taken from the whole paragraph text.
    Occurrences inside headings are always sentence starts.
    """
    occurrences: List[Dict] = []
    counters: Dict[str, int] = {}
    guard = TraversalGuard()

    def record_block(block: Node, depth: int, in_heading: bool):
        text_children = _text_nodes(block, depth, guard)
        full_text = ''.join(child.text or '' for child in text_children)
        boundaries: Optional[List[int]] = None
        offset = 0
        for text_child in text_children:
            text = text_child.text or ''
            for match in VARIABLE_PATTERN.finditer(text):
                name = match.group(1).strip()
                index = counters.get(name, 0)
                counters[name] = index + 1
                position = offset + match.start()
                if in_heading:
                    at_start = True
                else:
                    if boundaries is None:
                        boundaries = sentence_starts(full_text)
                    at_start = is_at_sentence_start(full_text[:position], full_text, position, boundaries)
                occurrences.append({'name': name, 'index': index, 'is_at_sentence_start': at_start})
            offset += len(text)

    def walk(current: Node, depth: int):
        if current.kind in (PARAGRAPH, HEADING) or current.is_text:
            record_block(current, depth, current.kind == HEADING)
            return
        if not guard.enter(current, depth):
            return
        try:
            for child in current.content or []:
                walk(child, depth + 1)
        finally:
            guard.leave(current)

    walk(node, 0)
    return occurrences


def merge_occurrences(definitions: List[VariableDefinition],
                      occurrences: List[Dict]) -> List[VariableDefinition]:
    """Attach detected occurrence metadata to variable definitions (grouped by name)"""
    by_name: Dict[str, List[Occurrence]] = {}
    for occ in occurrences:
        by_name.setdefault(occ['name'], []).append(
            Occurrence(index=occ['index'], is_at_sentence_start=occ['is_at_sentence_start'])
        )
    return [
        VariableDefinition(
            name=d.name,
            occurrences=by_name.get(d.name, []),
            description=d.description,
            required=d.required,
        )
        for d in definitions
    ]


def detect_variables(node: Node) -> List[VariableDefinition]:
    """
    Detect unique variables in first-appearance order, with occurrence metadata.

    Toggle markers and malformed placeholders are not variables.
    """
    occurrences = detect_variable_occurrences(node)
    names: List[str] = []
    for occ in occurrences:
        if occ['name'] not in names:
            names.append(occ['name'])
    return merge_occurrences([VariableDefinition(name=n) for n in names], occurrences)


def detect_toggles(node: Node) -> List[str]:
    """Return unique toggle names in first-appearance order"""
    names: List[str] = []
    for match in TOGGLE_NAME_PATTERN.finditer(extract_text(node)):
        name = match.group(1).strip()
        if name not in names:
            names.append(name)
    return names


def extract_paragraphs(node: Node) -> List[Dict]:
    """
    List non-blank paragraphs for position selection.

    Returns:
        [{'index': int, 'last_sentence': str, 'full_text': str}, ...]
    """
    paragraphs: List[Dict] = []
    guard = TraversalGuard()

    def walk(current: Node, depth: int):
        if not guard.enter(current, depth):
            return
        try:
            if current.kind == PARAGRAPH:
                full_text = ''.join(extract_text(child) for child in current.content or [])
                if full_text.strip():
                    sentences = [s for s in _split_sentences(full_text) if s.strip()]
                    last = sentences[-1].strip() if sentences else full_text.strip()
                    if len(last) > LAST_SENTENCE_PREVIEW:
                        last = last[:LAST_SENTENCE_PREVIEW] + '...'
                    paragraphs.append({
                        'index': len(paragraphs),
                        'last_sentence': last,
                        'full_text': full_text,
                    })
            for child in current.content or []:
                walk(child, depth + 1)
        finally:
            guard.leave(current)

    walk(node, 0)
    return paragraphs


def _split_sentences(text: str) -> List[str]:
    sentences = []
    current = ''
    for char in text:
        if char in '.!?':
            sentences.append(current)
            current = ''
        else:
            current += char
    sentences.append(current)
    return sentences


def find_paragraph_index(node: Node, needle: str) -> Optional[int]:
    """Return the ordinal of the first paragraph containing `needle`, or None"""
    for entry in extract_paragraphs(node):
        if needle in entry['full_text']:
            return entry['index']
    return None
