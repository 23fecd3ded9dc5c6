"""
Shared builders for ADF test documents.
"""

import sys
from pathlib import Path

# Add scripts directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'skills' / 'standard-embed' / 'scripts'))

from adf_model import Node, decode_node, encode_node  # type: ignore
from storage_format import (  # type: ignore
    LEGACY_CHAPTER_PARAM,
    LEGACY_LOCAL_PARAM,
    chapter_id_for,
    compliance_emoji,
    escape_html,
)


def t(text, *marks):
    """Text node dict with optional mark type names"""
    node = {'type': 'text', 'text': text}
    if marks:
        node['marks'] = [{'type': m} for m in marks]
    return node


def p(*children):
    return {'type': 'paragraph', 'content': list(children)}


def h(level, *children):
    return {'type': 'heading', 'attrs': {'level': level}, 'content': list(children)}


def d(*children):
    return {'type': 'doc', 'content': list(children)}


def tree(payload) -> Node:
    return decode_node(payload)


def texts(node) -> list:
    """All text node strings in depth-first order"""
    data = encode_node(node) if isinstance(node, Node) else node
    found = []

    def walk(current):
        if current.get('type') == 'text':
            found.append(current.get('text'))
        for child in current.get('content', []) or []:
            walk(child)

    walk(data)
    return found


def paragraph_texts(node) -> list:
    """Concatenated text of each paragraph in depth-first order"""
    data = encode_node(node) if isinstance(node, Node) else node
    found = []

    def walk(current):
        if current.get('type') == 'paragraph':
            found.append(''.join(texts(current)))
        for child in current.get('content', []) or []:
            walk(child)

    walk(data)
    return found


def legacy_chapter(local_id, heading, body_markup):
    """Chapter in the older section-container form, as pages injected before hidden markers carry it"""
    return (
        '<ac:structured-macro ac:name="section" ac:schema-version="1">\n'
        f'{LEGACY_CHAPTER_PARAM.format(chapter_id=chapter_id_for(local_id))}\n'
        f'{LEGACY_LOCAL_PARAM.format(local_id=local_id)}\n'
        '<ac:rich-text-body>\n'
        f'<h2>{compliance_emoji(None)} {escape_html(heading)}</h2>\n'
        f'{body_markup}\n'
        '</ac:rich-text-body>\n'
        '</ac:structured-macro>'
    )
