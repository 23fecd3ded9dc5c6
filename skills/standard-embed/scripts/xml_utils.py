#!/usr/bin/env python3
"""
ABOUTME: XML utility functions for storage-format markup
ABOUTME: Sanitization, well-formedness checks and chapter region inspection
"""

import re
from html.entities import name2codepoint
from typing import Optional

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET
from lxml import etree

STORAGE_NAMESPACES = {
    'ac': 'http://atlassian.com/content',
    'ri': 'http://atlassian.com/resource/identifier',
}

# Entities predefined by XML itself; everything else from HTML must become numeric
XML_PREDEFINED_ENTITIES = {'amp', 'lt', 'gt', 'quot', 'apos'}
NAMED_ENTITY_PATTERN = re.compile(r'&([A-Za-z][A-Za-z0-9]*);')


def sanitize_xml_string(text: str) -> str:
    """
    Remove control characters that are illegal in XML 1.0.

    XML 1.0 allows #x9, #xA, #xD and #x20 upwards; the remaining C0 control
    characters (0x00-0x08, 0x0B, 0x0C, 0x0E-0x1F) are removed.

    Returns input unchanged if it is not a non-empty string.
    """
    if not text or not isinstance(text, str):
        return text
    illegal_chars = ''.join(
        chr(c) for c in range(0x20)
        if c not in (0x09, 0x0A, 0x0D)
    )
    return text.translate(str.maketrans('', '', illegal_chars))


def _numeric_entities(markup: str) -> str:
    """Rewrite HTML named entities (&nbsp; &mdash; ...) as numeric references"""
    def replace(match):
        name = match.group(1)
        if name in XML_PREDEFINED_ENTITIES or name not in name2codepoint:
            return match.group(0)
        return f"&#{name2codepoint[name]};"
    return NAMED_ENTITY_PATTERN.sub(replace, markup)


def wrap_fragment(markup: str) -> str:
    """Wrap a storage fragment in a root element declaring the ac/ri namespaces"""
    declarations = ' '.join(f'xmlns:{prefix}="{uri}"' for prefix, uri in STORAGE_NAMESPACES.items())
    return f"<storage-root {declarations}>{_numeric_entities(markup)}</storage-root>"


def check_well_formed(markup: str) -> Optional[str]:
    """
    Check that a storage fragment parses as XML.

    Converted content is untrusted, so it is parsed with defusedxml.

    Returns:
        None when well-formed, else a short error description
    """
    try:
        ET.fromstring(wrap_fragment(markup))
    except ET.ParseError as e:
        return f"Malformed storage markup: {e}"
    except DefusedXmlException as e:
        return f"Forbidden construct in storage markup: {e}"
    return None


def _parse_fragment(markup: str) -> Optional[etree._Element]:
    parser = etree.XMLParser(resolve_entities=False, no_network=True, recover=False)
    try:
        return etree.fromstring(wrap_fragment(markup).encode('utf-8'), parser)
    except etree.XMLSyntaxError:
        return None


def chapter_heading_text(region_markup: str) -> Optional[str]:
    """Return the text of the first <h2> in a chapter region, or None"""
    root = _parse_fragment(region_markup)
    if root is None:
        return None
    headings = root.xpath('.//h2')
    if not headings:
        return None
    return ''.join(headings[0].itertext()).strip()
