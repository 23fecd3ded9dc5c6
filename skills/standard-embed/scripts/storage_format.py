#!/usr/bin/env python3
"""
ABOUTME: Locates, replaces and removes injected chapter regions in page storage markup
ABOUTME: Builds chapter markup with hidden boundary markers, placeholders and freeform bodies
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

# ============================================================
# Constants
# ============================================================

MACRO_OPEN = '<ac:structured-macro'
MACRO_CLOSE = '</ac:structured-macro>'

# Hidden key/value marker: a collapsed details macro carrying an id parameter
MARKER_ID_PARAM = '<ac:parameter ac:name="id">{marker_id}</ac:parameter>'
START_MARKER_PREFIX = 'boundary-start-'
END_MARKER_PREFIX = 'boundary-end-'

# Legacy wrapping container: a section macro carrying both ids as parameters
LEGACY_MACRO_NAME = 'ac:name="section"'
LEGACY_CHAPTER_PARAM = '<ac:parameter ac:name="blueprint-chapter">{chapter_id}</ac:parameter>'
LEGACY_LOCAL_PARAM = '<ac:parameter ac:name="blueprint-local">{local_id}</ac:parameter>'

CHAPTER_ID_PREFIX = 'chapter-'

# Matches the id of either scheme in a single pass, in document order
CHAPTER_ID_PATTERN = re.compile(
    r'<ac:parameter ac:name="id">boundary-start-([^<]+)</ac:parameter>'
    r'|<ac:parameter ac:name="blueprint-local">([^<]+)</ac:parameter>'
    r'|<ac:parameter ac:name="blueprint-chapter">chapter-([^<]+)</ac:parameter>'
)

LEADING_HEADING_PATTERN = re.compile(r'^\s*<h([1-6])\b[^>]*>.*?</h\1>\s*', re.DOTALL)

COMPLIANCE_LEVELS: Dict[str, Dict[str, str]] = {
    'standard': {'emoji': '\U0001F7E2', 'label': 'STANDARD'},
    'bespoke': {'emoji': '\U0001F7E3', 'label': 'BESPOKE'},
    'semi-standard': {'emoji': '\U0001F7E1', 'label': 'SEMI-STANDARD'},
    'non-standard': {'emoji': '\U0001F534', 'label': 'NON-STANDARD'},
    'tbd': {'emoji': '⚪', 'label': 'TBD'},
    'na': {'emoji': '⚪', 'label': 'N/A'},
}

PLACEHOLDER_BODY = (
    '<ac:structured-macro ac:name="info" ac:schema-version="1">\n'
    '<ac:rich-text-body>\n'
    '<p><strong>\U0001F4DD Chapter Under Construction</strong></p>\n'
    '<p>This chapter has not been configured yet. Click the Edit button to set up '
    'variables and publish content.</p>\n'
    '</ac:rich-text-body>\n'
    '</ac:structured-macro>\n'
    '<hr />'
)

EMPTY_FREEFORM_BODY = '<p><em>No content provided.</em></p>'

# ============================================================
# Data Classes
# ============================================================

class BoundaryScheme(Enum):
    """Boundary schemes, tried in declaration order"""
    HIDDEN = 'hidden'
    LEGACY_CONTAINER = 'legacy-container'


@dataclass
class ChapterRegion:
    """Half-open character range [start_offset, end_offset) of one injected chapter"""
    local_id: str
    start_offset: int
    end_offset: int
    raw_text: str
    scheme: BoundaryScheme


# ============================================================
# Helper Functions
# ============================================================

def chapter_id_for(local_id: str) -> str:
    return f"{CHAPTER_ID_PREFIX}{local_id}"


def escape_html(text: Optional[str]) -> str:
    """Escape & < > " ' for safe inclusion in storage markup"""
    if not text:
        return ''
    return (str(text)
            .replace('&', '&amp;')
            .replace('<', '&lt;')
            .replace('>', '&gt;')
            .replace('"', '&quot;')
            .replace("'", '&#039;'))


def _matching_close(body: str, open_index: int) -> Optional[int]:
    """
    Find the end of the macro whose opening tag starts at `open_index`.

    Counts every nested `<ac:structured-macro` as +1 and every closing tag
    as -1, starting at depth 1 right after the opening tag.

    Returns:
        Offset just past the matching closing tag, or None if unbalanced
    """
    tag_end = body.find('>', open_index)
    if tag_end == -1:
        return None
    if body[tag_end - 1] == '/':
        return tag_end + 1

    depth = 1
    pos = tag_end + 1
    while depth > 0:
        next_open = body.find(MACRO_OPEN, pos)
        next_close = body.find(MACRO_CLOSE, pos)
        if next_close == -1:
            return None

        if next_open != -1 and next_open < next_close:
            nested_end = body.find('>', next_open)
            if nested_end == -1:
                return None
            # Self-closing macros open and close in one tag
            if body[nested_end - 1] != '/':
                depth += 1
            pos = nested_end + 1
        else:
            depth -= 1
            pos = next_close + len(MACRO_CLOSE)
    return pos


def _locate_hidden(body: str, local_id: str) -> Optional[ChapterRegion]:
    start_param = MARKER_ID_PARAM.format(marker_id=f"{START_MARKER_PREFIX}{local_id}")
    end_param = MARKER_ID_PARAM.format(marker_id=f"{END_MARKER_PREFIX}{local_id}")

    start_param_index = body.find(start_param)
    if start_param_index == -1:
        return None
    start_open = body.rfind(MACRO_OPEN, 0, start_param_index)
    if start_open == -1:
        return None

    end_param_index = body.find(end_param, start_param_index + len(start_param))
    if end_param_index == -1:
        return None
    end_open = body.rfind(MACRO_OPEN, 0, end_param_index)
    if end_open == -1 or end_open < start_open:
        return None
    end_close = _matching_close(body, end_open)
    if end_close is None:
        return None

    return ChapterRegion(
        local_id=local_id,
        start_offset=start_open,
        end_offset=end_close,
        raw_text=body[start_open:end_close],
        scheme=BoundaryScheme.HIDDEN,
    )


def _locate_legacy(body: str, local_id: str) -> Optional[ChapterRegion]:
    param_index = body.find(LEGACY_LOCAL_PARAM.format(local_id=local_id))
    if param_index == -1:
        param_index = body.find(LEGACY_CHAPTER_PARAM.format(chapter_id=chapter_id_for(local_id)))
    if param_index == -1:
        return None

    macro_start = body.rfind(MACRO_OPEN, 0, param_index)
    if macro_start == -1:
        return None
    tag_end = body.find('>', macro_start)
    if tag_end == -1 or LEGACY_MACRO_NAME not in body[macro_start:tag_end]:
        return None

    macro_end = _matching_close(body, macro_start)
    if macro_end is None:
        return None

    return ChapterRegion(
        local_id=local_id,
        start_offset=macro_start,
        end_offset=macro_end,
        raw_text=body[macro_start:macro_end],
        scheme=BoundaryScheme.LEGACY_CONTAINER,
    )


_LOCATORS = {
    BoundaryScheme.HIDDEN: _locate_hidden,
    BoundaryScheme.LEGACY_CONTAINER: _locate_legacy,
}

# ============================================================
# Boundary Operations
# ============================================================

def locate(body: Optional[str], local_id: str) -> Optional[ChapterRegion]:
    """
    Find the chapter region injected for `local_id`.

    Tries each BoundaryScheme in order and returns the first match.
    Returns None when no scheme finds a complete region.
    """
    if not body or not local_id:
        return None
    for scheme in BoundaryScheme:
        region = _LOCATORS[scheme](body, local_id)
        if region is not None:
            return region
    return None


def chapter_exists(body: Optional[str], local_id: str) -> bool:
    return locate(body, local_id) is not None


def replace_region(body: str, region: ChapterRegion, new_markup: str) -> str:
    """Splice `new_markup` over a previously located region"""
    return body[:region.start_offset] + new_markup + body[region.end_offset:]


def replace_chapter(body: Optional[str], local_id: str, new_markup: str) -> Optional[str]:
    """
    Replace the chapter region for `local_id` with `new_markup`.

    Returns:
        New body, or None when the region is not present
    """
    region = locate(body, local_id)
    if region is None:
        return None
    return replace_region(body, region, new_markup)


def append_chapter(body: Optional[str], chapter_markup: str) -> str:
    """Append a chapter after existing content, separated by one blank line"""
    existing = (body or '').strip()
    if not existing:
        return chapter_markup
    return existing + '\n\n' + chapter_markup


def remove_chapter(body: Optional[str], local_id: str) -> Optional[str]:
    """
    Remove the chapter region for `local_id`.

    Whitespace around the region is trimmed and the two sides are joined
    by a single blank line when both are non-empty.

    Returns:
        New body, or None when the region is not present
    """
    region = locate(body, local_id)
    if region is None:
        return None
    before = body[:region.start_offset].rstrip()
    after = body[region.end_offset:].lstrip()
    separator = '\n\n' if before and after else ''
    return before + separator + after


def enumerate_chapters(body: Optional[str]) -> List[str]:
    """
    List the local ids of all injected chapters in first-appearance order.

    Both schemes are scanned in one pass; each id is reported once.
    """
    if not body:
        return []
    local_ids: List[str] = []
    for match in CHAPTER_ID_PATTERN.finditer(body):
        local_id = match.group(1) or match.group(2) or match.group(3)
        if local_id not in local_ids:
            local_ids.append(local_id)
    return local_ids


# ============================================================
# Chapter Builders
# ============================================================

def compliance_emoji(compliance_level: Optional[str], is_bespoke: bool = False) -> str:
    """
    Return the indicator emoji for a compliance level.

    A missing level falls back to bespoke or standard depending on the
    Source; an unknown level is treated as standard.
    """
    effective = compliance_level or ('bespoke' if is_bespoke else 'standard')
    config = COMPLIANCE_LEVELS.get(effective, COMPLIANCE_LEVELS['standard'])
    return config['emoji']


def build_marker(local_id: str, position: str) -> str:
    """Build the hidden start or end boundary marker for a chapter"""
    prefix = START_MARKER_PREFIX if position == 'start' else END_MARKER_PREFIX
    return (
        '<ac:structured-macro ac:name="details" ac:schema-version="1">'
        '<ac:parameter ac:name="hidden">true</ac:parameter>'
        f'<ac:parameter ac:name="id">{prefix}{local_id}</ac:parameter>'
        '<ac:rich-text-body><table><tbody>'
        f'<tr><th>boundary</th><td>{position}</td></tr>'
        '</tbody></table></ac:rich-text-body>'
        '</ac:structured-macro>'
    )


def build_chapter(local_id: str, heading: Optional[str], body_markup: str,
                  compliance_level: Optional[str] = None, is_bespoke: bool = False) -> str:
    """
    Build a complete chapter delimited by hidden boundary markers.

    Raises:
        ValueError: If local_id is empty
    """
    if not local_id:
        raise ValueError("build_chapter requires a local_id")
    emoji = compliance_emoji(compliance_level, is_bespoke)
    return '\n'.join([
        build_marker(local_id, 'start'),
        f"<h2>{emoji} {escape_html(heading or 'Untitled Chapter')}</h2>",
        body_markup or '',
        build_marker(local_id, 'end'),
    ])


def build_placeholder(local_id: str, heading: Optional[str],
                      compliance_level: Optional[str] = None, is_bespoke: bool = False) -> str:
    """Build the "under construction" stub shown before a chapter is first published"""
    return build_chapter(local_id, heading or 'New Chapter', PLACEHOLDER_BODY,
                         compliance_level, is_bespoke)


def build_freeform_body(freeform_content: Optional[str]) -> str:
    """Turn plain text into one <p> per non-blank line"""
    lines = [line.strip() for line in (freeform_content or '').split('\n')]
    paragraphs = [f"<p>{escape_html(line)}</p>" for line in lines if line]
    return '\n'.join(paragraphs) if paragraphs else EMPTY_FREEFORM_BODY


def build_freeform_chapter(local_id: str, heading: Optional[str], freeform_content: Optional[str],
                           compliance_level: Optional[str] = None) -> str:
    # Freeform chapters always show their own level, never the bespoke fallback
    return build_chapter(local_id, heading, build_freeform_body(freeform_content),
                         compliance_level, False)


def strip_leading_heading(markup: Optional[str]) -> str:
    """
    Remove one leading <h1>..<h6> element from converted markup.

    Chapters carry their own heading, so a Source that starts with one
    would otherwise show it twice.
    """
    if not markup:
        return ''
    return LEADING_HEADING_PATTERN.sub('', markup, count=1)
