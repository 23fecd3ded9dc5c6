"""
ABOUTME: ADF rendering stages for Standard embeds
ABOUTME: Cleaner, toggle filter, variable substitution, insertions, ghost rendering, detection
"""

from .cleaner import clean, prune_empty
from .detection import (
    detect_toggles,
    detect_variable_occurrences,
    detect_variables,
    extract_paragraphs,
    extract_text,
    merge_occurrences,
)
from .ghost import extract_text_with_toggle_markers, render_with_ghosts
from .insertions import insert_custom, insert_notes
from .pipeline import RenderOptions, render_source_content
from .toggles import filter_by_toggles
from .variables import maybe_upgrade_case, substitute

__all__ = [
    'clean',
    'prune_empty',
    'filter_by_toggles',
    'substitute',
    'maybe_upgrade_case',
    'insert_custom',
    'insert_notes',
    'render_with_ghosts',
    'extract_text_with_toggle_markers',
    'detect_variables',
    'detect_toggles',
    'detect_variable_occurrences',
    'merge_occurrences',
    'extract_text',
    'extract_paragraphs',
    'RenderOptions',
    'render_source_content',
]
