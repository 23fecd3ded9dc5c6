"""
ABOUTME: Shared constants and marker patterns for ADF rendering stages
ABOUTME: Placeholder grammar, toggle markers, note styling, keep-even-if-empty kinds
"""

import re

# ============================================================
# Placeholder Patterns
# ============================================================

# Variable placeholder: {{name}} (surrounding whitespace inside braces is trimmed)
# Names must match [A-Za-z][A-Za-z0-9_]*; anything else stays verbatim
VARIABLE_PATTERN = re.compile(r'\{\{\s*([A-Za-z][A-Za-z0-9_]*)\s*\}\}')

# Toggle markers: {{toggle:name}} ... {{/toggle:name}}
TOGGLE_OPEN_PATTERN = re.compile(r'^\{\{toggle:([^}]+)\}\}$')
TOGGLE_CLOSE_PATTERN = re.compile(r'^\{\{/toggle:([^}]+)\}\}$')
TOGGLE_MARKER_SPLIT_PATTERN = re.compile(r'(\{\{toggle:[^}]+\}\}|\{\{/toggle:[^}]+\}\})')
TOGGLE_NAME_PATTERN = re.compile(r'\{\{toggle:([^}]+)\}\}')

# Sentence-ending punctuation optionally followed by a closing quote
SENTENCE_END_PATTERN = re.compile(r'[.!?]["\'”’]?\s*$')

# Any {{...}} sequence (variables, toggle markers, malformed placeholders)
PLACEHOLDER_MASK_PATTERN = re.compile(r'\{\{[^{}]*\}\}')

# ============================================================
# Node Kinds
# ============================================================

# Kinds that remain meaningful even with no content after pruning
KEEP_EVEN_IF_EMPTY = frozenset({'hardBreak', 'rule', 'emoji', 'mention', 'date'})

# ============================================================
# Internal Notes
# ============================================================

NOTE_COLOR = '#505258'
NOTES_TITLE = '\U0001F510 Internal Notes'
NOTE_SEPARATOR = ' | '

# ============================================================
# Ghost Rendering
# ============================================================

GHOST_DISABLED_ATTR = 'disabled'
GHOST_TOGGLE_NAME_ATTR = 'toggle_name'
