"""
ABOUTME: Fixed-order rendering pipeline for one embed
ABOUTME: substitute -> custom paragraphs -> notes -> toggles -> clean/prune
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from adf_model import (
    CustomInsertion,
    InternalNote,
    Node,
    VariableDefinition,
    decode_toggle_states,
    decode_variable_values,
    with_content,
)

from .cleaner import clean, prune_empty
from .insertions import insert_custom, insert_notes
from .toggles import filter_by_toggles
from .variables import substitute


@dataclass
class RenderOptions:
    """Per-embed customisation applied to Source content"""
    variable_values: Dict[str, str] = field(default_factory=dict)
    toggle_states: Dict[str, bool] = field(default_factory=dict)
    custom_insertions: List[CustomInsertion] = field(default_factory=list)
    internal_notes: List[InternalNote] = field(default_factory=list)
    definitions: Optional[List[VariableDefinition]] = None

    def __post_init__(self):
        self.variable_values = decode_variable_values(self.variable_values)
        self.toggle_states = decode_toggle_states(self.toggle_states)


def render_source_content(content: Node, options: RenderOptions, verbose: bool = False) -> Node:
    """
    Render Source content for one embed.

    Stage order is fixed: note positions are defined against the tree
    before custom paragraphs are inserted, and toggles are filtered after
    both so inserted content inside a disabled section disappears with it.

    An empty result is returned as the root with empty content, never None.
    """
    rendered = substitute(content, options.variable_values, options.definitions)
    rendered = insert_custom(rendered, options.custom_insertions)
    rendered = insert_notes(rendered, options.internal_notes, options.custom_insertions)

    filtered = filter_by_toggles(rendered, options.toggle_states)
    if filtered is None:
        if verbose:
            print("  [Render] All content filtered out by toggles")
        return with_content(content, [])

    pruned = prune_empty(clean(filtered))
    if pruned is None:
        if verbose:
            print("  [Render] Content empty after pruning")
        return with_content(content, [])

    if verbose:
        print(f"  [Render] {len(pruned.content or [])} top-level block(s)")
    return pruned
