"""
Tests for adf_render.pipeline - fixed-order rendering of one embed
"""

import sys
from pathlib import Path

# Add scripts directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "skills" / "standard-embed" / "scripts"))

from adf_model import CustomInsertion, InternalNote, encode_node  # type: ignore
from adf_render import RenderOptions, detect_variables, render_source_content  # type: ignore

from _adf_helpers import d, p, paragraph_texts, t, texts, tree


PROMO = d(p(t('Price: {{toggle:promo}}{{price}} off!{{/toggle:promo}}')))


class TestRenderSourceContent:
    """Tests for render_source_content"""

    def test_promo_enabled(self):
        """Enabled toggle keeps the promo text with the value filled in"""
        options = RenderOptions(variable_values={'price': '$10'}, toggle_states={'promo': True})
        assert texts(render_source_content(tree(PROMO), options)) == ['Price: ', '$10', ' off!']

    def test_promo_disabled(self):
        """Disabled toggle drops the promo text"""
        options = RenderOptions(variable_values={'price': '$10'}, toggle_states={'promo': False})
        assert texts(render_source_content(tree(PROMO), options)) == ['Price: ']

    def test_empty_result_keeps_root(self):
        """A fully filtered document still has its root"""
        node = tree(d(p(t('{{toggle:x}}only{{/toggle:x}}'))))
        result = render_source_content(node, RenderOptions())
        assert encode_node(result) == {'type': 'doc', 'content': []}

    def test_emptied_container_pruned(self):
        """A panel whose only paragraph is toggled off disappears; ordinals still count it"""
        node = tree(d(
            {'type': 'panel', 'content': [p(t('{{toggle:x}}Hidden{{/toggle:x}}'))]},
            p(t('Visible')),
        ))
        options = RenderOptions(custom_insertions=[CustomInsertion(1, 'Extra')])
        assert paragraph_texts(render_source_content(node, options)) == ['Visible', 'Extra']

    def test_full_stack(self):
        """Toggles, values, custom paragraphs and notes combine in one render"""
        node = tree(d(
            p(t('{{client}} signs first.')),
            p(t('Then the {{client}} pays.')),
            p(t('Last.')),
        ))
        options = RenderOptions(
            variable_values={'client': 'acme'},
            custom_insertions=[CustomInsertion(1, 'Inserted')],
            internal_notes=[InternalNote(1, 'Confirm amount')],
            definitions=detect_variables(node),
        )
        result = encode_node(render_source_content(node, options))
        assert paragraph_texts(result)[:4] == [
            'Acme signs first.',
            'Then the acme pays.1',
            'Inserted',
            'Last.',
        ]
        assert result['content'][-1]['type'] == 'expand'

    def test_cleans_local_ids(self):
        """Rendered output carries no localId attributes"""
        node = tree(d({'type': 'paragraph', 'attrs': {'localId': 'l1'}, 'content': [t('x')]}))
        result = encode_node(render_source_content(node, RenderOptions()))
        assert result['content'][0]['attrs'] == {}
