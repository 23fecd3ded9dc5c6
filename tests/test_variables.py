"""
Tests for adf_render.variables - placeholder substitution and smart case matching
"""

import sys
from pathlib import Path

# Add scripts directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "skills" / "standard-embed" / "scripts"))

from adf_model import Occurrence, VariableDefinition, encode_node  # type: ignore
from adf_render.variables import maybe_upgrade_case, substitute  # type: ignore

from _adf_helpers import d, p, t, texts, tree


def _definition(name, *flags):
    return VariableDefinition(
        name=name,
        occurrences=[Occurrence(index=i, is_at_sentence_start=f) for i, f in enumerate(flags)],
    )


class TestMaybeUpgradeCase:
    """Tests for maybe_upgrade_case"""

    def test_upgrades_at_sentence_start(self):
        """Lowercase value at a sentence start gains a capital"""
        assert maybe_upgrade_case('acme', True) == 'Acme'

    def test_unchanged_mid_sentence(self):
        """Mid-sentence values keep their case"""
        assert maybe_upgrade_case('acme', False) == 'acme'

    def test_never_downgrades(self):
        """Uppercase first characters are left alone"""
        assert maybe_upgrade_case('ACME corp', True) == 'ACME corp'
        assert maybe_upgrade_case('Acme', False) == 'Acme'

    def test_non_letter_first_character(self):
        """Digits and empty values are returned unchanged"""
        assert maybe_upgrade_case('3 days', True) == '3 days'
        assert maybe_upgrade_case('', True) == ''


class TestSubstitute:
    """Tests for substitute"""

    def test_replaces_set_value_keeping_marks(self):
        """Split fragments keep the marks of the original text node"""
        node = tree(d(p(t('Hello {{name}}!', 'strong'))))
        result = encode_node(substitute(node, {'name': 'Ada'}))
        assert result['content'][0]['content'] == [
            {'type': 'text', 'text': 'Hello ', 'marks': [{'type': 'strong'}]},
            {'type': 'text', 'text': 'Ada', 'marks': [{'type': 'strong'}]},
            {'type': 'text', 'text': '!', 'marks': [{'type': 'strong'}]},
        ]

    def test_unset_value_marked_as_code(self):
        """Unset placeholders stay verbatim with a code mark"""
        node = tree(d(p(t('Contact {{ owner }} now'))))
        result = encode_node(substitute(node, {}))
        assert result['content'][0]['content'][1] == {
            'type': 'text', 'text': '{{ owner }}', 'marks': [{'type': 'code'}],
        }

    def test_empty_value_counts_as_unset(self):
        """An empty string is not a value"""
        node = tree(d(p(t('{{x}}'))))
        result = encode_node(substitute(node, {'x': ''}))
        assert result['content'][0]['content'] == [{'type': 'text', 'text': '{{x}}', 'marks': [{'type': 'code'}]}]

    def test_code_mark_not_duplicated(self):
        """A placeholder already in code keeps a single code mark"""
        node = tree(d(p(t('{{x}}', 'code'))))
        result = encode_node(substitute(node, {}))
        assert result['content'][0]['content'][0]['marks'] == [{'type': 'code'}]

    def test_invalid_placeholders_left_verbatim(self):
        """Names outside the grammar and toggle markers are not substituted"""
        node = tree(d(p(t('{{1abc}} {{toggle:x}} {{a-b}}'))))
        result = substitute(node, {'1abc': 'no'})
        assert texts(result) == ['{{1abc}} {{toggle:x}} {{a-b}}']

    def test_node_without_placeholders_unchanged(self):
        """Text without placeholders passes through as the same node"""
        node = tree(d(p(t('plain'))))
        result = substitute(node, {'x': 'y'})
        assert result.content[0].content[0] is node.content[0].content[0]

    def test_no_empty_fragments(self):
        """Adjacent placeholders do not produce empty text nodes"""
        node = tree(d(p(t('{{a}}{{b}}'))))
        assert texts(substitute(node, {'a': 'A', 'b': 'B'})) == ['A', 'B']

    def test_totality_no_set_placeholder_survives(self):
        """Every placeholder with a value is replaced"""
        node = tree(d(p(t('{{a}} and {{b}}')), p(t('{{a}}.'))))
        result = substitute(node, {'a': 'x', 'b': 'y'})
        assert all('{{' not in s for s in texts(result))

    def test_bare_text_root_wrapped_in_paragraph(self):
        """A text root that splits is wrapped in a paragraph"""
        result = substitute(tree(t('Hi {{n}}')), {'n': 'Bo'})
        assert result.kind == 'paragraph'
        assert texts(result) == ['Hi ', 'Bo']


class TestSmartCase:
    """Tests for occurrence-consistent case upgrading"""

    def test_upgrade_follows_occurrence_flags(self):
        """Only occurrences flagged as sentence starts are upgraded"""
        node = tree(d(p(t('{{client}} signs. Then {{client}} pays.'))))
        result = substitute(node, {'client': 'acme'}, [_definition('client', True, False)])
        assert texts(result) == ['Acme', ' signs. Then ', 'acme', ' pays.']

    def test_each_occurrence_consumes_one_slot(self):
        """Occurrence slots are consumed in document order"""
        node = tree(d(p(t('{{x}} then {{x}}'))))
        definitions = [_definition('x', False, True)]
        first = substitute(node, {'x': 'val'}, definitions)
        assert texts(first) == ['val', ' then ', 'Val']

    def test_unset_occurrence_keeps_placeholder_case(self):
        """Unset occurrences are not upgraded"""
        node = tree(d(p(t('{{x}}'))))
        result = substitute(node, {}, [_definition('x', True)])
        assert texts(result) == ['{{x}}']

    def test_counters_are_per_name(self):
        """Each name has its own occurrence counter"""
        node = tree(d(p(t('{{a}} {{b}}')), p(t('{{b}} {{a}}'))))
        definitions = [_definition('a', False, True), _definition('b', True, False)]
        result = substitute(node, {'a': 'x', 'b': 'y'}, definitions)
        assert texts(result) == ['x', ' ', 'Y', 'y', ' ', 'X']

    def test_names_without_definitions_never_upgraded(self):
        """Names with no occurrence metadata keep their case"""
        node = tree(d(p(t('{{a}}'))))
        result = substitute(node, {'a': 'lower'}, [_definition('other', True)])
        assert texts(result) == ['lower']

    def test_counters_fresh_per_call(self):
        """Counters restart on every substitute call"""
        node = tree(d(p(t('{{a}}'))))
        definitions = [_definition('a', True)]
        substitute(node, {'a': 'one'}, definitions)
        assert texts(substitute(node, {'a': 'two'}, definitions)) == ['Two']

    def test_proper_noun_upgraded_mid_sentence(self):
        """Tracked month names are capitalized even mid-sentence"""
        node = tree(d(p(t('Due in {{month}} each year.'))))
        result = substitute(node, {'month': 'may'}, [_definition('month', False)])
        assert texts(result) == ['Due in ', 'May', ' each year.']
