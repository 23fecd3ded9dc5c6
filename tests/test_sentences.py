"""
Tests for adf_render.sentences - sentence boundaries and proper-noun checks
"""

import sys
from pathlib import Path

# Add scripts directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "skills" / "standard-embed" / "scripts"))

from adf_render import sentences  # type: ignore
from adf_render.sentences import (  # type: ignore
    is_at_sentence_start_nlp,
    is_at_sentence_start_regex,
    sentence_starts,
    should_capitalize_as_proper_noun,
)


class TestSentenceStarts:
    """Tests for sentence_starts"""

    def test_simple_sentences(self):
        """Each sentence start is reported, beginning with 0"""
        text = 'First one. Second one! Third?'
        starts = sentence_starts(text)
        assert starts == [0, text.index('Second'), text.index('Third')]

    def test_abbreviations_kept_inside_sentence(self):
        """Dr., e.g. and Inc. do not split"""
        assert sentence_starts('See Dr. Smith, e.g. on Monday at Acme Inc. today.') == [0]

    def test_placeholders_masked(self):
        """Placeholders count as words and keep their offsets"""
        text = 'Done. {{client}} signs.'
        assert sentence_starts(text) == [0, text.index('{{')]

    def test_empty_text(self):
        """Empty text has a single start at 0"""
        assert sentence_starts('') == [0]


class TestSentenceStartChecks:
    """Tests for the segmenter and punctuation checks"""

    def test_nlp_allows_whitespace_before_position(self):
        """Whitespace between the boundary and the position is ignored"""
        text = 'Done.   {{x}}'
        assert is_at_sentence_start_nlp(text, text.index('{{'))

    def test_nlp_position_zero(self):
        """Position 0 is always a start"""
        assert is_at_sentence_start_nlp('anything', 0)

    def test_nlp_mid_sentence(self):
        """A word before the position means mid-sentence"""
        text = 'Pay the {{x}} now.'
        assert not is_at_sentence_start_nlp(text, text.index('{{'))

    def test_regex_fallback_counts_abbreviation_period(self):
        """The punctuation check alone cannot tell an abbreviation apart"""
        assert is_at_sentence_start_regex('Contact Dr. ')


class TestProperNouns:
    """Tests for should_capitalize_as_proper_noun"""

    def test_ambiguous_months_always_capitalized(self):
        """march and may are capitalized whatever the model says"""
        assert should_capitalize_as_proper_noun('march')
        assert should_capitalize_as_proper_noun('May')

    def test_plain_words_without_model(self):
        """With entity checks disabled only the built-in words qualify"""
        assert not should_capitalize_as_proper_noun('hammers')
        assert not should_capitalize_as_proper_noun('')
        assert not should_capitalize_as_proper_noun(None)

    def test_entity_model_consulted(self, monkeypatch):
        """A configured model decides for words outside the built-in list"""
        monkeypatch.setenv('STANDARD_EMBED_NER_MODEL', 'test-model')
        seen = []

        def fake_is_named_entity(model_name, value):
            seen.append((model_name, value))
            return value == 'London'

        monkeypatch.setattr(sentences, '_is_named_entity', fake_is_named_entity)
        assert should_capitalize_as_proper_noun('london')
        assert not should_capitalize_as_proper_noun('hammers')
        assert seen == [('test-model', 'London'), ('test-model', 'Hammers')]
