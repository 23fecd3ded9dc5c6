"""
ABOUTME: Sentence boundaries and proper-noun checks for smart case matching
ABOUTME: spaCy sentencizer for boundaries, optional spaCy NER model for proper nouns
"""

import os
import sys
from functools import lru_cache
from typing import List, Optional

import spacy
from spacy.language import Language

from .common import PLACEHOLDER_MASK_PATTERN, SENTENCE_END_PATTERN

DEFAULT_NER_MODEL = 'en_core_web_sm'

# Ambiguous words that entity recognition misses ("march" the verb, "may" the modal)
ALWAYS_CAPITALIZE_WORDS = frozenset({'march', 'may'})

_segmenter: Optional[Language] = None


def get_segmenter() -> Language:
    """
    Blank English pipeline with the rule-based sentencizer.

    The English tokenizer exceptions keep abbreviations such as "Dr.",
    "e.g." and "Inc." as single tokens, so they never end a sentence.
    """
    global _segmenter
    if _segmenter is None:
        nlp = spacy.blank('en')
        nlp.add_pipe('sentencizer')
        _segmenter = nlp
    return _segmenter


def get_ner_model_name() -> str:
    """NER model from STANDARD_EMBED_NER_MODEL; an empty value disables entity checks"""
    return os.getenv('STANDARD_EMBED_NER_MODEL', DEFAULT_NER_MODEL).strip()


@lru_cache(maxsize=None)
def _load_entity_model(name: str) -> Optional[Language]:
    try:
        return spacy.load(name, disable=['parser', 'lemmatizer'])
    except OSError:
        print(f"Warning: spaCy model '{name}' not installed, proper-noun detection limited "
              f"to built-in words", file=sys.stderr)
        return None


@lru_cache(maxsize=1024)
def _is_named_entity(model_name: str, value: str) -> bool:
    nlp = _load_entity_model(model_name)
    if nlp is None:
        return False
    # The entity must cover the whole value, not one word of a phrase
    return any(ent.start_char == 0 and ent.end_char == len(value) for ent in nlp(value).ents)


def _mask_placeholders(text: str) -> str:
    """
    Replace every {{...}} with an equal-length word.

    Offsets stay aligned, and braces never sit between a period and the
    following word where they would hide the boundary from the sentencizer.
    """
    return PLACEHOLDER_MASK_PATTERN.sub(lambda m: 'X' * len(m.group(0)), text)


def sentence_starts(text: str) -> List[int]:
    """Character offsets where sentences start in `text` (always includes 0)"""
    if not text:
        return [0]
    doc = get_segmenter()(_mask_placeholders(text))
    starts = [sent.start_char for sent in doc.sents]
    if not starts or starts[0] != 0:
        starts.insert(0, 0)
    return starts


def is_at_sentence_start_regex(preceding_text: str) -> bool:
    """
    Punctuation-only check, used when the full paragraph text is unknown.

    True when the preceding text is blank or ends with . ! or ?
    (optionally followed by a closing quote and whitespace).
    """
    if preceding_text.rstrip() == '':
        return True
    return SENTENCE_END_PATTERN.search(preceding_text) is not None


def is_at_sentence_start_nlp(full_text: str, position: int,
                             boundaries: Optional[List[int]] = None) -> bool:
    """True when only whitespace separates `position` from a sentence start"""
    if not full_text or position == 0:
        return True
    if boundaries is None:
        boundaries = sentence_starts(full_text)
    for boundary in boundaries:
        if boundary <= position and full_text[boundary:position].strip() == '':
            return True
    return False


def should_capitalize_as_proper_noun(value: str) -> bool:
    """
    Check whether a value names something that is always capitalized.

    Months, places, people and organisations are recognized by the NER
    model when one is installed; the value is capitalized first so the
    model sees it the way it would appear in running text.
    """
    if not value or not isinstance(value, str):
        return False
    if value.lower() in ALWAYS_CAPITALIZE_WORDS:
        return True
    model_name = get_ner_model_name()
    if not model_name:
        return False
    return _is_named_entity(model_name, value[0].upper() + value[1:])
