"""
Shared pytest configuration
"""

import pytest


@pytest.fixture(autouse=True)
def no_entity_model(monkeypatch):
    """Keep proper-noun checks to the built-in word list unless a test opts in"""
    monkeypatch.setenv('STANDARD_EMBED_NER_MODEL', '')
