"""
Tests for API key generation.
"""

import pytest

from utils.keys import generate_api_key


def test_length_and_alphabet():
    key = generate_api_key(32)
    assert len(key) == 32
    assert key.isalnum()


def test_keys_are_unique():
    assert len({generate_api_key(32) for _ in range(50)}) == 50


def test_rejects_non_positive_length():
    with pytest.raises(ValueError):
        generate_api_key(0)
