"""Tests for share token generation."""

import pytest

from reviewdesk.services.tokens import TOKEN_ALPHABET, TokenGenerator, new_token


class TestTokenGenerator:
    def test_default_length_and_alphabet(self):
        token = new_token()
        assert len(token) == 32
        assert set(token) <= set(TOKEN_ALPHABET)

    def test_custom_length(self):
        assert len(TokenGenerator(length=48)()) == 48

    def test_tokens_do_not_repeat(self):
        gen = TokenGenerator()
        assert len({gen() for _ in range(200)}) == 200

    def test_short_tokens_are_refused(self):
        with pytest.raises(ValueError):
            TokenGenerator(length=8)
