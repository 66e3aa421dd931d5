# services/tokens.py
import secrets
import string

from reviewdesk.settings.config import settings

TOKEN_ALPHABET = string.ascii_letters + string.digits


class TokenGenerator:
    """Fixed-length, URL-safe access tokens from the OS CSPRNG."""

    def __init__(self, length: int | None = None, alphabet: str = TOKEN_ALPHABET):
        self.length = length or settings.TOKEN_LENGTH
        if self.length < 16:
            raise ValueError("token length below 16 characters is too guessable")
        self.alphabet = alphabet

    def __call__(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))


default_tokens = TokenGenerator()


def new_token() -> str:
    return default_tokens()
