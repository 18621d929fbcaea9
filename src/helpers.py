import os
from typing import Optional

from hashids import Hashids

ALPHABET = "abcdefghijklmnopqrstuvwxyz1234567890"
MIN_LENGTH = 3
ID_SALT = os.getenv("ID_SALT", "")


class IdentifierCodec:
    """Reversible mapping between paste ordinals and public identifiers.

    Identifiers depend on the salt: decoding an identifier issued under a
    different salt fails, so the salt must never change once pastes exist.
    """

    def __init__(
        self, salt: str = ID_SALT, alphabet: str = ALPHABET, min_length: int = MIN_LENGTH
    ):
        # Raises ValueError on a bad alphabet
        self._hashids = Hashids(salt=salt, min_length=min_length, alphabet=alphabet)
        self.alphabet = frozenset(alphabet)

    def encode(self, ordinal: int) -> str:
        """Encode a non-negative ordinal into an identifier."""

        if ordinal < 0:
            raise ValueError(f"Cannot encode negative ordinal: {ordinal}")
        return self._hashids.encode(ordinal)

    def decode(self, identifier: str) -> Optional[int]:
        """Decode an identifier back into its ordinal, or None if it is not one of ours."""

        if not identifier or not self.alphabet.issuperset(identifier):
            return None

        numbers = self._hashids.decode(identifier)
        if len(numbers) != 1:
            return None
        return numbers[0]
