from __future__ import annotations

import random
import string
from types import MappingProxyType
from typing import Iterator, Optional, Tuple


ALPHABET = string.ascii_lowercase


class LetterMapping:
    """Immutable, partial substitution alphabet (encrypted char -> decrypted char).

    Every method that changes the mapping returns a new instance, so a search
    branch can hand its mapping to child branches without any of them seeing
    each other's extensions.
    """

    __slots__ = ("__pairs",)

    def __init__(self, pairs: Optional[dict[str, str]] = None):
        self.__pairs = MappingProxyType(dict(pairs or {}))

    @classmethod
    def random_permutation(cls, rng: Optional[random.Random] = None) -> "LetterMapping":
        """A complete key over a..z, shuffled with the given RNG."""
        rng = rng or random.Random()
        shuffled = list(ALPHABET)
        rng.shuffle(shuffled)
        return cls(dict(zip(ALPHABET, shuffled)))

    @classmethod
    def from_key(cls, key: str) -> "LetterMapping":
        """Build a complete key from its 26-character image of a..z."""
        if sorted(key) != list(ALPHABET):
            raise ValueError(f"Key must be a permutation of {ALPHABET!r}: {key!r}")
        return cls(dict(zip(ALPHABET, key)))

    def get(self, char: str, default: Optional[str] = None) -> Optional[str]:
        return self.__pairs.get(char, default)

    def items(self):
        return self.__pairs.items()

    def try_extend(self, candidate: str, encrypted: str) -> Optional["LetterMapping"]:
        """Merge the letters implied by decoding `encrypted` as `candidate`.

        Returns None when the candidate conflicts with itself, with an
        existing pair, or would map two encrypted letters to the same
        plaintext letter.
        """
        if len(candidate) != len(encrypted):
            return None

        tentative: dict[str, str] = {}
        for u_encoded, u_decoded in zip(encrypted, candidate):
            if tentative.get(u_encoded, u_decoded) != u_decoded:
                return None
            if self.__pairs.get(u_encoded, u_decoded) != u_decoded:
                return None
            tentative[u_encoded] = u_decoded

        merged = dict(self.__pairs)
        for u_encoded, u_decoded in tentative.items():
            merged.setdefault(u_encoded, u_decoded)

        if len(set(merged.values())) != len(merged):
            return None

        return LetterMapping(merged)

    def is_injective(self) -> bool:
        return len(set(self.__pairs.values())) == len(self.__pairs)

    def inverse(self) -> "LetterMapping":
        if not self.is_injective():
            raise ValueError("Cannot invert a mapping that is not injective")
        return LetterMapping({v: k for k, v in self.__pairs.items()})

    def apply(self, text: str) -> str:
        """Substitute every mapped character; anything unmapped passes through."""
        return "".join(self.__pairs.get(c, c) for c in text)

    def as_key(self, placeholder: str = "?") -> str:
        """Image of a..z as a 26-character string, `placeholder` where unmapped."""
        return "".join(self.__pairs.get(c, placeholder) for c in ALPHABET)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(sorted(self.__pairs.items()))

    def __contains__(self, char: object) -> bool:
        return char in self.__pairs

    def __len__(self) -> int:
        return len(self.__pairs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LetterMapping):
            return NotImplemented
        return dict(self.__pairs) == dict(other.__pairs)

    def __hash__(self) -> int:
        return hash(frozenset(self.__pairs.items()))

    def __repr__(self) -> str:
        pairs = " ".join(f"{k}->{v}" for k, v in self)
        return f"LetterMapping({pairs})"
