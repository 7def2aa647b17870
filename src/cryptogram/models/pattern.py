from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True, slots=True)
class Pattern:
    """Repeated-letter structure of a word, independent of the letters themselves.

    Each character is replaced by the order in which it was first seen, so
    "book" and "feed" both become (0, 1, 1, 2).
    """

    symbols: Tuple[int, ...]

    @classmethod
    def from_word(cls, word: str) -> "Pattern":
        symbol_map: dict[str, int] = {}
        symbols = []
        for char in word:
            if char not in symbol_map:
                symbol_map[char] = len(symbol_map)
            symbols.append(symbol_map[char])
        return cls(tuple(symbols))

    def __len__(self) -> int:
        return len(self.symbols)

    def __str__(self) -> str:
        return ".".join(str(s) for s in self.symbols)


def canonicalize(word: str) -> Pattern:
    """Shorthand for Pattern.from_word()."""
    return Pattern.from_word(word)
