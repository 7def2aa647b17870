from collections import defaultdict
from typing import Iterable

import structlog

from cryptogram.models.pattern import Pattern

log = structlog.get_logger()

EMPTY: frozenset[str] = frozenset()


class DictionaryIndex:
    """Read-only lookup tables over a word list.

    Built once, then shared by every solve. Nothing here is mutated after
    construction, so concurrent readers need no locking.
    """

    def __init__(self, words: Iterable[str]):
        by_pattern: dict[Pattern, set[str]] = defaultdict(set)
        by_position: dict[tuple[int, str], set[str]] = defaultdict(set)
        unique_words: set[str] = set()

        for word in words:
            unique_words.add(word)
            by_pattern[Pattern.from_word(word)].add(word)
            for idx, char in enumerate(word):
                by_position[(idx, char)].add(word)

        self.__by_pattern = {k: frozenset(v) for k, v in by_pattern.items()}
        self.__by_position = {k: frozenset(v) for k, v in by_position.items()}
        self.__word_count = len(unique_words)

        log.debug("index built", words=self.word_count, patterns=self.pattern_count)

    @property
    def word_count(self) -> int:
        return self.__word_count

    @property
    def pattern_count(self) -> int:
        return len(self.__by_pattern)

    def words_by_pattern(self, pattern: Pattern) -> frozenset[str]:
        return self.__by_pattern.get(pattern, EMPTY)

    def words_by_position_and_char(self, position: int, char: str) -> frozenset[str]:
        return self.__by_position.get((position, char), EMPTY)

    def __contains__(self, word: object) -> bool:
        if not isinstance(word, str):
            return False
        return word in self.words_by_pattern(Pattern.from_word(word))

    def __len__(self) -> int:
        return self.__word_count
