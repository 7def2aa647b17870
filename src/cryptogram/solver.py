from __future__ import annotations

import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from typing import Any, Iterable, Iterator, List, Optional, Tuple

import structlog

from cryptogram.dictionary_index import DictionaryIndex
from cryptogram.models.mapping import LetterMapping
from cryptogram.models.pattern import Pattern
from cryptogram.models.phrase import Phrase
from cryptogram.state_queue import SingleSlotQueue
from cryptogram.state_snapshot import SearchSnapshot

log = structlog.get_logger()

# Marks the end of one fanned-out branch on the results queue.
BRANCH_DONE = object()

HAND_OFF_POLL_SECONDS = 0.05


class SearchLimitExceeded(RuntimeError):
    pass


class SearchCancelled(RuntimeError):
    pass


class SearchProgress:
    """Node/solution counters for one solve call.

    Shared between worker threads when branches are fanned out, so every
    update happens under the lock. The search stops at its next node once
    `cancel()` is called or the consumer closes the state queue.
    """

    def __init__(
        self,
        phrase: Phrase,
        token_count: int,
        *,
        max_nodes: Optional[int] = None,
        state_queue: Optional[SingleSlotQueue[SearchSnapshot]] = None,
    ) -> None:
        self.phrase = phrase
        self.token_count = token_count
        self.max_nodes = max_nodes
        self.state_queue = state_queue
        self.nodes_visited = 0
        self.solutions_found = 0
        self._version = 0
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.state_queue is not None and self.state_queue.closed

    def cancel(self) -> None:
        self._cancelled.set()

    def visit(self, depth: int, token: str, mapping: LetterMapping) -> None:
        if self.cancelled:
            raise SearchCancelled("Search cancelled")
        with self._lock:
            self.nodes_visited += 1
            if self.max_nodes is not None and self.nodes_visited > self.max_nodes:
                raise SearchLimitExceeded(f"Search exceeded {self.max_nodes} nodes")
            self._publish(depth, token, mapping, complete=False)

    def hand_off(self, results: queue.Queue, item: Any) -> bool:
        """Put `item` on `results`, waiting for room. False if cancelled first."""
        while not self._cancelled.is_set():
            try:
                results.put(item, timeout=HAND_OFF_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def found(self, mapping: LetterMapping) -> None:
        with self._lock:
            self.solutions_found += 1
            self._publish(self.token_count, "", mapping, complete=False)

    def finish(self) -> None:
        with self._lock:
            self._publish(self.token_count, "", LetterMapping(), complete=True)
        if self.state_queue is not None:
            self.state_queue.close()

    def _publish(self, depth: int, token: str, mapping: LetterMapping, complete: bool) -> None:
        if self.state_queue is None:
            return
        self._version += 1
        self.state_queue.publish(
            SearchSnapshot(
                state_version=self._version,
                complete=complete,
                nodes_visited=self.nodes_visited,
                solutions_found=self.solutions_found,
                depth=depth,
                token_count=self.token_count,
                current_token=token,
                partial_plaintext=self.phrase.render_partial(mapping),
                ciphertext=self.phrase.text,
            )
        )


class Solver:
    """Backtracking cryptogram solver over a shared DictionaryIndex."""

    def __init__(self, index: DictionaryIndex, *, workers: int = 0) -> None:
        self.index = index
        self.workers = workers

    @classmethod
    def from_dictionary(cls, words: Iterable[str], *, workers: int = 0) -> "Solver":
        return cls(DictionaryIndex(words), workers=workers)

    def find_candidates(self, encrypted_word: str, mapping: LetterMapping) -> frozenset[str]:
        """Dictionary words that could decrypt to `encrypted_word` under `mapping`."""
        candidates = self.index.words_by_pattern(Pattern.from_word(encrypted_word))

        for idx, u in enumerate(encrypted_word):
            mapped_char = mapping.get(u)
            if mapped_char is None:
                continue
            candidates = candidates & self.index.words_by_position_and_char(idx, mapped_char)
            if not candidates:
                break

        return candidates

    def solve(
        self,
        phrase: Phrase | str,
        *,
        max_nodes: Optional[int] = None,
        state_queue: Optional[SingleSlotQueue[SearchSnapshot]] = None,
    ) -> Iterator[str]:
        """Yield every decoding of `phrase`, in no particular order."""
        if isinstance(phrase, str):
            phrase = Phrase.from_str(phrase)
        with closing(self.solve_mappings(phrase, max_nodes=max_nodes, state_queue=state_queue)) as mappings:
            for mapping in mappings:
                yield phrase.render(mapping)

    def solve_mappings(
        self,
        phrase: Phrase,
        *,
        max_nodes: Optional[int] = None,
        state_queue: Optional[SingleSlotQueue[SearchSnapshot]] = None,
    ) -> Iterator[LetterMapping]:
        """Yield every complete mapping that turns each token of `phrase` into a word."""
        encrypted_words = phrase.tokens()
        progress = SearchProgress(
            phrase, len(encrypted_words), max_nodes=max_nodes, state_queue=state_queue
        )
        bound = log.bind(tokens=len(encrypted_words), workers=self.workers)
        bound.info("solve started")

        try:
            if self.workers > 0 and encrypted_words:
                mappings = self._fan_out(LetterMapping(), encrypted_words, progress)
            else:
                mappings = self._guess(LetterMapping(), encrypted_words, progress)
            with closing(mappings):
                for mapping in mappings:
                    progress.found(mapping)
                    yield mapping
        finally:
            progress.finish()
            bound.info(
                "solve finished",
                nodes=progress.nodes_visited,
                solutions=progress.solutions_found,
            )

    def _expand(
        self, mapping: LetterMapping, encrypted_words: Tuple[str, ...]
    ) -> Tuple[str, Tuple[str, ...], List[LetterMapping]]:
        """Pick the most constrained token and extend `mapping` with each of its candidates.

        Ties go to the token that appears first in the phrase.
        """
        candidate_sets = [self.find_candidates(word, mapping) for word in encrypted_words]
        target = min(range(len(encrypted_words)), key=lambda i: len(candidate_sets[i]))
        encrypted_word = encrypted_words[target]
        remaining = encrypted_words[:target] + encrypted_words[target + 1:]

        extended = []
        for word in sorted(candidate_sets[target]):
            new_mapping = mapping.try_extend(word, encrypted_word)
            if new_mapping is not None:
                extended.append(new_mapping)

        return encrypted_word, remaining, extended

    def _guess(
        self,
        mapping: LetterMapping,
        encrypted_words: Tuple[str, ...],
        progress: SearchProgress,
    ) -> Iterator[LetterMapping]:
        depth = progress.token_count - len(encrypted_words)
        if not encrypted_words:
            progress.visit(depth, "", mapping)
            yield mapping
            return

        encrypted_word, remaining, extended = self._expand(mapping, encrypted_words)
        progress.visit(depth, encrypted_word, mapping)
        for new_mapping in extended:
            yield from self._guess(new_mapping, remaining, progress)

    def _fan_out(
        self,
        mapping: LetterMapping,
        encrypted_words: Tuple[str, ...],
        progress: SearchProgress,
    ) -> Iterator[LetterMapping]:
        """Search each first-level branch on its own worker thread.

        Workers hand their mappings over a bounded queue as they find them, so
        results arrive in completion order. When the consumer stops early the
        workers are cancelled and branches that never started are dropped.
        """
        encrypted_word, remaining, extended = self._expand(mapping, encrypted_words)
        progress.visit(0, encrypted_word, mapping)
        log.debug("fanning out", token=encrypted_word, branches=len(extended))

        results: queue.Queue = queue.Queue(maxsize=self.workers)
        executor = ThreadPoolExecutor(max_workers=self.workers)
        try:
            for new_mapping in extended:
                executor.submit(self._search_branch, new_mapping, remaining, progress, results)

            pending = len(extended)
            while pending:
                item = results.get()
                if item is BRANCH_DONE:
                    pending -= 1
                elif isinstance(item, Exception):
                    raise item
                else:
                    yield item
        finally:
            progress.cancel()
            executor.shutdown(wait=True, cancel_futures=True)

    def _search_branch(
        self,
        mapping: LetterMapping,
        encrypted_words: Tuple[str, ...],
        progress: SearchProgress,
        results: queue.Queue,
    ) -> None:
        """Worker side of `_fan_out`: one branch, ending with BRANCH_DONE or its error."""
        try:
            for new_mapping in self._guess(mapping, encrypted_words, progress):
                if not progress.hand_off(results, new_mapping):
                    return
        except Exception as e:
            progress.hand_off(results, e)
            return
        progress.hand_off(results, BRANCH_DONE)
