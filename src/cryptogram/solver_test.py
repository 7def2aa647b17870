import itertools
import random

import pytest

from cryptogram.models.mapping import LetterMapping
from cryptogram.models.phrase import Phrase
from cryptogram.solver import SearchCancelled, SearchLimitExceeded, Solver
from cryptogram.state_queue import SingleSlotQueue
from cryptogram.state_snapshot import SearchSnapshot


PANGRAM = "the quick brown fox jumps over the lazy dog"
PANGRAM_WORDS = PANGRAM.split() + ["cat", "see", "too", "deed", "roof", "book", "feed", "big", "house"]
# 200 three-letter words with distinct letters: "xyz uvw" has thousands of decodings.
WIDE_WORDS = ["".join(p) for p in itertools.permutations("abcdefghij", 3)][:200]


def assert_consistent(ciphertext: str, plaintext: str) -> None:
    """Equal cipher letters decode to equal letters, and distinct ones to distinct letters."""
    assert len(ciphertext) == len(plaintext)
    pairs = {}
    for c, p in zip(ciphertext, plaintext):
        if c.isspace():
            assert p == c
            continue
        assert pairs.setdefault(c, p) == p
    assert len(set(pairs.values())) == len(pairs)


class TestFindCandidates:
    """Test suite for the candidate matcher"""

    def test_pattern_only(self):
        """Test an empty mapping filters by pattern alone"""
        solver = Solver.from_dictionary(["too", "see", "dog", "cat"])
        assert solver.find_candidates("xee", LetterMapping()) == {"too", "see"}

    def test_committed_letters(self):
        """Test committed letters narrow the candidates"""
        solver = Solver.from_dictionary(["too", "see", "dog", "cat"])
        assert solver.find_candidates("xee", LetterMapping({"x": "s"})) == {"see"}
        assert solver.find_candidates("xee", LetterMapping({"e": "a"})) == frozenset()

    def test_no_pattern_match(self):
        """Test tokens with no structural match have no candidates"""
        solver = Solver.from_dictionary(["dog", "cat"])
        assert solver.find_candidates("xyzz", LetterMapping()) == frozenset()


class TestSolve:
    """Test suite for the backtracking search"""

    def test_ambiguous_single_token(self):
        """Test both double-letter words are returned"""
        solver = Solver.from_dictionary(["too", "see"])
        assert sorted(solver.solve("xee")) == ["see", "too"]

    def test_unsatisfiable_token(self):
        """Test a token with no candidates yields nothing"""
        solver = Solver.from_dictionary(["dog", "cat"])
        assert list(solver.solve("xyzz")) == []

    def test_multi_word_consistency(self):
        """Test letters decode the same way across tokens"""
        solver = Solver.from_dictionary(["dog", "god"])
        solutions = sorted(solver.solve("god dog"))
        assert solutions == ["dog god", "god dog"]
        for solution in solutions:
            assert_consistent("god dog", solution)

    def test_injectivity_enforced(self):
        """Test two cipher letters never decode to the same letter"""
        solver = Solver.from_dictionary(["to"])
        assert list(solver.solve("ab cd")) == []
        assert list(solver.solve("ab ab")) == ["to to"]

    def test_mappings_are_injective(self):
        """Test every returned mapping is injective"""
        solver = Solver.from_dictionary(["dog", "god", "cat", "act", "tac", "see", "too"])
        mappings = list(solver.solve_mappings(Phrase.from_str("xyz zyx")))
        assert mappings
        for mapping in mappings:
            assert mapping.is_injective()

    def test_empty_phrase(self):
        """Test a phrase without tokens yields the empty mapping once"""
        solver = Solver.from_dictionary(["dog"])
        assert list(solver.solve_mappings(Phrase.from_str(""))) == [LetterMapping()]
        assert list(solver.solve("  ")) == ["  "]

    def test_duplicate_tokens(self):
        """Test repeated tokens are solved once and rendered everywhere"""
        solver = Solver.from_dictionary(["dog"])
        assert list(solver.solve("abc abc  abc")) == ["dog dog  dog"]

    def test_accepts_phrase_object(self):
        """Test solve takes a Phrase as well as a str"""
        solver = Solver.from_dictionary(["too", "see"])
        assert sorted(solver.solve(Phrase.from_str("XEE"))) == ["see", "too"]

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_round_trip(self, seed):
        """Test an encrypted dictionary phrase solves back to itself"""
        key = LetterMapping.random_permutation(random.Random(seed))
        ciphertext = key.apply(PANGRAM)

        solver = Solver.from_dictionary(PANGRAM_WORDS)
        solutions = list(solver.solve(ciphertext))

        assert PANGRAM in solutions
        for solution in solutions:
            assert_consistent(ciphertext, solution)

    def test_workers_match_sequential(self):
        """Test fanning out branches gives the same solutions"""
        words = ["dog", "god", "cat", "act", "tac", "see", "too", "big", "bag"]
        phrase = "xyz zyx wvv"

        sequential = sorted(Solver.from_dictionary(words).solve(phrase))
        parallel = sorted(Solver.from_dictionary(words, workers=3).solve(phrase))

        assert sequential
        assert parallel == sequential


class TestSearchLimits:
    """Test suite for node budgets and progress snapshots"""

    def test_max_nodes_exceeded(self):
        """Test the node budget interrupts the search"""
        solver = Solver.from_dictionary(["too", "see"])
        with pytest.raises(SearchLimitExceeded, match="1 nodes"):
            list(solver.solve("xee", max_nodes=1))

    def test_max_nodes_exceeded_with_workers(self):
        """Test the node budget also applies on worker threads"""
        solver = Solver.from_dictionary(["too", "see"], workers=2)
        with pytest.raises(SearchLimitExceeded):
            list(solver.solve("xee", max_nodes=2))

    def test_max_nodes_generous(self):
        """Test a large budget changes nothing"""
        solver = Solver.from_dictionary(["too", "see"])
        assert sorted(solver.solve("xee", max_nodes=100)) == ["see", "too"]

    def test_snapshots_published_and_queue_closed(self):
        """Test the solver publishes a final snapshot and closes the queue"""
        solver = Solver.from_dictionary(["too", "see"])
        state_queue: SingleSlotQueue[SearchSnapshot] = SingleSlotQueue()

        solutions = list(solver.solve("xee", state_queue=state_queue))

        assert len(solutions) == 2
        assert state_queue.closed
        final = state_queue.get(timeout=1)
        assert final is not None
        assert final.complete
        assert final.solutions_found == 2
        assert final.nodes_visited == 3
        assert final.ciphertext == "xee"
        assert state_queue.get(timeout=1) is None

    def test_queue_closed_on_error(self):
        """Test the queue is closed even when the search is interrupted"""
        solver = Solver.from_dictionary(["too", "see"])
        state_queue: SingleSlotQueue[SearchSnapshot] = SingleSlotQueue()
        with pytest.raises(SearchLimitExceeded):
            list(solver.solve("xee", max_nodes=1, state_queue=state_queue))
        assert state_queue.closed


class TestEarlyStop:
    """Test suite for stopping a search before it is exhausted"""

    def final_snapshot(self, state_queue: SingleSlotQueue[SearchSnapshot]) -> SearchSnapshot:
        final = state_queue.get(timeout=5)
        assert final is not None
        assert final.complete
        return final

    @pytest.mark.parametrize("workers", [0, 4])
    def test_close_after_first_solution(self, workers):
        """Test closing the generator stops the search and closes the queue"""
        solver = Solver.from_dictionary(WIDE_WORDS, workers=workers)

        exhaustive: SingleSlotQueue[SearchSnapshot] = SingleSlotQueue()
        assert len(list(solver.solve("xyz uvw", state_queue=exhaustive))) > 1000
        total_nodes = self.final_snapshot(exhaustive).nodes_visited

        state_queue: SingleSlotQueue[SearchSnapshot] = SingleSlotQueue()
        solutions = solver.solve("xyz uvw", state_queue=state_queue)
        first = next(solutions)
        solutions.close()

        assert_consistent("xyz uvw", first)
        assert state_queue.closed
        final = self.final_snapshot(state_queue)
        assert final.solutions_found == 1
        assert final.nodes_visited < 50 < total_nodes

    @pytest.mark.parametrize("workers", [0, 4])
    def test_closed_state_queue_cancels(self, workers):
        """Test the search stops once the progress consumer closes the queue"""
        solver = Solver.from_dictionary(WIDE_WORDS, workers=workers)
        state_queue: SingleSlotQueue[SearchSnapshot] = SingleSlotQueue()

        solutions = solver.solve("xyz uvw", state_queue=state_queue)
        next(solutions)
        state_queue.close()

        with pytest.raises(SearchCancelled, match="cancelled"):
            list(solutions)

    def test_worker_error_stops_siblings(self):
        """Test a budget error on one worker ends the whole fanned-out search"""
        solver = Solver.from_dictionary(WIDE_WORDS, workers=4)
        with pytest.raises(SearchLimitExceeded, match="30 nodes"):
            list(solver.solve("xyz uvw", max_nodes=30))
