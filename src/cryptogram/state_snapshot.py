from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SearchSnapshot:
    """Minimal immutable snapshot of search progress."""

    state_version: int
    complete: bool
    nodes_visited: int
    solutions_found: int
    depth: int
    token_count: int

    current_token: str = ""
    partial_plaintext: str = ""
    ciphertext: str = ""
