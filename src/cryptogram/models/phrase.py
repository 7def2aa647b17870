from dataclasses import dataclass
from typing import Tuple

from cryptogram.models.mapping import LetterMapping


class PhraseError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class Phrase:
    """A phrase to be solved, guaranteed to be lowercase ASCII text."""

    text: str

    @classmethod
    def from_str(cls, text: str) -> "Phrase":
        if not text.isascii():
            raise PhraseError(f"Phrase must be ASCII text: {text!r}")
        return cls(text.lower())

    def tokens(self) -> Tuple[str, ...]:
        """Distinct whitespace-separated tokens in first-occurrence order."""
        return tuple(dict.fromkeys(self.text.split()))

    def render(self, mapping: LetterMapping) -> str:
        return mapping.apply(self.text)

    def render_partial(self, mapping: LetterMapping, placeholder: str = "_") -> str:
        """Like render(), but letters without a mapping show as `placeholder`."""
        return "".join(c if c.isspace() else mapping.get(c, placeholder) for c in self.text)

    def __str__(self) -> str:
        return self.text
