import logging
import pathlib
import sys
from typing import Iterable, List, Optional

import structlog

log = structlog.get_logger()

RESOURCE_DIR = pathlib.Path(__file__).parent / "resources"
DEFAULT_WORDLIST = RESOURCE_DIR / "words.txt"

LogLevel = int


class WordlistLoadError(RuntimeError):
    pass


def configure_logging(verbose: bool = False, quiet: bool = False) -> LogLevel:
    """Route structlog to stderr at a level picked from the CLI flags."""
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=lambda *args: structlog.PrintLogger(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    return level


def normalize_words(words: Iterable[str]) -> List[str]:
    """Lowercase the words and drop anything that isn't plain ASCII letters."""
    accepted = []
    skipped = 0
    for word in words:
        word = word.strip().lower()
        if not word:
            continue
        if not (word.isascii() and word.isalpha()):
            skipped += 1
            continue
        accepted.append(word)

    if skipped:
        log.warning("skipped non-ascii words", skipped=skipped, accepted=len(accepted))
    return accepted


def load_wordlist(file_path: Optional[str | pathlib.Path] = None) -> List[str]:
    """Load a whitespace-separated word list, defaulting to the bundled one."""
    path = pathlib.Path(file_path) if file_path else DEFAULT_WORDLIST
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            data = f.read()
    except OSError as e:
        raise WordlistLoadError(f"Could not read word list {path}: {e}") from e

    words = normalize_words(data.split())
    log.debug("wordlist loaded", path=str(path), words=len(words))
    return words
