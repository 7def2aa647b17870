import os
import pathlib
import random

import structlog

from cryptogram.models.mapping import LetterMapping
from cryptogram.models.phrase import Phrase


log = structlog.get_logger()

KEY_DIR = pathlib.Path(os.environ.get("CRYPTOGRAM_KEY_DIR", pathlib.Path(__file__).parent / "keys"))
KEY_FILE_NAME = "substitution.key"


def get_key(key_dir: pathlib.Path | None = None) -> LetterMapping:
    """Returns the demo substitution key.
    If the key file does not exist, it creates a new key and saves it to the key file."""
    key_dir = key_dir or KEY_DIR
    keyfile = key_dir / KEY_FILE_NAME

    if not os.path.exists(keyfile):
        key_dir.mkdir(parents=True, exist_ok=True)
        key = LetterMapping.random_permutation(random.SystemRandom())
        with open(keyfile, "w", encoding="ascii") as f:
            f.write(key.as_key())
        log.info("created substitution key", keyfile=str(keyfile))
        return key

    with open(keyfile, "r", encoding="ascii") as f:
        return LetterMapping.from_key(f.read().strip())


def encrypt(plaintext: str, key: LetterMapping) -> str:
    """ Encrypts the plaintext with the substitution key.
    Raises PhraseError for non-ASCII text.
    """
    return Phrase.from_str(plaintext).render(key)

