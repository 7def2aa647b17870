import sys
from functools import lru_cache

from fastapi import FastAPI, APIRouter, HTTPException
import structlog

from cryptogram.models.phrase import Phrase, PhraseError
from cryptogram.solver import SearchLimitExceeded, Solver
from cryptogram.utils import load_wordlist

from . import crypto, models


def configure_logging() -> None:
    """ Render every structlog event as JSON, the engine's included. """
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(indent=2),
        ],
        logger_factory=lambda *args: structlog.PrintLogger(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


configure_logging()
log = structlog.get_logger()

DEFAULT_MAX_NODES = 200_000

DEMO_PLAINTEXTS = {
    1: "hello world",
    2: "the quick brown fox jumps over the lazy dog",
    3: "we hold these truths to be self evident that all men are created equal",
}

# Create the FastAPI app
app = FastAPI(title="Cryptogram Demo API")

# Create the router for API endpoints
router = APIRouter()


@lru_cache(maxsize=1)
def get_solver() -> Solver:
    """ One solver, built from the bundled word list, shared by every request. """
    solver = Solver.from_dictionary(load_wordlist())
    log.info("solver ready", words=solver.index.word_count, patterns=solver.index.pattern_count)
    return solver


def build_encrypted_response(plaintext: str) -> models.EncryptResponse:
    """ Build a response with the encrypted ciphertext of the given plaintext. """
    try:
        ciphertext = crypto.encrypt(plaintext, crypto.get_key())
    except PhraseError as e:
        raise HTTPException(status_code=400, detail=f"Encryption error: {e}")

    log.info("encrypted", plaintext=plaintext, ciphertext=ciphertext)
    return models.EncryptResponse(ciphertext=ciphertext)


@router.get("/demo1", response_model=models.EncryptResponse)
def demo1():
    """ Two short words. """
    return build_encrypted_response(DEMO_PLAINTEXTS[1])


@router.get("/demo2", response_model=models.EncryptResponse)
def demo2():
    """ A pangram, so every letter of the key is exercised. """
    return build_encrypted_response(DEMO_PLAINTEXTS[2])


@router.get("/demo3", response_model=models.EncryptResponse)
def demo3():
    """ A longer sentence with repeated letters and words. """
    return build_encrypted_response(DEMO_PLAINTEXTS[3])


@router.post("/encrypt", response_model=models.EncryptResponse)
def encrypt_api(req: models.EncryptRequest):
    """ Encrypt the given plaintext with the demo key. """
    return build_encrypted_response(req.plaintext)


@router.post("/solve", response_model=models.SolveResponse)
def solve(req: models.SolveRequest):
    """ Solve the given cryptogram against the bundled word list. """
    try:
        phrase = Phrase.from_str(req.ciphertext)
    except PhraseError as e:
        raise HTTPException(status_code=400, detail=f"{e}")

    max_nodes = req.max_nodes or DEFAULT_MAX_NODES
    try:
        solutions = sorted(get_solver().solve(phrase, max_nodes=max_nodes))
    except SearchLimitExceeded as e:
        log.warning("search limit exceeded", ciphertext=phrase.text, max_nodes=max_nodes)
        raise HTTPException(status_code=422, detail=f"{e}")

    log.info("solved", ciphertext=phrase.text, count=len(solutions))
    return models.SolveResponse(
        ciphertext=phrase.text,
        solutions=solutions,
        count=len(solutions),
    )


# Include the router in the app (after all routes are defined)
app.include_router(router, prefix="/api")
