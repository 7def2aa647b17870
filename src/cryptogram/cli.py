import random
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple, TypeVar

import click
import requests
from rich.console import Console

from cryptogram.models.mapping import LetterMapping
from cryptogram.models.phrase import Phrase, PhraseError
from cryptogram.solver import SearchCancelled, SearchLimitExceeded, Solver
from cryptogram.state_queue import SingleSlotQueue
from cryptogram.state_snapshot import SearchSnapshot
from cryptogram.ui import render_solutions, ui_loop
from cryptogram.utils import WordlistLoadError, configure_logging, load_wordlist

T = TypeVar("T")

DEMO_ENDPOINT = "http://127.0.0.1:8000/api"

console = Console(stderr=True)


@click.group(context_settings={"auto_envvar_prefix": "CRYPTOGRAM"})
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
def cli(verbose: bool, quiet: bool):
    configure_logging(verbose=verbose, quiet=quiet)


def timed(fn: Callable[..., T], *args, **kwargs) -> Tuple[float, T]:
    """Call fn and return (elapsed seconds, result)."""
    start = time.perf_counter()
    result = fn(*args, **kwargs)
    return time.perf_counter() - start, result


def build_solver(wordlist: Optional[str], workers: int) -> Solver:
    try:
        words = load_wordlist(wordlist)
    except WordlistLoadError as e:
        raise click.ClickException(str(e))

    elapsed, solver = timed(Solver.from_dictionary, words, workers=workers)
    console.print(
        f"Initialize: {elapsed:.3f}s ({solver.index.word_count} words, {solver.index.pattern_count} patterns)"
    )
    return solver


def run_solver(solver: Solver, phrase: Phrase, *, max_nodes: Optional[int], live: bool) -> List[str]:
    """Solve a phrase, optionally rendering live progress while the search runs."""
    state_queue: Optional[SingleSlotQueue[SearchSnapshot]] = SingleSlotQueue() if live else None

    def solve_sorted() -> List[str]:
        return sorted(solver.solve(phrase, max_nodes=max_nodes, state_queue=state_queue))

    if state_queue is None:
        return solve_sorted()

    with ThreadPoolExecutor() as executor:
        future = executor.submit(solve_sorted)

        try:
            ui_loop(state_queue)
        except KeyboardInterrupt:
            state_queue.close()

        return future.result()


def solve_and_print(solver: Solver, text: str, *, max_nodes: Optional[int], live: bool, output_format: str) -> None:
    try:
        phrase = Phrase.from_str(text)
    except PhraseError as e:
        raise click.UsageError(str(e))

    try:
        elapsed, solutions = timed(run_solver, solver, phrase, max_nodes=max_nodes, live=live)
    except SearchLimitExceeded as e:
        raise click.ClickException(str(e))
    except SearchCancelled:
        raise click.Abort()

    if output_format == "table":
        console.print(render_solutions(solutions, phrase.text))
    else:
        for solution in solutions:
            click.echo(solution)

    if not solutions:
        console.print("No solutions found.")
    elif len(solutions) > 1:
        console.print(f"{len(solutions)} solutions found.")
    console.print(f"Elapsed: {elapsed:.3f}s")


def solve_options(fn):
    """Options shared by every command that runs the solver."""
    fn = click.option("--wordlist", "-w", type=click.Path(exists=True, dir_okay=False),
                      help="Word list file, one word per line (default: bundled list)")(fn)
    fn = click.option("--workers", "-j", type=click.IntRange(min=0), default=0,
                      help="Worker threads for first-level branches (0 = sequential)")(fn)
    fn = click.option("--max-nodes", type=click.IntRange(min=1), default=None,
                      help="Give up after visiting this many search nodes")(fn)
    fn = click.option("--live", is_flag=True, help="Show live search progress")(fn)
    fn = click.option("--format", "output_format", type=click.Choice(["plain", "table"]), default="plain")(fn)
    return fn


@cli.command()
@click.argument("phrase", nargs=-1, required=True)
@solve_options
def solve(phrase: Tuple[str, ...], wordlist: Optional[str], workers: int,
          max_nodes: Optional[int], live: bool, output_format: str):
    """Solve a cryptogram, printing every decoding (sorted)."""
    solver = build_solver(wordlist, workers)
    solve_and_print(solver, " ".join(phrase), max_nodes=max_nodes, live=live, output_format=output_format)


@cli.command()
@click.argument("phrase", nargs=-1, required=True)
@click.option("--seed", type=int, default=None, help="Seed for the random key")
@click.option("--key", "key_str", default=None, help="Use this 26-letter key instead of a random one")
def encrypt(phrase: Tuple[str, ...], seed: Optional[int], key_str: Optional[str]):
    """Encrypt a phrase with a substitution key, for making puzzles."""
    try:
        plaintext = Phrase.from_str(" ".join(phrase))
    except PhraseError as e:
        raise click.UsageError(str(e))

    if key_str:
        try:
            key = LetterMapping.from_key(key_str.lower())
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--key")
    else:
        key = LetterMapping.random_permutation(random.Random(seed))

    click.echo(plaintext.render(key))
    console.print(f"Key: {key.as_key()}")


@cli.command()
@click.argument("phrase", nargs=-1, required=True)
@click.option("--key", "key_str", required=True, help="The 26-letter key the phrase was encrypted with")
def decrypt(phrase: Tuple[str, ...], key_str: str):
    """Decrypt a phrase with a known substitution key."""
    try:
        ciphertext = Phrase.from_str(" ".join(phrase))
    except PhraseError as e:
        raise click.UsageError(str(e))

    try:
        key = LetterMapping.from_key(key_str.lower())
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--key")

    click.echo(ciphertext.render(key.inverse()))


def fetch_demo_data(endpoint: str) -> str:
    """Fetch a demo cryptogram from the demo API."""
    response = requests.get(endpoint, timeout=10)
    if response.status_code != 200:
        raise click.ClickException(f"Failed to get {endpoint}: {response.status_code} {response.text}")
    data = response.json()
    return data["ciphertext"]


@cli.command()
@click.argument("number", type=click.IntRange(1, 3))
@click.option("--endpoint", default=DEMO_ENDPOINT, help="Base URL of the demo API")
@solve_options
def demo(number: int, endpoint: str, wordlist: Optional[str], workers: int,
         max_nodes: Optional[int], live: bool, output_format: str):
    """Fetch a demo cryptogram from the demo API and solve it."""
    try:
        ciphertext = fetch_demo_data(f"{endpoint}/demo{number}")
    except requests.RequestException as e:
        raise click.ClickException(f"Demo API not reachable at {endpoint}: {e}")

    console.print(f"Ciphertext: {ciphertext}")
    solver = build_solver(wordlist, workers)
    solve_and_print(solver, ciphertext, max_nodes=max_nodes, live=live, output_format=output_format)


@cli.command("demo-api")
@click.option("--host", default="127.0.0.1", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to bind the server to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def demo_api(host: str, port: int, reload: bool):
    """Start the demo API server that hands out and solves cryptograms."""
    import uvicorn
    from demo_api.api import app

    click.echo(f"Starting demo API server on http://{host}:{port}")
    click.echo("Available endpoints:")
    click.echo("  - GET  /api/demo1   - Short demo cryptogram")
    click.echo("  - GET  /api/demo2   - Pangram demo cryptogram")
    click.echo("  - GET  /api/demo3   - Longer demo cryptogram")
    click.echo("  - POST /api/encrypt - Encrypt plaintext with the demo key")
    click.echo("  - POST /api/solve   - Solve a cryptogram")
    click.echo("\nPress Ctrl+C to stop the server")

    if reload:
        uvicorn.run("demo_api.api:app", host=host, port=port, reload=True)
    else:
        uvicorn.run(app, host=host, port=port, reload=False)


if __name__ == "__main__":
    cli()
