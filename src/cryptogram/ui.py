from typing import Iterable, Optional

from rich.panel import Panel
from rich.table import Table
from rich.live import Live

from cryptogram.state_queue import SingleSlotQueue
from cryptogram.state_snapshot import SearchSnapshot


COLORS = {
    "ciphertext": "bright_red",
    "plaintext": {
        "unsolved": "dim",
        "solved": "spring_green2",
    },
    "current_token": "bold yellow on black",
}


def partial_to_string(partial: str, placeholder: str = "_") -> str:
    """Color the solved letters of a partial decoding."""
    solved = COLORS["plaintext"]["solved"]
    unsolved = COLORS["plaintext"]["unsolved"]
    out = []
    for c in partial:
        if c == placeholder:
            out.append(f"[{unsolved}]{c}[/{unsolved}]")
        elif c.isspace():
            out.append(c)
        else:
            out.append(f"[{solved}]{c}[/{solved}]")
    return "".join(out)


def render(state: Optional[SearchSnapshot]):
    """Render the search state snapshot."""
    if state is None:
        return Panel("Waiting for first update…", title="Cryptogram", border_style="dim")

    status = "done" if state.complete else f"token {min(state.depth + 1, state.token_count)} / {state.token_count}"
    ui_table = Table(title=f"{status}  |  nodes {state.nodes_visited}  |  v{state.state_version}")
    ui_table.add_column("", justify="right")
    ui_table.add_column("Text")

    ui_table.add_row("Ciphertext", f"[{COLORS['ciphertext']}]{state.ciphertext}[/{COLORS['ciphertext']}]")
    if not state.complete:
        ui_table.add_row("Plaintext", partial_to_string(state.partial_plaintext))
        if state.current_token:
            ui_table.add_row("Token", f"[{COLORS['current_token']}]{state.current_token}[/{COLORS['current_token']}]")
    ui_table.add_row("Solutions", str(state.solutions_found))

    return ui_table


def render_solutions(solutions: Iterable[str], ciphertext: str) -> Table:
    """Table of finished solutions, one per row."""
    ui_table = Table(title=ciphertext, show_header=False)
    ui_table.add_column("#", justify="right", style="dim")
    ui_table.add_column("Solution", style=COLORS["plaintext"]["solved"])
    for idx, solution in enumerate(solutions, start=1):
        ui_table.add_row(str(idx), solution)
    return ui_table


def ui_loop(state_queue: SingleSlotQueue[SearchSnapshot]) -> None:
    """Loop the UI until the solver closes the queue."""
    with Live(render(None), refresh_per_second=30, screen=False, transient=True) as live:
        while True:
            state = state_queue.get()
            if state is None:
                break
            live.update(render(state))
