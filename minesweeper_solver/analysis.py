"""Analysis and benchmarking tools for the Minesweeper solver."""

import random
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np

from .board import GridVec
from .engine import default_first_move, new_game
from .solver import EXPLORED, MINE, NO_MINE, MinesweeperSolver, State

# Standard difficulty levels: name -> (width, height, mines)
LEVELS: Dict[str, Tuple[int, int, int]] = {
    "beginner": (9, 9, 10),
    "intermediate": (16, 16, 40),
    "expert": (30, 16, 99),
}

_METRIC_KEYS = (
    "reveal_moves_count",
    "revealed_cells_count",
    "logic_moves_count",
    "deep_moves_count",
    "guesses_count",
    "steps",
)


def format_knowledge(state: State, *, show_coords: bool = True) -> str:
    """
    Format the solver's knowledge as a human-readable grid.

    Unknown cells are shown as '.', deduced mines as 'X', deduced safe cells
    as 's' and explored cells as their adjacent mine count (blank for 0).

    Args:
        state: State whose knowledge will be displayed.
        show_coords: If True, include coordinate labels and a header.
    """
    w, h = state.width, state.height

    def cell_char(x: int, y: int) -> str:
        k = state.knowledge_at(GridVec(x, y))
        if k.kind is MINE:
            return "X"
        if k.kind is NO_MINE:
            return "s"
        if k.kind is EXPLORED:
            return str(k.constraint.mines) if k.constraint.mines else " "
        return "."

    lines: List[str] = []
    if show_coords:
        header = " ".join(f"{x:2d}" for x in range(w))
        lines.append("   " + header)
        lines.append("   " + "-" * (3 * w - 1))

    for y in range(h):
        row = " ".join(f" {cell_char(x, y)}" for x in range(w))
        lines.append(f"{y:2d} |" + row if show_coords else row)

    return "\n".join(lines)


def run_solver_single_test(
    width: int,
    height: int,
    mines_count: int,
    mines_generation_algorithm: str = "safe_neighborhood_rule",
    *,
    show_boards: bool = False,
    guessing_strategy: str = "local_density",
    rng: Optional[random.Random] = None,
) -> Dict[str, object]:
    """
    Run one end-to-end game with MinesweeperSolver on a fresh random board.

    Args:
        width: Board width.
        height: Board height.
        mines_count: Total number of mines on the board.
        mines_generation_algorithm: Mine placement rule
            ("safe_first_action_rule" or "safe_neighborhood_rule").
        show_boards: If True, print the underlying board and the solver's final
            knowledge state.
        guessing_strategy: "local_density" or "none".
        rng: Random source for mine placement.

    Returns:
        The solver's payload augmented with "status" (-1 loss, 0 stuck, 1 win).
    """
    game = new_game(width, height, mines_count, mines_generation_algorithm, rng=rng)
    first_move = default_first_move(width, height, mines_generation_algorithm)

    solver = MinesweeperSolver(game, guessing_strategy=guessing_strategy, first_move=first_move)
    status, payload = solver.solve()

    if show_boards:
        print(f"Generation mode: {mines_generation_algorithm}")
        print("Underlying board (mines visible):")
        print(game.format_board(reveal_all=True))
        print()
        if solver.state is not None:
            print("Solver knowledge (unknowns shown as '.'):")
            print(format_knowledge(solver.state, show_coords=True))
            print()
        print(f"Finished with status {status}.")

    out: Dict[str, object] = dict(payload)
    out["status"] = status
    return out


def run_solver_many_tests(
    width: int,
    height: int,
    mines_count: int,
    runs: int,
    mines_generation_algorithm: str = "safe_neighborhood_rule",
    *,
    guessing_strategy: str = "local_density",
    seed: Optional[int] = None,
) -> Dict[str, float]:
    """
    Run many independent games and return averaged metrics plus outcome rates.

    Args:
        width: Board width.
        height: Board height.
        mines_count: Total number of mines on the board.
        runs: Number of independent games to run, must be > 0.
        mines_generation_algorithm: Mine placement rule.
        guessing_strategy: "local_density" or "none".
        seed: Seed for the shared random source, for reproducible runs.

    Returns:
        Averages of the solver payload metrics (prefixed with "avg_"), plus
        win_rate, loss_rate, stuck_rate and guess_failure_rate.
    """
    if runs <= 0:
        raise ValueError("runs must be positive.")

    rng = random.Random(seed)
    metrics = np.zeros((runs, len(_METRIC_KEYS)), dtype=float)
    statuses = np.zeros(runs, dtype=int)

    for i in range(runs):
        result = run_solver_single_test(
            width,
            height,
            mines_count,
            mines_generation_algorithm,
            guessing_strategy=guessing_strategy,
            rng=rng,
        )
        status = result["status"]
        if status not in (-1, 0, 1):
            raise RuntimeError(f"Unexpected solver status: {status}")
        statuses[i] = status
        metrics[i] = [float(result[k]) for k in _METRIC_KEYS]  # type: ignore[arg-type]

    means = metrics.mean(axis=0)
    out: Dict[str, float] = {
        f"avg_{k}": float(v) for k, v in zip(_METRIC_KEYS, means)
    }
    out["win_rate"] = float(np.mean(statuses == 1))
    out["loss_rate"] = float(np.mean(statuses == -1))
    out["stuck_rate"] = float(np.mean(statuses == 0))

    total_guesses = float(metrics[:, _METRIC_KEYS.index("guesses_count")].sum())
    losses = float(np.sum(statuses == -1))
    out["guess_failure_rate"] = losses / total_guesses if total_guesses > 0 else 0.0

    return out


def run_solver_level_analysis(
    runs: int,
    mines_generation_algorithm: str = "safe_neighborhood_rule",
    *,
    guessing_strategy: str = "local_density",
    seed: Optional[int] = None,
    plot: bool = True,
) -> Dict[str, Dict[str, float]]:
    """
    Run aggregated solver tests on the standard difficulty levels.

    Args:
        runs: Number of independent games to run per difficulty level.
        mines_generation_algorithm: Mine placement rule.
        guessing_strategy: "local_density" or "none".
        seed: Seed for reproducible runs.
        plot: If True, show bar charts of move sources and win rates.

    Returns:
        Mapping from level name to statistics dict returned by
        run_solver_many_tests().
    """
    results: Dict[str, Dict[str, float]] = {}
    for level, (w, h, m) in LEVELS.items():
        results[level] = run_solver_many_tests(
            w,
            h,
            m,
            runs,
            mines_generation_algorithm,
            guessing_strategy=guessing_strategy,
            seed=seed,
        )

    if plot:
        plot_level_results(results)

    return results


def plot_level_results(results: Dict[str, Dict[str, float]]) -> None:
    """Show bar charts of move sources and win rate per level."""
    level_names = list(results.keys())
    x = np.arange(len(level_names))
    bar_w = 0.25

    # 1) Where moves came from
    logic = [results[n]["avg_logic_moves_count"] for n in level_names]
    deep = [results[n]["avg_deep_moves_count"] for n in level_names]
    guesses = [results[n]["avg_guesses_count"] for n in level_names]

    plt.figure()  # type: ignore[misc]
    plt.bar(x - bar_w, logic, width=bar_w, label="propagation")  # type: ignore[misc]
    plt.bar(x, deep, width=bar_w, label="guess search")  # type: ignore[misc]
    plt.bar(x + bar_w, guesses, width=bar_w, label="risky guess")  # type: ignore[misc]
    plt.xticks(x, level_names)  # type: ignore[misc]
    plt.ylabel("Average moves per game")  # type: ignore[misc]
    plt.title("Move sources by difficulty level")  # type: ignore[misc]
    plt.legend()  # type: ignore[misc]
    plt.tight_layout()
    plt.show()  # type: ignore[misc]

    # 2) Win rate by level
    win_rates = [results[n]["win_rate"] for n in level_names]

    plt.figure()  # type: ignore[misc]
    plt.bar(x, win_rates)  # type: ignore[misc]
    plt.xticks(x, level_names)  # type: ignore[misc]
    plt.ylabel("Win rate")  # type: ignore[misc]
    plt.ylim(0.0, 1.0)  # type: ignore[misc]
    plt.title("Win rate by difficulty level")  # type: ignore[misc]
    plt.tight_layout()
    plt.show()  # type: ignore[misc]
