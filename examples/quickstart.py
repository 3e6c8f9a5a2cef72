"""
Quickstart example for the Minesweeper Solver.

This script demonstrates basic usage of the solver.
"""

import logging
import random

from minesweeper_solver import (
    GridVec,
    MinesweeperSolver,
    State,
    format_knowledge,
    new_game,
    run_solver_many_tests,
    suggest_moves,
)


def main():
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(message)s", datefmt="%H:%M:%S")

    print("=" * 60)
    print("Minesweeper Solver - Quickstart Example")
    print("=" * 60)

    # Example 1: Ask for safe moves after the first click
    print("\n1. Safe moves on an Intermediate board (16x16, 40 mines)...")
    print("-" * 60)

    rng = random.Random(7)
    game = new_game(16, 16, 40, "safe_neighborhood_rule", rng=rng)
    game.open(GridVec(8, 8))
    print(game.format_board())
    print(f"Suggested safe cells: {suggest_moves(game)}")

    state = State.from_game(game)
    print("\nSolver knowledge:")
    print(format_knowledge(state))

    # Example 2: Solve a single game
    print("\n2. Solving the same game to the end...")
    print("-" * 60)

    solver = MinesweeperSolver(game)
    status, payload = solver.solve()

    result = {1: "WON", -1: "LOST", 0: "STUCK"}[status]
    print(f"Result: {result}")
    print(f"Reveal moves: {payload['reveal_moves_count']}")
    print(f"Cells revealed: {payload['revealed_cells_count']}")
    print(f"Propagation moves: {payload['logic_moves_count']}")
    print(f"Guess search moves: {payload['deep_moves_count']}")
    print(f"Risky guesses: {payload['guesses_count']}")
    print(game.format_board(reveal_all=True))

    # Example 3: Win rates by difficulty level
    print("\n3. Win rates by difficulty level (20 games each)...")
    print("-" * 60)

    difficulties = [
        ("Beginner", 9, 9, 10),
        ("Intermediate", 16, 16, 40),
        ("Expert", 30, 16, 99),
    ]

    for name, w, h, m in difficulties:
        results = run_solver_many_tests(w, h, m, runs=20, seed=1)
        print(
            f"{name:15s} ({w}x{h}, {m:2d} mines): {results['win_rate']*100:5.1f}% win rate, "
            f"{results['stuck_rate']*100:5.1f}% stuck"
        )

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == "__main__":
    main()
