"""
Minesweeper Solver

A constraint-propagation Minesweeper solver:
- Fixpoint propagation of per-cell adjacency constraints
- Hypothesis testing on cloned states when propagation stalls
- Local-density guessing when no move is provably safe
"""

from .board import Board, BoardExplorer, GridVec
from .engine import Field, Game, GameSetup, GameSetupBuilder, new_game
from .solver import (
    Conclusion,
    Contradiction,
    ContradictionError,
    ExploredKnowledge,
    FieldKnowledge,
    KnowledgeKind,
    MinesweeperSolver,
    SolverInvariantError,
    State,
    StateMutator,
    is_solvable,
    suggest_moves,
)
from .analysis import (
    LEVELS,
    format_knowledge,
    run_solver_single_test,
    run_solver_many_tests,
    run_solver_level_analysis,
)

__version__ = "1.0.0"

__all__ = [
    # Grid
    "Board",
    "BoardExplorer",
    "GridVec",
    # Game
    "Field",
    "Game",
    "GameSetup",
    "GameSetupBuilder",
    "new_game",
    # Solver
    "Conclusion",
    "Contradiction",
    "ContradictionError",
    "ExploredKnowledge",
    "FieldKnowledge",
    "KnowledgeKind",
    "MinesweeperSolver",
    "SolverInvariantError",
    "State",
    "StateMutator",
    "is_solvable",
    "suggest_moves",
    # Analysis functions
    "LEVELS",
    "format_knowledge",
    "run_solver_single_test",
    "run_solver_many_tests",
    "run_solver_level_analysis",
]
