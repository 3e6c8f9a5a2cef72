import logging
import random

import pytest

from minesweeper_solver.analysis import format_knowledge, run_solver_single_test
from minesweeper_solver.board import GridVec
from minesweeper_solver.engine import Field, Game, new_game
from minesweeper_solver.solver import (
    Conclusion,
    Contradiction,
    ContradictionError,
    ExploredKnowledge,
    FieldKnowledge,
    KnowledgeKind,
    MinesweeperSolver,
    SolverInvariantError,
    State,
    is_solvable,
    suggest_moves,
)

F, T = False, True

# Top row reads 1 2 1, bottom row hides mines at both ends.
ONE_TWO_ONE = [
    [F, F, F],
    [T, F, T],
]

# (1, 0) reads 1 with mines on either side: a true 50/50.
FIFTY_FIFTY = [[T, F, F, T]]


def _opened(rows, *positions):
    game = Game.from_rows(rows)
    for x, y in positions:
        assert game.open(GridVec(x, y)) is not None
    return game


def _one_two_one_state():
    return State.from_game(_opened(ONE_TWO_ONE, (0, 0), (1, 0), (2, 0)))


# 6x2 knowledge: a 50/50 on column 0, known mines on column 2 and a 1-2-1
# under the explored top row of columns 3..5.
def _fifty_fifty_beside_one_two_one():
    mutator = State.empty(6, 2, 5).mutator()
    mutator.mark_mine(GridVec(2, 0))
    mutator.mark_mine(GridVec(2, 1))
    for x, y, count in ((1, 0, 3), (1, 1, 3), (3, 0, 3), (4, 0, 2), (5, 0, 1)):
        mutator.mark_explored(GridVec(x, y), Field.empty(count))
    return mutator.finish()


def test_conclusion():
    assert ExploredKnowledge(2, 1, 0).conclusion() is Conclusion.UNCONCLUSIVE
    assert ExploredKnowledge(0, 0, 0).conclusion() is Conclusion.UNCONCLUSIVE
    assert ExploredKnowledge(3, 2, 2).conclusion() is Conclusion.NEIGHBOURS_ARE_MINES
    assert ExploredKnowledge(3, 0, 4).conclusion() is Conclusion.NEIGHBOURS_ARE_NOT_MINES
    assert ExploredKnowledge(3, 1, 4).conclusion() is Conclusion.UNCONCLUSIVE


def test_explored_knowledge_consistency():
    assert ExploredKnowledge(2, 1, 3).is_consistent()
    assert not ExploredKnowledge(2, 3, 3).is_consistent()
    assert not ExploredKnowledge(2, 2, 1).is_consistent()
    assert not ExploredKnowledge(2, 1, 9).is_consistent()


def test_state_from_game_deduces_mine():
    game = _opened([[T, F, F]], (2, 0))
    state = State.from_game(game)

    assert state.knowledge_at(GridVec(0, 0)) == FieldKnowledge.MINE
    assert state.mines_left == 0
    assert state.knowledge_at(GridVec(1, 0)) == FieldKnowledge.explored(
        ExploredKnowledge(mines=1, mines_left=0, unknowns=0)
    )
    assert list(state.suggestions()) == []
    assert format_knowledge(state, show_coords=False) == " X  1   "


def test_state_from_untouched_game():
    state = State.from_game(Game.from_rows(FIFTY_FIFTY))
    assert all(k == FieldKnowledge.UNKNOWN for _, k in state.enumerate())
    assert state.mines_left == 2
    assert list(state.suggestions()) == []
    assert state.deep_suggestion() == []


def test_one_two_one_is_stuck_for_propagation():
    state = _one_two_one_state()
    assert list(state.suggestions()) == []
    assert state.knowledge_at(GridVec(0, 0)).constraint == ExploredKnowledge(1, 1, 2)
    assert state.knowledge_at(GridVec(1, 0)).constraint == ExploredKnowledge(2, 2, 3)
    assert state.knowledge_at(GridVec(2, 0)).constraint == ExploredKnowledge(1, 1, 2)


def test_guess_positions_ranking():
    ranked = _one_two_one_state().guess_positions()
    assert [(g.impact, g.pos) for g in ranked] == [
        (6000, GridVec(0, 0)),
        (6000, GridVec(2, 0)),
        (2500, GridVec(1, 0)),
    ]


def test_deep_suggestion_finds_forced_safe_cell():
    state = _one_two_one_state()
    assert state.deep_suggestion() == [GridVec(1, 1)]
    # Repeated runs give the same answer and leave the state untouched.
    assert state.deep_suggestion() == [GridVec(1, 1)]
    assert state.knowledge_at(GridVec(1, 1)) == FieldKnowledge.UNKNOWN
    assert state.mines_left == 2


def test_deep_suggestion_gives_up_on_fifty_fifty():
    state = State.from_game(_opened(FIFTY_FIFTY, (1, 0)))
    assert list(state.suggestions()) == []
    assert state.deep_suggestion() == []


def test_guess_positions_break_equal_x_by_y():
    ranked = _fifty_fifty_beside_one_two_one().guess_positions()
    assert [(g.impact, g.pos) for g in ranked] == [
        (6000, GridVec(1, 0)),
        (6000, GridVec(1, 1)),
        (6000, GridVec(3, 0)),
        (6000, GridVec(5, 0)),
        (2500, GridVec(4, 0)),
    ]


def test_deep_suggestion_skips_diverging_frontier_cells():
    state = _fifty_fifty_beside_one_two_one()
    assert list(state.suggestions()) == []
    # Both column 1 cells see the 50/50 and are tried first without a result.
    assert state.deep_suggestion() == [GridVec(4, 1)]
    assert state.knowledge_at(GridVec(0, 0)) == FieldKnowledge.UNKNOWN
    assert state.mines_left == 3


def test_deep_suggestion_requires_no_plain_suggestions():
    mutator = _one_two_one_state().mutator()
    assert mutator.mark_no_mine(GridVec(1, 1)) is None
    state = mutator.finish()
    assert list(state.suggestions()) == [GridVec(1, 1)]
    with pytest.raises(SolverInvariantError):
        state.deep_suggestion()


def test_no_mine_propagates_to_mines():
    mutator = _one_two_one_state().mutator()
    mutator.mark_no_mine(GridVec(1, 1))
    state = mutator.finish()
    assert state.knowledge_at(GridVec(0, 1)) == FieldKnowledge.MINE
    assert state.knowledge_at(GridVec(2, 1)) == FieldKnowledge.MINE
    assert state.mines_left == 0
    assert state.is_consistent()


def test_hypothesis_contradiction_reports_position():
    state = _one_two_one_state()
    mutator = state.mutator()
    assert mutator.mark_mine(GridVec(1, 1)) is None
    assert mutator.try_finish() == Contradiction(GridVec(2, 1))

    mutator = state.mutator()
    mutator.mark_mine(GridVec(1, 1))
    with pytest.raises(ContradictionError) as excinfo:
        mutator.finish()
    assert excinfo.value.pos == GridVec(2, 1)

    assert state.knowledge_at(GridVec(1, 1)) == FieldKnowledge.UNKNOWN


def test_mark_mine_contradictions():
    state = State.from_game(_opened(FIFTY_FIFTY, (1, 0)))
    mutator = state.mutator()
    assert mutator.mark_mine(GridVec(0, 0)) is None
    assert mutator.mark_mine(GridVec(2, 0)) == Contradiction(GridVec(2, 0))

    mutator = State.empty(2, 1, 0).mutator()
    assert mutator.mark_mine(GridVec(0, 0)) == Contradiction(GridVec(0, 0))


def test_mutator_is_abandoned_after_a_contradiction():
    state = State.from_game(_opened(FIFTY_FIFTY, (1, 0)))

    mutator = state.mutator()
    assert mutator.mark_mine(GridVec(0, 0)) is None
    assert mutator.mark_mine(GridVec(2, 0)) == Contradiction(GridVec(2, 0))
    with pytest.raises(SolverInvariantError):
        mutator.mark_no_mine(GridVec(3, 0))
    assert mutator.try_finish() == Contradiction(GridVec(2, 0))
    with pytest.raises(SolverInvariantError):
        mutator.try_finish()

    mutator = state.mutator()
    mutator.mark_mine(GridVec(0, 0))
    mutator.mark_mine(GridVec(2, 0))
    with pytest.raises(ContradictionError) as excinfo:
        mutator.finish()
    assert excinfo.value.pos == GridVec(2, 0)


def test_mark_no_mine_contradiction():
    state = State.from_game(_opened(FIFTY_FIFTY, (1, 0)))
    mutator = state.mutator()
    assert mutator.mark_no_mine(GridVec(0, 0)) is None
    assert mutator.mark_no_mine(GridVec(2, 0)) == Contradiction(GridVec(2, 0))


def test_remarking_is_a_no_op():
    mutator = State.empty(3, 1, 2).mutator()
    assert mutator.mark_mine(GridVec(0, 0)) is None
    assert mutator.mark_mine(GridVec(0, 0)) is None
    assert mutator.mark_no_mine(GridVec(1, 0)) is None
    assert mutator.mark_no_mine(GridVec(1, 0)) is None
    state = mutator.finish()
    assert state.mines_left == 1


def test_invariant_violations():
    game = _opened(FIFTY_FIFTY, (1, 0))
    state = State.from_game(game)

    with pytest.raises(SolverInvariantError):
        state.mutator().mark_explored(GridVec(1, 0), Field.empty(1))
    with pytest.raises(SolverInvariantError):
        state.mutator().mark_explored(GridVec(0, 0), Field.MINE)

    mutator = state.mutator()
    mutator.mark_mine(GridVec(0, 0))
    with pytest.raises(SolverInvariantError):
        mutator.mark_explored(GridVec(0, 0), Field.empty(0))
    with pytest.raises(SolverInvariantError):
        mutator.mark_no_mine(GridVec(0, 0))

    mutator = state.mutator()
    mutator.mark_no_mine(GridVec(3, 0))
    with pytest.raises(SolverInvariantError):
        mutator.mark_mine(GridVec(3, 0))
    with pytest.raises(SolverInvariantError):
        mutator.mark_mine(GridVec(1, 0))


def test_mutator_finishes_once():
    mutator = State.empty(2, 2, 1).mutator()
    mutator.finish()
    with pytest.raises(SolverInvariantError):
        mutator.finish()
    with pytest.raises(SolverInvariantError):
        mutator.mark_mine(GridVec(0, 0))


def test_exploring_a_deduced_safe_cell():
    state = _one_two_one_state()
    mutator = state.mutator()
    mutator.mark_no_mine(GridVec(1, 1))
    state = mutator.finish()

    mutator = state.mutator()
    mutator.mark_explored(GridVec(1, 1), Field.empty(2))
    state = mutator.finish()
    assert state.knowledge_at(GridVec(1, 1)).constraint == ExploredKnowledge(2, 0, 0)
    assert list(state.suggestions()) == []


def test_propagation_is_confluent():
    game = _opened(ONE_TWO_ONE, (0, 0), (1, 0), (2, 0), (1, 1))
    visible = [pos for pos, v in game.visible.enumerate() if v]

    results = []
    for order in (visible, list(reversed(visible)), visible[1:] + visible[:1]):
        mutator = State.empty(game.width, game.height, game.mines_count).mutator()
        for pos in order:
            mutator.mark_explored(pos, game.board[pos])
        results.append(mutator.finish())

    assert results[0] == results[1] == results[2]
    assert results[0].knowledge_at(GridVec(0, 1)) == FieldKnowledge.MINE
    assert results[0].knowledge_at(GridVec(2, 1)) == FieldKnowledge.MINE


def test_least_risky_guess():
    state = State.from_game(_opened(FIFTY_FIFTY, (1, 0)))
    assert state.least_risky_guess() == GridVec(0, 0)

    done = State.from_game(_opened([[T, F, F]], (2, 0)))
    assert done.least_risky_guess() is None


def test_suggest_moves_and_is_solvable():
    game = _opened(ONE_TWO_ONE, (0, 0), (1, 0), (2, 0))
    assert suggest_moves(game) == [GridVec(1, 1)]
    assert is_solvable(game)
    assert game.hidden_fields == 3

    assert not is_solvable(_opened(FIFTY_FIFTY, (1, 0)))


def test_is_solvable_needs_a_revealed_cell():
    rows = [[F] * 5 for _ in range(5)]
    rows[4][4] = T
    game = Game.from_rows(rows)
    assert suggest_moves(game) == []
    assert not is_solvable(game)
    assert game.hidden_fields == 25

    game.open(GridVec(0, 0))
    assert is_solvable(game)


def test_solver_uses_guess_search():
    game = _opened(ONE_TWO_ONE, (0, 0), (1, 0), (2, 0))
    solver = MinesweeperSolver(game, guessing_strategy="none")
    status, payload = solver.solve()
    assert status == 1
    assert payload["deep_moves_count"] == 1
    assert payload["guesses_count"] == 0
    assert game.is_win()
    assert solver.state.knowledge_at(GridVec(0, 1)) == FieldKnowledge.MINE


def test_solver_stuck_without_guessing():
    game = _opened(FIFTY_FIFTY, (1, 0))
    status, payload = MinesweeperSolver(game, guessing_strategy="none").solve()
    assert status == 0
    assert payload["reveal_moves_count"] == 0


def test_solver_mine_free_board():
    game = Game.from_rows([[F] * 3 for _ in range(3)])
    status, payload = MinesweeperSolver(game).solve()
    assert status == 1
    assert payload["revealed_cells_count"] == 9


def test_solver_starts_on_the_protected_cell():
    # Every cell but the protected corner holds a mine.
    game = new_game(5, 5, 24, "safe_first_action_rule", rng=random.Random(3))
    solver = MinesweeperSolver(game)
    assert solver.first_move == GridVec(0, 0)

    status, payload = solver.solve()
    assert status == 1
    assert payload["reveal_moves_count"] == 1
    assert payload["revealed_cells_count"] == 1


def test_solver_logs_each_step(caplog):
    game = _opened(ONE_TWO_ONE, (0, 0), (1, 0), (2, 0))
    with caplog.at_level(logging.DEBUG, logger="minesweeper_solver.solver"):
        MinesweeperSolver(game, guessing_strategy="none").solve()
    assert "Step 1: 1 moves" in caplog.text


def test_solver_rejects_unknown_strategy():
    with pytest.raises(ValueError):
        MinesweeperSolver(Game.from_rows([[F]]), guessing_strategy="bayesian")


@pytest.mark.parametrize("seed", range(8))
def test_states_stay_consistent_during_play(seed):
    game = new_game(9, 9, 10, rng=random.Random(seed))
    game.open(GridVec(4, 4))
    state = State.from_game(game)

    while not game.is_win():
        assert state.is_consistent()
        moves = list(state.suggestions()) or state.deep_suggestion()
        if not moves:
            break
        for pos in moves:
            assert state.knowledge_at(pos).kind in (KnowledgeKind.NO_MINE, KnowledgeKind.UNKNOWN)
            assert not game.board[pos].is_mine()

        mutator = state.mutator()
        for pos in moves:
            for revealed in game.open(pos):
                mutator.mark_explored(revealed, game.board[revealed])
        state = mutator.finish()

    for pos, k in state.enumerate():
        if k.kind is KnowledgeKind.MINE:
            assert game.board[pos].is_mine()
        elif k.kind is KnowledgeKind.EXPLORED:
            assert game.is_visible(pos)


@pytest.mark.parametrize("seed", range(5))
def test_logic_only_play_never_loses(seed):
    result = run_solver_single_test(
        9, 9, 10, guessing_strategy="none", rng=random.Random(seed)
    )
    assert result["status"] in (0, 1)
