"""Minesweeper solver: constraint propagation to a fixpoint plus hypothesis testing."""

import heapq
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, NamedTuple, Optional, Tuple, Union

from .board import Board, BoardExplorer, GridVec
from .engine import Field, Game
from .utils import get_neighborhoods

logger = logging.getLogger(__name__)

GUESSING_STRATEGIES = ("none", "local_density")


class SolverInvariantError(RuntimeError):
    """A caller broke a precondition of the solver (a bug, not a puzzle property)."""


class ContradictionError(RuntimeError):
    """Propagation on data that was expected to be consistent hit a contradiction."""

    def __init__(self, pos: GridVec) -> None:
        super().__init__(f"Contradiction detected at {pos!r}")
        self.pos = pos


@dataclass(frozen=True)
class Contradiction:
    """Failed propagation: `pos` is the cell whose marking broke a constraint."""

    pos: GridVec


class Conclusion(Enum):
    UNCONCLUSIVE = "unconclusive"
    NEIGHBOURS_ARE_MINES = "neighbours_are_mines"
    NEIGHBOURS_ARE_NOT_MINES = "neighbours_are_not_mines"


@dataclass(frozen=True)
class ExploredKnowledge:
    """
    Constraint attached to a revealed cell.

    Attributes:
        mines: True number of adjacent mines, fixed when the cell is explored.
        mines_left: Adjacent mines not yet identified as Mine.
        unknowns: Adjacent cells still Unknown.
    """

    mines: int
    mines_left: int
    unknowns: int

    def conclusion(self) -> Conclusion:
        if self.unknowns == 0:
            return Conclusion.UNCONCLUSIVE
        if self.unknowns == self.mines_left:
            return Conclusion.NEIGHBOURS_ARE_MINES
        if self.mines_left == 0:
            return Conclusion.NEIGHBOURS_ARE_NOT_MINES
        return Conclusion.UNCONCLUSIVE

    def is_consistent(self) -> bool:
        return (
            0 <= self.mines_left <= self.unknowns
            and self.mines_left <= self.mines
            and self.unknowns <= 8
        )


class KnowledgeKind(Enum):
    UNKNOWN = "unknown"
    MINE = "mine"
    NO_MINE = "no_mine"
    EXPLORED = "explored"


@dataclass(frozen=True)
class FieldKnowledge:
    """
    Solver belief about one cell. `constraint` is set only for EXPLORED.

    Use the UNKNOWN, MINE and NO_MINE singletons and `FieldKnowledge.explored()`
    rather than constructing instances directly.
    """

    kind: KnowledgeKind
    constraint: Optional[ExploredKnowledge] = None

    UNKNOWN: ClassVar["FieldKnowledge"]
    MINE: ClassVar["FieldKnowledge"]
    NO_MINE: ClassVar["FieldKnowledge"]

    @classmethod
    def explored(cls, constraint: ExploredKnowledge) -> "FieldKnowledge":
        return cls(KnowledgeKind.EXPLORED, constraint)


FieldKnowledge.UNKNOWN = FieldKnowledge(KnowledgeKind.UNKNOWN)
FieldKnowledge.MINE = FieldKnowledge(KnowledgeKind.MINE)
FieldKnowledge.NO_MINE = FieldKnowledge(KnowledgeKind.NO_MINE)

UNKNOWN = KnowledgeKind.UNKNOWN
MINE = KnowledgeKind.MINE
NO_MINE = KnowledgeKind.NO_MINE
EXPLORED = KnowledgeKind.EXPLORED


class GuessPos(NamedTuple):
    impact: int
    pos: GridVec


class State:
    """
    Immutable snapshot of the solver's knowledge.

    Holds one FieldKnowledge per cell plus the number of mines on the board
    not yet identified. Every transition goes through a StateMutator, which
    works on its own copy and publishes a new State.
    """

    __slots__ = ("_board", "_mines_left")

    def __init__(self, board: Board[FieldKnowledge], mines_left: int) -> None:
        self._board = board
        self._mines_left = mines_left

    @classmethod
    def empty(cls, width: int, height: int, mines: int) -> "State":
        """All-Unknown state for a board with `mines` mines in total."""
        return cls(Board(width, height, FieldKnowledge.UNKNOWN), mines)

    @classmethod
    def from_game(cls, game: Game) -> "State":
        """Replay every visible cell of `game` as an explore event and propagate."""
        mutator = cls.empty(game.width, game.height, game.mines_count).mutator()
        for pos, is_visible in game.visible.enumerate():
            if is_visible:
                mutator.mark_explored(pos, game.board[pos])
        return mutator.finish()

    @property
    def width(self) -> int:
        return self._board.width

    @property
    def height(self) -> int:
        return self._board.height

    @property
    def mines_left(self) -> int:
        return self._mines_left

    def knowledge_at(self, pos: GridVec) -> FieldKnowledge:
        return self._board[pos]

    def enumerate(self) -> Iterator[Tuple[GridVec, FieldKnowledge]]:
        return self._board.enumerate()

    def suggestions(self) -> Iterator[GridVec]:
        """Yield every position proven free of mines but not yet revealed."""
        return (pos for pos, k in self._board.enumerate() if k.kind is NO_MINE)

    def unknown_count(self) -> int:
        return sum(1 for k in self._board.values() if k.kind is UNKNOWN)

    def mutator(self) -> "StateMutator":
        return StateMutator(self)

    def is_consistent(self) -> bool:
        """Check every explored constraint is still satisfiable on its own."""
        if self._mines_left < 0:
            return False
        return all(
            k.constraint.is_consistent()
            for k in self._board.values()
            if k.constraint is not None
        )

    # -------------------------------------------------------------------------
    # Guess search
    # -------------------------------------------------------------------------

    def guess_positions(self) -> List[GuessPos]:
        """
        Rank frontier cells for hypothesis testing, best first.

        A frontier cell is an explored cell with unknown neighbours and a
        nonzero mine count. Impact is (8 - unknowns) * 1000 // mines_left;
        ties are broken by ascending x, then ascending y.
        """
        heap: List[Tuple[int, int, int]] = []
        for pos, k in self._board.enumerate():
            c = k.constraint
            if c is None or c.unknowns == 0 or c.mines == 0:
                continue
            if c.mines_left == 0:
                raise SolverInvariantError(
                    f"Frontier cell {pos!r} owes no mines; state is not at a fixpoint."
                )
            impact = (8 - c.unknowns) * 1000 // c.mines_left
            heapq.heappush(heap, (-impact, pos.x, pos.y))

        ranked: List[GuessPos] = []
        while heap:
            neg_impact, x, y = heapq.heappop(heap)
            ranked.append(GuessPos(-neg_impact, GridVec(x, y)))
        return ranked

    def deep_suggestion(self) -> List[GridVec]:
        """
        Find safe cells by assuming, one at a time, that a frontier cell's
        unknown neighbours are mines.

        For each frontier cell (best impact first) every unknown neighbour is
        tried as a mine on a separate copy of the state. Neighbours whose
        assumption contradicts are safe. If all consistent assumptions
        propagate to the same state, that state's safe cells hold in every
        case and are returned together with the contradicted neighbours. If
        two assumptions lead to different states the frontier cell is skipped.

        Returns:
            Sorted (by x, then y) distinct safe positions, or an empty list if
            no frontier cell forces a result.

        Raises:
            SolverInvariantError: If plain propagation already has suggestions.
        """
        if next(self.suggestions(), None) is not None:
            raise SolverInvariantError(
                "deep_suggestion() requires a state without plain suggestions."
            )

        for guess in self.guess_positions():
            forced = self._test_frontier_cell(guess.pos)
            if forced is not None:
                logger.debug(
                    "Frontier cell %r (impact %d) forced %d safe cells",
                    guess.pos, guess.impact, len(forced),
                )
                return forced

        logger.debug("Guess search exhausted the frontier without a forced result")
        return []

    def _test_frontier_cell(self, pos: GridVec) -> Optional[List[GridVec]]:
        neighborhoods = get_neighborhoods(self.width, self.height)
        hypothesis: Optional[State] = None
        contradicted: List[GridVec] = []

        for candidate in neighborhoods[pos]:
            if self._board[candidate].kind is not UNKNOWN:
                continue

            mutator = self.mutator()
            outcome = mutator.mark_mine(candidate)
            if outcome is None:
                outcome = mutator.try_finish()

            if isinstance(outcome, Contradiction):
                contradicted.append(candidate)
            elif hypothesis is None:
                hypothesis = outcome
            elif outcome != hypothesis:
                logger.debug(
                    "Frontier cell %r inconclusive: mine at %r diverges", pos, candidate
                )
                return None

        if hypothesis is None:
            return None

        return sorted(set(contradicted).union(hypothesis.suggestions()))

    def least_risky_guess(self) -> Optional[GridVec]:
        """
        Pick the unknown cell with the lowest estimated mine probability.

        Approximates risk by averaging local constraint densities
        (mines_left / unknowns) of a cell's explored neighbours; cells with no
        explored neighbour use the global density of remaining mines over
        unknown cells. Ties go to the smallest (x, y).
        """
        unknown_total = self.unknown_count()
        if unknown_total == 0:
            return None
        global_density = self._mines_left / unknown_total

        neighborhoods = get_neighborhoods(self.width, self.height)
        best: Optional[Tuple[float, int, int]] = None
        for pos, k in self._board.enumerate():
            if k.kind is not UNKNOWN:
                continue

            densities = [
                c.mines_left / c.unknowns
                for c in (self._board[n].constraint for n in neighborhoods[pos])
                if c is not None and c.unknowns > 0
            ]
            risk = sum(densities) / len(densities) if densities else global_density
            key = (risk, pos.x, pos.y)
            if best is None or key < best:
                best = key

        if best is None:
            return None
        return GridVec(best[1], best[2])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, State):
            return NotImplemented
        return self._mines_left == other._mines_left and self._board == other._board

    def __hash__(self) -> int:
        return hash((self._mines_left, self._board))

    def __repr__(self) -> str:
        return f"State({self.width}x{self.height}, mines_left={self._mines_left})"


class StateMutator:
    """
    Applies a batch of marks to a private copy of a State.

    Marks queue the explored cells whose constraint became actionable;
    `finish()`/`try_finish()` drain the queue to a fixpoint and publish the
    resulting State. A mutator can be finished only once, and after a mark
    returns a Contradiction it accepts no further marks.
    """

    def __init__(self, state: State) -> None:
        self._board: Board[FieldKnowledge] = state._board.copy()
        self._mines_left: int = state.mines_left
        self._queue = BoardExplorer.for_board(self._board)
        self._neighborhoods = get_neighborhoods(self._board.width, self._board.height)
        self._finished = False
        self._contradiction: Optional[Contradiction] = None

    def _enqueue(self, pos: GridVec, constraint: ExploredKnowledge) -> None:
        if constraint.conclusion() is not Conclusion.UNCONCLUSIVE:
            self._queue.enqueue(pos)

    def _check_open(self) -> None:
        if self._finished:
            raise SolverInvariantError("StateMutator has already been finished.")
        if self._contradiction is not None:
            raise SolverInvariantError(
                f"StateMutator hit a contradiction at {self._contradiction.pos!r}."
            )

    def _fail(self, pos: GridVec) -> Contradiction:
        self._contradiction = Contradiction(pos)
        return self._contradiction

    def mark_explored(self, pos: GridVec, field: Field) -> None:
        """
        Record that the game revealed `field` at `pos`.

        Raises:
            SolverInvariantError: If pos is already Mine or Explored, or if the
                revealed field is a mine.
        """
        self._check_open()
        previous = self._board[pos].kind
        if previous is MINE:
            raise SolverInvariantError(f"Cannot explore {pos!r}: it is known to be a mine.")
        if previous is EXPLORED:
            raise SolverInvariantError(f"Cannot explore {pos!r}: it is already explored.")
        if field.is_mine():
            raise SolverInvariantError(f"Cannot explore {pos!r}: the field holds a mine.")

        mines_left = field.count
        unknowns = 0
        for n in self._neighborhoods[pos]:
            neighbour = self._board[n]
            if neighbour.kind is EXPLORED:
                # A NoMine cell was already discounted from its neighbours.
                if previous is UNKNOWN:
                    c = neighbour.constraint
                    if c.unknowns == 0:
                        raise SolverInvariantError(
                            f"Explored cell {n!r} does not count {pos!r} as unknown."
                        )
                    updated = replace(c, unknowns=c.unknowns - 1)
                    self._board[n] = FieldKnowledge.explored(updated)
                    self._enqueue(n, updated)
            elif neighbour.kind is MINE:
                mines_left -= 1
            elif neighbour.kind is UNKNOWN:
                unknowns += 1

        if mines_left < 0:
            raise SolverInvariantError(
                f"Cell {pos!r} shows {field.count} mines but has more known mine neighbours."
            )

        constraint = ExploredKnowledge(field.count, mines_left, unknowns)
        self._board[pos] = FieldKnowledge.explored(constraint)
        self._enqueue(pos, constraint)

    def mark_mine(self, pos: GridVec) -> Optional[Contradiction]:
        """
        Record that `pos` is (or is assumed to be) a mine.

        Returns:
            None on success, or a Contradiction naming pos if no mine can be
            placed there.

        Raises:
            SolverInvariantError: If pos was already proven safe or explored.
        """
        self._check_open()
        kind = self._board[pos].kind
        if kind is MINE:
            return None
        if kind is not UNKNOWN:
            raise SolverInvariantError(f"Cell {pos!r} was deduced to be free of mines.")

        if self._mines_left == 0:
            return self._fail(pos)
        self._mines_left -= 1
        self._board[pos] = FieldKnowledge.MINE

        for n in self._neighborhoods[pos]:
            c = self._board[n].constraint
            if c is None:
                continue
            if c.mines_left == 0 or c.unknowns < c.mines_left:
                return self._fail(pos)
            updated = replace(c, mines_left=c.mines_left - 1, unknowns=c.unknowns - 1)
            self._board[n] = FieldKnowledge.explored(updated)
            self._enqueue(n, updated)

        return None

    def mark_no_mine(self, pos: GridVec) -> Optional[Contradiction]:
        """
        Record that `pos` is free of mines.

        Returns:
            None on success, or a Contradiction naming pos if some explored
            neighbour would be left without room for its remaining mines.

        Raises:
            SolverInvariantError: If pos was already deduced a mine or explored.
        """
        self._check_open()
        kind = self._board[pos].kind
        if kind is NO_MINE:
            return None
        if kind is not UNKNOWN:
            raise SolverInvariantError(f"Cell {pos!r} cannot be marked free of mines.")

        self._board[pos] = FieldKnowledge.NO_MINE
        for n in self._neighborhoods[pos]:
            c = self._board[n].constraint
            if c is None:
                continue
            if c.unknowns <= c.mines_left:
                return self._fail(pos)
            updated = replace(c, unknowns=c.unknowns - 1)
            self._board[n] = FieldKnowledge.explored(updated)
            self._enqueue(n, updated)

        return None

    def try_finish(self) -> Union[State, Contradiction]:
        """
        Propagate queued conclusions until nothing changes.

        Returns:
            The new State, or the Contradiction at which propagation stopped.
            A contradiction already returned by `mark_mine`/`mark_no_mine` is
            reported again here and no State is published.
        """
        if self._contradiction is not None and not self._finished:
            self._finished = True
            return self._contradiction
        self._check_open()
        self._queue.allow_multiple_enqueue = True

        while True:
            pos = self._queue.pop()
            if pos is None:
                break

            c = self._board[pos].constraint
            if c is None:
                raise SolverInvariantError(f"Queued cell {pos!r} is not explored.")

            conclusion = c.conclusion()
            if conclusion is Conclusion.UNCONCLUSIVE:
                continue

            for n in self._neighborhoods[pos]:
                if self._board[n].kind is not UNKNOWN:
                    continue
                if conclusion is Conclusion.NEIGHBOURS_ARE_MINES:
                    contradiction = self.mark_mine(n)
                else:
                    contradiction = self.mark_no_mine(n)
                if contradiction is not None:
                    self._finished = True
                    logger.debug("Propagation contradiction at %r", contradiction.pos)
                    return contradiction

        self._finished = True
        return State(self._board, self._mines_left)

    def finish(self) -> State:
        """
        Propagate to a fixpoint, treating a contradiction as fatal.

        Raises:
            ContradictionError: If the marks are inconsistent.
        """
        outcome = self.try_finish()
        if isinstance(outcome, Contradiction):
            raise ContradictionError(outcome.pos)
        return outcome


# -----------------------------------------------------------------------------
# Play loop
# -----------------------------------------------------------------------------


class MinesweeperSolver:
    """
    Plays a game using propagation, then guess search, then (optionally) the
    least risky guess when logic is exhausted.
    """

    def __init__(
        self,
        game: Game,
        guessing_strategy: str = "local_density",
        first_move: Optional[GridVec] = None,
    ) -> None:
        """
        Initialize a solving agent bound to a specific game instance.

        Args:
            game: The game to play. It is mutated by `solve()`.
            guessing_strategy: What to do when no move is forced.
                "local_density" (default): reveal the least risky unknown cell.
                "none": stop and report the game as stuck.
            first_move: Cell to open when nothing is visible yet; defaults to
                the game's protected start cell, or the board centre if the
                game has none.
        """
        if guessing_strategy not in GUESSING_STRATEGIES:
            raise ValueError('guessing_strategy must be "none" or "local_density".')
        self.game = game
        self.guessing_strategy = guessing_strategy
        if first_move is None:
            first_move = game.safe_start
        self.first_move: GridVec = (
            first_move if first_move is not None
            else GridVec(game.width // 2, game.height // 2)
        )

        # Metrics / counters (for analysis)
        self.reveal_moves_count: int = 0
        self.logic_moves_count: int = 0
        self.deep_moves_count: int = 0
        self.guesses_count: int = 0
        self.steps: int = 0

        self.state: Optional[State] = None

    def _open_all(self, moves: List[GridVec], mutator: StateMutator) -> bool:
        """Open every move, feeding revealed cells to the mutator. False on loss."""
        for pos in moves:
            opened = self.game.open(pos)
            self.reveal_moves_count += 1
            if opened is None:
                logger.info("Hit a mine at %r", pos)
                return False
            for revealed in opened:
                mutator.mark_explored(revealed, self.game.board[revealed])
        return True

    def _payload(self) -> Dict[str, Any]:
        return {
            "reveal_moves_count": self.reveal_moves_count,
            "revealed_cells_count": self.game.width * self.game.height
            - self.game.hidden_fields,
            "logic_moves_count": self.logic_moves_count,
            "deep_moves_count": self.deep_moves_count,
            "guesses_count": self.guesses_count,
            "steps": self.steps,
        }

    def solve(self) -> Tuple[int, Dict[str, Any]]:
        """
        Play until the game is won, lost or stuck.

        Returns:
            Tuple of (status, payload) where status is 1 (win), -1 (loss) or
            0 (no forced move and guessing disabled), and payload holds the
            solver's metrics.
        """
        if not any(self.game.visible.values()):
            if self.game.open(self.first_move) is None:
                logger.info("First move %r hit a mine", self.first_move)
                return -1, self._payload()
            self.reveal_moves_count += 1

        state = State.from_game(self.game)
        self.state = state

        while True:
            if self.game.is_win():
                logger.info("Won after %d steps", self.steps)
                return 1, self._payload()

            self.steps += 1
            moves = list(state.suggestions())
            if moves:
                self.logic_moves_count += len(moves)
            else:
                moves = state.deep_suggestion()
                self.deep_moves_count += len(moves)
            logger.debug("Step %d: %d moves", self.steps, len(moves))

            if not moves:
                if self.guessing_strategy == "none":
                    logger.info("No forced move after %d steps", self.steps)
                    return 0, self._payload()
                guess = state.least_risky_guess()
                if guess is None:
                    raise RuntimeError("No unknown cell left to guess.")
                logger.debug("Guessing %r", guess)
                self.guesses_count += 1
                moves = [guess]

            mutator = state.mutator()
            if not self._open_all(moves, mutator):
                return -1, self._payload()

            state = mutator.finish()
            self.state = state


def suggest_moves(game: Game) -> List[GridVec]:
    """Safe cells to open next: plain suggestions, else guess search results."""
    state = State.from_game(game)
    suggestions = list(state.suggestions())
    if not suggestions:
        suggestions = state.deep_suggestion()
    return suggestions


def is_solvable(game: Game) -> bool:
    """
    Whether a copy of `game` can be won from its current view without guessing.

    A game with nothing revealed is not solvable: its first open is a guess.
    """
    if not any(game.visible.values()):
        return False
    status, _ =MinesweeperSolver(game.copy(), guessing_strategy="none").solve()
    return status == 1
