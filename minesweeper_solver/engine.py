"""Minesweeper game engine: mine layouts, reveal flood fill and win detection."""

import logging
import random
from dataclasses import dataclass
from typing import ClassVar, Iterable, List, Optional, Sequence

from .board import Board, BoardExplorer, GridVec
from .utils import get_neighborhoods

logger = logging.getLogger(__name__)

MINES_GENERATION_ALGORITHMS = ("safe_first_action_rule", "safe_neighborhood_rule")


@dataclass(frozen=True)
class Field:
    """
    A cell of the authoritative board: either a mine or an empty cell that
    knows how many of its neighbours are mines.
    """

    mine: bool
    count: int = 0

    MINE: ClassVar["Field"]

    @classmethod
    def empty(cls, count: int) -> "Field":
        if not 0 <= count <= 8:
            raise ValueError(f"Adjacent mine count must be in [0, 8], got {count}.")
        return cls(False, count)

    def is_mine(self) -> bool:
        return self.mine

    def is_blank(self) -> bool:
        return not self.mine and self.count == 0

    def __str__(self) -> str:
        return "M" if self.mine else str(self.count)


Field.MINE = Field(True)


class GameSetup:
    """Finished mine layout with per-cell adjacent mine counts."""

    def __init__(self, mine_mask: Board[bool]) -> None:
        """
        Compute the authoritative board from a mine mask.

        Args:
            mine_mask: Board where True marks a mine.
        """
        self.board: Board[Field] = Board(mine_mask.width, mine_mask.height, Field.empty(0))
        self.mines: int = 0

        neighborhoods = get_neighborhoods(mine_mask.width, mine_mask.height)
        for pos, is_mine in mine_mask.enumerate():
            if is_mine:
                self.mines += 1
                self.board[pos] = Field.MINE
                continue
            count = sum(1 for n in neighborhoods[pos] if mine_mask[n])
            self.board[pos] = Field.empty(count)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[bool]]) -> "GameSetup":
        """Build a setup from rows of booleans (rows[y][x] is True for a mine)."""
        return cls(Board.from_rows(rows))

    @property
    def width(self) -> int:
        return self.board.width

    @property
    def height(self) -> int:
        return self.board.height

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GameSetup):
            return NotImplemented
        return self.board == other.board

    def __hash__(self) -> int:
        return hash(self.board)


class GameSetupBuilder:
    """Collects mine positions, honouring a set of protected (mine-free) cells."""

    def __init__(self, width: int, height: int, rng: Optional[random.Random] = None) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("Width and height must be positive.")
        self.mines: Board[bool] = Board(width, height, False)
        self.protected: Board[bool] = Board(width, height, False)
        self.rng: random.Random = rng if rng is not None else random.Random()

    def has_mine(self, pos: GridVec) -> bool:
        return self.mines[pos]

    def is_protected(self, pos: GridVec) -> bool:
        return self.protected[pos]

    def set_mine(self, pos: GridVec) -> None:
        if self.is_protected(pos):
            raise ValueError(f"Cannot place a mine on protected cell {pos!r}.")
        self.mines[pos] = True

    def protect(self, pos: GridVec) -> None:
        """Exclude pos from mine placement. Positions off the board are ignored."""
        if not self.mines.contains(pos):
            return
        self.mines[pos] = False
        self.protected[pos] = True

    def protect_all(self, positions: Iterable[GridVec]) -> None:
        for pos in positions:
            self.protect(pos)

    def add_random_mines(self, mines_count: int) -> bool:
        """
        Place mines uniformly at random on free, unprotected cells.

        Returns:
            False (placing nothing) if there are fewer eligible cells than
            requested mines, True otherwise.
        """
        if mines_count < 0:
            raise ValueError("mines_count must be non-negative.")

        eligible: List[GridVec] = [
            pos
            for pos in self.mines.positions()
            if not self.is_protected(pos) and not self.has_mine(pos)
        ]
        if len(eligible) < mines_count:
            return False

        for pos in self.rng.sample(eligible, mines_count):
            self.set_mine(pos)
        return True

    def build(self) -> GameSetup:
        return GameSetup(self.mines)


class Game:
    """Authoritative board plus the player's visibility mask."""

    def __init__(self, setup: GameSetup) -> None:
        self.setup: GameSetup = setup
        self.visible: Board[bool] = Board(setup.width, setup.height, False)
        self.hidden_fields: int = setup.width * setup.height
        # Cell guaranteed free of mines by the generation rule, if any.
        self.safe_start: Optional[GridVec] = None

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[bool]]) -> "Game":
        return cls(GameSetup.from_rows(rows))

    @property
    def board(self) -> Board[Field]:
        return self.setup.board

    @property
    def width(self) -> int:
        return self.setup.width

    @property
    def height(self) -> int:
        return self.setup.height

    @property
    def mines_count(self) -> int:
        return self.setup.mines

    def is_visible(self, pos: GridVec) -> bool:
        return self.visible[pos]

    def view(self, pos: GridVec) -> Optional[Field]:
        """Return the field at pos if it has been revealed, else None."""
        if self.is_visible(pos):
            return self.board[pos]
        return None

    def is_win(self) -> bool:
        return self.hidden_fields == self.setup.mines

    def copy(self) -> "Game":
        clone = Game.__new__(Game)
        clone.setup = self.setup
        clone.visible = self.visible.copy()
        clone.hidden_fields = self.hidden_fields
        clone.safe_start = self.safe_start
        return clone

    def open(self, pos: GridVec) -> Optional[List[GridVec]]:
        """
        Reveal pos, flooding outward through blank cells.

        Args:
            pos: Cell to reveal.

        Returns:
            None if pos holds a mine (loss; the board is left untouched),
            otherwise the list of newly revealed positions in reveal order.
            Re-opening an already visible cell returns an empty list.

        Raises:
            ValueError: If pos is outside the board.
        """
        if not self.board.contains(pos):
            raise ValueError(f"Cell {pos!r} is outside the board.")

        if self.board[pos].is_mine():
            logger.debug("Opened mine at %r", pos)
            return None

        neighborhoods = get_neighborhoods(self.width, self.height)
        explorer = BoardExplorer.for_board(self.board)
        explorer.enqueue(pos)

        opened: List[GridVec] = []
        while True:
            current = explorer.pop()
            if current is None:
                break
            if self.visible[current]:
                continue

            self.visible[current] = True
            self.hidden_fields -= 1
            opened.append(current)

            if self.board[current].is_blank():
                explorer.enqueue_all(neighborhoods[current])

        return opened

    # -------------------------------------------------------------------------
    # Display methods
    # -------------------------------------------------------------------------

    _ANSI_RESET = "\033[0m"
    _ANSI_COORD = "\033[96m"
    _ANSI_MINE = "\033[91m"

    def format_board(self, reveal_all: bool = False, color: bool = True) -> str:
        """
        Render the board as a multi-line string for terminal display.

        Args:
            reveal_all: If True, show mines and all underlying values.
            color: If True, wrap coordinates and mines in ANSI colors.

        Returns:
            A formatted multi-line string with coordinate labels and the board grid.
        """

        def c(s: str) -> str:
            return f"{self._ANSI_COORD}{s}{self._ANSI_RESET}" if color else s

        def m(s: str) -> str:
            return f"{self._ANSI_MINE}{s}{self._ANSI_RESET}" if color else s

        def cell_str(x: int, y: int) -> str:
            pos = GridVec(x, y)
            if reveal_all or self.visible[pos]:
                field = self.board[pos]
                return m("M") if field.is_mine() else str(field)
            return "."

        w, h = self.width, self.height
        header_cells = " ".join(f"{x:2d}" for x in range(w))
        out = [c("   ") + c(header_cells), c("   " + "-" * (3 * w - 1))]
        for y in range(h):
            row_cells = " ".join(f" {cell_str(x, y)}" for x in range(w))
            out.append(c(f"{y:2d} ") + c("|") + row_cells)

        return "\n".join(out)

    def print_board(self) -> None:
        """Print the current visible board state to stdout."""
        print(self.format_board(reveal_all=False))

    def print_full_board(self) -> None:
        """Print the fully revealed underlying board to stdout (for debugging)."""
        print(self.format_board(reveal_all=True))


def default_first_move(width: int, height: int, mines_generation_algorithm: str) -> GridVec:
    """Corner for the single-cell rule, board centre for the neighbourhood rule."""
    if mines_generation_algorithm == "safe_first_action_rule":
        return GridVec(0, 0)
    return GridVec(width // 2, height // 2)


def new_game(
    width: int,
    height: int,
    mines_count: int,
    mines_generation_algorithm: str = "safe_neighborhood_rule",
    first_move: Optional[GridVec] = None,
    rng: Optional[random.Random] = None,
) -> Game:
    """
    Create a random game whose first move is guaranteed safe.

    Args:
        width: Board width (number of columns), must be > 0.
        height: Board height (number of rows), must be > 0.
        mines_count: Total number of mines to place, must be >= 0.
        mines_generation_algorithm: Mine placement rule; one of
            {"safe_first_action_rule", "safe_neighborhood_rule"}. The first
            keeps only the first move free of mines, the second also keeps
            its neighbours free.
        first_move: Cell that will be opened first. Defaults to the top-left
            corner or the board centre depending on the rule.
        rng: Random source for mine placement.

    Returns:
        A fresh Game with nothing revealed yet.

    Raises:
        ValueError: If dimensions are invalid, the rule is unrecognized or
            there are not enough free cells for the requested mines.
    """
    if width <= 0 or height <= 0:
        raise ValueError("Width and height must be positive.")
    if mines_count < 0:
        raise ValueError("mines_count must be non-negative.")
    if mines_generation_algorithm not in MINES_GENERATION_ALGORITHMS:
        raise ValueError(
            'mines_generation_algorithm must be "safe_first_action_rule" '
            'or "safe_neighborhood_rule".'
        )

    if first_move is None:
        first_move = default_first_move(width, height, mines_generation_algorithm)

    builder = GameSetupBuilder(width, height, rng=rng)
    if not builder.mines.contains(first_move):
        raise ValueError(f"First move {first_move!r} is outside the board.")

    if mines_generation_algorithm == "safe_first_action_rule":
        builder.protect(first_move)
    else:
        builder.protect_all(first_move.with_neighbours())

    if not builder.add_random_mines(mines_count):
        raise ValueError(
            f"Cannot place {mines_count} mines while satisfying "
            f"{mines_generation_algorithm}."
        )

    game = Game(builder.build())
    game.safe_start = first_move
    return game
