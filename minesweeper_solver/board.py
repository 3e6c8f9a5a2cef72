"""Grid primitives: integer vectors, dense boards and breadth-first explorers."""

from collections import deque
from typing import (
    Deque,
    Generic,
    Iterable,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Tuple,
    TypeVar,
)

T = TypeVar("T")


class GridVec(NamedTuple):
    """Integer (x, y) offset on a grid. No bounds checking at this level."""

    x: int
    y: int

    def __add__(self, other: "GridVec") -> "GridVec":
        return GridVec(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "GridVec") -> "GridVec":
        return GridVec(self.x - other.x, self.y - other.y)

    def __neg__(self) -> "GridVec":
        return GridVec(-self.x, -self.y)

    def neighbours(self) -> Iterator["GridVec"]:
        """Yield the 8 surrounding positions (possibly out of any board)."""
        for d in DIRECTIONS:
            yield self + d

    def with_neighbours(self) -> Iterator["GridVec"]:
        """Yield this position together with its 8 surrounding positions."""
        for d in CENTER_AND_DIRECTIONS:
            yield self + d

    def __repr__(self) -> str:
        return f"({self.x}, {self.y})"


NORTH = GridVec(0, -1)
NORTH_EAST = GridVec(1, -1)
EAST = GridVec(1, 0)
SOUTH_EAST = GridVec(1, 1)
SOUTH = GridVec(0, 1)
SOUTH_WEST = GridVec(-1, 1)
WEST = GridVec(-1, 0)
NORTH_WEST = GridVec(-1, -1)
CENTER = GridVec(0, 0)

ORTHOGONAL_DIRECTIONS: Tuple[GridVec, ...] = (NORTH, EAST, SOUTH, WEST)
DIRECTIONS: Tuple[GridVec, ...] = (
    NORTH_WEST, NORTH, NORTH_EAST, WEST, EAST, SOUTH_WEST, SOUTH, SOUTH_EAST,
)
CENTER_AND_DIRECTIONS: Tuple[GridVec, ...] = (
    NORTH_WEST, NORTH, NORTH_EAST, WEST, CENTER, EAST, SOUTH_WEST, SOUTH, SOUTH_EAST,
)


class Board(Generic[T]):
    """
    Rectangular grid of cells addressed by GridVec.

    Cells are stored row-major (by y, then x) in a flat list. Lookups with
    either coordinate negative or past the corresponding dimension are out of
    bounds: `get` returns None, indexing raises IndexError.
    """

    __slots__ = ("width", "height", "_fields")

    def __init__(self, width: int, height: int, default: T) -> None:
        if width < 0 or height < 0:
            raise ValueError("Board dimensions must be non-negative.")
        self.width: int = width
        self.height: int = height
        self._fields: List[T] = [default] * (width * height)

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[T]]) -> "Board[T]":
        """Build a board from a list of rows (rows[y][x])."""
        materialized = [list(row) for row in rows]
        height = len(materialized)
        width = len(materialized[0]) if materialized else 0
        if any(len(row) != width for row in materialized):
            raise ValueError("All rows must have the same length.")

        board: "Board[T]" = cls.__new__(cls)
        board.width = width
        board.height = height
        board._fields = [value for row in materialized for value in row]
        return board

    def _index(self, pos: GridVec) -> Optional[int]:
        x, y = pos
        if 0 <= x < self.width and 0 <= y < self.height:
            return x + y * self.width
        return None

    def contains(self, pos: GridVec) -> bool:
        return self._index(pos) is not None

    def get(self, pos: GridVec) -> Optional[T]:
        index = self._index(pos)
        if index is None:
            return None
        return self._fields[index]

    def __getitem__(self, pos: GridVec) -> T:
        index = self._index(pos)
        if index is None:
            raise IndexError(
                f"Cannot access position {pos!r} on board with size "
                f"{self.width}x{self.height}"
            )
        return self._fields[index]

    def __setitem__(self, pos: GridVec, value: T) -> None:
        index = self._index(pos)
        if index is None:
            raise IndexError(
                f"Cannot set position {pos!r} on board with size "
                f"{self.width}x{self.height}"
            )
        self._fields[index] = value

    def positions(self) -> Iterator[GridVec]:
        """Yield every position row by row."""
        for y in range(self.height):
            for x in range(self.width):
                yield GridVec(x, y)

    def enumerate(self) -> Iterator[Tuple[GridVec, T]]:
        """Yield (position, value) pairs row by row."""
        return zip(self.positions(), self._fields)

    def values(self) -> Iterator[T]:
        return iter(self._fields)

    def copy(self) -> "Board[T]":
        """
        Return an independent copy of the board.

        Stored values are expected to be immutable, so copying the backing
        list yields a snapshot that shares no mutable storage.
        """
        clone: "Board[T]" = Board.__new__(Board)
        clone.width = self.width
        clone.height = self.height
        clone._fields = list(self._fields)
        return clone

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and self._fields == other._fields
        )

    def __hash__(self) -> int:
        return hash((self.width, self.height, tuple(self._fields)))

    def __repr__(self) -> str:
        return f"Board({self.width}x{self.height})"


class BoardExplorer:
    """
    Breadth-first work queue over board positions with a visited mask.

    In one-shot mode a position is enqueued at most once per traversal. With
    `allow_multiple_enqueue` set, popping a position clears its visited mark so
    it may be enqueued again later.
    """

    def __init__(self, width: int, height: int, allow_multiple_enqueue: bool = False) -> None:
        self._queue: Deque[GridVec] = deque()
        self._visited: Board[bool] = Board(width, height, False)
        self.allow_multiple_enqueue: bool = allow_multiple_enqueue

    @classmethod
    def for_board(cls, board: Board, allow_multiple_enqueue: bool = False) -> "BoardExplorer":
        return cls(board.width, board.height, allow_multiple_enqueue)

    def enqueue(self, pos: GridVec) -> bool:
        """Queue pos unless it is out of bounds or already visited."""
        visited = self._visited.get(pos)
        if visited is None or visited:
            return False
        self._visited[pos] = True
        self._queue.append(pos)
        return True

    def enqueue_all(self, positions: Iterable[GridVec]) -> None:
        for pos in positions:
            self.enqueue(pos)

    def pop(self) -> Optional[GridVec]:
        if not self._queue:
            return None
        pos = self._queue.popleft()
        if self.allow_multiple_enqueue:
            self._visited[pos] = False
        return pos

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)
