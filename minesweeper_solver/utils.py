"""Utility functions for the Minesweeper solver."""

from typing import Dict, List, Tuple

from .board import DIRECTIONS, GridVec

Neighborhoods = Dict[GridVec, Tuple[GridVec, ...]]

# Module-level cache: (width, height) -> {pos: (neighbour, ...), ...}
_NEIGHBORHOODS_CACHE: Dict[Tuple[int, int], Neighborhoods] = {}


def get_neighborhoods(width: int, height: int) -> Neighborhoods:
    """
    Precompute and cache in-bounds 8-connected neighbours for every cell.

    Args:
        width: Grid width (number of columns). Must be non-negative.
        height: Grid height (number of rows). Must be non-negative.

    Returns:
        Mapping from each position to a tuple of its neighbours that lie on
        the grid, in DIRECTIONS order.

    Raises:
        ValueError: If width or height is negative.
    """
    if width < 0 or height < 0:
        raise ValueError("width and height must be non-negative.")

    key = (width, height)
    cached = _NEIGHBORHOODS_CACHE.get(key)
    if cached is not None:
        return cached

    neighborhoods: Neighborhoods = {}
    for y in range(height):
        for x in range(width):
            nbrs: List[GridVec] = []
            for dx, dy in DIRECTIONS:
                nx, ny = x + dx, y + dy
                if 0 <= nx < width and 0 <= ny < height:
                    nbrs.append(GridVec(nx, ny))
            neighborhoods[GridVec(x, y)] = tuple(nbrs)

    _NEIGHBORHOODS_CACHE[key] = neighborhoods
    return neighborhoods
