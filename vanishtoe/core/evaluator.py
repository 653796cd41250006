from __future__ import annotations

from collections.abc import Sequence
from functools import lru_cache

DRAW = "Draw"


@lru_cache(maxsize=32)
def winning_lines(size: int) -> tuple[tuple[int, ...], ...]:
    """Return every line of a `size` x `size` grid as row-major cell indices.

    Order: rows, then columns, then the main diagonal and the anti-diagonal.
    """

    if size < 3:
        raise ValueError(f"Grid size must be at least 3 (got {size})")

    rows = [tuple(r * size + c for c in range(size)) for r in range(size)]
    cols = [tuple(r * size + c for r in range(size)) for c in range(size)]
    diag = tuple(i * size + i for i in range(size))
    anti = tuple(i * size + (size - 1 - i) for i in range(size))
    return (*rows, *cols, diag, anti)


def has_line(grid: Sequence[str | None], size: int, mark: str) -> bool:
    """True iff `mark` fully occupies at least one row, column or diagonal."""

    if len(grid) != size * size:
        raise ValueError(f"Grid has {len(grid)} cells, expected {size * size}")
    return any(all(grid[idx] == mark for idx in line) for line in winning_lines(size))


def is_draw(grid: Sequence[str | None]) -> bool:
    # Only meaningful once the win check for the mover has failed.
    return all(cell is not None for cell in grid)
