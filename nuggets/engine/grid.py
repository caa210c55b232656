"""
Character grid used for the map.
Holds a fixed rows x cols matrix of single characters and answers cell
classification queries. Out-of-range reads return the SENTINEL character and
out-of-range writes are ignored, so callers never need bounds checks.

Three instances exist per game: the master grid (current occupancy), the raw
grid (terrain only) and one "known" grid per player.
"""
from __future__ import annotations

import logging
import string
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

ROCK = " "
FLOOR = "."
PASSAGE = "#"
GOLD = "*"
CURSOR = "@"
SENTINEL = "^"
BOUNDARY = frozenset("-|+")
OCCUPANT_LETTERS = frozenset(string.ascii_letters)


class Grid:
    """Row-major character matrix with bounded access."""

    def __init__(self, nrows: int, ncols: int, cells: Optional[List[List[str]]] = None) -> None:
        self._nrows = nrows
        self._ncols = ncols
        self._cells = cells if cells is not None else [[ROCK] * ncols for _ in range(nrows)]

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def blank(cls, nrows: int, ncols: int) -> Optional["Grid"]:
        """Grid filled with rock, or None for negative dimensions."""
        if nrows < 0 or ncols < 0:
            return None
        return cls(nrows, ncols)

    @classmethod
    def from_string(cls, text: str) -> "Grid":
        """
        Parse a map: one line per row, the first line fixes the width.
        Short lines are padded with rock, long ones are truncated.
        """
        lines = text.splitlines()
        ncols = len(lines[0]) if lines else 0
        cells = [list(line[:ncols].ljust(ncols, ROCK)) for line in lines]
        return cls(len(lines), ncols, cells)

    @classmethod
    def load(cls, path: Union[str, Path]) -> Optional["Grid"]:
        """Load a map file; None if it cannot be read."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Cannot read map file", extra={"map_path": str(path), "error": str(exc)})
            return None
        return cls.from_string(text)

    def copy(self) -> "Grid":
        return Grid(self._nrows, self._ncols, [list(row) for row in self._cells])

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------
    @property
    def nrows(self) -> int:
        return self._nrows

    @property
    def ncols(self) -> int:
        return self._ncols

    def in_bounds(self, r: int, c: int) -> bool:
        return 0 <= r < self._nrows and 0 <= c < self._ncols

    def get_char(self, r: int, c: int) -> str:
        if self.in_bounds(r, c):
            return self._cells[r][c]
        return SENTINEL

    def update(self, r: int, c: int, ch: str) -> None:
        if self.in_bounds(r, c):
            self._cells[r][c] = ch

    def positions(self, predicate: Callable[["Grid", int, int], bool]) -> Iterator[Tuple[int, int]]:
        """Yield (row, col) of every cell for which predicate(grid, r, c) holds."""
        for r in range(self._nrows):
            for c in range(self._ncols):
                if predicate(self, r, c):
                    yield r, c

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------
    def is_rock(self, r: int, c: int) -> bool:
        return self.get_char(r, c) == ROCK

    def is_boundary(self, r: int, c: int) -> bool:
        return self.get_char(r, c) in BOUNDARY

    def is_empty_floor(self, r: int, c: int) -> bool:
        return self.get_char(r, c) == FLOOR

    def is_passage(self, r: int, c: int) -> bool:
        return self.get_char(r, c) == PASSAGE

    def is_gold(self, r: int, c: int) -> bool:
        return self.get_char(r, c) == GOLD

    def is_occupant(self, r: int, c: int) -> bool:
        ch = self.get_char(r, c)
        return ch in OCCUPANT_LETTERS or ch == CURSOR

    def can_enter(self, r: int, c: int) -> bool:
        return not self.is_boundary(r, c) and not self.is_rock(r, c) and self.get_char(r, c) != SENTINEL

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    def to_string(self) -> str:
        return "".join("".join(row) + "\n" for row in self._cells)

    def clean(self, raw: "Grid") -> None:
        """Reset gold and occupant marks to the raw terrain underneath."""
        for r in range(self._nrows):
            for c in range(self._ncols):
                if self.is_gold(r, c) or self.is_occupant(r, c):
                    self._cells[r][c] = raw.get_char(r, c)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self._cells == other._cells and self._nrows == other._nrows and self._ncols == other._ncols

    def __repr__(self) -> str:
        return f"Grid(nrows={self._nrows}, ncols={self._ncols})"
