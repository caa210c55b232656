"""
Line-of-sight between grid cells.
A cell blocks sight unless it is empty floor, gold or an occupant; walls,
passages, rock and anything off the map block.

The line between observer and target is sampled at every intervening row and
every intervening column. A sample landing exactly on a cell is decided by
that cell alone; a sample falling between two cells is occluded only when
both of them block, so sight can slip diagonally past a single corner.
Samples are computed with integer division, which keeps the test exact and
symmetric in observer and target.
"""
from __future__ import annotations

from typing import Optional

from .grid import CURSOR, Grid


def is_blocking(grid: Grid, r: int, c: int) -> bool:
    return not grid.is_empty_floor(r, c) and not grid.is_gold(r, c) and not grid.is_occupant(r, c)


def _sample_blocks(grid: Grid, r: int, c: int, remainder: int, along_row: bool) -> bool:
    if remainder == 0:
        return is_blocking(grid, r, c)
    if along_row:
        return is_blocking(grid, r, c) and is_blocking(grid, r, c + 1)
    return is_blocking(grid, r, c) and is_blocking(grid, r + 1, c)


def is_visible(master: Grid, pr: int, pc: int, r: int, c: int) -> bool:
    """True if (r, c) can be seen from (pr, pc) on the master grid."""
    r1, r2 = sorted((pr, r))
    c1, c2 = sorted((pc, c))
    drow = r - pr
    dcol = c - pc

    if drow == 0:
        for j in range(c1 + 1, c2):
            if is_blocking(master, pr, j):
                return False

    if dcol == 0:
        for i in range(r1 + 1, r2):
            if is_blocking(master, i, pc):
                return False

    # column crossed at each intervening row (empty range when drow == 0)
    for i in range(r1 + 1, r2):
        offset, remainder = divmod((i - pr) * dcol, drow)
        if _sample_blocks(master, i, pc + offset, remainder, along_row=True):
            return False

    # row crossed at each intervening column
    for j in range(c1 + 1, c2):
        offset, remainder = divmod((j - pc) * drow, dcol)
        if _sample_blocks(master, pr + offset, j, remainder, along_row=False):
            return False

    return True


def set_visibility(
    master: Optional[Grid],
    raw: Optional[Grid],
    known: Optional[Grid],
    pr: int,
    pc: int,
) -> None:
    """
    Refresh a player's known grid from (pr, pc).
    Previously seen terrain is kept; gold and occupants are only shown where
    currently visible. The observer's own cell is stamped with the cursor.
    """
    if master is None or raw is None or known is None:
        return
    known.clean(raw)
    for r, c in master.positions(lambda g, row, col: not g.is_rock(row, col)):
        if is_visible(master, pr, pc, r, c):
            known.update(r, c, master.get_char(r, c))
    known.update(pr, pc, CURSOR)
