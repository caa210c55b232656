from pathlib import Path

import pytest

from nuggets.engine.grid import SENTINEL, Grid

MAP_PATH = Path(__file__).resolve().parent.parent / "maps" / "small.txt"

ROOM = "\n".join(
    [
        "+---+   ",
        "|.*A|   ",
        "|..@#####",
        "+---+   ",
    ]
) + "\n"


def test_blank_fills_with_rock():
    grid = Grid.blank(2, 3)
    assert grid.nrows == 2
    assert grid.ncols == 3
    assert grid.to_string() == "   \n   \n"


def test_blank_rejects_negative_dimensions():
    assert Grid.blank(-1, 3) is None
    assert Grid.blank(3, -1) is None


def test_load_map_file():
    grid = Grid.load(MAP_PATH)
    assert grid is not None
    assert grid.nrows == 11
    assert grid.ncols == 40
    assert grid.get_char(0, 0) == "+"
    assert grid.get_char(1, 1) == "."
    assert grid.get_char(2, 11) == "#"


def test_load_missing_file_returns_none(tmp_path):
    assert Grid.load(tmp_path / "nope.txt") is None


def test_width_comes_from_first_line():
    # la 3e ligne est plus longue que la 1re: tronquée
    grid = Grid.from_string(ROOM)
    assert grid.ncols == 8
    assert grid.get_char(2, 7) == "#"
    assert grid.get_char(2, 8) == SENTINEL
    # lignes courtes complétées par du roc
    short = Grid.from_string("+--+\n|.\n")
    assert short.get_char(1, 3) == " "


def test_out_of_range_access():
    grid = Grid.from_string(ROOM)
    before = grid.to_string()
    for r, c in [(-1, 0), (0, -1), (4, 0), (0, 8), (-5, -5)]:
        assert grid.get_char(r, c) == SENTINEL
        grid.update(r, c, "*")
    assert grid.to_string() == before


def test_update_in_range():
    grid = Grid.from_string(ROOM)
    grid.update(1, 1, "*")
    assert grid.get_char(1, 1) == "*"


def test_classification():
    grid = Grid.from_string(ROOM)
    assert grid.is_boundary(0, 0) and grid.is_boundary(0, 1) and grid.is_boundary(1, 0)
    assert grid.is_rock(0, 6)
    assert grid.is_empty_floor(1, 1)
    assert grid.is_gold(1, 2)
    assert grid.is_occupant(1, 3)
    assert grid.is_occupant(2, 3)
    assert grid.is_passage(2, 4)
    assert not grid.is_empty_floor(2, 4)


def test_can_enter():
    grid = Grid.from_string(ROOM)
    # sol, or, occupant, passage
    for r, c in [(1, 1), (1, 2), (1, 3), (2, 3), (2, 4)]:
        assert grid.can_enter(r, c)
    # murs, roc, hors carte
    for r, c in [(0, 0), (0, 2), (1, 4), (1, 6), (-1, 0), (9, 9)]:
        assert not grid.can_enter(r, c)


def test_to_string_round_trip():
    grid = Grid.load(MAP_PATH)
    text = grid.to_string()
    assert text == MAP_PATH.read_text(encoding="utf-8")
    assert Grid.from_string(text) == grid


def test_clean_restores_raw_terrain():
    raw = Grid.from_string("+---+\n|...|\n+---+\n")
    known = raw.copy()
    known.update(1, 1, "*")
    known.update(1, 2, "B")
    known.update(1, 3, "@")
    known.clean(raw)
    assert known == raw


def test_positions_with_predicate():
    grid = Grid.from_string(ROOM)
    assert list(grid.positions(Grid.is_gold)) == [(1, 2)]
    assert len(list(grid.positions(Grid.is_empty_floor))) == 3


@pytest.mark.parametrize("text", ["", "\n"])
def test_degenerate_maps(text):
    grid = Grid.from_string(text)
    assert grid.ncols == 0
    assert grid.to_string() == "\n" * grid.nrows
