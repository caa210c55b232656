import io
import random

import anyio
import pytest

from conftest import RecordingTransport
from nuggets import main as server_main
from nuggets.client import ClientSession
from nuggets.engine.grid import Grid
from nuggets.services.transport import Address

SERVER = Address("127.0.0.1", 40500)


# -----------------------------
# Serveur: arguments
# -----------------------------
def test_missing_map_exits_with_error(tmp_path, capsys):
    assert server_main.main([str(tmp_path / "absent.txt")]) == 1
    assert "fail to load map" in capsys.readouterr().err


@pytest.mark.parametrize("argv", [[], ["a", "1", "extra"], ["map.txt", "0"], ["map.txt", "-3"], ["map.txt", "abc"]])
def test_bad_arguments_exit_with_usage(argv):
    with pytest.raises(SystemExit) as excinfo:
        server_main.main(argv)
    assert excinfo.value.code == 2


def test_seed_is_used(tmp_path, monkeypatch):
    map_file = tmp_path / "room.txt"
    map_file.write_text("+---+\n|...|\n+---+\n", encoding="utf-8")
    seen = {}

    async def fake_serve(master, raw, rng):
        seen["master"], seen["raw"], seen["rng"] = master, raw, rng
        return 0

    monkeypatch.setattr(server_main, "serve", fake_serve)

    assert server_main.main([str(map_file), "42"]) == 0
    assert seen["master"] == Grid.load(map_file)
    assert seen["master"] is not seen["raw"]
    assert seen["rng"].random() == random.Random(42).random()


def test_serve_fails_when_map_has_no_floor(capsys):
    grid = Grid.from_string("+--+\n|##|\n+--+\n")
    code = anyio.run(server_main.serve, grid, grid.copy(), random.Random(1))
    assert code == 1
    assert "no empty floor" in capsys.readouterr().err


# -----------------------------
# Client
# -----------------------------
def _session():
    out = io.StringIO()
    session = ClientSession(RecordingTransport(), SERVER, out=out)
    return session, out


def test_join_as_player_or_spectator():
    session, _ = _session()
    anyio.run(session.join, "Alice")
    anyio.run(session.join, None)
    assert session.transport.to(SERVER) == ["PLAY Alice", "SPECTATE"]


def test_input_sends_one_key_per_character():
    session, _ = _session()
    assert anyio.run(session.on_input, "hj l\n") is False
    assert anyio.run(session.on_input, "") is True
    assert session.transport.to(SERVER) == ["KEY h", "KEY j", "KEY l", "KEY Q"]


def test_player_status_and_display():
    session, out = _session()
    for message in ["OK B", "GRID 3 4", "GOLD 5 12 80", "DISPLAY\n+--+\n|@.|\n+--+\n"]:
        assert anyio.run(session.on_message, SERVER, message) is False

    assert session.alias == "B"
    assert session.grid_size == (3, 4)
    assert out.getvalue() == (
        "Player B has 12 nuggets (80 nuggets unclaimed). GOLD received: 5\n"
        "+--+\n|@.|\n+--+\n"
    )


def test_spectator_status():
    session, _ = _session()
    anyio.run(session.on_message, SERVER, "GOLD 0 0 250")
    assert session.status == "Spectator: 250 nuggets unclaimed."


def test_quit_stops_and_strangers_are_ignored():
    session, out = _session()
    stranger = Address("127.0.0.1", 40999)
    assert anyio.run(session.on_message, stranger, "QUIT bye") is False
    assert anyio.run(session.on_message, SERVER, "QUIT Thanks for playing!") is True
    assert out.getvalue() == "Thanks for playing!\n"
