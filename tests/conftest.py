import random

import pytest

from nuggets.config.settings import Settings
from nuggets.engine.grid import Grid
from nuggets.services.game_state import Game
from nuggets.services.transport import Address

ALICE = Address("127.0.0.1", 40001)
BOB = Address("127.0.0.1", 40002)
WATCHER = Address("127.0.0.1", 40100)


class RecordingTransport:
    """Remplace le socket UDP: garde chaque (destinataire, message) envoyé."""

    def __init__(self) -> None:
        self.sent = []

    async def send(self, to, message):
        self.sent.append((to, message))
        return True

    def to(self, address):
        return [message for target, message in self.sent if target == address]

    def clear(self):
        self.sent.clear()


def build_game(text: str, seed: int = 7, **overrides) -> Game:
    return Game(
        master=Grid.from_string(text),
        raw=Grid.from_string(text),
        transport=RecordingTransport(),
        rng=random.Random(seed),
        config=Settings(**overrides),
    )


@pytest.fixture
def make_game():
    return build_game
