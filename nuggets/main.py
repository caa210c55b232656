"""
Serveur Nuggets — Point d'entrée
================================

Rôle
----
- Charge la carte deux fois (grille maître + grille brute), répartit l'or,
- Ouvre le socket UDP et annonce le port,
- Lance la boucle de messages jusqu'à la dernière pile ramassée,
- Envoie puis affiche le tableau de fin de partie.

Usage
-----
    nuggets-server <map-file> [seed]

Codes de sortie
---------------
- 0 : partie terminée normalement
- 1 : carte illisible / socket impossible à lier / erreur de boucle
- 2 : arguments invalides (argparse)
"""
from __future__ import annotations

import argparse
import logging
import random
import sys
from functools import partial
from typing import Optional, Sequence

import anyio

from nuggets.config.settings import settings
from nuggets.engine.grid import Grid
from nuggets.routes.messages import handle_message
from nuggets.services.game_state import Game, GameError
from nuggets.services.transport import MessageTransport

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nuggets-server", description="Nuggets game server")
    parser.add_argument("map_file", help="Map file (one line per grid row)")
    parser.add_argument("seed", nargs="?", type=int, default=None, help="Positive random seed")
    return parser


async def serve(master: Grid, raw: Grid, rng: random.Random) -> int:
    try:
        transport = await MessageTransport.open(settings.BIND_HOST)
    except OSError as exc:
        print(f"Error: cannot open UDP socket: {exc}", file=sys.stderr)
        return 1

    async with transport:
        game = Game(master=master, raw=raw, transport=transport, rng=rng)
        try:
            game.drop_gold()
        except GameError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

        print(f"Ready to play, waiting at port {transport.port}", flush=True)
        ok = await transport.loop(on_message=partial(handle_message, game))
        summary = await game.game_over()

    print(summary, flush=True)
    return 0 if ok else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.seed is not None and args.seed <= 0:
        parser.error("seed should be a positive integer")

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    master = Grid.load(args.map_file)
    raw = Grid.load(args.map_file)
    if master is None or raw is None:
        print(f"Error: fail to load map: {args.map_file}", file=sys.stderr)
        return 1

    rng = random.Random(args.seed)
    return anyio.run(serve, master, raw, rng)


if __name__ == "__main__":
    sys.exit(main())
