"""
Client Nuggets (mode ligne)
===========================

Rôle
----
- Rejoint le serveur comme joueur (`PLAY <nom>`) ou spectateur (`SPECTATE`).
- Chaque ligne tapée est envoyée touche par touche (`KEY <c>`); fin d'entrée -> `KEY Q`.
- Affiche les `DISPLAY` reçus et une ligne d'état construite depuis `GOLD`.
- S'arrête à la réception d'un `QUIT`.

Usage
-----
    nuggets-client <hostname> <port> [playername]
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence, TextIO

import anyio

from nuggets.config.settings import settings
from nuggets.services.transport import Address, MessageTransport, eq_address, resolve_address

logger = logging.getLogger(__name__)


class ClientSession:
    """État minimal côté client: tout le reste vient du serveur."""

    def __init__(
        self,
        transport: MessageTransport,
        server: Address,
        *,
        console: TextIO = sys.stdin,
        out: TextIO = sys.stdout,
    ) -> None:
        self.transport = transport
        self.server = server
        self.console = console
        self.out = out
        self.alias: Optional[str] = None
        self.grid_size: Optional[tuple[int, int]] = None
        self.status = ""

    async def join(self, player_name: Optional[str]) -> None:
        if player_name:
            await self.transport.send(self.server, f"PLAY {player_name}")
        else:
            await self.transport.send(self.server, "SPECTATE")

    async def on_input(self, line: str) -> bool:
        if not line:
            await self.transport.send(self.server, "KEY Q")
            return True
        for key in line:
            if not key.isspace():
                await self.transport.send(self.server, f"KEY {key}")
        return False

    async def on_message(self, sender: Address, message: str) -> bool:
        if not eq_address(sender, self.server):
            logger.warning("Message from unexpected sender", extra={"sender": str(sender)})
            return False

        if message.startswith("DISPLAY\n"):
            print(self.status, file=self.out)
            print(message[len("DISPLAY\n"):], end="", file=self.out, flush=True)
            return False

        keyword, _, rest = message.partition(" ")
        if keyword == "OK":
            self.alias = rest.strip()
        elif keyword == "GRID":
            rows, _, cols = rest.partition(" ")
            try:
                self.grid_size = (int(rows), int(cols))
            except ValueError:
                logger.warning("Malformed GRID message", extra={"payload": message})
        elif keyword == "GOLD":
            self._update_status(rest)
        elif keyword == "ERROR":
            print(f"ERROR: {rest}", file=self.out, flush=True)
        elif keyword == "QUIT":
            print(rest, file=self.out, flush=True)
            return True
        else:
            logger.warning("Unknown message from server", extra={"payload": message})
        return False

    def _update_status(self, rest: str) -> None:
        try:
            collected, purse, left = (int(part) for part in rest.split())
        except ValueError:
            logger.warning("Malformed GOLD message", extra={"payload": rest})
            return
        if self.alias is None:
            self.status = f"Spectator: {left} nuggets unclaimed."
            return
        self.status = f"Player {self.alias} has {purse} nuggets ({left} nuggets unclaimed)."
        if collected:
            self.status += f" GOLD received: {collected}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nuggets-client", description="Nuggets line-mode client")
    parser.add_argument("hostname")
    parser.add_argument("port")
    parser.add_argument("playername", nargs="?", default=None, help="Omit to join as spectator")
    return parser


async def run(hostname: str, port: str, player_name: Optional[str]) -> int:
    server = await resolve_address(hostname, port)
    if server is None:
        print(f"Error: bad hostname or port: {hostname} {port}", file=sys.stderr)
        return 1
    async with await MessageTransport.open() as transport:
        session = ClientSession(transport, server)
        await session.join(player_name)
        ok = await transport.loop(on_input=session.on_input, on_message=session.on_message, console=session.console)
    return 0 if ok else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL, stream=sys.stderr)
    return anyio.run(run, args.hostname, args.port, args.playername)


if __name__ == "__main__":
    sys.exit(main())
