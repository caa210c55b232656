"""
Service: game_state.py
Rôle :
- Agrégat unique et autoritatif de la partie: grille maître (occupation),
  grille brute (terrain seul), joueurs, spectateur, économie de l'or.
- Chaque handler reçoit l'instance `Game` explicitement (pas d'état global).
- Après chaque mutation, `broadcast()` pousse l'état à tous les clients.

Invariants :
- `gold_collected + gold_left == gold_total` à tout moment.
- `len(players) <= MAX_PLAYERS`; alias attribués dans l'ordre d'arrivée.
- Chaque lettre de la grille maître correspond à exactement un joueur vivant.

Les entrées invalides ne lèvent jamais d'exception : elles sont ignorées ou
reçoivent une réponse `ERROR` / `QUIT`.
"""
from __future__ import annotations

import logging
import random
import string
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from nuggets.config.settings import Settings, settings
from nuggets.engine.grid import GOLD, Grid
from nuggets.engine.visibility import set_visibility
from nuggets.models.player import PlayerSummary
from .transport import NO_ADDRESS, Address, eq_address, is_address

logger = logging.getLogger(__name__)

ALIASES = string.ascii_uppercase

# touche -> (delta ligne, delta colonne); majuscule = répéter jusqu'au blocage
MOVES = {
    "h": (0, -1),
    "l": (0, 1),
    "j": (1, 0),
    "k": (-1, 0),
    "y": (-1, -1),
    "u": (-1, 1),
    "b": (1, -1),
    "n": (1, 1),
}
QUIT_KEY = "Q"

MSG_GAME_FULL = "QUIT Game is full: no more players can join."
MSG_NO_NAME = "QUIT Sorry: you must provide player's name."
MSG_NO_ROOM = "QUIT Sorry: there is no room left on the map."
MSG_REPLACED = "QUIT You have been replaced by a new spectator."
MSG_BYE_SPECTATOR = "QUIT Thanks for watching!"
MSG_BYE_PLAYER = "QUIT Thanks for playing!"


class GameError(RuntimeError):
    """Partie impossible à initialiser (ex: carte sans sol libre pour l'or)."""


def sanitize_name(name: str, max_length: int) -> str:
    """Tronque et remplace tout caractère hors ASCII graphique ou blanc (espace/tab) par '_'."""
    return "".join(
        ch if ch in " \t" or "!" <= ch <= "~" else "_"
        for ch in name[:max_length]
    )


@dataclass
class Player:
    address: Address
    name: str
    alias: str
    row: int
    col: int
    known: Grid
    purse: int = 0
    just_collected: int = 0

    def summary(self) -> PlayerSummary:
        return PlayerSummary(alias=self.alias, purse=self.purse, name=self.name)


@dataclass
class Game:
    master: Grid
    raw: Grid
    transport: Any
    rng: random.Random = field(default_factory=random.Random)
    config: Settings = field(default_factory=lambda: settings)
    players: Dict[Address, Player] = field(default_factory=dict)
    spectator: Address = NO_ADDRESS
    departed: List[PlayerSummary] = field(default_factory=list)
    gold_total: int = field(init=False)
    gold_collected: int = field(init=False, default=0)
    gold_left: int = field(init=False)
    piles_left: int = field(init=False, default=0)
    joined: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.gold_total = self.config.GOLD_TOTAL
        self.gold_left = self.gold_total

    @property
    def rows(self) -> int:
        return self.master.nrows

    @property
    def cols(self) -> int:
        return self.master.ncols

    @property
    def finished(self) -> bool:
        """Toutes les piles ramassées (et donc tout l'or)."""
        return self.piles_left == 0 and self.gold_left == 0

    # -----------------------------
    # Or
    # -----------------------------
    def drop_gold(self) -> int:
        """Répartit l'or en piles sur des cases de sol libres; renvoie le nombre de piles."""
        free = list(self.master.positions(Grid.is_empty_floor))
        if not free:
            raise GameError("map has no empty floor to drop gold on")

        low, high = self.config.GOLD_MIN_NUM_PILES, self.config.GOLD_MAX_NUM_PILES
        piles = self.rng.randrange(low, high) if high > low else low
        piles = max(1, min(piles, len(free), self.gold_total))

        for r, c in self.rng.sample(free, piles):
            self.master.update(r, c, GOLD)

        self.gold_collected = 0
        self.gold_left = self.gold_total
        self.piles_left = piles
        logger.info("Gold dropped", extra={"piles": piles, "gold_total": self.gold_total})
        return piles

    def _pickup_gold(self, player: Player) -> int:
        if self.piles_left <= 0:
            logger.warning("Gold found on map with no pile left", extra={"alias": player.alias})
            return 0
        if self.piles_left == 1:
            amount = self.gold_left
        else:
            amount = self.rng.randint(1, self.gold_left - self.piles_left + 1)

        player.purse += amount
        player.just_collected = amount
        self.gold_collected += amount
        self.gold_left -= amount
        self.piles_left -= 1
        logger.info(
            "Gold collected",
            extra={"alias": player.alias, "amount": amount, "gold_left": self.gold_left, "piles_left": self.piles_left},
        )
        return amount

    # -----------------------------
    # Arrivées / départs
    # -----------------------------
    async def handle_play(self, sender: Address, name: str) -> Optional[Player]:
        """PLAY <name> : crée un joueur ou répond par un QUIT de refus."""
        existing = self.players.get(sender)
        if existing is not None:
            # doublon de datagramme: on réexpédie la confirmation
            await self._send_welcome(existing)
            return existing

        if len(self.players) >= self.config.MAX_PLAYERS or self.joined >= len(ALIASES):
            logger.warning("Join refused: game full", extra={"sender": str(sender)})
            await self.transport.send(sender, MSG_GAME_FULL)
            return None
        if not name.strip():
            logger.warning("Join refused: empty name", extra={"sender": str(sender)})
            await self.transport.send(sender, MSG_NO_NAME)
            return None

        free = list(self.master.positions(Grid.is_empty_floor))
        if not free:
            logger.warning("Join refused: no room", extra={"sender": str(sender)})
            await self.transport.send(sender, MSG_NO_ROOM)
            return None
        row, col = self.rng.choice(free)

        player = Player(
            address=sender,
            name=sanitize_name(name, self.config.MAX_NAME_LENGTH),
            alias=ALIASES[self.joined],
            row=row,
            col=col,
            known=Grid(self.rows, self.cols),
        )
        self.players[sender] = player
        self.joined += 1
        self.master.update(row, col, player.alias)
        logger.info("Player joined", extra={"alias": player.alias, "player_name": player.name, "sender": str(sender)})

        await self._send_welcome(player)
        await self.broadcast()
        return player

    async def _send_welcome(self, player: Player) -> None:
        await self.transport.send(player.address, f"OK {player.alias}")
        await self.transport.send(player.address, f"GRID {self.rows} {self.cols}")

    async def handle_spectate(self, sender: Address) -> None:
        """SPECTATE : remplace l'éventuel spectateur précédent."""
        if is_address(self.spectator) and not eq_address(self.spectator, sender):
            await self.transport.send(self.spectator, MSG_REPLACED)
            logger.info("Spectator replaced", extra={"previous": str(self.spectator)})
        self.spectator = sender
        await self.transport.send(sender, f"GRID {self.rows} {self.cols}")
        await self.broadcast()

    async def handle_quit(self, sender: Address) -> None:
        known_sender = False
        if is_address(self.spectator) and eq_address(self.spectator, sender):
            await self.transport.send(sender, MSG_BYE_SPECTATOR)
            self.spectator = NO_ADDRESS
            known_sender = True
            logger.info("Spectator left", extra={"sender": str(sender)})

        player = self.players.pop(sender, None)
        if player is not None:
            await self.transport.send(sender, MSG_BYE_PLAYER)
            self.master.update(player.row, player.col, self.raw.get_char(player.row, player.col))
            self.departed.append(player.summary())
            known_sender = True
            logger.info("Player left", extra={"alias": player.alias, "purse": player.purse})

        if not known_sender:
            logger.warning("Quit from unknown sender", extra={"sender": str(sender)})
            return
        await self.broadcast()

    # -----------------------------
    # Déplacements
    # -----------------------------
    async def handle_key(self, sender: Address, key: str) -> bool:
        """KEY <c> : renvoie True quand la partie est terminée (arrêt de la boucle)."""
        if key == QUIT_KEY:
            await self.handle_quit(sender)
            return False

        player = self.players.get(sender)
        if player is None:
            logger.warning("Keystroke from a sender that has not joined", extra={"sender": str(sender), "key": key})
            return False

        direction = MOVES.get(key.lower()) if len(key) == 1 else None
        if direction is None:
            logger.warning("Unknown keystroke", extra={"alias": player.alias, "key": key})
            await self.transport.send(sender, f"ERROR Unknown Keystroke: {key}")
            return False

        drow, dcol = direction
        if key.isupper():
            while await self.move(player, player.row + drow, player.col + dcol):
                pass
        else:
            await self.move(player, player.row + drow, player.col + dcol)

        return self.finished

    async def move(self, player: Player, new_row: int, new_col: int) -> bool:
        """Un pas vers (new_row, new_col); False si la case est infranchissable."""
        if not self.master.can_enter(new_row, new_col):
            return False

        old_row, old_col = player.row, player.col
        if self.master.is_occupant(new_row, new_col):
            other = self._player_at(new_row, new_col)
            if other is None:
                logger.warning("Occupant mark without player", extra={"row": new_row, "col": new_col})
                return False
            # échange de places
            other.row, other.col = old_row, old_col
            self.master.update(old_row, old_col, other.alias)
        else:
            self.master.update(old_row, old_col, self.raw.get_char(old_row, old_col))

        found_gold = self.master.is_gold(new_row, new_col)
        player.row, player.col = new_row, new_col
        self.master.update(new_row, new_col, player.alias)
        if found_gold:
            self._pickup_gold(player)

        await self.broadcast()
        return True

    def _player_at(self, row: int, col: int) -> Optional[Player]:
        for player in self.players.values():
            if player.row == row and player.col == col:
                return player
        return None

    # -----------------------------
    # Diffusion
    # -----------------------------
    async def broadcast(self) -> None:
        """Spectateur: vue complète. Joueurs: or personnel + vue limitée par la visibilité."""
        if is_address(self.spectator):
            await self.transport.send(self.spectator, f"GOLD 0 0 {self.gold_left}")
            await self.transport.send(self.spectator, "DISPLAY\n" + self.master.to_string())

        for player in list(self.players.values()):
            await self.transport.send(
                player.address,
                f"GOLD {player.just_collected} {player.purse} {self.gold_left}",
            )
            player.just_collected = 0
            set_visibility(self.master, self.raw, player.known, player.row, player.col)
            await self.transport.send(player.address, "DISPLAY\n" + player.known.to_string())

    def summaries(self) -> List[PlayerSummary]:
        """Tous les joueurs ayant rejoint (partis compris), par ordre d'alias."""
        everyone = self.departed + [player.summary() for player in self.players.values()]
        return sorted(everyone, key=lambda summary: summary.alias)

    async def game_over(self) -> str:
        """Envoie le tableau final à tous les clients encore présents et le renvoie."""
        message = "QUIT GAME OVER:\n" + "".join(summary.row() + "\n" for summary in self.summaries())
        if is_address(self.spectator):
            await self.transport.send(self.spectator, message)
        for player in self.players.values():
            await self.transport.send(player.address, message)
        logger.info("Game over", extra={"players": len(self.players), "gold_collected": self.gold_collected})
        return message
