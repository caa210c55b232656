"""
Module routes/messages.py
Rôle:
- Point d'entrée de chaque datagramme reçu par le serveur.
- Aiguille selon le mot-clé (PLAY / SPECTATE / KEY) vers la partie.
- Mot-clé inconnu -> `ERROR` au client, journalisé, la partie continue.

Le handler renvoie True uniquement quand la partie est terminée, ce qui
arrête la boucle du transport.
"""
from __future__ import annotations

import logging

from nuggets.services.game_state import Game
from nuggets.services.transport import Address

logger = logging.getLogger(__name__)


async def handle_message(game: Game, sender: Address, message: str) -> bool:
    """Dispatch `<KEYWORD> <argument>`; les retours à la ligne finaux sont ignorés."""
    line = message.rstrip("\r\n")
    keyword, _, argument = line.partition(" ")

    if keyword == "PLAY":
        await game.handle_play(sender, argument)
        return False
    if keyword == "SPECTATE":
        await game.handle_spectate(sender)
        return False
    if keyword == "KEY":
        return await game.handle_key(sender, argument[:1])

    logger.warning("Unknown command", extra={"sender": str(sender), "keyword": keyword})
    await game.transport.send(sender, f"ERROR Unknown command: {keyword}")
    return False
