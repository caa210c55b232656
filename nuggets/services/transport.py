"""
Service: transport.py
- Un seul socket UDP (anyio) lié à un port éphémère, annoncé au démarrage.
- Envoi "fire-and-forget" vers une adresse: pas d'accusé, pas de retry,
  pas d'ordre garanti. Les échecs sont journalisés puis ignorés.
- Boucle de multiplexage: attend le premier de (timeout | ligne console |
  datagramme) et appelle le handler correspondant. Un handler qui renvoie
  True arrête la boucle.
- Adresses: valeur (host, port) comparable, `NO_ADDRESS` = "non définie".

Les handlers sont toujours exécutés un par un, dans l'ordre où les
événements ont été observés (aucune exécution parallèle).
"""
from __future__ import annotations

import logging
import os
import socket
import sys
from typing import Any, Awaitable, Callable, NamedTuple, Optional, TextIO, Tuple

import anyio
from anyio.abc import ObjectReceiveStream, ObjectSendStream, SocketAttribute, UDPSocket

from nuggets.config.settings import settings

logger = logging.getLogger(__name__)

MIN_PORT = 1024
MAX_PORT = 65535
CONSOLE_CHUNK = 4096

# Types d'événements internes à la boucle
INPUT = "input"
DATAGRAM = "datagram"
FAILURE = "failure"


class Address(NamedTuple):
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port:05d}"


NO_ADDRESS = Address("", 0)

TimeoutHandler = Callable[[], Awaitable[bool]]
InputHandler = Callable[[str], Awaitable[bool]]
MessageHandler = Callable[[Address, str], Awaitable[bool]]


def is_address(addr: Optional[Address]) -> bool:
    """Vrai si l'adresse est utilisable (donc pas `NO_ADDRESS`)."""
    return addr is not None and bool(addr.host) and addr.port > 0


def eq_address(a: Optional[Address], b: Optional[Address]) -> bool:
    return (a or NO_ADDRESS) == (b or NO_ADDRESS)


async def resolve_address(host: str, port: str) -> Optional[Address]:
    """
    Traduit (hostname, port texte) en `Address`.
    Retourne None si le port est invalide/hors plage ou si l'hôte est inconnu.
    """
    try:
        number = int(port)
    except (TypeError, ValueError):
        logger.warning("Bad port number", extra={"port": port})
        return None
    if not MIN_PORT <= number <= MAX_PORT:
        logger.warning("Illegal port number", extra={"port": number})
        return None
    try:
        infos = await anyio.getaddrinfo(host, number, family=socket.AF_INET, type=socket.SOCK_DGRAM)
    except OSError:
        logger.warning("Cannot resolve hostname", extra={"host": host})
        return None
    if not infos:
        return None
    resolved_host, resolved_port = infos[0][4][:2]
    return Address(str(resolved_host), int(resolved_port))


class MessageTransport:
    """Socket UDP unique + boucle de dispatch (voir docstring du module)."""

    def __init__(self, sock: UDPSocket, *, max_bytes: int = settings.MESSAGE_MAX_BYTES) -> None:
        self._socket = sock
        self.max_bytes = max_bytes

    @classmethod
    async def open(cls, host: str = settings.BIND_HOST, port: int = 0) -> "MessageTransport":
        """Crée et lie le socket. Lève OSError si le bind échoue."""
        sock = await anyio.create_udp_socket(family=socket.AF_INET, local_host=host, local_port=port)
        transport = cls(sock)
        logger.debug("Transport ready", extra={"port": transport.port})
        return transport

    @property
    def port(self) -> int:
        return int(self._socket.extra(SocketAttribute.local_port))

    async def aclose(self) -> None:
        await self._socket.aclose()
        logger.debug("Transport closing down")

    async def __aenter__(self) -> "MessageTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ---------- envoi ----------
    async def send(self, to: Address, message: str) -> bool:
        """Envoi best-effort; renvoie True si le datagramme est parti."""
        if not is_address(to):
            logger.warning("Send to unset address dropped", extra={"payload": message})
            return False
        payload = message.encode("utf-8")
        if len(payload) > self.max_bytes:
            logger.error("Message too large for a datagram", extra={"to": str(to), "size": len(payload)})
            return False
        try:
            await self._socket.sendto(payload, to.host, to.port)
        except (OSError, anyio.BrokenResourceError, anyio.ClosedResourceError) as exc:
            logger.error("Sending message failed", extra={"to": str(to), "error": str(exc)})
            return False
        return True

    # ---------- boucle ----------
    async def loop(
        self,
        timeout: float = 0.0,
        on_timeout: Optional[TimeoutHandler] = None,
        on_input: Optional[InputHandler] = None,
        on_message: Optional[MessageHandler] = None,
        *,
        console: Optional[TextIO] = None,
    ) -> bool:
        """
        Boucle jusqu'à ce qu'un handler renvoie True (-> True) ou erreur fatale (-> False).
        - `on_input(line)` est appelé pour chaque ligne lue sur `console` (stdin par
          défaut), fin de ligne comprise; "" signale la fin de l'entrée.
        - `timeout` (secondes) n'a de sens qu'avec `on_timeout`, et inversement.
        """
        if on_timeout is None and on_input is None and on_message is None:
            logger.error("loop called with all handlers unset")
            return False
        if on_timeout is None and timeout > 0:
            logger.error("loop called with a timeout but no timeout handler")
            return False
        if on_timeout is not None and timeout <= 0:
            logger.error("loop called with a timeout handler but no timeout")
            return False

        send_events, receive_events = anyio.create_memory_object_stream(16)
        with send_events, receive_events:
            async with anyio.create_task_group() as tg:
                if on_message is not None:
                    tg.start_soon(self._pump_datagrams, send_events.clone())
                if on_input is not None:
                    tg.start_soon(self._pump_console, console or sys.stdin, send_events.clone())
                stopped = await self._dispatch(receive_events, timeout, on_timeout, on_input, on_message)
                tg.cancel_scope.cancel()
        return stopped

    async def _dispatch(
        self,
        events: ObjectReceiveStream[Tuple[str, Any]],
        timeout: float,
        on_timeout: Optional[TimeoutHandler],
        on_input: Optional[InputHandler],
        on_message: Optional[MessageHandler],
    ) -> bool:
        while True:
            event = None
            with anyio.move_on_after(timeout if timeout > 0 else None):
                event = await events.receive()

            if event is None:
                logger.debug("loop timed out")
                if on_timeout is not None and await on_timeout():
                    return True
                continue

            kind, payload = event
            if kind == INPUT:
                if on_input is not None and await on_input(payload):
                    return True
            elif kind == DATAGRAM:
                sender, text = payload
                if on_message is not None and await on_message(sender, text):
                    return True
            else:
                logger.error("loop stopped on unrecoverable I/O failure", extra={"error": str(payload)})
                return False

    async def _pump_datagrams(self, events: ObjectSendStream[Tuple[str, Any]]) -> None:
        async with events:
            while True:
                try:
                    packet, (host, port) = await self._socket.receive()
                except (anyio.ClosedResourceError, anyio.BrokenResourceError) as exc:
                    await events.send((FAILURE, exc))
                    return
                except OSError as exc:
                    # ex: ICMP port unreachable remonté par le noyau; on continue
                    logger.error("Receiving from socket failed", extra={"error": str(exc)})
                    continue
                sender = Address(str(host), int(port))
                text = packet.decode("utf-8", errors="replace")
                logger.debug("Datagram received", extra={"sender": str(sender), "payload": text})
                await events.send((DATAGRAM, (sender, text)))

    async def _pump_console(self, console: TextIO, events: ObjectSendStream[Tuple[str, Any]]) -> None:
        """
        Lit le descripteur brut (pas le tampon de `console`) et découpe les lignes
        lui-même: une rafale de plusieurs lignes donne un événement par ligne.
        Fin d'entrée -> une ligne vide "" puis arrêt du pump.
        """
        async with events:
            try:
                fd = console.fileno()
            except (OSError, ValueError) as exc:
                logger.error("Console has no file descriptor", extra={"error": str(exc)})
                await events.send((FAILURE, exc))
                return

            pending = b""
            watch = True
            while True:
                if watch:
                    try:
                        await anyio.wait_readable(fd)
                    except OSError as exc:
                        # fichier ordinaire: non surveillable mais toujours lisible
                        logger.debug("Console not pollable, reading directly", extra={"error": str(exc)})
                        watch = False
                else:
                    await anyio.sleep(0)

                try:
                    chunk = os.read(fd, CONSOLE_CHUNK)
                except OSError as exc:
                    logger.error("Cannot read console input", extra={"error": str(exc)})
                    await events.send((FAILURE, exc))
                    return

                if not chunk:
                    if pending:
                        await events.send((INPUT, pending.decode("utf-8", errors="replace")))
                    await events.send((INPUT, ""))
                    return

                *lines, pending = (pending + chunk).split(b"\n")
                for line in lines:
                    await events.send((INPUT, (line + b"\n").decode("utf-8", errors="replace")))
