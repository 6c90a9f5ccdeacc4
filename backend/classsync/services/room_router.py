"""
Salles de diffusion temps réel et fan-out des événements serveur.

Clés de salle :
- class_<classId>               : toute la classe (présence, état de séance, chat de classe)
- group_<classId>_<groupNumber> : un groupe de travail (chat et note du groupe)

Le routeur ne fait aucun contrôle d'accès : les droits sont vérifiés par les
services avant toute écriture. Une connexion peut appartenir à plusieurs salles.
État propre au processus : plusieurs instances du serveur ne partagent pas leurs salles.
"""

import uuid
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Set

from classsync.schemas.events import ServerEvent

logger = logging.getLogger(__name__)


def class_room(class_id: uuid.UUID) -> str:
    return f"class_{class_id}"


def group_room(class_id: uuid.UUID, group_number: int) -> str:
    return f"group_{class_id}_{group_number}"


def resolve_room(class_id: uuid.UUID, group_number: Optional[int] = None) -> str:
    """Salle cible d'un événement : groupe si un numéro est fourni, sinon la classe."""
    if group_number is None:
        return class_room(class_id)
    return group_room(class_id, group_number)


class RoomRouter:
    """
    Connexions ouvertes, appartenance aux salles et diffusion.

    Les connexions sont des objets exposant `async send_json(dict)` (WebSocket Starlette).
    Un verrou par salle permet à l'appelant de sérialiser « persister puis diffuser » :
    l'ordre de diffusion dans une salle suit alors l'ordre des écritures.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Any] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._memberships: Dict[str, Set[str]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        # salle -> handlers qui détiennent ou attendent son verrou
        self._lock_users: Dict[str, int] = {}

    def register(self, connection: Any) -> str:
        conn_id = uuid.uuid4().hex
        self._connections[conn_id] = connection
        self._memberships[conn_id] = set()
        return conn_id

    def unregister(self, conn_id: str) -> Set[str]:
        """Retire la connexion de toutes ses salles ; retourne les salles quittées."""
        self._connections.pop(conn_id, None)
        rooms = self._memberships.pop(conn_id, set())
        for room in rooms:
            self._discard(room, conn_id)
        return rooms

    def join(self, conn_id: str, room: str) -> None:
        if conn_id not in self._connections:
            raise KeyError(f"Connexion inconnue : {conn_id}")
        self._rooms.setdefault(room, set()).add(conn_id)
        self._memberships[conn_id].add(room)

    def leave(self, conn_id: str, room: str) -> None:
        self._memberships.get(conn_id, set()).discard(room)
        self._discard(room, conn_id)

    def members(self, room: str) -> List[str]:
        return sorted(self._rooms.get(room, set()))

    def rooms_of(self, conn_id: str) -> Set[str]:
        return set(self._memberships.get(conn_id, set()))

    def is_member(self, conn_id: str, room: str) -> bool:
        return conn_id in self._rooms.get(room, set())

    @asynccontextmanager
    async def lock(self, room: str):
        """
        Verrou de la salle, à utiliser avec `async with`.
        Le verrou vit tant qu'un handler le détient ou l'attend, ou que la salle a des membres.
        """
        if room not in self._locks:
            self._locks[room] = asyncio.Lock()
        room_lock = self._locks[room]
        self._lock_users[room] = self._lock_users.get(room, 0) + 1
        try:
            async with room_lock:
                yield
        finally:
            remaining = self._lock_users.get(room, 1) - 1
            if remaining:
                self._lock_users[room] = remaining
            else:
                self._lock_users.pop(room, None)
                if room not in self._rooms:
                    self._locks.pop(room, None)

    async def send(self, conn_id: str, event: ServerEvent) -> bool:
        """Envoie un événement à une seule connexion. Retourne False si l'envoi échoue."""
        connection = self._connections.get(conn_id)
        if connection is None:
            return False
        try:
            await connection.send_json(event.frame())
        except Exception as e:
            # Connexion en cours de fermeture : sa déconnexion sera traitée par sa propre boucle
            logger.warning("Envoi de %s à %s impossible : %s", event.EVENT, conn_id, e)
            return False
        return True

    async def emit(self, room: str, event: ServerEvent, exclude: Optional[str] = None) -> int:
        """
        Diffuse un événement à tous les membres de la salle, sauf `exclude`.
        Retourne le nombre de connexions effectivement atteintes.
        """
        delivered = 0
        for conn_id in self.members(room):
            if conn_id == exclude:
                continue
            if await self.send(conn_id, event):
                delivered += 1
        logger.debug("%s diffusé dans %s (%d destinataire(s))", event.EVENT, room, delivered)
        return delivered

    def close(self) -> None:
        self._connections.clear()
        self._rooms.clear()
        self._memberships.clear()
        self._locks.clear()
        self._lock_users.clear()

    def _discard(self, room: str, conn_id: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(conn_id)
        if not members:
            del self._rooms[room]
            if room not in self._lock_users:
                self._locks.pop(room, None)
