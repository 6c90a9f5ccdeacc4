"""
Présence en ligne par classe, en mémoire du processus.

Chaque connexion WebSocket enregistre ses couples (classe, utilisateur) dans une
table annexe : la déconnexion retire exactement ce que la connexion avait ajouté,
sans dépendre de ce que le client renvoie. Un utilisateur ouvert dans plusieurs
onglets reste en ligne tant qu'il lui reste au moins une connexion.

Les méthodes sont synchrones et appelées depuis la boucle d'événements :
aucune mutation ne peut être interrompue par un autre handler.
"""

import uuid
import logging
from typing import Dict, List, Set, Tuple

logger = logging.getLogger(__name__)


class PresenceTracker:
    def __init__(self) -> None:
        # classe -> utilisateur -> nombre de connexions ouvertes
        self._online: Dict[uuid.UUID, Dict[uuid.UUID, int]] = {}
        # connexion -> couples (classe, utilisateur) qu'elle a enregistrés
        self._connections: Dict[str, Set[Tuple[uuid.UUID, uuid.UUID]]] = {}

    def join(self, conn_id: str, class_id: uuid.UUID, user_id: uuid.UUID) -> List[str]:
        """Marque l'utilisateur en ligne dans la classe et retourne la liste à diffuser."""
        registrations = self._connections.setdefault(conn_id, set())
        key = (class_id, user_id)
        if key not in registrations:
            registrations.add(key)
            counts = self._online.setdefault(class_id, {})
            counts[user_id] = counts.get(user_id, 0) + 1
            logger.debug("Présence : %s en ligne dans la classe %s (%s)", user_id, class_id, conn_id)
        return self.online(class_id)

    def disconnect(self, conn_id: str) -> Dict[uuid.UUID, List[str]]:
        """
        Retire tout ce que la connexion avait enregistré.
        Retourne, pour chaque classe touchée, la nouvelle liste des présents.
        """
        affected: Dict[uuid.UUID, List[str]] = {}
        for class_id, user_id in self._connections.pop(conn_id, set()):
            counts = self._online.get(class_id, {})
            remaining = counts.get(user_id, 0) - 1
            if remaining > 0:
                counts[user_id] = remaining
            else:
                counts.pop(user_id, None)
            if not counts:
                self._online.pop(class_id, None)
            affected[class_id] = self.online(class_id)
        return affected

    def online(self, class_id: uuid.UUID) -> List[str]:
        return sorted(str(user_id) for user_id in self._online.get(class_id, {}))

    def is_online(self, class_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return user_id in self._online.get(class_id, {})

    def close(self) -> None:
        """Vide l'état (arrêt du processus) ; il sera reconstruit par les reconnexions."""
        self._online.clear()
        self._connections.clear()
