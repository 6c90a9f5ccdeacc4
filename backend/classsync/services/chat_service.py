"""
Service métier du chat de classe et de groupe.

- group_number None : chat de toute la classe (salle class_<id>).
- group_number n : chat du groupe n (salle group_<id>_<n>).
Le service persiste et hydrate les messages ; la diffusion aux salles est
faite par l'appelant (passerelle temps réel ou router REST) après le commit.
"""

import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from classsync.config import settings
from classsync.database import commit_or_raise
from classsync.exceptions import Forbidden, NotFound, ValidationFailed
from classsync.models.chat import ChatMessage
from classsync.models.user import User
from classsync.schemas.chat import ChatMessageResponse, ChatSender
from classsync.security import CurrentUser
from classsync.services.access import get_class_or_404, require_group_writer

logger = logging.getLogger(__name__)


def send_message(
    db: Session,
    class_id: uuid.UUID,
    group_number: Optional[int],
    user: CurrentUser,
    text: str,
) -> ChatMessageResponse:
    """
    Enregistre un message et le retourne hydraté (nom et rôle de l'expéditeur).
    Lève ValidationFailed si le texte est vide, Forbidden si l'expéditeur
    n'a pas le droit d'écrire dans cette salle.
    """
    if not text or not text.strip():
        raise ValidationFailed("Le message ne peut pas être vide.")
    require_group_writer(db, class_id, group_number, user)

    message = ChatMessage(
        id=uuid.uuid4(),
        class_id=class_id,
        group_number=group_number,
        sender_id=user.id,
        text=text,
        is_ai=False,
        timestamp=datetime.now(timezone.utc),
    )
    db.add(message)
    commit_or_raise(db)

    logger.info("Message %s envoyé par %s (classe %s, groupe %s)", message.id, user.id, class_id, group_number)
    return _to_response(message, db.get(User, user.id), user.role)


def get_history(
    db: Session,
    class_id: uuid.UUID,
    group_number: Optional[int],
    user: CurrentUser,
    limit: Optional[int] = None,
) -> List[ChatMessageResponse]:
    """
    Les `limit` messages les plus récents de la salle, du plus ancien au plus récent.
    Mêmes droits que l'écriture : un élève ne lit que son propre groupe.
    """
    limit = min(limit or settings.CHAT_HISTORY_DEFAULT_LIMIT, settings.CHAT_HISTORY_MAX_LIMIT)
    if limit <= 0:
        raise ValidationFailed("La limite doit être strictement positive.")
    require_group_writer(db, class_id, group_number, user)

    if group_number is None:
        scope = ChatMessage.group_number.is_(None)
    else:
        scope = ChatMessage.group_number == group_number

    rows = db.execute(
        select(ChatMessage, User)
        .outerjoin(User, User.id == ChatMessage.sender_id)
        .where(ChatMessage.class_id == class_id, scope)
        .order_by(ChatMessage.timestamp.desc(), ChatMessage.is_ai.desc())
        .limit(limit)
    ).all()

    return [_to_response(message, sender) for message, sender in reversed(rows)]


def delete_message(db: Session, message_id: uuid.UUID, user: CurrentUser) -> ChatMessageResponse:
    """
    Supprime définitivement un message (pas de suppression logique).
    Autorisé pour l'expéditeur ou l'enseignant de la classe.
    Retourne le message supprimé pour que l'appelant diffuse la suppression.
    """
    message = db.get(ChatMessage, message_id)
    if message is None:
        raise NotFound("Message introuvable.")

    school_class = get_class_or_404(db, message.class_id)
    if message.sender_id != user.id and school_class.teacher_id != user.id:
        raise Forbidden("Seul l'auteur du message ou l'enseignant peut le supprimer.")

    deleted = _to_response(message, db.get(User, message.sender_id))
    db.delete(message)
    commit_or_raise(db)

    logger.info("Message %s supprimé par %s", message_id, user.id)
    return deleted


def log_ai_interaction(
    db: Session,
    class_id: uuid.UUID,
    group_number: Optional[int],
    user: CurrentUser,
    prompt: str,
    answer: str,
) -> None:
    """
    Journalise un échange avec l'assistant dans le chat (audit et statistiques) :
    la question de l'utilisateur puis la réponse, marquée is_ai.
    """
    require_group_writer(db, class_id, group_number, user)
    asked_at = datetime.now(timezone.utc)
    # La réponse suit strictement la question dans l'historique
    answered_at = asked_at + timedelta(microseconds=1)
    db.add_all([
        ChatMessage(
            id=uuid.uuid4(), class_id=class_id, group_number=group_number,
            sender_id=user.id, text=prompt, is_ai=False, timestamp=asked_at,
        ),
        ChatMessage(
            id=uuid.uuid4(), class_id=class_id, group_number=group_number,
            sender_id=user.id, text=answer, is_ai=True, timestamp=answered_at,
        ),
    ])
    commit_or_raise(db)


def _to_response(message: ChatMessage, sender: Optional[User], role: Optional[str] = None) -> ChatMessageResponse:
    return ChatMessageResponse(
        id=message.id,
        class_id=message.class_id,
        group_id=message.group_number,
        text=message.text,
        is_ai=bool(message.is_ai),
        timestamp=message.timestamp,
        sender=ChatSender(
            id=message.sender_id,
            name=sender.name if sender else "Utilisateur inconnu",
            role=sender.role if sender else (role or "UNKNOWN"),
        ),
    )
