"""
Service métier des notes partagées de groupe.
Une seule note par (classe, groupe), écrasée à chaque mise à jour : la dernière écriture gagne.
"""

import uuid
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from classsync.database import commit_or_raise
from classsync.models.chat import GroupNote
from classsync.schemas.chat import NoteResponse
from classsync.security import CurrentUser
from classsync.services.access import require_group_writer

logger = logging.getLogger(__name__)


def update_note(
    db: Session,
    class_id: uuid.UUID,
    group_number: int,
    content: str,
    user: CurrentUser,
) -> NoteResponse:
    """Crée ou remplace entièrement le contenu de la note du groupe."""
    require_group_writer(db, class_id, group_number, user)

    now = datetime.now(timezone.utc)
    note = db.get(GroupNote, (class_id, group_number))
    if note is None:
        note = GroupNote(class_id=class_id, group_number=group_number)
        db.add(note)
    note.content = content
    note.updated_by = user.id
    note.updated_at = now
    commit_or_raise(db)

    logger.debug("Note du groupe %s (classe %s) mise à jour par %s", group_number, class_id, user.id)
    return NoteResponse(
        class_id=class_id,
        group_id=group_number,
        content=content,
        updated_at=now,
        updated_by=user.id,
    )


def get_note(db: Session, class_id: uuid.UUID, group_number: int, user: CurrentUser) -> NoteResponse:
    """Contenu courant pour l'affichage initial ; chaîne vide si la note n'existe pas encore."""
    require_group_writer(db, class_id, group_number, user)

    note = db.get(GroupNote, (class_id, group_number))
    if note is None:
        return NoteResponse(class_id=class_id, group_id=group_number, content="")
    return NoteResponse(
        class_id=class_id,
        group_id=group_number,
        content=note.content or "",
        updated_at=note.updated_at,
        updated_by=note.updated_by,
    )
