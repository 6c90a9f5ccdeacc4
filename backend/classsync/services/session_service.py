"""
Machine d'état de session d'une classe.

Statuts persistés : WAITING_ROOM → MAIN_SESSION → GROUP_SESSION → POSTTEST → ENDED.
La vue PRETEST n'est jamais persistée : elle est dérivée pour un élève qui n'a pas
encore passé le prétest, quel que soit le statut de la classe.

Les transitions sont des commandes enseignant sans graphe imposé : chaque commande
écrit son statut cible (dernière écriture gagnante). La diffusion de
class:state-changed est faite par l'appelant, uniquement après le commit.
"""

import enum
import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from classsync.database import commit_or_raise
from classsync.exceptions import Forbidden, ValidationFailed
from classsync.models.quiz import Quiz
from classsync.security import CurrentUser
from classsync.services.access import get_enrollment, get_owned_class, require_member

logger = logging.getLogger(__name__)


class ClassStatus(str, enum.Enum):
    WAITING_ROOM = "WAITING_ROOM"
    MAIN_SESSION = "MAIN_SESSION"
    GROUP_SESSION = "GROUP_SESSION"
    POSTTEST = "POSTTEST"
    ENDED = "ENDED"


PRETEST_VIEW = "PRETEST"

# Commande enseignant → (statut cible, message affiché aux participants)
TEACHER_COMMANDS = {
    "teacher:start-class": (ClassStatus.MAIN_SESSION, "Le cours a commencé."),
    "teacher:activate-groups": (ClassStatus.GROUP_SESSION, "Les groupes de travail sont ouverts."),
    "teacher:end-class": (ClassStatus.POSTTEST, "Le cours est terminé, place au post-test."),
}


class StateChange(BaseModel):
    class_id: uuid.UUID
    previous_status: Optional[str] = None
    status: str
    message: str


def apply_teacher_command(db: Session, class_id: uuid.UUID, user: CurrentUser, command: str) -> StateChange:
    """
    Applique une commande enseignant et persiste le nouveau statut.

    Vérifications (avant toute écriture) : commande connue, appelant enseignant,
    propriétaire de la classe. Un échec du commit lève PersistenceError :
    l'appelant ne doit alors rien diffuser.
    """
    if command not in TEACHER_COMMANDS:
        raise ValidationFailed(f"Commande inconnue : {command}.")
    if not user.is_teacher:
        raise Forbidden("Seul l'enseignant peut piloter la séance.")

    school_class = get_owned_class(db, class_id, user.id)
    target, message = TEACHER_COMMANDS[command]

    previous = school_class.status
    school_class.status = target.value
    school_class.status_changed_at = datetime.now(timezone.utc)
    commit_or_raise(db)

    logger.info("Classe %s : %s → %s (%s)", class_id, previous, target.value, command)
    return StateChange(class_id=class_id, previous_status=previous, status=target.value, message=message)


def resolve_view(status: str, is_student: bool, pretest_taken: bool, has_pretest: bool = True) -> str:
    """
    Vue à afficher côté client.
    Un élève sans prétest soumis voit PRETEST tant qu'un prétest existe pour la classe ;
    sinon la vue suit le statut persisté.
    """
    if is_student and has_pretest and not pretest_taken:
        return PRETEST_VIEW
    return status


def get_view(db: Session, class_id: uuid.UUID, user: CurrentUser) -> tuple:
    """Retourne (statut persisté, vue de l'appelant) pour une classe dont il est membre."""
    school_class = require_member(db, class_id, user)
    if not user.is_student:
        return school_class.status, school_class.status

    enrollment = get_enrollment(db, class_id, user.id)
    pretest_taken = enrollment is not None and enrollment.pretest_score is not None
    has_pretest = db.execute(
        select(Quiz.id).where(Quiz.class_id == class_id, Quiz.quiz_type == "PRETEST")
    ).scalar() is not None
    return school_class.status, resolve_view(school_class.status, True, pretest_taken, has_pretest)
