"""
Contrôles d'accès partagés par les services : propriété d'une classe,
inscription d'un élève, droit d'écriture dans un groupe.

Toutes les vérifications ont lieu avant le moindre effet de bord.
"""

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from classsync.exceptions import Forbidden, NotFound
from classsync.models.school_class import ClassSession, Enrollment
from classsync.security import CurrentUser


def get_class_or_404(db: Session, class_id: uuid.UUID) -> ClassSession:
    school_class = db.get(ClassSession, class_id)
    if school_class is None:
        raise NotFound("Classe introuvable.")
    return school_class


def get_owned_class(db: Session, class_id: uuid.UUID, teacher_id: uuid.UUID) -> ClassSession:
    """Retourne la classe si l'enseignant en est propriétaire, sinon lève Forbidden."""
    school_class = get_class_or_404(db, class_id)
    if school_class.teacher_id != teacher_id:
        raise Forbidden("Vous n'êtes pas l'enseignant de cette classe.")
    return school_class


def get_enrollment(db: Session, class_id: uuid.UUID, student_id: uuid.UUID) -> Optional[Enrollment]:
    return db.get(Enrollment, (class_id, student_id))


def require_member(db: Session, class_id: uuid.UUID, user: CurrentUser) -> ClassSession:
    """
    Vérifie que l'utilisateur appartient à la classe :
    enseignant propriétaire ou élève inscrit.
    """
    school_class = get_class_or_404(db, class_id)
    if school_class.teacher_id == user.id:
        return school_class
    if user.is_student and get_enrollment(db, class_id, user.id) is not None:
        return school_class
    raise Forbidden("Vous n'êtes pas membre de cette classe.")


def require_group_writer(
    db: Session,
    class_id: uuid.UUID,
    group_number: Optional[int],
    user: CurrentUser,
) -> ClassSession:
    """
    Droit d'écriture dans une salle (chat, notes).

    - Sans groupe : enseignant de la classe ou élève inscrit.
    - Avec groupe : l'enseignant de la classe (tous les groupes),
      un élève uniquement dans le groupe qui lui est affecté.
    """
    school_class = require_member(db, class_id, user)
    if group_number is None or school_class.teacher_id == user.id:
        return school_class

    enrollment = get_enrollment(db, class_id, user.id)
    if enrollment is None or enrollment.group_number != group_number:
        raise Forbidden(f"Vous ne faites pas partie du groupe {group_number}.")
    return school_class
