"""
Service métier pour la répartition des élèves en groupes de travail.

- Affectation manuelle en masse : écrase le groupe des élèves cités (None = retiré).
- Affectation automatique : mélange uniquement les élèves sans groupe puis les
  distribue en tourniquet (index mod n + 1). Les élèves déjà placés ne bougent pas,
  donc deux appels successifs sans nouvel inscrit ne changent rien.
"""

import random
import uuid
import logging
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from classsync.database import commit_or_raise
from classsync.exceptions import NotFound, ValidationFailed
from classsync.models.school_class import Enrollment
from classsync.models.user import User
from classsync.schemas.group import GroupAssignmentsResponse, GroupAssignRequest, StudentGroup
from classsync.security import CurrentUser
from classsync.services.access import get_owned_class, require_member

logger = logging.getLogger(__name__)


def distribute_round_robin(
    student_ids: Iterable[uuid.UUID],
    group_count: int,
    rng: Optional[random.Random] = None,
) -> Dict[uuid.UUID, int]:
    """Mélange les élèves et les répartit sur les groupes 1..group_count."""
    if group_count <= 0:
        raise ValidationFailed("Le nombre de groupes doit être strictement positif.")

    shuffled = list(student_ids)
    (rng or random).shuffle(shuffled)
    return {sid: index % group_count + 1 for index, sid in enumerate(shuffled)}


def assign_groups(
    db: Session,
    class_id: uuid.UUID,
    teacher_id: uuid.UUID,
    data: GroupAssignRequest,
) -> GroupAssignmentsResponse:
    """
    Affecte manuellement les élèves listés.
    Tout-ou-rien : un élève non inscrit fait rejeter le lot entier.
    """
    get_owned_class(db, class_id, teacher_id)

    student_ids = [item.student_id for item in data.assignments]
    enrollments = db.execute(
        select(Enrollment)
        .where(
            Enrollment.class_id == class_id,
            Enrollment.student_id.in_(student_ids),
        )
    ).scalars().all()
    by_student = {e.student_id: e for e in enrollments}

    missing = [str(sid) for sid in student_ids if sid not in by_student]
    if missing:
        raise NotFound(f"Élève(s) non inscrit(s) dans cette classe : {', '.join(missing)}")

    for item in data.assignments:
        by_student[item.student_id].group_number = item.group_number

    commit_or_raise(db)
    logger.info("Classe %s : %d affectation(s) de groupe manuelle(s)", class_id, len(data.assignments))
    return _assignments_response(db, class_id)


def auto_assign_groups(
    db: Session,
    class_id: uuid.UUID,
    teacher_id: uuid.UUID,
    group_count: int,
    rng: Optional[random.Random] = None,
) -> GroupAssignmentsResponse:
    """Répartit automatiquement les élèves encore sans groupe."""
    if group_count <= 0:
        raise ValidationFailed("Le nombre de groupes doit être strictement positif.")
    get_owned_class(db, class_id, teacher_id)

    unassigned = db.execute(
        select(Enrollment)
        .where(
            Enrollment.class_id == class_id,
            Enrollment.group_number.is_(None),
        )
    ).scalars().all()

    if unassigned:
        mapping = distribute_round_robin([e.student_id for e in unassigned], group_count, rng)
        for enrollment in unassigned:
            enrollment.group_number = mapping[enrollment.student_id]
        commit_or_raise(db)

    logger.info(
        "Classe %s : %d élève(s) réparti(s) automatiquement sur %d groupe(s)",
        class_id, len(unassigned), group_count,
    )
    return _assignments_response(db, class_id)


def get_group_assignments(db: Session, class_id: uuid.UUID, user: CurrentUser) -> GroupAssignmentsResponse:
    """Composition des groupes, visible par l'enseignant et les élèves inscrits."""
    require_member(db, class_id, user)
    return _assignments_response(db, class_id)


def _assignments_response(db: Session, class_id: uuid.UUID) -> GroupAssignmentsResponse:
    rows = db.execute(
        select(Enrollment, User.name)
        .join(User, User.id == Enrollment.student_id)
        .where(Enrollment.class_id == class_id)
        .order_by(Enrollment.group_number, User.name)
    ).all()

    students = [
        StudentGroup(student_id=enrollment.student_id, name=name, group_number=enrollment.group_number)
        for enrollment, name in rows
    ]
    groups = {s.group_number for s in students if s.group_number is not None}
    return GroupAssignmentsResponse(
        class_id=class_id,
        group_count=len(groups),
        unassigned=sum(1 for s in students if s.group_number is None),
        students=students,
    )
