"""
Service métier pour l'inscription des élèves par code de classe.
"""

import uuid
import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from classsync.database import commit_or_raise
from classsync.exceptions import Conflict, NotFound
from classsync.models.school_class import ClassSession, Enrollment
from classsync.models.user import User
from classsync.schemas.enrollment import (
    EnrolledStudent,
    EnrollmentCreate,
    EnrollmentResponse,
    StudentClassSummary,
)
from classsync.services.access import get_enrollment, get_owned_class

logger = logging.getLogger(__name__)


def enroll_by_code(db: Session, student_id: uuid.UUID, data: EnrollmentCreate) -> EnrollmentResponse:
    """
    Inscrit un élève dans la classe correspondant au code.
    Lève NotFound si le code est inconnu, Conflict si l'élève est déjà inscrit.
    """
    school_class = db.execute(
        select(ClassSession).where(ClassSession.class_code == data.class_code)
    ).scalar()
    if school_class is None:
        raise NotFound("Aucune classe ne correspond à ce code.")

    if get_enrollment(db, school_class.id, student_id) is not None:
        raise Conflict("Vous êtes déjà inscrit dans cette classe.")

    enrollment = Enrollment(class_id=school_class.id, student_id=student_id)
    db.add(enrollment)
    # La clé primaire (class_id, student_id) protège aussi contre deux requêtes simultanées
    commit_or_raise(db, "Vous êtes déjà inscrit dans cette classe.")
    db.refresh(enrollment)

    logger.info("Élève %s inscrit dans la classe %s", student_id, school_class.id)
    return EnrollmentResponse.model_validate(enrollment)


def get_enrollments(db: Session, class_id: uuid.UUID, teacher_id: uuid.UUID) -> List[EnrolledStudent]:
    """Liste des inscrits d'une classe avec leurs scores et groupes (enseignant propriétaire)."""
    get_owned_class(db, class_id, teacher_id)

    rows = db.execute(
        select(Enrollment, User)
        .join(User, User.id == Enrollment.student_id)
        .where(Enrollment.class_id == class_id)
        .order_by(User.name)
    ).all()

    return [
        EnrolledStudent(
            class_id=enrollment.class_id,
            student_id=enrollment.student_id,
            pretest_score=enrollment.pretest_score,
            posttest_score=enrollment.posttest_score,
            group_number=enrollment.group_number,
            enrolled_at=enrollment.enrolled_at,
            name=student.name,
            email=student.email,
        )
        for enrollment, student in rows
    ]


def get_student_classes(db: Session, student_id: uuid.UUID) -> List[StudentClassSummary]:
    """Classes suivies par un élève, avec le nom de l'enseignant et l'effectif."""
    rows = db.execute(
        select(ClassSession, User.name)
        .join(Enrollment, Enrollment.class_id == ClassSession.id)
        .outerjoin(User, User.id == ClassSession.teacher_id)
        .where(Enrollment.student_id == student_id)
        .order_by(ClassSession.name)
    ).all()

    summaries = []
    for school_class, teacher_name in rows:
        student_count = db.execute(
            select(func.count())
            .select_from(Enrollment)
            .where(Enrollment.class_id == school_class.id)
        ).scalar() or 0
        summaries.append(
            StudentClassSummary(
                id=school_class.id,
                name=school_class.name,
                class_code=school_class.class_code,
                status=school_class.status,
                teacher_name=teacher_name,
                student_count=student_count,
            )
        )
    return summaries
