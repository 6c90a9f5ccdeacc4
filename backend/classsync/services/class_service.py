"""
Service métier pour la gestion des classes par les enseignants.
"""

import io
import uuid
import logging
from typing import List

import qrcode
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from classsync.config import settings
from classsync.database import commit_or_raise
from classsync.exceptions import PersistenceError
from classsync.models.quiz import Quiz
from classsync.models.school_class import ClassSession, Enrollment
from classsync.models.user import User
from classsync.schemas.school_class import (
    ClassCreate,
    ClassDetails,
    ClassResponse,
    ClassStudentInfo,
    ClassUpdate,
)
from classsync.security import CurrentUser
from classsync.services.access import get_owned_class, require_member
from classsync.services.session_service import ClassStatus, resolve_view

logger = logging.getLogger(__name__)


def create_class(db: Session, teacher_id: uuid.UUID, data: ClassCreate) -> ClassResponse:
    """
    Crée une classe en statut WAITING_ROOM avec un code d'accès unique.
    Le code est régénéré en cas de collision (nombre d'essais borné).
    """
    school_class = ClassSession(
        id=uuid.uuid4(),
        name=data.name,
        class_code=_unique_class_code(db),
        teacher_id=teacher_id,
        status=ClassStatus.WAITING_ROOM.value,
    )
    db.add(school_class)
    commit_or_raise(db, "Ce code de classe est déjà utilisé, réessayez.")
    db.refresh(school_class)

    logger.info("Classe créée : %s (%s) code=%s", school_class.name, school_class.id, school_class.class_code)
    return _to_response(db, school_class)


def get_teacher_classes(db: Session, teacher_id: uuid.UUID) -> List[ClassResponse]:
    """Retourne les classes de l'enseignant, triées par nom."""
    classes = db.execute(
        select(ClassSession)
        .where(ClassSession.teacher_id == teacher_id)
        .order_by(ClassSession.name)
    ).scalars().all()
    return [_to_response(db, c) for c in classes]


def get_class_details(db: Session, class_id: uuid.UUID, user: CurrentUser) -> ClassDetails:
    """
    Détail d'une classe pour l'enseignant propriétaire ou un élève inscrit :
    statut, élèves (statut prétest, groupe) et vue à afficher pour l'appelant.
    """
    school_class = require_member(db, class_id, user)
    teacher = db.get(User, school_class.teacher_id)

    rows = db.execute(
        select(Enrollment, User)
        .join(User, User.id == Enrollment.student_id)
        .where(Enrollment.class_id == class_id)
        .order_by(User.name)
    ).all()

    quiz_types = set(db.execute(
        select(Quiz.quiz_type).where(Quiz.class_id == class_id)
    ).scalars().all())

    students = []
    pretest_taken = False
    for enrollment, student in rows:
        if student.id == user.id:
            pretest_taken = enrollment.pretest_score is not None
        students.append(
            ClassStudentInfo(
                id=student.id,
                name=student.name,
                email=student.email,
                pretest_status="TAKEN" if enrollment.pretest_score is not None else "NOT_TAKEN",
                pretest_score=enrollment.pretest_score,
                posttest_score=enrollment.posttest_score,
                group_number=enrollment.group_number,
            )
        )

    has_pretest = "PRETEST" in quiz_types
    return ClassDetails(
        id=school_class.id,
        name=school_class.name,
        class_code=school_class.class_code,
        status=school_class.status,
        teacher_id=school_class.teacher_id,
        teacher_name=teacher.name if teacher else None,
        students=students,
        view=resolve_view(school_class.status, user.is_student, pretest_taken, has_pretest),
        has_pretest=has_pretest,
        has_posttest="POSTTEST" in quiz_types,
    )


def update_class(db: Session, class_id: uuid.UUID, teacher_id: uuid.UUID, data: ClassUpdate) -> ClassResponse:
    """Met à jour les champs fournis d'une classe (le statut passe par les commandes de session)."""
    school_class = get_owned_class(db, class_id, teacher_id)

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(school_class, field, value)

    commit_or_raise(db)
    db.refresh(school_class)
    return _to_response(db, school_class)


def delete_class(db: Session, class_id: uuid.UUID, teacher_id: uuid.UUID) -> None:
    """
    Supprime une classe définitivement.
    Inscriptions, quiz, soumissions, chat et notes suivent par cascade.
    """
    school_class = get_owned_class(db, class_id, teacher_id)
    db.delete(school_class)
    commit_or_raise(db)
    logger.info("Classe supprimée : %s", class_id)


def get_join_qr(db: Session, class_id: uuid.UUID, teacher_id: uuid.UUID) -> bytes:
    """QR code PNG encodant le code d'accès, à projeter en début de séance."""
    school_class = get_owned_class(db, class_id, teacher_id)
    return generate_qr_image(school_class.class_code)


def generate_qr_image(data: str) -> bytes:
    """Génère une image PNG du QR code encodant la chaîne donnée."""
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _generate_class_code() -> str:
    """Code court et lisible (format : 8 caractères hexadécimaux majuscules)."""
    return uuid.uuid4().hex[: settings.JOIN_CODE_LENGTH].upper()


def _unique_class_code(db: Session) -> str:
    for _ in range(settings.JOIN_CODE_MAX_ATTEMPTS):
        code = _generate_class_code()
        taken = db.execute(
            select(ClassSession.id).where(ClassSession.class_code == code)
        ).scalar()
        if not taken:
            return code
    raise PersistenceError("Impossible de générer un code de classe unique.")


def _to_response(db: Session, school_class: ClassSession) -> ClassResponse:
    """Construit le schéma de réponse avec le nombre d'élèves inscrits."""
    nb_students = db.execute(
        select(func.count())
        .select_from(Enrollment)
        .where(Enrollment.class_id == school_class.id)
    ).scalar() or 0

    return ClassResponse(
        id=school_class.id,
        name=school_class.name,
        class_code=school_class.class_code,
        status=school_class.status,
        teacher_id=school_class.teacher_id,
        nb_students=nb_students,
        created_at=school_class.created_at,
        updated_at=school_class.updated_at,
    )
