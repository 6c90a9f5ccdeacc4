"""
Statistiques de progression d'une classe : scores prétest / post-test par élève,
moyennes par genre et moyennes globales.
"""

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from classsync.models.school_class import Enrollment
from classsync.models.user import User
from classsync.schemas.ai import ClassAnalytics, GroupPerformance, StudentScores
from classsync.services.access import get_owned_class


def get_class_analytics(db: Session, class_id: uuid.UUID, teacher_id: uuid.UUID) -> ClassAnalytics:
    get_owned_class(db, class_id, teacher_id)

    rows = db.execute(
        select(Enrollment, User)
        .join(User, User.id == Enrollment.student_id)
        .where(Enrollment.class_id == class_id)
        .order_by(User.name)
    ).all()

    students = [
        StudentScores(
            id=student.id,
            name=student.name,
            gender=student.gender,
            pretest_score=enrollment.pretest_score,
            posttest_score=enrollment.posttest_score,
            score_improvement=improvement(enrollment.pretest_score, enrollment.posttest_score),
        )
        for enrollment, student in rows
    ]

    return ClassAnalytics(
        class_id=class_id,
        total_students=len(students),
        students=students,
        female_performance=performance([s for s in students if s.gender == "FEMALE"]),
        male_performance=performance([s for s in students if s.gender == "MALE"]),
        overall=performance(students),
    )


def improvement(pretest: Optional[float], posttest: Optional[float]) -> Optional[float]:
    """Progression post-test − prétest, seulement si les deux scores existent."""
    if pretest is None or posttest is None:
        return None
    return posttest - pretest


def performance(students: List[StudentScores]) -> GroupPerformance:
    return GroupPerformance(
        count=len(students),
        avg_pretest_score=_average([s.pretest_score for s in students]),
        avg_posttest_score=_average([s.posttest_score for s in students]),
        avg_improvement=_average([s.score_improvement for s in students]),
    )


def _average(values: List[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return round(sum(present) / len(present), 2)
