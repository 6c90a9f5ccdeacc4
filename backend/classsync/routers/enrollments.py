"""
Router pour l'inscription des élèves par code de classe.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from classsync.database import get_db
from classsync.exceptions import ClassSyncError
from classsync.schemas.enrollment import (
    EnrolledStudent,
    EnrollmentCreate,
    EnrollmentResponse,
    StudentClassSummary,
)
from classsync.security import CurrentUser, require_student, require_teacher
from classsync.services import enrollment_service

router = APIRouter(prefix="/api/v1/enrollments", tags=["Inscriptions"])


@router.post("", response_model=EnrollmentResponse, status_code=201, summary="Rejoindre une classe")
def enroll(
    data: EnrollmentCreate,
    db: Session = Depends(get_db),
    student: CurrentUser = Depends(require_student),
):
    """L'élève rejoint la classe dont il a saisi le code (insensible à la casse)."""
    try:
        return enrollment_service.enroll_by_code(db, student.id, data)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/me", response_model=List[StudentClassSummary], summary="Mes classes")
def my_classes(db: Session = Depends(get_db), student: CurrentUser = Depends(require_student)):
    return enrollment_service.get_student_classes(db, student.id)


@router.get("/{class_id}", response_model=List[EnrolledStudent], summary="Inscrits d'une classe")
def list_enrollments(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    try:
        return enrollment_service.get_enrollments(db, class_id, teacher.id)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
