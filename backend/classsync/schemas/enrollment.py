"""
Schémas Pydantic pour les inscriptions par code.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class EnrollmentCreate(BaseModel):
    """Corps de requête : l'élève saisit le code communiqué par l'enseignant."""
    class_code: str

    @field_validator("class_code")
    @classmethod
    def code_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le code de la classe est obligatoire.")
        return v.strip().upper()


class EnrollmentResponse(BaseModel):
    class_id: uuid.UUID
    student_id: uuid.UUID
    pretest_score: Optional[float] = None
    posttest_score: Optional[float] = None
    group_number: Optional[int] = None
    enrolled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EnrolledStudent(EnrollmentResponse):
    """Inscription enrichie avec l'identité de l'élève (vue enseignant)."""
    name: str
    email: Optional[str] = None


class StudentClassSummary(BaseModel):
    """Classe suivie par un élève (tableau de bord élève)."""
    id: uuid.UUID
    name: str
    class_code: str
    status: str
    teacher_name: Optional[str] = None
    student_count: int
