"""
Schémas Pydantic pour les classes.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator


class ClassCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom de la classe ne peut pas être vide.")
        return v.strip()


class ClassUpdate(BaseModel):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le nom de la classe ne peut pas être vide.")
        return v.strip() if v else v


class ClassResponse(BaseModel):
    id: uuid.UUID
    name: str
    class_code: str
    status: str
    teacher_id: uuid.UUID
    nb_students: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ClassStudentInfo(BaseModel):
    """Élève inscrit, tel qu'affiché dans la salle de classe."""
    id: uuid.UUID
    name: str
    email: Optional[str] = None
    pretest_status: str             # TAKEN, NOT_TAKEN
    pretest_score: Optional[float] = None
    posttest_score: Optional[float] = None
    group_number: Optional[int] = None


class ClassDetails(BaseModel):
    """Détail d'une classe pour l'enseignant propriétaire ou un élève inscrit."""
    id: uuid.UUID
    name: str
    class_code: str
    status: str
    teacher_id: uuid.UUID
    teacher_name: Optional[str] = None
    students: List[ClassStudentInfo]
    view: str                       # Vue à afficher pour l'appelant (PRETEST pour un élève sans prétest)
    has_pretest: bool
    has_posttest: bool
