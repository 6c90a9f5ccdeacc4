"""
Schémas Pydantic pour la répartition des élèves en groupes.
"""

import uuid
from typing import List, Optional

from pydantic import BaseModel, field_validator


class GroupAssignmentItem(BaseModel):
    student_id: uuid.UUID
    group_number: Optional[int] = None   # None = retirer l'élève de son groupe

    @field_validator("group_number")
    @classmethod
    def positive_group(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Le numéro de groupe doit être un entier positif.")
        return v


class GroupAssignRequest(BaseModel):
    """Corps de requête pour une affectation manuelle en masse."""
    assignments: List[GroupAssignmentItem]

    @field_validator("assignments")
    @classmethod
    def not_empty(cls, v: List[GroupAssignmentItem]) -> List[GroupAssignmentItem]:
        if not v:
            raise ValueError("La liste d'affectations ne peut pas être vide.")
        return v


class AutoAssignRequest(BaseModel):
    group_count: int


class StudentGroup(BaseModel):
    student_id: uuid.UUID
    name: Optional[str] = None
    group_number: Optional[int] = None


class GroupAssignmentsResponse(BaseModel):
    class_id: uuid.UUID
    group_count: int                 # Nombre de groupes distincts utilisés
    unassigned: int
    students: List[StudentGroup]
