"""
Schémas Pydantic pour l'assistant IA et les statistiques de classe.
"""

import uuid
from typing import List, Optional

from pydantic import BaseModel, field_validator


class AIQuery(BaseModel):
    prompt: str
    context: Optional[str] = None
    class_id: Optional[uuid.UUID] = None   # Pour journaliser l'échange dans le chat de la classe
    group_id: Optional[int] = None

    @field_validator("prompt")
    @classmethod
    def prompt_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("La question posée à l'assistant est obligatoire.")
        return v.strip()


class AIAnswer(BaseModel):
    response: str


class StudentScores(BaseModel):
    id: uuid.UUID
    name: str
    gender: Optional[str] = None
    pretest_score: Optional[float] = None
    posttest_score: Optional[float] = None
    score_improvement: Optional[float] = None


class GroupPerformance(BaseModel):
    count: int
    avg_pretest_score: Optional[float] = None
    avg_posttest_score: Optional[float] = None
    avg_improvement: Optional[float] = None


class ClassAnalytics(BaseModel):
    class_id: uuid.UUID
    total_students: int
    students: List[StudentScores]
    female_performance: GroupPerformance
    male_performance: GroupPerformance
    overall: GroupPerformance
