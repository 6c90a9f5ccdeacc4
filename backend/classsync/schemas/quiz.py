"""
Schémas Pydantic pour les quiz (prétest / post-test) et leurs soumissions.

La validation des questions est tout-ou-rien : une seule question invalide
fait rejeter tout le lot avant la moindre écriture.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator, model_validator

VALID_QUIZ_TYPES = {"PRETEST", "POSTTEST"}


def _check_quiz_type(v: str) -> str:
    v = v.strip().upper()
    if v not in VALID_QUIZ_TYPES:
        raise ValueError(f"Type de quiz invalide. Valeurs acceptées : {VALID_QUIZ_TYPES}")
    return v


class QuestionIn(BaseModel):
    text: str
    options: List[str]
    correct_answer_index: int

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Chaque question doit avoir un énoncé.")
        return v.strip()

    @field_validator("options")
    @classmethod
    def at_least_two_options(cls, v: List[str]) -> List[str]:
        if len(v) < 2:
            raise ValueError("Chaque question doit proposer au moins 2 options.")
        return v

    @model_validator(mode="after")
    def answer_in_bounds(self) -> "QuestionIn":
        if not 0 <= self.correct_answer_index < len(self.options):
            raise ValueError("Index de la bonne réponse hors des options proposées.")
        return self


class QuizUpsert(BaseModel):
    """Création ou remplacement complet du quiz d'un type donné."""
    quiz_type: str
    title: str
    time_limit_minutes: Optional[int] = None
    questions: List[QuestionIn]

    @field_validator("quiz_type")
    @classmethod
    def valid_quiz_type(cls, v: str) -> str:
        return _check_quiz_type(v)

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre du quiz ne peut pas être vide.")
        return v.strip()

    @field_validator("time_limit_minutes")
    @classmethod
    def positive_time_limit(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("La durée doit être un nombre de minutes positif.")
        return v

    @field_validator("questions")
    @classmethod
    def at_least_one_question(cls, v: List[QuestionIn]) -> List[QuestionIn]:
        if not v:
            raise ValueError("Au moins une question est obligatoire.")
        return v


class QuestionPublic(BaseModel):
    """Question telle que vue par un élève : sans la bonne réponse."""
    id: uuid.UUID
    position: int
    text: str
    options: List[str]

    model_config = {"from_attributes": True}


class QuestionWithAnswer(QuestionPublic):
    correct_answer_index: int


class QuizPublic(BaseModel):
    id: uuid.UUID
    class_id: uuid.UUID
    quiz_type: str
    title: str
    time_limit_minutes: Optional[int] = None
    questions: List[QuestionPublic]


class QuizWithAnswers(QuizPublic):
    questions: List[QuestionWithAnswer]


class QuizSubmit(BaseModel):
    """Réponses d'un élève : index de l'option choisie, dans l'ordre des questions."""
    class_id: uuid.UUID
    quiz_type: str
    answers: List[Optional[int]]

    @field_validator("quiz_type")
    @classmethod
    def valid_quiz_type(cls, v: str) -> str:
        return _check_quiz_type(v)


class QuizSubmitResult(BaseModel):
    message: str
    score: float
    total_questions: int
    submitted_at: Optional[datetime] = None
