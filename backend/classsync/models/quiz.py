"""
Modèles SQLAlchemy pour les quiz (prétest / post-test), leurs questions et les soumissions.

Une classe possède au plus un quiz par type (contrainte unique class_id + quiz_type).
Les questions sont notées par position : l'ordre `position` fait partie du barème.
"""

import uuid
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import ARRAY, UUID

from classsync.database import Base


class Quiz(Base):
    __tablename__ = "quizzes"
    __table_args__ = (UniqueConstraint("class_id", "quiz_type", name="uq_quizzes_class_type"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    quiz_type = Column(String(10), nullable=False)   # PRETEST, POSTTEST
    title = Column(String(255), nullable=False)
    time_limit_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Question(Base):
    __tablename__ = "questions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id = Column(UUID(as_uuid=True), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)       # 0-based, ordre de notation
    text = Column(Text, nullable=False)
    options = Column(ARRAY(Text), nullable=False)
    correct_answer_index = Column(Integer, nullable=False)


class QuizSubmission(Base):
    """Une seule tentative par (élève, quiz). Les réponses brutes ne sont pas conservées."""
    __tablename__ = "quiz_submissions"

    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    quiz_id = Column(UUID(as_uuid=True), ForeignKey("quizzes.id", ondelete="CASCADE"), primary_key=True)
    score = Column(Float, nullable=False)
    submitted_at = Column(DateTime, nullable=False)
