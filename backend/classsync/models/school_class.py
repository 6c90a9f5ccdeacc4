"""
Modèles SQLAlchemy pour les classes et les inscriptions des élèves.
Nommé school_class pour éviter le conflit avec le mot-clé Python 'class'.
"""

import uuid
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID

from classsync.database import Base


class ClassSession(Base):
    """Une classe animée par un enseignant, avec son statut de session."""
    __tablename__ = "classes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    class_code = Column(String(16), unique=True, nullable=False)   # Code saisi par les élèves
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default="WAITING_ROOM")
    # WAITING_ROOM, MAIN_SESSION, GROUP_SESSION, POSTTEST, ENDED
    status_changed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Enrollment(Base):
    """Inscription classe ↔ élève, porte les scores et le numéro de groupe."""
    __tablename__ = "enrollments"

    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    pretest_score = Column(Float, nullable=True)    # NULL = prétest non passé
    posttest_score = Column(Float, nullable=True)
    group_number = Column(Integer, nullable=True)   # NULL = pas de groupe
    enrolled_at = Column(DateTime, server_default=func.now())
