"""
Modèle SQLAlchemy pour les utilisateurs (enseignants et élèves).
Les comptes sont créés par le service d'authentification ; ClassSync ne fait que les lire.
"""

import uuid
from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from classsync.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False)     # TEACHER, STUDENT
    gender = Column(String(10), nullable=True)    # MALE, FEMALE, OTHER
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
