"""
Modèles SQLAlchemy pour le chat de classe / de groupe et les notes partagées de groupe.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Text, func
from sqlalchemy.dialects.postgresql import UUID

from classsync.database import Base


class ChatMessage(Base):
    """Message de chat. group_number NULL = chat de toute la classe."""
    __tablename__ = "chat_messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    group_number = Column(Integer, nullable=True)
    sender_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    is_ai = Column(Boolean, default=False)   # Interaction avec l'assistant IA (audit)
    timestamp = Column(DateTime, nullable=False)


class GroupNote(Base):
    """Note partagée d'un groupe, dernière écriture gagnante, pas de fusion."""
    __tablename__ = "group_notes"

    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True)
    group_number = Column(Integer, primary_key=True)
    content = Column(Text, nullable=False, default="")
    updated_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now())
