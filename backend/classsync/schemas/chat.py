"""
Schémas Pydantic pour le chat, les notes de groupe et l'état de session.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator


class ChatSender(BaseModel):
    id: uuid.UUID
    name: str
    role: str


class ChatMessageCreate(BaseModel):
    """Envoi d'un message via REST (miroir de l'événement chat:message)."""
    class_id: uuid.UUID
    group_id: Optional[int] = None
    text: str

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le message ne peut pas être vide.")
        return v

    @field_validator("group_id")
    @classmethod
    def positive_group(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Le numéro de groupe doit être un entier positif.")
        return v


class ChatMessageResponse(BaseModel):
    """Message hydraté avec l'identité de l'expéditeur."""
    id: uuid.UUID
    class_id: uuid.UUID
    group_id: Optional[int] = None
    text: str
    is_ai: bool = False
    timestamp: datetime
    sender: ChatSender


class ChatHistoryResponse(BaseModel):
    messages: List[ChatMessageResponse]


class NoteResponse(BaseModel):
    class_id: uuid.UUID
    group_id: int
    content: str
    updated_at: Optional[datetime] = None
    updated_by: Optional[uuid.UUID] = None


class SessionStateResponse(BaseModel):
    """État courant d'une classe, vu par l'appelant."""
    class_id: uuid.UUID
    status: str
    view: str
    online_users: List[str]
