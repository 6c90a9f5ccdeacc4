"""
Schémas des événements temps réel (WebSocket /ws).

Chaque trame est une enveloppe JSON {"event": <nom>, "data": {...}}.
- Client → serveur : union fermée discriminée sur `event`, validée à la réception.
  Un événement inconnu ou mal formé est rejeté (événement `error`), jamais interprété.
- Serveur → client : un modèle par événement, lié à son nom via EVENT.
Les clés des payloads sont en camelCase, comme côté front React.
"""

import json
import uuid
from datetime import datetime
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from classsync.schemas.chat import ChatMessageResponse


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Client → serveur ---

class RoomRef(_Payload):
    class_id: uuid.UUID
    group_id: Optional[int] = Field(default=None, ge=1)


class JoinRoomData(RoomRef):
    user_id: Optional[uuid.UUID] = None


class NoteUpdateData(_Payload):
    class_id: uuid.UUID
    group_id: int = Field(ge=1)
    content: str
    user_id: uuid.UUID


class ChatMessageData(RoomRef):
    message: str
    user_id: uuid.UUID
    user_name: Optional[str] = None


class ChatHistoryData(RoomRef):
    limit: Optional[int] = Field(default=None, ge=1)


class ChatTypingData(RoomRef):
    user_name: str
    is_typing: bool


class ChatDeleteData(_Payload):
    message_id: uuid.UUID


class ClassRef(_Payload):
    class_id: uuid.UUID


class JoinRoom(BaseModel):
    event: Literal["join_room"]
    data: JoinRoomData


class LeaveRoom(BaseModel):
    event: Literal["leave_room"]
    data: RoomRef


class NoteUpdate(BaseModel):
    event: Literal["note:update"]
    data: NoteUpdateData


class ChatSend(BaseModel):
    event: Literal["chat:message"]
    data: ChatMessageData


class ChatHistory(BaseModel):
    event: Literal["chat:history"]
    data: ChatHistoryData


class ChatTyping(BaseModel):
    event: Literal["chat:typing"]
    data: ChatTypingData


class ChatDelete(BaseModel):
    event: Literal["chat:delete"]
    data: ChatDeleteData


class TeacherCommand(BaseModel):
    event: Literal["teacher:start-class", "teacher:activate-groups", "teacher:end-class"]
    data: ClassRef


ClientEvent = Annotated[
    Union[JoinRoom, LeaveRoom, NoteUpdate, ChatSend, ChatHistory, ChatTyping, ChatDelete, TeacherCommand],
    Field(discriminator="event"),
]

_client_event_adapter = TypeAdapter(ClientEvent)


class InvalidEvent(ValueError):
    """Trame illisible, événement inconnu ou payload non conforme."""

    def __init__(self, message: str, event: Optional[str] = None):
        super().__init__(message)
        self.event = event


def parse_client_event(raw: str):
    """
    Décode et valide une trame reçue.
    Lève InvalidEvent (avec le nom d'événement s'il a pu être lu).
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        raise InvalidEvent("Trame JSON invalide.")
    if not isinstance(payload, dict):
        raise InvalidEvent("La trame doit être un objet {event, data}.")

    event = payload.get("event") if isinstance(payload.get("event"), str) else None
    try:
        return _client_event_adapter.validate_python(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        if first["type"] in ("union_tag_invalid", "union_tag_not_found"):
            raise InvalidEvent(f"Événement inconnu : {event!r}.", event)
        location = ".".join(str(part) for part in first["loc"][1:])
        raise InvalidEvent(f"Payload invalide ({location}) : {first['msg']}", event)


# --- Serveur → client ---

class ServerEvent(_Payload):
    EVENT: ClassVar[str] = ""

    def frame(self) -> Dict[str, Any]:
        return {"event": self.EVENT, "data": self.model_dump(mode="json", by_alias=True)}


class RoomJoined(ServerEvent):
    EVENT: ClassVar[str] = "room:joined"
    room: str


class UsersOnline(ServerEvent):
    EVENT: ClassVar[str] = "users:online"
    class_id: uuid.UUID
    online_users: List[str]


class NoteUpdated(ServerEvent):
    EVENT: ClassVar[str] = "note:updated"
    content: str
    updated_at: datetime
    updated_by: uuid.UUID


class NoteError(ServerEvent):
    EVENT: ClassVar[str] = "note:error"
    error: str


class ChatSenderPayload(_Payload):
    id: uuid.UUID
    name: str
    role: str


class ChatMessageReceived(ServerEvent):
    EVENT: ClassVar[str] = "chat:message:received"
    id: uuid.UUID
    text: str
    timestamp: datetime
    sender: ChatSenderPayload
    class_id: uuid.UUID
    group_id: Optional[int] = None
    is_ai: bool = Field(default=False, alias="isAI")

    @classmethod
    def from_message(cls, message: ChatMessageResponse) -> "ChatMessageReceived":
        return cls(
            id=message.id,
            text=message.text,
            timestamp=message.timestamp,
            sender=ChatSenderPayload(**message.sender.model_dump()),
            class_id=message.class_id,
            group_id=message.group_id,
            is_ai=message.is_ai,
        )


class ChatHistoryLoaded(ServerEvent):
    EVENT: ClassVar[str] = "chat:history:loaded"
    class_id: uuid.UUID
    group_id: Optional[int] = None
    messages: List[ChatMessageReceived]


class ChatTypingIndicator(ServerEvent):
    EVENT: ClassVar[str] = "chat:typing:indicator"
    user_name: str
    is_typing: bool


class ChatMessageDeleted(ServerEvent):
    EVENT: ClassVar[str] = "chat:message:deleted"
    id: uuid.UUID
    class_id: uuid.UUID
    group_id: Optional[int] = None


class ChatError(ServerEvent):
    EVENT: ClassVar[str] = "chat:error"
    error: str


class ClassStateChanged(ServerEvent):
    EVENT: ClassVar[str] = "class:state-changed"
    status: str
    message: str


class TeacherError(ServerEvent):
    EVENT: ClassVar[str] = "teacher:error"
    error: str


class EventError(ServerEvent):
    EVENT: ClassVar[str] = "error"
    event: Optional[str] = None
    error: str
