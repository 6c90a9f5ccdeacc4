"""
Passerelle temps réel : WebSocket /ws?token=<jwt>.

Une trame = {"event": <nom>, "data": {...}}. Chaque trame reçue est validée
(union fermée d'événements), autorisée, persistée via les services puis
diffusée aux salles concernées. Les erreurs ne sont renvoyées qu'à la
connexion d'origine, sous l'événement d'erreur propre à l'action
(note:error, chat:error, teacher:error) ou sous `error` à défaut.

Les appels base de données passent par le threadpool, une Session par événement ;
présence et salles sont modifiées sur la boucle d'événements.
"""

import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool

from classsync.database import SessionLocal
from classsync.exceptions import ClassSyncError, Forbidden
from classsync.schemas.events import (
    ChatError,
    ChatHistoryLoaded,
    ChatMessageDeleted,
    ChatMessageReceived,
    ChatTypingIndicator,
    ClassStateChanged,
    EventError,
    InvalidEvent,
    NoteError,
    NoteUpdated,
    RoomJoined,
    TeacherError,
    UsersOnline,
    parse_client_event,
)
from classsync.security import CurrentUser, decode_access_token
from classsync.services import access, chat_service, note_service, session_service
from classsync.services.presence_tracker import PresenceTracker
from classsync.services.room_router import RoomRouter, class_room, group_room, resolve_room

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Temps réel"])

# Événement reçu → événement d'erreur renvoyé à l'émetteur
ERROR_EVENTS = {
    "note:update": NoteError,
    "chat:message": ChatError,
    "chat:history": ChatError,
    "chat:typing": ChatError,
    "chat:delete": ChatError,
    "teacher:start-class": TeacherError,
    "teacher:activate-groups": TeacherError,
    "teacher:end-class": TeacherError,
}


def _in_session(fn, *args):
    db = SessionLocal()
    try:
        return fn(db, *args)
    finally:
        db.close()


async def _db_call(fn, *args):
    return await run_in_threadpool(_in_session, fn, *args)


class RealtimeGateway:
    """Traite les événements d'une connexion authentifiée."""

    def __init__(self, rooms: RoomRouter, presence: PresenceTracker, conn_id: str, user: CurrentUser):
        self.rooms = rooms
        self.presence = presence
        self.conn_id = conn_id
        self.user = user
        self._handlers = {
            "join_room": self.on_join_room,
            "leave_room": self.on_leave_room,
            "note:update": self.on_note_update,
            "chat:message": self.on_chat_message,
            "chat:history": self.on_chat_history,
            "chat:typing": self.on_chat_typing,
            "chat:delete": self.on_chat_delete,
            "teacher:start-class": self.on_teacher_command,
            "teacher:activate-groups": self.on_teacher_command,
            "teacher:end-class": self.on_teacher_command,
        }

    async def handle(self, raw: str) -> None:
        try:
            event = parse_client_event(raw)
        except InvalidEvent as e:
            logger.warning("Trame rejetée (%s) : %s", self.conn_id, e)
            await self.rooms.send(self.conn_id, EventError(event=e.event, error=str(e)))
            return

        try:
            await self._handlers[event.event](event)
        except ClassSyncError as e:
            logger.warning("%s refusé pour %s : %s", event.event, self.user.id, e)
            await self._reply_error(event.event, str(e))
        except Exception:
            logger.error("Erreur inattendue sur %s (%s)", event.event, self.conn_id, exc_info=True)
            await self._reply_error(event.event, "Une erreur interne est survenue.")

    async def disconnect(self) -> None:
        """Quitte toutes les salles et rediffuse la présence des classes touchées."""
        self.rooms.unregister(self.conn_id)
        for class_id, online_users in self.presence.disconnect(self.conn_id).items():
            await self.rooms.emit(class_room(class_id), UsersOnline(class_id=class_id, online_users=online_users))
        logger.info("Connexion fermée : %s (%s)", self.conn_id, self.user.id)

    # --- Salles et présence ---

    async def on_join_room(self, event) -> None:
        data = event.data
        self._check_same_user(data.user_id)
        await _db_call(access.require_group_writer, data.class_id, data.group_id, self.user)

        room = resolve_room(data.class_id, data.group_id)
        self.rooms.join(self.conn_id, room)
        await self.rooms.send(self.conn_id, RoomJoined(room=room))
        logger.info("%s a rejoint %s", self.user.id, room)

        if data.user_id is not None:
            online_users = self.presence.join(self.conn_id, data.class_id, data.user_id)
            await self.rooms.emit(
                class_room(data.class_id),
                UsersOnline(class_id=data.class_id, online_users=online_users),
            )

    async def on_leave_room(self, event) -> None:
        room = resolve_room(event.data.class_id, event.data.group_id)
        self.rooms.leave(self.conn_id, room)
        logger.info("%s a quitté %s", self.user.id, room)

    # --- Notes de groupe ---

    async def on_note_update(self, event) -> None:
        data = event.data
        self._check_same_user(data.user_id)
        room = group_room(data.class_id, data.group_id)
        async with self.rooms.lock(room):
            note = await _db_call(note_service.update_note, data.class_id, data.group_id, data.content, self.user)
            await self.rooms.emit(
                room,
                NoteUpdated(content=note.content, updated_at=note.updated_at, updated_by=note.updated_by),
                exclude=self.conn_id,
            )

    # --- Chat ---

    async def on_chat_message(self, event) -> None:
        data = event.data
        self._check_same_user(data.user_id)
        room = resolve_room(data.class_id, data.group_id)
        async with self.rooms.lock(room):
            message = await _db_call(chat_service.send_message, data.class_id, data.group_id, self.user, data.message)
            await self.rooms.emit(room, ChatMessageReceived.from_message(message))

    async def on_chat_history(self, event) -> None:
        data = event.data
        messages = await _db_call(chat_service.get_history, data.class_id, data.group_id, self.user, data.limit)
        await self.rooms.send(
            self.conn_id,
            ChatHistoryLoaded(
                class_id=data.class_id,
                group_id=data.group_id,
                messages=[ChatMessageReceived.from_message(m) for m in messages],
            ),
        )

    async def on_chat_typing(self, event) -> None:
        data = event.data
        room = resolve_room(data.class_id, data.group_id)
        if not self.rooms.is_member(self.conn_id, room):
            raise Forbidden("Rejoignez la salle avant d'y écrire.")
        await self.rooms.emit(
            room,
            ChatTypingIndicator(user_name=data.user_name, is_typing=data.is_typing),
            exclude=self.conn_id,
        )

    async def on_chat_delete(self, event) -> None:
        deleted = await _db_call(chat_service.delete_message, event.data.message_id, self.user)
        room = resolve_room(deleted.class_id, deleted.group_id)
        async with self.rooms.lock(room):
            await self.rooms.emit(
                room,
                ChatMessageDeleted(id=deleted.id, class_id=deleted.class_id, group_id=deleted.group_id),
            )

    # --- Pilotage de séance ---

    async def on_teacher_command(self, event) -> None:
        """Persiste le nouveau statut puis le diffuse ; rien n'est diffusé si le commit échoue."""
        class_id = event.data.class_id
        room = class_room(class_id)
        async with self.rooms.lock(room):
            change = await _db_call(session_service.apply_teacher_command, class_id, self.user, event.event)
            await self.rooms.emit(room, ClassStateChanged(status=change.status, message=change.message))

    # --- Utilitaires ---

    def _check_same_user(self, user_id) -> None:
        if user_id is not None and user_id != self.user.id:
            raise Forbidden("userId ne correspond pas à l'utilisateur authentifié.")

    async def _reply_error(self, event_name: str, message: str) -> None:
        error_event = ERROR_EVENTS.get(event_name)
        if error_event is None:
            await self.rooms.send(self.conn_id, EventError(event=event_name, error=message))
        else:
            await self.rooms.send(self.conn_id, error_event(error=message))


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: Optional[str] = None):
    """Connexion temps réel authentifiée par le token passé en paramètre de requête."""
    if not token:
        await websocket.close(code=4401, reason="Authentification requise.")
        return
    try:
        user = decode_access_token(token)
    except ValueError as e:
        await websocket.close(code=4401, reason=str(e))
        return

    await websocket.accept()
    rooms: RoomRouter = websocket.app.state.rooms
    presence: PresenceTracker = websocket.app.state.presence
    conn_id = rooms.register(websocket)
    gateway = RealtimeGateway(rooms, presence, conn_id, user)
    logger.info("Connexion ouverte : %s (%s, %s)", conn_id, user.id, user.role)

    try:
        while True:
            raw = await websocket.receive_text()
            await gateway.handle(raw)
    except WebSocketDisconnect:
        pass
    finally:
        await gateway.disconnect()
