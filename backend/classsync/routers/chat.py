"""
Miroir REST du chat temps réel, utilisé quand aucune connexion WebSocket n'est ouverte.
Les écritures sont aussi diffusées aux connexions présentes dans la salle.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from classsync.database import get_db
from classsync.exceptions import ClassSyncError
from classsync.schemas.chat import ChatHistoryResponse, ChatMessageCreate, ChatMessageResponse
from classsync.schemas.events import ChatMessageDeleted, ChatMessageReceived
from classsync.security import CurrentUser, get_current_user
from classsync.services import chat_service
from classsync.services.room_router import resolve_room

router = APIRouter(prefix="/api/v1/chat", tags=["Chat"])


@router.get("/history", response_model=ChatHistoryResponse, summary="Historique du chat")
def get_history(
    class_id: uuid.UUID,
    group_id: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Messages les plus récents de la salle, du plus ancien au plus récent."""
    try:
        messages = chat_service.get_history(db, class_id, group_id, user, limit)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return ChatHistoryResponse(messages=messages)


@router.post("/messages", response_model=ChatMessageResponse, status_code=201, summary="Envoyer un message")
async def send_message(
    data: ChatMessageCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    room = resolve_room(data.class_id, data.group_id)
    rooms = request.app.state.rooms
    async with rooms.lock(room):
        try:
            message = await run_in_threadpool(
                chat_service.send_message, db, data.class_id, data.group_id, user, data.text
            )
        except ClassSyncError as e:
            raise HTTPException(status_code=e.status_code, detail=str(e))
        await rooms.emit(room, ChatMessageReceived.from_message(message))
    return message


@router.delete("/messages/{message_id}", status_code=204, summary="Supprimer un message")
async def delete_message(
    message_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Réservé à l'auteur du message ou à l'enseignant de la classe."""
    try:
        deleted = await run_in_threadpool(chat_service.delete_message, db, message_id, user)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    room = resolve_room(deleted.class_id, deleted.group_id)
    await request.app.state.rooms.emit(
        room,
        ChatMessageDeleted(id=deleted.id, class_id=deleted.class_id, group_id=deleted.group_id),
    )
