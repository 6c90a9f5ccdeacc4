"""
Router de lecture de l'état de séance (reprise après rechargement de page).
Les transitions passent exclusivement par les commandes enseignant du WebSocket.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from classsync.database import get_db
from classsync.exceptions import ClassSyncError
from classsync.schemas.chat import SessionStateResponse
from classsync.security import CurrentUser, get_current_user
from classsync.services import session_service

router = APIRouter(prefix="/api/v1/classes", tags=["Séance"])


@router.get("/{class_id}/session", response_model=SessionStateResponse, summary="État de la séance")
def get_session_state(
    class_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Statut persisté, vue à afficher pour l'appelant et utilisateurs en ligne."""
    try:
        status, view = session_service.get_view(db, class_id, user)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return SessionStateResponse(
        class_id=class_id,
        status=status,
        view=view,
        online_users=request.app.state.presence.online(class_id),
    )
