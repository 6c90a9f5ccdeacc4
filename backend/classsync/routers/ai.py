"""
Router de l'assistant IA et des statistiques de classe.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from classsync.database import get_db
from classsync.exceptions import ClassSyncError
from classsync.schemas.ai import AIAnswer, AIQuery, ClassAnalytics
from classsync.security import CurrentUser, get_current_user, require_teacher
from classsync.services import ai_service, analytics_service

router = APIRouter(prefix="/api/v1", tags=["Assistant IA"])


@router.post("/ai/ask", response_model=AIAnswer, summary="Interroger l'assistant")
def ask_assistant(
    query: AIQuery,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Transmet la question au fournisseur de modèle de langage.
    429 si le quota du fournisseur est dépassé, 502 pour toute autre panne.
    """
    try:
        return ai_service.ask(db, query, user)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/analytics/classes/{class_id}", response_model=ClassAnalytics, summary="Statistiques de la classe")
def class_analytics(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    try:
        return analytics_service.get_class_analytics(db, class_id, teacher.id)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
