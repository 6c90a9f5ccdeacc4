"""
Router pour la gestion des classes par les enseignants.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from classsync.database import get_db
from classsync.exceptions import ClassSyncError
from classsync.schemas.school_class import ClassCreate, ClassDetails, ClassResponse, ClassUpdate
from classsync.security import CurrentUser, get_current_user, require_teacher
from classsync.services import class_service

router = APIRouter(prefix="/api/v1/classes", tags=["Classes"])


@router.post("", response_model=ClassResponse, status_code=201, summary="Créer une classe")
def create_class(
    data: ClassCreate,
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    """Crée une classe en salle d'attente, avec un code d'accès unique."""
    try:
        return class_service.create_class(db, teacher.id, data)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("", response_model=List[ClassResponse], summary="Lister mes classes")
def list_classes(db: Session = Depends(get_db), teacher: CurrentUser = Depends(require_teacher)):
    """Retourne les classes de l'enseignant connecté avec leur nombre d'élèves."""
    return class_service.get_teacher_classes(db, teacher.id)


@router.get("/{class_id}", response_model=ClassDetails, summary="Détail d'une classe")
def get_class(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Statut, élèves et groupes de la classe.
    Pour un élève, `view` vaut PRETEST tant qu'il n'a pas passé le prétest.
    """
    try:
        return class_service.get_class_details(db, class_id, user)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.put("/{class_id}", response_model=ClassResponse, summary="Renommer une classe")
def update_class(
    class_id: uuid.UUID,
    data: ClassUpdate,
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    try:
        return class_service.update_class(db, class_id, teacher.id, data)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{class_id}", status_code=204, summary="Supprimer une classe")
def delete_class(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    """Supprime la classe et, par cascade, inscriptions, quiz, chat et notes."""
    try:
        class_service.delete_class(db, class_id, teacher.id)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get(
    "/{class_id}/join-qr",
    summary="QR code d'accès à la classe",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}},
)
def get_join_qr(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    """Image PNG encodant le code de la classe, à projeter en début de séance."""
    try:
        png = class_service.get_join_qr(db, class_id, teacher.id)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return Response(content=png, media_type="image/png")
