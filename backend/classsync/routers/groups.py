"""
Router pour la répartition des élèves en groupes et les notes de groupe.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from classsync.database import get_db
from classsync.exceptions import ClassSyncError
from classsync.schemas.chat import NoteResponse
from classsync.schemas.group import AutoAssignRequest, GroupAssignmentsResponse, GroupAssignRequest
from classsync.security import CurrentUser, get_current_user, require_teacher
from classsync.services import group_service, note_service

router = APIRouter(prefix="/api/v1/classes", tags=["Groupes"])


@router.get("/{class_id}/groups", response_model=GroupAssignmentsResponse, summary="Composition des groupes")
def get_groups(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    try:
        return group_service.get_group_assignments(db, class_id, user)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.put("/{class_id}/groups", response_model=GroupAssignmentsResponse, summary="Affecter des élèves")
def assign_groups(
    class_id: uuid.UUID,
    data: GroupAssignRequest,
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    """
    Affecte les élèves listés à un groupe (ou les retire avec group_number null).
    Rejeté en bloc si un élève n'est pas inscrit dans la classe.
    """
    try:
        return group_service.assign_groups(db, class_id, teacher.id, data)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{class_id}/groups/auto", response_model=GroupAssignmentsResponse, summary="Répartition automatique")
def auto_assign_groups(
    class_id: uuid.UUID,
    data: AutoAssignRequest,
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    """Mélange les élèves sans groupe et les répartit en tourniquet sur group_count groupes."""
    try:
        return group_service.auto_assign_groups(db, class_id, teacher.id, data.group_count)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{class_id}/groups/{group_number}/note", response_model=NoteResponse, summary="Note du groupe")
def get_group_note(
    class_id: uuid.UUID,
    group_number: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Contenu courant de la note partagée (vide si personne n'a encore écrit)."""
    try:
        return note_service.get_note(db, class_id, group_number, user)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
