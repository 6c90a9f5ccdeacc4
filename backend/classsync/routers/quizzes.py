"""
Router pour les quiz (prétest / post-test) et leur soumission par les élèves.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from classsync.database import get_db
from classsync.exceptions import ClassSyncError
from classsync.schemas.quiz import QuizPublic, QuizSubmit, QuizSubmitResult, QuizUpsert, QuizWithAnswers
from classsync.security import CurrentUser, get_current_user, require_student, require_teacher
from classsync.services import quiz_service

router = APIRouter(prefix="/api/v1", tags=["Quiz"])


@router.put("/classes/{class_id}/quiz", response_model=QuizWithAnswers, summary="Enregistrer un quiz")
def set_quiz(
    class_id: uuid.UUID,
    data: QuizUpsert,
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    """Crée le quiz du type donné ou remplace entièrement ses questions."""
    try:
        return quiz_service.set_quiz(db, class_id, teacher.id, data)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/classes/{class_id}/quiz", response_model=QuizPublic, summary="Quiz à passer")
def get_quiz(
    class_id: uuid.UUID,
    quiz_type: str = Query(..., pattern="^(PRETEST|POSTTEST)$"),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Questions sans les bonnes réponses."""
    try:
        return quiz_service.get_quiz(db, class_id, quiz_type, user)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/classes/{class_id}/quiz/answers", response_model=QuizWithAnswers, summary="Quiz avec corrigé")
def get_quiz_with_answers(
    class_id: uuid.UUID,
    quiz_type: str = Query(..., pattern="^(PRETEST|POSTTEST)$"),
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    try:
        return quiz_service.get_quiz_with_answers(db, class_id, quiz_type, teacher.id)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/classes/{class_id}/quiz", status_code=204, summary="Supprimer un quiz")
def delete_quiz(
    class_id: uuid.UUID,
    quiz_type: str = Query(..., pattern="^(PRETEST|POSTTEST)$"),
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    try:
        quiz_service.delete_quiz(db, class_id, quiz_type, teacher.id)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post(
    "/classes/{class_id}/quiz/posttest/copy-pretest",
    response_model=QuizWithAnswers,
    summary="Reprendre le prétest comme post-test",
)
def copy_pretest(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    teacher: CurrentUser = Depends(require_teacher),
):
    """Copie ponctuelle : les modifications ultérieures du prétest ne sont pas reportées."""
    try:
        return quiz_service.copy_pretest_to_posttest(db, class_id, teacher.id)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/quizzes/submit", response_model=QuizSubmitResult, summary="Soumettre un quiz")
def submit_quiz(
    data: QuizSubmit,
    db: Session = Depends(get_db),
    student: CurrentUser = Depends(require_student),
):
    """
    Tentative unique par élève et par quiz.
    409 si le quiz a déjà été passé, 403 si l'élève n'est pas inscrit.
    """
    try:
        return quiz_service.submit_quiz(db, student.id, data)
    except ClassSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
