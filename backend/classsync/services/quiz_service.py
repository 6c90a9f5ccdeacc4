"""
Service métier des quiz : prétest et post-test d'une classe.

Règles :
- Au plus un quiz par (classe, type), garanti par la contrainte unique en base.
- Enregistrer un quiz existant remplace entièrement ses questions (suppression puis recréation).
- La notation est positionnelle : answers[i] est comparé à la question de position i.
  Aucune version du questionnaire n'est figée dans la soumission ; réordonner les
  questions change le sens des soumissions futures (les scores passés ne sont pas recalculés).
- Une seule soumission par (élève, quiz). La soumission et le score de l'inscription
  sont écrits dans le même commit : les deux ou aucun.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from classsync.database import commit_or_raise
from classsync.exceptions import Conflict, Forbidden, NotFound, ValidationFailed
from classsync.models.quiz import Question, Quiz, QuizSubmission
from classsync.schemas.quiz import (
    QuestionIn,
    QuestionPublic,
    QuestionWithAnswer,
    QuizPublic,
    QuizSubmit,
    QuizSubmitResult,
    QuizUpsert,
    QuizWithAnswers,
)
from classsync.security import CurrentUser
from classsync.services.access import get_enrollment, get_owned_class, require_member

logger = logging.getLogger(__name__)

QUIZ_LABELS = {"PRETEST": "Prétest", "POSTTEST": "Post-test"}


def grade(answers: Sequence[Optional[int]], correct_indexes: Sequence[int]) -> Tuple[int, int]:
    """
    Note des réponses positionnellement.

    Réponse manquante, nulle ou hors bornes = incorrecte ; réponses en trop ignorées.
    Retourne (nombre de bonnes réponses, pourcentage entier arrondi au demi supérieur).
    """
    total = len(correct_indexes)
    if total == 0:
        raise ValidationFailed("Ce quiz ne contient aucune question.")

    correct = sum(
        1 for index, expected in enumerate(correct_indexes)
        if index < len(answers) and answers[index] == expected
    )
    score = (200 * correct + total) // (2 * total)
    return correct, score


def set_quiz(db: Session, class_id: uuid.UUID, teacher_id: uuid.UUID, data: QuizUpsert) -> QuizWithAnswers:
    """
    Crée le quiz du type demandé ou remplace entièrement celui qui existe.
    Les questions ont déjà été validées en bloc par QuizUpsert.
    """
    get_owned_class(db, class_id, teacher_id)

    quiz = _find_quiz(db, class_id, data.quiz_type)
    if quiz is None:
        quiz = Quiz(
            id=uuid.uuid4(),
            class_id=class_id,
            quiz_type=data.quiz_type,
            title=data.title,
            time_limit_minutes=data.time_limit_minutes,
        )
        db.add(quiz)
        db.flush()  # Le quiz doit exister avant ses questions (FK)
    else:
        quiz.title = data.title
        quiz.time_limit_minutes = data.time_limit_minutes
        db.execute(delete(Question).where(Question.quiz_id == quiz.id))

    questions = _build_questions(quiz.id, data.questions)
    db.add_all(questions)
    commit_or_raise(db, "Un quiz de ce type existe déjà pour cette classe.")

    logger.info(
        "Quiz %s enregistré pour la classe %s : %d question(s)",
        data.quiz_type, class_id, len(questions),
    )
    return _with_answers(quiz, questions)


def copy_pretest_to_posttest(db: Session, class_id: uuid.UUID, teacher_id: uuid.UUID) -> QuizWithAnswers:
    """
    Réutilise les questions du prétest pour le post-test.
    Copie ponctuelle : modifier le prétest ensuite ne change pas le post-test.
    """
    get_owned_class(db, class_id, teacher_id)

    pretest = _find_quiz(db, class_id, "PRETEST")
    if pretest is None:
        raise NotFound("Aucun prétest à copier pour cette classe.")

    questions = _load_questions(db, pretest.id)
    data = QuizUpsert(
        quiz_type="POSTTEST",
        title=pretest.title,
        time_limit_minutes=pretest.time_limit_minutes,
        questions=[
            QuestionIn(text=q.text, options=list(q.options), correct_answer_index=q.correct_answer_index)
            for q in questions
        ],
    )
    return set_quiz(db, class_id, teacher_id, data)


def get_quiz(db: Session, class_id: uuid.UUID, quiz_type: str, user: CurrentUser) -> QuizPublic:
    """Quiz sans les bonnes réponses, pour les membres de la classe."""
    require_member(db, class_id, user)
    quiz = _get_quiz_or_404(db, class_id, quiz_type)
    questions = _load_questions(db, quiz.id)
    return QuizPublic(
        id=quiz.id,
        class_id=quiz.class_id,
        quiz_type=quiz.quiz_type,
        title=quiz.title,
        time_limit_minutes=quiz.time_limit_minutes,
        questions=[QuestionPublic.model_validate(q) for q in questions],
    )


def get_quiz_with_answers(db: Session, class_id: uuid.UUID, quiz_type: str, teacher_id: uuid.UUID) -> QuizWithAnswers:
    """Quiz avec le corrigé, réservé à l'enseignant propriétaire."""
    get_owned_class(db, class_id, teacher_id)
    quiz = _get_quiz_or_404(db, class_id, quiz_type)
    return _with_answers(quiz, _load_questions(db, quiz.id))


def delete_quiz(db: Session, class_id: uuid.UUID, quiz_type: str, teacher_id: uuid.UUID) -> None:
    get_owned_class(db, class_id, teacher_id)
    quiz = _get_quiz_or_404(db, class_id, quiz_type)
    db.delete(quiz)
    commit_or_raise(db)
    logger.info("Quiz %s supprimé pour la classe %s", quiz_type, class_id)


def submit_quiz(db: Session, student_id: uuid.UUID, data: QuizSubmit) -> QuizSubmitResult:
    """
    Note et enregistre la tentative unique d'un élève.

    Lève NotFound (pas de quiz), Forbidden (non inscrit), Conflict (déjà passé).
    En cas de conflit l'état existant (soumission, score) reste inchangé.
    """
    label = QUIZ_LABELS[data.quiz_type]
    quiz = _find_quiz(db, data.class_id, data.quiz_type)
    if quiz is None:
        raise NotFound(f"{label} introuvable pour cette classe.")

    enrollment = get_enrollment(db, data.class_id, student_id)
    if enrollment is None:
        raise Forbidden("Vous n'êtes pas inscrit dans cette classe.")

    score_field = "pretest_score" if data.quiz_type == "PRETEST" else "posttest_score"
    already_scored = getattr(enrollment, score_field) is not None
    if already_scored or db.get(QuizSubmission, (student_id, quiz.id)) is not None:
        raise Conflict(f"{label} déjà passé.")

    questions = _load_questions(db, quiz.id)
    correct, score = grade(data.answers, [q.correct_answer_index for q in questions])

    submitted_at = datetime.now(timezone.utc)
    db.add(QuizSubmission(student_id=student_id, quiz_id=quiz.id, score=score, submitted_at=submitted_at))
    setattr(enrollment, score_field, score)
    commit_or_raise(db, f"{label} déjà passé.")

    logger.info(
        "%s soumis : élève %s, classe %s, %d/%d (%d%%)",
        label, student_id, data.class_id, correct, len(questions), score,
    )
    return QuizSubmitResult(
        message=f"{label} soumis avec succès.",
        score=score,
        total_questions=len(questions),
        submitted_at=submitted_at,
    )


def _find_quiz(db: Session, class_id: uuid.UUID, quiz_type: str) -> Optional[Quiz]:
    return db.execute(
        select(Quiz).where(Quiz.class_id == class_id, Quiz.quiz_type == quiz_type)
    ).scalar()


def _get_quiz_or_404(db: Session, class_id: uuid.UUID, quiz_type: str) -> Quiz:
    quiz = _find_quiz(db, class_id, quiz_type)
    if quiz is None:
        raise NotFound(f"{QUIZ_LABELS.get(quiz_type, 'Quiz')} introuvable pour cette classe.")
    return quiz


def _load_questions(db: Session, quiz_id: uuid.UUID) -> List[Question]:
    return db.execute(
        select(Question)
        .where(Question.quiz_id == quiz_id)
        .order_by(Question.position)
    ).scalars().all()


def _build_questions(quiz_id: uuid.UUID, items: List[QuestionIn]) -> List[Question]:
    return [
        Question(
            id=uuid.uuid4(),
            quiz_id=quiz_id,
            position=position,
            text=item.text,
            options=list(item.options),
            correct_answer_index=item.correct_answer_index,
        )
        for position, item in enumerate(items)
    ]


def _with_answers(quiz: Quiz, questions: List[Question]) -> QuizWithAnswers:
    return QuizWithAnswers(
        id=quiz.id,
        class_id=quiz.class_id,
        quiz_type=quiz.quiz_type,
        title=quiz.title,
        time_limit_minutes=quiz.time_limit_minutes,
        questions=[QuestionWithAnswer.model_validate(q) for q in questions],
    )
