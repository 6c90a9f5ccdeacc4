"""
Tests unitaires pour le chat de classe et de groupe.
"""

import uuid
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from classsync.exceptions import Forbidden, NotFound, ValidationFailed
from classsync.models.chat import ChatMessage
from classsync.models.school_class import ClassSession, Enrollment
from classsync.models.user import User
from classsync.schemas.chat import ChatMessageCreate
from classsync.security import CurrentUser
from classsync.services.chat_service import delete_message, get_history, log_ai_interaction, send_message


# --- Helpers ---

@pytest.fixture
def classroom():
    teacher = CurrentUser(id=uuid.uuid4(), role="TEACHER")
    student = CurrentUser(id=uuid.uuid4(), role="STUDENT")
    school_class = ClassSession(id=uuid.uuid4(), name="Français 1A", class_code="FACE0001", teacher_id=teacher.id)
    return teacher, student, school_class


def make_db(school_class, enrollment=None, user=None, message=None):
    db = MagicMock()
    db.get.side_effect = lambda model, key: {
        ClassSession: school_class,
        Enrollment: enrollment,
        User: user,
        ChatMessage: message,
    }.get(model)
    return db


def make_user(user_id, name="Léa Martin", role="STUDENT"):
    return User(id=user_id, email="lea@ecole.be", password_hash="x", name=name, role=role)


def make_message(class_id, sender_id, text, minutes=0, group_number=None):
    return ChatMessage(
        id=uuid.uuid4(), class_id=class_id, group_number=group_number, sender_id=sender_id,
        text=text, is_ai=False, timestamp=datetime(2026, 3, 2, 9, 0) + timedelta(minutes=minutes),
    )


# --- Validation ---

def test_chat_message_create_texte_blanc_rejete():
    with pytest.raises(ValidationError):
        ChatMessageCreate(class_id=uuid.uuid4(), text="   ")


# --- send_message ---

def test_send_message_chat_de_classe(classroom):
    _, student, school_class = classroom
    enrollment = Enrollment(class_id=school_class.id, student_id=student.id)
    db = make_db(school_class, enrollment, make_user(student.id))

    result = send_message(db, school_class.id, None, student, "Bonjour à tous")

    assert result.text == "Bonjour à tous"
    assert result.group_id is None
    assert result.is_ai is False
    assert result.sender.name == "Léa Martin"
    assert result.sender.role == "STUDENT"
    db.add.assert_called_once()
    db.commit.assert_called_once()


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_send_message_texte_vide(classroom, text):
    _, student, school_class = classroom
    db = make_db(school_class)

    with pytest.raises(ValidationFailed):
        send_message(db, school_class.id, None, student, text)
    db.add.assert_not_called()


def test_send_message_non_membre(classroom):
    _, student, school_class = classroom
    db = make_db(school_class, enrollment=None)

    with pytest.raises(Forbidden):
        send_message(db, school_class.id, None, student, "Salut")
    db.add.assert_not_called()


def test_send_message_groupe_d_un_autre(classroom):
    _, student, school_class = classroom
    enrollment = Enrollment(class_id=school_class.id, student_id=student.id, group_number=1)
    db = make_db(school_class, enrollment)

    with pytest.raises(Forbidden):
        send_message(db, school_class.id, 2, student, "Je m'invite")


def test_send_message_enseignant_dans_un_groupe(classroom):
    teacher, _, school_class = classroom
    db = make_db(school_class, user=make_user(teacher.id, "M. Dupont", "TEACHER"))

    result = send_message(db, school_class.id, 3, teacher, "Où en êtes-vous ?")

    assert result.group_id == 3
    assert result.sender.role == "TEACHER"


# --- get_history ---

def test_get_history_ordre_chronologique(classroom):
    """La requête renvoie du plus récent au plus ancien ; le service remet dans l'ordre."""
    teacher, _, school_class = classroom
    author = make_user(teacher.id, "M. Dupont", "TEACHER")
    newest_first = [
        (make_message(school_class.id, teacher.id, "troisième", 2), author),
        (make_message(school_class.id, teacher.id, "deuxième", 1), author),
        (make_message(school_class.id, teacher.id, "premier", 0), author),
    ]
    db = make_db(school_class)
    db.execute.return_value.all.return_value = newest_first

    history = get_history(db, school_class.id, None, teacher, limit=3)

    assert [m.text for m in history] == ["premier", "deuxième", "troisième"]


def test_get_history_expediteur_supprime(classroom):
    teacher, _, school_class = classroom
    db = make_db(school_class)
    db.execute.return_value.all.return_value = [(make_message(school_class.id, uuid.uuid4(), "orphelin"), None)]

    history = get_history(db, school_class.id, None, teacher)

    assert history[0].sender.name == "Utilisateur inconnu"


def test_get_history_groupe_interdit(classroom):
    _, student, school_class = classroom
    enrollment = Enrollment(class_id=school_class.id, student_id=student.id, group_number=2)
    db = make_db(school_class, enrollment)

    with pytest.raises(Forbidden):
        get_history(db, school_class.id, 1, student)
    db.execute.assert_not_called()


# --- delete_message ---

def test_delete_message_par_l_auteur(classroom):
    _, student, school_class = classroom
    message = make_message(school_class.id, student.id, "oups", group_number=2)
    db = make_db(school_class, user=make_user(student.id), message=message)

    deleted = delete_message(db, message.id, student)

    assert deleted.id == message.id
    assert deleted.group_id == 2
    db.delete.assert_called_once_with(message)
    db.commit.assert_called_once()


def test_delete_message_par_l_enseignant(classroom):
    teacher, student, school_class = classroom
    message = make_message(school_class.id, student.id, "hors sujet")
    db = make_db(school_class, user=make_user(student.id), message=message)

    delete_message(db, message.id, teacher)

    db.delete.assert_called_once_with(message)


def test_delete_message_par_un_autre_eleve(classroom):
    _, student, school_class = classroom
    message = make_message(school_class.id, uuid.uuid4(), "pas à moi")
    db = make_db(school_class, message=message)

    with pytest.raises(Forbidden):
        delete_message(db, message.id, student)
    db.delete.assert_not_called()


def test_delete_message_introuvable(classroom):
    _, student, school_class = classroom
    db = make_db(school_class, message=None)

    with pytest.raises(NotFound):
        delete_message(db, uuid.uuid4(), student)


# --- log_ai_interaction ---

def test_log_ai_interaction_question_et_reponse(classroom):
    _, student, school_class = classroom
    enrollment = Enrollment(class_id=school_class.id, student_id=student.id)
    db = make_db(school_class, enrollment)

    log_ai_interaction(db, school_class.id, None, student, "Qu'est-ce qu'un volcan ?", "Une ouverture...")

    question, answer = db.add_all.call_args[0][0]
    assert question.is_ai is False
    assert answer.is_ai is True
    assert answer.text == "Une ouverture..."
    db.commit.assert_called_once()


def test_log_ai_interaction_reponse_apres_la_question(classroom):
    _, student, school_class = classroom
    db = make_db(school_class, Enrollment(class_id=school_class.id, student_id=student.id))

    log_ai_interaction(db, school_class.id, 1, student, "Question ?", "Réponse")

    question, answer = db.add_all.call_args[0][0]
    assert answer.timestamp > question.timestamp


def test_get_history_question_ia_avant_reponse_a_horodatage_egal(classroom):
    teacher, _, school_class = classroom
    db = make_db(school_class)
    db.execute.return_value.all.return_value = []

    get_history(db, school_class.id, None, teacher)

    order_by = str(db.execute.call_args[0][0]).split("ORDER BY")[1]
    assert "timestamp DESC" in order_by
    assert "is_ai DESC" in order_by
