"""
Tests unitaires pour la passerelle IA : appel fournisseur, erreurs, journalisation best-effort.
"""

import uuid
from unittest.mock import MagicMock, patch

import pytest
import requests
from sqlalchemy.exc import OperationalError

from classsync.config import settings
from classsync.exceptions import ExternalServiceError, PersistenceError
from classsync.schemas.ai import AIQuery
from classsync.security import CurrentUser
from classsync.services.ai_service import FALLBACK_ANSWER, ask, build_prompt, generate


def make_response(status_code=200, text="Un volcan est une ouverture de la croûte terrestre."):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    return response


@pytest.fixture(autouse=True)
def api_key():
    with patch.object(settings, "AI_API_KEY", "cle-de-test"):
        yield


# --- build_prompt ---

def test_build_prompt_contexte_role_et_question():
    prompt = build_prompt("Qu'est-ce qu'un volcan ?", "STUDENT", "Cours de géographie")

    assert prompt.startswith("Contexte : Cours de géographie")
    assert "un élève" in prompt
    assert prompt.endswith("Question : Qu'est-ce qu'un volcan ?")


def test_build_prompt_sans_contexte():
    assert not build_prompt("Bonjour", "TEACHER").startswith("Contexte")


# --- generate ---

def test_generate_succes():
    with patch("classsync.services.ai_service.requests.post") as mock_post:
        mock_post.return_value = make_response()
        answer = generate("prompt")

    assert answer.startswith("Un volcan")
    _, kwargs = mock_post.call_args
    assert kwargs["params"] == {"key": "cle-de-test"}
    assert kwargs["json"]["generationConfig"]["maxOutputTokens"] == settings.AI_MAX_OUTPUT_TOKENS
    assert kwargs["timeout"] == settings.AI_TIMEOUT_SECONDS


def test_generate_reponse_vide():
    with patch("classsync.services.ai_service.requests.post") as mock_post:
        mock_post.return_value = make_response(text="   ")
        assert generate("prompt") == FALLBACK_ANSWER


def test_generate_quota_depasse():
    with patch("classsync.services.ai_service.requests.post") as mock_post:
        mock_post.return_value = make_response(status_code=429)
        with pytest.raises(ExternalServiceError) as exc:
            generate("prompt")
    assert exc.value.status_code == 429


def test_generate_fournisseur_injoignable():
    with patch("classsync.services.ai_service.requests.post") as mock_post:
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(ExternalServiceError) as exc:
            generate("prompt")
    assert exc.value.status_code == 502


def test_generate_cle_manquante():
    with patch.object(settings, "AI_API_KEY", ""):
        with patch("classsync.services.ai_service.requests.post") as mock_post:
            with pytest.raises(ExternalServiceError):
                generate("prompt")
            mock_post.assert_not_called()


# --- ask ---

def test_ask_journalise_dans_le_chat():
    user = CurrentUser(id=uuid.uuid4(), role="STUDENT")
    class_id = uuid.uuid4()
    db = MagicMock()
    with patch("classsync.services.ai_service.generate", return_value="Réponse"), \
         patch("classsync.services.ai_service.chat_service.log_ai_interaction") as mock_log:
        result = ask(db, AIQuery(prompt="Question ?", class_id=class_id, group_id=2), user)

    assert result.response == "Réponse"
    mock_log.assert_called_once_with(db, class_id, 2, user, "Question ?", "Réponse")


def test_ask_sans_classe_pas_de_journalisation():
    user = CurrentUser(id=uuid.uuid4(), role="TEACHER")
    with patch("classsync.services.ai_service.generate", return_value="Réponse"), \
         patch("classsync.services.ai_service.chat_service.log_ai_interaction") as mock_log:
        ask(MagicMock(), AIQuery(prompt="Question ?"), user)

    mock_log.assert_not_called()


def test_ask_echec_de_journalisation_n_empeche_pas_la_reponse():
    user = CurrentUser(id=uuid.uuid4(), role="STUDENT")
    with patch("classsync.services.ai_service.generate", return_value="Réponse"), \
         patch("classsync.services.ai_service.chat_service.log_ai_interaction") as mock_log:
        mock_log.side_effect = PersistenceError("base indisponible")
        result = ask(MagicMock(), AIQuery(prompt="Question ?", class_id=uuid.uuid4()), user)

    assert result.response == "Réponse"


def test_ask_base_injoignable_pendant_journalisation():
    """Une erreur SQLAlchemy brute (lecture des droits) ne fait pas perdre la réponse."""
    user = CurrentUser(id=uuid.uuid4(), role="STUDENT")
    db = MagicMock()
    db.get.side_effect = OperationalError("SELECT ...", {}, Exception("server closed the connection"))
    with patch("classsync.services.ai_service.generate", return_value="Réponse"):
        result = ask(db, AIQuery(prompt="Question ?", class_id=uuid.uuid4()), user)

    assert result.response == "Réponse"
    db.rollback.assert_called_once()
    db.commit.assert_not_called()
