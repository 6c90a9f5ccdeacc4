"""
Passerelle vers le fournisseur de modèle de langage (API generateContent).

La génération est entièrement déléguée au fournisseur. La journalisation de
l'échange dans le chat est best-effort : son échec est tracé côté serveur
mais ne bloque jamais la réponse à l'utilisateur.
"""

import logging
from typing import Optional

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from classsync.config import settings
from classsync.exceptions import ClassSyncError, ExternalServiceError
from classsync.schemas.ai import AIAnswer, AIQuery
from classsync.security import CurrentUser
from classsync.services import chat_service

logger = logging.getLogger(__name__)

FALLBACK_ANSWER = "Je n'ai pas pu générer de réponse. Veuillez réessayer."

ROLE_LABELS = {"TEACHER": "un enseignant", "STUDENT": "un élève"}


def build_prompt(prompt: str, role: str, context: Optional[str] = None) -> str:
    """Cadre la question : contexte éventuel, rôle de l'appelant, consigne pédagogique."""
    parts = []
    if context:
        parts.append(f"Contexte : {context}\n\n")
    parts.append(f"L'utilisateur est {ROLE_LABELS.get(role, 'un utilisateur')} sur une plateforme éducative. ")
    parts.append("Donne des réponses utiles et pédagogiques, adaptées à une salle de classe. ")
    parts.append("Reste concis et centré sur le sujet.\n\n")
    parts.append(f"Question : {prompt}")
    return "".join(parts)


def generate(full_prompt: str) -> str:
    """
    Appelle le fournisseur et retourne le texte généré.
    Lève ExternalServiceError : 429 si le quota est dépassé, 502 sinon.
    """
    if not settings.AI_API_KEY:
        raise ExternalServiceError("Assistant IA non configuré.")

    url = f"{settings.AI_API_URL}/{settings.AI_MODEL}:generateContent"
    body = {
        "contents": [{"parts": [{"text": full_prompt}]}],
        "generationConfig": {
            "temperature": settings.AI_TEMPERATURE,
            "maxOutputTokens": settings.AI_MAX_OUTPUT_TOKENS,
        },
    }

    try:
        response = requests.post(
            url,
            params={"key": settings.AI_API_KEY},
            json=body,
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except requests.exceptions.RequestException as e:
        logger.error("Erreur réseau vers le fournisseur IA : %s", e)
        raise ExternalServiceError("Le service IA est injoignable.")

    if response.status_code == 429:
        logger.warning("Quota du fournisseur IA dépassé")
        raise ExternalServiceError("Quota du service IA dépassé.", status_code=429)
    if response.status_code in (400, 401, 403):
        logger.error("Fournisseur IA : erreur de configuration (HTTP %s)", response.status_code)
        raise ExternalServiceError("Erreur de configuration du service IA.")

    try:
        response.raise_for_status()
        data = response.json()
    except (requests.exceptions.HTTPError, ValueError) as e:
        logger.error("Réponse invalide du fournisseur IA : %s", e)
        raise ExternalServiceError("Impossible de générer une réponse IA.")

    candidates = data.get("candidates") or []
    if not candidates:
        return FALLBACK_ANSWER
    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts).strip()
    return text or FALLBACK_ANSWER


def ask(db: Session, query: AIQuery, user: CurrentUser) -> AIAnswer:
    """Interroge l'assistant puis journalise l'échange dans le chat si une classe est fournie."""
    answer = generate(build_prompt(query.prompt, user.role, query.context))

    if query.class_id is not None:
        try:
            chat_service.log_ai_interaction(db, query.class_id, query.group_id, user, query.prompt, answer)
        except (ClassSyncError, SQLAlchemyError) as e:
            # Best-effort : la réponse est rendue même si la journalisation échoue
            db.rollback()
            logger.error(
                "Journalisation de l'échange IA impossible (classe %s) : %s", query.class_id, e, exc_info=True
            )

    return AIAnswer(response=answer)
