"""
Point d'entrée principal de l'API ClassSync.
Démarrage : uvicorn classsync.main:app --reload (depuis backend/)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import classsync.models  # noqa: F401 (enregistre tous les modèles dans Base.metadata avant les routers)
from classsync.config import settings
from classsync.routers import ai, chat, classes, enrollments, groups, quizzes, realtime, session
from classsync.services.presence_tracker import PresenceTracker
from classsync.services.room_router import RoomRouter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Cycle de vie de l'application : crée la présence et les salles temps réel
    (une instance par processus) puis les libère à l'arrêt.
    """
    app.state.presence = PresenceTracker()
    app.state.rooms = RoomRouter()
    logger.info("ClassSync démarré (env=%s)", settings.ENV)
    yield
    app.state.rooms.close()
    app.state.presence.close()


app = FastAPI(
    title="ClassSync API",
    description="Séances de classe synchronisées en temps réel : prétest, cours, groupes, post-test",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : par défaut tous les ports localhost (CORS_ORIGIN_REGEX à restreindre en production).
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(classes.router)
app.include_router(enrollments.router)
app.include_router(groups.router)
app.include_router(quizzes.router)
app.include_router(chat.router)
app.include_router(session.router)
app.include_router(ai.router)
app.include_router(realtime.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "ClassSync API", "version": "0.1.0"}
