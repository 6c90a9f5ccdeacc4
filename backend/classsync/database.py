"""
Configuration de la connexion à la base de données PostgreSQL.
Les handlers temps réel ouvrent leur propre session via SessionLocal (une par événement).
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from classsync.config import settings
from classsync.exceptions import Conflict, PersistenceError

logger = logging.getLogger(__name__)

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_raise(db: Session, conflict_message: str = "Conflit avec une donnée existante.") -> None:
    """
    Commit la transaction en cours.
    IntegrityError → Conflict, toute autre erreur SQLAlchemy → PersistenceError.
    La session est rollback dans les deux cas, sans nouvelle tentative.
    """
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(conflict_message)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Échec du commit : %s", exc, exc_info=True)
        raise PersistenceError("Impossible d'enregistrer les données, réessayez plus tard.")
