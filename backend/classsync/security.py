"""
Identification de l'appelant par token JWT (Bearer).

Les tokens sont émis par le service d'authentification (hors périmètre) avec
les claims `sub` (UUID utilisateur) et `role` (TEACHER ou STUDENT).
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from classsync.config import settings

VALID_ROLES = {"TEACHER", "STUDENT"}

bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """Utilisateur authentifié tel que décrit par son token."""
    id: uuid.UUID
    role: str

    @property
    def is_teacher(self) -> bool:
        return self.role == "TEACHER"

    @property
    def is_student(self) -> bool:
        return self.role == "STUDENT"


def create_access_token(user_id: uuid.UUID, role: str, expires_minutes: Optional[int] = None) -> str:
    """Signe un token d'accès pour un utilisateur (outillage et tests)."""
    if role not in VALID_ROLES:
        raise ValueError(f"Rôle invalide. Valeurs acceptées : {VALID_ROLES}")
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {"sub": str(user_id), "role": role, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> CurrentUser:
    """
    Vérifie la signature et l'expiration du token.
    Lève ValueError si le token est invalide, expiré ou incomplet.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError as exc:
        raise ValueError(f"Token invalide : {exc}")

    role = payload.get("role")
    if role not in VALID_ROLES:
        raise ValueError("Token invalide : rôle manquant ou inconnu.")
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise ValueError("Token invalide : identifiant utilisateur manquant.")
    return CurrentUser(id=user_id, role=role)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """Dépendance FastAPI : résout l'utilisateur à partir du header Authorization."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentification requise.")
    try:
        return decode_access_token(credentials.credentials)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e))


def require_teacher(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_teacher:
        raise HTTPException(status_code=403, detail="Action réservée aux enseignants.")
    return user


def require_student(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_student:
        raise HTTPException(status_code=403, detail="Action réservée aux élèves.")
    return user
