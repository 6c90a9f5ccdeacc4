"""
Configuration partagée pour tous les tests.
Override la dépendance get_db pour éviter toute connexion réelle à PostgreSQL
et fournit des tokens signés pour un enseignant et un élève.
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from classsync.database import get_db
from classsync.main import app
from classsync.security import CurrentUser, create_access_token


@pytest.fixture
def mock_db():
    return MagicMock()


@pytest.fixture
def client(mock_db):
    """Client HTTP de test avec la BDD mockée (lifespan exécuté : salles et présence créées)."""
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def teacher():
    return CurrentUser(id=uuid.uuid4(), role="TEACHER")


@pytest.fixture
def student():
    return CurrentUser(id=uuid.uuid4(), role="STUDENT")


@pytest.fixture
def teacher_headers(teacher):
    return {"Authorization": f"Bearer {create_access_token(teacher.id, teacher.role)}"}


@pytest.fixture
def student_headers(student):
    return {"Authorization": f"Bearer {create_access_token(student.id, student.role)}"}
