"""
Configuration partagée pour tous les tests.
Override la dépendance get_db pour éviter toute connexion réelle à PostgreSQL,
et abaisse le coût bcrypt pour accélérer les tests.
"""

import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

from roster.database import get_db  # noqa: E402
from roster.dependencies import get_current_principal  # noqa: E402
from roster.main import app  # noqa: E402


@pytest.fixture
def mock_db():
    db = MagicMock()
    # Par défaut aucun numéro de peloton n'est déjà pris
    db.execute.return_value.scalar_one_or_none.return_value = None
    return db


@pytest.fixture
def client(mock_db):
    """Client HTTP de test avec la BDD mockée."""
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """Remplace l'authentification HTTP Basic par un appelant donné."""
    def _login_as(principal):
        app.dependency_overrides[get_current_principal] = lambda: principal
        return principal
    return _login_as
