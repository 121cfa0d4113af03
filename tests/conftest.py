"""Shared test fixtures."""
import os
import tempfile
from pathlib import Path

# Configurazione da impostare prima di importare centro_aba (letta all'import)
_DB_DIR = tempfile.mkdtemp(prefix="centro_aba_test_")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.sqlite'}"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SESSION_SECRET"] = "test-secret"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin123"

import pytest
from fastapi.testclient import TestClient

from centro_aba.api_main import app
from centro_aba.auth_service import crea_utente
from centro_aba.config import SESSION_COOKIE_NAME
from centro_aba.db import Base, engine
from centro_aba.seed import seed_base
from centro_aba.services import init_db


@pytest.fixture(autouse=True)
def fresh_db():
    """Ogni test parte da un DB vuoto con il solo seed (admin + 3 tipi)."""
    Base.metadata.drop_all(bind=engine)
    init_db()
    seed_base()
    yield


def _login(client: TestClient, username: str, password: str) -> TestClient:
    r = client.post("/api/auth/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    client.cookies.set(SESSION_COOKIE_NAME, r.cookies[SESSION_COOKIE_NAME])
    return client


@pytest.fixture
def anon_client():
    """Client senza sessione."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_client():
    """Client autenticato come amministratore iniziale."""
    with TestClient(app) as c:
        yield _login(c, "admin", "admin123")


@pytest.fixture
def staff_user():
    return crea_utente("Giulia Verdi", "giulia", "segreta", professione="Psicologa")


@pytest.fixture
def staff_client(staff_user):
    """Client autenticato come professionista non amministratore."""
    with TestClient(app) as c:
        yield _login(c, "giulia", "segreta")
