from pathlib import Path
import os
import tempfile
import pytest

# Point the app at a throwaway SQLite file before `csr_portal` is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="csr_portal_tests_"))
os.environ["CSR_DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'portal.db'}"
os.environ["ENV"] = "dev"
os.environ.pop("HOSTED_REST_URL", None)
os.environ.pop("HOSTED_REST_KEY", None)


@pytest.fixture(scope="session", autouse=True)
def seeded_db():
    """Create the tables and load the demo data once per test run."""
    from sqlmodel import Session
    from csr_portal.database import engine, create_db_and_tables
    from csr_portal.seed import seed_demo
    create_db_and_tables()
    with Session(engine) as session:
        seed_demo(session, hash_passwords=True)
    yield


def _login(poc_name, password):
    from fastapi.testclient import TestClient
    from csr_portal.main import app
    r = TestClient(app).post('/api/auth/login', json={'poc_name': poc_name, 'password': password})
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture
def partner_session():
    return _login('Asha Rao', 'demo123')


@pytest.fixture
def partner_headers(partner_session):
    return {'Authorization': f"Bearer {partner_session['access_token']}"}


@pytest.fixture
def toll_headers():
    session = _login('Ravi Kumar', 'demo123')
    return {'Authorization': f"Bearer {session['access_token']}"}
