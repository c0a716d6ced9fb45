from pathlib import Path
import os

TEST_DB = Path(__file__).resolve().parent / "test_guesthouse.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB}"
os.environ["ENV"] = "dev"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["STORAGE_PUBLIC_BASE_URL"] = "http://blobs.test/public"

import pytest
from sqlmodel import Session, SQLModel

from guesthouse.database import create_db_and_tables, engine
from guesthouse.routers.feedback import feedback_rate_limiter
from guesthouse.services import AuthService
from guesthouse.utils import storage


@pytest.fixture(autouse=True)
def fresh_db():
    """Recreate every table (and the seeded admin) before each test."""
    SQLModel.metadata.drop_all(engine)
    create_db_and_tables()
    feedback_rate_limiter.reset()
    storage._storage_client = None
    yield


@pytest.fixture(scope="session", autouse=True)
def remove_test_db():
    yield
    engine.dispose()
    if TEST_DB.exists():
        try:
            TEST_DB.unlink()
        except OSError:
            pass


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


def headers_for(role: str) -> dict:
    with Session(engine) as s:
        svc = AuthService(s)
        user = svc.upsert_user(f"{role}@test.local", "secret123", role)
        token = svc.issue_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return headers_for("admin")


@pytest.fixture
def editor_headers():
    return headers_for("editor")


@pytest.fixture
def viewer_headers():
    return headers_for("viewer")
