"""
Shared fixtures: a throwaway SQLite database and a scripted AI service
"""

import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="test_papers_")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/test_papers.db"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEBUG"] = "false"
os.environ["AI_API_KEY"] = ""
os.environ["AI_API_ENDPOINT"] = ""
os.environ["AI_MODEL"] = ""

import pytest  # noqa: E402

from app.core.database import Base, SessionLocal, engine  # noqa: E402
from app.core.decorator import ExternalCallFailed  # noqa: E402
from app.models.saved_test import SavedTest  # noqa: E402
from app.schemas.shaped_result import Missing  # noqa: E402


class FakeAIService:
    """Stands in for AIService; returns or raises whatever the test scripts."""

    def __init__(self, result=None, error=None, guess_paper=None):
        self.result = result if result is not None else Missing("fake")
        self.error = error
        self.guess_paper = guess_paper
        self.calls = []

    def is_configured(self) -> bool:
        return True

    async def shape_test_content(self, request, mode=None):
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return self.result

    async def generate_guess_paper(self, subject, difficulty="medium"):
        self.calls.append((subject, difficulty))
        if self.error is not None:
            raise self.error
        return self.guess_paper


@pytest.fixture
def fake_ai():
    return FakeAIService()


@pytest.fixture
def failing_ai():
    return FakeAIService(error=ExternalCallFailed("connection refused"))


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.query(SavedTest).delete()
        db.commit()
        db.close()


@pytest.fixture
def client(fake_ai, db_session):
    from fastapi.testclient import TestClient

    import main
    from app.utils.ai_component.service import get_ai_service

    main.app.dependency_overrides[get_ai_service] = lambda: fake_ai
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()
