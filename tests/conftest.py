import uuid

import pytest
from fastapi.testclient import TestClient
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from finexpert.config import Settings
from finexpert.database import init_db
from finexpert.main import create_app
from finexpert.routers.budgets import get_chat_model_factory


class UnreachableModel:
    """Chat model stand-in whose every call fails like a network timeout."""

    def invoke(self, messages):
        raise TimeoutError("request timed out")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def owner_id():
    return uuid.uuid4()


@pytest.fixture
def fake_replies():
    # Tests append the replies the fake model should give, in order.
    return []


@pytest.fixture
def app(engine, fake_replies):
    settings = Settings(database_url="sqlite://", openai_api_key=None)
    app = create_app(settings=settings, engine=engine)
    app.dependency_overrides[get_chat_model_factory] = lambda: (
        lambda: FakeListChatModel(responses=list(fake_replies))
    )
    return app


@pytest.fixture
def client(app, owner_id):
    with TestClient(app, headers={"X-User-Id": str(owner_id)}) as client:
        yield client
