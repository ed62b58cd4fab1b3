import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.pop("REDIS_URL", None)

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from horse_chat.database.connection import mongo_db_dependency
from horse_chat.main import app
from horse_chat.repositories.conversation_repository import ConversationRepository
from horse_chat.repositories.message_repository import MessageRepository
from horse_chat.services.chat_service import ChatService
from horse_chat.utils.security import create_access_token


@pytest.fixture
def db():
    return AsyncMongoMockClient()["horse_chat_test"]


@pytest.fixture
def service(db):
    return ChatService(MessageRepository(db), ConversationRepository(db))


@pytest.fixture
def alice():
    return str(ObjectId())


@pytest.fixture
def bob():
    return str(ObjectId())


@pytest.fixture
def carol():
    return str(ObjectId())


@pytest.fixture
def client(db, monkeypatch):
    # one shared event loop for all sockets, so cross-connection sends work
    async def _noop():
        return None

    monkeypatch.setattr("horse_chat.main.connect_to_mongo", _noop)
    monkeypatch.setattr("horse_chat.main.close_mongo_connection", _noop)
    monkeypatch.setattr("horse_chat.main.get_database", lambda: db)
    app.dependency_overrides[mongo_db_dependency] = lambda: db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def auth_headers(user_id, role="seller"):
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


def ws_url(user_id, role="seller"):
    return f"/ws/chat?token={create_access_token(user_id, role)}"
