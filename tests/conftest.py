import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import Database, DatabaseStatus
from main import create_app


@pytest.fixture()
def settings():
    return Settings(
        mongodb_uri="mongodb://localhost:27017/bgmi_test",
        retry_initial_sec=0.01,
        retry_max_sec=0.04,
        timeout_ms=100,
    )


@pytest.fixture()
def mongo_db():
    client = mongomock.MongoClient()
    yield client["bgmi_test"]
    client.close()


@pytest.fixture()
def database(settings, mongo_db):
    db = Database(settings)
    db.use(mongo_db)
    return db


@pytest.fixture()
def client(settings, database):
    # no `with`: the lifespan (and its reconnect loop) is not started
    return TestClient(create_app(settings, database))


@pytest.fixture()
def offline_client(settings):
    return TestClient(create_app(settings, Database(settings)))


@pytest.fixture()
def failing_client(settings):
    database = Database(settings)
    database.status = DatabaseStatus(status="error", error="connection refused")
    return TestClient(create_app(settings, database))
