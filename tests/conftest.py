from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlmodel import func, select

from estove.commands import CommandQueue
from estove.db import Database
from estove.main import create_app
from estove.settings import Settings
from estove.telemetry import TelemetryStore


@pytest.fixture
def db(tmp_path) -> Database:
    database = Database(f"sqlite:///{tmp_path / 'estove.db'}")
    database.init()
    yield database
    database.close()


@pytest.fixture
def telemetry(db: Database) -> TelemetryStore:
    return TelemetryStore(db)


@pytest.fixture
def commands(db: Database, telemetry: TelemetryStore) -> CommandQueue:
    return CommandQueue(db, telemetry)


def make_client(tmp_path, **overrides) -> TestClient:
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'api.db'}", **overrides)
    return TestClient(create_app(settings))


@pytest.fixture
def client(tmp_path) -> TestClient:
    with make_client(tmp_path) as c:
        yield c


def count(db: Database, model) -> int:
    with db.session() as session:
        return session.exec(select(func.count()).select_from(model)).one()


READING = {"temperature": 87.5, "relay": True, "manualMode": False, "cooking": True, "timeLeft": 120}
