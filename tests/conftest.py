import os
import uuid
from typing import Any

# Settings are read once at import time.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base
from app.models import gis, network  # noqa: F401
from app.schemas.network import CtoCreate, CtoGroupCreate
from app.services import network as network_service


class _JoseDateTimeProxy:
    def utcnow(self):
        from datetime import datetime, timezone

        return datetime.now(timezone.utc)

    def now(self, tz: Any | None = None):
        from datetime import datetime

        return datetime.now(tz)

    def __getattr__(self, name: str) -> Any:
        from datetime import datetime

        return getattr(datetime, name)


@pytest.fixture(autouse=True)
def _patch_jose_datetime(monkeypatch):
    import jose.jwt as jose_jwt

    monkeypatch.setattr(jose_jwt, "datetime", _JoseDateTimeProxy(), raising=False)


def _enable_foreign_keys(engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _enable_foreign_keys(engine)

    Base.metadata.create_all(engine)

    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def file_engine(tmp_path):
    """File-backed SQLite engine for tests that need real commits or threads."""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'ctonet.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    _enable_foreign_keys(engine)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def file_sessions(file_engine):
    return sessionmaker(bind=file_engine, autoflush=False, autocommit=False)


@pytest.fixture()
def tenant_id():
    return uuid.uuid4()


@pytest.fixture()
def other_tenant_id():
    return uuid.uuid4()


@pytest.fixture()
def make_cto(db_session, tenant_id):
    """Create a CTO for the default tenant (or ``tenant``) with sane defaults."""

    def _make(
        name: str = "CTO",
        latitude: float = -23.5505,
        longitude: float = -46.6333,
        total_ports: int = 8,
        tenant=None,
        session=None,
        **extra,
    ):
        return network_service.ctos.create(
            session or db_session,
            tenant or tenant_id,
            CtoCreate(
                name=name,
                latitude=latitude,
                longitude=longitude,
                total_ports=total_ports,
                **extra,
            ),
        )

    return _make


@pytest.fixture()
def cto_group(db_session, tenant_id):
    return network_service.cto_groups.create(
        db_session, tenant_id, CtoGroupCreate(name="Downtown", color="#10B981")
    )
