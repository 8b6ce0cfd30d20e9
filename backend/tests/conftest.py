from pathlib import Path
import os

from dotenv import load_dotenv
import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Load environment variables for tests before the app reads its settings
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')
os.environ["PYTEST_RUN"] = "1"

from support_chat import models  # noqa: E402,F401  registers tables
from support_chat.database import Base, apply_sqlite_pragmas  # noqa: E402
from support_chat.utils import redis_cache  # noqa: E402


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Back the unread cache with an in-process fakeredis instance."""
    fake = fakeredis.FakeStrictRedis()
    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: fake)
    return fake


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions over a file-backed SQLite database shared between threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'chat.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    apply_sqlite_pragmas(engine)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    yield Session
    engine.dispose()
