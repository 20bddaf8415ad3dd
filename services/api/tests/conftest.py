import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# The app seeds through the test session instead of the configured database
os.environ["SEED_ON_STARTUP"] = "false"

from catering_api.main import app
from catering_api.db import Base, get_db
from catering_api.services.seed import ensure_seeded

# --- Test Database Setup ---

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles

@compiles(JSONB, 'sqlite')
def compile_jsonb(element, compiler, **kw):
    return "JSON"

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool # Important for in-memory to share connection across threads/sessions if needed
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def client():
    """Test client with DB override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

@pytest.fixture
def db_session():
    """Direct database session for setup."""
    session = TestingSessionLocal()
    yield session
    session.close()

@pytest.fixture
def seeded(db_session):
    """Seed datasets and sheets from the catalog."""
    summary = ensure_seeded(db_session)
    db_session.commit()
    return summary

@pytest.fixture
def media_dir(tmp_path, monkeypatch):
    """Point derived media at a temp directory."""
    from catering_api.settings import settings
    monkeypatch.setattr(settings, "media_root", str(tmp_path))
    return tmp_path

import fakeredis
import fakeredis.aioredis
from catering_api.infra import redis_client

@pytest.fixture(autouse=True)
def mock_redis():
    server = fakeredis.FakeServer()
    # Force the fake client into the infra module
    redis_client._redis_async = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)

    yield

    # Cleanup
    redis_client._redis_async = None
