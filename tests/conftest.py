import shutil
from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bestreward.api.app import app
from bestreward.api.deps import get_service
from bestreward.repository.catalog_store import CatalogStore
from bestreward.repository.db import Base
from bestreward.repository.quota_store import QuotaStore
from bestreward.services.resolution import RewardResolutionService

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SAMPLE_CATALOG = PROJECT_ROOT / "data" / "catalog" / "sample_catalog.json"
TODAY = date(2026, 5, 20)


@pytest.fixture
def catalog_path(tmp_path) -> Path:
    """Writable copy of the sample catalog."""
    path = tmp_path / "catalog.json"
    shutil.copy(SAMPLE_CATALOG, path)
    return path


@pytest.fixture
def catalog_store(catalog_path) -> CatalogStore:
    return CatalogStore(str(catalog_path))


@pytest.fixture
def session_factory():
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def quota_store(session_factory) -> QuotaStore:
    return QuotaStore(session_factory)


@pytest.fixture
def service(catalog_store, quota_store) -> RewardResolutionService:
    return RewardResolutionService(catalog_store, quota_store, today=lambda: TODAY)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()
