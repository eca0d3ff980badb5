"""Shared fixtures — SQLite file pools standing in for Postgres."""

from __future__ import annotations

import pytest

from fastapi_persistent.config import PersistConfig
from fastapi_persistent.db.pool import close_pool, create_pool
from tests.models import Base


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def persist_config(db_url) -> PersistConfig:
    return PersistConfig.from_mapping(
        {"postgre-con-str": db_url, "postgre-pool-size": 2, "retry-delay": 0}
    )


@pytest.fixture
def pool(db_url):
    """A migrated pool, disposed after the test."""
    engine = create_pool(db_url, 2)
    Base.metadata.create_all(engine)
    yield engine
    close_pool(engine)
