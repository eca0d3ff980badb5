"""Tests for the plugin lifecycle and handler dependencies."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from sqlalchemy import inspect, select, text
from sqlalchemy.exc import OperationalError

from fastapi_persistent.db.migrations import migrate_all, sql_migrations
from fastapi_persistent.errors import ConfigError
from fastapi_persistent.foreign import entity_of, follow_foreign_key
from fastapi_persistent.handlers import (
    PersistPool,
    PersistStateDep,
    arun_persist,
    run_persist,
)
from fastapi_persistent.keys import mk_key_t
from fastapi_persistent.plugin import DATA_DIR, PersistPlugin, PersistState, init_persist
from tests.models import Author, Base, Book, book_author


def _build_app(plugin: PersistPlugin) -> FastAPI:
    app = FastAPI(lifespan=plugin.lifespan)

    @app.post("/authors/{author_id}")
    def create_author(author_id: int, name: str, state: PersistStateDep) -> dict:
        run_persist(state, lambda s: s.add(Author(id=author_id, name=name)))
        return {"id": author_id}

    @app.post("/books/{book_id}")
    def create_book(book_id: int, title: str, author_id: int, pool: PersistPool) -> dict:
        run_persist(pool, lambda s: s.add(Book(id=book_id, title=title, author_id=author_id)))
        return {"id": book_id}

    @app.get("/books/{book_id}/author")
    def book_author_name(book_id: str, state: PersistStateDep) -> dict:
        book = run_persist(state, lambda s: s.get(Book, mk_key_t(Book, book_id).value))
        author = follow_foreign_key(state.pool, book_author, entity_of(book))
        return {"author": author.value.name if author else None}

    @app.get("/authors")
    async def list_authors(state: PersistStateDep) -> list[str]:
        return await arun_persist(state, lambda s: list(s.scalars(select(Author.name))))

    return app


class TestPersistPlugin:
    def test_metadata(self):
        plugin = init_persist()
        assert plugin.name == "persist"
        assert plugin.description == "Plugin for the persistent DB library"
        assert plugin.data_dir == DATA_DIR
        assert DATA_DIR.parts[-2:] == ("resources", "db")

    def test_initialize_runs_migration(self, persist_config):
        plugin = init_persist(migrate_all(Base.metadata), config=persist_config)

        state = plugin.initialize()
        try:
            assert isinstance(state, PersistState)
            tables = inspect(state.pool).get_table_names()
            assert {"authors", "books", "reviews"} <= set(tables)
        finally:
            state.pool.dispose()

    def test_initialize_without_migration(self, persist_config):
        state = init_persist(config=persist_config).initialize()
        try:
            assert inspect(state.pool).get_table_names() == []
        finally:
            state.pool.dispose()

    def test_migration_is_not_retried(self, persist_config):
        fault = OperationalError("x", {}, Exception("down"), connection_invalidated=True)
        migration = MagicMock(side_effect=fault)
        plugin = init_persist(migration, config=persist_config)

        with patch("fastapi_persistent.plugin.close_pool") as mock_close:
            with pytest.raises(OperationalError):
                plugin.initialize()

        migration.assert_called_once()
        mock_close.assert_called_once()

    def test_missing_config_file_aborts(self, tmp_path):
        plugin = init_persist(config_path=tmp_path / "absent.yml")
        with pytest.raises(ConfigError):
            plugin.initialize()

    def test_config_from_yaml(self, tmp_path, db_url):
        path = tmp_path / "persist.yml"
        path.write_text(f"postgre-con-str: {db_url}\npostgre-pool-size: 3\nretry-limit: 1\n")

        state = init_persist(config_path=path).initialize()
        try:
            assert state.pool.pool.size() == 3
            assert state.retry_options == {"max_retries": 1, "delay": 0.05}
        finally:
            state.pool.dispose()

    def test_sql_migrations_from_data_dir(self, persist_config):
        state = init_persist(sql_migrations(DATA_DIR), config=persist_config).initialize()
        try:
            assert "persist_schema" in inspect(state.pool).get_table_names()
        finally:
            state.pool.dispose()

    def test_sql_migrations_missing_dir(self, persist_config, tmp_path):
        plugin = init_persist(sql_migrations(tmp_path / "nothing"), config=persist_config)
        state = plugin.initialize()
        try:
            assert inspect(state.pool).get_table_names() == []
        finally:
            state.pool.dispose()


    def test_sql_migration_keeps_semicolons_in_literals(self, persist_config, tmp_path):
        (tmp_path / "001_notes.sql").write_text(
            "-- notes; one per row\n"
            "CREATE TABLE t (v TEXT);\n"
            "INSERT INTO t VALUES ('a;b');\n"
        )

        state = init_persist(sql_migrations(tmp_path), config=persist_config).initialize()
        try:
            with state.pool.connect() as conn:
                assert conn.execute(text("SELECT v FROM t")).scalars().all() == ["a;b"]
        finally:
            state.pool.dispose()


class TestLifespan:
    def test_state_published_and_removed(self, persist_config):
        plugin = init_persist(migrate_all(Base.metadata), config=persist_config)
        app = _build_app(plugin)

        with patch("fastapi_persistent.plugin.close_pool", wraps=lambda p: p.dispose()) as mock_close:
            with TestClient(app):
                assert isinstance(app.state.persist, PersistState)
            mock_close.assert_called_once()

        assert getattr(app.state, "persist", None) is None

    @pytest.mark.asyncio
    async def test_lifespan_yields_state_mapping(self, persist_config):
        plugin = init_persist(config=persist_config)
        app = FastAPI()

        async with plugin.lifespan(app) as published:
            assert published == {"persist": app.state.persist}

    def test_request_state_carries_plugin_state(self, persist_config):
        app = FastAPI(lifespan=init_persist(config=persist_config).lifespan)

        @app.get("/state")
        def read_state(request: Request) -> dict:
            return {"same": request.state.persist is request.app.state.persist}

        with TestClient(app) as client:
            assert client.get("/state").json() == {"same": True}

    def test_handlers_round_trip(self, persist_config):
        app = _build_app(init_persist(migrate_all(Base.metadata), config=persist_config))

        with TestClient(app) as client:
            assert client.post("/authors/1", params={"name": "Octavia Butler"}).status_code == 200
            assert client.post(
                "/books/5", params={"title": "Kindred", "author_id": 1}
            ).status_code == 200
            assert client.post(
                "/books/6", params={"title": "Ghost", "author_id": 404}
            ).status_code == 200

            assert client.get("/books/5/author").json() == {"author": "Octavia Butler"}
            assert client.get("/books/6/author").json() == {"author": None}
            assert client.get("/authors").json() == ["Octavia Butler"]

    def test_dependency_without_plugin(self):
        app = FastAPI()

        @app.get("/")
        def index(state: PersistStateDep) -> dict:
            return {}

        with TestClient(app, raise_server_exceptions=True) as client:
            with pytest.raises(RuntimeError, match="not initialized"):
                client.get("/")


class TestRunPersist:
    def test_uses_state_retry_policy(self, persist_config, pool):
        state = PersistState(pool, persist_config.model_copy(update={"retry_limit": 2}))

        with patch("fastapi_persistent.handlers.with_pool") as mock_with_pool:
            run_persist(state, lambda s: None)

        _, kwargs = mock_with_pool.call_args
        assert kwargs == {"max_retries": 2, "delay": 0}

    def test_plain_engine_uses_defaults(self, pool):
        with patch("fastapi_persistent.handlers.with_pool") as mock_with_pool:
            run_persist(pool, lambda s: None)

        _, kwargs = mock_with_pool.call_args
        assert kwargs == {}

    def test_rejects_other_sources(self):
        with pytest.raises(TypeError):
            run_persist("postgresql://nowhere", lambda s: None)
