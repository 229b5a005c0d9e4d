"""
tests/test_db_session.py

Engine and session factory lifecycle in db/session.py.

Coverage
--------
- Sessions are created lazily from a single engine
- dispose_engine forgets the engine and the factory
- get_db closes its session
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from db import session as db_session_module


@pytest.fixture()
def engines(monkeypatch: pytest.MonkeyPatch) -> Iterator[list[Engine]]:
    created: list[Engine] = []

    def _create(database_url: str | None = None) -> Engine:
        engine = create_engine("sqlite://", poolclass=StaticPool)
        created.append(engine)
        return engine

    db_session_module.dispose_engine()
    monkeypatch.setattr(db_session_module, "create_db_engine", _create)
    yield created
    db_session_module.dispose_engine()


class TestSessionLifecycle:
    def test_sessions_share_one_lazily_created_engine(self, engines: list[Engine]) -> None:
        assert engines == []

        first = db_session_module.SessionLocal()
        second = db_session_module.SessionLocal()
        try:
            assert len(engines) == 1
            assert first.get_bind() is engines[0]
            assert second.get_bind() is engines[0]
            assert first.execute(text("SELECT 1")).scalar() == 1
        finally:
            first.close()
            second.close()

    def test_dispose_resets_engine_and_factory(self, engines: list[Engine]) -> None:
        db_session_module.SessionLocal().close()
        db_session_module.dispose_engine()

        session = db_session_module.SessionLocal()
        try:
            assert len(engines) == 2
            assert session.get_bind() is engines[1]
        finally:
            session.close()

    def test_get_engine_matches_session_bind(self, engines: list[Engine]) -> None:
        engine = db_session_module.get_engine()
        session = db_session_module.SessionLocal()
        try:
            assert session.get_bind() is engine
        finally:
            session.close()

    def test_get_db_yields_and_closes(self, engines: list[Engine]) -> None:
        generator = db_session_module.get_db()
        session = next(generator)
        assert session.execute(text("SELECT 1")).scalar() == 1
        with pytest.raises(StopIteration):
            next(generator)
