from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from formingest.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemySubmissionUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from formingest.domain.model import Person, ResourceType
from formingest.domain.ports import PersistenceError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemySubmissionUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_startup_reads_database_uri_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///:memory:")

    startup()

    engine = configured_engine()
    assert engine is not None
    assert engine.url.get_backend_name() == "sqlite"


def test_committed_records_are_visible_to_the_next_unit(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemySubmissionUnitOfWork() as uow:
        uow.repositories.records.upsert(Person(id="p1"))
        uow.commit()

    with SqlAlchemySubmissionUnitOfWork() as uow:
        assert uow.repositories.records.get(ResourceType.PERSON, "p1") is not None


def test_leaving_without_commit_discards_changes(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemySubmissionUnitOfWork() as uow:
        uow.repositories.records.upsert(Person(id="p1"))

    with SqlAlchemySubmissionUnitOfWork() as uow:
        assert uow.repositories.records.get(ResourceType.PERSON, "p1") is None


def test_errors_roll_back_the_unit(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(PersistenceError), SqlAlchemySubmissionUnitOfWork() as uow:
        uow.repositories.records.upsert(Person(id="p1"))
        raise PersistenceError("boom")

    with SqlAlchemySubmissionUnitOfWork() as uow:
        assert uow.repositories.records.get(ResourceType.PERSON, "p1") is None


def test_repositories_need_an_open_session(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemySubmissionUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories
