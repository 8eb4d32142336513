from datetime import datetime
from typing import Any, cast

import pytest
from parkspace.domain.errors import CapacityOracleUnavailableError, PersistenceFailureError
from parkspace.infrastructure.repositories import SqlAlchemySpaceRepository, SqlFunctionCapacityOracle
from parkspace.models import ParkingSpace
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

START = datetime(2026, 10, 19, 4, 30)
END = datetime(2026, 10, 19, 6, 30)


class Savepoint:
    def __init__(self, session: "DummySession") -> None:
        self.session = session

    async def __aenter__(self) -> "Savepoint":
        self.session.savepoints += 1
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False


class DummySession:
    def __init__(self, result: Any = None, flush_error: Exception | None = None) -> None:
        self.result = result
        self.flush_error = flush_error
        self.savepoints = 0
        self.statements: list[Any] = []
        self.added: list[Any] = []

    def begin_nested(self) -> Savepoint:
        return Savepoint(self)

    async def scalar(self, stmt: Any) -> Any:
        self.statements.append(stmt)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    def add(self, obj: Any) -> None:
        self.added.append(obj)

    async def flush(self) -> None:
        if self.flush_error is not None:
            raise self.flush_error


def _oracle(session: DummySession) -> SqlFunctionCapacityOracle:
    return SqlFunctionCapacityOracle(cast(AsyncSession, session), "get_available_vehicle_capacity")


@pytest.mark.asyncio
async def test_oracle_calls_function_inside_savepoint() -> None:
    session = DummySession(result=2)
    assert await _oracle(session).query(7, START, END) == 2
    assert session.savepoints == 1
    sql = str(session.statements[0])
    assert "get_available_vehicle_capacity(:p_space_id, :p_start_time, :p_end_time)" in sql


@pytest.mark.asyncio
async def test_oracle_database_error_means_unavailable() -> None:
    session = DummySession(result=OperationalError("select", None, Exception("timeout")))
    with pytest.raises(CapacityOracleUnavailableError):
        await _oracle(session).query(7, START, END)


@pytest.mark.asyncio
async def test_oracle_null_answer_means_unavailable() -> None:
    with pytest.raises(CapacityOracleUnavailableError):
        await _oracle(DummySession(result=None)).query(7, START, END)


@pytest.mark.asyncio
async def test_space_insert_failure_passes_database_message_through() -> None:
    error = IntegrityError("insert", None, Exception('new row violates check constraint "chk_spaces_max_vehicles"'))
    repo = SqlAlchemySpaceRepository(cast(AsyncSession, DummySession(flush_error=error)))
    with pytest.raises(PersistenceFailureError) as excinfo:
        await repo.create(host_id=2, fields={"title": "Driveway", "max_vehicles": 0})
    assert str(excinfo.value) == 'new row violates check constraint "chk_spaces_max_vehicles"'


@pytest.mark.asyncio
async def test_space_create_stamps_timestamps() -> None:
    session = DummySession()
    repo = SqlAlchemySpaceRepository(cast(AsyncSession, session))
    space = await repo.create(host_id=2, fields={"title": "Driveway", "max_vehicles": 1})
    assert isinstance(space, ParkingSpace)
    assert space.created_at == space.updated_at
    assert session.added == [space]
