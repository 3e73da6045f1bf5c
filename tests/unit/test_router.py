"""Unit tests for StatementRouter.

This module tests routing including:
- Strategy selection per statement kind
- Settings resolution
- The update, query and batch entry points
- Release of the statement on every exit path
- Concurrent use of one router from many threads
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pytest

from sqlroute.binding import DefaultParameterBinder
from sqlroute.core.bound_sql import BoundSql, MappedStatement, ParameterMapping, ParameterMode, StatementKind
from sqlroute.core.result import BatchResult, ResultContext
from sqlroute.core.settings import ExecutionSettings
from sqlroute.exceptions import (
    BatchExecutionError,
    ExecutionError,
    ParameterBindingError,
    UnsupportedStatementKindError,
)
from sqlroute.statement import (
    DEFAULT_STRATEGIES,
    DirectStrategy,
    ParameterizedStrategy,
    ProceduralStrategy,
    StatementRouter,
)
from tests.fakes import FakeCallableCursor, FakeConnection, FakeResponse

INSERT_SQL = "INSERT INTO t (v) VALUES (?)"
SELECT_SQL = "SELECT v FROM t ORDER BY v"


def insert(value: Any) -> BoundSql:
    return BoundSql(INSERT_SQL, (ParameterMapping("v", int),), {"v": value})


@pytest.fixture
def router() -> StatementRouter:
    return StatementRouter()


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (StatementKind.DIRECT, DirectStrategy),
        (StatementKind.PARAMETERIZED, ParameterizedStrategy),
        (StatementKind.PROCEDURAL, ProceduralStrategy),
        ("direct", DirectStrategy),
        ("procedural", ProceduralStrategy),
    ],
)
def test_route(router: StatementRouter, kind: Any, expected: type) -> None:
    assert router.route(kind) is expected


@pytest.mark.parametrize("kind", ["bulk", None, 3])
def test_route_unknown_kind(router: StatementRouter, kind: Any) -> None:
    with pytest.raises(UnsupportedStatementKindError) as exc_info:
        router.route(kind)
    assert exc_info.value.kind == kind


def test_route_kind_missing_from_table() -> None:
    router = StatementRouter({StatementKind.DIRECT: DirectStrategy})

    with pytest.raises(UnsupportedStatementKindError):
        router.route(StatementKind.PROCEDURAL)


def test_default_table_is_read_only(router: StatementRouter) -> None:
    assert set(DEFAULT_STRATEGIES) == set(StatementKind)
    with pytest.raises(TypeError):
        router.strategies[StatementKind.DIRECT] = ParameterizedStrategy  # type: ignore[index]


def test_new_strategy_settings_precedence() -> None:
    """Test mapped statement settings win over router defaults."""
    defaults = ExecutionSettings(fetch_size=100)
    own = ExecutionSettings(fetch_size=5)
    router = StatementRouter(default_settings=defaults)

    with_own = router.new_strategy(BoundSql("SELECT 1", mapped_statement=MappedStatement("a", settings=own)))
    with_default = router.new_strategy(BoundSql("SELECT 1", mapped_statement=MappedStatement("b")))
    bare = StatementRouter().new_strategy(BoundSql("SELECT 1"))

    assert with_own.settings is own
    assert with_default.settings is defaults
    assert bare.settings == ExecutionSettings()
    assert isinstance(bare, ParameterizedStrategy)


def test_new_strategy_collaborators() -> None:
    binder = DefaultParameterBinder({bool: int})
    router = StatementRouter(parameter_binder=binder)

    assert router.new_strategy(insert(1)).parameter_binder is binder
    override = DefaultParameterBinder()
    assert router.new_strategy(insert(1), parameter_binder=override).parameter_binder is override


def test_new_strategy_is_fresh(router: StatementRouter) -> None:
    assert router.new_strategy(insert(1)) is not router.new_strategy(insert(1))


def test_update(router: StatementRouter, fake_connection: FakeConnection) -> None:
    assert router.update(fake_connection, insert(7)) == 1
    assert router.update(fake_connection, insert(8)) == 1

    assert fake_connection.executed == [(INSERT_SQL, (7,)), (INSERT_SQL, (8,))]
    assert all(cursor.closed for cursor in fake_connection.cursors)


def test_update_releases_statement_on_failure(router: StatementRouter, fake_connection: FakeConnection) -> None:
    bound_sql = BoundSql(INSERT_SQL, (), None)

    with pytest.raises(ParameterBindingError):
        router.update(fake_connection, bound_sql)

    assert fake_connection.cursors[0].close_calls == 1


def test_query(router: StatementRouter, fake_connection: FakeConnection) -> None:
    fake_connection.responses[SELECT_SQL] = FakeResponse([(1,), (2,), (3,)], ["v"])
    bound_sql = BoundSql(SELECT_SQL, mapped_statement=MappedStatement("values", result_type=int))

    assert router.query(fake_connection, bound_sql) == [1, 2, 3]
    assert fake_connection.cursors[0].closed


def test_query_with_row_handler(router: StatementRouter, fake_connection: FakeConnection) -> None:
    fake_connection.responses[SELECT_SQL] = FakeResponse([(1,), (2,), (3,)], ["v"])
    bound_sql = BoundSql(SELECT_SQL, mapped_statement=MappedStatement("values", result_type=int))

    def first_only(context: ResultContext) -> None:
        context.stop()

    assert router.query(fake_connection, bound_sql, row_handler=first_only) == [1]


def test_query_cursor_owns_statement(router: StatementRouter, fake_connection: FakeConnection) -> None:
    """Test the returned cursor outlives the call and releases the statement when exhausted."""
    fake_connection.responses[SELECT_SQL] = FakeResponse([(1,), (2,), (3,)], ["v"])
    bound_sql = BoundSql(SELECT_SQL, mapped_statement=MappedStatement("values", result_type=int))

    cursor = router.query_cursor(fake_connection, bound_sql)

    assert not fake_connection.cursors[0].closed
    assert list(cursor) == [1, 2, 3]
    assert not cursor.is_open
    assert fake_connection.cursors[0].close_calls == 1


def test_query_cursor_releases_statement_on_failure(
    router: StatementRouter, fake_connection: FakeConnection
) -> None:
    def fail(sql: str, parameters: tuple) -> None:
        raise RuntimeError("relation does not exist")

    fake_connection.on_execute = fail

    with pytest.raises(ExecutionError, match="relation does not exist"):
        router.query_cursor(fake_connection, insert(1))

    assert fake_connection.cursors[0].close_calls == 1


def test_open_releases_on_caller_error(router: StatementRouter, fake_connection: FakeConnection) -> None:
    with pytest.raises(RuntimeError, match="caller failed"):
        with router.open(fake_connection, insert(1)) as strategy:
            assert strategy.statement is not None
            assert strategy.statement.parameters == (1,)
            raise RuntimeError("caller failed")

    assert strategy.is_closed
    assert fake_connection.cursors[0].close_calls == 1


def test_open_transaction_timeout(router: StatementRouter, fake_connection: FakeConnection) -> None:
    with router.open(fake_connection, insert(1), transaction_timeout=4):
        pass

    assert fake_connection.cursors[0].timeout == 4


def test_procedural_update(router: StatementRouter) -> None:
    connection = FakeConnection(cursor_class=FakeCallableCursor)
    connection.procedures["double"] = lambda parameters: [parameters[0], parameters[0] * 2]
    params: dict[str, Any] = {"n": 21}
    bound_sql = BoundSql(
        "{call double(?, ?)}",
        (ParameterMapping("n", int), ParameterMapping("result", int, ParameterMode.OUT)),
        params,
        MappedStatement("double", statement_kind=StatementKind.PROCEDURAL),
    )

    router.update(connection, bound_sql)

    assert params["result"] == 42


def test_execute_batch(router: StatementRouter, fake_connection: FakeConnection) -> None:
    """Test one update count per queued entry, in order."""
    result = router.execute_batch(fake_connection, [insert(value) for value in range(4)])

    assert isinstance(result, BatchResult)
    assert result == [1, 1, 1, 1]
    assert result.sql == INSERT_SQL
    assert len(fake_connection.cursors) == 1
    assert fake_connection.cursors[0].closed


def test_execute_batch_empty(router: StatementRouter, fake_connection: FakeConnection) -> None:
    assert router.execute_batch(fake_connection, []) == []
    assert fake_connection.cursors == []


def test_execute_batch_failure(router: StatementRouter, fake_connection: FakeConnection) -> None:
    def reject_negative(sql: str, parameters: tuple) -> None:
        if parameters[0] < 0:
            raise ValueError("negative")

    fake_connection.on_execute = reject_negative

    with pytest.raises(BatchExecutionError) as exc_info:
        router.execute_batch(fake_connection, [insert(1), insert(-1), insert(2)])

    assert exc_info.value.row_counts == [1]
    assert exc_info.value.failed_index == 1
    assert fake_connection.cursors[0].close_calls == 1


def test_execute_batch_rejects_mixed_sql(router: StatementRouter, fake_connection: FakeConnection) -> None:
    other = BoundSql("INSERT INTO other (v) VALUES (?)", (ParameterMapping("v"),), {"v": 1})

    with pytest.raises(ParameterBindingError, match="different SQL"):
        router.execute_batch(fake_connection, [insert(1), other])


def test_concurrent_routing(router: StatementRouter) -> None:
    """Test concurrent executions never share strategies or statements."""
    connections = [FakeConnection() for _ in range(32)]

    def run(index: int) -> int:
        return router.update(connections[index], insert(index))

    with ThreadPoolExecutor(max_workers=8) as executor:
        counts = list(executor.map(run, range(len(connections))))

    assert counts == [1] * len(connections)
    for index, connection in enumerate(connections):
        assert connection.executed == [(INSERT_SQL, (index,))]
        assert len(connection.cursors) == 1
        assert connection.cursors[0].close_calls == 1


def test_batch_logging(router: StatementRouter, fake_connection: FakeConnection, statement_log: Any) -> None:
    router.execute_batch(fake_connection, [insert(1), insert(2)])

    batch_records = [record for record in statement_log.records if "Batch:" in record.getMessage()]
    assert len(batch_records) == 1
    assert batch_records[0].extra_fields == {"sql": INSERT_SQL, "entries": 2}
