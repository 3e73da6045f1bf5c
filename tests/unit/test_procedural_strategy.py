from types import SimpleNamespace
from typing import Any

import pytest

from sqlroute.core.bound_sql import BoundSql, MappedStatement, ParameterMapping, ParameterMode, StatementKind
from sqlroute.exceptions import ExecutionError, ResultProcessingError, StatementClosedError, StatementPreparationError
from sqlroute.statement import ProceduralStrategy
from tests.fakes import FakeConnection, FakeResponse

ADD_SQL = "{call add_numbers(?, ?, ?)}"


def add_numbers(parameters: "list[Any]") -> "list[Any]":
    a, b, _ = parameters
    return [a, b, a + b]


def procedural(sql: str, mappings: "tuple[ParameterMapping, ...]", parameter_object: Any, **kwargs: Any) -> BoundSql:
    mapped = MappedStatement("proc", statement_kind=StatementKind.PROCEDURAL, **kwargs)
    return BoundSql(sql, mappings, parameter_object, mapped)


ADD_MAPPINGS = (
    ParameterMapping("a", int),
    ParameterMapping("b", int),
    ParameterMapping("total", int, ParameterMode.OUT),
)


def test_prepare_requires_routine_call(callable_connection: FakeConnection) -> None:
    strategy = ProceduralStrategy(procedural("SELECT 1", (), None))

    with pytest.raises(StatementPreparationError, match="not a stored routine call"):
        strategy.prepare(callable_connection)
    assert callable_connection.cursors == []


def test_prepare_parses_procedure(callable_connection: FakeConnection) -> None:
    strategy = ProceduralStrategy(procedural(ADD_SQL, ADD_MAPPINGS, {"a": 2, "b": 3}))

    statement = strategy.prepare(callable_connection)

    assert statement.procedure is not None
    assert statement.procedure.name == "add_numbers"
    assert statement.parameter_count == 3


def test_update_reads_out_parameters(callable_connection: FakeConnection) -> None:
    """Test OUT values are written back into the parameter object."""
    callable_connection.procedures["add_numbers"] = add_numbers
    params: dict[str, Any] = {"a": 2, "b": 3}
    strategy = ProceduralStrategy(procedural(ADD_SQL, ADD_MAPPINGS, params))
    statement = strategy.prepare(callable_connection)
    strategy.parameterize(statement)

    assert strategy.update(statement) == 1

    assert callable_connection.calls == [("add_numbers", (2, 3, None))]
    assert params["total"] == 5
    assert dict(strategy.output_parameters) == {"total": 5}


def test_inout_parameter(callable_connection: FakeConnection) -> None:
    callable_connection.procedures["bump"] = lambda parameters: [parameters[0] + 1]
    counter = SimpleNamespace(value=41)
    mappings = (ParameterMapping("value", int, ParameterMode.INOUT),)
    strategy = ProceduralStrategy(procedural("CALL bump(?)", mappings, counter))
    statement = strategy.prepare(callable_connection)
    strategy.parameterize(statement)

    strategy.update(statement)

    assert callable_connection.calls == [("bump", (41,))]
    assert counter.value == 42


def test_outputs_from_result_row_without_callproc(fake_connection: FakeConnection) -> None:
    """Test drivers without callproc read outputs from the CALL result row."""
    fake_connection.responses["CALL add_numbers(?, ?, ?)"] = FakeResponse([(5,)], ["total"])
    params: dict[str, Any] = {"a": 2, "b": 3}
    strategy = ProceduralStrategy(procedural(ADD_SQL, ADD_MAPPINGS, params))
    statement = strategy.prepare(fake_connection)
    strategy.parameterize(statement)

    strategy.update(statement)

    assert fake_connection.executed == [("CALL add_numbers(?, ?, ?)", (2, 3, None))]
    assert params["total"] == 5


def test_missing_output_row(fake_connection: FakeConnection) -> None:
    strategy = ProceduralStrategy(procedural(ADD_SQL, ADD_MAPPINGS, {"a": 1, "b": 1}))
    statement = strategy.prepare(fake_connection)
    strategy.parameterize(statement)

    with pytest.raises(ResultProcessingError):
        strategy.update(statement)


def test_query_returns_result_set(callable_connection: FakeConnection) -> None:
    callable_connection.procedures["authors_since"] = lambda parameters: parameters
    callable_connection.responses["authors_since"] = FakeResponse([("Ann",), ("Bob",)], ["name"])
    mappings = (ParameterMapping("year", int),)
    strategy = ProceduralStrategy(procedural("{call authors_since(?)}", mappings, 2000, result_type=str))
    statement = strategy.prepare(callable_connection)
    strategy.parameterize(statement)

    assert strategy.query(statement) == ["Ann", "Bob"]
    assert dict(strategy.output_parameters) == {}


def test_query_cursor_reads_outputs_first(callable_connection: FakeConnection) -> None:
    callable_connection.procedures["add_numbers"] = add_numbers
    callable_connection.responses["add_numbers"] = FakeResponse([(1,), (2,)], ["n"])
    params: dict[str, Any] = {"a": 1, "b": 1}
    strategy = ProceduralStrategy(procedural(ADD_SQL, ADD_MAPPINGS, params, result_type=int))
    statement = strategy.prepare(callable_connection)
    strategy.parameterize(statement)

    with strategy.query_cursor(statement) as cursor:
        assert params["total"] == 2
        assert list(cursor) == [1, 2]


def test_driver_error_during_call(callable_connection: FakeConnection) -> None:
    def broken(parameters: "list[Any]") -> "list[Any]":
        raise RuntimeError("procedure does not exist")

    callable_connection.procedures["add_numbers"] = broken
    strategy = ProceduralStrategy(procedural(ADD_SQL, ADD_MAPPINGS, {"a": 1, "b": 1}))
    statement = strategy.prepare(callable_connection)
    strategy.parameterize(statement)

    with pytest.raises(ExecutionError, match="procedure does not exist") as exc_info:
        strategy.update(statement)
    assert exc_info.value.statement_kind == "procedural"


def test_batch(callable_connection: FakeConnection) -> None:
    callable_connection.procedures["add_numbers"] = add_numbers
    strategy = ProceduralStrategy(procedural(ADD_SQL, ADD_MAPPINGS, {"a": 1, "b": 1}))
    statement = strategy.prepare(callable_connection)
    for pair in ({"a": 1, "b": 1}, {"a": 2, "b": 2}):
        strategy.parameterize(statement, strategy.bound_sql.with_parameter_object(pair))
        strategy.batch(statement)

    assert statement.execute_batch() == [1, 1]
    assert [parameters for _, parameters in callable_connection.calls] == [(1, 1, None), (2, 2, None)]


def test_prepare_then_close(callable_connection: FakeConnection) -> None:
    strategy = ProceduralStrategy(procedural(ADD_SQL, ADD_MAPPINGS, {"a": 1, "b": 1}))
    statement = strategy.prepare(callable_connection)

    strategy.close()

    assert statement.is_closed
    assert callable_connection.cursors[0].close_calls == 1
    with pytest.raises(StatementClosedError):
        strategy.close()
