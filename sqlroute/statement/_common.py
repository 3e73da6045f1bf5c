"""Lifecycle shared by every statement strategy.

``CommonStrategyMixin`` owns the single ``DriverStatement`` of a strategy and
implements the parts of the four-phase protocol that do not depend on the
statement kind: acquiring and configuring the statement, rebinding,
materializing results, generated-key write-back and the close-exactly-once
contract. Each concrete strategy calls into it from its own
``prepare``/``parameterize``/``update``/``query``/``query_cursor``/``batch``.
"""

from typing import TYPE_CHECKING, Any, ClassVar, Optional

import sqlglot
from mypy_extensions import trait
from sqlglot.errors import ParseError, TokenError

from sqlroute.binding import DefaultParameterBinder, write_property
from sqlroute.core.bound_sql import StatementKind
from sqlroute.core.settings import ExecutionSettings
from sqlroute.driver.statement import DriverStatement
from sqlroute.exceptions import (
    ExecutionError,
    ParameterBindingError,
    ResultProcessingError,
    StatementClosedError,
    StatementPhase,
    StatementPreparationError,
    wrap_driver_errors,
)
from sqlroute.results import DefaultResultMaterializer
from sqlroute.utils.logging import get_logger

if TYPE_CHECKING:
    from types import TracebackType

    from sqlroute.core.bound_sql import BoundSql
    from sqlroute.core.placeholders import ProcedureCall
    from sqlroute.cursor import Cursor
    from sqlroute.protocols import ParameterBinder, ResultMaterializer, RowHandler

__all__ = ("CommonStrategyMixin",)

logger = get_logger("statement")


@trait
class CommonStrategyMixin:
    """State and helpers common to all statement strategies.

    A strategy is single-use. After ``close()`` every operation raises
    ``StatementClosedError``, and so does a second ``close()``. Used as a
    context manager, a strategy is released exactly once on exit.
    """

    __slots__ = ("_bound_sql", "_closed", "_parameter_binder", "_result_materializer", "_settings", "_statement")

    statement_kind: "ClassVar[StatementKind]"

    def __init__(
        self,
        bound_sql: "BoundSql",
        parameter_binder: "Optional[ParameterBinder]" = None,
        result_materializer: "Optional[ResultMaterializer]" = None,
        settings: "Optional[ExecutionSettings]" = None,
    ) -> None:
        """Initialize a strategy for one execution of ``bound_sql``.

        Args:
            bound_sql: Statement text and parameters to execute
            parameter_binder: Writes parameter values onto the statement
            result_materializer: Converts result rows into objects
            settings: Execution settings; defaults to the mapped statement's own
        """
        mapped_statement = bound_sql.mapped_statement
        self._bound_sql = bound_sql
        self._parameter_binder: ParameterBinder = parameter_binder or DefaultParameterBinder()
        self._result_materializer: ResultMaterializer = result_materializer or DefaultResultMaterializer()
        self._settings = settings or (mapped_statement.settings if mapped_statement else None) or ExecutionSettings()
        self._statement: Optional[DriverStatement] = None
        self._closed = False

    @property
    def bound_sql(self) -> "BoundSql":
        return self._bound_sql

    @property
    def parameter_binder(self) -> "ParameterBinder":
        return self._parameter_binder

    @property
    def result_materializer(self) -> "ResultMaterializer":
        return self._result_materializer

    @property
    def settings(self) -> ExecutionSettings:
        return self._settings

    @property
    def statement(self) -> Optional[DriverStatement]:
        """The statement created by ``prepare``, if any."""
        return self._statement

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _error_context(self, phase: StatementPhase) -> "dict[str, Any]":
        return {"phase": phase, "statement_kind": str(self.statement_kind), "sql": self._bound_sql.sql}

    def _check_open(self, phase: StatementPhase) -> None:
        if self._closed:
            msg = "Strategy is already closed"
            raise StatementClosedError(msg, **self._error_context(phase))

    def _check_statement(self, statement: DriverStatement, phase: StatementPhase) -> None:
        self._check_open(phase)
        if statement is not self._statement:
            msg = "Statement was not prepared by this strategy"
            raise ExecutionError(msg, **self._error_context(phase))

    def _validate_sql(self, sql: str) -> None:
        try:
            sqlglot.parse(sql, read=self._settings.dialect)
        except (ParseError, TokenError, ValueError) as exc:
            msg = f"SQL failed validation: {exc}"
            raise StatementPreparationError(msg, **self._error_context(StatementPhase.PREPARE)) from exc

    def _open_statement(
        self,
        connection: Any,
        transaction_timeout: Optional[int],
        *,
        parameter_count: int = 0,
        procedure: "Optional[ProcedureCall]" = None,
    ) -> DriverStatement:
        """Create and configure the strategy's only statement.

        Raises:
            StatementPreparationError: If a statement already exists or the driver rejects it.
        """
        self._check_open(StatementPhase.PREPARE)
        if self._statement is not None:
            msg = "Strategy has already prepared a statement"
            raise StatementPreparationError(msg, **self._error_context(StatementPhase.PREPARE))
        sql = self._bound_sql.sql
        logger.debug("==>  Preparing: %s", sql)
        with wrap_driver_errors(
            StatementPreparationError, "Could not create statement", **self._error_context(StatementPhase.PREPARE)
        ):
            cursor = connection.cursor()
        statement = DriverStatement(
            connection,
            cursor,
            sql,
            statement_kind=self.statement_kind,
            settings=self._settings,
            parameter_count=parameter_count,
            procedure=procedure,
        )
        try:
            statement.apply_settings(transaction_timeout)
        except Exception:
            statement.discard()
            raise
        self._statement = statement
        return statement

    def _rebind(self, bound_sql: "Optional[BoundSql]") -> "BoundSql":
        if bound_sql is not None and bound_sql is not self._bound_sql:
            if bound_sql.sql != self._bound_sql.sql:
                msg = "Cannot rebind a prepared statement to different SQL text"
                raise ParameterBindingError(msg, **self._error_context(StatementPhase.PARAMETERIZE))
            self._bound_sql = bound_sql
        return self._bound_sql

    def _bind(self, statement: DriverStatement, bound_sql: "Optional[BoundSql]") -> None:
        self._check_statement(statement, StatementPhase.PARAMETERIZE)
        current = self._rebind(bound_sql)
        with wrap_driver_errors(
            ParameterBindingError, "Parameter binding failed", **self._error_context(StatementPhase.PARAMETERIZE)
        ):
            self._parameter_binder.set_parameters(statement, current)

    def _add_batch(self, statement: DriverStatement) -> None:
        self._check_statement(statement, StatementPhase.BATCH)
        statement.add_batch()

    def _update_count(self, statement: DriverStatement) -> int:
        count = statement.row_count
        logger.debug("<==    Updates: %d", count)
        return count

    def _apply_generated_keys(self, statement: DriverStatement) -> None:
        mapped_statement = self._bound_sql.mapped_statement
        if mapped_statement is None or not mapped_statement.use_generated_keys or not mapped_statement.key_property:
            return
        parameter_object = self._bound_sql.parameter_object
        if parameter_object is None:
            return
        key = statement.last_row_id
        if key is None:
            return
        with wrap_driver_errors(
            ResultProcessingError, "Could not write generated key", **self._error_context(StatementPhase.EXECUTE)
        ):
            write_property(parameter_object, mapped_statement.key_property, key)

    def _materialize(self, statement: DriverStatement, row_handler: "Optional[RowHandler]") -> "list[Any]":
        with wrap_driver_errors(
            ResultProcessingError, "Could not materialize results", **self._error_context(StatementPhase.FETCH)
        ):
            results = self._result_materializer.handle_result_sets(
                statement, self._bound_sql.mapped_statement, row_handler
            )
        logger.debug("<==      Total: %d", len(results))
        return results

    def _open_cursor(self, statement: DriverStatement) -> "Cursor[Any]":
        with wrap_driver_errors(
            ResultProcessingError, "Could not open cursor", **self._error_context(StatementPhase.FETCH)
        ):
            return self._result_materializer.handle_cursor_result_sets(statement, self._bound_sql.mapped_statement)

    def close(self) -> None:
        """Release the statement.

        A statement already released by a ``Cursor`` it was handed to is not
        closed again.

        Raises:
            StatementClosedError: If the strategy was already closed.
        """
        self._check_open(StatementPhase.CLOSE)
        self._closed = True
        statement = self._statement
        if statement is not None and not statement.is_closed:
            statement.close()

    def __enter__(self) -> Any:
        return self

    def __exit__(
        self,
        exc_type: "Optional[type[BaseException]]",
        exc_val: "Optional[BaseException]",
        exc_tb: "Optional[TracebackType]",
    ) -> None:
        if self._closed:
            return
        if exc_type is None:
            self.close()
            return
        self._closed = True
        if self._statement is not None:
            self._statement.discard()
