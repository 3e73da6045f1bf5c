"""Driver statement handle.

PEP 249 has no separate prepare/bind steps, so ``DriverStatement`` holds the
SQL text, the current binding and the pending batch next to the cursor that
executes them. A statement is owned by exactly one strategy (or by the
``Cursor`` it was handed to) and must be closed exactly once.
"""

from typing import TYPE_CHECKING, Any, Optional

from mypy_extensions import mypyc_attr

from sqlroute.core.bound_sql import StatementKind
from sqlroute.core.settings import ExecutionSettings
from sqlroute.exceptions import (
    BatchExecutionError,
    ExecutionError,
    ParameterBindingError,
    ResultProcessingError,
    StatementClosedError,
    StatementPhase,
    StatementPreparationError,
    wrap_driver_errors,
)
from sqlroute.utils.logging import get_logger
from sqlroute.utils.type_guards import is_indexable_row, supports_callproc, supports_scroll

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlroute.core.placeholders import ProcedureCall

__all__ = ("DriverStatement", "resolve_rowcount")

logger = get_logger("driver.statement")

_ABORT_METHODS = ("cancel", "interrupt")


def resolve_rowcount(cursor: Any) -> int:
    """Return the cursor's affected-row count, with unknown counts as 0."""
    rowcount = getattr(cursor, "rowcount", None)
    if not isinstance(rowcount, int) or rowcount < 0:
        return 0
    return rowcount


@mypyc_attr(allow_interpreted_subclasses=False)
class DriverStatement:
    """A prepared statement bound to one DB-API cursor."""

    __slots__ = (
        "_batch",
        "_bound",
        "_closed",
        "_executing",
        "_out_values",
        "_parameters",
        "_rows_open",
        "connection",
        "cursor",
        "parameter_count",
        "procedure",
        "query_timeout",
        "settings",
        "sql",
        "statement_kind",
    )

    def __init__(
        self,
        connection: Any,
        cursor: Any,
        sql: str,
        *,
        statement_kind: StatementKind,
        settings: Optional[ExecutionSettings] = None,
        parameter_count: int = 0,
        procedure: "Optional[ProcedureCall]" = None,
    ) -> None:
        """Wrap a freshly opened cursor.

        Args:
            connection: Connection the cursor belongs to.
            cursor: DB-API cursor that executes the statement.
            sql: SQL text of the statement.
            statement_kind: Kind of strategy that owns the statement.
            settings: Execution settings to apply.
            parameter_count: Number of positional values the SQL expects.
            procedure: Routine invoked by a callable statement.
        """
        self.connection = connection
        self.cursor = cursor
        self.sql = sql
        self.statement_kind = statement_kind
        self.settings = settings or ExecutionSettings()
        self.parameter_count = parameter_count
        self.procedure = procedure
        self.query_timeout: Optional[int] = None
        self._parameters: tuple[Any, ...] = ()
        self._bound = False
        self._batch: list[tuple[Any, ...]] = []
        self._closed = False
        self._executing = False
        self._rows_open = False
        self._out_values: tuple[Any, ...] = ()

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_bound(self) -> bool:
        return self._bound

    @property
    def parameters(self) -> "tuple[Any, ...]":
        return self._parameters

    @property
    def batch_size(self) -> int:
        return len(self._batch)

    @property
    def out_values(self) -> "tuple[Any, ...]":
        """Parameter values as returned by the last procedure call, positionally."""
        return self._out_values

    @property
    def row_count(self) -> int:
        return resolve_rowcount(self.cursor)

    @property
    def last_row_id(self) -> Any:
        return getattr(self.cursor, "lastrowid", None)

    @property
    def chunk_size(self) -> Optional[int]:
        """Rows per fetch when streaming query results, ``None`` to fetch everything at once."""
        if self.settings.stream_results:
            return self.settings.fetch_size or max(int(getattr(self.cursor, "arraysize", 1) or 1), 1)
        return None

    @property
    def column_names(self) -> "list[str]":
        return [column[0] for column in self.cursor.description or ()]

    def _error_context(self, phase: StatementPhase) -> "dict[str, Any]":
        return {"phase": phase, "statement_kind": str(self.statement_kind), "sql": self.sql}

    def _check_open(self, phase: StatementPhase) -> None:
        if self._closed:
            msg = "Statement is already closed"
            raise StatementClosedError(msg, **self._error_context(phase))

    def apply_settings(self, transaction_timeout: Optional[int] = None) -> None:
        """Apply fetch size, timeout and result set type to the cursor.

        Raises:
            StatementPreparationError: If the driver rejects a setting.
        """
        self._check_open(StatementPhase.PREPARE)
        settings = self.settings
        if settings.result_set_type.is_scrollable and not supports_scroll(self.cursor):
            msg = f"Driver cursor does not support {settings.result_set_type.value} result sets"
            raise StatementPreparationError(msg, **self._error_context(StatementPhase.PREPARE))
        self.query_timeout = settings.resolve_timeout(transaction_timeout)
        context = self._error_context(StatementPhase.PREPARE)
        with wrap_driver_errors(StatementPreparationError, "Could not apply execution settings", **context):
            if settings.fetch_size is not None:
                self.cursor.arraysize = settings.fetch_size
            if self.query_timeout is not None and hasattr(self.cursor, "timeout"):
                self.cursor.timeout = self.query_timeout

    def bind(self, values: "Sequence[Any]") -> None:
        """Replace the current binding with ``values``.

        Raises:
            ParameterBindingError: If the number of values differs from the placeholder count.
        """
        self._check_open(StatementPhase.PARAMETERIZE)
        values = tuple(values)
        if len(values) != self.parameter_count:
            msg = f"Statement expects {self.parameter_count} parameter(s) but {len(values)} were bound"
            raise ParameterBindingError(msg, **self._error_context(StatementPhase.PARAMETERIZE))
        self._parameters = values
        self._bound = True

    def clear_parameters(self) -> None:
        self._parameters = ()
        self._bound = False

    def _check_bound(self, phase: StatementPhase) -> None:
        if self.parameter_count and not self._bound:
            msg = "Statement parameters have not been bound"
            raise ParameterBindingError(msg, **self._error_context(phase))

    def add_batch(self) -> None:
        """Queue the current binding; the next entry needs a new binding."""
        self._check_open(StatementPhase.BATCH)
        self._check_bound(StatementPhase.BATCH)
        self._batch.append(self._parameters)
        self._bound = False

    def _run(self, sql: str, parameters: "tuple[Any, ...]") -> None:
        self._executing = True
        try:
            if parameters:
                self.cursor.execute(sql, parameters)
            else:
                self.cursor.execute(sql)
        finally:
            self._executing = False
        self._rows_open = self.cursor.description is not None

    def execute(self) -> None:
        """Execute the statement once with the current binding.

        Raises:
            ExecutionError: If the driver rejects the execution.
        """
        self._check_open(StatementPhase.EXECUTE)
        self._check_bound(StatementPhase.EXECUTE)
        context = self._error_context(StatementPhase.EXECUTE)
        with wrap_driver_errors(ExecutionError, "Statement execution failed", **context):
            self._run(self.sql, self._parameters)

    def call(self, output_positions: "Sequence[int]" = ()) -> "tuple[Any, ...]":
        """Invoke the routine and return every parameter value after the call.

        Values at ``output_positions`` come from the driver: the copy returned
        by ``callproc`` or, for drivers without it, the first result row of a
        ``CALL`` statement.

        Raises:
            ExecutionError: If the driver rejects the call.
            ResultProcessingError: If output values cannot be read back, including
                when ``callproc`` returns something other than one value per parameter.
        """
        self._check_open(StatementPhase.EXECUTE)
        self._check_bound(StatementPhase.EXECUTE)
        if self.procedure is None:
            msg = "Statement does not invoke a stored routine"
            raise ExecutionError(msg, **self._error_context(StatementPhase.EXECUTE))
        parameters = self._parameters
        with wrap_driver_errors(ExecutionError, "Procedure call failed", **self._error_context(StatementPhase.EXECUTE)):
            if supports_callproc(self.cursor):
                self._executing = True
                try:
                    returned = self.cursor.callproc(self.procedure.name, list(parameters))
                finally:
                    self._executing = False
                self._rows_open = self.cursor.description is not None
                if is_indexable_row(returned) and len(returned) == len(parameters):
                    self._out_values = tuple(returned[index] for index in range(len(parameters)))
                    return self._out_values
                if output_positions:
                    msg = f"callproc returned {type(returned).__name__} instead of {len(parameters)} parameter value(s)"
                    raise ResultProcessingError(msg, **self._error_context(StatementPhase.FETCH))
                self._out_values = parameters
                return self._out_values
            else:
                self._run(self.procedure.call_sql, parameters)
        self._out_values = self._read_output_row(parameters, output_positions)
        return self._out_values

    def _read_output_row(self, parameters: "tuple[Any, ...]", output_positions: "Sequence[int]") -> "tuple[Any, ...]":
        if not output_positions:
            return parameters
        context = self._error_context(StatementPhase.FETCH)
        if not self._rows_open:
            msg = "Procedure call returned no row holding output parameters"
            raise ResultProcessingError(msg, **context)
        with wrap_driver_errors(ResultProcessingError, "Could not read output parameters", **context):
            rows = self.cursor.fetchmany(1)
        if not rows:
            msg = "Procedure call returned no row holding output parameters"
            raise ResultProcessingError(msg, **context)
        row = rows[0]
        values = list(parameters)
        if len(row) == len(parameters):
            for position in output_positions:
                values[position] = row[position]
        elif len(row) == len(output_positions):
            for position, value in zip(output_positions, row):
                values[position] = value
        else:
            msg = f"Output row has {len(row)} column(s) for {len(output_positions)} output parameter(s)"
            raise ResultProcessingError(msg, **context)
        return tuple(values)

    def execute_batch(self) -> "list[int]":
        """Run every queued entry and return one update count per entry.

        Entries run in insertion order. The queue is emptied whether or not
        the batch succeeds.

        Raises:
            BatchExecutionError: If an entry fails; carries the counts of the entries before it.
        """
        self._check_open(StatementPhase.BATCH)
        entries, self._batch = self._batch, []
        sql = self.procedure.call_sql if self.procedure is not None else self.sql
        row_counts: list[int] = []
        for index, parameters in enumerate(entries):
            try:
                if self.procedure is not None and supports_callproc(self.cursor):
                    self._executing = True
                    try:
                        self.cursor.callproc(self.procedure.name, list(parameters))
                    finally:
                        self._executing = False
                else:
                    self._run(sql, parameters)
            except Exception as exc:
                msg = f"Batch entry {index} of {len(entries)} failed: {exc}"
                raise BatchExecutionError(
                    msg,
                    row_counts=row_counts,
                    failed_index=index,
                    statement_kind=str(self.statement_kind),
                    sql=self.sql,
                ) from exc
            row_counts.append(self.row_count)
        logger.debug("Flushed batch of %d entries", len(entries))
        return row_counts

    def fetch_rows(self, size: Optional[int] = None) -> "Sequence[Any]":
        """Fetch the next ``size`` rows, or every remaining row when ``size`` is None."""
        self._check_open(StatementPhase.FETCH)
        if not self._rows_open:
            return []
        self._executing = True
        try:
            context = self._error_context(StatementPhase.FETCH)
            with wrap_driver_errors(ResultProcessingError, "Could not fetch rows", **context):
                if size is None:
                    return self.cursor.fetchall()
                return self.cursor.fetchmany(size)
        finally:
            self._executing = False

    def release_rows(self) -> None:
        """Stop reading the current row source; further fetches return nothing."""
        self._rows_open = False

    def _abort(self) -> None:
        for name in _ABORT_METHODS:
            method = getattr(self.connection, name, None)
            if callable(method):
                logger.debug("Aborting in-flight execution with connection.%s()", name)
                method()
                return

    def close(self) -> None:
        """Release the cursor.

        Closing while an execution or fetch is in flight on another thread
        first asks the connection to abort it.

        Raises:
            StatementClosedError: If the statement was already closed.
            ExecutionError: If the driver fails to release the cursor.
        """
        self._check_open(StatementPhase.CLOSE)
        self._closed = True
        self._rows_open = False
        self._batch.clear()
        context = self._error_context(StatementPhase.CLOSE)
        with wrap_driver_errors(ExecutionError, "Could not close statement", **context):
            if self._executing:
                self._abort()
            self.cursor.close()

    def discard(self) -> None:
        """Close on an error path, keeping the original error in flight."""
        if self._closed:
            return
        try:
            self.close()
        except Exception:
            logger.debug("Error while discarding statement", exc_info=True)
