"""Statement routing.

``StatementRouter`` maps a ``StatementKind`` to the strategy that executes it
and is the entry point the rest of a persistence layer calls. It keeps no
per-execution state: every call builds a fresh strategy, which prepares its
own statement.
"""

import logging
from collections.abc import Generator, Iterable
from contextlib import ExitStack, contextmanager
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final, Optional

from sqlroute.core.bound_sql import StatementKind
from sqlroute.core.result import BatchResult
from sqlroute.exceptions import UnsupportedStatementKindError
from sqlroute.statement.direct import DirectStrategy
from sqlroute.statement.parameterized import ParameterizedStrategy
from sqlroute.statement.procedural import ProceduralStrategy
from sqlroute.utils.logging import get_logger, log_with_context

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlroute.core.bound_sql import BoundSql
    from sqlroute.core.settings import ExecutionSettings
    from sqlroute.cursor import Cursor
    from sqlroute.protocols import ParameterBinder, ResultMaterializer, RowHandler
    from sqlroute.statement._common import CommonStrategyMixin

__all__ = ("DEFAULT_STRATEGIES", "StatementRouter")

logger = get_logger("statement.router")

DEFAULT_STRATEGIES: "Final[Mapping[StatementKind, type[CommonStrategyMixin]]]" = MappingProxyType({
    StatementKind.DIRECT: DirectStrategy,
    StatementKind.PARAMETERIZED: ParameterizedStrategy,
    StatementKind.PROCEDURAL: ProceduralStrategy,
})


class StatementRouter:
    """Selects and drives the strategy for a statement kind."""

    __slots__ = ("_strategies", "default_settings", "parameter_binder", "result_materializer")

    def __init__(
        self,
        strategies: "Optional[Mapping[StatementKind, type[CommonStrategyMixin]]]" = None,
        *,
        parameter_binder: "Optional[ParameterBinder]" = None,
        result_materializer: "Optional[ResultMaterializer]" = None,
        default_settings: "Optional[ExecutionSettings]" = None,
    ) -> None:
        """Initialize the router.

        Args:
            strategies: Selection table; defaults to the three built-in strategies
            parameter_binder: Binder handed to every strategy
            result_materializer: Materializer handed to every strategy
            default_settings: Settings for mapped statements that declare none
        """
        table = DEFAULT_STRATEGIES if strategies is None else strategies
        self._strategies: Mapping[StatementKind, type[CommonStrategyMixin]] = MappingProxyType(dict(table))
        self.parameter_binder = parameter_binder
        self.result_materializer = result_materializer
        self.default_settings = default_settings

    @property
    def strategies(self) -> "Mapping[StatementKind, type[CommonStrategyMixin]]":
        return self._strategies

    def route(self, kind: "StatementKind | str") -> "type[CommonStrategyMixin]":
        """Return the strategy class registered for ``kind``.

        Raises:
            UnsupportedStatementKindError: If ``kind`` is unknown or has no registered strategy.
        """
        try:
            statement_kind = StatementKind(kind)
        except (ValueError, TypeError):
            raise UnsupportedStatementKindError(kind) from None
        strategy_type = self._strategies.get(statement_kind)
        if strategy_type is None:
            raise UnsupportedStatementKindError(kind)
        return strategy_type

    def new_strategy(
        self,
        bound_sql: "BoundSql",
        *,
        parameter_binder: "Optional[ParameterBinder]" = None,
        result_materializer: "Optional[ResultMaterializer]" = None,
    ) -> "CommonStrategyMixin":
        """Build a fresh strategy for one execution of ``bound_sql``."""
        strategy_type = self.route(bound_sql.statement_kind)
        mapped_statement = bound_sql.mapped_statement
        settings = (mapped_statement.settings if mapped_statement else None) or self.default_settings
        return strategy_type(  # type: ignore[call-arg]
            bound_sql,
            parameter_binder or self.parameter_binder,
            result_materializer or self.result_materializer,
            settings,
        )

    @contextmanager
    def open(
        self, connection: Any, bound_sql: "BoundSql", *, transaction_timeout: Optional[int] = None
    ) -> "Generator[CommonStrategyMixin, None, None]":
        """Prepare and parameterize a statement, yielding its strategy.

        The strategy, and the statement it owns, are closed when the block
        exits, whether it completes or raises.
        """
        strategy = self.new_strategy(bound_sql)
        with strategy:
            statement = strategy.prepare(connection, transaction_timeout)  # type: ignore[attr-defined]
            strategy.parameterize(statement)  # type: ignore[attr-defined]
            yield strategy

    def update(self, connection: Any, bound_sql: "BoundSql", *, transaction_timeout: Optional[int] = None) -> int:
        """Execute a mutation and return the affected row count."""
        with self.open(connection, bound_sql, transaction_timeout=transaction_timeout) as strategy:
            return strategy.update(strategy.statement)  # type: ignore[attr-defined]

    def query(
        self,
        connection: Any,
        bound_sql: "BoundSql",
        *,
        row_handler: "Optional[RowHandler]" = None,
        transaction_timeout: Optional[int] = None,
    ) -> "list[Any]":
        """Execute a query and return every materialized row."""
        with self.open(connection, bound_sql, transaction_timeout=transaction_timeout) as strategy:
            return strategy.query(strategy.statement, row_handler)  # type: ignore[attr-defined]

    def query_cursor(
        self, connection: Any, bound_sql: "BoundSql", *, transaction_timeout: Optional[int] = None
    ) -> "Cursor[Any]":
        """Execute a query and return a lazy ``Cursor`` over its rows.

        The cursor owns the statement and releases it once exhausted or
        closed. If execution fails, the statement is released before the
        error propagates.
        """
        with ExitStack() as stack:
            strategy = stack.enter_context(self.new_strategy(bound_sql))
            statement = strategy.prepare(connection, transaction_timeout)  # type: ignore[attr-defined]
            strategy.parameterize(statement)  # type: ignore[attr-defined]
            cursor: "Cursor[Any]" = strategy.query_cursor(statement)  # type: ignore[attr-defined]
            stack.pop_all()
        return cursor

    def execute_batch(
        self, connection: Any, bound_sqls: "Iterable[BoundSql]", *, transaction_timeout: Optional[int] = None
    ) -> BatchResult:
        """Queue one entry per ``BoundSql`` on a single statement, then flush.

        Every ``BoundSql`` must share the same SQL text.

        Raises:
            BatchExecutionError: If an entry fails; carries the counts of the entries before it.
        """
        entries = list(bound_sqls)
        if not entries:
            return BatchResult("", ())
        strategy = self.new_strategy(entries[0])
        with strategy:
            statement = strategy.prepare(connection, transaction_timeout)  # type: ignore[attr-defined]
            for entry in entries:
                strategy.parameterize(statement, entry)  # type: ignore[attr-defined]
                strategy.batch(statement)  # type: ignore[attr-defined]
            row_counts = statement.execute_batch()
        log_with_context(
            logger, logging.DEBUG, f"<==    Batch: {row_counts}", sql=entries[0].sql, entries=len(row_counts)
        )
        return BatchResult(entries[0].sql, row_counts)
