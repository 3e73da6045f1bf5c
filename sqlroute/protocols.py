"""Runtime-checkable protocols for sqlroute.

This module describes the driver objects sqlroute talks to (PEP 249
connections and cursors) and the collaborator seams of the statement
lifecycle: parameter binding, result materialization and the strategies
themselves.
"""

from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlroute.core.bound_sql import BoundSql, MappedStatement
    from sqlroute.core.result import ResultContext
    from sqlroute.cursor import Cursor
    from sqlroute.driver.statement import DriverStatement

__all__ = (
    "CallableCursor",
    "DBAPIConnection",
    "DBAPICursor",
    "IndexableRow",
    "ParameterBinder",
    "ResultMaterializer",
    "RowHandler",
    "RowSource",
    "ScrollableCursor",
    "StatementStrategy",
)


@runtime_checkable
class IndexableRow(Protocol):
    """Protocol for row types that support index access."""

    def __getitem__(self, index: int) -> Any: ...

    def __len__(self) -> int: ...


@runtime_checkable
class DBAPICursor(Protocol):
    """The subset of a PEP 249 cursor that statements drive."""

    arraysize: int

    @property
    def description(self) -> "Optional[Sequence[Sequence[Any]]]": ...

    @property
    def rowcount(self) -> int: ...

    def execute(self, operation: str, parameters: Any = ...) -> Any: ...

    def fetchmany(self, size: int = ...) -> "Sequence[Any]": ...

    def fetchall(self) -> "Sequence[Any]": ...

    def close(self) -> None: ...


@runtime_checkable
class CallableCursor(Protocol):
    """A cursor implementing the optional ``callproc`` extension."""

    def callproc(self, procname: str, parameters: "Sequence[Any]" = ...) -> Any: ...


@runtime_checkable
class ScrollableCursor(Protocol):
    """A cursor implementing the optional ``scroll`` extension."""

    def scroll(self, value: int, mode: str = ...) -> None: ...


@runtime_checkable
class DBAPIConnection(Protocol):
    """The subset of a PEP 249 connection that statements need."""

    def cursor(self) -> Any: ...


class RowSource(Protocol):
    """A forward-only supply of raw driver rows."""

    @property
    def column_names(self) -> "list[str]": ...

    def fetch_rows(self, size: Optional[int] = None) -> "Sequence[Any]": ...

    def release_rows(self) -> None: ...


class RowHandler(Protocol):
    """External per-row callback; may call ``context.stop()`` to end consumption."""

    def __call__(self, context: "ResultContext[Any]") -> None: ...


class ParameterBinder(Protocol):
    """Writes a bound statement's parameter values onto a driver statement."""

    def set_parameters(self, statement: "DriverStatement", bound_sql: "BoundSql") -> None: ...


class ResultMaterializer(Protocol):
    """Turns raw driver rows into result objects."""

    def handle_result_sets(
        self,
        rows: RowSource,
        mapped_statement: "Optional[MappedStatement]",
        row_handler: "Optional[RowHandler]" = None,
    ) -> "list[Any]": ...

    def handle_cursor_result_sets(
        self, rows: "DriverStatement", mapped_statement: "Optional[MappedStatement]"
    ) -> "Cursor[Any]": ...


class StatementStrategy(Protocol):
    """The four-phase statement lifecycle shared by every statement kind."""

    @property
    def bound_sql(self) -> "BoundSql": ...

    @property
    def parameter_binder(self) -> ParameterBinder: ...

    def prepare(self, connection: Any, transaction_timeout: Optional[int] = None) -> "DriverStatement": ...

    def parameterize(self, statement: "DriverStatement", bound_sql: "Optional[BoundSql]" = None) -> None: ...

    def batch(self, statement: "DriverStatement") -> None: ...

    def update(self, statement: "DriverStatement") -> int: ...

    def query(self, statement: "DriverStatement", row_handler: "Optional[RowHandler]" = None) -> "list[Any]": ...

    def query_cursor(self, statement: "DriverStatement") -> "Cursor[Any]": ...

    def close(self) -> None: ...
