from collections.abc import Generator
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = (
    "BatchExecutionError",
    "ExecutionError",
    "ImproperConfigurationError",
    "ParameterBindingError",
    "ResultProcessingError",
    "SQLRouteError",
    "StatementClosedError",
    "StatementError",
    "StatementPhase",
    "StatementPreparationError",
    "UnsupportedStatementKindError",
    "wrap_driver_errors",
)


class SQLRouteError(Exception):
    """Base exception class from which all sqlroute exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLRouteError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class ImproperConfigurationError(SQLRouteError):
    """Execution settings or router configuration are invalid."""


class StatementPhase(str, Enum):
    """Lifecycle phase in which a statement error occurred."""

    PREPARE = "prepare"
    PARAMETERIZE = "parameterize"
    EXECUTE = "execute"
    BATCH = "batch"
    FETCH = "fetch"
    CLOSE = "close"

    def __str__(self) -> str:
        return self.value


class StatementError(SQLRouteError):
    """Base class for errors raised while driving a statement through its lifecycle."""

    message: str
    phase: Optional[StatementPhase]
    statement_kind: Optional[str]
    sql: Optional[str]

    def __init__(
        self,
        message: str,
        *,
        phase: Optional[StatementPhase] = None,
        statement_kind: Optional[str] = None,
        sql: Optional[str] = None,
    ) -> None:
        """Initialize with phase and statement context.

        Args:
            message: Description of the failure.
            phase: Lifecycle phase that failed.
            statement_kind: Kind of statement being executed.
            sql: SQL text of the statement.
        """
        self.message = message
        self.phase = phase
        self.statement_kind = statement_kind
        self.sql = sql
        super().__init__(detail=self._format_detail())

    def _format_detail(self) -> str:
        detail = self.message
        context = ", ".join(
            f"{label}={value}"
            for label, value in (("phase", self.phase), ("kind", self.statement_kind))
            if value is not None
        )
        if context:
            detail = f"{detail} ({context})"
        if self.sql:
            detail = f"{detail}\nSQL: {self.sql}"
        return detail

    def add_context(
        self,
        *,
        phase: Optional[StatementPhase] = None,
        statement_kind: Optional[str] = None,
        sql: Optional[str] = None,
    ) -> None:
        """Fill in context the raiser did not know. Values already set are kept."""
        self.phase = self.phase or phase
        self.statement_kind = self.statement_kind or statement_kind
        self.sql = self.sql or sql
        self.detail = self._format_detail()


class StatementPreparationError(StatementError):
    """The driver rejected creation of the statement."""


class ParameterBindingError(StatementError):
    """A parameter value, type or count did not match the statement."""


class ExecutionError(StatementError):
    """The driver rejected execution of the statement."""


class BatchExecutionError(ExecutionError):
    """A batch entry failed; entries before it completed.

    ``row_counts`` holds the update count of every entry that succeeded before
    ``failed_index``.
    """

    row_counts: "list[int]"
    failed_index: int

    def __init__(
        self,
        message: str,
        *,
        row_counts: "Sequence[int]",
        failed_index: int,
        phase: Optional[StatementPhase] = StatementPhase.BATCH,
        statement_kind: Optional[str] = None,
        sql: Optional[str] = None,
    ) -> None:
        super().__init__(message, phase=phase, statement_kind=statement_kind, sql=sql)
        self.row_counts = list(row_counts)
        self.failed_index = failed_index


class ResultProcessingError(StatementError):
    """A row or output parameter could not be materialized."""


class StatementClosedError(StatementError):
    """An operation was attempted on a statement or strategy that is already closed."""


class UnsupportedStatementKindError(SQLRouteError):
    """The router has no strategy registered for the requested statement kind."""

    kind: Any

    def __init__(self, kind: Any) -> None:
        super().__init__(f"Unsupported statement kind: {kind!r}")
        self.kind = kind


@contextmanager
def wrap_driver_errors(
    error_type: "type[StatementError]",
    message: str,
    *,
    phase: StatementPhase,
    statement_kind: Optional[str] = None,
    sql: Optional[str] = None,
) -> Generator[None, None, None]:
    """Re-raise driver exceptions as ``error_type`` with phase context.

    Statement errors raised inside the block pass through with any missing
    context filled in; other library errors pass through unchanged.
    """
    try:
        yield
    except StatementError as exc:
        exc.add_context(phase=phase, statement_kind=statement_kind, sql=sql)
        raise
    except SQLRouteError:
        raise
    except Exception as exc:
        msg = f"{message}: {exc}"
        raise error_type(msg, phase=phase, statement_kind=statement_kind, sql=sql) from exc
