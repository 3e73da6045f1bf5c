"""Lazy, forward-only result cursor."""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Callable, Generic, Optional

from typing_extensions import TypeVar

from sqlroute.exceptions import ResultProcessingError, StatementPhase
from sqlroute.utils.logging import get_logger

if TYPE_CHECKING:
    from types import TracebackType

    from sqlroute.driver.statement import DriverStatement

__all__ = ("Cursor",)

logger = get_logger("cursor")

T = TypeVar("T", default=Any)


class Cursor(Generic[T]):
    """Iterates over query results, pulling rows from the driver on demand.

    The cursor owns its statement: the statement is closed when the cursor is
    exhausted or closed. Iteration cannot be restarted, and a closed cursor
    yields nothing more. ``close()`` may be called any number of times.
    """

    __slots__ = ("_buffer", "_closed", "_column_names", "_consumed", "_convert", "_fetch_size", "_index", "_statement")

    def __init__(
        self,
        statement: "DriverStatement",
        convert: "Callable[[Any, list[str]], T]",
        fetch_size: Optional[int] = None,
    ) -> None:
        """Wrap an executed statement.

        Args:
            statement: Statement whose result rows are read.
            convert: Turns a raw row and the column names into a result object.
            fetch_size: Rows pulled per driver round trip; defaults to the cursor's ``arraysize``.
        """
        self._statement = statement
        self._convert = convert
        self._fetch_size = fetch_size or max(int(getattr(statement.cursor, "arraysize", 1) or 1), 1)
        self._buffer: list[Any] = []
        self._column_names: Optional[list[str]] = None
        self._index = -1
        self._closed = False
        self._consumed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def is_consumed(self) -> bool:
        return self._consumed

    @property
    def current_index(self) -> int:
        """Zero-based index of the last item returned, ``-1`` before the first."""
        return self._index

    def __iter__(self) -> "Cursor[T]":
        return self

    def _fill_buffer(self) -> bool:
        rows: Sequence[Any] = self._statement.fetch_rows(self._fetch_size)
        if not rows:
            return False
        self._buffer.extend(reversed(rows))
        return True

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        if not self._buffer:
            try:
                filled = self._fill_buffer()
            except Exception:
                self.close()
                raise
            if not filled:
                self._consumed = True
                self.close()
                raise StopIteration
        row = self._buffer.pop()
        if self._column_names is None:
            self._column_names = self._statement.column_names
        try:
            item = self._convert(row, self._column_names)
        except ResultProcessingError:
            self.close()
            raise
        except Exception as exc:
            self.close()
            msg = f"Could not materialize row {self._index + 1}: {exc}"
            raise ResultProcessingError(
                msg,
                phase=StatementPhase.FETCH,
                statement_kind=str(self._statement.statement_kind),
                sql=self._statement.sql,
            ) from exc
        self._index += 1
        return item

    def close(self) -> None:
        """Release the row source and the statement behind it."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        self._statement.release_rows()
        if not self._statement.is_closed:
            self._statement.close()
        logger.debug("Cursor closed after %d row(s)", self._index + 1)

    def __enter__(self) -> "Cursor[T]":
        return self

    def __exit__(
        self,
        exc_type: "Optional[type[BaseException]]",
        exc_val: "Optional[BaseException]",
        exc_tb: "Optional[TracebackType]",
    ) -> None:
        self.close()
