"""Default result materialization."""

from typing import TYPE_CHECKING, Any, Callable, Optional

from sqlroute.core.result import ResultContext
from sqlroute.cursor import Cursor
from sqlroute.exceptions import ResultProcessingError, StatementPhase
from sqlroute.utils.logging import get_logger
from sqlroute.utils.type_guards import is_mapping, is_simple_type

if TYPE_CHECKING:
    from sqlroute.core.bound_sql import MappedStatement
    from sqlroute.driver.statement import DriverStatement
    from sqlroute.protocols import RowHandler, RowSource

__all__ = ("DefaultResultMaterializer", "build_row_converter")

logger = get_logger("results")


def _row_to_dict(row: Any, column_names: "list[str]") -> "dict[str, Any]":
    if is_mapping(row):
        return dict(row)
    return dict(zip(column_names, row))


def build_row_converter(result_type: "Optional[Callable[..., Any]]") -> "Callable[[Any, list[str]], Any]":
    """Return a function turning a raw row into a ``result_type`` instance.

    No result type (or ``dict``) yields dicts keyed by column name; scalar
    types read the first column; anything else is called with the row's
    columns as keyword arguments.
    """
    if result_type is None or result_type is dict:
        return _row_to_dict

    if is_simple_type(result_type):

        def convert_scalar(row: Any, column_names: "list[str]") -> Any:
            value = next(iter(row.values())) if is_mapping(row) else row[0]
            if value is None or isinstance(value, result_type):  # type: ignore[arg-type]
                return value
            return result_type(value)

        return convert_scalar

    def convert_object(row: Any, column_names: "list[str]") -> Any:
        return result_type(**_row_to_dict(row, column_names))

    return convert_object


class DefaultResultMaterializer:
    """Maps driver rows to the result type of the mapped statement."""

    __slots__ = ()

    def handle_result_sets(
        self,
        rows: "RowSource",
        mapped_statement: "Optional[MappedStatement]",
        row_handler: "Optional[RowHandler]" = None,
    ) -> "list[Any]":
        """Materialize every row, then release the row source.

        A ``row_handler`` sees each object as it is produced; once it calls
        ``context.stop()`` no further rows are read.

        Raises:
            ResultProcessingError: If a row cannot be converted.
        """
        convert = build_row_converter(mapped_statement.result_type if mapped_statement else None)
        chunk_size = getattr(rows, "chunk_size", None)
        context: ResultContext[Any] = ResultContext()
        results: list[Any] = []
        try:
            column_names = rows.column_names
            while not context.is_stopped:
                chunk = rows.fetch_rows(chunk_size)
                if not chunk:
                    break
                for row in chunk:
                    try:
                        item = convert(row, column_names)
                    except Exception as exc:
                        msg = f"Could not materialize row {len(results)}: {exc}"
                        raise ResultProcessingError(msg, phase=StatementPhase.FETCH) from exc
                    results.append(item)
                    if row_handler is not None:
                        context.next_result(item)
                        row_handler(context)
                        if context.is_stopped:
                            break
                if chunk_size is None:
                    break
        finally:
            rows.release_rows()
        return results

    def handle_cursor_result_sets(
        self, rows: "DriverStatement", mapped_statement: "Optional[MappedStatement]"
    ) -> "Cursor[Any]":
        """Wrap the executed statement in a lazy ``Cursor``."""
        convert = build_row_converter(mapped_statement.result_type if mapped_statement else None)
        return Cursor(rows, convert, rows.settings.fetch_size)
