"""Execution outcome types."""

from collections.abc import Iterator, Sequence
from typing import Any, Generic, Optional

from mypy_extensions import mypyc_attr
from typing_extensions import TypeVar

__all__ = ("BatchResult", "ResultContext")

T = TypeVar("T")


@mypyc_attr(allow_interpreted_subclasses=False)
class ResultContext(Generic[T]):
    """State handed to a row handler for each materialized row."""

    __slots__ = ("_result_object", "_result_count", "_stopped")

    def __init__(self) -> None:
        self._result_object: Optional[T] = None
        self._result_count = 0
        self._stopped = False

    @property
    def result_object(self) -> Optional[T]:
        return self._result_object

    @property
    def result_count(self) -> int:
        return self._result_count

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """Ask the materializer not to consume any further rows."""
        self._stopped = True

    def next_result(self, result_object: T) -> None:
        self._result_object = result_object
        self._result_count += 1


class BatchResult(Sequence[int]):
    """Update counts of a flushed batch, one per entry in insertion order."""

    __slots__ = ("row_counts", "sql")

    def __init__(self, sql: str, row_counts: "Sequence[int]") -> None:
        self.sql = sql
        self.row_counts: tuple[int, ...] = tuple(row_counts)

    @property
    def total_rows_affected(self) -> int:
        return sum(self.row_counts)

    def __getitem__(self, index: Any) -> Any:
        return self.row_counts[index]

    def __len__(self) -> int:
        return len(self.row_counts)

    def __iter__(self) -> Iterator[int]:
        return iter(self.row_counts)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BatchResult):
            return self.row_counts == other.row_counts
        if isinstance(other, (list, tuple)):
            return list(self.row_counts) == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"BatchResult(row_counts={list(self.row_counts)!r})"
