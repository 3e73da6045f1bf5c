"""Type guard functions for runtime type checking in sqlroute.

These replace ad-hoc ``hasattr()`` checks against driver objects and caller
supplied parameter objects.
"""

import datetime
import uuid
from collections.abc import Mapping, MutableMapping
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Final

from sqlroute.protocols import CallableCursor, IndexableRow, ScrollableCursor

if TYPE_CHECKING:
    from typing_extensions import TypeGuard

__all__ = (
    "SIMPLE_VALUE_TYPES",
    "is_indexable_row",
    "is_mapping",
    "is_mutable_mapping",
    "is_simple_type",
    "is_simple_value",
    "supports_callproc",
    "supports_scroll",
)

SIMPLE_VALUE_TYPES: Final[tuple[type, ...]] = (
    str,
    bytes,
    bytearray,
    int,
    float,
    bool,
    Decimal,
    datetime.date,
    datetime.datetime,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
)


def is_mapping(obj: Any) -> "TypeGuard[Mapping[str, Any]]":
    """Check if an object is a read-only or mutable mapping."""
    return isinstance(obj, Mapping)


def is_mutable_mapping(obj: Any) -> "TypeGuard[MutableMapping[str, Any]]":
    """Check if an object is a mapping that accepts item assignment."""
    return isinstance(obj, MutableMapping)


def is_simple_value(obj: Any) -> bool:
    """Check if a parameter object is a single scalar value rather than a container."""
    return isinstance(obj, SIMPLE_VALUE_TYPES)


def is_simple_type(target: Any) -> bool:
    """Check if a result type maps a single column to a scalar."""
    return isinstance(target, type) and issubclass(target, SIMPLE_VALUE_TYPES)


def is_indexable_row(row: Any) -> "TypeGuard[IndexableRow]":
    """Check if a row supports index access via protocol."""
    return isinstance(row, IndexableRow)


def supports_callproc(cursor: Any) -> "TypeGuard[CallableCursor]":
    """Check if a DB-API cursor implements the optional ``callproc`` extension."""
    return isinstance(cursor, CallableCursor)


def supports_scroll(cursor: Any) -> "TypeGuard[ScrollableCursor]":
    """Check if a DB-API cursor implements the optional ``scroll`` extension."""
    return isinstance(cursor, ScrollableCursor)
