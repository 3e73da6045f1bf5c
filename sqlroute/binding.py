"""Default parameter binding.

Values are resolved per ``ParameterMapping`` in declaration order:
additional parameters first, then the parameter object itself when it is a
single scalar, then a mapping key or attribute path.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from sqlroute.exceptions import ParameterBindingError, ResultProcessingError, StatementPhase
from sqlroute.utils.logging import get_logger
from sqlroute.utils.type_guards import is_mapping, is_mutable_mapping, is_simple_value

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlroute.core.bound_sql import BoundSql, ParameterMapping
    from sqlroute.driver.statement import DriverStatement

__all__ = ("DefaultParameterBinder", "read_property", "resolve_parameter_value", "write_property")

logger = get_logger("binding")

_MISSING = object()


def read_property(source: Any, path: str) -> Any:
    """Read a dotted ``path`` from nested mappings and objects.

    Raises:
        LookupError: If a segment of the path does not exist.
    """
    current = source
    for segment in path.split("."):
        if is_mapping(current):
            if segment not in current:
                msg = f"No value for {segment!r} in {path!r}"
                raise LookupError(msg)
            current = current[segment]
        else:
            value = getattr(current, segment, _MISSING)
            if value is _MISSING:
                msg = f"{type(current).__name__} has no attribute {segment!r} (path {path!r})"
                raise LookupError(msg)
            current = value
    return current


def write_property(target: Any, path: str, value: Any) -> None:
    """Write ``value`` at a dotted ``path`` inside ``target``.

    Raises:
        ResultProcessingError: If the target cannot hold the value.
    """
    head, _, leaf = path.rpartition(".")
    try:
        container = read_property(target, head) if head else target
        if is_mutable_mapping(container):
            container[leaf] = value
        elif is_mapping(container):
            msg = f"Cannot write {path!r} into a read-only mapping"
            raise ResultProcessingError(msg, phase=StatementPhase.EXECUTE)
        else:
            setattr(container, leaf, value)
    except (LookupError, AttributeError, TypeError) as exc:
        msg = f"Cannot write property {path!r}: {exc}"
        raise ResultProcessingError(msg, phase=StatementPhase.EXECUTE) from exc


def resolve_parameter_value(bound_sql: "BoundSql", mapping: "ParameterMapping") -> Any:
    """Look up the value bound to ``mapping``.

    Raises:
        ParameterBindingError: If the property cannot be resolved.
    """
    name = mapping.property
    parameter_object = bound_sql.parameter_object
    try:
        if bound_sql.has_additional_parameter(name):
            return read_property(bound_sql.additional_parameters, name)
        if parameter_object is None:
            return None
        if is_simple_value(parameter_object):
            return parameter_object
        return read_property(parameter_object, name)
    except LookupError as exc:
        msg = f"Cannot resolve parameter {name!r}: {exc}"
        raise ParameterBindingError(
            msg, phase=StatementPhase.PARAMETERIZE, statement_kind=str(bound_sql.statement_kind), sql=bound_sql.sql
        ) from exc


class DefaultParameterBinder:
    """Binds the values of a ``BoundSql`` onto a ``DriverStatement``.

    Output-only parameters are bound as ``None`` so every placeholder keeps
    its position. ``type_coercion_map`` converts values of a given type before
    they reach the driver, e.g. ``{bool: int}``.
    """

    __slots__ = ("type_coercion_map",)

    def __init__(self, type_coercion_map: "Optional[Mapping[type, Callable[[Any], Any]]]" = None) -> None:
        self.type_coercion_map = dict(type_coercion_map or {})

    def _coerce(self, value: Any) -> Any:
        converter = self.type_coercion_map.get(type(value))
        if converter is None:
            return value
        return converter(value)

    def set_parameters(self, statement: "DriverStatement", bound_sql: "BoundSql") -> None:
        """Resolve, type-check and bind every parameter in declaration order.

        Raises:
            ParameterBindingError: On a missing value, a type mismatch or a placeholder count mismatch.
        """
        values: list[Any] = []
        for index, mapping in enumerate(bound_sql.parameter_mappings):
            if not mapping.mode.is_input:
                values.append(None)
                continue
            value = resolve_parameter_value(bound_sql, mapping)
            if value is not None and mapping.python_type is not None and not isinstance(value, mapping.python_type):
                msg = (
                    f"Parameter {index} ({mapping.property!r}) expects {mapping.python_type.__name__}, "
                    f"got {type(value).__name__}"
                )
                raise ParameterBindingError(
                    msg,
                    phase=StatementPhase.PARAMETERIZE,
                    statement_kind=str(statement.statement_kind),
                    sql=statement.sql,
                )
            values.append(self._coerce(value))
        statement.bind(values)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("==> Parameters: %s", ", ".join(f"{value}({type(value).__name__})" for value in values))
