"""Bound statement data model.

A ``BoundSql`` pairs the final SQL text of one execution with its ordered
parameter descriptors, the caller's parameter object and the mapped statement
it came from. Instances are frozen; rebinding produces a new instance.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Optional

from sqlroute.core.settings import ExecutionSettings

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = ("BoundSql", "MappedStatement", "ParameterMapping", "ParameterMode", "StatementKind")


class StatementKind(str, Enum):
    """How a statement is handed to the driver."""

    DIRECT = "direct"
    PARAMETERIZED = "parameterized"
    PROCEDURAL = "procedural"

    def __str__(self) -> str:
        return self.value


class ParameterMode(str, Enum):
    """Direction of a statement parameter."""

    IN = "in"
    OUT = "out"
    INOUT = "inout"

    @property
    def is_input(self) -> bool:
        return self is not ParameterMode.OUT

    @property
    def is_output(self) -> bool:
        return self is not ParameterMode.IN


@dataclass(frozen=True)
class ParameterMapping:
    """Descriptor of one positional placeholder.

    Attributes:
        property: Name or dotted path of the value inside the parameter object.
        python_type: Declared target type; bound values must be instances of it.
        mode: Parameter direction.
        type_name: Driver type hint, informational only.
    """

    property: str
    python_type: Optional[type] = None
    mode: ParameterMode = ParameterMode.IN
    type_name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", ParameterMode(self.mode))


@dataclass(frozen=True)
class MappedStatement:
    """Configuration of a mapped statement, shared by all of its executions."""

    id: str
    statement_kind: StatementKind = StatementKind.PARAMETERIZED
    settings: Optional[ExecutionSettings] = None
    result_type: Optional[Callable[..., Any]] = None
    use_generated_keys: bool = False
    key_property: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "statement_kind", StatementKind(self.statement_kind))


def _empty_parameters() -> "Mapping[str, Any]":
    return MappingProxyType({})


@dataclass(frozen=True)
class BoundSql:
    """SQL text with its resolved, ordered parameter descriptors."""

    sql: str
    parameter_mappings: "tuple[ParameterMapping, ...]" = ()
    parameter_object: Any = None
    mapped_statement: Optional[MappedStatement] = None
    additional_parameters: "Mapping[str, Any]" = field(default_factory=_empty_parameters)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameter_mappings", tuple(self.parameter_mappings))
        object.__setattr__(self, "additional_parameters", MappingProxyType(dict(self.additional_parameters)))

    @property
    def statement_kind(self) -> StatementKind:
        if self.mapped_statement is None:
            return StatementKind.PARAMETERIZED
        return self.mapped_statement.statement_kind

    @property
    def output_mappings(self) -> "tuple[ParameterMapping, ...]":
        return tuple(mapping for mapping in self.parameter_mappings if mapping.mode.is_output)

    def has_additional_parameter(self, name: str) -> bool:
        return name.split(".", 1)[0] in self.additional_parameters

    def with_parameter_object(self, parameter_object: Any) -> "BoundSql":
        """Return a copy bound to a different parameter object."""
        return replace(self, parameter_object=parameter_object)
