"""SQLRoute: route mapped SQL statements to direct, parameterized or procedural execution."""

from sqlroute import core, driver, exceptions, statement, utils
from sqlroute.__metadata__ import __version__
from sqlroute.binding import DefaultParameterBinder
from sqlroute.core import (
    BatchResult,
    BoundSql,
    ExecutionSettings,
    MappedStatement,
    ParameterMapping,
    ParameterMode,
    ParameterStyle,
    ResultContext,
    ResultSetType,
    StatementKind,
)
from sqlroute.cursor import Cursor
from sqlroute.driver import DriverStatement
from sqlroute.exceptions import (
    BatchExecutionError,
    ExecutionError,
    ImproperConfigurationError,
    ParameterBindingError,
    ResultProcessingError,
    SQLRouteError,
    StatementClosedError,
    StatementError,
    StatementPreparationError,
    UnsupportedStatementKindError,
)
from sqlroute.results import DefaultResultMaterializer
from sqlroute.statement import DirectStrategy, ParameterizedStrategy, ProceduralStrategy, StatementRouter

__all__ = (
    "BatchExecutionError",
    "BatchResult",
    "BoundSql",
    "Cursor",
    "DefaultParameterBinder",
    "DefaultResultMaterializer",
    "DirectStrategy",
    "DriverStatement",
    "ExecutionError",
    "ExecutionSettings",
    "ImproperConfigurationError",
    "MappedStatement",
    "ParameterBindingError",
    "ParameterMapping",
    "ParameterMode",
    "ParameterStyle",
    "ParameterizedStrategy",
    "ProceduralStrategy",
    "ResultContext",
    "ResultProcessingError",
    "ResultSetType",
    "SQLRouteError",
    "StatementClosedError",
    "StatementError",
    "StatementKind",
    "StatementPreparationError",
    "StatementRouter",
    "UnsupportedStatementKindError",
    "__version__",
    "core",
    "driver",
    "exceptions",
    "statement",
    "utils",
)
