"""Core data model: bound statements, settings, placeholders and outcomes."""

from sqlroute.core.bound_sql import BoundSql, MappedStatement, ParameterMapping, ParameterMode, StatementKind
from sqlroute.core.placeholders import ProcedureCall, count_placeholders, find_placeholders, parse_procedure_call
from sqlroute.core.result import BatchResult, ResultContext
from sqlroute.core.settings import ExecutionSettings, ParameterStyle, ResultSetType

__all__ = (
    "BatchResult",
    "BoundSql",
    "ExecutionSettings",
    "MappedStatement",
    "ParameterMapping",
    "ParameterMode",
    "ParameterStyle",
    "ProcedureCall",
    "ResultContext",
    "ResultSetType",
    "StatementKind",
    "count_placeholders",
    "find_placeholders",
    "parse_procedure_call",
)
