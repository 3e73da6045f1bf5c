"""Procedural (callable) statements."""

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from sqlroute.binding import write_property
from sqlroute.core.bound_sql import StatementKind
from sqlroute.core.placeholders import count_placeholders, parse_procedure_call
from sqlroute.exceptions import ResultProcessingError, StatementPhase, StatementPreparationError, wrap_driver_errors
from sqlroute.statement._common import CommonStrategyMixin
from sqlroute.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlroute.core.bound_sql import BoundSql
    from sqlroute.core.settings import ExecutionSettings
    from sqlroute.cursor import Cursor
    from sqlroute.driver.statement import DriverStatement
    from sqlroute.protocols import ParameterBinder, ResultMaterializer, RowHandler

__all__ = ("ProceduralStrategy",)

logger = get_logger("statement.procedural")


class ProceduralStrategy(CommonStrategyMixin):
    """Invokes a stored routine with IN, OUT and INOUT parameters.

    The SQL is ``{call name(?, ...)}`` or ``CALL name(?, ...)``. Every
    execution reads OUT and INOUT values back from the driver and writes them
    into the parameter object, in declaration order, before returning.
    """

    __slots__ = ("_output_parameters",)

    statement_kind: "ClassVar[StatementKind]" = StatementKind.PROCEDURAL

    def __init__(
        self,
        bound_sql: "BoundSql",
        parameter_binder: "Optional[ParameterBinder]" = None,
        result_materializer: "Optional[ResultMaterializer]" = None,
        settings: "Optional[ExecutionSettings]" = None,
    ) -> None:
        super().__init__(bound_sql, parameter_binder, result_materializer, settings)
        self._output_parameters: Mapping[str, Any] = MappingProxyType({})

    @property
    def output_parameters(self) -> "Mapping[str, Any]":
        """OUT and INOUT values read back by the last execution, keyed by property."""
        return self._output_parameters

    def prepare(self, connection: Any, transaction_timeout: Optional[int] = None) -> "DriverStatement":
        """Open the statement for the routine named in the SQL.

        Raises:
            StatementPreparationError: If the SQL is not a routine call or the driver rejects it.
        """
        sql = self.bound_sql.sql
        procedure = parse_procedure_call(sql)
        if procedure is None:
            msg = "SQL is not a stored routine call"
            raise StatementPreparationError(msg, **self._error_context(StatementPhase.PREPARE))
        return self._open_statement(
            connection,
            transaction_timeout,
            parameter_count=count_placeholders(sql, self.settings.parameter_style),
            procedure=procedure,
        )

    def parameterize(self, statement: "DriverStatement", bound_sql: "Optional[BoundSql]" = None) -> None:
        """Bind IN and INOUT values; OUT parameters are bound as ``None``."""
        self._bind(statement, bound_sql)

    def batch(self, statement: "DriverStatement") -> None:
        self._add_batch(statement)

    def _execute(self, statement: "DriverStatement") -> None:
        self._check_statement(statement, StatementPhase.EXECUTE)
        mappings = self.bound_sql.parameter_mappings
        output_positions = [index for index, mapping in enumerate(mappings) if mapping.mode.is_output]
        values = statement.call(output_positions)
        self._read_back(values, output_positions)

    def _read_back(self, values: "tuple[Any, ...]", output_positions: "list[int]") -> None:
        bound_sql = self.bound_sql
        outputs: dict[str, Any] = {}
        context = self._error_context(StatementPhase.EXECUTE)
        for position in output_positions:
            mapping = bound_sql.parameter_mappings[position]
            outputs[mapping.property] = values[position]
            if bound_sql.parameter_object is not None:
                with wrap_driver_errors(ResultProcessingError, "Could not write output parameter", **context):
                    write_property(bound_sql.parameter_object, mapping.property, values[position])
        self._output_parameters = MappingProxyType(outputs)
        if outputs:
            logger.debug("<==    Outputs: %s", ", ".join(f"{name}={value!r}" for name, value in outputs.items()))

    def update(self, statement: "DriverStatement") -> int:
        self._execute(statement)
        return self._update_count(statement)

    def query(self, statement: "DriverStatement", row_handler: "Optional[RowHandler]" = None) -> "list[Any]":
        self._execute(statement)
        return self._materialize(statement, row_handler)

    def query_cursor(self, statement: "DriverStatement") -> "Cursor[Any]":
        self._execute(statement)
        return self._open_cursor(statement)
