"""Parameterized (prepared) statements."""

from typing import TYPE_CHECKING, Any, ClassVar, Optional

from sqlroute.core.bound_sql import StatementKind
from sqlroute.core.placeholders import count_placeholders
from sqlroute.exceptions import StatementPhase
from sqlroute.statement._common import CommonStrategyMixin

if TYPE_CHECKING:
    from sqlroute.core.bound_sql import BoundSql
    from sqlroute.cursor import Cursor
    from sqlroute.driver.statement import DriverStatement
    from sqlroute.protocols import RowHandler

__all__ = ("ParameterizedStrategy",)


class ParameterizedStrategy(CommonStrategyMixin):
    """Binds positional placeholders and executes a prepared statement.

    The statement is prepared once. Passing a new ``BoundSql`` for the same
    SQL to ``parameterize`` rebinds it, so it can be executed or batched again
    without being prepared again.
    """

    __slots__ = ()

    statement_kind: "ClassVar[StatementKind]" = StatementKind.PARAMETERIZED

    def prepare(self, connection: Any, transaction_timeout: Optional[int] = None) -> "DriverStatement":
        """Open the statement and count the placeholders it expects.

        Raises:
            StatementPreparationError: If the SQL is rejected or a statement already exists.
        """
        sql = self.bound_sql.sql
        if self.settings.validate_sql:
            self._validate_sql(sql)
        return self._open_statement(
            connection, transaction_timeout, parameter_count=count_placeholders(sql, self.settings.parameter_style)
        )

    def parameterize(self, statement: "DriverStatement", bound_sql: "Optional[BoundSql]" = None) -> None:
        """Bind every placeholder in declaration order.

        Raises:
            ParameterBindingError: If descriptors and placeholders differ in number, or a value has the wrong type.
        """
        self._bind(statement, bound_sql)

    def batch(self, statement: "DriverStatement") -> None:
        self._add_batch(statement)

    def update(self, statement: "DriverStatement") -> int:
        self._check_statement(statement, StatementPhase.EXECUTE)
        statement.execute()
        count = self._update_count(statement)
        self._apply_generated_keys(statement)
        return count

    def query(self, statement: "DriverStatement", row_handler: "Optional[RowHandler]" = None) -> "list[Any]":
        self._check_statement(statement, StatementPhase.EXECUTE)
        statement.execute()
        return self._materialize(statement, row_handler)

    def query_cursor(self, statement: "DriverStatement") -> "Cursor[Any]":
        self._check_statement(statement, StatementPhase.EXECUTE)
        statement.execute()
        return self._open_cursor(statement)
