"""Direct (plain text) statements."""

from typing import TYPE_CHECKING, Any, ClassVar, Optional

from sqlroute.core.bound_sql import StatementKind
from sqlroute.exceptions import StatementPhase
from sqlroute.statement._common import CommonStrategyMixin

if TYPE_CHECKING:
    from sqlroute.core.bound_sql import BoundSql
    from sqlroute.cursor import Cursor
    from sqlroute.driver.statement import DriverStatement
    from sqlroute.protocols import RowHandler

__all__ = ("DirectStrategy",)


class DirectStrategy(CommonStrategyMixin):
    """Executes SQL verbatim, without placeholders or parameters.

    Used when every value has already been inlined into the SQL text.
    """

    __slots__ = ()

    statement_kind: "ClassVar[StatementKind]" = StatementKind.DIRECT

    def prepare(self, connection: Any, transaction_timeout: Optional[int] = None) -> "DriverStatement":
        if self.settings.validate_sql:
            self._validate_sql(self.bound_sql.sql)
        return self._open_statement(connection, transaction_timeout)

    def parameterize(self, statement: "DriverStatement", bound_sql: "Optional[BoundSql]" = None) -> None:
        """No-op: direct statements carry no placeholders."""
        self._check_statement(statement, StatementPhase.PARAMETERIZE)
        self._rebind(bound_sql)

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
