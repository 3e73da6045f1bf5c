"""Statement handles wrapping DB-API cursors."""

from sqlroute.driver.statement import DriverStatement, resolve_rowcount

__all__ = ("DriverStatement", "resolve_rowcount")
