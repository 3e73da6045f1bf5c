"""Per-statement execution settings."""

from enum import Enum
from typing import Any, Optional

from mypy_extensions import mypyc_attr

from sqlroute.exceptions import ImproperConfigurationError

__all__ = ("EXECUTION_SETTINGS_SLOTS", "ExecutionSettings", "ParameterStyle", "ResultSetType")


class ResultSetType(str, Enum):
    """Navigation mode requested for a statement's result set.

    ``DEFAULT`` leaves the choice to the driver.
    """

    DEFAULT = "default"
    FORWARD_ONLY = "forward_only"
    SCROLL_INSENSITIVE = "scroll_insensitive"
    SCROLL_SENSITIVE = "scroll_sensitive"

    @property
    def is_scrollable(self) -> bool:
        return self in {ResultSetType.SCROLL_INSENSITIVE, ResultSetType.SCROLL_SENSITIVE}


class ParameterStyle(str, Enum):
    """Positional placeholder styles a driver may expect.

    - QMARK: ? placeholders
    - NUMERIC: $1, $2 placeholders
    - POSITIONAL_COLON: :1, :2 placeholders
    - POSITIONAL_PYFORMAT: %s placeholders
    """

    QMARK = "qmark"
    NUMERIC = "numeric"
    POSITIONAL_COLON = "positional_colon"
    POSITIONAL_PYFORMAT = "pyformat_positional"


EXECUTION_SETTINGS_SLOTS = (
    "dialect",
    "fetch_size",
    "parameter_style",
    "result_set_type",
    "stream_results",
    "timeout",
    "validate_sql",
)


@mypyc_attr(allow_interpreted_subclasses=False)
class ExecutionSettings:
    """Driver-facing settings applied to a statement when it is prepared."""

    __slots__ = EXECUTION_SETTINGS_SLOTS

    def __init__(
        self,
        fetch_size: Optional[int] = None,
        timeout: Optional[int] = None,
        result_set_type: "ResultSetType | str" = ResultSetType.DEFAULT,
        stream_results: bool = False,
        parameter_style: "ParameterStyle | str" = ParameterStyle.QMARK,
        validate_sql: bool = False,
        dialect: Optional[str] = None,
    ) -> None:
        """Initialize execution settings.

        Args:
            fetch_size: Rows requested per driver round trip; ``None`` keeps the driver default
            timeout: Statement timeout in seconds; ``None`` keeps the driver default
            result_set_type: Requested result set navigation mode
            stream_results: Fetch query results in ``fetch_size`` chunks instead of all at once
            parameter_style: Placeholder style the driver understands
            validate_sql: Parse the SQL with sqlglot before handing it to the driver
            dialect: sqlglot dialect used when ``validate_sql`` is enabled

        Raises:
            ImproperConfigurationError: If a value is out of range or unknown.
        """
        if fetch_size is not None and (isinstance(fetch_size, bool) or fetch_size <= 0):
            msg = f"fetch_size must be a positive integer, got {fetch_size!r}"
            raise ImproperConfigurationError(msg)
        if timeout is not None and (isinstance(timeout, bool) or timeout < 0):
            msg = f"timeout must be a non-negative integer, got {timeout!r}"
            raise ImproperConfigurationError(msg)
        try:
            self.result_set_type = ResultSetType(result_set_type)
            self.parameter_style = ParameterStyle(parameter_style)
        except ValueError as exc:
            msg = f"Invalid execution setting: {exc}"
            raise ImproperConfigurationError(msg) from exc
        self.fetch_size = fetch_size
        self.timeout = timeout
        self.stream_results = stream_results
        self.validate_sql = validate_sql
        self.dialect = dialect

    def resolve_timeout(self, transaction_timeout: Optional[int] = None) -> Optional[int]:
        """Return the timeout to apply to a statement.

        A transaction timeout, when given, overrides the configured timeout.
        """
        if transaction_timeout is not None:
            if transaction_timeout < 0:
                msg = f"transaction_timeout must be non-negative, got {transaction_timeout!r}"
                raise ImproperConfigurationError(msg)
            return transaction_timeout
        return self.timeout

    def replace(self, **kwargs: Any) -> "ExecutionSettings":
        """Immutable update pattern.

        Args:
            **kwargs: Attributes to update

        Returns:
            New ExecutionSettings instance with updated attributes
        """
        for key in kwargs:
            if key not in EXECUTION_SETTINGS_SLOTS:
                msg = f"{key!r} is not a field in {type(self).__name__}"
                raise TypeError(msg)

        current_kwargs = {slot: getattr(self, slot) for slot in EXECUTION_SETTINGS_SLOTS}
        current_kwargs.update(kwargs)
        return type(self)(**current_kwargs)

    def __hash__(self) -> int:
        return hash(tuple(getattr(self, slot) for slot in EXECUTION_SETTINGS_SLOTS))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return False
        return all(getattr(self, slot) == getattr(other, slot) for slot in EXECUTION_SETTINGS_SLOTS)

    def __repr__(self) -> str:
        field_strs = [f"{slot}={getattr(self, slot)!r}" for slot in EXECUTION_SETTINGS_SLOTS]
        return f"{self.__class__.__name__}({', '.join(field_strs)})"
