"""Statement strategies and the router that selects them."""

from sqlroute.statement._common import CommonStrategyMixin
from sqlroute.statement.direct import DirectStrategy
from sqlroute.statement.parameterized import ParameterizedStrategy
from sqlroute.statement.procedural import ProceduralStrategy
from sqlroute.statement.router import DEFAULT_STRATEGIES, StatementRouter

__all__ = (
    "DEFAULT_STRATEGIES",
    "CommonStrategyMixin",
    "DirectStrategy",
    "ParameterizedStrategy",
    "ProceduralStrategy",
    "StatementRouter",
)
