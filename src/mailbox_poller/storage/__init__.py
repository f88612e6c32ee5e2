"""Storage backends."""

from .error_rates import SqliteErrorRateStore
from .sqlite import SqliteDashboardProblems, SqliteIncomingEmailRepository

__all__ = [
    "SqliteDashboardProblems",
    "SqliteErrorRateStore",
    "SqliteIncomingEmailRepository",
]
