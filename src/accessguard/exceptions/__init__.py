from accessguard.exceptions.handlers import (
    AccessDenied,
    AccessGuardError,
    BulkOperationError,
    ConfigurationError,
    PolicyViolation,
    QueryError,
)

__all__ = [
    "AccessGuardError",
    "ConfigurationError",
    "PolicyViolation",
    "AccessDenied",
    "QueryError",
    "BulkOperationError",
]
