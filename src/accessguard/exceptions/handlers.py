from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class AccessGuardError(Exception):
    """
    Base exception for the guard layer and its reference engines.

    Every subclass exposes message/code/status_code/details/user_message
    and a to_dict() suitable for an API error body.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "ACCESS_GUARD_ERROR",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details: Dict[str, Any] = details or {}
        self.user_message = user_message or message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
        }

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class ConfigurationError(AccessGuardError, ValueError):
    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs: Any):
        details: Dict[str, Any] = {"config_key": config_key} if config_key else {}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            status_code=500,
            details=details,
            user_message=f"Invalid guard configuration: {message}",
        )


class PolicyViolation(AccessGuardError):
    """Critical fields were removed by field-level permission enforcement."""

    def __init__(self, fields: Iterable[str], **kwargs: Any):
        self.violations: List[str] = sorted(set(fields))
        message = "Required fields were removed by permission enforcement: " + ", ".join(
            self.violations
        )
        details: Dict[str, Any] = {"fields": list(self.violations)}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="POLICY_VIOLATION",
            status_code=403,
            details=details,
            user_message="You don't have access to one or more required fields",
        )


class AccessDenied(AccessGuardError):
    def __init__(self, action: str, resource: Optional[str] = None, **kwargs: Any):
        message = f"Access denied for action: {action}"
        if resource:
            message += f" on object: {resource}"

        details: Dict[str, Any] = {"action": action, "resource": resource}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="ACCESS_DENIED",
            status_code=403,
            details=details,
            user_message="You don't have permission to perform this action",
        )


class QueryError(AccessGuardError):
    def __init__(self, message: str, query: Optional[str] = None, **kwargs: Any):
        details: Dict[str, Any] = {"query": query} if query else {}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="QUERY_ERROR",
            status_code=400,
            details=details,
            user_message=f"Query failed: {message}",
        )


class BulkOperationError(AccessGuardError):
    """An all-or-none batch had at least one failing record; nothing was saved."""

    def __init__(self, operation: str, outcomes: List[Any]):
        self.operation = operation
        self.outcomes = list(outcomes)
        failed = [o for o in self.outcomes if not o.success]
        super().__init__(
            message=f"{operation} failed for {len(failed)} of {len(self.outcomes)} record(s)",
            code="BULK_OPERATION_FAILED",
            status_code=409,
            details={
                "operation": operation,
                "errors": [
                    {"index": i, "errors": [e.model_dump() for e in o.errors]}
                    for i, o in enumerate(self.outcomes)
                    if not o.success
                ],
            },
        )
