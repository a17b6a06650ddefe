from accessguard.guard.configuration import GuardConfiguration
from accessguard.guard.facade import GuardedDataAccess
from accessguard.guard.schemas import (
    AccessEvaluation,
    AccessKind,
    BulkOptions,
    DeleteOutcome,
    EngineError,
    GuardDecision,
    Record,
    RemovedFieldPolicy,
    SaveOutcome,
    TrustLevel,
    UpsertOutcome,
)
from accessguard.guard.security import SecurityGuard

__all__ = [
    "AccessEvaluation",
    "AccessKind",
    "BulkOptions",
    "DeleteOutcome",
    "EngineError",
    "GuardConfiguration",
    "GuardDecision",
    "GuardedDataAccess",
    "Record",
    "RemovedFieldPolicy",
    "SaveOutcome",
    "SecurityGuard",
    "TrustLevel",
    "UpsertOutcome",
]
