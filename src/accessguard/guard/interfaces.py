"""
Boundary contracts for the two engines the guard sits between.

Any object with these methods can be plugged into GuardedDataAccess;
accessguard.store ships SQLAlchemy-backed implementations.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

from .schemas import (
    AccessEvaluation,
    AccessKind,
    BulkOptions,
    DeleteOutcome,
    Record,
    SaveOutcome,
    TrustLevel,
    UpsertOutcome,
)


class PersistenceEngine(Protocol):
    def query(self, text: str, trust_level: TrustLevel) -> List[Record]:
        ...

    def query_with_bindings(
        self, text: str, bindings: Dict[str, Any], trust_level: TrustLevel
    ) -> List[Record]:
        ...

    def insert(
        self, records: Sequence[Record], bulk_options: BulkOptions, trust_level: TrustLevel
    ) -> List[SaveOutcome]:
        ...

    def update(
        self, records: Sequence[Record], bulk_options: BulkOptions, trust_level: TrustLevel
    ) -> List[SaveOutcome]:
        ...

    def upsert(
        self,
        records: Sequence[Record],
        all_or_none: bool,
        trust_level: TrustLevel,
        key_field: Optional[str] = None,
    ) -> List[UpsertOutcome]:
        ...

    def delete(
        self, records: Sequence[Record], all_or_none: bool, trust_level: TrustLevel
    ) -> List[DeleteOutcome]:
        ...


class PermissionEngine(Protocol):
    def evaluate_access(
        self, access_kind: AccessKind, records: Sequence[Record], strip: bool = True
    ) -> AccessEvaluation:
        ...
