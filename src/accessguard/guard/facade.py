from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .configuration import GuardConfiguration
from .interfaces import PermissionEngine, PersistenceEngine
from .schemas import (
    AccessKind,
    BulkOptions,
    DeleteOutcome,
    Record,
    SaveOutcome,
    TrustLevel,
    UpsertOutcome,
)
from .security import SecurityGuard

logger = logging.getLogger(__name__)

Records = Union[Record, Sequence[Record]]


def _as_batch(records: Records):
    if isinstance(records, Record):
        return [records], True
    return list(records), False


class GuardedDataAccess:
    """
    CRUD/upsert/query entry points guarded by the removed-field policy.

    Writes run at the configured trust level; queries always execute
    elevated and only their results are guarded. Engine outcomes and
    engine exceptions are returned/raised untouched.
    """

    def __init__(
        self,
        store: PersistenceEngine,
        permissions: PermissionEngine,
        config: Optional[GuardConfiguration] = None,
    ):
        self.store = store
        self.permissions = permissions
        self.config = config or GuardConfiguration()
        self.security = SecurityGuard(permissions, self.config)

    # ----------------------------------------------------
    #  Fluent configuration (delegates to self.config)
    # ----------------------------------------------------
    def set_bulk_all_or_none(self, value: bool = True) -> "GuardedDataAccess":
        self.config.set_bulk_all_or_none(value)
        return self

    def all_or_nothing(self) -> "GuardedDataAccess":
        self.config.all_or_nothing()
        return self

    def set_allow_field_truncation(self, value: bool = True) -> "GuardedDataAccess":
        self.config.set_allow_field_truncation(value)
        return self

    def set_trust_level(self, level: Union[TrustLevel, str]) -> "GuardedDataAccess":
        self.config.set_trust_level(level)
        return self

    def replace_bulk_options(
        self, options: Union[BulkOptions, Dict[str, Any]]
    ) -> "GuardedDataAccess":
        self.config.replace_bulk_options(options)
        return self

    def require_fields(
        self, object_type: str, field_names: Optional[Iterable[str]]
    ) -> "GuardedDataAccess":
        self.config.require_fields(object_type, field_names)
        return self

    def require_all_fields(self, enabled: bool = True) -> "GuardedDataAccess":
        self.config.require_all_fields(enabled)
        return self

    # ----------------------------------------------------
    #  Reads
    # ----------------------------------------------------
    def query(self, text: str) -> List[Record]:
        # Executed elevated so predicates and joins never fail on object access.
        results = self.store.query(text, TrustLevel.elevated)
        return self.security.guard(AccessKind.readable, list(results))

    def query_with_parameters(self, text: str, bindings: Dict[str, Any]) -> List[Record]:
        results = self.store.query_with_bindings(text, dict(bindings or {}), TrustLevel.elevated)
        return self.security.guard(AccessKind.readable, list(results))

    query_with_bindings = query_with_parameters

    # ----------------------------------------------------
    #  Writes
    # ----------------------------------------------------
    def insert(self, records: Records) -> Union[SaveOutcome, List[SaveOutcome]]:
        batch, single = _as_batch(records)
        batch = self.security.guard(AccessKind.creatable, batch)
        logger.debug("insert %d record(s) at %s", len(batch), self.config.trust_level.value)
        outcomes = self.store.insert(batch, self.config.bulk_options, self.config.trust_level)
        return outcomes[0] if single else outcomes

    def update(self, records: Records) -> Union[SaveOutcome, List[SaveOutcome]]:
        batch, single = _as_batch(records)
        batch = self.security.guard(AccessKind.updatable, batch)
        logger.debug("update %d record(s) at %s", len(batch), self.config.trust_level.value)
        outcomes = self.store.update(batch, self.config.bulk_options, self.config.trust_level)
        return outcomes[0] if single else outcomes

    def upsert(
        self, records: Records, external_id_field: Optional[str] = None
    ) -> Union[UpsertOutcome, List[UpsertOutcome]]:
        batch, single = _as_batch(records)
        batch = self.security.guard(AccessKind.upsertable, batch)
        logger.debug(
            "upsert %d record(s) at %s (key=%s)",
            len(batch),
            self.config.trust_level.value,
            external_id_field or "id",
        )
        outcomes = self.store.upsert(
            batch,
            self.config.bulk_options.all_or_none,
            self.config.trust_level,
            key_field=external_id_field,
        )
        return outcomes[0] if single else outcomes

    def delete(self, records: Records) -> Union[DeleteOutcome, List[DeleteOutcome]]:
        # No field projection on delete, so the guard is not consulted.
        batch, single = _as_batch(records)
        logger.debug("delete %d record(s) at %s", len(batch), self.config.trust_level.value)
        outcomes = self.store.delete(
            batch, self.config.bulk_options.all_or_none, self.config.trust_level
        )
        return outcomes[0] if single else outcomes
