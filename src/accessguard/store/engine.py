from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from accessguard.exceptions import AccessDenied, BulkOperationError, QueryError
from accessguard.guard.schemas import (
    BulkOptions,
    DeleteOutcome,
    EngineError,
    Record,
    SaveOutcome,
    TrustLevel,
    UpsertOutcome,
)
from .models import FieldDefinition, StoredRecord
from .permissions import AclPermissionEngine

logger = logging.getLogger(__name__)


class _RecordFailure(Exception):
    def __init__(self, code: str, message: str, fields: Optional[List[str]] = None):
        self.error = EngineError(code=code, message=message, fields=fields or [])
        super().__init__(message)


class SqlPersistenceEngine:
    """
    Reference persistence engine over the guard_records table.

    Restricted trust checks object-level access per record through the
    ACL engine; elevated trust skips those checks. Field-level access is
    never enforced here.
    """

    def __init__(self, session: Session, permissions: AclPermissionEngine):
        self.session = session
        self.permissions = permissions

    # ----------------------------------------------------
    #  Queries
    # ----------------------------------------------------
    def query(self, text: str, trust_level: TrustLevel) -> List[Record]:
        return self.query_with_bindings(text, {}, trust_level)

    def query_with_bindings(
        self, text: str, bindings: Dict[str, Any], trust_level: TrustLevel
    ) -> List[Record]:
        try:
            rows = self.session.execute(sql_text(text), bindings or {}).mappings().all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise QueryError(str(exc.__cause__ or exc), query=text) from exc

        records = []
        for row in rows:
            if not {"id", "object_type", "fields"} <= set(row.keys()):
                raise QueryError(
                    "Query must select id, object_type and fields columns", query=text
                )
            fields = row["fields"]
            if isinstance(fields, str):
                fields = json.loads(fields)
            records.append(Record(type=row["object_type"], id=row["id"], fields=fields or {}))

        if trust_level == TrustLevel.restricted:
            for object_type in sorted({r.type for r in records}):
                self.permissions.require_object_access(object_type, "read")
        return records

    # ----------------------------------------------------
    #  Writes
    # ----------------------------------------------------
    def insert(
        self, records: Sequence[Record], bulk_options: BulkOptions, trust_level: TrustLevel
    ) -> List[SaveOutcome]:
        def _insert(record: Record) -> SaveOutcome:
            self._check(record, "create", trust_level)
            fields = self._fit_lengths(record, bulk_options.allow_field_truncation)
            row = StoredRecord(id=str(uuid.uuid4()), object_type=record.type, fields=fields)
            self.session.add(row)
            self.session.flush()
            return SaveOutcome(success=True, id=row.id)

        return self._run_batch("insert", records, bulk_options.all_or_none, _insert, SaveOutcome)

    def update(
        self, records: Sequence[Record], bulk_options: BulkOptions, trust_level: TrustLevel
    ) -> List[SaveOutcome]:
        def _update(record: Record) -> SaveOutcome:
            row = self._existing(record)
            self._check(record, "update", trust_level)
            fields = self._fit_lengths(record, bulk_options.allow_field_truncation)
            row.fields = {**(row.fields or {}), **fields}
            self.session.flush()
            return SaveOutcome(success=True, id=row.id)

        return self._run_batch("update", records, bulk_options.all_or_none, _update, SaveOutcome)

    def upsert(
        self,
        records: Sequence[Record],
        all_or_none: bool,
        trust_level: TrustLevel,
        key_field: Optional[str] = None,
    ) -> List[UpsertOutcome]:
        def _upsert(record: Record) -> UpsertOutcome:
            row = self._match(record, key_field)
            fields = self._fit_lengths(record, True)
            if row is None:
                self._check(record, "create", trust_level)
                row = StoredRecord(
                    id=record.id or str(uuid.uuid4()),
                    object_type=record.type,
                    fields=fields,
                )
                self.session.add(row)
                self.session.flush()
                return UpsertOutcome(success=True, id=row.id, created=True)

            self._check(record, "update", trust_level)
            row.fields = {**(row.fields or {}), **fields}
            self.session.flush()
            return UpsertOutcome(success=True, id=row.id, created=False)

        return self._run_batch("upsert", records, all_or_none, _upsert, UpsertOutcome)

    def delete(
        self, records: Sequence[Record], all_or_none: bool, trust_level: TrustLevel
    ) -> List[DeleteOutcome]:
        def _delete(record: Record) -> DeleteOutcome:
            row = self._existing(record)
            self._check(record, "delete", trust_level)
            self.session.delete(row)
            self.session.flush()
            return DeleteOutcome(success=True, id=row.id)

        return self._run_batch("delete", records, all_or_none, _delete, DeleteOutcome)

    # ----------------------------------------------------
    #  Helpers
    # ----------------------------------------------------
    def _run_batch(self, operation, records, all_or_none, handler, outcome_cls) -> List[Any]:
        # Handlers validate before touching the session, so a failed record
        # leaves nothing behind to undo.
        outcomes = []
        for record in records:
            try:
                outcomes.append(handler(record))
            except _RecordFailure as failure:
                outcomes.append(outcome_cls(success=False, id=record.id, errors=[failure.error]))

        if all_or_none and any(not o.success for o in outcomes):
            self.session.rollback()
            logger.info("%s batch rolled back: %d record(s)", operation, len(outcomes))
            raise BulkOperationError(operation, outcomes)

        self.session.commit()
        logger.debug(
            "%s committed: %d ok, %d failed",
            operation,
            sum(1 for o in outcomes if o.success),
            sum(1 for o in outcomes if not o.success),
        )
        return outcomes

    def _check(self, record: Record, operation: str, trust_level: TrustLevel) -> None:
        if trust_level == TrustLevel.elevated:
            return
        try:
            self.permissions.require_object_access(record.type, operation)
        except AccessDenied as exc:
            raise _RecordFailure("INSUFFICIENT_ACCESS", exc.message) from exc

    def _existing(self, record: Record) -> StoredRecord:
        if not record.id:
            raise _RecordFailure("MISSING_ID", f"{record.type} record has no id")
        row = self.session.get(StoredRecord, record.id)
        if row is None or row.object_type != record.type:
            raise _RecordFailure("NOT_FOUND", f"{record.type} {record.id} not found")
        return row

    def _match(self, record: Record, key_field: Optional[str]) -> Optional[StoredRecord]:
        if key_field is None or key_field == "id":
            if not record.id:
                return None
            row = self.session.get(StoredRecord, record.id)
            if row is not None and row.object_type != record.type:
                raise _RecordFailure(
                    "DUPLICATE_VALUE", f"id {record.id} belongs to {row.object_type}"
                )
            return row

        if key_field not in record.fields:
            raise _RecordFailure(
                "MISSING_KEY", f"{record.type} record has no value for {key_field}", [key_field]
            )
        value = record.fields[key_field]
        candidates = (
            self.session.query(StoredRecord)
            .filter(StoredRecord.object_type == record.type)
            .all()
        )
        matches = [row for row in candidates if (row.fields or {}).get(key_field) == value]
        if len(matches) > 1:
            raise _RecordFailure(
                "DUPLICATE_VALUE",
                f"{len(matches)} {record.type} records match {key_field}={value!r}",
                [key_field],
            )
        if matches:
            return matches[0]
        # The insert path reuses record.id, which must not collide with another row.
        if record.id and self.session.get(StoredRecord, record.id) is not None:
            raise _RecordFailure(
                "DUPLICATE_VALUE",
                f"No {record.type} matches {key_field}={value!r} but id {record.id} is taken",
                ["id"],
            )
        return None

    def _fit_lengths(self, record: Record, allow_truncation: bool) -> Dict[str, Any]:
        limits: Dict[str, int] = {
            d.name: d.max_length
            for d in self.session.query(FieldDefinition)
            .filter(FieldDefinition.object_type == record.type)
            .all()
            if d.max_length
        }
        fields = {k: v for k, v in record.fields.items() if k != "id"}
        too_long: List[Tuple[str, int]] = [
            (name, limits[name])
            for name, value in fields.items()
            if name in limits and isinstance(value, str) and len(value) > limits[name]
        ]
        if not too_long:
            return fields
        if not allow_truncation:
            raise _RecordFailure(
                "STRING_TOO_LONG",
                "Value too long for "
                + ", ".join(f"{record.type}.{name} (max {limit})" for name, limit in too_long),
                [name for name, _ in too_long],
            )
        for name, limit in too_long:
            fields[name] = fields[name][:limit]
        return fields
