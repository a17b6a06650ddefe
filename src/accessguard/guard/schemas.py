from typing import Any, Dict, List, Optional, Set
from pydantic import BaseModel, Field
from enum import Enum


class TrustLevel(str, Enum):
    restricted = "restricted"  # subject to object/field permissions
    elevated = "elevated"  # bypasses permission evaluation


class AccessKind(str, Enum):
    readable = "readable"
    creatable = "creatable"
    updatable = "updatable"
    upsertable = "upsertable"


class Record(BaseModel):
    """
    A single stored object as seen by callers.
    `type` is the object-type name (e.g. 'Account'); `fields` holds its values.
    """

    type: str = Field(..., description="Object type name, e.g. 'Account'")
    id: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)

    def without_fields(self, names: Set[str]) -> "Record":
        return self.model_copy(
            update={"fields": {k: v for k, v in self.fields.items() if k not in names}}
        )


class BulkOptions(BaseModel):
    allow_field_truncation: bool = True
    all_or_none: bool = True


class RemovedFieldPolicy(BaseModel):
    """
    enabled + empty required_fields: strict, any removal is a violation.
    enabled + required_fields: only listed (object, field) removals are violations.
    disabled: removals are always stripped silently.
    """

    enabled: bool = False
    required_fields: Dict[str, Set[str]] = Field(default_factory=dict)

    @property
    def is_strict(self) -> bool:
        return self.enabled and not self.required_fields

    def is_critical(self, object_type: str, field_name: str) -> bool:
        if not self.enabled:
            return False
        if self.is_strict:
            return True
        return field_name in self.required_fields.get(object_type, set())


class EngineError(BaseModel):
    code: str
    message: str
    fields: List[str] = Field(default_factory=list)


class SaveOutcome(BaseModel):
    success: bool
    id: Optional[str] = None
    errors: List[EngineError] = Field(default_factory=list)


class DeleteOutcome(SaveOutcome):
    pass


class UpsertOutcome(SaveOutcome):
    created: bool = False


class AccessEvaluation(BaseModel):
    """Result of a permission-engine pass over a batch of records."""

    records: List[Record] = Field(default_factory=list)
    removed_fields: Dict[str, Set[str]] = Field(default_factory=dict)


class GuardDecision(BaseModel):
    records: List[Record] = Field(default_factory=list)
    removed_fields: Dict[str, Set[str]] = Field(default_factory=dict)
    violations: List[str] = Field(default_factory=list)
    # False when the permission engine was not consulted (bypass or empty input)
    evaluated: bool = False

    @property
    def ok(self) -> bool:
        return not self.violations
