from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from accessguard.config import Settings, get_settings
from accessguard.exceptions import ConfigurationError
from .schemas import BulkOptions, RemovedFieldPolicy, TrustLevel

logger = logging.getLogger(__name__)


def _coerce_trust_level(level: Union[TrustLevel, str], config_key: str) -> TrustLevel:
    try:
        return TrustLevel(level)
    except ValueError:
        raise ConfigurationError(
            f"Unknown trust level: {level!r}", config_key=config_key
        ) from None


class GuardConfiguration:
    """
    Mutable configuration consulted by every guarded operation.

    Setters return the same instance so calls can be chained:

        config = GuardConfiguration().set_trust_level("restricted").require_all_fields()
    """

    def __init__(self) -> None:
        self.trust_level: TrustLevel = TrustLevel.restricted
        self.bulk_options: BulkOptions = BulkOptions()
        self.removed_field_policy: RemovedFieldPolicy = RemovedFieldPolicy()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "GuardConfiguration":
        settings = settings or get_settings()
        config = cls()
        config.trust_level = _coerce_trust_level(
            settings.DEFAULT_TRUST_LEVEL, "DEFAULT_TRUST_LEVEL"
        )
        config.bulk_options = BulkOptions(
            allow_field_truncation=settings.BULK_ALLOW_FIELD_TRUNCATION,
            all_or_none=settings.BULK_ALL_OR_NONE,
        )
        return config

    # ----------------------------------------------------
    #  Fluent setters
    # ----------------------------------------------------
    def set_bulk_all_or_none(self, value: bool = True) -> "GuardConfiguration":
        self.bulk_options = self.bulk_options.model_copy(update={"all_or_none": bool(value)})
        return self

    def all_or_nothing(self) -> "GuardConfiguration":
        """Alias of set_bulk_all_or_none(True)."""
        return self.set_bulk_all_or_none(True)

    def set_allow_field_truncation(self, value: bool = True) -> "GuardConfiguration":
        self.bulk_options = self.bulk_options.model_copy(
            update={"allow_field_truncation": bool(value)}
        )
        return self

    def set_trust_level(self, level: Union[TrustLevel, str]) -> "GuardConfiguration":
        self.trust_level = _coerce_trust_level(level, "trust_level")
        return self

    def replace_bulk_options(
        self, options: Union[BulkOptions, Dict[str, Any]]
    ) -> "GuardConfiguration":
        if options is None:
            raise ConfigurationError("Bulk options are required", config_key="bulk_options")
        if isinstance(options, dict):
            try:
                options = BulkOptions(**options)
            except PydanticValidationError as exc:
                raise ConfigurationError(
                    f"Invalid bulk options: {exc.errors()[0]['msg']}",
                    config_key="bulk_options",
                ) from exc
        self.bulk_options = options.model_copy()
        return self

    def require_fields(
        self, object_type: str, field_names: Optional[Iterable[str]]
    ) -> "GuardConfiguration":
        """
        Fail with PolicyViolation when any of `field_names` is stripped from
        an `object_type` record. Enables the removed-field policy.

        A blank object type or an empty field set is rejected, since either
        would silently turn the policy into "require everything".
        """
        if not object_type or not str(object_type).strip():
            raise ConfigurationError(
                "Object type name must not be blank", config_key="required_fields"
            )
        if isinstance(field_names, str):
            field_names = [field_names]
        names = {str(n).strip() for n in (field_names or ()) if n and str(n).strip()}
        if not names:
            raise ConfigurationError(
                f"At least one field name is required for {object_type}",
                config_key="required_fields",
            )

        object_type = str(object_type).strip()
        policy = self.removed_field_policy
        required = {k: set(v) for k, v in policy.required_fields.items()}
        required.setdefault(object_type, set()).update(names)
        self.removed_field_policy = RemovedFieldPolicy(enabled=True, required_fields=required)
        logger.debug("Required fields for %s: %s", object_type, sorted(required[object_type]))
        return self

    def require_all_fields(self, enabled: bool = True) -> "GuardConfiguration":
        self.removed_field_policy = self.removed_field_policy.model_copy(
            update={"enabled": bool(enabled)}
        )
        return self

    # ----------------------------------------------------
    #  Inspection
    # ----------------------------------------------------
    def copy(self) -> "GuardConfiguration":
        clone = type(self)()
        clone.trust_level = self.trust_level
        clone.bulk_options = self.bulk_options.model_copy()
        clone.removed_field_policy = RemovedFieldPolicy(
            enabled=self.removed_field_policy.enabled,
            required_fields={
                k: set(v) for k, v in self.removed_field_policy.required_fields.items()
            },
        )
        return clone

    def snapshot(self) -> Dict[str, Any]:
        policy = self.removed_field_policy
        return {
            "trust_level": self.trust_level.value,
            "bulk_options": self.bulk_options.model_dump(),
            "removed_field_policy": {
                "enabled": policy.enabled,
                "strict": policy.is_strict,
                "required_fields": {
                    k: sorted(v) for k, v in sorted(policy.required_fields.items())
                },
            },
        }

    def __repr__(self) -> str:
        return f"GuardConfiguration({self.snapshot()!r})"
